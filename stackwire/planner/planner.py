"""Topological planner.

Orders node materialization so that every node comes after all nodes it
depends on, groups the order into layers whose members may run
concurrently, and attaches the merged access edges. Planning is a pure
function of the graph: it performs no I/O and mutates nothing.
"""

from __future__ import annotations

import time

import networkx as nx

from stackwire.errors import DeclarationError
from stackwire.graph.builder import StackBuilder
from stackwire.graph.stack_graph import StackGraph
from stackwire.models.config import PlannerConfig
from stackwire.models.plan import DeploymentPlan, MaterializationOp
from stackwire.observability.logging import get_logger
from stackwire.observability.metrics import plan_duration_seconds
from stackwire.wiring.resolver import AccessWiringResolver

_logger = get_logger("planner")


def materialization_layers(graph: StackGraph) -> list[list[str]]:
    """Return topological generations, each sorted by node id.

    Raises:
        DeclarationError: carrying a CycleError per cycle found.
    """
    cycles = graph.find_cycles()
    if cycles:
        raise DeclarationError(cycles)
    try:
        return [sorted(generation) for generation in nx.topological_generations(graph.get_nx_graph())]
    except nx.NetworkXUnfeasible:
        raise DeclarationError(graph.find_cycles()) from None


def materialization_order(graph: StackGraph) -> list[str]:
    """Return a linear order in which every dependency precedes its dependents."""
    return [node_id for layer in materialization_layers(graph) for node_id in layer]


def plan_stack(graph: StackGraph, config: PlannerConfig | None = None) -> DeploymentPlan:
    """Compile *graph* into an ordered, access-wired DeploymentPlan."""
    config = config or PlannerConfig()
    t_start = time.monotonic()

    layers = materialization_layers(graph)
    wiring = AccessWiringResolver(graph, policy=config.conflict_policy).resolve()

    operations: list[MaterializationOp] = []
    for index, layer in enumerate(layers):
        for node_id in layer:
            node = graph.node(node_id)
            operations.append(
                MaterializationOp(
                    node_id=node_id,
                    kind=node.kind,
                    attributes=node.attributes,
                    depends_on=graph.dependencies(node_id),
                    layer=index,
                    mount_bindings=wiring.mount_bindings.get(node_id, ()),
                )
            )

    duration = time.monotonic() - t_start
    plan_duration_seconds.observe(duration)
    _logger.info(
        "stack_planned",
        nodes=len(operations),
        layers=len(layers),
        edges=len(wiring.edges),
        conflicts=len(wiring.conflicts),
        duration_ms=round(duration * 1000.0, 3),
    )
    return DeploymentPlan(
        operations=tuple(operations),
        layers=tuple(tuple(layer) for layer in layers),
        edges=wiring.edges,
        suppressed=wiring.suppressed,
        conflicts=wiring.conflicts,
    )


def compile_stack(builder: StackBuilder, config: PlannerConfig | None = None) -> DeploymentPlan:
    """Build and plan in one step."""
    return plan_stack(builder.build(), config)
