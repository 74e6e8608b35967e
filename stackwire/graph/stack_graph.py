"""Frozen, validated stack graph."""

from __future__ import annotations

from collections.abc import Mapping
from types import MappingProxyType
from typing import Any

import networkx as nx

from stackwire.errors import CycleError
from stackwire.graph.kinds import KindSchema, schema_for
from stackwire.models.edges import AccessEdge, Consumption
from stackwire.models.resources import ResourceNode


def find_cycles(graph: nx.DiGraph) -> list[CycleError]:
    """Return one CycleError per strongly connected component that contains a cycle."""
    errors: list[CycleError] = []
    components = sorted((sorted(component) for component in nx.strongly_connected_components(graph)), key=lambda c: c[0])
    for component in components:
        head = component[0]
        if len(component) == 1 and not graph.has_edge(head, head):
            continue
        cycle = nx.find_cycle(graph.subgraph(component), source=head)
        errors.append(CycleError([edge[0] for edge in cycle], component=component))
    return errors


class StackGraph:
    """Nodes, materialization dependencies, explicit access edges and consumptions.

    Produced by ``StackBuilder.build()``; read-only afterwards. An edge
    ``A -> B`` in the dependency graph means A must be materialized before B.
    Access edges never add materialization order.
    """

    def __init__(
        self,
        nodes: Mapping[str, ResourceNode],
        dependencies: nx.DiGraph,
        explicit_edges: tuple[AccessEdge, ...] = (),
        consumptions: tuple[Consumption, ...] = (),
    ) -> None:
        self._nodes: Mapping[str, ResourceNode] = MappingProxyType({key: nodes[key] for key in sorted(nodes)})
        self._graph: nx.DiGraph = nx.freeze(dependencies)
        self._explicit_edges = explicit_edges
        self._consumptions = consumptions

    @property
    def node_count(self) -> int:
        """Number of nodes in the graph."""
        return self._graph.number_of_nodes()

    @property
    def edge_count(self) -> int:
        """Number of materialization edges in the graph."""
        return self._graph.number_of_edges()

    @property
    def nodes(self) -> Mapping[str, ResourceNode]:
        return self._nodes

    @property
    def explicit_edges(self) -> tuple[AccessEdge, ...]:
        return self._explicit_edges

    @property
    def consumptions(self) -> tuple[Consumption, ...]:
        return self._consumptions

    def node(self, node_id: str) -> ResourceNode:
        return self._nodes[node_id]

    def schema(self, node_id: str) -> KindSchema:
        return schema_for(self._nodes[node_id].kind)

    def dependencies(self, node_id: str) -> tuple[str, ...]:
        """Nodes that must be materialized directly before *node_id*."""
        return tuple(sorted(self._graph.predecessors(node_id)))

    def upstream(self, node_id: str) -> set[str]:
        return set(nx.ancestors(self._graph, node_id))

    def downstream(self, node_id: str) -> set[str]:
        return set(nx.descendants(self._graph, node_id))

    def materialization_edges(self) -> list[tuple[str, str]]:
        return sorted(self._graph.edges())

    def edge_reasons(self, source: str, target: str) -> tuple[str, ...]:
        """Configuration fields (or ``depends_on``) that created ``source -> target``."""
        return tuple(sorted(self._graph.edges[source, target]["reasons"]))

    def get_nx_graph(self) -> nx.DiGraph:
        """Return the underlying (frozen) NetworkX graph."""
        return self._graph

    def find_cycles(self) -> list[CycleError]:
        return find_cycles(self._graph)

    def to_dict(self) -> dict[str, Any]:
        return {
            "nodes": [node.to_dict() for node in self._nodes.values()],
            "dependencies": [
                {"from": source, "to": target, "reasons": list(self.edge_reasons(source, target))}
                for source, target in self.materialization_edges()
            ],
            "edges": [edge.to_dict() for edge in self._explicit_edges],
        }
