"""Deployment plan and run report data structures.

Contract between the planner, the plan executor and any emitter: a plan
is produced once, frozen, and only read afterwards.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import StrEnum
from functools import cached_property
from typing import Any

from stackwire.models.edges import AccessEdge, Channel, EdgeConflict
from stackwire.models.references import render_value
from stackwire.models.resources import ResourceKind


@dataclass(frozen=True)
class MountBinding:
    """Shared storage mounted into a consumer, registered by the wiring resolver."""

    storage: str
    container_path: str
    read_only: bool = False
    volume: str | None = None
    source_field: str = ""

    @property
    def mode(self) -> str:
        return "ro" if self.read_only else "rw"

    def to_dict(self) -> dict[str, Any]:
        return {
            "storage": self.storage,
            "container_path": self.container_path,
            "mode": self.mode,
            "volume": self.volume,
        }


@dataclass(frozen=True)
class MaterializationOp:
    """One node to create or update, with its still-unresolved attributes."""

    node_id: str
    kind: ResourceKind
    attributes: Mapping[str, Any]
    depends_on: tuple[str, ...]
    layer: int
    mount_bindings: tuple[MountBinding, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        return {
            "node": self.node_id,
            "kind": self.kind.value,
            "layer": self.layer,
            "depends_on": list(self.depends_on),
            "attributes": render_value(self.attributes),
            "mount_bindings": [binding.to_dict() for binding in self.mount_bindings],
        }


@dataclass(frozen=True)
class DeploymentPlan:
    """Ordered, access-wired plan for one stack.

    ``operations`` is a linear order; ``layers`` groups the same nodes into
    generations whose members have no dependency on one another and may be
    materialized concurrently.
    """

    operations: tuple[MaterializationOp, ...]
    layers: tuple[tuple[str, ...], ...]
    edges: tuple[AccessEdge, ...]
    suppressed: tuple[AccessEdge, ...] = ()
    conflicts: tuple[EdgeConflict, ...] = ()

    @cached_property
    def _by_id(self) -> dict[str, MaterializationOp]:
        return {op.node_id: op for op in self.operations}

    @property
    def order(self) -> tuple[str, ...]:
        return tuple(op.node_id for op in self.operations)

    def operation(self, node_id: str) -> MaterializationOp:
        return self._by_id[node_id]

    def index(self, node_id: str) -> int:
        return self.order.index(node_id)

    def edges_for(
        self,
        from_node: str | None = None,
        to_node: str | None = None,
        channel: Channel | None = None,
    ) -> list[AccessEdge]:
        """Return merged edges matching every given filter."""
        return [
            edge
            for edge in self.edges
            if (from_node is None or edge.from_node == from_node)
            and (to_node is None or edge.to_node == to_node)
            and (channel is None or edge.channel == channel)
        ]

    def upstream(self, node_id: str) -> set[str]:
        """Return every node *node_id* depends on, directly or transitively."""
        seen: set[str] = set()
        stack = list(self._by_id[node_id].depends_on)
        while stack:
            current = stack.pop()
            if current in seen:
                continue
            seen.add(current)
            stack.extend(self._by_id[current].depends_on)
        return seen

    def independent(self, a: str, b: str) -> bool:
        """True when neither node depends on the other, so both may run in parallel."""
        return a != b and a not in self.upstream(b) and b not in self.upstream(a)

    def to_dict(self) -> dict[str, Any]:
        return {
            "order": list(self.order),
            "layers": [list(layer) for layer in self.layers],
            "operations": [op.to_dict() for op in self.operations],
            "edges": [edge.to_dict() for edge in self.edges],
            "suppressed": [edge.to_dict() for edge in self.suppressed],
            "conflicts": [conflict.to_dict() for conflict in self.conflicts],
        }


class NodeStatus(StrEnum):
    """Outcome of one node in a plan run."""

    MATERIALIZED = "materialized"
    FAILED = "failed"
    SKIPPED = "skipped"


@dataclass
class NodeOutcome:
    """What happened to a single node during a plan run."""

    node_id: str
    status: NodeStatus
    outputs: dict[str, Any] = field(default_factory=dict)
    resolved_attributes: dict[str, Any] | None = None
    error: str | None = None
    blocked_by: str | None = None  # set for skipped nodes

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"node": self.node_id, "status": self.status.value}
        if self.outputs:
            data["outputs"] = self.outputs
        if self.error is not None:
            data["error"] = self.error
        if self.blocked_by is not None:
            data["blocked_by"] = self.blocked_by
        return data


@dataclass
class RunReport:
    """Result of executing a plan, complete or partial."""

    order: tuple[str, ...]
    outcomes: dict[str, NodeOutcome] = field(default_factory=dict)
    duration_ms: float = 0.0

    def _with_status(self, status: NodeStatus) -> list[str]:
        return [node for node in self.order if node in self.outcomes and self.outcomes[node].status == status]

    @property
    def materialized(self) -> list[str]:
        return self._with_status(NodeStatus.MATERIALIZED)

    @property
    def failed(self) -> list[str]:
        return self._with_status(NodeStatus.FAILED)

    @property
    def skipped(self) -> list[str]:
        return self._with_status(NodeStatus.SKIPPED)

    @property
    def not_materialized(self) -> list[str]:
        done = set(self.materialized)
        return [node for node in self.order if node not in done]

    @property
    def complete(self) -> bool:
        return len(self.materialized) == len(self.order)

    def to_dict(self) -> dict[str, Any]:
        return {
            "complete": self.complete,
            "duration_ms": round(self.duration_ms, 3),
            "frontier": {
                "materialized": self.materialized,
                "not_materialized": self.not_materialized,
            },
            "nodes": [self.outcomes[node].to_dict() for node in self.order if node in self.outcomes],
        }
