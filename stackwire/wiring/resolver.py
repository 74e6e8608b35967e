"""Access wiring resolver.

Turns every consumption relationship collected by the graph builder into
the minimal access edges it needs, then merges them with the author's
explicit edges:

* network    -- ingress on the provider, scoped to one TCP port, from the
                consumer only;
* credential -- read grant scoped to one field of the provider's secret,
                for the consumer only;
* mount      -- network ingress on the storage service port plus a mount
                edge, and a mount binding registered on the consumer.

Explicit edges always win: a synthesized edge for a ``(from, to, channel)``
triple the author already declared is suppressed, and recorded as a
conflict when the scopes differ.
"""

from __future__ import annotations

from collections import defaultdict
from collections.abc import Iterable, Iterator
from dataclasses import dataclass, field

from stackwire.errors import (
    ConflictingEdgeError,
    DeclarationError,
    MissingAccessError,
    StackwireError,
    UnknownReferenceError,
)
from stackwire.graph.stack_graph import StackGraph
from stackwire.models.config import ConflictPolicy
from stackwire.models.edges import (
    AccessEdge,
    Channel,
    Consumption,
    Direction,
    EdgeConflict,
    EdgeOrigin,
    tcp_scope,
)
from stackwire.models.plan import MountBinding
from stackwire.models.references import AttributeRef, MountRef, NetworkRef, SecretFieldRef
from stackwire.observability.logging import get_logger
from stackwire.observability.metrics import access_edges_total, suppressed_edges_total

_logger = get_logger("wiring.resolver")

EdgeKey = tuple[str, str, Channel, str]


class AccessEdgeSet:
    """Edge set deduplicated by ``(from, to, channel, scope)``; first insert wins."""

    def __init__(self, edges: Iterable[AccessEdge] = ()) -> None:
        self._edges: dict[EdgeKey, AccessEdge] = {}
        for edge in edges:
            self.add(edge)

    def add(self, edge: AccessEdge) -> bool:
        """Add *edge*; return False when an edge with the same key is already present."""
        if edge.key in self._edges:
            return False
        self._edges[edge.key] = edge
        return True

    def __contains__(self, edge: object) -> bool:
        return isinstance(edge, AccessEdge) and edge.key in self._edges

    def __len__(self) -> int:
        return len(self._edges)

    def __iter__(self) -> Iterator[AccessEdge]:
        return iter(self.sorted())

    def sorted(self) -> list[AccessEdge]:
        return [self._edges[key] for key in sorted(self._edges)]

    def pairs(self) -> set[tuple[str, str, Channel]]:
        return {edge.pair for edge in self._edges.values()}


@dataclass(frozen=True)
class WiringResult:
    """Merged access edges plus everything the merge set aside."""

    edges: tuple[AccessEdge, ...]
    suppressed: tuple[AccessEdge, ...] = ()
    conflicts: tuple[EdgeConflict, ...] = ()
    mount_bindings: dict[str, tuple[MountBinding, ...]] = field(default_factory=dict)


class AccessWiringResolver:
    """Synthesizes and merges access edges for one stack graph."""

    def __init__(self, graph: StackGraph, policy: ConflictPolicy = ConflictPolicy.FLAG) -> None:
        self._graph = graph
        self._policy = policy

    # ------------------------------------------------------------------
    # Synthesis
    # ------------------------------------------------------------------

    def synthesize(self, consumption: Consumption) -> list[AccessEdge]:
        """Return the minimal edges a single consumption relationship needs."""
        reference = consumption.reference
        if isinstance(reference, NetworkRef):
            port = reference.port if reference.port is not None else self._service_port(consumption.provider)
            return [self._network_edge(consumption, port)]
        if isinstance(reference, SecretFieldRef):
            return [
                self._implicit(
                    consumption,
                    Channel.CREDENTIAL,
                    scope=reference.field,
                    resource=AttributeRef(consumption.provider, reference.attribute),
                )
            ]
        if isinstance(reference, MountRef):
            port = self._service_port(consumption.provider)
            return [
                self._network_edge(consumption, port),
                self._implicit(
                    consumption,
                    Channel.MOUNT,
                    scope=reference.container_path,
                    resource=AttributeRef(consumption.provider, reference.attribute),
                ),
            ]
        return []

    def _service_port(self, node_id: str) -> int:
        port = self._graph.schema(node_id).service_port(self._graph.node(node_id).attributes)
        if port is None:
            raise UnknownReferenceError(node_id, "port")
        return port

    def _network_edge(self, consumption: Consumption, port: int) -> AccessEdge:
        provider_schema = self._graph.schema(consumption.provider)
        resource = (
            AttributeRef(consumption.provider, "security_group_id")
            if "security_group_id" in provider_schema.deferred
            else None
        )
        return self._implicit(consumption, Channel.NETWORK, scope=tcp_scope(port), resource=resource)

    def _implicit(
        self,
        consumption: Consumption,
        channel: Channel,
        *,
        scope: str,
        resource: AttributeRef | None,
    ) -> AccessEdge:
        return AccessEdge(
            from_node=consumption.consumer,
            to_node=consumption.provider,
            channel=channel,
            scope=scope,
            direction=Direction.INGRESS,
            origin=EdgeOrigin.IMPLICIT,
            source_field=consumption.source_field,
            resource=resource,
            principal=self._principal(consumption.consumer, channel),
        )

    def _principal(self, consumer: str, channel: Channel) -> AttributeRef | None:
        """Return the consumer identity a grant attaches to.

        Credential grants go to an execution role, network and mount grants
        to a security group. A container has neither, so it borrows them
        through its ``task_spec``: the task's role, and the security group
        of the service running that task.
        """
        attribute = "execution_role_id" if channel == Channel.CREDENTIAL else "security_group_id"
        if attribute in self._graph.schema(consumer).deferred:
            return AttributeRef(consumer, attribute)
        task = self._task_spec_of(consumer)
        if task is None:
            return None
        if attribute in self._graph.schema(task).deferred:
            return AttributeRef(task, attribute)
        for node_id in sorted(self._graph.nodes):
            if (
                node_id != consumer
                and self._task_spec_of(node_id) == task
                and attribute in self._graph.schema(node_id).deferred
            ):
                return AttributeRef(node_id, attribute)
        return None

    def _task_spec_of(self, node_id: str) -> str | None:
        value = self._graph.node(node_id).attributes.get("task_spec")
        if isinstance(value, AttributeRef) and value.node_id in self._graph.nodes:
            return value.node_id
        return None

    # ------------------------------------------------------------------
    # Merge
    # ------------------------------------------------------------------

    def resolve(self, consumptions: Iterable[Consumption] | None = None) -> WiringResult:
        """Synthesize edges for *consumptions* (default: all of the graph's) and merge.

        Raises:
            DeclarationError: with every ConflictingEdgeError when the policy
                is ``fail``, or with MissingAccessError when a consumption is
                left without an edge of its channel.
        """
        items = sorted(
            set(self._graph.consumptions if consumptions is None else consumptions),
            key=lambda c: (c.consumer, c.source_field, c.provider, c.channel),
        )

        implicit = AccessEdgeSet()
        bindings: dict[str, list[MountBinding]] = defaultdict(list)
        for consumption in items:
            for edge in self.synthesize(consumption):
                implicit.add(edge)
            if isinstance(consumption.reference, MountRef):
                binding = MountBinding(
                    storage=consumption.provider,
                    container_path=consumption.reference.container_path,
                    read_only=consumption.reference.read_only,
                    volume=consumption.reference.volume,
                    source_field=consumption.source_field,
                )
                if binding not in bindings[consumption.consumer]:
                    bindings[consumption.consumer].append(binding)

        explicit_by_pair: dict[tuple[str, str, Channel], list[AccessEdge]] = defaultdict(list)
        for edge in self._graph.explicit_edges:
            explicit_by_pair[edge.pair].append(edge)
            if edge.unscoped:
                _logger.warning(
                    "unscoped_ingress_declared",
                    source=edge.from_node,
                    target=edge.to_node,
                    channel=edge.channel.value,
                    scope=edge.scope,
                )

        merged = AccessEdgeSet(self._graph.explicit_edges)
        suppressed: list[AccessEdge] = []
        conflicts: list[EdgeConflict] = []
        for edge in implicit:
            declared = explicit_by_pair.get(edge.pair)
            if not declared:
                merged.add(edge)
                continue
            if any(existing.key == edge.key for existing in declared):
                continue
            suppressed.append(edge)
            conflicts.append(EdgeConflict(explicit=declared[0], implicit=edge))

        self._apply_policy(conflicts)
        self._verify_coverage(items, merged)

        for edge in merged:
            access_edges_total.labels(channel=edge.channel.value, origin=edge.origin.value).inc()
        for edge in suppressed:
            suppressed_edges_total.labels(channel=edge.channel.value).inc()

        _logger.debug(
            "access_wiring_resolved",
            consumptions=len(items),
            edges=len(merged),
            suppressed=len(suppressed),
            conflicts=len(conflicts),
        )
        return WiringResult(
            edges=tuple(merged.sorted()),
            suppressed=tuple(suppressed),
            conflicts=tuple(conflicts),
            mount_bindings={node: tuple(found) for node, found in sorted(bindings.items())},
        )

    def _apply_policy(self, conflicts: list[EdgeConflict]) -> None:
        if not conflicts:
            return
        if self._policy == ConflictPolicy.FAIL:
            raise DeclarationError(
                [
                    ConflictingEdgeError(
                        conflict.explicit.from_node,
                        conflict.explicit.to_node,
                        conflict.explicit.channel,
                        conflict.explicit.scope,
                        conflict.implicit.scope,
                    )
                    for conflict in conflicts
                ]
            )
        if self._policy == ConflictPolicy.FLAG:
            for conflict in conflicts:
                _logger.warning(
                    "access_edge_conflict",
                    source=conflict.explicit.from_node,
                    target=conflict.explicit.to_node,
                    channel=conflict.explicit.channel.value,
                    explicit_scope=conflict.explicit.scope,
                    implicit_scope=conflict.implicit.scope,
                    source_field=conflict.implicit.source_field,
                )

    def _verify_coverage(self, consumptions: list[Consumption], merged: AccessEdgeSet) -> None:
        present = merged.pairs()
        missing: dict[tuple[str, str, Channel], StackwireError] = {}
        for consumption in consumptions:
            required = [consumption.channel]
            if consumption.channel == Channel.MOUNT:
                required.append(Channel.NETWORK)
            for channel in required:
                pair = (consumption.consumer, consumption.provider, channel)
                if pair not in present and pair not in missing:
                    missing[pair] = MissingAccessError(*pair)
        if missing:
            raise DeclarationError(list(missing.values()))
