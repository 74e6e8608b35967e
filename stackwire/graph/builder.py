"""Dependency graph builder.

Collects node and edge declarations, infers materialization dependencies
from the references found in each node's attributes, and validates the
whole declaration in one pass. Every problem found is reported together in
a single ``DeclarationError``.
"""

from __future__ import annotations

from dataclasses import replace
from typing import Any

import networkx as nx

from stackwire.errors import (
    DeclarationError,
    DuplicateNodeError,
    IllegalAttributeError,
    InvalidEdgeError,
    StackwireError,
    UnknownReferenceError,
)
from stackwire.graph.kinds import schema_for
from stackwire.graph.stack_graph import StackGraph, find_cycles
from stackwire.models.edges import (
    ANY_SCOPE,
    ANY_SOURCE,
    AccessEdge,
    Channel,
    Consumption,
    Direction,
    EdgeOrigin,
    channel_of,
)
from stackwire.models.references import NetworkRef, Reference, SecretFieldRef, iter_references
from stackwire.models.resources import ResourceKind, ResourceNode, freeze_attributes
from stackwire.observability.logging import get_logger

_logger = get_logger("graph.builder")

_DEPENDS_ON = "depends_on"


class StackBuilder:
    """Accumulates declarations for one stack and builds a validated graph.

    Declaration order never affects the built graph: nodes, dependencies
    and edges are all normalized into sorted order.
    """

    def __init__(self) -> None:
        self._declarations: list[ResourceNode] = []
        self._edges: list[AccessEdge] = []
        self._recorded: list[StackwireError] = []

    def add(self, node: ResourceNode) -> ResourceNode:
        self._declarations.append(node)
        return node

    def add_node(
        self,
        node_id: str,
        kind: ResourceKind | str,
        *,
        depends_on: tuple[str, ...] | list[str] = (),
        **attributes: Any,
    ) -> ResourceNode:
        """Declare a node; attribute values may contain references."""
        node = ResourceNode(id=node_id, kind=ResourceKind(kind), attributes=attributes, depends_on=tuple(depends_on))
        return self.add(node)

    def add_edge(self, edge: AccessEdge) -> AccessEdge:
        """Declare an explicit access edge. Explicit edges always win over synthesized ones."""
        explicit = replace(edge, origin=EdgeOrigin.EXPLICIT)
        self._edges.append(explicit)
        return explicit

    def record_error(self, error: StackwireError) -> None:
        """Carry a problem found before declaration (e.g. by a document loader) into build()."""
        self._recorded.append(error)

    def allow(
        self,
        from_node: str,
        to_node: str,
        channel: Channel | str,
        scope: str = ANY_SCOPE,
        direction: Direction | str = Direction.INGRESS,
    ) -> AccessEdge:
        return self.add_edge(
            AccessEdge(
                from_node=from_node,
                to_node=to_node,
                channel=Channel(channel),
                scope=scope,
                direction=Direction(direction),
            )
        )

    # ------------------------------------------------------------------
    # Build
    # ------------------------------------------------------------------

    def build(self) -> StackGraph:
        """Validate every declaration and return a frozen StackGraph.

        Raises:
            DeclarationError: carrying every DuplicateNodeError,
                IllegalAttributeError, UnknownReferenceError,
                InvalidEdgeError and CycleError found, plus every error
                passed to record_error().
        """
        errors: list[StackwireError] = list(self._recorded)
        nodes: dict[str, ResourceNode] = {}
        for node in self._declarations:
            if node.id in nodes:
                errors.append(DuplicateNodeError(node.id))
                continue
            # read-only copy, detached from the caller's values
            nodes[node.id] = replace(node, attributes=freeze_attributes(node.attributes))

        graph = nx.DiGraph()
        graph.add_nodes_from(sorted(nodes))
        consumptions: list[Consumption] = []

        for node_id in sorted(nodes):
            node = nodes[node_id]
            errors.extend(_check_attributes(node))

            for path, reference in iter_references(node.attributes):
                error = _check_reference(nodes, node_id, reference, path)
                if error is not None:
                    errors.append(error)
                    continue
                _add_dependency(graph, reference.node_id, node_id, path)
                channel = channel_of(reference)
                if channel is not None:
                    consumptions.append(
                        Consumption(
                            consumer=node_id,
                            provider=reference.node_id,
                            channel=channel,
                            reference=reference,
                            source_field=path,
                        )
                    )

            for dependency in sorted(set(node.depends_on)):
                if dependency not in nodes:
                    errors.append(UnknownReferenceError(dependency, referrer=node_id))
                    continue
                _add_dependency(graph, dependency, node_id, _DEPENDS_ON)

        explicit_edges: dict[tuple[str, str, Channel, str], AccessEdge] = {}
        for edge in sorted(self._edges, key=lambda e: e.key):
            error = _check_edge(nodes, edge)
            if error is not None:
                errors.append(error)
                continue
            explicit_edges.setdefault(edge.key, edge)

        for _, _, data in graph.edges(data=True):
            data["reasons"] = frozenset(data["reasons"])

        errors.extend(find_cycles(graph))

        if errors:
            _logger.warning("stack_declaration_invalid", errors=len(errors), nodes=len(nodes))
            raise DeclarationError(errors)

        _logger.debug(
            "stack_graph_built",
            nodes=graph.number_of_nodes(),
            dependencies=graph.number_of_edges(),
            explicit_edges=len(explicit_edges),
            consumptions=len(consumptions),
        )
        return StackGraph(
            nodes=nodes,
            dependencies=graph,
            explicit_edges=tuple(explicit_edges.values()),
            consumptions=tuple(consumptions),
        )


def _add_dependency(graph: nx.DiGraph, source: str, target: str, reason: str) -> None:
    if graph.has_edge(source, target):
        graph.edges[source, target]["reasons"].add(reason)
    else:
        graph.add_edge(source, target, reasons={reason})


def _check_attributes(node: ResourceNode) -> list[StackwireError]:
    schema = schema_for(node.kind)
    errors: list[StackwireError] = []
    for attribute in sorted(node.attributes):
        if attribute in schema.deferred:
            errors.append(
                IllegalAttributeError(node.id, node.kind, attribute, reason="deferred and cannot be declared")
            )
        elif not schema.allows(attribute):
            errors.append(IllegalAttributeError(node.id, node.kind, attribute))
    return errors


def _check_reference(
    nodes: dict[str, ResourceNode],
    referrer: str,
    reference: Reference,
    path: str,
) -> StackwireError | None:
    """Return the error a reference would cause, or None when it is valid."""
    target = nodes.get(reference.node_id)
    if target is None:
        return UnknownReferenceError(reference.node_id, reference.attribute, referrer=referrer)

    schema = schema_for(target.kind)
    attribute = reference.attribute
    if not schema.knows(attribute):
        return UnknownReferenceError(target.id, attribute, referrer=referrer)
    # immediate attributes only exist if the source declared them
    if attribute not in schema.deferred and attribute not in target.attributes:
        return UnknownReferenceError(target.id, attribute, referrer=referrer)

    if isinstance(reference, SecretFieldRef):
        if reference.field not in schema.secret_fields(target.attributes):
            return UnknownReferenceError(target.id, f"{attribute}:{reference.field}", referrer=referrer)
    elif isinstance(reference, NetworkRef):
        if reference.port is None:
            if schema.service_port(target.attributes) is None:
                return UnknownReferenceError(target.id, "port", referrer=referrer)
        elif not _valid_port(reference.port):
            return IllegalAttributeError(
                referrer,
                nodes[referrer].kind,
                path,
                reason=f"a network reference to port {reference.port!r}, outside 1..65535",
            )
    return None


def _valid_port(port: object) -> bool:
    return isinstance(port, int) and not isinstance(port, bool) and 0 < port < 65536


def _check_edge(nodes: dict[str, ResourceNode], edge: AccessEdge) -> StackwireError | None:
    label = f"edge {edge.from_node}->{edge.to_node}"
    if edge.from_node == ANY_SOURCE:
        if edge.channel != Channel.NETWORK:
            return InvalidEdgeError(edge.from_node, edge.to_node, edge.channel, "any-source is only valid for network")
    elif edge.from_node not in nodes:
        return UnknownReferenceError(edge.from_node, referrer=label)
    if edge.to_node not in nodes:
        return UnknownReferenceError(edge.to_node, referrer=label)
    if edge.from_node == edge.to_node:
        return InvalidEdgeError(edge.from_node, edge.to_node, edge.channel, "a node cannot grant access to itself")
    if not edge.scope:
        return InvalidEdgeError(edge.from_node, edge.to_node, edge.channel, "scope must not be empty")
    return None
