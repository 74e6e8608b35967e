"""Deferred attribute values.

A ``Deferred`` stands for an attribute that only exists once its node has
been materialized (a generated hostname, secret identifier or port). It is
resolved exactly once from the provisioning result, or abandoned when that
result never produces it. Reading it in any state other than resolved
raises ``UnresolvedAttributeError``; there is no default value.
"""

from __future__ import annotations

from collections.abc import Mapping
from enum import StrEnum
from typing import Any

from stackwire.errors import DeferredStateError, UnresolvedAttributeError
from stackwire.graph.kinds import schema_for
from stackwire.models.resources import ResourceKind
from stackwire.observability.logging import get_logger

_logger = get_logger("resolve.deferred")


class DeferredState(StrEnum):
    PENDING = "pending"
    RESOLVED = "resolved"
    ABANDONED = "abandoned"


class Deferred:
    """Single-assignment result for ``node_id.attribute``."""

    __slots__ = ("node_id", "attribute", "_state", "_value", "_reason")

    def __init__(self, node_id: str, attribute: str) -> None:
        self.node_id = node_id
        self.attribute = attribute
        self._state = DeferredState.PENDING
        self._value: Any = None
        self._reason = ""

    def __repr__(self) -> str:
        return f"Deferred({self.node_id}.{self.attribute}, {self._state})"

    @property
    def key(self) -> tuple[str, str]:
        return (self.node_id, self.attribute)

    @property
    def state(self) -> DeferredState:
        return self._state

    @property
    def done(self) -> bool:
        return self._state != DeferredState.PENDING

    def resolve(self, value: Any) -> None:
        if self._state != DeferredState.PENDING:
            raise DeferredStateError(f"{self.node_id}.{self.attribute} is already {self._state}")
        if value is None:
            raise ValueError(f"{self.node_id}.{self.attribute} cannot resolve to None")
        self._value = value
        self._state = DeferredState.RESOLVED

    def abandon(self, reason: str) -> None:
        if self._state != DeferredState.PENDING:
            raise DeferredStateError(f"{self.node_id}.{self.attribute} is already {self._state}")
        self._reason = reason
        self._state = DeferredState.ABANDONED

    @property
    def value(self) -> Any:
        if self._state == DeferredState.RESOLVED:
            return self._value
        if self._state == DeferredState.ABANDONED:
            raise UnresolvedAttributeError(self.node_id, self.attribute, self._reason)
        raise UnresolvedAttributeError(self.node_id, self.attribute, "node not materialized yet")


class DeferredRegistry:
    """Every deferred attribute of a stack, keyed by ``(node_id, attribute)``."""

    def __init__(self, kinds: Mapping[str, ResourceKind]) -> None:
        self._deferred: dict[tuple[str, str], Deferred] = {}
        self._by_node: dict[str, list[Deferred]] = {}
        for node_id in sorted(kinds):
            entries = [Deferred(node_id, attribute) for attribute in sorted(schema_for(kinds[node_id]).deferred)]
            self._by_node[node_id] = entries
            for entry in entries:
                self._deferred[entry.key] = entry

    def __len__(self) -> int:
        return len(self._deferred)

    def has(self, node_id: str, attribute: str) -> bool:
        return (node_id, attribute) in self._deferred

    def get(self, node_id: str, attribute: str) -> Deferred:
        try:
            return self._deferred[(node_id, attribute)]
        except KeyError:
            raise UnresolvedAttributeError(node_id, attribute, "not a deferred attribute") from None

    def publish(self, node_id: str, outputs: Mapping[str, Any]) -> list[str]:
        """Resolve a node's deferred attributes from its provisioning result.

        Attributes the result does not provide (or provides as None) are
        abandoned so that their consumers fail instead of receiving
        placeholder data. Returns the names of abandoned attributes.
        """
        abandoned: list[str] = []
        for entry in self._by_node.get(node_id, []):
            value = outputs.get(entry.attribute)
            if value is None:
                entry.abandon("provisioning result did not include it")
                abandoned.append(entry.attribute)
            else:
                entry.resolve(value)
        if abandoned:
            _logger.warning("deferred_attributes_missing", node=node_id, attributes=abandoned)
        return abandoned

    def abandon_node(self, node_id: str, reason: str) -> None:
        for entry in self._by_node.get(node_id, []):
            if not entry.done:
                entry.abandon(reason)

    def outputs(self, node_id: str) -> dict[str, Any]:
        """Return the resolved deferred values of *node_id*."""
        return {
            entry.attribute: entry.value
            for entry in self._by_node.get(node_id, [])
            if entry.state == DeferredState.RESOLVED
        }
