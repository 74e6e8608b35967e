"""Substitution of references with concrete values."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from stackwire.errors import UnresolvedAttributeError
from stackwire.models.references import MountRef, Reference, SecretFieldRef, is_reference
from stackwire.resolve.deferred import DeferredRegistry


def secret_field_selector(secret_id: str, field: str) -> str:
    """Identifier of one JSON field inside a secret (``<id>:<field>::``)."""
    return f"{secret_id}:{field}::"


class AttributeResolver:
    """Resolves every reference inside a node's attributes.

    Immediate attributes of a source node come from its own declaration
    (resolved recursively, since they may reference further nodes);
    deferred attributes come from the registry and must already be
    resolved. Resolution is total: any reference that cannot produce a
    concrete value raises UnresolvedAttributeError.
    """

    def __init__(self, declared: Mapping[str, Mapping[str, Any]], registry: DeferredRegistry) -> None:
        self._declared = declared
        self._registry = registry

    def resolve(self, node_id: str) -> dict[str, Any]:
        """Return *node_id*'s attributes with every reference substituted."""
        attributes = self._declared[node_id]
        return {key: self._resolve_value(value, (node_id,)) for key, value in attributes.items()}

    def resolve_reference(self, reference: Reference) -> Any:
        return self._resolve_reference(reference, ())

    def _resolve_value(self, value: Any, trail: tuple[str, ...]) -> Any:
        if is_reference(value):
            return self._resolve_reference(value, trail)
        # resolved values are plain, JSON-ready containers
        if isinstance(value, Mapping):
            return {key: self._resolve_value(item, trail) for key, item in value.items()}
        if isinstance(value, (list, tuple)):
            return [self._resolve_value(item, trail) for item in value]
        return value

    def _resolve_reference(self, reference: Reference, trail: tuple[str, ...]) -> Any:
        if isinstance(reference, SecretFieldRef):
            secret_id = self._registry.get(reference.node_id, reference.attribute).value
            return secret_field_selector(secret_id, reference.field)
        if isinstance(reference, MountRef):
            return {
                "source": self._registry.get(reference.node_id, reference.attribute).value,
                "container_path": reference.container_path,
                "read_only": reference.read_only,
                "volume": reference.volume,
            }
        return self._attribute(reference.node_id, reference.attribute, trail)

    def _attribute(self, node_id: str, attribute: str, trail: tuple[str, ...]) -> Any:
        if self._registry.has(node_id, attribute):
            return self._registry.get(node_id, attribute).value

        declared = self._declared.get(node_id)
        if declared is None or attribute not in declared:
            raise UnresolvedAttributeError(node_id, attribute, "not declared on the source node")
        if node_id in trail:
            raise UnresolvedAttributeError(node_id, attribute, "references itself")
        return self._resolve_value(declared[attribute], (*trail, node_id))
