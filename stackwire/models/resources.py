"""Resource nodes: one managed infrastructure entity each."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import StrEnum
from types import MappingProxyType
from typing import Any

from stackwire.models.references import render_value


class ResourceKind(StrEnum):
    """Kinds of managed resource a stack can declare."""

    NETWORK = "network"
    STORAGE = "storage"
    DATASTORE = "datastore"
    COMPUTE_CLUSTER = "compute_cluster"
    TASK_SPEC = "task_spec"
    CONTAINER = "container"
    SERVICE = "service"
    SECRET = "secret"
    CERTIFICATE = "certificate"
    ROUTING_ENDPOINT = "routing_endpoint"


@dataclass(frozen=True)
class ResourceNode:
    """A declared resource.

    ``attributes`` holds the immediate values given at declaration time;
    any value (or nested item) may be a reference to another node. Nodes
    inside a built graph hold a read-only copy (``freeze_attributes``).
    The attributes a node only gains after materialization are described
    by its kind schema, not stored here.
    """

    id: str
    kind: ResourceKind
    attributes: Mapping[str, Any] = field(default_factory=dict)
    depends_on: tuple[str, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "kind": self.kind.value,
            "attributes": render_value(self.attributes),
            "depends_on": list(self.depends_on),
        }


def freeze_attributes(value: Any) -> Any:
    """Deep, read-only copy: mappings become ``MappingProxyType``, lists become tuples.

    References and scalars are immutable already and are returned as is.
    """
    if isinstance(value, Mapping):
        return MappingProxyType({key: freeze_attributes(item) for key, item in value.items()})
    if isinstance(value, (list, tuple)):
        return tuple(freeze_attributes(item) for item in value)
    return value
