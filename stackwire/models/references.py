"""Lazy pointers from one node's configuration to another node's attribute.

A reference is inert data: nothing is looked up when it is created. The
graph builder discovers references anywhere inside a node's attributes
(including nested lists and dicts) and turns each one into a
materialization dependency; channel-typed references additionally declare
a consumption relationship that the access wiring resolver satisfies.
"""

from __future__ import annotations

from collections.abc import Iterator, Mapping
from dataclasses import dataclass
from typing import Any, ClassVar


@dataclass(frozen=True)
class AttributeRef:
    """Plain reference to ``node_id.attribute``; ordering only, no access grant."""

    node_id: str
    attribute: str

    def __str__(self) -> str:
        return f"{self.node_id}.{self.attribute}"


@dataclass(frozen=True)
class NetworkRef(AttributeRef):
    """Reference whose consumer must reach the source over the network.

    ``port`` defaults to the source's ``port`` attribute, then to the
    default service port of its kind.
    """

    port: int | None = None


@dataclass(frozen=True)
class SecretFieldRef:
    """Reference to a single field of the secret a node owns."""

    node_id: str
    field: str

    attribute: ClassVar[str] = "secret_id"

    def __str__(self) -> str:
        return f"{self.node_id}.{self.attribute}:{self.field}"


@dataclass(frozen=True)
class MountRef:
    """Mount of shared storage ``node_id`` at ``container_path``."""

    node_id: str
    container_path: str
    read_only: bool = False
    volume: str | None = None

    attribute: ClassVar[str] = "filesystem_id"

    def __str__(self) -> str:
        mode = "ro" if self.read_only else "rw"
        return f"{self.node_id}.{self.attribute}@{self.container_path}:{mode}"


Reference = AttributeRef | SecretFieldRef | MountRef

_REFERENCE_TYPES = (AttributeRef, SecretFieldRef, MountRef)


def is_reference(value: object) -> bool:
    return isinstance(value, _REFERENCE_TYPES)


def iter_references(value: Any, path: str = "") -> Iterator[tuple[str, Reference]]:
    """Yield ``(field_path, reference)`` for every reference inside *value*.

    Paths use dots for mapping keys and ``[i]`` for sequence positions,
    e.g. ``environment.DATABASE_HOST`` or ``mount_points[0]``.
    """
    if is_reference(value):
        yield path, value
    elif isinstance(value, Mapping):
        for key in sorted(value, key=str):
            child = f"{path}.{key}" if path else str(key)
            yield from iter_references(value[key], child)
    elif isinstance(value, (list, tuple)):
        for index, item in enumerate(value):
            yield from iter_references(item, f"{path}[{index}]")


def split_target(target: str) -> tuple[str, str]:
    """Split ``"node.attribute"`` at its last dot."""
    node_id, sep, attribute = target.rpartition(".")
    if not sep or not node_id or not attribute:
        raise ValueError(f"Reference target must look like 'node.attribute', got: {target!r}")
    return node_id, attribute


def ref(node_id: str, attribute: str) -> AttributeRef:
    return AttributeRef(node_id, attribute)


def reach(node_id: str, attribute: str, port: int | None = None) -> NetworkRef:
    return NetworkRef(node_id, attribute, port)


def secret_field(node_id: str, field: str) -> SecretFieldRef:
    return SecretFieldRef(node_id, field)


def mount(node_id: str, container_path: str, *, read_only: bool = False, volume: str | None = None) -> MountRef:
    return MountRef(node_id, container_path, read_only, volume)


def render_value(value: Any) -> Any:
    """Return a JSON-ready copy of *value* with references shown as strings."""
    if is_reference(value):
        return f"${{{value}}}"
    if isinstance(value, Mapping):
        return {str(key): render_value(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [render_value(item) for item in value]
    return value
