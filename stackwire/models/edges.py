"""Access edges: who may reach whom, over which channel."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any

from stackwire.models.references import AttributeRef, MountRef, NetworkRef, Reference, SecretFieldRef

ANY_SOURCE = "*"  # explicit network edges only: open ingress from any peer
ANY_SCOPE = "*"


class Channel(StrEnum):
    """Kind of access one resource needs to another."""

    NETWORK = "network"
    CREDENTIAL = "credential"
    MOUNT = "mount"


class Direction(StrEnum):
    """Which side of the target the rule is attached to."""

    INGRESS = "ingress"
    EGRESS = "egress"


class EdgeOrigin(StrEnum):
    """Whether an edge was written by the author or synthesized from a consumption."""

    EXPLICIT = "explicit"
    IMPLICIT = "implicit"


def tcp_scope(port: int) -> str:
    return f"tcp:{port}"


def channel_of(reference: Reference) -> Channel | None:
    """Return the access channel a reference consumes, or None for ordering-only references."""
    if isinstance(reference, NetworkRef):
        return Channel.NETWORK
    if isinstance(reference, SecretFieldRef):
        return Channel.CREDENTIAL
    if isinstance(reference, MountRef):
        return Channel.MOUNT
    return None


@dataclass(frozen=True)
class AccessEdge:
    """Directed grant: ``from_node`` must be given access to ``to_node``.

    Identity is ``(from_node, to_node, channel, scope)``; the remaining
    fields describe provenance and are ignored by equality.
    """

    from_node: str
    to_node: str
    channel: Channel
    scope: str
    direction: Direction = Direction.INGRESS
    origin: EdgeOrigin = field(default=EdgeOrigin.EXPLICIT, compare=False)
    source_field: str = field(default="", compare=False)  # config path that produced an implicit edge
    resource: Reference | None = field(default=None, compare=False)  # attribute the grant is scoped to
    principal: AttributeRef | None = field(default=None, compare=False)  # consumer identity the grant is attached to

    @property
    def key(self) -> tuple[str, str, Channel, str]:
        """Return the deduplication key for this edge."""
        return (self.from_node, self.to_node, self.channel, self.scope)

    @property
    def pair(self) -> tuple[str, str, Channel]:
        return (self.from_node, self.to_node, self.channel)

    @property
    def unscoped(self) -> bool:
        return self.from_node == ANY_SOURCE or self.scope == ANY_SCOPE

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "from": self.from_node,
            "to": self.to_node,
            "channel": self.channel.value,
            "scope": self.scope,
            "direction": self.direction.value,
            "origin": self.origin.value,
        }
        if self.source_field:
            data["source_field"] = self.source_field
        if self.resource is not None:
            data["resource"] = str(self.resource)
        if self.principal is not None:
            data["principal"] = str(self.principal)
        return data


@dataclass(frozen=True)
class Consumption:
    """A consumer reading a provider's attribute across an access channel.

    Collected by the graph builder from channel-typed references; the
    wiring resolver turns each one into the access edges it needs.
    """

    consumer: str
    provider: str
    channel: Channel
    reference: Reference
    source_field: str  # e.g. "secrets.DATABASE_USER"


@dataclass(frozen=True)
class EdgeConflict:
    """An implicit edge suppressed because the author declared a different one."""

    explicit: AccessEdge
    implicit: AccessEdge

    def to_dict(self) -> dict[str, Any]:
        return {
            "from": self.explicit.from_node,
            "to": self.explicit.to_node,
            "channel": self.explicit.channel.value,
            "explicit_scope": self.explicit.scope,
            "implicit_scope": self.implicit.scope,
            "source_field": self.implicit.source_field,
        }
