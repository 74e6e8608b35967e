"""Contract with the external provisioning API."""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

from stackwire.models.edges import AccessEdge
from stackwire.models.plan import MountBinding
from stackwire.models.resources import ResourceKind


@dataclass(frozen=True)
class ResolvedOperation:
    """A node ready to materialize: every reference already substituted."""

    node_id: str
    kind: ResourceKind
    attributes: dict[str, Any]
    mount_bindings: tuple[MountBinding, ...] = ()
    access: tuple[AccessEdge, ...] = field(default_factory=tuple)  # merged edges touching this node


class Provisioner(ABC):
    """Abstract base class for provisioning backends.

    Implementations own retries, rate limiting and backpressure against
    the real API; the plan executor only guarantees ordering.
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Human-readable backend identifier used in logs."""

    @abstractmethod
    async def materialize(self, operation: ResolvedOperation) -> Mapping[str, Any]:
        """Create or update the resource described by *operation*.

        Returns:
            The node's deferred attribute values (hostname, identifiers,
            ports). Attributes left out are treated as never materialized.

        Raises:
            Exception: any error is treated as an irrecoverable failure of
                this node.
        """
