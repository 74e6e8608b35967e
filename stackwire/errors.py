"""Exception hierarchy for stackwire.

Structural errors (cycles, unknown references, illegal attributes) are
collected by the graph builder and raised together inside a single
``DeclarationError`` so that one corrective pass can fix the declaration.
Resolution errors are raised per node while a plan is being materialized.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from typing import TypeVar


class StackwireError(Exception):
    """Base class for every error raised by stackwire."""


_E = TypeVar("_E", bound=StackwireError)


class DuplicateNodeError(StackwireError):
    """Raised when two nodes are declared with the same id."""

    def __init__(self, node: str) -> None:
        super().__init__(f"Node '{node}' is declared more than once")
        self.node = node


class IllegalAttributeError(StackwireError):
    """Raised when a node sets an attribute its kind does not allow."""

    def __init__(self, node: str, kind: str, attribute: str, reason: str = "not a legal attribute") -> None:
        super().__init__(f"Node '{node}' ({kind}): attribute '{attribute}' is {reason}")
        self.node = node
        self.kind = kind
        self.attribute = attribute


class UnknownReferenceError(StackwireError):
    """Raised when a reference names a node or attribute that does not exist."""

    def __init__(self, node: str, attribute: str | None = None, referrer: str | None = None) -> None:
        target = f"'{node}.{attribute}'" if attribute else f"node '{node}'"
        origin = f" (referenced by '{referrer}')" if referrer else ""
        super().__init__(f"Unknown reference to {target}{origin}")
        self.node = node
        self.attribute = attribute
        self.referrer = referrer


class InvalidEdgeError(StackwireError):
    """Raised when an explicit access edge is malformed."""

    def __init__(self, from_node: str, to_node: str, channel: str, reason: str) -> None:
        super().__init__(f"Invalid {channel} edge {from_node} -> {to_node}: {reason}")
        self.from_node = from_node
        self.to_node = to_node
        self.channel = channel


class CycleError(StackwireError):
    """Raised when materialization dependencies form a cycle.

    ``nodes`` lists the cycle in dependency order; ``component`` holds every
    node of the strongly connected component the cycle belongs to.
    """

    def __init__(self, nodes: Sequence[str], component: Iterable[str] | None = None) -> None:
        self.nodes = tuple(nodes)
        self.component = tuple(sorted(component)) if component is not None else tuple(sorted(self.nodes))
        path = " -> ".join([*self.nodes, self.nodes[0]]) if self.nodes else "<empty>"
        super().__init__(f"Dependency cycle: {path}")


class UnresolvedAttributeError(StackwireError):
    """Raised when a reference cannot resolve to a concrete value."""

    def __init__(self, node: str, attribute: str, reason: str = "not materialized") -> None:
        super().__init__(f"Attribute '{node}.{attribute}' is unresolved: {reason}")
        self.node = node
        self.attribute = attribute
        self.reason = reason


class DeferredStateError(StackwireError):
    """Raised when a deferred value is resolved or abandoned twice."""


class ConflictingEdgeError(StackwireError):
    """Raised when an explicit edge disagrees with a synthesized one and conflicts must fail."""

    def __init__(self, from_node: str, to_node: str, channel: str, explicit_scope: str, implicit_scope: str) -> None:
        super().__init__(
            f"Explicit {channel} edge {from_node} -> {to_node} (scope '{explicit_scope}') "
            f"conflicts with required scope '{implicit_scope}'"
        )
        self.from_node = from_node
        self.to_node = to_node
        self.channel = channel
        self.explicit_scope = explicit_scope
        self.implicit_scope = implicit_scope


class MissingAccessError(StackwireError):
    """Raised when a consumption relationship ends up without an access edge."""

    def __init__(self, from_node: str, to_node: str, channel: str) -> None:
        super().__init__(f"No {channel} access edge grants '{from_node}' access to '{to_node}'")
        self.from_node = from_node
        self.to_node = to_node
        self.channel = channel


class DocumentError(StackwireError):
    """Raised when a topology document cannot be parsed."""


class DeclarationError(StackwireError):
    """Aggregate of every problem found in a stack declaration."""

    def __init__(self, errors: Sequence[StackwireError]) -> None:
        self.errors = tuple(errors)
        lines = "\n".join(f"  - {err}" for err in self.errors)
        super().__init__(f"Stack declaration has {len(self.errors)} error(s):\n{lines}")

    def of_type(self, error_type: type[_E]) -> list[_E]:
        """Return the collected errors that are instances of *error_type*."""
        return [err for err in self.errors if isinstance(err, error_type)]
