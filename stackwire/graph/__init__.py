"""Stack dependency graph: declaration, validation and kind schemas."""

from stackwire.graph.builder import StackBuilder
from stackwire.graph.kinds import KIND_SCHEMAS, KindSchema, schema_for
from stackwire.graph.stack_graph import StackGraph, find_cycles

__all__ = [
    "KIND_SCHEMAS",
    "KindSchema",
    "StackBuilder",
    "StackGraph",
    "find_cycles",
    "schema_for",
]
