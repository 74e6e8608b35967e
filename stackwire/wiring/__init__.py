"""Access wiring: implicit grants derived from consumption relationships."""

from stackwire.wiring.resolver import AccessEdgeSet, AccessWiringResolver, WiringResult

__all__ = ["AccessEdgeSet", "AccessWiringResolver", "WiringResult"]
