"""Configuration data structures."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum


class ConflictPolicy(StrEnum):
    """What to do when an explicit edge disagrees with a synthesized one.

    The explicit edge wins under every policy except ``FAIL``.
    """

    PREFER_EXPLICIT = "prefer_explicit"
    FLAG = "flag"
    FAIL = "fail"


@dataclass(frozen=True)
class PlannerConfig:
    """Planning and plan-run configuration."""

    conflict_policy: ConflictPolicy = ConflictPolicy.FLAG
    max_concurrency: int = 4


@dataclass(frozen=True)
class LogConfig:
    """Logging configuration."""

    level: str = "info"
    format: str = "json"  # json or console


@dataclass(frozen=True)
class StackwireConfig:
    """Top-level stackwire configuration."""

    planner: PlannerConfig = field(default_factory=PlannerConfig)
    log: LogConfig = field(default_factory=LogConfig)
