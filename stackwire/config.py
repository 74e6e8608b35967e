"""Configuration loading from environment variables."""

from __future__ import annotations

import os

from stackwire.models.config import ConflictPolicy, LogConfig, PlannerConfig, StackwireConfig


def _env(key: str, default: str = "") -> str:
    return os.environ.get(f"STACKWIRE_{key}", default)


def _env_int(key: str, default: int, min_val: int | None = None, max_val: int | None = None) -> int:
    val = int(_env(key, str(default)))
    if min_val is not None:
        val = max(val, min_val)
    if max_val is not None:
        val = min(val, max_val)
    return val


def _validate_log_level(value: str) -> str:
    valid = {"debug", "info", "warning", "error"}
    if value.lower() not in valid:
        raise ValueError(f"Invalid log level: {value}. Must be one of {valid}")
    return value.lower()


def _validate_conflict_policy(value: str) -> ConflictPolicy:
    normalized = value.strip().lower().replace("-", "_")
    try:
        return ConflictPolicy(normalized)
    except ValueError:
        valid = sorted(policy.value for policy in ConflictPolicy)
        raise ValueError(f"Invalid conflict policy: {value}. Must be one of {valid}") from None


def _validate_log_format(value: str) -> str:
    valid = {"json", "console"}
    if value.lower() not in valid:
        raise ValueError(f"Invalid log format: {value}. Must be one of {valid}")
    return value.lower()


def load_config() -> StackwireConfig:
    """Load configuration from STACKWIRE_* environment variables."""
    return StackwireConfig(
        planner=PlannerConfig(
            conflict_policy=_validate_conflict_policy(_env("CONFLICT_POLICY", ConflictPolicy.FLAG.value)),
            max_concurrency=_env_int("MAX_CONCURRENCY", 4, min_val=1, max_val=64),
        ),
        log=LogConfig(
            level=_validate_log_level(_env("LOG_LEVEL", "info")),
            format=_validate_log_format(_env("LOG_FORMAT", "json")),
        ),
    )
