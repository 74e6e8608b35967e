"""Materialization ordering for validated stack graphs."""

from stackwire.planner.planner import (
    compile_stack,
    materialization_layers,
    materialization_order,
    plan_stack,
)

__all__ = [
    "compile_stack",
    "materialization_layers",
    "materialization_order",
    "plan_stack",
]
