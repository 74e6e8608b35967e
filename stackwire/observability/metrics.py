"""Prometheus metrics for planning and plan runs."""

from __future__ import annotations

from prometheus_client import Counter, Histogram

access_edges_total = Counter(
    "stackwire_access_edges_total",
    "Access edges in merged plans, by channel and origin",
    ["channel", "origin"],
)

suppressed_edges_total = Counter(
    "stackwire_suppressed_edges_total",
    "Synthesized access edges suppressed by an explicit declaration",
    ["channel"],
)

materializations_total = Counter(
    "stackwire_materializations_total",
    "Node materialization outcomes, by resource kind and status",
    ["kind", "status"],
)

plan_duration_seconds = Histogram(
    "stackwire_plan_duration_seconds",
    "Wall-clock time spent compiling a deployment plan",
    buckets=(0.001, 0.005, 0.01, 0.05, 0.1, 0.5, 1.0),
)
