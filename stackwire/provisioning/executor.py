"""Concurrent plan runner.

Runs one asyncio task per operation. A task waits only for the nodes it
depends on; independent branches proceed concurrently, bounded by
``max_concurrency`` calls into the provisioner at a time.

Failure handling: when a node fails, work already in flight on independent
branches completes, but no node downstream of the failure ever starts. The
returned RunReport names the materialized and not-materialized frontier.
"""

from __future__ import annotations

import asyncio
import time

from stackwire.errors import UnresolvedAttributeError
from stackwire.models.plan import DeploymentPlan, MaterializationOp, NodeOutcome, NodeStatus, RunReport
from stackwire.observability.logging import get_logger
from stackwire.observability.metrics import materializations_total
from stackwire.provisioning.base import Provisioner, ResolvedOperation
from stackwire.resolve.deferred import DeferredRegistry
from stackwire.resolve.resolver import AttributeResolver

_logger = get_logger("provisioning.executor")


class PlanExecutor:
    """Materializes a DeploymentPlan against a Provisioner."""

    def __init__(self, provisioner: Provisioner, max_concurrency: int = 4) -> None:
        if max_concurrency < 1:
            raise ValueError(f"max_concurrency must be >= 1, got {max_concurrency}")
        self._provisioner = provisioner
        self._max_concurrency = max_concurrency

    async def run(self, plan: DeploymentPlan) -> RunReport:
        """Run every operation of *plan* and report the outcome of each node."""
        t_start = time.monotonic()
        run = _PlanRun(plan, self._provisioner, asyncio.Semaphore(self._max_concurrency))
        await asyncio.gather(*(run.materialize(op) for op in plan.operations))
        run.report.duration_ms = (time.monotonic() - t_start) * 1000.0

        report = run.report
        log = _logger.info if report.complete else _logger.warning
        log(
            "plan_run_finished",
            provisioner=self._provisioner.name,
            materialized=len(report.materialized),
            failed=report.failed,
            skipped=len(report.skipped),
            duration_ms=round(report.duration_ms, 3),
        )
        return report


class _PlanRun:
    """State of one execution: deferred values, completion signals, outcomes."""

    def __init__(self, plan: DeploymentPlan, provisioner: Provisioner, semaphore: asyncio.Semaphore) -> None:
        self.plan = plan
        self.provisioner = provisioner
        self.semaphore = semaphore
        self.registry = DeferredRegistry({op.node_id: op.kind for op in plan.operations})
        self.resolver = AttributeResolver({op.node_id: op.attributes for op in plan.operations}, self.registry)
        self.finished = {op.node_id: asyncio.Event() for op in plan.operations}
        self.report = RunReport(order=plan.order)

    async def materialize(self, op: MaterializationOp) -> None:
        try:
            await self._materialize(op)
        finally:
            self.finished[op.node_id].set()

    async def _materialize(self, op: MaterializationOp) -> None:
        for dependency in op.depends_on:
            await self.finished[dependency].wait()
            upstream = self.report.outcomes[dependency]
            if upstream.status != NodeStatus.MATERIALIZED:
                self._skip(op, blocked_by=upstream.blocked_by or dependency)
                return

        try:
            attributes = self.resolver.resolve(op.node_id)
        except UnresolvedAttributeError as exc:
            self._fail(op, exc)
            return

        operation = ResolvedOperation(
            node_id=op.node_id,
            kind=op.kind,
            attributes=attributes,
            mount_bindings=op.mount_bindings,
            access=tuple(edge for edge in self.plan.edges if op.node_id in (edge.from_node, edge.to_node)),
        )
        async with self.semaphore:
            _logger.debug("materialize_started", node=op.node_id, kind=op.kind.value)
            try:
                outputs = dict(await self.provisioner.materialize(operation))
            except Exception as exc:  # noqa: BLE001
                self._fail(op, exc)
                return

        self.registry.publish(op.node_id, outputs)
        self._record(
            op,
            NodeOutcome(
                node_id=op.node_id,
                status=NodeStatus.MATERIALIZED,
                outputs=self.registry.outputs(op.node_id),
                resolved_attributes=attributes,
            ),
        )
        _logger.info("node_materialized", node=op.node_id, kind=op.kind.value)

    def _fail(self, op: MaterializationOp, exc: Exception) -> None:
        self.registry.abandon_node(op.node_id, f"'{op.node_id}' failed to materialize")
        self._record(op, NodeOutcome(node_id=op.node_id, status=NodeStatus.FAILED, error=str(exc)))
        _logger.error("node_failed", node=op.node_id, kind=op.kind.value, error=str(exc))

    def _skip(self, op: MaterializationOp, blocked_by: str) -> None:
        self.registry.abandon_node(op.node_id, f"'{op.node_id}' was skipped")
        self._record(op, NodeOutcome(node_id=op.node_id, status=NodeStatus.SKIPPED, blocked_by=blocked_by))
        _logger.warning("node_skipped", node=op.node_id, blocked_by=blocked_by)

    def _record(self, op: MaterializationOp, outcome: NodeOutcome) -> None:
        self.report.outcomes[op.node_id] = outcome
        materializations_total.labels(kind=op.kind.value, status=outcome.status.value).inc()
