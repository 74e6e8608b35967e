"""In-memory provisioner that fabricates deterministic outputs.

Used by ``stackwire simulate`` and by tests to exercise plan runs without
touching a cloud account.
"""

from __future__ import annotations

import asyncio
from collections.abc import Iterable, Mapping
from typing import Any

from stackwire.graph.kinds import schema_for
from stackwire.observability.logging import get_logger
from stackwire.provisioning.base import Provisioner, ResolvedOperation

_logger = get_logger("provisioning.dry_run")


class DryRunFailure(RuntimeError):
    """Failure injected into a dry run."""


class DryRunProvisioner(Provisioner):
    """Pretends to materialize resources.

    Args:
        fail:  node ids whose materialization raises DryRunFailure.
        omit:  node id -> deferred attributes to leave out of the result.
        delay: seconds each materialization takes.
    """

    def __init__(
        self,
        fail: Iterable[str] = (),
        omit: Mapping[str, Iterable[str]] | None = None,
        delay: float = 0.0,
    ) -> None:
        self._fail = set(fail)
        self._omit = {node: set(attrs) for node, attrs in (omit or {}).items()}
        self._delay = delay
        self.calls: list[ResolvedOperation] = []
        self.in_flight = 0
        self.max_in_flight = 0

    @property
    def name(self) -> str:
        return "dry-run"

    async def materialize(self, operation: ResolvedOperation) -> Mapping[str, Any]:
        self.calls.append(operation)
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            if self._delay:
                await asyncio.sleep(self._delay)
            if operation.node_id in self._fail:
                raise DryRunFailure(f"injected failure for '{operation.node_id}'")
            outputs = fabricate_outputs(operation)
            for attribute in self._omit.get(operation.node_id, ()):
                outputs.pop(attribute, None)
            _logger.debug("dry_run_materialized", node=operation.node_id, kind=operation.kind.value)
            return outputs
        finally:
            self.in_flight -= 1

    @property
    def materialized(self) -> list[str]:
        return [operation.node_id for operation in self.calls]


def fabricate_outputs(operation: ResolvedOperation) -> dict[str, Any]:
    """Deterministic stand-ins for every deferred attribute of the node's kind."""
    node_id = operation.node_id
    kind = operation.kind
    attributes = operation.attributes
    schema = schema_for(kind)
    outputs: dict[str, Any] = {}
    for attribute in sorted(schema.deferred):
        if attribute == "hostname":
            outputs[attribute] = f"{node_id}.{kind.value}.dryrun.internal"
        elif attribute == "endpoint_port":
            outputs[attribute] = schema.service_port(attributes) or 0
        elif attribute == "load_balancer_dns":
            outputs[attribute] = f"{node_id}-lb.dryrun.internal"
        elif attribute == "fqdn":
            outputs[attribute] = attributes.get("domain_name") or f"{node_id}.dryrun.internal"
        elif attribute.endswith("_ids"):
            count = attributes.get("max_azs") or 2
            outputs[attribute] = [f"{node_id}-{attribute[:-4]}-{index}" for index in range(count)]
        else:
            outputs[attribute] = f"arn:dryrun:{kind.value}:{node_id}/{attribute}"
    return outputs
