"""Shared fixtures for stackwire integration tests.

Provides the built-in Flowise stack at each stage (builder, graph, plan)
and a small diamond-shaped stack, so integration tests can exercise full
plan runs against the dry-run provisioner without touching a cloud account.
"""

from __future__ import annotations

import pytest

from stackwire.graph.builder import StackBuilder
from stackwire.graph.stack_graph import StackGraph
from stackwire.models.config import PlannerConfig
from stackwire.models.plan import DeploymentPlan
from stackwire.models.references import mount, reach, ref, secret_field
from stackwire.models.resources import ResourceKind
from stackwire.planner.planner import plan_stack
from stackwire.provisioning.dry_run import DryRunProvisioner
from stackwire.stacks.flowise import FlowiseStackConfig, build_flowise_stack

# ---------------------------------------------------------------------------
# Factory helpers
# ---------------------------------------------------------------------------


def make_flowise_plan(config: FlowiseStackConfig | None = None, planner: PlannerConfig | None = None) -> DeploymentPlan:
    """Build and plan the Flowise stack."""
    return plan_stack(build_flowise_stack(config).build(), planner)


def make_diamond_builder() -> StackBuilder:
    """vpc -> (db, efs) -> app, plus an unrelated certificate."""
    builder = StackBuilder()
    builder.add_node("vpc", ResourceKind.NETWORK, max_azs=2)
    builder.add_node("db", ResourceKind.DATASTORE, network=ref("vpc", "network_id"), port=5432)
    builder.add_node("efs", ResourceKind.STORAGE, network=ref("vpc", "network_id"))
    builder.add_node(
        "app",
        ResourceKind.CONTAINER,
        environment={"DATABASE_HOST": reach("db", "hostname")},
        secrets={"DATABASE_PASSWORD": secret_field("db", "password")},
        mount_points=[mount("efs", "/data")],
    )
    builder.add_node("cert", ResourceKind.CERTIFICATE, domain_name="example.com")
    return builder


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture()
def flowise_builder() -> StackBuilder:
    return build_flowise_stack()


@pytest.fixture()
def flowise_graph(flowise_builder: StackBuilder) -> StackGraph:
    return flowise_builder.build()


@pytest.fixture()
def flowise_plan(flowise_graph: StackGraph) -> DeploymentPlan:
    return plan_stack(flowise_graph)


@pytest.fixture()
def diamond_plan() -> DeploymentPlan:
    return plan_stack(make_diamond_builder().build())


@pytest.fixture()
def provisioner() -> DryRunProvisioner:
    return DryRunProvisioner()
