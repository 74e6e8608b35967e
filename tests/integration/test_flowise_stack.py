"""Integration tests for the built-in Flowise stack.

Checks the materialization order, the access edges derived from the
container's references, and the optional public database ingress.
"""

from __future__ import annotations

import pytest

from stackwire.errors import DeclarationError, MissingAccessError
from stackwire.graph.stack_graph import StackGraph
from stackwire.models.config import ConflictPolicy, PlannerConfig
from stackwire.models.edges import ANY_SOURCE, Channel, EdgeOrigin
from stackwire.models.plan import DeploymentPlan
from stackwire.models.references import AttributeRef
from stackwire.stacks import flowise
from stackwire.stacks.flowise import FlowiseStackConfig
from stackwire.wiring.resolver import AccessWiringResolver

from .conftest import make_flowise_plan

pytestmark = pytest.mark.integration


# ---------------------------------------------------------------------------
# Ordering
# ---------------------------------------------------------------------------


class TestFlowiseOrdering:
    def test_layers(self, flowise_plan: DeploymentPlan) -> None:
        assert flowise_plan.layers == (
            (flowise.CERTIFICATE, flowise.SECRET_FLOW_PASS, flowise.SECRET_PASSPHRASE, flowise.VPC),
            (flowise.ECS_CLUSTER, flowise.EFS, flowise.DATABASE),
            (flowise.TASK_DEF,),
            (flowise.CONTAINER,),
            (flowise.SERVICE,),
            (flowise.DNS_RECORD,),
        )

    def test_container_waits_for_everything_it_reads(self, flowise_plan: DeploymentPlan) -> None:
        assert flowise_plan.operation(flowise.CONTAINER).depends_on == (
            flowise.TASK_DEF,
            flowise.EFS,
            flowise.DATABASE,
            flowise.SECRET_FLOW_PASS,
            flowise.SECRET_PASSPHRASE,
        )

    def test_service_depends_on_container_declaration(self, flowise_graph: StackGraph) -> None:
        assert flowise_graph.edge_reasons(flowise.CONTAINER, flowise.SERVICE) == ("depends_on",)
        assert flowise_graph.edge_reasons(flowise.SERVICE, flowise.DNS_RECORD) == ("target",)

    def test_independent_branches(self, flowise_plan: DeploymentPlan) -> None:
        assert flowise_plan.independent(flowise.CERTIFICATE, flowise.DATABASE)
        assert flowise_plan.independent(flowise.ECS_CLUSTER, flowise.TASK_DEF)
        assert not flowise_plan.independent(flowise.VPC, flowise.DNS_RECORD)


# ---------------------------------------------------------------------------
# Access wiring
# ---------------------------------------------------------------------------


class TestFlowiseAccess:
    def test_container_edges(self, flowise_plan: DeploymentPlan) -> None:
        edges = [(e.to_node, e.channel.value, e.scope) for e in flowise_plan.edges_for(from_node=flowise.CONTAINER)]
        assert edges == [
            (flowise.EFS, "mount", "/mnt/flowise"),
            (flowise.EFS, "network", "tcp:2049"),
            (flowise.DATABASE, "credential", "password"),
            (flowise.DATABASE, "credential", "username"),
            (flowise.DATABASE, "network", "tcp:5432"),
            (flowise.SECRET_FLOW_PASS, "credential", "password"),
            (flowise.SECRET_FLOW_PASS, "credential", "username"),
            (flowise.SECRET_PASSPHRASE, "credential", "passphrase"),
        ]
        assert len(flowise_plan.edges) == 8
        assert all(edge.origin == EdgeOrigin.IMPLICIT for edge in flowise_plan.edges)

    def test_grants_attach_to_task_role_and_service_group(self, flowise_plan: DeploymentPlan) -> None:
        role = AttributeRef(flowise.TASK_DEF, "execution_role_id")
        group = AttributeRef(flowise.SERVICE, "security_group_id")
        for edge in flowise_plan.edges:
            assert edge.principal == (role if edge.channel == Channel.CREDENTIAL else group)
        (network,) = flowise_plan.edges_for(flowise.CONTAINER, flowise.DATABASE, Channel.NETWORK)
        assert network.to_dict()["principal"] == "ecs-service.security_group_id"

    def test_no_access_for_ordering_only_references(self, flowise_plan: DeploymentPlan) -> None:
        assert flowise_plan.edges_for(from_node=flowise.SERVICE) == []
        assert flowise_plan.edges_for(from_node=flowise.TASK_DEF) == []

    def test_mount_binding_registered_on_container(self, flowise_plan: DeploymentPlan) -> None:
        (binding,) = flowise_plan.operation(flowise.CONTAINER).mount_bindings
        assert (binding.storage, binding.container_path, binding.mode, binding.volume) == (
            flowise.EFS,
            "/mnt/flowise",
            "rw",
            "config",
        )

    def test_custom_ports_follow_config(self) -> None:
        plan = make_flowise_plan(FlowiseStackConfig(database_port=6543, container_mount_path="/srv/flowise"))
        scopes = {(e.to_node, e.channel.value): e.scope for e in plan.edges}
        assert scopes[(flowise.DATABASE, "network")] == "tcp:6543"
        assert scopes[(flowise.EFS, "mount")] == "/srv/flowise"

    def test_every_consumption_covered(self, flowise_graph: StackGraph) -> None:
        result = AccessWiringResolver(flowise_graph).resolve()
        covered = {(e.from_node, e.to_node, e.channel) for e in result.edges}
        for consumption in flowise_graph.consumptions:
            assert (consumption.consumer, consumption.provider, consumption.channel) in covered

    def test_missing_coverage_raises(self, flowise_graph: StackGraph, monkeypatch: pytest.MonkeyPatch) -> None:
        resolver = AccessWiringResolver(flowise_graph)
        dropped = flowise_graph.consumptions[0]
        synthesize = resolver.synthesize
        monkeypatch.setattr(resolver, "synthesize", lambda c: [] if c == dropped else synthesize(c))
        with pytest.raises(DeclarationError) as exc_info:
            resolver.resolve()
        (error,) = exc_info.value.of_type(MissingAccessError)
        assert (error.from_node, error.to_node, error.channel) == (flowise.CONTAINER, flowise.DATABASE, Channel.NETWORK)


# ---------------------------------------------------------------------------
# Public database ingress
# ---------------------------------------------------------------------------


class TestPublicDatabaseIngress:
    def test_disabled_by_default(self, flowise_plan: DeploymentPlan) -> None:
        assert flowise_plan.edges_for(from_node=ANY_SOURCE) == []

    def test_enabled_is_explicit_and_unscoped(self) -> None:
        plan = make_flowise_plan(FlowiseStackConfig(allow_public_database_ingress=True))
        (edge,) = plan.edges_for(from_node=ANY_SOURCE)
        assert (edge.to_node, edge.channel, edge.scope) == (flowise.DATABASE, Channel.NETWORK, "tcp:5432")
        assert edge.origin == EdgeOrigin.EXPLICIT
        assert edge.unscoped
        # the container's own grant is kept next to the open rule
        assert plan.edges_for(flowise.CONTAINER, flowise.DATABASE, Channel.NETWORK)
        assert plan.conflicts == ()

    def test_enabled_passes_fail_policy(self) -> None:
        plan = make_flowise_plan(
            FlowiseStackConfig(allow_public_database_ingress=True),
            PlannerConfig(conflict_policy=ConflictPolicy.FAIL),
        )
        assert len(plan.edges) == 9
