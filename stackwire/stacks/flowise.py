"""Flowise application stack.

Secrets, network, shared filesystem, Aurora PostgreSQL, ECS cluster, a
Fargate task running the Flowise container, a DNS-validated certificate
and a load-balanced service published under ``flowise.<root domain>``.

Every fixed name, port and path comes from ``FlowiseStackConfig``. Access
from the container to the database, the secrets and the filesystem is not
declared here: it is derived from the references the container holds.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from stackwire.graph.builder import StackBuilder
from stackwire.models.edges import ANY_SOURCE, Channel, tcp_scope
from stackwire.models.references import mount, reach, ref, secret_field
from stackwire.models.resources import ResourceKind

SECRET_PASSPHRASE = "secret-passphrase"
SECRET_FLOW_PASS = "secret-flow-pass"
VPC = "vpc"
EFS = "efs"
DATABASE = "rds-cluster"
ECS_CLUSTER = "ecs-cluster"
TASK_DEF = "ecs-task-def"
CONTAINER = "ecs-task-container-def"
CERTIFICATE = "cert"
SERVICE = "ecs-service"
DNS_RECORD = "flowise-dns"


@dataclass(frozen=True)
class CapacityProviderStrategy:
    capacity_provider: str
    weight: int
    base: int = 0

    def to_dict(self) -> dict[str, object]:
        return {"capacity_provider": self.capacity_provider, "weight": self.weight, "base": self.base}


def _default_strategies() -> tuple[CapacityProviderStrategy, ...]:
    return (
        CapacityProviderStrategy("FARGATE_SPOT", weight=1, base=1),
        CapacityProviderStrategy("FARGATE", weight=0, base=0),
    )


@dataclass(frozen=True)
class FlowiseStackConfig:
    """Every constant the Flowise stack is built from."""

    root_domain: str = "ai.awsbuilders.cloud"
    subdomain: str = "flowise"
    database_name: str = "flowise"
    database_username: str = "postegres"
    database_port: int = 5432
    database_engine_version: str = "15.3"
    database_instance_type: str = "r6g.large"
    app_port: int = 3000
    container_mount_path: str = "/mnt/flowise"
    volume_name: str = "config"
    image: str = "asset:../"
    log_level: str = "debug"
    log_stream_prefix: str = "ecs-logs"
    max_azs: int = 3
    service_cpu: int = 512
    desired_count: int = 3
    deregistration_delay_seconds: int = 30
    capacity_provider_strategies: tuple[CapacityProviderStrategy, ...] = field(default_factory=_default_strategies)
    # open database ingress from any IPv4 source; kept as an explicit, flagged edge when enabled
    allow_public_database_ingress: bool = False

    @property
    def app_domain(self) -> str:
        return f"{self.subdomain}.{self.root_domain}"


def build_flowise_stack(config: FlowiseStackConfig | None = None) -> StackBuilder:
    """Declare the Flowise stack and return the (unbuilt) builder."""
    config = config or FlowiseStackConfig()
    builder = StackBuilder()

    builder.add_node(
        SECRET_PASSPHRASE,
        ResourceKind.SECRET,
        description="Passphrase to encrypt the keys; updated manually after deployment",
        fields={"passphrase": ""},
        removal_policy="retain_on_update_or_delete",
    )
    builder.add_node(
        SECRET_FLOW_PASS,
        ResourceKind.SECRET,
        description="Flowise login credentials; updated manually after deployment",
        fields={"username": "", "password": ""},
        removal_policy="retain_on_update_or_delete",
    )

    builder.add_node(VPC, ResourceKind.NETWORK, max_azs=config.max_azs)

    builder.add_node(
        EFS,
        ResourceKind.STORAGE,
        network=ref(VPC, "network_id"),
        encrypted=True,
        lifecycle_policy="after_30_days",
        performance_mode="general_purpose",
        throughput_mode="bursting",
    )

    builder.add_node(
        DATABASE,
        ResourceKind.DATASTORE,
        network=ref(VPC, "network_id"),
        engine="aurora-postgresql",
        engine_version=config.database_engine_version,
        instance_type=config.database_instance_type,
        subnet_type="private_with_egress",
        username=config.database_username,
        port=config.database_port,
        database_name=config.database_name,
    )

    builder.add_node(
        ECS_CLUSTER,
        ResourceKind.COMPUTE_CLUSTER,
        network=ref(VPC, "network_id"),
        container_insights=True,
        capacity_providers=["FARGATE", "FARGATE_SPOT"],
    )

    builder.add_node(
        TASK_DEF,
        ResourceKind.TASK_SPEC,
        volumes=[{"name": config.volume_name, "filesystem_id": ref(EFS, "filesystem_id")}],
    )

    path = config.container_mount_path
    builder.add_node(
        CONTAINER,
        ResourceKind.CONTAINER,
        task_spec=ref(TASK_DEF, "task_definition_id"),
        image=config.image,
        port_mappings=[{"container_port": config.app_port}],
        environment={
            "PORT": str(config.app_port),
            "APIKEY_PATH": path,
            "SECRETKEY_PATH": path,
            "LOG_PATH": f"{path}/logs",
            "LOG_LEVEL": config.log_level,
            "DATABASE_TYPE": "postgres",
            "DATABASE_HOST": reach(DATABASE, "hostname"),
            "DATABASE_PORT": ref(DATABASE, "endpoint_port"),
            "DATABASE_NAME": config.database_name,
        },
        secrets={
            "DATABASE_USER": secret_field(DATABASE, "username"),
            "DATABASE_PASSWORD": secret_field(DATABASE, "password"),
            "PASSPHRASE": secret_field(SECRET_PASSPHRASE, "passphrase"),
            "FLOWISE_USERNAME": secret_field(SECRET_FLOW_PASS, "username"),
            "FLOWISE_PASSWORD": secret_field(SECRET_FLOW_PASS, "password"),
        },
        mount_points=[mount(EFS, path, read_only=False, volume=config.volume_name)],
        logging={"driver": "awslogs", "stream_prefix": config.log_stream_prefix},
    )

    builder.add_node(
        CERTIFICATE,
        ResourceKind.CERTIFICATE,
        domain_name=config.root_domain,
        subject_alternative_names=[f"*.{config.root_domain}"],
        validation="dns",
    )

    builder.add_node(
        SERVICE,
        ResourceKind.SERVICE,
        depends_on=[CONTAINER],
        cluster=ref(ECS_CLUSTER, "cluster_id"),
        task_spec=ref(TASK_DEF, "task_definition_id"),
        cpu=config.service_cpu,
        desired_count=config.desired_count,
        public_load_balancer=True,
        domain_name=config.app_domain,
        domain_zone=config.root_domain,
        certificate=ref(CERTIFICATE, "certificate_id"),
        redirect_http=True,
        capacity_provider_strategies=[strategy.to_dict() for strategy in config.capacity_provider_strategies],
        target_group_attributes={
            "deregistration_delay.timeout_seconds": str(config.deregistration_delay_seconds),
        },
    )

    builder.add_node(
        DNS_RECORD,
        ResourceKind.ROUTING_ENDPOINT,
        domain_name=config.app_domain,
        zone_name=config.root_domain,
        target=ref(SERVICE, "load_balancer_dns"),
    )

    if config.allow_public_database_ingress:
        builder.allow(ANY_SOURCE, DATABASE, Channel.NETWORK, scope=tcp_scope(config.database_port))

    return builder
