"""Per-kind attribute schemas.

A node's kind decides which attributes it may declare, which attributes
only exist once it is materialized, which port consumers reach it on and
which secret fields it exposes.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

from stackwire.models.resources import ResourceKind

COMMON_ATTRIBUTES = frozenset({"tags", "description"})


@dataclass(frozen=True)
class KindSchema:
    """Legal attribute sets for one resource kind."""

    kind: ResourceKind
    immediate: frozenset[str]
    deferred: frozenset[str] = frozenset()
    default_port: int | None = None
    credential_fields: frozenset[str] = frozenset()
    secret_fields_attribute: str | None = None  # immediate mapping whose keys are the secret fields

    def allows(self, attribute: str) -> bool:
        return attribute in self.immediate or attribute in COMMON_ATTRIBUTES

    def knows(self, attribute: str) -> bool:
        return self.allows(attribute) or attribute in self.deferred

    def secret_fields(self, attributes: Mapping[str, Any]) -> frozenset[str]:
        """Return the secret fields a node of this kind exposes."""
        if self.secret_fields_attribute is not None:
            # a mapping of field -> initial value, or a plain list of field names
            declared = attributes.get(self.secret_fields_attribute) or ()
            return frozenset(str(key) for key in declared)
        return self.credential_fields

    def service_port(self, attributes: Mapping[str, Any]) -> int | None:
        """Port consumers reach this node on: the declared ``port``, else the kind default."""
        port = attributes.get("port")
        if isinstance(port, int) and not isinstance(port, bool):
            return port
        return self.default_port


def _names(*names: str) -> frozenset[str]:
    return frozenset(names)


KIND_SCHEMAS: dict[ResourceKind, KindSchema] = {
    ResourceKind.NETWORK: KindSchema(
        kind=ResourceKind.NETWORK,
        immediate=_names("max_azs", "cidr", "nat_gateways"),
        deferred=_names("network_id", "private_subnet_ids", "public_subnet_ids"),
    ),
    ResourceKind.STORAGE: KindSchema(
        kind=ResourceKind.STORAGE,
        immediate=_names(
            "network",
            "encrypted",
            "lifecycle_policy",
            "performance_mode",
            "throughput_mode",
            "port",
            "removal_policy",
        ),
        deferred=_names("filesystem_id", "security_group_id"),
        default_port=2049,
    ),
    ResourceKind.DATASTORE: KindSchema(
        kind=ResourceKind.DATASTORE,
        immediate=_names(
            "network",
            "engine",
            "engine_version",
            "instance_type",
            "subnet_type",
            "port",
            "database_name",
            "username",
            "removal_policy",
        ),
        deferred=_names("hostname", "endpoint_port", "secret_id", "security_group_id", "datastore_id"),
        credential_fields=_names("username", "password", "host", "port", "dbname", "engine"),
    ),
    ResourceKind.COMPUTE_CLUSTER: KindSchema(
        kind=ResourceKind.COMPUTE_CLUSTER,
        immediate=_names("network", "container_insights", "capacity_providers"),
        deferred=_names("cluster_id"),
    ),
    ResourceKind.TASK_SPEC: KindSchema(
        kind=ResourceKind.TASK_SPEC,
        immediate=_names("cpu", "memory", "volumes"),
        deferred=_names("task_definition_id", "execution_role_id", "task_role_id"),
    ),
    ResourceKind.CONTAINER: KindSchema(
        kind=ResourceKind.CONTAINER,
        immediate=_names(
            "task_spec",
            "image",
            "port_mappings",
            "environment",
            "secrets",
            "mount_points",
            "logging",
        ),
    ),
    ResourceKind.SERVICE: KindSchema(
        kind=ResourceKind.SERVICE,
        immediate=_names(
            "cluster",
            "task_spec",
            "cpu",
            "desired_count",
            "public_load_balancer",
            "domain_name",
            "domain_zone",
            "certificate",
            "redirect_http",
            "capacity_provider_strategies",
            "target_group_attributes",
            "port",
        ),
        deferred=_names("service_id", "security_group_id", "load_balancer_dns", "target_group_id"),
        default_port=443,
    ),
    ResourceKind.SECRET: KindSchema(
        kind=ResourceKind.SECRET,
        immediate=_names("fields", "removal_policy"),
        deferred=_names("secret_id"),
        secret_fields_attribute="fields",
    ),
    ResourceKind.CERTIFICATE: KindSchema(
        kind=ResourceKind.CERTIFICATE,
        immediate=_names("domain_name", "subject_alternative_names", "validation"),
        deferred=_names("certificate_id"),
    ),
    ResourceKind.ROUTING_ENDPOINT: KindSchema(
        kind=ResourceKind.ROUTING_ENDPOINT,
        immediate=_names("domain_name", "zone_name", "target"),
        deferred=_names("zone_id", "fqdn"),
    ),
}


def schema_for(kind: ResourceKind) -> KindSchema:
    return KIND_SCHEMAS[kind]
