"""Core data structures for stackwire."""

from stackwire.models.config import ConflictPolicy, LogConfig, PlannerConfig, StackwireConfig
from stackwire.models.edges import (
    ANY_SCOPE,
    ANY_SOURCE,
    AccessEdge,
    Channel,
    Consumption,
    Direction,
    EdgeConflict,
    EdgeOrigin,
)
from stackwire.models.plan import (
    DeploymentPlan,
    MaterializationOp,
    MountBinding,
    NodeOutcome,
    NodeStatus,
    RunReport,
)
from stackwire.models.references import (
    AttributeRef,
    MountRef,
    NetworkRef,
    Reference,
    SecretFieldRef,
    mount,
    reach,
    ref,
    secret_field,
)
from stackwire.models.resources import ResourceKind, ResourceNode

__all__ = [
    "ANY_SCOPE",
    "ANY_SOURCE",
    "AccessEdge",
    "AttributeRef",
    "Channel",
    "ConflictPolicy",
    "Consumption",
    "DeploymentPlan",
    "Direction",
    "EdgeConflict",
    "EdgeOrigin",
    "LogConfig",
    "MaterializationOp",
    "MountBinding",
    "MountRef",
    "NetworkRef",
    "NodeOutcome",
    "NodeStatus",
    "PlannerConfig",
    "Reference",
    "ResourceKind",
    "ResourceNode",
    "RunReport",
    "SecretFieldRef",
    "StackwireConfig",
    "mount",
    "reach",
    "ref",
    "secret_field",
]
