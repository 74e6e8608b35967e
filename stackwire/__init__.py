"""stackwire: compiles a declarative cloud resource topology into an
ordered, access-wired deployment plan.

Typical use::

    from stackwire import StackBuilder, plan_stack, reach, secret_field

    builder = StackBuilder()
    builder.add_node("db", "datastore", port=5432)
    builder.add_node(
        "app",
        "container",
        environment={"DATABASE_HOST": reach("db", "hostname")},
        secrets={"DATABASE_USER": secret_field("db", "username")},
    )
    plan = plan_stack(builder.build())
"""

from stackwire.errors import (
    ConflictingEdgeError,
    CycleError,
    DeclarationError,
    StackwireError,
    UnknownReferenceError,
    UnresolvedAttributeError,
)
from stackwire.graph import StackBuilder, StackGraph
from stackwire.models import (
    AccessEdge,
    Channel,
    ConflictPolicy,
    DeploymentPlan,
    PlannerConfig,
    ResourceKind,
    mount,
    reach,
    ref,
    secret_field,
)
from stackwire.planner import compile_stack, plan_stack
from stackwire.provisioning import DryRunProvisioner, PlanExecutor, Provisioner

__version__ = "0.1.0"

__all__ = [
    "AccessEdge",
    "Channel",
    "ConflictPolicy",
    "ConflictingEdgeError",
    "CycleError",
    "DeclarationError",
    "DeploymentPlan",
    "DryRunProvisioner",
    "PlanExecutor",
    "PlannerConfig",
    "Provisioner",
    "ResourceKind",
    "StackBuilder",
    "StackGraph",
    "StackwireError",
    "UnknownReferenceError",
    "UnresolvedAttributeError",
    "__version__",
    "compile_stack",
    "mount",
    "plan_stack",
    "reach",
    "ref",
    "secret_field",
]
