"""Plan emission: the provisioning contract, a dry-run backend and the concurrent runner."""

from stackwire.provisioning.base import Provisioner, ResolvedOperation
from stackwire.provisioning.dry_run import DryRunFailure, DryRunProvisioner, fabricate_outputs
from stackwire.provisioning.executor import PlanExecutor

__all__ = [
    "DryRunFailure",
    "DryRunProvisioner",
    "PlanExecutor",
    "Provisioner",
    "ResolvedOperation",
    "fabricate_outputs",
]
