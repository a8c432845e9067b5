"""Deployment records, manifests and the deploy pipeline."""

from faas_core.deployments.manifest import generate_build_output, wrap_handler_for_nodejs
from faas_core.deployments.models import (
    TERMINAL_STATUSES,
    Deployment,
    DeploymentStatus,
    map_ready_state,
)
from faas_core.deployments.orchestrator import DeploymentOrchestrator, PollRegistry
from faas_core.deployments.store import DeploymentStore

__all__ = [
    "Deployment",
    "DeploymentOrchestrator",
    "DeploymentStatus",
    "DeploymentStore",
    "PollRegistry",
    "TERMINAL_STATUSES",
    "generate_build_output",
    "map_ready_state",
    "wrap_handler_for_nodejs",
]
