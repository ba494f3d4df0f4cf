"""Default step set in pipeline order."""

from __future__ import annotations

from typing import List

from homelab_setup.pipeline.base import Step
from homelab_setup.pipeline.steps import (
    ContainerStep,
    DeploymentStep,
    DirectoryStep,
    NfsStep,
    PreflightStep,
    UserStep,
    WireGuardStep,
)

__all__ = ["default_steps", "STEP_ORDER"]

STEP_ORDER = ("preflight", "user", "directory", "wireguard", "nfs", "container", "deployment")


def default_steps() -> List[Step]:
    """Fresh step descriptors: preflight, user, directory, wireguard, nfs, container, deployment."""
    return [
        PreflightStep(),
        UserStep(),
        DirectoryStep(),
        WireGuardStep(),
        NfsStep(),
        ContainerStep(),
        DeploymentStep(),
    ]
