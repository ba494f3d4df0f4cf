"""Concrete setup steps, one module each."""

from homelab_setup.pipeline.steps.container import ContainerStep
from homelab_setup.pipeline.steps.deployment import DeploymentStep
from homelab_setup.pipeline.steps.directory import DirectoryStep
from homelab_setup.pipeline.steps.nfs import NfsStep
from homelab_setup.pipeline.steps.preflight import PreflightStep
from homelab_setup.pipeline.steps.user import UserStep
from homelab_setup.pipeline.steps.wireguard import WireGuardStep

__all__ = [
    "PreflightStep",
    "UserStep",
    "DirectoryStep",
    "WireGuardStep",
    "NfsStep",
    "ContainerStep",
    "DeploymentStep",
]
