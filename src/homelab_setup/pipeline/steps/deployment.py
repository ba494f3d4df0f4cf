"""Service deployment: enable one compose unit per selected service group."""

from __future__ import annotations

from typing import Optional, Tuple

from homelab_setup.pipeline.base import StepContext
from homelab_setup.pipeline.steps.services import selected_services, unit_name


class DeploymentStep:
    name = "deployment"
    display_name = "Service Deployment"
    position = 70
    marker_key = "service-deployment-complete"
    legacy_marker: Optional[str] = None
    requires: Tuple[str, ...] = ("container",)
    optional = False

    def run(self, ctx: StepContext) -> None:
        for service in selected_services(ctx.config):
            unit = unit_name(service)
            ctx.reporter.info(f"Enabling {unit}...")
            ctx.system.enable_service(unit)
            ctx.reporter.success(f"{service} deployed ({unit})")
