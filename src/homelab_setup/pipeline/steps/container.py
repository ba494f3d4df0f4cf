"""Container service selection: validate SELECTED_SERVICES against the layout."""

from __future__ import annotations

from typing import Optional, Tuple

from homelab_setup.errors import FatalStepError
from homelab_setup.pipeline.base import StepContext
from homelab_setup.pipeline.steps.services import selected_services, service_directory
from homelab_setup.storage.config_store import KEY_COMPOSE_COMMAND


class ContainerStep:
    name = "container"
    display_name = "Container Setup"
    position = 60
    marker_key = "container-setup-complete"
    legacy_marker: Optional[str] = None
    requires: Tuple[str, ...] = ("directory",)
    optional = False

    def run(self, ctx: StepContext) -> None:
        services = selected_services(ctx.config)
        ctx.reporter.info(f"Selected services: {' '.join(services)}")

        for service in services:
            path = service_directory(ctx.config, service)
            if not ctx.system.directory_exists(path):
                raise FatalStepError(
                    "service directory does not exist (run directory setup first)",
                    service=service,
                    path=path,
                )
            ctx.reporter.success(f"{service}: {path}")

        if not ctx.config.exists(KEY_COMPOSE_COMMAND):
            ctx.warn("compose command not recorded; re-run preflight to detect it")
