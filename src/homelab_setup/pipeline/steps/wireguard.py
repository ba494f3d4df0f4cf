"""WireGuard VPN. Optional; ``run --skip-wireguard`` disables it."""

from __future__ import annotations

from typing import Optional, Tuple

from homelab_setup.errors import FatalStepError
from homelab_setup.pipeline.base import StepContext

WIREGUARD_PACKAGE = "wireguard-tools"
WIREGUARD_UNIT = "wg-quick@wg0"


class WireGuardStep:
    name = "wireguard"
    display_name = "WireGuard Setup"
    position = 40
    marker_key = "wireguard-setup-complete"
    legacy_marker: Optional[str] = None
    requires: Tuple[str, ...] = ("preflight",)
    optional = True

    def run(self, ctx: StepContext) -> None:
        if not ctx.system.package_installed(WIREGUARD_PACKAGE):
            ctx.reporter.info(f"Install it with: sudo rpm-ostree install {WIREGUARD_PACKAGE}")
            raise FatalStepError(f"{WIREGUARD_PACKAGE} is not installed", package=WIREGUARD_PACKAGE)
        ctx.system.enable_service(WIREGUARD_UNIT)
        ctx.reporter.success(f"Enabled {WIREGUARD_UNIT}")
