"""
Pre-flight system validation.

Every check runs even after an earlier one fails, so the operator sees the
full list of problems at once. Fatal problems are aggregated into a single
FatalStepError at the end; optional ones (gateway, NFS server) are warnings.
"""

from __future__ import annotations

import logging
from typing import List, Optional, Tuple

from homelab_setup import timeouts
from homelab_setup.errors import FatalStepError, PrivilegeError, SetupError, UnreachableError
from homelab_setup.pipeline.base import StepContext
from homelab_setup.storage.config_store import (
    KEY_COMPOSE_COMMAND,
    KEY_CONTAINER_RUNTIME,
    KEY_NFS_SERVER,
)

logger = logging.getLogger(__name__)

OPTIONAL_PACKAGES = ("nfs-utils", "wireguard-tools")
DOCKER_SERVICE = "docker.service"
DEFAULT_CONNECTIVITY_HOST = "8.8.8.8"
NFS_CHECK_TIMEOUT_S = 5


class PreflightStep:
    name = "preflight"
    display_name = "Pre-flight System Validation"
    position = 10
    marker_key = "preflight-complete"
    legacy_marker: Optional[str] = None
    requires: Tuple[str, ...] = ()
    optional = False

    def run(self, ctx: StepContext) -> None:
        ui = ctx.reporter
        ui.info("Verifying system requirements before setup...")

        failures: List[str] = []
        for title, check in (
            ("Checking Operating System", self.check_os),
            ("Checking Optional Packages", self.check_packages),
            ("Checking Container Runtime", self.check_container_runtime),
            ("Checking Sudo Access", self.check_sudo),
            ("Checking Network Connectivity", self.check_connectivity),
            ("Checking NFS Server", self.check_nfs_server),
        ):
            ui.step(title)
            try:
                check(ctx)
            except SetupError as e:
                ui.error(str(e))
                failures.append(e.message)

        if failures:
            raise FatalStepError(
                f"{len(failures)} pre-flight check(s) failed: {'; '.join(failures)}",
                step=self.name,
            )
        ui.success("All pre-flight checks passed")

    def check_os(self, ctx: StepContext) -> None:
        if not ctx.system.is_rpm_ostree():
            ctx.reporter.info("These setup steps target rpm-ostree based systems (uCore)")
            raise FatalStepError("not an rpm-ostree system")
        ctx.reporter.success("Confirmed: running on an rpm-ostree system")

    def check_packages(self, ctx: StepContext) -> None:
        for pkg in OPTIONAL_PACKAGES:
            if ctx.system.package_installed(pkg):
                ctx.reporter.success(f"  {pkg} is installed")
            else:
                ctx.reporter.info(f"  - {pkg} is not installed (optional)")
                ctx.reporter.info(f"    install later with: sudo rpm-ostree install {pkg}")

    def check_container_runtime(self, ctx: StepContext) -> None:
        if not ctx.system.service_active(DOCKER_SERVICE):
            ctx.reporter.info(f"Start it with: sudo systemctl enable --now {DOCKER_SERVICE}")
            raise FatalStepError(f"{DOCKER_SERVICE} is not active")
        ctx.reporter.success("  Docker service is available")

        compose = ctx.system.compose_command()
        if compose is None:
            ctx.reporter.info("Install Docker Compose V2: https://docs.docker.com/compose/install/")
            raise FatalStepError("docker compose not available")
        ctx.reporter.success(f"  Docker Compose is available ({compose})")
        ctx.config.set(KEY_COMPOSE_COMMAND, compose)
        ctx.config.set(KEY_CONTAINER_RUNTIME, "docker")

    def check_sudo(self, ctx: StepContext) -> None:
        if not ctx.system.sudo_requires_password():
            ctx.reporter.success("Passwordless sudo is configured")
            return
        ctx.reporter.warning("Sudo requires password authentication")
        ctx.reporter.info("For unattended operation, configure passwordless sudo")
        if not ctx.system.validate_sudo():
            raise FatalStepError("sudo authentication failed")
        ctx.reporter.success("Sudo access validated (credentials cached)")

    def check_connectivity(self, ctx: StepContext) -> None:
        host = ctx.probe.public_resolver if ctx.probe else DEFAULT_CONNECTIVITY_HOST
        self._require_reachable(ctx, host)
        ctx.reporter.success("Internet connectivity confirmed")

        gateway = ctx.system.default_gateway()
        if gateway is None:
            ctx.warn("could not determine default gateway")
            return
        ctx.reporter.info(f"Default gateway: {gateway}")
        if ctx.system.test_connectivity(gateway, 2):
            ctx.reporter.success("Default gateway is reachable")
        else:
            ctx.warn("default gateway is not responding to ping", gateway=gateway)

    def _require_reachable(self, ctx: StepContext, host: str) -> None:
        if ctx.probe is not None:
            try:
                ctx.probe.ping(host, count=1).require_reachable()
                return
            except PrivilegeError:
                logger.debug("No raw socket privilege; falling back to the ping command")
        if not ctx.system.test_connectivity(host, timeouts.CONNECTIVITY_CHECK_TIMEOUT_S):
            raise UnreachableError("no internet connectivity", target=host)

    def check_nfs_server(self, ctx: StepContext) -> None:
        host = ctx.config.get_or_default(KEY_NFS_SERVER, "")
        if not host:
            ctx.reporter.info("NFS server not configured yet, skipping NFS check")
            return
        if not ctx.system.test_connectivity(host, NFS_CHECK_TIMEOUT_S):
            ctx.warn("NFS server is not reachable", host=host)
            return
        exports = ctx.system.nfs_exports(host)
        if not exports:
            ctx.warn("NFS server is reachable but has no accessible exports", host=host)
            return
        ctx.reporter.success(f"NFS server {host} has accessible exports")
        ctx.reporter.print(exports)
