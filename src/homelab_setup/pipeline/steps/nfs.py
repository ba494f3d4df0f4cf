"""NFS client check. Never fatal: an unreachable server only warns."""

from __future__ import annotations

from typing import Optional, Tuple

from homelab_setup.errors import StepWarning
from homelab_setup.pipeline.base import StepContext
from homelab_setup.storage.config_store import KEY_NFS_SERVER

NFS_CHECK_TIMEOUT_S = 5


class NfsStep:
    name = "nfs"
    display_name = "NFS Setup"
    position = 50
    marker_key = "nfs-setup-complete"
    legacy_marker: Optional[str] = None
    requires: Tuple[str, ...] = ("preflight",)
    optional = False

    def run(self, ctx: StepContext) -> None:
        host = ctx.config.get_or_default(KEY_NFS_SERVER, "")
        if not host:
            ctx.reporter.info("NFS_SERVER not configured; nothing to do")
            return
        if not ctx.system.test_connectivity(host, NFS_CHECK_TIMEOUT_S):
            raise StepWarning("NFS server is unreachable", host=host)
        exports = ctx.system.nfs_exports(host)
        if not exports:
            raise StepWarning("NFS server has no accessible exports", host=host)
        ctx.reporter.success(f"NFS server {host} exports:")
        ctx.reporter.print(exports)
