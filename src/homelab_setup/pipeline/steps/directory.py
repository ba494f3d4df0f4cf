"""
Directory structure for container services.

    <CONTAINERS_BASE>/{media,web,cloud}     compose projects
    /var/lib/containers/appdata/<service>   persistent application data
    /mnt/nas-{media,photos,backups}         NFS mount points (if NFS_SERVER set)

Older releases recorded completion as ``directories-created``; that marker is
still honoured.
"""

from __future__ import annotations

import logging
import posixpath
from typing import Optional, Tuple

from homelab_setup.errors import FatalStepError
from homelab_setup.pipeline.base import StepContext
from homelab_setup.pipeline.steps.services import (
    APPDATA_BASE,
    APPDATA_DIRS,
    NFS_MOUNT_POINTS,
    SERVICE_GROUPS,
    containers_base,
)
from homelab_setup.storage.config_store import (
    KEY_APPDATA_BASE,
    KEY_APPDATA_PATH,
    KEY_CONTAINERS_BASE,
    KEY_HOMELAB_USER,
    KEY_NFS_SERVER,
)

logger = logging.getLogger(__name__)

MOUNT_OWNER = "root:root"


class DirectoryStep:
    name = "directory"
    display_name = "Directory Structure Setup"
    position = 30
    marker_key = "directory-setup-complete"
    legacy_marker: Optional[str] = "directories-created"
    requires: Tuple[str, ...] = ("user",)
    optional = False

    def run(self, ctx: StepContext) -> None:
        owner = ctx.config.get_or_default(KEY_HOMELAB_USER, "")
        if not owner:
            raise FatalStepError(
                "homelab user not configured (run user configuration first)",
                key=KEY_HOMELAB_USER,
            )
        base = containers_base(ctx.config)
        ctx.reporter.info(f"Using homelab user: {owner}")

        ctx.reporter.step("Container Services Directory")
        ctx.system.ensure_directory(base, owner, 0o755)
        for group, description in SERVICE_GROUPS:
            ctx.reporter.info(f"Creating {posixpath.join(base, group)} - {description}")
            ctx.system.ensure_directory(posixpath.join(base, group), owner, 0o755)

        ctx.reporter.step("Application Data Directories")
        ctx.system.ensure_directory(APPDATA_BASE, owner, 0o755)
        for service in APPDATA_DIRS:
            ctx.system.ensure_directory(posixpath.join(APPDATA_BASE, service), owner, 0o755)
        ctx.reporter.success(f"Created {len(APPDATA_DIRS)} appdata directories in {APPDATA_BASE}")

        ctx.reporter.info("Verifying write permissions for appdata directories...")
        try:
            ctx.system.verify_writable(APPDATA_BASE)
        except FatalStepError as e:
            e.context.setdefault("owner", owner)
            raise
        ctx.reporter.success("Write permissions verified")

        self._create_mount_points(ctx)
        self._verify(ctx, base)

        ctx.config.set(KEY_CONTAINERS_BASE, base)
        ctx.config.set(KEY_APPDATA_BASE, APPDATA_BASE)
        ctx.config.set(KEY_APPDATA_PATH, APPDATA_BASE)

    def _create_mount_points(self, ctx: StepContext) -> None:
        if not ctx.config.get_or_default(KEY_NFS_SERVER, ""):
            ctx.reporter.info("NFS not configured, skipping mount point creation")
            return
        ctx.reporter.step("NFS Mount Points")
        for path, description in NFS_MOUNT_POINTS:
            try:
                ctx.system.ensure_directory(path, MOUNT_OWNER, 0o755)
            except FatalStepError as e:
                ctx.warn(f"could not create mount point {path}", path=path, error=e.message)
                continue
            ctx.reporter.success(f"Created {path} - {description}")

    def _verify(self, ctx: StepContext, base: str) -> None:
        expected = [posixpath.join(base, group) for group, _ in SERVICE_GROUPS]
        expected.append(APPDATA_BASE)
        missing = [path for path in expected if not ctx.system.directory_exists(path)]
        if missing:
            raise FatalStepError(
                "directory structure incomplete",
                missing=", ".join(missing),
            )
        ctx.reporter.success("Directory structure verified")
