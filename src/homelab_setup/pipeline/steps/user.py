"""Homelab user account: resolve the configured user and record its ids."""

from __future__ import annotations

from typing import Optional, Tuple

from homelab_setup.errors import FatalStepError
from homelab_setup.pipeline.base import StepContext
from homelab_setup.pipeline.steps.validation import validate_timezone, validate_username
from homelab_setup.storage.config_store import KEY_HOMELAB_USER, KEY_PGID, KEY_PUID, KEY_TZ

DEFAULT_TZ = "UTC"


class UserStep:
    name = "user"
    display_name = "User Configuration"
    position = 20
    marker_key = "user-setup-complete"
    legacy_marker: Optional[str] = None
    requires: Tuple[str, ...] = ("preflight",)
    optional = False

    def run(self, ctx: StepContext) -> None:
        user = ctx.config.get_or_default(KEY_HOMELAB_USER, "")
        if not user:
            raise FatalStepError(
                "homelab user not configured; set it with "
                "'homelab-setup config set HOMELAB_USER <name>'",
                key=KEY_HOMELAB_USER,
            )
        try:
            user = validate_username(user)
        except FatalStepError as e:
            e.context.setdefault("key", KEY_HOMELAB_USER)
            raise
        if not ctx.system.user_exists(user):
            raise FatalStepError("configured homelab user does not exist", user=user)

        uid, gid = ctx.system.user_ids(user)
        ctx.config.set(KEY_PUID, str(uid))
        ctx.config.set(KEY_PGID, str(gid))
        ctx.reporter.success(f"Using {user} (PUID={uid}, PGID={gid})")

        tz = ctx.config.get_or_default(KEY_TZ, "")
        if not tz:
            ctx.config.set(KEY_TZ, DEFAULT_TZ)
            tz = DEFAULT_TZ
        try:
            validate_timezone(tz)
        except FatalStepError as e:
            e.context.setdefault("key", KEY_TZ)
            raise
        ctx.reporter.info(f"Timezone: {tz}")
