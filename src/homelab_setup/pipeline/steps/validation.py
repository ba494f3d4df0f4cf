"""Validation of operator-supplied account and locale values."""

from __future__ import annotations

import re

from homelab_setup.errors import FatalStepError

__all__ = ["validate_username", "validate_timezone"]

MAX_USERNAME_LENGTH = 32
MAX_TIMEZONE_LENGTH = 64

_USERNAME_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_-]*$")
# Region/City, optionally nested (America/Argentina/Buenos_Aires)
_TIMEZONE_RE = re.compile(r"^[A-Za-z0-9_+-]+(/[A-Za-z0-9_+-]+)+$")
_BARE_ZONES = frozenset({"UTC", "GMT"})


def validate_username(name: str) -> str:
    """Return ``name`` stripped, or raise FatalStepError if it is not a valid account name."""
    candidate = (name or "").strip()
    if not candidate:
        raise FatalStepError("username is empty")
    if len(candidate) > MAX_USERNAME_LENGTH:
        raise FatalStepError(
            f"username too long (max {MAX_USERNAME_LENGTH} characters)", user=candidate
        )
    if not _USERNAME_RE.match(candidate):
        raise FatalStepError(
            "username must start with a letter or underscore and contain only "
            "letters, digits, underscores and hyphens",
            user=candidate,
        )
    return candidate


def validate_timezone(tz: str) -> str:
    candidate = (tz or "").strip()
    if not candidate:
        raise FatalStepError("timezone is empty")
    if len(candidate) > MAX_TIMEZONE_LENGTH:
        raise FatalStepError("timezone string too long", tz=candidate)
    if candidate not in _BARE_ZONES and not _TIMEZONE_RE.match(candidate):
        raise FatalStepError("invalid timezone format (expected Region/City)", tz=candidate)
    return candidate
