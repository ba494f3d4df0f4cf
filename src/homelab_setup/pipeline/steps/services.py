"""Service layout shared by the directory, container and deployment steps."""

from __future__ import annotations

import posixpath
from typing import List, Tuple

from homelab_setup.errors import FatalStepError
from homelab_setup.storage.config_store import (
    KEY_CONTAINERS_BASE,
    KEY_SELECTED_SERVICES,
    ConfigStore,
)

DEFAULT_CONTAINERS_BASE = "/srv/containers"
APPDATA_BASE = "/var/lib/containers/appdata"

# (service group, what runs in it)
SERVICE_GROUPS: Tuple[Tuple[str, str], ...] = (
    ("media", "Plex, Jellyfin, Tautulli"),
    ("web", "Overseerr, Wizarr, Organizr, Homepage"),
    ("cloud", "Nextcloud, Immich, Collabora"),
)

APPDATA_DIRS: Tuple[str, ...] = (
    "plex",
    "jellyfin",
    "tautulli",
    "overseerr",
    "wizarr",
    "organizr",
    "homepage",
    "nextcloud",
    "nextcloud-db",
    "nextcloud-redis",
    "collabora",
    "immich",
    "immich-db",
    "immich-redis",
    "immich-ml",
)

NFS_MOUNT_POINTS: Tuple[Tuple[str, str], ...] = (
    ("/mnt/nas-media", "NFS media share"),
    ("/mnt/nas-photos", "NFS photos share"),
    ("/mnt/nas-backups", "NFS backups share"),
)

SERVICE_NAMES = tuple(name for name, _ in SERVICE_GROUPS)


def containers_base(config: ConfigStore) -> str:
    return config.get_or_default(KEY_CONTAINERS_BASE, DEFAULT_CONTAINERS_BASE)


def service_directory(config: ConfigStore, service: str) -> str:
    return posixpath.join(containers_base(config), service)


def unit_name(service: str) -> str:
    """systemd unit that runs a service group's compose project."""
    return f"podman-compose-{service}.service"


def selected_services(config: ConfigStore) -> List[str]:
    """
    Parse ``SELECTED_SERVICES`` (space separated, e.g. ``media web``).

    Raises:
        FatalStepError: If nothing is selected or a name is not a known group.
    """
    raw = config.get_or_default(KEY_SELECTED_SERVICES, "")
    services = raw.split()
    if not services:
        raise FatalStepError(
            "no services selected; set SELECTED_SERVICES (e.g. 'media web cloud')",
            key=KEY_SELECTED_SERVICES,
        )
    unknown = [s for s in services if s not in SERVICE_NAMES]
    if unknown:
        raise FatalStepError(
            f"unknown services selected: {', '.join(unknown)}",
            key=KEY_SELECTED_SERVICES,
            valid=" ".join(SERVICE_NAMES),
        )
    return services
