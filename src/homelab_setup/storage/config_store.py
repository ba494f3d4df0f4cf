"""
Persistent KEY=value configuration store.

File format::

    # Homelab Setup Configuration
    # Generated: 2026-01-01T12:00:00+00:00

    HOMELAB_USER=core
    PUID=1001

Comment lines (``#``) and blank lines are ignored on read; whitespace around
keys and values is stripped; lines without ``=`` are skipped. Every write
rewrites the whole file through :func:`atomic_write_text` with mode 600.

The store loads lazily on the first operation and treats its in-memory map as
authoritative afterwards. Another process editing the file after that load is
not observed (last writer wins).
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, Union

from homelab_setup.errors import NotFoundError, StoreIOError
from homelab_setup.storage.atomic import atomic_write_text

logger = logging.getLogger(__name__)

__all__ = [
    "ConfigStore",
    "HEADER_TITLE",
    "KEY_HOMELAB_USER",
    "KEY_PUID",
    "KEY_PGID",
    "KEY_TZ",
    "KEY_CONTAINERS_BASE",
    "KEY_APPDATA_BASE",
    "KEY_APPDATA_PATH",
    "KEY_NFS_SERVER",
    "KEY_COMPOSE_COMMAND",
    "KEY_CONTAINER_RUNTIME",
    "KEY_SELECTED_SERVICES",
]

HEADER_TITLE = "# Homelab Setup Configuration"

# Well-known keys
KEY_HOMELAB_USER = "HOMELAB_USER"
KEY_PUID = "PUID"
KEY_PGID = "PGID"
KEY_TZ = "TZ"
KEY_CONTAINERS_BASE = "CONTAINERS_BASE"
KEY_APPDATA_BASE = "APPDATA_BASE"
KEY_APPDATA_PATH = "APPDATA_PATH"
KEY_NFS_SERVER = "NFS_SERVER"
KEY_COMPOSE_COMMAND = "COMPOSE_COMMAND"
KEY_CONTAINER_RUNTIME = "CONTAINER_RUNTIME"
KEY_SELECTED_SERVICES = "SELECTED_SERVICES"


def _validate_key(key: str) -> None:
    if not key or key != key.strip():
        raise ValueError(f"invalid config key {key!r}: empty or padded with whitespace")
    if "=" in key or "\n" in key or "\r" in key or key.startswith("#"):
        raise ValueError(f"invalid config key {key!r}: must not contain '=', newlines or start with '#'")


def _validate_value(key: str, value: str) -> None:
    if "\n" in value or "\r" in value:
        raise ValueError(f"value for {key} contains a newline, which the file format cannot hold")


class ConfigStore:
    """
    Durable key/value settings with atomic, crash-safe writes.

    Example:
        store = ConfigStore("/var/home/core/.homelab-setup.conf")
        store.set("TZ", "Europe/London")
        store.get("TZ")                    # "Europe/London"
        store.get_or_default("PUID", "0")  # "0" until PUID is set
    """

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)
        self._data: Dict[str, str] = {}
        self._loaded = False

    @property
    def loaded(self) -> bool:
        return self._loaded

    def load(self) -> None:
        """
        Read the file into memory.

        A missing file is an empty store. Values already held in memory are
        overwritten by the file's values.

        Raises:
            StoreIOError: If the file exists but cannot be read.
        """
        if not self.path.exists():
            self._loaded = True
            logger.debug("Config file %s does not exist yet; starting empty", self.path)
            return

        try:
            text = self.path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as exc:
            raise StoreIOError(
                "failed to read config file", path=str(self.path), cause=exc
            ) from exc

        for lineno, raw in enumerate(text.splitlines(), start=1):
            line = raw.strip()
            if not line or line.startswith("#"):
                continue
            key, sep, value = line.partition("=")
            if not sep:
                logger.debug("Ignoring malformed line %d in %s", lineno, self.path)
                continue
            self._data[key.strip()] = value.strip()

        self._loaded = True
        logger.debug("Loaded %d config keys from %s", len(self._data), self.path)

    def _ensure_loaded(self) -> None:
        if not self._loaded:
            self.load()

    @staticmethod
    def _render(data: Dict[str, str]) -> str:
        generated = datetime.now(timezone.utc).isoformat(timespec="seconds")
        lines = [HEADER_TITLE, f"# Generated: {generated}", ""]
        lines.extend(f"{key}={value}" for key, value in data.items())
        return "\n".join(lines) + "\n"

    def _persist(self, data: Dict[str, str]) -> None:
        try:
            atomic_write_text(self.path, self._render(data), mode=0o600)
        except OSError as exc:
            raise StoreIOError(
                "failed to write config file", path=str(self.path), cause=exc
            ) from exc
        # Memory only reflects what reached the disk
        self._data = data
        logger.debug("Saved %d config keys to %s", len(data), self.path)

    def save(self) -> None:
        """
        Persist the whole map atomically.

        Raises:
            StoreIOError: If the temp file cannot be written, synced or
                renamed. The previous file is left intact.
        """
        self._persist(dict(self._data))

    def get(self, key: str) -> str:
        """
        Return the value for ``key``.

        Raises:
            NotFoundError: If the key is absent.
            StoreIOError: If the file cannot be loaded.
        """
        self._ensure_loaded()
        try:
            return self._data[key]
        except KeyError:
            raise NotFoundError(key, path=str(self.path)) from None

    def get_or_default(self, key: str, default: str = "") -> str:
        """Return the value for ``key``, or ``default`` if absent or unloadable."""
        try:
            self._ensure_loaded()
        except StoreIOError as exc:
            logger.warning("Using default for %s: %s", key, exc)
            return default
        return self._data.get(key, default)

    def set(self, key: str, value: str) -> None:
        """
        Store ``value`` under ``key`` and persist immediately.

        Existing on-disk state is loaded first so that keys written by an
        earlier invocation are not clobbered.

        Raises:
            ValueError: If the key or value cannot be represented in the file.
            StoreIOError: If loading or persisting fails.
        """
        _validate_key(key)
        value = str(value)
        _validate_value(key, value)

        self._ensure_loaded()
        updated = dict(self._data)
        updated[key] = value
        self._persist(updated)

    def delete(self, key: str) -> None:
        """Remove ``key`` and persist. Removing an absent key is not an error."""
        self._ensure_loaded()
        updated = dict(self._data)
        updated.pop(key, None)
        self._persist(updated)

    def exists(self, key: str) -> bool:
        """Check whether ``key`` is set. Load failures read as absent."""
        try:
            self._ensure_loaded()
        except StoreIOError as exc:
            logger.warning("Treating %s as unset: %s", key, exc)
            return False
        return key in self._data

    def get_all(self) -> Dict[str, str]:
        """
        Return a copy of every key/value pair in file order.

        Raises:
            StoreIOError: If the file cannot be loaded.
        """
        self._ensure_loaded()
        return dict(self._data)

    def __contains__(self, key: str) -> bool:
        return self.exists(key)

    def __repr__(self) -> str:
        return f"ConfigStore(path={str(self.path)!r}, loaded={self._loaded})"
