"""
Completion markers for idempotent, resumable steps.

A marker is a file named after the step's marker key inside the marker
directory; its presence is the whole signal. The file body holds the
completion timestamp for operators and is never read back for decisions.

Data layout:
    ~/.local/homelab-setup/
    ├── preflight-complete
    ├── user-setup-complete
    └── directory-setup-complete
"""

from __future__ import annotations

import logging
import os
from datetime import datetime, timezone
from pathlib import Path
from typing import List, Optional, Union

from homelab_setup.errors import StoreIOError
from homelab_setup.storage.atomic import atomic_write_text, fsync_directory

logger = logging.getLogger(__name__)

__all__ = ["MarkerStore"]


def _validate_name(name: str) -> None:
    if not name or name.startswith(".") or "/" in name or os.sep in name or "\0" in name:
        raise ValueError(f"invalid marker name {name!r}")


class MarkerStore:
    """
    Durable boolean flags, one file per marker.

    Example:
        markers = MarkerStore("/var/home/core/.local/homelab-setup")
        markers.is_complete("preflight-complete")    # False
        markers.mark_complete("preflight-complete")
        markers.is_complete("preflight-complete")    # True
    """

    def __init__(self, directory: Union[str, Path]):
        self.directory = Path(directory)

    def _path(self, name: str) -> Path:
        _validate_name(name)
        return self.directory / name

    def is_complete(self, name: str) -> bool:
        """True iff the marker exists."""
        return self._path(name).is_file()

    def mark_complete(self, name: str) -> None:
        """
        Create the marker. Re-marking a present marker is a no-op.

        Raises:
            StoreIOError: If the marker cannot be durably created.
        """
        path = self._path(name)
        if path.is_file():
            return
        stamp = datetime.now(timezone.utc).isoformat(timespec="seconds")
        try:
            atomic_write_text(path, f"{stamp}\n", mode=0o644, dir_mode=0o755)
        except OSError as exc:
            raise StoreIOError(
                "failed to create completion marker", marker=name, path=str(path), cause=exc
            ) from exc
        logger.debug("Marked %s complete", name)

    def clear(self, name: str) -> None:
        """Remove a single marker. Removing an absent marker is not an error."""
        path = self._path(name)
        try:
            path.unlink()
        except FileNotFoundError:
            return
        except OSError as exc:
            raise StoreIOError(
                "failed to remove completion marker", marker=name, path=str(path), cause=exc
            ) from exc
        fsync_directory(self.directory)

    def names(self) -> List[str]:
        """Names of all present markers, sorted."""
        if not self.directory.is_dir():
            return []
        try:
            return sorted(
                p.name for p in self.directory.iterdir()
                if p.is_file() and not p.name.startswith(".")
            )
        except OSError as exc:
            raise StoreIOError(
                "failed to list completion markers", path=str(self.directory), cause=exc
            ) from exc

    def clear_all(self) -> int:
        """
        Remove every marker, returning how many were removed.

        A missing or empty marker directory is not an error.
        """
        removed = 0
        for name in self.names():
            self.clear(name)
            removed += 1
        logger.debug("Cleared %d markers from %s", removed, self.directory)
        return removed

    def ensure_canonical_marker(self, canonical: str, legacy: Optional[str] = None) -> bool:
        """
        Resolve completion under ``canonical``, migrating from ``legacy``.

        Returns True if the canonical marker exists, or if the legacy marker
        exists (in which case the canonical marker is created from it).
        Returns False if neither exists. Never removes a marker, so a
        completed step can never be downgraded.

        Raises:
            StoreIOError: If the canonical marker cannot be created.
        """
        if self.is_complete(canonical):
            return True
        if legacy and legacy != canonical and self.is_complete(legacy):
            logger.info("Migrating legacy marker %s to %s", legacy, canonical)
            self.mark_complete(canonical)
            return True
        return False

    def __repr__(self) -> str:
        return f"MarkerStore(directory={str(self.directory)!r})"
