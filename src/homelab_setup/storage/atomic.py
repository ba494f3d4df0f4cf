"""
Crash-safe file replacement.

The full content is written to a temporary file in the target's directory,
flushed and fsynced, closed, chmod'ed, and then renamed over the target.
Rename within one filesystem is atomic, so a reader sees either the old file
or the new one, never a partial write.
"""

from __future__ import annotations

import logging
import os
import tempfile
from pathlib import Path
from typing import Union

logger = logging.getLogger(__name__)

__all__ = ["atomic_write_text", "fsync_directory"]


def fsync_directory(directory: Path) -> None:
    """Flush a directory entry so a completed rename survives power loss."""
    try:
        fd = os.open(directory, os.O_RDONLY)
    except OSError:
        # Some filesystems refuse O_RDONLY on directories; the rename stands.
        return
    try:
        os.fsync(fd)
    except OSError:
        pass
    finally:
        os.close(fd)


def atomic_write_text(
    path: Union[str, Path],
    content: str,
    mode: int = 0o600,
    dir_mode: int = 0o755,
) -> None:
    """
    Replace ``path`` with ``content`` atomically.

    Args:
        path: Target file
        content: Full file content
        mode: Permissions applied to the temp file before the rename
        dir_mode: Permissions for a parent directory created on demand

    Raises:
        OSError: If any stage fails. The temp file is removed and the
            previous target, if any, is left untouched.
    """
    target = Path(path)
    target.parent.mkdir(parents=True, exist_ok=True, mode=dir_mode)

    fd, temp_path = tempfile.mkstemp(
        dir=target.parent,
        prefix=f".{target.name}.tmp-",
    )
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            os.fchmod(f.fileno(), mode)
            f.write(content)
            f.flush()
            os.fsync(f.fileno())

        os.replace(temp_path, target)
    except BaseException:
        if os.path.exists(temp_path):
            os.unlink(temp_path)
        raise

    fsync_directory(target.parent)
    logger.debug("Atomically wrote %s (%d bytes)", target, len(content))
