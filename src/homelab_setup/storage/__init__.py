"""
Durable state for homelab-setup.

Provides:
- ConfigStore: KEY=value settings persisted with atomic writes
- MarkerStore: one-file-per-step completion markers with legacy migration
- atomic_write_text: the temp-file-then-rename primitive both build on
"""

from homelab_setup.storage.atomic import atomic_write_text
from homelab_setup.storage.config_store import ConfigStore
from homelab_setup.storage.markers import MarkerStore

__all__ = [
    "ConfigStore",
    "MarkerStore",
    "atomic_write_text",
]
