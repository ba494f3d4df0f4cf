"""
Pytest configuration and fixtures for homelab-setup tests.
"""

from __future__ import annotations

import os
from typing import Dict, List, Optional, Set, Tuple
from unittest.mock import MagicMock, patch

import pytest

from homelab_setup.errors import FatalStepError
from homelab_setup.pipeline.base import StepContext
from homelab_setup.storage import ConfigStore, MarkerStore


# ============================================================================
# Environment Fixtures
# ============================================================================


@pytest.fixture(autouse=True)
def clean_env(monkeypatch, tmp_path):
    """Keep HOMELAB_* variables and any .env file out of every test."""
    for key in list(os.environ):
        if key.startswith("HOMELAB_"):
            monkeypatch.delenv(key, raising=False)
    monkeypatch.chdir(tmp_path)


# ============================================================================
# Store Fixtures
# ============================================================================


@pytest.fixture
def config_path(tmp_path):
    return tmp_path / "homelab-setup.conf"


@pytest.fixture
def config_store(config_path) -> ConfigStore:
    return ConfigStore(config_path)


@pytest.fixture
def marker_dir(tmp_path):
    return tmp_path / "markers"


@pytest.fixture
def marker_store(marker_dir) -> MarkerStore:
    return MarkerStore(marker_dir)


# ============================================================================
# Collaborator Fakes
# ============================================================================


class RecordingReporter:
    """Reporter that keeps every message as ``(kind, text)``."""

    def __init__(self):
        self.messages: List[Tuple[str, str]] = []

    def _record(self, kind: str, text: str) -> None:
        self.messages.append((kind, text))

    def header(self, text: str) -> None:
        self._record("header", text)

    def step(self, text: str) -> None:
        self._record("step", text)

    def info(self, text: str) -> None:
        self._record("info", text)

    def success(self, text: str) -> None:
        self._record("success", text)

    def warning(self, text: str) -> None:
        self._record("warning", text)

    def error(self, text: str) -> None:
        self._record("error", text)

    def print(self, text: str = "") -> None:
        self._record("print", text)

    def texts(self, kind: Optional[str] = None) -> List[str]:
        return [t for k, t in self.messages if kind is None or k == kind]


class FakeSystem:
    """In-memory SystemCapability describing a healthy uCore host."""

    def __init__(self):
        self.rpm_ostree = True
        self.packages: Set[str] = {"nfs-utils", "wireguard-tools"}
        self.active_services: Set[str] = {"docker.service"}
        self.compose: Optional[str] = "docker compose"
        self.users: Dict[str, Tuple[int, int]] = {"core": (1001, 1001)}
        self.needs_password = False
        self.sudo_ok = True
        self.directories: Set[str] = set()
        self.failing_directories: Set[str] = set()
        self.unwritable: Set[str] = set()
        self.write_checked: List[str] = []
        self.exports: Dict[str, str] = {}
        self.gateway: Optional[str] = "192.168.1.1"
        self.reachable: Set[str] = {"8.8.8.8", "192.168.1.1"}
        self.failing_services: Set[str] = set()
        self.enabled: List[str] = []
        self.created: List[Tuple[str, str, int]] = []

    def is_rpm_ostree(self) -> bool:
        return self.rpm_ostree

    def package_installed(self, name: str) -> bool:
        return name in self.packages

    def service_active(self, name: str) -> bool:
        return name in self.active_services

    def enable_service(self, name: str) -> None:
        if name in self.failing_services:
            raise FatalStepError(f"failed to enable {name}", returncode=1)
        self.enabled.append(name)

    def command_available(self, name: str) -> bool:
        return True

    def compose_command(self) -> Optional[str]:
        return self.compose

    def user_exists(self, name: str) -> bool:
        return name in self.users

    def user_ids(self, name: str) -> Tuple[int, int]:
        try:
            return self.users[name]
        except KeyError:
            raise FatalStepError("user does not exist", user=name) from None

    def sudo_requires_password(self) -> bool:
        return self.needs_password

    def validate_sudo(self) -> bool:
        return self.sudo_ok

    def ensure_directory(self, path: str, owner: str, mode: int = 0o755) -> None:
        if path in self.failing_directories:
            raise FatalStepError(f"failed to create {path}", returncode=1)
        self.directories.add(path)
        self.created.append((path, owner, mode))

    def directory_exists(self, path: str) -> bool:
        return path in self.directories

    def verify_writable(self, path: str) -> None:
        if path not in self.directories or path in self.unwritable:
            raise FatalStepError("cannot write to directory", path=path)
        self.write_checked.append(path)

    def nfs_exports(self, host: str) -> Optional[str]:
        return self.exports.get(host)

    def default_gateway(self) -> Optional[str]:
        return self.gateway

    def test_connectivity(self, host: str, timeout_s: int = 3) -> bool:
        return host in self.reachable


@pytest.fixture
def reporter() -> RecordingReporter:
    return RecordingReporter()


@pytest.fixture
def fake_system() -> FakeSystem:
    return FakeSystem()


@pytest.fixture
def step_context(config_store, marker_store, fake_system, reporter) -> StepContext:
    return StepContext(
        config=config_store,
        markers=marker_store,
        system=fake_system,
        reporter=reporter,
    )


# ============================================================================
# OTel Fixtures
# ============================================================================


@pytest.fixture
def mock_span():
    """Create a mock OTel span that is recording."""
    span = MagicMock()
    span.is_recording.return_value = True
    return span


@pytest.fixture
def mock_otel(mock_span):
    """Patch the telemetry module to hand out our mock span."""
    with patch("homelab_setup.telemetry.otel_trace") as mock_trace:
        mock_trace.get_current_span.return_value = mock_span
        mock_trace.get_tracer.return_value.start_as_current_span.return_value.__enter__.return_value = mock_span
        yield mock_span
