"""
Tests for HostSystem with subprocess replaced.
"""

import subprocess

import pytest

from homelab_setup.errors import FatalStepError
from homelab_setup.pipeline.system import HostSystem


class FakeRun:
    """Stands in for subprocess.run; answers by command prefix."""

    def __init__(self, answers=None, raises=None):
        self.answers = answers or {}
        self.raises = raises
        self.calls = []

    def __call__(self, cmd, **kwargs):
        self.calls.append(list(cmd))
        if self.raises is not None:
            raise self.raises
        for prefix, (rc, out, err) in self.answers.items():
            if tuple(cmd[:len(prefix)]) == prefix:
                return subprocess.CompletedProcess(cmd, rc, out, err)
        return subprocess.CompletedProcess(cmd, 0, "", "")


@pytest.fixture
def fake_run(monkeypatch):
    run = FakeRun()
    monkeypatch.setattr("homelab_setup.pipeline.system.subprocess.run", run)
    return run


class TestQueries:
    def test_compose_prefers_v2(self, fake_run):
        assert HostSystem(use_sudo=False).compose_command() == "docker compose"

    def test_compose_falls_back_to_v1(self, fake_run):
        fake_run.answers[("docker", "compose")] = (1, "", "unknown command")
        assert HostSystem(use_sudo=False).compose_command() == "docker-compose"

    def test_no_compose(self, fake_run):
        fake_run.answers[("docker",)] = (1, "", "")
        fake_run.answers[("docker-compose",)] = (127, "", "")
        assert HostSystem(use_sudo=False).compose_command() is None

    def test_missing_binary_is_failed_command(self, fake_run):
        fake_run.raises = FileNotFoundError("rpm")
        assert not HostSystem(use_sudo=False).package_installed("nfs-utils")

    def test_timeout_is_failed_command(self, fake_run):
        fake_run.raises = subprocess.TimeoutExpired(["ping"], 5)
        assert not HostSystem(use_sudo=False).test_connectivity("192.168.1.1", 3)

    def test_default_gateway_parsed(self, fake_run):
        fake_run.answers[("ip", "route")] = (0, "default via 192.168.1.1 dev eth0 proto dhcp\n", "")
        assert HostSystem(use_sudo=False).default_gateway() == "192.168.1.1"

    def test_no_default_route(self, fake_run):
        fake_run.answers[("ip", "route")] = (0, "", "")
        assert HostSystem(use_sudo=False).default_gateway() is None

    def test_root_never_needs_sudo_password(self, fake_run):
        assert not HostSystem(use_sudo=False).sudo_requires_password()
        assert fake_run.calls == []

    def test_nfs_exports(self, fake_run):
        fake_run.answers[("showmount",)] = (0, "Export list for nas:\n/mnt/storage *\n", "")
        assert "/mnt/storage" in HostSystem(use_sudo=False).nfs_exports("nas")


class TestMutations:
    def test_enable_service_uses_sudo(self, fake_run):
        HostSystem(use_sudo=True).enable_service("podman-compose-media.service")

        assert fake_run.calls == [
            ["sudo", "-n", "systemctl", "enable", "--now", "podman-compose-media.service"],
        ]

    def test_failure_carries_command_and_stderr(self, fake_run):
        fake_run.answers[("systemctl",)] = (1, "", "Unit not found.\n")

        with pytest.raises(FatalStepError) as exc_info:
            HostSystem(use_sudo=False).enable_service("wg-quick@wg0")

        assert exc_info.value.context == {
            "command": "systemctl enable --now wg-quick@wg0",
            "returncode": 1,
            "stderr": "Unit not found.",
        }

    def test_ensure_directory_commands(self, fake_run):
        HostSystem(use_sudo=False).ensure_directory("/srv/containers", "core", 0o755)

        assert fake_run.calls == [
            ["mkdir", "-p", "/srv/containers"],
            ["chown", "core", "/srv/containers"],
            ["chmod", "755", "/srv/containers"],
        ]

    def test_dry_run_skips_mutations_but_tracks_directories(self, fake_run, tmp_path):
        path = str(tmp_path / "not-created")
        system = HostSystem(dry_run=True, use_sudo=False)

        system.ensure_directory(path, "core")
        system.enable_service("podman-compose-web.service")

        assert fake_run.calls == []
        assert system.directory_exists(path)
        assert not (tmp_path / "not-created").exists()


class TestWriteCheck:
    def test_round_trip_leaves_no_file(self, tmp_path):
        HostSystem(use_sudo=False).verify_writable(str(tmp_path))

        assert list(tmp_path.iterdir()) == []

    def test_missing_directory_is_fatal(self, tmp_path):
        with pytest.raises(FatalStepError, match="cannot write") as exc_info:
            HostSystem(use_sudo=False).verify_writable(str(tmp_path / "absent"))
        assert exc_info.value.context["path"] == str(tmp_path / "absent")

    def test_content_mismatch_is_fatal(self, tmp_path, monkeypatch):
        monkeypatch.setattr("homelab_setup.pipeline.system.Path.read_text", lambda self, **kw: "garbled")

        with pytest.raises(FatalStepError, match="content mismatch"):
            HostSystem(use_sudo=False).verify_writable(str(tmp_path))
        assert list(tmp_path.iterdir()) == []

    def test_dry_run_skips_planned_directory(self, fake_run, tmp_path):
        path = str(tmp_path / "not-created")
        system = HostSystem(dry_run=True, use_sudo=False)
        system.ensure_directory(path, "core")

        system.verify_writable(path)

        assert not (tmp_path / "not-created").exists()
