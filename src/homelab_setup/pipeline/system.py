"""
System capability collaborator.

Steps never shell out themselves; they ask a :class:`SystemCapability` to
query or change the host. :class:`HostSystem` is the subprocess-backed
implementation used by the CLI. Tests substitute an in-memory fake.

Queries return plain values (``bool``, ``Optional[str]``). Mutations raise
:class:`~homelab_setup.errors.FatalStepError` carrying the command, exit
status and stderr, and the calling step decides whether that is fatal or
only a warning.
"""

from __future__ import annotations

import logging
import os
import pwd
import shlex
import shutil
import subprocess
from pathlib import Path
from typing import List, Optional, Protocol, Sequence, Set, Tuple

from homelab_setup import timeouts
from homelab_setup.errors import FatalStepError

logger = logging.getLogger(__name__)

__all__ = ["SystemCapability", "HostSystem", "OSTREE_BOOTED"]

OSTREE_BOOTED = "/run/ostree-booted"
WRITE_TEST_NAME = ".write-test"
WRITE_TEST_CONTENT = "permission test"


class SystemCapability(Protocol):
    """Host operations available to steps."""

    def is_rpm_ostree(self) -> bool: ...

    def package_installed(self, name: str) -> bool: ...

    def service_active(self, name: str) -> bool: ...

    def enable_service(self, name: str) -> None: ...

    def command_available(self, name: str) -> bool: ...

    def compose_command(self) -> Optional[str]: ...

    def user_exists(self, name: str) -> bool: ...

    def user_ids(self, name: str) -> Tuple[int, int]: ...

    def sudo_requires_password(self) -> bool: ...

    def validate_sudo(self) -> bool: ...

    def ensure_directory(self, path: str, owner: str, mode: int = 0o755) -> None: ...

    def directory_exists(self, path: str) -> bool: ...

    def verify_writable(self, path: str) -> None: ...

    def nfs_exports(self, host: str) -> Optional[str]: ...

    def default_gateway(self) -> Optional[str]: ...

    def test_connectivity(self, host: str, timeout_s: int = timeouts.CONNECTIVITY_CHECK_TIMEOUT_S) -> bool: ...


class HostSystem:
    """
    SystemCapability backed by ``subprocess.run``.

    Every command runs with a timeout; a timeout or a missing binary is
    reported as a failed command, never a hang. With ``dry_run`` set,
    mutating commands are logged and skipped while queries still run.
    """

    def __init__(self, dry_run: bool = False, use_sudo: Optional[bool] = None):
        self.dry_run = dry_run
        self.use_sudo = os.geteuid() != 0 if use_sudo is None else use_sudo
        # directories "created" during a dry run, so later checks see them
        self._planned: Set[str] = set()

    def _run(
        self,
        args: Sequence[str],
        timeout: float = timeouts.SUBPROCESS_QUERY_TIMEOUT_S,
        mutating: bool = False,
        sudo: bool = False,
    ) -> subprocess.CompletedProcess:
        cmd: List[str] = list(args)
        if sudo and self.use_sudo:
            cmd = ["sudo", "-n"] + cmd
        printable = shlex.join(cmd)

        if mutating and self.dry_run:
            logger.info("[dry-run] %s", printable)
            return subprocess.CompletedProcess(cmd, 0, "", "")

        logger.debug("Running %s", printable)
        try:
            return subprocess.run(cmd, capture_output=True, text=True, timeout=timeout)
        except FileNotFoundError:
            logger.debug("Command not found: %s", cmd[0])
            return subprocess.CompletedProcess(cmd, 127, "", f"{cmd[0]}: command not found")
        except subprocess.TimeoutExpired:
            logger.warning("Command timed out after %ss: %s", timeout, printable)
            return subprocess.CompletedProcess(cmd, 124, "", f"timed out after {timeout}s")

    def _check(self, result: subprocess.CompletedProcess, what: str) -> None:
        if result.returncode != 0:
            raise FatalStepError(
                f"failed to {what}",
                command=shlex.join(result.args),
                returncode=result.returncode,
                stderr=(result.stderr or "").strip() or None,
            )

    # -- queries -------------------------------------------------------------

    def is_rpm_ostree(self) -> bool:
        return Path(OSTREE_BOOTED).exists() or self.command_available("rpm-ostree")

    def package_installed(self, name: str) -> bool:
        return self._run(["rpm", "-q", name]).returncode == 0

    def service_active(self, name: str) -> bool:
        return self._run(["systemctl", "is-active", "--quiet", name]).returncode == 0

    def command_available(self, name: str) -> bool:
        return shutil.which(name) is not None

    def compose_command(self) -> Optional[str]:
        """Detect Docker Compose, preferring the V2 plugin over V1."""
        if self._run(["docker", "compose", "version"]).returncode == 0:
            return "docker compose"
        if self._run(["docker-compose", "--version"]).returncode == 0:
            return "docker-compose"
        return None

    def user_exists(self, name: str) -> bool:
        try:
            pwd.getpwnam(name)
        except KeyError:
            return False
        return True

    def user_ids(self, name: str) -> Tuple[int, int]:
        try:
            entry = pwd.getpwnam(name)
        except KeyError:
            raise FatalStepError("user does not exist", user=name) from None
        return entry.pw_uid, entry.pw_gid

    def sudo_requires_password(self) -> bool:
        if not self.use_sudo:
            return False
        return self._run(["sudo", "-n", "true"]).returncode != 0

    def validate_sudo(self) -> bool:
        # May prompt on the controlling terminal; bounded by the timeout
        try:
            result = subprocess.run(["sudo", "-v"], timeout=timeouts.SUBPROCESS_QUERY_TIMEOUT_S)
        except (FileNotFoundError, subprocess.TimeoutExpired) as e:
            logger.warning("sudo validation failed: %s", e)
            return False
        return result.returncode == 0

    def directory_exists(self, path: str) -> bool:
        return Path(path).is_dir() or path in self._planned

    def nfs_exports(self, host: str) -> Optional[str]:
        result = self._run(["showmount", "-e", host])
        if result.returncode != 0:
            return None
        return result.stdout.strip()

    def default_gateway(self) -> Optional[str]:
        result = self._run(["ip", "route", "show", "default"])
        if result.returncode != 0:
            return None
        fields = result.stdout.split()
        if "via" in fields and fields.index("via") + 1 < len(fields):
            return fields[fields.index("via") + 1]
        return None

    def test_connectivity(self, host: str, timeout_s: int = timeouts.CONNECTIVITY_CHECK_TIMEOUT_S) -> bool:
        result = self._run(
            ["ping", "-c", "1", "-W", str(int(timeout_s)), host],
            timeout=timeout_s + 2,
        )
        return result.returncode == 0

    # -- mutations -----------------------------------------------------------

    def enable_service(self, name: str) -> None:
        result = self._run(
            ["systemctl", "enable", "--now", name],
            timeout=timeouts.SUBPROCESS_DEFAULT_TIMEOUT_S,
            mutating=True,
            sudo=True,
        )
        self._check(result, f"enable {name}")

    def ensure_directory(self, path: str, owner: str, mode: int = 0o755) -> None:
        """Create ``path`` (with parents) owned by ``owner`` (``user`` or ``user:group``)."""
        for args, what in (
            (["mkdir", "-p", path], f"create {path}"),
            (["chown", owner, path], f"chown {path} to {owner}"),
            (["chmod", format(mode, "o"), path], f"chmod {path}"),
        ):
            self._check(self._run(args, mutating=True, sudo=True), what)
        if self.dry_run:
            self._planned.add(path)

    def verify_writable(self, path: str) -> None:
        """Write, read back and remove ``<path>/.write-test``."""
        if self.dry_run and path in self._planned and not Path(path).is_dir():
            logger.info("[dry-run] skipping write check of %s", path)
            return
        test_file = Path(path) / WRITE_TEST_NAME
        try:
            test_file.write_text(WRITE_TEST_CONTENT, encoding="utf-8")
        except OSError as e:
            raise FatalStepError("cannot write to directory", path=path, cause=e) from e
        try:
            content = test_file.read_text(encoding="utf-8")
        except OSError as e:
            raise FatalStepError("cannot read back from directory", path=path, cause=e) from e
        finally:
            try:
                test_file.unlink()
            except OSError as e:
                logger.warning("Could not remove %s: %s", test_file, e)
        if content != WRITE_TEST_CONTENT:
            raise FatalStepError("write verification failed: content mismatch", path=path)
