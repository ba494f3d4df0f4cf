"""
Error taxonomy for homelab-setup.

Every failure raised by the core carries an :class:`ErrorKind` and a dict of
structured context fields, so callers branch on ``err.kind`` instead of
parsing message text.

    NotFoundError     configuration key absent
    StoreIOError      disk read/write/rename failure in a store
    PrivilegeError    raw socket creation denied
    UnreachableError  target did not answer within its timeout
    TargetError       probe target or port is malformed / unresolvable
    DependencyError   a prerequisite step has not completed
    FatalStepError    a required precondition of a step failed
    StepWarning       an optional precondition of a step failed
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Dict, Optional

__all__ = [
    "ErrorKind",
    "SetupError",
    "NotFoundError",
    "StoreIOError",
    "PrivilegeError",
    "UnreachableError",
    "TargetError",
    "DependencyError",
    "FatalStepError",
    "StepWarning",
]


class ErrorKind(str, Enum):
    """Machine-readable classification of a :class:`SetupError`."""
    NOT_FOUND = "not_found"
    IO = "io"
    PRIVILEGE = "privilege"
    UNREACHABLE = "unreachable"
    INVALID_TARGET = "invalid_target"
    DEPENDENCY = "dependency"
    FATAL_STEP = "fatal_step"
    WARNING = "warning"


class SetupError(Exception):
    """Base class for all classified homelab-setup errors."""

    kind: ErrorKind = ErrorKind.FATAL_STEP

    def __init__(self, message: str, **context: Any):
        super().__init__(message)
        self.message = message
        self.context: Dict[str, Any] = {k: v for k, v in context.items() if v is not None}

    @property
    def fatal(self) -> bool:
        """Whether this error must abort the remaining pipeline."""
        return self.kind is not ErrorKind.WARNING

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for structured logging."""
        return {
            "kind": self.kind.value,
            "message": self.message,
            **{k: str(v) for k, v in self.context.items()},
        }

    def __str__(self) -> str:
        if not self.context:
            return self.message
        details = ", ".join(f"{k}={v}" for k, v in self.context.items())
        return f"{self.message} ({details})"


class NotFoundError(SetupError, KeyError):
    """Requested configuration key is absent."""

    kind = ErrorKind.NOT_FOUND

    def __init__(self, key: str, path: Optional[str] = None):
        super().__init__(f"config key not found: {key}", key=key, path=path)
        self.key = key

    # KeyError.__str__ would quote the whole message
    __str__ = SetupError.__str__


class StoreIOError(SetupError):
    """A configuration or marker file could not be read or written."""

    kind = ErrorKind.IO


class PrivilegeError(SetupError):
    """The process lacks the privilege to open a raw socket."""

    kind = ErrorKind.PRIVILEGE


class UnreachableError(SetupError):
    """The target did not respond within its timeout."""

    kind = ErrorKind.UNREACHABLE


class TargetError(SetupError, ValueError):
    """A probe target or port is malformed or cannot be resolved."""

    kind = ErrorKind.INVALID_TARGET

    __str__ = SetupError.__str__


class FatalStepError(SetupError):
    """A required precondition of a step failed; the pipeline must stop."""

    kind = ErrorKind.FATAL_STEP


class DependencyError(FatalStepError):
    """A step was requested before the steps it depends on completed."""

    kind = ErrorKind.DEPENDENCY


class StepWarning(SetupError):
    """An optional precondition failed; the pipeline continues."""

    kind = ErrorKind.WARNING
