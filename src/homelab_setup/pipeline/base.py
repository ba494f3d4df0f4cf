"""
Step descriptors, per-run context and result types for the setup pipeline.

A step is a stateless value object: everything it needs arrives through
:class:`StepContext`, and everything it leaves behind is written to the
ConfigStore or recorded by the runner as a completion marker.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any, Dict, List, Optional, Protocol, Tuple

from homelab_setup.errors import SetupError

if TYPE_CHECKING:
    from homelab_setup.network.probe import NetworkProbe
    from homelab_setup.pipeline.system import SystemCapability
    from homelab_setup.storage.config_store import ConfigStore
    from homelab_setup.storage.markers import MarkerStore
    from homelab_setup.ui import Reporter

__all__ = [
    "Step",
    "StepContext",
    "StepStatus",
    "StepResult",
    "PipelineResult",
    "StepProgress",
    "PipelineStatus",
    "RecordedWarning",
]


class Step(Protocol):
    """A single idempotent provisioning step."""

    name: str
    display_name: str
    position: int
    marker_key: str
    legacy_marker: Optional[str]
    requires: Tuple[str, ...]
    optional: bool

    def run(self, ctx: "StepContext") -> None:
        ...


class StepStatus(str, Enum):
    """Terminal state of a step within one pipeline run."""
    SKIPPED = "skipped"
    COMPLETED = "completed"
    FAILED = "failed"
    DISABLED = "disabled"
    PENDING = "pending"


@dataclass(frozen=True)
class RecordedWarning:
    """A non-critical condition noted while a step ran."""
    message: str
    context: Dict[str, Any] = field(default_factory=dict)

    def __str__(self) -> str:
        if not self.context:
            return self.message
        details = ", ".join(f"{k}={v}" for k, v in self.context.items())
        return f"{self.message} ({details})"


@dataclass
class StepContext:
    """Collaborators handed to a running step."""
    config: "ConfigStore"
    markers: "MarkerStore"
    system: "SystemCapability"
    reporter: "Reporter"
    probe: Optional["NetworkProbe"] = None
    step: str = ""
    warnings: List[RecordedWarning] = field(default_factory=list)

    def warn(self, message: str, **context: Any) -> None:
        """Record a non-critical failure; the step still completes."""
        recorded = RecordedWarning(message, {k: v for k, v in context.items() if v is not None})
        self.warnings.append(recorded)
        self.reporter.warning(message)


@dataclass
class StepResult:
    """Outcome of one step in a run."""
    name: str
    status: StepStatus
    warnings: List[RecordedWarning] = field(default_factory=list)
    error: Optional[SetupError] = None
    duration_s: float = 0.0

    @property
    def ok(self) -> bool:
        return self.status is not StepStatus.FAILED

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON output."""
        return {
            "name": self.name,
            "status": self.status.value,
            "warnings": [str(w) for w in self.warnings],
            "error": self.error.to_dict() if self.error else None,
            "duration_s": round(self.duration_s, 3),
        }


@dataclass
class PipelineResult:
    """Per-step results of ``run_all`` in pipeline order."""
    results: List[StepResult] = field(default_factory=list)
    aborted: bool = False

    def __getitem__(self, name: str) -> StepResult:
        for result in self.results:
            if result.name == name:
                return result
        raise KeyError(name)

    def with_status(self, status: StepStatus) -> List[str]:
        return [r.name for r in self.results if r.status is status]

    @property
    def failed(self) -> Optional[StepResult]:
        """The step that aborted the run, if any."""
        for result in self.results:
            if result.status is StepStatus.FAILED:
                return result
        return None

    @property
    def warning_count(self) -> int:
        return sum(len(r.warnings) for r in self.results)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "aborted": self.aborted,
            "steps": [r.to_dict() for r in self.results],
        }


@dataclass(frozen=True)
class StepProgress:
    name: str
    display_name: str
    marker_key: str
    complete: bool
    optional: bool = False


@dataclass
class PipelineStatus:
    """Completion state of every registered step."""
    steps: List[StepProgress] = field(default_factory=list)

    @property
    def completed(self) -> int:
        return sum(1 for s in self.steps if s.complete)

    @property
    def total(self) -> int:
        return len(self.steps)

    @property
    def done(self) -> bool:
        return self.completed == self.total
