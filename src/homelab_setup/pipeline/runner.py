"""
StepPipeline - ordered, resumable execution of setup steps.

For each step:
1. Resolve its canonical completion marker, migrating a legacy name.
2. If complete, report it skipped without calling ``run``.
3. Otherwise run it inside a ``step:<name>`` span and classify the outcome:
   - returns, or raises StepWarning   -> completed, marker set
   - raises SetupError / OSError      -> failed, marker not set, run aborts
   - raises anything else             -> wrapped in FatalStepError, as above

Nothing is kept between runs except what the stores persist.
"""

from __future__ import annotations

import logging
import time
from typing import AbstractSet, Callable, Dict, Iterable, List, Optional, Set

from opentelemetry.trace import Status, StatusCode

from homelab_setup.errors import DependencyError, FatalStepError, SetupError, StepWarning
from homelab_setup.logger import StepLogger
from homelab_setup.pipeline.base import (
    PipelineResult,
    PipelineStatus,
    Step,
    StepContext,
    StepProgress,
    StepResult,
    StepStatus,
)
from homelab_setup.telemetry import add_span_event, get_tracer

logger = logging.getLogger(__name__)

__all__ = ["StepPipeline"]


class StepPipeline:
    """
    Runs registered steps in position order.

    Example:
        pipeline = StepPipeline(default_steps(), config, markers, HostSystem(), ConsoleReporter())
        result = pipeline.run_all(skip={"wireguard"})
        if result.aborted:
            ...
    """

    def __init__(
        self,
        steps: Iterable[Step],
        config,
        markers,
        system,
        reporter,
        probe=None,
        step_logger: Optional[StepLogger] = None,
        clock: Callable[[], float] = time.monotonic,
        record_markers: bool = True,
    ):
        ordered = sorted(steps, key=lambda s: s.position)
        by_name: Dict[str, Step] = {}
        for step in ordered:
            if step.name in by_name:
                raise ValueError(f"duplicate step name: {step.name}")
            by_name[step.name] = step
        for step in ordered:
            unknown = [r for r in step.requires if r not in by_name]
            if unknown:
                raise ValueError(f"step {step.name} requires unknown steps: {', '.join(unknown)}")

        self._steps: List[Step] = ordered
        self._by_name = by_name
        self.config = config
        self.markers = markers
        self.system = system
        self.reporter = reporter
        self.probe = probe
        self.events = step_logger or StepLogger()
        self._clock = clock
        # dry runs leave markers untouched
        self.record_markers = record_markers

    @property
    def steps(self) -> List[Step]:
        return list(self._steps)

    def get(self, name: str) -> Step:
        try:
            return self._by_name[name]
        except KeyError:
            raise KeyError(
                f"unknown step {name!r} (expected one of: {', '.join(self._by_name)})"
            ) from None

    def _marker_present(self, step: Step) -> bool:
        """Read-only completion check that honours the legacy marker."""
        if self.markers.is_complete(step.marker_key):
            return True
        return bool(step.legacy_marker) and self.markers.is_complete(step.legacy_marker)

    def _check_requires(
        self,
        step: Step,
        disabled: AbstractSet[str] = frozenset(),
        done: AbstractSet[str] = frozenset(),
    ) -> None:
        """Raise DependencyError unless every prerequisite is disabled, done this run or marked."""
        missing = [
            req for req in step.requires
            if req not in disabled and req not in done
            and not self._marker_present(self._by_name[req])
        ]
        if missing:
            raise DependencyError(
                f"{step.display_name} requires {', '.join(missing)} to complete first",
                step=step.name,
                missing=",".join(missing),
            )

    def _context(self, step: Step) -> StepContext:
        return StepContext(
            config=self.config,
            markers=self.markers,
            system=self.system,
            reporter=self.reporter,
            probe=self.probe,
            step=step.name,
        )

    def _execute(self, step: Step, force: bool) -> StepResult:
        tracer = get_tracer()
        with tracer.start_as_current_span(f"step:{step.name}") as span:
            span.set_attribute("step.name", step.name)
            span.set_attribute("step.marker", step.marker_key)
            result = self._execute_in_span(step, force)
            span.set_attribute("step.status", result.status.value)
            for warning in result.warnings:
                add_span_event("step.warning", {"step.name": step.name, "message": str(warning)})
            if result.error is not None:
                span.record_exception(result.error)
                span.set_status(Status(StatusCode.ERROR, str(result.error)))
            return result

    def _execute_in_span(self, step: Step, force: bool) -> StepResult:
        start = self._clock()
        ctx = self._context(step)
        error: Optional[SetupError] = None

        try:
            if not force and self.markers.ensure_canonical_marker(step.marker_key, step.legacy_marker):
                self.events.log_skipped(step.name, step.marker_key)
                self.reporter.success(f"{step.display_name} already completed (skipping)")
                return StepResult(step.name, StepStatus.SKIPPED)

            self.events.log_started(step.name, step.marker_key)
            self.reporter.header(step.display_name)
            try:
                step.run(ctx)
            except StepWarning as w:
                ctx.warn(w.message, **w.context)
            if self.record_markers:
                self.markers.mark_complete(step.marker_key)
        except SetupError as e:
            error = e
        except OSError as e:
            error = FatalStepError(str(e) or type(e).__name__, step=step.name)
            error.__cause__ = e
        except Exception as e:
            logger.exception("Unclassified error in step %s", step.name)
            error = FatalStepError(f"unexpected error: {e}", step=step.name)
            error.__cause__ = e

        duration = self._clock() - start
        for warning in ctx.warnings:
            self.events.log_warning(step.name, warning.message, **warning.context)

        if error is not None:
            self.events.log_failed(step.name, step.marker_key, error, duration)
            self.reporter.error(f"{step.display_name} failed: {error}")
            return StepResult(step.name, StepStatus.FAILED, ctx.warnings, error, duration)

        self.events.log_completed(step.name, step.marker_key, duration, len(ctx.warnings))
        suffix = f" with {len(ctx.warnings)} warning(s)" if ctx.warnings else ""
        self.reporter.success(f"{step.display_name} completed{suffix}")
        return StepResult(step.name, StepStatus.COMPLETED, ctx.warnings, None, duration)

    def run_step(self, name: str, force: bool = False) -> StepResult:
        """
        Run one step by name.

        Args:
            name: Registered step name
            force: Re-run even if the completion marker is present

        Returns:
            StepResult; a failed step carries its error rather than raising.

        Raises:
            KeyError: If ``name`` is not registered
            DependencyError: If a prerequisite step has not completed
        """
        step = self.get(name)
        self._check_requires(step)
        return self._execute(step, force)

    def run_all(self, skip: Iterable[str] = frozenset()) -> PipelineResult:
        """
        Run every step in order, stopping at the first fatal failure.

        Steps named in ``skip`` must be optional; they are reported disabled
        and do not satisfy or block later dependency checks.
        """
        disabled = frozenset(skip)
        for name in disabled:
            if not self.get(name).optional:
                raise ValueError(f"step {name!r} is required and cannot be skipped")

        outcome = PipelineResult()
        # steps finished in this run; stand in for markers a dry run never writes
        done: Set[str] = set()
        for step in self._steps:
            if outcome.aborted:
                outcome.results.append(StepResult(step.name, StepStatus.PENDING))
                continue

            if step.name in disabled:
                self.events.log_disabled(step.name)
                self.reporter.info(f"Skipping {step.display_name} (disabled)")
                outcome.results.append(StepResult(step.name, StepStatus.DISABLED))
                continue

            try:
                self._check_requires(step, disabled, done)
            except DependencyError as e:
                self.events.log_failed(step.name, step.marker_key, e, 0.0)
                self.reporter.error(str(e))
                outcome.results.append(StepResult(step.name, StepStatus.FAILED, error=e))
                outcome.aborted = True
                continue

            result = self._execute(step, force=False)
            outcome.results.append(result)
            if result.status is StepStatus.FAILED:
                outcome.aborted = True
            else:
                done.add(step.name)

        return outcome

    def status(self) -> PipelineStatus:
        """Completion state of every step. Does not migrate legacy markers."""
        return PipelineStatus([
            StepProgress(
                name=step.name,
                display_name=step.display_name,
                marker_key=step.marker_key,
                complete=self._marker_present(step),
                optional=step.optional,
            )
            for step in self._steps
        ])

    def reset(self) -> int:
        """Clear every completion marker. The configuration file is untouched."""
        count = self.markers.clear_all()
        self.events.log_markers_cleared(count)
        return count

    def __repr__(self) -> str:
        return f"StepPipeline(steps={[s.name for s in self._steps]!r})"
