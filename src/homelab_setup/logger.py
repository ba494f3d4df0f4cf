"""
Logging setup and structured step events.

Two output formats are supported on the ``homelab_setup`` logger tree:
- text: ``2026-01-01T12:00:00+0000 INFO homelab_setup.pipeline.runner: ...``
- json: one object per line for log shippers (Loki, journald forwarders)

Step lifecycle events are logged through :class:`StepLogger` so that every
terminal state (skipped, completed, warning, failed) is queryable by field.

Logged events:
- step.started
- step.skipped
- step.completed
- step.warning
- step.failed
- step.disabled
- markers.cleared

Usage:
    from homelab_setup.logger import StepLogger, configure_logging

    configure_logging(level="debug", fmt="json")
    events = StepLogger()
    events.log_started("preflight", marker="preflight-complete")
"""

from __future__ import annotations

import json
import logging
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Optional

__all__ = ["JsonFormatter", "StepLogger", "configure_logging", "ROOT_LOGGER"]

ROOT_LOGGER = "homelab_setup"
STEP_LOGGER = "homelab_setup.steps"

TEXT_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"
TEXT_DATEFMT = "%Y-%m-%dT%H:%M:%S%z"

# LogRecord attributes that are not user-supplied extras
_RESERVED = frozenset(
    vars(logging.LogRecord("", 0, "", 0, "", None, None)).keys()
) | {"message", "asctime"}


class JsonFormatter(logging.Formatter):
    """Render a record, including ``extra=`` fields, as a single JSON line."""

    def format(self, record: logging.LogRecord) -> str:
        entry: Dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname.lower(),
            "logger": record.name,
            "message": record.getMessage(),
        }
        for key, value in vars(record).items():
            if key not in _RESERVED and not key.startswith("_"):
                entry[key] = value
        if record.exc_info:
            entry["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str)


def configure_logging(
    level: str = "info",
    fmt: str = "text",
    log_file: Optional[str] = None,
) -> logging.Logger:
    """
    Configure the ``homelab_setup`` logger.

    Calling this again replaces the handlers installed by a previous call
    rather than stacking duplicates.

    Args:
        level: debug, info, warning or error
        fmt: "text" or "json"
        log_file: Optional file that receives the same records as stderr

    Returns:
        The configured package logger.
    """
    logger = logging.getLogger(ROOT_LOGGER)
    logger.setLevel(getattr(logging, level.upper(), logging.INFO))

    for handler in list(logger.handlers):
        if getattr(handler, "_homelab_handler", False):
            logger.removeHandler(handler)
            handler.close()

    formatter: logging.Formatter
    if fmt == "json":
        formatter = JsonFormatter()
    else:
        formatter = logging.Formatter(fmt=TEXT_FORMAT, datefmt=TEXT_DATEFMT)

    handlers: list = [logging.StreamHandler(sys.stderr)]
    if log_file:
        Path(log_file).parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(log_file, encoding="utf-8"))

    for handler in handlers:
        handler.setFormatter(formatter)
        handler._homelab_handler = True  # type: ignore[attr-defined]
        logger.addHandler(handler)

    logger.propagate = False
    return logger


class StepLogger:
    """
    Structured logger for step lifecycle events.

    Each entry carries ``event``, ``step`` and ``marker`` fields plus
    event-specific attributes, passed as ``extra=`` so the JSON formatter
    emits them as top-level keys.
    """

    def __init__(self, logger: Optional[logging.Logger] = None):
        self._logger = logger or logging.getLogger(STEP_LOGGER)

    def _emit(
        self,
        level: int,
        event: str,
        message: str,
        step: Optional[str] = None,
        **fields: Any,
    ) -> None:
        extra: Dict[str, Any] = {"event": event}
        if step:
            extra["step"] = step
        extra.update({k: v for k, v in fields.items() if v is not None})
        self._logger.log(level, message, extra=extra)

    def log_started(self, step: str, marker: str) -> None:
        self._emit(logging.INFO, "step.started", f"Running step {step}", step=step, marker=marker)

    def log_skipped(self, step: str, marker: str) -> None:
        self._emit(
            logging.INFO,
            "step.skipped",
            f"Skipping step {step} (already completed)",
            step=step,
            marker=marker,
            status="skipped",
        )

    def log_disabled(self, step: str) -> None:
        self._emit(
            logging.INFO,
            "step.disabled",
            f"Step {step} disabled for this run",
            step=step,
            status="disabled",
        )

    def log_completed(self, step: str, marker: str, duration_s: float, warnings: int = 0) -> None:
        self._emit(
            logging.INFO,
            "step.completed",
            f"Step {step} completed in {duration_s:.1f}s",
            step=step,
            marker=marker,
            status="completed",
            duration_s=round(duration_s, 3),
            warning_count=warnings,
        )

    def log_warning(self, step: str, message: str, **context: Any) -> None:
        self._emit(
            logging.WARNING,
            "step.warning",
            f"Step {step}: {message}",
            step=step,
            **{f"ctx_{k}": str(v) for k, v in context.items()},
        )

    def log_failed(self, step: str, marker: str, error: BaseException, duration_s: float) -> None:
        kind = getattr(getattr(error, "kind", None), "value", type(error).__name__)
        self._emit(
            logging.ERROR,
            "step.failed",
            f"Step {step} failed: {error}",
            step=step,
            marker=marker,
            status="failed",
            error=str(error),
            error_kind=kind,
            duration_s=round(duration_s, 3),
        )

    def log_markers_cleared(self, count: int) -> None:
        self._emit(logging.WARNING, "markers.cleared", f"Cleared {count} completion markers", count=count)
