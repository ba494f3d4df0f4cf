"""Shared CLI state and error mapping."""

from __future__ import annotations

import functools
from typing import Callable, Optional, TypeVar

import click

from homelab_setup.errors import SetupError
from homelab_setup.network.probe import NetworkProbe
from homelab_setup.pipeline import HostSystem, StepPipeline, default_steps
from homelab_setup.settings import HomelabSettings
from homelab_setup.storage import ConfigStore, MarkerStore
from homelab_setup.ui import ConsoleReporter

F = TypeVar("F", bound=Callable)


class SetupCommandError(click.ClickException):
    """A classified SetupError surfaced to the operator (exit status 1)."""

    def __init__(self, error: SetupError):
        self.error = error
        super().__init__(f"[{error.kind.value}] {error}")


class AppContext:
    """Per-invocation objects, built lazily from settings."""

    def __init__(self, settings: HomelabSettings, reporter: ConsoleReporter):
        self.settings = settings
        self.reporter = reporter
        self._config: Optional[ConfigStore] = None
        self._markers: Optional[MarkerStore] = None
        self._probe: Optional[NetworkProbe] = None

    @property
    def config(self) -> ConfigStore:
        if self._config is None:
            self._config = ConfigStore(self.settings.config_file)
        return self._config

    @property
    def markers(self) -> MarkerStore:
        if self._markers is None:
            self._markers = MarkerStore(self.settings.marker_path)
        return self._markers

    @property
    def probe(self) -> NetworkProbe:
        if self._probe is None:
            self._probe = NetworkProbe.from_settings(self.settings)
        return self._probe

    def pipeline(self, dry_run: bool = False) -> StepPipeline:
        return StepPipeline(
            default_steps(),
            config=self.config,
            markers=self.markers,
            system=HostSystem(dry_run=dry_run),
            reporter=self.reporter,
            probe=self.probe,
            record_markers=not dry_run,
        )


pass_app = click.make_pass_decorator(AppContext)


def handle_errors(func: F) -> F:
    """Translate SetupError and ValueError into click exceptions."""

    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        except SetupError as e:
            raise SetupCommandError(e) from e
        except ValueError as e:
            raise click.ClickException(str(e)) from e

    return wrapper  # type: ignore[return-value]
