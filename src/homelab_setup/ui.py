"""Operator-facing output. Rendering only; no prompts, no decisions."""

from __future__ import annotations

from typing import Optional, Protocol

import click

__all__ = ["Reporter", "ConsoleReporter"]


class Reporter(Protocol):
    """What steps and diagnostics may say to the operator."""

    def header(self, text: str) -> None: ...

    def step(self, text: str) -> None: ...

    def info(self, text: str) -> None: ...

    def success(self, text: str) -> None: ...

    def warning(self, text: str) -> None: ...

    def error(self, text: str) -> None: ...

    def print(self, text: str = "") -> None: ...


class ConsoleReporter:
    """Colorized terminal output via click."""

    RULE_WIDTH = 70

    def __init__(self, quiet: bool = False, color: Optional[bool] = None):
        self.quiet = quiet
        self.color = color

    def _echo(self, text: str, err: bool = False, **style) -> None:
        if style:
            text = click.style(text, **style)
        click.echo(text, err=err, color=self.color)

    def header(self, text: str) -> None:
        rule = "=" * self.RULE_WIDTH
        self._echo("")
        self._echo(rule, fg="cyan", bold=True)
        self._echo(f"  {text}", fg="cyan", bold=True)
        self._echo(rule, fg="cyan", bold=True)

    def step(self, text: str) -> None:
        self._echo("")
        self._echo(f"▶ {text}", fg="blue", bold=True)

    def info(self, text: str) -> None:
        if not self.quiet:
            self._echo(text)

    def success(self, text: str) -> None:
        self._echo(f"✓ {text}", fg="green")

    def warning(self, text: str) -> None:
        self._echo(f"⚠ {text}", fg="yellow")

    def error(self, text: str) -> None:
        self._echo(f"✗ {text}", err=True, fg="red", bold=True)

    def print(self, text: str = "") -> None:
        if not self.quiet:
            self._echo(text)

