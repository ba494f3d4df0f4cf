"""homelab-setup markers list/mark/clear."""

from __future__ import annotations

import click

from homelab_setup.cli.app import AppContext, handle_errors, pass_app
from homelab_setup.logger import StepLogger


@click.group()
def markers():
    """Inspect and edit step completion markers."""
    pass


@markers.command("list")
@pass_app
@handle_errors
def markers_list(app: AppContext):
    """List present markers."""
    names = app.markers.names()
    if not names:
        click.echo(f"No markers in {app.settings.marker_path}", err=True)
        return
    for name in names:
        click.echo(name)


@markers.command("mark")
@click.argument("name")
@pass_app
@handle_errors
def markers_mark(app: AppContext, name: str):
    """Record NAME as complete without running its step."""
    app.markers.mark_complete(name)
    app.reporter.success(f"Marked {name} complete")


@markers.command("clear")
@click.confirmation_option(prompt="Remove every completion marker?")
@pass_app
@handle_errors
def markers_clear(app: AppContext):
    """Remove all markers."""
    count = app.markers.clear_all()
    StepLogger().log_markers_cleared(count)
    app.reporter.success(f"Cleared {count} marker(s)")
