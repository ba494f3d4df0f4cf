"""homelab-setup config get/set/delete/list."""

from __future__ import annotations

import click

from homelab_setup.cli.app import AppContext, handle_errors, pass_app


@click.group()
def config():
    """Read and edit the KEY=value configuration file."""
    pass


@config.command("get")
@click.argument("key")
@pass_app
@handle_errors
def config_get(app: AppContext, key: str):
    """Print the value of KEY (exit 1 if absent)."""
    click.echo(app.config.get(key))


@config.command("set")
@click.argument("key")
@click.argument("value")
@pass_app
@handle_errors
def config_set(app: AppContext, key: str, value: str):
    """Set KEY to VALUE and save atomically."""
    app.config.set(key, value)
    app.reporter.success(f"{key} saved")


@config.command("delete")
@click.argument("key")
@pass_app
@handle_errors
def config_delete(app: AppContext, key: str):
    """Remove KEY (no error if absent)."""
    app.config.delete(key)
    app.reporter.success(f"{key} removed")


@config.command("list")
@pass_app
@handle_errors
def config_list(app: AppContext):
    """Print every KEY=value pair in file order."""
    entries = app.config.get_all()
    if not entries:
        click.echo(f"No configuration in {app.settings.config_file}", err=True)
        return
    for key, value in entries.items():
        click.echo(f"{key}={value}")
