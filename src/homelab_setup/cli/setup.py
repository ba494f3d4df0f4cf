"""homelab-setup run / status / reset."""

from __future__ import annotations

import json
from typing import Tuple

import click

from homelab_setup.cli.app import AppContext, handle_errors, pass_app
from homelab_setup.pipeline import PipelineResult, StepResult, StepStatus

STATUS_STYLE = {
    StepStatus.COMPLETED: ("✓", "green"),
    StepStatus.SKIPPED: ("↷", "cyan"),
    StepStatus.DISABLED: ("-", "white"),
    StepStatus.FAILED: ("✗", "red"),
    StepStatus.PENDING: ("·", "white"),
}


def _echo_result(result: StepResult) -> None:
    symbol, color = STATUS_STYLE[result.status]
    line = f"  {symbol} {result.name:<12} {result.status.value}"
    if result.warnings:
        line += f" ({len(result.warnings)} warning(s))"
    click.echo(click.style(line, fg=color))
    for warning in result.warnings:
        click.echo(f"      ⚠ {warning}")


def _echo_summary(outcome: PipelineResult) -> None:
    click.echo()
    click.echo(click.style("Setup summary", bold=True))
    for result in outcome.results:
        _echo_result(result)


@click.command()
@click.argument("steps", nargs=-1)
@click.option(
    "--skip-wireguard/--with-wireguard",
    default=False,
    help="Disable the optional WireGuard step for a full run",
)
@click.option("--force", is_flag=True, help="Re-run named steps even if already complete")
@click.option("--dry-run", is_flag=True, help="Log host changes instead of making them; no markers written")
@pass_app
@handle_errors
def run(app: AppContext, steps: Tuple[str, ...], skip_wireguard: bool, force: bool, dry_run: bool):
    """Run setup steps (all of them, in order, when none are named)."""
    pipeline = app.pipeline(dry_run=dry_run)

    if not steps:
        if force:
            raise click.UsageError("--force requires explicit step names")
        outcome = pipeline.run_all(skip={"wireguard"} if skip_wireguard else frozenset())
        _echo_summary(outcome)
        failed = outcome.failed
        if failed is not None:
            raise click.ClickException(f"setup aborted at {failed.name}: {failed.error}")
        return

    for name in steps:
        try:
            pipeline.get(name)
        except KeyError as e:
            raise click.BadParameter(e.args[0], param_hint="STEPS") from None

    for name in steps:
        result = pipeline.run_step(name, force=force)
        _echo_result(result)
        if result.error is not None:
            raise click.ClickException(f"step {name} failed: {result.error}")


@click.command()
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@pass_app
@handle_errors
def status(app: AppContext, as_json: bool):
    """Show completion state of every step."""
    state = app.pipeline().status()

    if as_json:
        click.echo(json.dumps({
            "completed": state.completed,
            "total": state.total,
            "steps": [
                {"name": s.name, "marker": s.marker_key, "complete": s.complete, "optional": s.optional}
                for s in state.steps
            ],
        }, indent=2))
        return

    app.reporter.header("Setup Status")
    for s in state.steps:
        mark = click.style("✓", fg="green") if s.complete else click.style("·", fg="white")
        suffix = " (optional)" if s.optional else ""
        click.echo(f"  [{mark}] {s.display_name}{suffix}")
    click.echo()
    click.echo(f"Progress: {state.completed}/{state.total} steps completed")


@click.command()
@click.confirmation_option(prompt="Clear all completion markers? Configuration is kept.")
@pass_app
@handle_errors
def reset(app: AppContext):
    """Clear every completion marker so all steps run again."""
    count = app.pipeline().reset()
    app.reporter.success(f"Cleared {count} completion marker(s)")
