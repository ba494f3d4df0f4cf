"""
homelab-setup CLI - provision a homelab host step by step.

Commands:
    homelab-setup run            Run setup steps (all, or the ones named)
    homelab-setup status         Show step completion
    homelab-setup reset          Clear completion markers
    homelab-setup config         Read/edit the configuration file
    homelab-setup markers        Inspect/edit completion markers
    homelab-setup troubleshoot   Network diagnostics
"""

from typing import Optional

import click
from pydantic import ValidationError

from homelab_setup import __version__
from homelab_setup.cli.app import AppContext
from homelab_setup.cli.config import config
from homelab_setup.cli.markers import markers
from homelab_setup.cli.setup import reset, run, status
from homelab_setup.cli.troubleshoot import troubleshoot
from homelab_setup.logger import configure_logging
from homelab_setup.settings import load_settings
from homelab_setup.telemetry import configure_tracing, shutdown_tracing
from homelab_setup.ui import ConsoleReporter


@click.group()
@click.version_option(version=__version__, prog_name="homelab-setup")
@click.option("--config", "config_path", help="Configuration file path")
@click.option("--marker-dir", help="Completion marker directory")
@click.option(
    "--log-level",
    type=click.Choice(["debug", "info", "warning", "error"]),
    help="Logging level",
)
@click.option("--log-format", type=click.Choice(["text", "json"]), help="Log output format")
@click.option("--otlp-endpoint", help="Export step traces to this OTLP gRPC endpoint")
@click.option("--quiet", "-q", is_flag=True, help="Only show results, warnings and errors")
@click.pass_context
def main(
    ctx: click.Context,
    config_path: Optional[str],
    marker_dir: Optional[str],
    log_level: Optional[str],
    log_format: Optional[str],
    otlp_endpoint: Optional[str],
    quiet: bool,
):
    """homelab-setup - idempotent provisioning and network diagnostics."""
    try:
        settings = load_settings(
            config_path=config_path,
            marker_dir=marker_dir,
            log_level=log_level,
            log_format=log_format,
            otlp_endpoint=otlp_endpoint,
        )
    except ValidationError as e:
        raise click.ClickException(f"Invalid settings:\n{e}") from e

    configure_logging(settings.log_level, settings.log_format, settings.log_file)
    if settings.otlp_endpoint and configure_tracing(settings.otlp_endpoint):
        ctx.call_on_close(shutdown_tracing)

    ctx.obj = AppContext(settings, ConsoleReporter(quiet=quiet))


# Setup commands
main.add_command(run)
main.add_command(status)
main.add_command(reset)

# Configuration and markers
main.add_command(config)
main.add_command(markers)

# Diagnostics
main.add_command(troubleshoot)


if __name__ == "__main__":
    main()
