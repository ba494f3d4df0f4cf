"""homelab-setup troubleshoot [all|ping|dns|ports]."""

from __future__ import annotations

from typing import Optional

import click

from homelab_setup.cli.app import AppContext, handle_errors, pass_app
from homelab_setup.network.troubleshoot import CHECKS, run_troubleshoot


@click.command()
@click.argument("check", type=click.Choice(("all",) + CHECKS), default="all")
@click.option("--target", help="Override the host for a single check")
@click.option("--count", type=click.IntRange(1, 100), help="ICMP echo requests to send")
@pass_app
@handle_errors
def troubleshoot(app: AppContext, check: str, target: Optional[str], count: Optional[int]):
    """
    Network diagnostics: ICMP stability, tiered DNS and port reachability.

    The ping check opens a raw socket and needs root.
    """
    if target and check == "all":
        raise click.UsageError("--target applies to a single check (ping, dns or ports)")

    s = app.settings
    report = run_troubleshoot(
        app.probe,
        app.reporter,
        ping_target=target if check == "ping" and target else s.file_server_host,
        dns_hostname=target if check == "dns" and target else s.dns_test_host,
        scan_host=target if check == "ports" and target else s.vps_host,
        checks=CHECKS if check == "all" else (check,),
        ping_count=count,
    )
    click.echo()
    if report.healthy:
        app.reporter.success("Troubleshooting complete: no problems found")
    else:
        app.reporter.warning("Troubleshooting complete: see findings above")
