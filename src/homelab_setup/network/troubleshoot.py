"""
Network troubleshooting suite.

Runs the three diagnostics against the homelab's known hosts and narrates
each outcome to the operator:

1. Network instability  ICMP to the file server
2. DNS diagnostics      tiered resolution of a well-known name
3. Port scanning        service ports on the VPS

A failure to attempt one check (no raw-socket privilege, bad target) is
reported and the suite moves on to the next check.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import List, Optional, Sequence

from homelab_setup.errors import PrivilegeError, SetupError
from homelab_setup.network.models import (
    DnsDiagnosis,
    DnsDiagnosisKind,
    PingResult,
    PortResult,
    TierOutcome,
)
from homelab_setup.network.probe import NetworkProbe
from homelab_setup.ui import Reporter

logger = logging.getLogger(__name__)

__all__ = ["CHECKS", "TroubleshootReport", "run_troubleshoot"]

CHECKS = ("ping", "dns", "ports")


@dataclass
class TroubleshootReport:
    ping: Optional[PingResult] = None
    dns: Optional[DnsDiagnosis] = None
    ports: List[PortResult] = field(default_factory=list)
    errors: List[SetupError] = field(default_factory=list)

    @property
    def healthy(self) -> bool:
        ping_ok = self.ping is None or not self.ping.unstable
        dns_ok = self.dns is None or self.dns.diagnosis == DnsDiagnosisKind.HEALTHY
        return ping_ok and dns_ok and not self.errors


def _check_ping(probe: NetworkProbe, ui: Reporter, target: str, count: Optional[int]) -> PingResult:
    ui.step(f"Network Instability Check (Target: {target})")
    ui.info("Sending ICMP packets...")
    res = probe.ping(target, count)
    ui.info(f"  Packet Loss: {res.packet_loss:.0f}%")
    ui.info(f"  Avg Latency: {res.avg_latency_ms:.1f}ms")
    if res.unstable:
        ui.warning("  Status: UNSTABLE (Loss > 0% or Latency > 100ms)")
    else:
        ui.success("  Status: STABLE")
    return res


def _check_dns(probe: NetworkProbe, ui: Reporter, hostname: str) -> DnsDiagnosis:
    ui.step(f"DNS Diagnostics (Target: {hostname})")
    diag = probe.resolve_diagnostic(hostname)

    direct, fallbacks = diag.reports[0], diag.reports[1:]
    if direct.outcome is TierOutcome.PASSED:
        latency = direct.latency.total_seconds() * 1000 if direct.latency else 0.0
        ui.success(f"  Resolution successful: {direct.detail} ({latency:.1f}ms)")
        return diag

    ui.error("  Resolution failed!")
    ui.info(f"  {direct.detail}")
    ui.info("  Starting tiered diagnostics...")
    for number, report in enumerate(fallbacks, start=1):
        ui.info(f"  [Tier {number}] {report.tier.value.replace('_', ' ')}:")
        if report.outcome is TierOutcome.INFO:
            ui.print("\n".join(f"    {line}" for line in report.detail.splitlines()))
        elif report.outcome is TierOutcome.PASSED:
            ui.success(f"    {report.detail}")
        else:
            ui.warning(f"    {report.detail}")

    if diag.diagnosis == DnsDiagnosisKind.CONNECTIVITY:
        ui.error("  Diagnosis: gateway / internet connectivity problem")
    else:
        suffix = "confirmed by direct lookup" if diag.confirmed else "direct lookup inconclusive"
        ui.warning(f"  Diagnosis: local resolver misconfiguration ({suffix})")
    return diag


def _check_ports(probe: NetworkProbe, ui: Reporter, host: str) -> List[PortResult]:
    ui.step(f"Port Scanning (Target: {host})")
    results = probe.scan_ports(host)
    for r in results:
        line = f"  {r.service:<15} : {r.state.value.upper()} ({r.port})"
        if r.is_open:
            ui.success(line)
        else:
            ui.info(f"{line} - {r.detail}")
    return results


def run_troubleshoot(
    probe: NetworkProbe,
    ui: Reporter,
    ping_target: str,
    dns_hostname: str,
    scan_host: str,
    checks: Sequence[str] = CHECKS,
    ping_count: Optional[int] = None,
) -> TroubleshootReport:
    """
    Run the selected checks in order, reporting each.

    Args:
        probe: Configured NetworkProbe
        ui: Operator reporter
        ping_target: Host for the ICMP instability check
        dns_hostname: Name for the DNS diagnostic
        scan_host: Host for the port scan
        checks: Subset of ``CHECKS`` to run
        ping_count: Override the probe's echo count

    Returns:
        TroubleshootReport with whatever each check produced.
    """
    unknown = set(checks) - set(CHECKS)
    if unknown:
        raise ValueError(f"unknown checks: {', '.join(sorted(unknown))}")

    ui.header("Network Troubleshooting Suite")
    report = TroubleshootReport()

    if "ping" in checks:
        try:
            report.ping = _check_ping(probe, ui, ping_target, ping_count)
        except PrivilegeError as exc:
            ui.error(f"Ping requires root: {exc}")
            ui.info("Re-run with sudo to enable the ICMP check")
            report.errors.append(exc)
        except SetupError as exc:
            ui.error(f"Ping failed: {exc}")
            report.errors.append(exc)

    if "dns" in checks:
        try:
            report.dns = _check_dns(probe, ui, dns_hostname)
        except SetupError as exc:
            ui.error(f"DNS diagnostic failed: {exc}")
            report.errors.append(exc)

    if "ports" in checks:
        try:
            report.ports = _check_ports(probe, ui, scan_host)
        except SetupError as exc:
            ui.error(f"Port scan failed: {exc}")
            report.errors.append(exc)

    for exc in report.errors:
        logger.warning("Troubleshooting check could not run: %s", exc)
    return report
