"""
NetworkProbe - single entry point for the three diagnostics.

Each call records a summary span event (``probe.ping``, ``probe.dns``,
``probe.ports``) on the current span.
"""

from __future__ import annotations

import logging
from typing import List, Optional, Sequence, Tuple

from homelab_setup import timeouts
from homelab_setup.network.dns import DnsDiagnostic
from homelab_setup.network.icmp import Pinger
from homelab_setup.network.models import DnsDiagnosis, PingResult, PortResult
from homelab_setup.network.ports import DEFAULT_PORTS, PortScanner
from homelab_setup.telemetry import add_span_event

logger = logging.getLogger(__name__)

__all__ = ["NetworkProbe"]


class NetworkProbe:
    """
    Facade over Pinger, DnsDiagnostic and PortScanner.

    Example:
        probe = NetworkProbe(public_resolver="8.8.8.8")
        probe.ping("192.168.1.1", count=3)
        probe.resolve_diagnostic("google.com")
        probe.scan_ports("64.23.212.68")
    """

    def __init__(
        self,
        public_resolver: str = "8.8.8.8",
        ping_count: int = timeouts.PING_DEFAULT_COUNT,
        ping_timeout_s: float = timeouts.PING_TIMEOUT_S,
        ping_interval_s: float = timeouts.PING_INTERVAL_S,
        unstable_latency_ms: float = timeouts.PING_UNSTABLE_LATENCY_MS,
        port_timeout_s: float = timeouts.PORT_PROBE_TIMEOUT_S,
        dns_timeout_s: float = timeouts.DNS_TIER_TIMEOUT_S,
        pinger: Optional[Pinger] = None,
        dns: Optional[DnsDiagnostic] = None,
        scanner: Optional[PortScanner] = None,
    ):
        self.ping_count = ping_count
        self.pinger = pinger or Pinger(
            timeout_s=ping_timeout_s,
            interval_s=ping_interval_s,
            unstable_latency_ms=unstable_latency_ms,
        )
        self.dns = dns or DnsDiagnostic(resolver=public_resolver, timeout_s=dns_timeout_s)
        self.scanner = scanner or PortScanner(timeout_s=port_timeout_s)

    @classmethod
    def from_settings(cls, settings) -> "NetworkProbe":
        """Build from a HomelabSettings instance."""
        return cls(
            public_resolver=settings.public_resolver,
            ping_count=settings.ping_count,
            ping_timeout_s=settings.ping_timeout_s,
            ping_interval_s=settings.ping_interval_s,
            unstable_latency_ms=settings.unstable_latency_ms,
            port_timeout_s=settings.port_timeout_s,
            dns_timeout_s=settings.dns_timeout_s,
        )

    @property
    def public_resolver(self) -> str:
        return self.dns.resolver

    def ping(self, target: str, count: Optional[int] = None) -> PingResult:
        """ICMP liveness probe. Raises PrivilegeError / TargetError only."""
        result = self.pinger.ping(target, self.ping_count if count is None else count)
        add_span_event("probe.ping", {
            "probe.target": result.target,
            "probe.address": result.address,
            "probe.sent": result.sent,
            "probe.received": result.received,
            "probe.packet_loss": result.packet_loss,
            "probe.avg_latency_ms": result.avg_latency_ms,
            "probe.unstable": result.unstable,
        })
        return result

    def resolve_diagnostic(self, hostname: str) -> DnsDiagnosis:
        """Tiered DNS diagnostic. Raises TargetError only."""
        diagnosis = self.dns.diagnose(hostname)
        add_span_event("probe.dns", {
            "probe.hostname": diagnosis.hostname,
            "probe.resolver": diagnosis.resolver,
            "probe.tier": diagnosis.tier.value,
            "probe.diagnosis": diagnosis.diagnosis.value,
            "probe.confirmed": diagnosis.confirmed,
            "probe.tiers_run": len(diagnosis.reports),
        })
        return diagnosis

    def scan_ports(
        self,
        host: str,
        ports: Sequence[Tuple[int, str]] = DEFAULT_PORTS,
    ) -> List[PortResult]:
        """Port reachability probe. Raises TargetError only."""
        results = self.scanner.scan(host, ports)
        add_span_event("probe.ports", {
            "probe.host": host,
            "probe.ports_scanned": len(results),
            "probe.ports_open": sum(1 for r in results if r.is_open),
        })
        return results
