"""
Network diagnostics - the only part of homelab-setup that speaks wire
protocols directly.

Public API::

    from homelab_setup.network import (
        NetworkProbe,          # facade: ping / resolve_diagnostic / scan_ports
        Pinger,                # raw-socket ICMP echo
        DnsDiagnostic,         # tiered DNS fallback
        PortScanner,           # sequential TCP connect probe
        PingResult, DnsDiagnosis, PortResult,
        run_troubleshoot,
    )
"""

from homelab_setup.network.dns import DnsDiagnostic
from homelab_setup.network.icmp import Pinger
from homelab_setup.network.models import (
    DnsDiagnosis,
    DnsDiagnosisKind,
    DnsTier,
    PingResult,
    PortResult,
    PortState,
    TierOutcome,
    TierReport,
)
from homelab_setup.network.ports import DEFAULT_PORTS, PortScanner
from homelab_setup.network.probe import NetworkProbe
from homelab_setup.network.troubleshoot import TroubleshootReport, run_troubleshoot

__all__ = [
    "NetworkProbe",
    "Pinger",
    "DnsDiagnostic",
    "PortScanner",
    "DEFAULT_PORTS",
    # Result models
    "PingResult",
    "DnsDiagnosis",
    "DnsDiagnosisKind",
    "DnsTier",
    "TierOutcome",
    "TierReport",
    "PortResult",
    "PortState",
    # Suite
    "TroubleshootReport",
    "run_troubleshoot",
]
