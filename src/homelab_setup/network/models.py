"""
Result models for network diagnostics.

Probes always return one of these, even when nothing answered; exceptions
are reserved for being unable to attempt the probe at all.
"""

from __future__ import annotations

from datetime import timedelta
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, computed_field

from homelab_setup.errors import UnreachableError

__all__ = [
    "PingResult",
    "DnsTier",
    "DnsDiagnosisKind",
    "TierOutcome",
    "TierReport",
    "DnsDiagnosis",
    "PortState",
    "PortResult",
]


# ---------------------------------------------------------------------------
# ICMP
# ---------------------------------------------------------------------------


class PingResult(BaseModel):
    """Outcome of one ICMP echo run."""

    model_config = ConfigDict(extra="forbid")

    target: str
    address: str
    sent: int = Field(..., ge=0)
    received: int = Field(..., ge=0)
    packet_loss: float = Field(..., ge=0.0, le=100.0, description="percent")
    avg_latency: timedelta = Field(default=timedelta(0))
    latencies: List[timedelta] = Field(default_factory=list)
    unstable: bool

    @computed_field  # type: ignore[misc]
    @property
    def avg_latency_ms(self) -> float:
        return self.avg_latency.total_seconds() * 1000.0

    @property
    def reachable(self) -> bool:
        return self.received > 0

    def require_reachable(self) -> "PingResult":
        """Return self, or raise if not a single reply matched."""
        if not self.reachable:
            raise UnreachableError(
                "no echo replies received",
                target=self.target,
                address=self.address,
                sent=self.sent,
            )
        return self


# ---------------------------------------------------------------------------
# DNS
# ---------------------------------------------------------------------------


class DnsTier(str, Enum):
    """Fallback level that produced the diagnosis."""
    DIRECT = "direct"
    RESOLVER_CONFIG = "resolver_config"
    PUBLIC_REACHABILITY = "public_reachability"
    PUBLIC_LOOKUP = "public_lookup"


class DnsDiagnosisKind(str, Enum):
    HEALTHY = "healthy"
    CONNECTIVITY = "connectivity"
    LOCAL_RESOLVER = "local_resolver"


class TierOutcome(str, Enum):
    PASSED = "passed"
    FAILED = "failed"
    INFO = "info"


class TierReport(BaseModel):
    """What one tier observed, reported even when inconclusive."""

    model_config = ConfigDict(extra="forbid")

    tier: DnsTier
    outcome: TierOutcome
    detail: str = ""
    latency: Optional[timedelta] = None


class DnsDiagnosis(BaseModel):
    """Narrative result of the tiered DNS diagnostic."""

    model_config = ConfigDict(extra="forbid")

    hostname: str
    resolver: str
    tier: DnsTier
    diagnosis: DnsDiagnosisKind
    addresses: List[str] = Field(default_factory=list)
    latency: Optional[timedelta] = None
    confirmed: bool = Field(
        default=False,
        description="Routed lookup through the public resolver succeeded",
    )
    reports: List[TierReport] = Field(default_factory=list)

    @property
    def resolved(self) -> bool:
        return self.diagnosis == DnsDiagnosisKind.HEALTHY


# ---------------------------------------------------------------------------
# TCP ports
# ---------------------------------------------------------------------------


class PortState(str, Enum):
    OPEN = "open"
    # Refused and timed out are not told apart; neither is reliable across paths
    CLOSED_FILTERED = "closed/filtered"


class PortResult(BaseModel):
    model_config = ConfigDict(extra="forbid")

    host: str
    port: int = Field(..., ge=1, le=65535)
    service: str = ""
    state: PortState
    detail: str = ""

    @property
    def is_open(self) -> bool:
        return self.state == PortState.OPEN
