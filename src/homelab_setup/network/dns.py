"""
Tiered DNS diagnostic.

Ordinary system resolution is tried first; if it works the diagnostic stops
there. Otherwise the fallback tiers run in order, each contributing a report
whether or not it is conclusive:

1. resolver_config      show /etc/resolv.conf as context (never pass/fail)
2. public_reachability  TCP connect to the public resolver's port 53;
                        unreachable means a gateway/connectivity problem,
                        reachable means the local resolver setup is broken
3. public_lookup        ask the public resolver for A records through a
                        dnspython Resolver that ignores resolv.conf, to
                        confirm that resolution works once routed correctly

System resolution has no in-process timeout; it is bounded by the resolver's
own ``options timeout:/attempts:``. Tiers 2 and 3 use ``timeout_s``.
"""

from __future__ import annotations

import logging
import socket
import time
from datetime import timedelta
from pathlib import Path
from typing import Callable, List, Tuple

import dns.exception
import dns.resolver

from homelab_setup import timeouts
from homelab_setup.errors import TargetError
from homelab_setup.network.models import (
    DnsDiagnosis,
    DnsDiagnosisKind,
    DnsTier,
    TierOutcome,
    TierReport,
)
from homelab_setup.network.targets import is_ipv4, validate_host

logger = logging.getLogger(__name__)

__all__ = [
    "DnsDiagnostic",
    "RESOLV_CONF",
    "public_lookup",
    "system_lookup",
    "tcp_reachable",
]

RESOLV_CONF = "/etc/resolv.conf"


def system_lookup(hostname: str) -> List[str]:
    """Resolve through the system resolver (nsswitch, resolv.conf); IPv4 only."""
    infos = socket.getaddrinfo(hostname, None, socket.AF_INET, socket.SOCK_STREAM)
    seen: List[str] = []
    for info in infos:
        address = info[4][0]
        if address not in seen:
            seen.append(address)
    return seen


def tcp_reachable(host: str, port: int, timeout_s: float) -> None:
    """Open and close a TCP connection; raises OSError on refusal or timeout."""
    with socket.create_connection((host, port), timeout=timeout_s):
        pass


def public_lookup(hostname: str, resolver: str, timeout_s: float) -> List[str]:
    """
    Resolve A records of ``hostname`` through ``resolver`` only.

    The resolver is built with ``configure=False`` so /etc/resolv.conf and
    search domains play no part.

    Raises:
        dns.exception.DNSException: NXDOMAIN, NoAnswer, Timeout and friends.
    """
    routed = dns.resolver.Resolver(configure=False)
    routed.nameservers = [resolver]
    routed.port = timeouts.DNS_PORT
    routed.timeout = timeout_s
    routed.lifetime = timeout_s
    answer = routed.resolve(hostname, "A", search=False)
    return [rdata.address for rdata in answer]


def _elapsed(start: float, clock: Callable[[], float]) -> timedelta:
    return timedelta(seconds=clock() - start)


class DnsDiagnostic:
    """
    Runs the tiered DNS diagnostic for one hostname.

    Example:
        diag = DnsDiagnostic(resolver="8.8.8.8").diagnose("google.com")
        if diag.tier is DnsTier.DIRECT:
            ...  # system DNS is fine, no fallback ran
    """

    def __init__(
        self,
        resolver: str = "8.8.8.8",
        timeout_s: float = timeouts.DNS_TIER_TIMEOUT_S,
        resolv_conf: str = RESOLV_CONF,
        system_resolver: Callable[[str], List[str]] = system_lookup,
        tcp_connect: Callable[[str, int, float], None] = tcp_reachable,
        direct_lookup: Callable[[str, str, float], List[str]] = public_lookup,
        clock: Callable[[], float] = time.monotonic,
    ):
        if not is_ipv4(resolver):
            raise TargetError("public resolver must be an IPv4 address", target=resolver)
        self.resolver = resolver
        self.timeout_s = timeout_s
        self.resolv_conf = Path(resolv_conf)
        self._system_resolver = system_resolver
        self._tcp_connect = tcp_connect
        self._direct_lookup = direct_lookup
        self._clock = clock

    def diagnose(self, hostname: str) -> DnsDiagnosis:
        """
        Run the tiers for ``hostname`` and return the narrative result.

        Raises:
            TargetError: If ``hostname`` is malformed.
        """
        hostname = validate_host(hostname)
        reports: List[TierReport] = []

        direct = self._tier_direct(hostname)
        reports.append(direct[0])
        if direct[1]:
            return DnsDiagnosis(
                hostname=hostname,
                resolver=self.resolver,
                tier=DnsTier.DIRECT,
                diagnosis=DnsDiagnosisKind.HEALTHY,
                addresses=direct[1],
                latency=direct[0].latency,
                confirmed=True,
                reports=reports,
            )

        reports.append(self._tier_resolver_config())

        reach = self._tier_public_reachability()
        reports.append(reach)
        if reach.outcome is TierOutcome.FAILED:
            return DnsDiagnosis(
                hostname=hostname,
                resolver=self.resolver,
                tier=DnsTier.PUBLIC_REACHABILITY,
                diagnosis=DnsDiagnosisKind.CONNECTIVITY,
                reports=reports,
            )

        lookup, addresses = self._tier_public_lookup(hostname)
        reports.append(lookup)
        confirmed = lookup.outcome is TierOutcome.PASSED
        return DnsDiagnosis(
            hostname=hostname,
            resolver=self.resolver,
            tier=DnsTier.PUBLIC_LOOKUP if confirmed else DnsTier.PUBLIC_REACHABILITY,
            diagnosis=DnsDiagnosisKind.LOCAL_RESOLVER,
            addresses=addresses,
            latency=lookup.latency if confirmed else None,
            confirmed=confirmed,
            reports=reports,
        )

    def _tier_direct(self, hostname: str) -> Tuple[TierReport, List[str]]:
        start = self._clock()
        try:
            addresses = self._system_resolver(hostname)
        except (OSError, UnicodeError) as exc:
            logger.debug("System resolution of %s failed: %s", hostname, exc)
            return TierReport(
                tier=DnsTier.DIRECT,
                outcome=TierOutcome.FAILED,
                detail=f"system resolution of {hostname} failed: {exc}",
                latency=_elapsed(start, self._clock),
            ), []

        latency = _elapsed(start, self._clock)
        if not addresses:
            return TierReport(
                tier=DnsTier.DIRECT,
                outcome=TierOutcome.FAILED,
                detail=f"system resolution of {hostname} returned no IPv4 addresses",
                latency=latency,
            ), []
        return TierReport(
            tier=DnsTier.DIRECT,
            outcome=TierOutcome.PASSED,
            detail=f"{hostname} -> {addresses[0]}",
            latency=latency,
        ), addresses

    def _tier_resolver_config(self) -> TierReport:
        try:
            content = self.resolv_conf.read_text(encoding="utf-8", errors="replace").strip()
        except OSError as exc:
            detail = f"could not read {self.resolv_conf}: {exc}"
        else:
            detail = content or f"{self.resolv_conf} is empty"
        return TierReport(tier=DnsTier.RESOLVER_CONFIG, outcome=TierOutcome.INFO, detail=detail)

    def _tier_public_reachability(self) -> TierReport:
        start = self._clock()
        try:
            self._tcp_connect(self.resolver, timeouts.DNS_PORT, self.timeout_s)
        except OSError as exc:
            return TierReport(
                tier=DnsTier.PUBLIC_REACHABILITY,
                outcome=TierOutcome.FAILED,
                detail=(
                    f"cannot reach {self.resolver}:{timeouts.DNS_PORT} ({exc}); "
                    "likely a gateway or internet connectivity issue"
                ),
                latency=_elapsed(start, self._clock),
            )
        return TierReport(
            tier=DnsTier.PUBLIC_REACHABILITY,
            outcome=TierOutcome.PASSED,
            detail=(
                f"reached {self.resolver}:{timeouts.DNS_PORT}; "
                "local DNS configuration is likely broken"
            ),
            latency=_elapsed(start, self._clock),
        )

    def _tier_public_lookup(self, hostname: str) -> Tuple[TierReport, List[str]]:
        start = self._clock()
        via = f"direct resolution via {self.resolver}"
        try:
            addresses = self._direct_lookup(hostname, self.resolver, self.timeout_s)
        except dns.resolver.NXDOMAIN:
            failure = f"{via} returned NXDOMAIN for {hostname}"
        except dns.resolver.NoAnswer:
            failure = f"{via} returned no A records for {hostname}"
        except dns.exception.Timeout:
            failure = f"{via} got no answer within {self.timeout_s}s"
        except (dns.exception.DNSException, OSError) as exc:
            failure = f"{via} failed: {exc}"
        else:
            failure = "" if addresses else f"{via} returned no A records for {hostname}"

        latency = _elapsed(start, self._clock)
        if failure:
            logger.debug("Public lookup tier failed: %s", failure)
            return TierReport(
                tier=DnsTier.PUBLIC_LOOKUP,
                outcome=TierOutcome.FAILED,
                detail=failure,
                latency=latency,
            ), []
        return TierReport(
            tier=DnsTier.PUBLIC_LOOKUP,
            outcome=TierOutcome.PASSED,
            detail=f"direct resolution via {self.resolver}: {hostname} -> {addresses[0]}",
            latency=latency,
        ), addresses
