"""
Tests for the routed public lookup and the tiered DNS diagnostic.
"""

import socket
from unittest.mock import MagicMock, patch

import dns.exception
import dns.resolver
import pytest

from homelab_setup.errors import TargetError
from homelab_setup.network.dns import DnsDiagnostic, public_lookup
from homelab_setup.network.models import DnsDiagnosisKind, DnsTier, TierOutcome


class TestPublicLookup:
    """Tests for the dnspython resolver routed at a single nameserver."""

    @pytest.fixture
    def resolver_cls(self):
        with patch("dns.resolver.Resolver") as cls:
            cls.return_value.resolve.return_value = [
                MagicMock(address="142.250.1.1"),
                MagicMock(address="142.250.1.2"),
            ]
            yield cls

    def test_ignores_system_configuration(self, resolver_cls):
        addresses = public_lookup("google.com", "8.8.8.8", 0.5)

        assert addresses == ["142.250.1.1", "142.250.1.2"]
        resolver_cls.assert_called_once_with(configure=False)
        routed = resolver_cls.return_value
        assert routed.nameservers == ["8.8.8.8"]
        assert routed.lifetime == 0.5
        routed.resolve.assert_called_once_with("google.com", "A", search=False)

    def test_errors_propagate(self, resolver_cls):
        resolver_cls.return_value.resolve.side_effect = dns.resolver.NXDOMAIN()
        with pytest.raises(dns.resolver.NXDOMAIN):
            public_lookup("nope.invalid", "8.8.8.8", 0.5)


@pytest.fixture
def resolv_conf(tmp_path):
    path = tmp_path / "resolv.conf"
    path.write_text("nameserver 127.0.0.53\noptions edns0\n")
    return path


def diagnostic(resolv_conf, system=None, tcp=None, lookup=None):
    return DnsDiagnostic(
        resolver="8.8.8.8",
        timeout_s=0.5,
        resolv_conf=str(resolv_conf),
        system_resolver=system or MagicMock(return_value=["142.250.1.1"]),
        tcp_connect=tcp or MagicMock(return_value=None),
        direct_lookup=lookup or MagicMock(return_value=["142.250.1.1"]),
    )


class TestDnsDiagnostic:
    """Tests for the tier sequence."""

    def test_direct_success_short_circuits(self, resolv_conf):
        tcp = MagicMock()
        lookup = MagicMock()

        diag = diagnostic(resolv_conf, tcp=tcp, lookup=lookup).diagnose("google.com")

        assert diag.tier is DnsTier.DIRECT
        assert diag.diagnosis is DnsDiagnosisKind.HEALTHY
        assert diag.addresses == ["142.250.1.1"]
        assert diag.latency is not None
        assert len(diag.reports) == 1
        tcp.assert_not_called()
        lookup.assert_not_called()

    def test_gateway_problem_when_resolver_unreachable(self, resolv_conf):
        system = MagicMock(side_effect=socket.gaierror(-3, "Temporary failure in name resolution"))
        tcp = MagicMock(side_effect=socket.timeout("timed out"))
        lookup = MagicMock()

        diag = diagnostic(resolv_conf, system=system, tcp=tcp, lookup=lookup).diagnose("google.com")

        assert diag.diagnosis is DnsDiagnosisKind.CONNECTIVITY
        assert diag.tier is DnsTier.PUBLIC_REACHABILITY
        assert [r.tier for r in diag.reports] == [
            DnsTier.DIRECT, DnsTier.RESOLVER_CONFIG, DnsTier.PUBLIC_REACHABILITY,
        ]
        assert diag.reports[-1].outcome is TierOutcome.FAILED
        tcp.assert_called_once_with("8.8.8.8", 53, 0.5)
        lookup.assert_not_called()

    def test_local_resolver_problem_confirmed_by_direct_lookup(self, resolv_conf):
        system = MagicMock(side_effect=socket.gaierror(-2, "Name or service not known"))

        diag = diagnostic(resolv_conf, system=system).diagnose("google.com")

        assert diag.diagnosis is DnsDiagnosisKind.LOCAL_RESOLVER
        assert diag.tier is DnsTier.PUBLIC_LOOKUP
        assert diag.confirmed
        assert diag.addresses == ["142.250.1.1"]
        assert [r.outcome for r in diag.reports] == [
            TierOutcome.FAILED, TierOutcome.INFO, TierOutcome.PASSED, TierOutcome.PASSED,
        ]

    @pytest.mark.parametrize("error,expected", [
        (dns.resolver.NXDOMAIN(), "NXDOMAIN"),
        (dns.resolver.NoAnswer(), "no A records"),
        (dns.exception.Timeout(), "no answer within 0.5s"),
        (dns.resolver.NoNameservers(), "failed"),
        (OSError("network is unreachable"), "network is unreachable"),
    ])
    def test_direct_lookup_failure_still_reported(self, resolv_conf, error, expected):
        system = MagicMock(side_effect=socket.gaierror(-2, "Name or service not known"))
        lookup = MagicMock(side_effect=error)

        diag = diagnostic(resolv_conf, system=system, lookup=lookup).diagnose("google.com")

        assert diag.diagnosis is DnsDiagnosisKind.LOCAL_RESOLVER
        assert diag.tier is DnsTier.PUBLIC_REACHABILITY
        assert not diag.confirmed
        assert diag.addresses == []
        assert diag.reports[-1].tier is DnsTier.PUBLIC_LOOKUP
        assert diag.reports[-1].outcome is TierOutcome.FAILED
        assert expected in diag.reports[-1].detail

    def test_empty_answer_not_confirmed(self, resolv_conf):
        system = MagicMock(side_effect=socket.gaierror(-2, "Name or service not known"))

        diag = diagnostic(resolv_conf, system=system, lookup=MagicMock(return_value=[])).diagnose("google.com")

        assert not diag.confirmed
        assert "no A records" in diag.reports[-1].detail

    def test_resolver_config_shown_as_info(self, resolv_conf):
        system = MagicMock(return_value=[])

        diag = diagnostic(resolv_conf, system=system).diagnose("google.com")

        config_report = diag.reports[1]
        assert config_report.tier is DnsTier.RESOLVER_CONFIG
        assert config_report.outcome is TierOutcome.INFO
        assert "nameserver 127.0.0.53" in config_report.detail

    def test_missing_resolv_conf_is_not_fatal(self, tmp_path):
        system = MagicMock(side_effect=socket.gaierror(-2, "fail"))

        diag = diagnostic(tmp_path / "absent.conf", system=system).diagnose("google.com")

        assert "could not read" in diag.reports[1].detail

    def test_malformed_hostname(self, resolv_conf):
        with pytest.raises(TargetError):
            diagnostic(resolv_conf).diagnose("bad host name")

    def test_resolver_must_be_ipv4(self):
        with pytest.raises(TargetError):
            DnsDiagnostic(resolver="dns.google")
