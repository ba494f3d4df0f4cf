"""Validation and resolution of diagnostic targets (IPv4 only)."""

from __future__ import annotations

import ipaddress
import re
import socket

from homelab_setup.errors import TargetError

__all__ = ["validate_port", "validate_host", "resolve_ipv4", "is_ipv4"]

# RFC 1123 labels joined by dots
_HOSTNAME_RE = re.compile(
    r"^(?=.{1,253}$)(?!-)[A-Za-z0-9-]{1,63}(?<!-)(\.(?!-)[A-Za-z0-9-]{1,63}(?<!-))*\.?$"
)


def is_ipv4(value: str) -> bool:
    try:
        ipaddress.IPv4Address(value)
    except ValueError:
        return False
    return True


def validate_host(host: str) -> str:
    """Return ``host`` stripped, or raise TargetError if it is not an IPv4 address or hostname."""
    candidate = (host or "").strip()
    if not candidate:
        raise TargetError("target host is empty")
    if is_ipv4(candidate):
        return candidate
    if ":" in candidate:
        raise TargetError("IPv6 targets are not supported", target=candidate)
    if not _HOSTNAME_RE.match(candidate):
        raise TargetError("malformed target host", target=candidate)
    return candidate


def validate_port(port: int) -> int:
    try:
        value = int(port)
    except (TypeError, ValueError):
        raise TargetError("invalid port number", port=port) from None
    if not 1 <= value <= 65535:
        raise TargetError("port must be between 1 and 65535", port=value)
    return value


def resolve_ipv4(host: str) -> str:
    """
    Resolve ``host`` to a dotted-quad IPv4 address.

    Raises:
        TargetError: If the host is malformed or has no IPv4 address.
    """
    host = validate_host(host)
    if is_ipv4(host):
        return host
    try:
        return socket.gethostbyname(host)
    except (socket.gaierror, UnicodeError) as exc:
        raise TargetError("cannot resolve target to an IPv4 address", target=host, cause=exc) from exc
