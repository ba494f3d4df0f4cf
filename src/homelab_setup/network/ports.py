"""TCP port reachability probe."""

from __future__ import annotations

import logging
import socket
from typing import Callable, List, Sequence, Tuple

from homelab_setup import timeouts
from homelab_setup.network.models import PortResult, PortState
from homelab_setup.network.targets import validate_host, validate_port

logger = logging.getLogger(__name__)

__all__ = ["DEFAULT_PORTS", "PortScanner"]

# (port, service label) pairs probed on the VPS by default
DEFAULT_PORTS: Tuple[Tuple[int, str], ...] = (
    (80, "HTTP (NPM)"),
    (443, "HTTPS (NPM)"),
    (9000, "Portainer"),
    (9443, "Portainer (SSL)"),
)


def _connect(host: str, port: int, timeout_s: float) -> None:
    with socket.create_connection((host, port), timeout=timeout_s):
        pass


class PortScanner:
    """
    Sequential connect() probe over a fixed list of ports.

    A completed handshake is reported open; refusal, timeout and any other
    socket error are all reported closed/filtered.
    """

    def __init__(
        self,
        timeout_s: float = timeouts.PORT_PROBE_TIMEOUT_S,
        connect: Callable[[str, int, float], None] = _connect,
    ):
        self.timeout_s = timeout_s
        self._connect = connect

    def probe(self, host: str, port: int, service: str = "") -> PortResult:
        """Probe a single port. Never raises for network failure."""
        try:
            self._connect(host, port, self.timeout_s)
        except OSError as exc:
            detail = str(exc) or type(exc).__name__
            logger.debug("Port %s:%d closed/filtered: %s", host, port, detail)
            return PortResult(
                host=host, port=port, service=service,
                state=PortState.CLOSED_FILTERED, detail=detail,
            )
        return PortResult(host=host, port=port, service=service, state=PortState.OPEN)

    def scan(
        self,
        host: str,
        ports: Sequence[Tuple[int, str]] = DEFAULT_PORTS,
    ) -> List[PortResult]:
        """
        Probe each ``(port, service)`` pair in order.

        Raises:
            TargetError: If the host or any port is malformed. Validation
                happens before any connection is attempted.
        """
        host = validate_host(host)
        checked = [(validate_port(port), service) for port, service in ports]
        return [self.probe(host, port, service) for port, service in checked]
