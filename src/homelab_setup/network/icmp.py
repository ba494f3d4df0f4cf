"""
ICMP echo liveness probe over a raw IPv4 socket.

Wire format of an echo request / reply (RFC 792)::

    0        8        16                31
    +--------+--------+-----------------+
    |  type  |  code  |    checksum     |
    +--------+--------+-----------------+
    |   identifier    | sequence number |
    +-----------------+-----------------+
    |  payload ...                      |

A raw socket delivers replies with the IPv4 header in front; the header
length is taken from its IHL field. Replies are matched on type, identifier
and sequence number; anything else arriving on the socket is ignored while
the per-packet deadline runs.

Opening the socket needs CAP_NET_RAW (usually root). Lacking it raises
PrivilegeError, which is never folded into "host unreachable".
"""

from __future__ import annotations

import errno
import logging
import os
import socket
import struct
import time
from datetime import timedelta
from typing import Callable, List, Optional, Tuple

from homelab_setup import timeouts
from homelab_setup.errors import PrivilegeError
from homelab_setup.network.models import PingResult
from homelab_setup.network.targets import resolve_ipv4

logger = logging.getLogger(__name__)

__all__ = [
    "ICMP_ECHO_REQUEST",
    "ICMP_ECHO_REPLY",
    "PING_PAYLOAD",
    "Pinger",
    "build_echo_request",
    "checksum",
    "parse_echo_reply",
    "summarize",
]

ICMP_ECHO_REPLY = 0
ICMP_ECHO_REQUEST = 8
PING_PAYLOAD = b"homelab-setup-ping"

_HEADER = struct.Struct("!BBHHH")


def checksum(data: bytes) -> int:
    """RFC 1071 internet checksum."""
    if len(data) % 2:
        data += b"\x00"
    total = sum(struct.unpack(f"!{len(data) // 2}H", data))
    while total >> 16:
        total = (total & 0xFFFF) + (total >> 16)
    return ~total & 0xFFFF


def build_echo_request(identifier: int, sequence: int, payload: bytes = PING_PAYLOAD) -> bytes:
    """Encode an ICMP echo request with a valid checksum."""
    identifier &= 0xFFFF
    sequence &= 0xFFFF
    header = _HEADER.pack(ICMP_ECHO_REQUEST, 0, 0, identifier, sequence)
    csum = checksum(header + payload)
    return _HEADER.pack(ICMP_ECHO_REQUEST, 0, csum, identifier, sequence) + payload


def parse_echo_reply(packet: bytes) -> Optional[Tuple[int, int]]:
    """
    Decode ``(identifier, sequence)`` from an echo reply.

    Accepts the datagram with or without a leading IPv4 header. Returns None
    for anything that is not a well-formed echo reply.
    """
    if not packet:
        return None
    if packet[0] >> 4 == 4:
        ihl = (packet[0] & 0x0F) * 4
        if ihl < 20 or len(packet) < ihl:
            return None
        packet = packet[ihl:]
    if len(packet) < _HEADER.size:
        return None
    icmp_type, code, _csum, identifier, sequence = _HEADER.unpack_from(packet)
    if icmp_type != ICMP_ECHO_REPLY or code != 0:
        return None
    if checksum(packet) != 0:
        return None
    return identifier, sequence


def summarize(
    target: str,
    address: str,
    sent: int,
    latencies: List[float],
    unstable_latency_ms: float = timeouts.PING_UNSTABLE_LATENCY_MS,
) -> PingResult:
    """
    Build a PingResult from per-reply round-trip times in seconds.

    Loss is ``(sent - matched) / sent * 100``; the average is taken over
    matched replies only and is zero when nothing matched.
    """
    if sent < 1:
        raise ValueError("at least one echo request must be sent")
    matched = len(latencies)
    if matched > sent:
        raise ValueError(f"matched replies ({matched}) exceed requests sent ({sent})")

    loss = (sent - matched) / sent * 100.0
    avg = timedelta(seconds=sum(latencies) / matched) if matched else timedelta(0)
    unstable = loss > 0 or avg.total_seconds() * 1000.0 > unstable_latency_ms

    return PingResult(
        target=target,
        address=address,
        sent=sent,
        received=matched,
        packet_loss=loss,
        avg_latency=avg,
        latencies=[timedelta(seconds=s) for s in latencies],
        unstable=unstable,
    )


def _raw_icmp_socket() -> socket.socket:
    return socket.socket(socket.AF_INET, socket.SOCK_RAW, socket.IPPROTO_ICMP)


class Pinger:
    """
    Sends ICMP echo requests and times matching replies.

    Example:
        pinger = Pinger(timeout_s=1.0)
        result = pinger.ping("192.168.1.1", count=5)
        if result.unstable:
            ...
    """

    def __init__(
        self,
        timeout_s: float = timeouts.PING_TIMEOUT_S,
        interval_s: float = timeouts.PING_INTERVAL_S,
        unstable_latency_ms: float = timeouts.PING_UNSTABLE_LATENCY_MS,
        identifier: Optional[int] = None,
        socket_factory: Callable[[], socket.socket] = _raw_icmp_socket,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.timeout_s = timeout_s
        self.interval_s = interval_s
        self.unstable_latency_ms = unstable_latency_ms
        self.identifier = (os.getpid() if identifier is None else identifier) & 0xFFFF
        self._socket_factory = socket_factory
        self._clock = clock
        self._sleep = sleep

    def open_socket(self) -> socket.socket:
        """
        Open the raw ICMP socket.

        Raises:
            PrivilegeError: If the kernel refuses a raw socket to this process.
        """
        try:
            return self._socket_factory()
        except PermissionError as exc:
            raise PrivilegeError(
                "raw ICMP socket denied (root or CAP_NET_RAW required)", cause=exc
            ) from exc
        except OSError as exc:
            if exc.errno in (errno.EPERM, errno.EACCES):
                raise PrivilegeError(
                    "raw ICMP socket denied (root or CAP_NET_RAW required)", cause=exc
                ) from exc
            raise

    def ping(self, target: str, count: int = timeouts.PING_DEFAULT_COUNT) -> PingResult:
        """
        Send ``count`` echo requests to ``target``.

        Raises:
            PrivilegeError: If the raw socket cannot be opened.
            TargetError: If the target is malformed or does not resolve.
        """
        if count < 1:
            raise ValueError("count must be at least 1")

        sock = self.open_socket()
        try:
            address = resolve_ipv4(target)
            latencies: List[float] = []
            for seq in range(count):
                rtt = self._exchange(sock, address, seq)
                if rtt is not None:
                    latencies.append(rtt)
                if seq < count - 1:
                    self._sleep(self.interval_s)
        finally:
            sock.close()

        result = summarize(target, address, count, latencies, self.unstable_latency_ms)
        logger.debug(
            "Ping %s (%s): sent=%d received=%d loss=%.0f%% avg=%.1fms",
            target, address, result.sent, result.received,
            result.packet_loss, result.avg_latency_ms,
        )
        return result

    def _exchange(self, sock: socket.socket, address: str, seq: int) -> Optional[float]:
        """Send one request; return the RTT in seconds or None if no match arrived in time."""
        packet = build_echo_request(self.identifier, seq)
        start = self._clock()
        try:
            sock.sendto(packet, (address, 0))
        except OSError as exc:
            logger.debug("Echo request %d to %s not sent: %s", seq, address, exc)
            return None

        deadline = start + self.timeout_s
        expected = (self.identifier, seq & 0xFFFF)
        while True:
            remaining = deadline - self._clock()
            if remaining <= 0:
                return None
            sock.settimeout(remaining)
            try:
                data, source = sock.recvfrom(timeouts.ICMP_RECV_BUFFER)
            except socket.timeout:
                return None
            except OSError as exc:
                logger.debug("Receive failed while waiting for seq %d: %s", seq, exc)
                return None

            if source and source[0] != address:
                continue
            if parse_echo_reply(data) == expected:
                return self._clock() - start
