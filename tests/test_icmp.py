"""
Tests for the ICMP echo codec and Pinger.
"""

import errno
import socket
import struct

import pytest

from homelab_setup.errors import ErrorKind, PrivilegeError, TargetError, UnreachableError
from homelab_setup.network.icmp import (
    ICMP_ECHO_REQUEST,
    PING_PAYLOAD,
    Pinger,
    build_echo_request,
    checksum,
    parse_echo_reply,
    summarize,
)


def make_reply(identifier, sequence, payload=PING_PAYLOAD, ip_header=True):
    body = struct.pack("!BBHHH", 0, 0, 0, identifier, sequence) + payload
    csum = checksum(body)
    body = struct.pack("!BBHHH", 0, 0, csum, identifier, sequence) + payload
    if ip_header:
        # version 4, IHL 5 (20 bytes); the rest is irrelevant to the parser
        body = bytes([0x45]) + bytes(19) + body
    return body


class FakeIcmpSocket:
    """Replays queued ``(packet, source)`` pairs; None means a receive timeout."""

    def __init__(self, replies):
        self.replies = list(replies)
        self.sent = []
        self.closed = False

    def sendto(self, packet, address):
        self.sent.append((packet, address))

    def settimeout(self, value):
        pass

    def recvfrom(self, bufsize):
        if not self.replies:
            raise socket.timeout("timed out")
        item = self.replies.pop(0)
        if item is None:
            raise socket.timeout("timed out")
        return item

    def close(self):
        self.closed = True


class StepClock:
    def __init__(self, step):
        self.now = 0.0
        self.step = step

    def __call__(self):
        self.now += self.step
        return self.now


class TestCodec:
    """Tests for checksum and echo encoding/decoding."""

    def test_checksum_rfc1071_example(self):
        assert checksum(bytes.fromhex("0001f203f4f5f6f7")) == 0x220D

    def test_checksum_pads_odd_length(self):
        assert checksum(b"\x01") == checksum(b"\x01\x00")

    def test_echo_request_layout(self):
        packet = build_echo_request(0x1234, 7)

        icmp_type, code, _csum, ident, seq = struct.unpack_from("!BBHHH", packet)
        assert (icmp_type, code, ident, seq) == (ICMP_ECHO_REQUEST, 0, 0x1234, 7)
        assert packet.endswith(PING_PAYLOAD)
        assert checksum(packet) == 0

    def test_parse_reply_with_ip_header(self):
        assert parse_echo_reply(make_reply(0x1234, 3)) == (0x1234, 3)

    def test_parse_reply_without_ip_header(self):
        assert parse_echo_reply(make_reply(0x1234, 3, ip_header=False)) == (0x1234, 3)

    def test_request_is_not_a_reply(self):
        assert parse_echo_reply(build_echo_request(0x1234, 3)) is None

    def test_bad_checksum_rejected(self):
        packet = bytearray(make_reply(0x1234, 3))
        packet[-1] ^= 0xFF
        assert parse_echo_reply(bytes(packet)) is None

    @pytest.mark.parametrize("packet", [b"", b"\x45" + bytes(10), b"\x00\x00\x00"])
    def test_truncated_packets_rejected(self, packet):
        assert parse_echo_reply(packet) is None


class TestSummarize:
    """Tests for loss and latency arithmetic."""

    def test_all_replies(self):
        result = summarize("gw", "192.168.1.1", 4, [0.010, 0.020, 0.030, 0.040])

        assert result.packet_loss == 0.0
        assert result.avg_latency_ms == pytest.approx(25.0)
        assert not result.unstable
        assert result.reachable

    def test_partial_loss_averages_matched_only(self):
        result = summarize("gw", "192.168.1.1", 5, [0.010, 0.030])

        assert result.received == 2
        assert result.packet_loss == pytest.approx(60.0)
        assert result.avg_latency_ms == pytest.approx(20.0)
        assert result.unstable

    def test_no_replies(self):
        result = summarize("gw", "192.168.1.1", 3, [])

        assert result.packet_loss == 100.0
        assert result.avg_latency.total_seconds() == 0
        assert result.unstable
        with pytest.raises(UnreachableError) as exc_info:
            result.require_reachable()
        assert exc_info.value.kind is ErrorKind.UNREACHABLE

    def test_high_latency_without_loss_is_unstable(self):
        result = summarize("vps", "64.23.212.68", 2, [0.150, 0.170])
        assert result.packet_loss == 0.0
        assert result.unstable

    def test_threshold_is_configurable(self):
        assert not summarize("vps", "1.2.3.4", 1, [0.150], unstable_latency_ms=200).unstable

    def test_zero_sent_rejected(self):
        with pytest.raises(ValueError):
            summarize("gw", "192.168.1.1", 0, [])

    def test_more_matches_than_sent_rejected(self):
        with pytest.raises(ValueError):
            summarize("gw", "192.168.1.1", 1, [0.01, 0.02])


class TestPinger:
    """Tests for the send/match loop against a fake raw socket."""

    def _pinger(self, sock, clock=None, sleeps=None):
        kwargs = {}
        if clock is not None:
            kwargs["clock"] = clock
        return Pinger(
            timeout_s=1.0,
            interval_s=0.2,
            identifier=0x4242,
            socket_factory=lambda: sock,
            sleep=(sleeps.append if sleeps is not None else (lambda s: None)),
            **kwargs,
        )

    def test_all_replies_matched(self):
        sock = FakeIcmpSocket([(make_reply(0x4242, seq), ("127.0.0.1", 0)) for seq in range(3)])

        result = self._pinger(sock).ping("127.0.0.1", count=3)

        assert result.sent == 3
        assert result.received == 3
        assert result.packet_loss == 0.0
        assert result.address == "127.0.0.1"
        assert sock.closed

    def test_non_matching_replies_ignored(self):
        sock = FakeIcmpSocket([
            (make_reply(0x9999, 0), ("127.0.0.1", 0)),   # another process's ping
            (make_reply(0x4242, 5), ("127.0.0.1", 0)),   # wrong sequence
            (make_reply(0x4242, 0), ("127.0.0.1", 0)),
            None,                                         # seq 1 lost
            (make_reply(0x4242, 2), ("10.9.9.9", 0)),    # wrong source
            (make_reply(0x4242, 2), ("127.0.0.1", 0)),
        ])

        result = self._pinger(sock).ping("127.0.0.1", count=3)

        assert result.received == 2
        assert result.packet_loss == pytest.approx(100 / 3)
        assert result.unstable
        assert 0 <= result.received <= result.sent

    def test_sequence_numbers_increase_from_zero(self):
        sock = FakeIcmpSocket([])
        self._pinger(sock).ping("127.0.0.1", count=3)

        sequences = [struct.unpack_from("!BBHHH", packet)[4] for packet, _ in sock.sent]
        identifiers = {struct.unpack_from("!BBHHH", packet)[3] for packet, _ in sock.sent}
        assert sequences == [0, 1, 2]
        assert identifiers == {0x4242}
        assert all(address == ("127.0.0.1", 0) for _, address in sock.sent)

    def test_total_silence_is_a_result_not_an_error(self):
        result = self._pinger(FakeIcmpSocket([])).ping("127.0.0.1", count=2)
        assert result.received == 0
        assert result.packet_loss == 100.0

    def test_sleeps_between_sends_only(self):
        sleeps = []
        self._pinger(FakeIcmpSocket([]), sleeps=sleeps).ping("127.0.0.1", count=4)
        assert sleeps == [0.2, 0.2, 0.2]

    def test_latency_measured_with_clock(self):
        sock = FakeIcmpSocket([(make_reply(0x4242, 0), ("127.0.0.1", 0))])

        # start, deadline check, reply: two 100ms ticks
        result = self._pinger(sock, clock=StepClock(0.1)).ping("127.0.0.1", count=1)

        assert result.avg_latency_ms == pytest.approx(200.0)
        assert result.unstable

    def test_permission_error_is_privilege_error(self):
        def denied():
            raise PermissionError(errno.EPERM, "Operation not permitted")

        pinger = Pinger(socket_factory=denied)
        with pytest.raises(PrivilegeError) as exc_info:
            pinger.ping("127.0.0.1", count=1)
        assert exc_info.value.kind is ErrorKind.PRIVILEGE

    def test_eacces_is_privilege_error(self):
        def denied():
            raise OSError(errno.EACCES, "Permission denied")

        with pytest.raises(PrivilegeError):
            Pinger(socket_factory=denied).open_socket()

    def test_other_socket_errors_propagate(self):
        def exhausted():
            raise OSError(errno.EMFILE, "Too many open files")

        with pytest.raises(OSError) as exc_info:
            Pinger(socket_factory=exhausted).open_socket()
        assert not isinstance(exc_info.value, PrivilegeError)

    def test_malformed_target(self):
        sock = FakeIcmpSocket([])
        with pytest.raises(TargetError):
            self._pinger(sock).ping("not a host!", count=1)
        assert sock.closed
