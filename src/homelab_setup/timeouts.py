"""
Timeout, retry and policy constants for homelab-setup.

Centralizes timeout values so that every network operation has an explicit
bound and the diagnostic phase terminates even under total network failure.
"""

from __future__ import annotations

# =============================================================================
# ICMP
# =============================================================================

# Echo requests sent per ping run
PING_DEFAULT_COUNT = 5

# Per-packet wait for a matching echo reply
PING_TIMEOUT_S = 1.0

# Delay between consecutive echo requests
PING_INTERVAL_S = 0.2

# Average round-trip above this marks the link unstable (policy, not protocol)
PING_UNSTABLE_LATENCY_MS = 100.0

# Receive buffer for a single ICMP datagram (IPv4 header included)
ICMP_RECV_BUFFER = 1500

# =============================================================================
# DNS
# =============================================================================

# Per-tier timeout (TCP reachability and direct resolver lookup)
DNS_TIER_TIMEOUT_S = 2.0

DNS_PORT = 53

# =============================================================================
# TCP port probe
# =============================================================================

PORT_PROBE_TIMEOUT_S = 2.0

# =============================================================================
# Subprocess
# =============================================================================

# Package manager and service manager calls
SUBPROCESS_DEFAULT_TIMEOUT_S = 300

# Quick queries (rpm -q, systemctl is-active, id)
SUBPROCESS_QUERY_TIMEOUT_S = 30

# Connectivity check via the system ping binary
CONNECTIVITY_CHECK_TIMEOUT_S = 3
