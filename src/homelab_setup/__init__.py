"""
homelab-setup - Idempotent provisioning for a single homelab host.

Brings a bare rpm-ostree host to a configured end state through ordered,
resumable setup steps, and diagnoses network trouble at the protocol level.

Key Features:
- KEY=value configuration store with crash-safe atomic writes
- Per-step completion markers (re-runs are no-ops, legacy names migrate)
- Step pipeline with fatal vs. warning classification
- Raw ICMP, tiered DNS and TCP port diagnostics

Example usage:
    from homelab_setup import ConfigStore, MarkerStore, NetworkProbe

    config = ConfigStore("~/.homelab-setup.conf")
    config.set("TZ", "Europe/London")

    probe = NetworkProbe()
    result = probe.ping("192.168.1.1")
    # result.packet_loss, result.avg_latency, result.unstable
"""

__version__ = "0.1.0"
__all__ = [
    "ConfigStore",
    "MarkerStore",
    "NetworkProbe",
    "StepPipeline",
    "__version__",
]


# Lazy imports to avoid loading click/OTel at import time
def __getattr__(name: str):
    if name == "ConfigStore":
        from homelab_setup.storage import ConfigStore
        return ConfigStore
    if name == "MarkerStore":
        from homelab_setup.storage import MarkerStore
        return MarkerStore
    if name == "NetworkProbe":
        from homelab_setup.network import NetworkProbe
        return NetworkProbe
    if name == "StepPipeline":
        from homelab_setup.pipeline import StepPipeline
        return StepPipeline
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
