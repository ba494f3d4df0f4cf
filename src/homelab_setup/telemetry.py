"""
OpenTelemetry helpers.

Steps run inside ``step:<name>`` spans and probes attach summary events to
whatever span is current. Without a configured provider the API's no-op
tracer is used, so nothing here requires a collector.

Usage::

    from homelab_setup.telemetry import add_span_event, get_tracer

    with get_tracer().start_as_current_span("step:preflight") as span:
        add_span_event("probe.ping", {"probe.packet_loss": 0.0})
"""

from __future__ import annotations

import logging
from typing import Dict, Union

from opentelemetry import trace as otel_trace

logger = logging.getLogger(__name__)

TRACER_NAME = "homelab_setup"

AttributeValue = Union[str, int, float, bool]

__all__ = ["TRACER_NAME", "add_span_event", "configure_tracing", "get_tracer", "shutdown_tracing"]


def get_tracer() -> otel_trace.Tracer:
    """Return the package tracer from the current global provider."""
    return otel_trace.get_tracer(TRACER_NAME)


def add_span_event(name: str, attributes: Dict[str, AttributeValue]) -> None:
    """Add an event to the current span if it is recording."""
    span = otel_trace.get_current_span()
    if span and span.is_recording():
        span.add_event(name=name, attributes=attributes)


def configure_tracing(endpoint: str, service_name: str = "homelab-setup") -> bool:
    """
    Install a global TracerProvider exporting to an OTLP gRPC endpoint.

    Args:
        endpoint: OTLP endpoint (e.g., localhost:4317)
        service_name: ``service.name`` resource attribute

    Returns:
        True if configuration succeeded, False otherwise
    """
    from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
    from opentelemetry.sdk.resources import Resource
    from opentelemetry.sdk.trace import TracerProvider
    from opentelemetry.sdk.trace.export import BatchSpanProcessor

    try:
        resource = Resource.create({
            "service.name": service_name,
            "service.namespace": "homelab",
        })
        provider = TracerProvider(resource=resource)
        provider.add_span_processor(
            BatchSpanProcessor(OTLPSpanExporter(endpoint=endpoint, insecure=True))
        )
        otel_trace.set_tracer_provider(provider)
    except Exception as e:
        logger.warning("Failed to configure OTLP tracing to %s: %s", endpoint, e)
        return False

    logger.debug("Tracing exported to %s", endpoint)
    return True


def shutdown_tracing() -> None:
    """Flush and shut down the global provider if it supports it."""
    provider = otel_trace.get_tracer_provider()
    if hasattr(provider, "force_flush"):
        provider.force_flush(timeout_millis=5000)
    if hasattr(provider, "shutdown"):
        provider.shutdown()
