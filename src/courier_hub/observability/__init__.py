"""Observability module for tracing, metrics, and logging."""

from courier_hub.observability.logging import configure_logging, mask_secret
from courier_hub.observability.metrics import (
    MetricsRegistry,
    get_metrics_registry,
    record_bulk_order,
    record_courier_request,
    record_webhook_event,
)
from courier_hub.observability.tracing import (
    courier_span,
    get_tracer,
    traced,
)

__all__ = [
    # Tracing
    "get_tracer",
    "traced",
    "courier_span",
    # Metrics
    "MetricsRegistry",
    "get_metrics_registry",
    "record_courier_request",
    "record_webhook_event",
    "record_bulk_order",
    # Logging
    "configure_logging",
    "mask_secret",
]
