"""OpenTelemetry metrics definitions and recording."""

import logging
from typing import Any

from opentelemetry import metrics

logger = logging.getLogger(__name__)

# Global metrics registry
_metrics_registry: "MetricsRegistry | None" = None


class MetricsRegistry:
    """
    Registry for OpenTelemetry metrics.

    Provides pre-defined metrics for the courier hub:
    - Courier API call metrics (latency, count, outcome)
    - Webhook ingestion metrics (verified vs unverified)
    - Bulk assignment metrics
    """

    def __init__(self, meter_name: str = "courier_hub") -> None:
        self._meter = metrics.get_meter(meter_name)
        self._instruments: dict[str, Any] = {}
        self._create_instruments()

    def _create_instruments(self) -> None:
        """Create all metric instruments."""
        self._instruments["courier_request_duration"] = self._meter.create_histogram(
            name="courier_request_duration_seconds",
            description="Duration of courier API operations in seconds",
            unit="s",
        )

        self._instruments["courier_request_total"] = self._meter.create_counter(
            name="courier_request_total",
            description="Total courier API operations by outcome",
            unit="1",
        )

        self._instruments["webhook_events_total"] = self._meter.create_counter(
            name="courier_webhook_events_total",
            description="Courier webhook events received",
            unit="1",
        )

        self._instruments["bulk_orders_total"] = self._meter.create_counter(
            name="bulk_assignment_orders_total",
            description="Orders processed by bulk assignment by outcome",
            unit="1",
        )

    def record_courier_request(
        self,
        provider: str,
        operation: str,
        duration_seconds: float,
        outcome: str,
    ) -> None:
        """
        Record a courier API operation.

        Args:
            provider: Provider key (e.g. "yalidine").
            operation: create_shipment, get_status, cancel_shipment, get_label_pdf.
            duration_seconds: Time spent in the adapter call.
            outcome: success, rejected (provider said no) or error (raised).
        """
        labels = {"provider": provider, "operation": operation, "outcome": outcome}
        self._instruments["courier_request_duration"].record(duration_seconds, labels)
        self._instruments["courier_request_total"].add(1, labels)

    def record_webhook_event(self, provider: str, verified: bool) -> None:
        """Record an inbound webhook event."""
        self._instruments["webhook_events_total"].add(
            1,
            {"provider": provider, "verified": str(verified).lower()},
        )

    def record_bulk_order(self, company: str, success: bool) -> None:
        """Record one order processed by bulk assignment."""
        self._instruments["bulk_orders_total"].add(
            1,
            {"company": company, "status": "success" if success else "failed"},
        )


def get_metrics_registry() -> MetricsRegistry:
    """
    Get the global metrics registry.

    Creates one if it doesn't exist.
    """
    global _metrics_registry
    if _metrics_registry is None:
        _metrics_registry = MetricsRegistry()
    return _metrics_registry


# Convenience functions that use the global registry


def record_courier_request(
    provider: str,
    operation: str,
    duration_seconds: float,
    outcome: str,
) -> None:
    """Record a courier API operation."""
    get_metrics_registry().record_courier_request(
        provider=provider,
        operation=operation,
        duration_seconds=duration_seconds,
        outcome=outcome,
    )


def record_webhook_event(provider: str, verified: bool) -> None:
    """Record an inbound webhook event."""
    get_metrics_registry().record_webhook_event(provider, verified)


def record_bulk_order(company: str, success: bool) -> None:
    """Record one order processed by bulk assignment."""
    get_metrics_registry().record_bulk_order(company, success)
