"""Courier adapters for Algerian delivery networks."""

from courier_hub.couriers.base import (
    CancelResult,
    CourierService,
    LabelPdfResult,
    ShipmentResult,
    StatusResult,
    TrackingEvent,
    WebhookEvent,
)
from courier_hub.couriers.registry import (
    CourierProvider,
    CourierRegistry,
    resolve_provider,
)

__all__ = [
    "CourierService",
    "ShipmentResult",
    "StatusResult",
    "TrackingEvent",
    "WebhookEvent",
    "CancelResult",
    "LabelPdfResult",
    "CourierProvider",
    "CourierRegistry",
    "resolve_provider",
]
