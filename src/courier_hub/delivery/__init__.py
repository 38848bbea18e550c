"""Delivery domain: canonical statuses, models and orchestration.

The orchestrator and bulk assignment are imported from their modules
directly; courier adapters depend on this package's models.
"""

from courier_hub.delivery.models import (
    DeliveryCompany,
    DeliveryEvent,
    DeliveryIntegration,
    OrderWithDelivery,
    ShipmentRequest,
    ShippingLabel,
)
from courier_hub.delivery.status import (
    CourierStatus,
    DeliveryStatus,
    can_transition,
    next_status,
)

__all__ = [
    # Statuses
    "DeliveryStatus",
    "CourierStatus",
    "can_transition",
    "next_status",
    # Models
    "DeliveryCompany",
    "DeliveryIntegration",
    "OrderWithDelivery",
    "ShipmentRequest",
    "ShippingLabel",
    "DeliveryEvent",
]
