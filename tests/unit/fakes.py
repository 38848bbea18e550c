"""Test doubles and seed data for delivery tests."""

from collections.abc import Iterator
from typing import Any

from courier_hub.couriers.base import (
    CancelResult,
    CourierService,
    ShipmentResult,
    StatusResult,
    TrackingEvent,
)
from courier_hub.couriers.yalidine import YALIDINE_STATUS_TABLE, YalidineWebhookPayload
from courier_hub.delivery.models import CompanyFeatures, DeliveryCompany, IntegrationInput

CLIENT_ID = 7
YALIDINE_ID = 1
MANUAL_ID = 2
RETIRED_ID = 3
NOEST_ID = 4

API_KEY = "yal-token-0123456789"
API_ID = "yal-id-9876543210"
WEBHOOK_SECRET = "whk-secret-abcdef"

COMPANIES = [
    DeliveryCompany(
        id=YALIDINE_ID,
        name="Yalidine",
        features=CompanyFeatures(supports_labels=True, supports_create_shipment=True),
    ),
    DeliveryCompany(id=MANUAL_ID, name="Manual Courier"),
    DeliveryCompany(id=RETIRED_ID, name="Retired Express", is_active=False),
    DeliveryCompany(id=NOEST_ID, name="Noest"),
]


class FakeCourier(CourierService):
    """Scriptable Yalidine stand-in; set the *_result attributes per test."""

    provider = "yalidine"
    display_name = "Yalidine"
    default_base_url = "https://couriers.test"

    supports_cancellation = True

    STATUS_TABLE = YALIDINE_STATUS_TABLE
    webhook_model = YalidineWebhookPayload

    def __init__(self) -> None:
        super().__init__()
        self.calls: list[tuple] = []
        self.create_result: ShipmentResult | Exception = ShipmentResult(
            success=True,
            tracking_number="YAL-1001",
            label_url="https://couriers.test/labels/YAL-1001.pdf",
            raw={"tracking": "YAL-1001"},
        )
        self.status_answer: StatusResult | Exception = self.status_result(
            "YAL-1001",
            "Sortie en livraison",
            location="Alger",
            events=[TrackingEvent(type="Expediee", timestamp="2026-01-05T08:00:00Z")],
        )
        self.cancel_result: CancelResult | Exception = CancelResult(success=True)

    @staticmethod
    def _answer(value):
        if isinstance(value, Exception):
            raise value
        return value

    async def create_shipment(self, shipment, api_key, secondary=None):
        self.calls.append(("create_shipment", shipment, api_key, secondary))
        return self._answer(self.create_result)

    async def get_status(self, tracking_number, api_key, secondary=None):
        self.calls.append(("get_status", tracking_number, api_key, secondary))
        return self._answer(self.status_answer)

    async def cancel_shipment(self, tracking_number, api_key, secondary=None):
        self.calls.append(("cancel_shipment", tracking_number, api_key, secondary))
        return self._answer(self.cancel_result)


def yalidine_integration(**overrides) -> IntegrationInput:
    values = {
        "delivery_company_id": YALIDINE_ID,
        "api_key": API_KEY,
        "api_secret": API_ID,
        "webhook_secret": WEBHOOK_SECRET,
    }
    values.update(overrides)
    return IntegrationInput(**values)


def leaf_values(data: Any) -> Iterator[Any]:
    """Every scalar inside nested dicts and lists, such as a JSON response."""
    if isinstance(data, dict):
        for value in data.values():
            yield from leaf_values(value)
    elif isinstance(data, (list, tuple)):
        for value in data:
            yield from leaf_values(value)
    else:
        yield data
