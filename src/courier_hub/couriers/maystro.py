"""Maystro Delivery courier service."""

from typing import Any

from pydantic import AliasChoices, Field, model_validator

from courier_hub.couriers.base import (
    COMMON_STATUS_TABLE,
    CourierService,
    CourierWebhookPayload,
    ShipmentResult,
    StatusResult,
)
from courier_hub.delivery.models import ShipmentRequest


class MaystroWebhookPayload(CourierWebhookPayload):
    tracking_number: str | None = Field(
        default=None, validation_alias=AliasChoices("tracking_id", "tracking_number")
    )
    timestamp: str | None = Field(default=None, validation_alias=AliasChoices("updated_at", "timestamp"))
    description: str | None = Field(default=None, validation_alias=AliasChoices("status_label", "description"))

    @model_validator(mode="before")
    @classmethod
    def _customer_wilaya_as_location(cls, data: Any) -> Any:
        if isinstance(data, dict) and not data.get("location"):
            customer = data.get("customer")
            if isinstance(customer, dict) and customer.get("wilaya"):
                return {**data, "location": customer["wilaya"]}
        return data


class MaystroService(CourierService):
    """
    Maystro orders API.

    Bearer token auth; the secondary credential is the store id.
    Maystro does not return label URLs.
    """

    provider = "maystro"
    display_name = "Maystro"
    default_base_url = "https://api.maystro-delivery.com/v1"

    STATUS_TABLE = COMMON_STATUS_TABLE
    webhook_model = MaystroWebhookPayload

    def _headers(self, api_key: str, secondary: str | None) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {api_key}",
            "X-Store-ID": secondary or "",
        }

    async def create_shipment(
        self,
        shipment: ShipmentRequest,
        api_key: str,
        secondary: str | None = None,
    ) -> ShipmentResult:
        payload = {
            "external_id": shipment.reference_id,
            "customer": {
                "name": shipment.customer_name,
                "phone": shipment.customer_phone,
                "address": shipment.delivery_address,
                "wilaya": self.wilaya_of(shipment),
                "commune": self.commune_of(shipment),
            },
            "order": {
                "product": shipment.product_description or "Products",
                "cod": self.cod_of(shipment),
                "weight": self.weight_of(shipment),
                "note": shipment.notes or "",
            },
        }
        response = await self._send(
            "POST",
            "/orders",
            headers=self._headers(api_key, secondary),
            json_body=payload,
        )

        if not response.ok:
            return ShipmentResult(success=False, error=response.error_message())
        if response.json is None:
            return ShipmentResult(success=False, error=response.non_json_error())

        order = response.data
        tracking = str(order.get("tracking_id") or "").strip()
        if not tracking:
            return ShipmentResult(success=False, raw=order, error="Maystro returned no tracking id")

        return ShipmentResult(
            success=True,
            tracking_number=tracking,
            reference_id=order.get("external_id") or shipment.reference_id,
            raw=order,
        )

    async def get_status(
        self,
        tracking_number: str,
        api_key: str,
        secondary: str | None = None,
    ) -> StatusResult:
        response = await self._send(
            "GET",
            f"/orders/{tracking_number}",
            headers=self._headers(api_key, secondary),
        )
        if not response.ok or response.json is None:
            return StatusResult(
                tracking_number=tracking_number,
                error=response.error_message("Failed to fetch status: HTTP"),
            )

        order = response.data
        customer = order.get("customer") if isinstance(order.get("customer"), dict) else {}
        return self.status_result(
            tracking_number,
            order.get("status"),
            last_update=order.get("updated_at"),
            location=customer.get("wilaya"),
        )
