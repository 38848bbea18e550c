"""ZR Express legacy courier service (Procolis API).

Kept for merchants whose ZR Express accounts still live on Procolis.
New integrations use the official API in zrexpress.py.
"""

from pydantic import AliasChoices, Field

from courier_hub.couriers.base import (
    CourierService,
    CourierWebhookPayload,
    ShipmentResult,
    StatusResult,
)
from courier_hub.delivery.models import ShipmentRequest
from courier_hub.delivery.status import CourierStatus

PROCOLIS_STATUS_TABLE: dict[str, CourierStatus] = {
    "new": CourierStatus.PENDING,
    "pending": CourierStatus.PENDING,
    "confirmed": CourierStatus.PENDING,
    "picked": CourierStatus.PICKED_UP,
    "in_transit": CourierStatus.IN_TRANSIT,
    "at_warehouse": CourierStatus.IN_TRANSIT,
    "out_for_delivery": CourierStatus.OUT_FOR_DELIVERY,
    "delivered": CourierStatus.DELIVERED,
    "failed": CourierStatus.FAILED,
    "returned": CourierStatus.RETURNED,
}


class ProcolisWebhookPayload(CourierWebhookPayload):
    tracking_number: str | None = Field(default=None, validation_alias=AliasChoices("tracking", "tracking_number"))
    timestamp: str | None = Field(default=None, validation_alias=AliasChoices("updated_at", "timestamp"))
    location: str | None = Field(default=None, validation_alias=AliasChoices("wilaya", "location"))
    description: str | None = Field(default=None, validation_alias=AliasChoices("status_text", "description"))


class ZRExpressLegacyService(CourierService):
    """Procolis orders API (X-API-ID / X-API-TOKEN auth)."""

    provider = "zr_express_legacy"
    display_name = "ZR Express (Procolis)"
    default_base_url = "https://api.procolis.com/v1"

    STATUS_TABLE = PROCOLIS_STATUS_TABLE
    webhook_model = ProcolisWebhookPayload

    def _headers(self, api_key: str, secondary: str | None) -> dict[str, str]:
        return {
            "X-API-ID": secondary or "",
            "X-API-TOKEN": api_key,
        }

    async def create_shipment(
        self,
        shipment: ShipmentRequest,
        api_key: str,
        secondary: str | None = None,
    ) -> ShipmentResult:
        payload = {
            "reference": shipment.reference_id,
            "customer_name": shipment.customer_name,
            "customer_phone": shipment.customer_phone,
            "address": shipment.delivery_address,
            "wilaya": self.wilaya_of(shipment),
            "commune": self.commune_of(shipment),
            "product": shipment.product_description or "Products",
            "cod": self.cod_of(shipment),
            "weight": self.weight_of(shipment),
            "note": shipment.notes or "",
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
        tracking = str(order.get("tracking") or "").strip()
        if not tracking:
            return ShipmentResult(success=False, raw=order, error="Procolis returned no tracking number")

        return ShipmentResult(
            success=True,
            tracking_number=tracking,
            reference_id=order.get("reference") or shipment.reference_id,
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
        return self.status_result(tracking_number, order.get("status"), location=order.get("wilaya"))
