"""Mars Express courier service."""

from pydantic import AliasChoices, Field

from courier_hub.couriers.base import (
    CourierService,
    CourierWebhookPayload,
    ShipmentResult,
    StatusResult,
    to_tracking_events,
)
from courier_hub.delivery.models import ShipmentRequest
from courier_hub.delivery.status import CourierStatus

MARS_STATUS_TABLE: dict[str, CourierStatus] = {
    "created": CourierStatus.ASSIGNED,
    "picked_up": CourierStatus.PICKED_UP,
    "transit": CourierStatus.IN_TRANSIT,
    "in_transit": CourierStatus.IN_TRANSIT,
    "out_delivery": CourierStatus.OUT_FOR_DELIVERY,
    "out_for_delivery": CourierStatus.OUT_FOR_DELIVERY,
    "delivered": CourierStatus.DELIVERED,
    "failed": CourierStatus.FAILED,
    "returned": CourierStatus.RETURNED,
}


class MarsWebhookPayload(CourierWebhookPayload):
    tracking_number: str | None = Field(
        default=None, validation_alias=AliasChoices("shipment_number", "tracking_number")
    )
    status: str | None = Field(default=None, validation_alias=AliasChoices("status_code", "status"))
    description: str | None = Field(
        default=None, validation_alias=AliasChoices("status_description", "description")
    )


class MarsExpressService(CourierService):
    """Mars Express v2 shipments API (Bearer token auth)."""

    provider = "mars_express"
    display_name = "Mars Express"
    default_base_url = "https://api.marsexpress.dz"

    STATUS_TABLE = MARS_STATUS_TABLE
    webhook_model = MarsWebhookPayload

    def _headers(self, api_key: str) -> dict[str, str]:
        return {"Authorization": f"Bearer {api_key}"}

    async def create_shipment(
        self,
        shipment: ShipmentRequest,
        api_key: str,
        secondary: str | None = None,
    ) -> ShipmentResult:
        cod = self.cod_of(shipment)
        payload = {
            "customer_name": shipment.customer_name,
            "customer_phone": shipment.customer_phone,
            "customer_email": shipment.customer_email,
            "delivery_address": shipment.delivery_address,
            "item_description": shipment.product_description or "Item",
            "item_quantity": shipment.quantity,
            "item_weight": self.weight_of(shipment, default=0.5),
            "payment_method": "cod" if cod else "prepaid",
            "cod_amount": cod,
            "order_reference": shipment.reference_id,
        }
        response = await self._send(
            "POST",
            "/v2/shipments/create",
            headers=self._headers(api_key),
            json_body=payload,
        )

        data = response.data
        shipment_number = str(data.get("shipment_number") or "").strip()
        if not response.ok or not shipment_number:
            error = response.error_message(fields=("error_message", "error", "message"))
            if response.ok:
                error = "Mars Express returned no shipment number"
            return ShipmentResult(success=False, raw=data or None, error=error)

        return ShipmentResult(
            success=True,
            tracking_number=shipment_number,
            label_url=data.get("label_url"),
            label_data=data.get("label_base64"),
            reference_id=shipment.reference_id,
            estimated_delivery=data.get("estimated_delivery_date"),
            raw=data,
        )

    async def get_status(
        self,
        tracking_number: str,
        api_key: str,
        secondary: str | None = None,
    ) -> StatusResult:
        response = await self._send(
            "POST",
            "/v2/tracking",
            headers=self._headers(api_key),
            json_body={"shipment_number": tracking_number},
        )
        if not response.ok or response.json is None:
            return StatusResult(
                tracking_number=tracking_number,
                error=response.error_message(
                    "Failed to fetch status: HTTP", fields=("error_message", "error", "message")
                ),
            )

        data = response.data
        return self.status_result(
            tracking_number,
            data.get("current_status"),
            last_update=data.get("last_update"),
            location=data.get("current_location"),
            events=to_tracking_events(data.get("events"), type_fields=("type", "status", "status_code")),
        )
