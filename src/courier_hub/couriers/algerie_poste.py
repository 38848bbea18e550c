"""Algérie Poste courier service."""

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

ALGERIE_POSTE_STATUS_TABLE: dict[str, CourierStatus] = {
    "registered": CourierStatus.PENDING,
    "collected": CourierStatus.PICKED_UP,
    "in_transit": CourierStatus.IN_TRANSIT,
    "out_for_delivery": CourierStatus.OUT_FOR_DELIVERY,
    "available_at_office": CourierStatus.READY_FOR_PICKUP,
    "delivered": CourierStatus.DELIVERED,
    "failed": CourierStatus.FAILED,
    "returned": CourierStatus.RETURNED,
}


class AlgeriePosteWebhookPayload(CourierWebhookPayload):
    status: str | None = Field(default=None, validation_alias=AliasChoices("event_code", "status"))
    timestamp: str | None = Field(default=None, validation_alias=AliasChoices("event_date", "timestamp"))
    location: str | None = Field(default=None, validation_alias=AliasChoices("location_code", "location"))
    description: str | None = Field(
        default=None, validation_alias=AliasChoices("event_description", "description")
    )


class AlgeriePosteService(CourierService):
    """Algérie Poste shipments API (x-api-key auth, no secondary credential)."""

    provider = "algerie_poste"
    display_name = "Algérie Poste"
    default_base_url = "https://api.poste.dz"

    STATUS_TABLE = ALGERIE_POSTE_STATUS_TABLE
    webhook_model = AlgeriePosteWebhookPayload

    def _headers(self, api_key: str) -> dict[str, str]:
        return {"x-api-key": api_key}

    async def create_shipment(
        self,
        shipment: ShipmentRequest,
        api_key: str,
        secondary: str | None = None,
    ) -> ShipmentResult:
        payload = {
            "recipient_name": shipment.customer_name,
            "recipient_phone": shipment.customer_phone,
            "recipient_email": shipment.customer_email or "",
            "recipient_address": shipment.delivery_address,
            "parcel_type": "standard",
            "weight": self.weight_of(shipment),
            "description": shipment.product_description or "Parcel",
            "reference": shipment.reference_id,
            "cod_amount": self.cod_of(shipment),
        }
        response = await self._send(
            "POST",
            "/v1/shipments",
            headers=self._headers(api_key),
            json_body=payload,
        )

        tracking = str(response.data.get("tracking_number") or "").strip()
        if not response.ok or not tracking:
            error = response.error_message(fields=("error", "message"))
            if response.ok:
                error = "Algérie Poste returned no tracking number"
            return ShipmentResult(success=False, raw=response.data or None, error=error)

        return ShipmentResult(
            success=True,
            tracking_number=tracking,
            label_url=response.data.get("label_download_url"),
            reference_id=shipment.reference_id,
            raw=response.data,
        )

    async def get_status(
        self,
        tracking_number: str,
        api_key: str,
        secondary: str | None = None,
    ) -> StatusResult:
        response = await self._send(
            "GET",
            f"/v1/tracking/{tracking_number}",
            headers=self._headers(api_key),
        )
        if not response.ok or response.json is None:
            return StatusResult(
                tracking_number=tracking_number,
                error=response.error_message("Failed to fetch status: HTTP", fields=("error", "message")),
            )

        data = response.data
        return self.status_result(
            tracking_number,
            data.get("status"),
            last_update=data.get("last_update_date"),
            location=data.get("current_location") or data.get("last_location"),
            events=to_tracking_events(
                data.get("tracking_events"),
                type_fields=("event_code", "type", "status"),
                timestamp_fields=("event_date", "timestamp"),
            ),
        )
