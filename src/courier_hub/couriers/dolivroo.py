"""Dolivroo aggregator service.

One integration routing parcels to several Algerian couriers. The
underlying courier is picked by Dolivroo ("auto") unless the shipment
names a preferred one.
"""

from typing import Any

from pydantic import AliasChoices, Field, model_validator

from courier_hub.couriers.base import (
    COMMON_STATUS_TABLE,
    CourierService,
    CourierWebhookPayload,
    ShipmentResult,
    StatusResult,
    to_tracking_events,
)
from courier_hub.delivery.models import ShipmentRequest

DEFAULT_SUB_PROVIDER = "auto"


class DolivrooWebhookPayload(CourierWebhookPayload):
    timestamp: str | None = Field(default=None, validation_alias=AliasChoices("updated_at", "timestamp"))
    description: str | None = Field(default=None, validation_alias=AliasChoices("status_label", "description"))

    @model_validator(mode="before")
    @classmethod
    def _recipient_wilaya_as_location(cls, data: Any) -> Any:
        if isinstance(data, dict) and not data.get("location"):
            recipient = data.get("recipient")
            if isinstance(recipient, dict) and recipient.get("wilaya"):
                return {**data, "location": recipient["wilaya"]}
        return data


class DolivrooService(CourierService):
    """Dolivroo parcels API (X-API-KEY / X-SECRET-KEY auth)."""

    provider = "dolivroo"
    display_name = "Dolivroo"
    default_base_url = "https://api.dolivroo.com/v1"

    STATUS_TABLE = COMMON_STATUS_TABLE
    webhook_model = DolivrooWebhookPayload

    def _headers(self, api_key: str, secondary: str | None) -> dict[str, str]:
        return {
            "X-API-KEY": api_key,
            "X-SECRET-KEY": secondary or "",
        }

    async def create_shipment(
        self,
        shipment: ShipmentRequest,
        api_key: str,
        secondary: str | None = None,
    ) -> ShipmentResult:
        payload = {
            "reference": shipment.reference_id,
            "provider": shipment.provider or DEFAULT_SUB_PROVIDER,
            "recipient": {
                "name": shipment.customer_name,
                "phone": shipment.customer_phone,
                "address": shipment.delivery_address,
                "wilaya": self.wilaya_of(shipment),
                "commune": self.commune_of(shipment),
            },
            "parcel": {
                "description": shipment.product_description or "Products",
                "cod_amount": self.cod_of(shipment),
                "weight": self.weight_of(shipment),
                "is_fragile": False,
                "allow_open": True,
            },
            "options": {
                "is_stopdesk": shipment.is_stopdesk,
                "insurance": False,
            },
        }
        response = await self._send(
            "POST",
            "/parcels",
            headers=self._headers(api_key, secondary),
            json_body=payload,
        )

        if not response.ok:
            return ShipmentResult(success=False, error=response.error_message())
        if response.json is None:
            return ShipmentResult(success=False, error=response.non_json_error())

        parcel = response.data
        tracking = str(parcel.get("tracking_number") or "").strip()
        if not tracking:
            return ShipmentResult(success=False, raw=parcel, error="Dolivroo returned no tracking number")

        return ShipmentResult(
            success=True,
            tracking_number=tracking,
            label_url=parcel.get("label_url"),
            reference_id=parcel.get("reference") or shipment.reference_id,
            raw=parcel,
        )

    async def get_status(
        self,
        tracking_number: str,
        api_key: str,
        secondary: str | None = None,
    ) -> StatusResult:
        response = await self._send(
            "GET",
            f"/parcels/{tracking_number}",
            headers=self._headers(api_key, secondary),
        )
        if not response.ok or response.json is None:
            return StatusResult(
                tracking_number=tracking_number,
                error=response.error_message("Failed to fetch status: HTTP"),
            )

        parcel = response.data
        recipient = parcel.get("recipient") if isinstance(parcel.get("recipient"), dict) else {}
        return self.status_result(
            tracking_number,
            parcel.get("status"),
            last_update=parcel.get("updated_at"),
            location=recipient.get("wilaya"),
            events=to_tracking_events(parcel.get("events"), type_fields=("status",)),
        )
