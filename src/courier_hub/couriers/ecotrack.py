"""Ecotrack courier service.

Ecotrack is a logistics SaaS platform aggregating several carriers.
White-label instances (Anderson) reuse this adapter.
"""

import logging

from pydantic import AliasChoices, Field

from courier_hub.couriers.base import (
    COMMON_STATUS_TABLE,
    ApiResponse,
    CourierService,
    CourierWebhookPayload,
    ShipmentResult,
    StatusResult,
)
from courier_hub.delivery.models import ShipmentRequest

logger = logging.getLogger(__name__)


class EcotrackWebhookPayload(CourierWebhookPayload):
    tracking_number: str | None = Field(
        default=None, validation_alias=AliasChoices("tracking_code", "tracking_number")
    )
    status: str | None = None
    timestamp: str | None = Field(default=None, validation_alias=AliasChoices("updated_at", "timestamp"))
    location: str | None = Field(default=None, validation_alias=AliasChoices("wilaya", "location"))
    description: str | None = Field(default=None, validation_alias=AliasChoices("status_label", "description"))


class EcotrackService(CourierService):
    """
    Ecotrack orders API.

    Bearer token auth; the secondary credential, when present, is sent
    as the X-Account-ID header.
    """

    provider = "ecotrack"
    display_name = "Ecotrack"
    default_base_url = "https://api.ecotrack.dz/v1"

    STATUS_TABLE = COMMON_STATUS_TABLE
    webhook_model = EcotrackWebhookPayload

    create_path = "/orders"

    def _headers(self, api_key: str, secondary: str | None) -> dict[str, str]:
        headers = {"Authorization": f"Bearer {api_key}"}
        if secondary:
            headers["X-Account-ID"] = secondary
        return headers

    def build_order(self, shipment: ShipmentRequest) -> dict:
        return {
            "reference": shipment.reference_id,
            "recipient_name": shipment.customer_name,
            "recipient_phone": shipment.customer_phone,
            "recipient_address": shipment.delivery_address,
            "wilaya": self.wilaya_of(shipment),
            "commune": self.commune_of(shipment),
            "product_description": shipment.product_description or "Products",
            "cod_amount": self.cod_of(shipment),
            "weight": self.weight_of(shipment),
            "is_fragile": False,
            "allow_open": True,
        }

    def shipment_result(self, response: ApiResponse, shipment: ShipmentRequest) -> ShipmentResult:
        """Turn a create-order response into a ShipmentResult."""
        if not response.ok:
            return ShipmentResult(success=False, error=response.error_message())
        if response.json is None:
            return ShipmentResult(success=False, error=response.non_json_error())

        order = response.data
        tracking = str(order.get("tracking_code") or "").strip()
        if not tracking:
            return ShipmentResult(
                success=False,
                raw=order,
                error=f"{self.display_name} returned no tracking code",
            )
        return ShipmentResult(
            success=True,
            tracking_number=tracking,
            label_url=order.get("label_url"),
            reference_id=order.get("reference") or shipment.reference_id,
            raw=order,
        )

    async def create_shipment(
        self,
        shipment: ShipmentRequest,
        api_key: str,
        secondary: str | None = None,
    ) -> ShipmentResult:
        response = await self._send(
            "POST",
            self.create_path,
            headers=self._headers(api_key, secondary),
            json_body=self.build_order(shipment),
        )
        return self.shipment_result(response, shipment)

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

        if not response.ok:
            return StatusResult(
                tracking_number=tracking_number,
                error=response.error_message("Failed to fetch status: HTTP"),
            )
        if response.json is None:
            return StatusResult(tracking_number=tracking_number, error=response.non_json_error())

        order = response.data
        return self.status_result(
            tracking_number,
            order.get("status"),
            last_update=order.get("updated_at"),
            location=order.get("wilaya"),
        )
