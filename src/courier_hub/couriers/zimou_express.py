"""Zimou Express courier service.

API docs: https://zimou.express/docs
"""

import logging

from pydantic import AliasChoices, Field

from courier_hub.couriers.base import (
    CancelResult,
    CourierService,
    CourierWebhookPayload,
    ShipmentResult,
    StatusResult,
    split_name,
)
from courier_hub.delivery.models import ShipmentRequest
from courier_hub.delivery.status import CourierStatus

logger = logging.getLogger(__name__)

CANCEL_NOT_SUPPORTED = "Cancellation via API is not supported for Zimou Express; contact Zimou Express directly"

ZIMOU_STATUS_TABLE: dict[str, CourierStatus] = {
    "pending": CourierStatus.PENDING,
    "en_attente": CourierStatus.PENDING,
    "picked_up": CourierStatus.PICKED_UP,
    "ramasse": CourierStatus.PICKED_UP,
    "in_transit": CourierStatus.IN_TRANSIT,
    "en_cours": CourierStatus.IN_TRANSIT,
    "out_for_delivery": CourierStatus.OUT_FOR_DELIVERY,
    "en_livraison": CourierStatus.OUT_FOR_DELIVERY,
    "delivered": CourierStatus.DELIVERED,
    "livre": CourierStatus.DELIVERED,
    "returned": CourierStatus.RETURNED,
    "retourne": CourierStatus.RETURNED,
    "cancelled": CourierStatus.CANCELLED,
    "annule": CourierStatus.CANCELLED,
}


class ZimouWebhookPayload(CourierWebhookPayload):
    tracking_number: str | None = Field(default=None, validation_alias=AliasChoices("tracking", "tracking_number"))
    timestamp: str | None = Field(default=None, validation_alias=AliasChoices("updated_at", "timestamp"))
    location: str | None = Field(default=None, validation_alias=AliasChoices("wilaya", "location"))
    description: str | None = Field(default=None, validation_alias=AliasChoices("status_label", "description"))


def kg_to_grams(weight_kg: float | None) -> int:
    return int(round((weight_kg or 1) * 1000))


class ZimouExpressService(CourierService):
    """
    Zimou Express packages API.

    Bearer token auth (the token issued by Zimou login). Weights are sent
    in grams.
    """

    provider = "zimou_express"
    display_name = "Zimou Express"
    default_base_url = "https://zimou.express/api/v1"

    STATUS_TABLE = ZIMOU_STATUS_TABLE
    webhook_model = ZimouWebhookPayload

    def _headers(self, api_key: str) -> dict[str, str]:
        return {"Authorization": f"Bearer {api_key}"}

    async def create_shipment(
        self,
        shipment: ShipmentRequest,
        api_key: str,
        secondary: str | None = None,
    ) -> ShipmentResult:
        first_name, last_name = split_name(shipment.customer_name)
        cod = self.cod_of(shipment)
        payload = {
            "name": shipment.product_description or f"Order {shipment.reference_id}",
            "client_first_name": first_name,
            "client_last_name": last_name or first_name,
            "client_phone": shipment.customer_phone,
            "client_phone2": "",
            "address": shipment.delivery_address,
            "commune": self.commune_of(shipment),
            "wilaya": self.wilaya_of(shipment),
            "order_id": shipment.reference_id,
            "weight": kg_to_grams(shipment.weight),
            "delivery_type": "express",
            "price": cod,
            "free_delivery": 1 if cod == 0 else 0,
            "can_be_opened": 1,
            "type": "ecommerce",
            "observation": shipment.notes or "",
        }
        response = await self._send(
            "POST",
            "/packages",
            headers=self._headers(api_key),
            json_body=payload,
        )

        # Zimou answers some failures with HTML; report those raw
        if response.json is None:
            logger.error("Zimou Express returned non-JSON response (HTTP %s)", response.status_code)
            return ShipmentResult(
                success=False,
                error=f"Invalid response from server (HTTP {response.status_code}): {response.snippet(200)}",
            )
        if not response.ok:
            return ShipmentResult(success=False, error=response.error_message())

        data = response.data
        nested = data.get("data") if isinstance(data.get("data"), dict) else {}
        tracking = (
            nested.get("tracking_code")
            or data.get("tracking_code")
            or data.get("tracking")
            or nested.get("tracking")
        )
        if not tracking:
            return ShipmentResult(success=False, raw=data, error="No tracking number returned")

        return ShipmentResult(
            success=True,
            tracking_number=str(tracking),
            label_url=nested.get("bordereau") or data.get("bordereau"),
            reference_id=shipment.reference_id,
            raw=data,
        )

    async def get_status(
        self,
        tracking_number: str,
        api_key: str,
        secondary: str | None = None,
    ) -> StatusResult:
        response = await self._send(
            "GET",
            "/packages/status",
            headers=self._headers(api_key),
            params={"packages[]": tracking_number},
        )
        if response.json is None:
            return StatusResult(
                tracking_number=tracking_number,
                error=f"Invalid response from server (HTTP {response.status_code})",
            )
        if not response.ok:
            return StatusResult(tracking_number=tracking_number, error=response.error_message())

        data = response.json
        package = data[0] if isinstance(data, list) and data else data
        if not isinstance(package, dict):
            return StatusResult(tracking_number=tracking_number, error="Package not found")

        return self.status_result(
            tracking_number,
            package.get("status"),
            last_update=package.get("updated_at"),
        )

    async def cancel_shipment(
        self,
        tracking_number: str,
        api_key: str,
        secondary: str | None = None,
    ) -> CancelResult:
        return CancelResult(success=False, error=CANCEL_NOT_SUPPORTED)
