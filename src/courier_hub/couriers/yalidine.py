"""Yalidine Express courier service.

API docs: https://yalidine.app/app/dev/docs/api/
"""

import logging

from pydantic import AliasChoices, Field

from courier_hub.couriers.base import (
    CourierService,
    CourierWebhookPayload,
    ShipmentResult,
    StatusResult,
    split_name,
)
from courier_hub.delivery.models import ShipmentRequest
from courier_hub.delivery.status import CourierStatus

logger = logging.getLogger(__name__)

# Yalidine reports French labels
YALIDINE_STATUS_TABLE: dict[str, CourierStatus] = {
    "En preparation": CourierStatus.PENDING,
    "Expediee": CourierStatus.IN_TRANSIT,
    "Au centre": CourierStatus.IN_TRANSIT,
    "En attente du client": CourierStatus.OUT_FOR_DELIVERY,
    "Sortie en livraison": CourierStatus.OUT_FOR_DELIVERY,
    "Livree": CourierStatus.DELIVERED,
    "Echec livraison": CourierStatus.FAILED,
    "Retournee": CourierStatus.RETURNED,
    "Retournee expediteur": CourierStatus.RETURNED,
    "Prete au retrait": CourierStatus.READY_FOR_PICKUP,
}


class YalidineWebhookPayload(CourierWebhookPayload):
    tracking_number: str | None = Field(default=None, validation_alias=AliasChoices("tracking", "tracking_number"))
    status: str | None = None
    timestamp: str | None = Field(default=None, validation_alias=AliasChoices("updated_at", "timestamp"))
    location: str | None = Field(default=None, validation_alias=AliasChoices("to_wilaya_name", "location"))
    description: str | None = Field(default=None, validation_alias=AliasChoices("status_label", "description"))


class YalidineService(CourierService):
    """
    Yalidine parcels API.

    Authentication uses two headers: X-API-ID (the secondary credential,
    falling back to the key) and X-API-TOKEN (the API key).
    """

    provider = "yalidine"
    display_name = "Yalidine"
    default_base_url = "https://api.yalidine.app/v1"

    STATUS_TABLE = YALIDINE_STATUS_TABLE
    webhook_model = YalidineWebhookPayload

    def _headers(self, api_key: str, secondary: str | None) -> dict[str, str]:
        return {
            "X-API-ID": secondary or api_key,
            "X-API-TOKEN": api_key,
        }

    def build_parcel(self, shipment: ShipmentRequest) -> dict:
        firstname, familyname = split_name(shipment.customer_name)
        cod = self.cod_of(shipment)
        return {
            "order_id": shipment.reference_id,
            "firstname": firstname,
            "familyname": familyname,
            "contact_phone": shipment.customer_phone,
            "address": shipment.delivery_address,
            "to_commune_name": self.commune_of(shipment),
            "to_wilaya_name": self.wilaya_of(shipment),
            "product_list": shipment.product_description or "Products",
            "price": cod,
            "freeshipping": not cod,
            "is_stopdesk": shipment.is_stopdesk,
            "weight": self.weight_of(shipment),
        }

    async def create_shipment(
        self,
        shipment: ShipmentRequest,
        api_key: str,
        secondary: str | None = None,
    ) -> ShipmentResult:
        response = await self._send(
            "POST",
            "/parcels/",
            headers=self._headers(api_key, secondary),
            json_body=self.build_parcel(shipment),
        )

        if not response.ok:
            return ShipmentResult(success=False, error=response.error_message())
        if response.json is None:
            return ShipmentResult(success=False, error=response.non_json_error())

        parcel = response.data
        tracking = str(parcel.get("tracking") or "").strip()
        if not tracking:
            return ShipmentResult(
                success=False,
                raw=parcel,
                error=f"{self.display_name} returned no tracking number",
            )

        return ShipmentResult(
            success=True,
            tracking_number=tracking,
            label_url=parcel.get("pdf_label"),
            reference_id=parcel.get("order_id") or shipment.reference_id,
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
        return self.status_result(
            tracking_number,
            parcel.get("status"),
            location=parcel.get("to_wilaya_name"),
        )
