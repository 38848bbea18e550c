"""Anderson Ecommerce courier service.

A white-label Ecotrack instance with its own order field names, commune
validation and a cancellation endpoint.
"""

import logging

from courier_hub.couriers.base import CancelResult, ShipmentResult
from courier_hub.couriers.ecotrack import EcotrackService
from courier_hub.delivery.models import ShipmentRequest

logger = logging.getLogger(__name__)


class AndersonService(EcotrackService):
    """Anderson (Ecotrack white-label) orders API."""

    provider = "anderson"
    display_name = "Anderson"
    default_base_url = "https://anderson-ecommerce.ecotrack.dz/api/v1"

    supports_cancellation = True

    create_path = "/create/order"

    def build_order(self, shipment: ShipmentRequest) -> dict:
        return {
            "reference": shipment.reference_id,
            "nom_client": shipment.customer_name,
            "telephone": shipment.customer_phone,
            "adresse": shipment.delivery_address,
            "code_wilaya": shipment.wilaya_id or shipment.wilaya or "",
            "montant": self.cod_of(shipment),
            "type": 1,  # standard delivery
            "description": shipment.product_description or "Products",
            "poids": self.weight_of(shipment),
            "is_fragile": False,
            "allow_open": True,
            "notes": shipment.notes or "",
        }

    async def create_shipment(
        self,
        shipment: ShipmentRequest,
        api_key: str,
        secondary: str | None = None,
    ) -> ShipmentResult:
        order = self.build_order(shipment)
        headers = self._headers(api_key, secondary)

        async def attempt(commune: str | int):
            return await self._send(
                "POST",
                self.create_path,
                headers=headers,
                json_body={**order, "commune": commune},
            )

        response = await self.create_with_commune_fallback(self.commune_candidates(shipment), attempt)
        return self.shipment_result(response, shipment)

    async def cancel_shipment(
        self,
        tracking_number: str,
        api_key: str,
        secondary: str | None = None,
    ) -> CancelResult:
        response = await self._send(
            "POST",
            f"/orders/{tracking_number}/cancel",
            headers=self._headers(api_key, secondary),
        )
        if not response.ok:
            return CancelResult(success=False, error=response.error_message("Cancel failed: HTTP"))
        return CancelResult(success=True)
