"""Noest courier service.

Noest runs on the Ecotrack public API:
- credentials travel in the request body (api_token + user_guid)
- an order is created, then validated; it stays invisible to the
  courier until validation succeeds
- labels are downloaded as PDF
"""

import logging
import math
from collections.abc import Mapping
from typing import TYPE_CHECKING, Any

import httpx
from pydantic import AliasChoices, Field

from courier_hub.couriers.base import (
    CourierService,
    CourierWebhookPayload,
    LabelPdfResult,
    ShipmentResult,
    StatusResult,
    digits_only,
)
from courier_hub.delivery.models import ShipmentRequest
from courier_hub.delivery.status import CourierStatus

if TYPE_CHECKING:
    from courier_hub.config import Settings

logger = logging.getLogger(__name__)

MISSING_GUID_ERROR = "Noest requires user_guid (secondary credential) in the integration"

NOEST_STATUS_TABLE: dict[str, CourierStatus] = {
    "pending": CourierStatus.PENDING,
    "en attente": CourierStatus.PENDING,
    "upload": CourierStatus.PENDING,
    "validated": CourierStatus.ASSIGNED,
    "validé": CourierStatus.ASSIGNED,
    "picked_up": CourierStatus.PICKED_UP,
    "ramassé": CourierStatus.PICKED_UP,
    "in_transit": CourierStatus.IN_TRANSIT,
    "en transit": CourierStatus.IN_TRANSIT,
    "expédié": CourierStatus.IN_TRANSIT,
    "out_for_delivery": CourierStatus.OUT_FOR_DELIVERY,
    "en livraison": CourierStatus.OUT_FOR_DELIVERY,
    "delivered": CourierStatus.DELIVERED,
    "livré": CourierStatus.DELIVERED,
    "failed": CourierStatus.FAILED,
    "echec": CourierStatus.FAILED,
    "returned": CourierStatus.RETURNED,
    "retourné": CourierStatus.RETURNED,
    "cancelled": CourierStatus.CANCELLED,
    "annulé": CourierStatus.CANCELLED,
}


class NoestWebhookPayload(CourierWebhookPayload):
    tracking_number: str | None = Field(
        default=None, validation_alias=AliasChoices("tracking_number", "tracking_code", "tracking")
    )
    status: str | None = Field(default=None, validation_alias=AliasChoices("status", "event_type"))


class NoestService(CourierService):
    """Noest (Ecotrack public API) orders."""

    provider = "noest"
    display_name = "Noest"
    default_base_url = "https://app.noest-dz.com"

    supports_label_pdf = True

    STATUS_TABLE = NOEST_STATUS_TABLE
    webhook_model = NoestWebhookPayload

    def __init__(
        self,
        *,
        default_wilaya_id: int = 16,
        noest_default_commune: str = "Alger Centre",
        **kwargs: Any,
    ) -> None:
        """
        Initialize the Noest service.

        Args:
            default_wilaya_id: Wilaya id used when the shipment has no numeric wilaya.
            noest_default_commune: Last commune candidate tried on commune rejection.
            **kwargs: Passed to CourierService.
        """
        super().__init__(**kwargs)
        self.default_wilaya_id = default_wilaya_id if default_wilaya_id > 0 else 16
        self.noest_default_commune = noest_default_commune.strip() or "Alger Centre"

    @classmethod
    def from_settings(
        cls,
        settings: "Settings",
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> "NoestService":
        return cls(
            base_url=settings.noest_api_url,
            timeout=settings.courier_http_timeout,
            transport=transport,
            default_wilaya=settings.default_wilaya,
            default_commune=settings.default_commune,
            default_wilaya_id=settings.noest_default_wilaya_id,
            noest_default_commune=settings.noest_default_commune,
        )

    def resolve_wilaya_id(self, shipment: ShipmentRequest) -> int:
        """Numeric wilaya id: explicit id, then a numeric wilaya name, then the default."""
        if shipment.wilaya_id and shipment.wilaya_id > 0:
            return shipment.wilaya_id
        if shipment.wilaya and shipment.wilaya.strip().isdigit():
            value = int(shipment.wilaya.strip())
            if value > 0:
                return value
        return self.default_wilaya_id

    @staticmethod
    def round_weight(weight: float | None) -> int:
        return max(1, math.ceil(weight or 1))

    async def create_shipment(
        self,
        shipment: ShipmentRequest,
        api_key: str,
        secondary: str | None = None,
    ) -> ShipmentResult:
        if not secondary:
            return ShipmentResult(success=False, error=MISSING_GUID_ERROR)

        reference = shipment.reference_id
        base_payload = {
            "api_token": api_key,
            "user_guid": secondary,
            "reference": reference,
            "client": shipment.customer_name,
            "phone": digits_only(shipment.customer_phone),
            "adresse": shipment.delivery_address,
            "wilaya_id": self.resolve_wilaya_id(shipment),
            "montant": self.cod_of(shipment),
            "remarque": shipment.notes or "",
            "produit": shipment.product_description or f"Order {reference}",
            "type_id": 1,
            "poids": self.round_weight(shipment.weight),
            "stop_desk": 1 if shipment.is_stopdesk else 0,
            "stock": 0,
        }

        async def attempt(commune: str | int):
            return await self._send(
                "POST",
                "/api/public/create/order",
                json_body={**base_payload, "commune": commune},
            )

        candidates = self.commune_candidates(shipment, self.noest_default_commune)
        created = await self.create_with_commune_fallback(candidates, attempt)

        if not created.ok:
            return ShipmentResult(success=False, error=created.error_message())
        if created.json is None:
            return ShipmentResult(success=False, error=created.non_json_error())

        data = created.data
        if not data.get("success"):
            return ShipmentResult(
                success=False,
                raw=data,
                error=data.get("message") or data.get("error") or "Noest create order failed",
            )

        tracking = str(data.get("tracking") or "").strip()
        if not tracking:
            return ShipmentResult(
                success=False,
                raw=data,
                error="Noest create order succeeded but no tracking was returned",
            )

        validated = await self._send(
            "POST",
            "/api/public/validation/order",
            json_body={"api_token": api_key, "user_guid": secondary, "tracking": tracking},
        )
        if not validated.ok or validated.data.get("success") is not True:
            logger.error("Noest order %s created but validation failed (HTTP %s)", tracking, validated.status_code)
            return ShipmentResult(
                success=False,
                raw={"created": data, "validation": validated.data},
                error=validated.error_message("Validate failed: HTTP"),
            )

        return ShipmentResult(
            success=True,
            tracking_number=tracking,
            reference_id=reference,
            raw=data,
        )

    async def get_status(
        self,
        tracking_number: str,
        api_key: str,
        secondary: str | None = None,
    ) -> StatusResult:
        if not secondary:
            return StatusResult(tracking_number=tracking_number, error=MISSING_GUID_ERROR)

        response = await self._send(
            "POST",
            "/api/public/get/trackings/info",
            json_body={"api_token": api_key, "user_guid": secondary, "trackings": [tracking_number]},
        )
        if not response.ok:
            return StatusResult(
                tracking_number=tracking_number,
                error=response.error_message("Failed to fetch status: HTTP"),
            )

        data = response.data
        nested = data.get("data")
        entry = data.get(tracking_number) or (nested.get(tracking_number) if isinstance(nested, Mapping) else None)
        if not isinstance(entry, Mapping):
            return StatusResult(tracking_number=tracking_number, error="Tracking not found")

        order_info = entry.get("OrderInfo") if isinstance(entry.get("OrderInfo"), Mapping) else {}
        raw_status = order_info.get("status") or order_info.get("status_label") or entry.get("status")
        return self.status_result(tracking_number, str(raw_status) if raw_status else None)

    def verify_webhook(self, payload, signature, secret, headers=None) -> bool:
        # Noest does not sign webhooks
        return False

    async def get_label_pdf(
        self,
        tracking_number: str,
        api_key: str,
        secondary: str | None = None,
    ) -> LabelPdfResult:
        response = await self._send(
            "GET",
            "/api/public/get/order/label",
            headers={"Accept": "application/pdf,application/octet-stream,application/json;q=0.9,*/*;q=0.8"},
            params={"api_token": api_key, "tracking": tracking_number},
        )

        if not response.ok:
            return LabelPdfResult(
                success=False,
                error=response.error_message("Noest label fetch failed: HTTP"),
            )
        if not response.content:
            return LabelPdfResult(success=False, error="Noest label fetch returned empty body")
        if not response.content.startswith(b"%PDF") and "pdf" not in response.content_type.lower():
            return LabelPdfResult(
                success=False,
                error=(
                    f"Noest returned a non-PDF label "
                    f"({response.content_type or 'unknown'}): {response.snippet(200)}"
                ),
            )

        return LabelPdfResult(success=True, pdf=response.content)
