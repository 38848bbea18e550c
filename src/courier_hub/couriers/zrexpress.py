"""ZR Express courier service (official API).

API reference: https://docs.zrexpress.app/reference

Authentication uses X-Api-Key (the API key) and X-Tenant (the secondary
credential). Parcels need territory ids for their wilaya and commune,
resolved through the territory search endpoint and cached per instance.
Webhooks are delivered through Svix.
"""

import logging
import time
import uuid
from collections.abc import Mapping
from typing import TYPE_CHECKING, Any

import httpx
from pydantic import model_validator

from courier_hub.couriers.base import (
    ApiResponse,
    CancelResult,
    CourierService,
    CourierWebhookPayload,
    ShipmentResult,
    StatusResult,
)
from courier_hub.couriers.signing import (
    has_svix_headers,
    verify_base64_signature,
    verify_svix_signature,
)
from courier_hub.delivery.models import ShipmentRequest
from courier_hub.delivery.status import CourierStatus, normalize_status_key

if TYPE_CHECKING:
    from courier_hub.config import Settings

logger = logging.getLogger(__name__)

MISSING_TENANT_ERROR = "Tenant ID (secondary credential) is required for ZR Express"
CANCEL_NOT_SUPPORTED = (
    "Cancellation via API is not supported for ZR Express; cancel through the ZR Express dashboard"
)

ZR_STATUS_TABLE: dict[str, CourierStatus] = {
    # French
    "nouveau": CourierStatus.PENDING,
    "en_attente": CourierStatus.PENDING,
    "pret_a_expedier": CourierStatus.PENDING,
    "ramasse": CourierStatus.PICKED_UP,
    "en_transit": CourierStatus.IN_TRANSIT,
    "au_hub": CourierStatus.IN_TRANSIT,
    "en_livraison": CourierStatus.OUT_FOR_DELIVERY,
    "livre": CourierStatus.DELIVERED,
    "retourne": CourierStatus.RETURNED,
    "annule": CourierStatus.CANCELLED,
    "echec": CourierStatus.FAILED,
    # English
    "new": CourierStatus.PENDING,
    "pending": CourierStatus.PENDING,
    "ready_to_ship": CourierStatus.PENDING,
    "picked_up": CourierStatus.PICKED_UP,
    "in_transit": CourierStatus.IN_TRANSIT,
    "at_hub": CourierStatus.IN_TRANSIT,
    "out_for_delivery": CourierStatus.OUT_FOR_DELIVERY,
    "on_delivery": CourierStatus.OUT_FOR_DELIVERY,
    "delivered": CourierStatus.DELIVERED,
    "returned": CourierStatus.RETURNED,
    "cancelled": CourierStatus.CANCELLED,
    "failed": CourierStatus.FAILED,
}


class TerritoryCache:
    """
    Time-bounded cache of the territory list.

    Not locked: concurrent misses may each fetch, and the last write wins.
    """

    def __init__(self, ttl_seconds: float = 3600, clock=time.monotonic) -> None:
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._items: list[dict[str, Any]] | None = None
        self._fetched_at = 0.0

    def get(self) -> list[dict[str, Any]] | None:
        if self._items is None:
            return None
        if self._clock() - self._fetched_at >= self.ttl_seconds:
            return None
        return self._items

    def store(self, items: list[dict[str, Any]]) -> None:
        self._items = items
        self._fetched_at = self._clock()

    def clear(self) -> None:
        self._items = None
        self._fetched_at = 0.0


class ZRWebhookPayload(CourierWebhookPayload):
    """Svix-delivered parcel event; the parcel sits under "data"."""

    event: str | None = None

    @model_validator(mode="before")
    @classmethod
    def _flatten(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        inner = data.get("data") if isinstance(data.get("data"), dict) else data
        state = inner.get("state") if isinstance(inner.get("state"), dict) else {}
        state_name = state.get("name") or inner.get("newStateName")
        return {
            "tracking_number": inner.get("trackingNumber") or inner.get("tracking_number"),
            "status": state_name,
            "timestamp": data.get("timestamp") or inner.get("updatedAt"),
            "location": inner.get("wilaya") or inner.get("location"),
            "description": state_name or data.get("type"),
            "event": data.get("type"),
        }


def to_international_phone(phone: str | None) -> str:
    """Normalize an Algerian phone number to +213 form."""
    number = "".join((phone or "").split())
    if not number or number.startswith("+"):
        return number
    if number.startswith("00213"):
        return "+" + number[2:]
    if number.startswith("213"):
        return "+" + number
    if number.startswith("0"):
        return "+213" + number[1:]
    return "+213" + number


class ZRExpressService(CourierService):
    """ZR Express official parcels API."""

    provider = "zrexpress"
    display_name = "ZR Express"
    default_base_url = "https://api.zrexpress.app/api/v1"

    STATUS_TABLE = ZR_STATUS_TABLE
    webhook_model = ZRWebhookPayload

    def __init__(self, *, territory_cache_ttl: float = 3600, **kwargs: Any) -> None:
        super().__init__(**kwargs)
        self.territories = TerritoryCache(territory_cache_ttl)

    @classmethod
    def from_settings(
        cls,
        settings: "Settings",
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> "ZRExpressService":
        return cls(
            timeout=settings.courier_http_timeout,
            transport=transport,
            default_wilaya=settings.default_wilaya,
            default_commune=settings.default_commune,
            territory_cache_ttl=settings.territory_cache_ttl,
        )

    def _headers(self, api_key: str, tenant_id: str) -> dict[str, str]:
        return {
            "X-Api-Key": api_key,
            "X-Tenant": tenant_id,
        }

    async def fetch_territories(self, api_key: str, tenant_id: str) -> list[dict[str, Any]]:
        """Return the territory list, from cache when fresh."""
        cached = self.territories.get()
        if cached is not None:
            return cached

        response = await self._send(
            "POST",
            "/territories/search",
            headers=self._headers(api_key, tenant_id),
            json_body={"pageNumber": 1, "pageSize": 5000, "orderBy": ["code asc"]},
        )
        items = response.data.get("items")
        if not response.ok or not isinstance(items, list):
            logger.warning("ZR Express territory search failed (HTTP %s)", response.status_code)
            return []

        self.territories.store(items)
        return items

    async def find_territory_ids(
        self,
        wilaya_name: str,
        commune_name: str,
        api_key: str,
        tenant_id: str,
    ) -> tuple[str | None, str | None]:
        """
        Resolve wilaya and commune names to territory ids.

        Matching is substring based and insensitive to case and accents.

        Returns:
            (city territory id, district territory id); either may be None.
        """
        territories = await self.fetch_territories(api_key, tenant_id)
        wilaya_key = normalize_status_key(wilaya_name)
        commune_key = normalize_status_key(commune_name)

        wilaya = next(
            (
                t for t in territories
                if t.get("level") == "wilaya" and wilaya_key in normalize_status_key(t.get("name"))
            ),
            None,
        )
        if wilaya is None:
            logger.warning("ZR Express wilaya not found: %s", wilaya_name)
            return None, None

        commune = next(
            (
                t for t in territories
                if t.get("level") == "commune"
                and t.get("parentId") == wilaya.get("id")
                and commune_key in normalize_status_key(t.get("name"))
            ),
            None,
        )
        return wilaya.get("id"), commune.get("id") if commune else None

    async def create_shipment(
        self,
        shipment: ShipmentRequest,
        api_key: str,
        secondary: str | None = None,
    ) -> ShipmentResult:
        if not secondary:
            return ShipmentResult(success=False, error=MISSING_TENANT_ERROR)

        wilaya = self.wilaya_of(shipment)
        commune = self.commune_of(shipment)
        city_id, district_id = await self.find_territory_ids(wilaya, commune, api_key, secondary)
        if not city_id or not district_id:
            return ShipmentResult(
                success=False,
                error=(
                    f"Could not find territory IDs for {wilaya}/{commune}. "
                    "Please verify wilaya and commune names."
                ),
            )

        cod = self.cod_of(shipment)
        payload = {
            "customer": {
                "customerId": str(uuid.uuid4()),
                "name": shipment.customer_name,
                "phone": {"number1": to_international_phone(shipment.customer_phone), "number2": ""},
            },
            "deliveryAddress": {
                "street": shipment.delivery_address,
                "city": wilaya,
                "district": commune,
                "postalCode": "",
                "country": "algeria",
                "cityTerritoryId": city_id,
                "districtTerritoryId": district_id,
            },
            "orderedProducts": [
                {
                    "productName": shipment.product_description or "Products",
                    "unitPrice": cod,
                    "quantity": 1,
                    "length": 20,
                    "width": 15,
                    "height": 10,
                    "weight": self.weight_of(shipment),
                    "stockType": "none",
                }
            ],
            "amount": cod,
            "description": shipment.product_description or f"Order {shipment.reference_id}",
            "deliveryType": "pickup-point" if shipment.is_stopdesk else "home",
            "ExternalId": shipment.reference_id,
        }

        response = await self._send(
            "POST",
            "/parcels",
            headers=self._headers(api_key, secondary),
            json_body=payload,
        )

        if not response.ok:
            return ShipmentResult(success=False, error=self._error_from(response))
        if response.json is None:
            return ShipmentResult(success=False, error=response.non_json_error())

        parcel_id = str(response.data.get("id") or "").strip()
        if not parcel_id:
            return ShipmentResult(success=False, raw=response.data, error="No parcel ID returned")

        # The parcel id tracks the parcel until ZR assigns a tracking number
        return ShipmentResult(
            success=True,
            tracking_number=response.data.get("trackingNumber") or parcel_id,
            reference_id=shipment.reference_id,
            raw=response.data,
        )

    @staticmethod
    def _error_from(response: ApiResponse) -> str:
        errors = response.data.get("errors")
        if isinstance(errors, list) and errors:
            messages = [
                str(e.get("description") or e.get("code"))
                for e in errors
                if isinstance(e, Mapping) and (e.get("description") or e.get("code"))
            ]
            if messages:
                return "; ".join(messages)
        return response.error_message(fields=("detail", "message", "error"))

    async def get_status(
        self,
        tracking_number: str,
        api_key: str,
        secondary: str | None = None,
    ) -> StatusResult:
        if not secondary:
            return StatusResult(tracking_number=tracking_number, error=MISSING_TENANT_ERROR)

        response = await self._send(
            "POST",
            "/parcels/search",
            headers=self._headers(api_key, secondary),
            json_body={
                "pageNumber": 1,
                "pageSize": 1,
                "advancedSearch": {"fields": ["trackingNumber", "externalId"], "keyword": tracking_number},
            },
        )
        if not response.ok:
            return StatusResult(
                tracking_number=tracking_number,
                error=response.error_message("Failed to fetch status: HTTP", fields=("detail", "message")),
            )

        items = response.data.get("items")
        if not isinstance(items, list) or not items:
            return StatusResult(tracking_number=tracking_number, error="Parcel not found")

        parcel = items[0]
        state = parcel.get("state") if isinstance(parcel.get("state"), Mapping) else {}
        address = parcel.get("deliveryAddress") if isinstance(parcel.get("deliveryAddress"), Mapping) else {}
        return self.status_result(
            parcel.get("trackingNumber") or tracking_number,
            state.get("name"),
            last_update=parcel.get("updatedAt"),
            location=address.get("city"),
        )

    async def cancel_shipment(
        self,
        tracking_number: str,
        api_key: str,
        secondary: str | None = None,
    ) -> CancelResult:
        if not secondary:
            return CancelResult(success=False, error=MISSING_TENANT_ERROR)
        # Cancelling means moving the parcel to the tenant's cancelled workflow state, whose id the API does not expose
        return CancelResult(success=False, error=CANCEL_NOT_SUPPORTED)

    def verify_webhook(self, payload, signature, secret, headers=None) -> bool:
        """
        Verify a Svix-signed webhook.

        With svix-id / svix-timestamp / svix-signature headers present the
        full timestamped scheme is checked; otherwise the signature header
        must carry a base64 HMAC-SHA256 of the body.
        """
        if not secret:
            return False
        if has_svix_headers(headers):
            return verify_svix_signature(payload, headers, secret)
        return verify_base64_signature(payload, signature, secret)
