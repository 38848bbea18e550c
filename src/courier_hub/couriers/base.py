"""Base courier service interface."""

import json
import logging
import re
from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, ClassVar

import httpx
from pydantic import BaseModel, ConfigDict, ValidationError, field_validator

from courier_hub.couriers.signing import verify_hex_signature
from courier_hub.delivery.models import ShipmentRequest
from courier_hub.delivery.status import (
    CourierStatus,
    DeliveryStatus,
    build_status_table,
    lookup_courier_status,
)
from courier_hub.exceptions import WebhookPayloadError

if TYPE_CHECKING:
    from courier_hub.config import Settings

logger = logging.getLogger(__name__)

ERROR_SNIPPET_LENGTH = 400
SUCCESS_SNIPPET_LENGTH = 200

_JSON_START = re.compile(r"^\s*[\[{]")

# English status vocabulary shared by the Ecotrack platform, Maystro and Dolivroo
COMMON_STATUS_TABLE: dict[str, CourierStatus] = {
    "pending": CourierStatus.PENDING,
    "confirmed": CourierStatus.PENDING,
    "picked_up": CourierStatus.PICKED_UP,
    "in_transit": CourierStatus.IN_TRANSIT,
    "at_hub": CourierStatus.IN_TRANSIT,
    "out_for_delivery": CourierStatus.OUT_FOR_DELIVERY,
    "delivered": CourierStatus.DELIVERED,
    "failed": CourierStatus.FAILED,
    "returned": CourierStatus.RETURNED,
    "cancelled": CourierStatus.CANCELLED,
}


# =============================================================================
# Adapter results
# =============================================================================


@dataclass
class ShipmentResult:
    """Outcome of creating a shipment with a courier."""

    success: bool
    tracking_number: str = ""
    label_url: str | None = None
    label_data: str | None = None  # Base64 encoded PDF
    reference_id: str | None = None
    estimated_delivery: str | None = None
    raw: dict | None = None
    error: str | None = None


@dataclass
class TrackingEvent:
    """One entry of a courier's tracking history."""

    type: str
    timestamp: str | None = None
    description: str | None = None
    location: str | None = None


@dataclass
class StatusResult:
    """Current status of a shipment as reported by the courier."""

    tracking_number: str
    status: DeliveryStatus = DeliveryStatus.PENDING
    raw_status: str | None = None
    courier_status: CourierStatus | None = None
    last_update: str | None = None
    location: str | None = None
    events: list[TrackingEvent] = field(default_factory=list)
    error: str | None = None


@dataclass
class WebhookEvent:
    """A courier webhook normalized to canonical terms."""

    tracking_number: str
    event_type: DeliveryStatus
    status: str | None = None  # Raw courier status
    courier_status: CourierStatus = CourierStatus.PENDING
    timestamp: str | None = None
    location: str | None = None
    description: str | None = None


@dataclass
class CancelResult:
    success: bool
    error: str | None = None


@dataclass
class LabelPdfResult:
    success: bool
    pdf: bytes | None = None
    content_type: str = "application/pdf"
    error: str | None = None


# =============================================================================
# HTTP helpers
# =============================================================================


@dataclass
class ApiResponse:
    """
    A courier HTTP response read defensively.

    Couriers return HTML error pages, empty bodies and JSON with the wrong
    content type; json is None whenever the body does not parse.
    """

    status_code: int
    content_type: str
    text: str
    content: bytes = b""
    json: Any | None = None

    @property
    def ok(self) -> bool:
        return 200 <= self.status_code < 300

    @property
    def data(self) -> dict[str, Any]:
        """The JSON body when it is an object, else an empty dict."""
        return self.json if isinstance(self.json, dict) else {}

    def snippet(self, limit: int = ERROR_SNIPPET_LENGTH) -> str:
        return self.text[:limit]

    def error_message(self, prefix: str = "API Error", fields: tuple[str, ...] = ("message", "error")) -> str:
        """
        Human readable error for a failed call.

        Prefers the courier's own message; otherwise reports status code,
        content type and a truncated body snippet.
        """
        for name in fields:
            value = self.data.get(name)
            if value and isinstance(value, (str, int, float)):
                return str(value)
        return (
            f"{prefix} {self.status_code} "
            f"({self.content_type or 'unknown content-type'}): "
            f"{self.snippet() or 'empty response'}"
        )

    def non_json_error(self) -> str:
        return (
            f"API returned non-JSON success response "
            f"({self.content_type or 'unknown'}): {self.snippet(SUCCESS_SNIPPET_LENGTH)}"
        )


def read_api_response(response: httpx.Response) -> ApiResponse:
    """Read an httpx response without assuming it is JSON."""
    content_type = response.headers.get("content-type", "")
    text = response.text
    parsed: Any | None = None

    if "application/json" in content_type or _JSON_START.match(text):
        try:
            parsed = json.loads(text)
        except ValueError:
            parsed = None

    return ApiResponse(
        status_code=response.status_code,
        content_type=content_type,
        text=text,
        content=response.content,
        json=parsed,
    )


def split_name(full_name: str, default_first: str = "Customer") -> tuple[str, str]:
    """Split a customer name into first name and family name."""
    parts = (full_name or "").strip().split()
    if not parts:
        return default_first, ""
    return parts[0], " ".join(parts[1:])


def digits_only(phone: str | None) -> str:
    return re.sub(r"\D", "", phone or "")


def _optional_str(value: Any) -> str | None:
    return None if value is None or value == "" else str(value)


def to_tracking_events(
    items: Any,
    type_fields: tuple[str, ...] = ("type", "status"),
    timestamp_fields: tuple[str, ...] = ("timestamp", "date"),
) -> list[TrackingEvent]:
    """Convert a courier's tracking history list, skipping malformed entries."""
    if not isinstance(items, list):
        return []

    events: list[TrackingEvent] = []
    for item in items:
        if not isinstance(item, Mapping):
            continue
        event_type = next((str(item[f]) for f in type_fields if item.get(f)), None)
        if event_type is None:
            continue
        events.append(
            TrackingEvent(
                type=event_type,
                timestamp=next((_optional_str(item[f]) for f in timestamp_fields if item.get(f)), None),
                description=_optional_str(item.get("description")),
                location=_optional_str(item.get("location")),
            )
        )
    return events


# =============================================================================
# Webhook payloads
# =============================================================================


class CourierWebhookPayload(BaseModel):
    """
    Common webhook fields.

    Providers subclass this and redeclare fields with the aliases their
    payloads use. Unknown fields are ignored.
    """

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    tracking_number: str | None = None
    status: str | None = None
    timestamp: str | None = None
    location: str | None = None
    description: str | None = None

    @field_validator("tracking_number", "status", "timestamp", "location", "description", mode="before")
    @classmethod
    def _scalar_to_str(cls, value: Any) -> Any:
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return str(value)
        return value


def coerce_payload(payload: Any) -> dict[str, Any]:
    """Turn a raw or parsed webhook body into a JSON object."""
    if isinstance(payload, (bytes, str)):
        try:
            payload = json.loads(payload)
        except ValueError as e:
            raise WebhookPayloadError("Webhook body is not valid JSON") from e
    if not isinstance(payload, Mapping):
        raise WebhookPayloadError("Webhook body must be a JSON object")
    return dict(payload)


# =============================================================================
# Courier service
# =============================================================================


class CourierService(ABC):
    """
    Abstract base class for courier integrations.

    Adapters translate a ShipmentRequest into one courier's API, map the
    courier's status vocabulary onto CourierStatus, and verify and parse
    its webhooks. Courier rejections come back as unsuccessful results;
    transport failures (httpx errors) propagate to the caller.

    Credentials are passed per call: api_key is the primary credential and
    secondary the courier-specific second one (API id, tenant id, account
    guid). Adapters never log either.
    """

    provider: ClassVar[str]
    display_name: ClassVar[str]
    default_base_url: ClassVar[str]

    supports_cancellation: ClassVar[bool] = False
    supports_label_pdf: ClassVar[bool] = False

    # Raw courier status -> CourierStatus; looked up case, accent and separator insensitively
    STATUS_TABLE: ClassVar[dict[str, CourierStatus]] = {}
    webhook_model: ClassVar[type[CourierWebhookPayload]] = CourierWebhookPayload

    def __init__(
        self,
        *,
        base_url: str | None = None,
        timeout: float = 15.0,
        transport: httpx.AsyncBaseTransport | None = None,
        default_wilaya: str = "Alger",
        default_commune: str = "Alger Centre",
    ) -> None:
        """
        Initialize the courier service.

        Args:
            base_url: Override of the courier API base URL.
            timeout: Per-request timeout in seconds.
            transport: Optional httpx transport (tests use httpx.MockTransport).
            default_wilaya: Wilaya sent when the shipment carries none.
            default_commune: Commune sent when the shipment carries none.
        """
        self.api_url = (base_url or self.default_base_url).rstrip("/")
        self.timeout = timeout
        self.default_wilaya = default_wilaya
        self.default_commune = default_commune
        self._transport = transport
        self._client: httpx.AsyncClient | None = None
        self._status_index = build_status_table(self.STATUS_TABLE)

    @classmethod
    def from_settings(
        cls,
        settings: "Settings",
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> "CourierService":
        """Build the adapter from application settings."""
        return cls(
            timeout=settings.courier_http_timeout,
            transport=transport,
            default_wilaya=settings.default_wilaya,
            default_commune=settings.default_commune,
        )

    @property
    def client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self.api_url,
                headers={"Accept": "application/json"},
                timeout=self.timeout,
                transport=self._transport,
            )
        return self._client

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client:
            await self._client.aclose()
            self._client = None

    async def _send(
        self,
        method: str,
        path: str,
        *,
        headers: dict[str, str] | None = None,
        json_body: Any | None = None,
        params: Any | None = None,
    ) -> ApiResponse:
        """Make an API request and read the response without assuming JSON."""
        response = await self.client.request(
            method,
            path,
            headers=headers,
            json=json_body,
            params=params,
        )
        api_response = read_api_response(response)
        if not api_response.ok:
            logger.warning(
                "%s %s %s returned HTTP %s (%s)",
                self.display_name,
                method,
                path,
                api_response.status_code,
                api_response.content_type or "unknown content-type",
            )
        return api_response

    # -------------------------------------------------------------------------
    # Status mapping
    # -------------------------------------------------------------------------

    def map_courier_status(self, raw_status: str | None) -> CourierStatus:
        """Map a raw courier status onto CourierStatus; unknown maps to PENDING."""
        return lookup_courier_status(self._status_index, raw_status)

    def map_status(self, raw_status: str | None) -> DeliveryStatus:
        """Map a raw courier status onto the canonical DeliveryStatus."""
        return self.map_courier_status(raw_status).canonical()

    def status_result(
        self,
        tracking_number: str,
        raw_status: str | None,
        **kwargs: Any,
    ) -> StatusResult:
        courier_status = self.map_courier_status(raw_status)
        return StatusResult(
            tracking_number=tracking_number,
            status=courier_status.canonical(),
            raw_status=raw_status,
            courier_status=courier_status,
            **kwargs,
        )

    # -------------------------------------------------------------------------
    # Contract
    # -------------------------------------------------------------------------

    @abstractmethod
    async def create_shipment(
        self,
        shipment: ShipmentRequest,
        api_key: str,
        secondary: str | None = None,
    ) -> ShipmentResult:
        """
        Create a shipment with the courier.

        Creates a real parcel on the courier side and is not safe to retry.

        Args:
            shipment: The validated shipment.
            api_key: Primary credential.
            secondary: Courier-specific secondary credential.

        Returns:
            ShipmentResult; success=False with an error on courier rejection.
        """
        ...

    @abstractmethod
    async def get_status(
        self,
        tracking_number: str,
        api_key: str,
        secondary: str | None = None,
    ) -> StatusResult:
        """
        Fetch the current status of a shipment.

        Returns:
            StatusResult; error is set when the courier could not answer.
        """
        ...

    def verify_webhook(
        self,
        payload: bytes | str | Mapping[str, Any],
        signature: str | None,
        secret: str | None,
        headers: Mapping[str, str] | None = None,
    ) -> bool:
        """
        Verify a webhook signature.

        Default: hex HMAC-SHA256 over the canonical payload, compared in
        constant time. Never raises.
        """
        return verify_hex_signature(payload, signature, secret)

    def parse_webhook_payload(self, payload: Any) -> WebhookEvent:
        """
        Parse a webhook body into a WebhookEvent.

        Raises:
            WebhookPayloadError: If the body is not a valid object or carries no tracking number.
        """
        data = coerce_payload(payload)
        try:
            parsed = self.webhook_model.model_validate(data)
        except ValidationError as e:
            raise WebhookPayloadError(
                f"Invalid {self.display_name} webhook payload",
                detail=str(e),
            ) from e

        if not parsed.tracking_number:
            raise WebhookPayloadError(f"{self.display_name} webhook payload has no tracking number")

        courier_status = self.map_courier_status(parsed.status)
        return WebhookEvent(
            tracking_number=parsed.tracking_number,
            event_type=courier_status.canonical(),
            status=parsed.status,
            courier_status=courier_status,
            timestamp=parsed.timestamp,
            location=parsed.location,
            description=parsed.description,
        )

    async def cancel_shipment(
        self,
        tracking_number: str,
        api_key: str,
        secondary: str | None = None,
    ) -> CancelResult:
        """Cancel a shipment. Not supported unless the adapter overrides it."""
        return CancelResult(success=False, error=f"Cancellation is not supported by {self.display_name}")

    async def get_label_pdf(
        self,
        tracking_number: str,
        api_key: str,
        secondary: str | None = None,
    ) -> LabelPdfResult:
        """Download the shipping label PDF. Not supported unless the adapter overrides it."""
        return LabelPdfResult(success=False, error=f"Label download is not supported by {self.display_name}")

    # -------------------------------------------------------------------------
    # Shared request building
    # -------------------------------------------------------------------------

    def wilaya_of(self, shipment: ShipmentRequest) -> str:
        return shipment.wilaya or self.default_wilaya

    def commune_of(self, shipment: ShipmentRequest) -> str:
        return shipment.commune or self.default_commune

    @staticmethod
    def weight_of(shipment: ShipmentRequest, default: float = 1) -> float:
        return shipment.weight or default

    @staticmethod
    def cod_of(shipment: ShipmentRequest) -> float:
        return shipment.cod_amount or 0

    def commune_candidates(
        self,
        shipment: ShipmentRequest,
        default_commune: str | None = None,
    ) -> list[str | int]:
        """
        Communes to try, in order: explicit name, numeric id, default.

        Duplicates are removed while preserving order. Names and ids are
        distinct keys, so "16" and 16 are both kept.
        """
        candidates: list[str | int] = []
        name = (shipment.commune or "").strip()
        if name:
            candidates.append(name)
        if shipment.commune_id and shipment.commune_id > 0:
            candidates.append(shipment.commune_id)
        fallback = (default_commune or self.default_commune or "").strip()
        if fallback:
            candidates.append(fallback)

        seen: set[tuple[str, str]] = set()
        unique: list[str | int] = []
        for candidate in candidates:
            key = ("n" if isinstance(candidate, int) else "s", str(candidate))
            if key in seen:
                continue
            seen.add(key)
            unique.append(candidate)
        return unique

    @staticmethod
    def is_commune_validation_error(response: ApiResponse) -> bool:
        """True when the courier rejected the request specifically for its commune."""
        errors = response.data.get("errors")
        if not isinstance(errors, dict):
            return False
        commune_errors = errors.get("commune")
        return isinstance(commune_errors, list) and len(commune_errors) > 0

    async def create_with_commune_fallback(
        self,
        candidates: list[str | int],
        attempt: Callable[[str | int], Awaitable[ApiResponse]],
    ) -> ApiResponse:
        """
        Try each commune candidate until the courier accepts one.

        Only commune validation errors move on to the next candidate; any
        other failure is returned immediately.

        Returns:
            The accepted response, or the last failed one.
        """
        response: ApiResponse | None = None
        for commune in candidates:
            response = await attempt(commune)
            if response.ok:
                return response
            if not self.is_commune_validation_error(response):
                break
            logger.info("%s rejected commune %r, trying next candidate", self.display_name, commune)

        if response is None:
            raise ValueError("No commune candidates to try")
        return response
