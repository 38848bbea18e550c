"""Delivery domain models."""

from datetime import datetime, timezone
from typing import Any

from pydantic import BaseModel, Field

from courier_hub.delivery.status import DeliveryStatus


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class CompanyFeatures(BaseModel):
    """Capabilities a delivery company advertises."""

    supports_cod: bool = True
    supports_tracking: bool = True
    supports_labels: bool = False
    supports_create_shipment: bool = False

    model_config = {"extra": "ignore"}


class DeliveryCompany(BaseModel):
    """Courier network reference data."""

    id: int
    name: str
    api_url: str | None = None
    contact_email: str | None = None
    contact_phone: str | None = None
    features: CompanyFeatures = Field(default_factory=CompanyFeatures)
    is_active: bool = True


class DeliveryIntegration(BaseModel):
    """
    A client's credentials for one delivery company.

    Secrets are held only as vault envelopes. The secondary credential
    (api_secret) is the API id, tenant id or account guid depending on
    the courier.
    """

    id: int | None = None
    client_id: int
    delivery_company_id: int
    api_key_encrypted: str
    api_secret_encrypted: str | None = None
    webhook_secret_encrypted: str | None = None
    account_number: str | None = None
    merchant_id: str | None = None
    is_enabled: bool = True
    configured_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)


class OrderWithDelivery(BaseModel):
    """A store order plus its delivery sub-state."""

    id: int
    client_id: int
    product_id: int | None = None
    quantity: int = 1
    total_price: float = 0.0

    # Customer
    customer_name: str = ""
    customer_email: str | None = None
    customer_phone: str = ""
    customer_address: str = ""
    wilaya: str | None = None
    commune: str | None = None
    wilaya_id: int | None = None
    commune_id: int | None = None

    # Delivery sub-state, written only by the orchestrator
    delivery_company_id: int | None = None
    tracking_number: str | None = None
    delivery_status: DeliveryStatus = DeliveryStatus.PENDING
    shipping_label_url: str | None = None
    label_generated_at: datetime | None = None
    cod_amount: float | None = None
    courier_response: dict[str, Any] | None = None  # Raw courier payload, for audit

    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime | None = None


class ShippingLabel(BaseModel):
    """A label generated for an order."""

    id: int | None = None
    order_id: int
    client_id: int
    delivery_company_id: int
    tracking_number: str
    label_url: str | None = None
    label_format: str = "pdf"
    generated_at: datetime = Field(default_factory=utcnow)
    expires_at: datetime | None = None


class DeliveryEvent(BaseModel):
    """Append-only record of a courier status event."""

    id: int | None = None
    order_id: int
    client_id: int
    delivery_company_id: int
    tracking_number: str
    event_type: DeliveryStatus
    event_status: str | None = None  # Raw courier status
    description: str | None = None
    location: str | None = None
    courier_timestamp: datetime | None = None
    webhook_payload: dict[str, Any] | None = None
    webhook_verified: bool = False
    created_at: datetime = Field(default_factory=utcnow)


class DeliveryError(BaseModel):
    """Append-only record of a failed delivery operation."""

    id: int | None = None
    client_id: int | None = None
    order_id: int | None = None
    delivery_company_id: int | None = None
    error_type: str
    error_message: str
    request_id: str | None = None
    created_at: datetime = Field(default_factory=utcnow)


class ShipmentRequest(BaseModel):
    """Validated shipment handed to a courier adapter."""

    customer_name: str = Field(min_length=1)
    customer_phone: str = Field(min_length=1)
    customer_email: str | None = None
    delivery_address: str = Field(min_length=1)
    wilaya: str | None = None
    commune: str | None = None
    wilaya_id: int | None = None
    commune_id: int | None = None
    product_description: str | None = None
    quantity: int = Field(default=1, ge=1)
    weight: float | None = Field(default=None, gt=0)
    cod_amount: float | None = Field(default=None, ge=0)
    notes: str | None = None
    is_stopdesk: bool = False
    provider: str | None = Field(
        default=None,
        description="Preferred sub-provider for aggregators (Dolivroo)",
    )
    reference_id: str = Field(min_length=1, description="Our order reference, used for idempotency")


# =============================================================================
# Operation results
# =============================================================================


class OperationResult(BaseModel):
    """Common shape of every orchestrator outcome."""

    success: bool
    error: str | None = None


class AssignmentResult(OperationResult):
    delivery_status: DeliveryStatus | None = None


class ShipmentOutcome(OperationResult):
    """Result of pushing an order to a courier."""

    tracking_number: str | None = None
    label_url: str | None = None
    delivery_status: DeliveryStatus | None = None


class LabelResult(ShipmentOutcome):
    """Result of generating a shipping label."""

    label_id: int | None = None
    label_generated_at: datetime | None = None


class CourierTrackingEvent(BaseModel):
    type: str
    timestamp: str | None = None
    description: str | None = None
    location: str | None = None


class DeliveryStatusSnapshot(OperationResult):
    """Current courier status of an order plus its recorded events."""

    order_id: int | None = None
    tracking_number: str | None = None
    status: DeliveryStatus | None = None
    raw_status: str | None = None
    stored_status: DeliveryStatus | None = None
    last_update: str | None = None
    location: str | None = None
    courier_events: list[CourierTrackingEvent] = Field(default_factory=list)
    events: list[DeliveryEvent] = Field(default_factory=list)


class CancellationResult(OperationResult):
    delivery_status: DeliveryStatus | None = None


class WebhookResult(OperationResult):
    """Result of ingesting one courier webhook."""

    order_id: int | None = None
    event_id: int | None = None
    verified: bool = False
    status_changed: bool = False


class BulkOrderResult(BaseModel):
    success: bool
    tracking_number: str | None = None
    label_url: str | None = None
    error: str | None = None


class BulkAssignResult(BaseModel):
    """Per-order outcomes of a bulk assignment."""

    success_count: int = 0
    fail_count: int = 0
    results: dict[int, BulkOrderResult] = Field(default_factory=dict)


class CompanyListing(BaseModel):
    """A delivery company as listed to a client."""

    id: int
    name: str
    features: CompanyFeatures
    is_active: bool
    configured: bool = False
    has_api_key: bool = False


class IntegrationSummary(BaseModel):
    """Integration as exposed to callers; never carries envelopes or secrets."""

    id: int | None = None
    delivery_company_id: int
    company_name: str | None = None
    account_number: str | None = None
    merchant_id: str | None = None
    is_enabled: bool
    has_api_key: bool
    has_api_secret: bool
    has_webhook_secret: bool
    configured_at: datetime | None = None
    updated_at: datetime | None = None


class IntegrationInput(BaseModel):
    """Credentials submitted when configuring an integration."""

    delivery_company_id: int = Field(gt=0)
    api_key: str = Field(min_length=1)
    api_secret: str | None = None
    account_number: str | None = None
    merchant_id: str | None = None
    webhook_secret: str | None = None
