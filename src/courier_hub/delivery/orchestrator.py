"""Delivery orchestrator.

Sequences order assignment, shipment creation, label generation, status
polling, cancellation and webhook ingestion across the store, the
credential vault and the courier adapters. It is the only writer of an
order's delivery fields.
"""

import logging
import time
from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, TypeVar

from pydantic import ValidationError

from courier_hub.context import client_context, get_current_request_id
from courier_hub.couriers.base import (
    CancelResult,
    CourierService,
    LabelPdfResult,
    ShipmentResult,
    StatusResult,
    coerce_payload,
)
from courier_hub.couriers.registry import CourierRegistry, resolve_provider
from courier_hub.delivery.models import (
    AssignmentResult,
    CancellationResult,
    CompanyListing,
    CourierTrackingEvent,
    DeliveryCompany,
    DeliveryError,
    DeliveryEvent,
    DeliveryIntegration,
    DeliveryStatusSnapshot,
    IntegrationInput,
    IntegrationSummary,
    LabelResult,
    OperationResult,
    OrderWithDelivery,
    ShipmentOutcome,
    ShipmentRequest,
    ShippingLabel,
    WebhookResult,
    utcnow,
)
from courier_hub.delivery.status import DeliveryStatus, next_status
from courier_hub.exceptions import (
    ConfigurationError,
    CourierHubError,
    CredentialDecryptionError,
    IntegrationNotConfiguredError,
    ResourceNotFoundError,
    WebhookPayloadError,
)
from courier_hub.observability.logging import mask_secret
from courier_hub.observability.metrics import record_courier_request, record_webhook_event
from courier_hub.observability.tracing import add_span_attribute, courier_span, traced
from courier_hub.security.vault import CredentialVault
from courier_hub.storage.base import DeliveryStore

logger = logging.getLogger(__name__)

R = TypeVar("R", bound=OperationResult)
T = TypeVar("T")

ORDER_NOT_FOUND = "Order not found"
NO_TRACKING_NUMBER = "Order has no tracking number"
NO_DELIVERY_COMPANY = "Order has no delivery company assigned"


def redact(message: str, secrets: tuple[str | None, ...]) -> str:
    """Replace every credential occurring in a message with its masked form."""
    for secret in secrets:
        if secret:
            message = message.replace(secret, mask_secret(secret))
    return message


def parse_courier_timestamp(value: str | None) -> datetime | None:
    """Parse an ISO 8601 or unix-epoch courier timestamp; None when unparseable."""
    if not value:
        return None
    text = value.strip()
    if text.isdigit():
        seconds = int(text)
        if seconds > 10**11:  # milliseconds
            seconds //= 1000
        try:
            return datetime.fromtimestamp(seconds, tz=timezone.utc)
        except (OverflowError, OSError, ValueError):
            return None
    try:
        parsed = datetime.fromisoformat(text.replace("Z", "+00:00"))
    except ValueError:
        return None
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)


@dataclass
class CourierAccess:
    """A resolved company adapter and the client's decrypted credentials."""

    company: DeliveryCompany
    adapter: CourierService
    api_key: str
    secondary: str | None

    @property
    def secrets(self) -> tuple[str | None, ...]:
        return (self.api_key, self.secondary)


class DeliveryOrchestrator:
    """
    Coordinates delivery operations for one process.

    Every operation returns a result with success and error rather than
    raising; failures are also appended to the delivery error log with the
    current request id. Integration management raises domain errors
    instead, since it is driven directly by merchant input.
    """

    def __init__(
        self,
        store: DeliveryStore,
        vault: CredentialVault,
        registry: CourierRegistry,
    ) -> None:
        self.store = store
        self.vault = vault
        self.registry = registry

    # -------------------------------------------------------------------------
    # Failure handling
    # -------------------------------------------------------------------------

    async def _fail(
        self,
        result_cls: type[R],
        message: str,
        *,
        error_type: str,
        client_id: int | None,
        order_id: int | None = None,
        company_id: int | None = None,
        **fields: Any,
    ) -> R:
        request_id = get_current_request_id()
        logger.warning(
            "Delivery operation failed (%s): %s",
            error_type,
            message,
            extra={"order_id": order_id, "company_id": company_id},
        )
        await self.store.record_error(
            DeliveryError(
                client_id=client_id,
                order_id=order_id,
                delivery_company_id=company_id,
                error_type=error_type,
                error_message=message,
                request_id=request_id,
            )
        )
        return result_cls(success=False, error=message, **fields)

    async def _call_courier(
        self,
        access: CourierAccess,
        operation: str,
        call: Callable[[], Awaitable[T]],
        **attributes: Any,
    ) -> T:
        """Run one adapter call inside a span, recording its duration and outcome."""
        provider = access.adapter.provider
        start = time.perf_counter()
        outcome = "error"
        try:
            with courier_span(provider, operation, **attributes):
                result = await call()
            succeeded = getattr(result, "success", getattr(result, "error", None) is None)
            outcome = "success" if succeeded else "rejected"
            return result
        finally:
            record_courier_request(provider, operation, time.perf_counter() - start, outcome)

    async def _advance_status(
        self,
        order: OrderWithDelivery,
        proposed: DeliveryStatus,
    ) -> tuple[DeliveryStatus, bool]:
        """
        Move an order towards a proposed status through the state machine.

        The write is a compare-and-set on the status last read. When another
        writer got there first, the order is re-read and the proposal applied
        again to the fresh status, so a late event never overwrites a newer one.

        Returns:
            (status now stored, whether this call changed it)
        """
        current = order.delivery_status
        while True:
            status = next_status(current, proposed)
            if status == current:
                return current, False
            if await self.store.update_delivery_status(order.id, current, status):
                logger.info("Order %s delivery status %s -> %s", order.id, current.value, status.value)
                return status, True

            fresh = await self.store.get_order(order.id, order.client_id)
            if fresh is None:
                return current, False
            logger.debug("Order %s status moved to %s concurrently; retrying", order.id, fresh.delivery_status.value)
            current = fresh.delivery_status

    # -------------------------------------------------------------------------
    # Resolution
    # -------------------------------------------------------------------------

    async def _active_company(self, company_id: int) -> DeliveryCompany:
        company = await self.store.get_company(company_id)
        if company is None or not company.is_active:
            raise ResourceNotFoundError("Delivery company not found or inactive")
        return company

    async def _courier_access(self, client_id: int, company_id: int) -> CourierAccess:
        """
        Resolve company, adapter and credentials for a client.

        Raises:
            ResourceNotFoundError: Unknown or inactive company.
            IntegrationNotConfiguredError: No enabled integration.
            ConfigurationError: The company has no API adapter.
            CredentialDecryptionError: A stored envelope is unreadable.
        """
        company = await self._active_company(company_id)
        integration = await self.store.get_integration(client_id, company_id)
        if integration is None:
            raise IntegrationNotConfiguredError()

        adapter = self.registry.for_company(company.name)
        if adapter is None:
            raise ConfigurationError(f"{company.name} has no API integration")

        return CourierAccess(
            company=company,
            adapter=adapter,
            api_key=self.vault.decrypt(integration.api_key_encrypted),
            secondary=self.vault.decrypt_optional(integration.api_secret_encrypted),
        )

    async def _company_for_webhook(self, company_name: str) -> DeliveryCompany | None:
        company = await self.store.get_company_by_name(company_name)
        if company is not None:
            return company
        # Webhook paths use provider keys ("zrexpress"); match companies through aliases
        provider = resolve_provider(company_name)
        if provider is None:
            return None
        for candidate in await self.store.list_active_companies():
            if resolve_provider(candidate.name) == provider:
                return candidate
        return None

    @staticmethod
    def shipment_request(order: OrderWithDelivery) -> ShipmentRequest:
        """
        Build the courier-facing shipment for an order.

        COD defaults to the order total when no amount was set at assignment.

        Raises:
            ValidationError: If the order lacks recipient details.
        """
        cod = order.cod_amount if order.cod_amount is not None else order.total_price
        return ShipmentRequest(
            customer_name=order.customer_name,
            customer_phone=order.customer_phone,
            customer_email=order.customer_email,
            delivery_address=order.customer_address,
            wilaya=order.wilaya,
            commune=order.commune,
            wilaya_id=order.wilaya_id,
            commune_id=order.commune_id,
            quantity=max(order.quantity, 1),
            cod_amount=cod,
            reference_id=f"ORDER-{order.id}",
        )

    # -------------------------------------------------------------------------
    # Orders
    # -------------------------------------------------------------------------

    @traced(name="delivery.assign_delivery_company")
    async def assign_delivery_company(
        self,
        order_id: int,
        client_id: int,
        company_id: int,
        cod_amount: float | None = None,
    ) -> AssignmentResult:
        """Attach a delivery company and COD amount to an order. No courier call."""
        fail = dict(client_id=client_id, order_id=order_id, company_id=company_id)

        order = await self.store.get_order(order_id, client_id)
        if order is None:
            return await self._fail(AssignmentResult, ORDER_NOT_FOUND, error_type="order_not_found", **fail)

        try:
            await self._active_company(company_id)
        except ResourceNotFoundError as e:
            return await self._fail(AssignmentResult, e.message, error_type="company_not_found", **fail)

        if not await self.store.assign_order(order_id, client_id, company_id, cod_amount):
            return await self._fail(AssignmentResult, ORDER_NOT_FOUND, error_type="order_not_found", **fail)
        status, _ = await self._advance_status(order, DeliveryStatus.ASSIGNED)

        logger.info("Assigned order %s to delivery company %s", order_id, company_id)
        return AssignmentResult(success=True, delivery_status=status)

    async def _push_shipment(
        self,
        result_cls: type[R],
        order_id: int,
        client_id: int,
        company_id: int,
        *,
        with_label: bool,
    ) -> tuple[R | None, ShipmentResult | None, DeliveryStatus | None]:
        """
        Shared create path. Returns (failure, courier result, new status);
        failure is None on success.
        """
        fail = dict(client_id=client_id, order_id=order_id, company_id=company_id)

        order = await self.store.get_order(order_id, client_id)
        if order is None:
            failure = await self._fail(result_cls, ORDER_NOT_FOUND, error_type="order_not_found", **fail)
            return failure, None, None

        try:
            access = await self._courier_access(client_id, company_id)
        except CourierHubError as e:
            failure = await self._fail(result_cls, e.message, error_type=type(e).__name__, **fail)
            return failure, None, None

        try:
            shipment = self.shipment_request(order)
        except ValidationError as e:
            fields = ", ".join(str(err["loc"][0]) for err in e.errors() if err.get("loc"))
            failure = await self._fail(
                result_cls,
                f"Order is missing delivery details: {fields}",
                error_type="validation_error",
                **fail,
            )
            return failure, None, None

        try:
            result = await self._call_courier(
                access,
                "create_shipment",
                lambda: access.adapter.create_shipment(shipment, access.api_key, access.secondary),
                order_reference=shipment.reference_id,
            )
        except Exception as e:
            logger.exception("%s shipment creation raised for order %s", access.adapter.display_name, order_id)
            message = redact(f"{access.adapter.display_name} request failed: {e}", access.secrets)
            failure = await self._fail(result_cls, message, error_type="courier_error", **fail)
            return failure, None, None

        if not result.success or not result.tracking_number:
            message = redact(result.error or "Courier returned no tracking number", access.secrets)
            failure = await self._fail(result_cls, message, error_type="courier_rejected", **fail)
            return failure, None, None

        await self.store.save_shipment(
            order_id,
            client_id,
            delivery_company_id=company_id,
            tracking_number=result.tracking_number,
            label_url=result.label_url,
            courier_response=result.raw,
            label_generated_at=utcnow() if with_label else None,
        )
        status, _ = await self._advance_status(order, DeliveryStatus.ASSIGNED)
        add_span_attribute("courier.tracking_number", result.tracking_number)
        logger.info(
            "Created %s shipment %s for order %s",
            access.adapter.display_name,
            result.tracking_number,
            order_id,
        )
        return None, result, status

    @traced(name="delivery.create_shipment")
    async def create_shipment(self, order_id: int, client_id: int, company_id: int) -> ShipmentOutcome:
        """
        Push an order to its courier.

        Each call creates a new parcel on the courier side; calling it twice
        for one order creates two parcels.
        """
        failure, result, status = await self._push_shipment(
            ShipmentOutcome, order_id, client_id, company_id, with_label=False
        )
        if failure is not None:
            return failure
        return ShipmentOutcome(
            success=True,
            tracking_number=result.tracking_number,
            label_url=result.label_url,
            delivery_status=status,
        )

    @traced(name="delivery.generate_label")
    async def generate_label(self, order_id: int, client_id: int, company_id: int) -> LabelResult:
        """Push an order to its courier and record the resulting shipping label."""
        failure, result, status = await self._push_shipment(
            LabelResult, order_id, client_id, company_id, with_label=True
        )
        if failure is not None:
            return failure

        label = await self.store.insert_label(
            ShippingLabel(
                order_id=order_id,
                client_id=client_id,
                delivery_company_id=company_id,
                tracking_number=result.tracking_number,
                label_url=result.label_url,
            )
        )
        return LabelResult(
            success=True,
            tracking_number=result.tracking_number,
            label_url=result.label_url,
            delivery_status=status,
            label_id=label.id,
            label_generated_at=label.generated_at,
        )

    async def _tracked_order_access(
        self,
        result_cls: type[R],
        order_id: int,
        client_id: int,
    ) -> tuple[R | None, OrderWithDelivery | None, CourierAccess | None]:
        """Load an order that already has a courier parcel, with courier access."""
        order = await self.store.get_order(order_id, client_id)
        if order is None:
            failure = await self._fail(
                result_cls, ORDER_NOT_FOUND, error_type="order_not_found", client_id=client_id, order_id=order_id
            )
            return failure, None, None

        fail = dict(client_id=client_id, order_id=order_id, company_id=order.delivery_company_id)
        if not order.tracking_number:
            return await self._fail(result_cls, NO_TRACKING_NUMBER, error_type="no_tracking", **fail), None, None
        if order.delivery_company_id is None:
            return await self._fail(result_cls, NO_DELIVERY_COMPANY, error_type="no_company", **fail), None, None

        try:
            access = await self._courier_access(client_id, order.delivery_company_id)
        except CourierHubError as e:
            return await self._fail(result_cls, e.message, error_type=type(e).__name__, **fail), None, None
        return None, order, access

    @traced(name="delivery.get_delivery_status")
    async def get_delivery_status(self, order_id: int, client_id: int) -> DeliveryStatusSnapshot:
        """
        Re-query the courier for an order's status.

        Read path: the stored status is reported alongside and never updated.
        """
        failure, order, access = await self._tracked_order_access(DeliveryStatusSnapshot, order_id, client_id)
        if failure is not None:
            return failure

        fail = dict(client_id=client_id, order_id=order_id, company_id=access.company.id)
        try:
            status: StatusResult = await self._call_courier(
                access,
                "get_status",
                lambda: access.adapter.get_status(order.tracking_number, access.api_key, access.secondary),
                tracking_number=order.tracking_number,
            )
        except Exception as e:
            logger.exception("%s status lookup raised for order %s", access.adapter.display_name, order_id)
            message = redact(f"{access.adapter.display_name} request failed: {e}", access.secrets)
            return await self._fail(DeliveryStatusSnapshot, message, error_type="courier_error", **fail)

        if status.error:
            message = redact(status.error, access.secrets)
            return await self._fail(DeliveryStatusSnapshot, message, error_type="courier_rejected", **fail)

        events = await self.store.list_events(order_id)
        return DeliveryStatusSnapshot(
            success=True,
            order_id=order_id,
            tracking_number=order.tracking_number,
            status=status.status,
            raw_status=status.raw_status,
            stored_status=order.delivery_status,
            last_update=status.last_update,
            location=status.location,
            courier_events=[
                CourierTrackingEvent(
                    type=e.type,
                    timestamp=e.timestamp,
                    description=e.description,
                    location=e.location,
                )
                for e in status.events
            ],
            events=events,
        )

    @traced(name="delivery.get_label_pdf")
    async def get_label_pdf(self, order_id: int, client_id: int) -> LabelPdfResult:
        """Download the courier's label PDF for an order."""
        failure, order, access = await self._tracked_order_access(OperationResult, order_id, client_id)
        if failure is not None:
            return LabelPdfResult(success=False, error=failure.error)

        fail = dict(client_id=client_id, order_id=order_id, company_id=access.company.id)
        if not access.adapter.supports_label_pdf:
            message = f"Label download is not supported by {access.adapter.display_name}"
            await self._fail(OperationResult, message, error_type="not_supported", **fail)
            return LabelPdfResult(success=False, error=message)

        try:
            result: LabelPdfResult = await self._call_courier(
                access,
                "get_label_pdf",
                lambda: access.adapter.get_label_pdf(order.tracking_number, access.api_key, access.secondary),
                tracking_number=order.tracking_number,
            )
        except Exception as e:
            logger.exception("%s label download raised for order %s", access.adapter.display_name, order_id)
            message = redact(f"{access.adapter.display_name} request failed: {e}", access.secrets)
            await self._fail(OperationResult, message, error_type="courier_error", **fail)
            return LabelPdfResult(success=False, error=message)

        if not result.success:
            message = redact(result.error or "Label download failed", access.secrets)
            await self._fail(OperationResult, message, error_type="courier_rejected", **fail)
            return LabelPdfResult(success=False, error=message)
        return result

    @traced(name="delivery.cancel_shipment")
    async def cancel_shipment(self, order_id: int, client_id: int) -> CancellationResult:
        """
        Cancel an order's courier parcel.

        A successful cancellation is recorded as an event; the order moves to
        failed only where the status machine allows it.
        """
        failure, order, access = await self._tracked_order_access(CancellationResult, order_id, client_id)
        if failure is not None:
            return failure

        fail = dict(client_id=client_id, order_id=order_id, company_id=access.company.id)
        try:
            result: CancelResult = await self._call_courier(
                access,
                "cancel_shipment",
                lambda: access.adapter.cancel_shipment(order.tracking_number, access.api_key, access.secondary),
                tracking_number=order.tracking_number,
            )
        except Exception as e:
            logger.exception("%s cancellation raised for order %s", access.adapter.display_name, order_id)
            message = redact(f"{access.adapter.display_name} request failed: {e}", access.secrets)
            return await self._fail(CancellationResult, message, error_type="courier_error", **fail)

        if not result.success:
            message = redact(result.error or "Cancellation failed", access.secrets)
            return await self._fail(CancellationResult, message, error_type="courier_rejected", **fail)

        await self.store.insert_event(
            DeliveryEvent(
                order_id=order_id,
                client_id=client_id,
                delivery_company_id=access.company.id,
                tracking_number=order.tracking_number,
                event_type=DeliveryStatus.FAILED,
                event_status="cancelled",
                description="Shipment cancelled by merchant",
            )
        )
        status, _ = await self._advance_status(order, DeliveryStatus.FAILED)
        logger.info("Cancelled shipment %s for order %s", order.tracking_number, order_id)
        return CancellationResult(success=True, delivery_status=status)

    # -------------------------------------------------------------------------
    # Webhooks
    # -------------------------------------------------------------------------

    @traced(name="delivery.handle_webhook")
    async def handle_webhook(
        self,
        company_name: str,
        payload: bytes | str | Mapping[str, Any],
        signature: str | None = None,
        headers: Mapping[str, str] | None = None,
    ) -> WebhookResult:
        """
        Ingest one courier webhook.

        The event is always recorded for a known order, with its verification
        outcome; the order status changes only when the signature verified
        and the status machine allows the move. Unknown tracking numbers are
        acknowledged without recording anything.
        """
        company = await self._company_for_webhook(company_name)
        if company is None:
            return await self._fail(
                WebhookResult, f"Unknown delivery company: {company_name}", error_type="company_not_found", client_id=None
            )

        adapter = self.registry.for_company(company.name)
        if adapter is None:
            return await self._fail(
                WebhookResult,
                f"{company.name} has no API integration",
                error_type="ConfigurationError",
                client_id=None,
                company_id=company.id,
            )

        try:
            event = adapter.parse_webhook_payload(payload)
            body = coerce_payload(payload)
        except WebhookPayloadError as e:
            return await self._fail(
                WebhookResult, e.message, error_type="invalid_webhook", client_id=None, company_id=company.id
            )

        order = await self.store.find_order_by_tracking(event.tracking_number)
        if order is None:
            logger.info("%s webhook for unknown tracking number %s", adapter.display_name, event.tracking_number)
            return WebhookResult(success=True)
        if order.delivery_company_id not in (None, company.id):
            logger.warning(
                "%s webhook for tracking number %s belongs to another company",
                adapter.display_name,
                event.tracking_number,
            )
            return WebhookResult(success=True)

        # Webhooks carry no client header; the order decides whose logs these are
        with client_context(order.client_id):
            secret = await self._webhook_secret(order.client_id, company.id)
            verified = adapter.verify_webhook(payload, signature, secret, headers)
            record_webhook_event(adapter.provider, verified)
            if not verified:
                logger.warning(
                    "Unverified %s webhook for order %s; recording without status change",
                    adapter.display_name,
                    order.id,
                )

            stored = await self.store.insert_event(
                DeliveryEvent(
                    order_id=order.id,
                    client_id=order.client_id,
                    delivery_company_id=company.id,
                    tracking_number=event.tracking_number,
                    event_type=event.event_type,
                    event_status=event.status,
                    description=event.description,
                    location=event.location,
                    courier_timestamp=parse_courier_timestamp(event.timestamp),
                    webhook_payload=body,
                    webhook_verified=verified,
                )
            )

            status_changed = False
            if verified:
                _, status_changed = await self._advance_status(order, event.event_type)

        return WebhookResult(
            success=True,
            order_id=order.id,
            event_id=stored.id,
            verified=verified,
            status_changed=status_changed,
        )

    async def _webhook_secret(self, client_id: int, company_id: int) -> str | None:
        integration = await self.store.get_integration(client_id, company_id)
        if integration is None:
            return None
        try:
            return self.vault.decrypt_optional(integration.webhook_secret_encrypted)
        except CredentialDecryptionError:
            logger.error("Unreadable webhook secret for client %s, company %s", client_id, company_id)
            return None

    # -------------------------------------------------------------------------
    # Companies and integrations
    # -------------------------------------------------------------------------

    async def list_companies(self, client_id: int) -> list[CompanyListing]:
        """Active companies, those the client has configured first, then by name."""
        companies = await self.store.list_active_companies()
        integrations = {
            i.delivery_company_id: i for i in await self.store.list_integrations(client_id) if i.is_enabled
        }
        listings = [
            CompanyListing(
                id=c.id,
                name=c.name,
                features=c.features,
                is_active=c.is_active,
                configured=c.id in integrations,
                has_api_key=bool(integrations[c.id].api_key_encrypted) if c.id in integrations else False,
            )
            for c in companies
        ]
        return sorted(listings, key=lambda item: (not item.configured, item.name.lower()))

    @staticmethod
    def summarize(integration: DeliveryIntegration, company_name: str | None = None) -> IntegrationSummary:
        return IntegrationSummary(
            id=integration.id,
            delivery_company_id=integration.delivery_company_id,
            company_name=company_name,
            account_number=integration.account_number,
            merchant_id=integration.merchant_id,
            is_enabled=integration.is_enabled,
            has_api_key=bool(integration.api_key_encrypted),
            has_api_secret=bool(integration.api_secret_encrypted),
            has_webhook_secret=bool(integration.webhook_secret_encrypted),
            configured_at=integration.configured_at,
            updated_at=integration.updated_at,
        )

    @traced(name="delivery.configure_integration")
    async def configure_integration(self, client_id: int, data: IntegrationInput) -> IntegrationSummary:
        """
        Store a client's credentials for a company, encrypted.

        Raises:
            ResourceNotFoundError: If the company does not exist or is inactive.
        """
        company = await self._active_company(data.delivery_company_id)
        stored = await self.store.upsert_integration(
            DeliveryIntegration(
                client_id=client_id,
                delivery_company_id=company.id,
                api_key_encrypted=self.vault.encrypt(data.api_key),
                api_secret_encrypted=self.vault.encrypt_optional(data.api_secret),
                webhook_secret_encrypted=self.vault.encrypt_optional(data.webhook_secret),
                account_number=data.account_number,
                merchant_id=data.merchant_id,
            )
        )
        logger.info(
            "Configured %s integration for client %s (api key %s)",
            company.name,
            client_id,
            mask_secret(data.api_key),
        )
        return self.summarize(stored, company.name)

    async def list_integrations(self, client_id: int) -> list[IntegrationSummary]:
        summaries = []
        for integration in await self.store.list_integrations(client_id):
            company = await self.store.get_company(integration.delivery_company_id)
            summaries.append(self.summarize(integration, company.name if company else None))
        return summaries

    async def disable_integration(self, client_id: int, company_id: int) -> bool:
        """Revoke an integration. Credentials are kept but no longer used."""
        disabled = await self.store.disable_integration(client_id, company_id)
        if disabled:
            logger.info("Disabled integration for client %s, company %s", client_id, company_id)
        return disabled
