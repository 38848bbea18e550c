"""Delivery store interface."""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any

from courier_hub.delivery.models import (
    DeliveryCompany,
    DeliveryError,
    DeliveryEvent,
    DeliveryIntegration,
    OrderWithDelivery,
    ShippingLabel,
)
from courier_hub.delivery.status import DeliveryStatus


class DeliveryStore(ABC):
    """
    Persistence for delivery companies, orders, integrations, labels,
    events and errors.

    Order delivery fields are written only through assign_order,
    save_shipment and update_delivery_status, which the orchestrator
    alone calls. Only update_delivery_status writes the delivery status,
    and only as a compare-and-set.
    """

    async def connect(self) -> None:
        """Open connections. No-op for stores without any."""

    async def close(self) -> None:
        """Release connections. No-op for stores without any."""

    # -------------------------------------------------------------------------
    # Companies
    # -------------------------------------------------------------------------

    @abstractmethod
    async def get_company(self, company_id: int) -> DeliveryCompany | None: ...

    @abstractmethod
    async def get_company_by_name(self, name: str) -> DeliveryCompany | None:
        """Look a company up by name, case-insensitively."""
        ...

    @abstractmethod
    async def list_active_companies(self) -> list[DeliveryCompany]: ...

    @abstractmethod
    async def upsert_company(self, company: DeliveryCompany) -> DeliveryCompany:
        """Insert or replace reference data for a company."""
        ...

    # -------------------------------------------------------------------------
    # Orders
    # -------------------------------------------------------------------------

    @abstractmethod
    async def get_order(self, order_id: int, client_id: int) -> OrderWithDelivery | None:
        """Get an order only if it belongs to the client."""
        ...

    @abstractmethod
    async def find_order_by_tracking(self, tracking_number: str) -> OrderWithDelivery | None: ...

    @abstractmethod
    async def assign_order(
        self,
        order_id: int,
        client_id: int,
        company_id: int,
        cod_amount: float | None,
    ) -> bool:
        """Record the chosen company and COD amount. Returns False if no such order."""
        ...

    @abstractmethod
    async def save_shipment(
        self,
        order_id: int,
        client_id: int,
        *,
        delivery_company_id: int,
        tracking_number: str,
        label_url: str | None,
        courier_response: dict[str, Any] | None,
        label_generated_at: datetime | None = None,
    ) -> None:
        """Persist the outcome of a successful courier shipment."""
        ...

    @abstractmethod
    async def update_delivery_status(
        self,
        order_id: int,
        expected: DeliveryStatus,
        status: DeliveryStatus,
    ) -> bool:
        """
        Set an order's delivery status if it still holds the expected one.

        Returns:
            False when the order is missing or its status moved meanwhile.
        """
        ...

    # -------------------------------------------------------------------------
    # Integrations
    # -------------------------------------------------------------------------

    @abstractmethod
    async def get_integration(
        self,
        client_id: int,
        company_id: int,
        enabled_only: bool = True,
    ) -> DeliveryIntegration | None: ...

    @abstractmethod
    async def upsert_integration(self, integration: DeliveryIntegration) -> DeliveryIntegration:
        """
        Insert or replace the client's integration for a company.

        At most one row exists per (client_id, delivery_company_id).
        Upserting re-enables a disabled integration.
        """
        ...

    @abstractmethod
    async def list_integrations(self, client_id: int) -> list[DeliveryIntegration]: ...

    @abstractmethod
    async def disable_integration(self, client_id: int, company_id: int) -> bool:
        """Soft-disable an integration. Returns True if one was disabled."""
        ...

    # -------------------------------------------------------------------------
    # Labels, events, errors
    # -------------------------------------------------------------------------

    @abstractmethod
    async def insert_label(self, label: ShippingLabel) -> ShippingLabel: ...

    @abstractmethod
    async def insert_event(self, event: DeliveryEvent) -> DeliveryEvent: ...

    @abstractmethod
    async def list_events(self, order_id: int) -> list[DeliveryEvent]:
        """Events for an order, newest first."""
        ...

    @abstractmethod
    async def record_error(self, error: DeliveryError) -> None: ...
