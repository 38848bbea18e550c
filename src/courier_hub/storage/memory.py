"""In-memory delivery store for development and tests."""

import itertools
from datetime import datetime
from typing import Any

from courier_hub.delivery.models import (
    DeliveryCompany,
    DeliveryError,
    DeliveryEvent,
    DeliveryIntegration,
    OrderWithDelivery,
    ShippingLabel,
    utcnow,
)
from courier_hub.delivery.status import DeliveryStatus
from courier_hub.storage.base import DeliveryStore


class InMemoryDeliveryStore(DeliveryStore):
    """
    Simple in-memory delivery store for development/testing.

    Not shared between processes; everything is lost on restart.
    """

    def __init__(self) -> None:
        self._companies: dict[int, DeliveryCompany] = {}
        self._orders: dict[int, OrderWithDelivery] = {}
        self._integrations: dict[tuple[int, int], DeliveryIntegration] = {}
        self.labels: list[ShippingLabel] = []
        self.events: list[DeliveryEvent] = []
        self.errors: list[DeliveryError] = []
        self._ids = itertools.count(1)

    # Companies

    async def get_company(self, company_id: int) -> DeliveryCompany | None:
        return self._companies.get(company_id)

    async def get_company_by_name(self, name: str) -> DeliveryCompany | None:
        wanted = name.strip().lower()
        for company in self._companies.values():
            if company.name.lower() == wanted:
                return company
        return None

    async def list_active_companies(self) -> list[DeliveryCompany]:
        return sorted(
            (c for c in self._companies.values() if c.is_active),
            key=lambda c: c.name.lower(),
        )

    async def upsert_company(self, company: DeliveryCompany) -> DeliveryCompany:
        self._companies[company.id] = company
        return company

    # Orders

    def add_order(self, order: OrderWithDelivery) -> OrderWithDelivery:
        """Seed an order (orders are created by the storefront, not by this service)."""
        self._orders[order.id] = order
        return order

    async def get_order(self, order_id: int, client_id: int) -> OrderWithDelivery | None:
        order = self._orders.get(order_id)
        if order is None or order.client_id != client_id:
            return None
        return order

    async def find_order_by_tracking(self, tracking_number: str) -> OrderWithDelivery | None:
        for order in self._orders.values():
            if order.tracking_number == tracking_number:
                return order
        return None

    def _update_order(self, order_id: int, **changes: Any) -> None:
        order = self._orders[order_id]
        self._orders[order_id] = order.model_copy(update={**changes, "updated_at": utcnow()})

    async def assign_order(
        self,
        order_id: int,
        client_id: int,
        company_id: int,
        cod_amount: float | None,
    ) -> bool:
        if await self.get_order(order_id, client_id) is None:
            return False
        self._update_order(order_id, delivery_company_id=company_id, cod_amount=cod_amount)
        return True

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
        if await self.get_order(order_id, client_id) is None:
            return
        changes: dict[str, Any] = {
            "delivery_company_id": delivery_company_id,
            "tracking_number": tracking_number,
            "shipping_label_url": label_url,
            "courier_response": courier_response,
        }
        if label_generated_at is not None:
            changes["label_generated_at"] = label_generated_at
        self._update_order(order_id, **changes)

    async def update_delivery_status(
        self,
        order_id: int,
        expected: DeliveryStatus,
        status: DeliveryStatus,
    ) -> bool:
        # No await between the check and the write
        order = self._orders.get(order_id)
        if order is None or order.delivery_status != expected:
            return False
        self._update_order(order_id, delivery_status=status)
        return True

    # Integrations

    async def get_integration(
        self,
        client_id: int,
        company_id: int,
        enabled_only: bool = True,
    ) -> DeliveryIntegration | None:
        integration = self._integrations.get((client_id, company_id))
        if integration is None or (enabled_only and not integration.is_enabled):
            return None
        return integration

    async def upsert_integration(self, integration: DeliveryIntegration) -> DeliveryIntegration:
        key = (integration.client_id, integration.delivery_company_id)
        existing = self._integrations.get(key)
        now = utcnow()
        stored = integration.model_copy(
            update={
                "id": existing.id if existing else next(self._ids),
                "configured_at": existing.configured_at if existing else now,
                "updated_at": now,
                "is_enabled": True,
            }
        )
        self._integrations[key] = stored
        return stored

    async def list_integrations(self, client_id: int) -> list[DeliveryIntegration]:
        return [i for (cid, _), i in self._integrations.items() if cid == client_id]

    async def disable_integration(self, client_id: int, company_id: int) -> bool:
        integration = self._integrations.get((client_id, company_id))
        if integration is None or not integration.is_enabled:
            return False
        self._integrations[(client_id, company_id)] = integration.model_copy(
            update={"is_enabled": False, "updated_at": utcnow()}
        )
        return True

    # Labels, events, errors

    async def insert_label(self, label: ShippingLabel) -> ShippingLabel:
        stored = label.model_copy(update={"id": next(self._ids)})
        self.labels.append(stored)
        return stored

    async def insert_event(self, event: DeliveryEvent) -> DeliveryEvent:
        stored = event.model_copy(update={"id": next(self._ids)})
        self.events.append(stored)
        return stored

    async def list_events(self, order_id: int) -> list[DeliveryEvent]:
        return sorted(
            (e for e in self.events if e.order_id == order_id),
            key=lambda e: (e.created_at, e.id or 0),
            reverse=True,
        )

    async def record_error(self, error: DeliveryError) -> None:
        self.errors.append(error.model_copy(update={"id": next(self._ids)}))
