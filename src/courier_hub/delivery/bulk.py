"""Bulk order assignment."""

import logging
from collections.abc import Sequence
from typing import TYPE_CHECKING

from courier_hub.delivery.models import BulkAssignResult, BulkOrderResult
from courier_hub.exceptions import (
    DeliveryValidationError,
    IntegrationNotConfiguredError,
    ResourceNotFoundError,
)
from courier_hub.observability.metrics import record_bulk_order
from courier_hub.observability.tracing import add_span_attribute, traced

if TYPE_CHECKING:
    from courier_hub.delivery.orchestrator import DeliveryOrchestrator

logger = logging.getLogger(__name__)

DEFAULT_MAX_ORDERS = 500


@traced(name="delivery.bulk_assign")
async def bulk_assign(
    orchestrator: "DeliveryOrchestrator",
    client_id: int,
    company_id: int,
    order_ids: Sequence[int],
    generate_labels: bool = False,
    max_orders: int = DEFAULT_MAX_ORDERS,
) -> BulkAssignResult:
    """
    Assign many orders to one company, uploading each to the courier when it has an API.

    Orders are processed one at a time; a failing order is reported in the
    results and never stops the others. An order whose upload fails is a
    failed order even though its assignment was written.

    Args:
        orchestrator: The delivery orchestrator.
        client_id: Owning client.
        company_id: Delivery company to assign.
        order_ids: Orders to process; must be unique.
        generate_labels: Record a shipping label for each uploaded order.
        max_orders: Largest accepted batch.

    Returns:
        BulkAssignResult with one entry per order id.

    Raises:
        DeliveryValidationError: Empty, oversized or duplicated batch.
        ResourceNotFoundError: Unknown or inactive company.
        IntegrationNotConfiguredError: The company uploads through an API and
            the client has no enabled integration. No order is touched.
    """
    if not order_ids:
        raise DeliveryValidationError("No orders to assign")
    if len(order_ids) > max_orders:
        raise DeliveryValidationError(f"At most {max_orders} orders can be assigned at once")
    if len(set(order_ids)) != len(order_ids):
        raise DeliveryValidationError("Order ids must be unique")

    store = orchestrator.store
    company = await store.get_company(company_id)
    if company is None or not company.is_active:
        raise ResourceNotFoundError("Delivery company not found or inactive")

    uploads = company.features.supports_create_shipment or orchestrator.registry.supports(company.name)
    if uploads and await store.get_integration(client_id, company_id) is None:
        raise IntegrationNotConfiguredError()

    add_span_attribute("bulk.order_count", len(order_ids))
    add_span_attribute("bulk.uploads", uploads)

    outcome = BulkAssignResult()
    for order_id in order_ids:
        try:
            result = await _process_order(orchestrator, client_id, company_id, order_id, uploads, generate_labels)
        except Exception:
            logger.exception("Bulk assignment raised for order %s", order_id)
            result = BulkOrderResult(success=False, error="Internal error while processing order")

        outcome.results[order_id] = result
        if result.success:
            outcome.success_count += 1
        else:
            outcome.fail_count += 1
        record_bulk_order(company.name, result.success)

    logger.info(
        "Bulk assignment to %s: %d succeeded, %d failed",
        company.name,
        outcome.success_count,
        outcome.fail_count,
    )
    return outcome


async def _process_order(
    orchestrator: "DeliveryOrchestrator",
    client_id: int,
    company_id: int,
    order_id: int,
    uploads: bool,
    generate_labels: bool,
) -> BulkOrderResult:
    order = await orchestrator.store.get_order(order_id, client_id)
    if order is None:
        return BulkOrderResult(success=False, error="Order not found")

    cod_amount = order.cod_amount if order.cod_amount is not None else order.total_price
    assigned = await orchestrator.assign_delivery_company(order_id, client_id, company_id, cod_amount)
    if not assigned.success:
        return BulkOrderResult(success=False, error=assigned.error)
    if not uploads:
        return BulkOrderResult(success=True)

    if generate_labels:
        shipped = await orchestrator.generate_label(order_id, client_id, company_id)
    else:
        shipped = await orchestrator.create_shipment(order_id, client_id, company_id)
    if not shipped.success:
        return BulkOrderResult(success=False, error=shipped.error)

    return BulkOrderResult(
        success=True,
        tracking_number=shipped.tracking_number,
        label_url=shipped.label_url,
    )
