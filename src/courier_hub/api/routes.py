"""Delivery API routes."""

from fastapi import APIRouter, Depends, HTTPException, Response, status
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from courier_hub.api.middleware import get_client_id, verify_api_key
from courier_hub.config import Settings, get_settings
from courier_hub.delivery.bulk import bulk_assign
from courier_hub.delivery.models import (
    AssignmentResult,
    BulkAssignResult,
    CancellationResult,
    CompanyListing,
    DeliveryStatusSnapshot,
    IntegrationInput,
    IntegrationSummary,
    LabelResult,
    OperationResult,
    ShipmentOutcome,
)
from courier_hub.delivery.orchestrator import ORDER_NOT_FOUND, DeliveryOrchestrator

router = APIRouter(prefix="/v1/delivery", tags=["delivery"], dependencies=[Depends(verify_api_key)])

# Global orchestrator instance (initialized in server.py)
_orchestrator: DeliveryOrchestrator | None = None


def get_orchestrator() -> DeliveryOrchestrator:
    """Get the delivery orchestrator instance."""
    if _orchestrator is None:
        raise HTTPException(
            status_code=503,
            detail="Delivery service not initialized",
        )
    return _orchestrator


def set_orchestrator(orchestrator: DeliveryOrchestrator | None) -> None:
    """Set the delivery orchestrator instance."""
    global _orchestrator
    _orchestrator = orchestrator


class CompanySelection(BaseModel):
    """Request body naming the delivery company to use."""

    delivery_company_id: int = Field(gt=0)


class AssignRequest(CompanySelection):
    cod_amount: float | None = Field(default=None, ge=0, description="Defaults to the order total when omitted")


class BulkAssignRequest(CompanySelection):
    order_ids: list[int] = Field(min_length=1)
    generate_labels: bool = False

    model_config = {"json_schema_extra": {"examples": [
        {"delivery_company_id": 1, "order_ids": [101, 102, 103], "generate_labels": True}
    ]}}


def _result_response(result: OperationResult) -> OperationResult | JSONResponse:
    """Successful results pass through; failures keep their shape with a 4xx status."""
    if result.success:
        return result
    code = status.HTTP_404_NOT_FOUND if result.error == ORDER_NOT_FOUND else status.HTTP_400_BAD_REQUEST
    return JSONResponse(status_code=code, content=result.model_dump(mode="json"))


# =============================================================================
# Companies and integrations
# =============================================================================


@router.get(
    "/companies",
    response_model=list[CompanyListing],
    summary="List delivery companies",
    description="Active delivery companies; those the client has configured come first.",
)
async def list_companies(
    client_id: int = Depends(get_client_id),
    orchestrator: DeliveryOrchestrator = Depends(get_orchestrator),
) -> list[CompanyListing]:
    return await orchestrator.list_companies(client_id)


@router.post(
    "/integrations",
    response_model=IntegrationSummary,
    status_code=status.HTTP_201_CREATED,
    summary="Configure a delivery integration",
)
async def configure_integration(
    body: IntegrationInput,
    client_id: int = Depends(get_client_id),
    orchestrator: DeliveryOrchestrator = Depends(get_orchestrator),
) -> IntegrationSummary:
    """
    Store the client's credentials for a delivery company.

    Credentials are encrypted at rest and never returned; the response
    only reports which of them are present.
    """
    return await orchestrator.configure_integration(client_id, body)


@router.get(
    "/integrations",
    response_model=list[IntegrationSummary],
    summary="List delivery integrations",
)
async def list_integrations(
    client_id: int = Depends(get_client_id),
    orchestrator: DeliveryOrchestrator = Depends(get_orchestrator),
) -> list[IntegrationSummary]:
    return await orchestrator.list_integrations(client_id)


@router.delete(
    "/integrations/{company_id}",
    summary="Disable a delivery integration",
)
async def disable_integration(
    company_id: int,
    client_id: int = Depends(get_client_id),
    orchestrator: DeliveryOrchestrator = Depends(get_orchestrator),
) -> dict[str, bool]:
    if not await orchestrator.disable_integration(client_id, company_id):
        raise HTTPException(status_code=404, detail="Integration not found")
    return {"success": True}


# =============================================================================
# Orders
# =============================================================================


@router.post(
    "/orders/bulk-assign",
    response_model=BulkAssignResult,
    summary="Assign many orders to a delivery company",
)
async def bulk_assign_orders(
    body: BulkAssignRequest,
    client_id: int = Depends(get_client_id),
    orchestrator: DeliveryOrchestrator = Depends(get_orchestrator),
    settings: Settings = Depends(get_settings),
) -> BulkAssignResult:
    """
    Assign and, for couriers with an API, upload each order.

    Fails as a whole only when the batch is invalid or the courier's
    integration is not configured; otherwise each order reports its own
    outcome.
    """
    return await bulk_assign(
        orchestrator,
        client_id,
        body.delivery_company_id,
        body.order_ids,
        generate_labels=body.generate_labels,
        max_orders=settings.bulk_max_orders,
    )


@router.post(
    "/orders/{order_id}/assign",
    response_model=AssignmentResult,
    summary="Assign a delivery company to an order",
)
async def assign_order(
    order_id: int,
    body: AssignRequest,
    client_id: int = Depends(get_client_id),
    orchestrator: DeliveryOrchestrator = Depends(get_orchestrator),
):
    result = await orchestrator.assign_delivery_company(
        order_id, client_id, body.delivery_company_id, body.cod_amount
    )
    return _result_response(result)


@router.post(
    "/orders/{order_id}/shipment",
    response_model=ShipmentOutcome,
    summary="Create the courier shipment for an order",
)
async def create_shipment(
    order_id: int,
    body: CompanySelection,
    client_id: int = Depends(get_client_id),
    orchestrator: DeliveryOrchestrator = Depends(get_orchestrator),
):
    result = await orchestrator.create_shipment(order_id, client_id, body.delivery_company_id)
    return _result_response(result)


@router.post(
    "/orders/{order_id}/generate-label",
    response_model=LabelResult,
    summary="Create the courier shipment and shipping label for an order",
)
async def generate_label(
    order_id: int,
    body: CompanySelection,
    client_id: int = Depends(get_client_id),
    orchestrator: DeliveryOrchestrator = Depends(get_orchestrator),
):
    result = await orchestrator.generate_label(order_id, client_id, body.delivery_company_id)
    return _result_response(result)


@router.get(
    "/orders/{order_id}/tracking",
    response_model=DeliveryStatusSnapshot,
    summary="Current courier status of an order",
)
async def get_tracking(
    order_id: int,
    client_id: int = Depends(get_client_id),
    orchestrator: DeliveryOrchestrator = Depends(get_orchestrator),
):
    result = await orchestrator.get_delivery_status(order_id, client_id)
    return _result_response(result)


@router.get(
    "/orders/{order_id}/label",
    summary="Download the shipping label PDF",
    responses={200: {"content": {"application/pdf": {}}}},
)
async def download_label(
    order_id: int,
    client_id: int = Depends(get_client_id),
    orchestrator: DeliveryOrchestrator = Depends(get_orchestrator),
):
    result = await orchestrator.get_label_pdf(order_id, client_id)
    if not result.success or result.pdf is None:
        return _result_response(OperationResult(success=False, error=result.error or "Label unavailable"))
    return Response(
        content=result.pdf,
        media_type=result.content_type,
        headers={"Content-Disposition": f'inline; filename="label-{order_id}.pdf"'},
    )


@router.post(
    "/orders/{order_id}/cancel",
    response_model=CancellationResult,
    summary="Cancel the courier shipment of an order",
)
async def cancel_shipment(
    order_id: int,
    client_id: int = Depends(get_client_id),
    orchestrator: DeliveryOrchestrator = Depends(get_orchestrator),
):
    result = await orchestrator.cancel_shipment(order_id, client_id)
    return _result_response(result)
