"""Webhook receiver endpoints for courier status updates."""

import logging

from fastapi import APIRouter, Depends, Header, Request, status
from fastapi.responses import JSONResponse

from courier_hub.api.routes import get_orchestrator
from courier_hub.delivery.models import WebhookResult
from courier_hub.delivery.orchestrator import DeliveryOrchestrator

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/webhooks", tags=["webhooks"])


@router.post(
    "/delivery/{company}",
    response_model=WebhookResult,
    summary="Receive courier webhooks",
    description="Status updates pushed by a delivery company, addressed by company name or provider key.",
)
async def receive_delivery_webhook(
    company: str,
    request: Request,
    x_signature: str | None = Header(
        default=None,
        alias="X-Signature",
        description="HMAC signature for payload verification",
    ),
    orchestrator: DeliveryOrchestrator = Depends(get_orchestrator),
):
    """
    Receive one courier status event.

    Signatures are checked against the raw body. Svix headers
    (svix-id, svix-timestamp, svix-signature) are passed through for
    couriers that sign that way. Events that fail verification are still
    recorded but never change the order status, and are acknowledged with
    200 so couriers do not retry them.
    """
    body = await request.body()
    result = await orchestrator.handle_webhook(
        company,
        body,
        signature=x_signature,
        headers=dict(request.headers),
    )
    if not result.success:
        logger.warning("Rejected %s webhook: %s", company, result.error)
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content=result.model_dump(mode="json"),
        )
    return result
