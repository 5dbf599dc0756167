"""Webhook endpoint for Stripe payment events.

Handles:
- checkout.session.completed
- payment_intent.amount_capturable_updated
- payment_intent.succeeded
- payment_intent.canceled
- payment_intent.payment_failed

The endpoint does NOT require authentication; every payload is verified
against the Stripe webhook signing secret before it is trusted.
"""

from fastapi import APIRouter, Depends, Request
from pydantic import BaseModel

from parking_api.dependencies import get_webhook_handler
from parking_core.services.webhook_handler import WebhookHandler
from parking_core.utils.logging import get_logger

logger = get_logger(__name__)

router = APIRouter(tags=["webhooks"])


# === Response Models ===


class WebhookResponse(BaseModel):
    """Acknowledgement returned to Stripe."""

    received: bool = True
    event_id: str
    event_type: str
    processing_result: str  # success, ignored, not_found, skipped, duplicate


class WebhookErrorResponse(BaseModel):
    """Error body for rejected deliveries."""

    success: bool = False
    error_code: str
    message: str
    recovery: str | None = None


class WebhookFailureResponse(BaseModel):
    """Body returned when processing fails and Stripe should retry."""

    error: str


# === Webhook Endpoint ===


@router.post(
    "/webhooks/stripe",
    summary="Receive Stripe webhook events",
    description="""
Endpoint for Stripe payment events. Updates the booking correlated with the
PaymentIntent and notifies admins when a payment succeeds.

**No authentication required** - signature is verified using the Stripe webhook secret.

**Idempotent**: a redelivered event that was already processed returns 200 with 'duplicate'.
""",
    response_model=WebhookResponse,
    responses={
        200: {"description": "Event received and processed (or acknowledged)", "model": WebhookResponse},
        400: {"description": "Invalid signature, missing header or malformed event", "model": WebhookErrorResponse},
        500: {"description": "Secret not configured or processing failed", "model": WebhookFailureResponse},
    },
)
async def handle_stripe_webhook(
    request: Request,
    handler: WebhookHandler = Depends(get_webhook_handler),
) -> WebhookResponse:
    """Verify and reconcile one Stripe webhook delivery."""
    # Raw body: the signature covers the exact bytes Stripe sent
    payload = await request.body()
    outcome = handler.handle_request(payload, request.headers.get("Stripe-Signature"))

    return WebhookResponse(
        event_id=outcome.event_id,
        event_type=outcome.event_type,
        processing_result=outcome.processing_result.value,
    )
