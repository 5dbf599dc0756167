"""Stripe webhook event model for idempotency and auditing."""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from .enums import ProcessingResult, WebhookEventStatus


class StripeWebhookEvent(BaseModel):
    """Audit row for a received Stripe webhook event.

    Used for:
    - Idempotency: the event ID is the de-duplication boundary
    - Auditing: every signature-valid delivery is recorded
    - Replay: the raw event is kept for operator re-processing
    """

    model_config = ConfigDict(extra="ignore")

    stripe_event_id: str = Field(
        ...,
        description="Stripe event ID (evt_xxx)",
        examples=["evt_1ABC123DEF456"],
    )
    event_type: str = Field(
        ...,
        description="Stripe event type",
        examples=["payment_intent.succeeded", "checkout.session.completed"],
    )
    payment_intent_id: str | None = Field(
        default=None,
        description="PaymentIntent the event refers to, if any",
        examples=["pi_3ABC123DEF456"],
    )
    raw_event: str = Field(..., description="JSON-serialised event envelope")
    status: WebhookEventStatus = Field(
        default=WebhookEventStatus.PROCESSING,
        description="processing, processed or error",
    )
    processing_result: ProcessingResult | None = Field(
        default=None,
        description="Outcome of handling: success, ignored, not_found, skipped, duplicate",
    )
    error_message: str | None = Field(
        default=None,
        description="Error details if processing failed",
    )
    payload_hash: str | None = Field(
        default=None,
        description="SHA-256 hash of the raw request body",
    )
    received_at: datetime = Field(..., description="When the delivery was received")
    processed_at: datetime | None = Field(
        default=None,
        description="When processing finished (successfully or not)",
    )

    def to_item(self) -> dict[str, Any]:
        """Serialise to a DynamoDB item, dropping unset optional fields."""
        return self.model_dump(mode="json", exclude_none=True)

    @classmethod
    def from_item(cls, item: dict[str, Any]) -> "StripeWebhookEvent":
        return cls.model_validate(item)
