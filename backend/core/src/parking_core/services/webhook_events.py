"""Audit log of received Stripe webhook events.

Every signature-valid delivery gets exactly one row keyed by the Stripe
event ID. The row is created in ``processing`` and finished once as
``processed`` or ``error``; rows are never deleted.
"""

import datetime as dt
import json
from typing import TYPE_CHECKING, Any

from parking_core.models import (
    ProcessingResult,
    StripeWebhookEvent,
    WebhookEventStatus,
)
from parking_core.utils.logging import get_logger

from .dynamodb import WEBHOOK_EVENTS_TABLE

if TYPE_CHECKING:
    from .dynamodb import DynamoDBService

logger = get_logger(__name__)


def extract_payment_intent_id(event: dict[str, Any]) -> str | None:
    """Return the PaymentIntent an event refers to, if any.

    ``payment_intent.*`` events carry the intent as the event object;
    completed checkout sessions reference it by ID.
    """
    event_type = event.get("type") or ""
    data = event.get("data")
    obj = data.get("object") if isinstance(data, dict) else None
    if not isinstance(obj, dict):
        return None

    if event_type.startswith("payment_intent."):
        return obj.get("id")
    if event_type == "checkout.session.completed":
        payment_intent = obj.get("payment_intent")
        if isinstance(payment_intent, dict):
            return payment_intent.get("id")
        return payment_intent
    return None


class WebhookEventLog:
    """Append-only audit table for Stripe webhook deliveries."""

    def __init__(self, db: "DynamoDBService") -> None:
        """Initialize the audit log.

        Args:
            db: DynamoDB service instance
        """
        self.db = db

    def get(self, stripe_event_id: str) -> StripeWebhookEvent | None:
        """Load an audit row by Stripe event ID."""
        item = self.db.get_item(WEBHOOK_EVENTS_TABLE, {"stripe_event_id": stripe_event_id})
        return StripeWebhookEvent.from_item(item) if item else None

    def record_received(self, event: dict[str, Any], payload_hash: str | None = None) -> bool:
        """Insert the audit row for a freshly verified event.

        A redelivered event whose row already finished as ``processed`` is
        not claimed again. Rows left in ``processing`` or ``error`` are
        reset to ``processing`` so Stripe's retries are processed.

        Args:
            event: Verified Stripe event envelope
            payload_hash: SHA-256 of the raw request body

        Returns:
            True if the caller should process the event, False for a duplicate.
        """
        stripe_event_id = event["id"]
        record = StripeWebhookEvent(
            stripe_event_id=stripe_event_id,
            event_type=event.get("type") or "unknown",
            payment_intent_id=extract_payment_intent_id(event),
            raw_event=json.dumps(event, sort_keys=True),
            status=WebhookEventStatus.PROCESSING,
            payload_hash=payload_hash,
            received_at=dt.datetime.now(dt.UTC),
        )

        created = self.db.put_item(
            WEBHOOK_EVENTS_TABLE,
            record.to_item(),
            condition_expression="attribute_not_exists(stripe_event_id)",
        )
        if created:
            return True

        # Row exists: re-claim it unless it already finished successfully
        reclaimed = self.db.update_item(
            WEBHOOK_EVENTS_TABLE,
            {"stripe_event_id": stripe_event_id},
            "SET #status = :processing, raw_event = :raw, received_at = :now "
            "REMOVE error_message, processing_result, processed_at",
            {
                ":processing": WebhookEventStatus.PROCESSING.value,
                ":processed": WebhookEventStatus.PROCESSED.value,
                ":raw": record.raw_event,
                ":now": record.received_at.isoformat(),
            },
            {"#status": "status"},
            condition_expression="#status <> :processed",
        )
        if reclaimed is None:
            logger.info("Webhook event %s already processed", stripe_event_id)
            return False

        logger.info("Re-processing webhook event %s after earlier attempt", stripe_event_id)
        return True

    def reopen(self, stripe_event_id: str) -> None:
        """Put an existing row back into ``processing`` for a manual replay."""
        self.db.update_item(
            WEBHOOK_EVENTS_TABLE,
            {"stripe_event_id": stripe_event_id},
            "SET #status = :processing REMOVE error_message, processing_result, processed_at",
            {":processing": WebhookEventStatus.PROCESSING.value},
            {"#status": "status"},
        )

    def mark_processed(self, stripe_event_id: str, result: ProcessingResult) -> None:
        """Finish an audit row successfully.

        Args:
            stripe_event_id: Stripe event ID
            result: Outcome label for the event
        """
        self.db.update_item(
            WEBHOOK_EVENTS_TABLE,
            {"stripe_event_id": stripe_event_id},
            "SET #status = :status, processing_result = :result, processed_at = :now",
            {
                ":status": WebhookEventStatus.PROCESSED.value,
                ":result": result.value,
                ":now": dt.datetime.now(dt.UTC).isoformat(),
            },
            {"#status": "status"},
        )

    def mark_error(self, stripe_event_id: str, error_message: str) -> None:
        """Finish an audit row as failed.

        Args:
            stripe_event_id: Stripe event ID
            error_message: Message of the exception that aborted processing
        """
        self.db.update_item(
            WEBHOOK_EVENTS_TABLE,
            {"stripe_event_id": stripe_event_id},
            "SET #status = :status, processing_result = :result, "
            "error_message = :error, processed_at = :now",
            {
                ":status": WebhookEventStatus.ERROR.value,
                ":result": ProcessingResult.ERROR.value,
                ":error": error_message,
                ":now": dt.datetime.now(dt.UTC).isoformat(),
            },
            {"#status": "status"},
        )
