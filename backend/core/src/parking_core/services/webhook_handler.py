"""Webhook handler for processing Stripe events.

Provides the reconciliation workflow separate from HTTP routing:

    verify signature -> audit insert -> dispatch by event type
        -> booking state update -> notifications -> audit completion

Used by the webhook route and by the replay script.
"""

import json
from collections.abc import Callable
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, NoReturn

from parking_core.models import (
    ErrorCode,
    PaymentIntentStatus,
    ProcessingResult,
    ReconciliationError,
    StripeEventType,
)
from parking_core.utils.logging import get_logger, log_webhook_event

from .booking_state import DEPOSIT_PAYMENT_TYPE, BookingStateUpdater
from .dynamodb import get_dynamodb_service
from .notification_service import NotificationDispatcher
from .stripe_service import (
    StripeService,
    StripeServiceError,
    WebhookSecretNotConfiguredError,
    WebhookSecretUnavailableError,
    get_stripe_service,
)
from .webhook_events import WebhookEventLog, extract_payment_intent_id

if TYPE_CHECKING:
    from .dynamodb import DynamoDBService

logger = get_logger(__name__)

EventObjectHandler = Callable[[dict[str, Any]], ProcessingResult]


@dataclass
class WebhookOutcome:
    """Result of handling one webhook delivery."""

    event_id: str
    event_type: str
    processing_result: ProcessingResult


def _is_deposit(obj: dict[str, Any]) -> bool:
    return (obj.get("metadata") or {}).get("payment_type") == DEPOSIT_PAYMENT_TYPE


class WebhookHandler:
    """Handler for processing Stripe webhook events.

    Each delivery gets one audit row; a delivery whose row already
    finished as processed is acknowledged as a duplicate without running
    any handler.
    """

    def __init__(
        self,
        db: "DynamoDBService | None" = None,
        stripe_service: StripeService | None = None,
        dispatcher: NotificationDispatcher | None = None,
    ) -> None:
        """Initialize webhook handler.

        Args:
            db: DynamoDB service. Defaults to the shared instance.
            stripe_service: Signature verifier. Defaults to the shared instance.
            dispatcher: Notification dispatcher. Defaults to one using ``db``.
        """
        self._db = db or get_dynamodb_service()
        self._stripe = stripe_service
        self.events = WebhookEventLog(self._db)
        self.bookings = BookingStateUpdater(self._db)
        self.notifications = dispatcher or NotificationDispatcher(self._db)

        # Exhaustive over StripeEventType; anything else is ignored
        self._handlers: dict[StripeEventType, EventObjectHandler] = {
            StripeEventType.CHECKOUT_SESSION_COMPLETED: self._handle_checkout_completed,
            StripeEventType.PAYMENT_INTENT_AMOUNT_CAPTURABLE_UPDATED: self._handle_amount_capturable_updated,
            StripeEventType.PAYMENT_INTENT_SUCCEEDED: self._handle_payment_succeeded,
            StripeEventType.PAYMENT_INTENT_CANCELED: self._handle_payment_canceled,
            StripeEventType.PAYMENT_INTENT_PAYMENT_FAILED: self._handle_payment_failed,
        }

    @property
    def stripe(self) -> StripeService:
        if self._stripe is None:
            self._stripe = get_stripe_service()
        return self._stripe

    # =========================================================================
    # Entry points
    # =========================================================================

    def handle_request(self, payload: bytes, signature: str | None) -> WebhookOutcome:
        """Verify and process one webhook delivery.

        Args:
            payload: Raw request body bytes
            signature: Stripe-Signature header value

        Returns:
            WebhookOutcome for the 200 response

        Raises:
            ReconciliationError: INVALID_WEBHOOK_SIGNATURE, WEBHOOK_SECRET_NOT_CONFIGURED,
                WEBHOOK_SECRET_UNAVAILABLE, MALFORMED_WEBHOOK_EVENT or
                WEBHOOK_PROCESSING_FAILED.
        """
        if not signature:
            logger.warning("Missing Stripe-Signature header")
            raise ReconciliationError(
                ErrorCode.INVALID_WEBHOOK_SIGNATURE,
                details={"reason": "Missing Stripe-Signature header"},
            )

        try:
            event = self.stripe.verify_webhook_signature(payload, signature)
        except WebhookSecretNotConfiguredError as e:
            logger.error("Rejecting webhook: %s", e)
            raise ReconciliationError(ErrorCode.WEBHOOK_SECRET_NOT_CONFIGURED) from e
        except WebhookSecretUnavailableError as e:
            logger.error("Rejecting webhook: %s", e)
            raise ReconciliationError(
                ErrorCode.WEBHOOK_SECRET_UNAVAILABLE,
                details={"reason": str(e)},
            ) from e
        except StripeServiceError as e:
            raise ReconciliationError(
                ErrorCode.INVALID_WEBHOOK_SIGNATURE,
                details={"reason": str(e)},
            ) from e

        self._validate_envelope(event)
        event_id = event["id"]
        event_type = event["type"]
        log_webhook_event(logger, event_type, event_id, result="received")

        audited = True
        try:
            claimed = self.events.record_received(
                event, payload_hash=StripeService.compute_payload_hash(payload)
            )
        except Exception:
            # Still reconcile; this delivery is not de-duplicated
            logger.exception("Audit insert failed for webhook event %s, processing without audit row", event_id)
            claimed, audited = True, False

        if not claimed:
            log_webhook_event(logger, event_type, event_id, result=ProcessingResult.DUPLICATE.value)
            return WebhookOutcome(event_id, event_type, ProcessingResult.DUPLICATE)

        return self._process(event, payload, audited=audited)

    def replay(self, stripe_event_id: str) -> WebhookOutcome:
        """Re-run dispatch for an audited event from its stored payload.

        The signature was verified when the event was first received.

        Args:
            stripe_event_id: Stripe event ID of an existing audit row

        Raises:
            ReconciliationError: WEBHOOK_EVENT_NOT_FOUND or WEBHOOK_PROCESSING_FAILED.
        """
        record = self.events.get(stripe_event_id)
        if record is None:
            raise ReconciliationError(
                ErrorCode.WEBHOOK_EVENT_NOT_FOUND,
                details={"event_id": stripe_event_id},
            )

        event = json.loads(record.raw_event)
        self.events.reopen(stripe_event_id)
        logger.info("Replaying webhook event %s (%s)", stripe_event_id, record.event_type)
        return self._process(event, record.raw_event.encode("utf-8"))

    def dispatch(self, event: dict[str, Any]) -> ProcessingResult:
        """Route a verified event to its handler.

        Args:
            event: Verified Stripe event envelope

        Returns:
            ProcessingResult of the handler, IGNORED for unhandled types
        """
        event_type = StripeEventType.parse(event.get("type"))
        if event_type is None:
            log_webhook_event(
                logger, str(event.get("type")), str(event.get("id")), result=ProcessingResult.IGNORED.value
            )
            return ProcessingResult.IGNORED

        obj = event["data"]["object"]
        return self._handlers[event_type](obj)

    # =========================================================================
    # Processing
    # =========================================================================

    def _process(self, event: dict[str, Any], payload: bytes, audited: bool = True) -> WebhookOutcome:
        event_id = event["id"]
        event_type = event["type"]
        try:
            result = self.dispatch(event)
        except Exception as e:
            self._fail(event, payload, e, audited=audited)

        if audited:
            # Side effects have committed; answer 200 even if this update is lost
            try:
                self.events.mark_processed(event_id, result)
            except Exception:
                logger.exception("Failed to mark webhook event %s processed", event_id)

        log_webhook_event(
            logger,
            event_type,
            event_id,
            payment_intent_id=extract_payment_intent_id(event),
            result=result.value,
        )
        return WebhookOutcome(event_id, event_type, result)

    def _fail(
        self,
        event: dict[str, Any] | None,
        payload: bytes,
        error: Exception,
        audited: bool = True,
    ) -> NoReturn:
        """Record a processing failure on the audit row and raise.

        Args:
            event: Parsed event, if any
            payload: Raw request body
            error: Exception that aborted processing
            audited: False when the audit insert itself failed

        Raises:
            ReconciliationError: Always, with WEBHOOK_PROCESSING_FAILED.
        """
        message = str(error) or type(error).__name__
        event_id = self._recover_event_id(event, payload)
        event_type = str((event or {}).get("type", "unknown"))
        logger.exception("Error processing webhook event %s", event_id)

        if event_id and audited:
            try:
                self.events.mark_error(event_id, message)
            except Exception:
                logger.exception("Failed to record error on audit row %s", event_id)

        log_webhook_event(logger, event_type, event_id or "unknown", result="error", error=message)
        raise ReconciliationError(
            ErrorCode.WEBHOOK_PROCESSING_FAILED,
            details={"reason": message},
        ) from error

    @staticmethod
    def _recover_event_id(event: dict[str, Any] | None, payload: bytes) -> str | None:
        """Find the event ID from the parsed event, else from the raw body."""
        event_id = (event or {}).get("id")
        if isinstance(event_id, str) and event_id:
            return event_id
        try:
            parsed = json.loads(payload)
        except ValueError:
            return None
        event_id = parsed.get("id") if isinstance(parsed, dict) else None
        return event_id if isinstance(event_id, str) and event_id else None

    @staticmethod
    def _validate_envelope(event: dict[str, Any]) -> None:
        """Check the fields an event needs before it is audited.

        Every event needs ``id`` and ``type``; only handled types also need
        ``data.object``, since unhandled ones are acknowledged untouched.

        Raises:
            ReconciliationError: MALFORMED_WEBHOOK_EVENT
        """
        event_id = event.get("id")
        event_type = event.get("type")
        if not isinstance(event_id, str) or not event_id or not isinstance(event_type, str) or not event_type:
            logger.warning("Malformed webhook event envelope: id=%s type=%s", event_id, event_type)
            raise ReconciliationError(
                ErrorCode.MALFORMED_WEBHOOK_EVENT,
                details={"reason": "Event must carry id and type"},
            )

        if StripeEventType.parse(event_type) is None:
            return

        data = event.get("data")
        if not isinstance(data, dict) or not isinstance(data.get("object"), dict):
            logger.warning("Webhook event %s (%s) has no data.object", event_id, event_type)
            raise ReconciliationError(
                ErrorCode.MALFORMED_WEBHOOK_EVENT,
                details={"reason": "Event must carry data.object"},
            )

    # =========================================================================
    # Event handlers
    # =========================================================================

    def _handle_checkout_completed(self, session: dict[str, Any]) -> ProcessingResult:
        """Process checkout.session.completed.

        Deposit checkouts mark the listing deposit paid and email the owner;
        booking checkouts link the booking to its PaymentIntent.
        """
        if not _is_deposit(session):
            return self.bookings.link_checkout_session(session)

        update = self.bookings.mark_deposit_paid(session)
        if update.result == ProcessingResult.SUCCESS and update.listing and update.payment_intent_id:
            self.notifications.send_deposit_confirmation(update.listing, session, update.payment_intent_id)
        return update.result

    def _handle_amount_capturable_updated(self, payment_intent: dict[str, Any]) -> ProcessingResult:
        """Process payment_intent.amount_capturable_updated (pre-authorization)."""
        if _is_deposit(payment_intent):
            logger.info("Deposit PaymentIntent %s handled at checkout, skipping", payment_intent.get("id"))
            return ProcessingResult.SKIPPED

        status = payment_intent.get("status")
        amount_capturable = payment_intent.get("amount_capturable") or 0
        if status != PaymentIntentStatus.REQUIRES_CAPTURE.value or amount_capturable <= 0:
            logger.info(
                "PaymentIntent %s not capturable (status=%s, amount_capturable=%s), skipping",
                payment_intent.get("id"),
                status,
                amount_capturable,
            )
            return ProcessingResult.SKIPPED

        update = self.bookings.apply_payment_intent_status(
            payment_intent, PaymentIntentStatus.REQUIRES_CAPTURE.value
        )
        return update.result

    def _handle_payment_succeeded(self, payment_intent: dict[str, Any]) -> ProcessingResult:
        """Process payment_intent.succeeded and notify admins on confirmation."""
        if _is_deposit(payment_intent):
            logger.info("Deposit PaymentIntent %s handled at checkout, skipping", payment_intent.get("id"))
            return ProcessingResult.SKIPPED

        update = self.bookings.apply_payment_intent_status(payment_intent)
        if update.confirmed_payment and update.booking is not None:
            self.notifications.dispatch_payment_received(update.booking, payment_intent)
        return update.result

    def _handle_payment_canceled(self, payment_intent: dict[str, Any]) -> ProcessingResult:
        """Process payment_intent.canceled."""
        if _is_deposit(payment_intent):
            return ProcessingResult.SKIPPED
        update = self.bookings.apply_payment_intent_status(
            payment_intent, PaymentIntentStatus.CANCELED.value
        )
        return update.result

    def _handle_payment_failed(self, payment_intent: dict[str, Any]) -> ProcessingResult:
        if _is_deposit(payment_intent):
            return ProcessingResult.SKIPPED
        update = self.bookings.apply_payment_intent_status(
            payment_intent, PaymentIntentStatus.PAYMENT_FAILED.value
        )
        return update.result
