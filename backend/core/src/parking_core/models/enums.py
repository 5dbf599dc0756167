"""Enumeration types for parking booking payment data models."""

from enum import Enum


class BookingStatus(str, Enum):
    """Status of a parking booking."""

    PENDING = "pending"
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"
    REJECTED = "rejected"
    COMPLETED = "completed"
    APPROVED = "approved"


class BookingPaymentStatus(str, Enum):
    """Payment status of a parking booking."""

    PRE_AUTHORIZED = "pre_authorized"
    PROCESSING = "processing"
    PAID = "paid"
    CANCELLED = "cancelled"
    FAILED = "failed"


TERMINAL_PAYMENT_STATUSES = frozenset(
    {
        BookingPaymentStatus.PAID,
        BookingPaymentStatus.CANCELLED,
        BookingPaymentStatus.FAILED,
    }
)


class PaymentIntentStatus(str, Enum):
    """PaymentIntent statuses the reconciliation workflow understands.

    ``payment_failed`` is not a Stripe status value; it stands for the
    ``payment_intent.payment_failed`` event, which Stripe delivers with the
    intent back in ``requires_payment_method``.
    """

    SUCCEEDED = "succeeded"
    REQUIRES_CAPTURE = "requires_capture"
    PROCESSING = "processing"
    CANCELED = "canceled"
    PAYMENT_FAILED = "payment_failed"


class StripeEventType(str, Enum):
    """Stripe webhook event types routed to a handler.

    Anything else is acknowledged and ignored.
    """

    CHECKOUT_SESSION_COMPLETED = "checkout.session.completed"
    PAYMENT_INTENT_AMOUNT_CAPTURABLE_UPDATED = "payment_intent.amount_capturable_updated"
    PAYMENT_INTENT_SUCCEEDED = "payment_intent.succeeded"
    PAYMENT_INTENT_CANCELED = "payment_intent.canceled"
    PAYMENT_INTENT_PAYMENT_FAILED = "payment_intent.payment_failed"

    @classmethod
    def parse(cls, value: str | None) -> "StripeEventType | None":
        """Return the member for ``value`` or None for unhandled types."""
        try:
            return cls(value)
        except ValueError:
            return None


class WebhookEventStatus(str, Enum):
    """Lifecycle of an audit row in the webhook events table."""

    PROCESSING = "processing"
    PROCESSED = "processed"
    ERROR = "error"


class ProcessingResult(str, Enum):
    """Outcome label recorded on the audit row and returned to Stripe."""

    SUCCESS = "success"
    IGNORED = "ignored"
    NOT_FOUND = "not_found"
    SKIPPED = "skipped"
    DUPLICATE = "duplicate"
    ERROR = "error"


class NotificationPriority(str, Enum):
    """Priority of an admin dashboard notification."""

    LOW = "low"
    NORMAL = "normal"
    HIGH = "high"


class NotificationType(str, Enum):
    """Kinds of admin notification created by this workflow."""

    PAYMENT_RECEIVED = "payment_received"


class DepositPaymentStatus(str, Enum):
    """Status of a listing owner's deposit payment."""

    PENDING = "pending"
    PAID = "paid"
