"""Pydantic models for parking booking payment reconciliation."""

from .admin_notification import AdminNotification, NotificationFailure
from .booking import Booking, CustomerProfile
from .enums import (
    TERMINAL_PAYMENT_STATUSES,
    BookingPaymentStatus,
    BookingStatus,
    DepositPaymentStatus,
    NotificationPriority,
    NotificationType,
    PaymentIntentStatus,
    ProcessingResult,
    StripeEventType,
    WebhookEventStatus,
)
from .errors import (
    ERROR_MESSAGES,
    ERROR_RECOVERY,
    ErrorCode,
    ErrorResponse,
    ReconciliationError,
)
from .stripe_webhook import StripeWebhookEvent

__all__ = [
    # Enums
    "BookingPaymentStatus",
    "BookingStatus",
    "DepositPaymentStatus",
    "NotificationPriority",
    "NotificationType",
    "PaymentIntentStatus",
    "ProcessingResult",
    "StripeEventType",
    "TERMINAL_PAYMENT_STATUSES",
    "WebhookEventStatus",
    # Booking
    "Booking",
    "CustomerProfile",
    # Notifications
    "AdminNotification",
    "NotificationFailure",
    # Errors
    "ErrorCode",
    "ErrorResponse",
    "ERROR_MESSAGES",
    "ERROR_RECOVERY",
    "ReconciliationError",
    # Stripe
    "StripeWebhookEvent",
]
