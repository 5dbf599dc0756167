"""Backend services for parking booking payment reconciliation."""

from .booking_state import BookingStateUpdater, StateUpdateResult
from .dynamodb import DynamoDBService, get_dynamodb_service, reset_dynamodb_service
from .email_service import EmailService, EmailServiceError, get_email_service
from .notification_service import DispatchReport, NotificationDispatcher
from .rate_limiter import RateLimitDecision, RateLimiter
from .ssm_service import SSMService, SSMServiceError, get_ssm_service
from .stripe_service import (
    StripeService,
    StripeServiceError,
    WebhookSecretNotConfiguredError,
    WebhookSecretUnavailableError,
    get_stripe_service,
)
from .webhook_events import WebhookEventLog
from .webhook_handler import WebhookHandler, WebhookOutcome

__all__ = [
    "DynamoDBService",
    "get_dynamodb_service",
    "reset_dynamodb_service",
    "BookingStateUpdater",
    "StateUpdateResult",
    "EmailService",
    "EmailServiceError",
    "get_email_service",
    "DispatchReport",
    "NotificationDispatcher",
    "RateLimitDecision",
    "RateLimiter",
    "SSMService",
    "SSMServiceError",
    "get_ssm_service",
    "StripeService",
    "StripeServiceError",
    "WebhookSecretNotConfiguredError",
    "WebhookSecretUnavailableError",
    "get_stripe_service",
    "WebhookEventLog",
    "WebhookHandler",
    "WebhookOutcome",
]
