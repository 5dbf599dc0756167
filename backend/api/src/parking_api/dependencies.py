"""FastAPI dependency injection providers for core services.

Services are cached with @lru_cache so a warm Lambda container reuses its
boto3 clients and SSM secrets across invocations.

Usage in routes:
    from parking_api.dependencies import get_webhook_handler

    @router.post("/webhooks/stripe")
    async def handle_stripe_webhook(
        handler: WebhookHandler = Depends(get_webhook_handler),
    ):
        ...

Service Dependency Graph:
    DynamoDBService (singleton via get_dynamodb_service)
        └── WebhookHandler
                ├── WebhookEventLog
                ├── BookingStateUpdater
                └── NotificationDispatcher
                        ├── RateLimiter
                        └── EmailService (SES)
    StripeService (singleton via get_stripe_service)
        └── SSMService

Testing:
    Use reset_services() to clear cached instances between tests.
"""

from functools import lru_cache

from parking_core.services.dynamodb import get_dynamodb_service
from parking_core.services.notification_service import NotificationDispatcher
from parking_core.services.stripe_service import get_stripe_service
from parking_core.services.webhook_handler import WebhookHandler


@lru_cache
def get_notification_dispatcher() -> NotificationDispatcher:
    """Get cached NotificationDispatcher instance."""
    return NotificationDispatcher(db=get_dynamodb_service())


@lru_cache
def get_webhook_handler() -> WebhookHandler:
    """Get cached WebhookHandler instance.

    Returns:
        WebhookHandler wired to the DynamoDB, Stripe and notification services.
    """
    return WebhookHandler(
        db=get_dynamodb_service(),
        stripe_service=get_stripe_service(),
        dispatcher=get_notification_dispatcher(),
    )


def reset_services() -> None:
    """Clear all cached service instances.

    Call this in test fixtures to ensure clean state between tests.
    Also resets the underlying singletons (DynamoDB, Stripe, SSM, SES).
    """
    from parking_core.services.dynamodb import reset_dynamodb_service
    from parking_core.services.email_service import get_email_service
    from parking_core.services.ssm_service import SSMService, get_ssm_service

    get_webhook_handler.cache_clear()
    get_notification_dispatcher.cache_clear()
    get_stripe_service.cache_clear()
    get_email_service.cache_clear()
    get_ssm_service.cache_clear()
    SSMService._cache.clear()

    reset_dynamodb_service()
