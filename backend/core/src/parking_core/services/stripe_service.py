"""Stripe webhook signature verification.

Verifies the ``Stripe-Signature`` header against the endpoint's signing
secret before any event is trusted. The secret is read from the
``STRIPE_WEBHOOK_SECRET`` environment variable when set, otherwise from
SSM Parameter Store.
"""

import hashlib
import json
import logging
import os
from functools import lru_cache
from typing import Any

import stripe

from .ssm_service import SSMParameterNotFoundError, SSMServiceError, get_ssm_service

logger = logging.getLogger(__name__)


class StripeServiceError(Exception):
    """Raised when a Stripe operation fails."""


class WebhookSecretNotConfiguredError(StripeServiceError):
    """Raised when no webhook signing secret is available.

    The endpoint must refuse every request in this state rather than
    accept unverified events.
    """


class WebhookSecretUnavailableError(StripeServiceError):
    """Raised when the signing secret exists but cannot be read (SSM errors)."""


class StripeService:
    """Service for Stripe webhook verification.

    Usage:
        stripe_svc = get_stripe_service()
        event = stripe_svc.verify_webhook_signature(payload, signature)
    """

    def __init__(self, environment: str | None = None) -> None:
        """Initialize Stripe service.

        Args:
            environment: Environment name (dev, prod). Defaults to ENVIRONMENT env var.
        """
        self._environment = environment or os.environ.get("ENVIRONMENT", "dev")
        self._ssm = get_ssm_service()
        self._webhook_secret: str | None = None

    def _get_webhook_secret(self) -> str:
        """Get the webhook signing secret.

        Returns:
            Webhook signing secret.

        Raises:
            WebhookSecretNotConfiguredError: If no secret is configured.
            StripeServiceError: If the secret cannot be retrieved.
        """
        if self._webhook_secret is None:
            secret = os.environ.get("STRIPE_WEBHOOK_SECRET")
            if not secret:
                try:
                    secret = self._ssm.get_parameter(
                        f"/parking/{self._environment}/stripe/webhook_secret"
                    )
                except SSMParameterNotFoundError as e:
                    raise WebhookSecretNotConfiguredError(
                        "Stripe webhook secret not configured"
                    ) from e
                except SSMServiceError as e:
                    raise WebhookSecretUnavailableError(f"Failed to get webhook secret: {e}") from e
            if not secret:
                raise WebhookSecretNotConfiguredError("Stripe webhook secret not configured")
            self._webhook_secret = secret
        return self._webhook_secret

    def verify_webhook_signature(self, payload: bytes, signature: str) -> dict[str, Any]:
        """Verify a webhook signature and parse the event.

        Args:
            payload: Raw request body bytes, exactly as received.
            signature: Stripe-Signature header value.

        Returns:
            Parsed Stripe event dictionary.

        Raises:
            WebhookSecretNotConfiguredError: If no signing secret is configured.
            StripeServiceError: If the signature or payload is invalid.
        """
        webhook_secret = self._get_webhook_secret()

        try:
            body = payload.decode("utf-8")
        except UnicodeDecodeError as e:
            raise StripeServiceError("Invalid webhook payload encoding") from e

        try:
            stripe.WebhookSignature.verify_header(
                body,
                signature,
                webhook_secret,
                stripe.Webhook.DEFAULT_TOLERANCE,
            )
        except stripe.SignatureVerificationError as e:
            logger.warning("Invalid webhook signature: %s", str(e))
            raise StripeServiceError("Invalid webhook signature") from e

        try:
            event = json.loads(body)
        except ValueError as e:
            raise StripeServiceError("Invalid webhook payload") from e

        if not isinstance(event, dict):
            raise StripeServiceError("Invalid webhook payload")

        logger.info("Webhook signature verified for event: %s", event.get("id"))
        return event

    @staticmethod
    def compute_payload_hash(payload: bytes) -> str:
        """Compute SHA-256 hash of a webhook payload.

        Args:
            payload: Raw webhook payload bytes.

        Returns:
            Hex-encoded SHA-256 hash.
        """
        return hashlib.sha256(payload).hexdigest()


@lru_cache(maxsize=1)
def get_stripe_service() -> StripeService:
    """Get the shared StripeService instance (singleton pattern)."""
    return StripeService()
