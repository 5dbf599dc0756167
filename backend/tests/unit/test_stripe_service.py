"""Unit tests for StripeService webhook verification.

Signatures are built with real HMAC-SHA256 so verification runs through
the Stripe SDK unmocked. SSM is mocked where the secret source matters.

Test categories:
- Secret resolution (env var, SSM, missing)
- verify_webhook_signature() with valid, tampered and stale signatures
- Payload hashing
"""

import json
import time
from unittest.mock import MagicMock, patch

import pytest

from parking_core.services.ssm_service import SSMParameterNotFoundError, SSMServiceError
from parking_core.services.stripe_service import (
    StripeService,
    StripeServiceError,
    WebhookSecretNotConfiguredError,
    WebhookSecretUnavailableError,
)
from webhook_helpers import TEST_WEBHOOK_SECRET, create_stripe_signature, make_event, make_payment_intent


# === Test Fixtures ===


@pytest.fixture
def mock_ssm_service():
    """Mock SSM service for secret retrieval."""
    with patch("parking_core.services.stripe_service.get_ssm_service") as mock_get_ssm:
        mock_ssm = MagicMock()
        mock_get_ssm.return_value = mock_ssm
        yield mock_ssm


@pytest.fixture
def stripe_service(mock_ssm_service) -> StripeService:
    return StripeService(environment="dev")


@pytest.fixture
def event_payload() -> bytes:
    event = make_event("payment_intent.succeeded", make_payment_intent(), event_id="evt_sig_1")
    return json.dumps(event).encode("utf-8")


# === Secret Resolution ===


class TestWebhookSecretResolution:
    """Test where the signing secret comes from."""

    def test_env_var_takes_precedence(self, stripe_service, mock_ssm_service):
        assert stripe_service._get_webhook_secret() == TEST_WEBHOOK_SECRET
        mock_ssm_service.get_parameter.assert_not_called()

    def test_falls_back_to_ssm(self, stripe_service, mock_ssm_service, monkeypatch):
        """Without the env var the secret is read from the environment's SSM path."""
        monkeypatch.delenv("STRIPE_WEBHOOK_SECRET")
        mock_ssm_service.get_parameter.return_value = "whsec_from_ssm"

        assert stripe_service._get_webhook_secret() == "whsec_from_ssm"
        mock_ssm_service.get_parameter.assert_called_once_with("/parking/dev/stripe/webhook_secret")

    def test_missing_parameter_means_not_configured(self, stripe_service, mock_ssm_service, monkeypatch):
        monkeypatch.delenv("STRIPE_WEBHOOK_SECRET")
        mock_ssm_service.get_parameter.side_effect = SSMParameterNotFoundError("not found")

        with pytest.raises(WebhookSecretNotConfiguredError):
            stripe_service._get_webhook_secret()

    def test_empty_secret_means_not_configured(self, stripe_service, mock_ssm_service, monkeypatch):
        monkeypatch.delenv("STRIPE_WEBHOOK_SECRET")
        mock_ssm_service.get_parameter.return_value = ""

        with pytest.raises(WebhookSecretNotConfiguredError):
            stripe_service._get_webhook_secret()

    def test_ssm_failure_means_secret_unavailable(self, stripe_service, mock_ssm_service, monkeypatch):
        """Access errors are not reported as a missing secret."""
        monkeypatch.delenv("STRIPE_WEBHOOK_SECRET")
        mock_ssm_service.get_parameter.side_effect = SSMServiceError("Access denied")

        with pytest.raises(WebhookSecretUnavailableError) as exc_info:
            stripe_service._get_webhook_secret()

        assert not isinstance(exc_info.value, WebhookSecretNotConfiguredError)
        assert "Failed to get webhook secret" in str(exc_info.value)

    def test_secret_is_cached(self, stripe_service, mock_ssm_service, monkeypatch):
        monkeypatch.delenv("STRIPE_WEBHOOK_SECRET")
        mock_ssm_service.get_parameter.return_value = "whsec_from_ssm"

        stripe_service._get_webhook_secret()
        stripe_service._get_webhook_secret()

        mock_ssm_service.get_parameter.assert_called_once()


# === verify_webhook_signature() ===


class TestVerifyWebhookSignature:
    """Test signature verification against real HMAC signatures."""

    def test_valid_signature_returns_event(self, stripe_service, event_payload):
        signature = create_stripe_signature(event_payload)

        event = stripe_service.verify_webhook_signature(event_payload, signature)

        assert event["id"] == "evt_sig_1"
        assert event["type"] == "payment_intent.succeeded"
        assert event["data"]["object"]["id"] == "pi_123"

    def test_wrong_secret_is_rejected(self, stripe_service, event_payload):
        signature = create_stripe_signature(event_payload, secret="whsec_someone_else")

        with pytest.raises(StripeServiceError, match="Invalid webhook signature"):
            stripe_service.verify_webhook_signature(event_payload, signature)

    def test_tampered_body_is_rejected(self, stripe_service, event_payload):
        signature = create_stripe_signature(event_payload)
        tampered = event_payload.replace(b"45000", b"1")

        with pytest.raises(StripeServiceError, match="Invalid webhook signature"):
            stripe_service.verify_webhook_signature(tampered, signature)

    def test_stale_timestamp_is_rejected(self, stripe_service, event_payload):
        """Signatures older than the 300s tolerance are replays."""
        signature = create_stripe_signature(event_payload, timestamp=int(time.time()) - 3600)

        with pytest.raises(StripeServiceError, match="Invalid webhook signature"):
            stripe_service.verify_webhook_signature(event_payload, signature)

    def test_malformed_header_is_rejected(self, stripe_service, event_payload):
        with pytest.raises(StripeServiceError):
            stripe_service.verify_webhook_signature(event_payload, "malformed-signature-no-timestamp")

    def test_signed_non_object_payload_is_rejected(self, stripe_service):
        payload = b"[1, 2, 3]"
        signature = create_stripe_signature(payload)

        with pytest.raises(StripeServiceError, match="Invalid webhook payload"):
            stripe_service.verify_webhook_signature(payload, signature)

    def test_missing_secret_raises_before_verifying(self, stripe_service, mock_ssm_service, event_payload, monkeypatch):
        monkeypatch.delenv("STRIPE_WEBHOOK_SECRET")
        mock_ssm_service.get_parameter.side_effect = SSMParameterNotFoundError("not found")

        with pytest.raises(WebhookSecretNotConfiguredError):
            stripe_service.verify_webhook_signature(event_payload, create_stripe_signature(event_payload))


# === Payload Hash ===


class TestComputePayloadHash:
    def test_hash_is_sha256_hex(self):
        digest = StripeService.compute_payload_hash(b"{}")
        assert digest == "44136fa355b3678a1146ad16f7e8649e94fb4fc21fe77e8310c060f61caaff8a"

    def test_hash_differs_per_payload(self):
        assert StripeService.compute_payload_hash(b"a") != StripeService.compute_payload_hash(b"b")
