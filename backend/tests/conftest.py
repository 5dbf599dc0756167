"""Pytest configuration and fixtures for the parking payments backend tests.

This module provides reusable fixtures for testing:
- DynamoDB, SES and SSM mocking with moto
- Sample data fixtures (bookings, profiles, listings)

Event builders and signature helpers live in webhook_helpers.
"""

import os
from decimal import Decimal
from typing import Any, Generator

import boto3
import pytest
from moto import mock_aws

from webhook_helpers import TABLE_PREFIX, TEST_REGION, TEST_WEBHOOK_SECRET, table

# === Environment Setup ===

# Set environment variables for testing before imports
os.environ["AWS_DEFAULT_REGION"] = TEST_REGION
os.environ.setdefault("ENVIRONMENT", "test")
os.environ["DYNAMODB_TABLE_PREFIX"] = TABLE_PREFIX
os.environ["STRIPE_WEBHOOK_SECRET"] = TEST_WEBHOOK_SECRET

# Only set fake credentials for moto if no real credentials are present
if not os.environ.get("AWS_PROFILE") and not os.environ.get("AWS_ACCESS_KEY_ID"):
    os.environ.setdefault("AWS_ACCESS_KEY_ID", "testing")
    os.environ.setdefault("AWS_SECRET_ACCESS_KEY", "testing")


# === Singleton Reset ===


@pytest.fixture(autouse=True)
def reset_service_singletons() -> Generator[None, None, None]:
    """Reset cached services before and after each test.

    Tests using mock_aws need service instances (and boto3 clients)
    created inside the mock context.
    """
    from parking_core.services.dynamodb import reset_dynamodb_service
    from parking_core.services.email_service import get_email_service
    from parking_core.services.ssm_service import SSMService, get_ssm_service
    from parking_core.services.stripe_service import get_stripe_service

    def _reset() -> None:
        reset_dynamodb_service()
        get_stripe_service.cache_clear()
        get_email_service.cache_clear()
        get_ssm_service.cache_clear()
        SSMService._cache.clear()

    _reset()
    yield
    _reset()


# === AWS Fixtures ===


@pytest.fixture
def aws() -> Generator[None, None, None]:
    """Run the test inside moto's mock_aws."""
    with mock_aws():
        yield


def _table(name: str, key: str, *gsi_keys: str) -> dict[str, Any]:
    definition: dict[str, Any] = {
        "TableName": f"{TABLE_PREFIX}-{name}",
        "KeySchema": [{"AttributeName": key, "KeyType": "HASH"}],
        "AttributeDefinitions": [{"AttributeName": key, "AttributeType": "S"}],
        "BillingMode": "PAY_PER_REQUEST",
    }
    if gsi_keys:
        definition["AttributeDefinitions"] += [
            {"AttributeName": gsi_key, "AttributeType": "S"} for gsi_key in gsi_keys
        ]
        definition["GlobalSecondaryIndexes"] = [
            {
                "IndexName": f"{gsi_key}-index",
                "KeySchema": [{"AttributeName": gsi_key, "KeyType": "HASH"}],
                "Projection": {"ProjectionType": "ALL"},
            }
            for gsi_key in gsi_keys
        ]
    return definition


@pytest.fixture
def create_tables(aws: None) -> None:
    """Create all DynamoDB tables used by the reconciliation workflow."""
    client = boto3.client("dynamodb", region_name=TEST_REGION)
    definitions = [
        _table("parking-bookings", "id", "stripe_payment_intent_id"),
        _table("profiles", "user_id"),
        _table("parking-listings", "id"),
        _table("deposit-payments", "id", "stripe_session_id"),
        _table("stripe-webhook-events", "stripe_event_id"),
        _table("admin-notifications", "id"),
        _table("notification-failures", "id"),
        _table("rate-limits", "limit_key"),
    ]
    for definition in definitions:
        client.create_table(**definition)

    client.update_time_to_live(
        TableName=f"{TABLE_PREFIX}-rate-limits",
        TimeToLiveSpecification={"Enabled": True, "AttributeName": "expires_at"},
    )


@pytest.fixture
def ses_identity(aws: None) -> None:
    """Verify the sender domain so moto SES accepts messages."""
    ses = boto3.client("ses", region_name=TEST_REGION)
    ses.verify_domain_identity(Domain="shazamparking.ae")


@pytest.fixture
def db(create_tables: None) -> Any:
    """DynamoDBService bound to the mocked tables."""
    from parking_core.services.dynamodb import get_dynamodb_service

    return get_dynamodb_service()


# === Sample Data Fixtures ===


@pytest.fixture
def sample_booking() -> dict[str, Any]:
    """A booking awaiting capture of its pre-authorized payment."""
    return {
        "id": "b1",
        "user_id": "user-123",
        "status": "pending",
        "payment_status": "pre_authorized",
        "stripe_payment_intent_id": "pi_123",
        "location": "Marina Gate Tower 2",
        "zone": "Dubai Marina",
        "start_time": "2026-11-01T09:00:00+00:00",
        "duration_hours": Decimal("720"),
        "cost_aed": Decimal("450"),
        "payment_type": "one_time",
        "created_at": "2026-10-18T10:00:00+00:00",
        "updated_at": "2026-10-18T10:00:00+00:00",
    }


@pytest.fixture
def sample_profile() -> dict[str, Any]:
    """Customer profile for sample_booking."""
    return {
        "user_id": "user-123",
        "full_name": "Layla Haddad",
        "email": "layla@example.com",
        "phone": "+971501234567",
    }


@pytest.fixture
def booking_in_db(db: Any, sample_booking: dict[str, Any], sample_profile: dict[str, Any]) -> dict[str, Any]:
    """Store sample_booking and its customer profile."""
    table("parking-bookings").put_item(Item=sample_booking)
    table("profiles").put_item(Item=sample_profile)
    return sample_booking


@pytest.fixture
def listing_in_db(db: Any) -> dict[str, Any]:
    """A listing whose owner has started a deposit checkout."""
    owner = {
        "user_id": "owner-456",
        "full_name": "Omar Saleh",
        "email": "omar@example.com",
    }
    listing = {
        "id": "listing-1",
        "title": "Covered bay near DIFC Gate",
        "owner_id": "owner-456",
        "deposit_payment_status": "pending",
    }
    deposit = {
        "id": "dep-1",
        "listing_id": "listing-1",
        "stripe_session_id": "cs_test_deposit",
        "payment_status": "pending",
    }
    table("profiles").put_item(Item=owner)
    table("parking-listings").put_item(Item=listing)
    table("deposit-payments").put_item(Item=deposit)
    return listing
