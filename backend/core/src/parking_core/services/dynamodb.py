"""DynamoDB service wrapper for the reconciliation tables."""

import os
from typing import Any

import boto3
from boto3.dynamodb.conditions import Key
from botocore.exceptions import ClientError

# Table names without the environment prefix
BOOKINGS_TABLE = "parking-bookings"
PROFILES_TABLE = "profiles"
LISTINGS_TABLE = "parking-listings"
DEPOSIT_PAYMENTS_TABLE = "deposit-payments"
WEBHOOK_EVENTS_TABLE = "stripe-webhook-events"
ADMIN_NOTIFICATIONS_TABLE = "admin-notifications"
NOTIFICATION_FAILURES_TABLE = "notification-failures"
RATE_LIMITS_TABLE = "rate-limits"

BOOKING_PAYMENT_INTENT_INDEX = "stripe_payment_intent_id-index"
DEPOSIT_SESSION_INDEX = "stripe_session_id-index"

# Module-level singleton for connection reuse across warm Lambda invocations
_dynamodb_service_instance: "DynamoDBService | None" = None


def get_dynamodb_service(environment: str | None = None) -> "DynamoDBService":
    """Get or create the singleton DynamoDB service instance.

    Args:
        environment: Environment name. Only used on first call.

    Returns:
        Shared DynamoDBService instance
    """
    global _dynamodb_service_instance
    if _dynamodb_service_instance is None:
        _dynamodb_service_instance = DynamoDBService(environment)
    return _dynamodb_service_instance


def reset_dynamodb_service() -> None:
    """Reset the singleton instance (for testing only).

    This allows tests to create a fresh DynamoDBService inside
    a mock_aws context.
    """
    global _dynamodb_service_instance
    _dynamodb_service_instance = None


class DynamoDBService:
    """Service for DynamoDB operations with environment-aware table names."""

    def __init__(self, environment: str | None = None) -> None:
        """Initialize DynamoDB service.

        Args:
            environment: Environment name (dev/prod). Defaults to ENVIRONMENT env var.
        """
        self.environment = environment or os.getenv("ENVIRONMENT", "dev")
        # Allow override via DYNAMODB_TABLE_PREFIX for testing
        self.name_prefix = os.getenv(
            "DYNAMODB_TABLE_PREFIX", f"parking-{self.environment}"
        )
        self._dynamodb = boto3.resource("dynamodb")

    def _table_name(self, table: str) -> str:
        """Get full table name with prefix."""
        return f"{self.name_prefix}-{table}"

    def _get_table(self, table: str) -> Any:
        """Get DynamoDB table resource."""
        return self._dynamodb.Table(self._table_name(table))

    # Generic CRUD operations

    def get_item(
        self,
        table: str,
        key: dict[str, Any],
    ) -> dict[str, Any] | None:
        """Get a single item by key.

        Args:
            table: Table name without prefix
            key: Primary key dict

        Returns:
            Item dict or None if not found
        """
        response = self._get_table(table).get_item(Key=key)
        item: dict[str, Any] | None = response.get("Item")
        return item

    def put_item(
        self,
        table: str,
        item: dict[str, Any],
        condition_expression: str | None = None,
    ) -> bool:
        """Put an item into the table.

        Args:
            table: Table name without prefix
            item: Item to store
            condition_expression: Optional condition for write

        Returns:
            True if successful, False if condition failed
        """
        try:
            kwargs: dict[str, Any] = {"Item": item}
            if condition_expression:
                kwargs["ConditionExpression"] = condition_expression

            self._get_table(table).put_item(**kwargs)
            return True
        except ClientError as e:
            if e.response["Error"]["Code"] == "ConditionalCheckFailedException":
                return False
            raise

    def update_item(
        self,
        table: str,
        key: dict[str, Any],
        update_expression: str,
        expression_attribute_values: dict[str, Any],
        expression_attribute_names: dict[str, str] | None = None,
        condition_expression: str | None = None,
    ) -> dict[str, Any] | None:
        """Update an item with expressions.

        Args:
            table: Table name without prefix
            key: Primary key dict
            update_expression: DynamoDB update expression
            expression_attribute_values: Values for expression
            expression_attribute_names: Names for expression (for reserved words)
            condition_expression: Optional condition for update

        Returns:
            Updated attributes or None if condition failed
        """
        try:
            kwargs: dict[str, Any] = {
                "Key": key,
                "UpdateExpression": update_expression,
                "ExpressionAttributeValues": expression_attribute_values,
                "ReturnValues": "ALL_NEW",
            }
            if expression_attribute_names:
                kwargs["ExpressionAttributeNames"] = expression_attribute_names
            if condition_expression:
                kwargs["ConditionExpression"] = condition_expression

            response = self._get_table(table).update_item(**kwargs)
            attrs: dict[str, Any] | None = response.get("Attributes")
            return attrs
        except ClientError as e:
            if e.response["Error"]["Code"] == "ConditionalCheckFailedException":
                return None
            raise

    def query(
        self,
        table: str,
        key_condition: Any,
        index_name: str | None = None,
        limit: int | None = None,
    ) -> list[dict[str, Any]]:
        """Query table or GSI.

        Args:
            table: Table name without prefix
            key_condition: Boto3 Key condition
            index_name: GSI name (optional)
            limit: Max items to return

        Returns:
            List of items
        """
        kwargs: dict[str, Any] = {"KeyConditionExpression": key_condition}
        if index_name:
            kwargs["IndexName"] = index_name
        if limit:
            kwargs["Limit"] = limit

        response = self._get_table(table).query(**kwargs)
        items: list[dict[str, Any]] = response.get("Items", [])
        return items

    def query_by_gsi(
        self,
        table: str,
        index_name: str,
        partition_key_name: str,
        partition_key_value: str,
    ) -> list[dict[str, Any]]:
        """Query a GSI by partition key.

        Args:
            table: Table name without prefix
            index_name: GSI name
            partition_key_name: Name of partition key attribute
            partition_key_value: Value to query

        Returns:
            List of items
        """
        key_condition = Key(partition_key_name).eq(partition_key_value)
        return self.query(table, key_condition, index_name=index_name)

    # =========================================================================
    # Booking lookups
    # =========================================================================

    def get_booking(self, booking_id: str) -> dict[str, Any] | None:
        """Get a booking by its ID."""
        return self.get_item(BOOKINGS_TABLE, {"id": booking_id})

    def get_booking_by_payment_intent(
        self, payment_intent_id: str
    ) -> dict[str, Any] | None:
        """Get the booking correlated with a Stripe PaymentIntent.

        Args:
            payment_intent_id: Stripe PaymentIntent ID (pi_xxx)

        Returns:
            Booking item or None if no booking references the intent
        """
        results = self.query_by_gsi(
            table=BOOKINGS_TABLE,
            index_name=BOOKING_PAYMENT_INTENT_INDEX,
            partition_key_name="stripe_payment_intent_id",
            partition_key_value=payment_intent_id,
        )
        return results[0] if results else None

    def get_profile(self, user_id: str) -> dict[str, Any] | None:
        """Get a customer profile by user ID."""
        return self.get_item(PROFILES_TABLE, {"user_id": user_id})
