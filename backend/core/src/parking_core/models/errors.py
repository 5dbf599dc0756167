"""Standard error codes for the payment reconciliation backend.

All services and routes raise ReconciliationError with one of these codes
so the API layer can render consistent error responses.
"""

from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict


class ErrorCode(str, Enum):
    """Standard error codes."""

    # Webhook error codes (ERR_WEBHOOK_001-ERR_WEBHOOK_006)
    INVALID_WEBHOOK_SIGNATURE = "ERR_WEBHOOK_001"
    WEBHOOK_SECRET_NOT_CONFIGURED = "ERR_WEBHOOK_002"
    WEBHOOK_PROCESSING_FAILED = "ERR_WEBHOOK_003"
    MALFORMED_WEBHOOK_EVENT = "ERR_WEBHOOK_004"
    WEBHOOK_EVENT_NOT_FOUND = "ERR_WEBHOOK_005"
    WEBHOOK_SECRET_UNAVAILABLE = "ERR_WEBHOOK_006"


# Human-readable error messages
ERROR_MESSAGES: dict[ErrorCode, str] = {
    ErrorCode.INVALID_WEBHOOK_SIGNATURE: "Invalid webhook signature",
    ErrorCode.WEBHOOK_SECRET_NOT_CONFIGURED: "Webhook secret not configured",
    ErrorCode.WEBHOOK_PROCESSING_FAILED: "Webhook processing failed",
    ErrorCode.MALFORMED_WEBHOOK_EVENT: "Webhook event is malformed",
    ErrorCode.WEBHOOK_EVENT_NOT_FOUND: "Webhook event not found",
    ErrorCode.WEBHOOK_SECRET_UNAVAILABLE: "Webhook secret could not be loaded",
}

# Recovery suggestions for operators
ERROR_RECOVERY: dict[ErrorCode, str] = {
    ErrorCode.INVALID_WEBHOOK_SIGNATURE: "Verify webhook secret configuration",
    ErrorCode.WEBHOOK_SECRET_NOT_CONFIGURED: "Set the Stripe webhook secret in SSM or STRIPE_WEBHOOK_SECRET",
    ErrorCode.WEBHOOK_PROCESSING_FAILED: "Stripe will retry; inspect the webhook events table",
    ErrorCode.MALFORMED_WEBHOOK_EVENT: "Check the event payload sent by Stripe",
    ErrorCode.WEBHOOK_EVENT_NOT_FOUND: "Check the event ID against the webhook events table",
    ErrorCode.WEBHOOK_SECRET_UNAVAILABLE: "Check SSM availability and IAM permissions for ssm:GetParameter",
}


class ErrorResponse(BaseModel):
    """Standard error response body."""

    model_config = ConfigDict(strict=True)

    success: bool = False
    error_code: ErrorCode
    message: str
    recovery: str
    details: Optional[dict[str, str]] = None

    @classmethod
    def from_code(
        cls,
        code: ErrorCode,
        details: Optional[dict[str, str]] = None,
    ) -> "ErrorResponse":
        """Create an ErrorResponse from an error code.

        Args:
            code: The error code
            details: Optional additional context about the error

        Returns:
            An ErrorResponse with the message and recovery hint for the code.
        """
        return cls(
            error_code=code,
            message=ERROR_MESSAGES[code],
            recovery=ERROR_RECOVERY[code],
            details=details,
        )


class ReconciliationError(Exception):
    """Exception raised by reconciliation operations.

    Caught by the API exception handlers and converted to a JSON response.
    """

    def __init__(
        self,
        code: ErrorCode,
        details: Optional[dict[str, str]] = None,
    ):
        self.code = code
        self.message = ERROR_MESSAGES[code]
        self.recovery = ERROR_RECOVERY[code]
        self.details = details
        super().__init__(self.message)

    def to_error_response(self) -> ErrorResponse:
        """Convert this exception to an ErrorResponse."""
        return ErrorResponse.from_code(self.code, self.details)
