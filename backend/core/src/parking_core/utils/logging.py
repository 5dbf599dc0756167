"""Structured logging utilities with correlation ID support.

Provides:
- Correlation ID context management for request tracing
- Structured logging formatter for consistent log output
- Helper functions for webhook and booking transition logging

Usage:
    from parking_core.utils.logging import get_logger, set_correlation_id

    # In middleware/request handler:
    set_correlation_id(request.headers.get("X-Correlation-ID"))

    # In service code:
    logger = get_logger(__name__)
    logger.info("Booking updated", extra={"booking_id": "b1"})
"""

import logging
import uuid
from contextvars import ContextVar
from typing import Any

# Context variable for correlation ID - thread-safe and async-safe
_correlation_id: ContextVar[str | None] = ContextVar("correlation_id", default=None)

# Results logged at WARNING: acknowledged, but nothing was changed
_WARNING_RESULTS = {"duplicate", "ignored", "skipped", "not_found"}


def generate_correlation_id() -> str:
    """Generate a new correlation ID.

    Returns:
        UUID-based correlation ID string
    """
    return str(uuid.uuid4())


def set_correlation_id(correlation_id: str | None = None) -> str:
    """Set the correlation ID for the current request context.

    Args:
        correlation_id: Optional existing correlation ID. If None, generates new one.

    Returns:
        The correlation ID that was set
    """
    cid = correlation_id or generate_correlation_id()
    _correlation_id.set(cid)
    return cid


def get_correlation_id() -> str | None:
    """Get the current correlation ID."""
    return _correlation_id.get()


def clear_correlation_id() -> None:
    """Clear the correlation ID context."""
    _correlation_id.set(None)


class CorrelationIdFilter(logging.Filter):
    """Logging filter that adds correlation_id to log records."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.correlation_id = get_correlation_id() or "no-correlation-id"
        return True


class StructuredFormatter(logging.Formatter):
    """Formatter for structured log output with correlation ID."""

    def format(self, record: logging.LogRecord) -> str:
        """Format log record with a correlation ID prefix.

        Args:
            record: Log record to format

        Returns:
            Formatted log string
        """
        if not hasattr(record, "correlation_id"):
            record.correlation_id = get_correlation_id() or "no-correlation-id"

        base = super().format(record)

        # Prefix for easy grep/filtering in CloudWatch
        return f"[{record.correlation_id}] {base}"


def configure_logging(level: str = "INFO") -> None:
    """Configure root logging with the structured formatter.

    Args:
        level: Log level name (DEBUG, INFO, WARNING, ...)
    """
    handler = logging.StreamHandler()
    handler.setFormatter(
        StructuredFormatter("%(asctime)s %(levelname)s %(name)s: %(message)s")
    )
    logging.basicConfig(level=level.upper(), handlers=[handler], force=True)


def get_logger(name: str) -> logging.Logger:
    """Get a logger with correlation ID support.

    Args:
        name: Logger name (usually __name__)

    Returns:
        Configured logger instance
    """
    logger = logging.getLogger(name)

    if not any(isinstance(f, CorrelationIdFilter) for f in logger.filters):
        logger.addFilter(CorrelationIdFilter())

    return logger


def _emit(logger: logging.Logger, message: str, context: dict[str, Any], result: str | None) -> None:
    if result == "error" or context.get("error"):
        logger.error(message, extra=context)
    elif result in _WARNING_RESULTS:
        logger.warning(message, extra=context)
    else:
        logger.info(message, extra=context)


def log_webhook_event(
    logger: logging.Logger,
    event_type: str,
    event_id: str,
    *,
    booking_id: str | None = None,
    payment_intent_id: str | None = None,
    result: str | None = None,
    error: str | None = None,
    **extra: Any,
) -> None:
    """Log a webhook event with structured context.

    Args:
        logger: Logger instance
        event_type: Stripe event type (e.g., "payment_intent.succeeded")
        event_id: Stripe event ID
        booking_id: Associated booking ID if available
        payment_intent_id: Associated PaymentIntent ID if available
        result: Processing result (received, success, duplicate, ignored, error, ...)
        error: Error message if processing failed
        **extra: Additional context fields
    """
    context: dict[str, Any] = {
        "event_type": event_type,
        "event_id": event_id,
    }

    if booking_id:
        context["booking_id"] = booking_id
    if payment_intent_id:
        context["payment_intent_id"] = payment_intent_id
    if result:
        context["result"] = result
    if error:
        context["error"] = error

    context.update(extra)

    msg_parts = [f"Webhook event: {event_type} ({event_id})"]
    if result:
        msg_parts.append(f"result={result}")
    if booking_id:
        msg_parts.append(f"booking={booking_id}")
    if payment_intent_id:
        msg_parts.append(f"payment_intent={payment_intent_id}")
    if error:
        msg_parts.append(f"error={error}")

    _emit(logger, " | ".join(msg_parts), context, result)


def log_booking_transition(
    logger: logging.Logger,
    booking_id: str,
    *,
    payment_intent_id: str | None = None,
    status: str | None = None,
    payment_status: str | None = None,
    result: str | None = None,
    error: str | None = None,
    **extra: Any,
) -> None:
    """Log a booking status change driven by a payment event.

    Args:
        logger: Logger instance
        booking_id: Booking being updated
        payment_intent_id: PaymentIntent that triggered the change
        status: New booking status
        payment_status: New booking payment status
        result: Outcome (success, skipped, not_found, error)
        error: Error message if the update failed
        **extra: Additional context fields
    """
    context: dict[str, Any] = {"booking_id": booking_id}

    if payment_intent_id:
        context["payment_intent_id"] = payment_intent_id
    if status:
        context["status"] = status
    if payment_status:
        context["payment_status"] = payment_status
    if result:
        context["result"] = result
    if error:
        context["error"] = error

    context.update(extra)

    msg_parts = [f"Booking transition: {booking_id}"]
    for key, value in context.items():
        if key != "booking_id":
            msg_parts.append(f"{key}={value}")

    _emit(logger, " | ".join(msg_parts), context, result)
