"""FastAPI exception handlers for converting ReconciliationError to HTTP responses.

The ErrorCode-to-HTTP status mapping:
- 400 Bad Request: invalid signature, malformed event
- 404 Not Found: unknown webhook event (replay)
- 500 Internal Server Error: missing or unreadable signing secret, processing failure

A processing failure answers ``{"error": "<message>"}`` so Stripe records
the reason and retries the delivery. Every other error uses the
ErrorResponse body.

Usage:
    from parking_api.exceptions import register_exception_handlers
    register_exception_handlers(app)
"""

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from starlette.status import (
    HTTP_400_BAD_REQUEST,
    HTTP_404_NOT_FOUND,
    HTTP_500_INTERNAL_SERVER_ERROR,
)

from parking_core.models.errors import ErrorCode, ReconciliationError
from parking_core.utils.logging import get_logger

logger = get_logger(__name__)

ERROR_CODE_TO_HTTP_STATUS: dict[ErrorCode, int] = {
    ErrorCode.INVALID_WEBHOOK_SIGNATURE: HTTP_400_BAD_REQUEST,
    ErrorCode.MALFORMED_WEBHOOK_EVENT: HTTP_400_BAD_REQUEST,
    ErrorCode.WEBHOOK_EVENT_NOT_FOUND: HTTP_404_NOT_FOUND,
    ErrorCode.WEBHOOK_SECRET_NOT_CONFIGURED: HTTP_500_INTERNAL_SERVER_ERROR,
    ErrorCode.WEBHOOK_SECRET_UNAVAILABLE: HTTP_500_INTERNAL_SERVER_ERROR,
    ErrorCode.WEBHOOK_PROCESSING_FAILED: HTTP_500_INTERNAL_SERVER_ERROR,
}


def get_http_status_for_error(code: ErrorCode) -> int:
    """Get HTTP status code for an ErrorCode, defaulting to 400."""
    return ERROR_CODE_TO_HTTP_STATUS.get(code, HTTP_400_BAD_REQUEST)


async def reconciliation_error_handler(request: Request, exc: ReconciliationError) -> JSONResponse:
    """Convert a ReconciliationError to a JSON response.

    Args:
        request: The incoming request (unused but required by FastAPI)
        exc: The ReconciliationError exception

    Returns:
        JSONResponse with the mapped status code.
    """
    status_code = get_http_status_for_error(exc.code)

    if exc.code == ErrorCode.WEBHOOK_PROCESSING_FAILED:
        message = (exc.details or {}).get("reason", exc.message)
        return JSONResponse(status_code=status_code, content={"error": message})

    return JSONResponse(
        status_code=status_code,
        content=exc.to_error_response().model_dump(mode="json"),
    )


async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Answer uncaught exceptions with a 500 so Stripe retries."""
    logger.exception("Unhandled exception: %s", exc)
    return JSONResponse(
        status_code=HTTP_500_INTERNAL_SERVER_ERROR,
        content={"error": "An unexpected error occurred"},
    )


def register_exception_handlers(app: FastAPI) -> None:
    """Register all exception handlers with the FastAPI app.

    Args:
        app: The FastAPI application instance.
    """
    app.add_exception_handler(ReconciliationError, reconciliation_error_handler)  # type: ignore[arg-type]
    app.add_exception_handler(Exception, generic_exception_handler)
