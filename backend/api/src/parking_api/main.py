"""FastAPI application for the parking payment reconciliation API.

Endpoints:
- POST /api/webhooks/stripe: Stripe webhook receiver
- GET /api/ping: health check

Runs on AWS Lambda behind API Gateway via Mangum, or locally via uvicorn.
"""

import os
from datetime import UTC, datetime
from typing import Any

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from mangum import Mangum

from parking_api.exceptions import register_exception_handlers
from parking_api.middleware.correlation import CorrelationIdMiddleware
from parking_api.routes.webhooks import router as webhooks_router
from parking_core.utils.logging import configure_logging, get_logger

configure_logging(os.environ.get("LOG_LEVEL", "INFO"))
logger = get_logger(__name__)

app = FastAPI(
    title="Parking Payments API",
    description="Stripe webhook reconciliation for parking bookings",
    version="0.1.0",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[
        origin.strip()
        for origin in os.environ.get("CORS_ALLOWED_ORIGINS", "*").split(",")
        if origin.strip()
    ],
    allow_methods=["*"],
    allow_headers=["*"],
)
app.add_middleware(CorrelationIdMiddleware)

register_exception_handlers(app)

# Include routers under /api prefix (matches API Gateway routing /api/*)
app.include_router(webhooks_router, prefix="/api")


@app.get("/api/ping")
async def ping() -> dict[str, Any]:
    """Health check endpoint at /api/ping."""
    return {
        "status": "ok",
        "timestamp": datetime.now(UTC).isoformat(),
        "service": "parking-payments-api",
    }


# Lambda handler - Mangum wraps FastAPI for AWS Lambda + API Gateway
handler = Mangum(app, lifespan="off")


def run_server(host: str = "0.0.0.0", port: int = 8080, reload: bool = True) -> None:
    """Run the FastAPI server.

    Args:
        host: Host to bind to (default: 0.0.0.0)
        port: Port to listen on (default: 8080)
        reload: Enable hot reload for development (default: True)
    """
    import uvicorn

    if reload:
        # Use string reference for reload mode (uvicorn requirement)
        uvicorn.run(
            "parking_api.main:app",
            host=host,
            port=port,
            reload=True,
            reload_dirs=["api/src", "core/src"],
        )
    else:
        uvicorn.run(app, host=host, port=port)


if __name__ == "__main__":
    run_server()
