"""API routes package.

All routers are registered in main.py with the /api prefix.
"""

from parking_api.routes.webhooks import router as webhooks_router

__all__ = ["webhooks_router"]
