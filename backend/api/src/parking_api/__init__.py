"""FastAPI application exposing the Stripe payment reconciliation webhook."""

__version__ = "0.1.0"
