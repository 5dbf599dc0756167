"""Booking and customer profile models.

Bookings are created by the booking-request workflow; the reconciliation
workflow only reads them and updates their status fields.
"""

from decimal import Decimal
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from .enums import BookingPaymentStatus, BookingStatus


class Booking(BaseModel):
    """A parking space booking as stored in the bookings table."""

    # DynamoDB returns numbers as Decimal and enums as plain strings
    model_config = ConfigDict(extra="ignore")

    id: str = Field(..., description="Booking ID (UUID)")
    user_id: str | None = Field(default=None, description="Customer user ID")
    status: BookingStatus = Field(..., description="Booking status")
    payment_status: BookingPaymentStatus | None = Field(
        default=None, description="Payment status, unset until a payment starts"
    )
    stripe_payment_intent_id: str | None = Field(
        default=None,
        description="Stripe PaymentIntent correlated with this booking",
        examples=["pi_3ABC123DEF456"],
    )
    location: str | None = Field(default=None, description="Parking spot name/location")
    zone: str | None = Field(default=None, description="Dubai zone", examples=["DIFC"])
    start_time: str | None = Field(default=None, description="ISO start of the booking")
    duration_hours: Decimal | None = Field(default=None, ge=0)
    cost_aed: Decimal | None = Field(default=None, ge=0, description="Total cost in AED")
    payment_type: str | None = Field(
        default=None, description="one_time or monthly", examples=["one_time"]
    )
    created_at: str | None = None
    updated_at: str | None = None

    @classmethod
    def from_item(cls, item: dict[str, Any]) -> "Booking":
        """Build a Booking from a DynamoDB item."""
        return cls.model_validate(item)

    @property
    def short_id(self) -> str:
        """First 8 characters of the booking ID, as shown to admins."""
        return self.id[:8]

    @property
    def duration_months(self) -> Decimal:
        """Booking length in 30-day months, at least 1 when unknown."""
        if not self.duration_hours:
            return Decimal(1)
        return self.duration_hours / 24 / 30


class CustomerProfile(BaseModel):
    """Contact details of the customer who made a booking."""

    model_config = ConfigDict(extra="ignore")

    user_id: str
    full_name: str | None = None
    email: str | None = None
    phone: str | None = None

    @classmethod
    def from_item(cls, item: dict[str, Any]) -> "CustomerProfile":
        """Build a CustomerProfile from a DynamoDB item."""
        return cls.model_validate(item)

    @property
    def display_name(self) -> str:
        return self.full_name or self.email or "Unknown customer"
