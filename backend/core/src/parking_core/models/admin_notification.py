"""Admin dashboard notification model."""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from .enums import NotificationPriority, NotificationType


class AdminNotification(BaseModel):
    """A row shown in the admin dashboard notification feed.

    Created as a side effect of a successful payment; read by the
    admin panel, which lives outside this backend.
    """

    model_config = ConfigDict(extra="ignore")

    id: str = Field(..., description="Notification ID")
    notification_type: NotificationType
    title: str
    message: str
    booking_id: str | None = None
    user_id: str | None = None
    payment_intent_id: str | None = None
    priority: NotificationPriority = NotificationPriority.NORMAL
    is_read: bool = False
    created_at: datetime

    def to_item(self) -> dict[str, Any]:
        """Serialise to a DynamoDB item."""
        return self.model_dump(mode="json", exclude_none=True)


class NotificationFailure(BaseModel):
    """Dead-letter row for a side effect that could not be delivered.

    Written when the admin notification insert or an email send fails, so
    operators can follow up without the webhook itself failing.
    """

    model_config = ConfigDict(extra="ignore")

    id: str = Field(..., description="Failure ID")
    kind: str = Field(..., description="Side effect that failed", examples=["admin_email"])
    booking_id: str | None = None
    listing_id: str | None = None
    payment_intent_id: str | None = None
    error_message: str
    created_at: datetime

    def to_item(self) -> dict[str, Any]:
        """Serialise to a DynamoDB item."""
        return self.model_dump(mode="json", exclude_none=True)
