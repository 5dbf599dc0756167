"""Best-effort side effects of a confirmed payment.

The booking write has already committed when these run. Nothing here may
fail the webhook: every step catches its own failure, logs it and writes
a row to the ``notification-failures`` table for follow-up.
"""

import datetime as dt
import os
import uuid
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from parking_core.models import (
    AdminNotification,
    Booking,
    CustomerProfile,
    NotificationFailure,
    NotificationPriority,
    NotificationType,
)
from parking_core.utils.logging import get_logger

from .dynamodb import ADMIN_NOTIFICATIONS_TABLE, NOTIFICATION_FAILURES_TABLE
from .email_service import (
    DEFAULT_ADMIN_PANEL_URL,
    format_amount,
    get_email_service,
    render_deposit_confirmation_email,
    render_payment_received_email,
)
from .rate_limiter import RateLimiter

if TYPE_CHECKING:
    from .dynamodb import DynamoDBService
    from .email_service import EmailService

logger = get_logger(__name__)

DEFAULT_ADMIN_EMAIL = "support@shazamparking.ae"
DEFAULT_DEPOSIT_AMOUNT = "500"
PAYMENT_RECEIVED_TITLE = "💳 Payment Received"


@dataclass
class DispatchReport:
    """What the dispatcher managed to deliver."""

    notification_id: str | None = None
    email_sent: bool = False
    email_rate_limited: bool = False


class NotificationDispatcher:
    """Creates admin notifications and sends payment emails.

    Usage:
        dispatcher = NotificationDispatcher(db)
        dispatcher.dispatch_payment_received(booking, payment_intent)
    """

    def __init__(
        self,
        db: "DynamoDBService",
        email_service: "EmailService | None" = None,
        rate_limiter: RateLimiter | None = None,
        admin_email: str | None = None,
        admin_panel_url: str | None = None,
    ) -> None:
        self.db = db
        self._email_service = email_service
        self.rate_limiter = rate_limiter or RateLimiter(db)
        self.admin_email = admin_email or os.environ.get("ADMIN_NOTIFICATION_EMAIL", DEFAULT_ADMIN_EMAIL)
        self.admin_panel_url = admin_panel_url or os.environ.get("ADMIN_PANEL_URL", DEFAULT_ADMIN_PANEL_URL)

    @property
    def email_service(self) -> "EmailService":
        # Created lazily so a broken SES setup only affects the email step
        if self._email_service is None:
            self._email_service = get_email_service()
        return self._email_service

    def dispatch_payment_received(
        self,
        booking: Booking,
        payment_intent: dict[str, Any],
    ) -> DispatchReport:
        """Notify admins that a booking payment succeeded.

        Inserts one admin notification and sends one operations email.
        The two steps are independent; a failure in one does not stop
        the other.

        Args:
            booking: Booking just moved to confirmed/paid
            payment_intent: PaymentIntent object from the event

        Returns:
            DispatchReport describing what was delivered
        """
        payment_intent_id = payment_intent.get("id") or ""
        amount = format_amount(payment_intent.get("amount"))
        currency = (payment_intent.get("currency") or "aed").upper()
        profile = self._load_profile(booking.user_id)
        report = DispatchReport()

        try:
            report.notification_id = self._create_admin_notification(
                booking, profile, payment_intent_id, amount, currency
            )
        except Exception as e:
            logger.exception("Failed to create admin notification for booking %s", booking.id)
            self._record_failure(
                "admin_notification", e, booking_id=booking.id, payment_intent_id=payment_intent_id
            )

        try:
            key = f"payment-email#{booking.id}"
            decision = self.rate_limiter.hit(key)
            if not decision.allowed:
                report.email_rate_limited = True
                logger.warning(
                    "Skipping payment email for booking %s, rate limited for %ss",
                    booking.id,
                    decision.remaining_seconds,
                )
            else:
                subject, html_body, text_body = render_payment_received_email(
                    booking,
                    profile,
                    amount=amount,
                    currency=currency,
                    payment_intent_id=payment_intent_id,
                    admin_panel_url=self.admin_panel_url,
                )
                self.email_service.send_email(self.admin_email, subject, html_body, text_body)
                report.email_sent = True
        except Exception as e:
            logger.exception("Failed to send payment email for booking %s", booking.id)
            self._record_failure(
                "admin_email", e, booking_id=booking.id, payment_intent_id=payment_intent_id
            )

        return report

    def send_deposit_confirmation(
        self,
        listing: dict[str, Any],
        session: dict[str, Any],
        payment_intent_id: str,
    ) -> bool:
        """Email a listing owner that their deposit was received.

        Args:
            listing: Listing item after the deposit update
            session: Checkout Session object from the event
            payment_intent_id: PaymentIntent that paid the deposit

        Returns:
            True if the email was sent
        """
        listing_id = listing.get("id")
        try:
            owner = self._load_profile(listing.get("owner_id"))
            if owner is None or not owner.email:
                logger.warning("No owner email for listing %s, skipping deposit confirmation", listing_id)
                return False

            amount_total = session.get("amount_total")
            deposit_amount = format_amount(amount_total) if amount_total else DEFAULT_DEPOSIT_AMOUNT
            subject, html_body, text_body = render_deposit_confirmation_email(
                owner_name=owner.full_name or owner.email,
                listing_title=listing.get("title") or "Your parking listing",
                deposit_amount=deposit_amount,
                transaction_id=payment_intent_id,
            )
            self.email_service.send_email(owner.email, subject, html_body, text_body)
            return True
        except Exception as e:
            logger.exception("Failed to send deposit confirmation for listing %s", listing_id)
            self._record_failure(
                "deposit_email", e, listing_id=listing_id, payment_intent_id=payment_intent_id
            )
            return False

    def _load_profile(self, user_id: str | None) -> CustomerProfile | None:
        if not user_id:
            return None
        try:
            item = self.db.get_profile(user_id)
        except Exception:
            logger.exception("Failed to load profile %s", user_id)
            return None
        return CustomerProfile.from_item(item) if item else None

    def _create_admin_notification(
        self,
        booking: Booking,
        profile: CustomerProfile | None,
        payment_intent_id: str,
        amount: str,
        currency: str,
    ) -> str:
        name = profile.display_name if profile else "Unknown customer"
        notification = AdminNotification(
            id=str(uuid.uuid4()),
            notification_type=NotificationType.PAYMENT_RECEIVED,
            title=PAYMENT_RECEIVED_TITLE,
            message=f"Payment of {amount} {currency} received for booking #{booking.short_id} by {name}",
            booking_id=booking.id,
            user_id=booking.user_id,
            payment_intent_id=payment_intent_id or None,
            priority=NotificationPriority.HIGH,
            created_at=dt.datetime.now(dt.UTC),
        )
        self.db.put_item(ADMIN_NOTIFICATIONS_TABLE, notification.to_item())
        logger.info("Created admin notification %s for booking %s", notification.id, booking.id)
        return notification.id

    def _record_failure(self, kind: str, error: Exception, **refs: str | None) -> None:
        failure = NotificationFailure(
            id=str(uuid.uuid4()),
            kind=kind,
            error_message=str(error) or type(error).__name__,
            created_at=dt.datetime.now(dt.UTC),
            **refs,
        )
        try:
            self.db.put_item(NOTIFICATION_FAILURES_TABLE, failure.to_item())
        except Exception:
            logger.exception("Failed to record %s failure", kind)
