"""SES email delivery for payment notifications.

Two messages are sent by the reconciliation workflow:
- the operations email to admins when a booking payment succeeds
- the deposit confirmation to a listing owner after deposit checkout
"""

import html
import logging
import os
from datetime import datetime
from decimal import Decimal
from functools import lru_cache
from typing import TYPE_CHECKING

import boto3
from botocore.exceptions import ClientError

if TYPE_CHECKING:
    from parking_core.models import Booking, CustomerProfile

logger = logging.getLogger(__name__)

DEFAULT_FROM_EMAIL = "ShazamParking Bookings <bookings@shazamparking.ae>"
DEFAULT_ADMIN_PANEL_URL = "https://shazamparking.ae/admin-panel"
ACCOUNT_URL = "https://shazamparking.ae/my-account"
NOT_PROVIDED = "Not provided"


class EmailServiceError(Exception):
    """Raised when SES rejects or fails to send a message."""


def format_amount(minor_units: int | Decimal | None) -> str:
    """Render an amount in minor currency units as major units.

    45000 -> "450", 45050 -> "450.5"
    """
    value = Decimal(minor_units or 0) / 100
    return f"{value:f}"


def _format_number(value: Decimal) -> str:
    rounded = value.quantize(Decimal("0.01")).normalize()
    return f"{rounded:f}"


def _format_date(value: str | None) -> str:
    if not value:
        return NOT_PROVIDED
    try:
        return datetime.fromisoformat(value).strftime("%d %b %Y")
    except ValueError:
        return value


def render_payment_received_email(
    booking: "Booking",
    profile: "CustomerProfile | None",
    *,
    amount: str,
    currency: str,
    payment_intent_id: str,
    admin_panel_url: str = DEFAULT_ADMIN_PANEL_URL,
) -> tuple[str, str, str]:
    """Build the operations email for a confirmed booking payment.

    Args:
        booking: The booking that was just marked paid
        profile: Customer profile, if one exists
        amount: Formatted amount received (major units)
        currency: Upper-case currency code
        payment_intent_id: Stripe PaymentIntent ID
        admin_panel_url: Link target for the admin panel button

    Returns:
        Tuple of (subject, html_body, text_body)
    """
    location = booking.location or NOT_PROVIDED
    details = [
        ("Reference", booking.id),
        ("Parking Spot", location),
        ("Zone", booking.zone or NOT_PROVIDED),
        ("Start Date", _format_date(booking.start_time)),
        ("Duration", f"{_format_number(booking.duration_months)} month(s)"),
        ("Total Cost", f"{_format_number(booking.cost_aed)} AED" if booking.cost_aed is not None else NOT_PROVIDED),
        ("Amount Received", f"{amount} {currency}"),
        ("Payment Type", "Monthly Recurring" if booking.payment_type == "monthly" else "One-time Payment"),
        ("Notes", f"Payment completed via Stripe. Payment Intent: {payment_intent_id}"),
    ]
    customer = [
        ("Name", profile.full_name if profile and profile.full_name else NOT_PROVIDED),
        ("Email", profile.email if profile and profile.email else NOT_PROVIDED),
        ("Phone", profile.phone if profile and profile.phone else NOT_PROVIDED),
    ]

    subject = f"💳 Payment Received - {location}"

    def rows(pairs: list[tuple[str, str]]) -> str:
        return "\n".join(
            f"<p><strong>{html.escape(label)}:</strong> {html.escape(value)}</p>"
            for label, value in pairs
        )

    html_body = f"""
    <html>
    <body style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto;">
        <h1 style="color: #333; border-bottom: 2px solid #007bff; padding-bottom: 10px;">
            Payment Received
        </h1>
        <div style="background: #f8f9fa; padding: 20px; border-radius: 8px; margin: 20px 0;">
            <h2 style="color: #007bff; margin-top: 0;">Booking Details:</h2>
            {rows(details)}
        </div>
        <div style="background: #e9ecef; padding: 20px; border-radius: 8px; margin: 20px 0;">
            <h2 style="color: #333; margin-top: 0;">Customer Information:</h2>
            {rows(customer)}
        </div>
        <div style="text-align: center; margin: 30px 0;">
            <a href="{html.escape(admin_panel_url, quote=True)}"
               style="background-color: #007bff; color: white; padding: 12px 24px; text-decoration: none; border-radius: 5px; display: inline-block;">
                Review Booking in Admin Panel
            </a>
        </div>
        <hr style="margin: 30px 0;" />
        <p style="color: #666; font-size: 12px; text-align: center;">
            This is an automated email from the ShazamParking booking notification system.
        </p>
    </body>
    </html>
    """

    text_lines = ["Payment Received", "", "Booking Details:"]
    text_lines += [f"  {label}: {value}" for label, value in details]
    text_lines += ["", "Customer Information:"]
    text_lines += [f"  {label}: {value}" for label, value in customer]
    text_lines += ["", f"Review in the admin panel: {admin_panel_url}"]

    return subject, html_body, "\n".join(text_lines)


def render_deposit_confirmation_email(
    owner_name: str,
    listing_title: str,
    deposit_amount: str,
    transaction_id: str,
) -> tuple[str, str, str]:
    """Build the deposit confirmation sent to a listing owner.

    Returns:
        Tuple of (subject, html_body, text_body)
    """
    subject = "✅ Deposit Payment Confirmed - ShazamParking"
    name = html.escape(owner_name)
    title = html.escape(listing_title)
    amount = html.escape(deposit_amount)
    txn = html.escape(transaction_id)

    html_body = f"""
    <html>
    <body style="font-family: Arial, sans-serif; line-height: 1.6; color: #333; max-width: 600px; margin: 0 auto; padding: 20px;">
        <h1 style="color: #10b981;">✅ Payment Confirmed!</h1>
        <p>Dear {name},</p>
        <p>Your deposit payment has been successfully received and confirmed.</p>
        <div style="background: white; padding: 20px; border-left: 4px solid #10b981; margin: 20px 0;">
            <h3 style="color: #10b981; margin-top: 0;">Payment Details</h3>
            <p><strong>Listing:</strong> {title}</p>
            <p><strong>Amount Paid:</strong> {amount} AED</p>
            <p><strong>Transaction ID:</strong> {txn}</p>
            <p><strong>Status:</strong> CONFIRMED</p>
        </div>
        <p>
            Our team will now coordinate the delivery of your parking access device.
            Your {amount} AED deposit is refunded when the device is returned in working condition.
        </p>
        <p><a href="{ACCOUNT_URL}">View My Listings</a></p>
        <hr style="border: none; border-top: 1px solid #ddd; margin: 30px 0;">
        <p style="font-size: 12px; color: #999;">
            Need help? Contact us at support@shazamparking.ae
        </p>
    </body>
    </html>
    """

    text_body = f"""
Payment Confirmed

Dear {owner_name},

Your deposit payment has been successfully received and confirmed.

Listing: {listing_title}
Amount Paid: {deposit_amount} AED
Transaction ID: {transaction_id}

Our team will now coordinate the delivery of your parking access device.
Your {deposit_amount} AED deposit is refunded when the device is returned in working condition.

View your listings: {ACCOUNT_URL}
"""
    return subject, html_body, text_body


class EmailService:
    """Sends transactional email through Amazon SES.

    Usage:
        email = get_email_service()
        email.send_email("support@shazamparking.ae", subject, html_body, text_body)
    """

    def __init__(self, from_email: str | None = None, region: str | None = None) -> None:
        """Initialize the SES client.

        Args:
            from_email: Sender address. Defaults to SES_FROM_EMAIL env var.
            region: SES region. Defaults to SES_REGION env var, then the boto default.
        """
        self.from_email = from_email or os.environ.get("SES_FROM_EMAIL") or DEFAULT_FROM_EMAIL
        self._client = boto3.client("ses", region_name=region or os.environ.get("SES_REGION"))

    def send_email(self, to: str, subject: str, html_body: str, text_body: str) -> str:
        """Send a message with HTML and plain-text bodies.

        Args:
            to: Recipient address
            subject: Subject line
            html_body: HTML body
            text_body: Plain-text body

        Returns:
            SES message ID

        Raises:
            EmailServiceError: If SES refuses the message.
        """
        try:
            response = self._client.send_email(
                Source=self.from_email,
                Destination={"ToAddresses": [to]},
                Message={
                    "Subject": {"Data": subject, "Charset": "UTF-8"},
                    "Body": {
                        "Text": {"Data": text_body, "Charset": "UTF-8"},
                        "Html": {"Data": html_body, "Charset": "UTF-8"},
                    },
                },
            )
        except ClientError as e:
            error_code = e.response.get("Error", {}).get("Code", "Unknown")
            raise EmailServiceError(f"SES send_email failed ({error_code}): {e}") from e

        message_id: str = response["MessageId"]
        logger.info("Sent email '%s' to %s... (message: %s)", subject, to[:20], message_id)
        return message_id


@lru_cache(maxsize=1)
def get_email_service() -> EmailService:
    """Get the shared EmailService instance."""
    return EmailService()
