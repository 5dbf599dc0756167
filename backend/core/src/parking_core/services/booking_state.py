"""Booking state updates driven by Stripe PaymentIntent events.

Maps a PaymentIntent status onto the booking's ``status`` and
``payment_status`` fields:

    succeeded        -> confirmed / paid
    requires_capture -> pending   / pre_authorized
    processing       -> pending   / processing
    canceled         -> cancelled / cancelled
    payment_failed   -> rejected  / failed

Writes are single-row conditional updates keyed by booking ID. A booking
whose payment status is already terminal (paid, cancelled, failed) only
accepts a write that repeats the same terminal state.
"""

import datetime as dt
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from parking_core.models import (
    TERMINAL_PAYMENT_STATUSES,
    Booking,
    BookingPaymentStatus,
    BookingStatus,
    DepositPaymentStatus,
    PaymentIntentStatus,
    ProcessingResult,
)
from parking_core.utils.logging import get_logger, log_booking_transition

from .dynamodb import (
    BOOKINGS_TABLE,
    DEPOSIT_PAYMENTS_TABLE,
    DEPOSIT_SESSION_INDEX,
    LISTINGS_TABLE,
)

if TYPE_CHECKING:
    from .dynamodb import DynamoDBService

logger = get_logger(__name__)

STATUS_TRANSITIONS: dict[PaymentIntentStatus, tuple[BookingStatus, BookingPaymentStatus]] = {
    PaymentIntentStatus.SUCCEEDED: (BookingStatus.CONFIRMED, BookingPaymentStatus.PAID),
    PaymentIntentStatus.REQUIRES_CAPTURE: (BookingStatus.PENDING, BookingPaymentStatus.PRE_AUTHORIZED),
    PaymentIntentStatus.PROCESSING: (BookingStatus.PENDING, BookingPaymentStatus.PROCESSING),
    PaymentIntentStatus.CANCELED: (BookingStatus.CANCELLED, BookingPaymentStatus.CANCELLED),
    PaymentIntentStatus.PAYMENT_FAILED: (BookingStatus.REJECTED, BookingPaymentStatus.FAILED),
}

DEPOSIT_PAYMENT_TYPE = "deposit"


@dataclass
class StateUpdateResult:
    """Outcome of applying a PaymentIntent status to a booking."""

    result: ProcessingResult
    booking: Booking | None = None
    status: BookingStatus | None = None
    payment_status: BookingPaymentStatus | None = None
    previous_payment_status: BookingPaymentStatus | None = None

    @property
    def confirmed_payment(self) -> bool:
        """True when this update moved the booking into ``paid``.

        Re-applying ``paid`` to an already paid booking is not a new
        confirmation.
        """
        return (
            self.result == ProcessingResult.SUCCESS
            and self.payment_status == BookingPaymentStatus.PAID
            and self.previous_payment_status != BookingPaymentStatus.PAID
        )


@dataclass
class DepositUpdateResult:
    """Outcome of marking a listing deposit as paid."""

    result: ProcessingResult
    listing: dict[str, Any] | None = None
    payment_intent_id: str | None = None


def resolve_transition(
    payment_intent_status: str | None,
) -> tuple[BookingStatus, BookingPaymentStatus] | None:
    """Return the (status, payment_status) pair for a PaymentIntent status.

    Args:
        payment_intent_status: Stripe status string (or ``payment_failed``)

    Returns:
        Target booking state, or None for statuses that leave the booking unchanged.
    """
    try:
        return STATUS_TRANSITIONS[PaymentIntentStatus(payment_intent_status)]
    except ValueError:
        return None


def _payment_intent_ref(value: Any) -> str | None:
    """Normalise an expandable Stripe reference to its ID."""
    if isinstance(value, dict):
        return value.get("id")
    return value


class BookingStateUpdater:
    """Applies PaymentIntent outcomes to parking bookings."""

    def __init__(self, db: "DynamoDBService") -> None:
        """Initialize the updater.

        Args:
            db: DynamoDB service instance
        """
        self.db = db

    def find_booking_for_payment_intent(self, payment_intent: dict[str, Any]) -> Booking | None:
        """Find the booking a PaymentIntent belongs to.

        Looks up by ``stripe_payment_intent_id`` first. If nothing matches
        and the intent carries ``metadata.booking_id``, falls back to that
        booking and records the intent ID on it for future lookups.

        Args:
            payment_intent: PaymentIntent object from the event

        Returns:
            The matching Booking, or None
        """
        payment_intent_id = payment_intent.get("id")
        if payment_intent_id:
            item = self.db.get_booking_by_payment_intent(payment_intent_id)
            if item:
                return Booking.from_item(item)

        metadata = payment_intent.get("metadata") or {}
        booking_id = metadata.get("booking_id")
        if not booking_id:
            return None

        item = self.db.get_booking(booking_id)
        if not item:
            return None

        booking = Booking.from_item(item)
        if payment_intent_id and booking.stripe_payment_intent_id != payment_intent_id:
            self.db.update_item(
                BOOKINGS_TABLE,
                {"id": booking.id},
                "SET stripe_payment_intent_id = :pi",
                {":pi": payment_intent_id},
            )
            booking.stripe_payment_intent_id = payment_intent_id
            logger.info(
                "Linked booking %s to PaymentIntent %s via metadata",
                booking.id,
                payment_intent_id,
            )
        return booking

    def apply_payment_intent_status(
        self,
        payment_intent: dict[str, Any],
        payment_intent_status: str | None = None,
    ) -> StateUpdateResult:
        """Apply a PaymentIntent status to its booking.

        Args:
            payment_intent: PaymentIntent object from the event
            payment_intent_status: Status to apply. Defaults to the intent's own status.

        Returns:
            StateUpdateResult describing what was written.

        Raises:
            botocore.exceptions.ClientError: If the booking write fails.
        """
        payment_intent_id = payment_intent.get("id")
        pi_status = payment_intent_status or payment_intent.get("status")

        booking = self.find_booking_for_payment_intent(payment_intent)
        if booking is None:
            logger.warning("Booking not found for payment intent: %s", payment_intent_id)
            return StateUpdateResult(result=ProcessingResult.NOT_FOUND)

        transition = resolve_transition(pi_status)
        if transition is None:
            logger.warning(
                "Unhandled payment intent status %s for booking %s, leaving unchanged",
                pi_status,
                booking.id,
            )
            return StateUpdateResult(result=ProcessingResult.SKIPPED, booking=booking)

        status, payment_status = transition
        updated = self._write_status(booking.id, status, payment_status)
        if updated is None:
            log_booking_transition(
                logger,
                booking.id,
                payment_intent_id=payment_intent_id,
                status=status.value,
                payment_status=payment_status.value,
                result="skipped",
                reason="terminal payment status",
                current_payment_status=booking.payment_status.value if booking.payment_status else None,
            )
            return StateUpdateResult(result=ProcessingResult.SKIPPED, booking=booking)

        log_booking_transition(
            logger,
            booking.id,
            payment_intent_id=payment_intent_id,
            status=status.value,
            payment_status=payment_status.value,
            result="success",
        )
        return StateUpdateResult(
            result=ProcessingResult.SUCCESS,
            booking=Booking.from_item(updated),
            status=status,
            payment_status=payment_status,
            previous_payment_status=booking.payment_status,
        )

    def _write_status(
        self,
        booking_id: str,
        status: BookingStatus,
        payment_status: BookingPaymentStatus,
    ) -> dict[str, Any] | None:
        """Conditionally write the booking status pair.

        Returns:
            Updated booking attributes, or None if the booking is in a
            different terminal payment state (or no longer exists).
        """
        values: dict[str, Any] = {
            ":status": status.value,
            ":payment_status": payment_status.value,
            ":now": dt.datetime.now(dt.UTC).isoformat(),
        }
        guards = ["attribute_not_exists(payment_status)", "payment_status = :payment_status"]
        terminal_checks = []
        for i, terminal in enumerate(sorted(TERMINAL_PAYMENT_STATUSES, key=lambda s: s.value)):
            values[f":terminal{i}"] = terminal.value
            terminal_checks.append(f"payment_status <> :terminal{i}")
        guards.append("(" + " AND ".join(terminal_checks) + ")")

        return self.db.update_item(
            BOOKINGS_TABLE,
            {"id": booking_id},
            "SET #status = :status, payment_status = :payment_status, updated_at = :now",
            values,
            {"#status": "status", "#id": "id"},  # status is a reserved word
            condition_expression="attribute_exists(#id) AND (" + " OR ".join(guards) + ")",
        )

    def link_checkout_session(self, session: dict[str, Any]) -> ProcessingResult:
        """Record a completed checkout session's PaymentIntent on its booking.

        Args:
            session: Checkout Session object from the event

        Returns:
            SUCCESS when linked, SKIPPED when the session lacks the references,
            NOT_FOUND when the booking does not exist.
        """
        booking_id = (session.get("metadata") or {}).get("booking_id")
        payment_intent_id = _payment_intent_ref(session.get("payment_intent"))

        if not booking_id or not payment_intent_id:
            logger.warning(
                "Checkout session %s missing booking_id or payment_intent, skipping",
                session.get("id"),
            )
            return ProcessingResult.SKIPPED

        updated = self.db.update_item(
            BOOKINGS_TABLE,
            {"id": booking_id},
            "SET stripe_payment_intent_id = :pi, updated_at = :now",
            {":pi": payment_intent_id, ":now": dt.datetime.now(dt.UTC).isoformat()},
            {"#id": "id"},
            condition_expression="attribute_exists(#id)",
        )
        if updated is None:
            logger.warning("Checkout session %s references unknown booking %s", session.get("id"), booking_id)
            return ProcessingResult.NOT_FOUND

        logger.info("Linked booking %s to PaymentIntent %s", booking_id, payment_intent_id)
        return ProcessingResult.SUCCESS

    def mark_deposit_paid(self, session: dict[str, Any]) -> DepositUpdateResult:
        """Mark a listing owner's deposit as paid after checkout.

        Updates the deposit payment row (found by checkout session ID) and
        the listing's ``deposit_payment_status``.

        Args:
            session: Checkout Session object with ``metadata.payment_type == "deposit"``

        Returns:
            DepositUpdateResult with the listing when found.
        """
        listing_id = (session.get("metadata") or {}).get("listing_id")
        payment_intent_id = _payment_intent_ref(session.get("payment_intent"))

        if not listing_id or not payment_intent_id:
            logger.warning("Deposit checkout %s missing listing_id or payment_intent", session.get("id"))
            return DepositUpdateResult(result=ProcessingResult.SKIPPED)

        now = dt.datetime.now(dt.UTC).isoformat()
        deposits = self.db.query_by_gsi(
            DEPOSIT_PAYMENTS_TABLE,
            DEPOSIT_SESSION_INDEX,
            "stripe_session_id",
            session.get("id") or "",
        )
        for deposit in deposits:
            self.db.update_item(
                DEPOSIT_PAYMENTS_TABLE,
                {"id": deposit["id"]},
                "SET stripe_payment_intent_id = :pi, payment_status = :paid, "
                "paid_at = :now, updated_at = :now",
                {":pi": payment_intent_id, ":paid": DepositPaymentStatus.PAID.value, ":now": now},
            )
        if not deposits:
            logger.warning("No deposit payment row for checkout session %s", session.get("id"))

        listing = self.db.update_item(
            LISTINGS_TABLE,
            {"id": listing_id},
            "SET deposit_payment_status = :paid, updated_at = :now",
            {":paid": DepositPaymentStatus.PAID.value, ":now": now},
            {"#id": "id"},
            condition_expression="attribute_exists(#id)",
        )
        if listing is None:
            logger.warning("Deposit paid for unknown listing %s", listing_id)
            return DepositUpdateResult(result=ProcessingResult.NOT_FOUND, payment_intent_id=payment_intent_id)

        logger.info("Deposit for listing %s marked paid", listing_id)
        return DepositUpdateResult(
            result=ProcessingResult.SUCCESS,
            listing=listing,
            payment_intent_id=payment_intent_id,
        )
