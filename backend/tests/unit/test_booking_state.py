"""Unit tests for BookingStateUpdater.

Runs against moto DynamoDB so the conditional writes are exercised.

Test categories:
- Status mapping completeness
- Lookup by PaymentIntent and metadata fallback
- Terminal state guard and idempotency
- Checkout session linking and deposit payments
"""

from typing import Any

import pytest

from parking_core.models import (
    BookingPaymentStatus,
    BookingStatus,
    PaymentIntentStatus,
    ProcessingResult,
)
from parking_core.services.booking_state import (
    STATUS_TRANSITIONS,
    BookingStateUpdater,
    resolve_transition,
)
from webhook_helpers import make_payment_intent, scan, table


@pytest.fixture
def updater(db) -> BookingStateUpdater:
    return BookingStateUpdater(db)


def _booking(booking_id: str = "b1") -> dict[str, Any]:
    return table("parking-bookings").get_item(Key={"id": booking_id})["Item"]


# === Mapping ===


class TestStatusMapping:
    """Every understood PaymentIntent status maps to exactly one booking state."""

    @pytest.mark.parametrize(
        ("pi_status", "expected"),
        [
            ("succeeded", (BookingStatus.CONFIRMED, BookingPaymentStatus.PAID)),
            ("requires_capture", (BookingStatus.PENDING, BookingPaymentStatus.PRE_AUTHORIZED)),
            ("processing", (BookingStatus.PENDING, BookingPaymentStatus.PROCESSING)),
            ("canceled", (BookingStatus.CANCELLED, BookingPaymentStatus.CANCELLED)),
            ("payment_failed", (BookingStatus.REJECTED, BookingPaymentStatus.FAILED)),
        ],
    )
    def test_resolve_transition(self, pi_status, expected):
        assert resolve_transition(pi_status) == expected

    def test_mapping_covers_every_known_status(self):
        assert set(STATUS_TRANSITIONS) == set(PaymentIntentStatus)

    @pytest.mark.parametrize("pi_status", ["requires_payment_method", "requires_action", "", None])
    def test_other_statuses_leave_booking_unchanged(self, pi_status):
        assert resolve_transition(pi_status) is None


# === apply_payment_intent_status() ===


class TestApplyPaymentIntentStatus:
    def test_succeeded_confirms_and_marks_paid(self, updater, booking_in_db):
        update = updater.apply_payment_intent_status(make_payment_intent(status="succeeded"))

        assert update.result == ProcessingResult.SUCCESS
        assert update.confirmed_payment is True
        assert update.booking.id == "b1"

        item = _booking()
        assert item["status"] == "confirmed"
        assert item["payment_status"] == "paid"
        assert item["updated_at"] != booking_in_db["updated_at"]

    def test_requires_capture_marks_pre_authorized(self, updater, db, sample_booking):
        sample_booking.pop("payment_status")
        table("parking-bookings").put_item(Item=sample_booking)

        update = updater.apply_payment_intent_status(
            make_payment_intent(status="requires_capture"), PaymentIntentStatus.REQUIRES_CAPTURE.value
        )

        assert update.result == ProcessingResult.SUCCESS
        assert update.confirmed_payment is False
        assert _booking()["payment_status"] == "pre_authorized"

    def test_unknown_booking_is_not_found_and_writes_nothing(self, updater, db):
        update = updater.apply_payment_intent_status(make_payment_intent(payment_intent_id="pi_unknown"))

        assert update.result == ProcessingResult.NOT_FOUND
        assert update.booking is None
        assert scan("parking-bookings") == []

    def test_unhandled_status_is_skipped(self, updater, booking_in_db):
        update = updater.apply_payment_intent_status(make_payment_intent(status="requires_action"))

        assert update.result == ProcessingResult.SKIPPED
        item = _booking()
        assert item["status"] == "pending"
        assert item["payment_status"] == "pre_authorized"
        assert item["updated_at"] == booking_in_db["updated_at"]

    def test_metadata_fallback_links_payment_intent(self, updater, db, sample_booking):
        """A booking without the intent ID is found via metadata.booking_id and back-filled."""
        sample_booking.pop("stripe_payment_intent_id")
        table("parking-bookings").put_item(Item=sample_booking)

        update = updater.apply_payment_intent_status(
            make_payment_intent(payment_intent_id="pi_new", metadata={"booking_id": "b1"})
        )

        assert update.result == ProcessingResult.SUCCESS
        item = _booking()
        assert item["stripe_payment_intent_id"] == "pi_new"
        assert item["payment_status"] == "paid"

    def test_metadata_fallback_with_unknown_booking(self, updater, db):
        update = updater.apply_payment_intent_status(
            make_payment_intent(payment_intent_id="pi_new", metadata={"booking_id": "missing"})
        )
        assert update.result == ProcessingResult.NOT_FOUND


class TestTerminalStateGuard:
    """Terminal payment states only accept a repeat of themselves."""

    def test_reapplying_paid_is_idempotent(self, updater, booking_in_db):
        pi = make_payment_intent(status="succeeded")
        updater.apply_payment_intent_status(pi)
        first = _booking()

        second_update = updater.apply_payment_intent_status(pi)
        second = _booking()

        assert second_update.result == ProcessingResult.SUCCESS
        assert second_update.confirmed_payment is False
        assert (second["status"], second["payment_status"]) == (first["status"], first["payment_status"])

    @pytest.mark.parametrize(
        ("terminal", "attempt"),
        [
            ("paid", "canceled"),
            ("paid", "requires_capture"),
            ("cancelled", "succeeded"),
            ("failed", "succeeded"),
        ],
    )
    def test_leaving_terminal_state_is_refused(self, updater, db, sample_booking, terminal, attempt):
        sample_booking["payment_status"] = terminal
        sample_booking["status"] = "confirmed" if terminal == "paid" else "cancelled"
        table("parking-bookings").put_item(Item=sample_booking)

        update = updater.apply_payment_intent_status(make_payment_intent(), attempt)

        assert update.result == ProcessingResult.SKIPPED
        item = _booking()
        assert item["payment_status"] == terminal
        assert item["updated_at"] == sample_booking["updated_at"]

    def test_processing_can_still_move_forward(self, updater, db, sample_booking):
        sample_booking["payment_status"] = "processing"
        table("parking-bookings").put_item(Item=sample_booking)

        update = updater.apply_payment_intent_status(make_payment_intent(status="succeeded"))

        assert update.result == ProcessingResult.SUCCESS
        assert update.previous_payment_status == BookingPaymentStatus.PROCESSING
        assert _booking()["payment_status"] == "paid"


# === Checkout sessions ===


class TestLinkCheckoutSession:
    def test_links_payment_intent_to_booking(self, updater, db, sample_booking):
        sample_booking.pop("stripe_payment_intent_id")
        table("parking-bookings").put_item(Item=sample_booking)

        result = updater.link_checkout_session(
            {"id": "cs_1", "payment_intent": "pi_777", "metadata": {"booking_id": "b1"}}
        )

        assert result == ProcessingResult.SUCCESS
        assert _booking()["stripe_payment_intent_id"] == "pi_777"

    def test_expanded_payment_intent_reference(self, updater, booking_in_db):
        result = updater.link_checkout_session(
            {"id": "cs_1", "payment_intent": {"id": "pi_888"}, "metadata": {"booking_id": "b1"}}
        )

        assert result == ProcessingResult.SUCCESS
        assert _booking()["stripe_payment_intent_id"] == "pi_888"

    def test_unknown_booking_is_not_created(self, updater, db):
        result = updater.link_checkout_session(
            {"id": "cs_1", "payment_intent": "pi_777", "metadata": {"booking_id": "ghost"}}
        )

        assert result == ProcessingResult.NOT_FOUND
        assert scan("parking-bookings") == []

    def test_missing_references_are_skipped(self, updater, db):
        assert updater.link_checkout_session({"id": "cs_1", "metadata": {}}) == ProcessingResult.SKIPPED


class TestMarkDepositPaid:
    def test_marks_deposit_row_and_listing_paid(self, updater, listing_in_db):
        session = {
            "id": "cs_test_deposit",
            "payment_intent": "pi_deposit",
            "metadata": {"payment_type": "deposit", "listing_id": "listing-1"},
        }

        update = updater.mark_deposit_paid(session)

        assert update.result == ProcessingResult.SUCCESS
        assert update.payment_intent_id == "pi_deposit"
        assert update.listing["deposit_payment_status"] == "paid"

        deposit = table("deposit-payments").get_item(Key={"id": "dep-1"})["Item"]
        assert deposit["payment_status"] == "paid"
        assert deposit["stripe_payment_intent_id"] == "pi_deposit"
        assert "paid_at" in deposit

    def test_unknown_listing_is_not_found(self, updater, db):
        update = updater.mark_deposit_paid(
            {
                "id": "cs_other",
                "payment_intent": "pi_deposit",
                "metadata": {"payment_type": "deposit", "listing_id": "ghost"},
            }
        )

        assert update.result == ProcessingResult.NOT_FOUND
        assert scan("parking-listings") == []
