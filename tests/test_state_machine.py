"""Tests for appointment status transitions and client cancellation."""

from datetime import date, datetime, time, timedelta

import pytest

from vetclinic import state_machine, verification
from vetclinic.errors import Forbidden, InvalidTransition, ReceiptNotVerified, ValidationError
from vetclinic.events import StatusChanged
from vetclinic.models import DocumentSubject, PaymentMethod, ReservationStatus, TERMINAL_STATUSES


@pytest.mark.parametrize("terminal", sorted(TERMINAL_STATUSES, key=lambda s: s.value))
@pytest.mark.parametrize("target", list(ReservationStatus))
def test_finished_reservations_never_change(db_session, book_visit, terminal, target):
    reservation = book_visit()
    state_machine.request_transition(db_session, reservation.id, terminal, "admin")

    with pytest.raises(InvalidTransition):
        state_machine.request_transition(db_session, reservation.id, target, "admin")

    db_session.refresh(reservation)
    assert reservation.status == terminal


@pytest.mark.parametrize("target", [
    ReservationStatus.PENDING_PAYMENT,
    ReservationStatus.CONFIRMED,
    ReservationStatus.PAID,
    ReservationStatus.CANCELLED,
    ReservationStatus.REJECTED,
])
def test_ungated_moves_need_no_verification(db_session, book_visit, target):
    reservation = book_visit(method=PaymentMethod.GCASH)
    moved = state_machine.request_transition(db_session, reservation.id, target, "admin")
    assert moved.status == target


def test_status_change_is_persisted_and_announced(db_session, book_visit, events):
    reservation = book_visit()

    state_machine.request_transition(db_session, reservation.id, "confirmed", "admin", emit=events)

    db_session.refresh(reservation)
    assert reservation.status == ReservationStatus.CONFIRMED
    assert reservation.updated_at is not None
    [changed] = events.of_type(StatusChanged)
    assert (changed.old_status, changed.new_status, changed.actor) == ("pending", "confirmed", "admin")


def test_unknown_status_rejected(db_session, book_visit):
    reservation = book_visit()
    with pytest.raises(ValidationError):
        state_machine.request_transition(db_session, reservation.id, "boarded", "admin")


def test_completion_gated_like_progress(db_session, book_visit):
    reservation = book_visit(method=PaymentMethod.PAYMAYA)
    with pytest.raises(ReceiptNotVerified, match="Cannot mark completed"):
        state_machine.request_transition(db_session, reservation.id, ReservationStatus.COMPLETED, "admin")


def test_rejection_is_terminal_after_document_review(db_session, small_cage, book_stay):
    reservation = book_stay(
        small_cage, date(2024, 6, 1), date(2024, 6, 4),
        id_document_url="ids/1.png", signature_url="signatures/1.png",
    )
    verification.decide_document(db_session, reservation.id, DocumentSubject.ID, False, rejection_reason="expired")

    with pytest.raises(InvalidTransition):
        state_machine.request_transition(db_session, reservation.id, ReservationStatus.PENDING, "admin")


def test_failed_guard_leaves_state_untouched(db_session, book_visit):
    reservation = book_visit(method=PaymentMethod.GCASH, receipt_url="receipts/1.jpg")
    version = reservation.version

    with pytest.raises(ReceiptNotVerified):
        state_machine.request_transition(db_session, reservation.id, ReservationStatus.IN_PROGRESS, "admin")

    db_session.refresh(reservation)
    assert reservation.status == ReservationStatus.PENDING
    assert reservation.version == version


class TestClientCancellation:
    def test_cancel_pending_well_ahead(self, db_session, owner, book_visit, future, events):
        reservation = book_visit(on=future)
        cancelled = state_machine.cancel_by_client(db_session, reservation.id, owner.id, emit=events)

        assert cancelled.status == ReservationStatus.CANCELLED
        assert events.of_type(StatusChanged)[0].actor == f"client:{owner.id}"

    def test_cancel_pending_payment(self, db_session, owner, book_visit, future):
        reservation = book_visit(on=future, method=PaymentMethod.GCASH)
        cancelled = state_machine.cancel_by_client(db_session, reservation.id, owner.id)
        assert cancelled.status == ReservationStatus.CANCELLED

    def test_too_close_to_the_appointment(self, db_session, owner, book_visit):
        reservation = book_visit(on=date(2024, 6, 10), at=time(9, 0))
        with pytest.raises(ValidationError):
            state_machine.cancel_by_client(
                db_session, reservation.id, owner.id, now=datetime(2024, 6, 9, 12, 0),
            )

    def test_boarding_notice_counts_from_check_in_day(self, db_session, owner, small_cage, book_stay):
        reservation = book_stay(small_cage, date(2024, 6, 10), date(2024, 6, 12))
        state_machine.cancel_by_client(
            db_session, reservation.id, owner.id, now=datetime(2024, 6, 8, 23, 0),
        )
        db_session.refresh(reservation)
        assert reservation.status == ReservationStatus.CANCELLED

    def test_confirmed_needs_the_clinic(self, db_session, owner, book_visit, future):
        reservation = book_visit(on=future)
        state_machine.request_transition(db_session, reservation.id, ReservationStatus.CONFIRMED, "admin")
        with pytest.raises(Forbidden):
            state_machine.cancel_by_client(db_session, reservation.id, owner.id)

    def test_already_finished(self, db_session, owner, book_visit, future):
        reservation = book_visit(on=future)
        state_machine.cancel_by_client(db_session, reservation.id, owner.id)
        with pytest.raises(InvalidTransition):
            state_machine.cancel_by_client(db_session, reservation.id, owner.id)

    def test_someone_elses_reservation(self, db_session, stranger, book_visit, future):
        reservation = book_visit(on=future)
        with pytest.raises(Forbidden):
            state_machine.cancel_by_client(db_session, reservation.id, stranger.id)

    def test_notice_period_boundary(self, db_session, owner, book_visit):
        reservation = book_visit(on=date(2024, 6, 10), at=time(9, 0))
        exactly = datetime(2024, 6, 10, 9, 0) - timedelta(hours=state_machine.CANCELLATION_NOTICE_HOURS)
        cancelled = state_machine.cancel_by_client(db_session, reservation.id, owner.id, now=exactly)
        assert cancelled.status == ReservationStatus.CANCELLED
