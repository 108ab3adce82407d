"""Tests for client email wording."""

from vetclinic import email_service
from vetclinic.events import DocumentDecided, ReceiptDecided, StatusChanged


def receipt_event(approved):
    return ReceiptDecided(
        reservation_id=3, approved=approved, status="paid" if approved else "pending_payment",
        actor="admin", client_name="Ana Reyes", client_email="ana.reyes@gmail.com",
    )


def test_approved_receipt_says_paid():
    title, body = email_service.compose(receipt_event(True))
    assert title == "Payment Verified"
    assert "marked as paid" in body
    assert "confirmed" not in body


def test_rejected_receipt_asks_for_a_new_one():
    title, body = email_service.compose(receipt_event(False))
    assert title == "Receipt Rejected"
    assert "upload a valid receipt" in body


def test_document_rejection_carries_the_reason():
    event = DocumentDecided(
        reservation_id=3, subject="signature", approved=False, status="rejected", actor="admin",
        client_name="Ana Reyes", client_email="ana.reyes@gmail.com", rejection_reason="unsigned",
    )
    title, body = email_service.compose(event)
    assert title == "Boarding Reservation Rejected"
    assert "unsigned" in body


def test_status_changes_are_not_emailed():
    event = StatusChanged(reservation_id=3, old_status="pending", new_status="confirmed", actor="admin")
    assert email_service.compose(event) is None
