"""
Verification gate: staff review of payment receipts and boarding documents.

Uploaded images live in the document store; reservations only hold their
references and the review outcome. Each outcome is a :class:`Verification`
(unreviewed / approved / rejected), never a plain boolean.
"""
import logging
from datetime import datetime
from typing import Optional

from sqlalchemy.orm import Session

from . import models
from .errors import (
    BookingError, DocumentsNotVerified, InvalidTransition, MissingRejectionReason,
    ReceiptNotVerified, ValidationError,
)
from .events import DocumentAttached, DocumentDecided, Emit, ReceiptDecided, noop
from .models import DocumentSubject, ReservationStatus, Verification
from .payments import is_cash_equivalent
from .reservations import commit, get_reservation, load_for_update, touch

logger = logging.getLogger(__name__)

_DOCUMENT_LABELS = {
    DocumentSubject.RECEIPT: "payment receipt",
    DocumentSubject.ID: "ID document",
    DocumentSubject.SIGNATURE: "signature",
}

# subject -> (reference column, verification column, at, by, reason)
_DOCUMENT_FIELDS = {
    DocumentSubject.RECEIPT: ("receipt_url", "receipt_verification", "receipt_verified_at",
                              "receipt_verified_by", None),
    DocumentSubject.ID: ("id_document_url", "id_verification", "id_verified_at",
                         "id_verified_by", "id_rejection_reason"),
    DocumentSubject.SIGNATURE: ("signature_url", "signature_verification", "signature_verified_at",
                                "signature_verified_by", "signature_rejection_reason"),
}


def _sentence(text: str) -> str:
    return text[:1].upper() + text[1:]


def documents_verified(reservation: models.Reservation) -> bool:
    return (
        reservation.id_verification == Verification.APPROVED
        and reservation.signature_verification == Verification.APPROVED
    )


def progress_blocker(reservation: models.Reservation) -> Optional[BookingError]:
    """Why the reservation may not move to in_progress or completed, if anything"""
    if reservation.is_boarding and reservation.id_document_url and reservation.signature_url:
        pending = [
            _DOCUMENT_LABELS[subject]
            for subject, state in (
                (DocumentSubject.ID, reservation.id_verification),
                (DocumentSubject.SIGNATURE, reservation.signature_verification),
            )
            if state != Verification.APPROVED
        ]
        if pending:
            return DocumentsNotVerified(f"{_sentence(' and '.join(pending))} not yet verified")

    if not is_cash_equivalent(reservation.payment_method) and reservation.receipt_verification != Verification.APPROVED:
        if reservation.receipt_url:
            return ReceiptNotVerified("Payment receipt has not been verified yet")
        return ReceiptNotVerified("No payment receipt has been uploaded yet")

    return None


def _refuse_if_terminal(reservation: models.Reservation, action: str) -> None:
    if reservation.is_terminal:
        raise InvalidTransition(
            f"Cannot {action}: reservation #{reservation.id} is already {reservation.status.value}"
        )


def decide_receipt(
    db: Session,
    reservation_id: int,
    approved: bool,
    actor: str,
    emit: Emit = noop,
) -> models.Reservation:
    """Approve (status becomes paid) or reject (back to pending_payment) a receipt"""
    reservation = load_for_update(db, reservation_id)
    _refuse_if_terminal(reservation, "review the receipt")
    if not reservation.receipt_url:
        raise ValidationError(f"No receipt found for reservation #{reservation.id}")

    now = datetime.utcnow()
    if approved:
        reservation.receipt_verification = Verification.APPROVED
        reservation.status = ReservationStatus.PAID
    else:
        reservation.receipt_verification = Verification.REJECTED
        reservation.status = ReservationStatus.PENDING_PAYMENT
    reservation.receipt_verified_at = now
    reservation.receipt_verified_by = actor
    touch(reservation)
    commit(db)

    logger.info(
        f"Receipt for reservation #{reservation.id} {'approved' if approved else 'rejected'} "
        f"by {actor}; status {reservation.status.value}"
    )
    emit(ReceiptDecided(
        reservation_id=reservation.id,
        approved=approved,
        status=reservation.status.value,
        actor=actor,
        client_name=reservation.client.name,
        client_email=reservation.client.email,
    ))
    return reservation


def decide_document(
    db: Session,
    reservation_id: int,
    subject: DocumentSubject,
    approved: bool,
    rejection_reason: Optional[str] = None,
    actor: str = "admin",
    emit: Emit = noop,
) -> models.Reservation:
    """Approve or reject a boarding ID or signature.

    Rejecting either document rejects the whole reservation: the client has to
    book again with corrected documents.
    """
    subject = DocumentSubject(subject)
    reason = (rejection_reason or "").strip()
    if not approved and not reason:
        raise MissingRejectionReason(f"A reason is required to reject the {_DOCUMENT_LABELS[subject]}")
    if subject == DocumentSubject.RECEIPT:
        raise ValidationError("Receipts are reviewed with decide_receipt")

    reservation = load_for_update(db, reservation_id)
    if not reservation.is_boarding:
        raise ValidationError("ID and signature checks only apply to boarding reservations")
    _refuse_if_terminal(reservation, f"review the {_DOCUMENT_LABELS[subject]}")

    url_field, state_field, at_field, by_field, reason_field = _DOCUMENT_FIELDS[subject]
    if not getattr(reservation, url_field):
        raise ValidationError(f"No {_DOCUMENT_LABELS[subject]} has been uploaded for reservation #{reservation.id}")

    setattr(reservation, state_field, Verification.APPROVED if approved else Verification.REJECTED)
    setattr(reservation, at_field, datetime.utcnow())
    setattr(reservation, by_field, actor)
    setattr(reservation, reason_field, None if approved else reason)
    if not approved:
        reservation.status = ReservationStatus.REJECTED
    touch(reservation)
    commit(db)

    if approved:
        logger.info(f"{_sentence(_DOCUMENT_LABELS[subject])} for reservation #{reservation.id} approved by {actor}")
    else:
        logger.info(
            f"{_sentence(_DOCUMENT_LABELS[subject])} for reservation #{reservation.id} rejected by {actor} "
            f"({reason}); reservation rejected"
        )
    emit(DocumentDecided(
        reservation_id=reservation.id,
        subject=subject.value,
        approved=approved,
        status=reservation.status.value,
        actor=actor,
        client_name=reservation.client.name,
        client_email=reservation.client.email,
        rejection_reason=None if approved else reason,
        all_documents_verified=documents_verified(reservation),
    ))
    return reservation


def attach_document(
    db: Session,
    reservation_id: int,
    subject: DocumentSubject,
    url: str,
    client_id: Optional[int] = None,
    emit: Emit = noop,
) -> models.Reservation:
    """Record a document-store reference for a receipt, ID or signature.

    An approved document stays approved: it cannot be swapped for a new file.
    Re-uploading a rejected receipt puts it back in the review queue.
    """
    subject = DocumentSubject(subject)
    if not url or not url.strip():
        raise ValidationError("Document reference is required")

    get_reservation(db, reservation_id, client_id=client_id)
    reservation = load_for_update(db, reservation_id)
    _refuse_if_terminal(reservation, f"upload a {_DOCUMENT_LABELS[subject]}")
    if subject != DocumentSubject.RECEIPT and not reservation.is_boarding:
        raise ValidationError("ID and signature documents only apply to boarding reservations")

    url_field, state_field, _, _, _ = _DOCUMENT_FIELDS[subject]
    if getattr(reservation, state_field) == Verification.APPROVED:
        raise ValidationError(f"The {_DOCUMENT_LABELS[subject]} is already verified and cannot be replaced")

    setattr(reservation, url_field, url.strip())
    if subject == DocumentSubject.RECEIPT and reservation.receipt_verification == Verification.REJECTED:
        reservation.receipt_verification = Verification.UNREVIEWED
        reservation.receipt_verified_at = None
        reservation.receipt_verified_by = None
    touch(reservation)
    commit(db)

    logger.info(f"{_sentence(_DOCUMENT_LABELS[subject])} attached to reservation #{reservation.id}")
    emit(DocumentAttached(reservation_id=reservation.id, subject=subject.value, url=document_url(reservation, subject)))
    return reservation


def document_url(reservation: models.Reservation, subject: DocumentSubject) -> str:
    return getattr(reservation, _DOCUMENT_FIELDS[DocumentSubject(subject)][0])
