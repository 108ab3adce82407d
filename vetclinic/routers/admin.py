from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from .. import pricing, reservations, schemas, state_machine, verification
from ..auth import actor_name, get_current_admin
from ..database import get_db
from ..events import BackgroundDispatcher
from ..models import DocumentSubject
from .deps import get_dispatcher

router = APIRouter(prefix="/api/admin/reservations", tags=["Reservation admin"])


@router.patch("/{reservation_id}/status", response_model=schemas.StatusResponse)
def update_status(
    reservation_id: int,
    update: schemas.StatusUpdate,
    db: Session = Depends(get_db),
    admin: dict = Depends(get_current_admin),
    dispatch: BackgroundDispatcher = Depends(get_dispatcher)
):
    """Move a reservation to another status"""
    reservation = state_machine.request_transition(
        db, reservation_id, update.status, actor_name(admin), emit=dispatch
    )
    return schemas.StatusResponse(id=reservation.id, status=reservation.status)


@router.patch("/{reservation_id}", response_model=schemas.ReservationResponse)
def update_reservation(
    reservation_id: int,
    update: schemas.ReservationUpdate,
    db: Session = Depends(get_db),
    admin: dict = Depends(get_current_admin)
):
    """Change service, cage, dates or notes of a reservation not yet started"""
    reservation = reservations.update_reservation(
        db, reservation_id, **update.model_dump(exclude_unset=True)
    )
    return schemas.ReservationResponse.from_reservation(reservation)


@router.post("/{reservation_id}/verify-receipt", response_model=schemas.ReceiptDecisionResponse)
def verify_receipt(
    reservation_id: int,
    decision: schemas.ReceiptDecision,
    db: Session = Depends(get_db),
    admin: dict = Depends(get_current_admin),
    dispatch: BackgroundDispatcher = Depends(get_dispatcher)
):
    reservation = verification.decide_receipt(
        db, reservation_id, decision.approved, actor_name(admin), emit=dispatch
    )
    return schemas.ReceiptDecisionResponse(
        id=reservation.id,
        status=reservation.status,
        receipt_verified=reservation.receipt_verification,
    )


@router.post("/{reservation_id}/verify-document", response_model=schemas.DocumentDecisionResponse)
def verify_document(
    reservation_id: int,
    decision: schemas.DocumentDecision,
    db: Session = Depends(get_db),
    admin: dict = Depends(get_current_admin),
    dispatch: BackgroundDispatcher = Depends(get_dispatcher)
):
    """Approve or reject a boarding ID or signature; rejection needs a reason"""
    reservation = verification.decide_document(
        db,
        reservation_id,
        DocumentSubject(decision.subject),
        decision.approved,
        rejection_reason=decision.rejection_reason,
        actor=actor_name(admin),
        emit=dispatch,
    )
    if decision.subject == DocumentSubject.ID.value:
        verified, reason = reservation.id_verification, reservation.id_rejection_reason
    else:
        verified, reason = reservation.signature_verification, reservation.signature_rejection_reason
    return schemas.DocumentDecisionResponse(
        id=reservation.id,
        status=reservation.status,
        subject=decision.subject,
        verified=verified,
        rejection_reason=reason,
    )


@router.get("/{reservation_id}/audit")
def audit_reservation(
    reservation_id: int,
    db: Session = Depends(get_db),
    admin: dict = Depends(get_current_admin)
):
    """Compare the stored total with one re-derived from the pricing snapshot"""
    reservation = reservations.get_reservation(db, reservation_id)
    recomputed = pricing.audit_total(reservation)
    return {
        "id": reservation.id,
        "total_amount": str(reservation.total_amount),
        "recomputed_total": str(recomputed),
        "consistent": recomputed == reservation.total_amount,
    }


@router.delete("/{reservation_id}", status_code=204)
def delete_reservation(
    reservation_id: int,
    db: Session = Depends(get_db),
    admin: dict = Depends(get_current_admin),
    dispatch: BackgroundDispatcher = Depends(get_dispatcher)
):
    """Delete a reservation (admins only)"""
    reservations.delete_reservation(db, reservation_id, actor_name(admin), emit=dispatch)
    return None
