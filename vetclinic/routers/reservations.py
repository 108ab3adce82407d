from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from .. import reservations, schemas, state_machine, verification
from ..auth import client_id_of, get_current_client, get_current_user
from ..database import get_db
from ..events import BackgroundDispatcher
from ..models import ReservationStatus
from .deps import get_dispatcher

router = APIRouter(prefix="/api/reservations", tags=["Reservations"])


@router.post("", response_model=schemas.ReservationCreatedResponse, status_code=201)
def create_reservation(
    request: schemas.ReservationCreate,
    db: Session = Depends(get_db),
    user: dict = Depends(get_current_user),
    dispatch: BackgroundDispatcher = Depends(get_dispatcher)
):
    """Book an appointment or a boarding stay for one or more pets.

    Clients book for their own pets; admins may book for any client.
    """
    reservation = reservations.create_reservation(
        db,
        pet_ids=request.pet_ids,
        service_id=request.service_id,
        payment_method=request.payment_method,
        booking=request.booking.to_booking(),
        notes=request.notes,
        receipt_url=request.receipt_url,
        id_document_url=request.id_document_url,
        signature_url=request.signature_url,
        client_id=client_id_of(user),
        emit=dispatch,
    )
    return schemas.ReservationCreatedResponse(
        reservation_id=reservation.id,
        initial_status=reservation.status,
        kind=reservation.booking.kind,
        total_amount=reservation.total_amount,
    )


@router.get("", response_model=List[schemas.ReservationResponse])
def list_reservations(
    status: Optional[ReservationStatus] = Query(None),
    kind: Optional[str] = Query(None, pattern="^(regular|boarding)$"),
    cage_id: Optional[int] = Query(None),
    db: Session = Depends(get_db),
    user: dict = Depends(get_current_user)
):
    """Clients see their own reservations, admins see everything"""
    found = reservations.list_reservations(
        db, client_id=client_id_of(user), status=status, kind=kind, cage_id=cage_id
    )
    return [schemas.ReservationResponse.from_reservation(r) for r in found]


@router.get("/{reservation_id}", response_model=schemas.ReservationResponse)
def get_reservation(
    reservation_id: int,
    db: Session = Depends(get_db),
    user: dict = Depends(get_current_user)
):
    reservation = reservations.get_reservation(db, reservation_id, client_id=client_id_of(user))
    return schemas.ReservationResponse.from_reservation(reservation)


@router.post("/{reservation_id}/cancel", response_model=schemas.StatusResponse)
def cancel_reservation(
    reservation_id: int,
    db: Session = Depends(get_db),
    client: dict = Depends(get_current_client),
    dispatch: BackgroundDispatcher = Depends(get_dispatcher)
):
    """Client cancellation, allowed while nothing has been confirmed"""
    reservation = state_machine.cancel_by_client(
        db, reservation_id, client_id_of(client), emit=dispatch
    )
    return schemas.StatusResponse(id=reservation.id, status=reservation.status)


@router.post("/{reservation_id}/documents", response_model=schemas.ReservationResponse)
def attach_document(
    reservation_id: int,
    upload: schemas.DocumentUpload,
    db: Session = Depends(get_db),
    user: dict = Depends(get_current_user),
    dispatch: BackgroundDispatcher = Depends(get_dispatcher)
):
    """Attach a receipt, ID or signature already stored in the document store"""
    reservation = verification.attach_document(
        db, reservation_id, upload.subject, upload.url,
        client_id=client_id_of(user), emit=dispatch,
    )
    return schemas.ReservationResponse.from_reservation(reservation)
