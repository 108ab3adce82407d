"""
Reservation store: the authoritative set of appointments and boarding stays.

Availability is only advisory until a reservation is written. Creating or
re-booking a boarding stay re-checks the cage for overlaps while holding the
cage's lock, so two clients who both saw the cage as free cannot both get it.
"""
import logging
import threading
from contextlib import contextmanager
from datetime import date, datetime, time
from typing import Dict, Iterator, List, Optional, Sequence

from sqlalchemy import func
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from . import models
from .availability import conflicting_reservations, validate_range
from .catalog import get_service
from .errors import (
    CageConflict, ConcurrentUpdate, Forbidden, InvalidTransition, NotFound,
    ReservationInUse, ValidationError,
)
from .events import (
    BoardingReservationCreated, Emit, ReservationCreated, ReservationDeleted, noop,
)
from .payments import initial_status
from .pricing import quote

logger = logging.getLogger(__name__)

_UNSET = object()

_registry_lock = threading.Lock()
_cage_locks: Dict[int, threading.Lock] = {}


@contextmanager
def cage_lock(cage_id: int) -> Iterator[None]:
    """Serialize writes touching one cage within this process"""
    with _registry_lock:
        lock = _cage_locks.setdefault(cage_id, threading.Lock())
    with lock:
        yield


def _lock_cage_row(db: Session, cage_id: int) -> models.Cage:
    # Writing the cage row first takes the database write lock: SQLite's
    # database-wide lock, a row lock elsewhere. Other workers queue here until
    # this transaction ends, so the overlap check below sees their inserts.
    touched = (
        db.query(models.Cage)
        .filter(models.Cage.id == cage_id)
        .update({models.Cage.updated_at: func.now()}, synchronize_session=False)
    )
    if not touched:
        raise NotFound(f"Cage {cage_id} not found")
    return db.query(models.Cage).filter(models.Cage.id == cage_id).with_for_update().one()


@contextmanager
def locked_cage(db: Session, cage_id: int) -> Iterator[models.Cage]:
    """Hold the cage for a check-then-write; the caller commits inside the block"""
    with cage_lock(cage_id):
        try:
            yield _lock_cage_row(db, cage_id)
        except Exception:
            db.rollback()
            raise


def commit(db: Session) -> None:
    """Commit, turning optimistic-lock failures into ConcurrentUpdate"""
    try:
        db.commit()
    except StaleDataError:
        db.rollback()
        raise ConcurrentUpdate("The reservation was changed by another request; reload and try again")


def touch(reservation: models.Reservation) -> None:
    reservation.updated_at = datetime.utcnow()


# ------------------------------------------------------------------ reads

def get_reservation(db: Session, reservation_id: int, client_id: Optional[int] = None) -> models.Reservation:
    reservation = db.get(models.Reservation, reservation_id)
    if reservation is None:
        raise NotFound(f"Reservation {reservation_id} not found")
    if client_id is not None and reservation.client_id != client_id:
        raise Forbidden("This reservation belongs to another client")
    return reservation


def load_for_update(db: Session, reservation_id: int) -> models.Reservation:
    """Load a reservation row-locked for the rest of the transaction"""
    reservation = (
        db.query(models.Reservation)
        .filter(models.Reservation.id == reservation_id)
        .with_for_update()
        .first()
    )
    if reservation is None:
        raise NotFound(f"Reservation {reservation_id} not found")
    return reservation


def list_reservations(
    db: Session,
    client_id: Optional[int] = None,
    status: Optional[models.ReservationStatus] = None,
    kind: Optional[str] = None,
    cage_id: Optional[int] = None,
) -> List[models.Reservation]:
    query = db.query(models.Reservation)
    if client_id is not None:
        query = query.filter(models.Reservation.client_id == client_id)
    if status is not None:
        query = query.filter(models.Reservation.status == status)
    if kind == "boarding":
        query = query.filter(models.Reservation.cage_id.isnot(None))
    elif kind == "regular":
        query = query.filter(models.Reservation.cage_id.is_(None))
    elif kind is not None:
        raise ValidationError(f"Unknown reservation kind {kind!r}")
    if cage_id is not None:
        query = query.filter(models.Reservation.cage_id == cage_id)
    return query.order_by(models.Reservation.created_at.desc(), models.Reservation.id.desc()).all()


# ----------------------------------------------------------------- writes

def _load_pets(db: Session, pet_ids: Sequence[int], client_id: Optional[int]) -> List[models.Pet]:
    if not pet_ids:
        raise ValidationError("At least one pet is required")
    if len(set(pet_ids)) != len(pet_ids):
        raise ValidationError("The same pet is listed more than once")

    pets = db.query(models.Pet).filter(models.Pet.id.in_(pet_ids)).order_by(models.Pet.id).all()
    missing = set(pet_ids) - {pet.id for pet in pets}
    if missing:
        raise NotFound(f"Pet(s) {', '.join(str(i) for i in sorted(missing))} not found")

    owners = {pet.client_id for pet in pets}
    if len(owners) > 1:
        raise ValidationError("All pets on one reservation must belong to the same client")
    if client_id is not None and owners != {client_id}:
        raise Forbidden("You can only book for your own pets")
    return pets


def check_booking_kind(service: models.Service, boarding: bool) -> None:
    """Boarding services need a cage and dates; every other service needs neither"""
    if service.is_boarding and not boarding:
        raise ValidationError("Cage and boarding dates are required for boarding services")
    if not service.is_boarding and boarding:
        raise ValidationError(f"{service.name} is not a boarding service; book an appointment date and time")


def _check_capacity(cage: models.Cage, pet_count: int) -> None:
    if pet_count > cage.capacity:
        raise ValidationError(
            f"Cage {cage.cage_number} holds {cage.capacity} pet(s), {pet_count} requested"
        )


def _raise_if_taken(db: Session, cage: models.Cage, check_in: date, check_out: date,
                    exclude_reservation_id: Optional[int] = None) -> None:
    clashes = conflicting_reservations(
        db, cage.id, check_in, check_out, exclude_reservation_id, for_update=True,
    )
    if clashes:
        taken = clashes[0]
        raise CageConflict(
            f"Cage {cage.cage_number} is already reserved from {taken.check_in_date} "
            f"to {taken.check_out_date}; choose other dates or another cage"
        )


def create_reservation(
    db: Session,
    *,
    pet_ids: Sequence[int],
    service_id: int,
    payment_method: models.PaymentMethod,
    booking: models.Booking,
    notes: Optional[str] = None,
    receipt_url: Optional[str] = None,
    id_document_url: Optional[str] = None,
    signature_url: Optional[str] = None,
    client_id: Optional[int] = None,
    emit: Emit = noop,
) -> models.Reservation:
    """Price, validate and persist a booking request.

    ``client_id`` is set when a client books for themselves; pets must then be
    theirs. Admin-assisted bookings leave it unset and the pets' owner is used.
    """
    payment_method = models.PaymentMethod(payment_method)
    service = get_service(db, service_id)
    if not service.is_active:
        raise ValidationError(f"{service.name} is not currently offered")

    pets = _load_pets(db, pet_ids, client_id)
    check_booking_kind(service, isinstance(booking, models.BoardingBooking))

    reservation = models.Reservation(
        client_id=pets[0].client_id,
        service_id=service.id,
        payment_method=payment_method,
        status=initial_status(payment_method, receipt_url),
        receipt_url=receipt_url,
        notes=notes,
        pets=pets,
    )

    if isinstance(booking, models.RegularBooking):
        if booking.appointment_date is None or booking.appointment_time is None:
            raise ValidationError("Appointment date and time are required")
        if id_document_url or signature_url:
            raise ValidationError("ID and signature documents only apply to boarding reservations")
        priced = quote(service, len(pets))
        reservation.appointment_date = booking.appointment_date
        reservation.appointment_time = booking.appointment_time
        reservation.service_price = priced.service_price
        reservation.total_amount = priced.total_amount
        db.add(reservation)
        commit(db)
    else:
        validate_range(booking.check_in_date, booking.check_out_date)
        with locked_cage(db, booking.cage_id) as cage:
            _check_capacity(cage, len(pets))
            _raise_if_taken(db, cage, booking.check_in_date, booking.check_out_date)

            priced = quote(service, len(pets), cage, booking.check_in_date, booking.check_out_date)
            reservation.cage_id = cage.id
            reservation.check_in_date = booking.check_in_date
            reservation.check_out_date = booking.check_out_date
            reservation.service_price = priced.service_price
            reservation.daily_rate = priced.daily_rate
            reservation.boarding_days = priced.boarding_days
            reservation.total_amount = priced.total_amount
            reservation.id_document_url = id_document_url
            reservation.signature_url = signature_url
            db.add(reservation)
            commit(db)

    db.refresh(reservation)
    logger.info(
        f"Created {reservation.booking.kind} reservation #{reservation.id} for "
        f"{reservation.pet_count} pet(s), total {reservation.total_amount}, status {reservation.status.value}"
    )

    pet_names = [pet.name for pet in reservation.pets]
    emit(ReservationCreated(
        reservation_id=reservation.id,
        client_name=reservation.client.name,
        client_phone=reservation.client.phone,
        service_name=service.name,
        pet_names=pet_names,
        status=reservation.status.value,
        total_amount=reservation.total_amount,
        starts_at=reservation.booking.starts_at,
    ))
    if reservation.is_boarding:
        emit(BoardingReservationCreated(
            reservation_id=reservation.id,
            client_name=reservation.client.name,
            cage_number=reservation.cage.cage_number,
            check_in_date=reservation.check_in_date,
            check_out_date=reservation.check_out_date,
            pet_names=pet_names,
        ))
    return reservation


def update_reservation(
    db: Session,
    reservation_id: int,
    *,
    service_id: Optional[int] = None,
    cage_id: Optional[int] = None,
    check_in_date: Optional[date] = None,
    check_out_date: Optional[date] = None,
    appointment_date: Optional[date] = None,
    appointment_time: Optional[time] = None,
    notes=_UNSET,
) -> models.Reservation:
    """Admin edit of service, cage, dates or notes before the pet is boarded.

    Changing anything that affects the price takes a fresh pricing snapshot
    from the catalog. A reservation cannot switch between regular and boarding.
    """
    reservation = load_for_update(db, reservation_id)
    if reservation.is_terminal:
        raise InvalidTransition(
            f"Reservation #{reservation.id} is {reservation.status.value} and can no longer be edited"
        )
    if reservation.status == models.ReservationStatus.IN_PROGRESS:
        raise ReservationInUse(f"Reservation #{reservation.id} is in progress and can no longer be edited")

    service = get_service(db, service_id) if service_id is not None else reservation.service
    if service.is_boarding != reservation.is_boarding:
        raise ValidationError("A reservation cannot switch between a regular appointment and boarding")

    if notes is not _UNSET:
        reservation.notes = notes

    if reservation.is_boarding:
        if appointment_date is not None or appointment_time is not None:
            raise ValidationError("Boarding reservations are scheduled by check-in and check-out dates")
        new_cage_id = cage_id if cage_id is not None else reservation.cage_id
        new_in = check_in_date or reservation.check_in_date
        new_out = check_out_date or reservation.check_out_date
        validate_range(new_in, new_out)
        repriced = (service.id != reservation.service_id or new_cage_id != reservation.cage_id
                    or new_in != reservation.check_in_date or new_out != reservation.check_out_date)

        with locked_cage(db, new_cage_id) as cage:
            _check_capacity(cage, reservation.pet_count)
            _raise_if_taken(db, cage, new_in, new_out, exclude_reservation_id=reservation.id)
            if repriced:
                priced = quote(service, reservation.pet_count, cage, new_in, new_out)
                reservation.service_id = service.id
                reservation.cage_id = cage.id
                reservation.check_in_date = new_in
                reservation.check_out_date = new_out
                reservation.service_price = priced.service_price
                reservation.daily_rate = priced.daily_rate
                reservation.boarding_days = priced.boarding_days
                reservation.total_amount = priced.total_amount
            touch(reservation)
            commit(db)
    else:
        if cage_id is not None or check_in_date is not None or check_out_date is not None:
            raise ValidationError("Regular appointments do not use a cage or boarding dates")
        if appointment_date is not None:
            reservation.appointment_date = appointment_date
        if appointment_time is not None:
            reservation.appointment_time = appointment_time
        if service.id != reservation.service_id:
            priced = quote(service, reservation.pet_count)
            reservation.service_id = service.id
            reservation.service_price = priced.service_price
            reservation.total_amount = priced.total_amount
        touch(reservation)
        commit(db)

    db.refresh(reservation)
    logger.info(f"Updated reservation #{reservation.id}, total {reservation.total_amount}")
    return reservation


def delete_reservation(db: Session, reservation_id: int, actor: str, emit: Emit = noop) -> None:
    """Hard delete. A stay that is in progress has to be completed or cancelled first."""
    reservation = load_for_update(db, reservation_id)
    if reservation.status == models.ReservationStatus.IN_PROGRESS:
        raise ReservationInUse(
            f"Reservation #{reservation.id} is in progress; complete or cancel it before deleting"
        )

    client_name = reservation.client.name
    db.delete(reservation)
    commit(db)
    logger.info(f"Reservation #{reservation_id} deleted by {actor}")
    emit(ReservationDeleted(reservation_id=reservation_id, client_name=client_name, actor=actor))
