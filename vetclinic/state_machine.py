"""
Appointment status transitions.

Staff may move an open reservation to any status, with two exceptions: a
finished reservation (completed, rejected, cancelled) never changes again,
and a reservation can only be started or completed once its payment and,
for boarding stays, the owner's documents have been verified.
"""
import logging
import os
from datetime import datetime, timedelta
from typing import Optional

from dotenv import load_dotenv
from sqlalchemy.orm import Session

from . import models
from .errors import Forbidden, InvalidTransition, ValidationError
from .events import Emit, StatusChanged, noop
from .models import ReservationStatus
from .reservations import commit, get_reservation, load_for_update, touch
from .verification import progress_blocker

load_dotenv()

logger = logging.getLogger(__name__)

CANCELLATION_NOTICE_HOURS = int(os.getenv("CANCELLATION_NOTICE_HOURS", "24"))

GATED_STATUSES = frozenset({ReservationStatus.IN_PROGRESS, ReservationStatus.COMPLETED})

CLIENT_CANCELLABLE = frozenset({ReservationStatus.PENDING, ReservationStatus.PENDING_PAYMENT})


def parse_status(value) -> ReservationStatus:
    try:
        return ReservationStatus(value)
    except ValueError:
        allowed = ", ".join(s.value for s in ReservationStatus)
        raise ValidationError(f"Unknown status {value!r}; expected one of {allowed}")


def check_transition(reservation: models.Reservation, target: ReservationStatus) -> None:
    """Raise the first guard that forbids ``reservation`` moving to ``target``"""
    if reservation.is_terminal:
        raise InvalidTransition(
            f"Reservation #{reservation.id} is {reservation.status.value}; "
            f"it cannot be moved to {target.value}"
        )

    if target in GATED_STATUSES:
        blocker = progress_blocker(reservation)
        if blocker is not None:
            label = target.value.replace("_", "-")
            raise type(blocker)(f"Cannot mark {label}: {blocker.message}")


def request_transition(
    db: Session,
    reservation_id: int,
    target,
    actor: str,
    emit: Emit = noop,
) -> models.Reservation:
    target = parse_status(target)
    reservation = load_for_update(db, reservation_id)

    try:
        check_transition(reservation, target)
    except InvalidTransition:
        logger.error(
            f"Integrity: {actor} tried to move reservation #{reservation.id} "
            f"from {reservation.status.value} to {target.value}"
        )
        raise

    old_status = reservation.status
    reservation.status = target
    touch(reservation)
    commit(db)

    logger.info(f"Reservation #{reservation.id}: {old_status.value} -> {target.value} by {actor}")
    emit(StatusChanged(
        reservation_id=reservation.id,
        old_status=old_status.value,
        new_status=target.value,
        actor=actor,
    ))
    return reservation


def cancel_by_client(
    db: Session,
    reservation_id: int,
    client_id: int,
    now: Optional[datetime] = None,
    emit: Emit = noop,
) -> models.Reservation:
    """Client-initiated cancellation of a reservation nobody has acted on yet"""
    reservation = get_reservation(db, reservation_id, client_id=client_id)

    if reservation.status not in CLIENT_CANCELLABLE:
        if reservation.is_terminal:
            raise InvalidTransition(f"Reservation #{reservation.id} is already {reservation.status.value}")
        raise Forbidden("Only pending reservations can be cancelled; please contact the clinic")

    now = now or datetime.now()
    if reservation.booking.starts_at - now < timedelta(hours=CANCELLATION_NOTICE_HOURS):
        raise ValidationError(
            f"Reservations can only be cancelled at least {CANCELLATION_NOTICE_HOURS} hours in advance"
        )

    return request_transition(db, reservation.id, ReservationStatus.CANCELLED, f"client:{client_id}", emit)
