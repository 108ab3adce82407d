"""
Cage availability over a date range.

Stays are half-open ranges ``[check_in, check_out)``: a pet checking out on
the 4th frees the cage for a pet checking in on the 4th. Only reservations in
the active status set occupy a cage.
"""
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.orm import Query, Session

from . import models
from .errors import ValidationError
from .pricing import boarding_days, compute_total


@dataclass(frozen=True)
class AvailableCage:
    cage: models.Cage
    boarding_days: int
    total_amount: Decimal


def validate_range(check_in: date, check_out: date) -> int:
    """Reject empty or inverted stays before touching the database"""
    if check_in is None or check_out is None:
        raise ValidationError("Check-in and check-out dates are required")
    return boarding_days(check_in, check_out)


def _overlap_criteria(check_in: date, check_out: date) -> tuple:
    return (
        models.Reservation.cage_id.isnot(None),
        models.Reservation.status.in_(list(models.ACTIVE_STATUSES)),
        models.Reservation.check_in_date < check_out,
        models.Reservation.check_out_date > check_in,
    )


def overlapping(db: Session, check_in: date, check_out: date) -> Query:
    """Active reservations whose stay intersects [check_in, check_out)"""
    return db.query(models.Reservation).filter(*_overlap_criteria(check_in, check_out))


def conflicting_reservations(
    db: Session,
    cage_id: int,
    check_in: date,
    check_out: date,
    exclude_reservation_id: Optional[int] = None,
    for_update: bool = False,
) -> List[models.Reservation]:
    """Active stays in one cage that clash with [check_in, check_out).

    Writers pass ``for_update`` so the read is a locking read and sees rows
    committed after the transaction started.
    """
    query = overlapping(db, check_in, check_out).filter(models.Reservation.cage_id == cage_id)
    if exclude_reservation_id is not None:
        query = query.filter(models.Reservation.id != exclude_reservation_id)
    if for_update:
        query = query.with_for_update()
    return query.order_by(models.Reservation.check_in_date).all()


def find_available_cages(
    db: Session,
    check_in: date,
    check_out: date,
    cage_type: Optional[models.CageType] = None,
) -> List[AvailableCage]:
    """Cages with no active reservation overlapping the requested stay.

    Read-only; safe to call on every date-picker change.
    """
    nights = validate_range(check_in, check_out)

    busy = select(models.Reservation.cage_id).where(*_overlap_criteria(check_in, check_out))

    query = db.query(models.Cage).filter(models.Cage.id.notin_(busy))
    if cage_type is not None:
        query = query.filter(models.Cage.cage_type == cage_type)

    cages = query.order_by(models.Cage.cage_type, models.Cage.cage_number).all()

    return [
        AvailableCage(
            cage=cage,
            boarding_days=nights,
            total_amount=_stay_cost(cage, nights),
        )
        for cage in cages
    ]


def _stay_cost(cage: models.Cage, nights: int) -> Decimal:
    # cage-only cost; the service price is added when the booking is quoted
    return compute_total(0, 1, cage.daily_rate, nights)
