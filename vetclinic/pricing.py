"""
Pricing for appointments and boarding stays.

Every pet on a reservation pays the full service price; boarding adds the
cage's daily rate for each night. No discounts are applied.
"""
from dataclasses import dataclass
from datetime import date
from decimal import Decimal, ROUND_HALF_UP
from typing import Optional

from .errors import ValidationError

CENT = Decimal("0.01")


def _money(value) -> Decimal:
    if isinstance(value, Decimal):
        return value
    # str() keeps floats such as 0.1 from dragging binary noise into Decimal
    return Decimal(str(value))


def boarding_days(check_in: date, check_out: date) -> int:
    """Number of nights between two calendar dates"""
    days = (check_out - check_in).days
    if days <= 0:
        raise ValidationError("Check-out date must be after check-in date")
    return days


def compute_total(
    service_price,
    pet_count: int,
    daily_rate=None,
    boarding_days: Optional[int] = None,
) -> Decimal:
    """Total charge for a reservation, rounded to cents"""
    if pet_count < 1:
        raise ValidationError("At least one pet is required")

    price = _money(service_price)
    if price < 0:
        raise ValidationError("Service price cannot be negative")

    total = price * pet_count

    if daily_rate is not None:
        rate = _money(daily_rate)
        if rate < 0:
            raise ValidationError("Daily rate cannot be negative")
        if boarding_days is None or boarding_days < 1:
            raise ValidationError("Boarding requires at least one night")
        total += rate * boarding_days

    return total.quantize(CENT, rounding=ROUND_HALF_UP)


@dataclass(frozen=True)
class Quote:
    service_price: Decimal
    pet_count: int
    daily_rate: Optional[Decimal]
    boarding_days: Optional[int]
    total_amount: Decimal


def quote(service, pet_count: int, cage=None, check_in: Optional[date] = None,
          check_out: Optional[date] = None) -> Quote:
    """Price a booking request against catalog entries"""
    if cage is None:
        total = compute_total(service.price, pet_count)
        return Quote(_money(service.price), pet_count, None, None, total)

    if check_in is None or check_out is None:
        raise ValidationError("Check-in and check-out dates are required for boarding")
    nights = boarding_days(check_in, check_out)
    total = compute_total(service.price, pet_count, cage.daily_rate, nights)
    return Quote(_money(service.price), pet_count, _money(cage.daily_rate), nights, total)


def audit_total(reservation) -> Decimal:
    """Re-derive a reservation's total from its stored pricing snapshot"""
    return compute_total(
        reservation.service_price,
        reservation.pet_count,
        reservation.daily_rate,
        reservation.boarding_days,
    )
