"""
Payment method policy
"""
import os

from dotenv import load_dotenv

from .models import PaymentMethod, ReservationStatus

load_dotenv()


def _parse_methods(raw: str) -> frozenset:
    return frozenset(PaymentMethod(m.strip().lower()) for m in raw.split(",") if m.strip())


# Methods paid at the front desk; nobody has to review a receipt for them
CASH_EQUIVALENT_METHODS = _parse_methods(os.getenv("CASH_EQUIVALENT_METHODS", "cash"))


def is_cash_equivalent(method) -> bool:
    return PaymentMethod(method) in CASH_EQUIVALENT_METHODS


def initial_status(method, receipt_url=None) -> ReservationStatus:
    """Status a new reservation starts in"""
    if not is_cash_equivalent(method) and not receipt_url:
        return ReservationStatus.PENDING_PAYMENT
    return ReservationStatus.PENDING
