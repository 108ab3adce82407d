"""
Typed errors raised by the booking engine.

Every error carries a machine-readable ``kind`` and the HTTP status the API
layer answers with, so routers can re-raise them untouched.
"""


class BookingError(Exception):
    """Base class for all booking engine errors"""

    kind = "booking_error"
    status_code = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict:
        return {"kind": self.kind, "detail": self.message}


class ValidationError(BookingError):
    """Malformed or inconsistent request data"""

    kind = "validation_error"
    status_code = 400


class NotFound(BookingError):
    kind = "not_found"
    status_code = 404


class Forbidden(BookingError):
    """Caller is authenticated but does not own the resource"""

    kind = "forbidden"
    status_code = 403


class CageConflict(BookingError):
    """The cage already holds an active reservation overlapping the stay"""

    kind = "cage_conflict"
    status_code = 409


class CageInUse(BookingError):
    """The cage is still referenced by reservations and cannot be removed"""

    kind = "cage_in_use"
    status_code = 409


class ReservationInUse(BookingError):
    kind = "reservation_in_use"
    status_code = 409


class ConcurrentUpdate(BookingError):
    """Another request changed the reservation first"""

    kind = "concurrent_update"
    status_code = 409


class DocumentsNotVerified(BookingError):
    kind = "documents_not_verified"
    status_code = 400


class ReceiptNotVerified(BookingError):
    kind = "receipt_not_verified"
    status_code = 400


class MissingRejectionReason(BookingError):
    kind = "missing_rejection_reason"
    status_code = 400


class InvalidTransition(BookingError):
    """Transition out of a terminal state or otherwise disallowed"""

    kind = "invalid_transition"
    status_code = 409
