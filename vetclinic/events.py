"""
Domain events emitted by the booking engine after a successful commit.

Events carry plain values only: they are delivered from background tasks,
after the request's database session has been closed.
"""
import logging
from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from typing import Awaitable, Callable, List, Optional, Sequence, Union

from fastapi import BackgroundTasks

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ReservationCreated:
    reservation_id: int
    client_name: str
    client_phone: str
    service_name: str
    pet_names: List[str]
    status: str
    total_amount: Decimal
    starts_at: datetime


@dataclass(frozen=True)
class BoardingReservationCreated:
    """A boarding stay was booked; the contract generator listens for this"""
    reservation_id: int
    client_name: str
    cage_number: str
    check_in_date: date
    check_out_date: date
    pet_names: List[str]


@dataclass(frozen=True)
class StatusChanged:
    reservation_id: int
    old_status: str
    new_status: str
    actor: str


@dataclass(frozen=True)
class DocumentAttached:
    reservation_id: int
    subject: str
    url: str


@dataclass(frozen=True)
class ReceiptDecided:
    reservation_id: int
    approved: bool
    status: str
    actor: str
    client_name: str
    client_email: Optional[str] = None


@dataclass(frozen=True)
class DocumentDecided:
    reservation_id: int
    subject: str
    approved: bool
    status: str
    actor: str
    client_name: str
    client_email: Optional[str] = None
    rejection_reason: Optional[str] = None
    all_documents_verified: bool = False


@dataclass(frozen=True)
class ReservationDeleted:
    reservation_id: int
    client_name: str
    actor: str


Event = Union[
    ReservationCreated,
    BoardingReservationCreated,
    StatusChanged,
    DocumentAttached,
    ReceiptDecided,
    DocumentDecided,
    ReservationDeleted,
]

Emit = Callable[[Event], None]
Handler = Callable[[Event], Awaitable[None]]


class EventCollector:
    """Keeps emitted events in memory; used by tests and scripts"""

    def __init__(self):
        self.events: List[Event] = []

    def __call__(self, event: Event) -> None:
        self.events.append(event)

    def of_type(self, event_type) -> List[Event]:
        return [e for e in self.events if isinstance(e, event_type)]


@dataclass
class BackgroundDispatcher:
    """Hands each event to every handler as a FastAPI background task"""
    background_tasks: BackgroundTasks
    handlers: Sequence[Handler] = field(default_factory=list)

    def __call__(self, event: Event) -> None:
        logger.info(f"Dispatching {type(event).__name__} for reservation #{event.reservation_id}")
        for handler in self.handlers:
            self.background_tasks.add_task(handler, event)


def noop(event: Event) -> None:
    """Default sink when the caller does not care about events"""
