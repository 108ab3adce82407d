"""
Database models for the vet clinic booking system
"""
import enum
from dataclasses import dataclass
from datetime import date, datetime, time
from typing import Optional, Union

from sqlalchemy import (
    Boolean, Column, Date, DateTime, Enum, ForeignKey, Integer, Numeric,
    String, Table, Text, Time, func,
)
from sqlalchemy.orm import relationship

from .database import Base


class CageType(str, enum.Enum):
    SMALL = "small"
    MEDIUM = "medium"
    LARGE = "large"
    EXTRA_LARGE = "extra_large"


class CageStatus(str, enum.Enum):
    """Administrative flag set by staff, not derived from reservations"""
    AVAILABLE = "available"
    OCCUPIED = "occupied"
    MAINTENANCE = "maintenance"
    RESERVED = "reserved"


class ServiceCategory(str, enum.Enum):
    BOARDING = "boarding"
    REGULAR = "regular"


class PaymentMethod(str, enum.Enum):
    CASH = "cash"
    GCASH = "gcash"
    PAYMAYA = "paymaya"


class ReservationStatus(str, enum.Enum):
    PENDING = "pending"
    PENDING_PAYMENT = "pending_payment"
    CONFIRMED = "confirmed"
    PAID = "paid"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    REJECTED = "rejected"
    CANCELLED = "cancelled"


ACTIVE_STATUSES = frozenset({
    ReservationStatus.PENDING,
    ReservationStatus.PENDING_PAYMENT,
    ReservationStatus.CONFIRMED,
    ReservationStatus.PAID,
    ReservationStatus.IN_PROGRESS,
})

TERMINAL_STATUSES = frozenset({
    ReservationStatus.COMPLETED,
    ReservationStatus.REJECTED,
    ReservationStatus.CANCELLED,
})


class Verification(str, enum.Enum):
    """Review outcome of an uploaded document.

    ``UNREVIEWED`` means nobody has looked at it yet, which is not the same
    thing as ``REJECTED``.
    """
    UNREVIEWED = "unreviewed"
    APPROVED = "approved"
    REJECTED = "rejected"


class DocumentSubject(str, enum.Enum):
    RECEIPT = "receipt"
    ID = "id"
    SIGNATURE = "signature"


def _enum(enum_cls, **kwargs):
    """Store enum values (``pending_payment``) instead of member names"""
    return Enum(
        enum_cls,
        native_enum=False,
        length=32,
        values_callable=lambda members: [m.value for m in members],
        **kwargs
    )


# Breeds whose adult size differs from the species default
_BREED_SIZES = {
    "chihuahua": CageType.SMALL,
    "pomeranian": CageType.SMALL,
    "shih tzu": CageType.SMALL,
    "pug": CageType.SMALL,
    "dachshund": CageType.SMALL,
    "beagle": CageType.MEDIUM,
    "aspin": CageType.MEDIUM,
    "corgi": CageType.MEDIUM,
    "labrador": CageType.LARGE,
    "labrador retriever": CageType.LARGE,
    "golden retriever": CageType.LARGE,
    "german shepherd": CageType.LARGE,
    "husky": CageType.LARGE,
    "siberian husky": CageType.LARGE,
    "great dane": CageType.EXTRA_LARGE,
    "saint bernard": CageType.EXTRA_LARGE,
    "mastiff": CageType.EXTRA_LARGE,
}

_SPECIES_SIZES = {
    "cat": CageType.SMALL,
    "rabbit": CageType.SMALL,
    "bird": CageType.SMALL,
    "hamster": CageType.SMALL,
    "dog": CageType.MEDIUM,
}


def classify_size(species: Optional[str], breed: Optional[str]) -> CageType:
    """Suggest a cage size for a pet. Only a hint, never enforced."""
    if breed and breed.strip().lower() in _BREED_SIZES:
        return _BREED_SIZES[breed.strip().lower()]
    if species and species.strip().lower() in _SPECIES_SIZES:
        return _SPECIES_SIZES[species.strip().lower()]
    return CageType.MEDIUM


class Client(Base):
    """Pet owner, referenced by id from the client directory"""
    __tablename__ = "clients"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(100), nullable=False)
    phone = Column(String(20), nullable=False, unique=True, index=True)
    email = Column(String(255), nullable=True)
    created_at = Column(DateTime, server_default=func.now())

    # Relationships
    pets = relationship("Pet", back_populates="owner")
    reservations = relationship("Reservation", back_populates="client")


class Pet(Base):
    __tablename__ = "pets"

    id = Column(Integer, primary_key=True, index=True)
    client_id = Column(Integer, ForeignKey("clients.id"), nullable=False, index=True)
    name = Column(String(100), nullable=False)
    species = Column(String(50), nullable=False)
    breed = Column(String(100), nullable=True)
    created_at = Column(DateTime, server_default=func.now())

    owner = relationship("Client", back_populates="pets")

    @property
    def size_hint(self) -> CageType:
        return classify_size(self.species, self.breed)


class Cage(Base):
    __tablename__ = "cages"

    id = Column(Integer, primary_key=True, index=True)
    cage_number = Column(String(20), nullable=False, unique=True, index=True)
    cage_type = Column(_enum(CageType), nullable=False)
    capacity = Column(Integer, nullable=False, default=1)
    daily_rate = Column(Numeric(10, 2), nullable=False)
    description = Column(Text, nullable=True)
    status = Column(_enum(CageStatus), nullable=False, default=CageStatus.AVAILABLE)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    reservations = relationship("Reservation", back_populates="cage")


class Service(Base):
    __tablename__ = "services"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(100), nullable=False)
    description = Column(Text, nullable=True)
    price = Column(Numeric(10, 2), nullable=False)
    duration_minutes = Column(Integer, nullable=True)
    category = Column(_enum(ServiceCategory), nullable=False, default=ServiceCategory.REGULAR)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    @property
    def is_boarding(self) -> bool:
        return self.category == ServiceCategory.BOARDING


reservation_pets = Table(
    "reservation_pets",
    Base.metadata,
    Column("reservation_id", Integer, ForeignKey("reservations.id", ondelete="CASCADE"), primary_key=True),
    Column("pet_id", Integer, ForeignKey("pets.id"), primary_key=True),
)


@dataclass(frozen=True)
class RegularBooking:
    """A single-instant appointment"""
    appointment_date: date
    appointment_time: time

    kind = "regular"

    @property
    def starts_at(self) -> datetime:
        return datetime.combine(self.appointment_date, self.appointment_time)


@dataclass(frozen=True)
class BoardingBooking:
    """A cage stay over [check_in_date, check_out_date)"""
    cage_id: int
    check_in_date: date
    check_out_date: date

    kind = "boarding"

    @property
    def starts_at(self) -> datetime:
        return datetime.combine(self.check_in_date, time.min)

    @property
    def nights(self) -> int:
        return (self.check_out_date - self.check_in_date).days


Booking = Union[RegularBooking, BoardingBooking]


class Reservation(Base):
    """Appointment or boarding reservation for one or more pets.

    ``cage_id`` being set is what makes a reservation a boarding stay; use
    :attr:`booking` rather than probing the columns directly.
    """
    __tablename__ = "reservations"

    id = Column(Integer, primary_key=True, index=True)
    client_id = Column(Integer, ForeignKey("clients.id"), nullable=False, index=True)
    service_id = Column(Integer, ForeignKey("services.id"), nullable=False)

    # Regular appointment
    appointment_date = Column(Date, nullable=True, index=True)
    appointment_time = Column(Time, nullable=True)

    # Boarding stay
    cage_id = Column(Integer, ForeignKey("cages.id", ondelete="RESTRICT"), nullable=True, index=True)
    check_in_date = Column(Date, nullable=True, index=True)
    check_out_date = Column(Date, nullable=True)

    payment_method = Column(_enum(PaymentMethod), nullable=False)

    # Pricing snapshot taken when the reservation was priced
    service_price = Column(Numeric(10, 2), nullable=False)
    daily_rate = Column(Numeric(10, 2), nullable=True)
    boarding_days = Column(Integer, nullable=True)
    total_amount = Column(Numeric(10, 2), nullable=False)

    status = Column(_enum(ReservationStatus), nullable=False, default=ReservationStatus.PENDING, index=True)

    receipt_url = Column(String(500), nullable=True)
    receipt_verification = Column(_enum(Verification), nullable=False, default=Verification.UNREVIEWED)
    receipt_verified_at = Column(DateTime, nullable=True)
    receipt_verified_by = Column(String(100), nullable=True)

    id_document_url = Column(String(500), nullable=True)
    id_verification = Column(_enum(Verification), nullable=False, default=Verification.UNREVIEWED)
    id_verified_at = Column(DateTime, nullable=True)
    id_verified_by = Column(String(100), nullable=True)
    id_rejection_reason = Column(Text, nullable=True)

    signature_url = Column(String(500), nullable=True)
    signature_verification = Column(_enum(Verification), nullable=False, default=Verification.UNREVIEWED)
    signature_verified_at = Column(DateTime, nullable=True)
    signature_verified_by = Column(String(100), nullable=True)
    signature_rejection_reason = Column(Text, nullable=True)

    notes = Column(Text, nullable=True)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now())

    version = Column(Integer, nullable=False)

    # Relationships
    client = relationship("Client", back_populates="reservations")
    service = relationship("Service")
    cage = relationship("Cage", back_populates="reservations")
    pets = relationship("Pet", secondary=reservation_pets, order_by="Pet.id")

    __mapper_args__ = {"version_id_col": version}

    @property
    def is_boarding(self) -> bool:
        return self.cage_id is not None

    @property
    def booking(self) -> Booking:
        if self.cage_id is not None:
            return BoardingBooking(self.cage_id, self.check_in_date, self.check_out_date)
        return RegularBooking(self.appointment_date, self.appointment_time)

    @property
    def pet_count(self) -> int:
        return len(self.pets)

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES
