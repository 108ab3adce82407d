from pydantic import BaseModel, EmailStr, Field, validator
from datetime import date, datetime, time
from decimal import Decimal
from typing import List, Literal, Optional, Union

from . import models
from .models import (
    CageStatus, CageType, DocumentSubject, PaymentMethod, ReservationStatus,
    ServiceCategory, Verification,
)


# Client directory

class ClientCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    phone: str = Field(..., min_length=7, max_length=20)
    email: Optional[EmailStr] = None

class ClientResponse(BaseModel):
    id: int
    name: str
    phone: str
    email: Optional[str] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True

class PetCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    species: str = Field(..., min_length=1, max_length=50)
    breed: Optional[str] = Field(None, max_length=100)

class PetResponse(BaseModel):
    id: int
    client_id: int
    name: str
    species: str
    breed: Optional[str] = None
    size_hint: CageType

    class Config:
        from_attributes = True


# Catalog

class CageCreate(BaseModel):
    cage_number: str = Field(..., min_length=1, max_length=20)
    cage_type: CageType
    capacity: int = Field(1, ge=1)
    daily_rate: Decimal = Field(..., ge=0, max_digits=10, decimal_places=2)
    description: Optional[str] = None
    status: CageStatus = CageStatus.AVAILABLE

class CageUpdate(BaseModel):
    cage_number: Optional[str] = Field(None, min_length=1, max_length=20)
    cage_type: Optional[CageType] = None
    capacity: Optional[int] = Field(None, ge=1)
    daily_rate: Optional[Decimal] = Field(None, ge=0, max_digits=10, decimal_places=2)
    description: Optional[str] = None
    status: Optional[CageStatus] = None

class CageResponse(BaseModel):
    id: int
    cage_number: str
    cage_type: CageType
    capacity: int
    daily_rate: Decimal
    description: Optional[str] = None
    status: CageStatus

    class Config:
        from_attributes = True

class AvailableCageResponse(BaseModel):
    cage: CageResponse
    boarding_days: int
    total_amount: Decimal

    class Config:
        from_attributes = True

class ServiceCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    description: Optional[str] = None
    price: Decimal = Field(..., ge=0, max_digits=10, decimal_places=2)
    category: ServiceCategory = ServiceCategory.REGULAR
    duration_minutes: Optional[int] = Field(None, ge=1)
    is_active: bool = True

class ServiceUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    description: Optional[str] = None
    price: Optional[Decimal] = Field(None, ge=0, max_digits=10, decimal_places=2)
    category: Optional[ServiceCategory] = None
    duration_minutes: Optional[int] = Field(None, ge=1)
    is_active: Optional[bool] = None

class ServiceResponse(BaseModel):
    id: int
    name: str
    description: Optional[str] = None
    price: Decimal
    category: ServiceCategory
    duration_minutes: Optional[int] = None
    is_active: bool

    class Config:
        from_attributes = True


# Booking requests

class RegularSlot(BaseModel):
    kind: Literal["regular"] = "regular"
    appointment_date: date
    appointment_time: time

    @validator('appointment_date')
    def date_not_in_past(cls, v):
        if v < date.today():
            raise ValueError('Cannot book a date in the past')
        return v

    def to_booking(self) -> models.RegularBooking:
        return models.RegularBooking(self.appointment_date, self.appointment_time)

class BoardingStay(BaseModel):
    kind: Literal["boarding"] = "boarding"
    cage_id: int
    check_in_date: date
    check_out_date: date

    @validator('check_in_date')
    def check_in_not_in_past(cls, v):
        if v < date.today():
            raise ValueError('Cannot check in on a date in the past')
        return v

    def to_booking(self) -> models.BoardingBooking:
        return models.BoardingBooking(self.cage_id, self.check_in_date, self.check_out_date)

class ReservationCreate(BaseModel):
    pet_ids: List[int] = Field(..., min_length=1)
    service_id: int
    payment_method: PaymentMethod
    booking: Union[RegularSlot, BoardingStay] = Field(..., discriminator="kind")
    notes: Optional[str] = Field(None, max_length=2000)
    receipt_url: Optional[str] = Field(None, max_length=500)
    id_document_url: Optional[str] = Field(None, max_length=500)
    signature_url: Optional[str] = Field(None, max_length=500)

class ReservationCreatedResponse(BaseModel):
    reservation_id: int
    initial_status: ReservationStatus
    kind: str
    total_amount: Decimal

class ReservationUpdate(BaseModel):
    service_id: Optional[int] = None
    cage_id: Optional[int] = None
    check_in_date: Optional[date] = None
    check_out_date: Optional[date] = None
    appointment_date: Optional[date] = None
    appointment_time: Optional[time] = None
    notes: Optional[str] = Field(None, max_length=2000)

class QuoteRequest(BaseModel):
    service_id: int
    pet_count: int = Field(1, ge=1)
    cage_id: Optional[int] = None
    check_in_date: Optional[date] = None
    check_out_date: Optional[date] = None

class QuoteResponse(BaseModel):
    service_price: Decimal
    pet_count: int
    daily_rate: Optional[Decimal] = None
    boarding_days: Optional[int] = None
    total_amount: Decimal

    class Config:
        from_attributes = True

class ReservationResponse(BaseModel):
    id: int
    client_id: int
    service_id: int
    kind: str
    pet_ids: List[int]
    payment_method: PaymentMethod
    status: ReservationStatus
    appointment_date: Optional[date] = None
    appointment_time: Optional[time] = None
    cage_id: Optional[int] = None
    check_in_date: Optional[date] = None
    check_out_date: Optional[date] = None
    service_price: Decimal
    daily_rate: Optional[Decimal] = None
    boarding_days: Optional[int] = None
    total_amount: Decimal
    receipt_url: Optional[str] = None
    receipt_verified: Verification
    id_document_url: Optional[str] = None
    id_verified: Verification
    id_rejection_reason: Optional[str] = None
    signature_url: Optional[str] = None
    signature_verified: Verification
    signature_rejection_reason: Optional[str] = None
    notes: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @classmethod
    def from_reservation(cls, r: models.Reservation) -> "ReservationResponse":
        return cls(
            id=r.id,
            client_id=r.client_id,
            service_id=r.service_id,
            kind=r.booking.kind,
            pet_ids=[pet.id for pet in r.pets],
            payment_method=r.payment_method,
            status=r.status,
            appointment_date=r.appointment_date,
            appointment_time=r.appointment_time,
            cage_id=r.cage_id,
            check_in_date=r.check_in_date,
            check_out_date=r.check_out_date,
            service_price=r.service_price,
            daily_rate=r.daily_rate,
            boarding_days=r.boarding_days,
            total_amount=r.total_amount,
            receipt_url=r.receipt_url,
            receipt_verified=r.receipt_verification,
            id_document_url=r.id_document_url,
            id_verified=r.id_verification,
            id_rejection_reason=r.id_rejection_reason,
            signature_url=r.signature_url,
            signature_verified=r.signature_verification,
            signature_rejection_reason=r.signature_rejection_reason,
            notes=r.notes,
            created_at=r.created_at,
            updated_at=r.updated_at,
        )


# Status and verification

class StatusUpdate(BaseModel):
    # plain string so unknown statuses reach the engine's own validation
    status: str

class StatusResponse(BaseModel):
    id: int
    status: ReservationStatus

class ReceiptDecision(BaseModel):
    approved: bool

class ReceiptDecisionResponse(BaseModel):
    id: int
    status: ReservationStatus
    receipt_verified: Verification

class DocumentDecision(BaseModel):
    subject: Literal["id", "signature"]
    approved: bool
    rejection_reason: Optional[str] = Field(None, max_length=1000)

class DocumentDecisionResponse(BaseModel):
    id: int
    status: ReservationStatus
    subject: str
    verified: Verification
    rejection_reason: Optional[str] = None

class DocumentUpload(BaseModel):
    subject: DocumentSubject
    url: str = Field(..., min_length=1, max_length=500)


# Admin schemas
class LoginRequest(BaseModel):
    password: str

class LoginResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
