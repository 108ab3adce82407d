"""
Resource catalog: cages, services and the client/pet directory.
"""
import logging
from decimal import Decimal
from typing import List, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from . import models
from .errors import CageInUse, NotFound, ValidationError

logger = logging.getLogger(__name__)


def _check_rate(value, field: str) -> Decimal:
    if value is None:
        raise ValidationError(f"{field} is required")
    amount = value if isinstance(value, Decimal) else Decimal(str(value))
    if amount < 0:
        raise ValidationError(f"{field} cannot be negative")
    return amount


def _check_capacity(capacity) -> int:
    if capacity is None or int(capacity) < 1:
        raise ValidationError("Capacity must be at least 1")
    return int(capacity)


def _check_cage_number(db: Session, cage_number: Optional[str], exclude_id: Optional[int] = None) -> str:
    number = (cage_number or "").strip()
    if not number:
        raise ValidationError("Cage number is required")

    query = db.query(models.Cage.id).filter(models.Cage.cage_number == number)
    if exclude_id is not None:
        query = query.filter(models.Cage.id != exclude_id)
    if query.first():
        raise ValidationError(f"Cage number {number} already exists")
    return number


# ---------------------------------------------------------------- cages

def list_cages(
    db: Session,
    status: Optional[models.CageStatus] = None,
    cage_type: Optional[models.CageType] = None,
) -> List[models.Cage]:
    query = db.query(models.Cage)
    if status is not None:
        query = query.filter(models.Cage.status == status)
    if cage_type is not None:
        query = query.filter(models.Cage.cage_type == cage_type)
    return query.order_by(models.Cage.cage_number).all()


def get_cage(db: Session, cage_id: int) -> models.Cage:
    cage = db.get(models.Cage, cage_id)
    if cage is None:
        raise NotFound(f"Cage {cage_id} not found")
    return cage


def create_cage(
    db: Session,
    *,
    cage_number: str,
    cage_type: models.CageType,
    daily_rate,
    capacity: int = 1,
    description: Optional[str] = None,
    status: models.CageStatus = models.CageStatus.AVAILABLE,
) -> models.Cage:
    cage = models.Cage(
        cage_number=_check_cage_number(db, cage_number),
        cage_type=models.CageType(cage_type),
        capacity=_check_capacity(capacity),
        daily_rate=_check_rate(daily_rate, "Daily rate"),
        description=description.strip() if description and description.strip() else None,
        status=models.CageStatus(status),
    )
    db.add(cage)
    try:
        db.commit()
    except IntegrityError:
        # lost a race on the unique cage_number
        db.rollback()
        raise ValidationError(f"Cage number {cage.cage_number} already exists")
    db.refresh(cage)
    logger.info(f"Created cage {cage.cage_number} (#{cage.id})")
    return cage


def update_cage(db: Session, cage_id: int, **changes) -> models.Cage:
    cage = get_cage(db, cage_id)

    if changes.get("cage_number") is not None:
        cage.cage_number = _check_cage_number(db, changes["cage_number"], exclude_id=cage.id)
    if changes.get("cage_type") is not None:
        cage.cage_type = models.CageType(changes["cage_type"])
    if "capacity" in changes:
        cage.capacity = _check_capacity(changes["capacity"])
    if "daily_rate" in changes:
        cage.daily_rate = _check_rate(changes["daily_rate"], "Daily rate")
    if "description" in changes:
        description = changes["description"]
        cage.description = description.strip() if description and description.strip() else None
    if changes.get("status") is not None:
        cage.status = models.CageStatus(changes["status"])

    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise ValidationError(f"Cage number {changes.get('cage_number')} already exists")
    db.refresh(cage)
    logger.info(f"Updated cage {cage.cage_number} (#{cage.id})")
    return cage


def delete_cage(db: Session, cage_id: int) -> None:
    """Remove a cage that no reservation points at"""
    cage = get_cage(db, cage_id)

    references = db.query(models.Reservation.status).filter(
        models.Reservation.cage_id == cage.id
    ).all()
    active = [status for (status,) in references if status in models.ACTIVE_STATUSES]

    if active:
        raise CageInUse(
            f"Cage {cage.cage_number} has {len(active)} active reservation(s) and cannot be deleted"
        )
    if references:
        raise CageInUse(
            f"Cage {cage.cage_number} is referenced by past reservations; "
            f"set it to maintenance instead of deleting it"
        )

    db.delete(cage)
    db.commit()
    logger.info(f"Deleted cage {cage.cage_number} (#{cage_id})")


# ------------------------------------------------------------- services

def _check_duration(category: models.ServiceCategory, duration_minutes: Optional[int]) -> Optional[int]:
    if category == models.ServiceCategory.BOARDING:
        return None
    if duration_minutes is None or duration_minutes < 1:
        raise ValidationError("Regular services need a duration in minutes")
    return duration_minutes


def list_services(
    db: Session,
    category: Optional[models.ServiceCategory] = None,
    active: Optional[bool] = None,
) -> List[models.Service]:
    query = db.query(models.Service)
    if category is not None:
        query = query.filter(models.Service.category == category)
    if active is not None:
        query = query.filter(models.Service.is_active == active)
    return query.order_by(models.Service.category, models.Service.name).all()


def get_service(db: Session, service_id: int) -> models.Service:
    service = db.get(models.Service, service_id)
    if service is None:
        raise NotFound(f"Service {service_id} not found")
    return service


def create_service(
    db: Session,
    *,
    name: str,
    price,
    category: models.ServiceCategory = models.ServiceCategory.REGULAR,
    duration_minutes: Optional[int] = None,
    description: Optional[str] = None,
    is_active: bool = True,
) -> models.Service:
    if not name or not name.strip():
        raise ValidationError("Service name is required")
    category = models.ServiceCategory(category)

    service = models.Service(
        name=name.strip(),
        description=description,
        price=_check_rate(price, "Price"),
        category=category,
        duration_minutes=_check_duration(category, duration_minutes),
        is_active=is_active,
    )
    db.add(service)
    db.commit()
    db.refresh(service)
    logger.info(f"Created {category.value} service {service.name!r} (#{service.id})")
    return service


def update_service(db: Session, service_id: int, **changes) -> models.Service:
    service = get_service(db, service_id)

    if changes.get("name") is not None:
        if not changes["name"].strip():
            raise ValidationError("Service name is required")
        service.name = changes["name"].strip()
    if "description" in changes:
        service.description = changes["description"]
    if "price" in changes:
        service.price = _check_rate(changes["price"], "Price")
    if changes.get("category") is not None:
        service.category = models.ServiceCategory(changes["category"])
    if changes.get("is_active") is not None:
        service.is_active = changes["is_active"]
    service.duration_minutes = _check_duration(
        service.category, changes.get("duration_minutes", service.duration_minutes)
    )

    db.commit()
    db.refresh(service)
    logger.info(f"Updated service {service.name!r} (#{service.id})")
    return service


# ------------------------------------------------------ client directory

def create_client(db: Session, *, name: str, phone: str, email: Optional[str] = None) -> models.Client:
    if db.query(models.Client.id).filter(models.Client.phone == phone).first():
        raise ValidationError("A client with this phone number already exists")
    client = models.Client(name=name, phone=phone, email=email)
    db.add(client)
    db.commit()
    db.refresh(client)
    return client


def get_client(db: Session, client_id: int) -> models.Client:
    client = db.get(models.Client, client_id)
    if client is None:
        raise NotFound(f"Client {client_id} not found")
    return client


def list_clients(db: Session) -> List[models.Client]:
    return db.query(models.Client).order_by(models.Client.name).all()


def add_pet(db: Session, client_id: int, *, name: str, species: str, breed: Optional[str] = None) -> models.Pet:
    client = get_client(db, client_id)
    pet = models.Pet(client_id=client.id, name=name, species=species, breed=breed)
    db.add(pet)
    db.commit()
    db.refresh(pet)
    return pet


def list_pets(db: Session, client_id: int) -> List[models.Pet]:
    return db.query(models.Pet).filter(models.Pet.client_id == client_id).order_by(models.Pet.id).all()
