from datetime import date
from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from .. import availability, catalog, pricing, reservations, schemas
from ..auth import client_id_of, get_current_admin, get_current_client, get_current_user
from ..database import get_db
from ..models import CageStatus, CageType, ServiceCategory

router = APIRouter(prefix="/api", tags=["Catalog"])
admin_router = APIRouter(prefix="/api/admin", tags=["Catalog admin"])


@router.get("/cages", response_model=List[schemas.CageResponse])
def list_cages(
    status: Optional[CageStatus] = Query(None),
    cage_type: Optional[CageType] = Query(None, alias="type"),
    db: Session = Depends(get_db)
):
    """All cages, optionally filtered by administrative status and type"""
    return catalog.list_cages(db, status=status, cage_type=cage_type)


@router.get("/cages/{cage_id}", response_model=schemas.CageResponse)
def get_cage(cage_id: int, db: Session = Depends(get_db)):
    return catalog.get_cage(db, cage_id)


@router.get("/services", response_model=List[schemas.ServiceResponse])
def list_services(
    category: Optional[ServiceCategory] = Query(None),
    active: Optional[bool] = Query(True),
    db: Session = Depends(get_db)
):
    return catalog.list_services(db, category=category, active=active)


@router.get("/availability", response_model=List[schemas.AvailableCageResponse])
def get_availability(
    check_in: date = Query(...),
    check_out: date = Query(...),
    cage_type: Optional[CageType] = Query(None, alias="type"),
    db: Session = Depends(get_db),
    user: dict = Depends(get_current_user)
):
    """Cages free for the whole stay, with the cage cost for the stay"""
    return [
        schemas.AvailableCageResponse(
            cage=schemas.CageResponse.model_validate(option.cage),
            boarding_days=option.boarding_days,
            total_amount=option.total_amount,
        )
        for option in availability.find_available_cages(db, check_in, check_out, cage_type)
    ]


@router.post("/quotes", response_model=schemas.QuoteResponse)
def create_quote(
    request: schemas.QuoteRequest,
    db: Session = Depends(get_db),
    user: dict = Depends(get_current_user)
):
    """Price a booking before submitting it"""
    service = catalog.get_service(db, request.service_id)
    reservations.check_booking_kind(service, request.cage_id is not None)
    cage = catalog.get_cage(db, request.cage_id) if request.cage_id is not None else None
    priced = pricing.quote(service, request.pet_count, cage, request.check_in_date, request.check_out_date)
    return schemas.QuoteResponse.model_validate(priced)


@router.get("/pets", response_model=List[schemas.PetResponse])
def my_pets(db: Session = Depends(get_db), client: dict = Depends(get_current_client)):
    return catalog.list_pets(db, client_id_of(client))


# Admin-only endpoints

@admin_router.post("/cages", response_model=schemas.CageResponse, status_code=201)
def create_cage(
    data: schemas.CageCreate,
    db: Session = Depends(get_db),
    admin: dict = Depends(get_current_admin)
):
    return catalog.create_cage(db, **data.model_dump())


@admin_router.put("/cages/{cage_id}", response_model=schemas.CageResponse)
def update_cage(
    cage_id: int,
    data: schemas.CageUpdate,
    db: Session = Depends(get_db),
    admin: dict = Depends(get_current_admin)
):
    return catalog.update_cage(db, cage_id, **data.model_dump(exclude_unset=True))


@admin_router.delete("/cages/{cage_id}", status_code=204)
def delete_cage(
    cage_id: int,
    db: Session = Depends(get_db),
    admin: dict = Depends(get_current_admin)
):
    catalog.delete_cage(db, cage_id)
    return None


@admin_router.post("/services", response_model=schemas.ServiceResponse, status_code=201)
def create_service(
    data: schemas.ServiceCreate,
    db: Session = Depends(get_db),
    admin: dict = Depends(get_current_admin)
):
    return catalog.create_service(db, **data.model_dump())


@admin_router.put("/services/{service_id}", response_model=schemas.ServiceResponse)
def update_service(
    service_id: int,
    data: schemas.ServiceUpdate,
    db: Session = Depends(get_db),
    admin: dict = Depends(get_current_admin)
):
    return catalog.update_service(db, service_id, **data.model_dump(exclude_unset=True))


@admin_router.post("/clients", response_model=schemas.ClientResponse, status_code=201)
def create_client(
    data: schemas.ClientCreate,
    db: Session = Depends(get_db),
    admin: dict = Depends(get_current_admin)
):
    return catalog.create_client(db, **data.model_dump())


@admin_router.get("/clients", response_model=List[schemas.ClientResponse])
def list_clients(db: Session = Depends(get_db), admin: dict = Depends(get_current_admin)):
    return catalog.list_clients(db)


@admin_router.get("/clients/{client_id}/pets", response_model=List[schemas.PetResponse])
def list_client_pets(
    client_id: int,
    db: Session = Depends(get_db),
    admin: dict = Depends(get_current_admin)
):
    catalog.get_client(db, client_id)
    return catalog.list_pets(db, client_id)


@admin_router.post("/clients/{client_id}/pets", response_model=schemas.PetResponse, status_code=201)
def add_pet(
    client_id: int,
    data: schemas.PetCreate,
    db: Session = Depends(get_db),
    admin: dict = Depends(get_current_admin)
):
    return catalog.add_pet(db, client_id, **data.model_dump())
