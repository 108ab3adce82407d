"""Pytest configuration and fixtures."""

import os

# Keep the app's own engine off the filesystem while tests import it
os.environ["DATABASE_URL"] = "sqlite://"

from datetime import date, time, timedelta
from decimal import Decimal
from typing import Generator

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from vetclinic import catalog, reservations
from vetclinic.auth import ADMIN_ROLE, create_access_token, create_client_token
from vetclinic.database import Base, get_db, init_db
from vetclinic.events import EventCollector
from vetclinic.main import app
from vetclinic.models import BoardingBooking, CageType, PaymentMethod, RegularBooking, ServiceCategory
from vetclinic.routers.deps import get_dispatcher

TEST_DATABASE_URL = "sqlite:///:memory:"


@pytest.fixture(scope="function")
def db_engine():
    """Create a test database engine."""
    engine = create_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    init_db(engine)
    yield engine
    Base.metadata.drop_all(bind=engine)


@pytest.fixture(scope="function")
def db_session(db_engine) -> Generator[Session, None, None]:
    """Create a test database session."""
    SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=db_engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def events() -> EventCollector:
    return EventCollector()


@pytest.fixture(scope="function")
def client(db_session: Session, events: EventCollector) -> Generator[TestClient, None, None]:
    """Create a test client with database and event sink overrides."""
    def override_get_db():
        try:
            yield db_session
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_dispatcher] = lambda: events
    with TestClient(app, raise_server_exceptions=False) as test_client:
        yield test_client
    app.dependency_overrides.clear()


# ------------------------------------------------------------------ auth

@pytest.fixture
def admin_headers() -> dict:
    token = create_access_token(data={"role": ADMIN_ROLE, "sub": ADMIN_ROLE})
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def owner_headers(owner) -> dict:
    return {"Authorization": f"Bearer {create_client_token(owner.id)}"}


@pytest.fixture
def stranger_headers(stranger) -> dict:
    return {"Authorization": f"Bearer {create_client_token(stranger.id)}"}


# --------------------------------------------------------------- catalog

@pytest.fixture
def owner(db_session: Session):
    return catalog.create_client(db_session, name="Ana Reyes", phone="09171234567", email="ana.reyes@gmail.com")


@pytest.fixture
def stranger(db_session: Session):
    return catalog.create_client(db_session, name="Ben Cruz", phone="09187654321")


@pytest.fixture
def pets(db_session: Session, owner):
    """Three pets belonging to ``owner``"""
    return [
        catalog.add_pet(db_session, owner.id, name="Bantay", species="dog", breed="Aspin"),
        catalog.add_pet(db_session, owner.id, name="Mingming", species="cat"),
        catalog.add_pet(db_session, owner.id, name="Brownie", species="dog", breed="Golden Retriever"),
    ]


@pytest.fixture
def stranger_pet(db_session: Session, stranger):
    return catalog.add_pet(db_session, stranger.id, name="Max", species="dog", breed="Beagle")


@pytest.fixture
def small_cage(db_session: Session):
    return catalog.create_cage(
        db_session, cage_number="S-01", cage_type=CageType.SMALL, daily_rate=Decimal("300.00"),
    )


@pytest.fixture
def large_cage(db_session: Session):
    return catalog.create_cage(
        db_session, cage_number="L-01", cage_type=CageType.LARGE, capacity=2, daily_rate=Decimal("500.00"),
    )


@pytest.fixture
def checkup(db_session: Session):
    return catalog.create_service(
        db_session, name="Check-up", price=Decimal("300.00"), duration_minutes=30,
    )


@pytest.fixture
def boarding(db_session: Session):
    return catalog.create_service(
        db_session, name="Pet Boarding", price=Decimal("250.00"), category=ServiceCategory.BOARDING,
    )


# -------------------------------------------------------------- bookings

@pytest.fixture
def book_stay(db_session: Session, pets, boarding, events):
    """Create a boarding reservation through the engine"""
    def _book(cage, check_in, check_out, pet_list=None, method=PaymentMethod.CASH, **kwargs):
        return reservations.create_reservation(
            db_session,
            pet_ids=[p.id for p in (pet_list or pets[:1])],
            service_id=boarding.id,
            payment_method=method,
            booking=BoardingBooking(cage.id, check_in, check_out),
            emit=events,
            **kwargs
        )
    return _book


@pytest.fixture
def book_visit(db_session: Session, pets, checkup, events):
    """Create a regular appointment through the engine"""
    def _book(on=date(2024, 6, 10), at=time(9, 30), pet_list=None, method=PaymentMethod.CASH, **kwargs):
        return reservations.create_reservation(
            db_session,
            pet_ids=[p.id for p in (pet_list or pets[:1])],
            service_id=checkup.id,
            payment_method=method,
            booking=RegularBooking(on, at),
            emit=events,
            **kwargs
        )
    return _book


@pytest.fixture
def future() -> date:
    """A date far enough ahead for request validation and cancellation notice"""
    return date.today() + timedelta(days=30)
