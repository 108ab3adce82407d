"""Tests for the cage, service and client catalog."""

from datetime import date
from decimal import Decimal

import pytest

from vetclinic import catalog, state_machine
from vetclinic.errors import CageInUse, NotFound, ValidationError
from vetclinic.models import CageType, ReservationStatus, ServiceCategory, classify_size


class TestCages:
    def test_number_is_trimmed(self, db_session):
        cage = catalog.create_cage(db_session, cage_number="  A-3 ", cage_type="medium", daily_rate="350.5")
        assert cage.cage_number == "A-3"
        assert cage.cage_type == CageType.MEDIUM
        assert cage.daily_rate == Decimal("350.50")

    @pytest.mark.parametrize("fields", [
        {"cage_number": "  ", "daily_rate": 100},
        {"cage_number": "A-4", "daily_rate": -1},
        {"cage_number": "A-5", "daily_rate": 100, "capacity": 0},
    ])
    def test_invalid_cage(self, db_session, fields):
        with pytest.raises(ValidationError):
            catalog.create_cage(db_session, cage_type=CageType.SMALL, **fields)

    def test_rename_onto_existing_number(self, db_session, small_cage, large_cage):
        with pytest.raises(ValidationError):
            catalog.update_cage(db_session, large_cage.id, cage_number="S-01")

    def test_rename_to_own_number(self, db_session, small_cage):
        assert catalog.update_cage(db_session, small_cage.id, cage_number="S-01").cage_number == "S-01"

    def test_filters(self, db_session, small_cage, large_cage):
        assert catalog.list_cages(db_session, cage_type=CageType.LARGE) == [large_cage]
        assert [c.cage_number for c in catalog.list_cages(db_session)] == ["L-01", "S-01"]

    def test_delete_blocked_by_active_stay(self, db_session, small_cage, book_stay):
        book_stay(small_cage, date(2024, 6, 1), date(2024, 6, 3))
        with pytest.raises(CageInUse, match="active"):
            catalog.delete_cage(db_session, small_cage.id)

    def test_delete_blocked_by_past_stay(self, db_session, small_cage, book_stay):
        reservation = book_stay(small_cage, date(2024, 6, 1), date(2024, 6, 3))
        state_machine.request_transition(db_session, reservation.id, ReservationStatus.COMPLETED, "admin")
        with pytest.raises(CageInUse, match="maintenance"):
            catalog.delete_cage(db_session, small_cage.id)

    def test_delete_unused(self, db_session, small_cage):
        catalog.delete_cage(db_session, small_cage.id)
        with pytest.raises(NotFound):
            catalog.get_cage(db_session, small_cage.id)


class TestServices:
    def test_boarding_keeps_no_duration(self, db_session):
        service = catalog.create_service(
            db_session, name="Boarding", price=200, category=ServiceCategory.BOARDING, duration_minutes=60,
        )
        assert service.duration_minutes is None
        assert service.is_boarding

    def test_regular_needs_duration(self, db_session):
        with pytest.raises(ValidationError):
            catalog.create_service(db_session, name="Deworming", price=150)

    def test_filters(self, db_session, checkup, boarding):
        assert catalog.list_services(db_session, category=ServiceCategory.BOARDING) == [boarding]
        catalog.update_service(db_session, checkup.id, is_active=False)
        assert catalog.list_services(db_session, active=True) == [boarding]

    def test_unknown_service(self, db_session):
        with pytest.raises(NotFound):
            catalog.get_service(db_session, 77)


class TestDirectory:
    def test_phone_is_unique(self, db_session, owner):
        with pytest.raises(ValidationError):
            catalog.create_client(db_session, name="Ana R.", phone=owner.phone)

    def test_pets_of_client(self, db_session, owner, pets, stranger_pet):
        assert catalog.list_pets(db_session, owner.id) == pets
        assert stranger_pet not in pets

    def test_pet_for_unknown_client(self, db_session):
        with pytest.raises(NotFound):
            catalog.add_pet(db_session, 999, name="Ghost", species="cat")


@pytest.mark.parametrize("species, breed, expected", [
    ("dog", "Chihuahua", CageType.SMALL),
    ("Dog", " great dane ", CageType.EXTRA_LARGE),
    ("dog", None, CageType.MEDIUM),
    ("cat", "Persian", CageType.SMALL),
    ("iguana", None, CageType.MEDIUM),
])
def test_size_hint(species, breed, expected):
    assert classify_size(species, breed) == expected
