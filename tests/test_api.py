"""HTTP tests for the booking API."""

from datetime import timedelta
from decimal import Decimal

import pytest

from vetclinic.events import BoardingReservationCreated, ReservationCreated, StatusChanged


def stay_payload(pets, service, cage, check_in, nights=3, **extra):
    payload = {
        "pet_ids": [p.id for p in pets],
        "service_id": service.id,
        "payment_method": "cash",
        "booking": {
            "kind": "boarding",
            "cage_id": cage.id,
            "check_in_date": check_in.isoformat(),
            "check_out_date": (check_in + timedelta(days=nights)).isoformat(),
        },
    }
    payload.update(extra)
    return payload


def visit_payload(pets, service, on, **extra):
    payload = {
        "pet_ids": [p.id for p in pets],
        "service_id": service.id,
        "payment_method": "cash",
        "booking": {"kind": "regular", "appointment_date": on.isoformat(), "appointment_time": "10:30"},
    }
    payload.update(extra)
    return payload


class TestAuth:
    def test_root(self, client):
        response = client.get("/")
        assert response.status_code == 200
        assert response.json()["status"] == "ok"

    def test_admin_login(self, client):
        response = client.post("/api/auth/admin/login", json={"password": "admin123"})
        assert response.status_code == 200
        token = response.json()["access_token"]

        me = client.get("/api/auth/me", headers={"Authorization": f"Bearer {token}"})
        assert me.json() == {"role": "admin", "sub": "admin"}

    def test_wrong_password(self, client):
        response = client.post("/api/auth/admin/login", json={"password": "letmein"})
        assert response.status_code == 401

    def test_missing_token(self, client):
        response = client.get("/api/reservations")
        assert response.status_code in (401, 403)

    def test_garbage_token(self, client):
        response = client.get("/api/reservations", headers={"Authorization": "Bearer not-a-jwt"})
        assert response.status_code == 401

    def test_client_cannot_manage_cages(self, client, owner_headers):
        response = client.post(
            "/api/admin/cages",
            json={"cage_number": "X-1", "cage_type": "small", "daily_rate": "100"},
            headers=owner_headers,
        )
        assert response.status_code == 403


class TestCatalog:
    def test_cage_lifecycle(self, client, admin_headers):
        created = client.post(
            "/api/admin/cages",
            json={"cage_number": " B-12 ", "cage_type": "large", "capacity": 2, "daily_rate": "450.00"},
            headers=admin_headers,
        )
        assert created.status_code == 201
        cage = created.json()
        assert cage["cage_number"] == "B-12"
        assert cage["status"] == "available"

        updated = client.put(
            f"/api/admin/cages/{cage['id']}", json={"status": "maintenance"}, headers=admin_headers,
        )
        assert updated.json()["status"] == "maintenance"

        listed = client.get("/api/cages", params={"type": "large"})
        assert [c["cage_number"] for c in listed.json()] == ["B-12"]

        assert client.delete(f"/api/admin/cages/{cage['id']}", headers=admin_headers).status_code == 204
        assert client.get(f"/api/cages/{cage['id']}").status_code == 404

    def test_duplicate_cage_number(self, client, admin_headers, small_cage):
        response = client.post(
            "/api/admin/cages",
            json={"cage_number": "S-01", "cage_type": "small", "daily_rate": "100"},
            headers=admin_headers,
        )
        assert response.status_code == 400
        assert response.json()["kind"] == "validation_error"

    def test_cage_with_reservations_cannot_be_deleted(self, client, admin_headers, small_cage, book_stay, future):
        book_stay(small_cage, future, future + timedelta(days=2))
        response = client.delete(f"/api/admin/cages/{small_cage.id}", headers=admin_headers)
        assert response.status_code == 409
        assert response.json()["kind"] == "cage_in_use"

    def test_services_hide_inactive_by_default(self, client, admin_headers, checkup, boarding):
        client.put(f"/api/admin/services/{checkup.id}", json={"is_active": False}, headers=admin_headers)
        names = [s["name"] for s in client.get("/api/services").json()]
        assert names == ["Pet Boarding"]

    def test_regular_service_needs_duration(self, client, admin_headers):
        response = client.post(
            "/api/admin/services", json={"name": "Vaccination", "price": "350"}, headers=admin_headers,
        )
        assert response.status_code == 400

    def test_client_directory(self, client, admin_headers):
        created = client.post(
            "/api/admin/clients", json={"name": "Elena", "phone": "09998887777"}, headers=admin_headers,
        )
        assert created.status_code == 201
        client_id = created.json()["id"]

        pet = client.post(
            f"/api/admin/clients/{client_id}/pets",
            json={"name": "Rocky", "species": "dog", "breed": "German Shepherd"},
            headers=admin_headers,
        )
        assert pet.status_code == 201
        assert pet.json()["size_hint"] == "large"

    def test_own_pets(self, client, owner_headers, pets):
        response = client.get("/api/pets", headers=owner_headers)
        assert [p["name"] for p in response.json()] == ["Bantay", "Mingming", "Brownie"]
        assert [p["size_hint"] for p in response.json()] == ["medium", "small", "large"]


class TestAvailabilityAndQuotes:
    def test_availability(self, client, owner_headers, small_cage, large_cage, book_stay, future):
        book_stay(small_cage, future, future + timedelta(days=3))
        response = client.get(
            "/api/availability",
            params={"check_in": future.isoformat(), "check_out": (future + timedelta(days=2)).isoformat()},
            headers=owner_headers,
        )
        assert response.status_code == 200
        [option] = response.json()
        assert option["cage"]["id"] == large_cage.id
        assert option["boarding_days"] == 2
        assert Decimal(option["total_amount"]) == Decimal("1000")

    def test_inverted_range(self, client, owner_headers, small_cage, future):
        response = client.get(
            "/api/availability",
            params={"check_in": future.isoformat(), "check_out": future.isoformat()},
            headers=owner_headers,
        )
        assert response.status_code == 400
        assert response.json()["kind"] == "validation_error"

    def test_quote(self, client, owner_headers, boarding, large_cage, future):
        response = client.post(
            "/api/quotes",
            json={
                "service_id": boarding.id,
                "pet_count": 2,
                "cage_id": large_cage.id,
                "check_in_date": future.isoformat(),
                "check_out_date": (future + timedelta(days=3)).isoformat(),
            },
            headers=owner_headers,
        )
        assert response.status_code == 200
        body = response.json()
        assert body["boarding_days"] == 3
        assert Decimal(body["total_amount"]) == Decimal("2000")

    def test_quote_for_regular_service(self, client, owner_headers, checkup):
        response = client.post("/api/quotes", json={"service_id": checkup.id, "pet_count": 2}, headers=owner_headers)
        assert response.status_code == 200
        assert response.json()["daily_rate"] is None
        assert Decimal(response.json()["total_amount"]) == Decimal("600")

    def test_quote_refuses_cage_for_regular_service(self, client, owner_headers, checkup, large_cage, future):
        response = client.post(
            "/api/quotes",
            json={
                "service_id": checkup.id,
                "cage_id": large_cage.id,
                "check_in_date": future.isoformat(),
                "check_out_date": (future + timedelta(days=2)).isoformat(),
            },
            headers=owner_headers,
        )
        assert response.status_code == 400
        assert response.json()["kind"] == "validation_error"

    def test_quote_needs_cage_for_boarding(self, client, owner_headers, boarding):
        response = client.post("/api/quotes", json={"service_id": boarding.id}, headers=owner_headers)
        assert response.status_code == 400
        assert response.json()["kind"] == "validation_error"


class TestBooking:
    def test_client_books_stay(self, client, owner_headers, pets, boarding, large_cage, future, events):
        response = client.post(
            "/api/reservations", json=stay_payload(pets[:1], boarding, large_cage, future), headers=owner_headers,
        )
        assert response.status_code == 201
        body = response.json()
        assert body["initial_status"] == "pending"
        assert body["kind"] == "boarding"
        assert Decimal(body["total_amount"]) == Decimal("1750")
        assert len(events.of_type(ReservationCreated)) == 1
        assert len(events.of_type(BoardingReservationCreated)) == 1

    def test_overlap_returns_conflict(self, client, owner_headers, pets, boarding, small_cage, future):
        first = client.post(
            "/api/reservations", json=stay_payload(pets[:1], boarding, small_cage, future, nights=4),
            headers=owner_headers,
        )
        assert first.status_code == 201

        second = client.post(
            "/api/reservations",
            json=stay_payload(pets[1:2], boarding, small_cage, future + timedelta(days=2)),
            headers=owner_headers,
        )
        assert second.status_code == 409
        assert second.json()["kind"] == "cage_conflict"

    def test_unpaid_gcash_waits_for_payment(self, client, owner_headers, pets, checkup, future):
        response = client.post(
            "/api/reservations",
            json=visit_payload(pets, checkup, future, payment_method="gcash"),
            headers=owner_headers,
        )
        assert response.status_code == 201
        assert response.json()["initial_status"] == "pending_payment"
        assert Decimal(response.json()["total_amount"]) == Decimal("900")

    def test_past_dates_rejected(self, client, owner_headers, pets, checkup, future):
        past = future - timedelta(days=60)
        response = client.post("/api/reservations", json=visit_payload(pets, checkup, past), headers=owner_headers)
        assert response.status_code == 422

    def test_someone_elses_pets(self, client, stranger_headers, pets, checkup, future):
        response = client.post("/api/reservations", json=visit_payload(pets, checkup, future), headers=stranger_headers)
        assert response.status_code == 403
        assert response.json()["kind"] == "forbidden"

    def test_listing_is_scoped_to_the_client(
        self, client, owner_headers, stranger_headers, admin_headers, book_visit, future
    ):
        reservation = book_visit(on=future)

        assert [r["id"] for r in client.get("/api/reservations", headers=owner_headers).json()] == [reservation.id]
        assert client.get("/api/reservations", headers=stranger_headers).json() == []
        assert len(client.get("/api/reservations", headers=admin_headers).json()) == 1
        assert client.get(f"/api/reservations/{reservation.id}", headers=stranger_headers).status_code == 403

    def test_client_cancels(self, client, owner_headers, book_visit, future, events):
        reservation = book_visit(on=future)
        response = client.post(f"/api/reservations/{reservation.id}/cancel", headers=owner_headers)
        assert response.status_code == 200
        assert response.json()["status"] == "cancelled"
        assert events.of_type(StatusChanged)[0].new_status == "cancelled"

    def test_admin_cannot_use_client_cancel(self, client, admin_headers, book_visit, future):
        reservation = book_visit(on=future)
        assert client.post(f"/api/reservations/{reservation.id}/cancel", headers=admin_headers).status_code == 403


class TestReviewFlow:
    def test_receipt_gates_progress(self, client, owner_headers, admin_headers, pets, checkup, future):
        created = client.post(
            "/api/reservations",
            json=visit_payload(pets[:1], checkup, future, payment_method="gcash"),
            headers=owner_headers,
        ).json()
        rid = created["reservation_id"]

        uploaded = client.post(
            f"/api/reservations/{rid}/documents",
            json={"subject": "receipt", "url": "receipts/gcash-001.jpg"},
            headers=owner_headers,
        )
        assert uploaded.json()["receipt_verified"] == "unreviewed"

        blocked = client.patch(
            f"/api/admin/reservations/{rid}/status", json={"status": "in_progress"}, headers=admin_headers,
        )
        assert blocked.status_code == 400
        assert blocked.json()["kind"] == "receipt_not_verified"

        approved = client.post(
            f"/api/admin/reservations/{rid}/verify-receipt", json={"approved": True}, headers=admin_headers,
        )
        assert approved.json() == {"id": rid, "status": "paid", "receipt_verified": "approved"}

        started = client.patch(
            f"/api/admin/reservations/{rid}/status", json={"status": "in_progress"}, headers=admin_headers,
        )
        assert started.json() == {"id": rid, "status": "in_progress"}

        in_use = client.delete(f"/api/admin/reservations/{rid}", headers=admin_headers)
        assert in_use.status_code == 409
        assert in_use.json()["kind"] == "reservation_in_use"

    def test_document_rejection(self, client, owner_headers, admin_headers, pets, boarding, small_cage, future):
        payload = stay_payload(
            pets[:1], boarding, small_cage, future,
            id_document_url="ids/ana.png", signature_url="signatures/ana.png",
        )
        rid = client.post("/api/reservations", json=payload, headers=owner_headers).json()["reservation_id"]

        no_reason = client.post(
            f"/api/admin/reservations/{rid}/verify-document",
            json={"subject": "signature", "approved": False},
            headers=admin_headers,
        )
        assert no_reason.status_code == 400
        assert no_reason.json()["kind"] == "missing_rejection_reason"

        rejected = client.post(
            f"/api/admin/reservations/{rid}/verify-document",
            json={"subject": "signature", "approved": False, "rejection_reason": "blurry image"},
            headers=admin_headers,
        )
        assert rejected.json() == {
            "id": rid,
            "status": "rejected",
            "subject": "signature",
            "verified": "rejected",
            "rejection_reason": "blurry image",
        }

        reopen = client.patch(
            f"/api/admin/reservations/{rid}/status", json={"status": "confirmed"}, headers=admin_headers,
        )
        assert reopen.status_code == 409
        assert reopen.json()["kind"] == "invalid_transition"

    def test_unknown_status(self, client, admin_headers, book_visit, future):
        reservation = book_visit(on=future)
        response = client.patch(
            f"/api/admin/reservations/{reservation.id}/status", json={"status": "boarded"}, headers=admin_headers,
        )
        assert response.status_code == 400
        assert response.json()["kind"] == "validation_error"

    def test_clients_cannot_review(self, client, owner_headers, book_visit, future):
        reservation = book_visit(on=future, receipt_url="receipts/1.jpg")
        response = client.post(
            f"/api/admin/reservations/{reservation.id}/verify-receipt", json={"approved": True}, headers=owner_headers,
        )
        assert response.status_code == 403


class TestAdminEdits:
    def test_rebook_and_audit(self, client, admin_headers, small_cage, large_cage, book_stay, future):
        reservation = book_stay(small_cage, future, future + timedelta(days=3))

        moved = client.patch(
            f"/api/admin/reservations/{reservation.id}",
            json={"cage_id": large_cage.id, "notes": "needs more room"},
            headers=admin_headers,
        )
        assert moved.status_code == 200
        assert moved.json()["cage_id"] == large_cage.id
        assert Decimal(moved.json()["total_amount"]) == Decimal("1750")

        audit = client.get(f"/api/admin/reservations/{reservation.id}/audit", headers=admin_headers).json()
        assert audit["consistent"] is True

    def test_delete(self, client, admin_headers, book_visit, future):
        reservation = book_visit(on=future)
        assert client.delete(f"/api/admin/reservations/{reservation.id}", headers=admin_headers).status_code == 204
        missing = client.get(f"/api/reservations/{reservation.id}", headers=admin_headers)
        assert missing.status_code == 404
        assert missing.json()["kind"] == "not_found"

    @pytest.mark.parametrize("path", ["/api/admin/reservations/999", "/api/admin/reservations/999/audit"])
    def test_unknown_reservation(self, client, admin_headers, path):
        method = client.delete if not path.endswith("audit") else client.get
        assert method(path, headers=admin_headers).status_code == 404
