"""API endpoint tests.

Tests the FastAPI endpoints for booking and attendance operations.
"""

from datetime import datetime, timedelta
from decimal import Decimal
from uuid import uuid4

from httpx import AsyncClient

SHIFT_START = datetime(2030, 6, 1, 9, 0)
ON_SITE = {"latitude": 1.3523, "longitude": 103.8198}


async def book(client: AsyncClient, worker_id, seeded, **extra) -> dict:
    response = await client.post(
        "/api/v1/applications",
        json={
            "worker_id": str(worker_id),
            "shift_id": str(seeded.shift_id),
            "date": seeded.occurrence_date.isoformat(),
            **extra,
        },
    )
    assert response.status_code == 201, response.text
    return response.json()


class TestHealthEndpoints:
    """Test health check endpoints."""

    async def test_health_check(self, client: AsyncClient):
        """Health endpoint should report a reachable database."""
        response = await client.get("/health")
        assert response.status_code == 200

        data = response.json()
        assert data["status"] == "healthy"
        assert data["database"] == "up"
        assert data["penalty_table_version"]
        assert "checked_at" in data

    async def test_readiness_check(self, client: AsyncClient):
        response = await client.get("/ready")
        assert response.status_code == 200
        assert response.json()["status"] == "ready"

    async def test_liveness_check(self, client: AsyncClient):
        response = await client.get("/live")
        assert response.status_code == 200
        assert response.json()["status"] == "alive"


class TestBookingEndpoints:
    async def test_apply_and_cancel_with_promotion(self, client, clock, seeded, make_worker):
        """Primary holder cancels ten hours out; the standby worker takes the seat."""
        worker_a = await make_worker("A")
        worker_b = await make_worker("B")

        first = await book(client, worker_a, seeded)
        assert first["seat_kind"] == "primary"
        second = await book(client, worker_b, seeded, is_standby=True)
        assert second["seat_kind"] == "standby"

        clock.set(SHIFT_START - timedelta(hours=10))
        response = await client.post(
            f"/api/v1/applications/{first['application_id']}/cancel",
            json={"reason": "personal_reason", "detail": "family event"},
        )

        assert response.status_code == 200, response.text
        data = response.json()
        assert Decimal(data["penalty"]) == Decimal("15")
        assert data["label"] == "> 6 Hours"
        assert data["promoted_worker_id"] == str(worker_b)

        response = await client.get(
            f"/api/v1/shifts/{seeded.shift_id}/occurrences/{seeded.occurrence_date}/availability"
        )
        assert response.status_code == 200
        availability = response.json()
        assert availability["filled_primary"] == 1
        assert availability["filled_standby"] == 0
        assert availability["slot_label"] == "Standby Slot Available"

    async def test_duplicate_is_conflict(self, client, seeded, make_worker):
        worker = await make_worker()
        await book(client, worker, seeded)

        response = await client.post(
            "/api/v1/applications",
            json={
                "worker_id": str(worker),
                "shift_id": str(seeded.shift_id),
                "date": seeded.occurrence_date.isoformat(),
            },
        )

        assert response.status_code == 409
        assert response.json()["code"] == "DUPLICATE_APPLICATION"

    async def test_incomplete_profile_is_bad_request(self, client, seeded, make_worker):
        worker = await make_worker(profile_completed=False)
        response = await client.post(
            "/api/v1/applications",
            json={
                "worker_id": str(worker),
                "shift_id": str(seeded.shift_id),
                "date": seeded.occurrence_date.isoformat(),
            },
        )

        assert response.status_code == 400
        assert response.json()["code"] == "PROFILE_INCOMPLETE"

    async def test_unknown_shift_is_not_found(self, client, seeded, make_worker):
        response = await client.post(
            "/api/v1/applications",
            json={
                "worker_id": str(await make_worker()),
                "shift_id": str(uuid4()),
                "date": seeded.occurrence_date.isoformat(),
            },
        )

        assert response.status_code == 404
        assert response.json()["code"] == "NOT_FOUND"

    async def test_unknown_cancellation_reason_rejected(self, client, seeded, make_worker):
        booked = await book(client, await make_worker(), seeded)
        response = await client.post(
            f"/api/v1/applications/{booked['application_id']}/cancel",
            json={"reason": "bored"},
        )
        assert response.status_code == 422

    async def test_get_and_list(self, client, seeded, make_worker):
        worker = await make_worker()
        booked = await book(client, worker, seeded)

        response = await client.get(f"/api/v1/applications/{booked['application_id']}")
        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "upcoming"
        assert data["stage"] == "applied"

        response = await client.get(f"/api/v1/workers/{worker}/applications", params={"status": "upcoming"})
        assert response.status_code == 200
        assert response.json()["total"] == 1

        response = await client.get(f"/api/v1/workers/{worker}/applications", params={"status": "bogus"})
        assert response.status_code == 422
        assert response.json()["code"] == "VALIDATION_ERROR"

        response = await client.get(f"/api/v1/applications/{uuid4()}")
        assert response.status_code == 404


class TestAttendanceEndpoints:
    async def test_full_shift(self, client, clock, seeded, make_worker):
        booked = await book(client, await make_worker(), seeded)
        application_url = f"/api/v1/applications/{booked['application_id']}"

        clock.set(SHIFT_START)
        response = await client.post(f"{application_url}/clock-in", json=ON_SITE)
        assert response.status_code == 200, response.text

        response = await client.post(f"{application_url}/clock-in", json=ON_SITE)
        assert response.status_code == 409
        assert response.json()["code"] == "ALREADY_CLOCKED_IN"

        clock.advance(hours=8)
        response = await client.post(f"{application_url}/clock-out")
        assert response.status_code == 200

        response = await client.post(f"{application_url}/complete")
        assert response.status_code == 200
        assert Decimal(response.json()["earned_amount"]) == Decimal("140")

    async def test_clock_in_off_site(self, client, seeded, make_worker):
        booked = await book(client, await make_worker(), seeded)
        response = await client.post(
            f"/api/v1/applications/{booked['application_id']}/clock-in",
            json={"latitude": 1.40, "longitude": 103.8198},
        )

        assert response.status_code == 400
        assert response.json()["code"] == "OUTSIDE_GEOFENCE"

    async def test_no_show(self, client, clock, seeded, make_worker):
        booked = await book(client, await make_worker(), seeded)
        url = f"/api/v1/applications/{booked['application_id']}/no-show"

        response = await client.post(url)
        assert response.status_code == 409
        assert response.json()["code"] == "NOT_UPCOMING"

        clock.set(SHIFT_START + timedelta(hours=1))
        response = await client.post(url)
        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "no_show"
        assert Decimal(data["penalty"]) == Decimal("50")


class TestShiftEndpoints:
    async def test_activate_standby_with_nobody_waiting(self, client, seeded):
        response = await client.post(
            f"/api/v1/shifts/{seeded.shift_id}/occurrences/{seeded.occurrence_date}/activate-standby"
        )
        assert response.status_code == 200
        assert response.json()["promoted_worker_id"] is None

    async def test_penalty_table(self, client):
        response = await client.get("/api/v1/penalties")
        assert response.status_code == 200
        data = response.json()
        assert [Decimal(r["penalty"]) for r in data["rules"]] == [
            Decimal("0"),
            Decimal("5"),
            Decimal("10"),
            Decimal("15"),
            Decimal("50"),
        ]
        assert data["rules"][-1]["threshold_hours"] is None
