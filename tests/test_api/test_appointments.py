"""Tests for appointment booking, cancellation and status endpoints."""

from datetime import date, datetime, time, timedelta

import pytest
from httpx import AsyncClient
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.ext.asyncio import AsyncSession

from staffbook.api.deps import get_booking_service
from staffbook.main import app
from staffbook.models.appointment import Appointment, SpecialtyBlock
from staffbook.models.user import User
from staffbook.scheduling.booking import BookingService
from staffbook.scheduling.cache import ReferenceDataCache
from staffbook.scheduling.holidays import is_holiday
from staffbook.scheduling.refusals import BookingRefused, RefusalReason
from staffbook.scheduling.snapshot import AvailabilitySnapshot
from tests.conftest import Seed, headers, test_session


def _bookable_day(skip: int = 0) -> date:
    """A future working day inside the booking window (holidays skipped)."""
    today = date.today()
    days = [
        today + timedelta(days=offset)
        for offset in range(1, 31)
        if not is_holiday(today + timedelta(days=offset))
    ]
    return days[skip]


async def _insert_appointment(
    seed: Seed,
    user_id: int,
    day: date,
    at: time,
    status: str = "scheduled",
    specialty_id: int | None = None,
) -> int:
    async with test_session() as session:
        appointment = Appointment(
            user_id=user_id,
            professional_id=seed.professional_id,
            specialty_id=specialty_id or seed.specialty_id,
            appointment_date=day,
            appointment_time=at,
            status=status,
        )
        session.add(appointment)
        await session.commit()
        return appointment.id


def _booking(seed: Seed, day: date, at: str, specialty_id: int | None = None) -> dict:
    return {
        "professional_id": seed.professional_id,
        "specialty_id": specialty_id or seed.specialty_id,
        "appointment_date": day.isoformat(),
        "appointment_time": at,
    }


class StaleSnapshotService(BookingService):
    """Reads availability as it was before a concurrent booking committed."""

    async def _snapshot(
        self, session: AsyncSession, professional_id: int, today: date
    ) -> AvailabilitySnapshot:
        snapshot = await super()._snapshot(session, professional_id, today)
        snapshot.appointments = []
        return snapshot


class TestAvailability:
    async def test_available_dates_stay_in_window(self, client: AsyncClient, seed: Seed) -> None:
        resp = await client.get(
            "/api/appointments/available-dates",
            params={"professional_id": seed.professional_id, "specialty_id": seed.specialty_id},
            headers=headers(seed.user_id),
        )
        assert resp.status_code == 200
        dates = [date.fromisoformat(d) for d in resp.json()["dates"]]
        today = date.today()
        assert dates == sorted(dates)
        assert all(today <= d <= today + timedelta(days=30) for d in dates)
        assert _bookable_day() in dates
        assert not any(is_holiday(d) for d in dates)

    async def test_available_slots_full_day(self, client: AsyncClient, seed: Seed) -> None:
        day = _bookable_day()
        resp = await client.get(
            "/api/appointments/available-slots",
            params={"professional_id": seed.professional_id, "date": day.isoformat()},
            headers=headers(seed.user_id),
        )
        assert resp.status_code == 200
        data = resp.json()
        assert data["day"] == day.isoformat()
        assert data["slots"] == [f"{h:02d}:00:00" for h in range(9, 17)]

    async def test_scheduled_appointment_takes_slot_cancelled_does_not(
        self, client: AsyncClient, seed: Seed
    ) -> None:
        day = _bookable_day()
        await _insert_appointment(seed, seed.other_user_id, day, time(10))
        await _insert_appointment(seed, seed.other_user_id, day, time(11), status="cancelled")

        resp = await client.get(
            "/api/appointments/available-slots",
            params={"professional_id": seed.professional_id, "date": day.isoformat()},
            headers=headers(seed.user_id),
        )
        slots = resp.json()["slots"]
        assert "10:00:00" not in slots
        assert "11:00:00" in slots

    async def test_blocked_date_refused(self, client: AsyncClient, seed: Seed) -> None:
        day = _bookable_day()
        resp = await client.post(
            "/api/blocked-days",
            json={"blocked_date": day.isoformat(), "reason": "Building maintenance"},
            headers=headers(seed.admin_id),
        )
        assert resp.status_code == 201

        resp = await client.get(
            "/api/appointments/available-slots",
            params={"professional_id": seed.professional_id, "date": day.isoformat()},
            headers=headers(seed.user_id),
        )
        assert resp.status_code == 409
        assert resp.json()["reason"] == "DATE_BLOCKED"

        resp = await client.get(
            "/api/appointments/available-dates",
            params={"professional_id": seed.professional_id, "specialty_id": seed.specialty_id},
            headers=headers(seed.user_id),
        )
        assert day.isoformat() not in resp.json()["dates"]

    async def test_date_beyond_window_refused(self, client: AsyncClient, seed: Seed) -> None:
        day = date.today() + timedelta(days=45)
        resp = await client.get(
            "/api/appointments/available-slots",
            params={"professional_id": seed.professional_id, "date": day.isoformat()},
            headers=headers(seed.user_id),
        )
        assert resp.status_code == 409
        body = resp.json()
        assert body["reason"] == "OUT_OF_WINDOW"
        assert body["message"]
        assert body["conflicting_date"] is None

    async def test_monthly_limit_reported_before_dates(
        self, client: AsyncClient, seed: Seed
    ) -> None:
        today = date.today()
        await _insert_appointment(seed, seed.user_id, today, time(8), status="completed")

        resp = await client.get(
            "/api/appointments/available-dates",
            params={"professional_id": seed.professional_id, "specialty_id": seed.specialty_id},
            headers=headers(seed.user_id),
        )
        assert resp.status_code == 409
        assert resp.json()["reason"] == "MONTHLY_LIMIT"
        assert resp.json()["conflicting_date"] == today.isoformat()

        resp = await client.get(
            "/api/appointments/available-dates",
            params={
                "professional_id": seed.professional_id,
                "specialty_id": seed.other_specialty_id,
            },
            headers=headers(seed.user_id),
        )
        assert resp.status_code == 200


class TestBooking:
    async def test_book_and_list_mine(self, client: AsyncClient, seed: Seed) -> None:
        day = _bookable_day()
        resp = await client.post(
            "/api/appointments", json=_booking(seed, day, "10:00"), headers=headers(seed.user_id)
        )
        assert resp.status_code == 201
        data = resp.json()
        assert data["status"] == "scheduled"
        assert data["user_id"] == seed.user_id
        assert data["appointment_time"] == "10:00:00"

        resp = await client.get("/api/appointments/mine", headers=headers(seed.user_id))
        assert [a["id"] for a in resp.json()] == [data["id"]]

        resp = await client.get("/api/appointments/mine", headers=headers(seed.other_user_id))
        assert resp.json() == []

    async def test_booked_slot_is_taken(self, client: AsyncClient, seed: Seed) -> None:
        day = _bookable_day()
        first = await client.post(
            "/api/appointments",
            json=_booking(seed, day, "10:00"),
            headers=headers(seed.other_user_id),
        )
        assert first.status_code == 201

        resp = await client.post(
            "/api/appointments", json=_booking(seed, day, "10:00"), headers=headers(seed.user_id)
        )
        assert resp.status_code == 409
        assert resp.json()["reason"] == "SLOT_TAKEN"

    async def test_concurrent_insert_maps_to_slot_taken(self, seed: Seed) -> None:
        # Another booking lands between the availability read and the insert.
        day = _bookable_day()
        await _insert_appointment(seed, seed.other_user_id, day, time(11))

        async with test_session() as session:
            user = await session.get(User, seed.user_id)
            service = StaleSnapshotService(cache=ReferenceDataCache())
            with pytest.raises(BookingRefused) as exc_info:
                await service.book(
                    session,
                    user,
                    seed.professional_id,
                    seed.specialty_id,
                    day,
                    time(11),
                    datetime.now(),
                )
        assert exc_info.value.reason is RefusalReason.SLOT_TAKEN

        async with test_session() as session:
            result = await session.execute(
                select(Appointment).where(Appointment.user_id == seed.user_id)
            )
            assert result.scalars().all() == []

    async def test_second_scheduled_row_violates_slot_index(self, seed: Seed) -> None:
        day = _bookable_day()
        await _insert_appointment(seed, seed.other_user_id, day, time(11))
        with pytest.raises(IntegrityError):
            await _insert_appointment(seed, seed.user_id, day, time(11))

    async def test_finished_appointment_frees_slot(self, client: AsyncClient, seed: Seed) -> None:
        day = _bookable_day()
        appointment_id = await _insert_appointment(seed, seed.other_user_id, day, time(10))
        resp = await client.patch(
            f"/api/appointments/{appointment_id}/status",
            json={"status": "no_show"},
            headers=headers(seed.professional_user_id),
        )
        assert resp.status_code == 200

        resp = await client.get(
            "/api/appointments/available-slots",
            params={"professional_id": seed.professional_id, "date": day.isoformat()},
            headers=headers(seed.user_id),
        )
        assert "10:00:00" in resp.json()["slots"]

        resp = await client.post(
            "/api/appointments", json=_booking(seed, day, "10:00"), headers=headers(seed.user_id)
        )
        assert resp.status_code == 201

        await _insert_appointment(seed, seed.other_user_id, day, time(12), status="completed")
        resp = await client.post(
            "/api/appointments",
            json=_booking(seed, day, "12:00", specialty_id=seed.other_specialty_id),
            headers=headers(seed.user_id),
        )
        assert resp.status_code == 201

    async def test_cancelled_slot_can_be_rebooked(self, client: AsyncClient, seed: Seed) -> None:
        day = _bookable_day()
        await _insert_appointment(seed, seed.other_user_id, day, time(12), status="cancelled")
        resp = await client.post(
            "/api/appointments", json=_booking(seed, day, "12:00"), headers=headers(seed.user_id)
        )
        assert resp.status_code == 201

    async def test_slot_outside_hours_unavailable(self, client: AsyncClient, seed: Seed) -> None:
        day = _bookable_day()
        resp = await client.post(
            "/api/appointments", json=_booking(seed, day, "18:00"), headers=headers(seed.user_id)
        )
        assert resp.status_code == 409
        assert resp.json()["reason"] == "SLOT_UNAVAILABLE"

    async def test_monthly_limit_blocks_second_booking(
        self, client: AsyncClient, seed: Seed
    ) -> None:
        await _insert_appointment(seed, seed.user_id, date.today(), time(8))
        resp = await client.post(
            "/api/appointments",
            json=_booking(seed, _bookable_day(), "10:00"),
            headers=headers(seed.user_id),
        )
        assert resp.status_code == 409
        assert resp.json()["reason"] == "MONTHLY_LIMIT"

        other = await client.post(
            "/api/appointments",
            json=_booking(seed, _bookable_day(), "10:00", specialty_id=seed.other_specialty_id),
            headers=headers(seed.user_id),
        )
        assert other.status_code == 201

    async def test_specialty_not_offered(self, client: AsyncClient, seed: Seed) -> None:
        resp = await client.post(
            "/api/specialties", json={"name": "Psychology"}, headers=headers(seed.admin_id)
        )
        psychology_id = resp.json()["id"]

        resp = await client.post(
            "/api/appointments",
            json=_booking(seed, _bookable_day(), "10:00", specialty_id=psychology_id),
            headers=headers(seed.user_id),
        )
        assert resp.status_code == 404

    async def test_blocked_account_refused(self, client: AsyncClient, seed: Seed) -> None:
        await client.post(f"/api/users/{seed.user_id}/block", headers=headers(seed.admin_id))
        resp = await client.post(
            "/api/appointments",
            json=_booking(seed, _bookable_day(), "10:00"),
            headers=headers(seed.user_id),
        )
        assert resp.status_code == 403
        assert resp.json()["reason"] == "ACCOUNT_BLOCKED"


class TestCancellation:
    async def test_same_day_requires_confirmation(self, client: AsyncClient, seed: Seed) -> None:
        appointment_id = await _insert_appointment(seed, seed.user_id, date.today(), time(23))

        resp = await client.post(
            f"/api/appointments/{appointment_id}/cancel", headers=headers(seed.user_id)
        )
        assert resp.status_code == 409
        assert resp.json()["reason"] == "PENALTY_CONFIRMATION_REQUIRED"

        resp = await client.post(
            f"/api/appointments/{appointment_id}/cancel",
            json={"confirm_penalty": True},
            headers=headers(seed.user_id),
        )
        assert resp.status_code == 200
        data = resp.json()
        assert data["penalty_applied"] is True
        assert data["blocked_until"] is not None
        assert data["appointment"]["status"] == "cancelled"
        assert data["appointment"]["notes"] == "Cancelled on the appointment day"

        async with test_session() as session:
            result = await session.execute(
                select(SpecialtyBlock).where(SpecialtyBlock.user_id == seed.user_id)
            )
            block = result.scalar_one()
            assert block.specialty_id == seed.specialty_id
            assert block.reason == "Same-day cancellation"

    async def test_penalty_suspends_specialty(self, client: AsyncClient, seed: Seed) -> None:
        appointment_id = await _insert_appointment(seed, seed.user_id, date.today(), time(23))
        await client.post(
            f"/api/appointments/{appointment_id}/cancel",
            json={"confirm_penalty": True},
            headers=headers(seed.user_id),
        )

        resp = await client.get("/api/specialties/bookable", headers=headers(seed.user_id))
        flags = {s["id"]: s["suspended"] for s in resp.json()}
        assert flags == {seed.specialty_id: True, seed.other_specialty_id: False}

        resp = await client.post(
            "/api/appointments",
            json=_booking(seed, _bookable_day(), "10:00"),
            headers=headers(seed.user_id),
        )
        assert resp.status_code == 403
        assert resp.json()["reason"] == "SPECIALTY_SUSPENDED"

    async def test_future_cancellation_has_no_penalty(
        self, client: AsyncClient, seed: Seed
    ) -> None:
        appointment_id = await _insert_appointment(seed, seed.user_id, _bookable_day(), time(10))
        resp = await client.post(
            f"/api/appointments/{appointment_id}/cancel", headers=headers(seed.user_id)
        )
        assert resp.status_code == 200
        data = resp.json()
        assert data["penalty_applied"] is False
        assert data["blocked_until"] is None
        assert data["appointment"]["notes"] == "Cancelled by user"

        again = await client.post(
            f"/api/appointments/{appointment_id}/cancel", headers=headers(seed.user_id)
        )
        assert again.status_code == 409

    async def test_professional_cancels_same_day_without_penalty(
        self, client: AsyncClient, seed: Seed
    ) -> None:
        appointment_id = await _insert_appointment(seed, seed.user_id, date.today(), time(23))
        resp = await client.post(
            f"/api/appointments/{appointment_id}/cancel",
            headers=headers(seed.professional_user_id),
        )
        assert resp.status_code == 200
        assert resp.json()["penalty_applied"] is False
        assert resp.json()["appointment"]["notes"] == "Cancelled by professional"

    async def test_admin_own_booking_same_day_penalised(
        self, client: AsyncClient, seed: Seed
    ) -> None:
        appointment_id = await _insert_appointment(seed, seed.admin_id, date.today(), time(23))

        resp = await client.post(
            f"/api/appointments/{appointment_id}/cancel", headers=headers(seed.admin_id)
        )
        assert resp.status_code == 409
        assert resp.json()["reason"] == "PENALTY_CONFIRMATION_REQUIRED"

        resp = await client.post(
            f"/api/appointments/{appointment_id}/cancel",
            json={"confirm_penalty": True},
            headers=headers(seed.admin_id),
        )
        assert resp.status_code == 200
        assert resp.json()["penalty_applied"] is True

        resp = await client.get("/api/users/me/specialty-blocks", headers=headers(seed.admin_id))
        assert [b["specialty_id"] for b in resp.json()] == [seed.specialty_id]

    async def test_admin_cancels_other_booking_without_penalty(
        self, client: AsyncClient, seed: Seed
    ) -> None:
        appointment_id = await _insert_appointment(seed, seed.user_id, date.today(), time(23))
        resp = await client.post(
            f"/api/appointments/{appointment_id}/cancel", headers=headers(seed.admin_id)
        )
        assert resp.status_code == 200
        assert resp.json()["penalty_applied"] is False
        assert resp.json()["appointment"]["notes"] == "Cancelled by admin"

    async def test_other_user_cannot_cancel(self, client: AsyncClient, seed: Seed) -> None:
        appointment_id = await _insert_appointment(seed, seed.user_id, _bookable_day(), time(10))
        resp = await client.post(
            f"/api/appointments/{appointment_id}/cancel", headers=headers(seed.other_user_id)
        )
        assert resp.status_code == 403

    async def test_cancel_missing_appointment(self, client: AsyncClient, seed: Seed) -> None:
        resp = await client.post("/api/appointments/999/cancel", headers=headers(seed.user_id))
        assert resp.status_code == 404


class TestStatusAndListing:
    async def test_professional_marks_completed(self, client: AsyncClient, seed: Seed) -> None:
        appointment_id = await _insert_appointment(seed, seed.user_id, _bookable_day(), time(10))
        resp = await client.patch(
            f"/api/appointments/{appointment_id}/status",
            json={"status": "completed"},
            headers=headers(seed.professional_user_id),
        )
        assert resp.status_code == 200
        assert resp.json()["status"] == "completed"

        resp = await client.patch(
            f"/api/appointments/{appointment_id}/status",
            json={"status": "no_show"},
            headers=headers(seed.professional_user_id),
        )
        assert resp.status_code == 409

    async def test_admin_cancels_through_status(self, client: AsyncClient, seed: Seed) -> None:
        appointment_id = await _insert_appointment(seed, seed.user_id, date.today(), time(23))
        resp = await client.patch(
            f"/api/appointments/{appointment_id}/status",
            json={"status": "cancelled"},
            headers=headers(seed.admin_id),
        )
        assert resp.status_code == 200
        assert resp.json()["status"] == "cancelled"
        assert resp.json()["notes"] == "Cancelled by admin"

    async def test_status_rejects_unknown_value(self, client: AsyncClient, seed: Seed) -> None:
        appointment_id = await _insert_appointment(seed, seed.user_id, _bookable_day(), time(10))
        resp = await client.patch(
            f"/api/appointments/{appointment_id}/status",
            json={"status": "scheduled"},
            headers=headers(seed.admin_id),
        )
        assert resp.status_code == 422

    async def test_user_cannot_change_status(self, client: AsyncClient, seed: Seed) -> None:
        appointment_id = await _insert_appointment(seed, seed.user_id, _bookable_day(), time(10))
        resp = await client.patch(
            f"/api/appointments/{appointment_id}/status",
            json={"status": "completed"},
            headers=headers(seed.user_id),
        )
        assert resp.status_code == 403

    async def test_listing_by_role(self, client: AsyncClient, seed: Seed) -> None:
        day = _bookable_day()
        await _insert_appointment(seed, seed.user_id, day, time(10))
        await _insert_appointment(seed, seed.other_user_id, day, time(11), status="cancelled")

        resp = await client.get("/api/appointments", headers=headers(seed.admin_id))
        assert len(resp.json()) == 2

        resp = await client.get(
            "/api/appointments",
            params={"status": "scheduled"},
            headers=headers(seed.professional_user_id),
        )
        assert [a["appointment_time"] for a in resp.json()] == ["10:00:00"]

        resp = await client.get("/api/appointments", headers=headers(seed.user_id))
        assert resp.status_code == 403

    async def test_admin_deletes(self, client: AsyncClient, seed: Seed) -> None:
        appointment_id = await _insert_appointment(seed, seed.user_id, _bookable_day(), time(10))
        resp = await client.delete(
            f"/api/appointments/{appointment_id}", headers=headers(seed.user_id)
        )
        assert resp.status_code == 403
        resp = await client.delete(
            f"/api/appointments/{appointment_id}", headers=headers(seed.admin_id)
        )
        assert resp.status_code == 204


class TestIdentity:
    async def test_missing_header(self, client: AsyncClient, seed: Seed) -> None:
        resp = await client.get("/api/appointments/mine")
        assert resp.status_code == 401

    async def test_unknown_user(self, client: AsyncClient, seed: Seed) -> None:
        resp = await client.get("/api/appointments/mine", headers=headers(9999))
        assert resp.status_code == 401


async def test_storage_fault_returns_503(client: AsyncClient, seed: Seed) -> None:
    class FailingService:
        async def available_slots(self, *args: object, **kwargs: object) -> list:
            raise OperationalError("SELECT 1", {}, Exception("disk I/O error"))

    app.dependency_overrides[get_booking_service] = lambda: FailingService()
    try:
        resp = await client.get(
            "/api/appointments/available-slots",
            params={"professional_id": seed.professional_id, "date": _bookable_day().isoformat()},
            headers=headers(seed.user_id),
        )
    finally:
        app.dependency_overrides.pop(get_booking_service)
    assert resp.status_code == 503
    assert resp.json() == {"detail": "Temporary storage failure. Please try again."}


async def test_refusal_payload_documented(client: AsyncClient) -> None:
    resp = await client.get("/openapi.json")
    schema = resp.json()
    assert "RefusalRead" in schema["components"]["schemas"]
    booking = schema["paths"]["/api/appointments"]["post"]["responses"]
    for code in ("403", "409"):
        assert booking[code]["content"]["application/json"]["schema"] == {
            "$ref": "#/components/schemas/RefusalRead"
        }
    bookable = schema["paths"]["/api/specialties/bookable"]["get"]["responses"]
    assert "403" in bookable
