from datetime import date, timedelta

import pytest

from meditrack.core.errors import BookingConflictError, DailyLimitExceededError, InputValidationError
from meditrack.models.appointment import Appointment, AppointmentStatus
from meditrack.schemas.appointment import AppointmentCreate
from meditrack.services.booking_service import BookingService, bookable_time_slots
from tests.conftest import book, context_for

class TestBookingPolicy:

    def test_book_appointment(self, client, patient, doctor, tomorrow):
        """A valid request creates a pending appointment."""
        response = book(client, patient, doctor, tomorrow, time="09:30", note="  Headache  ")
        assert response.status_code == 201

        data = response.json()
        assert data["status"] == "pending"
        assert data["patient_id"] == patient["id"]
        assert data["patient_name"] == "Jane Doe"
        assert data["doctor_id"] == doctor["id"]
        assert data["doctor_name"] == "Gregory House"
        assert data["date"] == tomorrow.isoformat()
        assert data["time"] == "09:30"
        assert data["note"] == "Headache"
        assert data["allowed_transitions"] == ["confirmed", "cancelled"]

    def test_booking_today_is_allowed(self, client, patient, doctor):
        response = book(client, patient, doctor, date.today())
        assert response.status_code == 201

    def test_booking_yesterday_is_rejected(self, client, patient, doctor):
        """Past dates fail even when every other field is valid."""
        response = book(client, patient, doctor, date.today() - timedelta(days=1))
        assert response.status_code == 422

        data = response.json()
        assert data["error"] == "validation_error"
        assert "past" in data["detail"]

    @pytest.mark.parametrize("missing", ["doctor_id", "date", "time"])
    def test_missing_required_field(self, client, patient, doctor, tomorrow, missing):
        payload = {"doctor_id": doctor["id"], "date": tomorrow.isoformat(), "time": "10:00"}
        del payload[missing]

        response = client.post("/api/v1/appointments", headers=patient["headers"], json=payload)
        assert response.status_code == 422
        assert response.json()["detail"] == "Please fill in all required fields"

    def test_time_outside_slots_is_rejected(self, client, patient, doctor, tomorrow):
        response = book(client, patient, doctor, tomorrow, time="18:00")
        assert response.status_code == 422

    def test_unknown_doctor_is_rejected(self, client, patient, other_patient, tomorrow):
        # A patient id is not a doctor id
        response = book(client, patient, other_patient, tomorrow)
        assert response.status_code == 422
        assert "doctor" in response.json()["detail"]

    def test_daily_cap(self, client, patient, doctor, tomorrow):
        """A patient may hold at most two appointments on one date."""
        assert book(client, patient, doctor, tomorrow, time="09:00").status_code == 201
        assert book(client, patient, doctor, tomorrow, time="11:00").status_code == 201

        response = book(client, patient, doctor, tomorrow, time="15:00")
        assert response.status_code == 409
        assert response.json()["error"] == "policy_violation"
        assert "maximum of 2" in response.json()["detail"]

    def test_daily_cap_counts_cancelled_appointments(self, client, patient, doctor, tomorrow):
        first = book(client, patient, doctor, tomorrow).json()
        client.patch(
            f"/api/v1/appointments/{first['id']}/status",
            headers=doctor["headers"], json={"status": "cancelled"}
        )
        assert book(client, patient, doctor, tomorrow, time="11:00").status_code == 201

        assert book(client, patient, doctor, tomorrow, time="12:00").status_code == 409

    def test_daily_cap_is_per_date_and_per_patient(self, client, patient, other_patient, doctor, tomorrow):
        book(client, patient, doctor, tomorrow, time="09:00")
        book(client, patient, doctor, tomorrow, time="09:30")

        day_after = tomorrow + timedelta(days=1)
        assert book(client, patient, doctor, day_after).status_code == 201
        assert book(client, other_patient, doctor, tomorrow).status_code == 201

    def test_doctor_cannot_book(self, client, doctor, other_doctor, tomorrow):
        response = book(client, doctor, other_doctor, tomorrow)
        assert response.status_code == 403

    def test_daily_count(self, client, patient, doctor, tomorrow):
        book(client, patient, doctor, tomorrow)

        response = client.get(
            "/api/v1/appointments/daily-count",
            params={"date": tomorrow.isoformat()},
            headers=patient["headers"]
        )
        assert response.status_code == 200
        assert response.json() == {
            "date": tomorrow.isoformat(), "count": 1, "limit": 2, "remaining": 1
        }

    def test_time_slots(self, client, test_db):
        response = client.get("/api/v1/appointments/time-slots")
        assert response.status_code == 200

        slots = response.json()
        assert slots[0] == "09:00"
        assert slots[-1] == "17:30"
        assert len(slots) == 18

class TestBookingService:

    def test_same_day_slot_collision_is_reported_as_conflict(self, client, db_session, patient, doctor, tomorrow):
        """A booking racing for an already-taken day slot is refused by the store."""
        service = BookingService(db_session)
        ctx = context_for(patient, "patient")
        service.submit_booking(ctx, AppointmentCreate(doctor_id=doctor["id"], date=tomorrow, time="09:00"))

        # Simulate a concurrent request that counted before the first insert landed
        service.count_for_day = lambda patient_id, day: 0
        with pytest.raises(BookingConflictError) as excinfo:
            service.submit_booking(ctx, AppointmentCreate(doctor_id=doctor["id"], date=tomorrow, time="10:00"))

        # Only one appointment is held, so the cap message would be wrong
        assert not isinstance(excinfo.value, DailyLimitExceededError)
        assert excinfo.value.status_code == 409
        assert "at the same time" in excinfo.value.detail
        assert db_session.query(Appointment).count() == 1

    def test_collision_on_full_day_is_reported_as_cap(self, client, db_session, patient, doctor, tomorrow):
        service = BookingService(db_session)
        ctx = context_for(patient, "patient")
        service.submit_booking(ctx, AppointmentCreate(doctor_id=doctor["id"], date=tomorrow, time="09:00"))
        service.submit_booking(ctx, AppointmentCreate(doctor_id=doctor["id"], date=tomorrow, time="09:30"))

        real_count = service.count_for_day
        calls = []

        def stale_then_real(patient_id, day):
            calls.append(day)
            return 1 if len(calls) == 1 else real_count(patient_id, day)

        service.count_for_day = stale_then_real
        with pytest.raises(DailyLimitExceededError):
            service.submit_booking(ctx, AppointmentCreate(doctor_id=doctor["id"], date=tomorrow, time="10:00"))

        assert db_session.query(Appointment).count() == 2

    def test_explicit_today_is_respected(self, client, db_session, patient, doctor):
        service = BookingService(db_session)
        ctx = context_for(patient, "patient")
        booking = AppointmentCreate(doctor_id=doctor["id"], date=date(2030, 1, 1), time="09:00")

        with pytest.raises(InputValidationError):
            service.submit_booking(ctx, booking, today=date(2030, 1, 2))

        appointment = service.submit_booking(ctx, booking, today=date(2030, 1, 1))
        assert appointment.status == AppointmentStatus.PENDING
        assert appointment.day_slot == 1

    def test_bookable_time_slots_are_half_hourly(self):
        slots = bookable_time_slots()
        assert "12:30" in slots
        assert "12:15" not in slots
        assert "08:30" not in slots
