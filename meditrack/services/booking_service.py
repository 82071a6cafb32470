from sqlalchemy.orm import Session
from sqlalchemy.exc import IntegrityError
from datetime import date
from typing import List, Optional
import logging

from ..models.appointment import Appointment, AppointmentStatus
from ..models.user import User
from ..core.config import settings
from ..core.errors import InputValidationError, DailyLimitExceededError, BookingConflictError
from ..core.security import AuthorizationError, UserRole
from ..core.session import SessionContext
from ..schemas.appointment import AppointmentCreate, DailyBookingCount

logger = logging.getLogger(__name__)

def bookable_time_slots() -> List[str]:
    """Half-hour slots from 09:00 to 17:30."""
    return [f"{hour:02d}:{minute:02d}" for hour in range(9, 18) for minute in (0, 30)]

class BookingService:
    """Validates and records new appointment requests from patients."""

    def __init__(self, db: Session):
        self.db = db

    def count_for_day(self, patient_id: str, day: date) -> int:
        return self.db.query(Appointment).filter(
            Appointment.patient_id == patient_id,
            Appointment.date == day
        ).count()

    def daily_count(self, ctx: SessionContext, day: Optional[date] = None) -> DailyBookingCount:
        day = day or date.today()
        count = self.count_for_day(ctx.user_id, day)
        limit = settings.MAX_DAILY_BOOKINGS
        return DailyBookingCount(date=day, count=count, limit=limit, remaining=max(limit - count, 0))

    def submit_booking(
        self,
        ctx: SessionContext,
        booking: AppointmentCreate,
        today: Optional[date] = None
    ) -> Appointment:
        """Create a pending appointment once every booking rule passes."""
        if not ctx.is_patient:
            raise AuthorizationError("Only patients can book appointments")

        doctor_id = (booking.doctor_id or "").strip()
        slot_time = (booking.time or "").strip()
        if not doctor_id or booking.date is None or not slot_time:
            raise InputValidationError("Please fill in all required fields")

        today = today or date.today()
        if booking.date < today:
            raise InputValidationError("Cannot book appointments for past dates")

        if slot_time not in bookable_time_slots():
            raise InputValidationError(f"'{slot_time}' is not a bookable time slot")

        doctor = self.db.query(User).filter(
            User.id == doctor_id,
            User.role == UserRole.DOCTOR
        ).first()
        if not doctor:
            raise InputValidationError("Selected doctor does not exist")

        limit = settings.MAX_DAILY_BOOKINGS
        existing = self.count_for_day(ctx.user_id, booking.date)
        if existing >= limit:
            logger.warning("Daily cap reached for patient %s on %s", ctx.user_id, booking.date)
            raise DailyLimitExceededError(limit)

        appointment = Appointment(
            patient_id=ctx.user_id,
            patient_name=ctx.name,
            doctor_id=doctor.id,
            doctor_name=doctor.name,
            date=booking.date,
            time=slot_time,
            note=booking.note or "",
            status=AppointmentStatus.PENDING,
            day_slot=existing + 1,
        )
        self.db.add(appointment)

        try:
            self.db.commit()
        except IntegrityError:
            # Another booking took the same day slot between count and insert
            self.db.rollback()
            logger.warning("Concurrent booking rejected for patient %s on %s", ctx.user_id, booking.date)
            if self.count_for_day(ctx.user_id, booking.date) >= limit:
                raise DailyLimitExceededError(limit)
            raise BookingConflictError()

        self.db.refresh(appointment)
        logger.info("Appointment %s booked with doctor %s", appointment.id, doctor.id)
        return appointment
