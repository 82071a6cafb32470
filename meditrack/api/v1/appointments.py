from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session
from typing import List, Optional
import datetime as dt

from ...core.database import get_db
from ...core.session import SessionContext
from ...api.deps import get_session_context, get_doctor_context, get_patient_context
from ...models.appointment import AppointmentStatus
from ...services.booking_service import BookingService, bookable_time_slots
from ...services.appointment_service import AppointmentService
from ...schemas.appointment import (
    AppointmentCreate, AppointmentResponse, AppointmentComplete,
    StatusUpdate, DailyBookingCount
)

router = APIRouter(prefix="/appointments", tags=["Appointments"])

@router.post("", response_model=AppointmentResponse, status_code=status.HTTP_201_CREATED)
async def book_appointment(
    booking: AppointmentCreate,
    db: Session = Depends(get_db),
    ctx: SessionContext = Depends(get_patient_context)
):
    """Book a new appointment; it starts out pending."""
    appointment = BookingService(db).submit_booking(ctx, booking)
    return AppointmentResponse.model_validate(appointment)

@router.get("/time-slots", response_model=List[str])
async def time_slots():
    """Bookable times of day."""
    return bookable_time_slots()

@router.get("/daily-count", response_model=DailyBookingCount)
async def daily_count(
    date: Optional[dt.date] = None,
    db: Session = Depends(get_db),
    ctx: SessionContext = Depends(get_patient_context)
):
    return BookingService(db).daily_count(ctx, date)

@router.get("/mine", response_model=List[AppointmentResponse])
async def my_appointments(
    status: Optional[AppointmentStatus] = None,
    db: Session = Depends(get_db),
    ctx: SessionContext = Depends(get_patient_context)
):
    appointments = AppointmentService(db).list_for_patient(ctx, status=status)
    return [AppointmentResponse.model_validate(a) for a in appointments]

@router.get("/doctor", response_model=List[AppointmentResponse])
async def doctor_appointments(
    status: Optional[AppointmentStatus] = None,
    db: Session = Depends(get_db),
    ctx: SessionContext = Depends(get_doctor_context)
):
    """Appointments assigned to the calling doctor, newest first."""
    appointments = AppointmentService(db).list_for_doctor(ctx, status=status)
    return [AppointmentResponse.model_validate(a) for a in appointments]

@router.get("/{appointment_id}", response_model=AppointmentResponse)
async def get_appointment(
    appointment_id: str,
    db: Session = Depends(get_db),
    ctx: SessionContext = Depends(get_session_context)
):
    return AppointmentResponse.model_validate(
        AppointmentService(db).get_appointment(ctx, appointment_id)
    )

@router.patch("/{appointment_id}/status", response_model=AppointmentResponse)
async def update_status(
    appointment_id: str,
    update: StatusUpdate,
    db: Session = Depends(get_db),
    ctx: SessionContext = Depends(get_doctor_context)
):
    """Move an appointment one step along its lifecycle."""
    appointment = AppointmentService(db).transition(ctx, appointment_id, update.status)
    return AppointmentResponse.model_validate(appointment)

@router.post("/{appointment_id}/complete", response_model=AppointmentResponse)
async def complete_appointment(
    appointment_id: str,
    body: Optional[AppointmentComplete] = None,
    db: Session = Depends(get_db),
    ctx: SessionContext = Depends(get_doctor_context)
):
    """Complete an in-progress appointment, optionally with its prescription."""
    appointment = AppointmentService(db).complete(
        ctx, appointment_id, body.prescription if body else None
    )
    return AppointmentResponse.model_validate(appointment)
