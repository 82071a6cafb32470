from sqlalchemy.orm import Session
from datetime import date, datetime
from typing import Optional

from ..models.appointment import AppointmentStatus
from ..core.session import SessionContext
from ..schemas.appointment import AppointmentResponse
from ..schemas.prescription import PrescriptionResponse
from ..schemas.feedback import FeedbackResponse
from ..schemas.dashboard import (
    PatientDashboard, PatientDashboardStats,
    DoctorDashboard, DoctorDashboardStats
)
from .appointment_service import AppointmentService
from .prescription_service import PrescriptionService
from .feedback_service import FeedbackService

ACTIVE_STATUSES = (AppointmentStatus.CONFIRMED, AppointmentStatus.IN_PROGRESS)

def scheduled_at(appointment) -> datetime:
    return datetime.combine(appointment.date, datetime.strptime(appointment.time, "%H:%M").time())

class DashboardService:
    def __init__(self, db: Session):
        self.db = db

    def patient_dashboard(self, ctx: SessionContext, now: Optional[datetime] = None) -> PatientDashboard:
        now = now or datetime.now()
        appointments = AppointmentService(self.db).list_for_patient(ctx)
        prescriptions = PrescriptionService(self.db)

        upcoming = sorted(
            (apt for apt in appointments
             if apt.status in ACTIVE_STATUSES and scheduled_at(apt) > now),
            key=scheduled_at
        )

        stats = PatientDashboardStats(
            upcoming=len(upcoming),
            completed=sum(1 for apt in appointments if apt.status == AppointmentStatus.COMPLETED),
            pending=sum(1 for apt in appointments if apt.status == AppointmentStatus.PENDING),
            prescriptions=prescriptions.count_for_patient(ctx),
        )

        return PatientDashboard(
            stats=stats,
            upcoming_appointments=[AppointmentResponse.model_validate(apt) for apt in upcoming[:3]],
            recent_appointments=[AppointmentResponse.model_validate(apt) for apt in appointments[:5]],
            recent_prescriptions=[
                PrescriptionResponse.model_validate(p) for p in prescriptions.list_for_patient(ctx, limit=3)
            ],
        )

    def doctor_dashboard(self, ctx: SessionContext, today: Optional[date] = None) -> DoctorDashboard:
        today = today or date.today()
        appointments = AppointmentService(self.db).list_for_doctor(ctx)
        feedback = FeedbackService(self.db)

        stats = DoctorDashboardStats(
            pending=sum(1 for apt in appointments if apt.status == AppointmentStatus.PENDING),
            today=sum(1 for apt in appointments if apt.date == today),
            completed=sum(1 for apt in appointments if apt.status == AppointmentStatus.COMPLETED),
            average_rating=feedback.stats_for_doctor(ctx).average_rating,
        )

        return DoctorDashboard(
            stats=stats,
            recent_appointments=[AppointmentResponse.model_validate(apt) for apt in appointments[:5]],
            recent_feedback=[
                FeedbackResponse.model_validate(fb) for fb in feedback.list_for_doctor(ctx, limit=5)
            ],
        )
