from sqlalchemy import (
    Column, Integer, String, ForeignKey, DateTime, Date, Text,
    UniqueConstraint, Enum as SQLEnum
)
from datetime import datetime
import enum

from ..core.database import Base
from .user import generate_id

class AppointmentStatus(str, enum.Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"

# Forward-only lifecycle; completed and cancelled are terminal.
STATUS_TRANSITIONS = {
    AppointmentStatus.PENDING: (AppointmentStatus.CONFIRMED, AppointmentStatus.CANCELLED),
    AppointmentStatus.CONFIRMED: (AppointmentStatus.IN_PROGRESS, AppointmentStatus.CANCELLED),
    AppointmentStatus.IN_PROGRESS: (AppointmentStatus.COMPLETED,),
    AppointmentStatus.COMPLETED: (),
    AppointmentStatus.CANCELLED: (),
}

def allowed_transitions(status: AppointmentStatus):
    """Statuses reachable in one step from ``status``."""
    return list(STATUS_TRANSITIONS[AppointmentStatus(status)])

def can_transition(current: AppointmentStatus, target: AppointmentStatus) -> bool:
    return AppointmentStatus(target) in STATUS_TRANSITIONS[AppointmentStatus(current)]

class Appointment(Base):
    __tablename__ = "appointments"
    __table_args__ = (
        # One row per (patient, day, slot) keeps the daily cap strict under
        # concurrent bookings.
        UniqueConstraint("patient_id", "date", "day_slot", name="uq_appointments_patient_day_slot"),
    )

    id = Column(String(36), primary_key=True, default=generate_id)

    # Participants (names are copied at booking time)
    patient_id = Column(String(36), ForeignKey("users.id"), nullable=False, index=True)
    patient_name = Column(String(150), nullable=False)
    doctor_id = Column(String(36), ForeignKey("users.id"), nullable=False, index=True)
    doctor_name = Column(String(150), nullable=False)

    # Appointment details
    date = Column(Date, nullable=False, index=True)
    time = Column(String(5), nullable=False)
    note = Column(Text, nullable=False, default="")
    status = Column(SQLEnum(AppointmentStatus), nullable=False, default=AppointmentStatus.PENDING)
    day_slot = Column(Integer, nullable=False)

    # Tracking
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def __repr__(self):
        return f"<Appointment(id={self.id}, patient_id={self.patient_id}, doctor_id={self.doctor_id}, date='{self.date}', status='{self.status}')>"
