from sqlalchemy import Column, String, ForeignKey, DateTime, Text, JSON
from datetime import datetime

from ..core.database import Base
from .user import generate_id

class Prescription(Base):
    """Immutable once written; at most one per appointment."""
    __tablename__ = "prescriptions"

    id = Column(String(36), primary_key=True, default=generate_id)
    appointment_id = Column(String(36), ForeignKey("appointments.id"), nullable=False, unique=True)

    patient_id = Column(String(36), ForeignKey("users.id"), nullable=False, index=True)
    patient_name = Column(String(150), nullable=False)
    doctor_id = Column(String(36), ForeignKey("users.id"), nullable=False, index=True)
    doctor_name = Column(String(150), nullable=False)

    diagnosis = Column(Text, nullable=False)
    medications = Column(JSON, nullable=False)  # ordered list of medication dicts
    notes = Column(Text, nullable=False, default="")

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    def __repr__(self):
        return f"<Prescription(id={self.id}, appointment_id={self.appointment_id})>"
