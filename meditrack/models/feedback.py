from sqlalchemy import Column, Integer, String, ForeignKey, DateTime, Text, UniqueConstraint, CheckConstraint
from datetime import datetime

from ..core.database import Base
from .user import generate_id

class Feedback(Base):
    __tablename__ = "feedback"
    __table_args__ = (
        UniqueConstraint("appointment_id", "patient_id", name="uq_feedback_appointment_patient"),
        CheckConstraint("rating BETWEEN 1 AND 5", name="ck_feedback_rating_range"),
    )

    id = Column(String(36), primary_key=True, default=generate_id)
    appointment_id = Column(String(36), ForeignKey("appointments.id"), nullable=False, index=True)

    patient_id = Column(String(36), ForeignKey("users.id"), nullable=False, index=True)
    patient_name = Column(String(150), nullable=False)
    doctor_id = Column(String(36), ForeignKey("users.id"), nullable=False, index=True)
    doctor_name = Column(String(150), nullable=False)

    rating = Column(Integer, nullable=False)
    comment = Column(Text, nullable=False, default="")

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    def __repr__(self):
        return f"<Feedback(id={self.id}, appointment_id={self.appointment_id}, rating={self.rating})>"
