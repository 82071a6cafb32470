from sqlalchemy import or_
from sqlalchemy.orm import Session
from sqlalchemy.exc import IntegrityError
from typing import List, Optional
import logging

from ..models.appointment import Appointment, AppointmentStatus
from ..models.prescription import Prescription
from ..core.errors import InputValidationError, NotFoundError, PolicyViolationError
from ..core.security import AuthorizationError
from ..core.session import SessionContext
from ..schemas.prescription import PrescriptionCreate, PrescriptionDraft
from .filters import Period, apply_period

logger = logging.getLogger(__name__)

def clean_draft(draft: PrescriptionDraft) -> dict:
    """Validate a prescription body and return the fields to store.

    Medication rows without a name are dropped; at least one must remain.
    Dosage, frequency, duration and instructions are free text.
    """
    diagnosis = (draft.diagnosis or "").strip()
    if not diagnosis:
        raise InputValidationError("Please enter a diagnosis")

    medications = [
        med.model_dump() for med in draft.medications if med.name.strip()
    ]
    if not medications:
        raise InputValidationError("Please add at least one medication")

    return {
        "diagnosis": diagnosis,
        "medications": medications,
        "notes": (draft.notes or "").strip(),
    }

class PrescriptionService:
    def __init__(self, db: Session):
        self.db = db

    def build(self, appointment: Appointment, draft: PrescriptionDraft) -> Prescription:
        """Unsaved prescription for ``appointment``; caller owns the commit."""
        fields = clean_draft(draft)
        return Prescription(
            appointment_id=appointment.id,
            patient_id=appointment.patient_id,
            patient_name=appointment.patient_name,
            doctor_id=appointment.doctor_id,
            doctor_name=appointment.doctor_name,
            **fields
        )

    def exists_for(self, appointment_id: str) -> bool:
        return self.db.query(Prescription.id).filter(
            Prescription.appointment_id == appointment_id
        ).first() is not None

    def create_prescription(self, ctx: SessionContext, data: PrescriptionCreate) -> Prescription:
        appointment = self.db.query(Appointment).filter(Appointment.id == data.appointment_id).first()
        if not appointment:
            raise NotFoundError("Appointment not found")

        if not ctx.is_doctor or appointment.doctor_id != ctx.user_id:
            raise AuthorizationError("Only the assigned doctor can write this prescription")

        if data.patient_id and data.patient_id != appointment.patient_id:
            raise InputValidationError("Patient does not match the appointment")

        if appointment.status != AppointmentStatus.COMPLETED:
            raise PolicyViolationError("Prescriptions can only be written for completed appointments")

        if self.exists_for(appointment.id):
            logger.warning("Duplicate prescription for appointment %s", appointment.id)
            raise PolicyViolationError("A prescription already exists for this appointment")

        prescription = self.build(appointment, data)
        self.db.add(prescription)
        try:
            self.db.commit()
        except IntegrityError:
            self.db.rollback()
            raise PolicyViolationError("A prescription already exists for this appointment")

        self.db.refresh(prescription)
        logger.info("Prescription %s issued for appointment %s", prescription.id, appointment.id)
        return prescription

    def get_prescription(self, ctx: SessionContext, prescription_id: str) -> Prescription:
        prescription = self.db.query(Prescription).filter(Prescription.id == prescription_id).first()
        if not prescription:
            raise NotFoundError("Prescription not found")

        if ctx.user_id not in (prescription.patient_id, prescription.doctor_id):
            raise AuthorizationError("You do not have access to this prescription")

        return prescription

    def list_for_patient(self, ctx: SessionContext, limit: Optional[int] = None) -> List[Prescription]:
        query = self.db.query(Prescription).filter(
            Prescription.patient_id == ctx.user_id
        ).order_by(Prescription.created_at.desc())
        if limit:
            query = query.limit(limit)
        return query.all()

    def count_for_patient(self, ctx: SessionContext) -> int:
        return self.db.query(Prescription).filter(Prescription.patient_id == ctx.user_id).count()

    def list_issued(
        self,
        ctx: SessionContext,
        search: Optional[str] = None,
        period: Period = Period.ALL
    ) -> List[Prescription]:
        """Prescriptions written by the calling doctor, newest first."""
        query = self.db.query(Prescription).filter(Prescription.doctor_id == ctx.user_id)

        term = (search or "").strip()
        if term:
            pattern = f"%{term}%"
            query = query.filter(or_(
                Prescription.patient_name.ilike(pattern),
                Prescription.diagnosis.ilike(pattern)
            ))

        query = apply_period(query, Prescription.created_at, period)
        return query.order_by(Prescription.created_at.desc()).all()
