from sqlalchemy.orm import Session
from sqlalchemy.exc import IntegrityError
from datetime import datetime
from typing import List, Optional
import logging

from ..models.appointment import Appointment, AppointmentStatus, can_transition
from ..core.errors import NotFoundError, PolicyViolationError, InvalidTransitionError
from ..core.security import AuthorizationError
from ..core.session import SessionContext
from ..schemas.prescription import PrescriptionDraft
from .prescription_service import PrescriptionService

logger = logging.getLogger(__name__)

class AppointmentService:
    """Reads appointments and moves them through their status lifecycle."""

    def __init__(self, db: Session):
        self.db = db

    def _load(self, appointment_id: str) -> Appointment:
        appointment = self.db.query(Appointment).filter(Appointment.id == appointment_id).first()
        if not appointment:
            raise NotFoundError("Appointment not found")
        return appointment

    def _load_for_doctor(self, ctx: SessionContext, appointment_id: str) -> Appointment:
        appointment = self._load(appointment_id)
        if not ctx.is_doctor or appointment.doctor_id != ctx.user_id:
            raise AuthorizationError("Only the assigned doctor can update this appointment")
        return appointment

    def get_appointment(self, ctx: SessionContext, appointment_id: str) -> Appointment:
        appointment = self._load(appointment_id)
        if ctx.user_id not in (appointment.patient_id, appointment.doctor_id):
            raise AuthorizationError("You do not have access to this appointment")
        return appointment

    def list_for_doctor(
        self,
        ctx: SessionContext,
        status: Optional[AppointmentStatus] = None,
        limit: Optional[int] = None
    ) -> List[Appointment]:
        query = self.db.query(Appointment).filter(Appointment.doctor_id == ctx.user_id)
        if status is not None:
            query = query.filter(Appointment.status == status)
        query = query.order_by(Appointment.created_at.desc())
        if limit:
            query = query.limit(limit)
        return query.all()

    def list_for_patient(
        self,
        ctx: SessionContext,
        status: Optional[AppointmentStatus] = None,
        limit: Optional[int] = None
    ) -> List[Appointment]:
        query = self.db.query(Appointment).filter(Appointment.patient_id == ctx.user_id)
        if status is not None:
            query = query.filter(Appointment.status == status)
        query = query.order_by(Appointment.created_at.desc())
        if limit:
            query = query.limit(limit)
        return query.all()

    def _compare_and_set(self, appointment: Appointment, target: AppointmentStatus):
        """Write ``target`` only if the stored status is still the one we read."""
        observed = appointment.status
        if not can_transition(observed, target):
            logger.warning(
                "Rejected transition %s -> %s for appointment %s",
                observed.value, target.value, appointment.id
            )
            raise InvalidTransitionError(observed, target)

        updated = self.db.query(Appointment).filter(
            Appointment.id == appointment.id,
            Appointment.status == observed
        ).update(
            {"status": target, "updated_at": datetime.utcnow()},
            synchronize_session=False
        )
        if updated != 1:
            self.db.rollback()
            raise PolicyViolationError("Appointment status changed in the meantime; reload and try again")

    def transition(self, ctx: SessionContext, appointment_id: str, target: AppointmentStatus) -> Appointment:
        appointment = self._load_for_doctor(ctx, appointment_id)
        previous = appointment.status

        self._compare_and_set(appointment, AppointmentStatus(target))
        self.db.commit()
        self.db.refresh(appointment)

        logger.info("Appointment %s: %s -> %s", appointment.id, previous.value, appointment.status.value)
        return appointment

    def complete(
        self,
        ctx: SessionContext,
        appointment_id: str,
        prescription: Optional[PrescriptionDraft] = None
    ) -> Appointment:
        """Complete an in-progress appointment, optionally issuing its prescription.

        Both writes share one transaction: either the appointment is completed
        with its prescription, or nothing changes.
        """
        appointment = self._load_for_doctor(ctx, appointment_id)

        record = None
        if prescription is not None:
            record = PrescriptionService(self.db).build(appointment, prescription)

        self._compare_and_set(appointment, AppointmentStatus.COMPLETED)
        if record is not None:
            self.db.add(record)

        try:
            self.db.commit()
        except IntegrityError:
            self.db.rollback()
            raise PolicyViolationError("A prescription already exists for this appointment")

        self.db.refresh(appointment)
        logger.info(
            "Appointment %s completed%s", appointment.id,
            " with prescription" if record is not None else ""
        )
        return appointment
