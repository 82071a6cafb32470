from sqlalchemy import and_, exists
from sqlalchemy.orm import Session
from sqlalchemy.exc import IntegrityError
from decimal import Decimal, ROUND_HALF_UP
from typing import Iterable, List, Optional
import logging

from ..models.appointment import Appointment, AppointmentStatus
from ..models.feedback import Feedback
from ..core.errors import InputValidationError, NotFoundError, PolicyViolationError
from ..core.security import AuthorizationError
from ..core.session import SessionContext
from ..schemas.feedback import FeedbackCreate, FeedbackStats
from .filters import Period, apply_period

logger = logging.getLogger(__name__)

MIN_RATING = 1
MAX_RATING = 5

def round_half_up(value: float, places: int = 1) -> float:
    quantum = Decimal(1).scaleb(-places)
    return float(Decimal(str(value)).quantize(quantum, rounding=ROUND_HALF_UP))

def compute_stats(feedback: Iterable) -> FeedbackStats:
    """Aggregate a set of feedback records; nothing here is persisted."""
    distribution = {rating: 0 for rating in range(MIN_RATING, MAX_RATING + 1)}
    total = 0
    rating_sum = 0
    with_comments = 0

    for item in feedback:
        total += 1
        rating_sum += item.rating
        if item.rating in distribution:
            distribution[item.rating] += 1
        if item.comment and item.comment.strip():
            with_comments += 1

    average = round_half_up(rating_sum / total) if total else 0.0
    return FeedbackStats(
        total_reviews=total,
        average_rating=average,
        rating_distribution=distribution,
        with_comments=with_comments,
    )

class FeedbackService:
    def __init__(self, db: Session):
        self.db = db

    def submit_feedback(self, ctx: SessionContext, data: FeedbackCreate) -> Feedback:
        if not ctx.is_patient:
            raise AuthorizationError("Only patients can leave feedback")

        if not isinstance(data.rating, int) or not MIN_RATING <= data.rating <= MAX_RATING:
            raise InputValidationError("Please select a rating between 1 and 5")

        appointment = self.db.query(Appointment).filter(Appointment.id == data.appointment_id).first()
        if not appointment:
            raise NotFoundError("Appointment not found")

        if appointment.patient_id != ctx.user_id:
            raise AuthorizationError("You can only review your own appointments")

        if appointment.status != AppointmentStatus.COMPLETED:
            raise PolicyViolationError("Feedback can only be given for completed appointments")

        if self.has_feedback(ctx, appointment.id):
            logger.warning("Duplicate feedback for appointment %s by %s", appointment.id, ctx.user_id)
            raise PolicyViolationError("You have already reviewed this appointment")

        feedback = Feedback(
            appointment_id=appointment.id,
            patient_id=ctx.user_id,
            patient_name=ctx.name,
            doctor_id=appointment.doctor_id,
            doctor_name=appointment.doctor_name,
            rating=data.rating,
            comment=(data.comment or "").strip(),
        )
        self.db.add(feedback)

        try:
            self.db.commit()
        except IntegrityError:
            self.db.rollback()
            raise PolicyViolationError("You have already reviewed this appointment")

        self.db.refresh(feedback)
        logger.info("Feedback %s recorded for appointment %s", feedback.id, appointment.id)
        return feedback

    def has_feedback(self, ctx: SessionContext, appointment_id: str) -> bool:
        return self.db.query(Feedback.id).filter(
            Feedback.appointment_id == appointment_id,
            Feedback.patient_id == ctx.user_id
        ).first() is not None

    def pending_appointments(self, ctx: SessionContext) -> List[Appointment]:
        """Completed appointments the patient has not reviewed yet."""
        reviewed = exists().where(and_(
            Feedback.appointment_id == Appointment.id,
            Feedback.patient_id == ctx.user_id
        ))
        return self.db.query(Appointment).filter(
            Appointment.patient_id == ctx.user_id,
            Appointment.status == AppointmentStatus.COMPLETED,
            ~reviewed
        ).order_by(Appointment.created_at.desc()).all()

    def list_for_patient(self, ctx: SessionContext) -> List[Feedback]:
        return self.db.query(Feedback).filter(
            Feedback.patient_id == ctx.user_id
        ).order_by(Feedback.created_at.desc()).all()

    def list_for_doctor(
        self,
        ctx: SessionContext,
        rating: Optional[int] = None,
        period: Period = Period.ALL,
        limit: Optional[int] = None
    ) -> List[Feedback]:
        query = self.db.query(Feedback).filter(Feedback.doctor_id == ctx.user_id)
        if rating is not None:
            query = query.filter(Feedback.rating == rating)
        query = apply_period(query, Feedback.created_at, period)
        query = query.order_by(Feedback.created_at.desc())
        if limit:
            query = query.limit(limit)
        return query.all()

    def stats_for_doctor(self, ctx: SessionContext) -> FeedbackStats:
        return compute_stats(self.list_for_doctor(ctx))
