from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session
from typing import List, Optional

from ...core.database import get_db
from ...core.session import SessionContext
from ...api.deps import get_doctor_context, get_patient_context
from ...services.filters import Period
from ...services.feedback_service import FeedbackService, compute_stats
from ...schemas.appointment import AppointmentResponse
from ...schemas.feedback import (
    FeedbackCreate, FeedbackResponse, FeedbackStats, PatientFeedbackOverview
)

router = APIRouter(prefix="/feedback", tags=["Feedback"])

@router.post("", response_model=FeedbackResponse, status_code=status.HTTP_201_CREATED)
async def submit_feedback(
    data: FeedbackCreate,
    db: Session = Depends(get_db),
    ctx: SessionContext = Depends(get_patient_context)
):
    """Rate a completed appointment; one review per appointment."""
    feedback = FeedbackService(db).submit_feedback(ctx, data)
    return FeedbackResponse.model_validate(feedback)

@router.get("/pending", response_model=List[AppointmentResponse])
async def pending_feedback(
    db: Session = Depends(get_db),
    ctx: SessionContext = Depends(get_patient_context)
):
    """Completed appointments still waiting for the caller's review."""
    appointments = FeedbackService(db).pending_appointments(ctx)
    return [AppointmentResponse.model_validate(a) for a in appointments]

@router.get("/mine", response_model=PatientFeedbackOverview)
async def my_feedback(
    db: Session = Depends(get_db),
    ctx: SessionContext = Depends(get_patient_context)
):
    feedback = FeedbackService(db).list_for_patient(ctx)
    return PatientFeedbackOverview(
        feedback=[FeedbackResponse.model_validate(fb) for fb in feedback],
        stats=compute_stats(feedback),
    )

@router.get("/received", response_model=List[FeedbackResponse])
async def received_feedback(
    rating: Optional[int] = Query(None, ge=1, le=5),
    period: Period = Period.ALL,
    db: Session = Depends(get_db),
    ctx: SessionContext = Depends(get_doctor_context)
):
    feedback = FeedbackService(db).list_for_doctor(ctx, rating=rating, period=period)
    return [FeedbackResponse.model_validate(fb) for fb in feedback]

@router.get("/stats", response_model=FeedbackStats)
async def feedback_stats(
    db: Session = Depends(get_db),
    ctx: SessionContext = Depends(get_doctor_context)
):
    """Aggregate ratings over all of the doctor's feedback."""
    return FeedbackService(db).stats_for_doctor(ctx)
