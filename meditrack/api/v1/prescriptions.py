from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session
from typing import List, Optional

from ...core.database import get_db
from ...core.session import SessionContext
from ...api.deps import get_session_context, get_doctor_context, get_patient_context
from ...services.filters import Period
from ...services.prescription_service import PrescriptionService
from ...schemas.prescription import PrescriptionCreate, PrescriptionResponse

router = APIRouter(prefix="/prescriptions", tags=["Prescriptions"])

@router.post("", response_model=PrescriptionResponse, status_code=status.HTTP_201_CREATED)
async def create_prescription(
    data: PrescriptionCreate,
    db: Session = Depends(get_db),
    ctx: SessionContext = Depends(get_doctor_context)
):
    """Issue the prescription for a completed appointment."""
    prescription = PrescriptionService(db).create_prescription(ctx, data)
    return PrescriptionResponse.model_validate(prescription)

@router.get("/mine", response_model=List[PrescriptionResponse])
async def my_prescriptions(
    db: Session = Depends(get_db),
    ctx: SessionContext = Depends(get_patient_context)
):
    return [PrescriptionResponse.model_validate(p) for p in PrescriptionService(db).list_for_patient(ctx)]

@router.get("/issued", response_model=List[PrescriptionResponse])
async def issued_prescriptions(
    search: Optional[str] = None,
    period: Period = Period.ALL,
    db: Session = Depends(get_db),
    ctx: SessionContext = Depends(get_doctor_context)
):
    """Prescriptions written by the calling doctor, filtered by patient name or diagnosis."""
    prescriptions = PrescriptionService(db).list_issued(ctx, search=search, period=period)
    return [PrescriptionResponse.model_validate(p) for p in prescriptions]

@router.get("/{prescription_id}", response_model=PrescriptionResponse)
async def get_prescription(
    prescription_id: str,
    db: Session = Depends(get_db),
    ctx: SessionContext = Depends(get_session_context)
):
    return PrescriptionResponse.model_validate(
        PrescriptionService(db).get_prescription(ctx, prescription_id)
    )
