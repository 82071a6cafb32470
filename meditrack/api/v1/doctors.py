from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from typing import List

from ...core.database import get_db
from ...core.session import SessionContext
from ...api.deps import get_session_context
from ...services.auth_service import AuthService
from ...schemas.auth import DoctorSummary

router = APIRouter(prefix="/doctors", tags=["Doctors"])

@router.get("", response_model=List[DoctorSummary])
async def list_doctors(
    db: Session = Depends(get_db),
    ctx: SessionContext = Depends(get_session_context)
):
    """Doctors a patient can book with."""
    return [DoctorSummary.model_validate(d) for d in AuthService(db).list_doctors()]
