from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ...core.database import get_db
from ...core.session import SessionContext
from ...api.deps import get_doctor_context, get_patient_context
from ...services.dashboard_service import DashboardService
from ...schemas.dashboard import PatientDashboard, DoctorDashboard

router = APIRouter(prefix="/dashboard", tags=["Dashboard"])

@router.get("/patient", response_model=PatientDashboard)
async def patient_dashboard(
    db: Session = Depends(get_db),
    ctx: SessionContext = Depends(get_patient_context)
):
    return DashboardService(db).patient_dashboard(ctx)

@router.get("/doctor", response_model=DoctorDashboard)
async def doctor_dashboard(
    db: Session = Depends(get_db),
    ctx: SessionContext = Depends(get_doctor_context)
):
    return DashboardService(db).doctor_dashboard(ctx)
