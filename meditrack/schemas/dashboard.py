from pydantic import BaseModel
from typing import List

from .appointment import AppointmentResponse
from .prescription import PrescriptionResponse
from .feedback import FeedbackResponse

class PatientDashboardStats(BaseModel):
    upcoming: int
    completed: int
    pending: int
    prescriptions: int

class PatientDashboard(BaseModel):
    stats: PatientDashboardStats
    upcoming_appointments: List[AppointmentResponse]
    recent_appointments: List[AppointmentResponse]
    recent_prescriptions: List[PrescriptionResponse]

class DoctorDashboardStats(BaseModel):
    pending: int
    today: int
    completed: int
    average_rating: float

class DoctorDashboard(BaseModel):
    stats: DoctorDashboardStats
    recent_appointments: List[AppointmentResponse]
    recent_feedback: List[FeedbackResponse]
