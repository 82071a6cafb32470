from pydantic import BaseModel, ConfigDict, computed_field, field_validator
from typing import List, Optional
import datetime as dt

from ..models.appointment import AppointmentStatus, allowed_transitions
from .prescription import PrescriptionDraft

class AppointmentCreate(BaseModel):
    # Required fields are checked by the booking policy so that every
    # rejection carries the same error shape.
    doctor_id: Optional[str] = None
    date: Optional[dt.date] = None
    time: Optional[str] = None
    note: Optional[str] = ""

    @field_validator("note")
    @classmethod
    def normalise_note(cls, value: Optional[str]) -> str:
        return (value or "").strip()

class StatusUpdate(BaseModel):
    status: AppointmentStatus

class AppointmentComplete(BaseModel):
    prescription: Optional[PrescriptionDraft] = None

class AppointmentResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    patient_id: str
    patient_name: str
    doctor_id: str
    doctor_name: str
    date: dt.date
    time: str
    note: str
    status: AppointmentStatus
    created_at: dt.datetime

    @computed_field
    @property
    def allowed_transitions(self) -> List[AppointmentStatus]:
        return allowed_transitions(self.status)

class DailyBookingCount(BaseModel):
    date: dt.date
    count: int
    limit: int
    remaining: int
