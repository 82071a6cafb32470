from pydantic import BaseModel, ConfigDict, field_validator
from typing import List, Optional
from datetime import datetime

class Medication(BaseModel):
    name: str = ""
    dosage: str = ""
    frequency: str = ""
    duration: str = ""
    instructions: str = ""

    @field_validator("name", "dosage", "frequency", "duration", "instructions", mode="before")
    @classmethod
    def none_to_empty(cls, value):
        return "" if value is None else value

class PrescriptionDraft(BaseModel):
    """Prescription body without the appointment reference."""
    diagnosis: str = ""
    medications: List[Medication] = []
    notes: Optional[str] = ""

class PrescriptionCreate(PrescriptionDraft):
    appointment_id: str
    patient_id: Optional[str] = None

class PrescriptionResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    appointment_id: str
    patient_id: str
    patient_name: str
    doctor_id: str
    doctor_name: str
    diagnosis: str
    medications: List[Medication]
    notes: str
    created_at: datetime
