from pydantic import BaseModel, ConfigDict, computed_field
from typing import Dict, List, Optional
from datetime import datetime

RATING_LABELS = {
    1: "Poor",
    2: "Fair",
    3: "Good",
    4: "Very Good",
    5: "Excellent",
}

class FeedbackCreate(BaseModel):
    appointment_id: str
    # 0 means "no star selected" and is rejected by the service
    rating: int = 0
    comment: Optional[str] = ""

class FeedbackResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    appointment_id: str
    patient_id: str
    patient_name: str
    doctor_id: str
    doctor_name: str
    rating: int
    comment: str
    created_at: datetime

    @computed_field
    @property
    def rating_label(self) -> str:
        return RATING_LABELS.get(self.rating, "")

class FeedbackStats(BaseModel):
    total_reviews: int
    average_rating: float
    rating_distribution: Dict[int, int]
    with_comments: int

class PatientFeedbackOverview(BaseModel):
    feedback: List[FeedbackResponse]
    stats: FeedbackStats
