from .user import User, RefreshToken
from .appointment import Appointment, AppointmentStatus
from .prescription import Prescription
from .feedback import Feedback

__all__ = [
    "User", "RefreshToken", "Appointment", "AppointmentStatus",
    "Prescription", "Feedback",
]
