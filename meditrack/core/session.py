from dataclasses import dataclass

from .security import UserRole

@dataclass(frozen=True)
class SessionContext:
    """Identity of the caller, built once per request and handed to services."""
    user_id: str
    name: str
    email: str
    role: UserRole

    @classmethod
    def from_user(cls, user) -> "SessionContext":
        return cls(user_id=user.id, name=user.name, email=user.email, role=UserRole(user.role))

    @property
    def is_doctor(self) -> bool:
        return self.role == UserRole.DOCTOR

    @property
    def is_patient(self) -> bool:
        return self.role == UserRole.PATIENT
