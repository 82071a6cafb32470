"""
Error taxonomy shared by the services and the HTTP layer.

Three families are distinguished so callers can react differently:

* validation errors - the input itself is missing or malformed; the user
  fixes the form and tries again;
* policy violations - the input is well formed but a business rule refuses
  it (daily cap, duplicate feedback, illegal status change);
* backend failures - the store could not complete the request; nothing is
  retried automatically.
"""
from fastapi import HTTPException, status


class DomainError(HTTPException):
    error_type = "error"

    def __init__(self, detail: str, status_code: int):
        super().__init__(status_code=status_code, detail=detail)


class InputValidationError(DomainError):
    error_type = "validation_error"

    def __init__(self, detail: str = "Invalid input"):
        super().__init__(detail, status.HTTP_422_UNPROCESSABLE_ENTITY)


class PolicyViolationError(DomainError):
    error_type = "policy_violation"

    def __init__(self, detail: str = "Request violates a business rule"):
        super().__init__(detail, status.HTTP_409_CONFLICT)


class InvalidTransitionError(PolicyViolationError):
    def __init__(self, current, target):
        self.current = current
        self.target = target
        super().__init__(
            f"Cannot change appointment status from '{current.value}' to '{target.value}'"
        )


class DailyLimitExceededError(PolicyViolationError):
    def __init__(self, limit: int):
        self.limit = limit
        super().__init__(f"You can only book a maximum of {limit} appointments per day")


class BookingConflictError(PolicyViolationError):
    def __init__(self):
        super().__init__("Another booking for this day was made at the same time. Please try again.")


class NotFoundError(DomainError):
    error_type = "not_found"

    def __init__(self, detail: str = "Resource not found"):
        super().__init__(detail, status.HTTP_404_NOT_FOUND)


class BackendFailureError(DomainError):
    error_type = "backend_failure"

    def __init__(self, detail: str = "The request could not be completed. Please try again."):
        super().__init__(detail, status.HTTP_503_SERVICE_UNAVAILABLE)
