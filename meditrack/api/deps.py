from fastapi import Depends, HTTPException, status, Request
from fastapi.security import HTTPAuthorizationCredentials
from sqlalchemy.orm import Session

from ..core.config import settings
from ..core.database import get_db, get_redis
from ..core.security import (
    security, verify_token, AuthenticationError,
    AuthorizationError, UserRole, TokenPayload
)
from ..core.session import SessionContext
from ..models.user import User
from ..services.auth_service import is_token_revoked

async def get_current_user_token(
    credentials: HTTPAuthorizationCredentials = Depends(security),
    redis_client = Depends(get_redis)
) -> TokenPayload:
    """Extract and verify JWT token from Authorization header."""
    token_payload = verify_token(credentials.credentials)
    if not token_payload:
        raise AuthenticationError("Invalid or expired token")

    if token_payload.token_type != "access":
        raise AuthenticationError("Invalid token type")

    # Tokens presented at logout stay denied until they expire
    if is_token_revoked(redis_client, token_payload.jti):
        raise AuthenticationError("Session has ended")

    return token_payload

async def get_current_user(
    token_payload: TokenPayload = Depends(get_current_user_token),
    db: Session = Depends(get_db)
) -> User:
    """Get current authenticated user from database."""
    if not token_payload.sub:
        raise AuthenticationError("Invalid token payload")

    user = db.query(User).filter(User.id == token_payload.sub).first()
    if not user:
        raise AuthenticationError("User not found")

    if not user.is_active:
        raise AuthenticationError("User account is deactivated")

    return user

async def get_session_context(
    current_user: User = Depends(get_current_user)
) -> SessionContext:
    """Per-request identity handed explicitly to the services."""
    return SessionContext.from_user(current_user)

# Role-based access control dependencies
def require_role(role: UserRole):
    """Create a dependency that requires a specific user role."""
    async def role_checker(
        ctx: SessionContext = Depends(get_session_context)
    ) -> SessionContext:
        if ctx.role != role:
            raise AuthorizationError(f"Access denied. Required role: {role.value}")
        return ctx

    return role_checker

get_doctor_context = require_role(UserRole.DOCTOR)
get_patient_context = require_role(UserRole.PATIENT)

# Rate limiting dependency
async def rate_limit_check(
    request: Request,
    redis_client = Depends(get_redis)
) -> None:
    """Fixed-window rate limiting for authentication endpoints."""
    client_ip = request.client.host if request.client else "unknown"
    key = f"rate_limit:{request.url.path}:{client_ip}"

    current_requests = redis_client.get(key)
    if current_requests is None:
        redis_client.setex(key, settings.RATE_LIMIT_WINDOW_SECONDS, 1)
    else:
        if int(current_requests) >= settings.RATE_LIMIT_MAX_REQUESTS:
            raise HTTPException(
                status_code=status.HTTP_429_TOO_MANY_REQUESTS,
                detail="Too many requests. Please try again later."
            )
        redis_client.incr(key)
