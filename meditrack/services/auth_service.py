from sqlalchemy.orm import Session
from fastapi import HTTPException, status
from datetime import datetime, timedelta
from typing import List, Optional
import hashlib
import time
import logging

from ..models.user import User, RefreshToken
from ..core.config import settings
from ..core.errors import InputValidationError
from ..core.security import (
    verify_password, get_password_hash, create_token_pair,
    verify_token, TokenPayload, UserRole
)
from ..schemas.auth import UserLogin, UserRegister, TokenResponse, UserResponse

logger = logging.getLogger(__name__)

REVOKED_TOKEN_PREFIX = "revoked_token:"

def _hash_token(token: str) -> str:
    return hashlib.sha256(token.encode()).hexdigest()

def is_token_revoked(redis_client, jti: Optional[str]) -> bool:
    """True if the access token was presented at logout."""
    if not jti or redis_client is None:
        return False
    return bool(redis_client.exists(f"{REVOKED_TOKEN_PREFIX}{jti}"))

class AuthService:
    def __init__(self, db: Session, redis_client=None):
        self.db = db
        self.redis = redis_client

    def register_user(self, user_data: UserRegister) -> User:
        """Register a new user."""
        email = user_data.email.lower()
        domain = settings.ALLOWED_EMAIL_DOMAIN.lower().lstrip("@")
        if not email.endswith("@" + domain):
            raise InputValidationError(f"Registration requires an @{domain} email address")

        # Check if user already exists
        existing_user = self.db.query(User).filter(User.email == email).first()
        if existing_user:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Email already registered"
            )

        new_user = User(
            name=user_data.name,
            email=email,
            password_hash=get_password_hash(user_data.password),
            role=user_data.role,
            is_active=True,
        )

        self.db.add(new_user)
        self.db.commit()
        self.db.refresh(new_user)

        logger.info("Registered %s %s", new_user.role.value, new_user.id)
        return new_user

    def authenticate_user(self, login_data: UserLogin) -> TokenResponse:
        """Authenticate user and return tokens."""
        email = login_data.email.lower()
        user = self.db.query(User).filter(User.email == email).first()

        if not user:
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Invalid email or password"
            )

        # Check account lockout
        if user.locked_until:
            if user.locked_until > datetime.utcnow():
                raise HTTPException(
                    status_code=status.HTTP_423_LOCKED,
                    detail="Account is temporarily locked"
                )
            # Lock expired: the next lockout needs a fresh run of failures
            user.failed_login_attempts = 0
            user.locked_until = None

        if not verify_password(login_data.password, user.password_hash):
            self._handle_failed_login(user)
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Invalid email or password"
            )

        if not user.is_active:
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Account is deactivated"
            )

        user.failed_login_attempts = 0
        user.locked_until = None
        user.last_login = datetime.utcnow()

        tokens = create_token_pair(user.id, user.email, user.role)
        self._store_refresh_token(user.id, tokens.refresh_token)

        self.db.commit()

        return TokenResponse(
            access_token=tokens.access_token,
            refresh_token=tokens.refresh_token,
            token_type=tokens.token_type,
            expires_in=tokens.expires_in,
            user=UserResponse.model_validate(user)
        )

    def refresh_access_token(self, refresh_token: str) -> TokenResponse:
        """Refresh access token using refresh token."""
        token_payload = verify_token(refresh_token)
        if not token_payload or token_payload.token_type != "refresh":
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Invalid refresh token"
            )

        stored_token = self.db.query(RefreshToken).filter(
            RefreshToken.token_hash == _hash_token(refresh_token),
            RefreshToken.is_revoked == False,  # noqa: E712
            RefreshToken.expires_at > datetime.utcnow()
        ).first()

        if not stored_token:
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Invalid or expired refresh token"
            )

        user = self.db.query(User).filter(User.id == token_payload.sub).first()
        if not user or not user.is_active:
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="User not found or inactive"
            )

        new_tokens = create_token_pair(user.id, user.email, user.role)

        # Rotation: the presented token is revoked along with any others
        self._store_refresh_token(user.id, new_tokens.refresh_token)

        self.db.commit()

        return TokenResponse(
            access_token=new_tokens.access_token,
            refresh_token=new_tokens.refresh_token,
            token_type=new_tokens.token_type,
            expires_in=new_tokens.expires_in,
            user=UserResponse.model_validate(user)
        )

    def logout_user(self, refresh_token: str, access_payload: Optional[TokenPayload] = None) -> bool:
        """Revoke the refresh token and deny the access token until it expires."""
        stored_token = self.db.query(RefreshToken).filter(
            RefreshToken.token_hash == _hash_token(refresh_token)
        ).first()

        revoked = False
        if stored_token and not stored_token.is_revoked:
            if access_payload is None or stored_token.user_id == access_payload.sub:
                stored_token.is_revoked = True
                self.db.commit()
                revoked = True

        if access_payload is not None and access_payload.jti and self.redis is not None:
            ttl = 1
            if access_payload.exp:
                ttl = max(int(access_payload.exp - time.time()), 1)
            self.redis.setex(f"{REVOKED_TOKEN_PREFIX}{access_payload.jti}", ttl, 1)
            logger.info("Session closed for user %s", access_payload.sub)

        return revoked

    def list_doctors(self) -> List[User]:
        return self.db.query(User).filter(
            User.role == UserRole.DOCTOR,
            User.is_active == True  # noqa: E712
        ).order_by(User.name).all()

    def _handle_failed_login(self, user: User):
        """Count a failed attempt and lock the account past the threshold."""
        user.failed_login_attempts = (user.failed_login_attempts or 0) + 1

        if user.failed_login_attempts >= settings.MAX_FAILED_LOGINS:
            user.locked_until = datetime.utcnow() + timedelta(minutes=settings.LOCKOUT_MINUTES)
            logger.warning("Locked account %s after %d failed logins", user.id, user.failed_login_attempts)

        self.db.commit()

    def _store_refresh_token(self, user_id: str, refresh_token: str):
        """Store refresh token in database, revoking the user's earlier sessions."""
        token_payload = verify_token(refresh_token)
        if token_payload and token_payload.exp:
            expires_at = datetime.utcfromtimestamp(token_payload.exp)
        else:
            expires_at = datetime.utcnow() + timedelta(days=settings.REFRESH_TOKEN_EXPIRE_DAYS)

        self.db.query(RefreshToken).filter(
            RefreshToken.user_id == user_id
        ).update({"is_revoked": True})

        self.db.add(RefreshToken(
            user_id=user_id,
            token_hash=_hash_token(refresh_token),
            expires_at=expires_at
        ))
