"""
Authentication Service
Handles JWT token creation, verification, and user authentication.

This service provides core authentication functionality:
- JWT token generation (access + refresh tokens)
- Token verification and decoding
- User authentication (login) with login bookkeeping
"""

from datetime import datetime, timedelta, timezone
from typing import Optional
from uuid import UUID

from jose import JWTError, jwt
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.security import verify_password
from app.models.user import User
from app.schemas.user import TokenPayload


# JWT Configuration
# Algorithm used for signing tokens (HS256 = HMAC with SHA-256)
ALGORITHM = "HS256"


# ============================================================================
# JWT Token Functions
# ============================================================================

def _secret_for(token_type: str) -> str:
    return settings.refresh_secret if token_type == "refresh" else settings.SECRET_KEY


def _create_token(user_id: UUID, token_type: str, lifetime_seconds: int) -> str:
    expire = datetime.now(timezone.utc) + timedelta(seconds=lifetime_seconds)
    payload = {
        "sub": str(user_id),  # Subject (user ID)
        "exp": expire,
        "type": token_type,
    }
    return jwt.encode(payload, _secret_for(token_type), algorithm=ALGORITHM)


def create_access_token(user_id: UUID) -> str:
    """
    Create a short-lived (15 minutes by default) access token.

    Sent back as the access_token cookie and in the login body so clients
    can use either the cookie or an Authorization: Bearer header.
    """
    return _create_token(user_id, "access", settings.ACCESS_TOKEN_EXPIRATION)


def create_refresh_token(user_id: UUID) -> str:
    """Create a long-lived (7 days by default) refresh token."""
    return _create_token(user_id, "refresh", settings.REFRESH_TOKEN_EXPIRATION)


def verify_token(token: str, expected_type: str = "access") -> Optional[TokenPayload]:
    """
    Verify and decode a JWT token.

    Validates token signature, expiration, and type.

    Args:
        token: JWT token string to verify
        expected_type: Expected token type ("access" or "refresh")

    Returns:
        TokenPayload if token is valid, None if invalid
    """
    try:
        payload = jwt.decode(token, _secret_for(expected_type), algorithms=[ALGORITHM])

        user_id: str = payload.get("sub")
        token_type: str = payload.get("type")
        exp: int = payload.get("exp")

        if not user_id or not token_type or not exp:
            return None

        if token_type != expected_type:
            return None

        return TokenPayload(sub=user_id, exp=exp, type=token_type)

    except JWTError:
        # Token is invalid (bad signature, expired, malformed, etc.)
        return None


def user_id_from_token(token: Optional[str], expected_type: str = "access") -> Optional[UUID]:
    if not token:
        return None
    payload = verify_token(token, expected_type)
    if payload is None:
        return None
    try:
        return UUID(payload.sub)
    except ValueError:
        return None


def session_id_for(user_id: UUID) -> str:
    """Non-secret session marker readable by the front-end: session_<id>_<epochMillis>."""
    return f"session_{user_id}_{int(datetime.now(timezone.utc).timestamp() * 1000)}"


# ============================================================================
# User Authentication Functions
# ============================================================================

def authenticate_user(db: Session, email: str, password: str) -> Optional[User]:
    """
    Authenticate a user by email and password.

    Inactive users are refused unless they hold SUPER_ADMIN.

    Returns:
        User object if credentials are valid, None otherwise
    """
    user = get_user_by_email(db, email)
    if not user:
        return None

    if not verify_password(password, user.password_hash):
        return None

    if not user.is_active and not user.is_super_admin:
        return None

    return user


def record_login(db: Session, user: User) -> User:
    user.login_count = (user.login_count or 0) + 1
    user.last_login = datetime.now(timezone.utc)
    db.commit()
    db.refresh(user)
    return user


def get_user_by_id(db: Session, user_id: UUID) -> Optional[User]:
    return db.query(User).filter(User.id == user_id).first()


def get_user_by_email(db: Session, email: str) -> Optional[User]:
    """Emails are stored lower-cased."""
    return db.query(User).filter(User.email == email.strip().lower()).first()
