"""
User & Auth Schemas
Pydantic models for login, token handling and user management.
"""

from pydantic import EmailStr, Field, field_validator
from typing import List, Optional
from uuid import UUID
from datetime import datetime

from app.schemas.common import CamelModel, Pagination
from app.schemas.role import RoleSummary


class LoginRequest(CamelModel):
    """Login credentials."""
    email: EmailStr
    password: str = Field(..., min_length=1)


class RefreshTokenRequest(CamelModel):
    """Optional body for /auth/refresh when the cookie is not available."""
    refresh_token: Optional[str] = None


class TokenPayload(CamelModel):
    """Decoded JWT payload."""
    sub: str  # user id
    exp: int
    type: str  # "access" or "refresh"


class AuthUser(CamelModel):
    """User block returned by login and /auth/me."""
    id: UUID
    name: str
    email: str
    roles: List[str]


class LoginResponse(CamelModel):
    message: str
    token: str
    session_id: str
    user: AuthUser


class RefreshResponse(CamelModel):
    message: str
    token: str


class UserCreate(CamelModel):
    """
    Schema for creating a user.

    roles may contain role ids or role codes, e.g. ["RECCE"].
    """
    name: str = Field(..., min_length=1, max_length=255)
    email: EmailStr
    password: str = Field(..., min_length=6, max_length=100)
    mobile: Optional[str] = Field(None, max_length=20)
    roles: List[str] = Field(default_factory=list)
    is_active: bool = True

    @field_validator("email")
    @classmethod
    def lower_email(cls, v: str) -> str:
        return v.lower()


class UserUpdate(CamelModel):
    """Partial update; a given password is re-hashed."""
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    email: Optional[EmailStr] = None
    password: Optional[str] = Field(None, min_length=6, max_length=100)
    mobile: Optional[str] = Field(None, max_length=20)
    roles: Optional[List[str]] = None
    is_active: Optional[bool] = None

    @field_validator("email")
    @classmethod
    def lower_email(cls, v: Optional[str]) -> Optional[str]:
        return v.lower() if v else v


class UserResponse(CamelModel):
    id: UUID
    name: str
    email: str
    mobile: Optional[str] = None
    is_active: bool
    roles: List[RoleSummary] = Field(default_factory=list)
    login_count: int = 0
    last_login: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime


class UserListResponse(CamelModel):
    users: List[UserResponse]
    pagination: Pagination


class UserRef(CamelModel):
    """Compact user reference embedded in store payloads."""
    id: UUID
    name: str
    email: str
