"""
Authentication Endpoints
Handles login, logout, token refresh and the current user.

Endpoints:
- POST /auth/login - Authenticate, set cookies and return the access token
- POST /auth/logout - Clear the auth cookies
- POST /auth/refresh - New access token from the refresh token
- GET /auth/me - Current user

Cookies set at login:
- access_token: httpOnly, 15 minutes
- refresh_token: httpOnly, 7 days
- session_id: readable by the front-end, 24 hours
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Request, Response, status
from sqlalchemy.orm import Session

from app.api.v1.deps import get_current_user
from app.core.config import settings
from app.core.constants import ACCESS_TOKEN_COOKIE, REFRESH_TOKEN_COOKIE, SESSION_COOKIE
from app.db.session import get_db
from app.models.user import User
from app.schemas.common import MessageResponse
from app.schemas.user import AuthUser, LoginRequest, LoginResponse, RefreshResponse, RefreshTokenRequest
from app.services import auth_service

# Logger for auth events
auth_logger = logging.getLogger("auth")


router = APIRouter()


def _auth_user(user: User) -> AuthUser:
    return AuthUser(id=user.id, name=user.name, email=user.email, roles=user.role_codes)


def _set_cookie(response: Response, key: str, value: str, max_age: int, http_only: bool = True) -> None:
    response.set_cookie(
        key=key,
        value=value,
        max_age=max_age,
        httponly=http_only,
        secure=settings.COOKIE_SECURE,
        samesite="lax",
    )


@router.post(
    "/login",
    response_model=LoginResponse,
    summary="Login user",
    responses={401: {"description": "Invalid credentials"}},
)
def login(
    credentials: LoginRequest,
    request: Request,
    response: Response,
    db: Session = Depends(get_db),
):
    """
    Authenticate with email and password.

    Unknown email, wrong password and inactive accounts all answer 401 with
    the same message. Inactive SUPER_ADMIN accounts may still log in.
    """
    client_ip = request.client.host if request.client else "unknown"
    auth_logger.info(f"LOGIN_ATTEMPT | email={credentials.email} | ip={client_ip}")

    user = auth_service.authenticate_user(db, credentials.email, credentials.password)
    if not user:
        auth_logger.warning(f"LOGIN_FAILED | email={credentials.email} | ip={client_ip} | reason=invalid_credentials")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid credentials",
        )

    user = auth_service.record_login(db, user)
    access_token = auth_service.create_access_token(user.id)
    refresh_token = auth_service.create_refresh_token(user.id)
    session_id = auth_service.session_id_for(user.id)

    _set_cookie(response, ACCESS_TOKEN_COOKIE, access_token, settings.ACCESS_TOKEN_EXPIRATION)
    _set_cookie(response, REFRESH_TOKEN_COOKIE, refresh_token, settings.REFRESH_TOKEN_EXPIRATION)
    _set_cookie(response, SESSION_COOKIE, session_id, settings.SESSION_COOKIE_EXPIRATION, http_only=False)

    auth_logger.info(f"LOGIN_SUCCESS | email={user.email} | user_id={user.id} | ip={client_ip}")
    return LoginResponse(
        message="Login successful",
        token=access_token,
        session_id=session_id,
        user=_auth_user(user),
    )


@router.post("/logout", response_model=MessageResponse, summary="Logout user")
def logout(response: Response):
    for key in (ACCESS_TOKEN_COOKIE, REFRESH_TOKEN_COOKIE, SESSION_COOKIE):
        response.delete_cookie(key)
    return MessageResponse(message="Logout successful")


@router.post(
    "/refresh",
    response_model=RefreshResponse,
    summary="Refresh access token",
    responses={401: {"description": "Missing or invalid refresh token"}, 403: {"description": "Account inactive"}},
)
def refresh(
    request: Request,
    response: Response,
    data: Optional[RefreshTokenRequest] = None,
    db: Session = Depends(get_db),
):
    """
    Issue a new access token.

    The refresh token is read from the refresh_token cookie, or from the
    JSON body for clients that cannot send cookies.
    """
    token = request.cookies.get(REFRESH_TOKEN_COOKIE) or (data.refresh_token if data else None)
    if not token:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Refresh token missing")

    user_id = auth_service.user_id_from_token(token, "refresh")
    user = auth_service.get_user_by_id(db, user_id) if user_id else None
    if user is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid refresh token")
    if not user.is_active and not user.is_super_admin:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Account is inactive")

    access_token = auth_service.create_access_token(user.id)
    _set_cookie(response, ACCESS_TOKEN_COOKIE, access_token, settings.ACCESS_TOKEN_EXPIRATION)
    auth_logger.info(f"TOKEN_REFRESHED | user_id={user.id}")
    return RefreshResponse(message="Token refreshed", token=access_token)


@router.get("/me", response_model=AuthUser, summary="Current user")
def me(current_user: User = Depends(get_current_user)):
    return _auth_user(current_user)
