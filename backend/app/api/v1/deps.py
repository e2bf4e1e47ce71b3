"""
API Dependencies
Common dependencies used across API endpoints.

This module provides:
- Database session management
- Caller authentication (Bearer header or access_token cookie)
- Permission and role checks
- The storage service

Dependencies are injected into FastAPI endpoints using Depends().
"""

from functools import lru_cache
from typing import List, Optional, Tuple

from fastapi import Depends, HTTPException, Request, Response, UploadFile, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.constants import ACCESS_TOKEN_COOKIE, RoleCode
from app.core.permissions import AuthenticatedUser, principal_from_user
from app.db.session import get_db
from app.models.user import User
from app.services.auth_service import get_user_by_id, user_id_from_token
from app.services.storage import StorageConfig, StorageService


# auto_error=False: the token may come from the cookie instead
bearer_scheme = HTTPBearer(auto_error=False)


def get_current_user(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    db: Session = Depends(get_db),
) -> User:
    """
    Resolve the caller's User from the access token.

    The token is read from "Authorization: Bearer <token>" first, then from
    the access_token cookie set at login.

    Raises:
        HTTPException 401: No token, or the token is invalid or expired
        HTTPException 403: The account is inactive (SUPER_ADMIN is exempt)
    """
    token = credentials.credentials if credentials else request.cookies.get(ACCESS_TOKEN_COOKIE)
    if not token:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )

    user_id = user_id_from_token(token, "access")
    user = get_user_by_id(db, user_id) if user_id else None
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
            headers={"WWW-Authenticate": "Bearer"},
        )

    if not user.is_active and not user.is_super_admin:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Account is inactive")

    return user


def get_principal(request: Request, user: User = Depends(get_current_user)) -> AuthenticatedUser:
    """The caller as passed to services. Also kept on request.state for error logs."""
    principal = principal_from_user(user)
    request.state.user = principal
    return principal


def require_permission(module: str, action: str):
    """
    Dependency factory: the caller must be SUPER_ADMIN or hold a role
    granting action on module.

    Usage:
        @router.post("", dependencies=[Depends(require_permission("stores", "create"))])
    """

    def checker(principal: AuthenticatedUser = Depends(get_principal)) -> AuthenticatedUser:
        if not principal.can(module, action):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"You do not have permission to {action} {module}",
            )
        return principal

    return checker


def require_roles(*roles: RoleCode):
    """Dependency factory: the caller must hold at least one of roles."""
    wanted = frozenset(roles)

    def checker(principal: AuthenticatedUser = Depends(get_principal)) -> AuthenticatedUser:
        if not (principal.roles & wanted):
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Access denied")
        return principal

    return checker


require_admin = require_roles(RoleCode.SUPER_ADMIN, RoleCode.ADMIN)
require_super_admin = require_roles(RoleCode.SUPER_ADMIN)


@lru_cache
def get_storage() -> StorageService:
    """Process-wide storage service built from settings."""
    return StorageService(StorageConfig.from_settings(settings))


# ============================================================================
# File helpers
# ============================================================================

async def read_upload_files(files: List[UploadFile]) -> List[Tuple[str, bytes]]:
    """(filename, content) for every uploaded file; 400 when none were sent."""
    uploads = [f for f in files or [] if f.filename]
    if not uploads:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="No files uploaded")
    return [(f.filename, await f.read()) for f in uploads]


def file_download(content: bytes, filename: str, media_type: str) -> Response:
    return Response(
        content=content,
        media_type=media_type,
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )
