"""
Role Endpoints
Roles and their permission matrices.
"""

from typing import List
from uuid import UUID

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from app.api.v1.deps import file_download, require_permission
from app.core.permissions import AuthenticatedUser
from app.db.session import get_db
from app.schemas.common import MessageResponse
from app.schemas.role import RoleCreate, RoleResponse, RoleUpdate
from app.services import excel_reports, user_service
from app.services.spreadsheets import XLSX_MEDIA_TYPE


router = APIRouter()


@router.get("", response_model=List[RoleResponse])
def list_roles(
    db: Session = Depends(get_db),
    _: AuthenticatedUser = Depends(require_permission("roles", "view")),
):
    return user_service.list_roles(db)


@router.post("", response_model=RoleResponse, status_code=status.HTTP_201_CREATED)
def create_role(
    data: RoleCreate,
    db: Session = Depends(get_db),
    _: AuthenticatedUser = Depends(require_permission("roles", "create")),
):
    return user_service.create_role(db, data)


@router.get("/export")
def export_roles(
    db: Session = Depends(get_db),
    _: AuthenticatedUser = Depends(require_permission("roles", "view")),
):
    content = excel_reports.roles_export(user_service.list_roles(db))
    return file_download(content, "roles.xlsx", XLSX_MEDIA_TYPE)


@router.get("/{role_id}", response_model=RoleResponse)
def get_role(
    role_id: UUID,
    db: Session = Depends(get_db),
    _: AuthenticatedUser = Depends(require_permission("roles", "view")),
):
    return user_service.get_role(db, role_id)


@router.put("/{role_id}", response_model=RoleResponse)
def update_role(
    role_id: UUID,
    data: RoleUpdate,
    db: Session = Depends(get_db),
    _: AuthenticatedUser = Depends(require_permission("roles", "edit")),
):
    role = user_service.get_role(db, role_id)
    return user_service.update_role(db, role, data)


@router.delete("/{role_id}", response_model=MessageResponse)
def delete_role(
    role_id: UUID,
    db: Session = Depends(get_db),
    _: AuthenticatedUser = Depends(require_permission("roles", "delete")),
):
    """A role still attached to users cannot be deleted (400)."""
    role = user_service.get_role(db, role_id)
    user_service.delete_role(db, role)
    return MessageResponse(message="Role deleted successfully")
