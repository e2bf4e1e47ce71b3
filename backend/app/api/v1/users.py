"""
User Endpoints
User management, bulk import and per-user store assignment by spreadsheet.

Endpoints:
- GET    /users - Paginated list (search on name/email, filter by role)
- POST   /users - Create user
- GET    /users/export - Excel export
- GET    /users/template - Bulk upload template
- POST   /users/upload - Bulk create from Excel
- GET    /users/role/{role_code} - Active users holding a role
- GET    /users/{user_id} - Single user
- PUT    /users/{user_id} - Update user
- DELETE /users/{user_id} - Delete user
- POST   /users/{user_id}/bulk-assign-stores - Assign stores listed in a sheet
"""

import logging
from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, File, Query, UploadFile, status
from sqlalchemy.orm import Session

from app.api.v1.deps import file_download, read_upload_files, require_admin, require_permission
from app.core.constants import DEFAULT_PAGE_SIZE
from app.core.permissions import AuthenticatedUser
from app.db.session import get_db
from app.models.user import User
from app.schemas.common import BulkReportResponse, MessageResponse, Pagination
from app.schemas.user import UserCreate, UserListResponse, UserResponse, UserUpdate
from app.services import excel_reports, user_service, workflow
from app.services.bulk_report import BulkReport
from app.services.spreadsheets import XLSX_MEDIA_TYPE, SpreadsheetError, read_rows


logger = logging.getLogger("users")

router = APIRouter()


@router.get("", response_model=UserListResponse)
def list_users(
    page: int = Query(1, ge=1),
    limit: int = Query(DEFAULT_PAGE_SIZE, ge=1),
    search: Optional[str] = Query(None, description="Match on name or email"),
    role: Optional[str] = Query(None, description="Role code filter"),
    db: Session = Depends(get_db),
    _: AuthenticatedUser = Depends(require_permission("users", "view")),
):
    users, pagination = user_service.list_users(db, page, limit, search, role)
    return UserListResponse(
        users=[UserResponse.model_validate(u) for u in users],
        pagination=Pagination(**pagination),
    )


@router.post("", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
def create_user(
    data: UserCreate,
    db: Session = Depends(get_db),
    _: AuthenticatedUser = Depends(require_permission("users", "create")),
):
    return user_service.create_user(db, data)


@router.get("/export")
def export_users(
    db: Session = Depends(get_db),
    _: AuthenticatedUser = Depends(require_permission("users", "view")),
):
    users = db.query(User).order_by(User.name).all()
    return file_download(excel_reports.users_export(users), "users.xlsx", XLSX_MEDIA_TYPE)


@router.get("/template")
def user_template(_: AuthenticatedUser = Depends(require_permission("users", "create"))):
    return file_download(excel_reports.users_template(), "user_upload_template.xlsx", XLSX_MEDIA_TYPE)


@router.post("/upload", response_model=BulkReportResponse, status_code=status.HTTP_201_CREATED)
async def upload_users(
    files: List[UploadFile] = File(...),
    db: Session = Depends(get_db),
    _: AuthenticatedUser = Depends(require_permission("users", "create")),
):
    """Create users from one or more sheets; row problems are reported, not raised."""
    contents = await read_upload_files(files)
    report = user_service.import_users(db, contents)
    return report.summary("User upload completed")


@router.get("/role/{role_code}", response_model=List[UserResponse])
def users_by_role(
    role_code: str,
    db: Session = Depends(get_db),
    _: AuthenticatedUser = Depends(require_admin),
):
    """Pick-list for assignment screens, e.g. /users/role/RECCE."""
    return user_service.users_with_role(db, role_code)


@router.get("/{user_id}", response_model=UserResponse)
def get_user(
    user_id: UUID,
    db: Session = Depends(get_db),
    _: AuthenticatedUser = Depends(require_permission("users", "view")),
):
    return user_service.get_user(db, user_id)


@router.put("/{user_id}", response_model=UserResponse)
def update_user(
    user_id: UUID,
    data: UserUpdate,
    db: Session = Depends(get_db),
    _: AuthenticatedUser = Depends(require_permission("users", "edit")),
):
    user = user_service.get_user(db, user_id)
    return user_service.update_user(db, user, data)


@router.delete("/{user_id}", response_model=MessageResponse)
def delete_user(
    user_id: UUID,
    db: Session = Depends(get_db),
    _: AuthenticatedUser = Depends(require_permission("users", "delete")),
):
    user = user_service.get_user(db, user_id)
    user_service.delete_user(db, user)
    return MessageResponse(message="User deleted successfully")


@router.post("/{user_id}/bulk-assign-stores", response_model=BulkReportResponse)
async def bulk_assign_stores(
    user_id: UUID,
    files: List[UploadFile] = File(...),
    db: Session = Depends(get_db),
    actor: AuthenticatedUser = Depends(require_permission("stores", "edit")),
):
    """
    Assign the stores listed in the uploaded sheets to this user.

    Sheets carry "Store ID", optional "Client Code" and an informational
    "Status" column. The stage follows the user's role: RECCE users get
    recce assignments, INSTALLATION users installation assignments. Each
    row is checked against the store's current status and rejected rows are
    listed in the response.
    """
    assignee = user_service.get_user(db, user_id)
    workflow.stage_for_user(assignee)
    contents = await read_upload_files(files)

    report = BulkReport()
    for filename, content in contents:
        try:
            rows = read_rows(content)
        except SpreadsheetError as exc:
            report.failed(f"Parsing Error: {exc.message}", file=filename, counted=False)
            continue
        workflow.assign_from_sheet(db, rows, assignee, actor, report=report, file=filename)

    return report.summary(f"Bulk assignment completed for {assignee.name}")
