"""
Store Endpoints
Store CRUD, bulk import, assignment, recce and installation submissions,
plus Excel exports and PowerPoint/PDF reports.

Visibility: admins see every store, field users only the stores assigned to
them. A store outside the caller's scope answers 404 everywhere.

Endpoints:
- POST   /stores/upload - Bulk import from Excel
- GET    /stores/template - Bulk upload template
- GET    /stores/export - Excel export of visible stores
- GET    /stores/export/recce - Recce task list
- GET    /stores/export/installation - Installation task list
- POST   /stores/assign - Assign stores to a user for a stage
- POST   /stores/unassign - Clear a stage's assignment
- POST   /stores/ppt/bulk - One deck for many stores
- POST   /stores/pdf/bulk - One PDF for many stores
- POST   /stores/rfq - Request for quotation for selected stores
- GET    /stores - Filtered, paginated list
- POST   /stores - Create a store
- GET    /stores/{id} - Single store
- PUT    /stores/{id} - Update descriptive fields
- DELETE /stores/{id} - Delete
- POST   /stores/{id}/recce - Submit recce (multipart)
- POST   /stores/{id}/recce/review - Approve or reject recce
- POST   /stores/{id}/installation - Submit installation (multipart)
- GET    /stores/{id}/ppt/{recce|installation}
- GET    /stores/{id}/pdf/{recce|installation}
"""

import json
import logging
import re
from datetime import date
from typing import Dict, List, Optional, Tuple
from uuid import UUID

from fastapi import APIRouter, Depends, File, HTTPException, Query, Request, UploadFile, status
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.orm import Session
from starlette.datastructures import UploadFile as FormFile

from app.api.v1.deps import (
    file_download,
    get_principal,
    get_storage,
    read_upload_files,
    require_admin,
    require_permission,
)
from app.core.config import settings
from app.core.constants import ALLOWED_IMAGE_TYPES, DEFAULT_PAGE_SIZE
from app.core.permissions import AuthenticatedUser
from app.db.session import get_db
from app.models.store import Store
from app.schemas.common import BulkReportResponse, MessageResponse, Pagination
from app.schemas.store import (
    AssignmentResponse,
    AssignRequest,
    BulkReportRequest,
    InstallationPhotoData,
    ReccePhotoData,
    RecceReviewRequest,
    RfqRequest,
    StoreCreate,
    StoreEnvelope,
    StoreListResponse,
    StoreResponse,
    StoreUpdate,
    UnassignRequest,
    build_store_response,
)
from app.services import client_service, excel_reports, workflow
from app.services.pdf_reports import PDF_MEDIA_TYPE, bulk_pdf, installation_pdf, recce_pdf
from app.services.ppt_reports import PPTX_MEDIA_TYPE, bulk_deck, installation_deck, recce_deck
from app.services.report_common import REPORT_INSTALLATION, REPORT_RECCE, REPORT_TYPES, ImageLoader, report_filename
from app.services.spreadsheets import XLSX_MEDIA_TYPE
from app.services.storage import StorageService, UploadedFile
from app.services.store_service import StoreService


logger = logging.getLogger("stores")

router = APIRouter()


# ============================================================================
# Multipart helpers
# ============================================================================

async def _image_file(upload: FormFile) -> UploadedFile:
    """Read an image part, enforcing type (400) and size (413)."""
    content_type = (upload.content_type or "").lower()
    if content_type not in ALLOWED_IMAGE_TYPES:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Invalid file type for {upload.filename}. Only JPEG, PNG and WEBP images are allowed.",
        )
    content = await upload.read()
    if len(content) > settings.MAX_UPLOAD_SIZE:
        raise HTTPException(
            status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
            detail=f"File {upload.filename} exceeds the {settings.MAX_UPLOAD_SIZE // (1024 * 1024)} MB limit",
        )
    return UploadedFile(filename=upload.filename or "photo", content=content, content_type=content_type)


async def _indexed_files(form, prefix: str) -> Dict[int, UploadedFile]:
    """{i: file} for parts named <prefix><i>, e.g. reccePhoto0, reccePhoto1."""
    pattern = re.compile(rf"^{re.escape(prefix)}(\d+)$")
    files = {}
    for key, value in form.multi_items():
        match = pattern.match(key)
        if match and isinstance(value, FormFile) and value.filename:
            files[int(match.group(1))] = await _image_file(value)
    return files


def _json_list(raw, field: str) -> Optional[list]:
    if raw is None or raw == "":
        return None
    try:
        value = json.loads(raw)
    except (TypeError, ValueError):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=f"Invalid JSON in {field}")
    if not isinstance(value, list):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=f"{field} must be a list")
    return value


def _validated(model, items: list, field: str) -> list:
    try:
        return [model.model_validate(item) for item in items]
    except PydanticValidationError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=f"Invalid {field}: {exc.errors()[0]['msg']}")


def _envelope(store: Store, message: Optional[str] = None) -> StoreEnvelope:
    return StoreEnvelope(message=message, store=build_store_response(store))


# ============================================================================
# Bulk import, templates and exports
# ============================================================================

@router.post("/upload", response_model=BulkReportResponse, status_code=status.HTTP_201_CREATED)
async def upload_stores(
    files: List[UploadFile] = File(...),
    db: Session = Depends(get_db),
    actor: AuthenticatedUser = Depends(require_permission("stores", "create")),
):
    """
    Import stores from one or more .xlsx files (multipart field "files").

    Rows with a missing dealer code or a dealer code already in the
    database or earlier in this upload are skipped and listed in errors.
    """
    contents = await read_upload_files(files)
    report = StoreService.import_stores(db, contents)
    logger.info(f"STORE_UPLOAD | files={len(contents)} | by={actor.id}")
    return report.summary("Upload completed")


@router.get("/template")
def store_template(_: AuthenticatedUser = Depends(require_permission("stores", "create"))):
    return file_download(excel_reports.store_template(), "store_upload_template.xlsx", XLSX_MEDIA_TYPE)


@router.get("/export")
def export_stores(
    db: Session = Depends(get_db),
    actor: AuthenticatedUser = Depends(require_permission("stores", "view")),
):
    stores = StoreService.visible_query(db, actor).order_by(Store.updated_at.desc()).all()
    filename = f"stores_{date.today().isoformat()}.xlsx"
    return file_download(excel_reports.stores_export(stores), filename, XLSX_MEDIA_TYPE)


@router.get("/export/recce")
def export_recce_tasks(
    db: Session = Depends(get_db),
    actor: AuthenticatedUser = Depends(require_permission("stores", "view")),
):
    query = db.query(Store).filter(Store.recce_assigned_to.isnot(None))
    if not actor.is_admin:
        query = query.filter(Store.recce_assigned_to == actor.id)
    stores = query.order_by(Store.recce_assigned_date.desc()).all()
    return file_download(excel_reports.recce_tasks_export(stores), "recce_tasks.xlsx", XLSX_MEDIA_TYPE)


@router.get("/export/installation")
def export_installation_tasks(
    db: Session = Depends(get_db),
    actor: AuthenticatedUser = Depends(require_permission("stores", "view")),
):
    query = db.query(Store).filter(Store.installation_assigned_to.isnot(None))
    if not actor.is_admin:
        query = query.filter(Store.installation_assigned_to == actor.id)
    stores = query.order_by(Store.installation_assigned_date.desc()).all()
    return file_download(
        excel_reports.installation_tasks_export(stores), "installation_tasks.xlsx", XLSX_MEDIA_TYPE
    )


# ============================================================================
# Assignment
# ============================================================================

@router.post("/assign", response_model=AssignmentResponse)
def assign_stores(
    data: AssignRequest,
    db: Session = Depends(get_db),
    actor: AuthenticatedUser = Depends(require_permission("stores", "edit")),
):
    matched, modified = workflow.assign_stores(db, data.store_ids, data.stage, data.user_id, actor)
    return AssignmentResponse(
        message=f"{modified} store(s) assigned for {data.stage.strip().upper()}",
        matched_count=matched,
        modified_count=modified,
    )


@router.post("/unassign", response_model=AssignmentResponse)
def unassign_stores(
    data: UnassignRequest,
    db: Session = Depends(get_db),
    actor: AuthenticatedUser = Depends(require_permission("stores", "edit")),
):
    matched, modified = workflow.unassign_stores(db, data.store_ids, data.stage, actor)
    return AssignmentResponse(
        message=f"{modified} store(s) unassigned from {data.stage.strip().upper()}",
        matched_count=matched,
        modified_count=modified,
    )


# ============================================================================
# Bulk reports
# ============================================================================

def _report_stores(db: Session, data: BulkReportRequest, actor: AuthenticatedUser) -> Tuple[str, List[Store]]:
    if not data.store_ids:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="No stores selected")
    kind = (data.type or "").strip().lower()
    if kind not in REPORT_TYPES:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid report type. Use recce or installation.",
        )
    stores = StoreService.visible_query(db, actor).filter(Store.id.in_(data.store_ids)).all()
    stores = [s for s in stores if (s.has_recce if kind == REPORT_RECCE else s.has_installation)]
    if not stores:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"No stores with {kind} data found")
    return kind, stores


@router.post("/ppt/bulk")
def bulk_ppt(
    data: BulkReportRequest,
    db: Session = Depends(get_db),
    actor: AuthenticatedUser = Depends(require_permission("stores", "view")),
    storage: StorageService = Depends(get_storage),
):
    kind, stores = _report_stores(db, data, actor)
    with ImageLoader(storage) as loader:
        content = bulk_deck(stores, kind, loader)
    filename = f"{kind}_report_{date.today().isoformat()}.pptx"
    return file_download(content, filename, PPTX_MEDIA_TYPE)


@router.post("/pdf/bulk")
def bulk_pdf_report(
    data: BulkReportRequest,
    db: Session = Depends(get_db),
    actor: AuthenticatedUser = Depends(require_permission("stores", "view")),
    storage: StorageService = Depends(get_storage),
):
    kind, stores = _report_stores(db, data, actor)
    with ImageLoader(storage) as loader:
        content = bulk_pdf(stores, kind, loader)
    filename = f"{kind}_report_{date.today().isoformat()}.pdf"
    return file_download(content, filename, PDF_MEDIA_TYPE)


@router.post("/rfq")
def generate_rfq(
    data: RfqRequest,
    db: Session = Depends(get_db),
    actor: AuthenticatedUser = Depends(require_permission("stores", "view")),
):
    """Request for quotation (.xlsx) priced from the selected stores' client element lines."""
    if not data.store_ids:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="No stores selected")
    stores = StoreService.visible_query(db, actor).filter(Store.id.in_(data.store_ids)).all()
    rfq = client_service.build_rfq(db, stores)
    filename = f"RFQ_{rfq.client.client_code}_{rfq.issued_on.isoformat()}.xlsx"
    return file_download(excel_reports.rfq_workbook(rfq), filename, XLSX_MEDIA_TYPE)


# ============================================================================
# CRUD
# ============================================================================

@router.get("", response_model=StoreListResponse)
def list_stores(
    page: int = Query(1, ge=1),
    limit: int = Query(DEFAULT_PAGE_SIZE, ge=1),
    status_filter: Optional[str] = Query(None, alias="status", description="Status, comma-separated list or ALL"),
    search: Optional[str] = Query(None, description="Store name, dealer code, city, district or area"),
    city: Optional[str] = None,
    db: Session = Depends(get_db),
    actor: AuthenticatedUser = Depends(require_permission("stores", "view")),
):
    stores, pagination = StoreService.list_stores(db, actor, page, limit, status_filter, search, city)
    return StoreListResponse(
        stores=[build_store_response(s) for s in stores],
        pagination=Pagination(**pagination),
    )


@router.post("", response_model=StoreEnvelope, status_code=status.HTTP_201_CREATED)
def create_store(
    data: StoreCreate,
    db: Session = Depends(get_db),
    actor: AuthenticatedUser = Depends(require_permission("stores", "create")),
):
    store = StoreService.create_store(db, data, actor)
    return _envelope(store, "Store created successfully")


@router.get("/{store_id}", response_model=StoreResponse)
def get_store(
    store_id: UUID,
    db: Session = Depends(get_db),
    actor: AuthenticatedUser = Depends(require_permission("stores", "view")),
):
    return build_store_response(StoreService.get_visible(db, store_id, actor))


@router.put("/{store_id}", response_model=StoreEnvelope)
def update_store(
    store_id: UUID,
    data: StoreUpdate,
    db: Session = Depends(get_db),
    actor: AuthenticatedUser = Depends(require_permission("stores", "edit")),
):
    store = StoreService.get_visible(db, store_id, actor)
    store = StoreService.update_store(db, store, data, actor)
    return _envelope(store, "Store updated successfully")


@router.delete("/{store_id}", response_model=MessageResponse)
def delete_store(
    store_id: UUID,
    db: Session = Depends(get_db),
    actor: AuthenticatedUser = Depends(require_permission("stores", "delete")),
    storage: StorageService = Depends(get_storage),
):
    """Delete the store and, best effort, the photos it references."""
    store = StoreService.get_visible(db, store_id, actor)
    references = list(store.recce_initial_photos or [])
    references += [p.get("photo") for p in (store.recce_photos or []) if p.get("photo")]
    references += [p.get("photo") for p in (store.installation_photos or []) if p.get("photo")]

    StoreService.delete_store(db, store, actor)
    removed = sum(1 for reference in references if storage.delete(reference))
    logger.info(f"STORE_FILES_DELETED | store={store_id} | removed={removed} | total={len(references)}")
    return MessageResponse(message="Store deleted successfully")


# ============================================================================
# Recce
# ============================================================================

@router.post("/{store_id}/recce", response_model=StoreEnvelope)
async def submit_recce(
    store_id: UUID,
    request: Request,
    db: Session = Depends(get_db),
    actor: AuthenticatedUser = Depends(get_principal),
    storage: StorageService = Depends(get_storage),
):
    """
    Submit the recce survey (multipart/form-data).

    Fields:
    - notes: free text
    - initialPhoto<i>: site photos before measuring
    - reccePhotosData: JSON list of {width, height, unit, elements}
    - reccePhoto<i>: photo for reccePhotosData[i]
    - width, height, unit: single measurement, used when reccePhotosData is absent
    """
    store = StoreService.get_visible(db, store_id, actor)
    form = await request.form()

    data = _json_list(form.get("reccePhotosData"), "reccePhotosData")
    if data is None and (form.get("width") or form.get("height")):
        data = [{"width": form.get("width") or None, "height": form.get("height") or None,
                 "unit": form.get("unit") or "ft"}]
    measurements = [
        m.model_dump(by_alias=True) for m in _validated(ReccePhotoData, data or [], "reccePhotosData")
    ]

    initial = await _indexed_files(form, "initialPhoto")
    photo_files = await _indexed_files(form, "reccePhoto")

    store = workflow.submit_recce(
        db,
        store,
        actor,
        storage,
        notes=form.get("notes") or None,
        initial_photos=[initial[i] for i in sorted(initial)],
        measurements=measurements,
        photo_files=photo_files,
    )
    return _envelope(store, "Recce submitted successfully")


@router.post("/{store_id}/recce/review", response_model=StoreEnvelope)
def review_recce(
    store_id: UUID,
    data: RecceReviewRequest,
    db: Session = Depends(get_db),
    actor: AuthenticatedUser = Depends(require_admin),
):
    store = StoreService.get_visible(db, store_id, actor)
    store = workflow.review_recce(db, store, data.status, data.remarks, actor)
    return _envelope(store, f"Recce {data.status.strip().lower()} successfully")


# ============================================================================
# Installation
# ============================================================================

@router.post("/{store_id}/installation", response_model=StoreEnvelope)
async def submit_installation(
    store_id: UUID,
    request: Request,
    db: Session = Depends(get_db),
    actor: AuthenticatedUser = Depends(get_principal),
    storage: StorageService = Depends(get_storage),
):
    """
    Submit installation photos (multipart/form-data).

    Fields:
    - installationPhotosData: JSON list of {reccePhotoIndex}
    - installationPhoto<i>: photo for installationPhotosData[i]

    Without installationPhotosData, installationPhoto<i> is paired with
    recce photo i.
    """
    store = StoreService.get_visible(db, store_id, actor)
    form = await request.form()
    files = await _indexed_files(form, "installationPhoto")

    data = _json_list(form.get("installationPhotosData"), "installationPhotosData")
    if data is None:
        pairs = [(i, files[i]) for i in sorted(files)]
    else:
        entries = _validated(InstallationPhotoData, data, "installationPhotosData")
        pairs = [(entry.recce_photo_index, files[i]) for i, entry in enumerate(entries) if i in files]

    if not pairs:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="At least one installation photo is required",
        )

    store = workflow.submit_installation(db, store, actor, storage, pairs)
    return _envelope(store, "Installation submitted successfully")


# ============================================================================
# Per-store reports
# ============================================================================

def _report_store(db: Session, store_id: UUID, kind: str, actor: AuthenticatedUser) -> Store:
    if kind not in REPORT_TYPES:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Unknown report type")
    store = StoreService.get_visible(db, store_id, actor)
    if kind == REPORT_RECCE and not store.has_recce:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="No recce data found for this store")
    if kind == REPORT_INSTALLATION and not store.has_installation:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND, detail="No installation data found for this store"
        )
    return store


@router.get("/{store_id}/ppt/{kind}")
def store_ppt(
    store_id: UUID,
    kind: str,
    db: Session = Depends(get_db),
    actor: AuthenticatedUser = Depends(require_permission("stores", "view")),
    storage: StorageService = Depends(get_storage),
):
    store = _report_store(db, store_id, kind, actor)
    with ImageLoader(storage) as loader:
        content = recce_deck(store, loader) if kind == REPORT_RECCE else installation_deck(store, loader)
    return file_download(content, report_filename(store, kind, "pptx"), PPTX_MEDIA_TYPE)


@router.get("/{store_id}/pdf/{kind}")
def store_pdf(
    store_id: UUID,
    kind: str,
    db: Session = Depends(get_db),
    actor: AuthenticatedUser = Depends(require_permission("stores", "view")),
    storage: StorageService = Depends(get_storage),
):
    store = _report_store(db, store_id, kind, actor)
    with ImageLoader(storage) as loader:
        content = recce_pdf(store, loader) if kind == REPORT_RECCE else installation_pdf(store, loader)
    return file_download(content, report_filename(store, kind, "pdf"), PDF_MEDIA_TYPE)
