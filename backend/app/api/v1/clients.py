"""
Client Endpoints
Billing clients with their per-element rates. The client code is generated
from the client and branch names at creation and never changes.
"""

from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from app.api.v1.deps import file_download, require_permission
from app.core.constants import DEFAULT_PAGE_SIZE
from app.core.permissions import AuthenticatedUser
from app.db.session import get_db
from app.models.client import Client
from app.schemas.client import ClientCreate, ClientListResponse, ClientResponse, ClientUpdate
from app.schemas.common import MessageResponse, Pagination
from app.services import client_service, excel_reports
from app.services.spreadsheets import XLSX_MEDIA_TYPE


router = APIRouter()


@router.get("", response_model=ClientListResponse)
def list_clients(
    page: int = Query(1, ge=1),
    limit: int = Query(DEFAULT_PAGE_SIZE, ge=1),
    search: Optional[str] = Query(None, description="Match on name, code or branch"),
    db: Session = Depends(get_db),
    _: AuthenticatedUser = Depends(require_permission("clients", "view")),
):
    clients, pagination = client_service.list_clients(db, page, limit, search)
    return ClientListResponse(
        clients=[ClientResponse.model_validate(c) for c in clients],
        pagination=Pagination(**pagination),
    )


@router.post("", response_model=ClientResponse, status_code=status.HTTP_201_CREATED)
def create_client(
    data: ClientCreate,
    db: Session = Depends(get_db),
    _: AuthenticatedUser = Depends(require_permission("clients", "create")),
):
    return client_service.create_client(db, data)


@router.get("/export")
def export_clients(
    db: Session = Depends(get_db),
    _: AuthenticatedUser = Depends(require_permission("clients", "view")),
):
    clients = db.query(Client).order_by(Client.client_name).all()
    return file_download(excel_reports.clients_export(clients), "clients.xlsx", XLSX_MEDIA_TYPE)


@router.get("/{client_id}", response_model=ClientResponse)
def get_client(
    client_id: UUID,
    db: Session = Depends(get_db),
    _: AuthenticatedUser = Depends(require_permission("clients", "view")),
):
    return client_service.get_client(db, client_id)


@router.put("/{client_id}", response_model=ClientResponse)
def update_client(
    client_id: UUID,
    data: ClientUpdate,
    db: Session = Depends(get_db),
    _: AuthenticatedUser = Depends(require_permission("clients", "edit")),
):
    client = client_service.get_client(db, client_id)
    return client_service.update_client(db, client, data)


@router.delete("/{client_id}", response_model=MessageResponse)
def delete_client(
    client_id: UUID,
    db: Session = Depends(get_db),
    _: AuthenticatedUser = Depends(require_permission("clients", "delete")),
):
    client = client_service.get_client(db, client_id)
    client_service.delete_client(db, client)
    return MessageResponse(message="Client deleted successfully")
