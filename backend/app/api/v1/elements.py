"""
Element Endpoints
Catalogue of billable branding elements.
"""

from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from app.api.v1.deps import require_permission
from app.core.constants import DEFAULT_PAGE_SIZE
from app.core.permissions import AuthenticatedUser
from app.db.session import get_db
from app.schemas.client import ElementCreate, ElementListResponse, ElementResponse, ElementUpdate
from app.schemas.common import MessageResponse, Pagination
from app.services import client_service


router = APIRouter()


@router.get("", response_model=ElementListResponse)
def list_elements(
    page: int = Query(1, ge=1),
    limit: int = Query(DEFAULT_PAGE_SIZE, ge=1),
    search: Optional[str] = None,
    db: Session = Depends(get_db),
    _: AuthenticatedUser = Depends(require_permission("elements", "view")),
):
    elements, pagination = client_service.list_elements(db, page, limit, search)
    return ElementListResponse(
        elements=[ElementResponse.model_validate(e) for e in elements],
        pagination=Pagination(**pagination),
    )


@router.get("/all", response_model=List[ElementResponse])
def all_active_elements(
    db: Session = Depends(get_db),
    _: AuthenticatedUser = Depends(require_permission("elements", "view")),
):
    """Active elements by name, for the recce element picker."""
    return client_service.active_elements(db)


@router.post("", response_model=ElementResponse, status_code=status.HTTP_201_CREATED)
def create_element(
    data: ElementCreate,
    db: Session = Depends(get_db),
    _: AuthenticatedUser = Depends(require_permission("elements", "create")),
):
    return client_service.create_element(db, data)


@router.get("/{element_id}", response_model=ElementResponse)
def get_element(
    element_id: UUID,
    db: Session = Depends(get_db),
    _: AuthenticatedUser = Depends(require_permission("elements", "view")),
):
    return client_service.get_element(db, element_id)


@router.put("/{element_id}", response_model=ElementResponse)
def update_element(
    element_id: UUID,
    data: ElementUpdate,
    db: Session = Depends(get_db),
    _: AuthenticatedUser = Depends(require_permission("elements", "edit")),
):
    element = client_service.get_element(db, element_id)
    return client_service.update_element(db, element, data)


@router.delete("/{element_id}", response_model=MessageResponse)
def delete_element(
    element_id: UUID,
    db: Session = Depends(get_db),
    _: AuthenticatedUser = Depends(require_permission("elements", "delete")),
):
    element = client_service.get_element(db, element_id)
    client_service.delete_element(db, element)
    return MessageResponse(message="Element deleted successfully")
