"""
Store Schemas
Pydantic models for Store API request/response validation.
"""

from pydantic import Field, field_validator
from typing import List, Optional
from uuid import UUID
from datetime import datetime

from app.models.store import Store, StoreStatus
from app.schemas.common import CamelModel, Pagination
from app.schemas.user import UserRef


class StoreFields(CamelModel):
    """Descriptive fields shared by create and update."""
    project_id: Optional[str] = Field(None, max_length=50)
    store_code: Optional[str] = Field(None, max_length=255)
    vendor_code: Optional[str] = Field(None, max_length=100)
    store_name: Optional[str] = Field(None, max_length=255)
    client_code: Optional[str] = Field(None, max_length=50)
    zone: Optional[str] = Field(None, max_length=100)
    state: Optional[str] = Field(None, max_length=100)
    district: Optional[str] = Field(None, max_length=100)
    city: Optional[str] = Field(None, max_length=100)
    area: Optional[str] = Field(None, max_length=255)
    address: Optional[str] = None
    contact_person: Optional[str] = Field(None, max_length=255)
    contact_mobile: Optional[str] = Field(None, max_length=20)
    board_size: Optional[str] = Field(None, max_length=50)
    board_type: Optional[str] = Field(None, max_length=100)


class StoreCreate(StoreFields):
    """Schema for creating a store. A missing dealer code is reported as 400 by the service."""
    dealer_code: Optional[str] = Field(None, max_length=100)
    store_id: Optional[str] = Field(None, max_length=120)


class StoreUpdate(StoreFields):
    """
    Schema for updating a store.

    Status, assignment fields and the derived storeId are not editable here;
    they change only through the workflow endpoints.
    """
    dealer_code: Optional[str] = Field(None, min_length=1, max_length=100)


# ---------------------------------------------------------------------------
# Workflow payloads
# ---------------------------------------------------------------------------

class ElementLine(CamelModel):
    element_id: Optional[str] = None
    element_name: str
    quantity: float = 1


class ReccePhotoData(CamelModel):
    """One measured photo in reccePhotosData."""
    width: Optional[float] = None
    height: Optional[float] = None
    unit: str = "ft"
    elements: List[ElementLine] = Field(default_factory=list)

    @field_validator("elements", mode="before")
    @classmethod
    def accept_plain_names(cls, v):
        # ["Flex", {"elementName": "Sunpack", "quantity": 2}]
        if v is None:
            return []
        return [{"elementName": item} if isinstance(item, str) else item for item in v]

    @field_validator("unit", mode="before")
    @classmethod
    def default_unit(cls, v):
        return v or "ft"


class InstallationPhotoData(CamelModel):
    recce_photo_index: int = Field(..., ge=0)


class AssignRequest(CamelModel):
    store_ids: List[UUID] = Field(default_factory=list)
    user_id: Optional[UUID] = None
    stage: str


class UnassignRequest(CamelModel):
    store_ids: List[UUID] = Field(default_factory=list)
    stage: str


class AssignmentResponse(CamelModel):
    message: str
    matched_count: int
    modified_count: int


class RecceReviewRequest(CamelModel):
    status: str
    remarks: Optional[str] = None


class BulkReportRequest(CamelModel):
    """Body of the bulk PPT/PDF endpoints."""
    store_ids: List[UUID] = Field(default_factory=list)
    type: str = "recce"


class RfqRequest(CamelModel):
    store_ids: List[UUID] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# Responses
# ---------------------------------------------------------------------------

class Location(CamelModel):
    zone: Optional[str] = None
    state: Optional[str] = None
    district: Optional[str] = None
    city: Optional[str] = None
    area: Optional[str] = None
    address: Optional[str] = None


class Contact(CamelModel):
    person_name: Optional[str] = None
    mobile: Optional[str] = None


class Specs(CamelModel):
    board_size: Optional[str] = None
    type: Optional[str] = None


class Workflow(CamelModel):
    recce_assigned_to: Optional[UserRef] = None
    recce_assigned_by: Optional[UserRef] = None
    recce_assigned_date: Optional[datetime] = None
    installation_assigned_to: Optional[UserRef] = None
    installation_assigned_by: Optional[UserRef] = None
    installation_assigned_date: Optional[datetime] = None


class ReccePhoto(ReccePhotoData):
    photo: Optional[str] = None


class ReccePayload(CamelModel):
    submitted_date: Optional[datetime] = None
    submitted_by: Optional[str] = None
    notes: Optional[str] = None
    initial_photos: List[str] = Field(default_factory=list)
    recce_photos: List[ReccePhoto] = Field(default_factory=list)


class InstallationPhoto(InstallationPhotoData):
    photo: str


class InstallationPayload(CamelModel):
    submitted_date: Optional[datetime] = None
    submitted_by: Optional[str] = None
    photos: List[InstallationPhoto] = Field(default_factory=list)


class StoreResponse(CamelModel):
    id: UUID
    project_id: Optional[str] = None
    dealer_code: str
    store_id: Optional[str] = None
    store_code: Optional[str] = None
    vendor_code: Optional[str] = None
    store_name: Optional[str] = None
    client_code: Optional[str] = None
    client_id: Optional[UUID] = None
    location: Location
    contact: Contact
    specs: Specs
    current_status: StoreStatus
    workflow: Workflow
    recce: Optional[ReccePayload] = None
    installation: Optional[InstallationPayload] = None
    created_at: datetime
    updated_at: datetime


class StoreEnvelope(CamelModel):
    message: Optional[str] = None
    store: StoreResponse


class StoreListResponse(CamelModel):
    stores: List[StoreResponse]
    pagination: Pagination


def _user_ref(user) -> Optional[UserRef]:
    if user is None:
        return None
    return UserRef(id=user.id, name=user.name, email=user.email)


def build_store_response(store: Store) -> StoreResponse:
    """Flatten the ORM row into the nested store document."""
    recce = None
    if store.recce_submitted_date or store.recce_notes or store.recce_photos or store.recce_initial_photos:
        recce = ReccePayload(
            submitted_date=store.recce_submitted_date,
            submitted_by=store.recce_submitted_by,
            notes=store.recce_notes,
            initial_photos=store.recce_initial_photos or [],
            recce_photos=store.recce_photos or [],
        )
    installation = None
    if store.installation_submitted_date or store.installation_photos:
        installation = InstallationPayload(
            submitted_date=store.installation_submitted_date,
            submitted_by=store.installation_submitted_by,
            photos=store.installation_photos or [],
        )

    return StoreResponse(
        id=store.id,
        project_id=store.project_id,
        dealer_code=store.dealer_code,
        store_id=store.store_id,
        store_code=store.store_code,
        vendor_code=store.vendor_code,
        store_name=store.store_name,
        client_code=store.client_code,
        client_id=store.client_id,
        location=Location(
            zone=store.zone,
            state=store.state,
            district=store.district,
            city=store.city,
            area=store.area,
            address=store.address,
        ),
        contact=Contact(person_name=store.contact_person, mobile=store.contact_mobile),
        specs=Specs(board_size=store.board_size, type=store.board_type),
        current_status=store.current_status,
        workflow=Workflow(
            recce_assigned_to=_user_ref(store.recce_assignee),
            recce_assigned_by=_user_ref(store.recce_assigner),
            recce_assigned_date=store.recce_assigned_date,
            installation_assigned_to=_user_ref(store.installation_assignee),
            installation_assigned_by=_user_ref(store.installation_assigner),
            installation_assigned_date=store.installation_assigned_date,
        ),
        recce=recce,
        installation=installation,
        created_at=store.created_at,
        updated_at=store.updated_at,
    )
