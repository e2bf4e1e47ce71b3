"""
Store Model
Represents a dealer location that goes through the branding workflow:
bulk upload -> recce assignment -> recce submission/review ->
installation assignment -> installation submission.

The workflow status lives on the store row itself. Transitions are applied
exclusively by app.services.workflow.
"""

from sqlalchemy import Column, DateTime, Enum as SQLEnum, ForeignKey, JSON, String, Text
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship
import enum

from app.models.base import BaseModel


class StoreStatus(str, enum.Enum):
    """Workflow status of a store."""
    UPLOADED = "UPLOADED"                              # Created by spreadsheet import
    MANUALLY_ADDED = "MANUALLY_ADDED"                  # Created through POST /stores
    RECCE_ASSIGNED = "RECCE_ASSIGNED"
    RECCE_SUBMITTED = "RECCE_SUBMITTED"
    RECCE_APPROVED = "RECCE_APPROVED"
    RECCE_REJECTED = "RECCE_REJECTED"
    INSTALLATION_ASSIGNED = "INSTALLATION_ASSIGNED"
    INSTALLATION_SUBMITTED = "INSTALLATION_SUBMITTED"
    COMPLETED = "COMPLETED"                            # Terminal


class Store(BaseModel):
    """
    Store Model

    Identity:
        dealer_code: externally supplied, unique
        store_id: derived from city + district + dealer code prefixes

    Recce payload (JSON):
        recce_initial_photos: ["uploads/initial/...jpg", ...]
        recce_photos: [
            {"photo": "...", "width": 10.0, "height": 8.0, "unit": "ft",
             "elements": [{"elementId": "...", "elementName": "Flex", "quantity": 1}]}
        ]

    Installation payload (JSON):
        installation_photos: [{"reccePhotoIndex": 0, "photo": "..."}]
    """
    __tablename__ = "stores"

    # Identity
    project_id = Column(String(50), nullable=True)  # "Sr. No." column of the import sheet
    dealer_code = Column(String(100), unique=True, nullable=False, index=True)
    store_id = Column(String(120), nullable=True, index=True)
    store_code = Column(String(255), nullable=True)  # "Vendor Code & Name"
    vendor_code = Column(String(100), nullable=True)
    store_name = Column(String(255), nullable=True, index=True)

    # Client link
    client_code = Column(String(50), nullable=True, index=True)
    client_id = Column(
        UUID(as_uuid=True),
        ForeignKey("clients.id", ondelete="SET NULL"),
        nullable=True
    )

    # Location
    zone = Column(String(100), nullable=True)
    state = Column(String(100), nullable=True)
    district = Column(String(100), nullable=True)
    city = Column(String(100), nullable=True, index=True)
    area = Column(String(255), nullable=True)
    address = Column(Text, nullable=True)

    # Contact
    contact_person = Column(String(255), nullable=True)
    contact_mobile = Column(String(20), nullable=True)

    # Board specs
    board_size = Column(String(50), nullable=True)  # "W x H"
    board_type = Column(String(100), nullable=True)

    current_status = Column(
        SQLEnum(StoreStatus),
        default=StoreStatus.UPLOADED,
        nullable=False,
        index=True
    )

    # Recce assignment
    recce_assigned_to = Column(UUID(as_uuid=True), ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True)
    recce_assigned_by = Column(UUID(as_uuid=True), ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    recce_assigned_date = Column(DateTime(timezone=True), nullable=True)

    # Installation assignment
    installation_assigned_to = Column(UUID(as_uuid=True), ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True)
    installation_assigned_by = Column(UUID(as_uuid=True), ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    installation_assigned_date = Column(DateTime(timezone=True), nullable=True)

    # Recce submission
    recce_submitted_date = Column(DateTime(timezone=True), nullable=True)
    recce_submitted_by = Column(String(255), nullable=True)
    recce_notes = Column(Text, nullable=True)
    recce_initial_photos = Column(JSON, default=list, nullable=False)
    recce_photos = Column(JSON, default=list, nullable=False)

    # Installation submission
    installation_submitted_date = Column(DateTime(timezone=True), nullable=True)
    installation_submitted_by = Column(String(255), nullable=True)
    installation_photos = Column(JSON, default=list, nullable=False)

    # Relationships
    client = relationship("Client", foreign_keys=[client_id])
    recce_assignee = relationship("User", foreign_keys=[recce_assigned_to])
    recce_assigner = relationship("User", foreign_keys=[recce_assigned_by])
    installation_assignee = relationship("User", foreign_keys=[installation_assigned_to])
    installation_assigner = relationship("User", foreign_keys=[installation_assigned_by])

    @property
    def display_name(self) -> str:
        return self.store_name or self.dealer_code

    @property
    def has_recce(self) -> bool:
        return self.recce_submitted_date is not None

    @property
    def has_installation(self) -> bool:
        return self.installation_submitted_date is not None

    def __repr__(self):
        return f"<Store(dealer_code={self.dealer_code}, status={self.current_status})>"
