"""
Client & Element Schemas
"""

from pydantic import Field
from typing import List, Optional
from uuid import UUID
from datetime import datetime

from app.schemas.common import CamelModel, Pagination


class ElementCreate(CamelModel):
    name: str = Field(..., min_length=1, max_length=255)
    standard_rate: float = Field(0, ge=0)
    is_active: bool = True


class ElementUpdate(CamelModel):
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    standard_rate: Optional[float] = Field(None, ge=0)
    is_active: Optional[bool] = None


class ElementResponse(CamelModel):
    id: UUID
    name: str
    standard_rate: float
    is_active: bool
    created_at: datetime
    updated_at: datetime


class ElementListResponse(CamelModel):
    elements: List[ElementResponse]
    pagination: Pagination


class ClientElement(CamelModel):
    """Per-client rate for a catalogue element."""
    element_id: Optional[str] = None
    element_name: str
    custom_rate: float = Field(0, ge=0)
    quantity: float = Field(1, ge=0)


class ClientCreate(CamelModel):
    client_name: str = Field(..., min_length=1, max_length=255)
    branch_name: str = Field(..., min_length=1, max_length=255)
    amount: float = Field(0, ge=0)
    gst_number: Optional[str] = Field(None, max_length=50)
    elements: List[ClientElement] = Field(default_factory=list)
    is_active: bool = True


class ClientUpdate(CamelModel):
    client_name: Optional[str] = Field(None, min_length=1, max_length=255)
    branch_name: Optional[str] = Field(None, min_length=1, max_length=255)
    amount: Optional[float] = Field(None, ge=0)
    gst_number: Optional[str] = Field(None, max_length=50)
    elements: Optional[List[ClientElement]] = None
    is_active: Optional[bool] = None


class ClientResponse(CamelModel):
    id: UUID
    client_code: str
    client_name: str
    branch_name: str
    amount: float
    gst_number: Optional[str] = None
    elements: List[ClientElement] = Field(default_factory=list)
    is_active: bool
    created_at: datetime
    updated_at: datetime


class ClientListResponse(CamelModel):
    clients: List[ClientResponse]
    pagination: Pagination
