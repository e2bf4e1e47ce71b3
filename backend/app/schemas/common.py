"""
Shared Schemas
Base model with camelCase JSON aliases, pagination block and the bulk
operation report returned by every spreadsheet endpoint.
"""

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel
from typing import List, Optional


class CamelModel(BaseModel):
    """
    Base for all API schemas.

    Attributes are snake_case in Python and camelCase on the wire
    (store_id <-> storeId). Requests may use either spelling.
    """
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


class Pagination(CamelModel):
    total: int
    pages: int
    page: int
    limit: int


class MessageResponse(CamelModel):
    message: str


class RowErrorSchema(CamelModel):
    row: Optional[int] = None
    file: Optional[str] = None
    store_id: Optional[str] = None
    error: str


class BulkReportResponse(CamelModel):
    """Summary of a spreadsheet import or assignment."""
    message: str
    total_processed: int
    success_count: int
    error_count: int
    errors: List[RowErrorSchema] = Field(default_factory=list)
