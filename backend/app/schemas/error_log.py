"""
Error Log Schemas
"""

from datetime import datetime
from typing import List, Optional
from uuid import UUID

from app.schemas.common import CamelModel


class ErrorLogSummary(CamelModel):
    id: UUID
    occurred_at: datetime
    error_type: str
    status_code: Optional[str] = None
    severity: str
    message: str
    user_email: Optional[str] = None
    request_method: Optional[str] = None
    request_path: Optional[str] = None
    resolved: bool


class ErrorLogDetail(ErrorLogSummary):
    module: Optional[str] = None
    function: Optional[str] = None
    line_number: Optional[str] = None
    user_id: Optional[UUID] = None
    request_query: Optional[str] = None
    client_ip: Optional[str] = None
    user_agent: Optional[str] = None
    stack_trace: Optional[str] = None
    context_data: Optional[dict] = None
    resolved_at: Optional[datetime] = None
    resolved_by: Optional[UUID] = None
    resolution_notes: Optional[str] = None


class ErrorLogListResponse(CamelModel):
    errors: List[ErrorLogSummary]
    total: int
    limit: int
    offset: int


class ResolveErrorRequest(CamelModel):
    resolution_notes: Optional[str] = None


class ErrorStats(CamelModel):
    total_errors: int
    unresolved_errors: int
    errors_today: int
    errors_by_severity: dict
    top_error_types: List[dict]
