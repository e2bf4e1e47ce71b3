"""
Error Log Model
Persists unexpected server errors so administrators can inspect them
without shell access to the log files.
"""

from sqlalchemy import Boolean, Column, DateTime, JSON, String, Text
from sqlalchemy.dialects.postgresql import UUID
from datetime import datetime, timezone

from app.models.base import BaseModel


class ErrorLog(BaseModel):
    __tablename__ = "error_logs"

    occurred_at = Column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
        index=True
    )

    # Classification
    error_type = Column(String(255), nullable=False, index=True)  # e.g. "KeyError"
    status_code = Column(String(10), nullable=True)
    severity = Column(String(20), default="error", nullable=False)  # warning, error, critical

    # Where it was raised
    module = Column(String(255), nullable=True)
    function = Column(String(255), nullable=True)
    line_number = Column(String(20), nullable=True)

    # Who and what
    user_id = Column(UUID(as_uuid=True), nullable=True, index=True)
    user_email = Column(String(255), nullable=True)
    request_method = Column(String(10), nullable=True)
    request_path = Column(String(500), nullable=True)
    request_query = Column(Text, nullable=True)
    client_ip = Column(String(50), nullable=True)
    user_agent = Column(String(500), nullable=True)

    message = Column(Text, nullable=False)
    stack_trace = Column(Text, nullable=True)
    context_data = Column(JSON, nullable=True)  # Sanitized extra data

    # Resolution tracking
    resolved = Column(Boolean, default=False, nullable=False)
    resolved_at = Column(DateTime(timezone=True), nullable=True)
    resolved_by = Column(UUID(as_uuid=True), nullable=True)
    resolution_notes = Column(Text, nullable=True)

    def __repr__(self):
        return f"<ErrorLog(id={self.id}, type={self.error_type})>"
