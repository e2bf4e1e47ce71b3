"""
Error Logs API Endpoints

SUPER_ADMIN-only endpoints for viewing and resolving recorded server errors.
"""

from datetime import date, datetime, timedelta, timezone
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy import func
from sqlalchemy.orm import Session

from app.api.v1.deps import require_super_admin
from app.core.exceptions import NotFoundError
from app.core.permissions import AuthenticatedUser
from app.db.session import get_db
from app.models.error_log import ErrorLog
from app.schemas.error_log import (
    ErrorLogDetail,
    ErrorLogListResponse,
    ErrorLogSummary,
    ErrorStats,
    ResolveErrorRequest,
)


router = APIRouter()


def _get(db: Session, error_id: UUID) -> ErrorLog:
    error = db.query(ErrorLog).filter(ErrorLog.id == error_id).first()
    if error is None:
        raise NotFoundError("Error log not found")
    return error


@router.get("", response_model=ErrorLogListResponse)
def list_error_logs(
    limit: int = Query(50, ge=1, le=100),
    offset: int = Query(0, ge=0),
    severity: Optional[str] = Query(None, description="Filter by severity"),
    error_type: Optional[str] = Query(None, description="Filter by error type"),
    resolved: Optional[bool] = Query(None, description="Filter by resolved flag"),
    db: Session = Depends(get_db),
    _: AuthenticatedUser = Depends(require_super_admin),
):
    """Most recent first; messages are cut to 200 characters."""
    query = db.query(ErrorLog)
    if severity:
        query = query.filter(ErrorLog.severity == severity)
    if error_type:
        query = query.filter(ErrorLog.error_type.ilike(f"%{error_type}%"))
    if resolved is not None:
        query = query.filter(ErrorLog.resolved.is_(resolved))

    total = query.count()
    errors = query.order_by(ErrorLog.occurred_at.desc()).offset(offset).limit(limit).all()

    summaries = []
    for e in errors:
        summary = ErrorLogSummary.model_validate(e)
        if len(summary.message) > 200:
            summary.message = summary.message[:200] + "..."
        summaries.append(summary)
    return ErrorLogListResponse(errors=summaries, total=total, limit=limit, offset=offset)


@router.get("/stats", response_model=ErrorStats)
def error_stats(
    db: Session = Depends(get_db),
    _: AuthenticatedUser = Depends(require_super_admin),
):
    total = db.query(func.count(ErrorLog.id)).scalar() or 0
    unresolved = db.query(func.count(ErrorLog.id)).filter(ErrorLog.resolved.is_(False)).scalar() or 0
    start_of_day = datetime.combine(date.today(), datetime.min.time(), tzinfo=timezone.utc)
    today = db.query(func.count(ErrorLog.id)).filter(ErrorLog.occurred_at >= start_of_day).scalar() or 0

    by_severity = dict(db.query(ErrorLog.severity, func.count(ErrorLog.id)).group_by(ErrorLog.severity).all())

    week_ago = datetime.now(timezone.utc) - timedelta(days=7)
    top_types = (
        db.query(ErrorLog.error_type, func.count(ErrorLog.id))
        .filter(ErrorLog.occurred_at >= week_ago)
        .group_by(ErrorLog.error_type)
        .order_by(func.count(ErrorLog.id).desc())
        .limit(10)
        .all()
    )

    return ErrorStats(
        total_errors=total,
        unresolved_errors=unresolved,
        errors_today=today,
        errors_by_severity=by_severity,
        top_error_types=[{"type": t, "count": c} for t, c in top_types],
    )


@router.get("/{error_id}", response_model=ErrorLogDetail)
def get_error_log(
    error_id: UUID,
    db: Session = Depends(get_db),
    _: AuthenticatedUser = Depends(require_super_admin),
):
    return _get(db, error_id)


@router.post("/{error_id}/resolve", response_model=ErrorLogDetail)
def resolve_error(
    error_id: UUID,
    data: ResolveErrorRequest,
    db: Session = Depends(get_db),
    actor: AuthenticatedUser = Depends(require_super_admin),
):
    error = _get(db, error_id)
    error.resolved = True
    error.resolved_at = datetime.now(timezone.utc)
    error.resolved_by = actor.id
    error.resolution_notes = data.resolution_notes
    db.commit()
    db.refresh(error)
    return error


@router.delete("/{error_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_error_log(
    error_id: UUID,
    db: Session = Depends(get_db),
    _: AuthenticatedUser = Depends(require_super_admin),
):
    db.delete(_get(db, error_id))
    db.commit()


@router.delete("", status_code=status.HTTP_200_OK)
def delete_resolved_errors(
    older_than_days: int = Query(30, ge=1, description="Delete resolved errors older than N days"),
    db: Session = Depends(get_db),
    _: AuthenticatedUser = Depends(require_super_admin),
):
    cutoff = datetime.now(timezone.utc) - timedelta(days=older_than_days)
    deleted = (
        db.query(ErrorLog)
        .filter(ErrorLog.resolved.is_(True), ErrorLog.occurred_at < cutoff)
        .delete(synchronize_session=False)
    )
    db.commit()
    return {"deleted": deleted}
