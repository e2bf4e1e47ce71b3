"""
Analytics Service
Dashboard figures computed on demand from the stores table.

Admins get the company-wide picture; RECCE and INSTALLATION users get the
counts of their own assignments.
"""

from datetime import datetime, timedelta, timezone
from typing import Dict

from sqlalchemy import func
from sqlalchemy.orm import Session

from app.core.constants import RoleCode
from app.core.permissions import AuthenticatedUser
from app.models.store import Store, StoreStatus
from app.models.user import User
from app.services.user_service import role_summary


RECCE_DONE = (
    StoreStatus.RECCE_SUBMITTED,
    StoreStatus.RECCE_APPROVED,
    StoreStatus.RECCE_REJECTED,
    StoreStatus.INSTALLATION_ASSIGNED,
    StoreStatus.INSTALLATION_SUBMITTED,
    StoreStatus.COMPLETED,
)


def _rate(part: int, whole: int) -> float:
    return round(part * 100.0 / whole, 1) if whole else 0.0


def status_counts(db: Session, *criteria) -> Dict[str, int]:
    """{status: count} for every status, zero-filled."""
    rows = db.query(Store.current_status, func.count(Store.id)).filter(*criteria).group_by(Store.current_status).all()
    counts = {status.value: 0 for status in StoreStatus}
    for status, count in rows:
        key = status.value if isinstance(status, StoreStatus) else str(status)
        counts[key] = count
    return counts


def _top_assignees(db: Session, column, limit: int = 5) -> list:
    rows = (
        db.query(User.id, User.name, func.count(Store.id).label("stores"))
        .join(Store, column == User.id)
        .group_by(User.id, User.name)
        .order_by(func.count(Store.id).desc())
        .limit(limit)
        .all()
    )
    return [{"userId": str(user_id), "name": name, "stores": count} for user_id, name, count in rows]


def admin_dashboard(db: Session) -> dict:
    counts = status_counts(db)
    total = sum(counts.values())

    recce_total = db.query(func.count(Store.id)).filter(Store.recce_assigned_to.isnot(None)).scalar() or 0
    recce_done = sum(counts[s.value] for s in RECCE_DONE)
    installation_total = (
        db.query(func.count(Store.id)).filter(Store.installation_assigned_to.isnot(None)).scalar() or 0
    )
    installation_done = counts[StoreStatus.INSTALLATION_SUBMITTED.value] + counts[StoreStatus.COMPLETED.value]

    since = datetime.now(timezone.utc) - timedelta(days=7)
    recent = {
        "recceAssigned": db.query(func.count(Store.id)).filter(Store.recce_assigned_date >= since).scalar() or 0,
        "recceSubmitted": db.query(func.count(Store.id)).filter(Store.recce_submitted_date >= since).scalar() or 0,
        "installationAssigned": (
            db.query(func.count(Store.id)).filter(Store.installation_assigned_date >= since).scalar() or 0
        ),
        "installationSubmitted": (
            db.query(func.count(Store.id)).filter(Store.installation_submitted_date >= since).scalar() or 0
        ),
    }

    cities = (
        db.query(Store.city, func.count(Store.id))
        .filter(Store.city.isnot(None))
        .group_by(Store.city)
        .order_by(func.count(Store.id).desc())
        .limit(10)
        .all()
    )

    return {
        "role": "ADMIN",
        "overview": {
            "totalStores": total,
            "uploaded": counts[StoreStatus.UPLOADED.value],
            "manuallyAdded": counts[StoreStatus.MANUALLY_ADDED.value],
            "totalUsers": db.query(func.count(User.id)).scalar() or 0,
            "activeUsers": db.query(func.count(User.id)).filter(User.is_active.is_(True)).scalar() or 0,
            "usersByRole": role_summary(db),
        },
        "recce": {
            "assigned": counts[StoreStatus.RECCE_ASSIGNED.value],
            "submitted": counts[StoreStatus.RECCE_SUBMITTED.value],
            "approved": counts[StoreStatus.RECCE_APPROVED.value],
            "rejected": counts[StoreStatus.RECCE_REJECTED.value],
            "total": recce_total,
            "completionRate": _rate(recce_done, recce_total),
            "approvalRate": _rate(
                counts[StoreStatus.RECCE_APPROVED.value],
                counts[StoreStatus.RECCE_APPROVED.value] + counts[StoreStatus.RECCE_REJECTED.value],
            ),
        },
        "installation": {
            "assigned": counts[StoreStatus.INSTALLATION_ASSIGNED.value],
            "submitted": counts[StoreStatus.INSTALLATION_SUBMITTED.value],
            "completed": counts[StoreStatus.COMPLETED.value],
            "total": installation_total,
            "completionRate": _rate(installation_done, installation_total),
        },
        "recentActivity": recent,
        "topPerformers": {
            "recce": _top_assignees(db, Store.recce_assigned_to),
            "installation": _top_assignees(db, Store.installation_assigned_to),
        },
        "cityDistribution": [{"city": city, "count": count} for city, count in cities],
        "statusDistribution": [{"status": status, "count": count} for status, count in counts.items()],
    }


def field_dashboard(db: Session, actor: AuthenticatedUser, role: RoleCode) -> dict:
    column = Store.recce_assigned_to if role == RoleCode.RECCE else Store.installation_assigned_to
    counts = status_counts(db, column == actor.id)
    total = sum(counts.values())

    if role == RoleCode.RECCE:
        pending = counts[StoreStatus.RECCE_ASSIGNED.value] + counts[StoreStatus.RECCE_REJECTED.value]
    else:
        pending = counts[StoreStatus.INSTALLATION_ASSIGNED.value]

    return {
        "role": role.value,
        "totalAssigned": total,
        "pending": pending,
        "completed": total - pending,
        "completionRate": _rate(total - pending, total),
        "statusDistribution": [{"status": status, "count": count} for status, count in counts.items() if count],
    }


def dashboard(db: Session, actor: AuthenticatedUser) -> dict:
    if actor.is_admin:
        return admin_dashboard(db)
    if actor.has_role(RoleCode.RECCE):
        return field_dashboard(db, actor, RoleCode.RECCE)
    if actor.has_role(RoleCode.INSTALLATION):
        return field_dashboard(db, actor, RoleCode.INSTALLATION)
    return {"role": None, "totalAssigned": 0, "pending": 0, "completed": 0, "completionRate": 0.0,
            "statusDistribution": []}
