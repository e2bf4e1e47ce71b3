"""
Analytics & Notification Endpoints
"""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.api.v1.deps import get_principal
from app.core.permissions import AuthenticatedUser
from app.db.session import get_db
from app.services import analytics_service, notification_service


router = APIRouter()
notifications_router = APIRouter()


@router.get("/dashboard")
def dashboard(
    db: Session = Depends(get_db),
    actor: AuthenticatedUser = Depends(get_principal),
):
    """Admin overview for admins, own-assignment counts for field users."""
    return analytics_service.dashboard(db, actor)


@notifications_router.get("")
def notifications(
    db: Session = Depends(get_db),
    actor: AuthenticatedUser = Depends(get_principal),
):
    items = notification_service.for_user(db, actor)
    return {"notifications": items, "unreadCount": len(items)}
