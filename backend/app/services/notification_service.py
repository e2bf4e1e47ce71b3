"""
Notification Service
Notifications are derived from store state on every request; nothing is stored.
"""

from datetime import datetime, timedelta, timezone
from typing import List

from sqlalchemy import or_
from sqlalchemy.orm import Session

from app.core.permissions import AuthenticatedUser
from app.models.store import Store, StoreStatus


ASSIGNMENT_WINDOW_DAYS = 30
MAX_NOTIFICATIONS = 50


def _item(kind: str, store: Store, message: str, when) -> dict:
    return {
        "id": f"{kind}_{store.id}",
        "type": kind,
        "message": message,
        "storeId": str(store.id),
        "createdAt": when,
        "read": False,
    }


def _sort_key(item: dict):
    when = item["createdAt"]
    if when is None:
        return datetime.min
    return when.replace(tzinfo=None) if when.tzinfo else when


def for_user(db: Session, actor: AuthenticatedUser) -> List[dict]:
    items = []

    if actor.is_admin:
        for store in db.query(Store).filter(Store.current_status == StoreStatus.RECCE_SUBMITTED).all():
            items.append(_item(
                "RECCE_REVIEW", store,
                f"Recce submitted for {store.display_name} awaits review",
                store.recce_submitted_date,
            ))
        for store in db.query(Store).filter(Store.current_status == StoreStatus.INSTALLATION_SUBMITTED).all():
            items.append(_item(
                "INSTALLATION_SUBMITTED", store,
                f"Installation submitted for {store.display_name}",
                store.installation_submitted_date,
            ))
    else:
        since = datetime.now(timezone.utc) - timedelta(days=ASSIGNMENT_WINDOW_DAYS)
        stores = db.query(Store).filter(or_(
            Store.recce_assigned_to == actor.id,
            Store.installation_assigned_to == actor.id,
        )).all()
        for store in stores:
            if store.recce_assigned_to == actor.id and store.current_status in (
                StoreStatus.RECCE_ASSIGNED, StoreStatus.RECCE_REJECTED
            ):
                if store.current_status == StoreStatus.RECCE_REJECTED:
                    items.append(_item("RECCE_REJECTED", store, f"Recce for {store.display_name} was rejected",
                                       store.updated_at))
                elif _after(store.recce_assigned_date, since):
                    items.append(_item("RECCE_ASSIGNED", store, f"New recce assigned: {store.display_name}",
                                       store.recce_assigned_date))
            if (store.installation_assigned_to == actor.id
                    and store.current_status == StoreStatus.INSTALLATION_ASSIGNED
                    and _after(store.installation_assigned_date, since)):
                items.append(_item("INSTALLATION_ASSIGNED", store,
                                   f"New installation assigned: {store.display_name}",
                                   store.installation_assigned_date))

    items.sort(key=_sort_key, reverse=True)
    return items[:MAX_NOTIFICATIONS]


def _after(when, since) -> bool:
    if when is None:
        return False
    if when.tzinfo is None:
        since = since.replace(tzinfo=None)
    return when >= since
