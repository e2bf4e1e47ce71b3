"""
Store Service
CRUD, role-scoped listing and spreadsheet import for stores.

Visibility: SUPER_ADMIN and ADMIN see every store; anyone else sees only
stores where they are the recce or installation assignee. A store outside
the caller's scope behaves exactly like a missing one (404).
"""

import logging
import math
from typing import List, Optional, Sequence, Tuple
from uuid import UUID

from sqlalchemy import func, or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Query, Session

from app.core.constants import MAX_PAGE_SIZE
from app.core.exceptions import DuplicateError, NotFoundError, ValidationError
from app.core.permissions import AuthenticatedUser
from app.models.client import Client
from app.models.store import Store, StoreStatus
from app.schemas.store import StoreCreate, StoreUpdate
from app.services.bulk_report import BulkReport
from app.services.spreadsheets import SpreadsheetError, column_value, read_rows
from app.services.workflow import derive_store_id


logger = logging.getLogger("stores")


def dealer_code_taken(db: Session, dealer_code: str, exclude_id: Optional[UUID] = None) -> bool:
    """Case-insensitive dealer code lookup."""
    query = db.query(Store.id).filter(func.upper(Store.dealer_code) == dealer_code.strip().upper())
    if exclude_id is not None:
        query = query.filter(Store.id != exclude_id)
    return query.first() is not None


def board_size(width: str, height: str) -> Optional[str]:
    """"W x H" with "?" for a missing side; None when both are missing."""
    if not width and not height:
        return None
    return f"{width or '?'} x {height or '?'}"


def parse_status_filter(status: Optional[str]) -> List[StoreStatus]:
    """"ALL" or empty -> no filter; otherwise a comma-separated list of statuses."""
    if not status or status.strip().upper() == "ALL":
        return []
    statuses = []
    for raw in status.split(","):
        value = raw.strip().upper()
        if not value:
            continue
        try:
            statuses.append(StoreStatus(value))
        except ValueError:
            raise ValidationError(f"Invalid status: {raw.strip()}")
    return statuses


class StoreService:
    """Store operations. All methods are static and take the session first."""

    @staticmethod
    def visible_query(db: Session, actor: AuthenticatedUser) -> Query:
        query = db.query(Store)
        if not actor.is_admin:
            query = query.filter(
                or_(Store.recce_assigned_to == actor.id, Store.installation_assigned_to == actor.id)
            )
        return query

    @staticmethod
    def get_visible(db: Session, store_id: UUID, actor: AuthenticatedUser) -> Store:
        store = StoreService.visible_query(db, actor).filter(Store.id == store_id).first()
        if store is None:
            raise NotFoundError("Store not found")
        return store

    @staticmethod
    def list_stores(
        db: Session,
        actor: AuthenticatedUser,
        page: int = 1,
        limit: int = 10,
        status: Optional[str] = None,
        search: Optional[str] = None,
        city: Optional[str] = None,
    ) -> Tuple[List[Store], dict]:
        """Filtered, paginated stores, most recently updated first."""
        page = max(page, 1)
        limit = min(max(limit, 1), MAX_PAGE_SIZE)

        query = StoreService.visible_query(db, actor)

        statuses = parse_status_filter(status)
        if statuses:
            query = query.filter(Store.current_status.in_(statuses))

        if city:
            query = query.filter(Store.city.ilike(city.strip()))

        if search:
            pattern = f"%{search.strip()}%"
            query = query.filter(or_(
                Store.store_name.ilike(pattern),
                Store.dealer_code.ilike(pattern),
                Store.store_id.ilike(pattern),
                Store.city.ilike(pattern),
                Store.district.ilike(pattern),
                Store.area.ilike(pattern),
            ))

        total = query.count()
        stores = (
            query.order_by(Store.updated_at.desc(), Store.created_at.desc())
            .offset((page - 1) * limit)
            .limit(limit)
            .all()
        )
        pagination = {
            "total": total,
            "pages": math.ceil(total / limit) if total else 0,
            "page": page,
            "limit": limit,
        }
        return stores, pagination

    @staticmethod
    def _client_for(db: Session, client_code: Optional[str]) -> Optional[Client]:
        if not client_code:
            return None
        return db.query(Client).filter(Client.client_code == client_code.strip().upper()).first()

    @staticmethod
    def create_store(db: Session, data: StoreCreate, actor: AuthenticatedUser) -> Store:
        dealer_code = (data.dealer_code or "").strip()
        if not dealer_code:
            raise ValidationError("Dealer Code is required")
        if dealer_code_taken(db, dealer_code):
            raise DuplicateError("A store with this Dealer Code already exists")

        values = data.model_dump(exclude={"dealer_code"})
        store = Store(**values, dealer_code=dealer_code, current_status=StoreStatus.MANUALLY_ADDED)
        client = StoreService._client_for(db, data.client_code)
        if client:
            store.client_id = client.id
            store.client_code = client.client_code

        db.add(store)
        db.commit()
        db.refresh(store)
        logger.info(f"STORE_CREATED | store={store.id} | dealer_code={dealer_code} | by={actor.id}")
        return store

    @staticmethod
    def update_store(db: Session, store: Store, data: StoreUpdate, actor: AuthenticatedUser) -> Store:
        """Partial update of descriptive fields."""
        changes = data.model_dump(exclude_unset=True)

        new_code = changes.get("dealer_code")
        if new_code is not None:
            new_code = new_code.strip()
            if dealer_code_taken(db, new_code, exclude_id=store.id):
                raise DuplicateError("A store with this Dealer Code already exists")
            changes["dealer_code"] = new_code

        if "client_code" in changes:
            client = StoreService._client_for(db, changes["client_code"])
            store.client_id = client.id if client else None

        for field, value in changes.items():
            setattr(store, field, value)

        db.commit()
        db.refresh(store)
        logger.info(f"STORE_UPDATED | store={store.id} | fields={','.join(sorted(changes))} | by={actor.id}")
        return store

    @staticmethod
    def delete_store(db: Session, store: Store, actor: AuthenticatedUser) -> None:
        db.delete(store)
        db.commit()
        logger.info(f"STORE_DELETED | store={store.id} | dealer_code={store.dealer_code} | by={actor.id}")

    @staticmethod
    def import_stores(db: Session, files: Sequence[Tuple[str, bytes]]) -> BulkReport:
        """
        Insert stores from one or more upload sheets.

        Each row is inserted on its own; missing dealer codes and duplicates
        (already in the database, or repeated anywhere in this upload) are
        reported per row. Imported stores start as UPLOADED with their
        store_id already derived when city and district are present.
        """
        report = BulkReport()
        seen = set()

        for filename, content in files:
            try:
                rows = read_rows(content)
            except SpreadsheetError as exc:
                report.failed(f"Parsing Error: {exc.message}", file=filename, counted=False)
                continue

            for row_number, row in rows:
                dealer_code = column_value(row, "Dealer Code")
                if not dealer_code:
                    report.failed("Skipped: 'Dealer Code' is missing/empty", row=row_number, file=filename)
                    continue
                if dealer_code.upper() in seen:
                    report.failed(f"Duplicate in File: {dealer_code}", row=row_number, file=filename)
                    continue
                seen.add(dealer_code.upper())
                if dealer_code_taken(db, dealer_code):
                    report.failed(f"Duplicate in DB: {dealer_code}", row=row_number, file=filename)
                    continue

                city = column_value(row, "City")
                district = column_value(row, "District")
                store = Store(
                    project_id=column_value(row, "Sr. No.", "Sr No") or None,
                    dealer_code=dealer_code,
                    store_id=derive_store_id(city, district, dealer_code) if city and district else None,
                    store_code=column_value(row, "Vendor Code & Name") or None,
                    store_name=column_value(row, "Dealer's Name", "Dealer Name") or None,
                    city=city or None,
                    district=district or None,
                    state=column_value(row, "State") or None,
                    zone=column_value(row, "Zone") or None,
                    address=column_value(row, "Dealer's Address", "Address") or None,
                    board_size=board_size(
                        column_value(row, "Width (Ft.)", "Width"),
                        column_value(row, "Height (Ft.)", "Height"),
                    ),
                    board_type=column_value(row, "Dealer Board Type", "Board Type") or None,
                    current_status=StoreStatus.UPLOADED,
                )
                client = StoreService._client_for(db, column_value(row, "Client Code"))
                if client:
                    store.client_id = client.id
                    store.client_code = client.client_code
                else:
                    store.client_code = column_value(row, "Client Code").upper() or None

                db.add(store)
                try:
                    db.commit()
                except IntegrityError as exc:
                    db.rollback()
                    report.failed(f"Database Error: {exc.orig}", row=row_number, file=filename)
                    continue
                report.succeeded()

        logger.info(
            f"STORE_IMPORT | files={len(files)} | processed={report.processed} "
            f"| inserted={report.success_count} | errors={report.error_count}"
        )
        return report
