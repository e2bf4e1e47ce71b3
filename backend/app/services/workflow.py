"""
Store Workflow Service

Owns every change to Store.current_status.

Lifecycle:
    UPLOADED / MANUALLY_ADDED
        -> RECCE_ASSIGNED -> RECCE_SUBMITTED -> RECCE_APPROVED | RECCE_REJECTED
        -> INSTALLATION_ASSIGNED -> INSTALLATION_SUBMITTED
    COMPLETED is terminal and not reachable through any operation here.

Every operation looks up its legal source states and target state in a
transition table before touching the row. Two tables exist:
- TRANSITIONS: id-list assignment and the submission/review endpoints
- SHEET_TRANSITIONS: per-user spreadsheet assignment, which refuses to
  re-assign recce on stores past the survey and only assigns installation
  once the recce is approved

Usage:
    from app.services import workflow

    workflow.assign_stores(db, store_ids, "RECCE", user_id, actor)
    workflow.review_recce(db, store, "REJECTED", "redo photo")
"""

import enum
import logging
from dataclasses import dataclass
from datetime import date, datetime, timezone
from typing import Dict, FrozenSet, Iterable, List, Optional, Sequence, Tuple
from uuid import UUID

from sqlalchemy.orm import Session

from app.core.constants import FOLDER_INITIAL, FOLDER_INSTALLATION, FOLDER_RECCE, RoleCode
from app.core.exceptions import (
    InvalidTransitionError,
    NotFoundError,
    StoreIdUnavailableError,
    ValidationError,
)
from app.core.permissions import AuthenticatedUser
from app.models.store import Store, StoreStatus
from app.models.user import User
from app.services.bulk_report import BulkReport
from app.services.spreadsheets import column_value
from app.services.storage import StorageService, UploadedFile


logger = logging.getLogger("workflow")


class Stage(str, enum.Enum):
    """Assignment stage."""
    RECCE = "RECCE"
    INSTALLATION = "INSTALLATION"

    @classmethod
    def parse(cls, value) -> "Stage":
        try:
            return cls(str(value).strip().upper())
        except ValueError:
            raise ValidationError("Invalid assignment stage")


class Action(str, enum.Enum):
    ASSIGN_RECCE = "ASSIGN_RECCE"
    UNASSIGN_RECCE = "UNASSIGN_RECCE"
    SUBMIT_RECCE = "SUBMIT_RECCE"
    APPROVE_RECCE = "APPROVE_RECCE"
    REJECT_RECCE = "REJECT_RECCE"
    ASSIGN_INSTALLATION = "ASSIGN_INSTALLATION"
    UNASSIGN_INSTALLATION = "UNASSIGN_INSTALLATION"
    SUBMIT_INSTALLATION = "SUBMIT_INSTALLATION"


@dataclass(frozen=True)
class Transition:
    target: StoreStatus
    allowed_from: FrozenSet[StoreStatus]


ANY_STATUS: FrozenSet[StoreStatus] = frozenset(StoreStatus)

# Recce can no longer be (re)assigned once the survey is in or past review
RECCE_LOCKED = frozenset({
    StoreStatus.RECCE_SUBMITTED,
    StoreStatus.RECCE_APPROVED,
    StoreStatus.INSTALLATION_ASSIGNED,
    StoreStatus.INSTALLATION_SUBMITTED,
    StoreStatus.COMPLETED,
})

INSTALLATION_DONE = frozenset({StoreStatus.INSTALLATION_SUBMITTED, StoreStatus.COMPLETED})

UNMEASURED_PHOTO = {"width": None, "height": None, "unit": "ft", "elements": []}


TRANSITIONS: Dict[Action, Transition] = {
    Action.ASSIGN_RECCE: Transition(StoreStatus.RECCE_ASSIGNED, ANY_STATUS),
    Action.UNASSIGN_RECCE: Transition(StoreStatus.UPLOADED, ANY_STATUS),
    Action.SUBMIT_RECCE: Transition(StoreStatus.RECCE_SUBMITTED, ANY_STATUS),
    Action.APPROVE_RECCE: Transition(StoreStatus.RECCE_APPROVED, frozenset({StoreStatus.RECCE_SUBMITTED})),
    Action.REJECT_RECCE: Transition(StoreStatus.RECCE_REJECTED, frozenset({StoreStatus.RECCE_SUBMITTED})),
    Action.ASSIGN_INSTALLATION: Transition(StoreStatus.INSTALLATION_ASSIGNED, ANY_STATUS),
    Action.UNASSIGN_INSTALLATION: Transition(StoreStatus.RECCE_APPROVED, ANY_STATUS),
    Action.SUBMIT_INSTALLATION: Transition(StoreStatus.INSTALLATION_SUBMITTED, ANY_STATUS),
}

SHEET_TRANSITIONS: Dict[Action, Transition] = {
    **TRANSITIONS,
    Action.ASSIGN_RECCE: Transition(StoreStatus.RECCE_ASSIGNED, ANY_STATUS - RECCE_LOCKED),
    Action.ASSIGN_INSTALLATION: Transition(
        StoreStatus.INSTALLATION_ASSIGNED, frozenset({StoreStatus.RECCE_APPROVED})
    ),
}

ASSIGN_ACTIONS = {Stage.RECCE: Action.ASSIGN_RECCE, Stage.INSTALLATION: Action.ASSIGN_INSTALLATION}
UNASSIGN_ACTIONS = {Stage.RECCE: Action.UNASSIGN_RECCE, Stage.INSTALLATION: Action.UNASSIGN_INSTALLATION}


def _rejection_reason(action: Action, current: StoreStatus) -> str:
    status = current.value
    if action in (Action.APPROVE_RECCE, Action.REJECT_RECCE):
        return f"Recce is not submitted for review (current status: {status})"
    if action == Action.ASSIGN_INSTALLATION:
        if current in INSTALLATION_DONE:
            return f"Installation already submitted or completed (current status: {status})"
        return f"Recce not approved (current status: {status})"
    if action == Action.ASSIGN_RECCE:
        return f"Recce already submitted or store past recce stage (current status: {status})"
    return f"{action.value} is not allowed from status {status}"


def check_transition(
    action: Action,
    current: StoreStatus,
    table: Dict[Action, Transition] = TRANSITIONS,
) -> StoreStatus:
    """
    Return the target status of action from current, or raise.

    Raises:
        InvalidTransitionError: current is not a legal source state
    """
    transition = table[action]
    if current not in transition.allowed_from:
        raise InvalidTransitionError(_rejection_reason(action, current), action=action, current=current)
    return transition.target


# ============================================================================
# Store ID
# ============================================================================

def derive_store_id(city: Optional[str], district: Optional[str], dealer_code: Optional[str]) -> str:
    """
    3 letters of city + 3 letters of district + dealer code, all upper-cased.

    Example:
        derive_store_id("Mumbai", "Mumbai Suburban", "dlr001") == "MUMMUMDLR001"
    """
    city = (city or "").strip()
    district = (district or "").strip()
    dealer_code = (dealer_code or "").strip()
    if not city or not district or not dealer_code:
        raise StoreIdUnavailableError()
    return f"{city[:3].upper()}{district[:3].upper()}{dealer_code.upper()}"


def ensure_store_id(db: Session, store: Store) -> str:
    """Derive and persist store_id if the store has none yet."""
    if store.store_id:
        return store.store_id
    store.store_id = derive_store_id(store.city, store.district, store.dealer_code)
    db.commit()
    logger.info(f"STORE_ID_GENERATED | store={store.id} | store_id={store.store_id}")
    return store.store_id


# ============================================================================
# Assignment
# ============================================================================

def apply_assignment(store: Store, stage: Stage, assignee_id: UUID, assigned_by: UUID,
                     table: Dict[Action, Transition] = TRANSITIONS) -> None:
    """Set the stage's assigned-to/by/date triple and move the status."""
    target = check_transition(ASSIGN_ACTIONS[stage], store.current_status, table)
    now = datetime.now(timezone.utc)
    if stage == Stage.RECCE:
        store.recce_assigned_to = assignee_id
        store.recce_assigned_by = assigned_by
        store.recce_assigned_date = now
    else:
        store.installation_assigned_to = assignee_id
        store.installation_assigned_by = assigned_by
        store.installation_assigned_date = now
    store.current_status = target


def clear_assignment(store: Store, stage: Stage) -> None:
    """Clear the stage's assignment triple and step the status back."""
    target = check_transition(UNASSIGN_ACTIONS[stage], store.current_status)
    if stage == Stage.RECCE:
        store.recce_assigned_to = None
        store.recce_assigned_by = None
        store.recce_assigned_date = None
    else:
        store.installation_assigned_to = None
        store.installation_assigned_by = None
        store.installation_assigned_date = None
    store.current_status = target


def _load_stores(db: Session, store_ids: Sequence[UUID]) -> List[Store]:
    if not store_ids:
        raise ValidationError("No stores selected")
    return db.query(Store).filter(Store.id.in_(list(store_ids))).all()


def assign_stores(
    db: Session,
    store_ids: Sequence[UUID],
    stage,
    user_id: Optional[UUID],
    actor: AuthenticatedUser,
) -> Tuple[int, int]:
    """
    Assign every listed store to user_id for stage.

    Unknown ids are ignored. Returns (matched, modified).
    """
    if not store_ids:
        raise ValidationError("No stores selected")
    if not user_id:
        raise ValidationError("No user selected")
    stage = Stage.parse(stage)
    stores = _load_stores(db, store_ids)
    if db.query(User).filter(User.id == user_id).first() is None:
        raise NotFoundError("User not found")

    modified = 0
    for store in stores:
        before = (store.current_status, _assignee(store, stage))
        apply_assignment(store, stage, user_id, actor.id)
        if before != (store.current_status, user_id):
            modified += 1
    db.commit()

    logger.info(
        f"STORE_ASSIGN | stage={stage.value} | user={user_id} | matched={len(stores)} "
        f"| modified={modified} | by={actor.id}"
    )
    return len(stores), modified


def unassign_stores(db: Session, store_ids: Sequence[UUID], stage, actor: AuthenticatedUser) -> Tuple[int, int]:
    """Clear the stage's assignment on every listed store. Returns (matched, modified)."""
    if not store_ids:
        raise ValidationError("No stores selected")
    stage = Stage.parse(stage)
    stores = _load_stores(db, store_ids)

    modified = 0
    for store in stores:
        before = (store.current_status, _assignee(store, stage))
        clear_assignment(store, stage)
        if before != (store.current_status, None):
            modified += 1
    db.commit()

    logger.info(
        f"STORE_UNASSIGN | stage={stage.value} | matched={len(stores)} | modified={modified} | by={actor.id}"
    )
    return len(stores), modified


def _assignee(store: Store, stage: Stage) -> Optional[UUID]:
    return store.recce_assigned_to if stage == Stage.RECCE else store.installation_assigned_to


def stage_for_user(user: User) -> Stage:
    """Spreadsheet assignments follow the target user's field role, RECCE first."""
    if user.has_role(RoleCode.RECCE):
        return Stage.RECCE
    if user.has_role(RoleCode.INSTALLATION):
        return Stage.INSTALLATION
    raise ValidationError("User must have the RECCE or INSTALLATION role to be assigned stores")


def assign_from_sheet(
    db: Session,
    rows: Iterable[Tuple[int, dict]],
    assignee: User,
    actor: AuthenticatedUser,
    report: Optional[BulkReport] = None,
    file: Optional[str] = None,
) -> BulkReport:
    """
    Assign the stores listed in a sheet to assignee.

    rows: (sheet row number, {"Store ID": ..., "Client Code": ..., "Status": ...})
    The "Status" column is informational only. Each row is committed on its
    own; failures are recorded in the report and do not stop the batch.
    """
    stage = stage_for_user(assignee)
    report = report or BulkReport()

    for row_number, row in rows:
        store_code = column_value(row, "Store ID").upper()
        if not store_code:
            report.failed("Missing 'Store ID'", row=row_number, file=file)
            continue

        matches = db.query(Store).filter(Store.store_id == store_code).limit(2).all()
        if not matches:
            report.failed(f"Store not found: {store_code}", row=row_number, file=file, store_id=store_code)
            continue
        if len(matches) > 1:
            report.failed(f"Multiple stores match Store ID: {store_code}", row=row_number, file=file, store_id=store_code)
            continue
        store = matches[0]

        client_code = column_value(row, "Client Code")
        if client_code and store.client_code and client_code.upper() != store.client_code.upper():
            report.failed(
                f"Client Code mismatch: sheet has {client_code}, store has {store.client_code}",
                row=row_number, file=file, store_id=store_code,
            )
            continue

        try:
            apply_assignment(store, stage, assignee.id, actor.id, table=SHEET_TRANSITIONS)
        except InvalidTransitionError as exc:
            report.failed(exc.message, row=row_number, file=file, store_id=store_code)
            continue

        db.commit()
        report.succeeded()

    logger.info(
        f"SHEET_ASSIGN | stage={stage.value} | user={assignee.id} | ok={report.success_count} "
        f"| errors={report.error_count} | by={actor.id}"
    )
    return report


# ============================================================================
# Recce
# ============================================================================

def submit_recce(
    db: Session,
    store: Store,
    actor: AuthenticatedUser,
    storage: StorageService,
    notes: Optional[str],
    initial_photos: Sequence[UploadedFile],
    measurements: Sequence[dict],
    photo_files: Dict[int, UploadedFile],
) -> Store:
    """
    Record a recce survey and move the store to RECCE_SUBMITTED.

    measurements: [{"width", "height", "unit", "elements"}] in camelCase,
    photo_files: index into measurements -> uploaded photo; an index past the
    end of measurements is recorded as an unmeasured photo.
    The store_id is derived and saved before any file is written, since it
    names the storage folder.
    """
    target = check_transition(Action.SUBMIT_RECCE, store.current_status)
    store_id = ensure_store_id(db, store)

    initial_refs = [
        storage.upload(photo, FOLDER_INITIAL, store.client_code, store_id) for photo in initial_photos
    ]
    entries = [dict(measurement) for measurement in measurements]
    for index in sorted(photo_files):
        while len(entries) <= index:
            entries.append({**UNMEASURED_PHOTO, "elements": []})

    recce_photos = []
    for index, entry in enumerate(entries):
        photo = photo_files.get(index)
        entry["photo"] = storage.upload(photo, FOLDER_RECCE, store.client_code, store_id) if photo else None
        recce_photos.append(entry)

    store.recce_notes = notes
    store.recce_initial_photos = initial_refs
    store.recce_photos = recce_photos
    store.recce_submitted_by = actor.name
    store.recce_submitted_date = datetime.now(timezone.utc)
    store.current_status = target
    db.commit()
    db.refresh(store)

    logger.info(
        f"RECCE_SUBMITTED | store={store.id} | store_id={store_id} | photos={len(recce_photos)} "
        f"| initial={len(initial_refs)} | by={actor.id}"
    )
    return store


def review_notes(previous: Optional[str], remarks: Optional[str], today: Optional[date] = None) -> Optional[str]:
    """Prefix the admin remark: "[Admin]: <remarks> | <dd/mm/yyyy>" then the previous notes."""
    if not remarks:
        return previous
    today = today or date.today()
    line = f"[Admin]: {remarks} | {today.strftime('%d/%m/%Y')}"
    return f"{line}\n{previous}" if previous else line


def review_recce(
    db: Session,
    store: Store,
    status: str,
    remarks: Optional[str],
    actor: Optional[AuthenticatedUser] = None,
    today: Optional[date] = None,
) -> Store:
    """Approve or reject a submitted recce."""
    decision = (status or "").strip().upper()
    if decision == "APPROVED":
        action = Action.APPROVE_RECCE
    elif decision == "REJECTED":
        action = Action.REJECT_RECCE
    else:
        raise ValidationError("Invalid status. Use APPROVED or REJECTED.")

    target = check_transition(action, store.current_status)
    store.current_status = target
    store.recce_notes = review_notes(store.recce_notes, remarks, today)
    db.commit()
    db.refresh(store)

    logger.info(f"RECCE_REVIEWED | store={store.id} | decision={decision} | by={actor.id if actor else None}")
    return store


# ============================================================================
# Installation
# ============================================================================

def submit_installation(
    db: Session,
    store: Store,
    actor: AuthenticatedUser,
    storage: StorageService,
    photos: Sequence[Tuple[int, UploadedFile]],
) -> Store:
    """
    Record installation photos and move the store to INSTALLATION_SUBMITTED.

    photos: (recce photo index, uploaded photo) pairs; each index must point
    at a recorded recce photo.
    """
    target = check_transition(Action.SUBMIT_INSTALLATION, store.current_status)

    recce_count = len(store.recce_photos or [])
    for index, _ in photos:
        if index < 0 or index >= recce_count:
            raise ValidationError(f"Recce photo index {index} does not exist")

    store_id = ensure_store_id(db, store)
    entries = [
        {
            "reccePhotoIndex": index,
            "photo": storage.upload(photo, FOLDER_INSTALLATION, store.client_code, store_id),
        }
        for index, photo in photos
    ]

    store.installation_photos = entries
    store.installation_submitted_by = actor.name
    store.installation_submitted_date = datetime.now(timezone.utc)
    store.current_status = target
    db.commit()
    db.refresh(store)

    logger.info(
        f"INSTALLATION_SUBMITTED | store={store.id} | store_id={store_id} | photos={len(entries)} | by={actor.id}"
    )
    return store
