"""
User & Role Service
User management, role resolution and bulk user import.
"""

import logging
import math
from typing import List, Optional, Sequence, Tuple
from uuid import UUID

from sqlalchemy import func, or_
from sqlalchemy.orm import Session

from app.core.constants import DEFAULT_ROLES, MAX_PAGE_SIZE, RoleCode
from app.core.exceptions import DuplicateError, NotFoundError, ValidationError
from app.core.security import hash_password
from app.models.store import Store
from app.models.user import Role, User
from app.schemas.role import RoleCreate, RoleUpdate
from app.schemas.user import UserCreate, UserUpdate
from app.services.bulk_report import BulkReport
from app.services.spreadsheets import SpreadsheetError, column_value, read_rows


logger = logging.getLogger("users")


# ============================================================================
# Roles
# ============================================================================

def get_role(db: Session, role_id: UUID) -> Role:
    role = db.query(Role).filter(Role.id == role_id).first()
    if role is None:
        raise NotFoundError("Role not found")
    return role


def get_role_by_code(db: Session, code: str) -> Optional[Role]:
    return db.query(Role).filter(Role.code == code.strip().upper()).first()


def resolve_roles(db: Session, references: Sequence[str]) -> List[Role]:
    """Turn role ids or role codes into Role rows; unknown references are a 400."""
    roles = []
    for reference in references:
        reference = str(reference).strip()
        if not reference:
            continue
        role = None
        try:
            role = db.query(Role).filter(Role.id == UUID(reference)).first()
        except ValueError:
            role = get_role_by_code(db, reference)
        if role is None:
            raise ValidationError(f"Unknown role: {reference}")
        if role not in roles:
            roles.append(role)
    return roles


def list_roles(db: Session) -> List[Role]:
    return db.query(Role).order_by(Role.name).all()


def create_role(db: Session, data: RoleCreate) -> Role:
    if get_role_by_code(db, data.code):
        raise DuplicateError("A role with this code already exists")
    role = Role(**data.model_dump())
    db.add(role)
    db.commit()
    db.refresh(role)
    logger.info(f"ROLE_CREATED | code={role.code}")
    return role


def update_role(db: Session, role: Role, data: RoleUpdate) -> Role:
    for field, value in data.model_dump(exclude_unset=True).items():
        setattr(role, field, value)
    db.commit()
    db.refresh(role)
    return role


def delete_role(db: Session, role: Role) -> None:
    if role.users:
        raise ValidationError("Role is assigned to users and cannot be deleted")
    db.delete(role)
    db.commit()
    logger.info(f"ROLE_DELETED | code={role.code}")


def ensure_default_roles(db: Session) -> int:
    """Create the built-in roles that do not exist yet. Returns how many were added."""
    added = 0
    for code, (name, permissions) in DEFAULT_ROLES.items():
        if get_role_by_code(db, code.value) is None:
            db.add(Role(name=name, code=code.value, permissions=permissions))
            added += 1
    db.commit()
    return added


def ensure_super_admin(db: Session, email: str, password: str, name: str) -> Optional[User]:
    """Create the bootstrap SUPER_ADMIN when configured and missing."""
    if not email or not password:
        return None
    email = email.strip().lower()
    user = db.query(User).filter(User.email == email).first()
    if user is not None:
        return user
    role = get_role_by_code(db, RoleCode.SUPER_ADMIN.value)
    user = User(name=name, email=email, password_hash=hash_password(password), roles=[role] if role else [])
    db.add(user)
    db.commit()
    db.refresh(user)
    logger.info(f"SUPERADMIN_CREATED | email={email}")
    return user


# ============================================================================
# Users
# ============================================================================

def get_user(db: Session, user_id: UUID) -> User:
    user = db.query(User).filter(User.id == user_id).first()
    if user is None:
        raise NotFoundError("User not found")
    return user


def list_users(
    db: Session,
    page: int = 1,
    limit: int = 10,
    search: Optional[str] = None,
    role: Optional[str] = None,
) -> Tuple[List[User], dict]:
    page = max(page, 1)
    limit = min(max(limit, 1), MAX_PAGE_SIZE)

    query = db.query(User)
    if search:
        pattern = f"%{search.strip()}%"
        query = query.filter(or_(User.name.ilike(pattern), User.email.ilike(pattern)))
    if role:
        query = query.filter(User.roles.any(Role.code == role.strip().upper()))

    total = query.count()
    users = query.order_by(User.created_at.desc()).offset((page - 1) * limit).limit(limit).all()
    return users, {
        "total": total,
        "pages": math.ceil(total / limit) if total else 0,
        "page": page,
        "limit": limit,
    }


def users_with_role(db: Session, code: str) -> List[User]:
    """Active users holding the role, e.g. the RECCE pick-list."""
    return (
        db.query(User)
        .filter(User.roles.any(Role.code == code.strip().upper()), User.is_active.is_(True))
        .order_by(User.name)
        .all()
    )


def create_user(db: Session, data: UserCreate) -> User:
    if db.query(User.id).filter(User.email == data.email).first():
        raise DuplicateError("A user with this email already exists")
    user = User(
        name=data.name.strip(),
        email=data.email,
        password_hash=hash_password(data.password),
        mobile=data.mobile,
        is_active=data.is_active,
        roles=resolve_roles(db, data.roles),
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    logger.info(f"USER_CREATED | user={user.id} | email={user.email} | roles={','.join(user.role_codes)}")
    return user


def update_user(db: Session, user: User, data: UserUpdate) -> User:
    changes = data.model_dump(exclude_unset=True)

    if changes.get("email") and changes["email"] != user.email:
        if db.query(User.id).filter(User.email == changes["email"], User.id != user.id).first():
            raise DuplicateError("A user with this email already exists")
    if "password" in changes:
        password = changes.pop("password")
        if password:
            user.password_hash = hash_password(password)
    if "roles" in changes:
        roles = changes.pop("roles")
        if roles is not None:
            user.roles = resolve_roles(db, roles)

    for field, value in changes.items():
        if value is not None:
            setattr(user, field, value)

    db.commit()
    db.refresh(user)
    return user


def delete_user(db: Session, user: User) -> None:
    """Delete the user; stores assigned to them keep their status but lose the assignee."""
    db.query(Store).filter(Store.recce_assigned_to == user.id).update(
        {Store.recce_assigned_to: None}, synchronize_session=False
    )
    db.query(Store).filter(Store.installation_assigned_to == user.id).update(
        {Store.installation_assigned_to: None}, synchronize_session=False
    )
    db.delete(user)
    db.commit()
    logger.info(f"USER_DELETED | user={user.id} | email={user.email}")


def import_users(db: Session, files: Sequence[Tuple[str, bytes]]) -> BulkReport:
    """
    Create users from sheets with columns Name, Email, Password, Mobile, Roles.

    Roles is a comma-separated list of role codes.
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
            name = column_value(row, "Name")
            email = column_value(row, "Email").lower()
            password = column_value(row, "Password")
            if not name or not email or not password:
                report.failed("Skipped: Name, Email and Password are required", row=row_number, file=filename)
                continue
            if len(password) < 6:
                report.failed("Password must be at least 6 characters", row=row_number, file=filename)
                continue
            if email in seen:
                report.failed(f"Duplicate in File: {email}", row=row_number, file=filename)
                continue
            seen.add(email)
            if db.query(User.id).filter(User.email == email).first():
                report.failed(f"Duplicate in DB: {email}", row=row_number, file=filename)
                continue

            codes = [code for code in column_value(row, "Roles", "Role").split(",") if code.strip()]
            try:
                roles = resolve_roles(db, codes)
            except ValidationError as exc:
                report.failed(exc.message, row=row_number, file=filename)
                continue

            db.add(User(
                name=name,
                email=email,
                password_hash=hash_password(password),
                mobile=column_value(row, "Mobile") or None,
                roles=roles,
            ))
            db.commit()
            report.succeeded()

    logger.info(f"USER_IMPORT | processed={report.processed} | created={report.success_count} | errors={report.error_count}")
    return report


def role_summary(db: Session) -> List[dict]:
    """Number of users per role code."""
    rows = (
        db.query(Role.code, func.count(User.id))
        .outerjoin(Role.users)
        .group_by(Role.code)
        .all()
    )
    return [{"code": code, "users": count} for code, count in rows]
