"""
User and Role Models
Represents back-office users and the roles that grant them permissions.

Each user has:
- Unique email for authentication (stored lower-cased)
- Encrypted password (never stored in plain text)
- One or more roles through the user_roles association table
- Login bookkeeping (login count, last login)

A role has a unique code (SUPER_ADMIN, ADMIN, RECCE, INSTALLATION or a
custom code) and a permission matrix {module: {view, create, edit, delete}}.
"""

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, JSON, String, Table, Text
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship

from app.core.constants import ADMIN_ROLES, RoleCode
from app.db.base import Base
from app.models.base import BaseModel


# Many-to-many link between users and roles
user_roles = Table(
    "user_roles",
    Base.metadata,
    Column("user_id", UUID(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), primary_key=True),
    Column("role_id", UUID(as_uuid=True), ForeignKey("roles.id", ondelete="CASCADE"), primary_key=True),
)


class Role(BaseModel):
    """
    Role model holding a named permission set.

    Permissions JSON structure:
        {
            "stores": {"view": true, "create": true, "edit": true, "delete": false},
            "users": {"view": true, "create": false, "edit": false, "delete": false},
            ...
        }
    """

    __tablename__ = "roles"

    name = Column(String(100), nullable=False)

    code = Column(
        String(50),
        unique=True,
        nullable=False,
        index=True,
        comment="Upper-case role code, e.g. RECCE"
    )

    description = Column(Text, nullable=True)

    permissions = Column(
        JSON,
        default=dict,
        nullable=False,
        comment="Permission matrix per module"
    )

    is_active = Column(Boolean, default=True, nullable=False)

    users = relationship("User", secondary=user_roles, back_populates="roles")

    def __repr__(self):
        return f"<Role(code={self.code})>"


class User(BaseModel):
    """
    User model for authentication and store assignment.

    Fields:
        id (UUID): Primary key, inherited from BaseModel
        name (str): Display name, recorded as the submitter of recce/installation
        email (str): Unique, lower-cased login
        password_hash (str): Bcrypt hashed password
        mobile (str): Optional contact number
        is_active (bool): Inactive users cannot log in (except SUPER_ADMIN)
        login_count (int): Successful logins
        last_login (datetime): Last successful login

    Relationships:
        roles: Many-to-many with Role through user_roles
    """

    __tablename__ = "users"

    name = Column(String(255), nullable=False)

    email = Column(
        String(255),
        unique=True,
        nullable=False,
        index=True,
        comment="User's email address for authentication"
    )

    password_hash = Column(
        String(255),
        nullable=False,
        comment="Bcrypt hashed password"
    )

    mobile = Column(String(20), nullable=True)

    is_active = Column(Boolean, default=True, nullable=False)
    login_count = Column(Integer, default=0, nullable=False)
    last_login = Column(DateTime(timezone=True), nullable=True)

    # selectin: roles are needed on every authenticated request
    roles = relationship("Role", secondary=user_roles, back_populates="users", lazy="selectin")

    def __repr__(self):
        return f"<User(id={self.id}, email={self.email}, name={self.name})>"

    @property
    def role_codes(self) -> list:
        return [role.code for role in self.roles]

    def has_role(self, code) -> bool:
        code = code.value if isinstance(code, RoleCode) else code
        return code in self.role_codes

    @property
    def is_super_admin(self) -> bool:
        return self.has_role(RoleCode.SUPER_ADMIN)

    @property
    def is_admin(self) -> bool:
        """Check if user holds SUPER_ADMIN or ADMIN."""
        return any(self.has_role(code) for code in ADMIN_ROLES)
