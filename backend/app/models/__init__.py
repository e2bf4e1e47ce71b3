"""
Database Models Module
Contains SQLAlchemy ORM models for all database tables.

All models must be imported here to be registered with SQLAlchemy
and created during Base.metadata.create_all().
"""

from app.db.base import Base
from app.models.base import BaseModel
from app.models.user import User, Role, user_roles
from app.models.client import Client, Element
from app.models.store import Store, StoreStatus
from app.models.error_log import ErrorLog

__all__ = [
    "Base",
    "BaseModel",
    "User",
    "Role",
    "user_roles",
    "Client",
    "Element",
    "Store",
    "StoreStatus",
    "ErrorLog",
]
