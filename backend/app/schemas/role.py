"""
Role Schemas
"""

from pydantic import Field, field_validator
from typing import Dict, Optional
from uuid import UUID
from datetime import datetime

from app.core.constants import PERMISSION_ACTIONS, PERMISSION_MODULES
from app.schemas.common import CamelModel


Permissions = Dict[str, Dict[str, bool]]


def _normalise_permissions(value: Optional[Permissions]) -> Optional[Permissions]:
    # Unknown modules or actions are rejected, missing ones default to False
    if value is None:
        return None
    unknown = set(value) - set(PERMISSION_MODULES)
    if unknown:
        raise ValueError(f"Unknown permission modules: {', '.join(sorted(unknown))}")
    normalised = {}
    for module in PERMISSION_MODULES:
        actions = value.get(module) or {}
        bad = set(actions) - set(PERMISSION_ACTIONS)
        if bad:
            raise ValueError(f"Unknown actions for {module}: {', '.join(sorted(bad))}")
        normalised[module] = {action: bool(actions.get(action, False)) for action in PERMISSION_ACTIONS}
    return normalised


class RoleCreate(CamelModel):
    name: str = Field(..., min_length=1, max_length=100)
    code: str = Field(..., min_length=2, max_length=50)
    description: Optional[str] = None
    permissions: Permissions = Field(default_factory=dict)
    is_active: bool = True

    @field_validator("code")
    @classmethod
    def upper_code(cls, v: str) -> str:
        return v.strip().upper()

    @field_validator("permissions")
    @classmethod
    def check_permissions(cls, v):
        return _normalise_permissions(v)


class RoleUpdate(CamelModel):
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    description: Optional[str] = None
    permissions: Optional[Permissions] = None
    is_active: Optional[bool] = None

    @field_validator("permissions")
    @classmethod
    def check_permissions(cls, v):
        return _normalise_permissions(v)


class RoleSummary(CamelModel):
    id: UUID
    name: str
    code: str


class RoleResponse(RoleSummary):
    description: Optional[str] = None
    permissions: Permissions
    is_active: bool
    created_at: datetime
    updated_at: datetime
