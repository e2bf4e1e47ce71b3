"""
Request Principal
The authenticated caller as seen by the service layer.

Endpoints resolve the JWT into an AuthenticatedUser once and pass it to
services explicitly. Services never look at the request object.
"""

from dataclasses import dataclass, field
from typing import Dict, FrozenSet
from uuid import UUID

from app.core.constants import ADMIN_ROLES, RoleCode


@dataclass(frozen=True)
class AuthenticatedUser:
    id: UUID
    name: str
    email: str
    roles: FrozenSet[RoleCode] = frozenset()
    # {module: {action: bool}} merged across all of the user's roles
    permissions: Dict[str, Dict[str, bool]] = field(default_factory=dict)

    @property
    def is_super_admin(self) -> bool:
        return RoleCode.SUPER_ADMIN in self.roles

    @property
    def is_admin(self) -> bool:
        """SUPER_ADMIN or ADMIN: sees every store."""
        return bool(self.roles & ADMIN_ROLES)

    def has_role(self, role: RoleCode) -> bool:
        return role in self.roles

    def can(self, module: str, action: str) -> bool:
        if self.is_super_admin:
            return True
        return bool(self.permissions.get(module, {}).get(action, False))


def merge_permissions(permission_sets) -> Dict[str, Dict[str, bool]]:
    """OR together several {module: {action: bool}} maps."""
    merged: Dict[str, Dict[str, bool]] = {}
    for permissions in permission_sets:
        for module, actions in (permissions or {}).items():
            target = merged.setdefault(module, {})
            for action, allowed in (actions or {}).items():
                target[action] = target.get(action, False) or bool(allowed)
    return merged


def principal_from_user(user) -> AuthenticatedUser:
    """Build the principal from a User row with its roles loaded."""
    codes = set()
    for role in user.roles:
        try:
            codes.add(RoleCode(role.code))
        except ValueError:
            # custom role: contributes permissions only
            continue
    return AuthenticatedUser(
        id=user.id,
        name=user.name,
        email=user.email,
        roles=frozenset(codes),
        permissions=merge_permissions(role.permissions for role in user.roles),
    )
