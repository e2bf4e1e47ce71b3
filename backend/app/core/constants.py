"""
Application Constants
Defines constant values used throughout the application.

This module contains all application-wide constants including:
- Role codes and the permission matrix
- Cookie names
- Spreadsheet column contracts for stores, users and assignments
- Pagination defaults
"""

import enum


class RoleCode(str, enum.Enum):
    """Built-in role codes recognised by the access rules."""
    SUPER_ADMIN = "SUPER_ADMIN"
    ADMIN = "ADMIN"
    RECCE = "RECCE"
    INSTALLATION = "INSTALLATION"


ADMIN_ROLES = frozenset({RoleCode.SUPER_ADMIN, RoleCode.ADMIN})

# Permission matrix
# Every role carries {module: {action: bool}} for these modules and actions
PERMISSION_MODULES = ("stores", "users", "roles", "clients", "elements", "analytics")
PERMISSION_ACTIONS = ("view", "create", "edit", "delete")


def full_permissions() -> dict:
    return {module: {action: True for action in PERMISSION_ACTIONS} for module in PERMISSION_MODULES}


def view_permissions(*modules: str) -> dict:
    return {
        module: {action: (action == "view" and module in modules) for action in PERMISSION_ACTIONS}
        for module in PERMISSION_MODULES
    }


def _admin_permissions() -> dict:
    permissions = full_permissions()
    permissions["roles"]["delete"] = False
    return permissions


# Roles created at startup when missing: code -> (display name, permissions)
DEFAULT_ROLES = {
    RoleCode.SUPER_ADMIN: ("Super Admin", full_permissions()),
    RoleCode.ADMIN: ("Admin", _admin_permissions()),
    RoleCode.RECCE: ("Recce", view_permissions("stores", "elements")),
    RoleCode.INSTALLATION: ("Installation", view_permissions("stores", "elements")),
}

# Auth cookies
ACCESS_TOKEN_COOKIE = "access_token"
REFRESH_TOKEN_COOKIE = "refresh_token"
SESSION_COOKIE = "session_id"

# Store bulk upload columns
STORE_UPLOAD_COLUMNS = [
    "Sr. No.",
    "Dealer Code",
    "Vendor Code & Name",
    "Dealer's Name",
    "City",
    "District",
    "Dealer's Address",
    "Width (Ft.)",
    "Height (Ft.)",
    "Dealer Board Type",
    "Client Code",
    "State",
    "Zone",
]

# Per-user store assignment sheet
ASSIGNMENT_COLUMNS = ["Store ID", "Client Code", "Status"]

# User bulk upload columns
USER_UPLOAD_COLUMNS = ["Name", "Email", "Password", "Mobile", "Roles"]

# Accepted image uploads
ALLOWED_IMAGE_TYPES = {"image/jpeg", "image/jpg", "image/png", "image/webp"}

# Storage folder types
FOLDER_INITIAL = "initial"
FOLDER_RECCE = "recce"
FOLDER_INSTALLATION = "installation"

# Pagination
DEFAULT_PAGE_SIZE = 10  # Default number of items per page
MAX_PAGE_SIZE = 100  # Maximum items per page
