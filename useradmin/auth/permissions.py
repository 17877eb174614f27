"""
Permissions and system roles.

This defines WHAT roles can do, not HOW routes are gated.
Route gating by role name happens in policies.py.
"""

from __future__ import annotations

from enum import Enum


class Permission(str, Enum):
    """
    Fine-grained permission catalog.

    Role.permissions may only contain these values.
    """

    # Users
    USERS_READ = "users:read"
    USERS_CREATE = "users:create"
    USERS_UPDATE = "users:update"
    USERS_DELETE = "users:delete"
    USERS_MANAGE_ROLES = "users:manage_roles"
    USERS_MANAGE_STATUS = "users:manage_status"

    # Roles
    ROLES_READ = "roles:read"
    ROLES_CREATE = "roles:create"
    ROLES_UPDATE = "roles:update"
    ROLES_DELETE = "roles:delete"
    ROLES_ASSIGN_PERMISSIONS = "roles:assign_permissions"

    # System
    SYSTEM_ADMIN = "system:admin"
    SYSTEM_STATS = "system:stats"
    SYSTEM_LOGS = "system:logs"

    # Reports
    REPORTS_VIEW = "reports:view"
    REPORTS_EXPORT = "reports:export"


PERMISSION_DESCRIPTIONS: dict[Permission, str] = {
    Permission.USERS_READ: "Read users",
    Permission.USERS_CREATE: "Create users",
    Permission.USERS_UPDATE: "Update users",
    Permission.USERS_DELETE: "Delete users",
    Permission.USERS_MANAGE_ROLES: "Manage user roles",
    Permission.USERS_MANAGE_STATUS: "Manage user status",
    Permission.ROLES_READ: "Read roles",
    Permission.ROLES_CREATE: "Create roles",
    Permission.ROLES_UPDATE: "Update roles",
    Permission.ROLES_DELETE: "Delete roles",
    Permission.ROLES_ASSIGN_PERMISSIONS: "Assign permissions to roles",
    Permission.SYSTEM_ADMIN: "Full system administration",
    Permission.SYSTEM_STATS: "View system statistics",
    Permission.SYSTEM_LOGS: "View system logs",
    Permission.REPORTS_VIEW: "View reports",
    Permission.REPORTS_EXPORT: "Export reports",
}


def is_valid_permission(value: str) -> bool:
    try:
        Permission(value)
    except ValueError:
        return False
    return True


def invalid_permissions(values: list[str]) -> list[str]:
    """Return the entries of `values` that are not in the catalog."""
    return [v for v in values if not is_valid_permission(v)]


# =============================================================================
# System Roles
# =============================================================================


class SystemRole(str, Enum):
    """Roles seeded at startup. They cannot be deleted."""

    ADMIN = "ADMIN"
    MODERATOR = "MODERATOR"
    USER = "USER"


SYSTEM_ROLE_DEFINITIONS: dict[SystemRole, dict] = {
    SystemRole.ADMIN: {
        "description": "System administrator with every permission",
        "permissions": [p.value for p in Permission],
    },
    SystemRole.MODERATOR: {
        "description": "Moderator with limited management permissions",
        "permissions": [
            Permission.USERS_READ.value,
            Permission.USERS_UPDATE.value,
            Permission.USERS_MANAGE_STATUS.value,
            Permission.ROLES_READ.value,
            Permission.REPORTS_VIEW.value,
        ],
    },
    SystemRole.USER: {
        "description": "Standard user",
        "permissions": [],
    },
}


def is_system_role(name: str) -> bool:
    return name in {r.value for r in SystemRole}
