"""
Role management.

Names are stored uppercased, so uniqueness is case-insensitive.
Permission lists are checked against the Permission catalog.
"""

from __future__ import annotations

import logging
from typing import Any

from useradmin.auth.permissions import (
    PERMISSION_DESCRIPTIONS,
    SYSTEM_ROLE_DEFINITIONS,
    SystemRole,
    invalid_permissions,
    is_system_role,
)
from useradmin.core.errors import BadRequestError, ConflictError, DuplicateKeyError, NotFoundError
from useradmin.core.models import Role
from useradmin.storage.base import RoleQuery, RoleStore

logger = logging.getLogger(__name__)


def _check_permissions(permissions: list[str] | None) -> None:
    if not permissions:
        return
    invalid = invalid_permissions(permissions)
    if invalid:
        raise BadRequestError(f"Invalid permissions: {', '.join(invalid)}")


class RoleService:
    """CRUD over roles plus the system-role seed."""

    def __init__(self, roles: RoleStore):
        self.roles = roles

    async def _save(self, role: Role) -> Role:
        try:
            return await self.roles.save(role)
        except DuplicateKeyError:
            raise ConflictError("A role with this name already exists")

    async def create(
        self,
        name: str,
        description: str | None = None,
        permissions: list[str] | None = None,
        is_active: bool = True,
    ) -> Role:
        name = name.upper()
        if await self.roles.find_one(name=name):
            raise ConflictError("A role with this name already exists")

        _check_permissions(permissions)

        role = await self._save(Role(
            name=name,
            description=description,
            permissions=list(dict.fromkeys(permissions or [])),
            is_active=is_active,
        ))
        logger.info(f"Created role {role.name}")
        return role

    async def list(self, query: RoleQuery) -> tuple[list[tuple[Role, int]], int]:
        """Page of roles, each paired with the number of accounts holding it."""
        roles, total = await self.roles.list(query)
        counted = [(role, await self.roles.count_accounts(role.id)) for role in roles]
        return counted, total

    async def get(self, role_id: str) -> Role:
        role = await self.roles.find_one(id=role_id)
        if role is None:
            raise NotFoundError("Role not found")
        return role

    async def user_count(self, role_id: str) -> int:
        return await self.roles.count_accounts(role_id)

    async def find_by_name(self, name: str) -> Role | None:
        return await self.roles.find_one(name=name.upper())

    async def update(
        self,
        role_id: str,
        name: str | None = None,
        description: str | None = None,
        permissions: list[str] | None = None,
        is_active: bool | None = None,
    ) -> Role:
        role = await self.get(role_id)

        if name and name.upper() != role.name:
            if await self.roles.find_one(name=name.upper()):
                raise ConflictError("Role name is already in use")
            role.name = name.upper()

        if permissions is not None:
            _check_permissions(permissions)
            role.permissions = list(dict.fromkeys(permissions))

        if description is not None:
            role.description = description
        if is_active is not None:
            role.is_active = is_active

        return await self._save(role)

    async def assign_permissions(self, role_id: str, permissions: list[str]) -> Role:
        if not permissions:
            raise BadRequestError("At least one permission is required")
        role = await self.get(role_id)
        _check_permissions(permissions)
        role.permissions = list(dict.fromkeys(permissions))
        return await self._save(role)

    async def remove(self, role_id: str) -> None:
        role = await self.get(role_id)

        if is_system_role(role.name):
            raise BadRequestError("System roles cannot be deleted")

        if await self.roles.count_accounts(role.id) > 0:
            raise BadRequestError("Cannot delete a role that is assigned to users")

        await self.roles.remove(role)
        logger.info(f"Deleted role {role.name}")

    async def toggle_status(self, role_id: str) -> Role:
        role = await self.get(role_id)
        if role.name == SystemRole.ADMIN.value:
            raise BadRequestError("The administrator role cannot be deactivated")
        role.is_active = not role.is_active
        return await self._save(role)

    def available_permissions(self) -> list[dict[str, str]]:
        return [
            {"key": perm.value, "description": description}
            for perm, description in PERMISSION_DESCRIPTIONS.items()
        ]

    async def stats(self) -> dict[str, Any]:
        """Role totals by activity, and accounts per role (busiest first)."""
        _, total = await self.roles.list(RoleQuery(limit=1))
        _, active = await self.roles.list(RoleQuery(is_active=True, limit=1))
        _, inactive = await self.roles.list(RoleQuery(is_active=False, limit=1))

        usage = [
            {
                "role_name": role.name,
                "role_description": role.description,
                "user_count": await self.roles.count_accounts(role.id),
            }
            for role in await self.roles.list_all()
        ]
        usage.sort(key=lambda u: u["user_count"], reverse=True)

        return {"total": total, "active": active, "inactive": inactive, "usage": usage}

    async def initialize_default_roles(self) -> list[Role]:
        """Create any missing system role. Existing roles are left untouched."""
        created = []
        for system_role, definition in SYSTEM_ROLE_DEFINITIONS.items():
            if await self.roles.find_one(name=system_role.value):
                continue
            try:
                role = await self.roles.save(Role(
                    name=system_role.value,
                    description=definition["description"],
                    permissions=list(definition["permissions"]),
                ))
            except DuplicateKeyError:
                # Another worker seeded it first
                continue
            logger.info(f"Seeded system role {role.name}")
            created.append(role)
        return created
