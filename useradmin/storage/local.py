"""
Local storage implementations for development and tests.

In-memory stores that behave like the relational backend: unique keys
are enforced on save, records are copied in and out so callers only see
their changes after save(), and account roles are resolved from the
role store on every read.
"""

from __future__ import annotations

from typing import Any

from useradmin.core.errors import DuplicateKeyError
from useradmin.core.models import Account, Role
from useradmin.core.utils import utc_now
from useradmin.storage.base import (
    AccountQuery,
    AccountStore,
    RoleQuery,
    RoleStore,
    StorageProvider,
    check_criteria,
)


# =============================================================================
# Roles
# =============================================================================


class InMemoryRoleStore(RoleStore):
    """Role records keyed by id."""

    def __init__(self):
        self._roles: dict[str, Role] = {}
        self._accounts: InMemoryAccountStore | None = None

    async def find_one(self, **criteria: Any) -> Role | None:
        check_criteria(criteria, self.LOOKUP_FIELDS)
        for role in self._roles.values():
            if all(getattr(role, k) == v for k, v in criteria.items()):
                return role.model_copy(deep=True)
        return None

    async def find_by_ids(self, ids: list[str]) -> list[Role]:
        return [self._roles[i].model_copy(deep=True) for i in ids if i in self._roles]

    async def save(self, role: Role) -> Role:
        for other in self._roles.values():
            if other.id != role.id and other.name.upper() == role.name.upper():
                raise DuplicateKeyError("name")
        role.updated_at = utc_now()
        self._roles[role.id] = role.model_copy(deep=True)
        return role

    async def remove(self, role: Role) -> None:
        self._roles.pop(role.id, None)
        if self._accounts is not None:
            self._accounts._unlink_role(role.id)

    async def list(self, query: RoleQuery) -> tuple[list[Role], int]:
        roles = list(self._roles.values())
        if query.search:
            needle = query.search.lower()
            roles = [
                r for r in roles
                if needle in r.name.lower() or needle in (r.description or "").lower()
            ]
        if query.is_active is not None:
            roles = [r for r in roles if r.is_active == query.is_active]

        roles.sort(key=lambda r: r.created_at, reverse=True)
        page = roles[query.offset:query.offset + query.limit]
        return [r.model_copy(deep=True) for r in page], len(roles)

    async def count_accounts(self, role_id: str) -> int:
        if self._accounts is None:
            return 0
        return self._accounts._count_role(role_id)

    def _get(self, role_id: str) -> Role | None:
        role = self._roles.get(role_id)
        return role.model_copy(deep=True) if role else None


# =============================================================================
# Accounts
# =============================================================================


class InMemoryAccountStore(AccountStore):
    """
    Account records keyed by id.

    Role links are stored as ids and joined against the role store on
    read, mirroring the user_roles join table.
    """

    def __init__(self, roles: InMemoryRoleStore):
        self._accounts: dict[str, Account] = {}
        self._role_links: dict[str, list[str]] = {}
        self._roles = roles
        roles._accounts = self

    def _hydrate(self, account: Account) -> Account:
        copy = account.model_copy(deep=True)
        copy.roles = [
            role for role in (self._roles._get(rid) for rid in self._role_links.get(account.id, []))
            if role is not None
        ]
        return copy

    async def find_one(self, **criteria: Any) -> Account | None:
        check_criteria(criteria, self.LOOKUP_FIELDS)
        for account in self._accounts.values():
            if all(getattr(account, k) == v for k, v in criteria.items()):
                return self._hydrate(account)
        return None

    async def save(self, account: Account) -> Account:
        for other in self._accounts.values():
            if other.id != account.id and other.email == account.email:
                raise DuplicateKeyError("email")
        account.touch()
        stored = account.model_copy(deep=True)
        stored.roles = []
        self._accounts[account.id] = stored
        self._role_links[account.id] = [role.id for role in account.roles]
        return account

    async def remove(self, account: Account) -> None:
        self._accounts.pop(account.id, None)
        self._role_links.pop(account.id, None)

    async def list(self, query: AccountQuery) -> tuple[list[Account], int]:
        accounts = [self._hydrate(a) for a in self._accounts.values()]
        if query.search:
            needle = query.search.lower()
            accounts = [
                a for a in accounts
                if needle in a.first_name.lower()
                or needle in a.last_name.lower()
                or needle in a.email.lower()
            ]
        if query.status is not None:
            accounts = [a for a in accounts if a.status == query.status]
        if query.role:
            accounts = [a for a in accounts if any(r.name == query.role for r in a.roles)]

        accounts.sort(key=lambda a: a.created_at, reverse=True)
        return accounts[query.offset:query.offset + query.limit], len(accounts)

    def _count_role(self, role_id: str) -> int:
        return sum(1 for links in self._role_links.values() if role_id in links)

    def _unlink_role(self, role_id: str) -> None:
        for account_id, links in self._role_links.items():
            self._role_links[account_id] = [rid for rid in links if rid != role_id]


# =============================================================================
# Factory
# =============================================================================


def create_memory_storage() -> StorageProvider:
    """Create a storage provider backed by process memory."""
    roles = InMemoryRoleStore()
    return StorageProvider(
        accounts=InMemoryAccountStore(roles),
        roles=roles,
    )
