"""
Storage abstraction layer.

All persistence goes through these interfaces. This allows swapping
implementations (in-memory → SQLite → PostgreSQL) without changing
the auth flow or the management services.

Implementations:
- InMemoryAccountStore / InMemoryRoleStore (useradmin.storage.local)
- SqlAccountStore / SqlRoleStore (useradmin.storage.sql)
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any

from pydantic import BaseModel

from useradmin.core.models import Account, AccountStatus, Role


# =============================================================================
# Query options
# =============================================================================


class PageQuery(BaseModel):
    page: int = 1
    limit: int = 10

    @property
    def offset(self) -> int:
        return (max(self.page, 1) - 1) * self.limit


class AccountQuery(PageQuery):
    """Filters and paging for account listings."""

    search: str | None = None       # substring of first/last name or email
    status: AccountStatus | None = None
    role: str | None = None         # role name


class RoleQuery(PageQuery):
    """Filters and paging for role listings."""

    search: str | None = None       # substring of name or description
    is_active: bool | None = None


# =============================================================================
# Storage Interfaces
# =============================================================================


class AccountStore(ABC):
    """
    Persistence for accounts.

    Every returned Account has its roles loaded.
    """

    # Fields find_one() may be called with; all are unique keys.
    LOOKUP_FIELDS = frozenset({
        "id",
        "email",
        "email_verification_token",
        "password_reset_token",
    })

    @abstractmethod
    async def find_one(self, **criteria: Any) -> Account | None:
        """Find an account matching every criterion (AND)."""
        pass

    @abstractmethod
    async def save(self, account: Account) -> Account:
        """
        Insert or update an account and its role links.

        Raises:
            DuplicateKeyError: the email belongs to another account
        """
        pass

    @abstractmethod
    async def remove(self, account: Account) -> None:
        """Hard-delete an account."""
        pass

    @abstractmethod
    async def list(self, query: AccountQuery) -> tuple[list[Account], int]:
        """Page of accounts (newest first) and the total match count."""
        pass


class RoleStore(ABC):
    """Persistence for roles."""

    LOOKUP_FIELDS = frozenset({"id", "name"})

    @abstractmethod
    async def find_one(self, **criteria: Any) -> Role | None:
        pass

    @abstractmethod
    async def find_by_ids(self, ids: list[str]) -> list[Role]:
        """Roles whose id is in `ids`; missing ids are silently skipped."""
        pass

    @abstractmethod
    async def save(self, role: Role) -> Role:
        """
        Raises:
            DuplicateKeyError: the name belongs to another role
        """
        pass

    @abstractmethod
    async def remove(self, role: Role) -> None:
        pass

    @abstractmethod
    async def list(self, query: RoleQuery) -> tuple[list[Role], int]:
        pass

    @abstractmethod
    async def count_accounts(self, role_id: str) -> int:
        """Number of accounts holding the role."""
        pass

    async def list_all(self, page_size: int = 100) -> list[Role]:
        """Every role, fetched page by page."""
        roles: list[Role] = []
        page = 1
        while True:
            batch, total = await self.list(RoleQuery(page=page, limit=page_size))
            roles.extend(batch)
            if not batch or len(roles) >= total:
                return roles
            page += 1


def check_criteria(criteria: dict[str, Any], allowed: frozenset[str]) -> None:
    """Reject empty or unknown lookup keys before they reach a backend."""
    if not criteria:
        raise ValueError("find_one() requires at least one criterion")
    unknown = set(criteria) - allowed
    if unknown:
        raise ValueError(f"Unsupported lookup fields: {sorted(unknown)}")


# =============================================================================
# Storage Provider
# =============================================================================


class StorageProvider(BaseModel):
    """
    Container for the store backends.

    Initialize once at app startup with appropriate implementations.
    Services receive the stores they need and use the interfaces
    without knowing the underlying implementation.
    """

    model_config = {"arbitrary_types_allowed": True}

    accounts: AccountStore
    roles: RoleStore

    async def initialize(self) -> None:
        """Create schema if the backend needs it."""
        init = getattr(self.accounts, "initialize", None)
        if init is not None:
            await init()

    async def close(self) -> None:
        close = getattr(self.accounts, "close", None)
        if close is not None:
            await close()
