"""
Core data models for the useradmin service.

Accounts and roles are plain records. Persistence mapping lives in
useradmin.storage; behaviour that reads these records lives in the
free functions at the bottom of this module.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, Field

from useradmin.core.utils import generate_id, utc_now


# =============================================================================
# Enums
# =============================================================================


class AccountStatus(str, Enum):
    """Lifecycle status of an account."""

    ACTIVE = "ACTIVE"        # Can log in
    INACTIVE = "INACTIVE"    # Registered but unverified, or soft-deleted
    SUSPENDED = "SUSPENDED"  # Disabled by a moderator


# =============================================================================
# Role
# =============================================================================


class Role(BaseModel):
    """Named bundle of permission strings."""

    id: str = Field(default_factory=generate_id)
    name: str
    description: str | None = None
    permissions: list[str] = Field(default_factory=list)
    is_active: bool = True

    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)


# =============================================================================
# Account
# =============================================================================


class Account(BaseModel):
    """
    Identity record.

    `password_hash` and the one-time tokens are internal state; response
    models in the HTTP layer never copy them.
    """

    id: str = Field(default_factory=generate_id)
    email: str
    first_name: str
    last_name: str
    password_hash: str
    status: AccountStatus = AccountStatus.ACTIVE
    phone_number: str | None = None
    avatar: str | None = None

    email_verified: bool = False
    email_verification_token: str | None = None
    password_reset_token: str | None = None
    password_reset_expires: datetime | None = None
    last_login_at: datetime | None = None

    roles: list[Role] = Field(default_factory=list)

    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)

    @property
    def is_active(self) -> bool:
        return self.status == AccountStatus.ACTIVE

    def touch(self) -> None:
        self.updated_at = utc_now()


# =============================================================================
# Helpers
# =============================================================================


def role_names(account: Account) -> list[str]:
    """Names of every role held by the account, in assignment order."""
    return [role.name for role in account.roles]


def has_role(account: Account, name: str) -> bool:
    return any(role.name == name for role in account.roles)


def has_permission(role: Role, permission: str) -> bool:
    """Pure membership test against the role's permission strings."""
    return permission in role.permissions


def account_permissions(account: Account) -> set[str]:
    """Union of permissions over the account's active roles."""
    perms: set[str] = set()
    for role in account.roles:
        if role.is_active:
            perms.update(role.permissions)
    return perms
