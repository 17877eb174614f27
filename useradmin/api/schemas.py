"""
Request/response models shared by the HTTP routers.

Response models copy only public fields: password hashes and one-time
tokens never leave the service.
"""

from __future__ import annotations

import re
from datetime import datetime

from pydantic import BaseModel

from useradmin.core.models import Account, AccountStatus, Role, role_names


PASSWORD_MIN_LENGTH = 8
PASSWORD_MAX_LENGTH = 50
PASSWORD_SPECIALS = "@$!%*?&"
PHONE_PATTERN = r"^\+?[1-9]\d{1,14}$"


def check_password_strength(password: str) -> str:
    """
    Require lower, upper, digit and one of @$!%*?&.

    Raises ValueError (pydantic turns it into a validation error).
    """
    if not re.search(r"[a-z]", password):
        raise ValueError("Password must contain at least one lowercase letter")
    if not re.search(r"[A-Z]", password):
        raise ValueError("Password must contain at least one uppercase letter")
    if not re.search(r"\d", password):
        raise ValueError("Password must contain at least one digit")
    if not any(c in PASSWORD_SPECIALS for c in password):
        raise ValueError(f"Password must contain at least one of {PASSWORD_SPECIALS}")
    return password


# =============================================================================
# Responses
# =============================================================================


class RoleSummary(BaseModel):
    id: str
    name: str
    description: str | None = None
    permissions: list[str] = []


class RoleResponse(RoleSummary):
    is_active: bool
    created_at: datetime
    updated_at: datetime
    user_count: int | None = None

    @classmethod
    def from_role(cls, role: Role, user_count: int | None = None) -> RoleResponse:
        return cls(
            id=role.id,
            name=role.name,
            description=role.description,
            permissions=list(role.permissions),
            is_active=role.is_active,
            created_at=role.created_at,
            updated_at=role.updated_at,
            user_count=user_count,
        )


class AccountResponse(BaseModel):
    """Account data returned to clients (no secrets)."""

    id: str
    email: str
    first_name: str
    last_name: str
    phone_number: str | None = None
    avatar: str | None = None
    status: AccountStatus
    email_verified: bool
    last_login_at: datetime | None = None
    roles: list[RoleSummary] = []
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_account(cls, account: Account) -> AccountResponse:
        return cls(
            id=account.id,
            email=account.email,
            first_name=account.first_name,
            last_name=account.last_name,
            phone_number=account.phone_number,
            avatar=account.avatar,
            status=account.status,
            email_verified=account.email_verified,
            last_login_at=account.last_login_at,
            roles=[
                RoleSummary(
                    id=r.id,
                    name=r.name,
                    description=r.description,
                    permissions=list(r.permissions),
                )
                for r in account.roles
            ],
            created_at=account.created_at,
            updated_at=account.updated_at,
        )


class CallerSummary(BaseModel):
    id: str
    email: str
    roles: list[str]

    @classmethod
    def from_account(cls, account: Account) -> CallerSummary:
        return cls(id=account.id, email=account.email, roles=role_names(account))


class MessageResponse(BaseModel):
    message: str


class Pagination(BaseModel):
    page: int
    limit: int
    total: int
    pages: int

    @classmethod
    def build(cls, page: int, limit: int, total: int) -> Pagination:
        return cls(page=page, limit=limit, total=total, pages=-(-total // limit) if limit else 0)
