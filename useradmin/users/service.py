"""
Account management for administrators and moderators.

Registration and credentials belong to AuthService; this service
covers admin-created accounts, profile edits, status changes, role
assignment and deletion.
"""

from __future__ import annotations

import logging
import secrets
import string
from typing import Any

from useradmin.auth.passwords import PasswordHasher
from useradmin.core.errors import BadRequestError, ConflictError, DuplicateKeyError, NotFoundError
from useradmin.core.models import Account, AccountStatus, Role
from useradmin.integrations.email import EmailService
from useradmin.storage.base import AccountQuery, AccountStore, RoleStore

logger = logging.getLogger(__name__)

TEMP_PASSWORD_LENGTH = 12
_SPECIALS = "@$!%*?&"


def generate_temporary_password(length: int = TEMP_PASSWORD_LENGTH) -> str:
    """Random password with at least one upper, lower, digit and special."""
    alphabet = string.ascii_letters + string.digits + _SPECIALS
    chars = [
        secrets.choice(string.ascii_uppercase),
        secrets.choice(string.ascii_lowercase),
        secrets.choice(string.digits),
        secrets.choice(_SPECIALS),
    ]
    chars += [secrets.choice(alphabet) for _ in range(length - len(chars))]
    secrets.SystemRandom().shuffle(chars)
    return "".join(chars)


class UserService:
    def __init__(
        self,
        accounts: AccountStore,
        roles: RoleStore,
        hasher: PasswordHasher,
        notifier: EmailService | None = None,
        default_role: str = "USER",
    ):
        self.accounts = accounts
        self.roles = roles
        self.hasher = hasher
        self.notifier = notifier
        self.default_role = default_role

    async def _save(self, account: Account) -> Account:
        try:
            return await self.accounts.save(account)
        except DuplicateKeyError:
            raise ConflictError("Email is already in use")

    async def _resolve_roles(self, role_ids: list[str]) -> list[Role]:
        unique_ids = list(dict.fromkeys(role_ids))
        roles = await self.roles.find_by_ids(unique_ids)
        if len(roles) != len(unique_ids):
            raise BadRequestError("One or more roles do not exist")
        return roles

    async def create(
        self,
        email: str,
        first_name: str,
        last_name: str,
        phone_number: str | None = None,
        status: AccountStatus | None = None,
        role_ids: list[str] | None = None,
    ) -> Account:
        """
        Create an account on behalf of an administrator.

        The account gets a random temporary password, mailed to the
        new owner and never returned to the administrator.
        """
        if await self.accounts.find_one(email=email):
            raise ConflictError("An account with this email already exists")

        if role_ids:
            roles = await self._resolve_roles(role_ids)
        else:
            default = await self.roles.find_one(name=self.default_role)
            roles = [default] if default else []

        temporary_password = generate_temporary_password()

        account = await self._save(Account(
            email=email,
            first_name=first_name,
            last_name=last_name,
            phone_number=phone_number,
            password_hash=await self.hasher.hash(temporary_password),
            status=status or AccountStatus.ACTIVE,
            email_verified=False,
            roles=roles,
        ))
        logger.info(f"Account {account.id} created by administrator")

        if self.notifier is not None:
            await self.notifier.send_temporary_password(
                account.email,
                account.first_name,
                temporary_password,
            )
        return account

    async def list(self, query: AccountQuery) -> tuple[list[Account], int]:
        return await self.accounts.list(query)

    async def get(self, account_id: str) -> Account:
        account = await self.accounts.find_one(id=account_id)
        if account is None:
            raise NotFoundError("User not found")
        return account

    async def update(
        self,
        account_id: str,
        email: str | None = None,
        first_name: str | None = None,
        last_name: str | None = None,
        phone_number: str | None = None,
        avatar: str | None = None,
        status: AccountStatus | None = None,
        role_ids: list[str] | None = None,
    ) -> Account:
        account = await self.get(account_id)

        if email and email != account.email:
            if await self.accounts.find_one(email=email):
                raise ConflictError("Email is already in use")
            account.email = email

        if role_ids is not None:
            account.roles = await self._resolve_roles(role_ids)

        for field, value in (
            ("first_name", first_name),
            ("last_name", last_name),
            ("phone_number", phone_number),
            ("avatar", avatar),
            ("status", status),
        ):
            if value is not None:
                setattr(account, field, value)

        return await self._save(account)

    async def update_profile(
        self,
        account_id: str,
        first_name: str | None = None,
        last_name: str | None = None,
        phone_number: str | None = None,
        avatar: str | None = None,
    ) -> Account:
        """Self-service edit; email, status and roles are not reachable here."""
        return await self.update(
            account_id,
            first_name=first_name,
            last_name=last_name,
            phone_number=phone_number,
            avatar=avatar,
        )

    async def update_status(self, account_id: str, status: AccountStatus) -> Account:
        account = await self.get(account_id)
        account.status = status
        logger.info(f"Account {account.id} status set to {status.value}")
        return await self._save(account)

    async def assign_roles(self, account_id: str, role_ids: list[str]) -> Account:
        if not role_ids:
            raise BadRequestError("At least one role is required")
        account = await self.get(account_id)
        account.roles = await self._resolve_roles(role_ids)
        return await self._save(account)

    async def remove(self, account_id: str) -> None:
        account = await self.get(account_id)
        await self.accounts.remove(account)
        logger.info(f"Account {account.id} deleted")

    async def soft_delete(self, account_id: str) -> Account:
        return await self.update_status(account_id, AccountStatus.INACTIVE)

    async def stats(self) -> dict[str, Any]:
        """Account totals per status, plus how many accounts hold each role."""
        _, total = await self.accounts.list(AccountQuery(limit=1))

        per_status = {}
        for status in AccountStatus:
            _, per_status[status] = await self.accounts.list(AccountQuery(status=status, limit=1))

        by_role = [
            {"role_name": role.name, "user_count": await self.roles.count_accounts(role.id)}
            for role in await self.roles.list_all()
        ]

        return {
            "total": total,
            "active": per_status[AccountStatus.ACTIVE],
            "inactive": per_status[AccountStatus.INACTIVE],
            "suspended": per_status[AccountStatus.SUSPENDED],
            "by_role": by_role,
        }
