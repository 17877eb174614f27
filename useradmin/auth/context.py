"""
Caller context - the "who is calling and what may they do" for each request.

This is the lightweight object passed to route handlers once the
authorization guard has run.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from useradmin.auth.permissions import Permission
from useradmin.auth.tokens import TokenClaims
from useradmin.core.models import Account, account_permissions, role_names


@dataclass
class CallerContext:
    """
    Authorization context for a request.

    Usage in routes:
        async def my_route(caller: CallerContext = Depends(guard(ADMIN_ONLY))):
            print(f"Account {caller.account_id} with roles {caller.roles}")
            if caller.can(Permission.USERS_DELETE):
                # do something
    """

    account: Account | None = None
    claims: TokenClaims | None = None

    # Computed from the account's roles (cached)
    roles: frozenset[str] = field(default_factory=frozenset)
    _permissions: set[str] = field(default_factory=set, repr=False)

    def __post_init__(self):
        if self.account is not None:
            self.roles = frozenset(role_names(self.account))
            self._permissions = account_permissions(self.account)

    @property
    def is_authenticated(self) -> bool:
        return self.account is not None

    @property
    def account_id(self) -> str | None:
        return self.account.id if self.account else None

    @property
    def permissions(self) -> set[str]:
        """All permissions granted by the caller's active roles."""
        return self._permissions

    def can(self, permission: Permission | str) -> bool:
        """
        Check if the caller holds a permission.

        Usage:
            if caller.can("users:update"):
                ...
        """
        if isinstance(permission, Permission):
            permission = permission.value
        return permission in self._permissions

    @classmethod
    def anonymous(cls) -> CallerContext:
        """Context for public routes (no caller)."""
        return cls()
