"""
Route access policies - the authorization guard.

Each route declares a RouteAccess descriptor and depends on guard():

    @router.get("/users")
    async def list_users(caller: CallerContext = Depends(guard(STAFF))):
        ...

guard() composes two gates:
1. Authentication: bearer token -> TokenIssuer.validate -> AuthService.validate_caller
2. Roles: caller passes if it holds ANY of the required role names

Failures raise UnauthorizedError / ForbiddenError; the HTTP boundary
turns them into responses.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Callable, Iterable

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from useradmin.auth.context import CallerContext
from useradmin.auth.permissions import SystemRole
from useradmin.auth.tokens import InvalidTokenError
from useradmin.core.errors import ForbiddenError, UnauthorizedError

logger = logging.getLogger(__name__)


# =============================================================================
# Route descriptors
# =============================================================================


@dataclass(frozen=True)
class RouteAccess:
    """
    Access requirements for one route.

    An empty `required_roles` admits any authenticated caller.
    """

    requires_auth: bool = True
    required_roles: frozenset[str] = field(default_factory=frozenset)

    @classmethod
    def roles(cls, *names: str | SystemRole) -> RouteAccess:
        return cls(
            requires_auth=True,
            required_roles=frozenset(n.value if isinstance(n, SystemRole) else n for n in names),
        )


PUBLIC = RouteAccess(requires_auth=False)
AUTHENTICATED = RouteAccess()
ADMIN_ONLY = RouteAccess.roles(SystemRole.ADMIN)
STAFF = RouteAccess.roles(SystemRole.ADMIN, SystemRole.MODERATOR)


def roles_satisfy(caller_roles: Iterable[str], required: Iterable[str]) -> bool:
    """OR semantics: empty `required` always passes, otherwise any overlap does."""
    required = set(required)
    if not required:
        return True
    return not required.isdisjoint(caller_roles)


# =============================================================================
# Bearer token extraction
# =============================================================================


# Doesn't fail by itself if the header is missing; the gate decides
optional_bearer = HTTPBearer(auto_error=False)


def _services(request: Request):
    container = request.app.state.container
    return container.tokens, container.auth


async def authenticate(
    request: Request,
    credentials: HTTPAuthorizationCredentials | None,
) -> CallerContext:
    """
    Authentication gate.

    Missing header, bad token, unknown account and non-ACTIVE account
    all collapse to the same UnauthorizedError.
    """
    if credentials is None or not credentials.credentials:
        raise UnauthorizedError("Missing authorization token")

    tokens, auth = _services(request)

    try:
        claims = tokens.validate(credentials.credentials)
    except InvalidTokenError as e:
        logger.info(f"Rejected bearer token: {e}")
        raise UnauthorizedError("Invalid or expired token")

    account = await auth.validate_caller(claims)
    return CallerContext(account=account, claims=claims)


# =============================================================================
# Main Interface - the guard() function
# =============================================================================


def guard(access: RouteAccess = AUTHENTICATED) -> Callable:
    """
    Build the FastAPI dependency enforcing `access`.

    Returns:
        Dependency resolving to CallerContext
    """

    async def dependency(
        request: Request,
        credentials: HTTPAuthorizationCredentials | None = Depends(optional_bearer),
    ) -> CallerContext:
        if not access.requires_auth:
            return CallerContext.anonymous()

        caller = await authenticate(request, credentials)

        if not roles_satisfy(caller.roles, access.required_roles):
            logger.warning(
                f"Account {caller.account_id} denied {request.method} {request.url.path}: "
                f"requires one of {sorted(access.required_roles)}"
            )
            raise ForbiddenError(
                f"Access denied. Required roles: {', '.join(sorted(access.required_roles))}"
            )

        return caller

    return dependency
