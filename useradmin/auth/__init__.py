"""
Authentication and authorization.

- PasswordHasher / TokenIssuer: credential primitives
- AuthService: register, login, verification and password flows
- guard(): FastAPI dependency enforcing a RouteAccess descriptor
"""

from useradmin.auth.context import CallerContext
from useradmin.auth.passwords import PasswordHasher, hash_password_sync, verify_password_sync
from useradmin.auth.permissions import Permission, SystemRole
from useradmin.auth.policies import (
    ADMIN_ONLY,
    AUTHENTICATED,
    PUBLIC,
    STAFF,
    RouteAccess,
    guard,
    roles_satisfy,
)
from useradmin.auth.service import AuthResult, AuthService
from useradmin.auth.tokens import (
    InvalidTokenError,
    TokenClaims,
    TokenExpiredError,
    TokenIssuer,
    generate_opaque_token,
)
from useradmin.auth.routes import router as auth_router

__all__ = [
    # Main interface
    "guard",
    "RouteAccess",
    "roles_satisfy",
    "PUBLIC",
    "AUTHENTICATED",
    "ADMIN_ONLY",
    "STAFF",
    "CallerContext",
    # Services
    "AuthService",
    "AuthResult",
    # Primitives
    "PasswordHasher",
    "hash_password_sync",
    "verify_password_sync",
    "TokenIssuer",
    "TokenClaims",
    "InvalidTokenError",
    "TokenExpiredError",
    "generate_opaque_token",
    # Catalog
    "Permission",
    "SystemRole",
    # Router
    "auth_router",
]
