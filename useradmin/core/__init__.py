"""
Core domain: account/role records, error taxonomy, shared utilities.
"""

from useradmin.core.errors import (
    DomainError,
    BadRequestError,
    UnauthorizedError,
    ForbiddenError,
    NotFoundError,
    ConflictError,
    InternalError,
    StoreError,
    DuplicateKeyError,
)
from useradmin.core.models import (
    Account,
    AccountStatus,
    Role,
    role_names,
    has_role,
    has_permission,
    account_permissions,
)
from useradmin.core.utils import generate_id, utc_now

__all__ = [
    # Errors
    "DomainError",
    "BadRequestError",
    "UnauthorizedError",
    "ForbiddenError",
    "NotFoundError",
    "ConflictError",
    "InternalError",
    "StoreError",
    "DuplicateKeyError",
    # Models
    "Account",
    "AccountStatus",
    "Role",
    "role_names",
    "has_role",
    "has_permission",
    "account_permissions",
    # Utils
    "generate_id",
    "utc_now",
]
