"""
Domain error taxonomy.

Services raise these at the point of detection. The HTTP boundary
(useradmin.api.errors) is the only place they become responses.
"""

from __future__ import annotations


class DomainError(Exception):
    """Base class for expected, caller-visible failures."""

    status_code: int = 500
    error: str = "Internal Server Error"

    def __init__(self, message: str | list[str] | None = None):
        self.message = message if message is not None else self.error
        super().__init__(self.message if isinstance(self.message, str) else "; ".join(self.message))


class BadRequestError(DomainError):
    """Malformed or expired one-time token, invalid reference, rule violation."""

    status_code = 400
    error = "Bad Request"


class UnauthorizedError(DomainError):
    """Bad credentials, invalid/missing token, or inactive account."""

    status_code = 401
    error = "Unauthorized"


class ForbiddenError(DomainError):
    """Caller authenticated but lacks a required role."""

    status_code = 403
    error = "Forbidden"


class NotFoundError(DomainError):
    status_code = 404
    error = "Not Found"


class ConflictError(DomainError):
    """Duplicate unique key (email, role name)."""

    status_code = 409
    error = "Conflict"


class InternalError(DomainError):
    status_code = 500
    error = "Internal Server Error"


# =============================================================================
# Store errors
# =============================================================================


class StoreError(Exception):
    """Unexpected failure inside a store implementation."""


class DuplicateKeyError(StoreError):
    """A unique constraint rejected the write."""

    def __init__(self, field: str):
        self.field = field
        super().__init__(f"Duplicate value for unique field '{field}'")
