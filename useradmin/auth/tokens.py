# =============================================================================
# Tokens
# =============================================================================
#
# Two unrelated kinds of token live here:
#   - Opaque one-time tokens (email verification, password reset):
#     random hex strings with no structure, stored server-side.
#   - Signed bearer tokens (JWT, HMAC-SHA256): carry subject, email and
#     role names; validated statelessly, then re-checked against the
#     store by the authentication gate.
#
# =============================================================================

from __future__ import annotations

import secrets
from datetime import datetime, timedelta, timezone

import jwt
from pydantic import BaseModel, Field, ValidationError

from useradmin.core.utils import utc_now

# 32 bytes = 256 bits of entropy
OPAQUE_TOKEN_BYTES = 32


def generate_opaque_token(nbytes: int = OPAQUE_TOKEN_BYTES) -> str:
    """Random single-use token, hex encoded."""
    return secrets.token_hex(nbytes)


# =============================================================================
# Models
# =============================================================================


class TokenClaims(BaseModel):
    """Claims carried by a bearer token."""

    sub: str  # account id
    email: str
    roles: list[str] = Field(default_factory=list)
    iat: datetime | None = None
    exp: datetime | None = None


# =============================================================================
# Errors
# =============================================================================


class InvalidTokenError(Exception):
    """Token is invalid, malformed, or expired."""
    pass


class TokenExpiredError(InvalidTokenError):
    """Token has expired."""
    pass


# =============================================================================
# Issuer
# =============================================================================


class TokenIssuer:
    """Issues and validates signed bearer tokens."""

    def __init__(
        self,
        secret: str,
        algorithm: str = "HS256",
        expires_minutes: int = 60 * 24,
    ):
        if not secret:
            raise ValueError("Token secret must not be empty")
        self._secret = secret
        self.algorithm = algorithm
        self.expires_in = timedelta(minutes=expires_minutes)

    @property
    def expires_in_seconds(self) -> int:
        return int(self.expires_in.total_seconds())

    def issue(self, claims: TokenClaims) -> str:
        """Sign claims. iat/exp are always set here, never by the caller."""
        now = utc_now()
        payload = {
            "sub": claims.sub,
            "email": claims.email,
            "roles": list(claims.roles),
            "iat": now,
            "exp": now + self.expires_in,
        }
        return jwt.encode(payload, self._secret, algorithm=self.algorithm)

    def validate(self, token: str) -> TokenClaims:
        """
        Decode and validate a bearer token.

        Raises:
            TokenExpiredError: exp is in the past
            InvalidTokenError: bad signature, malformed token, missing claims
        """
        if not token:
            raise InvalidTokenError("Missing token")

        try:
            payload = jwt.decode(
                token,
                self._secret,
                algorithms=[self.algorithm],
                options={"require": ["sub", "exp", "iat"]},
            )
        except jwt.ExpiredSignatureError:
            raise TokenExpiredError("Token has expired")
        except jwt.InvalidTokenError as e:
            raise InvalidTokenError(f"Invalid token: {e}")

        try:
            return TokenClaims(
                sub=payload["sub"],
                email=payload.get("email", ""),
                roles=payload.get("roles", []),
                iat=datetime.fromtimestamp(payload["iat"], tz=timezone.utc),
                exp=datetime.fromtimestamp(payload["exp"], tz=timezone.utc),
            )
        except (ValidationError, TypeError, ValueError) as e:
            raise InvalidTokenError(f"Invalid token claims: {e}")
