# =============================================================================
# Password Hashing
# =============================================================================
#
# bcrypt with a configurable cost factor. bcrypt is CPU-bound, so both
# calls run in a worker thread and only suspend the calling request.
#
# =============================================================================

from __future__ import annotations

import asyncio
import logging
import secrets

import bcrypt

logger = logging.getLogger(__name__)

DEFAULT_ROUNDS = 10


def hash_password_sync(password: str, rounds: int = DEFAULT_ROUNDS) -> str:
    """Hash a password with a fresh salt. Returns the modular-crypt string."""
    salt = bcrypt.gensalt(rounds=rounds)
    return bcrypt.hashpw(password.encode("utf-8"), salt).decode("utf-8")


def verify_password_sync(password: str, password_hash: str) -> bool:
    """Verify a password against its hash. Never raises for a bad hash."""
    if not password_hash:
        return False
    try:
        return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))
    except ValueError:
        logger.warning("Stored password hash is malformed")
        return False


class PasswordHasher:
    """
    Async facade over bcrypt.

    The cost factor is read once at construction; every hash embeds its
    own salt and rounds, so verify() works across cost changes.
    """

    def __init__(self, rounds: int = DEFAULT_ROUNDS):
        if not 4 <= rounds <= 31:
            raise ValueError(f"bcrypt rounds must be between 4 and 31, got {rounds}")
        self.rounds = rounds
        # Verified against when no account matches, so a miss costs one bcrypt check too
        self.dummy_hash = hash_password_sync(secrets.token_hex(16), rounds)

    async def hash(self, password: str) -> str:
        return await asyncio.to_thread(hash_password_sync, password, self.rounds)

    async def verify(self, password: str, password_hash: str) -> bool:
        return await asyncio.to_thread(verify_password_sync, password, password_hash)
