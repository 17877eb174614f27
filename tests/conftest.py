"""
Shared fixtures.

Everything runs against the in-memory store with the cheapest bcrypt
cost; tests/test_sql_store.py covers the relational backend.
"""

import asyncio

import pytest

from useradmin.auth.passwords import PasswordHasher, hash_password_sync
from useradmin.auth.service import AuthService
from useradmin.auth.tokens import TokenIssuer
from useradmin.config import Settings
from useradmin.core.models import Account, AccountStatus
from useradmin.roles.service import RoleService
from useradmin.storage import create_memory_storage
from useradmin.users.service import UserService

TEST_SECRET = "test-secret"
FAST_ROUNDS = 4


class RecordingNotifier:
    """Stands in for EmailService; keeps what would have been mailed."""

    def __init__(self):
        self.sent: list[tuple[str, str, dict]] = []

    async def send_welcome(self, email: str, name: str, verify_token: str) -> bool:
        self.sent.append(("welcome", email, {"name": name, "token": verify_token}))
        return True

    async def send_password_reset(self, email: str, reset_token: str) -> bool:
        self.sent.append(("password_reset", email, {"token": reset_token}))
        return True

    async def send_temporary_password(self, email: str, name: str, password: str) -> bool:
        self.sent.append(("temporary_password", email, {"name": name, "password": password}))
        return True

    async def send_email_verified(self, email: str) -> bool:
        self.sent.append(("email_verified", email, {}))
        return True

    def last(self, template: str) -> tuple[str, str, dict]:
        matches = [s for s in self.sent if s[0] == template]
        assert matches, f"no '{template}' email was sent"
        return matches[-1]


# =============================================================================
# Settings & primitives
# =============================================================================


@pytest.fixture
def settings():
    return Settings(
        _env_file=None,
        environment="test",
        database_url="memory://",
        jwt_secret_key=TEST_SECRET,
        bcrypt_rounds=FAST_ROUNDS,
        sentry_dsn="",
        aws_access_key_id="",
        aws_secret_access_key="",
    )


@pytest.fixture
def hasher():
    return PasswordHasher(rounds=FAST_ROUNDS)


@pytest.fixture
def issuer():
    return TokenIssuer(secret=TEST_SECRET, expires_minutes=5)


@pytest.fixture
def notifier():
    return RecordingNotifier()


# =============================================================================
# Storage & services
# =============================================================================


@pytest.fixture
def storage():
    return create_memory_storage()


@pytest.fixture
async def seeded_storage(storage):
    await RoleService(storage.roles).initialize_default_roles()
    return storage


@pytest.fixture
def role_service(seeded_storage):
    return RoleService(seeded_storage.roles)


@pytest.fixture
def auth_service(seeded_storage, hasher, issuer, notifier):
    return AuthService(
        accounts=seeded_storage.accounts,
        roles=seeded_storage.roles,
        hasher=hasher,
        tokens=issuer,
        notifier=notifier,
    )


@pytest.fixture
def user_service(seeded_storage, hasher, notifier):
    return UserService(
        accounts=seeded_storage.accounts,
        roles=seeded_storage.roles,
        hasher=hasher,
        notifier=notifier,
    )


# =============================================================================
# Helpers
# =============================================================================


async def add_account(storage, email: str, password: str, *role_names: str, status=AccountStatus.ACTIVE) -> Account:
    """Insert a verified account holding the named roles."""
    roles = [await storage.roles.find_one(name=name) for name in role_names]
    return await storage.accounts.save(Account(
        email=email,
        first_name=email.split("@")[0].title(),
        last_name="Tester",
        password_hash=hash_password_sync(password, rounds=FAST_ROUNDS),
        status=status,
        email_verified=True,
        roles=[r for r in roles if r is not None],
    ))


def run(coro):
    """Drive a coroutine from synchronous test code."""
    return asyncio.run(coro)
