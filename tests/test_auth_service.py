"""
Tests for the authentication flow.

Account lifecycle: register (INACTIVE) -> verify (ACTIVE) -> login.
"""

from datetime import timedelta

import pytest

from conftest import add_account
from useradmin.auth.passwords import PasswordHasher
from useradmin.auth.service import FORGOT_PASSWORD_MESSAGE, INVALID_CREDENTIALS, AuthService
from useradmin.core.errors import BadRequestError, ConflictError, UnauthorizedError
from useradmin.core.models import AccountStatus
from useradmin.core.utils import utc_now

EMAIL = "a@x.com"
PASSWORD = "Aa1!aaaa"


class CountingHasher(PasswordHasher):
    def __init__(self, rounds: int):
        super().__init__(rounds)
        self.verify_calls = 0

    async def verify(self, password: str, password_hash: str) -> bool:
        self.verify_calls += 1
        return await super().verify(password, password_hash)


async def register(auth_service, email=EMAIL, password=PASSWORD):
    return await auth_service.register(
        email=email,
        password=password,
        first_name="Ada",
        last_name="Lovelace",
    )


# =============================================================================
# Scenario
# =============================================================================


class TestLifecycle:
    async def test_full_scenario(self, auth_service, notifier):
        result = await register(auth_service)
        assert result.account.status == AccountStatus.INACTIVE

        with pytest.raises(UnauthorizedError):
            await auth_service.login(EMAIL, PASSWORD)

        _, _, mail = notifier.last("welcome")
        await auth_service.verify_email(mail["token"])

        login = await auth_service.login(EMAIL, PASSWORD)
        assert login.account.status == AccountStatus.ACTIVE
        assert login.access_token

        message = await auth_service.change_password(login.account.id, PASSWORD, "Bb2!bbbb")
        assert message == "Password changed successfully"

        with pytest.raises(UnauthorizedError):
            await auth_service.change_password(login.account.id, PASSWORD, "Cc3!cccc")

    async def test_login_with_new_password_after_change(self, auth_service, seeded_storage):
        account = await add_account(seeded_storage, EMAIL, PASSWORD, "USER")

        await auth_service.change_password(account.id, PASSWORD, "Bb2!bbbb")

        assert (await auth_service.login(EMAIL, "Bb2!bbbb")).account.id == account.id
        with pytest.raises(UnauthorizedError):
            await auth_service.login(EMAIL, PASSWORD)


# =============================================================================
# Registration
# =============================================================================


class TestRegister:
    async def test_defaults(self, auth_service, issuer):
        result = await register(auth_service)
        account = result.account

        assert account.email_verified is False
        assert account.email_verification_token
        assert [r.name for r in account.roles] == ["USER"]
        assert account.password_hash != PASSWORD
        assert issuer.validate(result.access_token).sub == account.id

    async def test_sends_welcome(self, auth_service, notifier):
        result = await register(auth_service)

        template, to, mail = notifier.last("welcome")
        assert to == EMAIL
        assert mail["token"] == result.account.email_verification_token

    async def test_duplicate_email(self, auth_service):
        await register(auth_service)

        with pytest.raises(ConflictError):
            await register(auth_service)

    async def test_missing_default_role(self, storage, hasher, issuer):
        service = AuthService(storage.accounts, storage.roles, hasher, issuer)

        with pytest.raises(BadRequestError):
            await register(service)


# =============================================================================
# Login
# =============================================================================


class TestLogin:
    async def test_unknown_email(self, auth_service):
        with pytest.raises(UnauthorizedError) as exc:
            await auth_service.login("nobody@x.com", PASSWORD)
        assert exc.value.message == INVALID_CREDENTIALS

    async def test_failures_are_indistinguishable(self, auth_service, seeded_storage):
        await add_account(seeded_storage, "active@x.com", PASSWORD, "USER")
        await add_account(seeded_storage, "held@x.com", PASSWORD, "USER", status=AccountStatus.SUSPENDED)

        messages = []
        for email, password in [
            ("active@x.com", "Wrong1!xx"),
            ("held@x.com", PASSWORD),
            ("ghost@x.com", PASSWORD),
        ]:
            with pytest.raises(UnauthorizedError) as exc:
                await auth_service.login(email, password)
            messages.append(exc.value.message)

        assert set(messages) == {INVALID_CREDENTIALS}

    async def test_unknown_email_costs_one_hash_check(self, seeded_storage, issuer):
        hasher = CountingHasher(rounds=4)
        service = AuthService(seeded_storage.accounts, seeded_storage.roles, hasher, issuer)
        await add_account(seeded_storage, "known@x.com", PASSWORD, "USER")

        for email in ("known@x.com", "nobody@x.com"):
            before = hasher.verify_calls
            with pytest.raises(UnauthorizedError):
                await service.login(email, "Wrong1!xx")
            assert hasher.verify_calls - before == 1

    async def test_records_last_login(self, auth_service, seeded_storage):
        await add_account(seeded_storage, EMAIL, PASSWORD, "USER")

        result = await auth_service.login(EMAIL, PASSWORD)

        stored = await seeded_storage.accounts.find_one(email=EMAIL)
        assert stored.last_login_at is not None
        assert result.account.last_login_at == stored.last_login_at


# =============================================================================
# Email verification
# =============================================================================


class TestVerifyEmail:
    async def test_activates_and_clears_token(self, auth_service, seeded_storage):
        result = await register(auth_service)
        token = result.account.email_verification_token

        await auth_service.verify_email(token)

        stored = await seeded_storage.accounts.find_one(id=result.account.id)
        assert stored.status == AccountStatus.ACTIVE
        assert stored.email_verified is True
        assert stored.email_verification_token is None

    async def test_consumed_token_is_rejected(self, auth_service):
        result = await register(auth_service)
        token = result.account.email_verification_token
        await auth_service.verify_email(token)

        with pytest.raises(BadRequestError):
            await auth_service.verify_email(token)

    async def test_already_verified_is_a_no_op(self, auth_service, seeded_storage):
        account = await add_account(seeded_storage, EMAIL, PASSWORD, "USER", status=AccountStatus.SUSPENDED)
        account.email_verification_token = "stale-token"
        await seeded_storage.accounts.save(account)

        message = await auth_service.verify_email("stale-token")

        stored = await seeded_storage.accounts.find_one(id=account.id)
        assert message == "Email was already verified"
        assert stored.status == AccountStatus.SUSPENDED

    @pytest.mark.parametrize("token", [None, "", "unknown"])
    async def test_bad_token(self, auth_service, token):
        with pytest.raises(BadRequestError):
            await auth_service.verify_email(token)

    async def test_sends_confirmation(self, auth_service, notifier):
        result = await register(auth_service)
        await auth_service.verify_email(result.account.email_verification_token)

        assert notifier.last("email_verified")[1] == EMAIL


# =============================================================================
# Passwords
# =============================================================================


class TestChangePassword:
    async def test_same_password_rejected(self, auth_service, seeded_storage):
        account = await add_account(seeded_storage, EMAIL, PASSWORD, "USER")

        with pytest.raises(BadRequestError):
            await auth_service.change_password(account.id, PASSWORD, PASSWORD)

    async def test_unknown_account(self, auth_service):
        with pytest.raises(UnauthorizedError):
            await auth_service.change_password("missing", PASSWORD, "Bb2!bbbb")


class TestForgotPassword:
    async def test_identical_reply(self, auth_service, seeded_storage):
        await add_account(seeded_storage, EMAIL, PASSWORD, "USER")

        known = await auth_service.forgot_password(EMAIL)
        unknown = await auth_service.forgot_password("ghost@x.com")

        assert known == unknown == FORGOT_PASSWORD_MESSAGE

    async def test_issues_token_with_expiry(self, auth_service, seeded_storage, notifier):
        await add_account(seeded_storage, EMAIL, PASSWORD, "USER")
        before = utc_now()

        await auth_service.forgot_password(EMAIL)

        stored = await seeded_storage.accounts.find_one(email=EMAIL)
        assert stored.password_reset_token
        assert stored.password_reset_expires > before + timedelta(minutes=59)
        assert notifier.last("password_reset")[2]["token"] == stored.password_reset_token

    async def test_unknown_email_sends_nothing(self, auth_service, notifier):
        await auth_service.forgot_password("ghost@x.com")

        assert notifier.sent == []


class TestResetPassword:
    async def _request_reset(self, auth_service, storage):
        await add_account(storage, EMAIL, PASSWORD, "USER")
        await auth_service.forgot_password(EMAIL)
        return await storage.accounts.find_one(email=EMAIL)

    async def test_before_expiry(self, auth_service, seeded_storage):
        account = await self._request_reset(auth_service, seeded_storage)

        await auth_service.reset_password(account.password_reset_token, "Bb2!bbbb")

        stored = await seeded_storage.accounts.find_one(id=account.id)
        assert stored.password_reset_token is None
        assert stored.password_reset_expires is None
        assert (await auth_service.login(EMAIL, "Bb2!bbbb")).account.id == account.id

    async def test_token_is_single_use(self, auth_service, seeded_storage):
        account = await self._request_reset(auth_service, seeded_storage)
        await auth_service.reset_password(account.password_reset_token, "Bb2!bbbb")

        with pytest.raises(BadRequestError):
            await auth_service.reset_password(account.password_reset_token, "Cc3!cccc")

    async def test_expiry_boundary_is_exclusive(self, auth_service, seeded_storage, monkeypatch):
        account = await self._request_reset(auth_service, seeded_storage)
        expires = account.password_reset_expires

        monkeypatch.setattr("useradmin.auth.service.utc_now", lambda: expires)

        with pytest.raises(BadRequestError):
            await auth_service.reset_password(account.password_reset_token, "Bb2!bbbb")

    async def test_just_before_boundary(self, auth_service, seeded_storage, monkeypatch):
        account = await self._request_reset(auth_service, seeded_storage)
        expires = account.password_reset_expires

        monkeypatch.setattr("useradmin.auth.service.utc_now", lambda: expires - timedelta(microseconds=1))

        await auth_service.reset_password(account.password_reset_token, "Bb2!bbbb")

    async def test_after_expiry(self, auth_service, seeded_storage, monkeypatch):
        account = await self._request_reset(auth_service, seeded_storage)
        expires = account.password_reset_expires

        monkeypatch.setattr("useradmin.auth.service.utc_now", lambda: expires + timedelta(seconds=1))

        with pytest.raises(BadRequestError):
            await auth_service.reset_password(account.password_reset_token, "Bb2!bbbb")

    @pytest.mark.parametrize("token", ["", "unknown"])
    async def test_bad_token(self, auth_service, token):
        with pytest.raises(BadRequestError):
            await auth_service.reset_password(token, "Bb2!bbbb")


# =============================================================================
# Caller validation
# =============================================================================


class TestValidateCaller:
    async def test_active_account(self, auth_service, issuer, seeded_storage):
        account = await add_account(seeded_storage, EMAIL, PASSWORD, "USER")
        claims = issuer.validate(auth_service.issue_token(account))

        assert (await auth_service.validate_caller(claims)).id == account.id

    @pytest.mark.parametrize("status", [AccountStatus.SUSPENDED, AccountStatus.INACTIVE])
    async def test_non_active_rejected(self, auth_service, issuer, seeded_storage, status):
        account = await add_account(seeded_storage, EMAIL, PASSWORD, "USER")
        claims = issuer.validate(auth_service.issue_token(account))

        account.status = status
        await seeded_storage.accounts.save(account)

        with pytest.raises(UnauthorizedError):
            await auth_service.validate_caller(claims)

    async def test_deleted_account_rejected(self, auth_service, issuer, seeded_storage):
        account = await add_account(seeded_storage, EMAIL, PASSWORD, "USER")
        claims = issuer.validate(auth_service.issue_token(account))
        await seeded_storage.accounts.remove(account)

        with pytest.raises(UnauthorizedError):
            await auth_service.validate_caller(claims)
