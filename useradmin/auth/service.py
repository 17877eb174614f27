"""
Authentication flow.

Registration, login, password change, forgot/reset and email
verification, orchestrated against the account and role stores.

Account lifecycle:

    (unregistered) --register--> INACTIVE --verify_email--> ACTIVE
    ACTIVE --(management)--> SUSPENDED | INACTIVE

Only ACTIVE accounts may log in or pass validate_caller().
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import timedelta

from useradmin.auth.passwords import PasswordHasher
from useradmin.auth.tokens import TokenClaims, TokenIssuer, generate_opaque_token
from useradmin.core.errors import (
    BadRequestError,
    ConflictError,
    DuplicateKeyError,
    UnauthorizedError,
)
from useradmin.core.models import Account, AccountStatus, role_names
from useradmin.core.utils import utc_now
from useradmin.integrations.email import EmailService
from useradmin.storage.base import AccountStore, RoleStore

logger = logging.getLogger(__name__)


# Messages that must not vary with account existence or state
INVALID_CREDENTIALS = "Invalid email or password"
FORGOT_PASSWORD_MESSAGE = "If the email exists, a password reset link has been sent"


@dataclass
class AuthResult:
    """An account together with a freshly issued bearer token."""

    account: Account
    access_token: str
    message: str


class AuthService:
    """
    Orchestrates the account lifecycle.

    Everything is injected; the service keeps no state of its own
    and is safe to share across concurrent requests.
    """

    def __init__(
        self,
        accounts: AccountStore,
        roles: RoleStore,
        hasher: PasswordHasher,
        tokens: TokenIssuer,
        notifier: EmailService | None = None,
        default_role: str = "USER",
        reset_token_ttl: timedelta = timedelta(hours=1),
    ):
        self.accounts = accounts
        self.roles = roles
        self.hasher = hasher
        self.tokens = tokens
        self.notifier = notifier
        self.default_role = default_role
        self.reset_token_ttl = reset_token_ttl

    def issue_token(self, account: Account) -> str:
        return self.tokens.issue(TokenClaims(
            sub=account.id,
            email=account.email,
            roles=role_names(account),
        ))

    # =========================================================================
    # Registration & login
    # =========================================================================

    async def register(
        self,
        email: str,
        password: str,
        first_name: str,
        last_name: str,
        phone_number: str | None = None,
    ) -> AuthResult:
        """
        Create an INACTIVE, unverified account holding the default role.

        A bearer token is issued immediately; the account still cannot
        pass validate_caller() until its email is verified.
        """
        if await self.accounts.find_one(email=email):
            raise ConflictError("An account with this email already exists")

        role = await self.roles.find_one(name=self.default_role)
        if role is None:
            logger.error(f"Default role {self.default_role} is missing; seed roles before registering")
            raise BadRequestError("Default role not found")

        account = Account(
            email=email,
            first_name=first_name,
            last_name=last_name,
            phone_number=phone_number,
            password_hash=await self.hasher.hash(password),
            roles=[role],
            status=AccountStatus.INACTIVE,
            email_verified=False,
            email_verification_token=generate_opaque_token(),
        )

        try:
            account = await self.accounts.save(account)
        except DuplicateKeyError:
            # Lost a race with a concurrent registration
            raise ConflictError("An account with this email already exists")

        logger.info(f"Registered account {account.id}")

        if self.notifier is not None:
            await self.notifier.send_welcome(
                account.email,
                account.first_name,
                account.email_verification_token,
            )

        return AuthResult(
            account=account,
            access_token=self.issue_token(account),
            message="Account registered successfully",
        )

    async def login(self, email: str, password: str) -> AuthResult:
        """
        Authenticate by email and password.

        Unknown email, non-ACTIVE status and wrong password all fail
        with the same message.
        """
        account = await self.accounts.find_one(email=email)
        if account is None:
            # Same bcrypt cost as a known email
            await self.hasher.verify(password, self.hasher.dummy_hash)
            logger.info("Login failed: unknown email")
            raise UnauthorizedError(INVALID_CREDENTIALS)

        # Always pay for the hash check so timing does not reveal status
        password_ok = await self.hasher.verify(password, account.password_hash)

        if account.status != AccountStatus.ACTIVE:
            logger.info(f"Login refused for {account.status.value} account {account.id}")
            raise UnauthorizedError(INVALID_CREDENTIALS)

        if not password_ok:
            logger.info(f"Login failed: bad password for account {account.id}")
            raise UnauthorizedError(INVALID_CREDENTIALS)

        account.last_login_at = utc_now()
        account = await self.accounts.save(account)

        return AuthResult(
            account=account,
            access_token=self.issue_token(account),
            message="Login successful",
        )

    # =========================================================================
    # Passwords
    # =========================================================================

    async def change_password(
        self,
        account_id: str,
        current_password: str,
        new_password: str,
    ) -> str:
        account = await self.accounts.find_one(id=account_id)
        if account is None:
            raise UnauthorizedError("Account not found")

        if not await self.hasher.verify(current_password, account.password_hash):
            raise UnauthorizedError("Current password is incorrect")

        if await self.hasher.verify(new_password, account.password_hash):
            raise BadRequestError("New password must be different from the current one")

        account.password_hash = await self.hasher.hash(new_password)
        await self.accounts.save(account)

        logger.info(f"Password changed for account {account.id}")
        return "Password changed successfully"

    async def forgot_password(self, email: str) -> str:
        """Issue a reset token. The reply is identical whether or not the email exists."""
        account = await self.accounts.find_one(email=email)
        if account is None:
            logger.info("Password reset requested for unknown email")
            return FORGOT_PASSWORD_MESSAGE

        account.password_reset_token = generate_opaque_token()
        account.password_reset_expires = utc_now() + self.reset_token_ttl
        await self.accounts.save(account)

        logger.info(f"Password reset token issued for account {account.id}")

        if self.notifier is not None:
            await self.notifier.send_password_reset(account.email, account.password_reset_token)

        return FORGOT_PASSWORD_MESSAGE

    async def reset_password(self, token: str, new_password: str) -> str:
        """
        Consume a reset token.

        Succeeds only while now < expiry; the token and expiry are
        cleared together.
        """
        if not token:
            raise BadRequestError("Invalid password reset token")

        account = await self.accounts.find_one(password_reset_token=token)
        if account is None or account.password_reset_expires is None:
            raise BadRequestError("Invalid password reset token")

        if not utc_now() < account.password_reset_expires:
            raise BadRequestError("Password reset token has expired")

        account.password_hash = await self.hasher.hash(new_password)
        account.password_reset_token = None
        account.password_reset_expires = None
        await self.accounts.save(account)

        logger.info(f"Password reset completed for account {account.id}")
        return "Password reset successfully"

    # =========================================================================
    # Verification
    # =========================================================================

    async def verify_email(self, token: str | None) -> str:
        if not token:
            raise BadRequestError("Verification token is required")

        account = await self.accounts.find_one(email_verification_token=token)
        if account is None:
            raise BadRequestError("Invalid or expired verification token")

        if account.email_verified:
            return "Email was already verified"

        account.email_verified = True
        account.status = AccountStatus.ACTIVE
        account.email_verification_token = None
        await self.accounts.save(account)

        logger.info(f"Email verified for account {account.id}")

        if self.notifier is not None:
            await self.notifier.send_email_verified(account.email)

        return "Email verified successfully. You can now log in."

    # =========================================================================
    # Caller validation
    # =========================================================================

    async def validate_caller(self, claims: TokenClaims) -> Account:
        """
        Re-load the token subject from the store.

        Tokens issued before a suspension stop working here.
        """
        account = await self.accounts.find_one(id=claims.sub)
        if account is None or account.status != AccountStatus.ACTIVE:
            raise UnauthorizedError("Invalid or expired token")
        return account
