# =============================================================================
# Auth API Routes
# =============================================================================
#
# Endpoints:
#   POST  /auth/register         - Create inactive account, return token
#   POST  /auth/login            - Get token
#   GET   /auth/verify-email     - Consume verification token (?token=)
#   PATCH /auth/change-password  - Rotate password (bearer)
#   POST  /auth/forgot-password  - Issue reset token (silent on unknown email)
#   POST  /auth/reset-password   - Consume reset token, set new password
#   GET   /auth/validate-token   - Introspect caller (bearer)
#   GET   /auth/profile          - Current account with roles (bearer)
#
# =============================================================================

from __future__ import annotations

from fastapi import APIRouter, Depends, Request
from pydantic import BaseModel, EmailStr, Field, field_validator

from useradmin.api.schemas import (
    PASSWORD_MAX_LENGTH,
    PASSWORD_MIN_LENGTH,
    PHONE_PATTERN,
    AccountResponse,
    CallerSummary,
    MessageResponse,
    check_password_strength,
)
from useradmin.auth.context import CallerContext
from useradmin.auth.policies import AUTHENTICATED, PUBLIC, guard
from useradmin.auth.service import AuthResult, AuthService

router = APIRouter(prefix="/auth", tags=["auth"])


def get_auth_service(request: Request) -> AuthService:
    return request.app.state.container.auth


# =============================================================================
# Request/Response Models
# =============================================================================

class RegisterRequest(BaseModel):
    email: EmailStr
    password: str = Field(min_length=PASSWORD_MIN_LENGTH, max_length=PASSWORD_MAX_LENGTH)
    first_name: str = Field(min_length=1, max_length=100)
    last_name: str = Field(min_length=1, max_length=100)
    phone_number: str | None = Field(default=None, pattern=PHONE_PATTERN)

    @field_validator("password")
    @classmethod
    def strong_password(cls, v: str) -> str:
        return check_password_strength(v)


class LoginRequest(BaseModel):
    email: EmailStr
    password: str = Field(min_length=1)


class ChangePasswordRequest(BaseModel):
    current_password: str = Field(min_length=1)
    new_password: str = Field(min_length=PASSWORD_MIN_LENGTH, max_length=PASSWORD_MAX_LENGTH)

    @field_validator("new_password")
    @classmethod
    def strong_password(cls, v: str) -> str:
        return check_password_strength(v)


class ForgotPasswordRequest(BaseModel):
    email: EmailStr


class ResetPasswordRequest(BaseModel):
    token: str = Field(min_length=1)
    new_password: str = Field(min_length=PASSWORD_MIN_LENGTH, max_length=PASSWORD_MAX_LENGTH)

    @field_validator("new_password")
    @classmethod
    def strong_password(cls, v: str) -> str:
        return check_password_strength(v)


class TokenResponse(BaseModel):
    """Account plus bearer token."""
    user: AccountResponse
    access_token: str
    token_type: str = "bearer"
    message: str

    @classmethod
    def from_result(cls, result: AuthResult) -> TokenResponse:
        return cls(
            user=AccountResponse.from_account(result.account),
            access_token=result.access_token,
            message=result.message,
        )


class ValidateTokenResponse(BaseModel):
    valid: bool = True
    user: CallerSummary
    message: str = "Token is valid"


class ProfileResponse(BaseModel):
    user: AccountResponse


# =============================================================================
# Public Endpoints
# =============================================================================

@router.post("/register", response_model=TokenResponse, status_code=201)
async def register(
    data: RegisterRequest,
    auth: AuthService = Depends(get_auth_service),
    _: CallerContext = Depends(guard(PUBLIC)),
):
    """
    Create a new account.

    The account starts INACTIVE until the emailed token is verified.
    A token is returned immediately.
    """
    result = await auth.register(
        email=data.email,
        password=data.password,
        first_name=data.first_name,
        last_name=data.last_name,
        phone_number=data.phone_number,
    )
    return TokenResponse.from_result(result)


@router.post("/login", response_model=TokenResponse)
async def login(
    data: LoginRequest,
    auth: AuthService = Depends(get_auth_service),
    _: CallerContext = Depends(guard(PUBLIC)),
):
    """
    Authenticate and get a token.
    """
    result = await auth.login(data.email, data.password)
    return TokenResponse.from_result(result)


@router.get("/verify-email", response_model=MessageResponse)
async def verify_email(
    token: str | None = None,
    auth: AuthService = Depends(get_auth_service),
    _: CallerContext = Depends(guard(PUBLIC)),
):
    """
    Verify email address using token from email.
    """
    return MessageResponse(message=await auth.verify_email(token))


@router.post("/forgot-password", response_model=MessageResponse)
async def forgot_password(
    data: ForgotPasswordRequest,
    auth: AuthService = Depends(get_auth_service),
    _: CallerContext = Depends(guard(PUBLIC)),
):
    """
    Request password reset email.

    Always returns the same reply to prevent email enumeration.
    """
    return MessageResponse(message=await auth.forgot_password(data.email))


@router.post("/reset-password", response_model=MessageResponse)
async def reset_password(
    data: ResetPasswordRequest,
    auth: AuthService = Depends(get_auth_service),
    _: CallerContext = Depends(guard(PUBLIC)),
):
    """
    Reset password using token from email.
    """
    return MessageResponse(message=await auth.reset_password(data.token, data.new_password))


# =============================================================================
# Protected Endpoints
# =============================================================================

@router.patch("/change-password", response_model=MessageResponse)
async def change_password(
    data: ChangePasswordRequest,
    auth: AuthService = Depends(get_auth_service),
    caller: CallerContext = Depends(guard(AUTHENTICATED)),
):
    """
    Change the current account's password.
    """
    message = await auth.change_password(
        caller.account_id,
        data.current_password,
        data.new_password,
    )
    return MessageResponse(message=message)


@router.get("/validate-token", response_model=ValidateTokenResponse)
async def validate_token(
    caller: CallerContext = Depends(guard(AUTHENTICATED)),
):
    """
    Report who the bearer token belongs to.
    """
    return ValidateTokenResponse(user=CallerSummary.from_account(caller.account))


@router.get("/profile", response_model=ProfileResponse)
async def profile(
    caller: CallerContext = Depends(guard(AUTHENTICATED)),
):
    """
    Get the current account with its roles and permissions.
    """
    return ProfileResponse(user=AccountResponse.from_account(caller.account))
