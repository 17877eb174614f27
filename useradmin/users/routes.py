# =============================================================================
# User API Routes
# =============================================================================
#
#   POST   /users                  - Create account            (ADMIN)
#   GET    /users                  - List accounts             (ADMIN, MODERATOR)
#   GET    /users/me               - Own profile               (any)
#   PATCH  /users/me               - Edit own profile          (any)
#   GET    /users/stats            - Account totals            (ADMIN)
#   GET    /users/{id}             - Get account               (ADMIN, MODERATOR)
#   PATCH  /users/{id}             - Update account            (ADMIN)
#   PATCH  /users/{id}/status      - Change status             (ADMIN, MODERATOR)
#   PATCH  /users/{id}/roles       - Replace roles             (ADMIN)
#   PATCH  /users/{id}/soft-delete - Mark INACTIVE             (ADMIN)
#   DELETE /users/{id}             - Hard delete               (ADMIN)
#
# =============================================================================

from __future__ import annotations

from fastapi import APIRouter, Depends, Query, Request
from pydantic import BaseModel, EmailStr, Field

from useradmin.api.schemas import PHONE_PATTERN, AccountResponse, Pagination
from useradmin.auth.context import CallerContext
from useradmin.auth.policies import ADMIN_ONLY, AUTHENTICATED, STAFF, guard
from useradmin.core.models import AccountStatus
from useradmin.storage.base import AccountQuery
from useradmin.users.service import UserService

router = APIRouter(prefix="/users", tags=["users"])


def get_user_service(request: Request) -> UserService:
    return request.app.state.container.users


# =============================================================================
# Request/Response Models
# =============================================================================

class CreateUserRequest(BaseModel):
    email: EmailStr
    first_name: str = Field(min_length=1, max_length=100)
    last_name: str = Field(min_length=1, max_length=100)
    phone_number: str | None = Field(default=None, pattern=PHONE_PATTERN)
    status: AccountStatus | None = None
    role_ids: list[str] | None = None


class UpdateUserRequest(BaseModel):
    email: EmailStr | None = None
    first_name: str | None = Field(default=None, min_length=1, max_length=100)
    last_name: str | None = Field(default=None, min_length=1, max_length=100)
    phone_number: str | None = Field(default=None, pattern=PHONE_PATTERN)
    avatar: str | None = Field(default=None, max_length=255)
    status: AccountStatus | None = None
    role_ids: list[str] | None = None


class UpdateProfileRequest(BaseModel):
    first_name: str | None = Field(default=None, min_length=1, max_length=100)
    last_name: str | None = Field(default=None, min_length=1, max_length=100)
    phone_number: str | None = Field(default=None, pattern=PHONE_PATTERN)
    avatar: str | None = Field(default=None, max_length=255)


class UpdateStatusRequest(BaseModel):
    status: AccountStatus


class AssignRolesRequest(BaseModel):
    role_ids: list[str] = Field(min_length=1)


class UserListResponse(BaseModel):
    data: list[AccountResponse]
    pagination: Pagination


class RoleCount(BaseModel):
    role_name: str
    user_count: int


class UserStatsResponse(BaseModel):
    total: int
    active: int
    inactive: int
    suspended: int
    by_role: list[RoleCount]


# =============================================================================
# Endpoints
# =============================================================================

@router.post("", response_model=AccountResponse, status_code=201)
async def create_user(
    data: CreateUserRequest,
    users: UserService = Depends(get_user_service),
    _: CallerContext = Depends(guard(ADMIN_ONLY)),
):
    """
    Create an account with a temporary password.

    The password is emailed to the new user, never returned here.
    """
    account = await users.create(**data.model_dump())
    return AccountResponse.from_account(account)


@router.get("", response_model=UserListResponse)
async def list_users(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    search: str | None = None,
    status: AccountStatus | None = None,
    role: str | None = None,
    users: UserService = Depends(get_user_service),
    _: CallerContext = Depends(guard(STAFF)),
):
    accounts, total = await users.list(
        AccountQuery(page=page, limit=limit, search=search, status=status, role=role)
    )
    return UserListResponse(
        data=[AccountResponse.from_account(a) for a in accounts],
        pagination=Pagination.build(page, limit, total),
    )


@router.get("/me", response_model=AccountResponse)
async def get_me(
    caller: CallerContext = Depends(guard(AUTHENTICATED)),
):
    return AccountResponse.from_account(caller.account)


@router.patch("/me", response_model=AccountResponse)
async def update_me(
    data: UpdateProfileRequest,
    users: UserService = Depends(get_user_service),
    caller: CallerContext = Depends(guard(AUTHENTICATED)),
):
    account = await users.update_profile(caller.account_id, **data.model_dump(exclude_unset=True))
    return AccountResponse.from_account(account)


@router.get("/stats", response_model=UserStatsResponse)
async def user_stats(
    users: UserService = Depends(get_user_service),
    _: CallerContext = Depends(guard(ADMIN_ONLY)),
):
    return UserStatsResponse(**await users.stats())


@router.get("/{user_id}", response_model=AccountResponse)
async def get_user(
    user_id: str,
    users: UserService = Depends(get_user_service),
    _: CallerContext = Depends(guard(STAFF)),
):
    return AccountResponse.from_account(await users.get(user_id))


@router.patch("/{user_id}", response_model=AccountResponse)
async def update_user(
    user_id: str,
    data: UpdateUserRequest,
    users: UserService = Depends(get_user_service),
    _: CallerContext = Depends(guard(ADMIN_ONLY)),
):
    account = await users.update(user_id, **data.model_dump(exclude_unset=True))
    return AccountResponse.from_account(account)


@router.patch("/{user_id}/status", response_model=AccountResponse)
async def update_user_status(
    user_id: str,
    data: UpdateStatusRequest,
    users: UserService = Depends(get_user_service),
    _: CallerContext = Depends(guard(STAFF)),
):
    return AccountResponse.from_account(await users.update_status(user_id, data.status))


@router.patch("/{user_id}/roles", response_model=AccountResponse)
async def assign_user_roles(
    user_id: str,
    data: AssignRolesRequest,
    users: UserService = Depends(get_user_service),
    _: CallerContext = Depends(guard(ADMIN_ONLY)),
):
    return AccountResponse.from_account(await users.assign_roles(user_id, data.role_ids))


@router.patch("/{user_id}/soft-delete", response_model=AccountResponse)
async def soft_delete_user(
    user_id: str,
    users: UserService = Depends(get_user_service),
    _: CallerContext = Depends(guard(ADMIN_ONLY)),
):
    return AccountResponse.from_account(await users.soft_delete(user_id))


@router.delete("/{user_id}", status_code=204)
async def delete_user(
    user_id: str,
    users: UserService = Depends(get_user_service),
    _: CallerContext = Depends(guard(ADMIN_ONLY)),
):
    await users.remove(user_id)
