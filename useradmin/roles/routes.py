# =============================================================================
# Role API Routes
# =============================================================================
#
#   POST   /roles                    - Create role              (ADMIN)
#   GET    /roles                    - List roles               (ADMIN, MODERATOR)
#   GET    /roles/permissions        - Permission catalog       (ADMIN)
#   GET    /roles/stats              - Totals and usage         (ADMIN)
#   POST   /roles/initialize-defaults - Seed system roles       (ADMIN)
#   GET    /roles/{id}               - Get role                 (ADMIN, MODERATOR)
#   PATCH  /roles/{id}               - Update role              (ADMIN)
#   PATCH  /roles/{id}/permissions   - Replace permissions      (ADMIN)
#   PATCH  /roles/{id}/toggle-status - Flip is_active           (ADMIN)
#   DELETE /roles/{id}               - Delete role              (ADMIN)
#
# =============================================================================

from __future__ import annotations

from fastapi import APIRouter, Depends, Query, Request
from pydantic import BaseModel, Field

from useradmin.api.schemas import MessageResponse, Pagination, RoleResponse
from useradmin.auth.context import CallerContext
from useradmin.auth.policies import ADMIN_ONLY, STAFF, guard
from useradmin.roles.service import RoleService
from useradmin.storage.base import RoleQuery

router = APIRouter(prefix="/roles", tags=["roles"])


def get_role_service(request: Request) -> RoleService:
    return request.app.state.container.roles


# =============================================================================
# Request/Response Models
# =============================================================================

class CreateRoleRequest(BaseModel):
    name: str = Field(min_length=2, max_length=50)
    description: str | None = Field(default=None, max_length=255)
    permissions: list[str] | None = None
    is_active: bool = True


class UpdateRoleRequest(BaseModel):
    name: str | None = Field(default=None, min_length=2, max_length=50)
    description: str | None = Field(default=None, max_length=255)
    permissions: list[str] | None = None
    is_active: bool | None = None


class AssignPermissionsRequest(BaseModel):
    permissions: list[str] = Field(min_length=1)


class RoleListResponse(BaseModel):
    data: list[RoleResponse]
    pagination: Pagination


class PermissionInfo(BaseModel):
    key: str
    description: str


class PermissionListResponse(BaseModel):
    permissions: list[PermissionInfo]


class RoleUsage(BaseModel):
    role_name: str
    role_description: str | None = None
    user_count: int


class RoleStatsResponse(BaseModel):
    total: int
    active: int
    inactive: int
    usage: list[RoleUsage]


# =============================================================================
# Endpoints
# =============================================================================

@router.post("", response_model=RoleResponse, status_code=201)
async def create_role(
    data: CreateRoleRequest,
    roles: RoleService = Depends(get_role_service),
    _: CallerContext = Depends(guard(ADMIN_ONLY)),
):
    role = await roles.create(
        name=data.name,
        description=data.description,
        permissions=data.permissions,
        is_active=data.is_active,
    )
    return RoleResponse.from_role(role, user_count=0)


@router.get("", response_model=RoleListResponse)
async def list_roles(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    search: str | None = None,
    is_active: bool | None = None,
    roles: RoleService = Depends(get_role_service),
    _: CallerContext = Depends(guard(STAFF)),
):
    items, total = await roles.list(
        RoleQuery(page=page, limit=limit, search=search, is_active=is_active)
    )
    return RoleListResponse(
        data=[RoleResponse.from_role(role, user_count=count) for role, count in items],
        pagination=Pagination.build(page, limit, total),
    )


@router.get("/permissions", response_model=PermissionListResponse)
async def list_permissions(
    roles: RoleService = Depends(get_role_service),
    _: CallerContext = Depends(guard(ADMIN_ONLY)),
):
    """The permission catalog roles may draw from."""
    return PermissionListResponse(
        permissions=[PermissionInfo(**p) for p in roles.available_permissions()]
    )


@router.get("/stats", response_model=RoleStatsResponse)
async def role_stats(
    roles: RoleService = Depends(get_role_service),
    _: CallerContext = Depends(guard(ADMIN_ONLY)),
):
    return RoleStatsResponse(**await roles.stats())


@router.post("/initialize-defaults", response_model=MessageResponse)
async def initialize_defaults(
    roles: RoleService = Depends(get_role_service),
    _: CallerContext = Depends(guard(ADMIN_ONLY)),
):
    """Create whichever system roles are missing."""
    created = await roles.initialize_default_roles()
    return MessageResponse(message=f"Default roles initialized ({len(created)} created)")


@router.get("/{role_id}", response_model=RoleResponse)
async def get_role(
    role_id: str,
    roles: RoleService = Depends(get_role_service),
    _: CallerContext = Depends(guard(STAFF)),
):
    role = await roles.get(role_id)
    return RoleResponse.from_role(role, user_count=await roles.user_count(role.id))


@router.patch("/{role_id}", response_model=RoleResponse)
async def update_role(
    role_id: str,
    data: UpdateRoleRequest,
    roles: RoleService = Depends(get_role_service),
    _: CallerContext = Depends(guard(ADMIN_ONLY)),
):
    role = await roles.update(role_id, **data.model_dump(exclude_unset=True))
    return RoleResponse.from_role(role)


@router.patch("/{role_id}/permissions", response_model=RoleResponse)
async def assign_permissions(
    role_id: str,
    data: AssignPermissionsRequest,
    roles: RoleService = Depends(get_role_service),
    _: CallerContext = Depends(guard(ADMIN_ONLY)),
):
    role = await roles.assign_permissions(role_id, data.permissions)
    return RoleResponse.from_role(role)


@router.patch("/{role_id}/toggle-status", response_model=RoleResponse)
async def toggle_role_status(
    role_id: str,
    roles: RoleService = Depends(get_role_service),
    _: CallerContext = Depends(guard(ADMIN_ONLY)),
):
    role = await roles.toggle_status(role_id)
    return RoleResponse.from_role(role)


@router.delete("/{role_id}", status_code=204)
async def delete_role(
    role_id: str,
    roles: RoleService = Depends(get_role_service),
    _: CallerContext = Depends(guard(ADMIN_ONLY)),
):
    await roles.remove(role_id)
