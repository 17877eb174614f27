"""
Tests for route access policies and caller context.
"""

import pytest

from useradmin.auth.context import CallerContext
from useradmin.auth.permissions import (
    SYSTEM_ROLE_DEFINITIONS,
    Permission,
    SystemRole,
    invalid_permissions,
    is_system_role,
    is_valid_permission,
)
from useradmin.auth.policies import ADMIN_ONLY, AUTHENTICATED, PUBLIC, STAFF, RouteAccess, roles_satisfy
from useradmin.core.models import Account, Role, account_permissions, has_permission, has_role, role_names


def make_account(*roles: Role) -> Account:
    return Account(
        email="a@x.com",
        first_name="Ada",
        last_name="Lovelace",
        password_hash="x",
        roles=list(roles),
    )


# =============================================================================
# Role gate
# =============================================================================


class TestRolesSatisfy:
    def test_any_of(self):
        assert roles_satisfy({"MODERATOR"}, {"ADMIN", "MODERATOR"})

    def test_none_of(self):
        assert not roles_satisfy({"MODERATOR"}, {"ADMIN"})

    def test_empty_requirement_passes(self):
        assert roles_satisfy(set(), set())
        assert roles_satisfy({"USER"}, frozenset())

    def test_no_roles_fails_requirement(self):
        assert not roles_satisfy(set(), {"USER"})

    def test_names_are_case_sensitive(self):
        assert not roles_satisfy({"admin"}, {"ADMIN"})


class TestRouteAccess:
    def test_descriptors(self):
        assert PUBLIC.requires_auth is False
        assert AUTHENTICATED.requires_auth is True
        assert AUTHENTICATED.required_roles == frozenset()
        assert ADMIN_ONLY.required_roles == {"ADMIN"}
        assert STAFF.required_roles == {"ADMIN", "MODERATOR"}

    def test_roles_accepts_strings(self):
        access = RouteAccess.roles("AUDITOR", SystemRole.ADMIN)

        assert access.required_roles == {"AUDITOR", "ADMIN"}

    def test_frozen(self):
        with pytest.raises(AttributeError):
            ADMIN_ONLY.requires_auth = False


# =============================================================================
# Permissions
# =============================================================================


class TestPermissions:
    def test_role_membership(self):
        role = Role(name="EDITOR", permissions=["users:read"])

        assert has_permission(role, "users:read")
        assert not has_permission(role, "users:delete")

    def test_account_union_skips_inactive_roles(self):
        account = make_account(
            Role(name="A", permissions=["users:read"]),
            Role(name="B", permissions=["users:update", "users:read"]),
            Role(name="C", permissions=["users:delete"], is_active=False),
        )

        assert account_permissions(account) == {"users:read", "users:update"}

    def test_catalog_validation(self):
        assert is_valid_permission(Permission.USERS_READ.value)
        assert not is_valid_permission("users:fly")
        assert invalid_permissions(["users:read", "users:fly", "x"]) == ["users:fly", "x"]

    def test_system_roles(self):
        assert is_system_role("ADMIN")
        assert not is_system_role("EDITOR")
        admin = SYSTEM_ROLE_DEFINITIONS[SystemRole.ADMIN]["permissions"]
        assert set(admin) == {p.value for p in Permission}
        assert SYSTEM_ROLE_DEFINITIONS[SystemRole.USER]["permissions"] == []


class TestCallerContext:
    def test_anonymous(self):
        caller = CallerContext.anonymous()

        assert not caller.is_authenticated
        assert caller.account_id is None
        assert caller.roles == frozenset()
        assert not caller.can(Permission.USERS_READ)

    def test_from_account(self):
        account = make_account(Role(name="MODERATOR", permissions=["users:read"]))
        caller = CallerContext(account=account)

        assert caller.is_authenticated
        assert caller.roles == {"MODERATOR"}
        assert caller.can("users:read")
        assert caller.can(Permission.USERS_READ)
        assert not caller.can(Permission.USERS_DELETE)

    def test_role_helpers(self):
        account = make_account(Role(name="USER"), Role(name="MODERATOR"))

        assert role_names(account) == ["USER", "MODERATOR"]
        assert has_role(account, "MODERATOR")
        assert not has_role(account, "ADMIN")
