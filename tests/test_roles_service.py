"""
Tests for role management.
"""

import pytest

from conftest import add_account
from useradmin.core.errors import BadRequestError, ConflictError, NotFoundError
from useradmin.storage.base import RoleQuery


class TestSeeding:
    async def test_system_roles_present(self, role_service):
        for name in ("ADMIN", "MODERATOR", "USER"):
            assert await role_service.find_by_name(name) is not None

    async def test_idempotent(self, role_service):
        assert await role_service.initialize_default_roles() == []

        _, total = await role_service.list(RoleQuery(limit=100))
        assert total == 3

    async def test_existing_role_untouched(self, role_service):
        moderator = await role_service.find_by_name("MODERATOR")
        await role_service.assign_permissions(moderator.id, ["users:read"])

        await role_service.initialize_default_roles()

        assert (await role_service.get(moderator.id)).permissions == ["users:read"]


class TestCreate:
    async def test_uppercases_name(self, role_service):
        role = await role_service.create("editor", permissions=["users:read", "users:read"])

        assert role.name == "EDITOR"
        assert role.permissions == ["users:read"]
        assert await role_service.find_by_name("Editor") is not None

    async def test_duplicate_name(self, role_service):
        await role_service.create("editor")

        with pytest.raises(ConflictError):
            await role_service.create("EDITOR")

    async def test_unknown_permission(self, role_service):
        with pytest.raises(BadRequestError) as exc:
            await role_service.create("editor", permissions=["users:read", "users:fly"])
        assert "users:fly" in exc.value.message


class TestUpdate:
    async def test_rename_and_describe(self, role_service):
        role = await role_service.create("editor")

        updated = await role_service.update(role.id, name="writer", description="Writes")

        assert updated.name == "WRITER"
        assert updated.description == "Writes"

    async def test_rename_collision(self, role_service):
        role = await role_service.create("editor")

        with pytest.raises(ConflictError):
            await role_service.update(role.id, name="moderator")

    async def test_missing(self, role_service):
        with pytest.raises(NotFoundError):
            await role_service.update("missing", description="x")

    async def test_assign_requires_permissions(self, role_service):
        role = await role_service.create("editor")

        with pytest.raises(BadRequestError):
            await role_service.assign_permissions(role.id, [])


class TestToggleAndRemove:
    async def test_toggle(self, role_service):
        role = await role_service.create("editor")

        assert (await role_service.toggle_status(role.id)).is_active is False
        assert (await role_service.toggle_status(role.id)).is_active is True

    async def test_admin_cannot_be_deactivated(self, role_service):
        admin = await role_service.find_by_name("ADMIN")

        with pytest.raises(BadRequestError):
            await role_service.toggle_status(admin.id)

    async def test_system_role_cannot_be_deleted(self, role_service):
        user = await role_service.find_by_name("USER")

        with pytest.raises(BadRequestError):
            await role_service.remove(user.id)

    async def test_assigned_role_cannot_be_deleted(self, role_service, seeded_storage):
        await role_service.create("editor")
        await add_account(seeded_storage, "e@x.com", "Aa1!aaaa", "EDITOR")
        editor = await role_service.find_by_name("EDITOR")

        assert await role_service.user_count(editor.id) == 1
        with pytest.raises(BadRequestError):
            await role_service.remove(editor.id)

    async def test_remove(self, role_service):
        role = await role_service.create("editor")

        await role_service.remove(role.id)

        with pytest.raises(NotFoundError):
            await role_service.get(role.id)


class TestList:
    async def test_counts_and_filters(self, role_service, seeded_storage):
        await add_account(seeded_storage, "a@x.com", "Aa1!aaaa", "USER")
        await add_account(seeded_storage, "b@x.com", "Aa1!aaaa", "USER", "MODERATOR")

        items, total = await role_service.list(RoleQuery(limit=100))
        counts = {role.name: count for role, count in items}

        assert total == 3
        assert counts == {"ADMIN": 0, "MODERATOR": 1, "USER": 2}

        items, total = await role_service.list(RoleQuery(search="moder"))
        assert total == 1
        assert items[0][0].name == "MODERATOR"

    async def test_paging(self, role_service):
        items, total = await role_service.list(RoleQuery(page=2, limit=2))

        assert total == 3
        assert len(items) == 1

    def test_available_permissions(self, role_service):
        keys = [p["key"] for p in role_service.available_permissions()]

        assert "users:read" in keys
        assert len(keys) == len(set(keys)) == 16


class TestStats:
    async def test_totals_and_usage(self, role_service, seeded_storage):
        await role_service.create("editor", is_active=False)
        await add_account(seeded_storage, "a@x.com", "Aa1!aaaa", "USER")
        await add_account(seeded_storage, "b@x.com", "Aa1!aaaa", "USER", "MODERATOR")

        stats = await role_service.stats()

        assert (stats["total"], stats["active"], stats["inactive"]) == (4, 3, 1)
        usage = {u["role_name"]: u["user_count"] for u in stats["usage"]}
        assert usage == {"USER": 2, "MODERATOR": 1, "ADMIN": 0, "EDITOR": 0}
        assert stats["usage"][0]["role_name"] == "USER"

    async def test_usage_spans_pages(self, role_service, seeded_storage):
        for i in range(4):
            await role_service.create(f"extra{i}")

        roles = await seeded_storage.roles.list_all(page_size=2)

        assert len(roles) == 7
        assert len((await role_service.stats())["usage"]) == 7
