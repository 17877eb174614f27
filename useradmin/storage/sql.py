"""
Relational storage via SQLAlchemy (async).

Works with any async driver SQLAlchemy supports; development uses
sqlite+aiosqlite, production postgresql+asyncpg.

Tables:
    users       - one row per account
    roles       - one row per role, permissions as a JSON array
    user_roles  - account/role join table

The unique constraints on users.email and roles.name are the arbiter
for concurrent writes. Violations of those two surface as DuplicateKeyError;
any other IntegrityError is a StoreError.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

import sqlalchemy as sa
from sqlalchemy.engine import make_url
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncConnection, AsyncEngine, create_async_engine

from useradmin.core.errors import DuplicateKeyError, StoreError
from useradmin.core.models import Account, AccountStatus, Role
from useradmin.core.utils import ensure_aware, utc_now
from useradmin.storage.base import (
    AccountQuery,
    AccountStore,
    RoleQuery,
    RoleStore,
    StorageProvider,
    check_criteria,
)

logger = logging.getLogger(__name__)


# =============================================================================
# Schema
# =============================================================================

metadata = sa.MetaData()

roles_table = sa.Table(
    "roles",
    metadata,
    sa.Column("id", sa.String(36), primary_key=True),
    sa.Column("name", sa.String(50), nullable=False, unique=True),
    sa.Column("description", sa.String(255), nullable=True),
    sa.Column("permissions", sa.JSON, nullable=False),
    sa.Column("is_active", sa.Boolean, nullable=False, default=True),
    sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
)

users_table = sa.Table(
    "users",
    metadata,
    sa.Column("id", sa.String(36), primary_key=True),
    sa.Column("email", sa.String(100), nullable=False, unique=True),
    sa.Column("first_name", sa.String(100), nullable=False),
    sa.Column("last_name", sa.String(100), nullable=False),
    sa.Column("password", sa.String(255), nullable=False),
    sa.Column("status", sa.String(16), nullable=False),
    sa.Column("phone_number", sa.String(32), nullable=True),
    sa.Column("avatar", sa.String(255), nullable=True),
    sa.Column("email_verified", sa.Boolean, nullable=False, default=False),
    sa.Column("email_verification_token", sa.String(128), nullable=True, index=True),
    sa.Column("password_reset_token", sa.String(128), nullable=True, index=True),
    sa.Column("password_reset_expires", sa.DateTime(timezone=True), nullable=True),
    sa.Column("last_login_at", sa.DateTime(timezone=True), nullable=True),
    sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
)

user_roles_table = sa.Table(
    "user_roles",
    metadata,
    sa.Column("user_id", sa.String(36), sa.ForeignKey("users.id", ondelete="CASCADE"), primary_key=True),
    sa.Column("role_id", sa.String(36), sa.ForeignKey("roles.id", ondelete="CASCADE"), primary_key=True),
)

# Account field -> users column, where they differ
_ACCOUNT_COLUMNS = {"password_hash": "password"}


# =============================================================================
# Row mapping
# =============================================================================


def _role_from_row(row: Any) -> Role:
    return Role(
        id=row.id,
        name=row.name,
        description=row.description,
        permissions=list(row.permissions or []),
        is_active=row.is_active,
        created_at=ensure_aware(row.created_at),
        updated_at=ensure_aware(row.updated_at),
    )


def _role_to_row(role: Role) -> dict[str, Any]:
    return {
        "id": role.id,
        "name": role.name,
        "description": role.description,
        "permissions": list(role.permissions),
        "is_active": role.is_active,
        "created_at": role.created_at,
        "updated_at": role.updated_at,
    }


def _account_from_row(row: Any, roles: list[Role]) -> Account:
    return Account(
        id=row.id,
        email=row.email,
        first_name=row.first_name,
        last_name=row.last_name,
        password_hash=row.password,
        status=AccountStatus(row.status),
        phone_number=row.phone_number,
        avatar=row.avatar,
        email_verified=row.email_verified,
        email_verification_token=row.email_verification_token,
        password_reset_token=row.password_reset_token,
        password_reset_expires=ensure_aware(row.password_reset_expires),
        last_login_at=ensure_aware(row.last_login_at),
        roles=roles,
        created_at=ensure_aware(row.created_at),
        updated_at=ensure_aware(row.updated_at),
    )


def _account_to_row(account: Account) -> dict[str, Any]:
    return {
        "id": account.id,
        "email": account.email,
        "first_name": account.first_name,
        "last_name": account.last_name,
        "password": account.password_hash,
        "status": account.status.value,
        "phone_number": account.phone_number,
        "avatar": account.avatar,
        "email_verified": account.email_verified,
        "email_verification_token": account.email_verification_token,
        "password_reset_token": account.password_reset_token,
        "password_reset_expires": account.password_reset_expires,
        "last_login_at": account.last_login_at,
        "created_at": account.created_at,
        "updated_at": account.updated_at,
    }


# =============================================================================
# Database handle
# =============================================================================


class SqlDatabase:
    """Owns the async engine shared by the SQL stores."""

    def __init__(self, url: str, echo: bool = False):
        self.url = url
        self.engine: AsyncEngine = create_async_engine(url, echo=echo)

    async def create_all(self) -> None:
        url = make_url(self.url)
        if url.get_backend_name() == "sqlite" and url.database not in (None, "", ":memory:"):
            Path(url.database).parent.mkdir(parents=True, exist_ok=True)

        async with self.engine.begin() as conn:
            await conn.run_sync(metadata.create_all)
        logger.info("Database schema ready")

    async def dispose(self) -> None:
        await self.engine.dispose()


async def _upsert(conn: AsyncConnection, table: sa.Table, values: dict[str, Any]) -> None:
    exists = await conn.scalar(sa.select(table.c.id).where(table.c.id == values["id"]))
    if exists:
        await conn.execute(table.update().where(table.c.id == values["id"]).values(**values))
    else:
        await conn.execute(table.insert().values(**values))


def _classify_integrity_error(error: IntegrityError, table: sa.Table, column: str) -> StoreError:
    """
    DuplicateKeyError when the unique constraint on table.column fired,
    StoreError for any other integrity failure.

    SQLite reports "UNIQUE constraint failed: users.email"; PostgreSQL
    names the default constraint "users_email_key".
    """
    message = str(error.orig).lower()
    unique = "unique" in message or "duplicate key" in message
    if unique and (f"{table.name}.{column}" in message or f"{table.name}_{column}" in message):
        return DuplicateKeyError(column)
    return StoreError(f"Integrity error on {table.name}: {error.orig}")


# =============================================================================
# Roles
# =============================================================================


class SqlRoleStore(RoleStore):
    def __init__(self, db: SqlDatabase):
        self.db = db

    async def find_one(self, **criteria: Any) -> Role | None:
        check_criteria(criteria, self.LOOKUP_FIELDS)
        stmt = sa.select(roles_table).where(
            *(roles_table.c[k] == v for k, v in criteria.items())
        )
        async with self.db.engine.connect() as conn:
            row = (await conn.execute(stmt)).first()
        return _role_from_row(row) if row else None

    async def find_by_ids(self, ids: list[str]) -> list[Role]:
        if not ids:
            return []
        stmt = sa.select(roles_table).where(roles_table.c.id.in_(ids))
        async with self.db.engine.connect() as conn:
            rows = (await conn.execute(stmt)).all()
        return [_role_from_row(r) for r in rows]

    async def save(self, role: Role) -> Role:
        role.updated_at = utc_now()
        try:
            async with self.db.engine.begin() as conn:
                await _upsert(conn, roles_table, _role_to_row(role))
        except IntegrityError as e:
            error = _classify_integrity_error(e, roles_table, "name")
            if isinstance(error, DuplicateKeyError):
                logger.info(f"Role save rejected by unique constraint: {role.name}")
            raise error from e
        except SQLAlchemyError as e:
            raise StoreError(f"Failed to save role {role.id}") from e
        return role

    async def remove(self, role: Role) -> None:
        async with self.db.engine.begin() as conn:
            await conn.execute(user_roles_table.delete().where(user_roles_table.c.role_id == role.id))
            await conn.execute(roles_table.delete().where(roles_table.c.id == role.id))

    async def list(self, query: RoleQuery) -> tuple[list[Role], int]:
        conditions = []
        if query.search:
            pattern = f"%{query.search}%"
            conditions.append(sa.or_(
                roles_table.c.name.ilike(pattern),
                roles_table.c.description.ilike(pattern),
            ))
        if query.is_active is not None:
            conditions.append(roles_table.c.is_active == query.is_active)

        stmt = (
            sa.select(roles_table)
            .where(*conditions)
            .order_by(roles_table.c.created_at.desc())
            .offset(query.offset)
            .limit(query.limit)
        )
        count_stmt = sa.select(sa.func.count()).select_from(roles_table).where(*conditions)

        async with self.db.engine.connect() as conn:
            rows = (await conn.execute(stmt)).all()
            total = await conn.scalar(count_stmt)
        return [_role_from_row(r) for r in rows], int(total or 0)

    async def count_accounts(self, role_id: str) -> int:
        stmt = (
            sa.select(sa.func.count())
            .select_from(user_roles_table)
            .where(user_roles_table.c.role_id == role_id)
        )
        async with self.db.engine.connect() as conn:
            return int(await conn.scalar(stmt) or 0)


# =============================================================================
# Accounts
# =============================================================================


class SqlAccountStore(AccountStore):
    def __init__(self, db: SqlDatabase):
        self.db = db

    async def _load_roles(self, conn: AsyncConnection, account_ids: list[str]) -> dict[str, list[Role]]:
        roles: dict[str, list[Role]] = {aid: [] for aid in account_ids}
        if not account_ids:
            return roles
        stmt = (
            sa.select(user_roles_table.c.user_id, roles_table)
            .join(roles_table, roles_table.c.id == user_roles_table.c.role_id)
            .where(user_roles_table.c.user_id.in_(account_ids))
            .order_by(roles_table.c.name)
        )
        for row in (await conn.execute(stmt)).all():
            roles[row.user_id].append(_role_from_row(row))
        return roles

    async def find_one(self, **criteria: Any) -> Account | None:
        check_criteria(criteria, self.LOOKUP_FIELDS)
        stmt = sa.select(users_table).where(
            *(users_table.c[_ACCOUNT_COLUMNS.get(k, k)] == v for k, v in criteria.items())
        )
        async with self.db.engine.connect() as conn:
            row = (await conn.execute(stmt)).first()
            if row is None:
                return None
            roles = await self._load_roles(conn, [row.id])
        return _account_from_row(row, roles[row.id])

    async def save(self, account: Account) -> Account:
        account.touch()
        try:
            async with self.db.engine.begin() as conn:
                await _upsert(conn, users_table, _account_to_row(account))
                await conn.execute(
                    user_roles_table.delete().where(user_roles_table.c.user_id == account.id)
                )
                if account.roles:
                    await conn.execute(
                        user_roles_table.insert(),
                        [{"user_id": account.id, "role_id": r.id} for r in account.roles],
                    )
        except IntegrityError as e:
            error = _classify_integrity_error(e, users_table, "email")
            if isinstance(error, DuplicateKeyError):
                logger.info("Account save rejected by unique constraint")
            raise error from e
        except SQLAlchemyError as e:
            raise StoreError(f"Failed to save account {account.id}") from e
        return account

    async def remove(self, account: Account) -> None:
        async with self.db.engine.begin() as conn:
            await conn.execute(user_roles_table.delete().where(user_roles_table.c.user_id == account.id))
            await conn.execute(users_table.delete().where(users_table.c.id == account.id))

    async def list(self, query: AccountQuery) -> tuple[list[Account], int]:
        conditions = []
        if query.search:
            pattern = f"%{query.search}%"
            conditions.append(sa.or_(
                users_table.c.first_name.ilike(pattern),
                users_table.c.last_name.ilike(pattern),
                users_table.c.email.ilike(pattern),
            ))
        if query.status is not None:
            conditions.append(users_table.c.status == query.status.value)
        if query.role:
            conditions.append(
                sa.exists()
                .where(user_roles_table.c.user_id == users_table.c.id)
                .where(user_roles_table.c.role_id == roles_table.c.id)
                .where(roles_table.c.name == query.role)
            )

        stmt = (
            sa.select(users_table)
            .where(*conditions)
            .order_by(users_table.c.created_at.desc())
            .offset(query.offset)
            .limit(query.limit)
        )
        count_stmt = sa.select(sa.func.count()).select_from(users_table).where(*conditions)

        async with self.db.engine.connect() as conn:
            rows = (await conn.execute(stmt)).all()
            total = await conn.scalar(count_stmt)
            roles = await self._load_roles(conn, [r.id for r in rows])
        return [_account_from_row(r, roles[r.id]) for r in rows], int(total or 0)

    # StorageProvider lifecycle hooks

    async def initialize(self) -> None:
        await self.db.create_all()

    async def close(self) -> None:
        await self.db.dispose()


# =============================================================================
# Factory
# =============================================================================


def create_sql_storage(url: str, echo: bool = False) -> StorageProvider:
    """Create a storage provider backed by a relational database."""
    db = SqlDatabase(url, echo=echo)
    return StorageProvider(
        accounts=SqlAccountStore(db),
        roles=SqlRoleStore(db),
    )
