"""
Storage abstractions.

- AccountStore / RoleStore → SQLAlchemy (SQLite, PostgreSQL) or in-memory
"""

from useradmin.storage.base import (
    AccountStore,
    RoleStore,
    AccountQuery,
    RoleQuery,
    StorageProvider,
)
from useradmin.storage.local import create_memory_storage
from useradmin.storage.sql import create_sql_storage


def create_storage(database_url: str, echo: bool = False) -> StorageProvider:
    """Pick a backend from the configured database URL."""
    if database_url.startswith("memory://"):
        return create_memory_storage()
    return create_sql_storage(database_url, echo=echo)


__all__ = [
    "AccountStore",
    "RoleStore",
    "AccountQuery",
    "RoleQuery",
    "StorageProvider",
    "create_memory_storage",
    "create_sql_storage",
    "create_storage",
]
