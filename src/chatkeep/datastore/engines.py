"""Database engine factories: PostgreSQL, SQLite.

Provides async SQLAlchemy engine creation with support for:
- PostgreSQL (asyncpg driver)
- SQLite (aiosqlite driver), with foreign key enforcement switched on
- Configurable pool sizes and echo/debug settings
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine

if TYPE_CHECKING:
    from chatkeep.config.settings import DatabaseConfig


def enable_sqlite_foreign_keys(dbapi_connection: Any, _connection_record: Any) -> None:
    """Turn on ``ON DELETE CASCADE`` / FK checks for a fresh SQLite connection."""
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def create_engine(config: DatabaseConfig) -> AsyncEngine:
    """Create an async SQLAlchemy engine from database configuration.

    Args:
        config: Database configuration with DSN, pool settings, etc.

    Returns:
        A configured ``AsyncEngine`` ready for use.
    """
    kwargs: dict = {
        "echo": config.debug_sql,
    }

    is_sqlite = "sqlite" in config.dsn

    # SQLite doesn't support pool settings in the same way
    if not is_sqlite:
        kwargs["pool_size"] = config.max_idle_connections
        kwargs["max_overflow"] = config.max_open_connections - config.max_idle_connections
        kwargs["pool_pre_ping"] = True

    engine = create_async_engine(config.dsn, **kwargs)
    if is_sqlite:
        event.listen(engine.sync_engine, "connect", enable_sqlite_foreign_keys)
    return engine
