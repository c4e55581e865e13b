"""Datastore client: async SQLAlchemy engine & session management.

Central datastore abstraction providing:
- Engine lifecycle (open, close)
- Async session factory
- Transaction scope translating driver failures into ``StorageFailure``
- Creation of the ORM tables on open (Alembic handles real migrations)
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from chatkeep.datastore.engines import create_engine
from chatkeep.errors.definitions import StorageFailure

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

    from sqlalchemy.orm import DeclarativeBase

    from chatkeep.config.settings import DatabaseConfig

logger = logging.getLogger(__name__)

_ERR_NOT_OPEN = "Datastore is not open. Call open() first."


class Datastore:
    """Async datastore wrapping a SQLAlchemy engine and session factory.

    Usage::

        ds = Datastore(db_config)
        await ds.open()
        async with ds.transaction() as session:
            ...
        await ds.close()
    """

    def __init__(self, config: DatabaseConfig) -> None:
        self._config = config
        self._engine: AsyncEngine | None = None
        self._session_factory: async_sessionmaker[AsyncSession] | None = None

    @property
    def engine(self) -> AsyncEngine:
        """Return the underlying async engine.

        Raises:
            RuntimeError: If the datastore is not open.
        """
        if self._engine is None:
            raise RuntimeError(_ERR_NOT_OPEN)
        return self._engine

    async def open(self, *, base: type[DeclarativeBase] | None = None) -> None:
        """Open the datastore: create engine and optionally create tables.

        Args:
            base: If provided, create all tables defined by this declarative base.
        """
        self._engine = create_engine(self._config)
        self._session_factory = async_sessionmaker(
            self._engine,
            class_=AsyncSession,
            expire_on_commit=False,
        )
        if base is not None:
            async with self._engine.begin() as conn:
                await conn.run_sync(base.metadata.create_all)
        logger.info("Datastore opened (%s)", self._config.engine)

    async def close(self) -> None:
        """Dispose the engine and release all connections."""
        if self._engine is not None:
            await self._engine.dispose()
            self._engine = None
            self._session_factory = None
            logger.info("Datastore closed")

    def session(self) -> AsyncSession:
        """Create a new async session from the session factory.

        Returns:
            An ``AsyncSession`` instance. Use as an async context manager.

        Raises:
            RuntimeError: If the datastore is not open.
        """
        if self._session_factory is None:
            raise RuntimeError(_ERR_NOT_OPEN)
        return self._session_factory()

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[AsyncSession]:
        """Run a unit of work in a single transaction.

        Commits when the block exits cleanly and rolls back on any exception.
        ``IntegrityError`` is re-raised unchanged so callers can map constraint
        violations; every other SQLAlchemy error becomes ``StorageFailure``.

        Yields:
            An ``AsyncSession`` with an open transaction.
        """
        try:
            async with self.session() as session, session.begin():
                yield session
        except IntegrityError:
            raise
        except SQLAlchemyError as exc:
            logger.exception("Storage operation failed")
            raise StorageFailure from exc

    @property
    def is_open(self) -> bool:
        """Check if the datastore is open."""
        return self._engine is not None
