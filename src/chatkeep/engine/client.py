"""ChatKeepEngine: central engine client owning the store and its services."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from chatkeep.concurrency.locks import LockRegistry

if TYPE_CHECKING:
    from chatkeep.config.settings import AppConfig
    from chatkeep.datastore.client import Datastore
    from chatkeep.engine.models.user_session import UserSession
    from chatkeep.engine.services.key_registry import KeyRegistry
    from chatkeep.engine.services.session_store import SessionStore

logger = logging.getLogger(__name__)

# Error messages
_ERR_NOT_INITIALIZED = "Engine not initialized. Call initialize() first."


class ChatKeepEngine:
    """Central engine that owns the datastore, locks and services.

    One instance is opened at process start, passed to whatever needs it,
    and closed at shutdown::

        engine = ChatKeepEngine(AppConfig())
        await engine.initialize()
        prefix = await engine.key_registry.verify(secret)
        session = await engine.session_store.get_or_create(chat_id, prefix)
        await engine.close()
    """

    def __init__(self, config: AppConfig) -> None:
        """Initialize engine with configuration.

        Args:
            config: Application configuration.
        """
        self._config = config
        self._initialized = False

        self._datastore: Datastore | None = None
        self._locks = LockRegistry()

        self._key_registry: KeyRegistry | None = None
        self._session_store: SessionStore | None = None

    async def initialize(self) -> None:
        """Open the datastore, create tables and start services.

        Raises:
            RuntimeError: If already initialized.
        """
        if self._initialized:
            msg = "Engine already initialized"
            raise RuntimeError(msg)

        # Import here to avoid circular deps
        from chatkeep.datastore.client import Datastore
        from chatkeep.engine.models import Base
        from chatkeep.engine.services.key_registry import KeyRegistry
        from chatkeep.engine.services.session_store import SessionStore

        self._datastore = Datastore(self._config.db)
        await self._datastore.open(base=Base)

        self._key_registry = KeyRegistry(self)
        self._session_store = SessionStore(self)

        self._initialized = True
        logger.info("ChatKeep engine initialized")

    async def close(self) -> None:
        """Shut down services and release the datastore.

        Can be called multiple times (idempotent).
        """
        if not self._initialized:
            return

        self._key_registry = None
        self._session_store = None

        if self._datastore is not None:
            await self._datastore.close()
            self._datastore = None

        self._initialized = False
        logger.info("ChatKeep engine shut down")

    async def register(self, chat_id: int, secret: str) -> UserSession:
        """Authenticate a chat with a presented key and attach its session.

        Args:
            chat_id: Chat identifier from the transport.
            secret: The raw API key the user sent.

        Returns:
            The chat's session, created on first registration.

        Raises:
            Rejected: If the key does not verify.
            KeyMismatch: If the chat is already bound to another key.
        """
        prefix = await self.key_registry.verify(secret)
        return await self.session_store.get_or_create(chat_id, prefix)

    @property
    def is_initialized(self) -> bool:
        """Check if the engine is initialized."""
        return self._initialized

    @property
    def config(self) -> AppConfig:
        """Get the application configuration."""
        return self._config

    @property
    def locks(self) -> LockRegistry:
        """Get the engine's lock registry."""
        return self._locks

    @property
    def datastore(self) -> Datastore:
        """Get the datastore instance.

        Raises:
            RuntimeError: If engine not initialized.
        """
        if self._datastore is None:
            raise RuntimeError(_ERR_NOT_INITIALIZED)
        return self._datastore

    @property
    def key_registry(self) -> KeyRegistry:
        """Get the key registry."""
        if self._key_registry is None:
            raise RuntimeError(_ERR_NOT_INITIALIZED)
        return self._key_registry

    @property
    def session_store(self) -> SessionStore:
        """Get the session store."""
        if self._session_store is None:
            raise RuntimeError(_ERR_NOT_INITIALIZED)
        return self._session_store

    async def health_check(self) -> dict[str, str]:
        """Check health status of the engine and its datastore.

        Returns:
            Dictionary with component statuses ('ok', 'error', 'not_initialized').
        """
        status = {
            "engine": "ok" if self._initialized else "not_initialized",
            "datastore": "unknown",
        }
        if not self._initialized:
            return status

        try:
            async with self.datastore.session() as session:
                await session.execute(text("SELECT 1"))
        except SQLAlchemyError:
            logger.exception("Datastore health check failed")
            status["datastore"] = "error"
        else:
            status["datastore"] = "ok"
        return status
