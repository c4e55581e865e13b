"""Session store: per-chat prompt and history, scoped to one API key."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from sqlalchemy import delete, select, update
from sqlalchemy.exc import IntegrityError

from chatkeep.engine.history import EMPTY_HISTORY_DOCUMENT, decode_history, encode_history
from chatkeep.engine.models.user_session import UserSession
from chatkeep.errors.definitions import KeyMismatch, NotFound, UnknownKey

if TYPE_CHECKING:
    from collections.abc import Callable

    from sqlalchemy.ext.asyncio import AsyncSession

    from chatkeep.engine.client import ChatKeepEngine
    from chatkeep.engine.history import History


logger = logging.getLogger(__name__)


def _chat_not_found(chat_id: int) -> NotFound:
    return NotFound(f"chat {chat_id} has no session")


class SessionStore:
    """Business logic for per-chat sessions.

    Every mutation of a chat runs under that chat's lock and inside one
    transaction, so a record is never left half-written and concurrent
    mutations of the same chat apply in order. Different chats never
    contend.
    """

    def __init__(self, engine: ChatKeepEngine) -> None:
        self._engine = engine

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def get_or_create(self, chat_id: int, prefix: bytes) -> UserSession:
        """Return the chat's session, creating an empty one if needed.

        Args:
            chat_id: Chat identifier from the transport.
            prefix: Prefix of the key that authorized this request.

        Raises:
            KeyMismatch: If the existing session belongs to another key.
            UnknownKey: If ``prefix`` is not a registered key.
        """
        locks = self._engine.locks
        async with locks.chats.hold(chat_id):
            async with self._engine.datastore.transaction() as session:
                existing = await session.get(UserSession, chat_id)
            if existing is None:
                # Only creation contends with revoke of the same key.
                async with locks.prefixes.hold(prefix):
                    existing = await self._create(chat_id, prefix)

        if existing.api_key_prefix != prefix:
            raise KeyMismatch(chat_id)
        return existing

    async def read(self, chat_id: int) -> UserSession:
        """Fetch a chat's session.

        Raises:
            NotFound: If the chat has no session.
        """
        async with self._engine.datastore.transaction() as session:
            found = await session.get(UserSession, chat_id)
        if found is None:
            raise _chat_not_found(chat_id)
        return found

    async def set_current_prompt(self, chat_id: int, text: str | None) -> None:
        """Overwrite the chat's current prompt (``None`` clears it).

        Raises:
            NotFound: If the chat has no session.
        """
        async with self._engine.locks.chats.hold(chat_id):
            async with self._engine.datastore.transaction() as session:
                result = await session.execute(
                    update(UserSession)
                    .where(UserSession.chat_id == chat_id)
                    .values(current_prompt=text)
                )
                if result.rowcount == 0:  # type: ignore[union-attr]
                    raise _chat_not_found(chat_id)
        logger.debug("Set current prompt for chat %d", chat_id)

    async def append_history(self, chat_id: int, entry: Any) -> int:
        """Append one entry to the chat's history.

        Args:
            chat_id: Chat identifier.
            entry: Any JSON-serializable value.

        Returns:
            The history length after the append.

        Raises:
            NotFound: If the chat has no session.
            HistoryCorrupted: If the stored history cannot be decoded.
        """
        history = await self._rewrite_history(chat_id, lambda h: h.append(entry))
        return len(history)

    async def reset_history(self, chat_id: int) -> None:
        """Clear the chat's history.

        Raises:
            NotFound: If the chat has no session.
        """
        await self._rewrite_history(chat_id, lambda h: h.clear())

    async def drop_oldest(self, chat_id: int, count: int = 1) -> int:
        """Remove the ``count`` oldest history entries.

        Returns:
            Number of entries actually removed.

        Raises:
            NotFound: If the chat has no session.
        """
        removed = 0

        def _drop(history: History) -> None:
            nonlocal removed
            removed = history.drop_oldest(count)

        await self._rewrite_history(chat_id, _drop)
        return removed

    async def delete(self, chat_id: int) -> None:
        """Remove a chat's session explicitly.

        Raises:
            NotFound: If the chat has no session.
        """
        async with self._engine.locks.chats.hold(chat_id):
            async with self._engine.datastore.transaction() as session:
                result = await session.execute(
                    delete(UserSession).where(UserSession.chat_id == chat_id)
                )
                if result.rowcount == 0:  # type: ignore[union-attr]
                    raise _chat_not_found(chat_id)
        logger.info("Deleted session for chat %d", chat_id)

    async def cascade_delete_by_prefix(
        self, prefix: bytes, *, session: AsyncSession | None = None
    ) -> int:
        """Remove every session authorized by ``prefix``.

        Called by :meth:`KeyRegistry.revoke` with the revoke transaction, so
        the sessions and the key disappear together.

        Args:
            prefix: The key prefix.
            session: Run inside this transaction instead of opening a new one.

        Returns:
            Number of sessions removed.
        """
        stmt = delete(UserSession).where(UserSession.api_key_prefix == prefix)
        if session is not None:
            result = await session.execute(stmt)
        else:
            async with self._engine.datastore.transaction() as own_session:
                result = await own_session.execute(stmt)
        return result.rowcount  # type: ignore[union-attr, no-any-return]

    async def list_by_prefix(self, prefix: bytes) -> list[UserSession]:
        """List the sessions authorized by ``prefix``, ordered by chat id."""
        async with self._engine.datastore.transaction() as session:
            result = await session.execute(
                select(UserSession)
                .where(UserSession.api_key_prefix == prefix)
                .order_by(UserSession.chat_id)
            )
            return list(result.scalars().all())

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    async def _create(self, chat_id: int, prefix: bytes) -> UserSession:
        """Insert an empty session, or return one another process just wrote."""
        try:
            async with self._engine.datastore.transaction() as session:
                existing = await session.get(UserSession, chat_id)
                if existing is not None:
                    return existing
                if not await self._engine.key_registry.lookup_prefix(prefix, session=session):
                    raise UnknownKey
                created = UserSession(
                    chat_id=chat_id,
                    current_prompt=None,
                    history_document=EMPTY_HISTORY_DOCUMENT,
                    api_key_prefix=prefix,
                )
                session.add(created)
        except IntegrityError as exc:
            # FK violation: the key vanished outside this process.
            raise UnknownKey from exc

        logger.info("Created session for chat %d under key %s", chat_id, prefix.hex())
        return created

    async def _rewrite_history(
        self, chat_id: int, mutate: Callable[[History], None]
    ) -> History:
        """Decode, mutate and re-encode a chat's history in one transaction."""
        async with self._engine.locks.chats.hold(chat_id):
            async with self._engine.datastore.transaction() as session:
                document = (
                    await session.execute(
                        select(UserSession.history_document).where(
                            UserSession.chat_id == chat_id
                        )
                    )
                ).scalar_one_or_none()
                if document is None:
                    raise _chat_not_found(chat_id)

                history = decode_history(document)
                mutate(history)
                result = await session.execute(
                    update(UserSession)
                    .where(UserSession.chat_id == chat_id)
                    .values({UserSession.history_document: encode_history(history)})
                )
                # Revoked between the read and the write.
                if result.rowcount == 0:  # type: ignore[union-attr]
                    raise _chat_not_found(chat_id)
        logger.debug("History for chat %d now has %d entries", chat_id, len(history))
        return history
