"""Key registry: issue, verify and revoke API keys."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from sqlalchemy import delete, or_, select
from sqlalchemy.exc import IntegrityError

from chatkeep.engine.models.api_key import ApiKeyRecord
from chatkeep.errors.definitions import DuplicateKey, NotFound, Rejected
from chatkeep.utils.crypto import (
    PREFIX_LENGTH,
    constant_time_equal,
    derive_prefix,
    digest,
    generate_secret,
)

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

    from chatkeep.engine.client import ChatKeepEngine

logger = logging.getLogger(__name__)


class KeyRegistry:
    """Owns the set of valid API keys.

    Keys are stored as a digest plus a short public prefix:
    - the digest is only ever compared for equality, in constant time
    - the prefix is the handle sessions reference (never the digest)
    - revoking a key deletes every session it authorized, atomically
    """

    def __init__(self, engine: ChatKeepEngine) -> None:
        self._engine = engine

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def issue(self, secret: str) -> bytes:
        """Register a secret handed out by the key distribution process.

        Args:
            secret: The raw API key.

        Returns:
            The key's prefix.

        Raises:
            ValueError: If the secret is too short to carry a full prefix.
            DuplicateKey: If the digest or the prefix is already registered.
        """
        if len(secret.encode("utf-8")) <= PREFIX_LENGTH:
            msg = f"secret must be longer than {PREFIX_LENGTH} bytes"
            raise ValueError(msg)
        key_prefix = derive_prefix(secret)
        key_hash = digest(secret)

        async with self._engine.locks.prefixes.hold(key_prefix):
            try:
                async with self._engine.datastore.transaction() as session:
                    result = await session.execute(
                        select(ApiKeyRecord.key_prefix).where(
                            or_(
                                ApiKeyRecord.key_hash == key_hash,
                                ApiKeyRecord.key_prefix == key_prefix,
                            )
                        )
                    )
                    if result.first() is not None:
                        raise DuplicateKey
                    session.add(ApiKeyRecord(key_hash=key_hash, key_prefix=key_prefix))
            except IntegrityError as exc:
                raise DuplicateKey from exc

        logger.info("Issued api key %s", key_prefix.hex())
        return key_prefix

    async def generate(self) -> tuple[str, bytes]:
        """Generate a fresh secret and issue it.

        Returns:
            Tuple of (secret, prefix). The secret is returned ONLY here.
        """
        secret = generate_secret(self._engine.config.keys.secret_length)
        return secret, await self.issue(secret)

    async def verify(self, secret: str) -> bytes:
        """Resolve a presented secret to its key prefix.

        Args:
            secret: The raw API key presented by a caller.

        Returns:
            The prefix of the matching key.

        Raises:
            Rejected: If no registered key matches. The same error is raised
                for unknown keys and wrong keys.
        """
        key_hash = digest(secret)
        async with self._engine.datastore.transaction() as session:
            record = (
                await session.execute(
                    select(ApiKeyRecord).where(ApiKeyRecord.key_hash == key_hash)
                )
            ).scalar_one_or_none()

        if record is None:
            logger.warning("Api key verification failed")
            raise Rejected

        hash_ok = constant_time_equal(record.key_hash, key_hash)
        prefix_ok = constant_time_equal(record.key_prefix, derive_prefix(secret))
        if not (hash_ok & prefix_ok):
            logger.warning("Api key verification failed")
            raise Rejected
        return record.key_prefix

    async def revoke(self, prefix: bytes) -> int:
        """Delete a key and, in the same transaction, every session it authorized.

        Args:
            prefix: The key prefix.

        Returns:
            Number of sessions removed by the cascade.

        Raises:
            NotFound: If no key has this prefix.
            StorageFailure: If the transaction fails; nothing is deleted.
        """
        async with self._engine.locks.prefixes.hold(prefix):
            async with self._engine.datastore.transaction() as session:
                removed = await self._engine.session_store.cascade_delete_by_prefix(
                    prefix, session=session
                )
                result = await session.execute(
                    delete(ApiKeyRecord).where(ApiKeyRecord.key_prefix == prefix)
                )
                if result.rowcount == 0:  # type: ignore[union-attr]
                    raise NotFound(f"api key {prefix.hex()} not found")

        logger.info("Revoked api key %s (%d sessions removed)", prefix.hex(), removed)
        return removed

    async def lookup_prefix(
        self, prefix: bytes, *, session: AsyncSession | None = None
    ) -> bool:
        """Check whether a key with this prefix exists.

        Args:
            prefix: The key prefix.
            session: Run inside this transaction instead of opening a new one.
        """
        if session is not None:
            return await session.get(ApiKeyRecord, prefix) is not None
        async with self._engine.datastore.transaction() as own_session:
            return await own_session.get(ApiKeyRecord, prefix) is not None

    async def list_prefixes(self) -> list[bytes]:
        """List the prefixes of all registered keys, ordered."""
        async with self._engine.datastore.transaction() as session:
            result = await session.execute(
                select(ApiKeyRecord.key_prefix).order_by(ApiKeyRecord.key_prefix)
            )
            return list(result.scalars().all())
