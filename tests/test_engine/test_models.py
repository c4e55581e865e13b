"""Tests for ORM models: schema shape and CRUD with in-memory SQLite."""

from __future__ import annotations

from typing import TYPE_CHECKING

import pytest
from sqlalchemy import delete, select, text
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from chatkeep.config.settings import DatabaseConfig
from chatkeep.datastore.engines import create_engine
from chatkeep.engine.history import EMPTY_HISTORY_DOCUMENT
from chatkeep.engine.models import ALL_MODELS, ApiKeyRecord, Base, UserSession

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

PREFIX = b"OoNhM6l1aC"


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
async def db_engine():
    """Create an in-memory SQLite async engine with tables and FK checks."""
    eng = create_engine(DatabaseConfig(dsn="sqlite+aiosqlite:///:memory:"))
    async with eng.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield eng
    await eng.dispose()


@pytest.fixture
async def session(db_engine) -> AsyncIterator[AsyncSession]:
    """Provide an async session for testing."""
    factory = async_sessionmaker(db_engine, class_=AsyncSession, expire_on_commit=False)
    async with factory() as sess:
        yield sess


# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------


class TestSchema:
    def test_all_models(self) -> None:
        assert ALL_MODELS == [ApiKeyRecord, UserSession]

    def test_api_keys_columns(self) -> None:
        table = ApiKeyRecord.__table__
        assert table.name == "api_keys"
        assert [c.name for c in table.primary_key.columns] == ["key_prefix"]
        assert table.c.key_hash.unique is True
        assert table.c.key_hash.nullable is False
        assert table.c.key_hash.type.length == 32
        assert table.c.key_hash.comment == "Digest of the secret"
        assert table.c.key_prefix.type.length == 10

    def test_users_columns(self) -> None:
        table = UserSession.__table__
        assert table.name == "users"
        assert [c.name for c in table.primary_key.columns] == ["chat_id"]
        assert set(table.c.keys()) == {"chat_id", "current_prompt", "history", "api_key_prefix"}
        assert table.c.current_prompt.nullable is True
        assert table.c.history.nullable is False
        assert table.c.api_key_prefix.nullable is False

    def test_users_prefix_cascades(self) -> None:
        (fk,) = UserSession.__table__.c.api_key_prefix.foreign_keys
        assert fk.target_fullname == "api_keys.key_prefix"
        assert fk.ondelete == "CASCADE"


# ---------------------------------------------------------------------------
# CRUD
# ---------------------------------------------------------------------------


class TestApiKeyRecord:
    async def test_create(self, session: AsyncSession) -> None:
        session.add(ApiKeyRecord(key_hash=b"h" * 32, key_prefix=PREFIX))
        await session.commit()

        record = await session.get(ApiKeyRecord, PREFIX)
        assert record is not None
        assert record.key_hash == b"h" * 32
        assert PREFIX.hex() in repr(record)

    async def test_duplicate_hash_rejected(self, session: AsyncSession) -> None:
        session.add(ApiKeyRecord(key_hash=b"h" * 32, key_prefix=PREFIX))
        await session.commit()
        session.add(ApiKeyRecord(key_hash=b"h" * 32, key_prefix=b"x" * 10))
        with pytest.raises(IntegrityError):
            await session.commit()


class TestUserSession:
    async def test_create_with_empty_history(self, session: AsyncSession) -> None:
        session.add(ApiKeyRecord(key_hash=b"h" * 32, key_prefix=PREFIX))
        session.add(
            UserSession(chat_id=7, history_document=EMPTY_HISTORY_DOCUMENT, api_key_prefix=PREFIX)
        )
        await session.commit()

        user = await session.get(UserSession, 7)
        assert user is not None
        assert user.current_prompt is None
        assert user.history == []
        assert "chat_id=7" in repr(user)

    async def test_large_chat_id(self, session: AsyncSession) -> None:
        session.add(ApiKeyRecord(key_hash=b"h" * 32, key_prefix=PREFIX))
        session.add(
            UserSession(
                chat_id=-1001234567890,
                history_document=EMPTY_HISTORY_DOCUMENT,
                api_key_prefix=PREFIX,
            )
        )
        await session.commit()
        assert await session.get(UserSession, -1001234567890) is not None

    async def test_unknown_prefix_rejected(self, session: AsyncSession) -> None:
        session.add(
            UserSession(chat_id=1, history_document=EMPTY_HISTORY_DOCUMENT, api_key_prefix=PREFIX)
        )
        with pytest.raises(IntegrityError):
            await session.commit()

    async def test_delete_key_cascades(self, session: AsyncSession) -> None:
        session.add(ApiKeyRecord(key_hash=b"h" * 32, key_prefix=PREFIX))
        for chat_id in (1, 2):
            session.add(
                UserSession(
                    chat_id=chat_id,
                    history_document=EMPTY_HISTORY_DOCUMENT,
                    api_key_prefix=PREFIX,
                )
            )
        await session.commit()

        await session.execute(delete(ApiKeyRecord).where(ApiKeyRecord.key_prefix == PREFIX))
        await session.commit()

        result = await session.execute(select(UserSession))
        assert result.scalars().all() == []

    async def test_history_column_name(self, session: AsyncSession) -> None:
        session.add(ApiKeyRecord(key_hash=b"h" * 32, key_prefix=PREFIX))
        session.add(
            UserSession(chat_id=3, history_document='["legacy"]', api_key_prefix=PREFIX)
        )
        await session.commit()

        raw = await session.execute(text("SELECT history FROM users WHERE chat_id = 3"))
        assert raw.scalar() == '["legacy"]'
        user = await session.get(UserSession, 3)
        assert user is not None
        assert user.history == ["legacy"]
