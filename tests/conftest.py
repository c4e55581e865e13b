"""Shared test fixtures for the chatkeep test suite."""

from __future__ import annotations

from typing import TYPE_CHECKING

import pytest

from chatkeep.config.settings import AppConfig, DatabaseConfig, DatabaseEngine
from chatkeep.engine.client import ChatKeepEngine

if TYPE_CHECKING:
    from collections.abc import AsyncIterator
    from pathlib import Path

# 32 alphanumeric characters, the shape of keys handed to bot users
SECRET = "OoNhM6l1aCUFRoCjb8LUNYqJ2IVrVVka"


@pytest.fixture
def app_config() -> AppConfig:
    """Provide a test AppConfig backed by in-memory SQLite."""
    return AppConfig(
        debug=True,
        db=DatabaseConfig(
            engine=DatabaseEngine.SQLITE,
            dsn="sqlite+aiosqlite:///:memory:",
        ),
    )


@pytest.fixture
async def engine(app_config: AppConfig) -> AsyncIterator[ChatKeepEngine]:
    """Provide an initialized engine with in-memory SQLite."""
    eng = ChatKeepEngine(app_config)
    await eng.initialize()
    yield eng
    await eng.close()


@pytest.fixture
async def file_engine(tmp_path: Path) -> AsyncIterator[ChatKeepEngine]:
    """Engine on a SQLite file, so concurrent tasks get separate connections."""
    config = AppConfig(
        db=DatabaseConfig(
            engine=DatabaseEngine.SQLITE,
            dsn=f"sqlite+aiosqlite:///{tmp_path / 'chatkeep.db'}",
        ),
    )
    eng = ChatKeepEngine(config)
    await eng.initialize()
    yield eng
    await eng.close()


@pytest.fixture
async def prefix(engine: ChatKeepEngine) -> bytes:
    """Prefix of ``SECRET`` issued on the in-memory engine."""
    return await engine.key_registry.issue(SECRET)
