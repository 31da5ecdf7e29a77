from __future__ import annotations

from pathlib import Path
from typing import AsyncIterator

import pytest
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from momantza.core.config import Settings, load_settings
from momantza.persistence.db import build_engine, build_session_factory
from momantza.services.registry import Services, build_services


TEST_JWT_SECRET = "momantza-test-signing-secret-0123456789abcdef"


def make_settings(tmp_path: Path, **overrides: object) -> Settings:
    # One throw-away SQLite file per test; low bcrypt cost keeps hashing fast.
    values: dict[str, object] = {
        "database_url": f"sqlite+aiosqlite:///{tmp_path / 'momantza.db'}",
        "jwt_secret": TEST_JWT_SECRET,
        "bcrypt_rounds": 4,
        "log_level": "INFO",
    }
    values.update(overrides)
    return load_settings(**values)


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    return make_settings(tmp_path)


@pytest.fixture
async def engine(settings: Settings) -> AsyncIterator[AsyncEngine]:
    engine = build_engine(settings)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return build_session_factory(engine)


@pytest.fixture
async def services(settings: Settings, session_factory: async_sessionmaker[AsyncSession]) -> Services:
    services = build_services(settings, session_factory)
    assert await services.ensure_tables()
    return services


@pytest.fixture
def settings_factory(tmp_path: Path):
    def _factory(**overrides: object) -> Settings:
        return make_settings(tmp_path, **overrides)

    return _factory
