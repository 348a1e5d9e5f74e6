"""테스트 인프라 — 테스트 DB 엔진, 세션 픽스처.

Test infrastructure — Test database engine and session fixtures.
Uses an in-memory SQLite database by default; set TEST_DATABASE_URL to run
against PostgreSQL (e.g. postgresql+asyncpg://postgres@localhost:5432/test_datajpa).
Schema is recreated for every test, and each test session is rolled back.
"""

import os
from collections.abc import AsyncGenerator

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import StaticPool

from app.database import Base, build_session_factory
from app.models import *  # noqa: F401,F403 — register all models with metadata

# ---------------------------------------------------------------------------
# 테스트 DB 설정
# ---------------------------------------------------------------------------
TEST_DATABASE_URL = os.environ.get("TEST_DATABASE_URL", "sqlite+aiosqlite://")


# ---------------------------------------------------------------------------
# Function-scoped: 엔진, 세션
# ---------------------------------------------------------------------------
@pytest_asyncio.fixture
async def engine() -> AsyncGenerator[AsyncEngine, None]:
    """테스트용 async 엔진. 매 테스트마다 스키마를 새로 만듭니다."""
    if TEST_DATABASE_URL.startswith("sqlite"):
        # 인메모리 DB는 연결 하나를 공유해야 유지됨 (in-memory DB lives on one connection)
        eng = create_async_engine(TEST_DATABASE_URL, poolclass=StaticPool)
    else:
        eng = create_async_engine(TEST_DATABASE_URL, pool_pre_ping=True)

    async with eng.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)

    yield eng
    await eng.dispose()


@pytest.fixture
def session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """테스트 엔진에 묶인 세션 팩토리."""
    return build_session_factory(engine)


@pytest_asyncio.fixture
async def db(session_factory: async_sessionmaker[AsyncSession]) -> AsyncGenerator[AsyncSession, None]:
    """각 테스트에 격리된 DB 세션 — 종료 시 롤백합니다."""
    async with session_factory() as session:
        yield session
        await session.rollback()
