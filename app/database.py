"""엔진, 세션 팩토리, 트랜잭션 경계.

Async engine, session factory, declarative base and transaction boundary.
The session is the unit of work: its identity map guarantees that repeated
lookups of the same id inside one transaction return the same instance.
"""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from typing import Any

from sqlalchemy import event
from sqlalchemy.ext.asyncio import (
    AsyncAttrs,
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase, Session

from app.config import settings
from app.utils.exceptions import translate_db_errors


def _engine_options(url: str) -> dict[str, Any]:
    """드라이버별 엔진 옵션 (Driver-specific engine options)."""
    if url.startswith("postgresql+asyncpg"):
        return {
            "pool_pre_ping": True,
            "pool_size": 5,
            "max_overflow": 10,
            # 트랜잭션 모드 풀러에서 prepared statement 비활성화
            # Disable prepared statement caches for transaction-mode pooling
            "connect_args": {"statement_cache_size": 0},
        }
    return {}


# 비동기 데이터베이스 엔진 — Async database engine
engine: AsyncEngine = create_async_engine(
    settings.DATABASE_URL,
    echo=settings.DEBUG,
    **_engine_options(settings.DATABASE_URL),
)

class UnitOfWorkSession(Session):
    """관리 중인 엔티티를 세션 수명 동안 강하게 참조하는 세션.

    Session that keeps a strong reference to every entity it manages.
    The plain identity map is weak-referencing, so an entity the caller no
    longer holds could be collected and reloaded with fresh state. Holding
    it here keeps "same id, same instance, same state" true for the whole
    unit of work, including entities left stale by bulk updates.
    """


_STRONG_REFS = "strong_refs"


@event.listens_for(UnitOfWorkSession, "pending_to_persistent")
@event.listens_for(UnitOfWorkSession, "deleted_to_persistent")
@event.listens_for(UnitOfWorkSession, "detached_to_persistent")
@event.listens_for(UnitOfWorkSession, "loaded_as_persistent")
def _hold_reference(session: Session, instance: Any) -> None:
    session.info.setdefault(_STRONG_REFS, set()).add(instance)


@event.listens_for(UnitOfWorkSession, "persistent_to_detached")
@event.listens_for(UnitOfWorkSession, "persistent_to_deleted")
@event.listens_for(UnitOfWorkSession, "persistent_to_transient")
def _release_reference(session: Session, instance: Any) -> None:
    session.info.get(_STRONG_REFS, set()).discard(instance)


def build_session_factory(bind: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """엔진에 묶인 세션 팩토리를 만듭니다.

    Build a session factory for an engine. expire_on_commit=False keeps
    loaded attributes readable after commit.
    """
    return async_sessionmaker(
        bind,
        class_=AsyncSession,
        sync_session_class=UnitOfWorkSession,
        expire_on_commit=False,
    )


# 세션 팩토리 — Session factory bound to the global engine
async_session: async_sessionmaker[AsyncSession] = build_session_factory(engine)


class Base(AsyncAttrs, DeclarativeBase):
    """모든 엔티티의 선언적 베이스.

    Declarative base for the entity models.
    AsyncAttrs exposes `awaitable_attrs`, which makes lazy association loads
    explicit at the call site: `await member.awaitable_attrs.team`.
    """

    pass


@asynccontextmanager
async def transaction(
    factory: async_sessionmaker[AsyncSession] | None = None,
) -> AsyncGenerator[AsyncSession, None]:
    """트랜잭션 경계 — 정상 종료 시 커밋, 예외 시 롤백.

    Caller-delimited transaction boundary.
    Commits when the block exits normally and rolls back on any exception.
    Database errors raised inside the block surface as PersistenceError.

    Args:
        factory: 세션 팩토리, None이면 전역 팩토리 사용
                 (Session factory; the global one when None)

    Yields:
        AsyncSession: 트랜잭션에 묶인 세션 (Session bound to the transaction)
    """
    async with (factory or async_session)() as session:
        async with translate_db_errors():
            async with session.begin():
                yield session
