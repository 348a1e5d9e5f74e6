"""영속성 예외 클래스 모듈.

Persistence exception classes module.
Provides the error hierarchy raised by repositories and query methods,
plus a translator that converts SQLAlchemy/driver errors into it.
Absence on single-result lookups is never an error: it is a plain None.

Usage:
    from app.utils.exceptions import ConstraintViolationError, translate_db_errors
    async with translate_db_errors():
        await db.flush()
"""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from sqlalchemy.exc import (
    DBAPIError,
    IntegrityError,
    MultipleResultsFound,
    OperationalError,
    SQLAlchemyError,
)

# 락 획득 실패로 간주하는 SQLSTATE — lock_not_available, deadlock_detected
_LOCK_SQLSTATES = {"55P03", "40P01"}
_LOCK_MESSAGES = ("could not obtain lock", "lock timeout", "deadlock", "database is locked")


class PersistenceError(Exception):
    """영속성 계층 기본 예외 — 연결 실패, 매핑 설정 오류.

    Base persistence exception.
    Raised on connectivity failures and mapping configuration errors.
    Fatal: surfaced to the caller and never retried automatically.

    Args:
        detail: 오류 메시지 (Error message, default: "Persistence failure")
    """

    default_detail = "Persistence failure"

    def __init__(self, detail: str | None = None) -> None:
        self.detail: str = detail or self.default_detail
        super().__init__(self.detail)


class QueryCreationError(PersistenceError):
    """쿼리 메서드를 해석할 수 없을 때 — 레포지토리 생성 시점에 발생.

    Raised when a query method cannot be resolved into a statement
    (unknown property, unknown operator, wrong parameter count).
    """

    default_detail = "Could not create query"


class ConstraintViolationError(PersistenceError):
    """유니크/외래키 제약 위반 — flush 시점에 발생.

    Raised when a uniqueness or foreign-key constraint is violated at flush time.
    """

    default_detail = "Constraint violation"


class ConcurrencyConflictError(PersistenceError):
    """제한 시간 내 락 획득 실패.

    Raised when a pessimistic lock cannot be acquired within the bounded wait.
    """

    default_detail = "Lock could not be acquired"


class IncorrectResultSizeError(PersistenceError):
    """단건 조회 메서드가 둘 이상의 행과 일치했을 때.

    Raised when a single-result query method matches more than one row.
    """

    default_detail = "Query did not return a unique result"


def _is_lock_failure(exc: DBAPIError) -> bool:
    sqlstate = getattr(exc.orig, "sqlstate", None) or getattr(exc.orig, "pgcode", None)
    if sqlstate in _LOCK_SQLSTATES:
        return True
    message = str(exc.orig).lower()
    return any(fragment in message for fragment in _LOCK_MESSAGES)


def translate_error(exc: SQLAlchemyError) -> PersistenceError:
    """SQLAlchemy 예외를 영속성 예외로 변환합니다.

    Map a SQLAlchemy exception onto the persistence error hierarchy.

    Args:
        exc: 원본 SQLAlchemy 예외 (Original SQLAlchemy exception)

    Returns:
        PersistenceError: 대응하는 영속성 예외 (Matching persistence error)
    """
    if isinstance(exc, IntegrityError):
        return ConstraintViolationError(str(exc.orig))
    if isinstance(exc, MultipleResultsFound):
        return IncorrectResultSizeError(str(exc))
    if isinstance(exc, DBAPIError) and _is_lock_failure(exc):
        return ConcurrencyConflictError(str(exc.orig))
    if isinstance(exc, OperationalError):
        return PersistenceError(f"Database unavailable: {exc.orig}")
    return PersistenceError(str(exc))


@asynccontextmanager
async def translate_db_errors() -> AsyncIterator[None]:
    """블록 안의 SQLAlchemy 예외를 영속성 예외로 바꿔 다시 발생시킵니다.

    Re-raise SQLAlchemy exceptions from the wrapped block as PersistenceError
    subclasses, chained to the original.
    """
    try:
        yield
    except SQLAlchemyError as exc:
        raise translate_error(exc) from exc
