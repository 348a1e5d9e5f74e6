"""레포지토리 쿼리 메서드 — 선언/네임드/파생 쿼리 해석 및 실행.

Repository query methods: resolution and execution of declared, named and
derived queries.

A query method is an `async def` stub on a repository class. Decorators
attach options to it; the repository resolves every stub once, when it is
instantiated, so configuration errors surface at startup rather than on
first call.

Resolution order:
    1. 선언 쿼리 (Declared): @query(statement) on the method
    2. 네임드 쿼리 (Named): "<Model>.<method_name>" in Model.__named_queries__
    3. 파생 쿼리 (Derived): parsed from the method name

Usage:
    class MemberRepository(BaseRepository[Member]):
        @query_method
        async def find_by_username_and_age_greater_than(
            self, db: AsyncSession, username: str, age: int
        ) -> list[Member]: ...

        @modifying
        @query(lambda age: update(Member).where(Member.age >= age).values(age=Member.age + 1))
        async def bulk_age_plus(self, db: AsyncSession, age: int) -> int: ...
"""

import functools
import inspect
import types
import typing
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Union

from pydantic import BaseModel
from sqlalchemy import Select, TextClause, bindparam, select, text
from sqlalchemy import inspect as sa_inspect
from sqlalchemy.engine import Result
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import joinedload
from sqlalchemy.sql import Executable

from app.config import settings
from app.repositories.derived_query import (
    PartTree,
    QueryKind,
    build_count,
    build_select,
    parse_method_name,
)
from app.utils.exceptions import IncorrectResultSizeError, QueryCreationError, translate_db_errors
from app.utils.logger import get_logger
from app.utils.pagination import PageRequest, Page, Slice, Sort, apply_sort, paginate, slice_query

logger = get_logger(__name__)

# 선언 쿼리 — SQL 문자열 또는 메서드 인자를 받아 statement를 돌려주는 함수
# Declared query: a SQL string, or a callable taking the method arguments by name
StatementSource = Union[str, Callable[..., Executable]]


class QueryStrategy(str, Enum):
    """쿼리 해석 전략 (How a query method was resolved)."""

    DECLARED = "declared"
    NAMED = "named"
    DERIVED = "derived"


class ReturnShape(str, Enum):
    """반환 타입으로 결정되는 결과 형태 (Result shape chosen by the return annotation)."""

    LIST = "list"
    SINGLE = "single"
    PAGE = "page"
    SLICE = "slice"
    COUNT = "count"
    EXISTS = "exists"


class LockMode(str, Enum):
    """비관적 락 모드 (Pessimistic lock mode)."""

    NONE = "none"
    PESSIMISTIC_READ = "pessimistic_read"  # FOR SHARE
    PESSIMISTIC_WRITE = "pessimistic_write"  # FOR UPDATE


@dataclass
class QueryOptions:
    """데코레이터가 누적하는 쿼리 옵션 (Options accumulated by the decorators)."""

    statement: StatementSource | None = None
    count_query: StatementSource | None = None
    modifying: bool = False
    flush_automatically: bool = False
    clear_automatically: bool = False
    entity_graph: tuple[str, ...] = ()
    read_only: bool = False
    lock_mode: LockMode = LockMode.NONE
    nowait: bool = False


class QueryMethod:
    """레포지토리 클래스에 선언된 쿼리 메서드 디스크립터.

    Descriptor wrapping a query method stub. Accessed on a repository
    instance it returns the bound executor of the resolved query.
    """

    def __init__(self, func: Callable[..., Any]) -> None:
        if not inspect.iscoroutinefunction(func):
            raise QueryCreationError(f"Query method {func.__qualname__} must be declared with 'async def'")
        functools.update_wrapper(self, func)
        self.func = func
        self.name: str = func.__name__
        self.options = QueryOptions()

    def __set_name__(self, owner: type, name: str) -> None:
        self.name = name

    def __get__(self, instance: Any, owner: type | None = None) -> Any:
        if instance is None:
            return self
        return instance.query_methods[self.name].execute

    def resolve(self, model: type[Any]) -> "ResolvedQuery":
        """모델 기준으로 쿼리를 해석합니다.

        Resolve this method against a model: pick the strategy, work out the
        return shape and validate parameters.

        Raises:
            QueryCreationError: 해석 불가 (The method cannot be turned into a query)
        """
        hints = typing.get_type_hints(self.func)
        parameters = list(inspect.signature(self.func).parameters.values())
        if len(parameters) < 2 or parameters[1].name != "db":
            raise QueryCreationError(f"Query method {self.name} must take (self, db, ...)")

        arguments: list[str] = []
        pageable_param: str | None = None
        sort_param: str | None = None
        for parameter in parameters[2:]:
            annotation = _strip_optional(hints.get(parameter.name))
            if annotation is PageRequest:
                pageable_param = parameter.name
            elif annotation is Sort:
                sort_param = parameter.name
            else:
                arguments.append(parameter.name)

        named_queries: dict[str, str] = getattr(model, "__named_queries__", {})
        named_key = f"{model.__name__}.{self.name}"
        tree: PartTree | None = None
        if self.options.statement is not None:
            strategy, statement = QueryStrategy.DECLARED, self.options.statement
        elif named_key in named_queries:
            strategy, statement = QueryStrategy.NAMED, named_queries[named_key]
        else:
            strategy, statement = QueryStrategy.DERIVED, None
            tree = parse_method_name(self.name, model)
            if tree.arity != len(arguments):
                raise QueryCreationError(
                    f"Method {self.name} expects {tree.arity} argument(s) from its name "
                    f"but declares {len(arguments)}"
                )

        shape, element = _return_shape(hints.get("return"), model, tree)
        resolved = ResolvedQuery(
            name=self.name,
            model=model,
            strategy=strategy,
            statement=statement,
            tree=tree,
            shape=shape,
            element=element,
            signature=inspect.signature(self.func),
            arguments=arguments,
            pageable_param=pageable_param,
            sort_param=sort_param,
            options=self.options,
        )
        resolved.validate()
        logger.debug("Resolved %s.%s as %s query (%s)", model.__name__, self.name, strategy.value, shape.value)
        return resolved


def _strip_optional(annotation: Any) -> Any:
    """`X | None` 에서 X를 꺼냅니다 (Unwrap `X | None` to X)."""
    if typing.get_origin(annotation) in (Union, types.UnionType):
        args = [arg for arg in typing.get_args(annotation) if arg is not type(None)]
        if len(args) == 1:
            return args[0]
    return annotation


def _return_shape(hint: Any, model: type[Any], tree: PartTree | None) -> tuple[ReturnShape, Any]:
    """반환 어노테이션에서 결과 형태와 원소 타입을 구합니다.

    Work out the result shape and element type from the return annotation.
    """
    if tree is not None and tree.kind is QueryKind.COUNT:
        return ReturnShape.COUNT, int
    if tree is not None and tree.kind is QueryKind.EXISTS:
        return ReturnShape.EXISTS, bool
    if hint is None or hint is type(None):
        return ReturnShape.LIST, model
    if hint is Page:
        return ReturnShape.PAGE, model
    if hint is Slice:
        return ReturnShape.SLICE, model
    if hint is int:
        return ReturnShape.COUNT, int
    if hint is bool:
        return ReturnShape.EXISTS, bool
    origin = typing.get_origin(hint)
    if origin in (list, Sequence, typing.Sequence):
        args = typing.get_args(hint)
        return ReturnShape.LIST, args[0] if args else model
    return ReturnShape.SINGLE, _strip_optional(hint)


def _is_dto(element: Any) -> bool:
    return isinstance(element, type) and issubclass(element, BaseModel)


@dataclass
class ResolvedQuery:
    """해석된 쿼리 메서드 — 호출 시 statement를 만들고 실행합니다.

    A resolved query method: builds the statement for each call and
    executes it with the shape chosen at resolution time.
    """

    name: str
    model: type[Any]
    strategy: QueryStrategy
    statement: StatementSource | None
    tree: PartTree | None
    shape: ReturnShape
    element: Any
    signature: inspect.Signature
    arguments: list[str]
    pageable_param: str | None
    sort_param: str | None
    options: QueryOptions = field(default_factory=QueryOptions)

    @property
    def is_text(self) -> bool:
        return isinstance(self.statement, str)

    def validate(self) -> None:
        """옵션 조합을 검증합니다 (Reject option combinations that cannot work)."""
        options = self.options
        if options.modifying and self.strategy is QueryStrategy.DERIVED:
            raise QueryCreationError(f"Modifying method {self.name} needs a declared query")
        if options.modifying and self.shape not in (ReturnShape.COUNT, ReturnShape.LIST):
            raise QueryCreationError(f"Modifying method {self.name} must return int")
        if self.shape in (ReturnShape.PAGE, ReturnShape.SLICE):
            if self.pageable_param is None:
                raise QueryCreationError(f"Paged method {self.name} needs a PageRequest parameter")
            if self.is_text:
                raise QueryCreationError(f"Paged method {self.name} needs a SQLAlchemy statement, not SQL text")
        if self.is_text and (options.entity_graph or options.lock_mode is not LockMode.NONE):
            raise QueryCreationError(f"Entity graph and locks need a SQLAlchemy statement in {self.name}")
        relationships = sa_inspect(self.model).relationships
        for path in options.entity_graph:
            if path not in relationships:
                raise QueryCreationError(f"No relationship '{path}' on {self.model.__name__} for {self.name}")

    def bind(self, args: tuple[Any, ...], kwargs: dict[str, Any]) -> tuple[dict[str, Any], PageRequest | None, Sort | None]:
        """호출 인자를 쿼리 인자와 페이지/정렬로 나눕니다.

        Split call arguments into query parameters, page request and sort.
        """
        bound = self.signature.bind(None, None, *args, **kwargs)
        bound.apply_defaults()
        values = {name: bound.arguments[name] for name in self.arguments}
        pageable = bound.arguments.get(self.pageable_param) if self.pageable_param else None
        sort = bound.arguments.get(self.sort_param) if self.sort_param else None
        if sort is None and pageable is not None:
            sort = pageable.sort
        return values, pageable, sort

    def _declared(self, source: StatementSource, values: dict[str, Any]) -> Executable:
        if isinstance(source, str):
            params = [
                bindparam(name, value=value, expanding=isinstance(value, (list, tuple, set, frozenset)))
                for name, value in values.items()
            ]
            return text(source).bindparams(*params)
        return source(**values)

    def build_statement(self, values: dict[str, Any], sort: Sort | None = None) -> Executable:
        """호출마다 실행할 statement를 만듭니다.

        Build the executable statement for one call: declared, named or
        derived, with entity graph, lock and dynamic sort applied.
        """
        if self.tree is not None:
            stmt: Executable = build_select(self.tree, self.model, list(values.values()))
        else:
            stmt = self._declared(self.statement, values)  # type: ignore[arg-type]

        if isinstance(stmt, TextClause):
            if not self.options.modifying and self.element is self.model:
                return select(self.model).from_statement(stmt)
            return stmt

        if isinstance(stmt, Select):
            if self.options.entity_graph:
                stmt = stmt.options(*(joinedload(getattr(self.model, path)) for path in self.options.entity_graph))
            if self.options.lock_mode is LockMode.PESSIMISTIC_WRITE:
                stmt = stmt.with_for_update(nowait=self.options.nowait)
            elif self.options.lock_mode is LockMode.PESSIMISTIC_READ:
                stmt = stmt.with_for_update(read=True, nowait=self.options.nowait)
            if self.shape not in (ReturnShape.PAGE, ReturnShape.SLICE):
                stmt = apply_sort(stmt, self.model, sort)
        return stmt

    def build_count_statement(self, values: dict[str, Any]) -> Executable | None:
        if self.tree is not None:
            return build_count(self.tree, self.model, list(values.values()))
        if self.options.count_query is not None:
            return self._declared(self.options.count_query, values)
        return None

    def shape_rows(self, result: Result[Any]) -> list[Any]:
        """결과 행을 반환 원소 타입에 맞게 변환합니다.

        Convert result rows to the element type: DTOs are built from the
        row mapping by column label, everything else is read as scalars.
        """
        if self.options.entity_graph:
            result = result.unique()
        if _is_dto(self.element):
            return [self.element(**row._mapping) for row in result]
        if self.element is tuple:
            return list(result.all())
        return list(result.scalars().all())

    def lock_timeout_statement(self, dialect_name: str) -> TextClause | None:
        """락 대기 한도 설정문 — PostgreSQL에서 NOWAIT가 아닌 락 조회에만.

        Statement bounding the lock wait for this call, or None. Only
        PostgreSQL lock queries without NOWAIT get one.
        """
        if self.options.lock_mode is LockMode.NONE or self.options.nowait or settings.LOCK_TIMEOUT_MS <= 0:
            return None
        if dialect_name != "postgresql":
            return None
        return text(f"SET LOCAL lock_timeout = '{int(settings.LOCK_TIMEOUT_MS)}ms'")

    async def _apply_lock_timeout(self, db: AsyncSession) -> None:
        statement = self.lock_timeout_statement(db.get_bind().dialect.name)
        if statement is not None:
            await db.execute(statement)

    @staticmethod
    def _managed(db: AsyncSession) -> set[Any]:
        """호출 전 세션이 관리 중인 엔티티 (Entities managed before the call, pending included)."""
        return set(db.identity_map.values()) | set(db.new)

    def _detach(self, db: AsyncSession, items: list[Any], known: set[Any]) -> None:
        """읽기 전용 힌트 — 이번 조회로 새로 로드된 엔티티만 분리.

        Detach the entities this query loaded. Entities that were already
        managed before the call keep their identity and change tracking.
        """
        for item in items:
            if not isinstance(item, self.model) or item not in db:
                continue
            if item not in known:
                db.expunge(item)

    async def execute(self, db: AsyncSession, *args: Any, **kwargs: Any) -> Any:
        """쿼리 메서드를 실행합니다 (Execute the query method)."""
        values, pageable, sort = self.bind(args, kwargs)
        stmt = self.build_statement(values, sort)
        known = self._managed(db) if self.options.read_only else set()

        async with translate_db_errors():
            if self.options.modifying:
                return await self._execute_modifying(db, stmt)

            await self._apply_lock_timeout(db)

            if self.tree is not None and self.tree.kind is QueryKind.DELETE:
                entities = self.shape_rows(await db.execute(stmt))
                for entity in entities:
                    await db.delete(entity)
                await db.flush()
                return len(entities) if self.shape is ReturnShape.COUNT else entities

            if self.shape is ReturnShape.COUNT:
                count_stmt = self.build_count_statement(values) if self.tree is not None else stmt
                return (await db.execute(count_stmt)).scalar() or 0
            if self.shape is ReturnShape.EXISTS:
                limited = stmt.limit(1) if isinstance(stmt, Select) else stmt
                return (await db.execute(limited)).first() is not None
            if self.shape is ReturnShape.PAGE:
                page = await paginate(
                    db, stmt, pageable, self.model, self.build_count_statement(values), self.shape_rows
                )
                self._maybe_detach(db, page.content, known)
                return page
            if self.shape is ReturnShape.SLICE:
                chunk = await slice_query(db, stmt, pageable, self.model, self.shape_rows)
                self._maybe_detach(db, chunk.content, known)
                return chunk

            items = self.shape_rows(await db.execute(stmt))

        self._maybe_detach(db, items, known)
        if self.shape is ReturnShape.LIST:
            return items
        if len(items) > 1:
            raise IncorrectResultSizeError(f"{self.name} returned {len(items)} results, expected at most 1")
        return items[0] if items else None

    def _maybe_detach(self, db: AsyncSession, items: list[Any], known: set[Any]) -> None:
        if self.options.read_only:
            self._detach(db, items, known)

    async def _execute_modifying(self, db: AsyncSession, stmt: Executable) -> int:
        """벌크 UPDATE/DELETE — 세션 동기화 없이 한 번에 실행.

        Run a bulk UPDATE/DELETE as one set-based statement. Managed entities
        are not synchronized, so they stay stale until the session is cleared.
        """
        if self.options.flush_automatically:
            await db.flush()
        result = await db.execute(stmt, execution_options={"synchronize_session": False})
        if self.options.clear_automatically:
            db.expunge_all()
        logger.info("Bulk %s affected %d row(s)", self.name, result.rowcount)
        return result.rowcount


def _query_method(target: Any) -> QueryMethod:
    return target if isinstance(target, QueryMethod) else QueryMethod(target)


def query_method(func: Callable[..., Any]) -> QueryMethod:
    """옵션 없는 쿼리 메서드 (Mark a stub as a named or derived query method)."""
    return _query_method(func)


def query(statement: StatementSource, *, count_query: StatementSource | None = None) -> Callable[[Any], QueryMethod]:
    """선언 쿼리를 붙입니다.

    Attach a declared query. Takes precedence over named and derived queries.

    Args:
        statement: SQL 문자열 또는 statement 생성 함수
                   (SQL string, or callable receiving the method arguments by name)
        count_query: 페이지 전체 개수 쿼리 (Count query for paged results)
    """
    def decorator(target: Any) -> QueryMethod:
        method = _query_method(target)
        method.options.statement = statement
        method.options.count_query = count_query
        return method
    return decorator


def modifying(
    target: Any = None,
    *,
    flush_automatically: bool = False,
    clear_automatically: bool = False,
) -> Any:
    """벌크 UPDATE/DELETE 쿼리로 표시합니다.

    Mark a declared query as a bulk mutation returning the affected row count.
    Usable bare (`@modifying`) or with options (`@modifying(clear_automatically=True)`).
    """
    def decorator(inner: Any) -> QueryMethod:
        method = _query_method(inner)
        method.options.modifying = True
        method.options.flush_automatically = flush_automatically
        method.options.clear_automatically = clear_automatically
        return method
    return decorator(target) if target is not None else decorator


def entity_graph(*attribute_paths: str) -> Callable[[Any], QueryMethod]:
    """지정한 연관관계를 같은 쿼리에서 함께 로딩합니다 (Eager-load relationships in the same query)."""
    def decorator(target: Any) -> QueryMethod:
        method = _query_method(target)
        method.options.entity_graph = attribute_paths
        return method
    return decorator


def query_hints(*, read_only: bool = False) -> Callable[[Any], QueryMethod]:
    """쿼리 힌트 — read_only이면 결과 엔티티를 변경 감지에서 제외합니다.

    Query hints. With read_only=True the entities the query loads are
    detached, so later mutations are never flushed. Entities the session
    already managed are returned as they are.
    """
    def decorator(target: Any) -> QueryMethod:
        method = _query_method(target)
        method.options.read_only = read_only
        return method
    return decorator


def lock(mode: LockMode, *, nowait: bool = False) -> Callable[[Any], QueryMethod]:
    """비관적 락을 요청합니다 (Request a pessimistic lock on matching rows)."""
    def decorator(target: Any) -> QueryMethod:
        method = _query_method(target)
        method.options.lock_mode = mode
        method.options.nowait = nowait
        return method
    return decorator
