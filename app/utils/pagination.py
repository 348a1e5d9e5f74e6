"""페이지네이션 유틸리티 모듈.

Pagination utility module for SQLAlchemy async queries.
Provides the paging value types (Sort, PageRequest), the Page and Slice
result models, and helpers that run a Select with sort/offset/limit.
Page indexes are zero-based.
"""

import math
from collections.abc import Callable, Sequence
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy import Select, func, inspect, select
from sqlalchemy.engine import Result
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.utils.exceptions import QueryCreationError

# 결과 행을 항목 목록으로 바꾸는 함수 — Turns a Result into a list of items
RowShaper = Callable[[Result[Any]], list[Any]]


class Direction(str, Enum):
    """정렬 방향 (Sort direction)."""

    ASC = "asc"
    DESC = "desc"


class Order(BaseModel):
    """단일 정렬 조건 (Single sort criterion: property + direction)."""

    model_config = ConfigDict(frozen=True)

    property: str
    direction: Direction = Direction.ASC


class Sort(BaseModel):
    """정렬 명세 — 여러 Order의 순서 있는 목록.

    Sort specification: an ordered tuple of Order criteria.

    Usage:
        Sort.by("username", direction=Direction.DESC)
        Sort.by("age").and_(Sort.by("username", direction=Direction.DESC))
    """

    model_config = ConfigDict(frozen=True)

    orders: tuple[Order, ...] = ()

    @classmethod
    def by(cls, *properties: str, direction: Direction = Direction.ASC) -> "Sort":
        return cls(orders=tuple(Order(property=p, direction=direction) for p in properties))

    @classmethod
    def unsorted(cls) -> "Sort":
        return cls()

    def and_(self, other: "Sort") -> "Sort":
        return Sort(orders=self.orders + other.orders)

    @property
    def is_sorted(self) -> bool:
        return bool(self.orders)


class PageRequest(BaseModel):
    """페이지 요청 — 0부터 시작하는 페이지 번호, 크기, 정렬.

    Page request: zero-based page index, page size and sort.

    Attributes:
        page: 페이지 번호, 0부터 시작 (Page index, zero-based)
        size: 페이지 크기 (Page size)
        sort: 정렬 명세 (Sort specification)
    """

    model_config = ConfigDict(frozen=True)

    page: int = Field(default=0, ge=0)
    size: int = Field(default=settings.DEFAULT_PAGE_SIZE, ge=1, le=settings.MAX_PAGE_SIZE)
    sort: Sort = Sort()

    @classmethod
    def of(cls, page: int, size: int, sort: Sort | None = None) -> "PageRequest":
        return cls(page=page, size=size, sort=sort or Sort())

    @property
    def offset(self) -> int:
        return self.page * self.size

    def next(self) -> "PageRequest":
        return PageRequest(page=self.page + 1, size=self.size, sort=self.sort)

    def first(self) -> "PageRequest":
        return PageRequest(page=0, size=self.size, sort=self.sort)


class _Chunk(BaseModel):
    """Page/Slice 공통 필드 (Fields shared by Page and Slice)."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    content: list[Any]  # 현재 페이지 항목 목록 (Items for the current page)
    number: int  # 현재 페이지 번호 — 0부터 시작 (Current page, 0-indexed)
    size: int = Field(ge=1)  # 페이지당 항목 수 (Requested page size)

    @property
    def number_of_elements(self) -> int:
        return len(self.content)

    @property
    def is_first(self) -> bool:
        return self.number == 0

    @property
    def has_previous(self) -> bool:
        return self.number > 0

    @property
    def has_content(self) -> bool:
        return bool(self.content)


class Slice(_Chunk):
    """전체 개수 없이 다음 페이지 존재 여부만 아는 결과.

    A page of results that knows only whether a next page exists.
    Built by fetching size + 1 rows; no count query is issued.
    """

    has_next: bool

    @property
    def is_last(self) -> bool:
        return not self.has_next

    def map(self, fn: Callable[[Any], Any]) -> "Slice":
        return Slice(content=[fn(item) for item in self.content], number=self.number, size=self.size, has_next=self.has_next)


class Page(_Chunk):
    """페이지네이션 결과 모델.

    Pagination result model.
    Contains the page content and the total element count across all pages.

    Attributes:
        content: 현재 페이지 항목 목록 (Items for the current page)
        number: 현재 페이지 번호 (Current page number, 0-based)
        size: 페이지당 항목 수 (Items per page)
        total_elements: 전체 항목 수 (Total count across all pages)
    """

    total_elements: int  # 전체 항목 수 (Total item count)

    @property
    def total_pages(self) -> int:
        """전체 페이지 수 (Total pages, ceil(total_elements / size))."""
        return math.ceil(self.total_elements / self.size)

    @property
    def has_next(self) -> bool:
        return self.number + 1 < self.total_pages

    @property
    def is_last(self) -> bool:
        return not self.has_next

    def map(self, fn: Callable[[Any], Any]) -> "Page":
        """각 항목을 변환한 새 페이지 (New page with every item converted by fn)."""
        return Page(
            content=[fn(item) for item in self.content],
            number=self.number,
            size=self.size,
            total_elements=self.total_elements,
        )


def apply_sort(query: Select[Any], model: type[Any], sort: Sort | None) -> Select[Any]:
    """모델 속성 이름 기반 정렬을 쿼리에 적용합니다.

    Append ORDER BY clauses for each sort criterion, resolved against the
    model's mapped column attributes.

    Raises:
        QueryCreationError: 모델에 없는 속성 (Unknown property on the model)
    """
    if sort is None or not sort.is_sorted:
        return query
    columns = inspect(model).column_attrs
    for order in sort.orders:
        if order.property not in columns:
            raise QueryCreationError(f"No property '{order.property}' found for type {model.__name__}")
        column = getattr(model, order.property)
        query = query.order_by(column.desc() if order.direction is Direction.DESC else column.asc())
    return query


def _scalars(result: Result[Any]) -> list[Any]:
    return list(result.scalars().all())


async def paginate(
    db: AsyncSession,
    query: Select[Any],
    pageable: PageRequest,
    model: type[Any] | None = None,
    count_query: Select[Any] | None = None,
    shape: RowShaper = _scalars,
) -> Page:
    """SQLAlchemy 쿼리에 대한 페이지네이션을 수행합니다.

    Execute a paginated SQLAlchemy query, returning a Page.
    Runs two queries: one for the total count (via subquery, or the given
    count query) and one for the actual page of results with OFFSET/LIMIT.

    Args:
        db: 비동기 DB 세션 (Async database session)
        query: SQLAlchemy Select 쿼리 (Base query to paginate)
        pageable: 페이지 요청 (Page index, size and sort)
        model: 정렬 속성을 해석할 모델 (Model used to resolve sort properties)
        count_query: 별도 카운트 쿼리 (Optional explicit count query)
        shape: 결과 행 변환 함수 (Row shaper, scalars by default)

    Returns:
        Page: 현재 페이지 항목과 전체 개수 (Page items and total count)
    """
    # 전체 개수 조회 — 서브쿼리로 감싸서 COUNT 실행 (Count total via subquery)
    if count_query is None:
        count_query = select(func.count()).select_from(query.order_by(None).subquery())
    total: int = (await db.execute(count_query)).scalar() or 0

    # 페이지 항목 조회 — OFFSET/LIMIT 적용 (Fetch page items with offset/limit)
    if model is not None:
        query = apply_sort(query, model, pageable.sort)
    result = await db.execute(query.offset(pageable.offset).limit(pageable.size))
    items: Sequence[Any] = shape(result)

    return Page(content=list(items), number=pageable.page, size=pageable.size, total_elements=total)


async def slice_query(
    db: AsyncSession,
    query: Select[Any],
    pageable: PageRequest,
    model: type[Any] | None = None,
    shape: RowShaper = _scalars,
) -> Slice:
    """카운트 쿼리 없이 size + 1 행을 조회해 Slice를 만듭니다.

    Fetch size + 1 rows to decide whether a next page exists, without a
    count query.
    """
    if model is not None:
        query = apply_sort(query, model, pageable.sort)
    result = await db.execute(query.offset(pageable.offset).limit(pageable.size + 1))
    items = list(shape(result))
    return Slice(
        content=items[: pageable.size],
        number=pageable.page,
        size=pageable.size,
        has_next=len(items) > pageable.size,
    )
