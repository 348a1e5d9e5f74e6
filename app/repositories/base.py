"""엔티티 공통 CRUD 레포지토리.

Shared CRUD repository for entities.
Provides generic save, find, count and delete operations, and resolves the
query methods declared on subclasses when the repository is instantiated.

Every operation takes the session as its first argument. The session is the
transaction-scoped unit of work: within one session, lookups of the same id
return the same instance.

Usage:
    class TeamRepository(BaseRepository[Team]):
        def __init__(self) -> None:
            super().__init__(Team)
"""

import inspect
from typing import Any, Generic, Iterable, Sequence, TypeVar

from sqlalchemy import Select, func, select
from sqlalchemy import inspect as sa_inspect
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import Base
from app.repositories.query_method import QueryMethod, ResolvedQuery
from app.utils.exceptions import translate_db_errors
from app.utils.logger import get_logger
from app.utils.pagination import Page, PageRequest, Sort, apply_sort, paginate

logger = get_logger(__name__)

# 레포지토리가 다루는 엔티티 타입 (Entity type handled by a repository)
ModelType = TypeVar("ModelType", bound=Base)


class BaseRepository(Generic[ModelType]):
    """엔티티 하나에 대한 CRUD 와 쿼리 메서드.

    CRUD operations and resolved query methods for one entity type.

    Attributes:
        model: SQLAlchemy 모델 클래스 (The SQLAlchemy model class)
        query_methods: 해석된 쿼리 메서드 (Resolved query methods by name)
    """

    def __init__(self, model: type[ModelType]) -> None:
        """레포지토리를 초기화하고 쿼리 메서드를 해석합니다.

        Initialize the repository with a model class and resolve every
        query method declared on the class. Misconfigured methods raise
        QueryCreationError here.

        Args:
            model: 이 레포지토리가 관리할 SQLAlchemy 모델 클래스
                   (SQLAlchemy model class this repository manages)
        """
        self.model: type[ModelType] = model
        self.query_methods: dict[str, ResolvedQuery] = {}
        for name in dir(type(self)):
            attr = inspect.getattr_static(type(self), name)
            if isinstance(attr, QueryMethod):
                self.query_methods[name] = attr.resolve(model)
        logger.debug("%s ready with %d query method(s)", type(self).__name__, len(self.query_methods))

    async def save(self, db: AsyncSession, entity: ModelType) -> ModelType:
        """엔티티를 저장합니다.

        Persist a new entity or merge a detached one.
        New entities are flushed immediately so the id is assigned.

        Args:
            db: 비동기 데이터베이스 세션 (Async database session)
            entity: 저장할 엔티티 (Entity to save)

        Returns:
            ModelType: 관리 상태의 엔티티 (The managed entity; a merged copy for detached input)
        """
        state = sa_inspect(entity)
        async with translate_db_errors():
            if state.transient or state.pending:
                db.add(entity)
                await db.flush()
                return entity
            if state.detached:
                return await db.merge(entity)
        return entity

    async def save_all(self, db: AsyncSession, entities: Iterable[ModelType]) -> list[ModelType]:
        """여러 엔티티를 저장합니다 (Save each entity in order)."""
        return [await self.save(db, entity) for entity in entities]

    async def find_by_id(self, db: AsyncSession, record_id: Any) -> ModelType | None:
        """ID 조회 — 세션에 이미 있으면 같은 인스턴스.

        Retrieve a single record by id. The identity map is consulted first,
        so an entity already loaded in this session is returned as-is.

        Args:
            db: 비동기 데이터베이스 세션 (Async database session)
            record_id: 조회할 레코드의 ID (Identifier of the record)

        Returns:
            ModelType | None: 조회된 레코드 또는 None (Found record or None)
        """
        async with translate_db_errors():
            return await db.get(self.model, record_id)

    async def exists_by_id(self, db: AsyncSession, record_id: Any) -> bool:
        """ID에 해당하는 레코드 존재 여부 (Whether a record with this id exists)."""
        return await self.find_by_id(db, record_id) is not None

    async def find_all(self, db: AsyncSession, sort: Sort | None = None) -> list[ModelType]:
        """모든 레코드를 조회합니다.

        Retrieve all records, optionally sorted.

        Args:
            db: 비동기 데이터베이스 세션 (Async database session)
            sort: 정렬 명세 (Optional sort specification)

        Returns:
            list[ModelType]: 조회된 레코드 목록 (List of records)
        """
        query: Select = apply_sort(select(self.model), self.model, sort)
        async with translate_db_errors():
            result = await db.execute(query)
        return list(result.scalars().all())

    async def find_all_paged(self, db: AsyncSession, pageable: PageRequest) -> Page:
        """페이지네이션이 적용된 전체 레코드 목록을 조회합니다.

        Retrieve one page of all records.

        Args:
            db: 비동기 데이터베이스 세션 (Async database session)
            pageable: 페이지 요청 (Page index, size and sort)

        Returns:
            Page: 현재 페이지와 전체 개수 (Current page and total count)
        """
        async with translate_db_errors():
            return await paginate(db, select(self.model), pageable, self.model)

    async def find_all_by_id(self, db: AsyncSession, record_ids: Sequence[Any]) -> list[ModelType]:
        """여러 ID로 레코드를 조회합니다 (Retrieve the records whose ids are given)."""
        primary_key = sa_inspect(self.model).primary_key[0]
        query: Select = select(self.model).where(primary_key.in_(list(record_ids)))
        async with translate_db_errors():
            result = await db.execute(query)
        return list(result.scalars().all())

    async def count(self, db: AsyncSession) -> int:
        """전체 레코드 수 (Total number of records)."""
        query: Select = select(func.count()).select_from(self.model)
        async with translate_db_errors():
            return (await db.execute(query)).scalar() or 0

    async def delete(self, db: AsyncSession, entity: ModelType) -> None:
        """엔티티를 삭제합니다.

        Delete an entity and flush. Associations are not cascaded:
        deleting a member leaves its team in place.

        Args:
            db: 비동기 데이터베이스 세션 (Async database session)
            entity: 삭제할 엔티티 (Entity to delete)
        """
        async with translate_db_errors():
            if sa_inspect(entity).detached:
                entity = await db.merge(entity)
            await db.delete(entity)
            await db.flush()

    async def delete_by_id(self, db: AsyncSession, record_id: Any) -> bool:
        """ID로 레코드를 삭제합니다.

        Delete a record by id.

        Returns:
            bool: 삭제 성공 여부 (False when no record has this id)
        """
        entity: ModelType | None = await self.find_by_id(db, record_id)
        if entity is None:
            return False
        await self.delete(db, entity)
        return True

    async def delete_all(self, db: AsyncSession) -> int:
        """모든 레코드를 하나씩 삭제합니다 (Delete every record one by one, honouring cascades)."""
        entities = await self.find_all(db)
        for entity in entities:
            await self.delete(db, entity)
        return len(entities)
