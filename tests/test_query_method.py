"""쿼리 메서드 해석/실행 테스트.

Query method tests — resolution strategy, startup validation, derived
count/exists/delete, dynamic sort, SQL text queries and lock clauses.
"""

import pytest
from sqlalchemy import select
from sqlalchemy.dialects import postgresql
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.member import Member
from app.models.team import Team
from app.repositories.base import BaseRepository
from app.repositories.member_repository import member_repository
from app.repositories.query_method import (
    LockMode,
    QueryStrategy,
    ReturnShape,
    entity_graph,
    lock,
    modifying,
    query,
    query_method,
)
from app.repositories.team_repository import team_repository
from app.utils.exceptions import QueryCreationError
from app.utils.pagination import Direction, Page, Sort


class AdultRepository(BaseRepository[Member]):
    """테스트용 회원 레포지토리."""

    def __init__(self) -> None:
        super().__init__(Member)

    # 이름은 '>' 이지만 선언 쿼리의 '>=' 가 우선
    @query(lambda age: select(Member).where(Member.age >= age))
    async def find_by_age_greater_than(self, db: AsyncSession, age: int) -> list[Member]: ...

    @query_method
    async def count_by_age_greater_than_equal(self, db: AsyncSession, age: int) -> int: ...

    @query_method
    async def exists_by_username(self, db: AsyncSession, username: str) -> bool: ...

    @query_method
    async def delete_by_age_less_than(self, db: AsyncSession, age: int) -> int: ...

    @query_method
    async def find_by_team_name(self, db: AsyncSession, name: str) -> list[Member]: ...

    @query_method
    async def find_by_age_between(self, db: AsyncSession, low: int, high: int, sort: Sort) -> list[Member]: ...

    @query("SELECT * FROM member WHERE username IN :names")
    async def find_by_names_sql(self, db: AsyncSession, names: list[str]) -> list[Member]: ...

    @modifying(flush_automatically=True, clear_automatically=True)
    @query("UPDATE member SET age = age * 2 WHERE username = :username")
    async def double_age(self, db: AsyncSession, username: str) -> int: ...

    @lock(LockMode.PESSIMISTIC_READ, nowait=True)
    @query_method
    async def find_shared_by_username(self, db: AsyncSession, username: str) -> list[Member]: ...


adult_repository = AdultRepository()


async def _save_members(db: AsyncSession, *pairs: tuple[str, int]) -> list[Member]:
    return [await adult_repository.save(db, Member(name, age)) for name, age in pairs]


class TestResolution:
    """해석 전략 테스트."""

    def test_strategies(self):
        methods = member_repository.query_methods
        assert methods["find_by_username"].strategy is QueryStrategy.NAMED
        assert methods["find_user"].strategy is QueryStrategy.DECLARED
        assert methods["find_by_username_and_age_greater_than"].strategy is QueryStrategy.DERIVED

    def test_return_shapes(self):
        methods = member_repository.query_methods
        assert methods["find_list_by_username"].shape is ReturnShape.LIST
        assert methods["find_member_by_username"].shape is ReturnShape.SINGLE
        assert methods["find_optional_by_username"].shape is ReturnShape.SINGLE
        assert methods["find_by_age"].shape is ReturnShape.PAGE
        assert methods["find_slice_by_age"].shape is ReturnShape.SLICE
        assert methods["bulk_age_plus"].shape is ReturnShape.COUNT

    async def test_declared_beats_derived(self, db: AsyncSession):
        await _save_members(db, ("m10", 10), ("m20", 20), ("m30", 30))

        result = await adult_repository.find_by_age_greater_than(db, 20)
        assert sorted(m.username for m in result) == ["m20", "m30"]
        assert adult_repository.query_methods["find_by_age_greater_than"].strategy is QueryStrategy.DECLARED


class TestStartupValidation:
    """레포지토리 생성 시점의 설정 오류."""

    def test_unknown_property(self):
        class Broken(BaseRepository[Member]):
            @query_method
            async def find_by_nickname(self, db: AsyncSession, nickname: str) -> list[Member]: ...

        with pytest.raises(QueryCreationError, match="nickname"):
            Broken(Member)

    def test_argument_count_mismatch(self):
        class Broken(BaseRepository[Member]):
            @query_method
            async def find_by_age_between(self, db: AsyncSession, age: int) -> list[Member]: ...

        with pytest.raises(QueryCreationError, match="expects 2"):
            Broken(Member)

    def test_modifying_needs_declared_query(self):
        class Broken(BaseRepository[Member]):
            @modifying
            @query_method
            async def delete_by_username(self, db: AsyncSession, username: str) -> int: ...

        with pytest.raises(QueryCreationError):
            Broken(Member)

    def test_page_needs_page_request(self):
        class Broken(BaseRepository[Member]):
            @query_method
            async def find_page_by_age(self, db: AsyncSession, age: int) -> Page: ...

        with pytest.raises(QueryCreationError, match="PageRequest"):
            Broken(Member)

    def test_session_parameter_required(self):
        class Broken(BaseRepository[Member]):
            @query_method
            async def find_by_age(self, session: AsyncSession, age: int) -> list[Member]: ...

        with pytest.raises(QueryCreationError):
            Broken(Member)

    def test_unknown_entity_graph_path(self):
        class Broken(BaseRepository[Team]):
            @entity_graph("sponsors")
            @query_method
            async def find_by_name(self, db: AsyncSession, name: str) -> list[Team]: ...

        with pytest.raises(QueryCreationError, match="sponsors"):
            Broken(Team)

    def test_sync_stub_rejected(self):
        def find_by_username(self, db, username):
            return None

        with pytest.raises(QueryCreationError, match="async def"):
            query_method(find_by_username)


class TestDerivedKinds:
    """count / exists / delete / traversal."""

    async def test_count_and_exists(self, db: AsyncSession):
        await _save_members(db, ("m10", 10), ("m20", 20), ("m30", 30))

        assert await adult_repository.count_by_age_greater_than_equal(db, 20) == 2
        assert await adult_repository.count_by_age_greater_than_equal(db, 99) == 0
        assert await adult_repository.exists_by_username(db, "m10") is True
        assert await adult_repository.exists_by_username(db, "nobody") is False

    async def test_delete_by(self, db: AsyncSession):
        await _save_members(db, ("m10", 10), ("m20", 20), ("m30", 30))

        assert await adult_repository.delete_by_age_less_than(db, 25) == 2
        assert [m.username for m in await adult_repository.find_all(db)] == ["m30"]

    async def test_relationship_traversal(self, db: AsyncSession):
        team_a = await team_repository.save(db, Team("teamA"))
        team_b = await team_repository.save(db, Team("teamB"))
        await adult_repository.save(db, Member("member1", 10, team_a))
        await adult_repository.save(db, Member("member2", 20, team_b))

        result = await adult_repository.find_by_team_name(db, "teamA")
        assert [m.username for m in result] == ["member1"]


class TestDynamicSortAndText:
    """정렬 파라미터, SQL 문자열 쿼리."""

    async def test_sort_parameter(self, db: AsyncSession):
        await _save_members(db, ("m10", 10), ("m20", 20), ("m30", 30), ("m40", 40))

        result = await adult_repository.find_by_age_between(
            db, 10, 30, Sort.by("age", direction=Direction.DESC)
        )
        assert [m.age for m in result] == [30, 20, 10]

    async def test_unknown_sort_property(self, db: AsyncSession):
        with pytest.raises(QueryCreationError, match="nickname"):
            await adult_repository.find_by_age_between(db, 10, 30, Sort.by("nickname"))

    async def test_text_query_with_collection(self, db: AsyncSession):
        member1, member2, _ = await _save_members(db, ("member1", 10), ("member2", 20), ("member3", 30))

        result = await adult_repository.find_by_names_sql(db, ["member1", "member2"])
        assert {id(m) for m in result} == {id(member1), id(member2)}

    async def test_modifying_text_query_clears_session(self, db: AsyncSession):
        member = (await _save_members(db, ("member1", 10)))[0]
        member.age = 15

        assert await adult_repository.double_age(db, "member1") == 1
        assert member not in db

        fresh = await adult_repository.find_by_id(db, member.id)
        assert fresh is not member
        assert fresh.age == 30


class TestLockClauses:
    """락 절 컴파일 검증."""

    def test_pessimistic_read_nowait(self):
        resolved = adult_repository.query_methods["find_shared_by_username"]
        sql = str(resolved.build_statement({"username": "member1"}).compile(dialect=postgresql.dialect()))
        assert "FOR SHARE NOWAIT" in sql

    async def test_lock_query_runs(self, db: AsyncSession):
        await _save_members(db, ("member1", 10))

        result = await adult_repository.find_shared_by_username(db, "member1")
        assert [m.username for m in result] == ["member1"]
