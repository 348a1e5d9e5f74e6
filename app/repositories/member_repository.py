"""회원 레포지토리 — 회원 조회/벌크 수정 쿼리 메서드.

Member Repository — Query methods for members.
Extends BaseRepository with derived, named and declared queries, paging,
bulk update, fetch joins, read-only hints and pessimistic locks.
"""

from collections.abc import Sequence

from sqlalchemy import Select, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import contains_eager

from app.models.member import Member
from app.models.team import Team
from app.repositories.base import BaseRepository
from app.repositories.query_method import (
    LockMode,
    entity_graph,
    lock,
    modifying,
    query,
    query_hints,
    query_method,
)
from app.schemas.member import MemberDto
from app.utils.exceptions import translate_db_errors
from app.utils.pagination import Page, PageRequest, Slice


class MemberRepository(BaseRepository[Member]):
    """회원 테이블에 대한 데이터베이스 쿼리를 담당하는 레포지토리.

    Repository handling database queries for the member table.
    """

    def __init__(self) -> None:
        """MemberRepository를 초기화합니다.

        Initialize the MemberRepository with the Member model.
        """
        super().__init__(Member)

    # -----------------------------------------------------------------------
    # 파생 쿼리 — Derived from the method name
    # -----------------------------------------------------------------------
    @query_method
    async def find_by_username_and_age_greater_than(
        self, db: AsyncSession, username: str, age: int
    ) -> list[Member]: ...

    @query_method
    async def find_top3_hello_by(self, db: AsyncSession) -> list[Member]: ...

    # Member.__named_queries__ 에 같은 이름의 네임드 쿼리가 있어 그것이 우선
    # The named query "Member.find_by_username" wins over the derived parse
    @query_method
    async def find_by_username(self, db: AsyncSession, username: str) -> list[Member]: ...

    # -----------------------------------------------------------------------
    # 선언 쿼리 — Declared statements
    # -----------------------------------------------------------------------
    @query(lambda username, age: select(Member).where(Member.username == username, Member.age == age))
    async def find_user(self, db: AsyncSession, username: str, age: int) -> list[Member]: ...

    @query(lambda: select(Member.username))
    async def find_username_list(self, db: AsyncSession) -> list[str]: ...

    @query(
        lambda: select(Member.id, Member.username, Team.name.label("team_name")).join(Member.team)
    )
    async def find_member_dto(self, db: AsyncSession) -> list[MemberDto]: ...

    @query(lambda names: select(Member).where(Member.username.in_(list(names))))
    async def find_by_names(self, db: AsyncSession, names: Sequence[str]) -> list[Member]: ...

    # -----------------------------------------------------------------------
    # 반환 타입 — Same predicate, three result shapes
    # -----------------------------------------------------------------------
    @query_method
    async def find_list_by_username(self, db: AsyncSession, username: str) -> list[Member]: ...

    @query_method
    async def find_member_by_username(self, db: AsyncSession, username: str) -> Member: ...

    @query_method
    async def find_optional_by_username(self, db: AsyncSession, username: str) -> Member | None: ...

    # -----------------------------------------------------------------------
    # 페이징 — Paging
    # -----------------------------------------------------------------------
    @query(
        lambda age: select(Member).where(Member.age == age),
        count_query=lambda age: select(func.count(Member.id)).where(Member.age == age),
    )
    async def find_by_age(self, db: AsyncSession, age: int, pageable: PageRequest) -> Page: ...

    @query_method
    async def find_slice_by_age(self, db: AsyncSession, age: int, pageable: PageRequest) -> Slice: ...

    # -----------------------------------------------------------------------
    # 벌크 수정 — Bulk update; cached entities stay stale until the session is cleared
    # -----------------------------------------------------------------------
    @modifying
    @query(lambda age: update(Member).where(Member.age >= age).values(age=Member.age + 1))
    async def bulk_age_plus(self, db: AsyncSession, age: int) -> int: ...

    # -----------------------------------------------------------------------
    # 페치 조인 / 엔티티 그래프 — Fetch joins
    # -----------------------------------------------------------------------
    @query(lambda: select(Member).join(Member.team).options(contains_eager(Member.team)))
    async def find_member_fetch_join(self, db: AsyncSession) -> list[Member]: ...

    @entity_graph("team")
    @query(lambda: select(Member))
    async def find_member_entity_graph(self, db: AsyncSession) -> list[Member]: ...

    @entity_graph("team")
    @query_method
    async def find_entity_graph_by_username(self, db: AsyncSession, username: str) -> list[Member]: ...

    # -----------------------------------------------------------------------
    # 힌트 / 락 — Hints and locks
    # -----------------------------------------------------------------------
    @query_hints(read_only=True)
    @query_method
    async def find_read_only_by_username(self, db: AsyncSession, username: str) -> Member | None: ...

    @lock(LockMode.PESSIMISTIC_WRITE)
    @query_method
    async def find_lock_by_username(self, db: AsyncSession, username: str) -> list[Member]: ...

    # -----------------------------------------------------------------------
    # 직접 구현 — Hand-written queries
    # -----------------------------------------------------------------------
    async def find_member_custom(self, db: AsyncSession) -> list[Member]:
        """팀이 있는 회원을 팀 이름, 회원 이름 순으로 조회합니다.

        Retrieve members that belong to a team, ordered by team name then username.

        Args:
            db: 비동기 데이터베이스 세션 (Async database session)

        Returns:
            list[Member]: 팀이 로드된 회원 목록 (Members with team loaded)
        """
        query_: Select = (
            select(Member)
            .join(Member.team)
            .options(contains_eager(Member.team))
            .order_by(Team.name, Member.username)
        )
        async with translate_db_errors():
            result = await db.execute(query_)
        return list(result.scalars().all())

    async def load_team(self, db: AsyncSession, member: Member) -> Team | None:
        """지연 로딩 연관관계를 명시적으로 조회합니다.

        Explicit secondary fetch of the lazy team association. Returns the
        cached team when it is already loaded.

        Args:
            db: 비동기 데이터베이스 세션 (Async database session)
            member: 회원 (Member whose team is wanted)

        Returns:
            Team | None: 소속 팀 또는 None (The member's team, or None)
        """
        async with translate_db_errors():
            if member not in db:
                member = await db.merge(member)
            return await member.awaitable_attrs.team


# 싱글턴 인스턴스 — Module-level singleton
member_repository: MemberRepository = MemberRepository()
