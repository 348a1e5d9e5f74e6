"""팀 레포지토리 — 팀 조회 쿼리.

Team Repository — Query methods for teams.
"""

from sqlalchemy.ext.asyncio import AsyncSession

from app.models.team import Team
from app.repositories.base import BaseRepository
from app.repositories.query_method import entity_graph, query_method


class TeamRepository(BaseRepository[Team]):
    """팀 테이블에 대한 데이터베이스 쿼리를 담당하는 레포지토리.

    Repository handling database queries for the team table.
    """

    def __init__(self) -> None:
        super().__init__(Team)

    @query_method
    async def find_by_name(self, db: AsyncSession, name: str) -> Team | None: ...

    # 팀과 소속 회원을 한 번에 조회 — Team with its members in one query
    @entity_graph("members")
    @query_method
    async def find_with_members_by_name(self, db: AsyncSession, name: str) -> Team | None: ...


# 싱글턴 인스턴스 — Module-level singleton
team_repository: TeamRepository = TeamRepository()
