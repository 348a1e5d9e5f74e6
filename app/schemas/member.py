"""회원 조회 전용 Pydantic 스키마.

Read-only member projection schemas.
DTOs are built from query rows only and are never persisted.
"""

from pydantic import BaseModel, ConfigDict


class MemberDto(BaseModel):
    """회원 + 팀 이름 프로젝션.

    Member projection carrying the team name. Query rows are mapped into it
    by column label (id, username, team_name).

    Attributes:
        id: 회원 ID (Member identifier)
        username: 회원 이름 (Username)
        team_name: 소속 팀 이름 (Team name, None when the member has no team)
    """

    model_config = ConfigDict(frozen=True)

    id: int  # 회원 ID (Member identifier)
    username: str  # 회원 이름 (Username)
    team_name: str | None = None  # 팀 이름 (Team name)
