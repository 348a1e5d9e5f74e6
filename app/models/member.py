"""회원 SQLAlchemy ORM 모델 정의.

Member SQLAlchemy ORM model definition.

Tables:
    - member: 회원 (Members; owning side of the member-team association)
"""

from datetime import datetime, timezone

from sqlalchemy import DateTime, ForeignKey, Integer, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.database import Base
from app.models.team import Team


class Member(Base):
    """회원 모델 — 최대 하나의 팀에 소속.

    Member model — References at most one Team (many-to-one, lazy).
    The id is assigned once, when the member is first flushed, and never
    changes afterwards.

    Attributes:
        id: 고유 식별자 (Surrogate integer identifier, column member_id)
        username: 회원 이름 (Username)
        age: 나이 (Age, default 0)
        team_id: 소속 팀 FK (Owning team foreign key, nullable)
        created_at: 생성 일시 UTC (Creation timestamp)
        updated_at: 수정 일시 UTC (Last update timestamp)

    Relationships:
        team: 소속 팀 (Owning team, loaded lazily)
    """

    __tablename__ = "member"

    # 이름 기반 조회용 네임드 쿼리 — Named queries keyed by "<Model>.<method>"
    __named_queries__ = {
        "Member.find_by_username": "SELECT * FROM member WHERE username = :username",
    }

    # 회원 고유 식별자 — Member identifier (assigned on first flush)
    id: Mapped[int] = mapped_column("member_id", primary_key=True, autoincrement=True)
    # 회원 이름 — Username
    username: Mapped[str] = mapped_column(String(255), nullable=False)
    # 나이 — Age in years
    age: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    # 소속 팀 FK — 팀 삭제 시 회원은 유지 (Team deletion never removes members)
    team_id: Mapped[int | None] = mapped_column(ForeignKey("team.team_id"), nullable=True)
    # 생성 일시 — Record creation timestamp (UTC)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))
    # 수정 일시 — Last modification timestamp (UTC, auto-updated)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), onupdate=lambda: datetime.now(timezone.utc))

    # 관계 — 연관관계의 주인 (owning side)
    team: Mapped[Team | None] = relationship(back_populates="members")

    def __init__(self, username: str, age: int = 0, team: Team | None = None) -> None:
        self.username = username
        self.age = age
        if team is not None:
            self.change_team(team)

    def change_team(self, team: Team) -> None:
        """팀을 변경합니다.

        Move the member to another team. The backref registers the member in
        `team.members` without loading that collection.
        """
        self.team = team

    def __repr__(self) -> str:
        return f"Member(id={self.id}, username={self.username}, age={self.age})"
