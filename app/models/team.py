"""팀 SQLAlchemy ORM 모델 정의.

Team SQLAlchemy ORM model definition.

Tables:
    - team: 팀 (Teams; inverse side of the member-team association)
"""

from datetime import datetime, timezone
from typing import TYPE_CHECKING

from sqlalchemy import DateTime, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.database import Base

if TYPE_CHECKING:
    from app.models.member import Member


class Team(Base):
    """팀 모델 — 여러 회원이 소속될 수 있는 단위.

    Team model — A group that many members may belong to.
    The `members` collection is the inverse, non-owning side of the
    association: the foreign key lives on the member row, and deleting
    a team never deletes its members.

    Attributes:
        id: 고유 식별자 (Surrogate integer identifier, column team_id)
        name: 팀 이름 (Team name)
        created_at: 생성 일시 UTC (Creation timestamp)
        updated_at: 수정 일시 UTC (Last update timestamp)

    Relationships:
        members: 소속 회원 목록 (Members referencing this team, lazy)
    """

    __tablename__ = "team"

    # 이름 기반 조회용 네임드 쿼리 — Named queries keyed by "<Model>.<method>"
    __named_queries__ = {}

    # 팀 고유 식별자 — Team identifier (assigned on first flush)
    id: Mapped[int] = mapped_column("team_id", primary_key=True, autoincrement=True)
    # 팀 이름 — Team display name
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    # 생성 일시 — Record creation timestamp (UTC)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))
    # 수정 일시 — Last modification timestamp (UTC, auto-updated)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), onupdate=lambda: datetime.now(timezone.utc))

    # 관계 — 연관관계의 주인이 아님 (inverse side, no delete cascade)
    members: Mapped[list["Member"]] = relationship(back_populates="team")

    def __init__(self, name: str) -> None:
        self.name = name

    def __repr__(self) -> str:
        return f"Team(id={self.id}, name={self.name})"
