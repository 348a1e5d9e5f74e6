"""엔티티 모델 패키지.

Entity models. Importing the package registers both tables on Base.metadata,
which create_all, Alembic and the string relationship targets rely on.

Modules:
    team: 팀 (Team, inverse side of the association)
    member: 회원 (Member, owning side with a lazy team reference)
"""

from app.models.team import Team
from app.models.member import Member

__all__ = ["Team", "Member"]
