"""create_team_and_member

Revision ID: 5e1f0c2a7b3d
Revises:
Create Date: 2026-10-19 10:00:00.000000

팀/회원 테이블 생성: team, member.
Create the team and member tables with the member -> team foreign key.
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '5e1f0c2a7b3d'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # team — 팀 (inverse side of the association)
    op.create_table(
        'team',
        sa.Column('team_id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
    )

    # member — 회원 (owning side; team_id nullable, no cascade)
    op.create_table(
        'member',
        sa.Column('member_id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('username', sa.String(255), nullable=False),
        sa.Column('age', sa.Integer(), nullable=False, server_default=sa.text('0')),
        sa.Column('team_id', sa.Integer(), sa.ForeignKey('team.team_id'), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
    )

    # 회원 인덱스 — Username lookups and the team foreign key
    op.create_index('ix_member_username', 'member', ['username'])
    op.create_index('ix_member_team', 'member', ['team_id'])


def downgrade() -> None:
    op.drop_index('ix_member_team', table_name='member')
    op.drop_index('ix_member_username', table_name='member')
    op.drop_table('member')
    op.drop_table('team')
