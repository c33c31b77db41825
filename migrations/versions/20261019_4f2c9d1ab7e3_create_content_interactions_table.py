"""create_content_interactions_table

Revision ID: 4f2c9d1ab7e3
Revises:
Create Date: 2026-10-19 09:12:44.318205

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "4f2c9d1ab7e3"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """업그레이드 마이그레이션: content_interactions 테이블 생성"""
    op.create_table(
        "content_interactions",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("user_id", sa.Integer(), nullable=False, comment="사용자 ID"),
        sa.Column(
            "program_id",
            sa.String(length=100),
            nullable=False,
            comment="프로그램 ID",
        ),
        sa.Column(
            "content_id",
            sa.String(length=200),
            nullable=False,
            comment="콘텐츠 ID",
        ),
        sa.Column(
            "view_count",
            sa.Integer(),
            server_default="0",
            nullable=False,
            comment="조회수",
        ),
        sa.Column(
            "time_spent_seconds",
            sa.Float(),
            server_default="0",
            nullable=False,
            comment="누적 체류 시간 (초)",
        ),
        sa.Column(
            "completed",
            sa.Boolean(),
            server_default="false",
            nullable=False,
            comment="완료 여부",
        ),
        sa.Column(
            "completed_at",
            sa.DateTime(timezone=True),
            nullable=True,
            comment="완료 일시",
        ),
        sa.Column(
            "last_viewed_at",
            sa.DateTime(timezone=True),
            nullable=True,
            comment="마지막 조회 일시",
        ),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
            comment="생성 일시",
        ),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint(
            "user_id",
            "program_id",
            "content_id",
            name="uq_content_interaction",
        ),
    )
    op.create_index(
        "ix_content_interactions_user_program",
        "content_interactions",
        ["user_id", "program_id"],
        unique=False,
    )


def downgrade() -> None:
    """다운그레이드 마이그레이션: content_interactions 테이블 삭제"""
    op.drop_index(
        "ix_content_interactions_user_program",
        table_name="content_interactions",
    )
    op.drop_table("content_interactions")
