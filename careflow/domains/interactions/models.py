"""Interactions 도메인 모델 정의"""

from datetime import datetime
from typing import Optional

from sqlalchemy import (
    Boolean,
    DateTime,
    Float,
    Index,
    Integer,
    String,
    UniqueConstraint,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column

from careflow.core.database import Base


class ContentInteractionRecord(Base):
    """사용자-콘텐츠 상호작용 텔레메트리

    (user_id, program_id, content_id) 조합당 한 행을 유지하며
    조회수와 체류 시간을 누적합니다.
    """

    __tablename__ = "content_interactions"

    id: Mapped[int] = mapped_column(
        Integer, primary_key=True, autoincrement=True
    )
    user_id: Mapped[int] = mapped_column(
        Integer, nullable=False, comment="사용자 ID"
    )
    program_id: Mapped[str] = mapped_column(
        String(100), nullable=False, comment="프로그램 ID"
    )
    content_id: Mapped[str] = mapped_column(
        String(200), nullable=False, comment="콘텐츠 ID"
    )
    view_count: Mapped[int] = mapped_column(
        Integer,
        default=0,
        server_default="0",
        nullable=False,
        comment="조회수",
    )
    time_spent_seconds: Mapped[float] = mapped_column(
        Float,
        default=0.0,
        server_default="0",
        nullable=False,
        comment="누적 체류 시간 (초)",
    )
    completed: Mapped[bool] = mapped_column(
        Boolean,
        default=False,
        server_default="false",
        nullable=False,
        comment="완료 여부",
    )
    completed_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True, comment="완료 일시"
    )
    last_viewed_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True, comment="마지막 조회 일시"
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
        comment="생성 일시",
    )

    __table_args__ = (
        UniqueConstraint(
            "user_id",
            "program_id",
            "content_id",
            name="uq_content_interaction",
        ),
        Index("ix_content_interactions_user_program", "user_id", "program_id"),
    )

    def __repr__(self) -> str:
        return (
            f"<ContentInteractionRecord(user_id={self.user_id}, "
            f"program_id={self.program_id}, content_id={self.content_id}, "
            f"views={self.view_count}, completed={self.completed})>"
        )
