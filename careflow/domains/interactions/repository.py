"""Interactions 도메인 리포지토리"""

from typing import Sequence, cast

from sqlalchemy import func, select
from sqlalchemy.dialects.postgresql import insert
from sqlalchemy.ext.asyncio import AsyncSession

from careflow.core.logging import get_logger
from careflow.core.utils.datetime import now_utc
from careflow.domains.interactions.models import ContentInteractionRecord

logger = get_logger(__name__)


class ContentInteractionRepository:
    """콘텐츠 상호작용 리포지토리"""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_by_user_program(
        self, user_id: int, program_id: str
    ) -> Sequence[ContentInteractionRecord]:
        """사용자의 프로그램 내 상호작용 전체 조회"""
        query = (
            select(ContentInteractionRecord)
            .where(
                ContentInteractionRecord.user_id == user_id,
                ContentInteractionRecord.program_id == program_id,
            )
            .order_by(ContentInteractionRecord.content_id)
        )
        result = await self.session.execute(query)
        return result.scalars().all()

    async def upsert_completion(
        self, user_id: int, program_id: str, content_id: str
    ) -> ContentInteractionRecord:
        """콘텐츠 완료 기록

        ON CONFLICT DO UPDATE로 원자적으로 처리하며, 이미 완료된
        콘텐츠는 최초 완료 일시를 유지합니다.

        Args:
            user_id: 사용자 ID
            program_id: 프로그램 ID
            content_id: 콘텐츠 ID

        Returns:
            ContentInteractionRecord 객체
        """
        completed_at = now_utc()
        stmt = insert(ContentInteractionRecord).values(
            user_id=user_id,
            program_id=program_id,
            content_id=content_id,
            view_count=0,
            time_spent_seconds=0.0,
            completed=True,
            completed_at=completed_at,
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=["user_id", "program_id", "content_id"],
            set_={
                "completed": True,
                "completed_at": func.coalesce(
                    ContentInteractionRecord.completed_at, completed_at
                ),
            },
        )

        await self.session.execute(stmt)
        await self.session.flush()

        record = await self._get_one(user_id, program_id, content_id)
        logger.debug(
            f"Recorded completion: user_id={user_id}, "
            f"program_id={program_id}, content_id={content_id}"
        )
        return record

    async def record_view(
        self,
        user_id: int,
        program_id: str,
        content_id: str,
        time_spent_seconds: float = 0.0,
    ) -> ContentInteractionRecord:
        """콘텐츠 조회 기록 (조회수 +1, 체류 시간 누적)"""
        viewed_at = now_utc()
        stmt = insert(ContentInteractionRecord).values(
            user_id=user_id,
            program_id=program_id,
            content_id=content_id,
            view_count=1,
            time_spent_seconds=time_spent_seconds,
            completed=False,
            last_viewed_at=viewed_at,
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=["user_id", "program_id", "content_id"],
            set_={
                "view_count": ContentInteractionRecord.view_count + 1,
                "time_spent_seconds": (
                    ContentInteractionRecord.time_spent_seconds
                    + time_spent_seconds
                ),
                "last_viewed_at": viewed_at,
            },
        )

        await self.session.execute(stmt)
        await self.session.flush()

        return await self._get_one(user_id, program_id, content_id)

    async def _get_one(
        self, user_id: int, program_id: str, content_id: str
    ) -> ContentInteractionRecord:
        query = select(ContentInteractionRecord).where(
            ContentInteractionRecord.user_id == user_id,
            ContentInteractionRecord.program_id == program_id,
            ContentInteractionRecord.content_id == content_id,
        )
        result = await self.session.execute(query)
        record = cast(ContentInteractionRecord, result.scalar_one())
        await self.session.refresh(record)
        return record
