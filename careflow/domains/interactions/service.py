"""Interactions 도메인 서비스

추천 엔진의 ContentInteractionService 프로토콜을 PostgreSQL 저장소로
구현합니다. 호출마다 별도 세션을 열어 트랜잭션 단위로 커밋합니다.
"""

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from careflow.core.database import async_session_maker
from careflow.core.logging import get_logger
from careflow.domains.interactions.models import ContentInteractionRecord
from careflow.domains.interactions.repository import (
    ContentInteractionRepository,
)
from careflow.domains.recommendations.types import ContentInteraction

logger = get_logger(__name__)


def to_interaction(record: ContentInteractionRecord) -> ContentInteraction:
    return ContentInteraction(
        user_id=record.user_id,
        program_id=record.program_id,
        content_id=record.content_id,
        view_count=record.view_count,
        time_spent_seconds=record.time_spent_seconds,
        completed=record.completed,
        last_viewed_at=record.last_viewed_at,
    )


class SqlContentInteractionService:
    """콘텐츠 상호작용 서비스 (PostgreSQL)"""

    def __init__(
        self,
        session_maker: async_sessionmaker[AsyncSession] = async_session_maker,
    ):
        self.session_maker = session_maker

    async def get_content_interactions(
        self, user_id: int, program_id: str
    ) -> dict[str, ContentInteraction]:
        """콘텐츠 ID별 상호작용 조회"""
        async with self.session_maker() as session:
            repository = ContentInteractionRepository(session)
            records = await repository.get_by_user_program(
                user_id, program_id
            )
        return {record.content_id: to_interaction(record) for record in records}

    async def record_content_completion(
        self, user_id: int, program_id: str, content_id: str
    ) -> None:
        """콘텐츠 완료 기록 (실패 시 롤백 후 예외 전달)"""
        async with self.session_maker() as session:
            repository = ContentInteractionRepository(session)
            try:
                await repository.upsert_completion(
                    user_id, program_id, content_id
                )
                await session.commit()
            except Exception:
                await session.rollback()
                raise

        logger.info(
            f"Content completion saved: user_id={user_id}, "
            f"program_id={program_id}, content_id={content_id}"
        )

    async def record_content_view(
        self,
        user_id: int,
        program_id: str,
        content_id: str,
        time_spent_seconds: float = 0.0,
    ) -> ContentInteraction:
        """콘텐츠 조회 기록"""
        async with self.session_maker() as session:
            repository = ContentInteractionRepository(session)
            try:
                record = await repository.record_view(
                    user_id, program_id, content_id, time_spent_seconds
                )
                await session.commit()
            except Exception:
                await session.rollback()
                raise
            return to_interaction(record)
