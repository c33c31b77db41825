"""추천 엔진이 의존하는 외부 협력자 인터페이스

엔진은 이 프로토콜만 알고 있으며, 구현체는 생성자 주입으로 전달됩니다.
테스트에서는 AsyncMock 등 테스트 더블로 대체할 수 있습니다.
"""

from typing import Mapping, Optional, Protocol, Sequence, runtime_checkable

from careflow.domains.recommendations.types import (
    CacheEntry,
    CacheKey,
    ContentInteraction,
    PersonalizationRule,
    PlacedContentItem,
    Program,
    ProgramProgress,
    Stage,
    UserProfile,
)


@runtime_checkable
class UserProfileService(Protocol):
    """사용자 프로필 서비스"""

    async def get_user_profile(self, user_id: int) -> UserProfile: ...


@runtime_checkable
class ProgramProgressService(Protocol):
    """프로그램 진행 상황 서비스"""

    async def get_program_progress(
        self, user_id: int, program_id: str
    ) -> ProgramProgress: ...


@runtime_checkable
class ContentInteractionService(Protocol):
    """콘텐츠 상호작용 텔레메트리 (읽기 + 완료 기록)"""

    async def get_content_interactions(
        self, user_id: int, program_id: str
    ) -> Mapping[str, ContentInteraction]: ...

    async def record_content_completion(
        self, user_id: int, program_id: str, content_id: str
    ) -> None: ...


@runtime_checkable
class ContentRepository(Protocol):
    """콘텐츠 저장소 (기본, 비개인화 콘텐츠)"""

    async def get_stage_content(
        self, program_id: str, stage_index: int
    ) -> Optional[Stage]: ...

    async def get_content_items(
        self, program_id: str, content_ids: Sequence[str]
    ) -> Mapping[str, PlacedContentItem]:
        """ID로 아이템과 소속 섹션 조회 (없는 ID는 결과에서 제외)"""
        ...


@runtime_checkable
class PersonalizationRuleRepository(Protocol):
    """개인화 규칙 저장소"""

    async def get_personalization_rules(
        self, program_id: str
    ) -> Sequence[PersonalizationRule]: ...


@runtime_checkable
class DefaultContentProvider(Protocol):
    """정적 기본 콘텐츠 제공자 (폴백 경로 전용)

    폴백은 실패해서는 안 되므로 동기 인터페이스입니다.
    """

    def get_program(self, program_id: str) -> Optional[Program]: ...

    def get_default_stage(
        self, program_id: str, stage_index: Optional[int] = None
    ) -> Optional[Stage]: ...


@runtime_checkable
class CacheStore(Protocol):
    """캐시 백엔드 (인메모리, 외부 캐시 등)

    엔트리는 원자적으로 교체되어야 합니다.
    """

    async def get(self, key: CacheKey) -> Optional[CacheEntry]: ...

    async def set(self, key: CacheKey, entry: CacheEntry) -> None: ...

    async def invalidate(self, key: CacheKey) -> None: ...

    async def delete(self, key: CacheKey) -> None: ...
