"""추천 엔진 타입 정의

추천 사이클 전체에서 사용하는 pydantic 모델입니다.

- UserProfile / ProgramProgress: 외부 서비스가 제공하는 불변 스냅샷
- ContentItem / Stage / Program: 콘텐츠 저장소가 제공하는 기본 콘텐츠
- ContentInteraction: 텔레메트리 (조회수, 체류 시간, 완료 여부)
- PersonalizationRule: 조건 + 조정(add/modify/prioritize)
- ScoredContentItem / ScoreBreakdown: 스코어링 결과
- PersonalizedContent / ContentSummary: 표시 계층에 노출되는 유일한 형태
- CacheEntry / CacheState: (user_id, program_id) 단위 캐시
"""

from datetime import datetime
from enum import Enum
from typing import Annotated, Any, Optional, Union

from pydantic import Field, field_validator, model_validator

from careflow.core.schemas import BaseSchema, FrozenSchema

CacheKey = tuple[int, str]


class SectionName(str, Enum):
    """Stage 내 섹션 이름"""

    RECOMMENDED = "recommended"
    WEEK_FOCUS = "weekFocus"
    QUICK_HELP = "quickHelp"
    COMING_UP = "comingUp"


# 추가 콘텐츠로만 생긴 섹션의 출력 순서
SECTION_ORDER: tuple[str, ...] = tuple(section.value for section in SectionName)


class ContentType(str, Enum):
    """콘텐츠 유형"""

    MEDICATION_GUIDE = "medication_guide"
    USAGE_GUIDE = "usage_guide"
    SIDE_EFFECT = "side_effect"
    CONDITION_INFO = "condition_info"
    QUICK_TIP = "quick_tip"


class MatchMode(str, Enum):
    """규칙 조건 절 결합 방식

    Attributes:
        ANY: 하나의 절만 만족해도 참 (기존 동작)
        ALL: 모든 절을 만족해야 참
    """

    ANY = "any"
    ALL = "all"


class CacheState(str, Enum):
    """캐시 엔트리 상태"""

    EMPTY = "empty"
    COMPUTING = "computing"
    FRESH = "fresh"
    STALE = "stale"


class UserProfile(FrozenSchema):
    """사용자 프로필 스냅샷"""

    id: int
    age: Optional[int] = None
    gender: Optional[str] = None
    preferences: frozenset[str] = frozenset()


class ProgramProgress(FrozenSchema):
    """프로그램 진행 상황 스냅샷"""

    user_id: int
    program_id: str
    current_stage: int = Field(default=1, ge=0)
    completion_percentage: float = Field(default=0.0, ge=0, le=100)


class ContentItem(BaseSchema):
    """콘텐츠 아이템

    Attributes:
        id: 프로그램 내 고유 ID
        priority: 낮을수록 중요 (None이면 우선순위 없음)
        body: 표시용 본문 (modify 조정으로 변형됨)
        relevance: 작성 시점의 정적 관련도 (0.0~1.0)
        stage_index: 아이템이 속한 Stage 순번
        resurfaced: 규칙에 의해 명시적으로 다시 노출된 아이템 여부
    """

    id: str
    title: str
    description: str = ""
    content_type: ContentType
    reading_time_minutes: Optional[int] = Field(default=None, ge=0)
    tags: frozenset[str] = frozenset()
    priority: Optional[int] = None
    is_completed: bool = False
    is_new: bool = False
    body: Optional[str] = None
    relevance: Optional[float] = Field(default=None, ge=0, le=1)
    stage_index: Optional[int] = None
    resurfaced: bool = False


ContentSet = dict[str, list[ContentItem]]


class Stage(BaseSchema):
    """프로그램의 한 단계 (주차/월차)"""

    index: int = Field(..., ge=0)
    title: str
    category: str = "general"
    sections: dict[str, list[ContentItem]] = Field(default_factory=dict)

    @model_validator(mode="after")
    def assign_stage_membership(self) -> "Stage":
        """소속 Stage가 비어 있는 아이템에 현재 Stage 순번 기록"""
        for name, items in self.sections.items():
            self.sections[name] = [
                item
                if item.stage_index is not None
                else item.model_copy(update={"stage_index": self.index})
                for item in items
            ]
        return self

    def content_set(self) -> ContentSet:
        """섹션별 아이템의 작업용 사본"""
        return {name: list(items) for name, items in self.sections.items()}

    def find(self, content_id: str) -> Optional["PlacedContentItem"]:
        """ID로 아이템과 소속 섹션 조회"""
        for name, items in self.sections.items():
            for item in items:
                if item.id == content_id:
                    return PlacedContentItem(section=name, item=item)
        return None


class Program(BaseSchema):
    """다단계 케어 프로그램"""

    key: str
    slug: str
    name: str
    category: str
    stages: list[Stage] = Field(default_factory=list)

    def get_stage(self, stage_index: int) -> Optional[Stage]:
        return next((s for s in self.stages if s.index == stage_index), None)


class PlacedContentItem(BaseSchema):
    """소속 섹션 정보가 포함된 콘텐츠 아이템"""

    section: str
    item: ContentItem


class ContentInteraction(BaseSchema):
    """사용자-콘텐츠 상호작용 텔레메트리"""

    user_id: int
    program_id: str
    content_id: str
    view_count: int = Field(default=0, ge=0)
    time_spent_seconds: float = Field(default=0.0, ge=0)
    completed: bool = False
    last_viewed_at: Optional[datetime] = None


class ConditionClause(FrozenSchema):
    """규칙 조건의 단일 절 (예: user.age >= 50)"""

    path: str
    operator: str = "=="
    value: str


class RuleCondition(FrozenSchema):
    """정규화된 규칙 조건

    Attributes:
        clauses: 조건 절 목록
        mode: 규칙별 결합 방식 (None이면 평가기 기본값 사용)
    """

    clauses: tuple[ConditionClause, ...]
    mode: Optional[MatchMode] = None


class RuleAdjustments(BaseSchema):
    """규칙이 일치했을 때 적용할 콘텐츠 조정"""

    add_content: list[str] = Field(default_factory=list)
    modify: dict[str, str] = Field(default_factory=dict)
    prioritize: list[str] = Field(default_factory=list)

    @field_validator("add_content", "prioritize")
    @classmethod
    def dedupe_preserving_order(cls, v: list[str]) -> list[str]:
        return list(dict.fromkeys(v))


class PersonalizationRule(BaseSchema):
    """개인화 규칙

    condition은 정규화된 RuleCondition, 표현식 문자열
    ("user.age >= 50"), 또는 경로 매핑({"user.age": ">=50"})을 허용합니다.
    해석은 평가 시점에 수행되므로 잘못된 조건은 평가 결과 False가 됩니다.
    """

    id: str
    condition: Union[RuleCondition, str, dict[str, Any]]
    adjustments: RuleAdjustments = Field(default_factory=RuleAdjustments)


class ScoreBreakdown(FrozenSchema):
    """6개 요소별 점수 (각 0.0~1.0)"""

    progress: float = Field(..., ge=0, le=1)
    preferences: float = Field(..., ge=0, le=1)
    time_spent: float = Field(..., ge=0, le=1)
    completion: float = Field(..., ge=0, le=1)
    recency: float = Field(..., ge=0, le=1)
    relevance: float = Field(..., ge=0, le=1)


class ScoredContentItem(BaseSchema):
    """점수가 매겨진 콘텐츠 아이템"""

    item: ContentItem
    section: str
    score: float = Field(..., ge=0, le=1)
    breakdown: ScoreBreakdown


class RecommendationOptions(BaseSchema):
    """호출자 옵션

    Attributes:
        force_refresh: 캐시 읽기를 건너뛰고 재계산
        exclude_completed: 완료된 아이템 제외
        section_caps: 섹션별 최대 아이템 수
    """

    force_refresh: bool = False
    exclude_completed: bool = False
    section_caps: dict[str, Annotated[int, Field(ge=0)]] = Field(
        default_factory=dict
    )


class ContentSummary(FrozenSchema):
    """표시용 콘텐츠 요약"""

    id: str
    title: str
    description: str
    content_type: ContentType
    reading_time_minutes: Optional[int] = None
    category: str
    is_completed: bool = False
    is_new: bool = False
    body: Optional[str] = None


class PersonalizedContent(FrozenSchema):
    """표시 계층으로 전달되는 개인화 콘텐츠

    점수 내역은 이 경계에서 노출하지 않습니다.
    """

    program_id: str
    stage_index: Optional[int] = None
    stage_title: str = ""
    sections: dict[str, list[ContentSummary]] = Field(default_factory=dict)
    is_fallback: bool = False


class CacheEntry(BaseSchema):
    """(user_id, program_id) 단위 캐시 엔트리

    Attributes:
        fingerprint: 계산에 사용된 옵션의 지문 (다르면 재계산)
        generation: 결과를 계산한 실행의 세대 번호
    """

    user_id: int
    program_id: str
    content: PersonalizedContent
    state: CacheState = CacheState.FRESH
    fingerprint: str
    generation: int = 0
    stored_at: datetime

    @property
    def key(self) -> CacheKey:
        return (self.user_id, self.program_id)
