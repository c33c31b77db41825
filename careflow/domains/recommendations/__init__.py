"""Recommendations 도메인 모듈

케어 프로그램 단계별 교육/안내 콘텐츠를 개인화하는 추천 엔진입니다.

구조:
    - types.py: 도메인 모델 (UserProfile, ContentItem, Stage 등)
    - interfaces.py: 외부 협력자 프로토콜
    - rules/: 조건 규칙 평가 및 콘텐츠 조정
    - scoring/: 6요소 가중 스코어링
    - selection/: 정렬, 중복 제거, 상한 적용 및 표시 포맷
    - cache.py: 키 단위 결과 캐시
    - service.py: 오케스트레이터 (캐시, 폴백, 완료 피드백)
    - exceptions.py: 도메인 예외
"""

from careflow.domains.recommendations.cache import (
    InMemoryCacheStore,
    options_fingerprint,
)
from careflow.domains.recommendations.exceptions import (
    CacheWriteError,
    CompletionWriteError,
    DataFetchError,
    RecommendationErrorCode,
    RuleEvaluationError,
)
from careflow.domains.recommendations.service import (
    ContentRecommendationService,
)
from careflow.domains.recommendations.types import (
    CacheState,
    ContentItem,
    ContentType,
    MatchMode,
    PersonalizationRule,
    PersonalizedContent,
    Program,
    ProgramProgress,
    RecommendationOptions,
    SectionName,
    Stage,
    UserProfile,
)

__all__ = [
    "ContentRecommendationService",
    "InMemoryCacheStore",
    "options_fingerprint",
    "CacheState",
    "ContentItem",
    "ContentType",
    "MatchMode",
    "PersonalizationRule",
    "PersonalizedContent",
    "Program",
    "ProgramProgress",
    "RecommendationOptions",
    "SectionName",
    "Stage",
    "UserProfile",
    "RecommendationErrorCode",
    "DataFetchError",
    "RuleEvaluationError",
    "CacheWriteError",
    "CompletionWriteError",
]
