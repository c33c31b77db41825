"""콘텐츠 스코어링 엔진

각 콘텐츠 아이템에 대해 다음 6개 요소를 0.0~1.0으로 정규화하여 계산합니다:
- progress (0.30): 현재 Stage/완료율 구간과의 적합도
- preferences (0.20): 아이템 태그와 사용자 선호 태그의 겹침
- time_spent (0.15): 같은 아이템/같은 태그 클러스터에 대한 과거 체류 시간
- completion (0.15): 아직 완료하지 않은 아이템일수록 높음
- recency (0.10): 신규/미조회 아이템 우대, 마지막 조회 이후 지수 감쇠
- relevance (0.10): 작성 시점의 정적 관련도 (없으면 0.5)

최종 점수:
final_score = Σ(weight × sub_score)

"현재 시각"은 ScoringContext.now로 명시적으로 전달되므로 동일 입력에 대해
결과가 항상 동일합니다.
"""

import math
from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum
from types import MappingProxyType
from typing import Mapping

import numpy as np

from careflow.core.config import Settings
from careflow.core.utils.datetime import elapsed_days
from careflow.domains.recommendations.types import (
    ContentInteraction,
    ContentItem,
    ContentSet,
    ProgramProgress,
    ScoreBreakdown,
    ScoredContentItem,
    UserProfile,
)


class ScoringFactor(str, Enum):
    """스코어링 요소"""

    PROGRESS = "progress"
    PREFERENCES = "preferences"
    TIME_SPENT = "time_spent"
    COMPLETION = "completion"
    RECENCY = "recency"
    RELEVANCE = "relevance"


# 고정 가중치 (합계 1.0)
SCORING_WEIGHTS: Mapping[ScoringFactor, float] = MappingProxyType(
    {
        ScoringFactor.PROGRESS: 0.30,
        ScoringFactor.PREFERENCES: 0.20,
        ScoringFactor.TIME_SPENT: 0.15,
        ScoringFactor.COMPLETION: 0.15,
        ScoringFactor.RECENCY: 0.10,
        ScoringFactor.RELEVANCE: 0.10,
    }
)

FACTOR_ORDER: tuple[ScoringFactor, ...] = tuple(ScoringFactor)
_WEIGHT_VECTOR = np.array([SCORING_WEIGHTS[f] for f in FACTOR_ORDER])

NEUTRAL_RELEVANCE = 0.5
COMPLETED_SCORE = 0.05
RESURFACED_COMPLETED_SCORE = 0.5
VIEWED_RECENCY_BASE = 0.8


@dataclass(frozen=True)
class ScoringContext:
    """스코어링 입력 중 아이템과 무관한 값

    Attributes:
        progress: 프로그램 진행 상황
        now: 기준 시각 (최근성 감쇠 계산용)
        tag_index: 콘텐츠 ID → 태그 (같은 태그 클러스터 체류 시간 계산용)
        time_spent_ceiling_seconds: 체류 시간 점수가 1.0이 되는 상한
        recency_decay_days: 최근성 지수 감쇠 시간 상수 (일)
        expected_completion_per_stage: Stage당 기대 완료율 (%)
    """

    progress: ProgramProgress
    now: datetime
    tag_index: Mapping[str, frozenset[str]] = field(default_factory=dict)
    time_spent_ceiling_seconds: int = 600
    recency_decay_days: float = 30.0
    expected_completion_per_stage: float = 20.0

    @classmethod
    def from_settings(
        cls, settings: Settings, progress: ProgramProgress, now: datetime
    ) -> "ScoringContext":
        return cls(
            progress=progress,
            now=now,
            time_spent_ceiling_seconds=settings.time_spent_ceiling_seconds,
            recency_decay_days=settings.recency_decay_days,
            expected_completion_per_stage=(
                settings.expected_completion_per_stage
            ),
        )


def _clamp(value: float) -> float:
    return min(max(value, 0.0), 1.0)


def _calculate_progress_score(
    item: ContentItem, context: ScoringContext
) -> float:
    """진행 상황 점수 계산

    현재 Stage 아이템이 가장 높고, 사용자가 Stage 기대 완료율보다
    뒤처져 있을수록 더 높아집니다. 이전 Stage는 보충 학습용으로 중간,
    이후 Stage는 거리에 따라 감소합니다.
    """
    if item.stage_index is None:
        return 0.5

    current = context.progress.current_stage
    expected = min(current * context.expected_completion_per_stage, 100.0)
    behind = 0.0
    if expected > 0:
        behind = _clamp(
            (expected - context.progress.completion_percentage) / expected
        )

    if item.stage_index == current:
        return _clamp(0.7 + 0.3 * behind)
    if item.stage_index < current:
        return _clamp(0.3 + 0.3 * behind)

    distance = item.stage_index - current
    return _clamp(0.4 - 0.15 * (distance - 1))


def _calculate_preference_score(
    item: ContentItem, user_profile: UserProfile
) -> float:
    """선호도 점수: |태그 ∩ 선호| / |태그|"""
    if not item.tags or not user_profile.preferences:
        return 0.0

    tags = {tag.lower() for tag in item.tags}
    preferences = {pref.lower() for pref in user_profile.preferences}
    return len(tags & preferences) / len(tags)


def _calculate_time_spent_score(
    item: ContentItem,
    interactions: Mapping[str, ContentInteraction],
    context: ScoringContext,
) -> float:
    """체류 시간 점수

    같은 아이템과 태그를 공유하는 아이템의 체류 시간 합계를 상한으로
    나누어 포화시킵니다.
    """
    if not interactions:
        return 0.0

    tags = {tag.lower() for tag in item.tags}
    total = 0.0
    # 합산 순서를 고정하여 부동소수점 결과 재현성 보장
    for content_id in sorted(interactions):
        interaction = interactions[content_id]
        if content_id == item.id:
            total += interaction.time_spent_seconds
            continue
        other_tags = context.tag_index.get(content_id, frozenset())
        if tags and tags & {tag.lower() for tag in other_tags}:
            total += interaction.time_spent_seconds

    return _clamp(total / context.time_spent_ceiling_seconds)


def _calculate_completion_score(item: ContentItem) -> float:
    if not item.is_completed:
        return 1.0
    if item.resurfaced:
        return RESURFACED_COMPLETED_SCORE
    return COMPLETED_SCORE


def _calculate_recency_score(
    item: ContentItem,
    interaction: ContentInteraction | None,
    context: ScoringContext,
) -> float:
    """최근성 점수

    신규 또는 미조회 아이템 = 1.0
    조회한 아이템 = 0.8 × exp(-경과일 / 감쇠 상수)
    """
    if item.is_new:
        return 1.0
    if interaction is None or interaction.last_viewed_at is None:
        return 1.0

    days = elapsed_days(interaction.last_viewed_at, context.now)
    return _clamp(
        VIEWED_RECENCY_BASE * math.exp(-days / context.recency_decay_days)
    )


def _calculate_relevance_score(item: ContentItem) -> float:
    if item.relevance is None:
        return NEUTRAL_RELEVANCE
    return _clamp(item.relevance)


def score(
    item: ContentItem,
    user_profile: UserProfile,
    interactions: Mapping[str, ContentInteraction],
    context: ScoringContext,
    section: str = "",
) -> ScoredContentItem:
    """콘텐츠 아이템 스코어링

    Args:
        item: 콘텐츠 아이템
        user_profile: 사용자 프로필
        interactions: 콘텐츠 ID → 상호작용
        context: 진행 상황, 기준 시각 등
        section: 아이템이 속한 섹션

    Returns:
        ScoredContentItem (완료 상호작용이 있으면 is_completed 반영)
    """
    interaction = interactions.get(item.id)
    completed_by_interaction = interaction is not None and interaction.completed
    if completed_by_interaction and not item.is_completed:
        item = item.model_copy(update={"is_completed": True})

    breakdown = ScoreBreakdown(
        progress=_calculate_progress_score(item, context),
        preferences=_calculate_preference_score(item, user_profile),
        time_spent=_calculate_time_spent_score(item, interactions, context),
        completion=_calculate_completion_score(item),
        recency=_calculate_recency_score(item, interaction, context),
        relevance=_calculate_relevance_score(item),
    )

    sub_scores = np.array(
        [getattr(breakdown, factor.value) for factor in FACTOR_ORDER]
    )
    final_score = _clamp(float(np.dot(_WEIGHT_VECTOR, sub_scores)))

    return ScoredContentItem(
        item=item,
        section=section,
        score=final_score,
        breakdown=breakdown,
    )


def score_content_set(
    content_set: ContentSet,
    user_profile: UserProfile,
    interactions: Mapping[str, ContentInteraction],
    context: ScoringContext,
) -> dict[str, list[ScoredContentItem]]:
    """섹션별 전체 아이템 스코어링 (섹션 내 순서 유지)"""
    if not context.tag_index:
        tag_index = {
            item.id: item.tags
            for items in content_set.values()
            for item in items
        }
        context = replace(context, tag_index=tag_index)

    return {
        section: [
            score(item, user_profile, interactions, context, section)
            for item in items
        ]
        for section, items in content_set.items()
    }
