"""섹션별 최종 아이템 선택

정렬, 중복 제거, 섹션 상한, 호출자 옵션(exclude_completed)을 적용합니다.
"""

from typing import Mapping, Optional

from careflow.domains.recommendations.types import (
    RecommendationOptions,
    ScoredContentItem,
)


def _sort_key(scored: ScoredContentItem) -> tuple[int, int, float]:
    """우선순위 있는 아이템 먼저 (priority 오름차순, 점수 내림차순),
    그 다음 우선순위 없는 아이템 (점수 내림차순)"""
    if scored.item.priority is not None:
        return (0, scored.item.priority, -scored.score)
    return (1, 0, -scored.score)


def _deduplicate(
    scored_by_section: Mapping[str, list[ScoredContentItem]],
) -> dict[str, list[ScoredContentItem]]:
    """콘텐츠 ID 기준 중복 제거 (가장 높은 점수, 동점이면 먼저 나온 것)"""
    best: dict[str, tuple[str, int, float]] = {}
    for section, items in scored_by_section.items():
        for position, scored in enumerate(items):
            current = best.get(scored.item.id)
            if current is None or scored.score > current[2]:
                best[scored.item.id] = (section, position, scored.score)

    return {
        section: [
            scored
            for position, scored in enumerate(items)
            if best[scored.item.id][:2] == (section, position)
        ]
        for section, items in scored_by_section.items()
    }


def select(
    scored_by_section: Mapping[str, list[ScoredContentItem]],
    section_caps: Optional[Mapping[str, int]] = None,
    options: Optional[RecommendationOptions] = None,
    default_cap: Optional[int] = None,
) -> dict[str, list[ScoredContentItem]]:
    """섹션별 최종 아이템 선택

    Args:
        scored_by_section: 섹션별 스코어링 결과
        section_caps: 섹션별 상한 (options.section_caps보다 우선)
        options: 호출자 옵션
        default_cap: 상한이 지정되지 않은 섹션의 기본 상한 (None이면 무제한)

    Returns:
        섹션별 정렬된 최종 아이템
    """
    options = options or RecommendationOptions()
    caps = {**options.section_caps, **(section_caps or {})}

    selected: dict[str, list[ScoredContentItem]] = {}
    for section, items in _deduplicate(scored_by_section).items():
        if options.exclude_completed:
            items = [s for s in items if not s.item.is_completed]

        # 안정 정렬: 동점이면 원래 순서 유지
        ordered = sorted(items, key=_sort_key)

        cap = caps.get(section, default_cap)
        if cap is not None:
            ordered = ordered[:cap]

        selected[section] = ordered

    return selected
