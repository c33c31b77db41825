"""콘텐츠 조정기

일치한 규칙의 조정(add_content, modify, prioritize)을 작업 콘텐츠 세트에
적용합니다. 입력 세트는 변경하지 않고 새 세트를 반환합니다.
"""

from typing import Iterable, Mapping, Optional

from careflow.core.logging import get_logger
from careflow.domains.recommendations.types import (
    ContentItem,
    ContentSet,
    PersonalizationRule,
    PlacedContentItem,
    RuleAdjustments,
)

logger = get_logger(__name__)

VARIANT_BODY_TEMPLATE = "<p>{variant} specific content for {title}</p>"


def apply(
    content_set: ContentSet,
    adjustments: RuleAdjustments,
    catalog: Optional[Mapping[str, PlacedContentItem]] = None,
) -> ContentSet:
    """단일 규칙의 조정 적용

    순서: add_content → modify → prioritize
    (같은 규칙에서 추가한 아이템도 변형/우선순위 대상이 됨)

    Args:
        content_set: 섹션별 작업 콘텐츠
        adjustments: 규칙 조정
        catalog: add_content 대상 ID를 미리 조회한 결과

    Returns:
        조정이 적용된 새 콘텐츠 세트
    """
    working = {section: list(items) for section, items in content_set.items()}

    _add_content(working, adjustments.add_content, catalog or {})
    _modify(working, adjustments.modify)
    _prioritize(working, adjustments.prioritize)

    return working


def apply_rules(
    content_set: ContentSet,
    rules: Iterable[PersonalizationRule],
    catalog: Optional[Mapping[str, PlacedContentItem]] = None,
) -> ContentSet:
    """일치한 규칙들을 목록 순서대로 누적 적용"""
    working = content_set
    for rule in rules:
        working = apply(working, rule.adjustments, catalog)
        logger.debug(f"Applied adjustments of rule '{rule.id}'")
    return working


def collect_additions(
    content_set: ContentSet, rules: Iterable[PersonalizationRule]
) -> list[str]:
    """작업 세트에 없는 add_content ID 목록 (규칙 순서, 중복 제거)"""
    present = content_ids(content_set)
    missing: dict[str, None] = {}
    for rule in rules:
        for content_id in rule.adjustments.add_content:
            if content_id not in present:
                missing[content_id] = None
    return list(missing)


def content_ids(content_set: ContentSet) -> set[str]:
    return {item.id for items in content_set.values() for item in items}


def _add_content(
    working: ContentSet,
    content_ids_to_add: list[str],
    catalog: Mapping[str, PlacedContentItem],
) -> None:
    present = content_ids(working)
    for content_id in content_ids_to_add:
        if content_id in present:
            continue
        placed = catalog.get(content_id)
        if placed is None:
            # 저장소에 없는 ID는 조용히 제외
            continue
        working.setdefault(placed.section, []).append(placed.item)
        present.add(content_id)


def _modify(working: ContentSet, modifications: Mapping[str, str]) -> None:
    if not modifications:
        return
    for section, items in working.items():
        working[section] = [
            _apply_variant(item, modifications[item.id])
            if item.id in modifications
            else item
            for item in items
        ]


def _apply_variant(item: ContentItem, variant: str) -> ContentItem:
    body = VARIANT_BODY_TEMPLATE.format(variant=variant, title=item.title)
    return item.model_copy(update={"body": body})


def _prioritize(working: ContentSet, prioritized_ids: list[str]) -> None:
    if not prioritized_ids:
        return

    for section, items in working.items():
        section_ids = {item.id for item in items}
        targets = [cid for cid in prioritized_ids if cid in section_ids]
        if not targets:
            continue

        # 섹션 최소 우선순위보다 엄격히 작게 배정, 목록 순서 유지
        priorities = [i.priority for i in items if i.priority is not None]
        floor = min(priorities) if priorities else 0
        assigned = {
            cid: floor - len(targets) + offset
            for offset, cid in enumerate(targets)
        }
        working[section] = [
            item.model_copy(
                update={"priority": assigned[item.id], "resurfaced": True}
            )
            if item.id in assigned
            else item
            for item in items
        ]
