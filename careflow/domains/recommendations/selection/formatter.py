"""표시 계층용 포맷터

내부 랭킹 모델을 섹션 키 기반의 PersonalizedContent로 변환합니다.
"""

from typing import Mapping, Optional

from careflow.domains.recommendations.types import (
    SECTION_ORDER,
    ContentItem,
    ContentSummary,
    PersonalizedContent,
    ScoredContentItem,
    Stage,
)


def to_summary(item: ContentItem, category: str) -> ContentSummary:
    return ContentSummary(
        id=item.id,
        title=item.title,
        description=item.description,
        content_type=item.content_type,
        reading_time_minutes=item.reading_time_minutes,
        category=category,
        is_completed=item.is_completed,
        is_new=item.is_new,
        body=item.body,
    )


def _extra_section_order(name: str) -> tuple[int, str]:
    if name in SECTION_ORDER:
        return (SECTION_ORDER.index(name), name)
    return (len(SECTION_ORDER), name)


def format_content(
    program_id: str,
    stage: Stage,
    selected_by_section: Mapping[str, list[ScoredContentItem]],
) -> PersonalizedContent:
    """개인화 결과 포맷

    Stage에 정의된 섹션은 항상 포함되며, 개인화 결과가 비어 있으면
    해당 섹션의 기본 콘텐츠로 대체합니다. add_content로만 생긴 섹션은
    Stage 섹션 뒤에 표준 순서로 덧붙입니다.
    """
    sections: dict[str, list[ContentSummary]] = {}

    for name, base_items in stage.sections.items():
        chosen = [scored.item for scored in selected_by_section.get(name, [])]
        if not chosen:
            chosen = list(base_items)
        sections[name] = [to_summary(item, stage.category) for item in chosen]

    extras = sorted(
        (
            name
            for name, items in selected_by_section.items()
            if name not in stage.sections and items
        ),
        key=_extra_section_order,
    )
    for name in extras:
        sections[name] = [
            to_summary(scored.item, stage.category)
            for scored in selected_by_section[name]
        ]

    return PersonalizedContent(
        program_id=program_id,
        stage_index=stage.index,
        stage_title=stage.title,
        sections=sections,
    )


def format_default(
    program_id: str, stage: Optional[Stage]
) -> PersonalizedContent:
    """정적 기본 Stage 구조를 그대로 포맷 (폴백)"""
    if stage is None:
        return PersonalizedContent(program_id=program_id, is_fallback=True)

    return PersonalizedContent(
        program_id=program_id,
        stage_index=stage.index,
        stage_title=stage.title,
        sections={
            name: [to_summary(item, stage.category) for item in items]
            for name, items in stage.sections.items()
        },
        is_fallback=True,
    )
