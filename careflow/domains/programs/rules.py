"""기본 개인화 규칙 저장소"""

from typing import Optional, Sequence

from careflow.domains.recommendations.types import (
    PersonalizationRule,
    RuleAdjustments,
)

DEFAULT_RULES: tuple[PersonalizationRule, ...] = (
    PersonalizationRule(
        id="age_based",
        condition="user.age >= 50",
        adjustments=RuleAdjustments(
            add_content=["metabolism-after-50", "joint-friendly-exercise"],
            prioritize=["gradual-weight-loss"],
        ),
    ),
    PersonalizationRule(
        id="gender_based",
        condition="user.gender === 'female'",
        adjustments=RuleAdjustments(
            add_content=[
                "womens-health-considerations",
                "menstrual-cycle-weight",
            ],
            modify={"exercise-recommendations": "female-focused-content"},
        ),
    ),
    PersonalizationRule(
        id="progress_based",
        condition=(
            "user.progress.stage >= 4 && user.progress.completion < 50%"
        ),
        adjustments=RuleAdjustments(
            add_content=["motivation-strategies", "overcoming-plateaus"],
            prioritize=["quick-wins"],
        ),
    ),
)


class StaticRuleRepository:
    """정적 규칙 저장소

    프로그램별 규칙이 지정되지 않은 프로그램은 기본 규칙을 사용합니다.
    """

    def __init__(
        self,
        rules: Optional[Sequence[PersonalizationRule]] = None,
        program_rules: Optional[
            dict[str, Sequence[PersonalizationRule]]
        ] = None,
    ):
        self._rules = tuple(DEFAULT_RULES if rules is None else rules)
        self._program_rules = dict(program_rules or {})

    async def get_personalization_rules(
        self, program_id: str
    ) -> list[PersonalizationRule]:
        return list(self._program_rules.get(program_id, self._rules))
