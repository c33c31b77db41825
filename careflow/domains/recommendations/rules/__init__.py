"""규칙 평가 및 콘텐츠 조정"""

from careflow.domains.recommendations.rules.adjuster import (
    VARIANT_BODY_TEMPLATE,
    apply,
    apply_rules,
    collect_additions,
)
from careflow.domains.recommendations.rules.evaluator import (
    evaluate,
    evaluate_rule,
    parse_condition,
)

__all__ = [
    "VARIANT_BODY_TEMPLATE",
    "apply",
    "apply_rules",
    "collect_additions",
    "evaluate",
    "evaluate_rule",
    "parse_condition",
]
