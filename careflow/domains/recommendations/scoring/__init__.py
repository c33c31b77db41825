"""콘텐츠 스코어링"""

from careflow.domains.recommendations.scoring.engine import (
    FACTOR_ORDER,
    SCORING_WEIGHTS,
    ScoringContext,
    ScoringFactor,
    score,
    score_content_set,
)

__all__ = [
    "FACTOR_ORDER",
    "SCORING_WEIGHTS",
    "ScoringContext",
    "ScoringFactor",
    "score",
    "score_content_set",
]
