"""개인화 규칙 조건 평가기

조건은 세 가지 형태로 작성할 수 있습니다.

1. 경로 매핑: {"user.age": ">=50", "progress.stage": ">=4"}
2. 중첩 매핑: {"user_attributes": {"age": ">=50"}, "progress": {"completion": "50%"}}
3. 표현식 문자열: "user.progress.stage >= 4 && user.progress.completion < 50%"

평가는 (조건, UserProfile, ProgramProgress)만의 순수 함수이며 예외를
던지지 않습니다. 잘못된 조건은 경고 로그를 남기고 False로 평가됩니다.
"""

import re
from typing import Any, Mapping, Optional

from careflow.core.logging import get_logger
from careflow.domains.recommendations.exceptions import RuleEvaluationError
from careflow.domains.recommendations.types import (
    ConditionClause,
    MatchMode,
    PersonalizationRule,
    ProgramProgress,
    RuleCondition,
    UserProfile,
)

logger = get_logger(__name__)

# 접두 연산자 (긴 것부터 매칭)
_PREFIX_OPERATORS = (">=", "<=", "!=", ">", "<", "==")

_EXPRESSION_CLAUSE = re.compile(
    r"^\s*([A-Za-z_][\w.]*)\s*(===|!==|==|!=|>=|<=|>|<)\s*(.+?)\s*$"
)
_OPERATOR_ALIASES = {"===": "==", "!==": "!="}

_ROOT_ALIASES = {"user_attributes": "user"}
_PATH_ALIASES = {
    "user.progress.stage": "progress.stage",
    "user.progress.completion": "progress.completion",
    "progress.current_stage": "progress.stage",
    "progress.completion_percentage": "progress.completion",
}


def parse_condition(condition: Any) -> RuleCondition:
    """조건을 RuleCondition으로 정규화

    Args:
        condition: RuleCondition, 표현식 문자열, 또는 매핑

    Returns:
        RuleCondition

    Raises:
        RuleEvaluationError: 해석할 수 없는 조건
    """
    if isinstance(condition, RuleCondition):
        return condition
    if isinstance(condition, str):
        return _parse_expression(condition)
    if isinstance(condition, Mapping):
        clauses = tuple(_parse_mapping(condition, prefix=""))
        return RuleCondition(clauses=clauses)
    raise RuleEvaluationError(
        f"unsupported condition type: {type(condition).__name__}"
    )


def _parse_expression(expression: str) -> RuleCondition:
    has_and = "&&" in expression
    has_or = "||" in expression
    if has_and and has_or:
        raise RuleEvaluationError("mixed '&&' and '||' are not supported")

    parts = re.split(r"&&|\|\|", expression)
    clauses = []
    for part in parts:
        match = _EXPRESSION_CLAUSE.match(part)
        if match is None:
            raise RuleEvaluationError(f"malformed clause: '{part.strip()}'")
        path, operator, value = match.groups()
        clauses.append(
            ConditionClause(
                path=_normalize_path(path),
                operator=_OPERATOR_ALIASES.get(operator, operator),
                value=_strip_value(value),
            )
        )

    # '&&'는 설정된 기본 결합 방식을 따름
    mode = MatchMode.ANY if has_or else None
    return RuleCondition(clauses=tuple(clauses), mode=mode)


def _parse_mapping(mapping: Mapping[str, Any], prefix: str):
    for key, value in mapping.items():
        key = _ROOT_ALIASES.get(key, key) if not prefix else key
        path = f"{prefix}.{key}" if prefix else key
        if isinstance(value, Mapping):
            yield from _parse_mapping(value, path)
            continue
        yield _parse_value(_normalize_path(path), value)


def _parse_value(path: str, value: Any) -> ConditionClause:
    if isinstance(value, bool) or not isinstance(value, (str, int, float)):
        raise RuleEvaluationError(
            f"unsupported value for '{path}': {value!r}"
        )
    if not isinstance(value, str):
        return ConditionClause(path=path, operator="==", value=str(value))

    raw = value.strip()
    for operator in _PREFIX_OPERATORS:
        if raw.startswith(operator):
            return ConditionClause(
                path=path,
                operator=operator,
                value=_strip_value(raw[len(operator):]),
            )

    # 기존 규칙 형식: completion "50%" 는 "50% 미만"을 의미
    if path == "progress.completion" and raw.endswith("%"):
        return ConditionClause(path=path, operator="<", value=raw[:-1])

    return ConditionClause(path=path, operator="==", value=_strip_value(raw))


def _normalize_path(path: str) -> str:
    path = path.strip()
    return _PATH_ALIASES.get(path, path)


def _strip_value(value: str) -> str:
    value = value.strip()
    if len(value) >= 2 and value[0] == value[-1] and value[0] in "'\"":
        value = value[1:-1]
    if value.endswith("%"):
        value = value[:-1].strip()
    return value


def _resolve(
    path: str, user_profile: UserProfile, progress: ProgramProgress
) -> Any:
    """속성 경로를 실제 값으로 변환"""
    resolvers = {
        "user.id": lambda: user_profile.id,
        "user.age": lambda: user_profile.age,
        "user.gender": lambda: user_profile.gender,
        "user.preferences": lambda: user_profile.preferences,
        "progress.stage": lambda: progress.current_stage,
        "progress.completion": lambda: progress.completion_percentage,
    }
    resolver = resolvers.get(path)
    if resolver is None:
        raise RuleEvaluationError(f"unsupported attribute path: '{path}'")
    return resolver()


def _evaluate_clause(
    clause: ConditionClause,
    user_profile: UserProfile,
    progress: ProgramProgress,
) -> bool:
    actual = _resolve(clause.path, user_profile, progress)
    if actual is None:
        # 값이 없는 속성은 일치하지 않음
        return False

    operator = clause.operator

    if isinstance(actual, frozenset):
        if operator not in ("==", "!="):
            raise RuleEvaluationError(
                f"operator '{operator}' not supported for '{clause.path}'"
            )
        members = {tag.lower() for tag in actual}
        contains = clause.value.lower() in members
        return contains if operator == "==" else not contains

    if isinstance(actual, (int, float)) and not isinstance(actual, bool):
        try:
            expected = float(clause.value)
        except ValueError as e:
            raise RuleEvaluationError(
                f"non-numeric value '{clause.value}' for '{clause.path}'"
            ) from e
        comparisons = {
            ">=": actual >= expected,
            "<=": actual <= expected,
            ">": actual > expected,
            "<": actual < expected,
            "==": actual == expected,
            "!=": actual != expected,
        }
        return comparisons[operator]

    if operator not in ("==", "!="):
        raise RuleEvaluationError(
            f"operator '{operator}' not supported for '{clause.path}'"
        )
    equal = str(actual).lower() == clause.value.lower()
    return equal if operator == "==" else not equal


def evaluate(
    condition: Any,
    user_profile: UserProfile,
    progress: ProgramProgress,
    mode: MatchMode = MatchMode.ANY,
    rule_id: Optional[str] = None,
) -> bool:
    """규칙 조건 평가

    Args:
        condition: 규칙 조건 (RuleCondition, 문자열, 매핑)
        user_profile: 사용자 프로필
        progress: 프로그램 진행 상황
        mode: 조건 절 결합 방식 (규칙에 mode가 있으면 그것이 우선)
        rule_id: 로그용 규칙 ID

    Returns:
        조건 만족 여부 (잘못된 조건은 False)
    """
    try:
        parsed = parse_condition(condition)
        if not parsed.clauses:
            raise RuleEvaluationError("condition has no clauses")

        effective_mode = parsed.mode or mode
        results = (
            _evaluate_clause(clause, user_profile, progress)
            for clause in parsed.clauses
        )
        # 제너레이터로 전달하여 첫 결정 시점에서 단락 평가
        if effective_mode == MatchMode.ALL:
            return all(results)
        return any(results)
    except RuleEvaluationError as e:
        logger.warning(
            f"Rule condition skipped (rule={rule_id}): {e.message}",
            extra={"error": e.to_dict()},
        )
        return False


def evaluate_rule(
    rule: PersonalizationRule,
    user_profile: UserProfile,
    progress: ProgramProgress,
    mode: MatchMode = MatchMode.ANY,
) -> bool:
    """규칙 단위 평가 (로그에 규칙 ID 포함)"""
    return evaluate(
        rule.condition, user_profile, progress, mode=mode, rule_id=rule.id
    )
