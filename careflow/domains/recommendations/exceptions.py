"""Recommendations 도메인 예외 정의

읽기 경로(get_personalized_content)에서 발생하는 예외는 모두 서비스 내부에서
복구됩니다. 호출자에게 전달되는 예외는 CompletionWriteError 뿐입니다.
"""

from enum import Enum

from careflow.core.exceptions import (
    BadRequestException,
    ServiceUnavailableException,
    StorageException,
)


class RecommendationErrorCode(str, Enum):
    """추천 도메인 에러 코드"""

    DATA_FETCH_FAILED = "DATA_FETCH_FAILED"
    RULE_EVALUATION_FAILED = "RULE_EVALUATION_FAILED"
    CACHE_WRITE_FAILED = "CACHE_WRITE_FAILED"
    COMPLETION_WRITE_FAILED = "COMPLETION_WRITE_FAILED"


class DataFetchError(ServiceUnavailableException):
    """외부 협력자 조회 실패

    폴백(정적 기본 콘텐츠) 경로를 트리거합니다.
    """

    def __init__(self, collaborator: str, original_error: str):
        self.collaborator = collaborator
        super().__init__(
            message=f"'{collaborator}' 조회에 실패했습니다.",
            error_code=RecommendationErrorCode.DATA_FETCH_FAILED,
            detail={"collaborator": collaborator, "error": original_error},
        )


class RuleEvaluationError(BadRequestException):
    """잘못된 규칙 조건

    해당 규칙만 건너뛰고 나머지 규칙은 계속 적용합니다.
    """

    def __init__(self, reason: str, rule_id: str | None = None):
        self.rule_id = rule_id
        detail = {"reason": reason}
        if rule_id:
            detail["rule_id"] = rule_id
        super().__init__(
            message=f"규칙 조건을 평가할 수 없습니다: {reason}",
            error_code=RecommendationErrorCode.RULE_EVALUATION_FAILED,
            detail=detail,
        )


class CacheWriteError(StorageException):
    """캐시 저장 실패

    계산된 결과는 캐시되지 않은 채로 호출자에게 반환됩니다.
    """

    def __init__(self, user_id: int, program_id: str, original_error: str):
        super().__init__(
            message="추천 결과를 캐시에 저장하지 못했습니다.",
            error_code=RecommendationErrorCode.CACHE_WRITE_FAILED,
            detail={
                "user_id": user_id,
                "program_id": program_id,
                "error": original_error,
            },
        )


class CompletionWriteError(ServiceUnavailableException):
    """콘텐츠 완료 기록 실패

    완료 기록 누락은 이후 스코어링을 오염시키므로 호출자에게 전달합니다.
    """

    def __init__(self, content_id: str, original_error: str):
        self.content_id = content_id
        super().__init__(
            message="콘텐츠 완료 상태를 기록하지 못했습니다.",
            error_code=RecommendationErrorCode.COMPLETION_WRITE_FAILED,
            detail={"content_id": content_id, "error": original_error},
        )
