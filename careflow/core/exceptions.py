from enum import Enum
from typing import Any, Dict, Optional


class ErrorCode(str, Enum):
    """전역 에러 코드"""

    # 공통 에러
    INTERNAL_ERROR = "INTERNAL_ERROR"
    BAD_REQUEST = "BAD_REQUEST"
    UNAVAILABLE = "UNAVAILABLE"

    # 저장소 관련
    STORAGE_ERROR = "STORAGE_ERROR"


class BaseAppException(Exception):
    """기본 애플리케이션 예외 클래스

    모든 도메인 예외는 에러 코드, 메시지, 상세 정보를 함께 가진다.
    """

    def __init__(
        self,
        error_code: str,
        message: str,
        detail: Optional[Dict[str, Any]] = None,
    ):
        self.error_code = error_code
        self.message = message
        self.detail_info = detail or {}
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        """로그/응답용 직렬화"""
        return {
            "code": str(getattr(self.error_code, "value", self.error_code)),
            "message": self.message,
            "detail": self.detail_info,
        }


class BadRequestException(BaseAppException):
    """잘못된 입력"""

    def __init__(
        self,
        message: str = "잘못된 요청입니다.",
        error_code: str = ErrorCode.BAD_REQUEST,
        detail: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(
            error_code=error_code,
            message=message,
            detail=detail,
        )


class ServiceUnavailableException(BaseAppException):
    """외부 협력자 호출 실패"""

    def __init__(
        self,
        message: str = "외부 서비스를 사용할 수 없습니다.",
        error_code: str = ErrorCode.UNAVAILABLE,
        detail: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(
            error_code=error_code,
            message=message,
            detail=detail,
        )


class InternalServerException(BaseAppException):
    """내부 처리 오류"""

    def __init__(
        self,
        message: str = "서버 내부 오류가 발생했습니다.",
        error_code: str = ErrorCode.INTERNAL_ERROR,
        detail: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(
            error_code=error_code,
            message=message,
            detail=detail,
        )


class StorageException(InternalServerException):
    """저장소 관련 예외"""

    def __init__(
        self,
        message: str = "저장소 오류가 발생했습니다.",
        error_code: str = ErrorCode.STORAGE_ERROR,
        detail: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(
            message=message,
            error_code=error_code,
            detail=detail,
        )
