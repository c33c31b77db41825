"""Core 모듈"""

from careflow.core.config import Settings, get_settings, settings
from careflow.core.exceptions import (
    BadRequestException,
    BaseAppException,
    ErrorCode,
    InternalServerException,
    ServiceUnavailableException,
    StorageException,
)
from careflow.core.logging import get_logger, setup_logging

__all__ = [
    "Settings",
    "get_settings",
    "settings",
    "ErrorCode",
    "BaseAppException",
    "BadRequestException",
    "ServiceUnavailableException",
    "InternalServerException",
    "StorageException",
    "get_logger",
    "setup_logging",
]
