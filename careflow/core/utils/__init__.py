"""유틸리티 모듈"""

from careflow.core.utils.datetime import (
    UTC,
    elapsed_days,
    ensure_utc,
    now_utc,
)
from careflow.core.utils.time import measure_time

__all__ = [
    # datetime
    "UTC",
    "now_utc",
    "ensure_utc",
    "elapsed_days",
    # time measurement
    "measure_time",
]
