"""날짜/시간 유틸리티"""

from datetime import datetime, timedelta, timezone
UTC = timezone.utc


def now_utc() -> datetime:
    """현재 UTC 시간 반환"""
    return datetime.now(UTC)


def ensure_utc(dt: datetime) -> datetime:
    """naive datetime은 UTC로 간주하여 tz-aware로 변환"""
    if dt.tzinfo is None:
        return dt.replace(tzinfo=UTC)
    return dt.astimezone(UTC)


def elapsed_days(since: datetime, now: datetime) -> float:
    """since부터 now까지 경과 일수 (음수는 0으로 처리)

    Args:
        since: 기준 시각
        now: 현재 시각 (호출자가 명시적으로 전달)

    Returns:
        경과 일수 (소수점 포함)
    """
    diff = ensure_utc(now) - ensure_utc(since)
    return max(diff / timedelta(days=1), 0.0)

