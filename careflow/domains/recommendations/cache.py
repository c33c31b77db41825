"""추천 결과 캐시

(user_id, program_id) 키 단위로 포맷된 결과를 저장합니다.
엔트리는 통째로 교체되므로 읽는 쪽에서 부분 기록을 볼 수 없습니다.
"""

import hashlib
import json
from datetime import datetime, timedelta
from typing import Callable, Optional

from careflow.core.logging import get_logger
from careflow.core.utils.datetime import ensure_utc, now_utc
from careflow.domains.recommendations.types import (
    CacheEntry,
    CacheKey,
    CacheState,
    RecommendationOptions,
)

logger = get_logger(__name__)


def options_fingerprint(
    options: RecommendationOptions, default_cap: Optional[int] = None
) -> str:
    """결과에 영향을 주는 옵션의 SHA-256 지문

    force_refresh는 캐시 읽기에만 영향을 주므로 제외합니다.
    """
    payload = json.dumps(
        {
            "exclude_completed": options.exclude_completed,
            "section_caps": dict(sorted(options.section_caps.items())),
            "default_cap": default_cap,
        },
        sort_keys=True,
    )
    return hashlib.sha256(payload.encode("utf-8")).hexdigest()


class InMemoryCacheStore:
    """프로세스 내 캐시 저장소

    ttl_seconds가 지정되면 저장 후 경과 시간이 TTL을 넘은 엔트리를
    STALE로 반환합니다. 기본은 명시적 무효화 전까지 유지합니다.
    """

    def __init__(
        self,
        ttl_seconds: Optional[int] = None,
        clock: Callable[[], datetime] = now_utc,
    ):
        self._entries: dict[CacheKey, CacheEntry] = {}
        self._ttl = timedelta(seconds=ttl_seconds) if ttl_seconds else None
        self._clock = clock

    async def get(self, key: CacheKey) -> Optional[CacheEntry]:
        entry = self._entries.get(key)
        if entry is None:
            return None

        if self._ttl is not None and entry.state == CacheState.FRESH:
            age = ensure_utc(self._clock()) - ensure_utc(entry.stored_at)
            if age > self._ttl:
                logger.debug(f"Cache entry expired: key={key}")
                return entry.model_copy(update={"state": CacheState.STALE})

        return entry

    async def set(self, key: CacheKey, entry: CacheEntry) -> None:
        self._entries[key] = entry

    async def invalidate(self, key: CacheKey) -> None:
        entry = self._entries.get(key)
        if entry is None:
            return
        self._entries[key] = entry.model_copy(
            update={"state": CacheState.STALE}
        )

    async def delete(self, key: CacheKey) -> None:
        self._entries.pop(key, None)

    def __len__(self) -> int:
        return len(self._entries)
