"""콘텐츠 추천 서비스 (오케스트레이터)

파이프라인:
    캐시 확인 → 외부 데이터 조회 → 규칙 평가 → 콘텐츠 조정
    → 스코어링 → 선택/필터 → 포맷 → 캐시 기록

(user_id, program_id) 키별 캐시 상태:
    EMPTY → COMPUTING → FRESH → (무효화) → STALE → COMPUTING → FRESH

읽기 경로는 절대 예외를 전달하지 않습니다. 외부 조회, 규칙 평가,
스코어링 중 복구 불가능한 오류가 나면 프로그램의 정적 기본 Stage 구조를
반환합니다.
"""

import asyncio
import itertools
from dataclasses import dataclass
from datetime import datetime
from functools import partial
from typing import Any, Awaitable, Callable, Mapping, Optional

from careflow.core.config import Settings, get_settings
from careflow.core.logging import get_logger
from careflow.core.utils.datetime import now_utc
from careflow.core.utils.time import measure_time
from careflow.domains.recommendations.cache import (
    InMemoryCacheStore,
    options_fingerprint,
)
from careflow.domains.recommendations.exceptions import (
    CacheWriteError,
    CompletionWriteError,
    DataFetchError,
)
from careflow.domains.recommendations.interfaces import (
    CacheStore,
    ContentInteractionService,
    ContentRepository,
    DefaultContentProvider,
    PersonalizationRuleRepository,
    ProgramProgressService,
    UserProfileService,
)
from careflow.domains.recommendations.rules import (
    apply_rules,
    collect_additions,
    evaluate_rule,
)
from careflow.domains.recommendations.scoring import (
    ScoringContext,
    score_content_set,
)
from careflow.domains.recommendations.selection import (
    format_content,
    format_default,
    select,
)
from careflow.domains.recommendations.types import (
    CacheEntry,
    CacheKey,
    CacheState,
    MatchMode,
    PersonalizedContent,
    PlacedContentItem,
    ProgramProgress,
    RecommendationOptions,
    ScoredContentItem,
    Stage,
)

logger = get_logger(__name__)


@dataclass
class _ScoredStage:
    """키 단위로 공유되는 파이프라인 결과 (선택/포맷 이전)

    scored가 None이면 조회/규칙/스코어링이 실패한 것이며 호출자는
    정적 기본 구조를 반환합니다.
    """

    progress: Optional[ProgramProgress] = None
    stage: Optional[Stage] = None
    scored: Optional[dict[str, list[ScoredContentItem]]] = None


@dataclass
class _InFlightRun:
    """키별 진행 중인 파이프라인 실행"""

    generation: int
    task: "asyncio.Task[_ScoredStage]"
    superseded: bool = False


class ContentRecommendationService:
    """적응형 콘텐츠 추천 서비스

    외부 협력자 5개(프로필, 진행 상황, 상호작용, 콘텐츠, 규칙)와
    정적 기본 콘텐츠 제공자를 생성자로 주입받습니다.

    동일 키에 대한 동시 요청은 옵션과 관계없이 하나의 조회/스코어링
    실행을 공유하고 (single-flight), 선택과 포맷만 호출자 옵션별로
    적용합니다. 무효화가 일어나면 진행 중인 실행은 대체(superseded)되어
    결과가 캐시에 기록되지 않고 새 요청이 합류하지도 않습니다.
    """

    def __init__(
        self,
        profile_service: UserProfileService,
        progress_service: ProgramProgressService,
        interaction_service: ContentInteractionService,
        content_repository: ContentRepository,
        rule_repository: PersonalizationRuleRepository,
        default_content_provider: DefaultContentProvider,
        cache_store: Optional[CacheStore] = None,
        settings: Optional[Settings] = None,
        clock: Callable[[], datetime] = now_utc,
    ):
        """
        Args:
            profile_service: 사용자 프로필 서비스
            progress_service: 프로그램 진행 상황 서비스
            interaction_service: 콘텐츠 상호작용 서비스 (읽기/완료 기록)
            content_repository: 기본 콘텐츠 저장소
            rule_repository: 개인화 규칙 저장소
            default_content_provider: 폴백용 정적 콘텐츠 제공자
            cache_store: 캐시 저장소 (기본: 인메모리)
            settings: 애플리케이션 설정
            clock: 현재 시각 공급자 (스코어링 기준 시각)
        """
        self.settings = settings or get_settings()
        self.profile_service = profile_service
        self.progress_service = progress_service
        self.interaction_service = interaction_service
        self.content_repository = content_repository
        self.rule_repository = rule_repository
        self.default_content_provider = default_content_provider
        self.cache_store: CacheStore = cache_store or InMemoryCacheStore(
            ttl_seconds=self.settings.cache_ttl_seconds, clock=clock
        )
        self.match_mode = MatchMode(self.settings.rule_match_mode)
        self._clock = clock
        self._in_flight: dict[CacheKey, _InFlightRun] = {}
        self._generations = itertools.count(1)
        # 저장소 무효화에 실패한 키 (다음 캐시 기록 성공 시 해제)
        self._stale_keys: set[CacheKey] = set()

    async def get_personalized_content(
        self,
        user_id: int,
        program_id: str,
        options: Optional[RecommendationOptions] = None,
    ) -> PersonalizedContent:
        """개인화 콘텐츠 조회

        Args:
            user_id: 사용자 ID
            program_id: 프로그램 ID
            options: 호출자 옵션 (force_refresh, exclude_completed,
                section_caps)

        Returns:
            PersonalizedContent (실패 시 정적 기본 구조, 예외 없음)
        """
        options = options or RecommendationOptions()
        key = (user_id, program_id)
        fingerprint = options_fingerprint(
            options, self.settings.default_section_cap
        )

        if not options.force_refresh:
            cached = await self._read_cache(key, fingerprint)
            if cached is not None:
                logger.debug(
                    f"Cache hit for user {user_id}, program '{program_id}'"
                )
                return cached

        run = self._join_or_start(key)
        # 호출자가 대기를 포기해도 공유 실행은 계속됨
        prepared = await asyncio.shield(run.task)

        if prepared.scored is None or prepared.stage is None:
            return self._fallback(program_id, prepared.progress)

        try:
            selected = select(
                prepared.scored,
                options=options,
                default_cap=self.settings.default_section_cap,
            )
            content = format_content(program_id, prepared.stage, selected)
        except Exception as e:
            logger.exception(
                f"Formatting failed for user {user_id}, program "
                f"'{program_id}'; serving default content: {e}"
            )
            return self._fallback(program_id, prepared.progress)

        if run.superseded:
            logger.info(
                f"Cache for key={key} was invalidated during computation; "
                "result not cached"
            )
            return content

        await self._write_cache(key, content, fingerprint, run.generation)
        return content

    async def mark_content_complete(
        self, user_id: int, program_id: str, content_id: str
    ) -> None:
        """콘텐츠 완료 처리

        완료 기록 후 해당 키의 캐시를 STALE로 만들어 다음 조회 시
        재계산되도록 합니다.

        Raises:
            CompletionWriteError: 완료 기록 실패 (캐시는 그대로 유지)
        """
        try:
            await asyncio.wait_for(
                self.interaction_service.record_content_completion(
                    user_id, program_id, content_id
                ),
                timeout=self.settings.fetch_timeout_seconds,
            )
        except Exception as e:
            error = CompletionWriteError(content_id, str(e))
            logger.error(
                f"Failed to record completion of '{content_id}' "
                f"for user {user_id}, program '{program_id}': {e}",
                extra={"error": error.to_dict()},
            )
            raise error from e

        await self.invalidate(user_id, program_id)
        logger.info(
            f"Content '{content_id}' completed by user {user_id} "
            f"in program '{program_id}'"
        )

    async def invalidate(self, user_id: int, program_id: str) -> None:
        """캐시 엔트리를 STALE로 전환하고 진행 중인 실행을 대체"""
        key = (user_id, program_id)
        run = self._in_flight.pop(key, None)
        if run is not None:
            run.superseded = True

        try:
            await self.cache_store.invalidate(key)
        except Exception as e:
            self._stale_keys.add(key)
            logger.warning(f"Cache invalidation failed for key={key}: {e}")

    async def get_cache_state(
        self, user_id: int, program_id: str
    ) -> CacheState:
        """키의 현재 캐시 상태"""
        key = (user_id, program_id)
        run = self._in_flight.get(key)
        if run is not None and not run.task.done():
            return CacheState.COMPUTING

        try:
            entry = await self.cache_store.get(key)
        except Exception as e:
            logger.warning(f"Cache read failed for key={key}: {e}")
            return CacheState.EMPTY

        if entry is None:
            return CacheState.EMPTY
        if key in self._stale_keys:
            return CacheState.STALE
        return entry.state

    def _join_or_start(self, key: CacheKey) -> _InFlightRun:
        run = self._in_flight.get(key)
        if run is not None and not run.task.done():
            logger.debug(f"Joining in-flight computation for key={key}")
            return run

        task = asyncio.create_task(self._compute(key))
        run = _InFlightRun(generation=next(self._generations), task=task)
        self._in_flight[key] = run
        task.add_done_callback(partial(self._clear_in_flight, key))
        return run

    def _clear_in_flight(self, key: CacheKey, task: asyncio.Task) -> None:
        run = self._in_flight.get(key)
        if run is not None and run.task is task:
            del self._in_flight[key]

    async def _compute(self, key: CacheKey) -> _ScoredStage:
        user_id, program_id = key
        prepared = _ScoredStage()

        with measure_time() as timer:
            try:
                await self._run_pipeline(user_id, program_id, prepared)
            except DataFetchError as e:
                logger.error(
                    f"Data fetch from '{e.collaborator}' failed for user "
                    f"{user_id}, program '{program_id}'; serving default "
                    "content",
                    extra={"error": e.to_dict()},
                )
                return prepared
            except Exception as e:
                logger.exception(
                    f"Personalization pipeline failed for user {user_id}, "
                    f"program '{program_id}'; serving default content: {e}"
                )
                return prepared

        logger.info(
            f"Personalized content computed for user {user_id}, "
            f"program '{program_id}' in {timer['elapsed_ms']:.1f}ms"
        )
        return prepared

    async def _run_pipeline(
        self, user_id: int, program_id: str, prepared: _ScoredStage
    ) -> None:
        # 1. 외부 데이터 동시 조회
        profile, progress, interactions, rules = await asyncio.gather(
            self._fetch(
                "profile_service",
                self.profile_service.get_user_profile,
                user_id,
            ),
            self._fetch(
                "progress_service",
                self.progress_service.get_program_progress,
                user_id,
                program_id,
            ),
            self._fetch(
                "interaction_service",
                self.interaction_service.get_content_interactions,
                user_id,
                program_id,
            ),
            self._fetch(
                "rule_repository",
                self.rule_repository.get_personalization_rules,
                program_id,
            ),
        )
        prepared.progress = progress
        interactions = interactions or {}

        # 2. 현재 Stage 기본 콘텐츠 조회
        stage = await self._fetch(
            "content_repository",
            self.content_repository.get_stage_content,
            program_id,
            progress.current_stage,
        )
        if stage is None:
            raise DataFetchError(
                "content_repository",
                f"stage {progress.current_stage} not found",
            )

        # 3. 규칙 평가 (규칙별 오류는 평가기에서 복구)
        matched = [
            rule
            for rule in rules or []
            if evaluate_rule(rule, profile, progress, self.match_mode)
        ]

        # 4. 콘텐츠 조정 (add_content 대상은 미리 조회)
        base = stage.content_set()
        additions = collect_additions(base, matched)
        catalog = await self._resolve_additions(program_id, additions)
        working = apply_rules(base, matched, catalog)

        # 5. 스코어링 (선택/포맷은 호출자 옵션별로 적용)
        context = ScoringContext.from_settings(
            self.settings, progress, self._clock()
        )
        prepared.scored = score_content_set(
            working, profile, interactions, context
        )
        prepared.stage = stage

        logger.debug(
            f"Pipeline for user {user_id}, program '{program_id}': "
            f"stage={stage.index}, matched_rules={[r.id for r in matched]}, "
            f"additions={additions}"
        )

    async def _resolve_additions(
        self, program_id: str, additions: list[str]
    ) -> Mapping[str, PlacedContentItem]:
        """add_content 대상 조회 (실패 시 추가 없이 진행)"""
        if not additions:
            return {}

        try:
            return await self._fetch(
                "content_repository",
                self.content_repository.get_content_items,
                program_id,
                additions,
            )
        except DataFetchError as e:
            logger.warning(
                f"Could not resolve added content {additions} for program "
                f"'{program_id}'; continuing without them",
                extra={"error": e.to_dict()},
            )
            return {}

    async def _fetch(
        self,
        collaborator: str,
        func: Callable[..., Awaitable[Any]],
        *args: Any,
    ) -> Any:
        """외부 협력자 호출 (실패/타임아웃은 DataFetchError로 변환)"""
        try:
            return await asyncio.wait_for(
                func(*args), timeout=self.settings.fetch_timeout_seconds
            )
        except Exception as e:
            raise DataFetchError(collaborator, repr(e)) from e

    def _fallback(
        self, program_id: str, progress: Optional[ProgramProgress]
    ) -> PersonalizedContent:
        """정적 기본 Stage 구조 반환"""
        stage_index = progress.current_stage if progress else None
        try:
            stage = self.default_content_provider.get_default_stage(
                program_id, stage_index
            )
        except Exception as e:
            logger.error(f"Default content lookup failed: {e}")
            stage = None

        if stage is None:
            logger.error(f"No default content for program '{program_id}'")

        return format_default(program_id, stage)

    async def _read_cache(
        self, key: CacheKey, fingerprint: str
    ) -> Optional[PersonalizedContent]:
        try:
            entry = await self.cache_store.get(key)
        except Exception as e:
            logger.warning(f"Cache read failed for key={key}: {e}")
            return None

        if entry is None:
            return None
        if entry.state != CacheState.FRESH:
            return None
        if key in self._stale_keys:
            return None
        if entry.fingerprint != fingerprint:
            return None
        return entry.content

    async def _write_cache(
        self,
        key: CacheKey,
        content: PersonalizedContent,
        fingerprint: str,
        generation: int,
    ) -> None:
        user_id, program_id = key
        entry = CacheEntry(
            user_id=user_id,
            program_id=program_id,
            content=content,
            state=CacheState.FRESH,
            fingerprint=fingerprint,
            generation=generation,
            stored_at=self._clock(),
        )
        try:
            await self.cache_store.set(key, entry)
        except Exception as e:
            error = CacheWriteError(user_id, program_id, str(e))
            logger.error(
                f"{error.message} key={key}: {e}",
                extra={"error": error.to_dict()},
            )
            return

        self._stale_keys.discard(key)
