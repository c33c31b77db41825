"""ContentRecommendationService 단위 테스트"""

import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest

from careflow.core.config import Settings
from careflow.domains.recommendations import (
    CacheState,
    CompletionWriteError,
    DataFetchError,
    InMemoryCacheStore,
    PersonalizationRule,
    RecommendationOptions,
)
from careflow.domains.recommendations.selection import format_default
from careflow.domains.recommendations.types import (
    ContentInteraction,
    RuleAdjustments,
    UserProfile,
)

STAGE_ONE_SECTIONS = {
    "recommended": ["understanding-glp1"],
    "weekFocus": ["injection-basics"],
    "quickHelp": ["injection-rotation", "missed-dose"],
}


def section_ids(content) -> dict[str, list[str]]:
    return {
        name: [summary.id for summary in items]
        for name, items in content.sections.items()
    }


class TestGetPersonalizedContent:
    """개인화 콘텐츠 조회 테스트"""

    @pytest.mark.asyncio
    async def test_base_content_without_rules(self, service_factory):
        """규칙/상호작용이 없으면 기본 Stage 구조 그대로"""
        service = service_factory()

        result = await service.get_personalized_content(1, "weightLoss")

        assert result.is_fallback is False
        assert result.stage_index == 1
        assert result.stage_title == "Getting Started"
        assert section_ids(result) == STAGE_ONE_SECTIONS

    @pytest.mark.asyncio
    async def test_fetches_every_collaborator(
        self, service_factory, collaborators
    ):
        service = service_factory()

        await service.get_personalized_content(1, "weightLoss")

        collaborators[
            "profile_service"
        ].get_user_profile.assert_awaited_once_with(1)
        collaborators[
            "progress_service"
        ].get_program_progress.assert_awaited_once_with(1, "weightLoss")
        collaborators[
            "interaction_service"
        ].get_content_interactions.assert_awaited_once_with(1, "weightLoss")
        collaborators[
            "rule_repository"
        ].get_personalization_rules.assert_awaited_once_with("weightLoss")
        collaborators[
            "content_repository"
        ].get_stage_content.assert_awaited_once_with("weightLoss", 1)

    @pytest.mark.asyncio
    async def test_matching_rule_adds_content(
        self, service_factory, collaborators
    ):
        """일치한 규칙의 추가 콘텐츠는 자신의 섹션에 들어감"""
        collaborators["profile_service"].get_user_profile.return_value = (
            UserProfile(id=1, age=55, gender="male")
        )
        collaborators[
            "rule_repository"
        ].get_personalization_rules.return_value = [
            PersonalizationRule(
                id="age_based",
                condition="user.age >= 50",
                adjustments=RuleAdjustments(
                    add_content=[
                        "metabolism-after-50",
                        "joint-friendly-exercise",
                    ],
                ),
            )
        ]
        service = service_factory()

        result = await service.get_personalized_content(1, "weightLoss")

        ids = section_ids(result)
        assert "metabolism-after-50" in ids["recommended"]
        assert "joint-friendly-exercise" in ids["weekFocus"]
        collaborators[
            "content_repository"
        ].get_content_items.assert_awaited_once_with(
            "weightLoss", ["metabolism-after-50", "joint-friendly-exercise"]
        )

    @pytest.mark.asyncio
    async def test_non_matching_rule_leaves_content_unchanged(
        self, service_factory, collaborators
    ):
        collaborators[
            "rule_repository"
        ].get_personalization_rules.return_value = [
            PersonalizationRule(
                id="age_based",
                condition="user.age >= 50",
                adjustments=RuleAdjustments(
                    add_content=["metabolism-after-50"]
                ),
            )
        ]
        service = service_factory()

        result = await service.get_personalized_content(1, "weightLoss")

        assert section_ids(result) == STAGE_ONE_SECTIONS
        collaborators[
            "content_repository"
        ].get_content_items.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_unresolved_additions_are_dropped(
        self, service_factory, collaborators
    ):
        """추가 콘텐츠 조회 실패 시 폴백 없이 기본 콘텐츠로 계속 진행"""
        collaborators["profile_service"].get_user_profile.return_value = (
            UserProfile(id=1, age=55, gender="male")
        )
        collaborators[
            "rule_repository"
        ].get_personalization_rules.return_value = [
            PersonalizationRule(
                id="age_based",
                condition="user.age >= 50",
                adjustments=RuleAdjustments(
                    add_content=["metabolism-after-50"]
                ),
            )
        ]
        collaborators["content_repository"].get_content_items.side_effect = (
            RuntimeError("catalog down")
        )
        service = service_factory()

        result = await service.get_personalized_content(1, "weightLoss")

        assert result.is_fallback is False
        assert section_ids(result) == STAGE_ONE_SECTIONS

    @pytest.mark.asyncio
    async def test_exclude_completed_keeps_sections_non_empty(
        self, service_factory, collaborators
    ):
        """완료 제외로 섹션이 비면 기본 콘텐츠로 채움"""
        collaborators[
            "interaction_service"
        ].get_content_interactions.return_value = {
            "injection-basics": ContentInteraction(
                user_id=1,
                program_id="weightLoss",
                content_id="injection-basics",
                completed=True,
            )
        }
        service = service_factory()

        result = await service.get_personalized_content(
            1, "weightLoss", RecommendationOptions(exclude_completed=True)
        )

        assert section_ids(result)["weekFocus"] == ["injection-basics"]

    @pytest.mark.asyncio
    async def test_section_caps(self, service_factory):
        service = service_factory()

        result = await service.get_personalized_content(
            1,
            "weightLoss",
            RecommendationOptions(section_caps={"quickHelp": 1}),
        )

        assert len(result.sections["quickHelp"]) == 1


class TestFallback:
    """폴백 경로 테스트"""

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "collaborator, method",
        [
            ("profile_service", "get_user_profile"),
            ("progress_service", "get_program_progress"),
            ("interaction_service", "get_content_interactions"),
            ("content_repository", "get_stage_content"),
            ("rule_repository", "get_personalization_rules"),
        ],
    )
    async def test_any_fetch_failure_returns_default_structure(
        self, service_factory, collaborators, collaborator, method
    ):
        """외부 조회 하나가 실패해도 예외 없이 기본 구조 반환"""
        getattr(collaborators[collaborator], method).side_effect = (
            RuntimeError("upstream down")
        )
        service = service_factory()

        result = await service.get_personalized_content(1, "weightLoss")

        assert result.is_fallback is True
        assert set(result.sections) == set(STAGE_ONE_SECTIONS)
        assert all(result.sections.values())

    @pytest.mark.asyncio
    async def test_stage_fetch_error_returns_static_default(
        self, service_factory, collaborators, catalog
    ):
        """Stage 조회 DataFetchError → 정적 기본 구조와 동일"""
        collaborators["content_repository"].get_stage_content.side_effect = (
            DataFetchError("content_repository", "boom")
        )
        service = service_factory()

        result = await service.get_personalized_content(1, "weightLoss")

        expected = format_default(
            "weightLoss", catalog.get_default_stage("weightLoss", 1)
        )
        assert result == expected

    @pytest.mark.asyncio
    async def test_fetch_timeout_triggers_fallback(
        self, service_factory, collaborators, user_profile
    ):
        async def slow_profile(user_id):
            await asyncio.sleep(1)
            return user_profile

        collaborators["profile_service"].get_user_profile.side_effect = (
            slow_profile
        )
        service = service_factory(
            settings=Settings(fetch_timeout_seconds=0.05)
        )

        result = await service.get_personalized_content(1, "weightLoss")

        assert result.is_fallback is True

    @pytest.mark.asyncio
    async def test_missing_stage_triggers_fallback(
        self, service_factory, collaborators
    ):
        collaborators["content_repository"].get_stage_content.side_effect = (
            None
        )
        collaborators["content_repository"].get_stage_content.return_value = (
            None
        )
        service = service_factory()

        result = await service.get_personalized_content(1, "weightLoss")

        assert result.is_fallback is True
        assert section_ids(result) == STAGE_ONE_SECTIONS

    @pytest.mark.asyncio
    async def test_scoring_failure_triggers_fallback(
        self, service_factory, monkeypatch
    ):
        def broken_score(*args, **kwargs):
            raise ValueError("bad score")

        monkeypatch.setattr(
            "careflow.domains.recommendations.service.score_content_set",
            broken_score,
        )
        service = service_factory()

        result = await service.get_personalized_content(1, "weightLoss")

        assert result.is_fallback is True

    @pytest.mark.asyncio
    async def test_unknown_program_returns_empty_fallback(
        self, service_factory
    ):
        service = service_factory()

        result = await service.get_personalized_content(1, "unknown-program")

        assert result.is_fallback is True
        assert result.sections == {}

    @pytest.mark.asyncio
    async def test_broken_default_provider_never_raises(
        self, service_factory, collaborators
    ):
        collaborators["profile_service"].get_user_profile.side_effect = (
            RuntimeError("down")
        )
        provider = MagicMock()
        provider.get_default_stage.side_effect = RuntimeError("corrupt")
        service = service_factory(default_content_provider=provider)

        result = await service.get_personalized_content(1, "weightLoss")

        assert result.is_fallback is True
        assert result.sections == {}

    @pytest.mark.asyncio
    async def test_fallback_is_not_cached(
        self, service_factory, collaborators
    ):
        """폴백 결과는 캐시하지 않고 다음 요청에서 재시도"""
        profile = collaborators["profile_service"].get_user_profile
        profile.side_effect = [RuntimeError("down"), profile.return_value]
        service = service_factory()

        first = await service.get_personalized_content(1, "weightLoss")
        second = await service.get_personalized_content(1, "weightLoss")

        assert first.is_fallback is True
        assert second.is_fallback is False
        assert profile.await_count == 2


class TestCache:
    """캐시 동작 테스트"""

    @pytest.mark.asyncio
    async def test_initial_state_is_empty(self, service_factory):
        service = service_factory()

        assert await service.get_cache_state(1, "weightLoss") == (
            CacheState.EMPTY
        )

    @pytest.mark.asyncio
    async def test_second_call_served_from_cache(
        self, service_factory, collaborators
    ):
        service = service_factory()

        first = await service.get_personalized_content(1, "weightLoss")
        second = await service.get_personalized_content(1, "weightLoss")

        assert second is first
        assert await service.get_cache_state(1, "weightLoss") == (
            CacheState.FRESH
        )
        assert (
            collaborators["profile_service"].get_user_profile.await_count == 1
        )

    @pytest.mark.asyncio
    async def test_force_refresh_recomputes(
        self, service_factory, collaborators
    ):
        service = service_factory()

        await service.get_personalized_content(1, "weightLoss")
        await service.get_personalized_content(
            1, "weightLoss", RecommendationOptions(force_refresh=True)
        )

        assert (
            collaborators["profile_service"].get_user_profile.await_count == 2
        )

    @pytest.mark.asyncio
    async def test_different_options_recompute(
        self, service_factory, collaborators
    ):
        """결과에 영향을 주는 옵션이 다르면 캐시 미스"""
        service = service_factory()

        await service.get_personalized_content(1, "weightLoss")
        await service.get_personalized_content(
            1, "weightLoss", RecommendationOptions(exclude_completed=True)
        )

        assert (
            collaborators["profile_service"].get_user_profile.await_count == 2
        )

    @pytest.mark.asyncio
    async def test_keys_are_independent(self, service_factory, collaborators):
        service = service_factory()

        await service.get_personalized_content(1, "weightLoss")
        await service.get_personalized_content(1, "hairLoss")
        await service.invalidate(1, "hairLoss")

        assert await service.get_cache_state(1, "weightLoss") == (
            CacheState.FRESH
        )
        assert await service.get_cache_state(1, "hairLoss") == (
            CacheState.STALE
        )

    @pytest.mark.asyncio
    async def test_cache_write_failure_still_returns_result(
        self, service_factory
    ):
        store = MagicMock()
        store.get = AsyncMock(return_value=None)
        store.set = AsyncMock(side_effect=RuntimeError("cache down"))
        store.invalidate = AsyncMock()
        service = service_factory(cache_store=store)

        result = await service.get_personalized_content(1, "weightLoss")

        assert result.is_fallback is False
        assert section_ids(result) == STAGE_ONE_SECTIONS

    @pytest.mark.asyncio
    async def test_failed_invalidation_is_cleared_by_next_write(
        self, service_factory, collaborators
    ):
        """저장소 무효화 실패 시 STALE로 취급하고 재계산 후 해제"""
        store = InMemoryCacheStore()
        store.invalidate = AsyncMock(side_effect=RuntimeError("cache down"))
        service = service_factory(cache_store=store)
        await service.get_personalized_content(1, "weightLoss")

        await service.invalidate(1, "weightLoss")

        assert await service.get_cache_state(1, "weightLoss") == (
            CacheState.STALE
        )

        await service.get_personalized_content(1, "weightLoss")

        assert await service.get_cache_state(1, "weightLoss") == (
            CacheState.FRESH
        )
        assert (
            collaborators["profile_service"].get_user_profile.await_count == 2
        )
        assert service._stale_keys == set()
        assert service._in_flight == {}

    @pytest.mark.asyncio
    async def test_cache_read_failure_recomputes(self, service_factory):
        store = MagicMock()
        store.get = AsyncMock(side_effect=RuntimeError("cache down"))
        store.set = AsyncMock()
        service = service_factory(cache_store=store)

        result = await service.get_personalized_content(1, "weightLoss")

        assert result.is_fallback is False
        store.set.assert_awaited_once()


class TestSingleFlight:
    """동시 요청 병합 테스트"""

    @pytest.mark.asyncio
    async def test_concurrent_requests_share_one_computation(
        self, service_factory, collaborators, user_profile
    ):
        """동시 요청 시 외부 조회는 한 번만 수행"""

        async def slow_profile(user_id):
            await asyncio.sleep(0.05)
            return user_profile

        collaborators["profile_service"].get_user_profile.side_effect = (
            slow_profile
        )
        service = service_factory()

        first, second = await asyncio.gather(
            service.get_personalized_content(1, "weightLoss"),
            service.get_personalized_content(1, "weightLoss"),
        )

        assert first == second
        for name, method in [
            ("profile_service", "get_user_profile"),
            ("progress_service", "get_program_progress"),
            ("interaction_service", "get_content_interactions"),
            ("content_repository", "get_stage_content"),
            ("rule_repository", "get_personalization_rules"),
        ]:
            assert getattr(collaborators[name], method).await_count == 1

    @pytest.mark.asyncio
    async def test_concurrent_requests_with_different_options_share_fetches(
        self, service_factory, collaborators, user_profile
    ):
        """옵션이 달라도 동시 요청은 조회/스코어링을 공유하고
        선택만 호출자 옵션별로 적용"""

        async def slow_profile(user_id):
            await asyncio.sleep(0.05)
            return user_profile

        profile = collaborators["profile_service"].get_user_profile
        profile.side_effect = slow_profile
        service = service_factory()

        plain, capped = await asyncio.gather(
            service.get_personalized_content(1, "weightLoss"),
            service.get_personalized_content(
                1,
                "weightLoss",
                RecommendationOptions(
                    exclude_completed=True, section_caps={"quickHelp": 1}
                ),
            ),
        )

        assert profile.await_count == 1
        for name, method in [
            ("progress_service", "get_program_progress"),
            ("interaction_service", "get_content_interactions"),
            ("content_repository", "get_stage_content"),
            ("rule_repository", "get_personalization_rules"),
        ]:
            assert getattr(collaborators[name], method).await_count == 1
        assert len(plain.sections["quickHelp"]) == 2
        assert len(capped.sections["quickHelp"]) == 1
        assert service._in_flight == {}

    @pytest.mark.asyncio
    async def test_computing_state_while_in_flight(
        self, service_factory, collaborators, user_profile
    ):
        gate = asyncio.Event()

        async def gated_profile(user_id):
            await gate.wait()
            return user_profile

        collaborators["profile_service"].get_user_profile.side_effect = (
            gated_profile
        )
        service = service_factory()

        task = asyncio.create_task(
            service.get_personalized_content(1, "weightLoss")
        )
        await asyncio.sleep(0.01)

        assert await service.get_cache_state(1, "weightLoss") == (
            CacheState.COMPUTING
        )

        gate.set()
        await task

        assert await service.get_cache_state(1, "weightLoss") == (
            CacheState.FRESH
        )

    @pytest.mark.asyncio
    async def test_invalidation_during_computation(
        self, service_factory, collaborators, user_profile
    ):
        """계산 중 무효화되면 이전 계산은 캐시에 기록되지 않고
        이후 요청은 새로 계산"""
        gate = asyncio.Event()

        async def gated_profile(user_id):
            await gate.wait()
            return user_profile

        profile = collaborators["profile_service"].get_user_profile
        profile.side_effect = gated_profile
        service = service_factory()

        stale_task = asyncio.create_task(
            service.get_personalized_content(1, "weightLoss")
        )
        await asyncio.sleep(0.01)

        await service.invalidate(1, "weightLoss")
        fresh_task = asyncio.create_task(
            service.get_personalized_content(1, "weightLoss")
        )
        await asyncio.sleep(0.01)

        gate.set()
        await asyncio.gather(stale_task, fresh_task)

        assert profile.await_count == 2
        assert await service.get_cache_state(1, "weightLoss") == (
            CacheState.FRESH
        )
        # 캐시된 결과를 재사용 (추가 조회 없음)
        await service.get_personalized_content(1, "weightLoss")
        assert profile.await_count == 2

    @pytest.mark.asyncio
    async def test_cancelled_caller_does_not_cancel_shared_run(
        self, service_factory, collaborators, user_profile
    ):
        gate = asyncio.Event()

        async def gated_profile(user_id):
            await gate.wait()
            return user_profile

        collaborators["profile_service"].get_user_profile.side_effect = (
            gated_profile
        )
        service = service_factory()

        impatient = asyncio.create_task(
            service.get_personalized_content(1, "weightLoss")
        )
        patient = asyncio.create_task(
            service.get_personalized_content(1, "weightLoss")
        )
        await asyncio.sleep(0.01)

        impatient.cancel()
        gate.set()
        result = await patient

        assert result.is_fallback is False
        assert impatient.cancelled()


class TestMarkContentComplete:
    """완료 피드백 테스트"""

    @pytest.mark.asyncio
    async def test_completion_invalidates_cache(
        self, service_factory, collaborators
    ):
        """완료 기록 후 다음 조회는 재계산"""
        interactions = collaborators["interaction_service"]
        service = service_factory()
        before = await service.get_personalized_content(1, "weightLoss")

        await service.mark_content_complete(1, "weightLoss", "injection-basics")
        interactions.get_content_interactions.return_value = {
            "injection-basics": ContentInteraction(
                user_id=1,
                program_id="weightLoss",
                content_id="injection-basics",
                completed=True,
            )
        }
        assert await service.get_cache_state(1, "weightLoss") == (
            CacheState.STALE
        )

        after = await service.get_personalized_content(1, "weightLoss")

        interactions.record_content_completion.assert_awaited_once_with(
            1, "weightLoss", "injection-basics"
        )
        assert after is not before
        assert after != before
        assert after.sections["weekFocus"][0].is_completed is True
        assert (
            collaborators["profile_service"].get_user_profile.await_count == 2
        )

    @pytest.mark.asyncio
    async def test_completion_failure_raises(
        self, service_factory, collaborators
    ):
        """완료 기록 실패는 호출자에게 전달되고 캐시는 유지"""
        collaborators[
            "interaction_service"
        ].record_content_completion.side_effect = RuntimeError("db down")
        service = service_factory()
        await service.get_personalized_content(1, "weightLoss")

        with pytest.raises(CompletionWriteError) as exc_info:
            await service.mark_content_complete(
                1, "weightLoss", "injection-basics"
            )

        assert exc_info.value.content_id == "injection-basics"
        assert await service.get_cache_state(1, "weightLoss") == (
            CacheState.FRESH
        )

    @pytest.mark.asyncio
    async def test_completion_only_invalidates_its_key(
        self, service_factory
    ):
        service = service_factory()
        await service.get_personalized_content(1, "weightLoss")
        await service.get_personalized_content(2, "weightLoss")

        await service.mark_content_complete(1, "weightLoss", "missed-dose")

        assert await service.get_cache_state(1, "weightLoss") == (
            CacheState.STALE
        )
        assert await service.get_cache_state(2, "weightLoss") == (
            CacheState.FRESH
        )
