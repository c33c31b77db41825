"""테스트 설정"""

import os
from datetime import datetime
from typing import Generator
from unittest.mock import AsyncMock, MagicMock

import pytest
import pytest_asyncio
from docker import from_env
from docker.errors import DockerException
from sqlalchemy.ext.asyncio import (
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from testcontainers.postgres import PostgresContainer

from careflow.core.config import Settings
from careflow.core.database import Base
from careflow.core.utils.datetime import UTC
from careflow.domains.programs import StaticProgramCatalog, StaticRuleRepository
from careflow.domains.recommendations import (
    ContentRecommendationService,
    InMemoryCacheStore,
    ProgramProgress,
    UserProfile,
)

# 모델 메타데이터 등록
from careflow.domains.interactions.models import (  # noqa: F401
    ContentInteractionRecord,
)


def _is_docker_available() -> bool:
    """로컬 환경에서 Docker 접근 가능 여부 확인"""
    if os.getenv("FORCE_DOCKER_TESTS", "").lower() in {"1", "true"}:
        return True
    if os.getenv("SKIP_DOCKER_TESTS", "").lower() in {"1", "true"}:
        return False

    try:
        client = from_env()
        client.ping()
        return True
    except DockerException:
        return False
    except Exception:
        return False


DOCKER_AVAILABLE = _is_docker_available()

FIXED_NOW = datetime(2026, 3, 1, 12, 0, tzinfo=UTC)


def pytest_configure(config):
    """pytest marker 등록"""
    config.addinivalue_line(
        "markers", "integration: Docker PostgreSQL 컨테이너가 필요한 테스트"
    )


@pytest.fixture(scope="session")
def postgres_container() -> Generator[PostgresContainer, None, None]:
    """PostgreSQL 테스트 컨테이너"""
    if not DOCKER_AVAILABLE:
        pytest.skip("Docker is not available; skipping container-based tests.")

    with PostgresContainer("postgres:16-alpine") as postgres:
        yield postgres


@pytest.fixture(scope="session")
def test_database_url(postgres_container: PostgresContainer) -> str:
    """테스트 데이터베이스 URL (asyncpg)"""
    return str(
        postgres_container.get_connection_url().replace(
            "postgresql+psycopg2://", "postgresql+asyncpg://"
        )
    )


# NOTE:
# pytest-asyncio는 테스트마다 독립적인 event loop를 생성하므로
# async fixture는 모두 function 스코프로 유지
@pytest_asyncio.fixture
async def test_session_maker(test_database_url: str):
    """깨끗한 스키마에 연결된 세션 팩토리"""
    engine = create_async_engine(test_database_url, echo=False)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)

    yield async_sessionmaker(
        bind=engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )

    await engine.dispose()


@pytest_asyncio.fixture
async def db_session(test_session_maker):
    """테스트 데이터베이스 세션"""
    async with test_session_maker() as session:
        yield session
        await session.rollback()


@pytest.fixture
def fixed_now() -> datetime:
    return FIXED_NOW


@pytest.fixture
def test_settings() -> Settings:
    """테스트용 설정 (짧은 타임아웃)"""
    return Settings(
        app_env="test",
        fetch_timeout_seconds=1.0,
        rule_match_mode="any",
    )


@pytest.fixture
def user_profile() -> UserProfile:
    return UserProfile(id=1, age=34, gender="male")


@pytest.fixture
def stage_one_progress() -> ProgramProgress:
    return ProgramProgress(
        user_id=1,
        program_id="weightLoss",
        current_stage=1,
        completion_percentage=10.0,
    )


@pytest.fixture
def catalog() -> StaticProgramCatalog:
    return StaticProgramCatalog()


@pytest.fixture
def collaborators(catalog, user_profile, stage_one_progress):
    """외부 협력자 테스트 더블

    콘텐츠 저장소는 정적 카탈로그를 감싸 호출 횟수를 검증할 수 있게 합니다.
    """
    profile_service = MagicMock()
    profile_service.get_user_profile = AsyncMock(return_value=user_profile)

    progress_service = MagicMock()
    progress_service.get_program_progress = AsyncMock(
        return_value=stage_one_progress
    )

    interaction_service = MagicMock()
    interaction_service.get_content_interactions = AsyncMock(return_value={})
    interaction_service.record_content_completion = AsyncMock(
        return_value=None
    )

    content_repository = MagicMock()
    content_repository.get_stage_content = AsyncMock(
        side_effect=catalog.get_stage_content
    )
    content_repository.get_content_items = AsyncMock(
        side_effect=catalog.get_content_items
    )

    rule_repository = MagicMock()
    rule_repository.get_personalization_rules = AsyncMock(return_value=[])

    return {
        "profile_service": profile_service,
        "progress_service": progress_service,
        "interaction_service": interaction_service,
        "content_repository": content_repository,
        "rule_repository": rule_repository,
        "default_content_provider": catalog,
    }


@pytest.fixture
def service_factory(collaborators, test_settings, fixed_now):
    """ContentRecommendationService 생성 팩토리"""

    def _factory(**overrides) -> ContentRecommendationService:
        kwargs = {
            **collaborators,
            "cache_store": InMemoryCacheStore(),
            "settings": test_settings,
            "clock": lambda: fixed_now,
        }
        kwargs.update(overrides)
        return ContentRecommendationService(**kwargs)

    return _factory


@pytest.fixture
def static_rule_repository() -> StaticRuleRepository:
    return StaticRuleRepository()
