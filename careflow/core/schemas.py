"""공통 스키마

도메인 타입이 공유하는 pydantic 베이스 모델을 정의합니다.
"""

from pydantic import BaseModel, ConfigDict


class BaseSchema(BaseModel):
    """기본 스키마 (ORM 모델 변환용)"""

    model_config = ConfigDict(
        from_attributes=True,
        populate_by_name=True,
    )


class FrozenSchema(BaseModel):
    """불변 스냅샷 스키마

    추천 사이클 동안 변경되면 안 되는 값(프로필, 진행 상황 등)에 사용합니다.
    """

    model_config = ConfigDict(
        from_attributes=True,
        populate_by_name=True,
        frozen=True,
    )
