"""Interactions 도메인 모듈

콘텐츠 조회/완료 텔레메트리를 PostgreSQL에 저장합니다.

구조:
    - models.py: SQLAlchemy 모델 (ContentInteractionRecord)
    - repository.py: 데이터 접근 계층 (UPSERT)
    - service.py: 추천 엔진용 상호작용 서비스
"""

from careflow.domains.interactions.models import ContentInteractionRecord

__all__ = [
    "ContentInteractionRecord",
]
