"""Programs 도메인 모듈

정적 프로그램 구조와 기본 개인화 규칙을 제공합니다.

구조:
    - catalog.py: 프로그램/Stage 정의 및 StaticProgramCatalog
      (ContentRepository + DefaultContentProvider)
    - rules.py: 기본 개인화 규칙 및 StaticRuleRepository
"""

from careflow.domains.programs.catalog import (
    PROGRAM_DEFINITIONS,
    StaticProgramCatalog,
    build_program,
)
from careflow.domains.programs.rules import DEFAULT_RULES, StaticRuleRepository

__all__ = [
    "PROGRAM_DEFINITIONS",
    "StaticProgramCatalog",
    "build_program",
    "DEFAULT_RULES",
    "StaticRuleRepository",
]
