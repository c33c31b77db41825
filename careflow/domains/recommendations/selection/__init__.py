"""최종 선택 및 표시 포맷"""

from careflow.domains.recommendations.selection.formatter import (
    format_content,
    format_default,
    to_summary,
)
from careflow.domains.recommendations.selection.selector import select

__all__ = [
    "format_content",
    "format_default",
    "select",
    "to_summary",
]
