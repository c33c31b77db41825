"""정적 프로그램 카탈로그

프로그램별 기본(비개인화) Stage 구조입니다. 실시간 콘텐츠 저장소가
없는 환경의 ContentRepository이자, 추천 파이프라인 실패 시 사용하는
DefaultContentProvider 역할을 합니다.
"""

from typing import Any, Mapping, Optional, Sequence

from careflow.core.logging import get_logger
from careflow.domains.recommendations.types import (
    PlacedContentItem,
    Program,
    Stage,
)

logger = get_logger(__name__)


PROGRAM_DEFINITIONS: dict[str, dict[str, Any]] = {
    "weightLoss": {
        "slug": "weight-loss",
        "name": "Weight Loss Program",
        "category": "medications",
        "stages": [
            {
                "index": 1,
                "title": "Getting Started",
                "sections": {
                    "recommended": [
                        {
                            "id": "understanding-glp1",
                            "title": "Understanding GLP-1 Medications",
                            "description": "How these medications work in your body",
                            "content_type": "medication_guide",
                            "reading_time_minutes": 4,
                            "priority": 1,
                            "tags": ["semaglutide", "mechanism", "basics"],
                        },
                    ],
                    "weekFocus": [
                        {
                            "id": "injection-basics",
                            "title": "Injection Basics",
                            "description": "Step-by-step guide for your first injection",
                            "content_type": "usage_guide",
                            "reading_time_minutes": 5,
                            "priority": 1,
                            "tags": ["injection", "basics"],
                        },
                    ],
                    "quickHelp": [
                        {
                            "id": "injection-rotation",
                            "title": "Injection Site Rotation",
                            "description": "Rotate between thigh, abdomen, upper arm",
                            "content_type": "quick_tip",
                            "tags": ["injection"],
                        },
                        {
                            "id": "missed-dose",
                            "title": "What if I miss a dose?",
                            "description": "Guidelines for delayed injections",
                            "content_type": "quick_tip",
                            "tags": ["injection"],
                        },
                    ],
                },
            },
            {
                "index": 2,
                "title": "Building Habits",
                "sections": {
                    "recommended": [
                        {
                            "id": "managing-appetite",
                            "title": "Managing Appetite Changes",
                            "description": "Common side effects and how to handle them",
                            "content_type": "side_effect",
                            "reading_time_minutes": 4,
                            "is_new": True,
                            "tags": ["side-effects", "appetite"],
                        },
                    ],
                    "weekFocus": [
                        {
                            "id": "nutrition-basics",
                            "title": "Nutrition Basics",
                            "description": "How to read labels and make healthy choices",
                            "content_type": "usage_guide",
                            "reading_time_minutes": 5,
                            "is_completed": True,
                            "tags": ["nutrition", "basics"],
                        },
                    ],
                },
            },
            {
                "index": 3,
                "title": "Staying Active",
                "sections": {
                    "recommended": [
                        {
                            "id": "exercise-recommendations",
                            "title": "Exercise Recommendations",
                            "description": "Building movement into your week",
                            "content_type": "usage_guide",
                            "reading_time_minutes": 6,
                            "tags": ["exercise"],
                        },
                        {
                            "id": "gradual-weight-loss",
                            "title": "Why Gradual Weight Loss Works",
                            "description": "Setting a sustainable pace",
                            "content_type": "condition_info",
                            "reading_time_minutes": 4,
                            "tags": ["mindset", "basics"],
                        },
                    ],
                    "weekFocus": [
                        {
                            "id": "joint-friendly-exercise",
                            "title": "Joint-Friendly Exercise",
                            "description": "Low-impact activities that protect your joints",
                            "content_type": "usage_guide",
                            "reading_time_minutes": 5,
                            "tags": ["exercise", "mobility"],
                        },
                    ],
                    "quickHelp": [
                        {
                            "id": "quick-wins",
                            "title": "Quick Wins",
                            "description": "Small changes you can make today",
                            "content_type": "quick_tip",
                            "tags": ["motivation"],
                        },
                    ],
                },
            },
            {
                "index": 4,
                "title": "Adjusting Your Routine",
                "sections": {
                    "recommended": [
                        {
                            "id": "metabolism-after-50",
                            "title": "Metabolism After 50",
                            "description": "How your body's energy needs change with age",
                            "content_type": "condition_info",
                            "reading_time_minutes": 5,
                            "tags": ["metabolism", "aging"],
                        },
                        {
                            "id": "womens-health-considerations",
                            "title": "Women's Health Considerations",
                            "description": "Hormonal factors that affect weight management",
                            "content_type": "condition_info",
                            "reading_time_minutes": 6,
                            "tags": ["womens-health"],
                        },
                    ],
                    "weekFocus": [
                        {
                            "id": "menstrual-cycle-weight",
                            "title": "Your Cycle and Your Weight",
                            "description": "Understanding monthly fluctuations",
                            "content_type": "condition_info",
                            "reading_time_minutes": 4,
                            "tags": ["womens-health", "hormones"],
                        },
                    ],
                },
            },
            {
                "index": 5,
                "title": "Long-term Success",
                "sections": {
                    "recommended": [
                        {
                            "id": "motivation-strategies",
                            "title": "Motivation Strategies",
                            "description": "Staying consistent when progress slows",
                            "content_type": "usage_guide",
                            "reading_time_minutes": 5,
                            "tags": ["motivation", "mindset"],
                        },
                        {
                            "id": "overcoming-plateaus",
                            "title": "Overcoming Plateaus",
                            "description": "What to do when the scale stops moving",
                            "content_type": "condition_info",
                            "reading_time_minutes": 5,
                            "tags": ["motivation", "plateau"],
                        },
                    ],
                },
            },
        ],
    },
    "hairLoss": {
        "slug": "hair-loss",
        "name": "Hair Loss Treatment",
        "category": "medications",
        "stages": [
            {
                "index": 1,
                "title": "Starting Treatment",
                "sections": {
                    "recommended": [
                        {
                            "id": "minoxidil-guide",
                            "title": "Understanding Minoxidil",
                            "description": "How this treatment promotes hair growth",
                            "content_type": "medication_guide",
                            "reading_time_minutes": 6,
                            "tags": ["minoxidil", "mechanism"],
                        },
                    ],
                    "weekFocus": [
                        {
                            "id": "application-technique",
                            "title": "Proper Application Technique",
                            "description": "Getting the most from your treatment",
                            "content_type": "usage_guide",
                            "reading_time_minutes": 4,
                            "tags": ["application"],
                        },
                    ],
                },
            },
        ],
    },
    "antiAging": {
        "slug": "anti-aging",
        "name": "Anti-Aging",
        "category": "wellness",
        "stages": [
            {
                "index": 1,
                "title": "Skin Health Fundamentals",
                "sections": {
                    "recommended": [
                        {
                            "id": "retinoid-science",
                            "title": "The Science of Retinoids",
                            "description": "How retinoids improve skin texture and appearance",
                            "content_type": "condition_info",
                            "reading_time_minutes": 7,
                            "tags": ["retinoids", "skin"],
                        },
                    ],
                },
            },
        ],
    },
}


def build_program(key: str, definition: Mapping[str, Any]) -> Program:
    """정의 매핑으로 Program 생성 (Stage 카테고리는 프로그램 카테고리)"""
    category = definition["category"]
    stages = [
        Stage.model_validate({**stage, "category": category})
        for stage in definition["stages"]
    ]
    return Program(
        key=key,
        slug=definition["slug"],
        name=definition["name"],
        category=category,
        stages=stages,
    )


class StaticProgramCatalog:
    """정적 프로그램 카탈로그

    프로그램은 키(weightLoss) 또는 슬러그(weight-loss)로 조회합니다.
    """

    def __init__(
        self,
        definitions: Optional[Mapping[str, Mapping[str, Any]]] = None,
    ):
        definitions = (
            PROGRAM_DEFINITIONS if definitions is None else definitions
        )
        self._programs: dict[str, Program] = {}
        for key, definition in definitions.items():
            program = build_program(key, definition)
            self._programs[program.key] = program
            self._programs[program.slug] = program

    @property
    def programs(self) -> list[Program]:
        return list({p.key: p for p in self._programs.values()}.values())

    def get_program(self, program_id: str) -> Optional[Program]:
        return self._programs.get(program_id)

    def get_default_stage(
        self, program_id: str, stage_index: Optional[int] = None
    ) -> Optional[Stage]:
        """폴백용 기본 Stage

        요청한 Stage가 없으면 프로그램의 첫 Stage를 반환합니다.
        """
        program = self.get_program(program_id)
        if program is None or not program.stages:
            return None

        if stage_index is not None:
            stage = program.get_stage(stage_index)
            if stage is not None:
                return stage
            logger.warning(
                f"Stage {stage_index} not defined for program "
                f"'{program_id}'; using first stage"
            )

        return program.stages[0]

    async def get_stage_content(
        self, program_id: str, stage_index: int
    ) -> Optional[Stage]:
        program = self.get_program(program_id)
        if program is None:
            return None
        return program.get_stage(stage_index)

    async def get_content_items(
        self, program_id: str, content_ids: Sequence[str]
    ) -> dict[str, PlacedContentItem]:
        """ID로 아이템 조회 (아이템이 정의된 Stage의 섹션 정보 포함)"""
        program = self.get_program(program_id)
        if program is None:
            return {}

        wanted = set(content_ids)
        found: dict[str, PlacedContentItem] = {}
        for stage in program.stages:
            for content_id in wanted.difference(found):
                placed = stage.find(content_id)
                if placed is not None:
                    found[content_id] = placed
        return found
