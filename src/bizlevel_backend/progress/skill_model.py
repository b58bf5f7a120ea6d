import typing

from bizlevel_backend.models.level_models import LevelStatus, SkillType
from bizlevel_backend.models.user_profile_models import (
    SkillInfoModel,
    SkillProgressEntryModel,
    SkillRecommendationModel,
)
from bizlevel_backend.models.user_progress_models import empty_skill_progress
from bizlevel_backend.progress.level_catalog import LevelCatalog
from bizlevel_backend.progress.level_status import summarize_level
from bizlevel_backend.utils.base_types import LevelId

POINTS_PER_LEVEL = 10
MAX_SKILL_PERCENT = 100

SKILLS_INFO: tuple[SkillInfoModel, ...] = (
    SkillInfoModel(
        type=SkillType.PERSONAL_SKILLS,
        displayName="Personal skills and growth",
        description="Self-organisation, time management, emotional intelligence",
        color="#10B981",
    ),
    SkillInfoModel(
        type=SkillType.MANAGEMENT,
        displayName="Management and planning",
        description="Strategy, planning, team and project management",
        color="#3B82F6",
    ),
    SkillInfoModel(
        type=SkillType.NETWORKING,
        displayName="Networking and connections",
        description="Building business relationships, networking, communication",
        color="#8B5CF6",
    ),
    SkillInfoModel(
        type=SkillType.CLIENT_WORK,
        displayName="Clients and sales",
        description="Acquiring and retaining clients, sales, customer service",
        color="#EC4899",
    ),
    SkillInfoModel(
        type=SkillType.FINANCE,
        displayName="Financial management",
        description="Budgeting, financial planning, accounting and analysis",
        color="#F59E0B",
    ),
    SkillInfoModel(
        type=SkillType.LEGAL,
        displayName="Accounting and legal matters",
        description="Legal foundations of a business, taxes, paperwork",
        color="#EF4444",
    ),
)


def compute_skill_progress(
    completed_level_ids: typing.Iterable[LevelId],
    catalog: LevelCatalog,
) -> dict[SkillType, int]:
    """
    Recomputes every skill percentage from the full set of completed levels.
    Each completed level adds POINTS_PER_LEVEL to each skill it focuses on; totals are
    capped at MAX_SKILL_PERCENT. Ids unknown to the catalog contribute nothing.
    """
    completed = set(completed_level_ids)
    progress = empty_skill_progress()
    for level in catalog:
        if level.id not in completed:
            continue
        for skill in level.skillsFocus:
            progress[skill] += POINTS_PER_LEVEL
    return {skill: min(points, MAX_SKILL_PERCENT) for skill, points in progress.items()}


def calculate_max_skill_progress(catalog: LevelCatalog) -> dict[SkillType, int]:
    """The best percentage reachable per skill once every level is completed."""
    return compute_skill_progress((level.id for level in catalog), catalog)


def format_skill_progress(progress: typing.Mapping[SkillType, int]) -> list[SkillProgressEntryModel]:
    return [
        SkillProgressEntryModel(**info.model_dump(), progress=progress.get(info.type, 0)) for info in SKILLS_INFO
    ]


def get_dominant_skills(progress: typing.Mapping[SkillType, int], count: int = 2) -> list[SkillProgressEntryModel]:
    # sorted() is stable, so ties keep SKILLS_INFO order
    formatted = format_skill_progress(progress)
    return sorted(formatted, key=lambda entry: entry.progress, reverse=True)[:count]


def get_skill_recommendations(
    progress: typing.Mapping[SkillType, int],
    completed_level_ids: typing.Iterable[LevelId],
    catalog: LevelCatalog,
    statuses: typing.Mapping[LevelId, LevelStatus],
    skill_count: int = 3,
    levels_per_skill: int = 2,
) -> list[SkillRecommendationModel]:
    """
    The weakest skills, each paired with the earliest not-yet-completed levels that train it.
    """
    completed = set(completed_level_ids)
    open_levels = [level for level in catalog if level.id not in completed]
    weakest = sorted(format_skill_progress(progress), key=lambda entry: entry.progress)[:skill_count]

    recommendations = []
    for entry in weakest:
        matching = [level for level in open_levels if entry.type in level.skillsFocus][:levels_per_skill]
        recommendations.append(
            SkillRecommendationModel(
                **entry.model_dump(),
                recommendedLevels=[summarize_level(level, statuses[level.id]) for level in matching],
            )
        )
    return recommendations
