from bizlevel_backend.models.level_models import LevelModel, LevelStatus, LevelSummaryModel
from bizlevel_backend.models.user_progress_models import UserProgressModel
from bizlevel_backend.progress.level_catalog import LevelCatalog
from bizlevel_backend.utils.base_types import LevelId


def resolve_level_status(level: LevelModel, progress: UserProgressModel, catalog: LevelCatalog) -> LevelStatus:
    """
    COMPLETED if the level is in completedLevels; AVAILABLE if it is the current level,
    the first level, or its immediate predecessor is completed; LOCKED otherwise.
    A missing predecessor counts as not completed.
    """
    completed = set(progress.completedLevels)
    if level.id in completed:
        return LevelStatus.COMPLETED

    if level.id == progress.currentLevel or level.order == 1:
        return LevelStatus.AVAILABLE

    previous = catalog.previous_level(level)
    if previous is not None and previous.id in completed:
        return LevelStatus.AVAILABLE

    return LevelStatus.LOCKED


def resolve_all_statuses(catalog: LevelCatalog, progress: UserProgressModel) -> dict[LevelId, LevelStatus]:
    return {level.id: resolve_level_status(level, progress, catalog) for level in catalog}


def all_previous_levels_completed(level: LevelModel, progress: UserProgressModel, catalog: LevelCatalog) -> bool:
    completed = set(progress.completedLevels)
    return all(earlier.id in completed for earlier in catalog.levels_before(level))


def summarize_level(level: LevelModel, status: LevelStatus) -> LevelSummaryModel:
    return LevelSummaryModel(
        id=level.id,
        order=level.order,
        title=level.title,
        description=level.description,
        isPremium=level.isPremium,
        skillsFocus=level.skillsFocus,
        status=status,
        videoCount=len(level.videos),
        testCount=len(level.tests),
        artifactCount=len(level.artifacts),
    )
