from bizlevel_backend.models.level_models import LevelModel, MissingItemsModel
from bizlevel_backend.models.user_progress_models import UserProgressModel


def get_missing_items(level: LevelModel, progress: UserProgressModel) -> MissingItemsModel:
    watched = set(progress.watchedVideos)
    passed = set(progress.completedTests)
    downloaded = set(progress.downloadedArtifacts)
    return MissingItemsModel(
        videos=[video.id for video in level.videos if video.id not in watched],
        tests=[test.id for test in level.tests if test.id not in passed],
        artifacts=[artifact.id for artifact in level.artifacts if artifact.id not in downloaded],
    )


def can_complete(level: LevelModel, progress: UserProgressModel) -> bool:
    """
    True iff the level is not yet completed and every video, test and artifact of the
    level has been recorded. Empty categories are satisfied trivially.
    """
    if level.id in progress.completedLevels:
        return False
    return get_missing_items(level, progress).is_empty()
