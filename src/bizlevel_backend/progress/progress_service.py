import contextlib
import logging
import typing
from datetime import datetime, timezone

from botocore.exceptions import BotoCoreError, ClientError

from bizlevel_backend.cloudwatch.metrics import MetricsManager
from bizlevel_backend.dynamodb.artifacts_table import ArtifactsTable
from bizlevel_backend.dynamodb.levels_table import LevelsTable
from bizlevel_backend.dynamodb.test_results_table import TestResultsTable
from bizlevel_backend.dynamodb.user_progress_table import UserProgressTable
from bizlevel_backend.models.artifact_models import (
    ArtifactWithMetaModel,
    ListOfArtifactsResponseModel,
)
from bizlevel_backend.models.level_models import (
    ArtifactFileType,
    LevelDetailResponseModel,
    LevelStatus,
    ListOfLevelsResponseModel,
)
from bizlevel_backend.models.user_progress_models import (
    CompletionResultModel,
    LevelStatusEntryModel,
    ProgressSummaryModel,
    TestAnswerInputModel,
    TestAnswerResultModel,
    TestResultModel,
    TrackingResultModel,
    UserProgressModel,
)
from bizlevel_backend.progress.badge_evaluator import evaluate_badges
from bizlevel_backend.progress.completion_gate import can_complete, get_missing_items
from bizlevel_backend.progress.errors import (
    AlreadyCompletedError,
    ConcurrentModificationError,
    GateNotSatisfiedError,
    LevelLockedError,
    NotFoundError,
    StoreUnavailableError,
)
from bizlevel_backend.progress.level_catalog import LevelCatalog
from bizlevel_backend.progress.level_status import (
    all_previous_levels_completed,
    resolve_all_statuses,
    resolve_level_status,
    summarize_level,
)
from bizlevel_backend.progress.skill_model import compute_skill_progress
from bizlevel_backend.utils.aws_env_vars import (
    get_artifacts_table_name,
    get_levels_table_name,
    get_test_results_table_name,
    get_user_progress_table_name,
)
from bizlevel_backend.utils.base_types import (
    ArtifactId,
    IsoTimestamp,
    LevelId,
    TestId,
    UserId,
    VideoId,
)

_LOGGER = logging.getLogger(__name__)
_LOGGER.setLevel(logging.INFO)

MAX_COMPLETION_ATTEMPTS = 3


class ProgressService:
    """
    The Progress & Unlock Engine: every operation that reads or changes a user's progress.

    Storage failures (after botocore's own retries) surface as StoreUnavailableError. Domain
    failures surface as the other ProgressError subclasses and never leave a partial write.
    """

    def __init__(
        self,
        progress_table: UserProgressTable,
        levels_table: LevelsTable,
        artifacts_table: ArtifactsTable,
        test_results_table: TestResultsTable,
        metrics_manager: typing.Optional[MetricsManager] = None,
    ):
        self.progress_table = progress_table
        self.levels_table = levels_table
        self.artifacts_table = artifacts_table
        self.test_results_table = test_results_table
        self.metrics_manager = metrics_manager

    def _put_metric(self, name: str, value: int = 1) -> None:
        if self.metrics_manager is not None and value:
            self.metrics_manager.put_metric(name, value)

    @contextlib.contextmanager
    def _store(self, operation: str) -> typing.Iterator[None]:
        try:
            yield
        except (ClientError, BotoCoreError) as e:
            _LOGGER.error(f"Store failure during {operation}: {e}", exc_info=True)
            self._put_metric("StoreUnavailable")
            raise StoreUnavailableError(f"Progress store unavailable during {operation}.") from e

    def get_catalog(self) -> LevelCatalog:
        with self._store("catalog load"):
            return self.levels_table.load_catalog()

    def _load_progress(self, user_id: UserId, catalog: LevelCatalog) -> UserProgressModel:
        with self._store("progress read"):
            progress = self.progress_table.get_progress(user_id)
            if progress is not None:
                return progress
            first_level = catalog.first_level()
            _LOGGER.info(f"No progress for user {user_id} yet. Starting at level {first_level.id}")
            return self.progress_table.create_initial_progress(user_id, first_level.id)

    def get_progress(self, user_id: UserId) -> UserProgressModel:
        """Returns the user's progress, creating the initial record on first access."""
        return self._load_progress(user_id, self.get_catalog())

    def track_video_watched(self, user_id: UserId, video_id: VideoId) -> TrackingResultModel:
        catalog = self.get_catalog()
        catalog.find_video(video_id)
        progress = self._load_progress(user_id, catalog)
        if video_id in progress.watchedVideos:
            _LOGGER.debug(f"Video {video_id} already watched by user {user_id}")
            return TrackingResultModel(recorded=False, progress=progress)

        with self._store("video tracking"):
            recorded = self.progress_table.add_to_progress_set(user_id, "watchedVideos", video_id)
        return TrackingResultModel(recorded=recorded, progress=self._load_progress(user_id, catalog))

    def track_test_completed(
        self,
        user_id: UserId,
        test_id: TestId,
        score: int,
        answers: typing.Sequence[TestAnswerInputModel] = (),
    ) -> TrackingResultModel:
        """
        Marks a test as completed. Any score counts; the attempt itself is stored once with
        per-answer correctness taken from the catalog.
        """
        catalog = self.get_catalog()
        _, test = catalog.find_test(test_id)
        questions = {question.id: question for question in test.questions}

        graded: list[TestAnswerResultModel] = []
        for answer in answers:
            question = questions.get(answer.questionId)
            if question is None:
                raise NotFoundError("question", answer.questionId)
            graded.append(
                TestAnswerResultModel(
                    questionId=answer.questionId,
                    answeredOption=answer.answeredOption,
                    isCorrect=answer.answeredOption == question.correctAnswerIndex,
                )
            )

        progress = self._load_progress(user_id, catalog)
        if test_id in progress.completedTests:
            _LOGGER.debug(f"Test {test_id} already completed by user {user_id}")
            return TrackingResultModel(recorded=False, progress=progress)

        result = TestResultModel(
            userId=user_id,
            testId=test_id,
            score=score,
            answers=graded,
            completedAt=IsoTimestamp(datetime.now(timezone.utc).isoformat()),
        )
        with self._store("test tracking"):
            # write-once result goes first, the set-add is the commit point
            self.test_results_table.save_test_result(result)
            recorded = self.progress_table.add_to_progress_set(user_id, "completedTests", test_id)
        return TrackingResultModel(recorded=recorded, progress=self._load_progress(user_id, catalog))

    def get_test_result(self, user_id: UserId, test_id: TestId) -> TestResultModel:
        """The stored attempt of a test, with per-answer correctness."""
        self.get_catalog().find_test(test_id)
        with self._store("test result lookup"):
            result = self.test_results_table.get_test_result(user_id, test_id)
        if result is None:
            raise NotFoundError("test result", test_id)
        return result

    def track_artifact_downloaded(self, user_id: UserId, artifact_id: ArtifactId) -> TrackingResultModel:
        """
        Accepts artifacts attached to a level and library records that belong to a known level.
        The library record's downloadCount moves in the same transaction as the progress update.
        """
        catalog = self.get_catalog()
        with self._store("artifact lookup"):
            record = self.artifacts_table.get_artifact(artifact_id)
        registered = record is not None
        if not (registered and catalog.has_level(record.levelId)):
            catalog.find_artifact(artifact_id)

        progress = self._load_progress(user_id, catalog)
        if artifact_id in progress.downloadedArtifacts:
            _LOGGER.debug(f"Artifact {artifact_id} already downloaded by user {user_id}")
            return TrackingResultModel(recorded=False, progress=progress)

        with self._store("artifact tracking"):
            recorded = self.progress_table.add_artifact_download(
                user_id,
                artifact_id,
                artifacts_table_name=self.artifacts_table.table_name if registered else None,
            )
        return TrackingResultModel(recorded=recorded, progress=self._load_progress(user_id, catalog))

    def complete_level(self, user_id: UserId, level_id: LevelId) -> CompletionResultModel:
        """
        Moves a level into completedLevels once every earlier level is completed and all of
        its videos, tests and artifacts are recorded. Advances currentLevel, recomputes skills
        and awards badges in one conditional write.

        :raises NotFoundError: Unknown level id.
        :raises AlreadyCompletedError: The level was already completed.
        :raises LevelLockedError: An earlier level is not completed yet.
        :raises GateNotSatisfiedError: Some content of the level is not recorded yet.
        """
        catalog = self.get_catalog()
        level = catalog.get_level(level_id)
        progress = self._load_progress(user_id, catalog)

        for attempt in range(1, MAX_COMPLETION_ATTEMPTS + 1):
            if level_id in progress.completedLevels:
                raise AlreadyCompletedError(level_id)

            if (
                not all_previous_levels_completed(level, progress, catalog)
                or resolve_level_status(level, progress, catalog) == LevelStatus.LOCKED
            ):
                _LOGGER.info(f"User {user_id} tried to complete locked level {level_id}")
                self._put_metric("GateNotSatisfied")
                raise LevelLockedError(level_id)

            missing = get_missing_items(level, progress)
            if not missing.is_empty():
                _LOGGER.info(f"User {user_id} cannot complete level {level_id} yet. Missing: {missing.model_dump()}")
                self._put_metric("GateNotSatisfied")
                raise GateNotSatisfiedError(level_id, missing)

            completed_levels = list(progress.completedLevels) + [level_id]
            next_level = catalog.next_level(level)
            current_level = next_level.id if next_level is not None else progress.currentLevel
            skill_progress = compute_skill_progress(completed_levels, catalog)
            candidate = progress.model_copy(
                update={
                    "completedLevels": completed_levels,
                    "currentLevel": current_level,
                    "skillProgress": skill_progress,
                }
            )
            new_badges = evaluate_badges(candidate)

            try:
                with self._store("level completion"):
                    updated = self.progress_table.commit_level_completion(
                        user_id=user_id,
                        level_id=level_id,
                        expected_version=progress.version,
                        completed_levels=completed_levels,
                        current_level=current_level,
                        skill_progress=skill_progress,
                        badges=list(progress.badges) + new_badges,
                    )
            except ConcurrentModificationError:
                _LOGGER.warning(
                    f"Attempt {attempt}/{MAX_COMPLETION_ATTEMPTS} to complete {level_id} for {user_id} lost a race"
                )
                progress = self._load_progress(user_id, catalog)
                continue

            _LOGGER.info(
                f"User {user_id} completed level {level_id}; current level is now {current_level}, "
                f"new badges: {[badge.id for badge in new_badges]}"
            )
            self._put_metric("LevelCompleted")
            self._put_metric("BadgeAwarded", len(new_badges))
            return CompletionResultModel(progress=updated, newBadges=new_badges)

        if level_id in progress.completedLevels:
            raise AlreadyCompletedError(level_id)
        self._put_metric("StoreUnavailable")
        raise StoreUnavailableError(f"Could not complete level {level_id} after {MAX_COMPLETION_ATTEMPTS} attempts.")

    def reset_progress(self, user_id: UserId) -> UserProgressModel:
        """Restores the initial, all-empty progress and forgets stored test attempts."""
        catalog = self.get_catalog()
        first_level = catalog.first_level()
        with self._store("progress reset"):
            removed = self.test_results_table.delete_results_for_user(user_id)
            progress = self.progress_table.reset_progress(user_id, first_level.id)
        _LOGGER.info(f"Reset progress of user {user_id} ({removed} test results removed)")
        return progress

    def get_progress_summary(self, user_id: UserId) -> ProgressSummaryModel:
        catalog = self.get_catalog()
        progress = self._load_progress(user_id, catalog)
        statuses = resolve_all_statuses(catalog, progress)

        total = len(catalog)
        completed_count = sum(1 for status in statuses.values() if status == LevelStatus.COMPLETED)
        percentage = round(completed_count * 100 / total) if total else 0
        return ProgressSummaryModel(
            userId=user_id,
            currentLevel=progress.currentLevel,
            levels=[
                LevelStatusEntryModel(levelId=level.id, order=level.order, status=statuses[level.id])
                for level in catalog
            ],
            completedCount=completed_count,
            totalLevels=total,
            overallPercentage=percentage,
            isCourseComplete=total > 0 and completed_count == total,
            skillProgress=progress.skillProgress,
            badges=progress.badges,
        )

    def list_levels(self, user_id: UserId) -> ListOfLevelsResponseModel:
        catalog = self.get_catalog()
        progress = self._load_progress(user_id, catalog)
        statuses = resolve_all_statuses(catalog, progress)
        return ListOfLevelsResponseModel(levels=[summarize_level(level, statuses[level.id]) for level in catalog])

    def get_level_detail(self, user_id: UserId, level_id: LevelId) -> LevelDetailResponseModel:
        """
        :raises LevelLockedError: The level is not yet reachable for the user.
        """
        catalog = self.get_catalog()
        level = catalog.get_level(level_id)
        progress = self._load_progress(user_id, catalog)
        status = resolve_level_status(level, progress, catalog)
        if status == LevelStatus.LOCKED:
            raise LevelLockedError(level_id)
        return LevelDetailResponseModel(
            level=level,
            status=status,
            canComplete=can_complete(level, progress) and all_previous_levels_completed(level, progress, catalog),
            missing=get_missing_items(level, progress),
        )

    def list_artifacts(
        self,
        user_id: UserId,
        level_id: typing.Optional[LevelId] = None,
        file_type: typing.Optional[ArtifactFileType] = None,
    ) -> ListOfArtifactsResponseModel:
        """
        The artifact library: the artifacts attached to each level plus the admin-registered
        library records, with download counters and the user's download flag, sorted by level order.
        Library records pointing at an unknown level are left out.
        """
        catalog = self.get_catalog()
        progress = self._load_progress(user_id, catalog)
        with self._store("artifact listing"):
            if level_id is not None:
                records = self.artifacts_table.list_artifacts_for_level(level_id)
            else:
                records = self.artifacts_table.list_artifacts()
        registered = {artifact.id: artifact for artifact in records}
        downloaded = set(progress.downloadedArtifacts)

        entries: list[ArtifactWithMetaModel] = []
        for level in catalog:
            for artifact in level.artifacts:
                record = registered.pop(artifact.id, None)
                entries.append(
                    ArtifactWithMetaModel(
                        id=artifact.id,
                        title=artifact.title,
                        description=artifact.description,
                        fileUrl=artifact.fileUrl,
                        fileType=artifact.fileType,
                        levelId=level.id,
                        levelTitle=level.title,
                        levelOrder=level.order,
                        isDownloaded=artifact.id in downloaded,
                        downloadCount=record.downloadCount if record else 0,
                    )
                )

        for record in registered.values():
            if not catalog.has_level(record.levelId):
                _LOGGER.warning(f"Library artifact {record.id} references unknown level {record.levelId}")
                continue
            level = catalog.get_level(record.levelId)
            entries.append(
                ArtifactWithMetaModel(
                    id=record.id,
                    title=record.title,
                    description=record.description,
                    fileUrl=record.fileUrl,
                    fileType=record.fileType,
                    levelId=level.id,
                    levelTitle=level.title,
                    levelOrder=level.order,
                    isDownloaded=record.id in downloaded,
                    downloadCount=record.downloadCount,
                )
            )

        if level_id is not None:
            entries = [entry for entry in entries if entry.levelId == level_id]
        if file_type is not None:
            entries = [entry for entry in entries if entry.fileType == file_type]
        entries.sort(key=lambda entry: entry.levelOrder)
        return ListOfArtifactsResponseModel(artifacts=entries)


def build_progress_service(metrics_manager: typing.Optional[MetricsManager] = None) -> ProgressService:
    """Wires a ProgressService to the tables named in the environment."""
    return ProgressService(
        progress_table=UserProgressTable(get_user_progress_table_name()),
        levels_table=LevelsTable(get_levels_table_name()),
        artifacts_table=ArtifactsTable(get_artifacts_table_name()),
        test_results_table=TestResultsTable(get_test_results_table_name()),
        metrics_manager=metrics_manager,
    )
