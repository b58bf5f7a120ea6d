import logging
import typing

from bizlevel_backend.models.level_models import (
    LevelArtifactModel,
    LevelModel,
    TestModel,
    VideoModel,
)
from bizlevel_backend.progress.errors import NotFoundError
from bizlevel_backend.utils.base_types import ArtifactId, LevelId, TestId, VideoId

_LOGGER = logging.getLogger(__name__)
_LOGGER.setLevel(logging.INFO)


class LevelCatalog:
    """
    Read-only, order-sorted view over the Level definitions.

    Expected invariant: exactly one level per order value 1..N. When it does not hold the
    catalog still loads, but lookups by order return None for gaps and the first level
    wins for duplicates.
    """

    def __init__(self, levels: typing.Iterable[LevelModel]) -> None:
        self._levels: list[LevelModel] = sorted(levels, key=lambda level: level.order)
        self._by_id: dict[LevelId, LevelModel] = {}
        self._by_order: dict[int, LevelModel] = {}
        self._videos: dict[VideoId, tuple[LevelModel, VideoModel]] = {}
        self._tests: dict[TestId, tuple[LevelModel, TestModel]] = {}
        self._artifacts: dict[ArtifactId, tuple[LevelModel, LevelArtifactModel]] = {}

        for level in self._levels:
            self._by_id[level.id] = level
            if level.order in self._by_order:
                kept = self._by_order[level.order]
                _LOGGER.warning(f"Duplicate order {level.order} for levels {kept.id}, {level.id}")
            else:
                self._by_order[level.order] = level
            for video in level.videos:
                self._videos[video.id] = (level, video)
            for test in level.tests:
                self._tests[test.id] = (level, test)
            for artifact in level.artifacts:
                self._artifacts[artifact.id] = (level, artifact)

        if self._levels and not self.is_dense():
            _LOGGER.warning(f"Level catalog orders are not dense 1..{len(self._levels)}")

    def __len__(self) -> int:
        return len(self._levels)

    def __iter__(self) -> typing.Iterator[LevelModel]:
        return iter(self._levels)

    @property
    def levels(self) -> list[LevelModel]:
        return list(self._levels)

    def is_dense(self) -> bool:
        return sorted(level.order for level in self._levels) == list(range(1, len(self._levels) + 1))

    def first_level(self) -> LevelModel:
        if not self._levels:
            raise NotFoundError("level", "<first>")
        return self._levels[0]

    def has_level(self, level_id: LevelId) -> bool:
        return level_id in self._by_id

    def get_level(self, level_id: LevelId) -> LevelModel:
        level = self._by_id.get(level_id)
        if level is None:
            raise NotFoundError("level", level_id)
        return level

    def get_level_by_order(self, order: int) -> typing.Optional[LevelModel]:
        return self._by_order.get(order)

    def previous_level(self, level: LevelModel) -> typing.Optional[LevelModel]:
        return self.get_level_by_order(level.order - 1)

    def next_level(self, level: LevelModel) -> typing.Optional[LevelModel]:
        return self.get_level_by_order(level.order + 1)

    def levels_before(self, level: LevelModel) -> list[LevelModel]:
        return [candidate for candidate in self._levels if candidate.order < level.order]

    def find_video(self, video_id: VideoId) -> tuple[LevelModel, VideoModel]:
        found = self._videos.get(video_id)
        if found is None:
            raise NotFoundError("video", video_id)
        return found

    def find_test(self, test_id: TestId) -> tuple[LevelModel, TestModel]:
        found = self._tests.get(test_id)
        if found is None:
            raise NotFoundError("test", test_id)
        return found

    def find_artifact(self, artifact_id: ArtifactId) -> tuple[LevelModel, LevelArtifactModel]:
        found = self._artifacts.get(artifact_id)
        if found is None:
            raise NotFoundError("artifact", artifact_id)
        return found
