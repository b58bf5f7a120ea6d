import typing

import boto3
import pytest
from botocore.exceptions import ClientError
from moto import mock_aws

from bizlevel_backend.dynamodb.user_progress_table import UserProgressTable
from bizlevel_backend.models.level_models import SkillType
from bizlevel_backend.models.user_progress_models import BadgeModel
from bizlevel_backend.progress.errors import ConcurrentModificationError
from bizlevel_backend.utils.base_types import ArtifactId, BadgeId, LevelId, UserId

from test_utils.dynamodb import create_table

REGION = "us-west-1"
PROGRESS_TABLE_NAME = "UserProgressTable"
ARTIFACTS_TABLE_NAME = "ArtifactsTable"

USER = UserId("user-1")


@pytest.fixture
def progress_table(aws_credentials) -> typing.Iterator[UserProgressTable]:
    with mock_aws():
        create_table(PROGRESS_TABLE_NAME, [("userId", "HASH")])
        create_table(ARTIFACTS_TABLE_NAME, [("artifactId", "HASH")])
        yield UserProgressTable(PROGRESS_TABLE_NAME)


def _artifacts_table():
    return boto3.resource("dynamodb", region_name=REGION).Table(ARTIFACTS_TABLE_NAME)


def test_get_progress_not_exists(progress_table: UserProgressTable):
    assert progress_table.get_progress(USER) is None


def test_create_initial_progress(progress_table: UserProgressTable):
    created = progress_table.create_initial_progress(USER, LevelId("level-1"))

    assert created.currentLevel == "level-1"
    assert created.version == 0

    stored = progress_table.get_progress(USER)
    assert stored == created
    assert stored.skillProgress == {skill: 0 for skill in SkillType}


def test_create_initial_progress_does_not_overwrite(progress_table: UserProgressTable):
    progress_table.create_initial_progress(USER, LevelId("level-1"))
    progress_table.add_to_progress_set(USER, "watchedVideos", "v1")

    again = progress_table.create_initial_progress(USER, LevelId("level-1"))

    assert again.watchedVideos == ["v1"]


def test_add_to_progress_set_is_unique(progress_table: UserProgressTable):
    progress_table.create_initial_progress(USER, LevelId("level-1"))

    assert progress_table.add_to_progress_set(USER, "watchedVideos", "v1") is True
    assert progress_table.add_to_progress_set(USER, "watchedVideos", "v2") is True
    assert progress_table.add_to_progress_set(USER, "watchedVideos", "v1") is False
    assert progress_table.add_to_progress_set(USER, "completedTests", "t1") is True

    stored = progress_table.get_progress(USER)
    assert stored.watchedVideos == ["v1", "v2"]
    assert stored.completedTests == ["t1"]
    assert stored.version == 0


def test_add_to_progress_set_without_record(progress_table: UserProgressTable):
    assert progress_table.add_to_progress_set(USER, "watchedVideos", "v1") is False
    assert progress_table.get_progress(USER) is None


def test_add_artifact_download_with_counter(progress_table: UserProgressTable):
    _artifacts_table().put_item(Item={"artifactId": "a1", "downloadCount": 0})
    progress_table.create_initial_progress(USER, LevelId("level-1"))

    assert progress_table.add_artifact_download(USER, ArtifactId("a1"), ARTIFACTS_TABLE_NAME) is True
    assert progress_table.add_artifact_download(USER, ArtifactId("a1"), ARTIFACTS_TABLE_NAME) is False

    assert progress_table.get_progress(USER).downloadedArtifacts == ["a1"]
    counter = _artifacts_table().get_item(Key={"artifactId": "a1"})["Item"]["downloadCount"]
    assert counter == 1


def test_add_artifact_download_for_unregistered_artifact_writes_nothing(progress_table: UserProgressTable):
    progress_table.create_initial_progress(USER, LevelId("level-1"))

    with pytest.raises(ClientError):
        progress_table.add_artifact_download(USER, ArtifactId("missing"), ARTIFACTS_TABLE_NAME)

    assert progress_table.get_progress(USER).downloadedArtifacts == []


def test_add_artifact_download_without_counter(progress_table: UserProgressTable):
    progress_table.create_initial_progress(USER, LevelId("level-1"))
    assert progress_table.add_artifact_download(USER, ArtifactId("a1")) is True
    assert progress_table.get_progress(USER).downloadedArtifacts == ["a1"]


def test_commit_level_completion(progress_table: UserProgressTable):
    progress_table.create_initial_progress(USER, LevelId("level-1"))
    progress_table.add_to_progress_set(USER, "watchedVideos", "v1")
    badge = BadgeModel(id=BadgeId("badge-first-level"), name="First Steps", description="Completed your first level")
    skills = {skill: 0 for skill in SkillType}
    skills[SkillType.FINANCE] = 10

    updated = progress_table.commit_level_completion(
        user_id=USER,
        level_id=LevelId("level-1"),
        expected_version=0,
        completed_levels=[LevelId("level-1")],
        current_level=LevelId("level-2"),
        skill_progress=skills,
        badges=[badge],
    )

    assert updated.completedLevels == ["level-1"]
    assert updated.currentLevel == "level-2"
    assert updated.skillProgress[SkillType.FINANCE] == 10
    assert updated.badges == [badge]
    assert updated.version == 1
    assert updated.watchedVideos == ["v1"]


def test_commit_level_completion_with_stale_version(progress_table: UserProgressTable):
    progress_table.create_initial_progress(USER, LevelId("level-1"))
    kwargs = dict(
        user_id=USER,
        level_id=LevelId("level-1"),
        expected_version=0,
        completed_levels=[LevelId("level-1")],
        current_level=LevelId("level-2"),
        skill_progress={skill: 0 for skill in SkillType},
        badges=[],
    )
    progress_table.commit_level_completion(**kwargs)

    with pytest.raises(ConcurrentModificationError):
        progress_table.commit_level_completion(**kwargs)

    stored = progress_table.get_progress(USER)
    assert stored.version == 1
    assert stored.completedLevels == ["level-1"]


def test_reset_progress(progress_table: UserProgressTable):
    progress_table.create_initial_progress(USER, LevelId("level-1"))
    progress_table.add_to_progress_set(USER, "completedTests", "t1")

    reset = progress_table.reset_progress(USER, LevelId("level-1"))

    assert reset.completedTests == []
    assert progress_table.get_progress(USER).completedTests == []


def test_reset_progress_bumps_version(progress_table: UserProgressTable):
    progress_table.create_initial_progress(USER, LevelId("level-1"))
    progress_table.commit_level_completion(
        user_id=USER,
        level_id=LevelId("level-1"),
        expected_version=0,
        completed_levels=[LevelId("level-1")],
        current_level=LevelId("level-2"),
        skill_progress={skill: 0 for skill in SkillType},
        badges=[],
    )

    reset = progress_table.reset_progress(USER, LevelId("level-1"))

    assert reset.version == 2
    assert reset.completedLevels == []
    assert reset.currentLevel == "level-1"
    assert progress_table.get_progress(USER) == reset


def test_completion_read_before_reset_cannot_commit(progress_table: UserProgressTable):
    progress_table.create_initial_progress(USER, LevelId("level-1"))
    progress_table.reset_progress(USER, LevelId("level-1"))

    with pytest.raises(ConcurrentModificationError):
        progress_table.commit_level_completion(
            user_id=USER,
            level_id=LevelId("level-1"),
            expected_version=0,
            completed_levels=[LevelId("level-1")],
            current_level=LevelId("level-2"),
            skill_progress={skill: 0 for skill in SkillType},
            badges=[],
        )

    assert progress_table.get_progress(USER).completedLevels == []
