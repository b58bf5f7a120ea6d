import typing

import pytest
from moto import mock_aws

from bizlevel_backend.dynamodb.artifacts_table import ArtifactsTable
from bizlevel_backend.models.artifact_models import ArtifactInputModel
from bizlevel_backend.utils.base_types import ArtifactId, LevelId

from test_utils.dynamodb import create_table

TABLE_NAME = "ArtifactsTable"


@pytest.fixture
def artifacts_table(aws_credentials) -> typing.Iterator[ArtifactsTable]:
    with mock_aws():
        create_table(TABLE_NAME, [("artifactId", "HASH")])
        yield ArtifactsTable(TABLE_NAME)


def _input(level_id: str = "level-1", title: str = "Business plan template") -> ArtifactInputModel:
    return ArtifactInputModel(
        title=title,
        description="A template",
        fileUrl="https://files.example.com/plan.doc",
        fileType="doc",
        levelId=LevelId(level_id),
    )


def test_save_and_get_artifact(artifacts_table: ArtifactsTable):
    saved = artifacts_table.save_artifact(ArtifactId("a1"), _input())

    assert saved.id == "a1"
    assert saved.downloadCount == 0
    assert saved.createdAt is not None
    assert artifacts_table.get_artifact(ArtifactId("a1")) == saved
    assert artifacts_table.get_artifact(ArtifactId("missing")) is None


def test_update_keeps_created_at_and_counter(artifacts_table: ArtifactsTable):
    created = artifacts_table.save_artifact(ArtifactId("a1"), _input())
    artifacts_table.table.update_item(
        Key={"artifactId": "a1"}, UpdateExpression="ADD downloadCount :one", ExpressionAttributeValues={":one": 1}
    )

    updated = artifacts_table.save_artifact(ArtifactId("a1"), _input(title="Renamed"))

    assert updated.title == "Renamed"
    assert updated.createdAt == created.createdAt
    assert updated.downloadCount == 1


def test_list_artifacts_and_filter_by_level(artifacts_table: ArtifactsTable):
    artifacts_table.save_artifact(ArtifactId("a1"), _input("level-1"))
    artifacts_table.save_artifact(ArtifactId("a2"), _input("level-2"))
    artifacts_table.save_artifact(ArtifactId("a3"), _input("level-2"))

    assert {artifact.id for artifact in artifacts_table.list_artifacts()} == {"a1", "a2", "a3"}
    assert {artifact.id for artifact in artifacts_table.list_artifacts_for_level(LevelId("level-2"))} == {"a2", "a3"}


def test_delete_artifact(artifacts_table: ArtifactsTable):
    artifacts_table.save_artifact(ArtifactId("a1"), _input())

    assert artifacts_table.delete_artifact(ArtifactId("a1")) is True
    assert artifacts_table.delete_artifact(ArtifactId("a1")) is False
