import logging
import typing
from datetime import datetime, timezone

from boto3.dynamodb.types import TypeSerializer
from botocore.exceptions import ClientError
from pydantic import ValidationError

from bizlevel_backend.models.level_models import SkillType
from bizlevel_backend.models.user_progress_models import (
    BadgeModel,
    ProgressSetField,
    UserProgressModel,
)
from bizlevel_backend.progress.errors import ConcurrentModificationError
from bizlevel_backend.utils.base_types import ArtifactId, IsoTimestamp, LevelId, UserId
from bizlevel_backend.utils.boto_utils import get_dynamodb_resource

_LOGGER = logging.getLogger(__name__)
_LOGGER.setLevel(logging.INFO)

_SERIALIZER = TypeSerializer()


def _now() -> IsoTimestamp:
    return IsoTimestamp(datetime.now(timezone.utc).isoformat())


def _is_conditional_check_failure(e: ClientError) -> bool:
    return e.response["Error"]["Code"] == "ConditionalCheckFailedException"


def _first_transaction_item_failed_condition(e: ClientError) -> bool:
    if e.response["Error"]["Code"] != "TransactionCanceledException":
        return False
    reasons = e.response.get("CancellationReasons") or []
    if reasons:
        return reasons[0].get("Code") == "ConditionalCheckFailed"
    # Some endpoints only report the reasons inside the message
    message = e.response["Error"].get("Message", "")
    return "[ConditionalCheckFailed" in message


class UserProgressTable:
    """
    A wrapper class to abstract DynamoDB operations for the UserProgressTable.
    Assumes table has PK: userId. One item per user.

    Id collections (completedLevels, watchedVideos, completedTests, downloadedArtifacts) are
    stored as lists; uniqueness is enforced by `NOT contains(...)` conditions on every append.
    """

    def __init__(self, table_name: str) -> None:
        self.client = get_dynamodb_resource()
        self.table = self.client.Table(table_name)
        self.table_name = table_name

    @staticmethod
    def _to_item(progress: UserProgressModel) -> dict[str, typing.Any]:
        return progress.model_dump(mode="json", exclude_none=True)

    def get_progress(self, user_id: UserId) -> typing.Optional[UserProgressModel]:
        """
        Retrieves a user's progress record from DynamoDB.
        :param user_id: The ID of the user.
        :return: UserProgressModel instance if found, else None.
        """
        _LOGGER.debug(f"Fetching progress for user_id: {user_id}")
        try:
            response = self.table.get_item(Key={"userId": user_id}, ConsistentRead=True)
            item_data = response.get("Item")
            if item_data:
                return UserProgressModel.model_validate(item_data)
            _LOGGER.info(f"No progress found for user_id: {user_id}")
            return None
        except ClientError as e:
            _LOGGER.error(f"Failed to get progress for user_id {user_id}: {e.response['Error']['Message']}")
            raise
        except ValidationError as ve:
            _LOGGER.error(f"Stored progress for user_id {user_id} failed validation: {ve}", exc_info=True)
            raise

    def create_initial_progress(self, user_id: UserId, first_level_id: LevelId) -> UserProgressModel:
        """
        Creates the all-empty progress record for a user. If another request created it first,
        the stored record is returned instead.
        """
        initial = UserProgressModel(userId=user_id, currentLevel=first_level_id, lastUpdated=_now())
        try:
            self.table.put_item(
                Item=self._to_item(initial),
                ConditionExpression="attribute_not_exists(userId)",
            )
            _LOGGER.info(f"Created initial progress for user {user_id} starting at {first_level_id}")
            return initial
        except ClientError as e:
            if _is_conditional_check_failure(e):
                _LOGGER.info(f"Progress for user {user_id} was created concurrently. Reading stored record.")
                existing = self.get_progress(user_id)
                if existing is not None:
                    return existing
            _LOGGER.error(f"Failed to create progress for user {user_id}: {e.response['Error']['Message']}")
            raise

    def reset_progress(self, user_id: UserId, first_level_id: LevelId) -> UserProgressModel:
        """
        Restores the user's record to the initial, all-empty progress.
        The version keeps counting up, so a completion that read the record before the reset cannot commit after it.
        """
        initial = UserProgressModel(userId=user_id, currentLevel=first_level_id, lastUpdated=_now())
        item = self._to_item(initial)
        try:
            response = self.table.update_item(
                Key={"userId": user_id},
                UpdateExpression=(
                    "SET completedLevels = :completed, currentLevel = :current, skillProgress = :skills, "
                    "badges = :badges, watchedVideos = :videos, completedTests = :tests, "
                    "downloadedArtifacts = :artifacts, lastUpdated = :ts, "
                    "#version = if_not_exists(#version, :zero) + :one"
                ),
                ExpressionAttributeNames={"#version": "version"},
                ExpressionAttributeValues={
                    ":completed": item["completedLevels"],
                    ":current": item["currentLevel"],
                    ":skills": item["skillProgress"],
                    ":badges": item["badges"],
                    ":videos": item["watchedVideos"],
                    ":tests": item["completedTests"],
                    ":artifacts": item["downloadedArtifacts"],
                    ":ts": item["lastUpdated"],
                    ":zero": 0,
                    ":one": 1,
                },
                ReturnValues="ALL_NEW",
            )
            _LOGGER.info(f"Reset progress for user {user_id}")
            return UserProgressModel.model_validate(response["Attributes"])
        except ClientError as e:
            _LOGGER.error(f"Failed to reset progress for user {user_id}: {e.response['Error']['Message']}")
            raise

    def add_to_progress_set(self, user_id: UserId, field: ProgressSetField, item_id: str) -> bool:
        """
        Atomically appends `item_id` to one of the id collections unless it is already there.

        :return: True if the id was added, False if it was already recorded.
        """
        try:
            self.table.update_item(
                Key={"userId": user_id},
                UpdateExpression="SET #field = list_append(if_not_exists(#field, :empty), :items), lastUpdated = :ts",
                ConditionExpression="attribute_exists(userId) AND NOT contains(#field, :item_id)",
                ExpressionAttributeNames={"#field": field},
                ExpressionAttributeValues={
                    ":empty": [],
                    ":items": [item_id],
                    ":item_id": item_id,
                    ":ts": _now(),
                },
            )
            _LOGGER.info(f"Recorded {field} += {item_id} for user {user_id}")
            return True
        except ClientError as e:
            if _is_conditional_check_failure(e):
                _LOGGER.debug(f"{item_id} already in {field} for user {user_id} (or no progress record).")
                return False
            _LOGGER.error(f"Failed to update {field} for user {user_id}: {e.response['Error']['Message']}")
            raise

    def add_artifact_download(
        self,
        user_id: UserId,
        artifact_id: ArtifactId,
        artifacts_table_name: typing.Optional[str] = None,
    ) -> bool:
        """
        Records an artifact download. When `artifacts_table_name` is given, the artifact's
        downloadCount is incremented in the same transaction, so either both writes happen or neither.

        :return: True if the download was recorded, False if it already was.
        """
        if artifacts_table_name is None:
            return self.add_to_progress_set(user_id, "downloadedArtifacts", artifact_id)

        timestamp = _now()
        progress_update = {
            "Update": {
                "TableName": self.table_name,
                "Key": {"userId": _SERIALIZER.serialize(user_id)},
                "UpdateExpression": (
                    "SET downloadedArtifacts = list_append(if_not_exists(downloadedArtifacts, :empty), :items), "
                    "lastUpdated = :ts"
                ),
                "ConditionExpression": "attribute_exists(userId) AND NOT contains(downloadedArtifacts, :item_id)",
                "ExpressionAttributeValues": {
                    ":empty": _SERIALIZER.serialize([]),
                    ":items": _SERIALIZER.serialize([artifact_id]),
                    ":item_id": _SERIALIZER.serialize(artifact_id),
                    ":ts": _SERIALIZER.serialize(timestamp),
                },
            }
        }
        counter_update = {
            "Update": {
                "TableName": artifacts_table_name,
                "Key": {"artifactId": _SERIALIZER.serialize(artifact_id)},
                "UpdateExpression": "ADD downloadCount :one SET updatedAt = :ts",
                "ConditionExpression": "attribute_exists(artifactId)",
                "ExpressionAttributeValues": {
                    ":one": _SERIALIZER.serialize(1),
                    ":ts": _SERIALIZER.serialize(timestamp),
                },
            }
        }

        try:
            self.client.meta.client.transact_write_items(TransactItems=[progress_update, counter_update])
            _LOGGER.info(f"Recorded download of {artifact_id} for user {user_id} and incremented its counter")
            return True
        except ClientError as e:
            if _first_transaction_item_failed_condition(e):
                _LOGGER.debug(f"Artifact {artifact_id} already downloaded by user {user_id}.")
                return False
            _LOGGER.error(
                f"Download transaction failed for user {user_id}, artifact {artifact_id}: "
                f"{e.response['Error']['Message']}"
            )
            raise

    def commit_level_completion(
        self,
        user_id: UserId,
        level_id: LevelId,
        expected_version: int,
        completed_levels: list[LevelId],
        current_level: LevelId,
        skill_progress: dict[SkillType, int],
        badges: list[BadgeModel],
    ) -> UserProgressModel:
        """
        Writes the whole level-completion transition in a single conditional update.
        Fails if the record changed since `expected_version` was read or the level is already completed.

        :raises ConcurrentModificationError: If the condition did not hold; nothing was written.
        """
        try:
            response = self.table.update_item(
                Key={"userId": user_id},
                UpdateExpression=(
                    "SET completedLevels = :completed, currentLevel = :current, skillProgress = :skills, "
                    "badges = :badges, lastUpdated = :ts, #version = :next_version"
                ),
                ConditionExpression="#version = :expected_version AND NOT contains(completedLevels, :level_id)",
                ExpressionAttributeNames={"#version": "version"},
                ExpressionAttributeValues={
                    ":completed": list(completed_levels),
                    ":current": current_level,
                    ":skills": {skill.value: points for skill, points in skill_progress.items()},
                    ":badges": [badge.model_dump(mode="json", exclude_none=True) for badge in badges],
                    ":ts": _now(),
                    ":next_version": expected_version + 1,
                    ":expected_version": expected_version,
                    ":level_id": level_id,
                },
                ReturnValues="ALL_NEW",
            )
            _LOGGER.info(f"Committed completion of level {level_id} for user {user_id}")
            return UserProgressModel.model_validate(response["Attributes"])
        except ClientError as e:
            if _is_conditional_check_failure(e):
                _LOGGER.warning(f"Progress of user {user_id} changed while completing level {level_id}")
                raise ConcurrentModificationError(f"Progress of user {user_id} changed concurrently.") from e
            _LOGGER.error(
                f"Failed to commit completion of level {level_id} for user {user_id}: "
                f"{e.response['Error']['Message']}"
            )
            raise
