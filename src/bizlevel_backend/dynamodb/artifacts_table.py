import logging
import typing
from datetime import datetime, timezone

from boto3.dynamodb.conditions import Attr
from botocore.exceptions import ClientError
from pydantic import ValidationError

from bizlevel_backend.models.artifact_models import ArtifactInputModel, ArtifactModel
from bizlevel_backend.utils.base_types import ArtifactId, IsoTimestamp, LevelId
from bizlevel_backend.utils.boto_utils import get_dynamodb_resource

_LOGGER = logging.getLogger(__name__)
_LOGGER.setLevel(logging.INFO)


class ArtifactsTable:
    """
    Data Abstraction Layer for the artifact library.

    Table Schema:
      - PK: artifactId (String) - same value as the artifact's `id`
    """

    def __init__(self, table_name: str) -> None:
        self.client = get_dynamodb_resource()
        self.table = self.client.Table(table_name)
        self.table_name = table_name

    def get_artifact(self, artifact_id: ArtifactId) -> typing.Optional[ArtifactModel]:
        try:
            response = self.table.get_item(Key={"artifactId": artifact_id})
            item = response.get("Item")
            return ArtifactModel.model_validate(item) if item else None
        except ClientError as e:
            _LOGGER.error(f"Failed to get artifact {artifact_id}: {e.response['Error']['Message']}")
            raise
        except ValidationError as ve:
            _LOGGER.error(f"Failed to validate artifact {artifact_id}: {ve}", exc_info=True)
            return None

    def _scan(self, **scan_kwargs: typing.Any) -> list[ArtifactModel]:
        artifacts: list[ArtifactModel] = []
        try:
            while True:
                response = self.table.scan(**scan_kwargs)
                for item in response.get("Items", []):
                    try:
                        artifacts.append(ArtifactModel.model_validate(item))
                    except ValidationError as ve:
                        _LOGGER.warning(f"Skipping invalid artifact item {item.get('artifactId')}: {ve}")
                if "LastEvaluatedKey" not in response:
                    break
                scan_kwargs["ExclusiveStartKey"] = response["LastEvaluatedKey"]
        except ClientError as e:
            _LOGGER.error(f"Failed to scan artifacts table: {e.response['Error']['Message']}")
            raise
        return artifacts

    def list_artifacts(self) -> list[ArtifactModel]:
        return self._scan()

    def list_artifacts_for_level(self, level_id: LevelId) -> list[ArtifactModel]:
        return self._scan(FilterExpression=Attr("levelId").eq(level_id))

    def save_artifact(self, artifact_id: ArtifactId, artifact_input: ArtifactInputModel) -> ArtifactModel:
        """
        Creates or updates an artifact. createdAt and downloadCount are kept when the artifact exists.
        """
        timestamp = IsoTimestamp(datetime.now(timezone.utc).isoformat())
        fields: dict[str, typing.Any] = {
            "id": artifact_id,
            **artifact_input.model_dump(mode="json"),
            "updatedAt": timestamp,
        }

        update_parts = [f"#{name} = :{name}" for name in fields]
        update_parts.append("#createdAt = if_not_exists(#createdAt, :updatedAt)")
        update_parts.append("#downloadCount = if_not_exists(#downloadCount, :zero)")
        expression_attribute_names = {f"#{name}": name for name in [*fields, "createdAt", "downloadCount"]}
        expression_attribute_values = {f":{name}": value for name, value in fields.items()}
        expression_attribute_values[":zero"] = 0

        try:
            response = self.table.update_item(
                Key={"artifactId": artifact_id},
                UpdateExpression="SET " + ", ".join(update_parts),
                ExpressionAttributeNames=expression_attribute_names,
                ExpressionAttributeValues=expression_attribute_values,
                ReturnValues="ALL_NEW",
            )
            _LOGGER.info(f"Saved artifact {artifact_id} for level {artifact_input.levelId}")
            return ArtifactModel.model_validate(response["Attributes"])
        except ClientError as e:
            _LOGGER.error(f"Failed to save artifact {artifact_id}: {e.response['Error']['Message']}")
            raise

    def delete_artifact(self, artifact_id: ArtifactId) -> bool:
        try:
            response = self.table.delete_item(Key={"artifactId": artifact_id}, ReturnValues="ALL_OLD")
            return bool(response.get("Attributes"))
        except ClientError as e:
            _LOGGER.error(f"Failed to delete artifact {artifact_id}: {e.response['Error']['Message']}")
            raise
