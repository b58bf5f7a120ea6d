import logging
import time
import typing

from botocore.exceptions import ClientError
from pydantic import ValidationError

from bizlevel_backend.models.level_models import LevelModel
from bizlevel_backend.progress.level_catalog import LevelCatalog
from bizlevel_backend.utils.aws_env_vars import get_catalog_cache_ttl_seconds
from bizlevel_backend.utils.base_types import LevelId
from bizlevel_backend.utils.boto_utils import get_dynamodb_resource

_LOGGER = logging.getLogger(__name__)
_LOGGER.setLevel(logging.INFO)


class LevelsTable:
    """
    Data Abstraction Layer for the Levels (course catalog) DynamoDB table.

    Table Schema:
      - PK: levelId (String) - same value as the level's `id`

    The assembled LevelCatalog is cached per table name for the lifetime of the Lambda
    container, up to CATALOG_CACHE_TTL_SECONDS. Writes through this class drop the cache.
    """

    _cache: typing.ClassVar[dict[str, tuple[float, LevelCatalog]]] = {}

    def __init__(self, table_name: str) -> None:
        self.client = get_dynamodb_resource()
        self.table = self.client.Table(table_name)
        self.table_name = table_name

    @classmethod
    def clear_cache(cls) -> None:
        cls._cache.clear()

    def get_level(self, level_id: LevelId) -> typing.Optional[LevelModel]:
        try:
            response = self.table.get_item(Key={"levelId": level_id})
            item = response.get("Item")
            if not item:
                _LOGGER.debug(f"No level found for level_id: {level_id}")
                return None
            return LevelModel.model_validate(item)
        except ClientError as e:
            _LOGGER.error(f"Failed to get level {level_id}: {e.response['Error']['Message']}")
            raise
        except ValidationError as ve:
            _LOGGER.error(f"Failed to validate level {level_id}: {ve}", exc_info=True)
            return None

    def get_all_levels(self) -> list[LevelModel]:
        """
        Scans the whole table (the catalog is small) and returns the levels sorted by order.
        Items that fail validation are skipped.
        """
        levels: list[LevelModel] = []
        scan_kwargs: dict[str, typing.Any] = {}
        try:
            while True:
                response = self.table.scan(**scan_kwargs)
                for item in response.get("Items", []):
                    try:
                        levels.append(LevelModel.model_validate(item))
                    except ValidationError as ve:
                        _LOGGER.warning(f"Skipping invalid level item {item.get('levelId')}: {ve}")
                if "LastEvaluatedKey" not in response:
                    break
                scan_kwargs["ExclusiveStartKey"] = response["LastEvaluatedKey"]
        except ClientError as e:
            _LOGGER.error(f"Failed to scan levels table: {e.response['Error']['Message']}")
            raise

        levels.sort(key=lambda level: level.order)
        _LOGGER.info(f"Loaded {len(levels)} levels from {self.table_name}")
        return levels

    def load_catalog(self) -> LevelCatalog:
        cached = self._cache.get(self.table_name)
        if cached is not None:
            loaded_at, catalog = cached
            if time.monotonic() - loaded_at < get_catalog_cache_ttl_seconds():
                return catalog

        catalog = LevelCatalog(self.get_all_levels())
        self._cache[self.table_name] = (time.monotonic(), catalog)
        return catalog

    def put_level(self, level: LevelModel) -> None:
        item = level.model_dump(mode="json", exclude_none=True)
        item["levelId"] = level.id
        try:
            self.table.put_item(Item=item)
            _LOGGER.info(f"Saved level {level.id} (order {level.order})")
        except ClientError as e:
            _LOGGER.error(f"Failed to save level {level.id}: {e.response['Error']['Message']}")
            raise
        finally:
            self.clear_cache()

    def delete_level(self, level_id: LevelId) -> bool:
        """:return: True if a level was deleted, False if it did not exist."""
        try:
            response = self.table.delete_item(Key={"levelId": level_id}, ReturnValues="ALL_OLD")
            deleted = bool(response.get("Attributes"))
            _LOGGER.info(f"Delete level {level_id}: {'deleted' if deleted else 'not found'}")
            return deleted
        except ClientError as e:
            _LOGGER.error(f"Failed to delete level {level_id}: {e.response['Error']['Message']}")
            raise
        finally:
            self.clear_cache()
