import logging
import re
import typing

from botocore.exceptions import BotoCoreError, ClientError
from pydantic import ValidationError

from bizlevel_backend.dynamodb.artifacts_table import ArtifactsTable
from bizlevel_backend.dynamodb.levels_table import LevelsTable
from bizlevel_backend.dynamodb.user_profile_table import UserProfileTable
from bizlevel_backend.models.artifact_models import ArtifactInputModel
from bizlevel_backend.models.level_models import LevelModel
from bizlevel_backend.progress.level_catalog import LevelCatalog
from bizlevel_backend.utils.apig_utils import (
    ErrorCode,
    create_error_response,
    format_lambda_response,
    get_method,
    get_path,
    get_user_id_from_event,
)
from bizlevel_backend.utils.aws_env_vars import (
    get_artifacts_table_name,
    get_levels_table_name,
    get_user_profile_table_name,
)
from bizlevel_backend.utils.base_types import ArtifactId, LevelId, UserId

_LOGGER = logging.getLogger(__name__)
_LOGGER.setLevel(logging.INFO)

_ADMIN_PATH = re.compile(r"^/admin/(?P<collection>levels|artifacts)(?:/(?P<item_id>[^/]+))?$")


def _validation_error_response(e: ValidationError, event: dict) -> dict:
    _LOGGER.error(f"Admin request body validation error: {e.errors()}")
    return create_error_response(
        ErrorCode.VALIDATION_ERROR,
        details=e.errors(include_url=False, include_context=False, include_input=False),
        event=event,
    )


class AdminApiHandler:
    """
    Catalog and artifact library management. Only users whose profile role is "admin" may call it.
    """

    def __init__(
        self,
        user_profile_table: UserProfileTable,
        levels_table: LevelsTable,
        artifacts_table: ArtifactsTable,
    ):
        self.user_profile_table = user_profile_table
        self.levels_table = levels_table
        self.artifacts_table = artifacts_table

    # Levels

    def _handle_list_levels(self, event: dict) -> dict:
        levels = self.levels_table.get_all_levels()
        return format_lambda_response(
            200, {"levels": [level.model_dump(mode="json", exclude_none=True) for level in levels]}, event=event
        )

    def _handle_get_level(self, event: dict, level_id: LevelId) -> dict:
        level = self.levels_table.get_level(level_id)
        if level is None:
            return create_error_response(ErrorCode.RESOURCE_NOT_FOUND, f"Unknown level id: {level_id}", event=event)
        return format_lambda_response(200, level.model_dump(mode="json", exclude_none=True), event=event)

    def _handle_put_level(self, event: dict, level_id: LevelId) -> dict:
        raw_body = event.get("body")
        if not raw_body:
            return create_error_response(ErrorCode.VALIDATION_ERROR, "Request body is missing.", event=event)
        try:
            level = LevelModel.model_validate_json(raw_body)
        except ValidationError as e:
            return _validation_error_response(e, event)

        if level.id != level_id:
            return create_error_response(
                ErrorCode.VALIDATION_ERROR, f"Body id {level.id} does not match path id {level_id}", event=event
            )

        others = [existing for existing in self.levels_table.get_all_levels() if existing.id != level.id]
        for existing in others:
            if existing.order == level.order:
                _LOGGER.warning(f"Rejected level {level.id}: order {level.order} already used by {existing.id}")
                return create_error_response(
                    ErrorCode.VALIDATION_ERROR,
                    f"Order {level.order} is already used by level {existing.id}",
                    event=event,
                )

        # Level orders stay exactly 1..N
        if not LevelCatalog(others + [level]).is_dense():
            _LOGGER.warning(f"Rejected level {level.id}: order {level.order} leaves a gap in the catalog")
            return create_error_response(
                ErrorCode.VALIDATION_ERROR,
                f"Order {level.order} must be between 1 and {len(others) + 1} with no gaps",
                event=event,
            )

        self.levels_table.put_level(level)
        return format_lambda_response(200, level.model_dump(mode="json", exclude_none=True), event=event)

    def _handle_delete_level(self, event: dict, level_id: LevelId) -> dict:
        levels = self.levels_table.get_all_levels()
        if level_id not in [level.id for level in levels]:
            return create_error_response(ErrorCode.RESOURCE_NOT_FOUND, f"Unknown level id: {level_id}", event=event)
        last = max(levels, key=lambda level: level.order)
        if last.id != level_id:
            _LOGGER.warning(f"Rejected deletion of level {level_id}: only the last level {last.id} can be deleted")
            return create_error_response(
                ErrorCode.VALIDATION_ERROR,
                f"Only the last level ({last.id}) can be deleted",
                event=event,
            )

        if not self.levels_table.delete_level(level_id):
            return create_error_response(ErrorCode.RESOURCE_NOT_FOUND, f"Unknown level id: {level_id}", event=event)
        return format_lambda_response(200, {"levelId": level_id, "deleted": True}, event=event)

    # Artifacts

    def _handle_list_artifacts(self, event: dict) -> dict:
        artifacts = self.artifacts_table.list_artifacts()
        return format_lambda_response(
            200,
            {"artifacts": [artifact.model_dump(mode="json", exclude_none=True) for artifact in artifacts]},
            event=event,
        )

    def _handle_get_artifact(self, event: dict, artifact_id: ArtifactId) -> dict:
        artifact = self.artifacts_table.get_artifact(artifact_id)
        if artifact is None:
            return create_error_response(
                ErrorCode.RESOURCE_NOT_FOUND, f"Unknown artifact id: {artifact_id}", event=event
            )
        return format_lambda_response(200, artifact.model_dump(mode="json", exclude_none=True), event=event)

    def _handle_put_artifact(self, event: dict, artifact_id: ArtifactId) -> dict:
        raw_body = event.get("body")
        if not raw_body:
            return create_error_response(ErrorCode.VALIDATION_ERROR, "Request body is missing.", event=event)
        try:
            artifact_input = ArtifactInputModel.model_validate_json(raw_body)
        except ValidationError as e:
            return _validation_error_response(e, event)

        if self.levels_table.get_level(artifact_input.levelId) is None:
            return create_error_response(
                ErrorCode.VALIDATION_ERROR, f"Unknown level id: {artifact_input.levelId}", event=event
            )

        artifact = self.artifacts_table.save_artifact(artifact_id, artifact_input)
        return format_lambda_response(200, artifact.model_dump(mode="json", exclude_none=True), event=event)

    def _handle_delete_artifact(self, event: dict, artifact_id: ArtifactId) -> dict:
        if not self.artifacts_table.delete_artifact(artifact_id):
            return create_error_response(
                ErrorCode.RESOURCE_NOT_FOUND, f"Unknown artifact id: {artifact_id}", event=event
            )
        return format_lambda_response(200, {"artifactId": artifact_id, "deleted": True}, event=event)

    def _route(self, event: dict, http_method: str, path: str) -> typing.Optional[dict]:
        match = _ADMIN_PATH.match(path)
        if not match:
            return None
        collection = match.group("collection")
        item_id = match.group("item_id")

        if collection == "levels":
            if item_id is None:
                return self._handle_list_levels(event) if http_method == "GET" else None
            level_id = LevelId(item_id)
            if http_method == "GET":
                return self._handle_get_level(event, level_id)
            elif http_method == "PUT":
                return self._handle_put_level(event, level_id)
            elif http_method == "DELETE":
                return self._handle_delete_level(event, level_id)
        else:
            if item_id is None:
                return self._handle_list_artifacts(event) if http_method == "GET" else None
            artifact_id = ArtifactId(item_id)
            if http_method == "GET":
                return self._handle_get_artifact(event, artifact_id)
            elif http_method == "PUT":
                return self._handle_put_artifact(event, artifact_id)
            elif http_method == "DELETE":
                return self._handle_delete_artifact(event, artifact_id)
        return None

    def handle(self, event: dict) -> dict:
        user_id: typing.Optional[UserId] = get_user_id_from_event(event)
        if not user_id:
            return create_error_response(ErrorCode.AUTHENTICATION_FAILED, event=event)

        http_method = get_method(event).upper()
        path = get_path(event)

        _LOGGER.info(f"AdminApiHandler: {http_method} {path} for user: {user_id}")

        try:
            if not self.user_profile_table.is_admin(user_id):
                _LOGGER.warning(f"User {user_id} is not an admin. Denying {http_method} {path}")
                return create_error_response(ErrorCode.AUTHORIZATION_FAILED, event=event)

            response = self._route(event, http_method, path)
            if response is None:
                _LOGGER.warning(f"Unsupported path or method for Admin: {http_method} {path}")
                return create_error_response(ErrorCode.RESOURCE_NOT_FOUND, event=event)
            return response

        except (ClientError, BotoCoreError) as e:
            _LOGGER.error(f"Admin store failure for user {user_id}: {str(e)}", exc_info=True)
            return create_error_response(ErrorCode.STORE_UNAVAILABLE, event=event)
        except Exception as e:
            _LOGGER.error(f"Unexpected error in AdminApiHandler for user {user_id}: {str(e)}", exc_info=True)
            return create_error_response(ErrorCode.INTERNAL_ERROR, event=event)


def admin_lambda_handler(event: dict[str, typing.Any], context: typing.Any) -> dict[str, typing.Any]:
    _LOGGER.debug("Global admin_lambda_handler received event.")

    try:
        api_handler = AdminApiHandler(
            user_profile_table=UserProfileTable(get_user_profile_table_name()),
            levels_table=LevelsTable(get_levels_table_name()),
            artifacts_table=ArtifactsTable(get_artifacts_table_name()),
        )
        return api_handler.handle(event)

    except ValueError as ve:
        _LOGGER.critical(f"Configuration error in admin_lambda_handler: {str(ve)}", exc_info=True)
        return create_error_response(ErrorCode.INTERNAL_ERROR, "Server configuration error")
    except Exception as e:
        _LOGGER.critical(f"Error during AdminApiHandler: {str(e)}", exc_info=True)
        return create_error_response(ErrorCode.INTERNAL_ERROR)
