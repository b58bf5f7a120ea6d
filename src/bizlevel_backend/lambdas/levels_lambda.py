import logging
import re
import typing

from bizlevel_backend.models.level_models import ArtifactFileType
from bizlevel_backend.progress.errors import ProgressError
from bizlevel_backend.progress.progress_service import ProgressService, build_progress_service
from bizlevel_backend.utils.apig_utils import (
    ErrorCode,
    create_error_response,
    create_progress_error_response,
    format_lambda_response,
    get_method,
    get_path,
    get_query_string_parameters,
    get_user_id_from_event,
)
from bizlevel_backend.utils.base_types import LevelId, UserId

_LOGGER = logging.getLogger(__name__)
_LOGGER.setLevel(logging.INFO)

_LEVEL_DETAIL_PATH = re.compile(r"^/levels/(?P<level_id>[^/]+)$")
_FILE_TYPES: tuple[str, ...] = typing.get_args(ArtifactFileType)


class LevelsApiHandler:
    """Read-only views of the course catalog, personalised with the caller's progress."""

    def __init__(self, progress_service: ProgressService):
        self.progress_service = progress_service

    def _handle_list_levels(self, event: dict, user_id: UserId) -> dict:
        response_model = self.progress_service.list_levels(user_id)
        return format_lambda_response(200, response_model.model_dump(mode="json", exclude_none=True), event=event)

    def _handle_get_level(self, event: dict, user_id: UserId, level_id: LevelId) -> dict:
        _LOGGER.info(f"Fetching level {level_id} for user {user_id}")
        response_model = self.progress_service.get_level_detail(user_id, level_id)
        return format_lambda_response(200, response_model.model_dump(mode="json", exclude_none=True), event=event)

    def _handle_list_artifacts(self, event: dict, user_id: UserId) -> dict:
        query_params = get_query_string_parameters(event)
        level_id = query_params.get("levelId") or None
        file_type = query_params.get("fileType") or None
        if file_type is not None and file_type not in _FILE_TYPES:
            return create_error_response(
                ErrorCode.VALIDATION_ERROR,
                f"fileType must be one of: {', '.join(_FILE_TYPES)}",
                event=event,
            )

        response_model = self.progress_service.list_artifacts(
            user_id,
            level_id=LevelId(level_id) if level_id else None,
            file_type=typing.cast(typing.Optional[ArtifactFileType], file_type),
        )
        return format_lambda_response(200, response_model.model_dump(mode="json", exclude_none=True), event=event)

    def handle(self, event: dict) -> dict:
        user_id = get_user_id_from_event(event)
        if not user_id:
            return create_error_response(ErrorCode.AUTHENTICATION_FAILED, event=event)

        http_method = get_method(event).upper()
        path = get_path(event)

        _LOGGER.info(f"LevelsApiHandler: {http_method} {path} for user: {user_id}")

        try:
            if http_method == "GET" and path == "/levels":
                return self._handle_list_levels(event, user_id)
            elif http_method == "GET" and path == "/artifacts":
                return self._handle_list_artifacts(event, user_id)

            detail_match = _LEVEL_DETAIL_PATH.match(path)
            if http_method == "GET" and detail_match:
                return self._handle_get_level(event, user_id, LevelId(detail_match.group("level_id")))

            _LOGGER.warning(f"Unsupported path or method for Levels: {http_method} {path}")
            return create_error_response(ErrorCode.RESOURCE_NOT_FOUND, event=event)

        except ProgressError as e:
            _LOGGER.info(f"Levels request {http_method} {path} for {user_id} rejected: {e.message}")
            return create_progress_error_response(e, event=event)
        except Exception as e:
            _LOGGER.error(f"Unexpected error in LevelsApiHandler for user {user_id}: {str(e)}", exc_info=True)
            return create_error_response(ErrorCode.INTERNAL_ERROR, event=event)


def levels_lambda_handler(event: dict[str, typing.Any], context: typing.Any) -> dict[str, typing.Any]:
    _LOGGER.debug("Global levels_lambda_handler received event.")

    try:
        api_handler = LevelsApiHandler(progress_service=build_progress_service())
        return api_handler.handle(event)

    except ValueError as ve:
        _LOGGER.critical(f"Configuration error in levels_lambda_handler: {str(ve)}", exc_info=True)
        return create_error_response(ErrorCode.INTERNAL_ERROR, "Server configuration error")
    except Exception as e:
        _LOGGER.critical(f"Error during LevelsApiHandler: {str(e)}", exc_info=True)
        return create_error_response(ErrorCode.INTERNAL_ERROR)
