import logging
import re
import typing

from pydantic import ValidationError

from bizlevel_backend.cloudwatch.metrics import MetricsManager
from bizlevel_backend.models.user_progress_models import (
    CompletionResultModel,
    TrackArtifactInputModel,
    TrackTestInputModel,
    TrackVideoInputModel,
)
from bizlevel_backend.progress.errors import AlreadyCompletedError, ProgressError
from bizlevel_backend.progress.progress_service import ProgressService, build_progress_service
from bizlevel_backend.utils.apig_utils import (
    ErrorCode,
    create_error_response,
    create_progress_error_response,
    format_lambda_response,
    get_method,
    get_path,
    get_user_id_from_event,
)
from bizlevel_backend.utils.base_types import LevelId, TestId, UserId

_LOGGER = logging.getLogger(__name__)
_LOGGER.setLevel(logging.INFO)

_COMPLETE_LEVEL_PATH = re.compile(r"^/progress/levels/(?P<level_id>[^/]+)/complete$")
_TEST_RESULT_PATH = re.compile(r"^/progress/tests/(?P<test_id>[^/]+)$")

InputModel = typing.TypeVar("InputModel", TrackVideoInputModel, TrackTestInputModel, TrackArtifactInputModel)


class UserProgressApiHandler:
    def __init__(self, progress_service: ProgressService, metrics_manager: typing.Optional[MetricsManager] = None):
        self.progress_service = progress_service
        self.metrics_manager = metrics_manager

    def _parse_body(self, event: dict, model: type[InputModel]) -> typing.Union[InputModel, dict]:
        """Returns the validated body, or a ready error response."""
        raw_body = event.get("body")
        if not raw_body:
            _LOGGER.error("Request body is missing for progress update.")
            return create_error_response(ErrorCode.VALIDATION_ERROR, "Request body is missing.", event=event)
        try:
            return model.model_validate_json(raw_body)
        except ValidationError as e:
            _LOGGER.error(f"Progress request body validation error: {e.errors()}")
            return create_error_response(
                ErrorCode.VALIDATION_ERROR,
                details=e.errors(include_url=False, include_context=False, include_input=False),
                event=event,
            )

    def _handle_get_progress(self, event: dict, user_id: UserId) -> dict:
        progress = self.progress_service.get_progress(user_id)
        return format_lambda_response(200, progress.model_dump(mode="json", exclude_none=True), event=event)

    def _handle_get_test_result(self, event: dict, user_id: UserId, test_id: TestId) -> dict:
        result = self.progress_service.get_test_result(user_id, test_id)
        return format_lambda_response(200, result.model_dump(mode="json", exclude_none=True), event=event)

    def _handle_get_summary(self, event: dict, user_id: UserId) -> dict:
        summary = self.progress_service.get_progress_summary(user_id)
        return format_lambda_response(200, summary.model_dump(mode="json", exclude_none=True), event=event)

    def _handle_track_video(self, event: dict, user_id: UserId) -> dict:
        body = self._parse_body(event, TrackVideoInputModel)
        if isinstance(body, dict):
            return body
        result = self.progress_service.track_video_watched(user_id, body.videoId)
        return format_lambda_response(200, result.model_dump(mode="json", exclude_none=True), event=event)

    def _handle_track_test(self, event: dict, user_id: UserId) -> dict:
        body = self._parse_body(event, TrackTestInputModel)
        if isinstance(body, dict):
            return body
        result = self.progress_service.track_test_completed(user_id, body.testId, body.score, body.answers)
        return format_lambda_response(200, result.model_dump(mode="json", exclude_none=True), event=event)

    def _handle_track_artifact(self, event: dict, user_id: UserId) -> dict:
        body = self._parse_body(event, TrackArtifactInputModel)
        if isinstance(body, dict):
            return body
        result = self.progress_service.track_artifact_downloaded(user_id, body.artifactId)
        return format_lambda_response(200, result.model_dump(mode="json", exclude_none=True), event=event)

    def _handle_complete_level(self, event: dict, user_id: UserId, level_id: LevelId) -> dict:
        try:
            result = self.progress_service.complete_level(user_id, level_id)
        except AlreadyCompletedError:
            _LOGGER.info(f"Level {level_id} was already completed by {user_id}. Returning current progress.")
            result = CompletionResultModel(progress=self.progress_service.get_progress(user_id), alreadyCompleted=True)
        return format_lambda_response(200, result.model_dump(mode="json", exclude_none=True), event=event)

    def _handle_reset(self, event: dict, user_id: UserId) -> dict:
        progress = self.progress_service.reset_progress(user_id)
        return format_lambda_response(200, progress.model_dump(mode="json", exclude_none=True), event=event)

    def _route(self, event: dict, user_id: UserId, http_method: str, path: str) -> dict:
        if http_method == "GET" and path == "/progress":
            return self._handle_get_progress(event, user_id)
        elif http_method == "GET" and path == "/progress/summary":
            return self._handle_get_summary(event, user_id)
        elif http_method == "PUT" and path == "/progress/videos":
            return self._handle_track_video(event, user_id)
        elif http_method == "PUT" and path == "/progress/tests":
            return self._handle_track_test(event, user_id)
        elif http_method == "PUT" and path == "/progress/artifacts":
            return self._handle_track_artifact(event, user_id)
        elif http_method == "DELETE" and path == "/progress":
            return self._handle_reset(event, user_id)

        complete_match = _COMPLETE_LEVEL_PATH.match(path)
        if http_method == "POST" and complete_match:
            return self._handle_complete_level(event, user_id, LevelId(complete_match.group("level_id")))

        result_match = _TEST_RESULT_PATH.match(path)
        if http_method == "GET" and result_match:
            return self._handle_get_test_result(event, user_id, TestId(result_match.group("test_id")))

        _LOGGER.warning(f"Unsupported path or method for User Progress: {http_method} {path}")
        return create_error_response(ErrorCode.RESOURCE_NOT_FOUND, event=event)

    def handle(self, event: dict) -> dict:
        user_id = get_user_id_from_event(event)
        if not user_id:
            return create_error_response(ErrorCode.AUTHENTICATION_FAILED, event=event)

        http_method = get_method(event).upper()
        path = get_path(event)

        _LOGGER.info(f"UserProgressApiHandler: {http_method} {path} for user: {user_id}")

        try:
            return self._route(event, user_id, http_method, path)
        except ProgressError as e:
            _LOGGER.info(f"Progress request {http_method} {path} for {user_id} rejected: {e.message}")
            return create_progress_error_response(e, event=event)
        except Exception as e:
            _LOGGER.error(f"Unexpected error in UserProgressApiHandler for user {user_id}: {str(e)}", exc_info=True)
            return create_error_response(ErrorCode.INTERNAL_ERROR, event=event)
        finally:
            if self.metrics_manager is not None:
                self.metrics_manager.flush()


def user_progress_lambda_handler(event: dict[str, typing.Any], context: typing.Any) -> dict[str, typing.Any]:
    _LOGGER.debug("Global user_progress_lambda_handler received event.")

    try:
        metrics_manager = MetricsManager()
        metrics_manager.set_dimension("Service", "UserProgress")
        api_handler = UserProgressApiHandler(
            progress_service=build_progress_service(metrics_manager),
            metrics_manager=metrics_manager,
        )
        return api_handler.handle(event)

    except ValueError as ve:
        _LOGGER.critical(f"Configuration error in user_progress_lambda_handler: {str(ve)}", exc_info=True)
        return create_error_response(ErrorCode.INTERNAL_ERROR, "Server configuration error")
    except Exception as e:
        _LOGGER.critical(f"Error during UserProgressApiHandler: {str(e)}", exc_info=True)
        return create_error_response(ErrorCode.INTERNAL_ERROR)
