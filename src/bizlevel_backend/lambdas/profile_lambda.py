import logging
import typing

from botocore.exceptions import BotoCoreError, ClientError
from pydantic import ValidationError

from bizlevel_backend.dynamodb.user_profile_table import UserProfileTable
from bizlevel_backend.models.level_models import LevelStatus
from bizlevel_backend.models.user_profile_models import (
    ProfileResponseModel,
    UserPreferencesModel,
    UserPreferencesUpdateModel,
    UserProfileUpdateModel,
)
from bizlevel_backend.progress.errors import ProgressError
from bizlevel_backend.progress.progress_service import ProgressService, build_progress_service
from bizlevel_backend.progress.skill_model import (
    calculate_max_skill_progress,
    format_skill_progress,
    get_dominant_skills,
    get_skill_recommendations,
)
from bizlevel_backend.utils.apig_utils import (
    ErrorCode,
    create_error_response,
    create_progress_error_response,
    format_lambda_response,
    get_method,
    get_path,
    get_user_id_from_event,
)
from bizlevel_backend.utils.aws_env_vars import get_user_profile_table_name
from bizlevel_backend.utils.base_types import UserId

_LOGGER = logging.getLogger(__name__)
_LOGGER.setLevel(logging.INFO)


class ProfileApiHandler:
    def __init__(self, progress_service: ProgressService, user_profile_table: UserProfileTable):
        self.progress_service = progress_service
        self.user_profile_table = user_profile_table

    def _handle_get_profile(self, event: dict, user_id: UserId) -> dict:
        profile = self.user_profile_table.get_profile(user_id)
        summary = self.progress_service.get_progress_summary(user_id)
        catalog = self.progress_service.get_catalog()

        statuses = {entry.levelId: entry.status for entry in summary.levels}
        completed_ids = [level_id for level_id, status in statuses.items() if status == LevelStatus.COMPLETED]

        response_model = ProfileResponseModel(
            userId=user_id,
            displayName=profile.displayName if profile else None,
            role=profile.role if profile else "user",
            preferences=profile.effective_preferences() if profile else UserPreferencesModel(),
            lastLoginAt=profile.lastLoginAt if profile else None,
            overallPercentage=summary.overallPercentage,
            completedCount=summary.completedCount,
            totalLevels=summary.totalLevels,
            skills=format_skill_progress(summary.skillProgress),
            maxSkillProgress=calculate_max_skill_progress(catalog),
            topSkills=get_dominant_skills(summary.skillProgress),
            recommendations=get_skill_recommendations(summary.skillProgress, completed_ids, catalog, statuses),
            badges=summary.badges,
        )
        return format_lambda_response(200, response_model.model_dump(mode="json", exclude_none=True), event=event)

    def _handle_put_profile(self, event: dict, user_id: UserId) -> dict:
        raw_body = event.get("body")
        if not raw_body:
            return create_error_response(ErrorCode.VALIDATION_ERROR, "Request body is missing.", event=event)

        try:
            update = UserProfileUpdateModel.model_validate_json(raw_body)
        except ValidationError as e:
            _LOGGER.error(f"Profile update validation error: {e.errors()}")
            return create_error_response(
                ErrorCode.VALIDATION_ERROR,
                details=e.errors(include_url=False, include_context=False, include_input=False),
                event=event,
            )

        self.user_profile_table.create_or_update_profile(user_id, display_name=update.displayName)
        return format_lambda_response(200, {"displayName": update.displayName}, event=event)

    def _handle_record_login(self, event: dict, user_id: UserId) -> dict:
        timestamp = self.user_profile_table.update_last_login(user_id)
        return format_lambda_response(200, {"lastLoginAt": timestamp}, event=event)

    def _handle_put_preferences(self, event: dict, user_id: UserId) -> dict:
        raw_body = event.get("body")
        if not raw_body:
            _LOGGER.error("Request body is missing for preferences update.")
            return create_error_response(ErrorCode.VALIDATION_ERROR, "Request body is missing.", event=event)

        try:
            update = UserPreferencesUpdateModel.model_validate_json(raw_body)
        except ValidationError as e:
            _LOGGER.error(f"Preferences update validation error: {e.errors()}")
            return create_error_response(
                ErrorCode.VALIDATION_ERROR,
                details=e.errors(include_url=False, include_context=False, include_input=False),
                event=event,
            )

        preferences = self.user_profile_table.update_preferences(user_id, update)
        return format_lambda_response(200, {"preferences": preferences.model_dump(mode="json")}, event=event)

    def handle(self, event: dict) -> dict:
        user_id = get_user_id_from_event(event)
        if not user_id:
            return create_error_response(ErrorCode.AUTHENTICATION_FAILED, event=event)

        http_method = get_method(event).upper()
        path = get_path(event)

        _LOGGER.info(f"ProfileApiHandler: {http_method} {path} for user: {user_id}")

        try:
            if http_method == "GET" and path == "/profile":
                return self._handle_get_profile(event, user_id)
            elif http_method == "PUT" and path == "/profile":
                return self._handle_put_profile(event, user_id)
            elif http_method == "PUT" and path == "/profile/preferences":
                return self._handle_put_preferences(event, user_id)
            elif http_method == "POST" and path == "/profile/login":
                return self._handle_record_login(event, user_id)
            else:
                _LOGGER.warning(f"Unsupported path or method for Profile: {http_method} {path}")
                return create_error_response(ErrorCode.RESOURCE_NOT_FOUND, event=event)

        except ProgressError as e:
            return create_progress_error_response(e, event=event)
        except (ClientError, BotoCoreError) as e:
            _LOGGER.error(f"Profile store failure for user {user_id}: {str(e)}", exc_info=True)
            return create_error_response(ErrorCode.STORE_UNAVAILABLE, event=event)
        except Exception as e:
            _LOGGER.error(f"Unexpected error in ProfileApiHandler for user {user_id}: {str(e)}", exc_info=True)
            return create_error_response(ErrorCode.INTERNAL_ERROR, event=event)


def profile_lambda_handler(event: dict[str, typing.Any], context: typing.Any) -> dict[str, typing.Any]:
    _LOGGER.debug("Global profile_lambda_handler received event.")

    try:
        api_handler = ProfileApiHandler(
            progress_service=build_progress_service(),
            user_profile_table=UserProfileTable(get_user_profile_table_name()),
        )
        return api_handler.handle(event)

    except ValueError as ve:
        _LOGGER.critical(f"Configuration error in profile_lambda_handler: {str(ve)}", exc_info=True)
        return create_error_response(ErrorCode.INTERNAL_ERROR, "Server configuration error")
    except Exception as e:
        _LOGGER.critical(f"Error during ProfileApiHandler: {str(e)}", exc_info=True)
        return create_error_response(ErrorCode.INTERNAL_ERROR)
