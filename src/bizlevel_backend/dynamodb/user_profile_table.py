import logging
import typing
from datetime import datetime, timezone

from botocore.exceptions import ClientError
from pydantic import ValidationError

from bizlevel_backend.models.user_profile_models import (
    UserPreferencesModel,
    UserPreferencesUpdateModel,
    UserProfileModel,
)
from bizlevel_backend.utils.base_types import IsoTimestamp, UserId
from bizlevel_backend.utils.boto_utils import get_dynamodb_resource

_LOGGER = logging.getLogger(__name__)
_LOGGER.setLevel(logging.INFO)


class UserProfileTable:
    """
    Data Abstraction Layer for interacting with the UserProfile DynamoDB table.
    Manages user-level metadata such as display name, timestamps, and preferences.
    The role attribute is provisioned directly in the table and only read here.

    Table Schema:
      - PK: userId (id supplied by the auth provider)
    """

    def __init__(self, table_name: str) -> None:
        self.client = get_dynamodb_resource()
        self.table = self.client.Table(table_name)

    def get_profile(self, user_id: UserId) -> typing.Optional[UserProfileModel]:
        """
        Retrieves a user's profile from DynamoDB.

        :param user_id: The ID of the user.
        :return: UserProfileModel instance if found, else None.
        """
        _LOGGER.debug(f"Fetching profile for user_id: {user_id}")
        try:
            response = self.table.get_item(Key={"userId": user_id})
            item_data = response.get("Item")
            if item_data:
                return UserProfileModel.model_validate(item_data)
            _LOGGER.debug(f"No profile found for user_id: {user_id}")
            return None
        except ClientError as e:
            _LOGGER.error(f"Failed to get profile for user_id {user_id}: {e.response['Error']['Message']}")
            raise
        except ValidationError as ve:
            _LOGGER.error(f"Failed to validate profile data for user_id {user_id}: {ve}", exc_info=True)
            return None

    def create_or_update_profile(
        self,
        user_id: UserId,
        display_name: typing.Optional[str] = None,
        last_login_at: typing.Optional[IsoTimestamp] = None,
        preferences: typing.Optional[UserPreferencesModel] = None,
    ) -> bool:
        """
        Creates or updates a user profile in DynamoDB.
        Only provided fields will be updated; None values are ignored. createdAt is set on first write.

        :param user_id: The ID of the user.
        :param display_name: Name shown in the UI.
        :param last_login_at: ISO timestamp of most recent login.
        :param preferences: The full, validated preferences record.
        :return: True if successful, False if there was nothing to update.
        """
        _LOGGER.info(f"Creating/updating profile for user_id: {user_id}")

        update_parts = ["#createdAt = if_not_exists(#createdAt, :now)"]
        expression_attribute_names = {"#createdAt": "createdAt"}
        expression_attribute_values: dict[str, typing.Any] = {
            ":now": IsoTimestamp(datetime.now(timezone.utc).isoformat())
        }

        fields: dict[str, typing.Any] = {
            "displayName": display_name,
            "lastLoginAt": last_login_at,
            "preferences": preferences.model_dump(mode="json") if preferences is not None else None,
        }
        for name, value in fields.items():
            if value is None:
                continue
            update_parts.append(f"#{name} = :{name}")
            expression_attribute_names[f"#{name}"] = name
            expression_attribute_values[f":{name}"] = value

        if len(update_parts) == 1:
            _LOGGER.warning(f"No fields provided to update for user_id {user_id}")
            return False

        update_expression = "SET " + ", ".join(update_parts)

        try:
            self.table.update_item(
                Key={"userId": user_id},
                UpdateExpression=update_expression,
                ExpressionAttributeNames=expression_attribute_names,
                ExpressionAttributeValues=expression_attribute_values,
            )
            _LOGGER.info(f"Successfully updated profile for user_id: {user_id}")
            return True
        except ClientError as e:
            _LOGGER.error(
                f"Error updating profile for user_id {user_id}: {e.response['Error']['Message']}", exc_info=True
            )
            raise

    def update_preferences(self, user_id: UserId, update: UserPreferencesUpdateModel) -> UserPreferencesModel:
        """
        Merges the provided preference keys into the stored (or default) preferences and saves the result.
        """
        profile = self.get_profile(user_id)
        current = profile.effective_preferences() if profile else UserPreferencesModel()
        merged = current.model_copy(update=update.model_dump(exclude_none=True))
        self.create_or_update_profile(user_id=user_id, preferences=merged)
        _LOGGER.info(f"Preferences of user {user_id} now {merged.model_dump()}")
        return merged

    def update_last_login(self, user_id: UserId) -> IsoTimestamp:
        timestamp = IsoTimestamp(datetime.now(timezone.utc).isoformat())
        self.create_or_update_profile(user_id=user_id, last_login_at=timestamp)
        return timestamp

    def is_admin(self, user_id: UserId) -> bool:
        profile = self.get_profile(user_id)
        return profile is not None and profile.role == "admin"
