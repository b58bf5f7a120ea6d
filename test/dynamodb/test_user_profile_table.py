import typing

import pytest
from moto import mock_aws

from bizlevel_backend.dynamodb.user_profile_table import UserProfileTable
from bizlevel_backend.models.user_profile_models import UserPreferencesModel, UserPreferencesUpdateModel
from bizlevel_backend.utils.base_types import UserId

from test_utils.dynamodb import create_table

TABLE_NAME = "UserProfileTable"


@pytest.fixture
def user_profile_table(aws_credentials) -> typing.Iterator[UserProfileTable]:
    """Returns a UserProfileTable instance using the mocked table."""
    with mock_aws():
        create_table(TABLE_NAME, [("userId", "HASH")])
        yield UserProfileTable(TABLE_NAME)


# Helper to cast strings to UserId for test readability
def as_userid(s: str) -> UserId:
    return UserId(s)


def test_get_profile_not_exists(user_profile_table: UserProfileTable):
    assert user_profile_table.get_profile(as_userid("nobody")) is None


def test_create_profile_sets_created_at_once(user_profile_table: UserProfileTable):
    user_id = as_userid("user1")

    assert user_profile_table.create_or_update_profile(user_id, display_name="Aida") is True
    created = user_profile_table.get_profile(user_id)
    assert created.displayName == "Aida"
    assert created.role == "user"
    assert created.createdAt is not None
    assert created.preferences is None

    user_profile_table.create_or_update_profile(user_id, display_name="Aida K.")
    updated = user_profile_table.get_profile(user_id)
    assert updated.displayName == "Aida K."
    assert updated.createdAt == created.createdAt


def test_create_or_update_profile_no_fields(user_profile_table: UserProfileTable):
    assert user_profile_table.create_or_update_profile(as_userid("user2")) is False
    assert user_profile_table.get_profile(as_userid("user2")) is None


def test_update_preferences_merges_with_defaults(user_profile_table: UserProfileTable):
    user_id = as_userid("user3")

    merged = user_profile_table.update_preferences(user_id, UserPreferencesUpdateModel(darkMode=True))
    assert merged == UserPreferencesModel(darkMode=True)

    merged = user_profile_table.update_preferences(user_id, UserPreferencesUpdateModel(language="russian"))
    assert merged.darkMode is True
    assert merged.language == "russian"
    assert merged.emailNotifications is True

    assert user_profile_table.get_profile(user_id).effective_preferences() == merged


def test_update_last_login(user_profile_table: UserProfileTable):
    user_id = as_userid("user4")
    timestamp = user_profile_table.update_last_login(user_id)
    assert user_profile_table.get_profile(user_id).lastLoginAt == timestamp


def test_is_admin(user_profile_table: UserProfileTable):
    # Roles are provisioned directly in the table
    user_profile_table.table.put_item(Item={"userId": "admin", "role": "admin"})
    user_profile_table.table.put_item(Item={"userId": "member", "role": "user"})

    assert user_profile_table.is_admin(as_userid("admin")) is True
    assert user_profile_table.is_admin(as_userid("member")) is False
    assert user_profile_table.is_admin(as_userid("stranger")) is False
