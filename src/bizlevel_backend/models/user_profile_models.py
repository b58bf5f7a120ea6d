import typing

import pydantic

from bizlevel_backend.models.level_models import LevelSummaryModel, SkillType
from bizlevel_backend.models.user_progress_models import BadgeModel
from bizlevel_backend.utils.base_types import IsoTimestamp, UserId

UserRole = typing.Literal["user", "admin"]
LanguageType = typing.Literal["english", "russian"]


class UserPreferencesModel(pydantic.BaseModel):
    """
    Every recognised user preference and its type. Unknown keys are rejected.
    """

    language: LanguageType = "english"
    emailNotifications: bool = True
    appNotifications: bool = True
    darkMode: bool = False

    model_config = pydantic.ConfigDict(extra="forbid")


class UserPreferencesUpdateModel(pydantic.BaseModel):
    """Partial update body for PUT /profile/preferences; omitted keys keep their value."""

    language: typing.Optional[LanguageType] = None
    emailNotifications: typing.Optional[bool] = None
    appNotifications: typing.Optional[bool] = None
    darkMode: typing.Optional[bool] = None

    model_config = pydantic.ConfigDict(extra="forbid")


class UserProfileUpdateModel(pydantic.BaseModel):
    """Body of PUT /profile."""

    displayName: str = pydantic.Field(..., min_length=1, max_length=100)

    model_config = pydantic.ConfigDict(extra="forbid")


class UserProfileModel(pydantic.BaseModel):
    """
    Pydantic model representing a user profile stored in DynamoDB.
    Contains user-level metadata such as role, timestamps, and preferences.
    """

    userId: UserId = pydantic.Field(description="Partition Key - id supplied by the auth provider")
    displayName: typing.Optional[str] = None
    role: UserRole = "user"
    createdAt: typing.Optional[IsoTimestamp] = pydantic.Field(
        default=None, description="ISO8601 timestamp of when the profile was created"
    )
    lastLoginAt: typing.Optional[IsoTimestamp] = pydantic.Field(
        default=None, description="ISO8601 timestamp of most recent login"
    )
    preferences: typing.Optional[UserPreferencesModel] = pydantic.Field(
        default=None, description="Stored preferences; None means all defaults"
    )

    def effective_preferences(self) -> UserPreferencesModel:
        return self.preferences or UserPreferencesModel()


class SkillInfoModel(pydantic.BaseModel):
    type: SkillType
    displayName: str
    description: str
    color: str


class SkillProgressEntryModel(SkillInfoModel):
    progress: int = pydantic.Field(..., ge=0, le=100)


class SkillRecommendationModel(SkillProgressEntryModel):
    recommendedLevels: list[LevelSummaryModel] = pydantic.Field(default_factory=list)


class ProfileResponseModel(pydantic.BaseModel):
    userId: UserId
    displayName: typing.Optional[str] = None
    role: UserRole
    preferences: UserPreferencesModel
    lastLoginAt: typing.Optional[IsoTimestamp] = None
    overallPercentage: int
    completedCount: int
    totalLevels: int
    skills: list[SkillProgressEntryModel]
    maxSkillProgress: dict[SkillType, int] = pydantic.Field(
        default_factory=dict, description="Best percentage per skill reachable with the current catalog"
    )
    topSkills: list[SkillProgressEntryModel]
    recommendations: list[SkillRecommendationModel]
    badges: list[BadgeModel]
