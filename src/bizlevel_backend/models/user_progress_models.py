import typing

import pydantic
from pydantic import BaseModel, Field

from bizlevel_backend.models.level_models import LevelStatus, SkillType
from bizlevel_backend.utils.base_types import (
    ArtifactId,
    BadgeId,
    IsoTimestamp,
    LevelId,
    QuestionId,
    TestId,
    UserId,
    VideoId,
)

ProgressSetField = typing.Literal["watchedVideos", "completedTests", "downloadedArtifacts"]


def empty_skill_progress() -> dict[SkillType, int]:
    return {skill: 0 for skill in SkillType}


class BadgeModel(BaseModel):
    id: BadgeId
    name: str
    description: str
    achieved: bool = True
    achievedAt: typing.Optional[IsoTimestamp] = None


class UserProgressModel(BaseModel):
    """
    The single mutable progress record of a user (PK: userId).
    List fields hold unique ids; membership is what matters, not order.
    """

    userId: UserId
    completedLevels: list[LevelId] = Field(default_factory=list)
    currentLevel: LevelId
    skillProgress: dict[SkillType, int] = Field(default_factory=empty_skill_progress)
    badges: list[BadgeModel] = Field(default_factory=list)
    downloadedArtifacts: list[ArtifactId] = Field(default_factory=list)
    watchedVideos: list[VideoId] = Field(default_factory=list)
    completedTests: list[TestId] = Field(default_factory=list)
    lastUpdated: IsoTimestamp
    version: int = Field(default=0, ge=0, description="Bumped by every level completion and every reset")

    def has_badge(self, badge_id: BadgeId) -> bool:
        return any(badge.id == badge_id for badge in self.badges)


class TrackVideoInputModel(BaseModel):
    videoId: VideoId

    model_config = pydantic.ConfigDict(extra="forbid")


class TestAnswerInputModel(BaseModel):
    questionId: QuestionId
    answeredOption: int = Field(..., ge=0)


class TrackTestInputModel(BaseModel):
    testId: TestId
    score: int = Field(..., ge=0, le=100)
    answers: list[TestAnswerInputModel] = Field(default_factory=list)

    model_config = pydantic.ConfigDict(extra="forbid")


class TrackArtifactInputModel(BaseModel):
    artifactId: ArtifactId

    model_config = pydantic.ConfigDict(extra="forbid")


class TestAnswerResultModel(BaseModel):
    questionId: QuestionId
    answeredOption: int
    isCorrect: bool


class TestResultModel(BaseModel):
    """A recorded quiz attempt (PK: userId, SK: testId). Written once, never used for gating."""

    userId: UserId
    testId: TestId
    score: int = Field(..., ge=0, le=100)
    answers: list[TestAnswerResultModel] = Field(default_factory=list)
    completedAt: IsoTimestamp


class TrackingResultModel(BaseModel):
    recorded: bool = Field(description="False when the item had already been recorded")
    progress: UserProgressModel


class CompletionResultModel(BaseModel):
    progress: UserProgressModel
    newBadges: list[BadgeModel] = Field(default_factory=list)
    alreadyCompleted: bool = False


class LevelStatusEntryModel(BaseModel):
    levelId: LevelId
    order: int
    status: LevelStatus


class ProgressSummaryModel(BaseModel):
    userId: UserId
    currentLevel: LevelId
    levels: list[LevelStatusEntryModel]
    completedCount: int
    totalLevels: int
    overallPercentage: int = Field(..., ge=0, le=100)
    isCourseComplete: bool
    skillProgress: dict[SkillType, int]
    badges: list[BadgeModel]
