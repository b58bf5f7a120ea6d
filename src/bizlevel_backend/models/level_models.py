import enum
import typing

import pydantic

from bizlevel_backend.utils.base_types import ArtifactId, LevelId, QuestionId, TestId, VideoId


class SkillType(str, enum.Enum):
    PERSONAL_SKILLS = "personalSkills"
    MANAGEMENT = "management"
    NETWORKING = "networking"
    CLIENT_WORK = "clientWork"
    FINANCE = "finance"
    LEGAL = "legal"


class LevelStatus(str, enum.Enum):
    LOCKED = "locked"
    AVAILABLE = "available"
    COMPLETED = "completed"


ArtifactFileType = typing.Literal["pdf", "doc", "spreadsheet"]


class VideoModel(pydantic.BaseModel):
    id: VideoId
    title: str = ""
    description: str = ""
    youtubeId: str
    duration: int = pydantic.Field(..., gt=0, description="Length in seconds")
    order: int = pydantic.Field(..., ge=1, description="Position within the level")


class QuestionModel(pydantic.BaseModel):
    id: QuestionId
    text: str = ""
    options: list[str] = pydantic.Field(..., min_length=2)
    correctAnswerIndex: int = pydantic.Field(..., ge=0)

    @pydantic.model_validator(mode="after")
    def check_answer_index(self) -> "QuestionModel":
        if self.correctAnswerIndex >= len(self.options):
            raise ValueError(
                f"correctAnswerIndex {self.correctAnswerIndex} is out of range for {len(self.options)} options"
            )
        return self


class TestModel(pydantic.BaseModel):
    id: TestId
    afterVideoId: typing.Optional[VideoId] = None
    questions: list[QuestionModel] = pydantic.Field(default_factory=list)


class LevelArtifactModel(pydantic.BaseModel):
    id: ArtifactId
    title: str
    description: str = ""
    fileUrl: str
    fileType: ArtifactFileType


class LevelModel(pydantic.BaseModel):
    """
    A catalog entry: one ordered unit of course content.
    Stored in the Levels table (PK: levelId is the same value as id).
    """

    id: LevelId
    order: int = pydantic.Field(..., ge=1, description="Unique, dense position in the unlock sequence")
    title: str
    description: str = ""
    isPremium: bool = False
    skillsFocus: list[SkillType] = pydantic.Field(default_factory=list)
    videos: list[VideoModel] = pydantic.Field(default_factory=list)
    tests: list[TestModel] = pydantic.Field(default_factory=list)
    artifacts: list[LevelArtifactModel] = pydantic.Field(default_factory=list)

    @pydantic.field_validator("skillsFocus")
    @classmethod
    def dedupe_skills(cls, v: list[SkillType]) -> list[SkillType]:
        return list(dict.fromkeys(v))

    @pydantic.field_validator("videos")
    @classmethod
    def sort_videos(cls, v: list[VideoModel]) -> list[VideoModel]:
        return sorted(v, key=lambda video: video.order)


class LevelSummaryModel(pydantic.BaseModel):
    id: LevelId
    order: int
    title: str
    description: str
    isPremium: bool
    skillsFocus: list[SkillType]
    status: LevelStatus
    videoCount: int
    testCount: int
    artifactCount: int


class ListOfLevelsResponseModel(pydantic.BaseModel):
    levels: list[LevelSummaryModel]


class MissingItemsModel(pydantic.BaseModel):
    videos: list[VideoId] = pydantic.Field(default_factory=list)
    tests: list[TestId] = pydantic.Field(default_factory=list)
    artifacts: list[ArtifactId] = pydantic.Field(default_factory=list)

    def is_empty(self) -> bool:
        return not (self.videos or self.tests or self.artifacts)


class LevelDetailResponseModel(pydantic.BaseModel):
    level: LevelModel
    status: LevelStatus
    canComplete: bool
    missing: MissingItemsModel
