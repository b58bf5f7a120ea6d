import typing

import pydantic

from bizlevel_backend.models.level_models import ArtifactFileType
from bizlevel_backend.utils.base_types import ArtifactId, IsoTimestamp, LevelId


class ArtifactModel(pydantic.BaseModel):
    """
    Pydantic model representing an artifact library record stored in DynamoDB.
    PK: artifactId (same value as id).
    """

    id: ArtifactId
    title: str
    description: str = ""
    fileUrl: str
    fileType: ArtifactFileType
    levelId: LevelId
    downloadCount: int = pydantic.Field(default=0, ge=0)
    createdAt: typing.Optional[IsoTimestamp] = None
    updatedAt: typing.Optional[IsoTimestamp] = None


class ArtifactInputModel(pydantic.BaseModel):
    """Request body for PUT /admin/artifacts/{artifactId}."""

    title: str = pydantic.Field(..., min_length=1)
    description: str = ""
    fileUrl: str = pydantic.Field(..., min_length=1)
    fileType: ArtifactFileType
    levelId: LevelId

    model_config = pydantic.ConfigDict(extra="forbid")


class ArtifactWithMetaModel(pydantic.BaseModel):
    id: ArtifactId
    title: str
    description: str
    fileUrl: str
    fileType: ArtifactFileType
    levelId: LevelId
    levelTitle: str
    levelOrder: int
    isDownloaded: bool
    downloadCount: int = 0


class ListOfArtifactsResponseModel(pydantic.BaseModel):
    artifacts: list[ArtifactWithMetaModel]
