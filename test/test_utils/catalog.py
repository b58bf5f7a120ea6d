import typing

from bizlevel_backend.models.level_models import (
    LevelArtifactModel,
    LevelModel,
    QuestionModel,
    SkillType,
    TestModel,
    VideoModel,
)
from bizlevel_backend.models.user_progress_models import UserProgressModel
from bizlevel_backend.utils.base_types import IsoTimestamp, LevelId, UserId

NOW = IsoTimestamp("2025-01-01T00:00:00+00:00")


def make_video(video_id: str, order: int = 1) -> VideoModel:
    return VideoModel(id=video_id, title=f"Video {video_id}", youtubeId=f"yt-{video_id}", duration=600, order=order)


def make_test(test_id: str, correct_indexes: typing.Sequence[int] = (0,)) -> TestModel:
    return TestModel(
        id=test_id,
        questions=[
            QuestionModel(id=f"{test_id}-q{i + 1}", text="?", options=["a", "b", "c"], correctAnswerIndex=index)
            for i, index in enumerate(correct_indexes)
        ],
    )


def make_artifact(artifact_id: str, file_type: str = "pdf") -> LevelArtifactModel:
    return LevelArtifactModel(
        id=artifact_id,
        title=f"Artifact {artifact_id}",
        fileUrl=f"https://files.example.com/{artifact_id}.{file_type}",
        fileType=file_type,
    )


def sample_levels() -> list[LevelModel]:
    """
    level-1: two videos, one test with two questions, one artifact
    level-2: one video, one test, no artifacts
    level-3: one video, no tests, one artifact
    """
    return [
        LevelModel(
            id="level-1",
            order=1,
            title="Business basics",
            skillsFocus=[SkillType.PERSONAL_SKILLS, SkillType.MANAGEMENT],
            videos=[make_video("v1-2", order=2), make_video("v1-1", order=1)],
            tests=[make_test("t1-1", correct_indexes=(1, 0))],
            artifacts=[make_artifact("a1-1")],
        ),
        LevelModel(
            id="level-2",
            order=2,
            title="Planning",
            skillsFocus=[SkillType.MANAGEMENT, SkillType.FINANCE],
            videos=[make_video("v2-1")],
            tests=[make_test("t2-1")],
        ),
        LevelModel(
            id="level-3",
            order=3,
            title="Money",
            skillsFocus=[SkillType.FINANCE],
            videos=[make_video("v3-1")],
            artifacts=[make_artifact("a3-1", file_type="spreadsheet")],
        ),
    ]


def simple_levels(count: int, skills: typing.Sequence[SkillType] = (SkillType.LEGAL,)) -> list[LevelModel]:
    """`count` levels with one video each, all focusing on `skills`."""
    return [
        LevelModel(
            id=f"lvl-{order}",
            order=order,
            title=f"Level {order}",
            skillsFocus=list(skills),
            videos=[make_video(f"vid-{order}")],
        )
        for order in range(1, count + 1)
    ]


def make_progress(
    user_id: str = "user-1",
    current_level: str = "level-1",
    **fields: typing.Any,
) -> UserProgressModel:
    return UserProgressModel(userId=UserId(user_id), currentLevel=LevelId(current_level), lastUpdated=NOW, **fields)
