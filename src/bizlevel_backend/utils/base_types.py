import typing

UserId = typing.NewType("UserId", str)

LevelId = typing.NewType("LevelId", str)
VideoId = typing.NewType("VideoId", str)
TestId = typing.NewType("TestId", str)
QuestionId = typing.NewType("QuestionId", str)
ArtifactId = typing.NewType("ArtifactId", str)
BadgeId = typing.NewType("BadgeId", str)
IsoTimestamp = typing.NewType("IsoTimestamp", str)
