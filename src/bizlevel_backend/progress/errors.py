import typing

from bizlevel_backend.models.level_models import MissingItemsModel
from bizlevel_backend.utils.base_types import LevelId


class ProgressError(Exception):
    """Base class for every failure raised by the progress engine."""

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class NotFoundError(ProgressError):
    """A level, video, test or artifact id is not in the catalog."""

    def __init__(self, kind: str, item_id: str) -> None:
        self.kind = kind
        self.item_id = item_id
        super().__init__(f"Unknown {kind} id: {item_id}")


class AlreadyCompletedError(ProgressError):
    def __init__(self, level_id: LevelId) -> None:
        self.level_id = level_id
        super().__init__(f"Level {level_id} is already completed.")


class GateNotSatisfiedError(ProgressError):
    def __init__(
        self,
        level_id: LevelId,
        missing: typing.Optional[MissingItemsModel] = None,
        message: typing.Optional[str] = None,
    ) -> None:
        self.level_id = level_id
        self.missing = missing or MissingItemsModel()
        super().__init__(message or f"Level {level_id} has unfinished items.")


class LevelLockedError(GateNotSatisfiedError):
    """An earlier level in the sequence is still incomplete."""

    def __init__(self, level_id: LevelId) -> None:
        super().__init__(level_id, message=f"Level {level_id} is locked.")


class StoreUnavailableError(ProgressError):
    """The document store failed after botocore exhausted its retries."""


class ConcurrentModificationError(ProgressError):
    """The progress record changed between read and conditional write."""
