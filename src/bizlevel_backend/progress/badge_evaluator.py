import logging
import typing
from datetime import datetime, timezone

from bizlevel_backend.models.user_progress_models import BadgeModel, UserProgressModel
from bizlevel_backend.utils.base_types import BadgeId, IsoTimestamp

_LOGGER = logging.getLogger(__name__)
_LOGGER.setLevel(logging.INFO)


class BadgeRule(typing.NamedTuple):
    id: BadgeId
    name: str
    description: str
    predicate: typing.Callable[[UserProgressModel], bool]


DEFAULT_BADGE_RULES: tuple[BadgeRule, ...] = (
    BadgeRule(
        id=BadgeId("badge-first-level"),
        name="First Steps",
        description="Completed your first level",
        predicate=lambda progress: len(progress.completedLevels) >= 1,
    ),
    BadgeRule(
        id=BadgeId("badge-halfway"),
        name="Halfway There",
        description="Completed 5 levels",
        predicate=lambda progress: len(progress.completedLevels) >= 5,
    ),
    BadgeRule(
        id=BadgeId("badge-collector"),
        name="Resource Collector",
        description="Downloaded 5 artifacts",
        predicate=lambda progress: len(progress.downloadedArtifacts) >= 5,
    ),
)


def evaluate_badges(
    progress: UserProgressModel,
    rules: typing.Sequence[BadgeRule] = DEFAULT_BADGE_RULES,
    now: typing.Optional[IsoTimestamp] = None,
) -> list[BadgeModel]:
    """
    Returns the badges newly earned by `progress`, in rule order.
    Rules whose badge the user already holds are not evaluated again.
    """
    achieved_at = now or IsoTimestamp(datetime.now(timezone.utc).isoformat())
    new_badges: list[BadgeModel] = []
    for rule in rules:
        if progress.has_badge(rule.id) or any(badge.id == rule.id for badge in new_badges):
            continue
        if rule.predicate(progress):
            _LOGGER.info(f"User {progress.userId} earned badge {rule.id}")
            new_badges.append(
                BadgeModel(
                    id=rule.id,
                    name=rule.name,
                    description=rule.description,
                    achieved=True,
                    achievedAt=achieved_at,
                )
            )
    return new_badges
