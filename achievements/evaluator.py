from typing import Callable, Optional, Sequence
from uuid import UUID, uuid4

from core.clock import Clock, utc_now
from core.logging_config import get_module_logger
from core.storage import InMemoryStorage

from .models import Achievement, AchievementCriteria, ACHIEVEMENT_CRITERIA

logger = get_module_logger(__name__)


def log_unlock(achievement: Achievement) -> None:
    logger.info("Achievement unlocked for user %s: %s", achievement.user_id, achievement.title)


class AchievementEvaluator:
    """Unlocks step-threshold achievements, at most once per user and type.

    ``on_unlock`` is called once for each newly created achievement; it is
    the seam for the notification collaborator.
    """

    def __init__(
        self,
        storage: Optional[InMemoryStorage] = None,
        clock: Clock = utc_now,
        criteria: Sequence[AchievementCriteria] = ACHIEVEMENT_CRITERIA,
        on_unlock: Callable[[Achievement], None] = log_unlock,
    ):
        self.storage = storage or InMemoryStorage()
        self.clock = clock
        self.criteria = tuple(criteria)
        self.on_unlock = on_unlock

    def evaluate(self, user_id: UUID, steps_today: int, credits_awarded: int = 0) -> list[Achievement]:
        unlocked: list[Achievement] = []
        with self.storage.user_lock(user_id):
            for criteria in self.criteria:
                if not criteria.evaluate(steps_today):
                    continue
                key = (user_id, criteria.type.value)
                if key in self.storage.achievement_index:
                    continue

                achievement_data = {
                    "id": uuid4(),
                    "user_id": user_id,
                    "type": criteria.type,
                    "title": criteria.title,
                    "description": criteria.description,
                    "earned_at": self.clock(),
                }
                self.storage.achievements[achievement_data["id"]] = achievement_data
                self.storage.achievement_index[key] = achievement_data["id"]
                unlocked.append(Achievement(**achievement_data))

        if unlocked:
            logger.debug("User %s unlocked %d achievements (%d credits awarded)", user_id, len(unlocked), credits_awarded)
        for achievement in unlocked:
            self.on_unlock(achievement)
        return unlocked

    def achievements_for(self, user_id: UUID) -> list[Achievement]:
        rows = list(self.storage.achievements.values())
        achievements = [Achievement(**a) for a in rows if a["user_id"] == user_id]
        achievements.sort(key=lambda a: a.earned_at, reverse=True)
        return achievements

    def count_for(self, user_id: UUID) -> int:
        return len(self.achievements_for(user_id))
