from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Optional
from uuid import UUID
from pydantic import BaseModel, ConfigDict

from ledger.models import CreditCalculation, CreditTransaction


class AchievementType(str, Enum):
    FIRST_STEPS = "first_steps"
    WALKER = "walker"
    STEPPER = "stepper"
    GOAL_CRUSHER = "goal_crusher"


@dataclass(frozen=True)
class AchievementCriteria:
    type: AchievementType
    min_steps: int
    title: str
    description: str

    def evaluate(self, steps_today: int) -> bool:
        return steps_today >= self.min_steps


ACHIEVEMENT_CRITERIA: tuple[AchievementCriteria, ...] = (
    AchievementCriteria(
        AchievementType.FIRST_STEPS, 100, "🌱 First Steps",
        "Complete your first 100 steps of sustainable transportation",
    ),
    AchievementCriteria(
        AchievementType.WALKER, 1000, "🚶‍♂️ Green Walker",
        "Walk 1,000 steps in a day (reducing carbon footprint)",
    ),
    AchievementCriteria(
        AchievementType.STEPPER, 5000, "🏃‍♀️ Eco Stepper",
        "Walk 5,000 steps in a day (halfway to sustainable goal)",
    ),
    AchievementCriteria(
        AchievementType.GOAL_CRUSHER, 10000, "🏆 Sustainable Champion",
        "Reach the daily sustainable transportation goal of 10,000 steps",
    ),
)


class Achievement(BaseModel):
    id: UUID
    user_id: UUID
    type: AchievementType
    title: str
    description: str
    earned_at: datetime

    model_config = ConfigDict(from_attributes=True, frozen=True)


class ConversionResult(BaseModel):
    calculation: CreditCalculation
    transaction: Optional[CreditTransaction] = None
    new_achievements: list[Achievement]
