"""
Achievements and activity conversion.

Step submissions are converted to eco-credits and checked against a fixed,
ordered table of step thresholds. Each achievement unlocks once per user.
"""

from .models import (
    AchievementType,
    AchievementCriteria,
    ACHIEVEMENT_CRITERIA,
    Achievement,
    ConversionResult,
)
from .evaluator import AchievementEvaluator
from .activity import ActivityService

__all__ = [
    "AchievementType",
    "AchievementCriteria",
    "ACHIEVEMENT_CRITERIA",
    "Achievement",
    "ConversionResult",
    "AchievementEvaluator",
    "ActivityService",
]
