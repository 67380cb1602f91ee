from core.errors import ValidationError

from .models import CreditCalculation

STEPS_PER_CREDIT = 100
SUSTAINABLE_DAILY_GOAL = 10000

# Highest tier wins.
BONUS_TIERS = (
    (10000, 50),
    (5000, 25),
    (1000, 10),
)


def calculate_eco_credits(steps: int) -> CreditCalculation:
    """Convert a day's step count into eco-credits."""
    if not isinstance(steps, int) or isinstance(steps, bool) or steps < 0:
        raise ValidationError("Invalid steps count")

    base_credits = steps // STEPS_PER_CREDIT
    bonus_credits = next((bonus for threshold, bonus in BONUS_TIERS if steps >= threshold), 0)
    total_credits = base_credits + bonus_credits
    progress = min(steps / SUSTAINABLE_DAILY_GOAL, 1.0) * 100

    return CreditCalculation(
        steps=steps,
        base_credits=base_credits,
        bonus_credits=bonus_credits,
        total_credits=total_credits,
        sustainable_goal_progress=progress,
        message=f"Converted {steps} steps of sustainable transportation into {total_credits} eco-credits!",
    )
