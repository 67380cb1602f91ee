from datetime import date
from typing import Optional
from uuid import UUID

from core.clock import Clock, utc_now
from core.errors import ValidationError
from core.storage import InMemoryStorage
from ledger.conversion import calculate_eco_credits
from ledger.models import StepRecord
from ledger.service import CreditLedger

from .evaluator import AchievementEvaluator
from .models import ConversionResult


class ActivityService:
    """Turns submitted step counts into credits and achievement checks."""

    def __init__(
        self,
        ledger: CreditLedger,
        evaluator: AchievementEvaluator,
        storage: Optional[InMemoryStorage] = None,
        clock: Clock = utc_now,
    ):
        self.ledger = ledger
        self.evaluator = evaluator
        self.storage = storage or ledger.storage
        self.clock = clock

    def submit_steps(self, user_id: UUID, steps: int, day: Optional[date] = None) -> StepRecord:
        if not isinstance(steps, int) or isinstance(steps, bool) or steps < 0:
            raise ValidationError("Invalid steps count")
        day = day or self.clock().date()
        record_data = {"user_id": user_id, "date": day, "steps": steps, "updated_at": self.clock()}
        self.storage.step_records[(user_id, day)] = record_data
        return StepRecord(**record_data)

    def steps_for(self, user_id: UUID, day: Optional[date] = None) -> Optional[StepRecord]:
        record_data = self.storage.step_records.get((user_id, day or self.clock().date()))
        return StepRecord(**record_data) if record_data else None

    def convert_steps(self, user_id: UUID, steps: int, day: Optional[date] = None) -> ConversionResult:
        calculation = calculate_eco_credits(steps)
        record = self.submit_steps(user_id, steps, day)

        transaction = None
        if calculation.total_credits > 0:
            transaction = self.ledger.award(
                user_id,
                calculation.total_credits,
                f"Converted {steps} steps of sustainable transportation",
                metadata={"steps": steps, "date": record.date.isoformat()},
            )

        new_achievements = self.evaluator.evaluate(user_id, steps, calculation.total_credits)
        return ConversionResult(
            calculation=calculation, transaction=transaction, new_achievements=new_achievements,
        )
