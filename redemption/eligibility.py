from typing import Optional
from uuid import UUID

from core.clock import Clock, utc_now
from core.errors import EcoCreditError, EligibilityError, NotFoundError
from core.storage import InMemoryStorage
from ledger.service import CreditLedger
from rewards.catalog import RewardCatalog

from .models import EligibilityResult, LIMIT_COUNTED_STATUSES


class EligibilityChecker:
    """Decides whether a user may redeem a reward right now.

    Rules run in a fixed order and the first failing one wins:
    availability, price coverage, daily limit, total limit, minimum balance.
    """

    def __init__(
        self,
        ledger: CreditLedger,
        catalog: RewardCatalog,
        storage: Optional[InMemoryStorage] = None,
        clock: Clock = utc_now,
    ):
        self.ledger = ledger
        self.catalog = catalog
        self.storage = storage or ledger.storage
        self.clock = clock

    def check(self, user_id: UUID, reward_id: UUID) -> EligibilityResult:
        now = self.clock()
        reward = self.catalog.get_reward(reward_id)
        if reward is None:
            return self._ineligible(NotFoundError("Reward not found"))
        if not reward.is_available or not reward.within_window(now):
            return self._ineligible(EligibilityError("Reward not available"))
        if not reward.in_stock():
            return self._ineligible(EligibilityError("Reward is out of stock"))

        available = self.ledger.balance(user_id).available
        if available < reward.credit_cost:
            return self._ineligible(EligibilityError(
                f"Insufficient credits. You have {available}, need {reward.credit_cost}"
            ))

        if reward.daily_limit is not None:
            today = now.date()
            today_count = self._count_redemptions(
                user_id, reward_id, lambda r: r["redeemed_at"].date() == today
            )
            if today_count >= reward.daily_limit:
                return self._ineligible(EligibilityError(f"Daily limit reached ({today_count}/{reward.daily_limit})"))

        if reward.total_limit is not None:
            total_count = self._count_redemptions(user_id, reward_id)
            if total_count >= reward.total_limit:
                return self._ineligible(EligibilityError(f"Total limit reached ({total_count}/{reward.total_limit})"))

        if reward.min_credit_balance is not None and available < reward.min_credit_balance:
            return self._ineligible(EligibilityError(
                f"Minimum credit balance required: {reward.min_credit_balance}"
            ))

        return EligibilityResult(eligible=True, reason="Eligible for redemption")

    def _count_redemptions(self, user_id: UUID, reward_id: UUID, extra=None) -> int:
        rows = list(self.storage.redemptions.values())
        return sum(
            1 for r in rows
            if r["user_id"] == user_id
            and r["reward_id"] == reward_id
            and r["status"] in LIMIT_COUNTED_STATUSES
            and (extra is None or extra(r))
        )

    @staticmethod
    def _ineligible(error: EcoCreditError) -> EligibilityResult:
        return EligibilityResult(eligible=False, reason=str(error), failure_kind=error.kind)
