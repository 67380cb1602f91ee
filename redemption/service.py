from datetime import datetime, timedelta
from typing import Optional
from uuid import UUID

from core.clock import Clock, utc_now
from core.storage import InMemoryStorage
from ledger.models import CreditBalance
from rewards.models import PartnerCode

from .models import (
    Redemption,
    RedemptionResult,
    RedemptionStats,
    RedemptionStatus,
    VoucherValidationResult,
)
from .workflow import RedemptionWorkflow

# Every status a successfully issued voucher can report.
SUCCESSFUL_STATUSES = (RedemptionStatus.COMPLETED, RedemptionStatus.USED, RedemptionStatus.EXPIRED)


class RedemptionService:
    """What the rest of the system sees of the redemption engine.

    Commands go to the workflow; everything else is a read over the
    redemption table.
    """

    def __init__(self, workflow: RedemptionWorkflow, storage: Optional[InMemoryStorage] = None,
                 clock: Clock = utc_now):
        self.workflow = workflow
        self.storage = storage or workflow.storage
        self.clock = clock

    def redeem(self, user_id: UUID, reward_id: UUID) -> RedemptionResult:
        return self.workflow.redeem(user_id, reward_id)

    def cancel(self, redemption_id: UUID, reason: str = "Cancelled by administrator") -> RedemptionResult:
        return self.workflow.cancel(redemption_id, reason)

    def validate_voucher(self, voucher_code: str, partner: Optional[PartnerCode] = None) -> VoucherValidationResult:
        return self.workflow.validate(voucher_code, partner)

    def use_voucher(self, voucher_code: str, partner_reference: Optional[str] = None) -> bool:
        return self.workflow.mark_used(voucher_code, partner_reference)

    def credit_balance(self, user_id: UUID) -> CreditBalance:
        return self.workflow.ledger.balance(user_id)

    def redemption_history(self, user_id: UUID) -> list[Redemption]:
        redemptions = [r for r in self._redemptions() if r.user_id == user_id]
        redemptions.sort(key=lambda r: r.redeemed_at, reverse=True)
        return redemptions

    def active_vouchers(self, user_id: UUID) -> list[Redemption]:
        now = self.clock()
        return [r for r in self.redemption_history(user_id) if r.is_active(now)]

    def get_user_redemption(self, user_id: UUID, redemption_id: UUID) -> Optional[Redemption]:
        redemption_data = self.storage.redemptions.get(redemption_id)
        if not redemption_data or redemption_data["user_id"] != user_id:
            return None
        return Redemption(**redemption_data).as_of(self.clock())

    def redemption_stats(self, user_id: UUID) -> RedemptionStats:
        history = self.redemption_history(user_id)
        successful = [r for r in history if r.status in SUCCESSFUL_STATUSES]
        now = self.clock()

        return RedemptionStats(
            total_redemptions=len(history),
            total_credits_spent=sum(r.credit_cost_at_redemption for r in successful),
            successful_redemptions=len(successful),
            used_redemptions=sum(1 for r in history if r.status == RedemptionStatus.USED),
            active_vouchers=sum(1 for r in history if r.is_active(now)),
        )

    def expiring_vouchers(self, user_id: UUID, days_ahead: int = 7) -> list[Redemption]:
        now = self.clock()
        return [
            r for r in self.expiring_between(now, now + timedelta(days=days_ahead))
            if r.user_id == user_id
        ]

    def expiring_between(self, start: datetime, end: datetime) -> list[Redemption]:
        """Unexpired vouchers whose expiry falls in [start, end), soonest first."""
        redemptions = [
            r for r in self._redemptions()
            if r.status == RedemptionStatus.COMPLETED and start <= r.expiry_date < end
        ]
        redemptions.sort(key=lambda r: r.expiry_date)
        return redemptions

    def by_status(self, status: RedemptionStatus) -> list[Redemption]:
        """Redemptions whose reported status matches, oldest first. EXPIRED is matched on read."""
        redemptions = [r for r in self._redemptions() if r.status == status]
        redemptions.sort(key=lambda r: r.redeemed_at)
        return redemptions

    def find_by_voucher_code(self, voucher_code: str) -> Optional[Redemption]:
        voucher_data = self.storage.voucher_codes.get(voucher_code)
        if not voucher_data:
            return None
        redemption_data = self.storage.redemptions.get(voucher_data["redemption_id"])
        return Redemption(**redemption_data).as_of(self.clock()) if redemption_data else None

    def _redemptions(self) -> list[Redemption]:
        now = self.clock()
        rows = list(self.storage.redemptions.values())
        return [Redemption(**r).as_of(now) for r in rows]
