from datetime import datetime
from enum import Enum
from typing import Optional
from uuid import UUID
from pydantic import BaseModel, Field, ConfigDict

from core.errors import FailureKind
from rewards.models import PartnerCode


class RedemptionStatus(str, Enum):
    PENDING = "PENDING"
    PROCESSING = "PROCESSING"
    COMPLETED = "COMPLETED"
    USED = "USED"
    FAILED = "FAILED"
    CANCELLED = "CANCELLED"
    # Reported on read for COMPLETED vouchers past expiry; never stored.
    EXPIRED = "EXPIRED"


ALLOWED_TRANSITIONS: dict[RedemptionStatus, frozenset[RedemptionStatus]] = {
    RedemptionStatus.PENDING: frozenset({
        RedemptionStatus.PROCESSING, RedemptionStatus.FAILED, RedemptionStatus.CANCELLED,
    }),
    RedemptionStatus.PROCESSING: frozenset({
        RedemptionStatus.COMPLETED, RedemptionStatus.FAILED, RedemptionStatus.CANCELLED,
    }),
    RedemptionStatus.COMPLETED: frozenset({RedemptionStatus.USED}),
    RedemptionStatus.USED: frozenset(),
    RedemptionStatus.FAILED: frozenset(),
    RedemptionStatus.CANCELLED: frozenset(),
    RedemptionStatus.EXPIRED: frozenset(),
}

# Redemptions in these states count against daily and total limits.
LIMIT_COUNTED_STATUSES = frozenset({
    RedemptionStatus.PENDING,
    RedemptionStatus.PROCESSING,
    RedemptionStatus.COMPLETED,
    RedemptionStatus.USED,
})


class Redemption(BaseModel):
    id: UUID
    user_id: UUID
    reward_id: UUID
    reward_name: str
    partner: PartnerCode
    credit_cost_at_redemption: int
    status: RedemptionStatus
    voucher_code: Optional[str] = None
    qr_code_url: Optional[str] = None
    expiry_date: Optional[datetime] = None
    used_at: Optional[datetime] = None
    failure_reason: Optional[str] = None
    partner_transaction_id: Optional[str] = None
    redeemed_at: datetime
    updated_at: datetime
    debit_transaction_id: Optional[UUID] = None
    refund_transaction_id: Optional[UUID] = None
    stock_reserved: bool = False
    stock_restored: bool = False

    model_config = ConfigDict(from_attributes=True)

    def is_expired(self, now: datetime) -> bool:
        return (
            self.status == RedemptionStatus.COMPLETED
            and self.expiry_date is not None
            and self.expiry_date <= now
        )

    def is_active(self, now: datetime) -> bool:
        return self.status == RedemptionStatus.COMPLETED and not self.is_expired(now)

    def effective_status(self, now: datetime) -> RedemptionStatus:
        return RedemptionStatus.EXPIRED if self.is_expired(now) else self.status

    def as_of(self, now: datetime) -> "Redemption":
        """Copy reporting EXPIRED for a COMPLETED voucher past expiry. The stored row is not touched."""
        status = self.effective_status(now)
        if status == self.status:
            return self
        return self.model_copy(update={"status": status})


class VoucherCode(BaseModel):
    code: str
    redemption_id: UUID
    user_id: UUID
    partner: PartnerCode
    qr_code_url: Optional[str] = None
    expiry_date: Optional[datetime] = None
    is_used: bool = False
    used_at: Optional[datetime] = None
    partner_reference: Optional[str] = None
    redeemed_by_reference: Optional[str] = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)

    def is_expired(self, now: datetime) -> bool:
        return self.expiry_date is not None and now >= self.expiry_date

    def is_valid(self, now: datetime) -> bool:
        return not self.is_used and not self.is_expired(now)


class EligibilityResult(BaseModel):
    eligible: bool
    reason: str
    failure_kind: Optional[FailureKind] = None


class VoucherIssueResult(BaseModel):
    success: bool
    voucher_code: Optional[str] = None
    qr_code_url: Optional[str] = None
    expiry_date: Optional[datetime] = None
    partner_transaction_id: Optional[str] = None
    error_message: Optional[str] = None

    @classmethod
    def issued(cls, voucher_code: str, qr_code_url: str, expiry_date: datetime,
               partner_transaction_id: str) -> "VoucherIssueResult":
        return cls(
            success=True, voucher_code=voucher_code, qr_code_url=qr_code_url,
            expiry_date=expiry_date, partner_transaction_id=partner_transaction_id,
        )

    @classmethod
    def failure(cls, error_message: str) -> "VoucherIssueResult":
        return cls(success=False, error_message=error_message)


class RedemptionResult(BaseModel):
    success: bool
    message: str
    redemption: Optional[Redemption] = None
    failure_kind: Optional[FailureKind] = None


class VoucherValidationResult(BaseModel):
    valid: bool
    message: str
    redemption: Optional[Redemption] = None
    failure_kind: Optional[FailureKind] = None


class RedemptionStats(BaseModel):
    total_redemptions: int
    total_credits_spent: int
    successful_redemptions: int
    used_redemptions: int
    active_vouchers: int


class UseVoucherRequest(BaseModel):
    voucher_code: str = Field(..., min_length=1)
    partner_reference: Optional[str] = None


class ValidateVoucherRequest(BaseModel):
    voucher_code: str = Field(..., min_length=1)
    partner: Optional[PartnerCode] = None


class CancelRedemptionRequest(BaseModel):
    reason: str = Field(default="Cancelled by administrator")
