"""Redemption state machine.

A redemption moves PENDING -> PROCESSING -> COMPLETED | FAILED, and a
COMPLETED voucher may later become USED. CANCELLED is an administrative
exit from PENDING or PROCESSING.

Credits and stock are reserved under the user's lock, the partner is called
with no lock held, and the outcome is settled under the lock again. Any
failure after the reservation is compensated exactly once: the debit is
refunded and finite stock is given back.
"""

from concurrent.futures import Executor, ThreadPoolExecutor, TimeoutError as FuturesTimeout
from typing import Optional
from uuid import UUID, uuid4

from core.clock import Clock, utc_now
from core.errors import (
    FailureKind,
    InsufficientFundsError,
    InvalidStateTransitionError,
    OutOfStockError,
)
from core.logging_config import get_module_logger
from core.storage import InMemoryStorage
from ledger.service import CreditLedger
from rewards.catalog import RewardCatalog
from rewards.models import PartnerCode, RewardCatalogEntry

from .eligibility import EligibilityChecker
from .models import (
    ALLOWED_TRANSITIONS,
    Redemption,
    RedemptionResult,
    RedemptionStatus,
    VoucherCode,
    VoucherIssueResult,
    VoucherValidationResult,
)
from .vouchers import VoucherIssuer

logger = get_module_logger(__name__)

OPEN_STATUSES = (RedemptionStatus.PENDING, RedemptionStatus.PROCESSING)


class RedemptionWorkflow:
    def __init__(
        self,
        ledger: CreditLedger,
        catalog: RewardCatalog,
        issuer: VoucherIssuer,
        eligibility: Optional[EligibilityChecker] = None,
        storage: Optional[InMemoryStorage] = None,
        clock: Clock = utc_now,
        issue_timeout: Optional[float] = 5.0,
        executor: Optional[Executor] = None,
    ):
        self.ledger = ledger
        self.catalog = catalog
        self.issuer = issuer
        self.storage = storage or ledger.storage
        self.clock = clock
        self.eligibility = eligibility or EligibilityChecker(ledger, catalog, self.storage, clock)
        self.issue_timeout = issue_timeout
        self._executor = executor or ThreadPoolExecutor(max_workers=8, thread_name_prefix="voucher-issuer")

    def redeem(self, user_id: UUID, reward_id: UUID) -> RedemptionResult:
        with self.storage.user_lock(user_id):
            eligibility = self.eligibility.check(user_id, reward_id)
            if not eligibility.eligible:
                logger.info("User %s not eligible for reward %s: %s", user_id, reward_id, eligibility.reason)
                return RedemptionResult(
                    success=False, message=eligibility.reason, failure_kind=eligibility.failure_kind,
                )

            redemption_data = self._create_pending(user_id, self.catalog.get_reward(reward_id))
            try:
                self._reserve(redemption_data)
            except InsufficientFundsError:
                return self._reject(redemption_data, "Insufficient credits")
            except OutOfStockError:
                return self._reject(redemption_data, "Out of stock")
            except Exception as e:
                return self._abort(redemption_data, e)

            self._transition(redemption_data, RedemptionStatus.PROCESSING)

        try:
            issue_result = self._issue_with_timeout(Redemption(**redemption_data))
            return self._settle(redemption_data, issue_result)
        except Exception as e:
            return self._abort(redemption_data, e)

    def cancel(self, redemption_id: UUID, reason: str = "Cancelled by administrator") -> RedemptionResult:
        redemption_data = self.storage.redemptions.get(redemption_id)
        if not redemption_data:
            return RedemptionResult(
                success=False, message="Redemption not found", failure_kind=FailureKind.NOT_FOUND,
            )

        with self.storage.user_lock(redemption_data["user_id"]):
            status = redemption_data["status"]
            if status not in OPEN_STATUSES:
                return RedemptionResult(
                    success=False,
                    message=f"Cannot cancel redemption in {status.value} state",
                    redemption=Redemption(**redemption_data),
                    failure_kind=FailureKind.VALIDATION,
                )
            self._compensate(redemption_data)
            self._transition(redemption_data, RedemptionStatus.CANCELLED, failure_reason=reason)

        logger.info("Redemption %s cancelled: %s", redemption_id, reason)
        return RedemptionResult(
            success=True, message="Redemption cancelled", redemption=Redemption(**redemption_data),
        )

    def mark_used(self, voucher_code: str, partner_reference: Optional[str] = None) -> bool:
        voucher_data = self.storage.voucher_codes.get(voucher_code)
        if not voucher_data:
            logger.info("Unknown voucher %s presented for use", voucher_code)
            return False

        with self.storage.user_lock(voucher_data["user_id"]):
            now = self.clock()
            if not VoucherCode(**voucher_data).is_valid(now):
                logger.info("Voucher %s rejected: used or expired", voucher_code)
                return False

            redemption_data = self.storage.redemptions.get(voucher_data["redemption_id"])
            if not redemption_data or redemption_data["status"] != RedemptionStatus.COMPLETED:
                return False

            voucher_data.update({"is_used": True, "used_at": now, "redeemed_by_reference": partner_reference})
            self._transition(redemption_data, RedemptionStatus.USED, used_at=now)

        logger.info("Voucher %s used (partner ref %s)", voucher_code, partner_reference)
        return True

    def validate(self, voucher_code: str, partner: Optional[PartnerCode] = None) -> VoucherValidationResult:
        """Read-only check of a presented voucher. With ``partner``, the code must also carry that partner's format."""
        voucher_data = self.storage.voucher_codes.get(voucher_code)
        if not voucher_data:
            return VoucherValidationResult(
                valid=False, message="Voucher code not found", failure_kind=FailureKind.NOT_FOUND,
            )

        now = self.clock()
        voucher = VoucherCode(**voucher_data)
        redemption_data = self.storage.redemptions.get(voucher.redemption_id)
        redemption = Redemption(**redemption_data).as_of(now) if redemption_data else None

        if partner is not None and not self.issuer.verify_with_partner(voucher_code, partner):
            logger.info("Voucher %s presented to %s, which did not issue it", voucher_code, partner.value)
            return VoucherValidationResult(
                valid=False, message=f"Voucher was not issued by {partner.value}",
                failure_kind=FailureKind.VALIDATION,
            )
        if voucher.is_used:
            return VoucherValidationResult(
                valid=False, message=f"Voucher already used on {voucher.used_at.isoformat()}",
                redemption=redemption, failure_kind=FailureKind.ELIGIBILITY,
            )
        if voucher.is_expired(now):
            return VoucherValidationResult(
                valid=False, message=f"Voucher expired on {voucher.expiry_date.isoformat()}",
                redemption=redemption, failure_kind=FailureKind.ELIGIBILITY,
            )
        return VoucherValidationResult(valid=True, message="Voucher is valid", redemption=redemption)

    def shutdown(self) -> None:
        if isinstance(self._executor, ThreadPoolExecutor):
            self._executor.shutdown(wait=False, cancel_futures=True)

    def _create_pending(self, user_id: UUID, reward: RewardCatalogEntry) -> dict:
        now = self.clock()
        redemption_data = Redemption(
            id=uuid4(),
            user_id=user_id,
            reward_id=reward.id,
            reward_name=reward.name,
            partner=reward.partner,
            credit_cost_at_redemption=reward.credit_cost,
            status=RedemptionStatus.PENDING,
            redeemed_at=now,
            updated_at=now,
        ).model_dump()
        self.storage.redemptions[redemption_data["id"]] = redemption_data
        return redemption_data

    def _reserve(self, redemption_data: dict) -> None:
        debit = self.ledger.debit(
            redemption_data["user_id"],
            redemption_data["credit_cost_at_redemption"],
            f"Redeemed {redemption_data['reward_name']}",
            redemption_id=redemption_data["id"],
        )
        redemption_data["debit_transaction_id"] = debit.id

        try:
            self.catalog.try_decrement_stock(redemption_data["reward_id"])
        except OutOfStockError:
            self._compensate(redemption_data)
            raise
        redemption_data["stock_reserved"] = True

    def _issue_with_timeout(self, redemption: Redemption) -> VoucherIssueResult:
        if self.issue_timeout is None:
            return self.issuer.issue(redemption)

        future = self._executor.submit(self.issuer.issue, redemption)
        try:
            return future.result(timeout=self.issue_timeout)
        except FuturesTimeout:
            future.cancel()
            logger.warning("Voucher issuance for redemption %s timed out after %ss", redemption.id, self.issue_timeout)
            return VoucherIssueResult.failure(f"Voucher issuance timed out after {self.issue_timeout}s")

    def _settle(self, redemption_data: dict, issue_result: VoucherIssueResult) -> RedemptionResult:
        with self.storage.user_lock(redemption_data["user_id"]):
            if redemption_data["status"] != RedemptionStatus.PROCESSING:
                # Cancelled while the partner call was in flight.
                logger.warning(
                    "Discarding issuance result for redemption %s in %s state",
                    redemption_data["id"], redemption_data["status"].value,
                )
                return RedemptionResult(
                    success=False,
                    message=f"Redemption {redemption_data['status'].value.lower()}",
                    redemption=Redemption(**redemption_data),
                    failure_kind=FailureKind.VALIDATION,
                )

            if issue_result.success and issue_result.voucher_code in self.storage.voucher_codes:
                issue_result = VoucherIssueResult.failure("Partner issued a duplicate voucher code")

            if not issue_result.success:
                reason = issue_result.error_message or "Voucher issuance failed"
                self._compensate(redemption_data)
                self._transition(redemption_data, RedemptionStatus.FAILED, failure_reason=reason)
                logger.warning("Redemption %s failed and was compensated: %s", redemption_data["id"], reason)
                return RedemptionResult(
                    success=False, message=reason,
                    redemption=Redemption(**redemption_data),
                    failure_kind=FailureKind.PARTNER_INTEGRATION,
                )

            now = self.clock()
            self.storage.voucher_codes[issue_result.voucher_code] = VoucherCode(
                code=issue_result.voucher_code,
                redemption_id=redemption_data["id"],
                user_id=redemption_data["user_id"],
                partner=redemption_data["partner"],
                qr_code_url=issue_result.qr_code_url,
                expiry_date=issue_result.expiry_date,
                partner_reference=issue_result.partner_transaction_id,
                created_at=now,
            ).model_dump()
            self._transition(
                redemption_data,
                RedemptionStatus.COMPLETED,
                voucher_code=issue_result.voucher_code,
                qr_code_url=issue_result.qr_code_url,
                expiry_date=issue_result.expiry_date,
                partner_transaction_id=issue_result.partner_transaction_id,
            )

        logger.info("Redemption %s completed with voucher %s", redemption_data["id"], issue_result.voucher_code)
        return RedemptionResult(
            success=True, message="Reward redeemed successfully!", redemption=Redemption(**redemption_data),
        )

    def _reject(self, redemption_data: dict, reason: str) -> RedemptionResult:
        self._transition(redemption_data, RedemptionStatus.FAILED, failure_reason=reason)
        logger.info("Redemption %s lost a reservation race: %s", redemption_data["id"], reason)
        return RedemptionResult(
            success=False, message=reason,
            redemption=Redemption(**redemption_data),
            failure_kind=FailureKind.CONCURRENCY_CONFLICT,
        )

    def _abort(self, redemption_data: dict, error: Exception) -> RedemptionResult:
        logger.exception("Redemption %s failed unexpectedly", redemption_data["id"])
        with self.storage.user_lock(redemption_data["user_id"]):
            if redemption_data["status"] in OPEN_STATUSES:
                self._compensate(redemption_data)
                self._transition(
                    redemption_data, RedemptionStatus.FAILED,
                    failure_reason=f"Failed to process redemption: {error}",
                )
        return RedemptionResult(
            success=False, message="Failed to process redemption",
            redemption=Redemption(**redemption_data),
            failure_kind=FailureKind.INTERNAL,
        )

    def _compensate(self, redemption_data: dict) -> None:
        """Undo whatever part of the reservation is still outstanding. Caller holds the user lock."""
        if redemption_data["debit_transaction_id"] and not redemption_data["refund_transaction_id"]:
            refund = self.ledger.refund(
                redemption_data["user_id"],
                redemption_data["credit_cost_at_redemption"],
                f"Refund for failed redemption of {redemption_data['reward_name']}",
                redemption_id=redemption_data["id"],
                metadata={"debit_transaction_id": str(redemption_data["debit_transaction_id"])},
            )
            redemption_data["refund_transaction_id"] = refund.id

        if redemption_data["stock_reserved"] and not redemption_data["stock_restored"]:
            self.catalog.restore_stock(redemption_data["reward_id"])
            redemption_data["stock_restored"] = True

    def _transition(self, redemption_data: dict, new_status: RedemptionStatus, **fields) -> None:
        current = redemption_data["status"]
        if new_status not in ALLOWED_TRANSITIONS[current]:
            raise InvalidStateTransitionError(
                f"Cannot move redemption {redemption_data['id']} from {current.value} to {new_status.value}"
            )
        fields.update({"status": new_status, "updated_at": self.clock()})
        redemption_data.update(fields)
