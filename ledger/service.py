from datetime import datetime
from typing import Optional
from uuid import UUID, uuid4

from core.clock import Clock, utc_now
from core.errors import InsufficientFundsError, ValidationError
from core.logging_config import get_module_logger
from core.storage import InMemoryStorage

from .models import (
    TransactionKind,
    CreditTransaction,
    CreditBalance,
    LedgerHistoryResponse,
)

logger = get_module_logger(__name__)


class CreditLedger:
    """Append-only record of signed credit movements.

    The balance is always the sum over the user's transactions. Every write
    happens under the user's lock so that ``debit`` can check and append as
    one step.
    """

    def __init__(self, storage: Optional[InMemoryStorage] = None, clock: Clock = utc_now):
        self.storage = storage or InMemoryStorage()
        self.clock = clock

    def award(self, user_id: UUID, amount: int, source: str, metadata: Optional[dict] = None) -> CreditTransaction:
        self._require_positive(amount)
        with self.storage.user_lock(user_id):
            return self._append(user_id, amount, TransactionKind.EARNED, source, metadata=metadata)

    def debit(
        self,
        user_id: UUID,
        amount: int,
        source: str,
        redemption_id: Optional[UUID] = None,
    ) -> CreditTransaction:
        self._require_positive(amount)
        with self.storage.user_lock(user_id):
            available = self.balance(user_id).available
            if available < amount:
                raise InsufficientFundsError(available, amount)
            return self._append(user_id, -amount, TransactionKind.REDEMPTION, source, redemption_id)

    def refund(
        self,
        user_id: UUID,
        amount: int,
        source: str,
        redemption_id: Optional[UUID] = None,
        metadata: Optional[dict] = None,
    ) -> CreditTransaction:
        self._require_positive(amount)
        with self.storage.user_lock(user_id):
            return self._append(user_id, amount, TransactionKind.REFUND, source, redemption_id, metadata)

    def balance(self, user_id: UUID) -> CreditBalance:
        entries = self._entries_for(user_id)

        earned = sum(e["amount"] for e in entries if e["amount"] > 0)
        spent = sum(-e["amount"] for e in entries if e["amount"] < 0)
        last_entry = max(entries, key=lambda e: e["created_at"]) if entries else None

        return CreditBalance(
            user_id=user_id,
            available=earned - spent,
            earned=earned,
            spent=spent,
            total_entries=len(entries),
            last_transaction_at=last_entry["created_at"] if last_entry else None,
        )

    def transactions_for(
        self,
        user_id: UUID,
        since: Optional[datetime] = None,
        until: Optional[datetime] = None,
    ) -> list[CreditTransaction]:
        entries = [
            CreditTransaction(**e) for e in self._entries_for(user_id)
            if (since is None or e["created_at"] >= since) and (until is None or e["created_at"] < until)
        ]
        entries.sort(key=lambda e: e.created_at)
        return entries

    def history(
        self,
        user_id: UUID,
        limit: int = 50,
        offset: int = 0,
        since: Optional[datetime] = None,
        until: Optional[datetime] = None,
    ) -> LedgerHistoryResponse:
        all_entries = self.transactions_for(user_id, since, until)
        all_entries.reverse()
        paginated = all_entries[offset:offset + limit]

        return LedgerHistoryResponse(
            user_id=user_id,
            entries=paginated,
            total_count=len(all_entries),
            available_balance=self.balance(user_id).available,
        )

    def _entries_for(self, user_id: UUID) -> list[dict]:
        # Snapshot first; other users append concurrently.
        rows = list(self.storage.credit_transactions.values())
        return [e for e in rows if e["user_id"] == user_id]

    def _append(
        self,
        user_id: UUID,
        amount: int,
        kind: TransactionKind,
        source: str,
        redemption_id: Optional[UUID] = None,
        metadata: Optional[dict] = None,
    ) -> CreditTransaction:
        entry_data = {
            "id": uuid4(),
            "user_id": user_id,
            "amount": amount,
            "kind": kind,
            "source": source,
            "created_at": self.clock(),
            "redemption_id": redemption_id,
            "metadata": dict(metadata or {}),
        }
        self.storage.credit_transactions[entry_data["id"]] = entry_data
        logger.debug("ledger %s %+d for user %s (%s)", kind.value, amount, user_id, source)
        return CreditTransaction(**entry_data)

    @staticmethod
    def _require_positive(amount: int) -> None:
        if not isinstance(amount, int) or isinstance(amount, bool) or amount <= 0:
            raise ValidationError(f"Credit amount must be a positive integer, got {amount!r}")
