"""
Unit Tests for the Credit Ledger

Tests cover:
1. Award, debit and refund flows
2. Balance derived from transactions
3. Insufficient funds and input validation
4. History pagination and time ranges
5. Concurrent debits against one balance
"""

import threading
from datetime import timedelta
from uuid import UUID

import pytest

from testing.clock import ManualClock
from core.errors import InsufficientFundsError, ValidationError
from ledger.models import TransactionKind
from ledger.service import CreditLedger


# Test constants
USER_ID = UUID("550e8400-e29b-41d4-a716-446655440000")
OTHER_USER_ID = UUID("660e8400-e29b-41d4-a716-446655440001")
REDEMPTION_ID = UUID("22222222-2222-2222-2222-222222222222")


class TestAwardFlow:
    """Tests for crediting earned eco-credits."""

    def test_award_appends_earned_transaction(self):
        """Test that an award creates an earned entry with a positive amount."""
        ledger = CreditLedger()

        transaction = ledger.award(USER_ID, 170, "Converted 12000 steps")

        assert transaction.kind == TransactionKind.EARNED
        assert transaction.amount == 170
        assert transaction.user_id == USER_ID
        assert transaction.source == "Converted 12000 steps"

        balance = ledger.balance(USER_ID)
        assert balance.available == 170
        assert balance.earned == 170
        assert balance.spent == 0

    def test_multiple_awards_accumulate(self):
        """Test that awards add up and stay separate per user."""
        ledger = CreditLedger()

        ledger.award(USER_ID, 100, "day one")
        ledger.award(USER_ID, 200, "day two")
        ledger.award(OTHER_USER_ID, 5, "someone else")

        balance = ledger.balance(USER_ID)
        assert balance.available == 300
        assert balance.total_entries == 2
        assert ledger.balance(OTHER_USER_ID).available == 5

    @pytest.mark.parametrize("amount", [0, -5, True])
    def test_award_rejects_non_positive_amounts(self, amount):
        """Test that awards must be positive integers."""
        ledger = CreditLedger()

        with pytest.raises(ValidationError):
            ledger.award(USER_ID, amount, "bad")

        assert ledger.balance(USER_ID).total_entries == 0


class TestDebitAndRefundFlow:
    """Tests for redemption debits and compensating refunds."""

    def test_debit_appends_negative_entry(self):
        """Test that a debit records a negative redemption entry."""
        ledger = CreditLedger()
        ledger.award(USER_ID, 170, "steps")

        debit = ledger.debit(USER_ID, 100, "Redeemed voucher", redemption_id=REDEMPTION_ID)

        assert debit.kind == TransactionKind.REDEMPTION
        assert debit.amount == -100
        assert debit.redemption_id == REDEMPTION_ID

        balance = ledger.balance(USER_ID)
        assert balance.available == 70
        assert balance.spent == 100

    def test_debit_beyond_balance_fails(self):
        """Test that an overdraft is refused and nothing is written."""
        ledger = CreditLedger()
        ledger.award(USER_ID, 50, "steps")

        with pytest.raises(InsufficientFundsError) as exc_info:
            ledger.debit(USER_ID, 80, "Too expensive")

        assert exc_info.value.available == 50
        assert exc_info.value.requested == 80
        assert ledger.balance(USER_ID).total_entries == 1

    def test_refund_restores_balance(self):
        """Test that a refund is a new entry that nets the debit to zero."""
        ledger = CreditLedger()
        ledger.award(USER_ID, 100, "steps")
        ledger.debit(USER_ID, 100, "Redeemed", redemption_id=REDEMPTION_ID)

        refund = ledger.refund(USER_ID, 100, "Partner failure", redemption_id=REDEMPTION_ID)

        assert refund.kind == TransactionKind.REFUND
        assert refund.amount == 100

        balance = ledger.balance(USER_ID)
        assert balance.available == 100
        # Refunds are positive movements, so they count as earned
        assert balance.earned == 200
        assert balance.spent == 100
        assert balance.total_entries == 3


class TestBalanceCalculation:
    """Tests for balance derivation."""

    def test_balance_matches_transaction_sums(self):
        """Test available == earned - spent for a mixed sequence."""
        ledger = CreditLedger()
        ledger.award(USER_ID, 120, "a")
        ledger.award(USER_ID, 35, "b")
        ledger.debit(USER_ID, 60, "c")
        ledger.refund(USER_ID, 60, "d")
        ledger.debit(USER_ID, 90, "e")

        transactions = ledger.transactions_for(USER_ID)
        earned = sum(t.amount for t in transactions if t.amount > 0)
        spent = sum(-t.amount for t in transactions if t.amount < 0)

        balance = ledger.balance(USER_ID)
        assert balance.earned == earned == 215
        assert balance.spent == spent == 150
        assert balance.available == earned - spent == 65

    def test_empty_balance(self):
        """Test a user with no transactions."""
        balance = CreditLedger().balance(USER_ID)

        assert balance.available == 0
        assert balance.total_entries == 0
        assert balance.last_transaction_at is None


class TestLedgerHistory:
    """Tests for history retrieval."""

    def test_history_is_newest_first_and_paginated(self):
        """Test ordering and pagination of the history view."""
        clock = ManualClock()
        ledger = CreditLedger(clock=clock)
        for amount in (10, 20, 30):
            ledger.award(USER_ID, amount, f"award {amount}")
            clock.advance(minutes=1)

        history = ledger.history(USER_ID, limit=2)

        assert history.total_count == 3
        assert [e.amount for e in history.entries] == [30, 20]
        assert history.available_balance == 60

        second_page = ledger.history(USER_ID, limit=2, offset=2)
        assert [e.amount for e in second_page.entries] == [10]

    def test_history_filters_by_time_range(self):
        """Test querying the ledger by time range."""
        clock = ManualClock()
        ledger = CreditLedger(clock=clock)
        start = clock()
        ledger.award(USER_ID, 10, "early")
        clock.advance(days=1)
        ledger.award(USER_ID, 20, "middle")
        clock.advance(days=1)
        ledger.award(USER_ID, 30, "late")

        entries = ledger.transactions_for(
            USER_ID, since=start + timedelta(hours=12), until=start + timedelta(days=1, hours=12)
        )

        assert [e.source for e in entries] == ["middle"]


class TestConcurrentDebits:
    """Tests for the atomic check-then-append debit."""

    def test_parallel_debits_never_overdraw(self):
        """Test that only the affordable number of debits succeed."""
        ledger = CreditLedger()
        ledger.award(USER_ID, 100, "steps")

        barrier = threading.Barrier(10)
        outcomes: list[bool] = []
        outcomes_lock = threading.Lock()

        def attempt():
            barrier.wait()
            try:
                ledger.debit(USER_ID, 30, "race")
                ok = True
            except InsufficientFundsError:
                ok = False
            with outcomes_lock:
                outcomes.append(ok)

        threads = [threading.Thread(target=attempt) for _ in range(10)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert outcomes.count(True) == 3
        assert ledger.balance(USER_ID).available == 10


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
