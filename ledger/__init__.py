"""
Eco-credit Ledger

This module provides:
- Immutable credit transactions (earned, redemption, refund)
- Balances derived from the transactions, never stored
- Atomic check-then-append debits per user
- Steps to eco-credit conversion
"""

from .models import (
    TransactionKind,
    CreditTransaction,
    CreditBalance,
    LedgerHistoryResponse,
    CreditCalculation,
    StepRecord,
)
from .conversion import calculate_eco_credits
from .service import CreditLedger

__all__ = [
    "TransactionKind",
    "CreditTransaction",
    "CreditBalance",
    "LedgerHistoryResponse",
    "CreditCalculation",
    "StepRecord",
    "calculate_eco_credits",
    "CreditLedger",
]
