"""
Redemption Engine

This module provides:
- Eligibility checks against balance, availability and per-reward limits
- Partner voucher issuance with simulated latency and failures
- The redemption state machine: reserve, issue, settle or compensate
- Voucher validation and single-use marking
- Read-side queries for history, active vouchers and statistics
"""

from .models import (
    RedemptionStatus,
    Redemption,
    VoucherCode,
    EligibilityResult,
    VoucherIssueResult,
    RedemptionResult,
    VoucherValidationResult,
    RedemptionStats,
)
from .eligibility import EligibilityChecker
from .vouchers import PartnerProfile, PARTNER_PROFILES, VoucherIssuer
from .workflow import RedemptionWorkflow
from .service import RedemptionService

__all__ = [
    "RedemptionStatus",
    "Redemption",
    "VoucherCode",
    "EligibilityResult",
    "VoucherIssueResult",
    "RedemptionResult",
    "VoucherValidationResult",
    "RedemptionStats",
    "EligibilityChecker",
    "PartnerProfile",
    "PARTNER_PROFILES",
    "VoucherIssuer",
    "RedemptionWorkflow",
    "RedemptionService",
]
