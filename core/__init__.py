"""
Shared building blocks for the EcoCredit service.

This package provides:
- The error taxonomy used across ledger, redemption and API layers
- Settings loaded from the environment
- Module logger setup
- An injectable clock type and the UTC default
- In-memory storage with per-user and per-reward locks
"""

from .clock import Clock, utc_now
from .config import Settings, get_settings
from .errors import (
    FailureKind,
    EcoCreditError,
    ValidationError,
    InvalidStateTransitionError,
    EligibilityError,
    ConcurrencyConflict,
    InsufficientFundsError,
    OutOfStockError,
    PartnerIntegrationError,
    NotFoundError,
    AuthenticationRequired,
)
from .logging_config import get_module_logger, setup_logging
from .storage import InMemoryStorage

__all__ = [
    "Clock",
    "utc_now",
    "Settings",
    "get_settings",
    "FailureKind",
    "EcoCreditError",
    "ValidationError",
    "InvalidStateTransitionError",
    "EligibilityError",
    "ConcurrencyConflict",
    "InsufficientFundsError",
    "OutOfStockError",
    "PartnerIntegrationError",
    "NotFoundError",
    "AuthenticationRequired",
    "get_module_logger",
    "setup_logging",
    "InMemoryStorage",
]
