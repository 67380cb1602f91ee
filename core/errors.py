from enum import Enum


class FailureKind(str, Enum):
    VALIDATION = "VALIDATION"
    ELIGIBILITY = "ELIGIBILITY"
    CONCURRENCY_CONFLICT = "CONCURRENCY_CONFLICT"
    PARTNER_INTEGRATION = "PARTNER_INTEGRATION"
    NOT_FOUND = "NOT_FOUND"
    AUTHENTICATION_REQUIRED = "AUTHENTICATION_REQUIRED"
    INTERNAL = "INTERNAL"


class EcoCreditError(Exception):
    kind = FailureKind.INTERNAL


class ValidationError(EcoCreditError):
    kind = FailureKind.VALIDATION


class InvalidStateTransitionError(ValidationError):
    pass


class EligibilityError(EcoCreditError):
    kind = FailureKind.ELIGIBILITY


class ConcurrencyConflict(EcoCreditError):
    """Lost a race on a user's balance or a reward's stock."""
    kind = FailureKind.CONCURRENCY_CONFLICT


class InsufficientFundsError(ConcurrencyConflict):
    def __init__(self, available: int, requested: int):
        self.available = available
        self.requested = requested
        super().__init__(f"Insufficient credits. You have {available}, need {requested}")


class OutOfStockError(ConcurrencyConflict):
    pass


class PartnerIntegrationError(EcoCreditError):
    kind = FailureKind.PARTNER_INTEGRATION


class NotFoundError(EcoCreditError):
    kind = FailureKind.NOT_FOUND


class AuthenticationRequired(EcoCreditError):
    kind = FailureKind.AUTHENTICATION_REQUIRED
