"""Domain error taxonomy.

Every error carries a stable ``code`` and an HTTP-ish ``status_code`` so the
boundary layer (CLI today, anything else later) can report it without knowing
the concrete class.
"""

from __future__ import annotations


class SpendCastError(Exception):
    """Base class for errors raised deliberately by the engine."""

    code = "SPENDCAST_ERROR"
    status_code = 500

    def __init__(self, message: str, *, code: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        if code is not None:
            self.code = code

    def to_dict(self) -> dict[str, object]:
        return {"error": self.message, "code": self.code, "status": self.status_code}


class ValidationError(SpendCastError):
    code = "VALIDATION_ERROR"
    status_code = 400


class InsufficientDataError(SpendCastError):
    """Not enough transaction history to forecast."""

    code = "INSUFFICIENT_DATA"
    status_code = 400


class InvalidDateRangeError(ValidationError):
    code = "INVALID_DATE_RANGE"


class OverlappingBudgetError(SpendCastError):
    """Another active/paused budget already covers one of the categories."""

    code = "OVERLAPPING_BUDGET"
    status_code = 409


class BudgetNotFoundError(SpendCastError):
    code = "BUDGET_NOT_FOUND"
    status_code = 404


class TransactionNotFoundError(SpendCastError):
    code = "TRANSACTION_NOT_FOUND"
    status_code = 404


class AutoRenewalDisabledError(SpendCastError):
    code = "AUTO_RENEWAL_DISABLED"
    status_code = 400


class BudgetNotCompletedError(SpendCastError):
    code = "BUDGET_NOT_COMPLETED"
    status_code = 400


class ConcurrentUpdateError(SpendCastError):
    """The budget row changed between read and compare-and-swap write."""

    code = "CONCURRENT_UPDATE"
    status_code = 409
