"""Typed error taxonomy for the financing engine."""

from typing import Any, Dict, Optional


class FinancingError(Exception):
    """Base exception for all financing engine errors."""

    kind = "financing_error"

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        result = {"error": self.kind, "detail": self.message}
        if self.details:
            result["details"] = self.details
        return result


class NotFoundError(FinancingError):
    """Loan, account or payment is missing or not owned by the caller."""

    kind = "not_found"


class InstallmentNotFoundError(NotFoundError):
    """Installment number is outside the loan's schedule."""

    kind = "installment_not_found"


class ValidationError(FinancingError):
    """Malformed or out-of-range input."""

    kind = "validation"


class InvalidScheduleInputError(ValidationError):
    """Loan parameters cannot produce a schedule."""

    kind = "invalid_schedule_input"


class InsufficientFundsError(ValidationError):
    """The paying account does not hold enough money."""

    kind = "insufficient_funds"


class DuplicateInstallmentError(FinancingError):
    """A payment already occupies this installment slot."""

    kind = "duplicate_installment"


class NegativeBalanceError(FinancingError):
    """The payment would push the outstanding balance below zero."""

    kind = "negative_balance"


class ExceedsOutstandingBalanceError(FinancingError):
    """Early payment equals or exceeds the full payoff amount."""

    kind = "exceeds_outstanding_balance"


class InsufficientAmountError(FinancingError):
    """Paid amount is below the scheduled installment."""

    kind = "insufficient_amount"


class NoExpenseCategoryError(FinancingError):
    """The owner has no expense category to tag the ledger transaction."""

    kind = "no_expense_category"


class LinkedTransactionExistsError(FinancingError):
    """Payment moved real money and cannot be deleted."""

    kind = "linked_transaction_exists"


class InternalError(FinancingError):
    """Infrastructure fault (storage unavailable, corrupted row, ...)."""

    kind = "internal"


class DuplicateKeyError(Exception):
    """Storage-level unique key violation."""

    def __init__(self, table: str, record_id: str):
        super().__init__(f"Duplicate key {record_id} in {table}")
        self.table = table
        self.record_id = record_id
