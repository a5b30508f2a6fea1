"""
Payment Orchestration Module

The single write entry point for loan payments. Applying a payment creates
the ledger transaction and the payment record, debits the paying account
and refreshes the loan's cached aggregates, all inside one storage unit of
work: either the four writes commit together or none of them survives.
"""

from contextlib import contextmanager
from decimal import Decimal
from datetime import date, datetime, timezone
from typing import List, Optional, Union
import logging
import uuid

from .amortization import LoanParameters
from .categories import CategoryLookup
from .config import EngineConfig, get_config
from .errors import (
    DuplicateInstallmentError, DuplicateKeyError, FinancingError, InsufficientFundsError,
    InternalError, LinkedTransactionExistsError, NegativeBalanceError, NoExpenseCategoryError,
    NotFoundError, ValidationError
)
from .logging_config import log_action
from .models import (
    Account, EarlyPaymentPreference, LedgerTransaction, Loan, Payment, PaymentMethod,
    PaymentType, TransactionDirection
)
from .money import format_amount, parse_amount
from .projection import LoanAggregates, project_balance
from .repositories import (
    AccountRepository, LedgerTransactionRepository, LoanRepository, PaymentRepository
)
from .storage import StorageInterface

logger = logging.getLogger(__name__)

MAX_OBSERVATIONS_LENGTH = 1000


def coerce_enum(enum_type, value, field_name: str):
    if isinstance(value, enum_type):
        return value
    try:
        return enum_type(value)
    except ValueError:
        allowed = ", ".join(member.value for member in enum_type)
        raise ValidationError(f"Invalid {field_name} '{value}' (expected one of: {allowed})")


@contextmanager
def internal_errors(message: str, details: Optional[dict] = None):
    """Re-raise anything that is not a FinancingError as InternalError"""
    try:
        yield
    except FinancingError:
        raise
    except Exception as exc:
        logger.exception(message)
        raise InternalError(message, details) from exc


class PaymentOrchestrator:
    """
    Applies payments to loans and manages the payment records afterwards.
    """

    def __init__(
        self,
        storage: StorageInterface,
        category_lookup: CategoryLookup,
        config: Optional[EngineConfig] = None
    ):
        self.storage = storage
        self.category_lookup = category_lookup
        self.config = config or get_config()

        self.loans = LoanRepository(storage)
        self.accounts = AccountRepository(storage)
        self.payments = PaymentRepository(storage)
        self.transactions = LedgerTransactionRepository(storage)

    def apply_payment(
        self,
        owner_id: str,
        loan_id: str,
        account_id: str,
        installment_number: Optional[int],
        payment_amount,
        principal_amount,
        interest_amount,
        payment_date: date,
        payment_method: Union[PaymentMethod, str],
        payment_type: Union[PaymentType, str],
        observations: Optional[str] = None,
        preference: Optional[EarlyPaymentPreference] = None
    ) -> Payment:
        """
        Apply a payment to a loan atomically.

        Args:
            owner_id: Authenticated caller; loan and account must belong to it
            loan_id: Loan being paid
            account_id: Cash account debited
            installment_number: Schedule slot covered, or None for unbound payments
            payment_amount: Money leaving the account
            principal_amount: Part of the payment that amortizes the loan
            interest_amount: Part of the payment that is interest
            payment_date: Date of payment
            payment_method: How the money moved
            payment_type: installment, partial or early
            observations: Free-text annotation
            preference: Early payment intent, recorded as-is

        Returns:
            The committed Payment

        Raises:
            ValidationError, NotFoundError, DuplicateInstallmentError,
            NegativeBalanceError, InsufficientFundsError,
            NoExpenseCategoryError, InternalError
        """
        payment_amount = parse_amount(payment_amount, "payment amount")
        principal_amount = parse_amount(principal_amount, "principal amount")
        interest_amount = parse_amount(interest_amount, "interest amount")
        payment_method = coerce_enum(PaymentMethod, payment_method, "payment method")
        payment_type = coerce_enum(PaymentType, payment_type, "payment type")
        self._validate_request(installment_number, payment_amount, principal_amount,
                               interest_amount, payment_date, observations)

        try:
            with internal_errors("Payment could not be applied", {"loan_id": loan_id}):
                with self.storage.atomic():
                    payment = self._apply(
                        owner_id, loan_id, account_id, installment_number, payment_amount,
                        principal_amount, interest_amount, payment_date, payment_method,
                        payment_type, observations, preference
                    )
        except FinancingError as exc:
            log_action(
                logger, "warning", f"Payment rejected: {exc.message}",
                owner_id=owner_id, action="apply_payment", resource=f"loan:{loan_id}",
                extra={"error": exc.kind, "installment_number": installment_number,
                       "payment_amount": str(payment_amount)}
            )
            raise

        log_action(
            logger, "info", f"Payment of {format_amount(payment_amount)} applied",
            owner_id=owner_id, action="apply_payment", resource=f"loan:{loan_id}",
            extra={
                "payment_id": payment.id,
                "transaction_id": payment.transaction_id,
                "installment_number": installment_number,
                "payment_type": payment_type.value,
                "balance_after": str(payment.balance_after)
            }
        )
        return payment

    def _validate_request(
        self,
        installment_number: Optional[int],
        payment_amount: Decimal,
        principal_amount: Decimal,
        interest_amount: Decimal,
        payment_date: date,
        observations: Optional[str]
    ) -> None:
        """Boundary checks, run before anything is read or written"""
        ceiling = self.config.max_amount_value

        if payment_amount <= 0:
            raise ValidationError("Payment amount must be positive")
        if principal_amount < 0:
            raise ValidationError("Principal amount cannot be negative")
        if interest_amount < 0:
            raise ValidationError("Interest amount cannot be negative")
        for name, value in (("payment", payment_amount), ("principal", principal_amount),
                            ("interest", interest_amount)):
            if value > ceiling:
                raise ValidationError(f"{name.capitalize()} amount exceeds {format_amount(ceiling)}")

        if installment_number is not None:
            if isinstance(installment_number, bool) or not isinstance(installment_number, int) \
                    or installment_number < 1:
                raise ValidationError("Installment number must be a positive integer")

        if not isinstance(payment_date, date) or isinstance(payment_date, datetime):
            raise ValidationError("Payment date must be a date")
        if not self.config.allow_future_payment_dates and payment_date > date.today():
            raise ValidationError("Payment date cannot be in the future",
                                  {"payment_date": payment_date.isoformat()})

        if observations and len(observations) > MAX_OBSERVATIONS_LENGTH:
            raise ValidationError(f"Observations must have at most {MAX_OBSERVATIONS_LENGTH} characters")

    def _apply(
        self,
        owner_id: str,
        loan_id: str,
        account_id: str,
        installment_number: Optional[int],
        payment_amount: Decimal,
        principal_amount: Decimal,
        interest_amount: Decimal,
        payment_date: date,
        payment_method: PaymentMethod,
        payment_type: PaymentType,
        observations: Optional[str],
        preference: Optional[EarlyPaymentPreference]
    ) -> Payment:
        loan = self.get_loan(owner_id, loan_id)
        account = self.get_account(owner_id, account_id)

        if installment_number is not None and self.payments.slot_taken(loan.id, installment_number):
            raise DuplicateInstallmentError(
                f"Installment {installment_number} has already been paid",
                {"loan_id": loan.id, "installment_number": installment_number}
            )

        balance_before = loan.current_balance
        balance_after = balance_before - principal_amount
        if balance_after < -self.config.balance_tolerance_amount:
            raise NegativeBalanceError(
                "Payment would leave a negative outstanding balance",
                {"current_balance": str(balance_before), "principal_amount": str(principal_amount)}
            )

        if not self.config.allow_account_overdraft and account.balance < payment_amount:
            raise InsufficientFundsError(
                "Insufficient balance in the paying account",
                {"current_balance": str(account.balance), "required_amount": str(payment_amount)}
            )

        category_id = self.category_lookup.find_default_expense_category(owner_id)
        if not category_id:
            raise NoExpenseCategoryError("No expense category configured to record the payment")

        now = datetime.now(timezone.utc)

        transaction = LedgerTransaction(
            id=str(uuid.uuid4()),
            created_at=now,
            updated_at=now,
            owner_id=owner_id,
            account_id=account.id,
            category_id=category_id,
            amount=payment_amount,
            direction=TransactionDirection.EXPENSE,
            date=payment_date,
            payment_method=payment_method,
            description=self._describe(loan, installment_number, payment_type)
        )
        self.transactions.create(transaction)

        payment = Payment(
            id=str(uuid.uuid4()),
            created_at=now,
            updated_at=now,
            owner_id=owner_id,
            financing_id=loan.id,
            account_id=account.id,
            installment_number=installment_number,
            payment_amount=payment_amount,
            principal_amount=principal_amount,
            interest_amount=interest_amount,
            payment_date=payment_date,
            payment_method=payment_method,
            payment_type=payment_type,
            balance_before=balance_before,
            balance_after=balance_after,
            transaction_id=transaction.id,
            observations=observations,
            preference=preference
        )
        try:
            self.payments.create(payment)
        except DuplicateKeyError as exc:
            raise DuplicateInstallmentError(
                f"Installment {installment_number} has already been paid",
                {"loan_id": loan.id, "installment_number": installment_number}
            ) from exc

        account.balance = account.balance - payment_amount
        self.accounts.update(account)

        self._refresh_loan(loan)
        return payment

    def _describe(self, loan: Loan, installment_number: Optional[int], payment_type: PaymentType) -> str:
        label = loan.description or loan.id
        if payment_type is PaymentType.EARLY:
            return f"Early payment - Financing {label}"
        if installment_number is None:
            return f"Payment - Financing {label}"
        return f"Installment {installment_number} - Financing {label}"

    def _refresh_loan(self, loan: Loan) -> LoanAggregates:
        """Recompute and persist the loan's cached aggregates from its payments"""
        payments = self.payments.for_loan(loan.owner_id, loan.id)
        aggregates = project_balance(LoanParameters.of(loan), payments)

        previous_status = loan.status
        loan.current_balance = aggregates.current_balance
        loan.total_paid = aggregates.total_paid
        loan.total_interest_paid = aggregates.total_interest_paid
        loan.paid_installments = aggregates.paid_installments
        loan.status = loan.status.advance(aggregates.status)
        self.loans.update(loan)

        if loan.status is not previous_status:
            logger.info("Loan %s is now %s", loan.id, loan.status.value)
        return aggregates

    def refresh_loan(self, owner_id: str, loan_id: str) -> Loan:
        """Re-derive a loan's cached aggregates, repairing any drift"""
        with self.storage.atomic():
            loan = self.get_loan(owner_id, loan_id)
            self._refresh_loan(loan)
        return loan

    def get_loan(self, owner_id: str, loan_id: str) -> Loan:
        loan = self.loans.get(owner_id, loan_id)
        if not loan:
            raise NotFoundError("Loan not found", {"loan_id": loan_id})
        return loan

    def get_account(self, owner_id: str, account_id: str) -> Account:
        account = self.accounts.get(owner_id, account_id)
        if not account:
            raise NotFoundError("Account not found", {"account_id": account_id})
        return account

    def get_payment(self, owner_id: str, payment_id: str) -> Payment:
        payment = self.payments.get(owner_id, payment_id)
        if not payment:
            raise NotFoundError("Payment not found", {"payment_id": payment_id})
        return payment

    def list_payments(
        self,
        owner_id: str,
        loan_id: Optional[str] = None,
        account_id: Optional[str] = None,
        payment_type: Optional[Union[PaymentType, str]] = None,
        payment_method: Optional[Union[PaymentMethod, str]] = None,
        date_from: Optional[date] = None,
        date_to: Optional[date] = None
    ) -> List[Payment]:
        """Payments of an owner, newest first"""
        filters = {}
        if loan_id:
            filters['financing_id'] = loan_id
        if account_id:
            filters['account_id'] = account_id
        if payment_type:
            filters['payment_type'] = coerce_enum(PaymentType, payment_type, "payment type").value
        if payment_method:
            filters['payment_method'] = coerce_enum(PaymentMethod, payment_method, "payment method").value

        payments = self.payments.find(owner_id, **filters)
        if date_from:
            payments = [p for p in payments if p.payment_date >= date_from]
        if date_to:
            payments = [p for p in payments if p.payment_date <= date_to]

        payments.sort(key=lambda p: (p.payment_date, p.created_at), reverse=True)
        return payments

    def annotate_payment(self, owner_id: str, payment_id: str, observations: Optional[str]) -> Payment:
        """Replace a payment's observations, the only mutable field"""
        if observations and len(observations) > MAX_OBSERVATIONS_LENGTH:
            raise ValidationError(f"Observations must have at most {MAX_OBSERVATIONS_LENGTH} characters")

        with self.storage.atomic():
            payment = self.get_payment(owner_id, payment_id)
            payment.observations = observations
            self.payments.update(payment)
        return payment

    def delete_payment(self, owner_id: str, payment_id: str) -> None:
        """
        Delete a payment that never moved money.

        Raises:
            LinkedTransactionExistsError: the payment carries a transaction_id
        """
        with self.storage.atomic():
            payment = self.get_payment(owner_id, payment_id)
            if payment.transaction_id:
                raise LinkedTransactionExistsError(
                    "Cannot delete a payment with a linked transaction",
                    {"payment_id": payment.id, "transaction_id": payment.transaction_id}
                )

            self.payments.delete(payment)
            loan = self.loans.get(owner_id, payment.financing_id)
            if loan:
                self._refresh_loan(loan)

        log_action(logger, "info", "Payment deleted", owner_id=owner_id,
                   action="delete_payment", resource=f"payment:{payment_id}")
