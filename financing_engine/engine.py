"""
Financing Engine

Wires storage, category lookup, orchestrator and flows together and
exposes the operations the API (or any other caller) uses.
"""

from decimal import InvalidOperation
from datetime import date, datetime, timezone
from typing import List, Optional, Union
import logging
import uuid

from .amortization import (
    EarlyPaymentSimulation, LoanParameters, ScheduleRow, calculate_installment,
    generate_schedule, simulate_early_payment
)
from .categories import CategoryLookup, StorageCategoryLookup
from .config import EngineConfig, get_config
from .errors import ValidationError
from .flows import EarlyPaymentFlow, InstallmentPaymentFlow
from .logging_config import log_action
from .models import (
    Account, AmortizationMethod, EarlyPaymentPreference, Loan, Payment, PaymentMethod,
    PaymentType
)
from .money import ZERO, parse_amount, to_decimal
from .payments import PaymentOrchestrator, coerce_enum
from .projection import LoanAggregates, project_balance
from .storage import StorageInterface, create_storage

logger = logging.getLogger(__name__)


class FinancingEngine:
    """Financing engine with all components initialized"""

    def __init__(
        self,
        storage: Optional[StorageInterface] = None,
        category_lookup: Optional[CategoryLookup] = None,
        config: Optional[EngineConfig] = None
    ):
        self.config = config or get_config()
        self.storage = storage or create_storage(self.config)

        self.categories = StorageCategoryLookup(self.storage)
        self.orchestrator = PaymentOrchestrator(
            self.storage, category_lookup or self.categories, self.config
        )
        self.installment_flow = InstallmentPaymentFlow(self.orchestrator)
        self.early_payment_flow = EarlyPaymentFlow(self.orchestrator)

    # Schedules

    def generate_schedule(self, params: LoanParameters) -> List[ScheduleRow]:
        return generate_schedule(params)

    def project_balance(self, params: LoanParameters, payments) -> LoanAggregates:
        return project_balance(params, payments)

    # Setup

    def register_expense_category(self, owner_id: str, name: str, is_default: bool = False) -> str:
        category_id = self.categories.register(owner_id, name, is_default)
        log_action(logger, "info", "Expense category registered", owner_id=owner_id,
                   action="register_category", resource=f"category:{category_id}")
        return category_id

    def open_account(self, owner_id: str, name: str, balance=ZERO) -> Account:
        """Create a cash account"""
        balance = parse_amount(balance, "opening balance")
        if balance < 0:
            raise ValidationError("Opening balance cannot be negative")

        now = datetime.now(timezone.utc)
        account = Account(
            id=str(uuid.uuid4()),
            created_at=now,
            updated_at=now,
            owner_id=owner_id,
            name=name,
            balance=balance
        )
        with self.storage.atomic():
            self.orchestrator.accounts.create(account)

        log_action(logger, "info", "Account opened", owner_id=owner_id,
                   action="open_account", resource=f"account:{account.id}")
        return account

    def get_account(self, owner_id: str, account_id: str) -> Account:
        return self.orchestrator.get_account(owner_id, account_id)

    def open_loan(
        self,
        owner_id: str,
        principal,
        periodic_rate,
        term_periods: int,
        method: Union[AmortizationMethod, str],
        start_date: date,
        description: str = ""
    ) -> Loan:
        """
        Register a loan.

        The scheduled installment is computed up front and stored with the
        loan; invalid parameters fail here rather than on the first payment.
        """
        method = coerce_enum(AmortizationMethod, method, "amortization method")
        principal = parse_amount(principal, "principal")
        try:
            periodic_rate = to_decimal(periodic_rate)
        except (InvalidOperation, TypeError, ValueError) as exc:
            raise ValidationError("Periodic rate must be a decimal number") from exc
        installment = calculate_installment(principal, periodic_rate, term_periods, method)

        now = datetime.now(timezone.utc)
        loan = Loan(
            id=str(uuid.uuid4()),
            created_at=now,
            updated_at=now,
            owner_id=owner_id,
            principal=principal,
            periodic_rate=periodic_rate,
            term_periods=term_periods,
            method=method,
            start_date=start_date,
            description=description,
            installment_amount=installment
        )
        with self.storage.atomic():
            self.orchestrator.loans.create(loan)

        log_action(logger, "info", "Loan opened", owner_id=owner_id, action="open_loan",
                   resource=f"loan:{loan.id}",
                   extra={"principal": str(principal), "method": method.value,
                          "term_periods": term_periods})
        return loan

    def get_loan(self, owner_id: str, loan_id: str) -> Loan:
        return self.orchestrator.get_loan(owner_id, loan_id)

    def loan_schedule(self, owner_id: str, loan_id: str) -> List[ScheduleRow]:
        return generate_schedule(LoanParameters.of(self.get_loan(owner_id, loan_id)))

    def loan_balance(self, owner_id: str, loan_id: str) -> LoanAggregates:
        """Aggregates derived from the payment history, ignoring the cache"""
        loan = self.get_loan(owner_id, loan_id)
        payments = self.orchestrator.payments.for_loan(owner_id, loan.id)
        return project_balance(LoanParameters.of(loan), payments)

    def refresh_loan_aggregates(self, owner_id: str, loan_id: str) -> Loan:
        return self.orchestrator.refresh_loan(owner_id, loan_id)

    # Payments

    def apply_payment(self, owner_id: str, **kwargs) -> Payment:
        return self.orchestrator.apply_payment(owner_id=owner_id, **kwargs)

    def pay_installment(
        self,
        owner_id: str,
        loan_id: str,
        installment_number: int,
        account_id: str,
        paid_amount,
        payment_date: date,
        payment_method: Union[PaymentMethod, str],
        observations: Optional[str] = None
    ) -> Payment:
        return self.installment_flow.pay_installment(
            owner_id, loan_id, installment_number, account_id, paid_amount,
            payment_date, payment_method, observations
        )

    def register_early_payment(
        self,
        owner_id: str,
        loan_id: str,
        account_id: str,
        paid_amount,
        payment_date: date,
        payment_method: Union[PaymentMethod, str],
        preference: Optional[Union[EarlyPaymentPreference, str]] = None,
        observations: Optional[str] = None
    ) -> Payment:
        return self.early_payment_flow.register_early_payment(
            owner_id, loan_id, account_id, paid_amount, payment_date,
            payment_method, preference, observations
        )

    def simulate_early_payment(
        self,
        owner_id: str,
        loan_id: str,
        amount,
        preference: Union[EarlyPaymentPreference, str]
    ) -> EarlyPaymentSimulation:
        """Project an early payment against the loan's true outstanding balance"""
        preference = coerce_enum(EarlyPaymentPreference, preference, "preference")
        loan = self.get_loan(owner_id, loan_id)
        aggregates = self.loan_balance(owner_id, loan_id)
        if aggregates.remaining_installments < 1 or aggregates.current_balance <= 0:
            raise ValidationError("Loan has no outstanding balance to prepay", {"loan_id": loan.id})

        return simulate_early_payment(
            aggregates.current_balance, loan.periodic_rate, aggregates.remaining_installments,
            loan.method, amount, preference
        )

    def get_payment(self, owner_id: str, payment_id: str) -> Payment:
        return self.orchestrator.get_payment(owner_id, payment_id)

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
        return self.orchestrator.list_payments(
            owner_id, loan_id=loan_id, account_id=account_id, payment_type=payment_type,
            payment_method=payment_method, date_from=date_from, date_to=date_to
        )

    def annotate_payment(self, owner_id: str, payment_id: str, observations: Optional[str]) -> Payment:
        return self.orchestrator.annotate_payment(owner_id, payment_id, observations)

    def delete_payment(self, owner_id: str, payment_id: str) -> None:
        self.orchestrator.delete_payment(owner_id, payment_id)

    def close(self) -> None:
        self.storage.close()
