"""
Payment Flows

Request-shaping wrappers over the PaymentOrchestrator. The installment
flow takes the principal/interest split from the theoretical schedule;
the early payment flow applies the whole amount to principal.

Each flow runs its reads inside the same unit of work as the payment it
applies, so the schedule row or balance it relied on cannot change under it.
"""

from datetime import date
from typing import Optional, Union
import logging

from .amortization import LoanParameters, find_row, generate_schedule
from .errors import (
    ExceedsOutstandingBalanceError, InstallmentNotFoundError, InsufficientAmountError,
    ValidationError
)
from .models import EarlyPaymentPreference, Payment, PaymentMethod, PaymentType
from .money import ZERO, format_amount, parse_amount
from .payments import PaymentOrchestrator, coerce_enum, internal_errors
from .projection import project_balance

logger = logging.getLogger(__name__)


def _paid_amount(value):
    amount = parse_amount(value, "paid amount")
    if amount <= 0:
        raise ValidationError("Paid amount must be positive")
    return amount


class InstallmentPaymentFlow:
    """Pays one scheduled installment"""

    def __init__(self, orchestrator: PaymentOrchestrator):
        self.orchestrator = orchestrator

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
        """
        Pay installment `installment_number` of a loan.

        Paying more than the scheduled amount is accepted and recorded as a
        partial payment; the principal/interest split stays the scheduled one.

        Raises:
            InstallmentNotFoundError: number outside the schedule
            InsufficientAmountError: paid amount below the scheduled installment
            InternalError: storage failure, nothing was written
        """
        if isinstance(installment_number, bool) or not isinstance(installment_number, int):
            raise ValidationError("Installment number must be an integer")
        paid = _paid_amount(paid_amount)

        with internal_errors("Installment payment could not be applied", {"loan_id": loan_id}), \
                self.orchestrator.storage.atomic():
            loan = self.orchestrator.get_loan(owner_id, loan_id)
            schedule = generate_schedule(LoanParameters.of(loan))

            row = find_row(schedule, installment_number)
            if row is None:
                raise InstallmentNotFoundError(
                    f"Installment {installment_number} is not part of the schedule",
                    {"loan_id": loan.id, "term_periods": loan.term_periods}
                )

            if paid < row.payment_amount:
                raise InsufficientAmountError(
                    f"Paid amount is below the scheduled installment of {format_amount(row.payment_amount)}",
                    {"scheduled_amount": str(row.payment_amount), "paid_amount": str(paid)}
                )

            payment_type = PaymentType.PARTIAL if paid > row.payment_amount else PaymentType.INSTALLMENT

            return self.orchestrator.apply_payment(
                owner_id=owner_id,
                loan_id=loan.id,
                account_id=account_id,
                installment_number=installment_number,
                payment_amount=paid,
                principal_amount=row.principal_amount,
                interest_amount=row.interest_amount,
                payment_date=payment_date,
                payment_method=payment_method,
                payment_type=payment_type,
                observations=observations
            )


class EarlyPaymentFlow:
    """Registers extraordinary payments applied entirely to principal"""

    def __init__(self, orchestrator: PaymentOrchestrator):
        self.orchestrator = orchestrator

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
        """
        Register an early payment.

        The outstanding balance is projected from the payment history rather
        than read from the loan record. The payment is bound to the lowest
        installment number not yet occupied. The preference is stored as
        given and does not alter the schedule.

        Raises:
            ExceedsOutstandingBalanceError: amount equals or exceeds the payoff amount
            InstallmentNotFoundError: every installment slot is already occupied
            InternalError: storage failure, nothing was written
        """
        paid = _paid_amount(paid_amount)
        if preference is not None:
            preference = coerce_enum(EarlyPaymentPreference, preference, "preference")

        with internal_errors("Early payment could not be applied", {"loan_id": loan_id}), \
                self.orchestrator.storage.atomic():
            loan = self.orchestrator.get_loan(owner_id, loan_id)
            payments = self.orchestrator.payments.for_loan(owner_id, loan.id)
            aggregates = project_balance(LoanParameters.of(loan), payments)

            if paid >= aggregates.current_balance:
                raise ExceedsOutstandingBalanceError(
                    "Early payment must be lower than the outstanding balance",
                    {"current_balance": str(aggregates.current_balance), "paid_amount": str(paid)}
                )

            occupied = {p.installment_number for p in payments if p.installment_number is not None}
            slot = next((n for n in range(1, loan.term_periods + 1) if n not in occupied), None)
            if slot is None:
                raise InstallmentNotFoundError("Every installment of this loan is already paid",
                                               {"loan_id": loan.id})

            note = "Early payment"
            if observations:
                note = f"{note}: {observations}"

            logger.debug("Binding early payment on loan %s to installment %d", loan.id, slot)

            return self.orchestrator.apply_payment(
                owner_id=owner_id,
                loan_id=loan.id,
                account_id=account_id,
                installment_number=slot,
                payment_amount=paid,
                principal_amount=paid,
                interest_amount=ZERO,
                payment_date=payment_date,
                payment_method=payment_method,
                payment_type=PaymentType.EARLY,
                observations=note,
                preference=preference
            )
