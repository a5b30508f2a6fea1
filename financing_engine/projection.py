"""
Balance Projection Module

Derives a loan's aggregates from its parameters and the payments actually
recorded. This is the source of truth; the aggregates cached on the Loan
record are refreshed from it on every write.
"""

from decimal import Decimal
from dataclasses import dataclass
from typing import Iterable, List, Optional

from .amortization import LoanParameters, ScheduleRow, generate_schedule, summarize_schedule
from .models import LoanStatus
from .money import ZERO, quantize


@dataclass(frozen=True)
class LoanAggregates:
    current_balance: Decimal
    total_paid: Decimal
    total_interest_paid: Decimal
    paid_installments: int
    remaining_installments: int
    percentage_paid: Decimal
    status: LoanStatus


def project_balance(
    params: LoanParameters,
    payments: Iterable,
    schedule: Optional[List[ScheduleRow]] = None
) -> LoanAggregates:
    """
    Project the current state of a loan from its payment history.

    Args:
        params: Loan parameters
        payments: Committed payments (anything exposing payment_amount,
            principal_amount and interest_amount)
        schedule: Pre-computed schedule for params, generated when omitted

    Returns:
        LoanAggregates
    """
    payments = list(payments)
    total_paid = sum((p.payment_amount for p in payments), ZERO)
    total_interest_paid = sum((p.interest_amount for p in payments), ZERO)
    total_amortized = sum((p.principal_amount for p in payments), ZERO)
    paid_installments = len(payments)

    if schedule is None:
        schedule = generate_schedule(params)
    total_cost = summarize_schedule(schedule).total_payments
    percentage_paid = quantize(total_paid / total_cost * 100) if total_cost else ZERO

    if paid_installments >= params.term_periods:
        status = LoanStatus.SETTLED
    else:
        status = LoanStatus.ACTIVE

    return LoanAggregates(
        current_balance=quantize(params.principal - total_amortized),
        total_paid=quantize(total_paid),
        total_interest_paid=quantize(total_interest_paid),
        paid_installments=paid_installments,
        remaining_installments=max(params.term_periods - paid_installments, 0),
        percentage_paid=percentage_paid,
        status=status
    )
