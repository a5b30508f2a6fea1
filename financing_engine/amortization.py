"""
Amortization Module

Pure schedule math for the Price (constant installment) and SAC (constant
amortization) methods, plus the read-only early payment simulation.

Balances are tracked at full Decimal precision and each row is derived
from the rounded balances before and after it, so the rounded principal
column always sums to exactly the financed amount and the last row ends
at exactly zero.
"""

from decimal import Decimal, ROUND_CEILING
from datetime import date
from dataclasses import dataclass
from typing import List, Optional
import calendar
import math

from .errors import InvalidScheduleInputError, ValidationError
from .models import AmortizationMethod, EarlyPaymentPreference
from .money import ZERO, quantize, to_decimal

ONE = Decimal('1')


@dataclass(frozen=True)
class LoanParameters:
    """Inputs that fully determine a schedule"""
    principal: Decimal
    periodic_rate: Decimal
    term_periods: int
    method: AmortizationMethod
    start_date: date

    @classmethod
    def of(cls, loan) -> 'LoanParameters':
        """Parameters of a stored loan"""
        return cls(
            principal=loan.principal,
            periodic_rate=loan.periodic_rate,
            term_periods=loan.term_periods,
            method=loan.method,
            start_date=loan.start_date
        )


@dataclass(frozen=True)
class ScheduleRow:
    """Single entry in amortization schedule"""
    installment_number: int
    due_date: date
    payment_amount: Decimal
    principal_amount: Decimal
    interest_amount: Decimal
    remaining_balance: Decimal


@dataclass(frozen=True)
class ScheduleSummary:
    total_payments: Decimal
    total_amortization: Decimal
    total_interest: Decimal
    principal: Decimal


@dataclass(frozen=True)
class EarlyPaymentSimulation:
    """Projected effect of an early payment on the remaining schedule"""
    original_principal: Decimal
    early_payment_amount: Decimal
    new_principal: Decimal
    new_payment: Decimal
    new_term: int
    interest_saved: Decimal


def add_months(start_date: date, months: int) -> date:
    """Add months to a date, handling month-end edge cases"""
    month = start_date.month - 1 + months
    year = start_date.year + month // 12
    month = month % 12 + 1
    day = min(start_date.day, calendar.monthrange(year, month)[1])
    return date(year, month, day)


def _validate(principal: Decimal, rate: Decimal, term_periods: int) -> None:
    if principal <= 0:
        raise InvalidScheduleInputError("Principal must be positive", {"principal": str(principal)})
    if rate < 0:
        raise InvalidScheduleInputError("Periodic rate cannot be negative", {"periodic_rate": str(rate)})
    if isinstance(term_periods, bool) or not isinstance(term_periods, int) or term_periods < 1:
        raise InvalidScheduleInputError("Term must be a positive whole number of periods",
                                        {"term_periods": term_periods})


def _price_installment(principal: Decimal, rate: Decimal, term_periods: int) -> Decimal:
    """Unrounded constant installment: P * r / (1 - (1 + r)^-n)"""
    if rate == 0:
        return principal / term_periods
    return principal * rate / (ONE - (ONE + rate) ** -term_periods)


def calculate_installment(
    principal,
    periodic_rate,
    term_periods: int,
    method: AmortizationMethod
) -> Decimal:
    """
    Scheduled installment for a loan.

    Price returns the constant installment; SAC returns the first (and
    largest) installment, amortization plus one period of interest on the
    full principal.
    """
    principal = to_decimal(principal)
    rate = to_decimal(periodic_rate)
    _validate(principal, rate, term_periods)

    if method is AmortizationMethod.PRICE:
        return quantize(_price_installment(principal, rate, term_periods))
    if method is AmortizationMethod.SAC:
        return quantize(principal / term_periods + principal * rate)
    raise InvalidScheduleInputError(f"Unsupported amortization method: {method}")


def generate_schedule(params: LoanParameters) -> List[ScheduleRow]:
    """
    Generate the full theoretical schedule for a loan.

    Args:
        params: Principal, periodic rate, term, method and start date

    Returns:
        One ScheduleRow per period, ordered by installment number
    """
    principal = to_decimal(params.principal)
    rate = to_decimal(params.periodic_rate)
    term = params.term_periods
    _validate(principal, rate, term)

    if params.method is AmortizationMethod.PRICE:
        installment = _price_installment(principal, rate, term)
        fixed_payment = quantize(installment)
        if rate == 0:
            # No interest to absorb rounding; the last row takes the remainder
            installment = fixed_payment
    elif params.method is AmortizationMethod.SAC:
        amortization = principal / term
    else:
        raise InvalidScheduleInputError(f"Unsupported amortization method: {params.method}")

    rows = []
    exact_balance = principal
    rounded_balance = quantize(principal)

    for number in range(1, term + 1):
        exact_interest = exact_balance * rate
        is_last = number == term

        if is_last:
            next_exact = ZERO
        elif params.method is AmortizationMethod.PRICE:
            next_exact = exact_balance + exact_interest - installment
        else:
            next_exact = principal - amortization * number

        next_rounded = quantize(next_exact)
        principal_amount = rounded_balance - next_rounded

        if params.method is AmortizationMethod.PRICE and not is_last:
            # Keep the installment constant; interest takes the rounding residue
            payment_amount = fixed_payment
            interest_amount = payment_amount - principal_amount
            if interest_amount < 0:
                interest_amount = ZERO
                payment_amount = principal_amount
        else:
            interest_amount = quantize(exact_interest)
            payment_amount = principal_amount + interest_amount

        rows.append(ScheduleRow(
            installment_number=number,
            due_date=add_months(params.start_date, number),
            payment_amount=payment_amount,
            principal_amount=principal_amount,
            interest_amount=interest_amount,
            remaining_balance=next_rounded
        ))

        exact_balance = next_exact
        rounded_balance = next_rounded

    return rows


def find_row(schedule: List[ScheduleRow], installment_number: int) -> Optional[ScheduleRow]:
    """Row for an installment number, or None when out of range"""
    if 1 <= installment_number <= len(schedule):
        return schedule[installment_number - 1]
    return None


def summarize_schedule(schedule: List[ScheduleRow]) -> ScheduleSummary:
    """Totals over a schedule"""
    total_amortization = sum((row.principal_amount for row in schedule), ZERO)
    total_interest = sum((row.interest_amount for row in schedule), ZERO)
    principal = schedule[0].principal_amount + schedule[0].remaining_balance if schedule else ZERO
    return ScheduleSummary(
        total_payments=total_amortization + total_interest,
        total_amortization=total_amortization,
        total_interest=total_interest,
        principal=principal
    )


def _remaining_cost(principal: Decimal, rate: Decimal, term: int, method: AmortizationMethod) -> Decimal:
    """Total interest a balance would still accrue over `term` periods"""
    if term < 1 or principal <= 0:
        return ZERO
    if method is AmortizationMethod.PRICE:
        return _price_installment(principal, rate, term) * term - principal
    # SAC: interest on a linearly declining balance
    return principal * rate * (term + 1) / 2


def simulate_early_payment(
    outstanding_balance,
    periodic_rate,
    remaining_periods: int,
    method: AmortizationMethod,
    amount,
    preference: EarlyPaymentPreference
) -> EarlyPaymentSimulation:
    """
    Project what an early payment would do to the rest of the schedule.

    REDUCE_TERM keeps the installment and shortens the term (for SAC the
    amortization per period is kept, so fewer periods remain);
    REDUCE_INSTALLMENT keeps the term and recomputes a smaller installment.
    Nothing is persisted.
    """
    balance = to_decimal(outstanding_balance)
    rate = to_decimal(periodic_rate)
    amount = to_decimal(amount)
    _validate(balance, rate, remaining_periods)

    if amount <= 0:
        raise ValidationError("Early payment amount must be positive")
    if amount >= balance:
        raise ValidationError("Early payment must be lower than the outstanding balance",
                              {"outstanding_balance": str(balance), "amount": str(amount)})

    new_principal = balance - amount

    if preference is EarlyPaymentPreference.REDUCE_INSTALLMENT:
        new_term = remaining_periods
        new_payment = calculate_installment(new_principal, rate, new_term, method)
    elif method is AmortizationMethod.PRICE:
        installment = _price_installment(balance, rate, remaining_periods)
        if rate == 0:
            periods = new_principal / installment
        else:
            # n = -ln(1 - B*r/PMT) / ln(1 + r)
            periods = Decimal(-math.log(float(ONE - new_principal * rate / installment))
                              / math.log(float(ONE + rate)))
        new_term = max(1, int(periods.to_integral_value(rounding=ROUND_CEILING)))
        new_payment = quantize(installment)
    else:
        amortization = balance / remaining_periods
        new_term = max(1, int((new_principal / amortization).to_integral_value(rounding=ROUND_CEILING)))
        new_payment = quantize(amortization + new_principal * rate)

    interest_saved = (_remaining_cost(balance, rate, remaining_periods, method)
                      - _remaining_cost(new_principal, rate, new_term, method))

    return EarlyPaymentSimulation(
        original_principal=quantize(balance),
        early_payment_amount=quantize(amount),
        new_principal=quantize(new_principal),
        new_payment=new_payment,
        new_term=new_term,
        interest_saved=quantize(max(interest_saved, ZERO))
    )
