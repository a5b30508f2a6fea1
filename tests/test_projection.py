"""
Tests for balance projection from payment history
"""

from decimal import Decimal
from datetime import date
from types import SimpleNamespace

from financing_engine.amortization import LoanParameters, generate_schedule
from financing_engine.models import AmortizationMethod, LoanStatus
from financing_engine.projection import project_balance


def paid(row):
    return SimpleNamespace(
        payment_amount=row.payment_amount,
        principal_amount=row.principal_amount,
        interest_amount=row.interest_amount
    )


class TestProjectBalance:

    def setup_method(self):
        self.params = LoanParameters(
            principal=Decimal('12000.00'),
            periodic_rate=Decimal('0.01'),
            term_periods=12,
            method=AmortizationMethod.PRICE,
            start_date=date(2024, 1, 15)
        )
        self.schedule = generate_schedule(self.params)

    def test_no_payments(self):
        aggregates = project_balance(self.params, [])
        assert aggregates.current_balance == Decimal('12000.00')
        assert aggregates.total_paid == Decimal('0.00')
        assert aggregates.paid_installments == 0
        assert aggregates.remaining_installments == 12
        assert aggregates.percentage_paid == Decimal('0.00')
        assert aggregates.status == LoanStatus.ACTIVE

    def test_first_installment(self):
        aggregates = project_balance(self.params, [paid(self.schedule[0])])
        assert aggregates.current_balance == Decimal('11053.81')
        assert aggregates.total_paid == Decimal('1066.19')
        assert aggregates.total_interest_paid == Decimal('120.00')
        assert aggregates.paid_installments == 1
        assert aggregates.remaining_installments == 11

    def test_matches_schedule_after_each_installment(self):
        payments = []
        for row in self.schedule:
            payments.append(paid(row))
            aggregates = project_balance(self.params, payments, self.schedule)
            assert aggregates.current_balance == row.remaining_balance

    def test_all_installments_settle_loan(self):
        aggregates = project_balance(self.params, [paid(row) for row in self.schedule])
        assert aggregates.current_balance == Decimal('0.00')
        assert aggregates.total_interest_paid == Decimal('794.28')
        assert aggregates.percentage_paid == Decimal('100.00')
        assert aggregates.remaining_installments == 0
        assert aggregates.status == LoanStatus.SETTLED

    def test_early_payment_counts_as_principal(self):
        early = SimpleNamespace(payment_amount=Decimal('5000.00'), principal_amount=Decimal('5000.00'),
                                interest_amount=Decimal('0.00'))
        aggregates = project_balance(self.params, [paid(self.schedule[0]), early])
        assert aggregates.current_balance == Decimal('6053.81')
        assert aggregates.total_interest_paid == Decimal('120.00')

    def test_idempotent(self):
        payments = [paid(row) for row in self.schedule[:4]]
        assert project_balance(self.params, payments) == project_balance(self.params, payments)
