"""
Financing Engine

Loan repayment schedules (Price and SAC), installment and early payments,
and atomic updates of the loan, cash account, ledger transaction and
payment record. All financial math uses Decimal.
"""

__version__ = "1.0.0"
