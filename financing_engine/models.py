"""
Domain Records

Loans, cash accounts, ledger transactions and loan payments, plus the
enumerations shared by the schedule math and the payment flows.
"""

from decimal import Decimal
from datetime import date
from dataclasses import dataclass
from typing import Optional
from enum import Enum

from .money import ZERO
from .storage import StorageRecord


class AmortizationMethod(Enum):
    """Methods for loan amortization"""
    PRICE = "price"  # Constant installment (French system)
    SAC = "sac"      # Constant amortization, declining installment


class LoanStatus(Enum):
    """Loan lifecycle states. The only transition is ACTIVE -> SETTLED."""
    ACTIVE = "active"
    SETTLED = "settled"

    def advance(self, projected: 'LoanStatus') -> 'LoanStatus':
        """Next status given a projected one; settled loans never reopen"""
        if self is LoanStatus.SETTLED:
            return self
        return projected


class PaymentType(Enum):
    INSTALLMENT = "installment"  # Exactly the scheduled amount
    PARTIAL = "partial"          # Scheduled installment paid with a surplus
    EARLY = "early"              # Extraordinary payment, all principal


class PaymentMethod(Enum):
    BOLETO = "boleto"
    AUTOMATIC_DEBIT = "automatic_debit"
    CARD = "card"
    PIX = "pix"
    TRANSFER = "transfer"


class EarlyPaymentPreference(Enum):
    """What the borrower wants an early payment to shrink"""
    REDUCE_TERM = "reduce_term"
    REDUCE_INSTALLMENT = "reduce_installment"


class TransactionDirection(Enum):
    INCOME = "income"
    EXPENSE = "expense"


@dataclass
class Loan(StorageRecord):
    """Financing contract with cached repayment aggregates"""
    owner_id: str
    principal: Decimal
    periodic_rate: Decimal
    term_periods: int
    method: AmortizationMethod
    start_date: date
    description: str = ""
    installment_amount: Decimal = ZERO
    current_balance: Optional[Decimal] = None
    total_paid: Decimal = ZERO
    total_interest_paid: Decimal = ZERO
    paid_installments: int = 0
    status: LoanStatus = LoanStatus.ACTIVE

    decimal_fields = ('principal', 'periodic_rate', 'installment_amount', 'current_balance',
                      'total_paid', 'total_interest_paid')
    date_fields = ('start_date',)
    enum_fields = {'method': AmortizationMethod, 'status': LoanStatus}

    def __post_init__(self):
        if self.current_balance is None:
            self.current_balance = self.principal


@dataclass
class Account(StorageRecord):
    """Cash account whose balance is debited by payments"""
    owner_id: str
    name: str
    balance: Decimal = ZERO

    decimal_fields = ('balance',)


@dataclass
class LedgerTransaction(StorageRecord):
    """Immutable record of one movement of money against an account"""
    owner_id: str
    account_id: str
    category_id: str
    amount: Decimal
    direction: TransactionDirection
    date: date
    payment_method: PaymentMethod
    description: str

    decimal_fields = ('amount',)
    date_fields = ('date',)
    enum_fields = {'direction': TransactionDirection, 'payment_method': PaymentMethod}


@dataclass
class Payment(StorageRecord):
    """Payment applied to a loan. Immutable except for observations."""
    owner_id: str
    financing_id: str
    account_id: str
    installment_number: Optional[int]
    payment_amount: Decimal
    principal_amount: Decimal
    interest_amount: Decimal
    payment_date: date
    payment_method: PaymentMethod
    payment_type: PaymentType
    balance_before: Decimal
    balance_after: Decimal
    transaction_id: Optional[str] = None
    observations: Optional[str] = None
    preference: Optional[EarlyPaymentPreference] = None

    decimal_fields = ('payment_amount', 'principal_amount', 'interest_amount',
                      'balance_before', 'balance_after')
    date_fields = ('payment_date',)
    enum_fields = {
        'payment_method': PaymentMethod,
        'payment_type': PaymentType,
        'preference': EarlyPaymentPreference,
    }
