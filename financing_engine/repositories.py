"""
Repository Module

Owner-scoped access to loans, accounts, payments and ledger transactions
on top of a StorageInterface. A record owned by someone else is treated
exactly like a missing one.
"""

from datetime import datetime, timezone
from typing import Generic, List, Optional, Type, TypeVar

from .models import Account, LedgerTransaction, Loan, Payment
from .storage import StorageInterface, StorageRecord

R = TypeVar('R', bound=StorageRecord)


class Repository(Generic[R]):
    """Typed table access"""

    table: str = ""
    record_type: Type[R]

    def __init__(self, storage: StorageInterface):
        self.storage = storage

    def get(self, owner_id: str, record_id: str) -> Optional[R]:
        """Load a record if it exists and belongs to owner_id"""
        data = self.storage.load(self.table, record_id)
        if not data or data.get('owner_id') != owner_id:
            return None
        return self.record_type.from_dict(data)

    def create(self, record: R) -> R:
        self.storage.insert(self.table, record.id, record.to_dict())
        return record

    def update(self, record: R) -> R:
        record.updated_at = datetime.now(timezone.utc)
        self.storage.save(self.table, record.id, record.to_dict())
        return record

    def find(self, owner_id: str, **filters) -> List[R]:
        filters['owner_id'] = owner_id
        return [self.record_type.from_dict(data) for data in self.storage.find(self.table, filters)]


class LoanRepository(Repository[Loan]):
    table = "loans"
    record_type = Loan


class AccountRepository(Repository[Account]):
    table = "accounts"
    record_type = Account


class LedgerTransactionRepository(Repository[LedgerTransaction]):
    table = "ledger_transactions"
    record_type = LedgerTransaction


class PaymentRepository(Repository[Payment]):
    table = "financing_payments"
    record_type = Payment

    # Unique (financing_id, installment_number) index
    slots_table = "payment_slots"

    @staticmethod
    def slot_key(financing_id: str, installment_number: int) -> str:
        return f"{financing_id}:{installment_number}"

    def for_loan(self, owner_id: str, financing_id: str) -> List[Payment]:
        """Payments of a loan ordered by installment number, unbound ones last"""
        payments = self.find(owner_id, financing_id=financing_id)
        payments.sort(key=lambda p: (p.installment_number is None, p.installment_number or 0, p.created_at))
        return payments

    def slot_taken(self, financing_id: str, installment_number: int) -> bool:
        return self.storage.exists(self.slots_table, self.slot_key(financing_id, installment_number))

    def create(self, record: Payment) -> Payment:
        """Insert the payment, claiming its installment slot first"""
        if record.installment_number is not None:
            self.storage.insert(
                self.slots_table,
                self.slot_key(record.financing_id, record.installment_number),
                {"payment_id": record.id}
            )
        return super().create(record)

    def delete(self, record: Payment) -> bool:
        if record.installment_number is not None:
            self.storage.delete(self.slots_table, self.slot_key(record.financing_id, record.installment_number))
        return self.storage.delete(self.table, record.id)
