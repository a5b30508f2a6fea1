"""
Concurrency tests on SQLite

Concurrent payments against the same loan must serialize: the same
installment is paid exactly once, different installments all land.
"""

import os
import tempfile
import threading
from decimal import Decimal
from datetime import date

from financing_engine.config import EngineConfig
from financing_engine.engine import FinancingEngine
from financing_engine.errors import DuplicateInstallmentError
from financing_engine.storage import SQLiteStorage

OWNER = "owner-1"


def run_concurrently(calls):
    """Run callables on separate threads released together; return results or exceptions"""
    barrier = threading.Barrier(len(calls))
    results = [None] * len(calls)

    def worker(index, call):
        barrier.wait()
        try:
            results[index] = call()
        except Exception as exc:
            results[index] = exc

    threads = [threading.Thread(target=worker, args=(i, call)) for i, call in enumerate(calls)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join(timeout=30)
    return results


class TestConcurrentPayments:

    def setup_method(self):
        self.tmp = tempfile.TemporaryDirectory()
        self.db_path = os.path.join(self.tmp.name, "financing.db")
        self.config = EngineConfig(storage_backend="sqlite", database_path=self.db_path)
        self.engine = FinancingEngine(storage=SQLiteStorage(self.db_path), config=self.config)

        self.engine.register_expense_category(OWNER, "Loans")
        self.account = self.engine.open_account(OWNER, "Checking", Decimal('50000.00'))
        self.loan = self.engine.open_loan(OWNER, "12000.00", "0.01", 12, "price", date(2024, 1, 15))

    def teardown_method(self):
        self.engine.close()
        self.tmp.cleanup()

    def pay(self, engine, number):
        return lambda: engine.pay_installment(OWNER, self.loan.id, number, self.account.id,
                                              "1066.19", date(2024, 2, 15), "pix")

    def test_same_installment_paid_once(self):
        results = run_concurrently([self.pay(self.engine, 1) for _ in range(8)])

        successes = [r for r in results if not isinstance(r, Exception)]
        failures = [r for r in results if isinstance(r, Exception)]
        assert len(successes) == 1
        assert all(isinstance(f, DuplicateInstallmentError) for f in failures)

        loan = self.engine.get_loan(OWNER, self.loan.id)
        assert loan.paid_installments == 1
        assert loan.current_balance == Decimal('11053.81')
        assert self.engine.get_account(OWNER, self.account.id).balance == Decimal('48933.81')

    def test_different_installments_all_succeed(self):
        results = run_concurrently([self.pay(self.engine, n) for n in range(1, 5)])

        assert not [r for r in results if isinstance(r, Exception)]
        loan = self.engine.get_loan(OWNER, self.loan.id)
        assert loan.paid_installments == 4
        # 946.19 + 955.64 + 965.21 + 974.85
        assert loan.current_balance == Decimal('8158.11')
        assert self.engine.get_account(OWNER, self.account.id).balance == \
            Decimal('50000.00') - Decimal('1066.19') * 4

        payments = sorted(self.engine.list_payments(OWNER), key=lambda p: p.balance_before, reverse=True)
        assert payments[0].balance_before == Decimal('12000.00')
        # Each payment saw the balance left by the one before it
        for previous, current in zip(payments, payments[1:]):
            assert current.balance_before == previous.balance_after

    def test_separate_connections_serialize(self):
        second = FinancingEngine(storage=SQLiteStorage(self.db_path), config=self.config)
        try:
            results = run_concurrently([self.pay(self.engine, 2), self.pay(second, 2)])
        finally:
            second.close()

        successes = [r for r in results if not isinstance(r, Exception)]
        assert len(successes) == 1
        assert sum(isinstance(r, DuplicateInstallmentError) for r in results) == 1
        assert self.engine.get_loan(OWNER, self.loan.id).paid_installments == 1
