"""
Integration tests for the Financing Engine API
Tests end-to-end workflows using FastAPI TestClient
"""

import pytest
from fastapi.testclient import TestClient

from financing_engine.api import create_app, status_for
from financing_engine.api.deps import get_engine
from financing_engine.config import EngineConfig
from financing_engine.engine import FinancingEngine
from financing_engine.errors import (
    DuplicateInstallmentError, InstallmentNotFoundError, InternalError, NegativeBalanceError
)
from financing_engine.storage import InMemoryStorage

HEADERS = {"X-Owner-Id": "owner-1"}


@pytest.fixture
def engine():
    return FinancingEngine(storage=InMemoryStorage(), config=EngineConfig(storage_backend="memory"))


@pytest.fixture
def client(engine):
    """Test client wired to an in-memory engine"""
    app = create_app()
    app.dependency_overrides[get_engine] = lambda: engine
    return TestClient(app)


@pytest.fixture
def setup(client):
    """Category, funded account and a 12000 Price loan"""
    r = client.post("/categories", json={"name": "Loans", "is_default": True}, headers=HEADERS)
    assert r.status_code == 201

    r = client.post("/accounts", json={"name": "Checking", "balance": "20000.00"}, headers=HEADERS)
    assert r.status_code == 201
    account_id = r.json()["id"]

    r = client.post("/loans", json={
        "principal": "12000.00",
        "periodic_rate": "0.01",
        "term_periods": 12,
        "method": "price",
        "start_date": "2024-01-15",
        "description": "Car"
    }, headers=HEADERS)
    assert r.status_code == 201
    return {"account_id": account_id, "loan_id": r.json()["id"]}


def pay_installment(client, setup, number=1, amount="1066.19"):
    return client.post(f"/loans/{setup['loan_id']}/installments/{number}/pay", json={
        "account_id": setup["account_id"],
        "amount": amount,
        "payment_date": "2024-02-15",
        "payment_method": "pix"
    }, headers=HEADERS)


class TestHealthEndpoints:

    def test_health(self, client):
        r = client.get("/health")
        assert r.status_code == 200
        assert r.json()["status"] == "healthy"


class TestSchedulePreview:

    def test_preview(self, client):
        r = client.post("/schedules/preview", json={
            "principal": "12000.00",
            "periodic_rate": "0.01",
            "term_periods": 12,
            "method": "price",
            "start_date": "2024-01-15"
        })
        assert r.status_code == 200
        data = r.json()
        assert len(data["schedule"]) == 12
        assert data["schedule"][0]["payment_amount"] == "1066.19"
        assert data["schedule"][0]["due_date"] == "2024-02-15"
        assert data["schedule"][-1]["remaining_balance"] == "0.00"
        assert data["summary"]["total_amortization"] == "12000.00"

    def test_invalid_parameters(self, client):
        r = client.post("/schedules/preview", json={
            "principal": "0",
            "periodic_rate": "0.01",
            "term_periods": 12,
            "start_date": "2024-01-15"
        })
        assert r.status_code == 400
        assert r.json()["error"] == "invalid_schedule_input"

    def test_unknown_method(self, client):
        r = client.post("/schedules/preview", json={
            "principal": "1000",
            "periodic_rate": "0.01",
            "term_periods": 12,
            "method": "german",
            "start_date": "2024-01-15"
        })
        assert r.status_code == 400
        assert r.json()["error"] == "validation"

    def test_malformed_amount(self, client):
        r = client.post("/schedules/preview", json={
            "principal": "twelve",
            "periodic_rate": "0.01",
            "term_periods": 12,
            "start_date": "2024-01-15"
        })
        assert r.status_code == 422


class TestLoanEndpoints:

    def test_get_loan(self, client, setup):
        r = client.get(f"/loans/{setup['loan_id']}", headers=HEADERS)
        assert r.status_code == 200
        data = r.json()
        assert data["installment_amount"] == "1066.19"
        assert data["current_balance"] == "12000.00"
        assert data["status"] == "active"

    def test_loan_of_another_owner(self, client, setup):
        r = client.get(f"/loans/{setup['loan_id']}", headers={"X-Owner-Id": "owner-2"})
        assert r.status_code == 404
        assert r.json()["error"] == "not_found"

    def test_missing_owner_header(self, client, setup):
        r = client.get(f"/loans/{setup['loan_id']}")
        assert r.status_code == 401

    def test_schedule_and_balance(self, client, setup):
        r = client.get(f"/loans/{setup['loan_id']}/schedule", headers=HEADERS)
        assert r.status_code == 200
        assert r.json()["summary"]["total_interest"] == "794.28"

        pay_installment(client, setup)
        r = client.get(f"/loans/{setup['loan_id']}/balance", headers=HEADERS)
        assert r.status_code == 200
        data = r.json()
        assert data["current_balance"] == "11053.81"
        assert data["paid_installments"] == 1
        assert data["remaining_installments"] == 11


class TestPaymentFlow:

    def test_pay_installment(self, client, setup):
        r = pay_installment(client, setup)
        assert r.status_code == 201
        data = r.json()
        assert data["payment_type"] == "installment"
        assert data["principal_amount"] == "946.19"
        assert data["balance_after"] == "11053.81"

        r = client.get(f"/accounts/{setup['account_id']}", headers=HEADERS)
        assert r.json()["balance"] == "18933.81"

    def test_duplicate_installment(self, client, setup):
        assert pay_installment(client, setup).status_code == 201
        r = pay_installment(client, setup)
        assert r.status_code == 409
        assert r.json() == {"error": "duplicate_installment",
                            "detail": "Installment 1 has already been paid",
                            "details": {"loan_id": setup["loan_id"], "installment_number": 1}}

    def test_installment_out_of_range(self, client, setup):
        r = pay_installment(client, setup, number=40)
        assert r.status_code == 404
        assert r.json()["error"] == "installment_not_found"

    def test_amount_below_schedule(self, client, setup):
        r = pay_installment(client, setup, amount="10.00")
        assert r.status_code == 422
        assert r.json()["error"] == "insufficient_amount"

    def test_early_payment(self, client, setup):
        pay_installment(client, setup)
        r = client.post(f"/loans/{setup['loan_id']}/early-payment", json={
            "account_id": setup["account_id"],
            "amount": "5000.00",
            "payment_date": "2024-03-01",
            "payment_method": "transfer",
            "preference": "reduce_term"
        }, headers=HEADERS)
        assert r.status_code == 201
        data = r.json()
        assert data["payment_type"] == "early"
        assert data["interest_amount"] == "0.00"
        assert data["balance_after"] == "6053.81"
        assert data["preference"] == "reduce_term"

        r = client.post(f"/loans/{setup['loan_id']}/early-payment", json={
            "account_id": setup["account_id"],
            "amount": "12000.00",
            "payment_date": "2024-03-01",
            "payment_method": "transfer"
        }, headers=HEADERS)
        assert r.status_code == 422
        assert r.json()["error"] == "exceeds_outstanding_balance"

    def test_simulate_early_payment(self, client, setup):
        r = client.post(f"/loans/{setup['loan_id']}/early-payment/simulate", json={
            "amount": "5000.00",
            "preference": "reduce_installment"
        }, headers=HEADERS)
        assert r.status_code == 200
        data = r.json()
        assert data["new_principal"] == "7000.00"
        assert data["new_term"] == 12

    def test_apply_payment_and_manage_it(self, client, setup):
        r = client.post("/payments", json={
            "loan_id": setup["loan_id"],
            "account_id": setup["account_id"],
            "installment_number": 1,
            "payment_amount": "1066.19",
            "principal_amount": "946.19",
            "interest_amount": "120.00",
            "payment_date": "2024-02-15",
            "payment_method": "boleto"
        }, headers=HEADERS)
        assert r.status_code == 201
        payment_id = r.json()["id"]

        r = client.get("/payments", params={"loan_id": setup["loan_id"]}, headers=HEADERS)
        assert r.json()["count"] == 1

        r = client.patch(f"/payments/{payment_id}", json={"observations": "checked"}, headers=HEADERS)
        assert r.status_code == 200
        assert r.json()["observations"] == "checked"

        r = client.delete(f"/payments/{payment_id}", headers=HEADERS)
        assert r.status_code == 409
        assert r.json()["error"] == "linked_transaction_exists"

        r = client.get(f"/payments/{payment_id}", headers=HEADERS)
        assert r.status_code == 200

    def test_negative_balance(self, client, setup):
        r = client.post("/payments", json={
            "loan_id": setup["loan_id"],
            "account_id": setup["account_id"],
            "payment_amount": "13000.00",
            "principal_amount": "13000.00",
            "payment_date": "2024-02-15",
            "payment_method": "pix",
            "payment_type": "partial"
        }, headers=HEADERS)
        assert r.status_code == 422
        assert r.json()["error"] == "negative_balance"

    def test_no_expense_category(self, client):
        r = client.post("/accounts", json={"name": "Checking", "balance": "5000"},
                        headers={"X-Owner-Id": "owner-9"})
        account_id = r.json()["id"]
        r = client.post("/loans", json={
            "principal": "1000", "periodic_rate": "0.02", "term_periods": 1,
            "start_date": "2024-01-01"
        }, headers={"X-Owner-Id": "owner-9"})
        loan_id = r.json()["id"]

        r = client.post(f"/loans/{loan_id}/installments/1/pay", json={
            "account_id": account_id, "amount": "1020.00",
            "payment_date": "2024-02-01", "payment_method": "pix"
        }, headers={"X-Owner-Id": "owner-9"})
        assert r.status_code == 422
        assert r.json()["error"] == "no_expense_category"


class TestErrorMapping:

    def test_status_codes(self):
        assert status_for(InstallmentNotFoundError("x")) == 404
        assert status_for(DuplicateInstallmentError("x")) == 409
        assert status_for(NegativeBalanceError("x")) == 422
        assert status_for(InternalError("x")) == 500
