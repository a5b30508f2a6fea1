"""
Loan endpoints
"""

from fastapi import APIRouter, Depends, status

from .deps import get_engine, get_owner_id
from .schemas import (
    CreateLoanRequest, EarlyPaymentRequest, PayInstallmentRequest, SimulateEarlyPaymentRequest,
    aggregates_response, schedule_row_response, simulation_response, summary_response
)
from ..amortization import summarize_schedule
from ..engine import FinancingEngine


router = APIRouter()


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_loan(
    request: CreateLoanRequest,
    owner_id: str = Depends(get_owner_id),
    engine: FinancingEngine = Depends(get_engine)
):
    """Register a new loan"""
    loan = engine.open_loan(
        owner_id=owner_id,
        principal=request.principal,
        periodic_rate=request.periodic_rate,
        term_periods=request.term_periods,
        method=request.method,
        start_date=request.start_date,
        description=request.description
    )
    return loan.to_dict()


@router.get("/{loan_id}")
async def get_loan(
    loan_id: str,
    owner_id: str = Depends(get_owner_id),
    engine: FinancingEngine = Depends(get_engine)
):
    """Get loan details with its cached aggregates"""
    return engine.get_loan(owner_id, loan_id).to_dict()


@router.get("/{loan_id}/schedule")
async def get_loan_schedule(
    loan_id: str,
    owner_id: str = Depends(get_owner_id),
    engine: FinancingEngine = Depends(get_engine)
):
    """Get the theoretical amortization schedule"""
    schedule = engine.loan_schedule(owner_id, loan_id)
    return {
        "loan_id": loan_id,
        "schedule": [schedule_row_response(row) for row in schedule],
        "summary": summary_response(summarize_schedule(schedule))
    }


@router.get("/{loan_id}/balance")
async def get_loan_balance(
    loan_id: str,
    owner_id: str = Depends(get_owner_id),
    engine: FinancingEngine = Depends(get_engine)
):
    """Get aggregates projected from the payment history"""
    return {"loan_id": loan_id, **aggregates_response(engine.loan_balance(owner_id, loan_id))}


@router.post("/{loan_id}/installments/{installment_number}/pay", status_code=status.HTTP_201_CREATED)
async def pay_installment(
    loan_id: str,
    installment_number: int,
    request: PayInstallmentRequest,
    owner_id: str = Depends(get_owner_id),
    engine: FinancingEngine = Depends(get_engine)
):
    """Pay a scheduled installment"""
    payment = engine.pay_installment(
        owner_id=owner_id,
        loan_id=loan_id,
        installment_number=installment_number,
        account_id=request.account_id,
        paid_amount=request.amount,
        payment_date=request.payment_date,
        payment_method=request.payment_method,
        observations=request.observations
    )
    return payment.to_dict()


@router.post("/{loan_id}/early-payment", status_code=status.HTTP_201_CREATED)
async def register_early_payment(
    loan_id: str,
    request: EarlyPaymentRequest,
    owner_id: str = Depends(get_owner_id),
    engine: FinancingEngine = Depends(get_engine)
):
    """Register an early payment applied entirely to principal"""
    payment = engine.register_early_payment(
        owner_id=owner_id,
        loan_id=loan_id,
        account_id=request.account_id,
        paid_amount=request.amount,
        payment_date=request.payment_date,
        payment_method=request.payment_method,
        preference=request.preference,
        observations=request.observations
    )
    return payment.to_dict()


@router.post("/{loan_id}/early-payment/simulate")
async def simulate_early_payment(
    loan_id: str,
    request: SimulateEarlyPaymentRequest,
    owner_id: str = Depends(get_owner_id),
    engine: FinancingEngine = Depends(get_engine)
):
    """Project the effect of an early payment without recording it"""
    simulation = engine.simulate_early_payment(owner_id, loan_id, request.amount, request.preference)
    return simulation_response(simulation)
