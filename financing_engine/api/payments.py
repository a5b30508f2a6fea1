"""
Payment endpoints
"""

from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Response, status

from .deps import get_engine, get_owner_id
from .schemas import AnnotatePaymentRequest, ApplyPaymentRequest
from ..engine import FinancingEngine


router = APIRouter()


@router.post("", status_code=status.HTTP_201_CREATED)
async def apply_payment(
    request: ApplyPaymentRequest,
    owner_id: str = Depends(get_owner_id),
    engine: FinancingEngine = Depends(get_engine)
):
    """Apply a payment with an explicit principal/interest split"""
    payment = engine.apply_payment(
        owner_id,
        loan_id=request.loan_id,
        account_id=request.account_id,
        installment_number=request.installment_number,
        payment_amount=request.payment_amount,
        principal_amount=request.principal_amount,
        interest_amount=request.interest_amount,
        payment_date=request.payment_date,
        payment_method=request.payment_method,
        payment_type=request.payment_type,
        observations=request.observations
    )
    return payment.to_dict()


@router.get("")
async def list_payments(
    loan_id: Optional[str] = None,
    account_id: Optional[str] = None,
    payment_type: Optional[str] = None,
    payment_method: Optional[str] = None,
    date_from: Optional[date] = None,
    date_to: Optional[date] = None,
    owner_id: str = Depends(get_owner_id),
    engine: FinancingEngine = Depends(get_engine)
):
    """List payments, newest first"""
    payments = engine.list_payments(
        owner_id, loan_id=loan_id, account_id=account_id, payment_type=payment_type,
        payment_method=payment_method, date_from=date_from, date_to=date_to
    )
    return {"payments": [p.to_dict() for p in payments], "count": len(payments)}


@router.get("/{payment_id}")
async def get_payment(
    payment_id: str,
    owner_id: str = Depends(get_owner_id),
    engine: FinancingEngine = Depends(get_engine)
):
    return engine.get_payment(owner_id, payment_id).to_dict()


@router.patch("/{payment_id}")
async def annotate_payment(
    payment_id: str,
    request: AnnotatePaymentRequest,
    owner_id: str = Depends(get_owner_id),
    engine: FinancingEngine = Depends(get_engine)
):
    """Update a payment's observations"""
    return engine.annotate_payment(owner_id, payment_id, request.observations).to_dict()


@router.delete("/{payment_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_payment(
    payment_id: str,
    owner_id: str = Depends(get_owner_id),
    engine: FinancingEngine = Depends(get_engine)
):
    """Delete a payment that has no linked transaction"""
    engine.delete_payment(owner_id, payment_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
