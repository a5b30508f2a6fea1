"""
Account endpoints
"""

from fastapi import APIRouter, Depends, status

from .deps import get_engine, get_owner_id
from .schemas import CreateAccountRequest
from ..engine import FinancingEngine


router = APIRouter()


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_account(
    request: CreateAccountRequest,
    owner_id: str = Depends(get_owner_id),
    engine: FinancingEngine = Depends(get_engine)
):
    """Open a cash account"""
    account = engine.open_account(owner_id, request.name, request.balance)
    return account.to_dict()


@router.get("/{account_id}")
async def get_account(
    account_id: str,
    owner_id: str = Depends(get_owner_id),
    engine: FinancingEngine = Depends(get_engine)
):
    return engine.get_account(owner_id, account_id).to_dict()
