"""
Expense category endpoints
"""

from fastapi import APIRouter, Depends, status

from .deps import get_engine, get_owner_id
from .schemas import CreateCategoryRequest
from ..engine import FinancingEngine


router = APIRouter()


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_category(
    request: CreateCategoryRequest,
    owner_id: str = Depends(get_owner_id),
    engine: FinancingEngine = Depends(get_engine)
):
    """Register an expense category used to tag loan payments"""
    category_id = engine.register_expense_category(owner_id, request.name, request.is_default)
    return {"id": category_id, "name": request.name, "is_default": request.is_default}
