"""
Schedule preview endpoints
"""

from fastapi import APIRouter, Depends

from .deps import get_engine
from .schemas import SchedulePreviewRequest, schedule_row_response, summary_response
from ..amortization import LoanParameters, summarize_schedule
from ..engine import FinancingEngine
from ..models import AmortizationMethod
from ..money import to_decimal
from ..payments import coerce_enum


router = APIRouter()


@router.post("/preview")
async def preview_schedule(
    request: SchedulePreviewRequest,
    engine: FinancingEngine = Depends(get_engine)
):
    """Compute a schedule for arbitrary parameters without storing anything"""
    params = LoanParameters(
        principal=to_decimal(request.principal),
        periodic_rate=to_decimal(request.periodic_rate),
        term_periods=request.term_periods,
        method=coerce_enum(AmortizationMethod, request.method, "amortization method"),
        start_date=request.start_date
    )
    schedule = engine.generate_schedule(params)
    return {
        "schedule": [schedule_row_response(row) for row in schedule],
        "summary": summary_response(summarize_schedule(schedule))
    }
