"""
Pydantic schemas for API requests and responses
"""

from decimal import Decimal, InvalidOperation
from datetime import date
from dataclasses import asdict
from enum import Enum
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field, field_validator

from ..amortization import EarlyPaymentSimulation, ScheduleRow, ScheduleSummary
from ..projection import LoanAggregates


def _check_decimal(value: str) -> str:
    try:
        parsed = Decimal(value)
    except InvalidOperation:
        raise ValueError(f"'{value}' is not a decimal number")
    if not parsed.is_finite():
        raise ValueError("Amounts must be finite")
    return value


# Schedule schemas
class SchedulePreviewRequest(BaseModel):
    principal: str = Field(..., description="Decimal amount as string")
    periodic_rate: str = Field(..., description="Rate per period as decimal string (0.01 = 1%)")
    term_periods: int = Field(..., ge=1)
    method: str = Field("price", description="Amortization method (price, sac)")
    start_date: date

    check_decimals = field_validator("principal", "periodic_rate")(_check_decimal)


# Account schemas
class CreateAccountRequest(BaseModel):
    name: str = Field(..., min_length=1)
    balance: str = Field("0.00", description="Opening balance as decimal string")

    check_decimals = field_validator("balance")(_check_decimal)


# Category schemas
class CreateCategoryRequest(BaseModel):
    name: str = Field(..., min_length=1)
    is_default: bool = False


# Loan schemas
class CreateLoanRequest(BaseModel):
    principal: str = Field(..., description="Decimal amount as string")
    periodic_rate: str = Field(..., description="Rate per period as decimal string")
    term_periods: int = Field(..., ge=1)
    method: str = Field("price", description="Amortization method (price, sac)")
    start_date: date
    description: str = ""

    check_decimals = field_validator("principal", "periodic_rate")(_check_decimal)


class PayInstallmentRequest(BaseModel):
    account_id: str
    amount: str = Field(..., description="Paid amount as decimal string")
    payment_date: date
    payment_method: str = Field(..., description="boleto, automatic_debit, card, pix, transfer")
    observations: Optional[str] = Field(None, max_length=1000)

    check_decimals = field_validator("amount")(_check_decimal)


class EarlyPaymentRequest(BaseModel):
    account_id: str
    amount: str = Field(..., description="Paid amount as decimal string")
    payment_date: date
    payment_method: str
    preference: Optional[str] = Field(None, description="reduce_term or reduce_installment")
    observations: Optional[str] = Field(None, max_length=1000)

    check_decimals = field_validator("amount")(_check_decimal)


class SimulateEarlyPaymentRequest(BaseModel):
    amount: str = Field(..., description="Early payment amount as decimal string")
    preference: str = Field("reduce_term", description="reduce_term or reduce_installment")

    check_decimals = field_validator("amount")(_check_decimal)


# Payment schemas
class ApplyPaymentRequest(BaseModel):
    loan_id: str
    account_id: str
    installment_number: Optional[int] = Field(None, ge=1)
    payment_amount: str
    principal_amount: str
    interest_amount: str = "0.00"
    payment_date: date
    payment_method: str
    payment_type: str = Field("installment", description="installment, partial or early")
    observations: Optional[str] = Field(None, max_length=1000)

    check_decimals = field_validator("payment_amount", "principal_amount", "interest_amount")(_check_decimal)


class AnnotatePaymentRequest(BaseModel):
    observations: Optional[str] = Field(None, max_length=1000)


# Response helpers
def _plain(data: Dict[str, Any]) -> Dict[str, Any]:
    result = {}
    for key, value in data.items():
        if isinstance(value, Decimal):
            result[key] = str(value)
        elif isinstance(value, date):
            result[key] = value.isoformat()
        elif isinstance(value, Enum):
            result[key] = value.value
        else:
            result[key] = value
    return result


def schedule_row_response(row: ScheduleRow) -> Dict[str, Any]:
    return _plain(asdict(row))


def summary_response(summary: ScheduleSummary) -> Dict[str, Any]:
    return _plain(asdict(summary))


def aggregates_response(aggregates: LoanAggregates) -> Dict[str, Any]:
    return _plain(asdict(aggregates))


def simulation_response(simulation: EarlyPaymentSimulation) -> Dict[str, Any]:
    return _plain(asdict(simulation))
