"""
fireflow/schemas/debt.py

Debt creation goes through one call that may also disburse the loan into a
target asset; the response carries the debt and, when disbursed, the id of
the disbursement record.
"""

from datetime import date as date_type
from decimal import Decimal
from typing import Optional, Dict, Any

from pydantic import BaseModel, Field, AliasChoices, field_validator

DEBT_TYPES = {"mortgage", "personal_loan", "car_loan", "student_loan", "credit_card", "other"}


class DebtCreate(BaseModel):
    name: str
    debt_type: str = "personal_loan"
    principal: Decimal
    interest_rate: Optional[Decimal] = None
    term_months: Optional[int] = None
    start_date: Optional[date_type] = None
    monthly_payment: Optional[Decimal] = None
    currency: str = "USD"
    date: date_type = Field(default_factory=date_type.today)
    disburse_to_asset_id: Optional[int] = None
    description: Optional[str] = None
    metadata: Optional[Dict[str, Any]] = None

    @field_validator("principal")
    def principal_positive(cls, v):
        if v <= 0:
            raise ValueError("principal must be positive")
        return v

    @field_validator("debt_type")
    def debt_type_known(cls, v):
        if v not in DEBT_TYPES:
            raise ValueError(f"debt_type must be one of {sorted(DEBT_TYPES)}")
        return v


class DebtRead(BaseModel):
    id: int
    name: str
    debt_type: str
    principal: Decimal
    balance: Decimal
    interest_rate: Optional[Decimal] = None
    term_months: Optional[int] = None
    start_date: Optional[date_type] = None
    monthly_payment: Optional[Decimal] = None
    currency: str
    metadata: Optional[Dict[str, Any]] = Field(
        default=None, validation_alias=AliasChoices("meta", "metadata")
    )

    class Config:
        from_attributes = True


class DebtCreateResult(BaseModel):
    debt: DebtRead
    flow_id: Optional[int] = None
