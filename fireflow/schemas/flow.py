"""
fireflow/schemas/flow.py

Request/response schemas for the record-creation services. One family per
flow direction (income, expense, transfer) plus the specialized investment
and debt-payment records. Every create returns a FlowRead carrying the id the
caller needs for later compensation.

'adjust_balances' (default True) lets the caller record a context-only
entry when it mutates balances itself (interest kept in a deposit, DRIP,
matured-deposit withdrawal).
"""

from datetime import date as date_type, datetime
from decimal import Decimal
from typing import Optional, Dict, Any, Literal

from pydantic import BaseModel, Field, AliasChoices, field_validator

from fireflow.constants import RECURRING_FREQUENCIES


class FlowCreateBase(BaseModel):
    category: Optional[str] = None
    amount: Decimal
    currency: str = "USD"
    date: date_type = Field(default_factory=date_type.today)
    description: Optional[str] = None
    recurring_frequency: Optional[str] = None
    metadata: Optional[Dict[str, Any]] = None
    adjust_balances: bool = True

    @field_validator("amount")
    def amount_not_negative(cls, v: Decimal) -> Decimal:
        if v < 0:
            raise ValueError("amount cannot be negative")
        return v

    @field_validator("recurring_frequency")
    def frequency_known(cls, v):
        if v in (None, "none"):
            return None
        if v not in RECURRING_FREQUENCIES:
            raise ValueError(f"recurring_frequency must be one of {sorted(RECURRING_FREQUENCIES)}")
        return v

    @field_validator("currency")
    def currency_upper(cls, v):
        return v.upper()


class IncomeCreate(FlowCreateBase):
    """External -> asset. to_asset_id may be empty for untethered interest."""
    to_asset_id: Optional[int] = None
    from_asset_id: Optional[int] = None


class ExpenseCreate(FlowCreateBase):
    """Asset -> external."""
    from_asset_id: Optional[int] = None
    expense_category_id: Optional[str] = None


class TransferCreate(FlowCreateBase):
    """Asset -> asset. Source and destination must differ."""
    from_asset_id: Optional[int] = None
    to_asset_id: Optional[int] = None


class InvestmentCreate(FlowCreateBase):
    """
    Buy ('invest') or sell ('sell') of a holding.
    invest: debits the cash source by amount and adds 'shares' to the holding.
    sell:   credits the proceeds to the destination; the caller adjusts the
            sold holding's units.
    """
    kind: Literal["invest", "sell"] = "invest"
    ticker: Optional[str] = None
    shares: Decimal = Decimal("0")
    from_asset_id: Optional[int] = None
    to_asset_id: Optional[int] = None


class DebtPaymentCreate(FlowCreateBase):
    """Payment toward a debt, optionally from a cash asset."""
    debt_id: int
    from_asset_id: Optional[int] = None


class FlowRead(BaseModel):
    id: int
    type: str
    category: Optional[str] = None
    amount: Decimal
    currency: str
    date: date_type
    description: Optional[str] = None
    from_asset_id: Optional[int] = None
    to_asset_id: Optional[int] = None
    debt_id: Optional[int] = None
    shares: Optional[Decimal] = None
    recurring_frequency: Optional[str] = None
    expense_category_id: Optional[str] = None
    balance_effect: str
    metadata: Optional[Dict[str, Any]] = Field(
        default=None, validation_alias=AliasChoices("meta", "metadata")
    )
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class RecurringScheduleCreate(BaseModel):
    frequency: str
    next_run_date: date_type
    template: Dict[str, Any]

    @field_validator("frequency")
    def frequency_known(cls, v):
        if v not in RECURRING_FREQUENCIES:
            raise ValueError(f"frequency must be one of {sorted(RECURRING_FREQUENCIES)}")
        return v


class RecurringScheduleRead(RecurringScheduleCreate):
    id: int
    source_flow_id: Optional[int] = None
    is_active: bool = True

    class Config:
        from_attributes = True
