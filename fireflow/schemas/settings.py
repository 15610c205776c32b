"""
fireflow/schemas/settings.py

Interest settings per deposit asset, dividend tax settings, linked ledgers.
"""

from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, field_validator

from fireflow.constants import PERIODS_PER_YEAR


class InterestSettingUpsert(BaseModel):
    interest_rate: Decimal
    payment_period: str = "monthly"

    @field_validator("payment_period")
    def period_known(cls, v):
        if v not in PERIODS_PER_YEAR:
            raise ValueError(f"payment_period must be one of {sorted(PERIODS_PER_YEAR)}")
        return v


class InterestSettingRead(InterestSettingUpsert):
    asset_id: int

    class Config:
        from_attributes = True


class TaxSettingRead(BaseModel):
    us_dividend_withholding_rate: Decimal
    sg_dividend_withholding_rate: Decimal

    class Config:
        from_attributes = True


class TaxSettingUpdate(BaseModel):
    us_dividend_withholding_rate: Optional[Decimal] = None
    sg_dividend_withholding_rate: Optional[Decimal] = None

    @field_validator("us_dividend_withholding_rate", "sg_dividend_withholding_rate")
    def rate_in_range(cls, v):
        if v is not None and not (Decimal("0") <= v <= Decimal("1")):
            raise ValueError("withholding rate must be between 0 and 1")
        return v


class LinkedLedgerItem(BaseModel):
    ledger_id: str
    ledger_name: Optional[str] = None

    class Config:
        from_attributes = True
