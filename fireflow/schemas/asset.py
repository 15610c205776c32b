"""
fireflow/schemas/asset.py

Pydantic schemas for creating, updating, and reading Asset objects.
'type' must be one of constants.ASSET_TYPES; 'currency' is upper-cased.
The ORM attribute is 'meta' (SQLAlchemy reserves 'metadata'), the API field
is 'metadata'.
"""

from datetime import datetime
from decimal import Decimal
from typing import Optional, Dict, Any

from pydantic import BaseModel, Field, AliasChoices, field_validator

from fireflow.constants import ASSET_TYPES


def _check_type(v):
    if v is not None and v not in ASSET_TYPES:
        raise ValueError(f"type must be one of {sorted(ASSET_TYPES)}")
    return v


class AssetBase(BaseModel):
    """
    Common fields for an Asset.
    - 'name': "Emergency Fund", "AAPL", "Gold (g)"
    - 'type': cash, deposit, stock, etf, bond, crypto, real_estate, metals, debt, other
    """
    name: str
    type: str = "cash"
    ticker: Optional[str] = None
    currency: str = "USD"
    market: Optional[str] = None
    metadata: Optional[Dict[str, Any]] = Field(
        default=None, validation_alias=AliasChoices("meta", "metadata")
    )

    @field_validator("type")
    def type_must_be_valid(cls, v):
        return _check_type(v)

    @field_validator("currency")
    def currency_upper(cls, v):
        return v.upper()

    @field_validator("name")
    def name_not_blank(cls, v):
        if not v or not v.strip():
            raise ValueError("name is required")
        return v.strip()


class AssetCreate(AssetBase):
    """Creation payload. A starting balance is allowed (metals are created holding their weight)."""
    balance: Decimal = Decimal("0")


class AssetUpdate(BaseModel):
    """
    Partial update. Only the fields actually sent are applied
    (the service uses model_dump(exclude_unset=True)).
    """
    name: Optional[str] = None
    type: Optional[str] = None
    ticker: Optional[str] = None
    currency: Optional[str] = None
    market: Optional[str] = None
    balance: Optional[Decimal] = None
    total_realized_pl: Optional[Decimal] = None
    metadata: Optional[Dict[str, Any]] = None

    @field_validator("type")
    def type_must_be_valid(cls, v):
        return _check_type(v)


class AssetRead(AssetBase):
    id: int
    balance: Decimal
    total_realized_pl: Decimal = Decimal("0")
    balance_updated_at: Optional[datetime] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True
