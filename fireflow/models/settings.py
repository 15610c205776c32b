"""
fireflow/models/settings.py

Small per-user settings tables:
 - AssetInterestSetting: saved annual rate and payment period of a deposit
 - TaxSetting: dividend withholding rates (single row)
 - LinkedLedger: expense ledgers linked to the FIRE dashboard
"""

from datetime import datetime, timezone
from sqlalchemy import Column, Integer, String, Numeric, DateTime, ForeignKey
from sqlalchemy.orm import relationship

from fireflow.database import Base


def _utcnow():
    return datetime.now(timezone.utc)


class AssetInterestSetting(Base):
    __tablename__ = "asset_interest_settings"

    asset_id = Column(Integer, ForeignKey("assets.id"), primary_key=True)

    # Annualized (compounded) rate as a decimal
    interest_rate = Column(Numeric(12, 8), nullable=False)
    payment_period = Column(String, nullable=False, default="monthly")
    updated_at = Column(DateTime(timezone=True), default=_utcnow, onupdate=_utcnow, nullable=False)

    asset = relationship("Asset", back_populates="interest_setting")

    def __repr__(self):
        return (
            f"<AssetInterestSetting(asset_id={self.asset_id}, "
            f"rate={self.interest_rate}, period={self.payment_period})>"
        )


class TaxSetting(Base):
    __tablename__ = "tax_settings"

    id = Column(Integer, primary_key=True)
    us_dividend_withholding_rate = Column(Numeric(6, 4), nullable=False)
    sg_dividend_withholding_rate = Column(Numeric(6, 4), nullable=False)


class LinkedLedger(Base):
    __tablename__ = "linked_ledgers"

    id = Column(Integer, primary_key=True, index=True)
    ledger_id = Column(String, nullable=False, unique=True)
    ledger_name = Column(String, nullable=True)
    position = Column(Integer, nullable=False, default=0)
