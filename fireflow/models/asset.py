"""
fireflow/models/asset.py

Defines the Asset model: anything the user holds (cash accounts, fixed
deposits, stock positions, property, metals). The balance is the only mutable
numeric state the submission core writes outside of flow records. For
share-based holdings the balance counts units, for metals it counts weight in
the asset's own unit (metadata["metal_unit"]), otherwise it is money.

Asset => One-to-many => Flow (as source or destination)
Asset => One-to-one  => AssetInterestSetting
"""

from datetime import datetime, timezone
from sqlalchemy import Column, Integer, String, Numeric, DateTime, JSON
from sqlalchemy.orm import relationship
from fireflow.database import Base


def _utcnow():
    return datetime.now(timezone.utc)


class Asset(Base):
    __tablename__ = "assets"

    # ---------------------------------------------------------------------
    # Primary Key & Fields
    # ---------------------------------------------------------------------
    id = Column(Integer, primary_key=True, index=True)

    # Display name, e.g. "DBS Multiplier", "Emergency Fund", "Gold (g)"
    name = Column(String, nullable=False)

    # One of constants.ASSET_TYPES
    type = Column(String, nullable=False, default="cash")

    # Exchange ticker for share-based holdings
    ticker = Column(String, nullable=True, index=True)

    currency = Column(String, nullable=False, default="USD")

    # Listing market ("US", "SG"); drives dividend withholding
    market = Column(String, nullable=True)

    balance = Column(Numeric(20, 8), nullable=False, default=0)

    # Running total of realized profit/loss from sales
    total_realized_pl = Column(Numeric(18, 2), nullable=False, default=0)

    # Free-form per-asset context, e.g. {"metal_type": "gold", "metal_unit": "gram"}.
    # The column is called "metadata"; the attribute cannot be (reserved by SQLAlchemy).
    meta = Column("metadata", JSON, nullable=True)

    balance_updated_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=_utcnow, onupdate=_utcnow, nullable=False)

    # ---------------------------------------------------------------------
    # Relationships
    # ---------------------------------------------------------------------
    flows_from = relationship(
        "Flow",
        foreign_keys="[Flow.from_asset_id]",
        back_populates="from_asset",
        doc="Records listing this asset as the source."
    )
    flows_to = relationship(
        "Flow",
        foreign_keys="[Flow.to_asset_id]",
        back_populates="to_asset",
        doc="Records listing this asset as the destination."
    )
    interest_setting = relationship(
        "AssetInterestSetting",
        back_populates="asset",
        uselist=False,
        cascade="all, delete-orphan",
    )

    def __repr__(self):
        return (
            f"<Asset(id={self.id}, name={self.name}, type={self.type}, "
            f"currency={self.currency}, balance={self.balance})>"
        )
