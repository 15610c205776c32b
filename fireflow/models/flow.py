"""
fireflow/models/flow.py

Two models:
1) Flow: one persisted financial event record (income, expense or transfer),
   the "transaction record" of the submission core.
2) RecurringSchedule: a template that a scheduler turns into future records.

A Flow remembers which balance effect it applied when it was created
('balance_effect'), so deleting it can reverse exactly that effect and
nothing else. Records created with adjust_balances=False carry effect "none".
"""

from datetime import datetime, timezone
from sqlalchemy import (
    Column,
    Integer,
    String,
    Date,
    DateTime,
    Boolean,
    Numeric,
    ForeignKey,
    JSON,
)
from sqlalchemy.orm import relationship

from fireflow.database import Base


def _utcnow():
    return datetime.now(timezone.utc)


# Balance effects a record can apply (see services/flow.py)
EFFECT_NONE = "none"
EFFECT_CREDIT_DESTINATION = "credit_destination"
EFFECT_DEBIT_SOURCE = "debit_source"
EFFECT_MOVE = "move"
EFFECT_INVEST = "invest"
EFFECT_PROCEEDS = "proceeds"
EFFECT_DEBT_PAYMENT = "debt_payment"


# ------------------------------------------------------------------------
# FLOW (record)
# ------------------------------------------------------------------------

class Flow(Base):
    __tablename__ = "flows"

    id = Column(Integer, primary_key=True, index=True)

    # "income" | "expense" | "transfer"
    type = Column(String, nullable=False, doc="Record family")

    # Category id of the submitting form, e.g. "salary", "interest", "sell"
    category = Column(String, nullable=True)

    amount = Column(Numeric(18, 8), nullable=False)
    currency = Column(String, nullable=False, default="USD")
    date = Column(Date, nullable=False)
    description = Column(String, nullable=True)

    from_asset_id = Column(Integer, ForeignKey("assets.id"), nullable=True)
    to_asset_id = Column(Integer, ForeignKey("assets.id"), nullable=True)
    debt_id = Column(Integer, ForeignKey("debts.id"), nullable=True)

    # Units moved by investment records (shares bought / sold)
    shares = Column(Numeric(20, 8), nullable=True)

    recurring_frequency = Column(String, nullable=True)
    expense_category_id = Column(String, nullable=True)

    balance_effect = Column(String, nullable=False, default=EFFECT_NONE)

    # Category-specific context, write-once (column name "metadata")
    meta = Column("metadata", JSON, nullable=True)

    created_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=_utcnow, onupdate=_utcnow, nullable=False)

    # -------------------------------------------------------------------
    # RELATIONSHIPS
    # -------------------------------------------------------------------
    from_asset = relationship("Asset", foreign_keys=[from_asset_id], back_populates="flows_from")
    to_asset = relationship("Asset", foreign_keys=[to_asset_id], back_populates="flows_to")
    debt = relationship("Debt", back_populates="flows")
    schedules = relationship(
        "RecurringSchedule",
        back_populates="source_flow",
        cascade="all, delete-orphan",
        doc="Schedules spawned by tagging this record with a recurring frequency."
    )

    def __repr__(self):
        return (
            f"<Flow(id={self.id}, type={self.type}, category={self.category}, "
            f"amount={self.amount}, from={self.from_asset_id}, to={self.to_asset_id})>"
        )


# ------------------------------------------------------------------------
# RECURRING SCHEDULE
# ------------------------------------------------------------------------

class RecurringSchedule(Base):
    __tablename__ = "recurring_schedules"

    id = Column(Integer, primary_key=True, index=True)
    frequency = Column(String, nullable=False)
    next_run_date = Column(Date, nullable=False)

    # Shape of the record to create on each run (type, amount, assets, category...)
    template = Column(JSON, nullable=False)

    # Set when the schedule was created alongside a record
    source_flow_id = Column(Integer, ForeignKey("flows.id"), nullable=True)

    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False)

    source_flow = relationship("Flow", back_populates="schedules")

    def __repr__(self):
        return (
            f"<RecurringSchedule(id={self.id}, frequency={self.frequency}, "
            f"next_run_date={self.next_run_date})>"
        )
