"""
fireflow/models/debt.py

Debts (mortgages, personal loans) live in their own table rather than as
assets. 'balance' is the outstanding amount; payments reduce it.
"""

from datetime import datetime, timezone
from sqlalchemy import Column, Integer, String, Numeric, Date, DateTime, JSON
from sqlalchemy.orm import relationship

from fireflow.database import Base


def _utcnow():
    return datetime.now(timezone.utc)


class Debt(Base):
    __tablename__ = "debts"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=False)

    # "mortgage" | "personal_loan" | "car_loan" | "student_loan" | "credit_card" | "other"
    debt_type = Column(String, nullable=False, default="personal_loan")

    principal = Column(Numeric(18, 2), nullable=False)
    balance = Column(Numeric(18, 2), nullable=False)

    # Annual rate as a decimal (0.065 for 6.5%)
    interest_rate = Column(Numeric(10, 6), nullable=True)
    term_months = Column(Integer, nullable=True)
    start_date = Column(Date, nullable=True)
    monthly_payment = Column(Numeric(18, 2), nullable=True)
    currency = Column(String, nullable=False, default="USD")

    meta = Column("metadata", JSON, nullable=True)

    created_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=_utcnow, onupdate=_utcnow, nullable=False)

    flows = relationship("Flow", back_populates="debt")

    def __repr__(self):
        return f"<Debt(id={self.id}, name={self.name}, balance={self.balance})>"
