"""
fireflow/services/debt.py

Debts (mortgages, loans). Creation is a single unit of work: the debt row,
and, when 'disburse_to_asset_id' is given, the disbursement income record and
the credit to the target asset all land in one commit. There is nothing for
a caller to roll back if this call fails.
"""

import logging

from fastapi import HTTPException
from sqlalchemy.orm import Session

from fireflow.constants import FLOW_INCOME
from fireflow.models.asset import Asset
from fireflow.models.debt import Debt
from fireflow.models.flow import Flow, EFFECT_CREDIT_DESTINATION
from fireflow.schemas.debt import DebtCreate
from fireflow.services.asset import adjust_balance
from fireflow.services.calculations import amortized_payment

logger = logging.getLogger(__name__)

DISBURSEMENT_CATEGORY = "debt_disbursement"


def get_all_debts(db: Session):
    return db.query(Debt).order_by(Debt.id).all()


def get_debt_by_id(debt_id: int, db: Session):
    return db.query(Debt).filter(Debt.id == debt_id).first()


def create_debt(data: DebtCreate, db: Session):
    """
    Create a debt and optionally disburse the principal into an asset.
    Returns (debt, disbursement_flow_or_None).

    When the caller leaves monthly_payment empty but sends rate and term,
    the amortized payment is filled in here.
    """
    monthly_payment = data.monthly_payment
    if monthly_payment is None:
        monthly_payment = amortized_payment(data.principal, data.interest_rate, data.term_months)

    target = None
    if data.disburse_to_asset_id is not None:
        target = db.get(Asset, data.disburse_to_asset_id)
        if not target:
            raise HTTPException(
                status_code=404,
                detail=f"Disbursement asset #{data.disburse_to_asset_id} not found."
            )

    debt = Debt(
        name=data.name.strip(),
        debt_type=data.debt_type,
        principal=data.principal,
        balance=data.principal,
        interest_rate=data.interest_rate,
        term_months=data.term_months,
        start_date=data.start_date,
        monthly_payment=monthly_payment,
        currency=data.currency,
        meta=data.metadata,
    )
    flow = None
    try:
        db.add(debt)
        db.flush()
        if target is not None:
            flow = Flow(
                type=FLOW_INCOME,
                category=DISBURSEMENT_CATEGORY,
                amount=data.principal,
                currency=data.currency,
                date=data.date,
                description=data.description or f"Disbursement of {debt.name}",
                to_asset_id=target.id,
                debt_id=debt.id,
                balance_effect=EFFECT_CREDIT_DESTINATION,
                meta=data.metadata,
            )
            db.add(flow)
            adjust_balance(target, data.principal, db)
        db.commit()
    except Exception:
        db.rollback()
        raise

    db.refresh(debt)
    logger.info(
        f"Created debt {debt.id} ({debt.name}, {debt.debt_type}) principal={debt.principal}"
        + (f", disbursed to asset {target.id} as flow {flow.id}" if flow else "")
    )
    return debt, flow


def delete_debt(debt_id: int, db: Session) -> bool:
    """
    Delete a debt. Refuses (409) while payment or disbursement records
    reference it.
    """
    debt = get_debt_by_id(debt_id, db)
    if not debt:
        return False
    if db.query(Flow.id).filter(Flow.debt_id == debt_id).first():
        raise HTTPException(
            status_code=409,
            detail=f"Debt #{debt_id} is still referenced by flow records."
        )
    db.delete(debt)
    db.commit()
    logger.info(f"Deleted debt {debt_id}")
    return True
