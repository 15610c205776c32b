"""
fireflow/services/flow.py

Core logic for flow records:
 - One create function per record family (income, expense, transfer,
   investment, debt payment). Each call is its own unit of work: the record,
   its balance effect and (when a recurring frequency is set) its schedule
   land in a single commit.
 - Every record remembers the balance effect it applied ('balance_effect'),
   so delete_flow() reverses exactly that effect. This is what lets a caller
   roll back a record it created a moment ago.

Balance effects (skipped when adjust_balances=False):
   income      => credit the destination asset
   expense     => debit the source asset
   transfer    => debit source, credit destination (source != destination)
   invest      => debit the cash source by amount, add 'shares' units to the holding
   sell        => credit the proceeds to the destination; the seller's units
                  are adjusted by the caller
   debt payment=> debit the cash source (if any), reduce the debt balance
"""

import logging
from decimal import Decimal
from typing import Optional

from fastapi import HTTPException
from sqlalchemy import or_
from sqlalchemy.orm import Session

from fireflow.constants import FLOW_INCOME, FLOW_EXPENSE, FLOW_TRANSFER
from fireflow.models.asset import Asset
from fireflow.models.debt import Debt
from fireflow.models.flow import (
    Flow,
    EFFECT_NONE,
    EFFECT_CREDIT_DESTINATION,
    EFFECT_DEBIT_SOURCE,
    EFFECT_MOVE,
    EFFECT_INVEST,
    EFFECT_PROCEEDS,
    EFFECT_DEBT_PAYMENT,
)
from fireflow.schemas.flow import (
    FlowCreateBase,
    IncomeCreate,
    ExpenseCreate,
    TransferCreate,
    InvestmentCreate,
    DebtPaymentCreate,
)
from fireflow.services.asset import adjust_balance
from fireflow.services.recurring import schedule_for_flow

logger = logging.getLogger(__name__)


# ------------------------------------------------------------------------------
# Public Functions (retrieval)
# ------------------------------------------------------------------------------
def get_all_flows(db: Session, asset_id: Optional[int] = None, category: Optional[str] = None):
    """
    Return records newest first, optionally only those touching 'asset_id'
    (as source or destination) and/or of one category.
    """
    query = db.query(Flow)
    if asset_id is not None:
        query = query.filter(or_(Flow.from_asset_id == asset_id, Flow.to_asset_id == asset_id))
    if category:
        query = query.filter(Flow.category == category)
    return query.order_by(Flow.date.desc(), Flow.id.desc()).all()


def get_flow_by_id(flow_id: int, db: Session):
    """
    Retrieve a single record by its ID (returns None if not found).
    """
    return db.query(Flow).filter(Flow.id == flow_id).first()


# ------------------------------------------------------------------------------
# Public Functions (create)
# ------------------------------------------------------------------------------
def create_income(data: IncomeCreate, db: Session) -> Flow:
    """
    External -> asset. With no destination (untethered interest) nothing is
    credited.
    """
    effect = EFFECT_CREDIT_DESTINATION if data.to_asset_id else EFFECT_NONE
    return _create_flow(
        db, data, FLOW_INCOME, effect,
        from_asset_id=data.from_asset_id,
        to_asset_id=data.to_asset_id,
    )


def create_expense(data: ExpenseCreate, db: Session) -> Flow:
    effect = EFFECT_DEBIT_SOURCE if data.from_asset_id else EFFECT_NONE
    return _create_flow(
        db, data, FLOW_EXPENSE, effect,
        from_asset_id=data.from_asset_id,
        expense_category_id=data.expense_category_id,
    )


def create_transfer(data: TransferCreate, db: Session) -> Flow:
    if not data.from_asset_id or not data.to_asset_id:
        raise HTTPException(status_code=400, detail="Transfer => both from/to assets are required.")
    if data.from_asset_id == data.to_asset_id:
        raise HTTPException(status_code=400, detail="Transfer => source and destination must differ.")
    return _create_flow(
        db, data, FLOW_TRANSFER, EFFECT_MOVE,
        from_asset_id=data.from_asset_id,
        to_asset_id=data.to_asset_id,
    )


def create_investment(data: InvestmentCreate, db: Session) -> Flow:
    """
    Buy or sell of a holding, recorded as a transfer-family record.
    """
    if data.kind == "invest":
        if not data.to_asset_id:
            raise HTTPException(status_code=400, detail="Invest => destination holding is required.")
        if data.shares < 0:
            raise HTTPException(status_code=400, detail="Invest => shares cannot be negative.")
        effect = EFFECT_INVEST
        category = data.category or "invest"
    else:
        if not data.from_asset_id:
            raise HTTPException(status_code=400, detail="Sell => source holding is required.")
        effect = EFFECT_PROCEEDS if data.to_asset_id else EFFECT_NONE
        category = data.category or "sell"

    return _create_flow(
        db, data, FLOW_TRANSFER, effect,
        category=category,
        from_asset_id=data.from_asset_id,
        to_asset_id=data.to_asset_id,
        shares=abs(data.shares),
    )


def create_debt_payment(data: DebtPaymentCreate, db: Session) -> Flow:
    if not db.query(Debt.id).filter(Debt.id == data.debt_id).first():
        raise HTTPException(status_code=404, detail=f"Debt #{data.debt_id} not found.")
    return _create_flow(
        db, data, FLOW_EXPENSE, EFFECT_DEBT_PAYMENT,
        category=data.category or "pay_debt",
        from_asset_id=data.from_asset_id,
        debt_id=data.debt_id,
    )


# ------------------------------------------------------------------------------
# Public Functions (delete)
# ------------------------------------------------------------------------------
def delete_flow(flow_id: int, db: Session) -> bool:
    """
    Delete a record and reverse the balance effect it applied.
    Its recurring schedules go with it. Returns False if it doesn't exist.
    """
    flow = get_flow_by_id(flow_id, db)
    if not flow:
        return False

    effect = flow.balance_effect
    try:
        apply_effect(flow, db, reverse=True)
        db.delete(flow)
        db.commit()
    except Exception:
        db.rollback()
        raise
    logger.info(f"Deleted flow {flow_id} (reversed '{effect}')")
    return True


# ------------------------------------------------------------------------------
# Internal Helpers
# ------------------------------------------------------------------------------
def _create_flow(
    db: Session,
    data: FlowCreateBase,
    flow_type: str,
    effect: str,
    category: Optional[str] = None,
    from_asset_id: Optional[int] = None,
    to_asset_id: Optional[int] = None,
    debt_id: Optional[int] = None,
    shares: Optional[Decimal] = None,
    expense_category_id: Optional[str] = None,
) -> Flow:
    for asset_id in (from_asset_id, to_asset_id):
        if asset_id is not None and not db.query(Asset.id).filter(Asset.id == asset_id).first():
            raise HTTPException(status_code=404, detail=f"Asset #{asset_id} not found.")

    flow = Flow(
        type=flow_type,
        category=category or data.category,
        amount=data.amount,
        currency=data.currency,
        date=data.date,
        description=data.description,
        from_asset_id=from_asset_id,
        to_asset_id=to_asset_id,
        debt_id=debt_id,
        shares=shares,
        recurring_frequency=data.recurring_frequency,
        expense_category_id=expense_category_id,
        balance_effect=effect if data.adjust_balances else EFFECT_NONE,
        meta=data.metadata,
    )
    try:
        db.add(flow)
        db.flush()
        apply_effect(flow, db)
        if flow.recurring_frequency:
            schedule_for_flow(flow, db)
        db.commit()
    except Exception:
        db.rollback()
        raise
    db.refresh(flow)
    logger.info(
        f"Created {flow.type} flow {flow.id} ({flow.category}) "
        f"amount={flow.amount} effect={flow.balance_effect}"
    )
    return flow


def apply_effect(flow: Flow, db: Session, reverse: bool = False):
    """
    Apply (or reverse) the record's balance effect. No commit.
    """
    effect = flow.balance_effect
    if effect == EFFECT_NONE:
        return

    sign = Decimal(-1) if reverse else Decimal(1)
    amount = Decimal(flow.amount) * sign
    source = db.get(Asset, flow.from_asset_id) if flow.from_asset_id else None
    destination = db.get(Asset, flow.to_asset_id) if flow.to_asset_id else None

    if effect == EFFECT_CREDIT_DESTINATION or effect == EFFECT_PROCEEDS:
        if destination:
            adjust_balance(destination, amount, db)
    elif effect == EFFECT_DEBIT_SOURCE:
        if source:
            adjust_balance(source, -amount, db)
    elif effect == EFFECT_MOVE:
        adjust_balance(source, -amount, db)
        adjust_balance(destination, amount, db)
    elif effect == EFFECT_INVEST:
        if source:
            adjust_balance(source, -amount, db)
        if destination and flow.shares:
            adjust_balance(destination, Decimal(flow.shares) * sign, db)
    elif effect == EFFECT_DEBT_PAYMENT:
        if source:
            adjust_balance(source, -amount, db)
        debt = db.get(Debt, flow.debt_id)
        if debt:
            debt.balance = (debt.balance or 0) - amount
            db.flush()
    else:
        raise HTTPException(status_code=500, detail=f"Unknown balance effect '{effect}' on flow {flow.id}")
