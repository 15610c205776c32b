"""
fireflow/routers/debt.py

Debt endpoints. POST creates the debt and, when 'disburse_to_asset_id' is
given, the disbursement record crediting that asset, in one commit.
Payments are flow records (POST /api/flows/debt-payment).
"""

from typing import List

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from fireflow.database import get_db
from fireflow.schemas.debt import DebtCreate, DebtRead, DebtCreateResult
from fireflow.services import debt as debt_service

router = APIRouter(tags=["debts"])


@router.get("/", response_model=List[DebtRead])
def list_debts(db: Session = Depends(get_db)):
    return debt_service.get_all_debts(db)


@router.get("/{debt_id}", response_model=DebtRead)
def get_debt(debt_id: int, db: Session = Depends(get_db)):
    debt = debt_service.get_debt_by_id(debt_id, db)
    if not debt:
        raise HTTPException(status_code=404, detail="Debt not found.")
    return debt


@router.post("/", response_model=DebtCreateResult)
def create_debt(data: DebtCreate, db: Session = Depends(get_db)):
    """
    Returns the debt plus the id of the disbursement record (null when the
    principal wasn't disbursed into an asset).
    """
    debt, flow = debt_service.create_debt(data, db)
    return DebtCreateResult(debt=DebtRead.model_validate(debt), flow_id=flow.id if flow else None)


@router.delete("/{debt_id}", status_code=204)
def delete_debt(debt_id: int, db: Session = Depends(get_db)):
    if not debt_service.delete_debt(debt_id, db):
        raise HTTPException(status_code=404, detail="Debt not found.")
    return
