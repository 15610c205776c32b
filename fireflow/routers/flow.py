"""
fireflow/routers/flow.py

Endpoints for flow records, one POST per record family. Each POST is a single
unit of work in the service layer (record + balance effect + optional
recurring schedule); DELETE reverses the balance effect the record applied.

Multi-step entries (a new asset plus its record, a sale plus the holding
update, ...) go through /api/submissions instead.
"""

from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from fireflow.database import get_db
from fireflow.schemas.flow import (
    FlowRead,
    IncomeCreate,
    ExpenseCreate,
    TransferCreate,
    InvestmentCreate,
    DebtPaymentCreate,
    RecurringScheduleCreate,
    RecurringScheduleRead,
)
from fireflow.services import flow as flow_service
from fireflow.services import recurring as recurring_service

router = APIRouter(tags=["flows"])


@router.get("/", response_model=List[FlowRead])
def list_flows(asset_id: Optional[int] = None, category: Optional[str] = None, db: Session = Depends(get_db)):
    """
    GET /api/flows?asset_id=&category=
    Newest first. 'asset_id' matches either side of the record.
    """
    return flow_service.get_all_flows(db, asset_id=asset_id, category=category)


@router.get("/recurring", response_model=List[RecurringScheduleRead])
def list_recurring_schedules(active_only: bool = False, db: Session = Depends(get_db)):
    return recurring_service.get_all_schedules(db, active_only=active_only)


@router.post("/recurring", response_model=RecurringScheduleRead)
def create_recurring_schedule(data: RecurringScheduleCreate, db: Session = Depends(get_db)):
    """A schedule with no record behind it (recurring-only entries)."""
    return recurring_service.create_schedule(data, db)


@router.delete("/recurring/{schedule_id}", status_code=204)
def delete_recurring_schedule(schedule_id: int, db: Session = Depends(get_db)):
    if not recurring_service.delete_schedule(schedule_id, db):
        raise HTTPException(status_code=404, detail="Schedule not found.")
    return


@router.get("/{flow_id}", response_model=FlowRead)
def get_flow(flow_id: int, db: Session = Depends(get_db)):
    flow = flow_service.get_flow_by_id(flow_id, db)
    if not flow:
        raise HTTPException(status_code=404, detail="Flow not found.")
    return flow


@router.post("/income", response_model=FlowRead)
def create_income(data: IncomeCreate, db: Session = Depends(get_db)):
    return flow_service.create_income(data, db)


@router.post("/expense", response_model=FlowRead)
def create_expense(data: ExpenseCreate, db: Session = Depends(get_db)):
    return flow_service.create_expense(data, db)


@router.post("/transfer", response_model=FlowRead)
def create_transfer(data: TransferCreate, db: Session = Depends(get_db)):
    return flow_service.create_transfer(data, db)


@router.post("/investment", response_model=FlowRead)
def create_investment(data: InvestmentCreate, db: Session = Depends(get_db)):
    return flow_service.create_investment(data, db)


@router.post("/debt-payment", response_model=FlowRead)
def create_debt_payment(data: DebtPaymentCreate, db: Session = Depends(get_db)):
    return flow_service.create_debt_payment(data, db)


@router.delete("/{flow_id}", status_code=204)
def delete_flow(flow_id: int, db: Session = Depends(get_db)):
    """
    DELETE /api/flows/{flow_id}
    Reverses the record's balance effect, then removes it (and its schedules).
    """
    if not flow_service.delete_flow(flow_id, db):
        raise HTTPException(status_code=404, detail="Flow not found.")
    return
