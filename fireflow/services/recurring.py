"""
fireflow/services/recurring.py

Recurring schedules. A schedule is a record template plus the date of its
next run; a scheduler (outside this repo) turns due schedules into records.

Schedules come from two places:
 - create_schedule(): the recurring-only form mode, no record yet.
 - schedule_for_flow(): a record created with a recurring frequency; the
   schedule's first run is the next occurrence after the record's date.
"""

import logging

from sqlalchemy.orm import Session
from fastapi import HTTPException

from fireflow.models.flow import Flow, RecurringSchedule
from fireflow.schemas.flow import RecurringScheduleCreate
from fireflow.services.calculations import next_occurrence

logger = logging.getLogger(__name__)


def get_all_schedules(db: Session, active_only: bool = False):
    query = db.query(RecurringSchedule)
    if active_only:
        query = query.filter(RecurringSchedule.is_active.is_(True))
    return query.order_by(RecurringSchedule.next_run_date).all()


def get_schedule_by_id(schedule_id: int, db: Session):
    return db.query(RecurringSchedule).filter(RecurringSchedule.id == schedule_id).first()


def create_schedule(data: RecurringScheduleCreate, db: Session) -> RecurringSchedule:
    """
    Create a standalone schedule. The template must at least name the record
    type and carry an amount.
    """
    template = dict(data.template)
    if not template.get("type"):
        raise HTTPException(status_code=400, detail="Schedule template must include a record type.")
    if template.get("amount") is None:
        raise HTTPException(status_code=400, detail="Schedule template must include an amount.")

    schedule = RecurringSchedule(
        frequency=data.frequency,
        next_run_date=data.next_run_date,
        template=template,
    )
    db.add(schedule)
    db.commit()
    db.refresh(schedule)
    logger.info(
        f"Created recurring schedule {schedule.id} ({schedule.frequency}, "
        f"next run {schedule.next_run_date})"
    )
    return schedule


def schedule_for_flow(flow: Flow, db: Session) -> RecurringSchedule:
    """
    Attach a schedule to a freshly created record, inside the caller's
    unit of work (no commit).
    """
    schedule = RecurringSchedule(
        frequency=flow.recurring_frequency,
        next_run_date=next_occurrence(flow.date, flow.recurring_frequency),
        template=flow_template(flow),
    )
    flow.schedules.append(schedule)
    db.flush()
    return schedule


def flow_template(flow: Flow) -> dict:
    """JSON-safe description of the record a schedule should repeat."""
    return {
        "type": flow.type,
        "category": flow.category,
        "amount": str(flow.amount),
        "currency": flow.currency,
        "from_asset_id": flow.from_asset_id,
        "to_asset_id": flow.to_asset_id,
        "debt_id": flow.debt_id,
        "description": flow.description,
        "expense_category_id": flow.expense_category_id,
        "metadata": flow.meta,
    }


def delete_schedule(schedule_id: int, db: Session) -> bool:
    schedule = get_schedule_by_id(schedule_id, db)
    if not schedule:
        return False
    db.delete(schedule)
    db.commit()
    logger.info(f"Deleted recurring schedule {schedule_id}")
    return True
