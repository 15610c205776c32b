"""
fireflow/services/linked_ledger.py

Expense ledgers linked to the dashboard. 'set' replaces the whole list,
keeping the order it was given in.
"""

import logging
from typing import List

from sqlalchemy.orm import Session

from fireflow.models.settings import LinkedLedger
from fireflow.schemas.settings import LinkedLedgerItem

logger = logging.getLogger(__name__)


def get_linked_ledgers(db: Session):
    return db.query(LinkedLedger).order_by(LinkedLedger.position).all()


def set_linked_ledgers(items: List[LinkedLedgerItem], db: Session):
    """
    Replace the linked ledger list. Duplicate ids keep their first position.
    """
    db.query(LinkedLedger).delete()
    seen = set()
    for item in items:
        if item.ledger_id in seen:
            continue
        seen.add(item.ledger_id)
        db.add(LinkedLedger(
            ledger_id=item.ledger_id,
            ledger_name=item.ledger_name,
            position=len(seen) - 1,
        ))
    db.commit()
    logger.info(f"Linked ledgers set: {len(seen)}")
    return get_linked_ledgers(db)
