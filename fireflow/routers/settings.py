"""
fireflow/routers/settings.py

Per-asset interest settings, the dividend tax settings row, and the list of
linked expense ledgers.
"""

from typing import List

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from fireflow.database import get_db
from fireflow.schemas.settings import (
    InterestSettingUpsert,
    InterestSettingRead,
    TaxSettingRead,
    TaxSettingUpdate,
    LinkedLedgerItem,
)
from fireflow.services import interest as interest_service
from fireflow.services import linked_ledger as linked_ledger_service
from fireflow.services import settings as settings_service

router = APIRouter(tags=["settings"])


# ---------------------------------------------------------
# Interest settings
# ---------------------------------------------------------
@router.get("/interest", response_model=List[InterestSettingRead])
def list_interest_settings(db: Session = Depends(get_db)):
    return interest_service.get_all_interest_settings(db)


@router.get("/interest/{asset_id}", response_model=InterestSettingRead)
def get_interest_setting(asset_id: int, db: Session = Depends(get_db)):
    setting = interest_service.get_interest_setting(asset_id, db)
    if not setting:
        raise HTTPException(status_code=404, detail="No interest settings for this asset.")
    return setting


@router.put("/interest/{asset_id}", response_model=InterestSettingRead)
def upsert_interest_setting(asset_id: int, data: InterestSettingUpsert, db: Session = Depends(get_db)):
    """
    'interest_rate' is the annualized rate as a fraction (0.045 = 4.5%).
    """
    return interest_service.upsert_interest_setting(asset_id, data, db)


# ---------------------------------------------------------
# Tax settings
# ---------------------------------------------------------
@router.get("/tax", response_model=TaxSettingRead)
def get_tax_settings(db: Session = Depends(get_db)):
    return settings_service.get_tax_settings(db)


@router.patch("/tax", response_model=TaxSettingRead)
def update_tax_settings(data: TaxSettingUpdate, db: Session = Depends(get_db)):
    return settings_service.update_tax_settings(data, db)


# ---------------------------------------------------------
# Linked ledgers
# ---------------------------------------------------------
@router.get("/linked-ledgers", response_model=List[LinkedLedgerItem])
def list_linked_ledgers(db: Session = Depends(get_db)):
    return linked_ledger_service.get_linked_ledgers(db)


@router.put("/linked-ledgers", response_model=List[LinkedLedgerItem])
def set_linked_ledgers(items: List[LinkedLedgerItem], db: Session = Depends(get_db)):
    return linked_ledger_service.set_linked_ledgers(items, db)
