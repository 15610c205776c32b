"""
fireflow/services/interest.py

Saved interest settings per deposit asset: the annualized rate and the
payment period. The interest form reads them to pre-fill a projected
payment; the interest and deposit flows write them back.
"""

import logging

from sqlalchemy.orm import Session
from fastapi import HTTPException

from fireflow.models.asset import Asset
from fireflow.models.settings import AssetInterestSetting
from fireflow.schemas.settings import InterestSettingUpsert

logger = logging.getLogger(__name__)


def get_all_interest_settings(db: Session):
    return db.query(AssetInterestSetting).all()


def get_interest_setting(asset_id: int, db: Session):
    """
    Return the saved settings of an asset, or None.
    """
    return (
        db.query(AssetInterestSetting)
        .filter(AssetInterestSetting.asset_id == asset_id)
        .first()
    )


def upsert_interest_setting(asset_id: int, data: InterestSettingUpsert, db: Session):
    """
    Insert or replace the asset's saved rate and period.
    """
    if not db.query(Asset.id).filter(Asset.id == asset_id).first():
        raise HTTPException(status_code=404, detail=f"Asset #{asset_id} not found.")

    setting = get_interest_setting(asset_id, db)
    if setting:
        setting.interest_rate = data.interest_rate
        setting.payment_period = data.payment_period
    else:
        setting = AssetInterestSetting(
            asset_id=asset_id,
            interest_rate=data.interest_rate,
            payment_period=data.payment_period,
        )
        db.add(setting)
    db.commit()
    db.refresh(setting)
    logger.debug(
        f"Interest settings for asset {asset_id}: "
        f"rate={setting.interest_rate} period={setting.payment_period}"
    )
    return setting
