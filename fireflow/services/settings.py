"""
fireflow/services/settings.py

Dividend tax settings. There is exactly one TaxSetting row; it is seeded
from the environment defaults at startup (see database.create_tables) and
read by the dividend flow to pick a withholding rate.
"""

import logging

from sqlalchemy.orm import Session

from fireflow.constants import (
    DEFAULT_US_DIVIDEND_WITHHOLDING_RATE,
    DEFAULT_SG_DIVIDEND_WITHHOLDING_RATE,
)
from fireflow.models.settings import TaxSetting
from fireflow.schemas.settings import TaxSettingUpdate

logger = logging.getLogger(__name__)


def ensure_tax_settings(db: Session) -> TaxSetting:
    """
    Create the single tax settings row if it's missing. Safe to call repeatedly.
    """
    row = db.query(TaxSetting).first()
    if row:
        return row
    row = TaxSetting(
        id=1,
        us_dividend_withholding_rate=DEFAULT_US_DIVIDEND_WITHHOLDING_RATE,
        sg_dividend_withholding_rate=DEFAULT_SG_DIVIDEND_WITHHOLDING_RATE,
    )
    db.add(row)
    db.commit()
    db.refresh(row)
    logger.info(
        f"Seeded tax settings (US={row.us_dividend_withholding_rate}, "
        f"SG={row.sg_dividend_withholding_rate})"
    )
    return row


def get_tax_settings(db: Session) -> TaxSetting:
    return ensure_tax_settings(db)


def update_tax_settings(data: TaxSettingUpdate, db: Session) -> TaxSetting:
    row = ensure_tax_settings(db)
    for field, value in data.model_dump(exclude_unset=True, exclude_none=True).items():
        setattr(row, field, value)
    db.commit()
    db.refresh(row)
    logger.info("Updated tax settings")
    return row
