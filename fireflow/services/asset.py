"""
fireflow/services/asset.py

Manages creation, update, deletion, and retrieval of Assets. These are the
asset-service endpoints the submission core calls through its gateway.

Rules:
 - An asset still referenced by flow records cannot be deleted; callers that
   roll back must delete the records first.
 - Updates only touch the fields actually sent.
 - Any balance change stamps balance_updated_at.
"""

import logging
from datetime import datetime, timezone

from sqlalchemy import or_
from sqlalchemy.orm import Session
from fastapi import HTTPException

from fireflow.models.asset import Asset
from fireflow.models.flow import Flow
from fireflow.schemas.asset import AssetCreate, AssetUpdate

logger = logging.getLogger(__name__)


def get_all_assets(db: Session):
    """
    Fetch all assets, oldest first.
    """
    return db.query(Asset).order_by(Asset.id).all()


def get_asset_by_id(asset_id: int, db: Session):
    """
    Return the Asset with the specified ID, or None if it doesn't exist.
    """
    return db.query(Asset).filter(Asset.id == asset_id).first()


def create_asset(asset_data: AssetCreate, db: Session) -> Asset:
    """
    Create a new Asset. A non-zero starting balance is allowed; metal
    holdings are created already holding their weight.
    """
    now = datetime.now(timezone.utc)
    new_asset = Asset(
        name=asset_data.name,
        type=asset_data.type,
        ticker=asset_data.ticker,
        currency=asset_data.currency,
        market=asset_data.market,
        balance=asset_data.balance,
        meta=asset_data.metadata,
        balance_updated_at=now if asset_data.balance else None,
    )
    db.add(new_asset)
    db.commit()
    db.refresh(new_asset)
    logger.info(f"Created asset {new_asset.id} ({new_asset.name}, {new_asset.type})")
    return new_asset


def update_asset(asset_id: int, asset_data: AssetUpdate, db: Session):
    """
    Apply a partial update. Returns None if the asset doesn't exist.
    """
    asset = get_asset_by_id(asset_id, db)
    if not asset:
        return None

    changes = asset_data.model_dump(exclude_unset=True)
    if "metadata" in changes:
        asset.meta = changes.pop("metadata")
    for field, value in changes.items():
        setattr(asset, field, value)
    if "balance" in changes:
        asset.balance_updated_at = datetime.now(timezone.utc)

    db.commit()
    db.refresh(asset)
    logger.debug(f"Updated asset {asset_id}: {sorted(changes)}")
    return asset


def delete_asset(asset_id: int, db: Session):
    """
    Delete the asset by ID. Returns False if it doesn't exist.
    Refuses (409) while flow records still reference it.
    """
    asset = get_asset_by_id(asset_id, db)
    if not asset:
        return False

    referenced = (
        db.query(Flow.id)
        .filter(or_(Flow.from_asset_id == asset_id, Flow.to_asset_id == asset_id))
        .first()
    )
    if referenced:
        raise HTTPException(
            status_code=409,
            detail=f"Asset #{asset_id} is still referenced by flow records."
        )

    db.delete(asset)
    db.commit()
    logger.info(f"Deleted asset {asset_id}")
    return True


def adjust_balance(asset: Asset, delta, db: Session):
    """
    Add 'delta' to an asset's balance inside the caller's unit of work
    (no commit). Used by the record services so the record and its balance
    effect land in the same commit.
    """
    asset.balance = (asset.balance or 0) + delta
    asset.balance_updated_at = datetime.now(timezone.utc)
    db.flush()
