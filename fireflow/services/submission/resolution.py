"""
fireflow/services/submission/resolution.py

Finding or creating the asset a submission needs. Matching policy, in order:

  1. Case-insensitive exact name match: reuse, nothing is created.
  2. Commodities match by metal type (not name); the requested quantity is
     converted into the matched asset's unit before it's merged.
     Equities match by ticker.
  3. Otherwise create the asset and record it in the compensation ledger
     straight away, before any step that depends on it.

Creation never writes to an existing asset.
"""

import logging
from decimal import Decimal
from typing import Iterable, Optional

from fireflow.constants import ASSET_METALS
from fireflow.schemas.asset import AssetCreate
from fireflow.schemas.draft import NewAssetRequest
from fireflow.services.calculations import convert_metal_weight
from fireflow.services.submission.categories import InvestmentType
from fireflow.services.submission.ledger import CompensationLedger

logger = logging.getLogger(__name__)

DEFAULT_METAL_UNIT = "gram"


def match_by_name(assets: Iterable, name: str):
    wanted = name.strip().lower()
    if not wanted:
        return None
    for asset in assets:
        if asset.name.lower() == wanted:
            return asset
    return None


def match_by_ticker(assets: Iterable, ticker: str):
    wanted = (ticker or "").strip().upper()
    if not wanted:
        return None
    for asset in assets:
        if asset.ticker and asset.ticker.upper() == wanted:
            return asset
    return None


def match_metal(assets: Iterable, metal_type: str):
    for asset in assets:
        if asset.type == ASSET_METALS and (asset.metadata or {}).get("metal_type") == metal_type:
            return asset
    return None


def metal_unit_of(asset) -> str:
    return (asset.metadata or {}).get("metal_unit") or DEFAULT_METAL_UNIT


def quantity_in_asset_unit(asset, quantity: Decimal, unit: str) -> Decimal:
    """Express 'quantity' of 'unit' in the unit the metal asset is kept in."""
    return convert_metal_weight(quantity, unit, metal_unit_of(asset))


async def resolve_or_create(
    request: NewAssetRequest,
    existing_assets: Iterable,
    currency: str,
    backend,
    ledger: CompensationLedger,
    asset_type: Optional[str] = None,
):
    """
    Return the asset a new-asset request stands for: an existing one with the
    same name, or a freshly created one (recorded in the ledger).
    """
    existing = match_by_name(existing_assets, request.name)
    if existing:
        logger.info(f"Using existing asset {existing.id} ({existing.name})")
        return existing

    data = AssetCreate(
        name=request.name,
        type=asset_type or request.type,
        ticker=request.ticker.strip() or None,
        currency=currency,
    )
    asset = await backend.create_asset(data)
    ledger.record_asset(asset.id)
    return asset


async def resolve_ticker_holding(
    ticker: str,
    display_name: str,
    config: InvestmentType,
    existing_assets: Iterable,
    backend,
    ledger: CompensationLedger,
):
    """
    The holding for a stock bought by ticker: an existing asset with that
    ticker, or a new stock asset in the investment type's currency and market.
    """
    existing = match_by_ticker(existing_assets, ticker)
    if existing:
        return existing

    data = AssetCreate(
        name=display_name or ticker,
        type=config.asset_type,
        ticker=ticker.upper(),
        currency=config.currency,
        market=config.market,
    )
    asset = await backend.create_asset(data)
    ledger.record_asset(asset.id)
    return asset
