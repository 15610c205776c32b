"""
fireflow/routers/asset.py

FastAPI router handling Asset endpoints. Assets are the balances the user
tracks (cash, deposits, holdings, property). Balances normally move through
flow records; a PUT with 'balance' sets it directly, as the deposit editor
and the value-based investments do.
"""

from fastapi import APIRouter, Depends, HTTPException
from typing import List
from fireflow.schemas.asset import AssetCreate, AssetUpdate, AssetRead
from fireflow.services import asset as asset_service
from fireflow.database import get_db

router = APIRouter(tags=["assets"])


@router.get("/", response_model=List[AssetRead])
def list_assets(db=Depends(get_db)):
    """
    Retrieve all assets, oldest first.
    """
    return asset_service.get_all_assets(db)


@router.get("/{asset_id}", response_model=AssetRead)
def get_asset(asset_id: int, db=Depends(get_db)):
    asset = asset_service.get_asset_by_id(asset_id, db)
    if not asset:
        raise HTTPException(status_code=404, detail="Asset not found.")
    return asset


@router.post("/", response_model=AssetRead)
def create_asset(asset: AssetCreate, db=Depends(get_db)):
    """
    Create a new asset. The request body (AssetCreate) includes:
      - name: e.g. "Emergency Fund", "AAPL"
      - type: cash, deposit, stock, ...
      - currency, optional ticker/market, optional starting balance
    """
    return asset_service.create_asset(asset, db)


@router.put("/{asset_id}", response_model=AssetRead)
def update_asset(asset_id: int, asset: AssetUpdate, db=Depends(get_db)):
    """
    Partial update: only the fields sent are changed.
    Returns 404 if no such asset exists.
    """
    updated = asset_service.update_asset(asset_id, asset, db)
    if not updated:
        raise HTTPException(status_code=404, detail="Asset not found.")
    return updated


@router.delete("/{asset_id}", status_code=204)
def delete_asset(asset_id: int, db=Depends(get_db)):
    """
    Delete an asset by ID, returning 204 on success.
    Assets still referenced by flow records are refused with 409.
    """
    if not asset_service.delete_asset(asset_id, db):
        raise HTTPException(status_code=404, detail="Asset not found.")
    return
