"""
fireflow/routers/calculation.py

Endpoints exposing the calculation engines to the frontend:
  - Interest annualization and the projected payment for a saved rate.
  - Weighted average cost of a holding, from its buy records.
  - Dividend withholding split, using the saved tax settings.
  - Metal weight and price conversion.
  - Amortized debt payment and the next run of a recurring schedule.

The math lives in fireflow/services/calculations.py; this module only reads
query parameters, loads what the math needs from the database, and converts
Decimals to floats for JSON.
"""

from datetime import date
from decimal import Decimal
from typing import Dict, Optional

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from fireflow.database import get_db
from fireflow.schemas.flow import FlowRead
from fireflow.services import calculations
from fireflow.services import flow as flow_service
from fireflow.services import settings as settings_service
from fireflow.services.asset import get_asset_by_id
from fireflow.services.submission.form_state import acquisitions_for

# main.py sets the final prefix ("/api/calculations") and tags.
router = APIRouter(tags=["calculations"])


def convert_decimal(item):
    if isinstance(item, Decimal):
        return float(item)
    if isinstance(item, dict):
        return {key: convert_decimal(value) for key, value in item.items()}
    if isinstance(item, list):
        return [convert_decimal(subitem) for subitem in item]
    return item


def _bad_request(fn, *args):
    try:
        return fn(*args)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.get("/interest/annualize")
def api_annualize_interest(amount: Decimal, principal: Decimal, period: str = "monthly") -> Dict:
    """
    Rate of one interest payment on 'principal', and the annualized rate it
    compounds to over a year of 'period' payments.
    """
    period_rate, annual_rate = _bad_request(calculations.annualize_interest, amount, principal, period)
    return convert_decimal({
        "period": period,
        "periods_per_year": calculations.periods_per_year(period),
        "period_rate": period_rate,
        "annualized_rate": annual_rate,
    })


@router.get("/interest/project")
def api_project_interest(annual_rate: Decimal, principal: Decimal, period: str = "monthly") -> Dict:
    amount = calculations.project_period_amount(annual_rate, principal, period)
    return convert_decimal({"period": period, "amount": amount.quantize(calculations.CENT)})


@router.get("/asset/{asset_id}/cost-basis")
def api_cost_basis(asset_id: int, db: Session = Depends(get_db)) -> Dict:
    """
    Weighted average cost per unit of a holding. 'average_cost' is null while
    no shares have been bought.
    """
    if not get_asset_by_id(asset_id, db):
        raise HTTPException(status_code=404, detail="Asset not found.")
    records = [
        FlowRead.model_validate(f)
        for f in flow_service.get_all_flows(db, asset_id=asset_id, category="invest")
    ]
    pairs = acquisitions_for(asset_id, records)
    return convert_decimal({
        "asset_id": asset_id,
        "acquisitions": len(pairs),
        "average_cost": calculations.weighted_average_cost(pairs),
    })


@router.get("/realized-pl")
def api_realized_pl(price_per_share: Decimal, average_cost: Decimal, shares: Decimal) -> Dict:
    return convert_decimal({
        "realized_pl": calculations.realized_pl(price_per_share, average_cost, shares),
    })


@router.get("/dividend")
def api_dividend_withholding(gross: Decimal, market: Optional[str] = None, db: Session = Depends(get_db)) -> Dict:
    """
    Split a gross dividend into withholding and net, with the saved rates.
    """
    tax = settings_service.get_tax_settings(db)
    split = calculations.dividend_withholding(
        gross, market, tax.us_dividend_withholding_rate, tax.sg_dividend_withholding_rate
    )
    return convert_decimal(split._asdict())


@router.get("/metals/weight")
def api_convert_metal_weight(value: Decimal, from_unit: str, to_unit: str) -> Dict:
    converted = _bad_request(calculations.convert_metal_weight, value, from_unit, to_unit)
    return convert_decimal({"value": converted, "unit": to_unit})


@router.get("/metals/price")
def api_convert_metal_price(price: Decimal, quote_unit: str = "troy_oz", to_unit: str = "gram") -> Dict:
    converted = _bad_request(calculations.convert_metal_price, price, quote_unit, to_unit)
    return convert_decimal({"price": converted, "unit": to_unit})


@router.get("/debt/payment")
def api_amortized_payment(principal: Decimal, annual_rate: Decimal, term_months: int) -> Dict:
    """
    'annual_rate' is a fraction (0.05 = 5%). Null when any input isn't positive.
    """
    return convert_decimal({
        "monthly_payment": calculations.amortized_payment(principal, annual_rate, term_months),
    })


@router.get("/recurring/next")
def api_next_occurrence(start: date, frequency: str) -> Dict:
    next_run = _bad_request(calculations.next_occurrence, start, frequency)
    return {"start": start.isoformat(), "frequency": frequency, "next_run_date": next_run.isoformat()}
