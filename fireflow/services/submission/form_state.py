"""
fireflow/services/submission/form_state.py

The entry form as pure transitions over an immutable FormState:

    select_category(preset, assets)           -> FormState
    apply_field_update(state, field, value, context) -> FormState
    update_new_asset(state, field, value)     -> FormState

Side-fills (e.g. picking a deposit under "interest" pre-fills the projected
interest) live in SIDE_FILLS, keyed by (category, field). A side-fill runs
only on the update of that field, never on unrelated edits.
"""

from decimal import Decimal
from typing import Any, Callable, Dict, Iterable, Optional, Tuple

from fireflow.constants import DEFAULT_CURRENCY, SHARE_BASED_ASSET_TYPES, RECURRING_NONE
from fireflow.schemas.draft import FlowDraft, FormState, NewAssetRequest, FieldVisibility
from fireflow.services.calculations import project_period_amount, weighted_average_cost, CENT
from fireflow.services.submission.categories import (
    CategoryPreset,
    TICKER_STOCK_TYPES,
    filter_assets,
    single_candidate,
    investment_type,
)


class FormContext:
    """
    Live data side-fills read: assets, saved interest settings keyed by
    asset id, and prior records (for cost basis).
    """

    def __init__(self, assets: Iterable = (), interest_settings: Optional[Dict[int, Any]] = None,
                 records: Iterable = ()):
        self.assets = list(assets)
        self.interest_settings = dict(interest_settings or {})
        self.records = list(records)

    def asset(self, asset_id):
        for asset in self.assets:
            if asset.id == asset_id:
                return asset
        return None


# -------------------------------------------------
# Category selection
# -------------------------------------------------

def select_category(preset: CategoryPreset, assets: Iterable, preferred_currency: str = DEFAULT_CURRENCY) -> FormState:
    """
    A fresh draft for the category. A required asset side is pre-selected
    only when exactly one candidate asset exists.
    """
    assets = list(assets)
    values: Dict[str, Any] = {"category": preset.id, "currency": preferred_currency}

    source = preset.source
    if source.kind == "external":
        values["from_type"] = "external"
        values["from_external_name"] = source.default_name
    else:
        values["from_type"] = "asset"
        if source.kind == "asset":
            only = single_candidate(source, assets)
            values["from_asset_id"] = only.id if only else None

    destination = preset.destination
    if destination.kind in ("external", "debt"):
        values["to_type"] = "external"
        values["to_external_name"] = destination.default_name
    else:
        values["to_type"] = "asset"
        if destination.kind == "asset":
            only = single_candidate(destination, assets)
            values["to_asset_id"] = only.id if only else None

    if preset.id == "add_mortgage":
        values["debt_type"] = "mortgage"
    elif preset.id == "add_loan":
        values["debt_type"] = "personal_loan"

    new_asset = NewAssetRequest()
    if preset.id == "deposit":
        new_asset = NewAssetRequest(show="destination", type="deposit")

    return FormState(draft=FlowDraft(**values), new_asset=new_asset)


# -------------------------------------------------
# Side-fills
# -------------------------------------------------

def _fill_interest_source(draft: FlowDraft, asset_id, context: FormContext) -> Dict[str, Any]:
    updates: Dict[str, Any] = {}
    asset = context.asset(asset_id)
    saved = context.interest_settings.get(asset_id)

    if saved is not None and saved.payment_period:
        updates["interest_payment_period"] = saved.payment_period
    if saved is not None and saved.interest_rate and asset is not None and asset.balance:
        period = saved.payment_period or "monthly"
        projected = project_period_amount(saved.interest_rate, asset.balance, period)
        updates["amount"] = projected.quantize(CENT)
    if asset is not None and asset.currency:
        updates["currency"] = asset.currency
    return updates


def _fill_rental_source(draft: FlowDraft, asset_id, context: FormContext) -> Dict[str, Any]:
    asset = context.asset(asset_id)
    if asset is not None and asset.currency:
        return {"currency": asset.currency}
    return {}


def acquisitions_for(asset_id, records: Iterable):
    """(amount, shares) of prior buy records into the asset."""
    pairs = []
    for record in records:
        if record.to_asset_id != asset_id or record.category != "invest":
            continue
        shares = record.shares or (record.metadata or {}).get("shares") or 0
        shares = Decimal(str(shares))
        if shares > 0:
            pairs.append((Decimal(record.amount), shares))
    return pairs


def _fill_sell_source(draft: FlowDraft, asset_id, context: FormContext) -> Dict[str, Any]:
    asset = context.asset(asset_id)
    if asset is None or asset.type not in SHARE_BASED_ASSET_TYPES:
        return {}
    return {
        "sell_cost_basis": weighted_average_cost(acquisitions_for(asset_id, context.records)),
        "selected_ticker": asset.ticker or "",
    }


def _fill_investment_type(draft: FlowDraft, type_id, context: FormContext) -> Dict[str, Any]:
    updates: Dict[str, Any] = {
        "selected_ticker": "",
        "selected_ticker_name": "",
        "amount": None,
        "shares": None,
        "current_value": None,
    }
    config = investment_type(type_id)
    if config is not None and config.currency:
        updates["currency"] = config.currency
    return updates


SIDE_FILLS: Dict[Tuple[str, str], Callable[[FlowDraft, Any, FormContext], Dict[str, Any]]] = {
    ("interest", "from_asset_id"): _fill_interest_source,
    ("rental", "from_asset_id"): _fill_rental_source,
    ("sell", "from_asset_id"): _fill_sell_source,
    ("invest", "investment_type"): _fill_investment_type,
}


# -------------------------------------------------
# Field updates
# -------------------------------------------------

# Which error a filled-in field clears, where the names differ
ERROR_KEY_FOR_FIELD = {
    "selected_ticker": "ticker",
    "from_asset_id": "from_asset",
    "from_external_name": "from_asset",
    "to_asset_id": "to_asset",
    "withdraw_to_cash_asset_id": "to_asset",
}


def _is_filled(field: str, value) -> bool:
    if value is None or value == "" or value == []:
        return False
    if field == "recurring_frequency" and value == RECURRING_NONE:
        return False
    return True


def apply_field_update(state: FormState, field: str, value, context: Optional[FormContext] = None) -> FormState:
    """
    Set one draft field, run its side-fill (if any) and clear the error the
    field answers.
    """
    if field not in FlowDraft.model_fields:
        raise ValueError(f"Unknown draft field: {field}")
    context = context or FormContext()

    values = state.draft.model_dump()
    values[field] = value
    draft = FlowDraft.model_validate(values)

    side_fill = SIDE_FILLS.get((draft.category, field))
    if side_fill is not None and _is_filled(field, value):
        draft = draft.model_copy(update=side_fill(draft, getattr(draft, field), context))

    errors = dict(state.errors)
    if _is_filled(field, value):
        errors.pop(ERROR_KEY_FOR_FIELD.get(field, field), None)

    return state.model_copy(update={"draft": draft, "errors": errors})


def update_new_asset(state: FormState, field: str, value) -> FormState:
    if field not in NewAssetRequest.model_fields:
        raise ValueError(f"Unknown new-asset field: {field}")
    new_asset = NewAssetRequest.model_validate({**state.new_asset.model_dump(), field: value})
    errors = dict(state.errors)
    if field == "name" and str(value or "").strip():
        errors.pop("new_asset_name", None)
    return state.model_copy(update={"new_asset": new_asset, "errors": errors})


def with_errors(state: FormState, errors: Dict[str, str]) -> FormState:
    return state.model_copy(update={"errors": {**state.errors, **errors}})


# -------------------------------------------------
# Derived view values
# -------------------------------------------------

def field_visibility(state: FormState, preset: CategoryPreset, assets: Iterable) -> FieldVisibility:
    """
    A side is hidden when there is nothing to choose: it mirrors the source,
    it has exactly one candidate asset, or (invest) the holding comes from
    the ticker or metal selector.
    """
    assets = list(assets)
    draft = state.draft

    def shown(side) -> bool:
        if side.kind == "same_as_from":
            return False
        if side.kind == "asset" and len(filter_assets(side, assets)) == 1:
            return False
        return True

    show_to = shown(preset.destination)
    if preset.id == "invest" and (draft.investment_type in TICKER_STOCK_TYPES or draft.investment_type == "metals"):
        show_to = False
    show_from = shown(preset.source)
    if preset.id == "interest" and draft.untethered_interest:
        show_from = False
    return FieldVisibility(show_from_field=show_from, show_to_field=show_to)


def computed_price_per_share(state: FormState) -> Optional[Decimal]:
    """amount / shares for buys and reinvestments, else the entered price."""
    draft = state.draft
    if draft.category in ("invest", "reinvest") and draft.amount and draft.shares:
        if draft.amount > 0 and draft.shares > 0:
            return draft.amount / draft.shares
    return draft.price_per_share
