"""
fireflow/services/submission/categories.py

Static registry of entry-form categories. A CategoryPreset says where money
comes from and goes to for a category (an external party, an asset of given
types, the user's choice, or "same as the source"), which record family it
produces, and which extra fields the form shows. The orchestrator branches on
the preset id; the form controller reads the sides to pick defaults.

Also holds the investment-type table used by the "invest" category.
"""

from typing import Iterable, List, Literal, Optional, Tuple

from pydantic import BaseModel, ConfigDict

from fireflow.constants import (
    ASSET_CASH, ASSET_DEPOSIT, ASSET_STOCK, ASSET_ETF, ASSET_BOND, ASSET_CRYPTO,
    ASSET_REAL_ESTATE, ASSET_METALS, ASSET_OTHER,
    FLOW_INCOME, FLOW_EXPENSE, FLOW_TRANSFER,
    MARKET_SG, MARKET_US,
)

SideKind = Literal["external", "asset", "user_select", "same_as_from", "debt"]


class SideSpec(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: SideKind
    default_name: str = ""
    asset_types: Tuple[str, ...] = ()
    allow_create: bool = False

    @property
    def takes_asset(self) -> bool:
        return self.kind in ("asset", "user_select")


class CategoryPreset(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    flow_direction: Literal["income", "expense", "transfer"]
    source: SideSpec
    destination: SideSpec
    extra_fields: Tuple[str, ...] = ()
    group: str = "other"


def _external(name: str = "") -> SideSpec:
    return SideSpec(kind="external", default_name=name)


def _asset(*types: str, allow_create: bool = False) -> SideSpec:
    return SideSpec(kind="asset", asset_types=tuple(types), allow_create=allow_create)


def _user_select(*types: str, allow_create: bool = False) -> SideSpec:
    return SideSpec(kind="user_select", asset_types=tuple(types), allow_create=allow_create)


_SELLABLE = (ASSET_STOCK, ASSET_ETF, ASSET_CRYPTO, ASSET_BOND, ASSET_REAL_ESTATE, ASSET_OTHER)
_INVESTABLE = (ASSET_STOCK, ASSET_ETF, ASSET_CRYPTO, ASSET_BOND, ASSET_REAL_ESTATE, ASSET_OTHER, ASSET_METALS)

PRESETS: Tuple[CategoryPreset, ...] = (
    # Income
    CategoryPreset(id="salary", flow_direction=FLOW_INCOME, group="income",
                   source=_external("Work"), destination=_asset(ASSET_CASH)),
    CategoryPreset(id="bonus", flow_direction=FLOW_INCOME, group="income",
                   source=_external("Work"), destination=_asset(ASSET_CASH)),
    CategoryPreset(id="freelance", flow_direction=FLOW_INCOME, group="income",
                   source=_external("Client"), destination=_asset(ASSET_CASH)),
    CategoryPreset(id="rental", flow_direction=FLOW_INCOME, group="income",
                   source=_asset(ASSET_REAL_ESTATE), destination=_asset(ASSET_CASH)),
    CategoryPreset(id="gift", flow_direction=FLOW_INCOME, group="income",
                   source=_external("Family"), destination=_asset(ASSET_CASH)),
    CategoryPreset(id="dividend", flow_direction=FLOW_INCOME, group="income",
                   source=_asset(ASSET_STOCK, ASSET_ETF), destination=_asset(ASSET_CASH),
                   extra_fields=("tax_withheld",)),
    CategoryPreset(id="interest", flow_direction=FLOW_INCOME, group="income",
                   source=_asset(ASSET_DEPOSIT, ASSET_CASH, allow_create=True),
                   destination=SideSpec(kind="same_as_from")),
    # Savings / investing
    CategoryPreset(id="deposit", flow_direction=FLOW_TRANSFER, group="invest",
                   source=_user_select(ASSET_CASH),
                   destination=_asset(ASSET_DEPOSIT, allow_create=True)),
    CategoryPreset(id="invest", flow_direction=FLOW_TRANSFER, group="invest",
                   source=_asset(ASSET_CASH),
                   destination=_asset(*_INVESTABLE, allow_create=True),
                   extra_fields=("shares", "price_per_share")),
    CategoryPreset(id="sell", flow_direction=FLOW_TRANSFER, group="invest",
                   source=_asset(*_SELLABLE), destination=_asset(ASSET_CASH),
                   extra_fields=("shares", "price_per_share", "cost_basis")),
    CategoryPreset(id="reinvest", flow_direction=FLOW_TRANSFER, group="invest",
                   source=_asset(ASSET_STOCK, ASSET_ETF, ASSET_CRYPTO),
                   destination=SideSpec(kind="same_as_from"),
                   extra_fields=("shares",)),
    CategoryPreset(id="transfer", flow_direction=FLOW_TRANSFER, group="transfer",
                   source=_asset(), destination=_asset(allow_create=True)),
    # Debt
    CategoryPreset(id="pay_debt", flow_direction=FLOW_EXPENSE, group="debt",
                   source=_asset(ASSET_CASH), destination=SideSpec(kind="debt")),
    CategoryPreset(id="add_mortgage", flow_direction=FLOW_INCOME, group="debt",
                   source=_external("Lender"), destination=_user_select(ASSET_CASH)),
    CategoryPreset(id="add_loan", flow_direction=FLOW_INCOME, group="debt",
                   source=_external("Lender"), destination=_user_select(ASSET_CASH)),
    # Spending
    CategoryPreset(id="expense", flow_direction=FLOW_EXPENSE, group="expense",
                   source=_asset(ASSET_CASH), destination=_external(),
                   extra_fields=("linked_ledger",)),
    CategoryPreset(id="other", flow_direction=FLOW_TRANSFER, group="other",
                   source=_user_select(), destination=_user_select(allow_create=True)),
)

_BY_ID = {preset.id: preset for preset in PRESETS}

DEBT_CREATION_CATEGORIES = frozenset({"add_mortgage", "add_loan"})


def lookup(category_id: str) -> Optional[CategoryPreset]:
    """Return the preset for a category id, or None."""
    return _BY_ID.get(category_id)


def filter_assets(side: SideSpec, assets: Iterable) -> List:
    """
    Candidate assets for one side of a preset. A side with no type filter
    accepts every asset; external and debt sides accept none.
    """
    if side.kind not in ("asset", "user_select"):
        return []
    if not side.asset_types:
        return list(assets)
    return [a for a in assets if a.type in side.asset_types]


def single_candidate(side: SideSpec, assets: Iterable):
    """The only candidate asset for a side, or None when there are 0 or 2+."""
    candidates = filter_assets(side, assets)
    return candidates[0] if len(candidates) == 1 else None


# -------------------------------------------------
# Investment types (the "invest" category)
# -------------------------------------------------

class InvestmentType(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    asset_type: str
    currency: Optional[str] = None   # None: the user picks
    market: Optional[str] = None
    uses_ticker: bool = False
    value_based: bool = False


INVESTMENT_TYPES: Tuple[InvestmentType, ...] = (
    InvestmentType(id="us_stock", asset_type=ASSET_STOCK, currency="USD", market=MARKET_US, uses_ticker=True),
    InvestmentType(id="sgx_stock", asset_type=ASSET_STOCK, currency="SGD", market=MARKET_SG, uses_ticker=True),
    InvestmentType(id="metals", asset_type=ASSET_METALS),
    InvestmentType(id="crypto", asset_type=ASSET_CRYPTO, currency="USD", uses_ticker=True),
    InvestmentType(id="real_estate", asset_type=ASSET_REAL_ESTATE, value_based=True),
    InvestmentType(id="other", asset_type=ASSET_OTHER, value_based=True),
)

_INVESTMENT_BY_ID = {t.id: t for t in INVESTMENT_TYPES}

# Investment types whose holding is created from the selected ticker
TICKER_STOCK_TYPES = frozenset({"us_stock", "sgx_stock"})


def investment_type(type_id: str) -> Optional[InvestmentType]:
    return _INVESTMENT_BY_ID.get(type_id)
