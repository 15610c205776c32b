"""
fireflow/schemas/draft.py

Schemas of the unified entry form and its submission:

- FlowDraft: the in-progress record the user edits. Numeric fields are None
  while empty. Percent inputs (interest_rate, debt_interest_rate) are
  entered as percentages ("4.5"); the orchestrator divides by 100.
- NewAssetRequest: the inline "add a new account/holding" sub-form.
- FormState: draft + new-asset request + field errors, the value the pure
  form transitions take and return.
- SubmissionMetadata: closed union of per-category metadata stored on the
  persisted record, discriminated by 'kind'.
- SubmissionResult: the single outcome of one submit call.
"""

from datetime import date as date_type
from decimal import Decimal
from typing import Annotated, Optional, List, Dict, Any, Literal, Union

from pydantic import BaseModel, Field, TypeAdapter, field_validator

from fireflow.constants import DEFAULT_CURRENCY, DEFAULT_PAYMENT_PERIOD
from fireflow.schemas.settings import LinkedLedgerItem


# -------------------------------------------------
# DRAFT
# -------------------------------------------------

class NewAssetRequest(BaseModel):
    show: Optional[Literal["source", "destination"]] = None
    name: str = ""
    type: str = "cash"
    ticker: str = ""


class FlowDraft(BaseModel):
    category: str
    amount: Optional[Decimal] = None
    currency: str = DEFAULT_CURRENCY
    date: date_type = Field(default_factory=date_type.today)
    description: str = ""

    # Source / destination descriptors
    from_type: Literal["external", "asset"] = "external"
    from_external_name: str = ""
    from_asset_id: Optional[int] = None
    to_type: Literal["external", "asset"] = "asset"
    to_external_name: str = ""
    to_asset_id: Optional[int] = None

    shares: Optional[Decimal] = None
    price_per_share: Optional[Decimal] = None
    recurring_frequency: str = "none"

    # Expense
    expense_category_id: Optional[str] = None
    linked_ledgers: List[LinkedLedgerItem] = Field(default_factory=list)

    # Investment
    investment_type: str = "us_stock"
    selected_ticker: str = ""
    selected_ticker_name: str = ""
    current_value: Optional[Decimal] = None

    # Metals
    metal_type: str = "gold"
    metal_unit: str = "gram"

    # Interest / deposit
    interest_payment_period: str = DEFAULT_PAYMENT_PERIOD
    deposit_balance: Optional[Decimal] = None
    interest_rate: Optional[Decimal] = None
    deposit_matured: Optional[bool] = None
    withdraw_to_cash_asset_id: Optional[int] = None
    interest_principal: Optional[Decimal] = None
    untethered_interest: bool = False

    # Debt creation
    debt_name: str = ""
    debt_type: str = "mortgage"
    debt_principal: Optional[Decimal] = None
    debt_interest_rate: Optional[Decimal] = None
    debt_term_months: Optional[int] = None
    debt_start_date: Optional[date_type] = None

    # Debt payment
    debt_id: Optional[int] = None
    pay_debt_source_type: Literal["cash", "external"] = "cash"
    pay_debt_external_name: str = ""

    # Sell
    sell_cost_basis: Optional[Decimal] = None
    sell_fees: Optional[Decimal] = None
    sell_mark_as_sold: bool = False

    # Other
    is_passive_income: bool = False

    # Recurring-only mode
    recurring_only: bool = False
    start_choice: Optional[Literal["today", "next_occurrence"]] = None

    # Deposit edit mode
    edit_asset_id: Optional[int] = None

    @field_validator(
        "amount", "shares", "price_per_share", "current_value", "deposit_balance",
        "interest_rate", "interest_principal", "debt_principal", "debt_interest_rate",
        "sell_cost_basis", "sell_fees",
        mode="before",
    )
    def empty_string_is_none(cls, v):
        if isinstance(v, str) and not v.strip():
            return None
        return v

    @field_validator("currency")
    def currency_upper(cls, v):
        return v.upper()


class FormState(BaseModel):
    draft: FlowDraft
    new_asset: NewAssetRequest = Field(default_factory=NewAssetRequest)
    errors: Dict[str, str] = Field(default_factory=dict)


class FieldVisibility(BaseModel):
    show_from_field: bool
    show_to_field: bool


# -------------------------------------------------
# SUBMISSION METADATA (closed union keyed by kind)
# -------------------------------------------------

class _Meta(BaseModel):
    model_config = {"extra": "forbid"}


class IncomeMetadata(_Meta):
    kind: Literal["income"] = "income"
    source_name: Optional[str] = None


class DividendMetadata(_Meta):
    kind: Literal["dividend"] = "dividend"
    gross_amount: Decimal
    tax_rate: Decimal
    tax_withheld: Decimal
    market: Optional[str] = None


class InterestMetadata(_Meta):
    kind: Literal["interest"] = "interest"
    payment_period: Optional[str] = None
    asset_balance: Optional[Decimal] = None
    period_rate: Optional[Decimal] = None
    annualized_rate: Optional[Decimal] = None
    deposit_matured: Optional[bool] = None
    principal_amount: Optional[Decimal] = None
    interest_amount: Optional[Decimal] = None
    principal: Optional[Decimal] = None
    no_linked_account: Optional[bool] = None


class DepositMetadata(_Meta):
    kind: Literal["deposit"] = "deposit"
    interest_rate: Optional[Decimal] = None
    payment_period: Optional[str] = None


class InvestMetadata(_Meta):
    kind: Literal["invest"] = "invest"
    investment_type: str
    ticker: Optional[str] = None
    shares: Optional[Decimal] = None
    price_per_share: Optional[Decimal] = None
    bought_value: Optional[Decimal] = None
    current_value: Optional[Decimal] = None


class SellMetadata(_Meta):
    kind: Literal["sell"] = "sell"
    shares: Optional[Decimal] = None
    price_per_share: Optional[Decimal] = None
    cost_basis: Optional[Decimal] = None
    realized_pl: Optional[Decimal] = None
    fees: Optional[Decimal] = None
    mark_as_sold: Optional[bool] = None


class ReinvestMetadata(_Meta):
    kind: Literal["reinvest"] = "reinvest"
    shares: Decimal
    price_per_share: Decimal
    ticker: Optional[str] = None


class ExpenseMetadata(_Meta):
    kind: Literal["expense"] = "expense"
    linked_ledgers: List[LinkedLedgerItem] = Field(default_factory=list)


class DebtPaymentMetadata(_Meta):
    kind: Literal["pay_debt"] = "pay_debt"
    payment_source: str
    external_name: Optional[str] = None


class DebtMetadata(_Meta):
    kind: Literal["debt"] = "debt"
    lender: Optional[str] = None


class OtherMetadata(_Meta):
    kind: Literal["other"] = "other"
    source_name: Optional[str] = None
    passive: Optional[bool] = None


SubmissionMetadata = Annotated[
    Union[
        IncomeMetadata,
        DividendMetadata,
        InterestMetadata,
        DepositMetadata,
        InvestMetadata,
        SellMetadata,
        ReinvestMetadata,
        ExpenseMetadata,
        DebtPaymentMetadata,
        DebtMetadata,
        OtherMetadata,
    ],
    Field(discriminator="kind"),
]


def metadata_to_record(meta: Optional[BaseModel]) -> Optional[Dict[str, Any]]:
    """Serialize a metadata variant for the record's JSON column (None when empty)."""
    if meta is None:
        return None
    data = meta.model_dump(mode="json", exclude_none=True)
    if set(data) == {"kind"}:
        return None
    return data


_metadata_adapter = TypeAdapter(SubmissionMetadata)


def read_metadata(data: Dict[str, Any]):
    """Parse a stored record metadata dict back into its typed variant."""
    return _metadata_adapter.validate_python(data)


# -------------------------------------------------
# SUBMISSION RESULT
# -------------------------------------------------

SubmissionStatus = Literal["committed", "invalid", "needs_start_date", "failed", "busy"]


class SubmissionResult(BaseModel):
    status: SubmissionStatus
    message: str = ""
    errors: Dict[str, str] = Field(default_factory=dict)
    warnings: List[str] = Field(default_factory=list)
    flow_id: Optional[int] = None
    asset_id: Optional[int] = None
    debt_id: Optional[int] = None
    schedule_id: Optional[int] = None
    next_run_date: Optional[date_type] = None
    compensation_failures: List[str] = Field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.status == "committed"
