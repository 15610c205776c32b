"""
fireflow/services/submission/orchestrator.py

Turns one submitted draft into backend mutations:

    validate -> resolve assets -> run the category's plan -> commit
                                                         \\-> compensate

Every field check happens in validate_draft(), before anything is written.
Once a step creates something (asset or record) or overwrites asset fields
it goes into the CompensationLedger; if a later step fails, the ledger is
replayed in reverse and the caller gets a single "Failed to create flow"
result. A failed rollback step is logged and listed on the result, but the
reported error stays the original one.

Two categories keep balances without a record of the change: metals
purchases (no record at all) and DRIP (a context-only record plus a manual
share bump).

A SubmissionOrchestrator belongs to one form; it refuses a second submit
while one is running.
"""

import logging
from datetime import date
from decimal import Decimal
from typing import Dict, List, Optional

from fireflow.constants import (
    ASSET_DEPOSIT,
    ASSET_REAL_ESTATE,
    CACHE_ASSETS,
    CACHE_TRANSACTIONS,
    CACHE_STATS,
    CACHE_EXPENSE_STATS,
    CACHE_DEBTS,
    CACHE_RECURRING,
    CACHE_INTEREST_SETTINGS,
    CACHE_LINKED_LEDGERS,
    DEFAULT_CURRENCY,
    FLOW_INCOME,
    FLOW_EXPENSE,
    RECURRING_NONE,
    SHARE_BASED_ASSET_TYPES,
)
from fireflow.exceptions import CallFailure, FieldValidationError, NonFatalSideEffectError
from fireflow.schemas.asset import AssetCreate, AssetUpdate
from fireflow.schemas.debt import DebtCreate
from fireflow.schemas.draft import (
    FlowDraft,
    NewAssetRequest,
    SubmissionResult,
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
    metadata_to_record,
)
from fireflow.schemas.flow import (
    IncomeCreate,
    ExpenseCreate,
    TransferCreate,
    InvestmentCreate,
    DebtPaymentCreate,
    RecurringScheduleCreate,
)
from fireflow.schemas.settings import InterestSettingUpsert, LinkedLedgerItem
from fireflow.services import calculations
from fireflow.services.cache import CacheSignals, signals
from fireflow.services.submission.categories import (
    CategoryPreset,
    DEBT_CREATION_CATEGORIES,
    TICKER_STOCK_TYPES,
    lookup,
    single_candidate,
    investment_type,
)
from fireflow.services.submission.ledger import CompensationLedger
from fireflow.services.submission.resolution import (
    resolve_or_create,
    resolve_ticker_holding,
    match_metal,
    quantity_in_asset_unit,
)

logger = logging.getLogger(__name__)

FAILURE_MESSAGE = "Failed to create flow"
HUNDRED = Decimal(100)
ZERO = Decimal(0)

BASE_CACHES = (CACHE_ASSETS, CACHE_TRANSACTIONS, CACHE_STATS)

DEFAULT_SUCCESS_MESSAGES = {
    "salary": "Income recorded",
    "bonus": "Income recorded",
    "freelance": "Income recorded",
    "rental": "Rental income recorded",
    "gift": "Income recorded",
    "dividend": "Dividend recorded",
    "transfer": "Transfer recorded",
    "expense": "Expense recorded",
}


def _positive(value) -> bool:
    return value is not None and value > 0


def _has_frequency(draft: FlowDraft) -> bool:
    return bool(draft.recurring_frequency) and draft.recurring_frequency != RECURRING_NONE


def _frequency(draft: FlowDraft) -> Optional[str]:
    return draft.recurring_frequency if _has_frequency(draft) else None


def with_side_types(preset: CategoryPreset, draft: FlowDraft) -> FlowDraft:
    """
    Fill from_type/to_type from the category when the caller left them out.
    Sides the user picks freely (user_select) keep the draft defaults.
    """
    update = {}
    if "from_type" not in draft.model_fields_set:
        if preset.source.kind == "asset":
            update["from_type"] = "asset"
        elif preset.source.kind == "external":
            update["from_type"] = "external"
    if "to_type" not in draft.model_fields_set:
        if preset.destination.kind in ("external", "debt"):
            update["to_type"] = "external"
        elif preset.destination.kind == "asset":
            update["to_type"] = "asset"
    return draft.model_copy(update=update) if update else draft


# ------------------------------------------------------------------------------
# Validation (no side effects)
# ------------------------------------------------------------------------------
def validate_draft(preset: CategoryPreset, draft: FlowDraft, new_asset: NewAssetRequest, assets: List) -> None:
    """
    Raise FieldValidationError with every problem found. Nothing has been
    written when this runs.
    """
    errors: Dict[str, str] = {}
    category = preset.id

    is_debt_creation = category in DEBT_CREATION_CATEGORIES
    is_metals = category == "invest" and draft.investment_type == "metals"
    is_ticker_stock = category == "invest" and draft.investment_type in TICKER_STOCK_TYPES
    is_untethered = category == "interest" and draft.untethered_interest
    is_deposit_edit = category == "deposit" and draft.edit_asset_id is not None
    new_source = new_asset.show == "source"
    new_destination = new_asset.show == "destination" and not is_deposit_edit

    if not is_debt_creation and not is_metals and not _positive(draft.amount):
        errors["amount"] = "Amount is required"

    if is_ticker_stock:
        if not draft.selected_ticker.strip():
            errors["ticker"] = "Please select a stock"
        if not _positive(draft.shares):
            errors["shares"] = "Shares required"
    elif is_metals:
        if not _positive(draft.shares):
            errors["shares"] = "Quantity required"
    elif category == "invest":
        config = investment_type(draft.investment_type)
        if config is None:
            errors["investment_type"] = "Unknown investment type"
        elif config.value_based:
            if not _positive(draft.current_value):
                errors["current_value"] = "Current value required"
        elif not _positive(draft.shares):
            errors["shares"] = "Shares required"

    if category == "interest" and not is_untethered:
        if draft.deposit_matured is None:
            errors["deposit_matured"] = "Please select what happens to the deposit"
        elif draft.deposit_matured and draft.withdraw_to_cash_asset_id is None:
            errors["to_asset"] = "Select cash account"

    if draft.recurring_only and not _has_frequency(draft):
        errors["recurring_frequency"] = "Please select a recurring frequency"

    # Destination asset
    destination = preset.destination
    if (destination.kind == "asset" and draft.to_asset_id is None and not new_destination
            and not is_ticker_stock and not is_metals and not is_untethered and not is_deposit_edit):
        if single_candidate(destination, assets) is None:
            errors["to_asset"] = "Please select an account"

    # Source asset
    source = preset.source
    skip_source = (
        is_untethered or is_metals or new_source
        or (category == "pay_debt" and draft.pay_debt_source_type == "external")
    )
    if source.kind == "asset" and draft.from_asset_id is None and not skip_source:
        if single_candidate(source, assets) is None:
            errors["from_asset"] = "Please select an account"

    # New asset requests
    if new_asset.show is not None and not new_asset.name.strip():
        errors["new_asset_name"] = "Asset name is required"
    if category == "interest" and new_source and not _positive(draft.deposit_balance):
        errors["deposit_balance"] = "Balance is required"

    if is_debt_creation:
        if not draft.debt_name.strip():
            errors["debt_name"] = "Name is required"
        if not _positive(draft.debt_principal):
            errors["debt_principal"] = "Loan amount is required"

    if category == "pay_debt" and draft.debt_id is None:
        errors["debt_id"] = "Select a debt to pay"

    if category == "reinvest" and not _positive(draft.shares):
        errors["shares"] = "Shares required"

    if category == "transfer" and draft.from_asset_id is not None and draft.from_asset_id == draft.to_asset_id:
        errors["to_asset"] = "Source and destination must differ"

    if category == "other":
        if draft.from_type == "external" and not draft.from_external_name.strip():
            errors["from_asset"] = "Source name required"
        if draft.from_type == "asset" and draft.from_asset_id is None and not new_source:
            errors["from_asset"] = "Source asset required"
        if draft.to_asset_id is None and not new_destination:
            errors["to_asset"] = "Destination required"

    if errors:
        raise FieldValidationError(errors)


# ------------------------------------------------------------------------------
# Orchestrator
# ------------------------------------------------------------------------------
class _Attempt:
    """Working state of one submit call."""

    def __init__(self, preset, draft, new_asset, assets, today):
        self.preset = preset
        self.draft = draft
        self.new_asset = new_asset
        self.assets = assets
        self.today = today
        self.ledger = CompensationLedger()
        self.warnings: List[str] = []
        self.caches: List[str] = list(BASE_CACHES)
        self.from_id: Optional[int] = None
        self.to_id: Optional[int] = None

    def asset(self, asset_id):
        for asset in self.assets:
            if asset.id == asset_id:
                return asset
        return None

    def remember(self, asset):
        if self.asset(asset.id) is None:
            self.assets.append(asset)

    def done(self, message: str, **ids) -> SubmissionResult:
        return SubmissionResult(status="committed", message=message, warnings=self.warnings, **ids)


class SubmissionOrchestrator:
    def __init__(self, backend, caches: Optional[CacheSignals] = None,
                 preferred_currency: str = DEFAULT_CURRENCY):
        self.backend = backend
        self.caches = caches if caches is not None else signals
        self.preferred_currency = preferred_currency
        self._in_progress = False

    @property
    def in_progress(self) -> bool:
        return self._in_progress

    async def submit(self, draft: FlowDraft, new_asset: Optional[NewAssetRequest] = None,
                     today: Optional[date] = None) -> SubmissionResult:
        """
        Validate and persist one draft. Always returns a SubmissionResult;
        backend rejections never escape as exceptions.
        """
        if self._in_progress:
            logger.warning("Submit ignored: another submission is in progress")
            return SubmissionResult(status="busy", message="A submission is already in progress")

        self._in_progress = True
        try:
            return await self._submit(draft, new_asset or NewAssetRequest(), today or date.today())
        finally:
            self._in_progress = False

    async def save_linked_ledgers(self, items: List[LinkedLedgerItem]) -> SubmissionResult:
        """The expense form's "link to ledger" tab: replace the linked ledger list."""
        try:
            await self.backend.set_linked_ledgers(items)
        except CallFailure as e:
            logger.error(f"Saving linked ledgers failed: {e}")
            return SubmissionResult(status="failed", message="Failed to save linked ledgers")
        self.caches.refresh(CACHE_LINKED_LEDGERS)
        return SubmissionResult(status="committed", message="Linked ledgers saved")

    # --------------------------------------------------------------------------
    # Attempt lifecycle
    # --------------------------------------------------------------------------
    async def _submit(self, draft: FlowDraft, new_asset: NewAssetRequest, today: date) -> SubmissionResult:
        preset = lookup(draft.category)
        if preset is None:
            return SubmissionResult(
                status="invalid",
                message="Please fix the highlighted fields",
                errors={"category": f"Unknown category '{draft.category}'"},
            )
        draft = with_side_types(preset, draft)

        try:
            assets = await self.backend.list_assets()
        except CallFailure as e:
            logger.error(f"Could not load assets before submit: {e}")
            return SubmissionResult(status="failed", message=FAILURE_MESSAGE)

        try:
            validate_draft(preset, draft, new_asset, assets)
        except FieldValidationError as e:
            logger.debug(f"Draft for '{preset.id}' rejected: {e.message}")
            return SubmissionResult(
                status="invalid", message="Please fix the highlighted fields", errors=e.errors
            )

        attempt = _Attempt(preset, draft, new_asset, list(assets), today)
        logger.debug(f"Submitting '{preset.id}' draft")
        try:
            result = await self._execute(attempt)
        except Exception as e:
            if isinstance(e, CallFailure):
                logger.warning(f"Submission of '{preset.id}' failed: {e}")
            else:
                logger.exception(f"Unexpected error submitting '{preset.id}'")
            return await self._compensate(attempt)

        if result.status == "committed":
            self.caches.refresh(*attempt.caches)
            logger.info(f"Committed '{preset.id}': {result.message}")
        attempt.ledger.clear()
        return result

    async def _compensate(self, attempt: _Attempt) -> SubmissionResult:
        had_entries = len(attempt.ledger) > 0
        report = await attempt.ledger.compensate(self.backend)
        if had_entries:
            self.caches.refresh(CACHE_ASSETS)
        return SubmissionResult(
            status="failed",
            message=FAILURE_MESSAGE,
            warnings=attempt.warnings,
            compensation_failures=report.failures,
        )

    # --------------------------------------------------------------------------
    # Asset resolution
    # --------------------------------------------------------------------------
    async def _resolve_assets(self, attempt: _Attempt):
        preset, draft, new_asset = attempt.preset, attempt.draft, attempt.new_asset
        attempt.from_id = draft.from_asset_id
        attempt.to_id = draft.to_asset_id

        if attempt.from_id is None and preset.source.kind == "asset":
            only = single_candidate(preset.source, attempt.assets)
            attempt.from_id = only.id if only else None
        if attempt.to_id is None and preset.destination.kind == "asset":
            only = single_candidate(preset.destination, attempt.assets)
            attempt.to_id = only.id if only else None

        if new_asset.show == "source":
            if preset.id == "interest":
                asset = await self._create_deposit_with_balance(attempt)
            else:
                asset = await resolve_or_create(
                    new_asset, attempt.assets, draft.currency, self.backend, attempt.ledger
                )
            attempt.remember(asset)
            attempt.from_id = asset.id

        if new_asset.show == "destination" and draft.edit_asset_id is None:
            asset_type = ASSET_DEPOSIT if preset.id == "deposit" else None
            asset = await resolve_or_create(
                new_asset, attempt.assets, draft.currency, self.backend, attempt.ledger,
                asset_type=asset_type,
            )
            attempt.remember(asset)
            attempt.to_id = asset.id
            if preset.id == "deposit" and _positive(draft.interest_rate):
                await self._save_interest_settings(
                    attempt, asset.id, draft.interest_rate / HUNDRED, draft.interest_payment_period
                )

        if preset.destination.kind == "same_as_from":
            attempt.to_id = attempt.from_id

    async def _create_deposit_with_balance(self, attempt: _Attempt):
        """New deposit opened from the interest form: asset, then its opening balance record."""
        draft, new_asset = attempt.draft, attempt.new_asset
        asset = await self.backend.create_asset(AssetCreate(
            name=new_asset.name, type=ASSET_DEPOSIT, currency=draft.currency,
        ))
        attempt.ledger.record_asset(asset.id)
        record = await self.backend.create_income(IncomeCreate(
            category="deposit",
            amount=draft.deposit_balance,
            currency=draft.currency,
            date=draft.date,
            description=f"Initial deposit for {asset.name}",
            to_asset_id=asset.id,
        ))
        attempt.ledger.record_transaction(record.id)
        return await self.backend.get_asset(asset.id)

    async def _update_asset(self, attempt: _Attempt, asset_id: int, **fields):
        """
        Overwrite asset fields. The values they replace go into the ledger
        first-hand from the backend, so a later failure can put them back.
        """
        previous = None
        if not attempt.ledger.created_asset(asset_id):
            current = await self.backend.get_asset(asset_id)
            previous = {name: getattr(current, name) for name in fields}
        updated = await self.backend.update_asset(asset_id, AssetUpdate(**fields))
        if previous is not None:
            attempt.ledger.record_update(asset_id, **previous)
        return updated

    async def _save_interest_settings(self, attempt: _Attempt, asset_id: int, rate: Decimal, period: str):
        """Optional enrichment: a failure is logged and the flow goes on."""
        try:
            await self.backend.upsert_interest_settings(
                asset_id, InterestSettingUpsert(interest_rate=rate, payment_period=period)
            )
        except CallFailure as e:
            logger.warning(str(NonFatalSideEffectError("Saving interest settings", e)))
            return
        attempt.caches.append(CACHE_INTEREST_SETTINGS)

    # --------------------------------------------------------------------------
    # Category plans
    # --------------------------------------------------------------------------
    async def _execute(self, attempt: _Attempt) -> SubmissionResult:
        await self._resolve_assets(attempt)

        category = attempt.preset.id
        draft = attempt.draft

        if category == "invest" and draft.investment_type == "metals":
            return await self._metals(attempt)
        if category in DEBT_CREATION_CATEGORIES:
            return await self._create_debt(attempt)
        if category == "interest" and draft.untethered_interest:
            return await self._untethered_interest(attempt)
        if category == "interest":
            return await self._linked_interest(attempt)
        if category == "pay_debt":
            return await self._pay_debt(attempt)
        if category == "deposit":
            return await self._deposit(attempt)
        if category == "sell":
            return await self._sell(attempt)
        if category == "reinvest":
            return await self._reinvest(attempt)
        if category == "other":
            return await self._other(attempt)
        if category == "invest":
            return await self._invest(attempt)
        if draft.recurring_only:
            return await self._recurring_only(attempt)
        return await self._default(attempt)

    async def _metals(self, attempt: _Attempt) -> SubmissionResult:
        """Bullion is kept as a balance on one asset per metal; no record is written."""
        draft = attempt.draft
        attempt.caches = [CACHE_ASSETS]
        existing = match_metal(attempt.assets, draft.metal_type)
        if existing is not None:
            quantity = quantity_in_asset_unit(existing, draft.shares, draft.metal_unit)
            await self._update_asset(attempt, existing.id, balance=existing.balance + quantity)
            return attempt.done(
                f"Added {draft.shares} {draft.metal_unit} to {existing.name}", asset_id=existing.id
            )

        name = calculations.metal_asset_name(draft.metal_type, draft.metal_unit)
        asset = await self.backend.create_asset(AssetCreate(
            name=name,
            type="metals",
            currency=draft.currency,
            balance=draft.shares,
            metadata={"metal_type": draft.metal_type, "metal_unit": draft.metal_unit},
        ))
        attempt.ledger.record_asset(asset.id)
        return attempt.done(
            f'Asset "{asset.name}" created with {draft.shares} {draft.metal_unit}', asset_id=asset.id
        )

    async def _create_debt(self, attempt: _Attempt) -> SubmissionResult:
        draft, category = attempt.draft, attempt.preset.id
        label = "Mortgage" if category == "add_mortgage" else "Loan"
        rate = draft.debt_interest_rate / HUNDRED if _positive(draft.debt_interest_rate) else None
        term = draft.debt_term_months if _positive(draft.debt_term_months) else None
        lender = draft.from_external_name.strip()

        data = DebtCreate(
            name=draft.debt_name.strip(),
            debt_type="mortgage" if category == "add_mortgage" else draft.debt_type,
            principal=draft.debt_principal,
            interest_rate=rate,
            term_months=term,
            start_date=draft.debt_start_date,
            monthly_payment=calculations.amortized_payment(draft.debt_principal, rate, term),
            currency=draft.currency,
            date=draft.debt_start_date or draft.date,
            disburse_to_asset_id=attempt.to_id,
            description=f"{label} disbursement from {lender or 'Lender'}" if attempt.to_id else None,
            metadata=metadata_to_record(DebtMetadata(lender=lender or None)),
        )
        result = await self.backend.create_debt(data)
        attempt.caches = [CACHE_DEBTS, CACHE_ASSETS]
        if result.flow_id:
            attempt.caches += [CACHE_TRANSACTIONS, CACHE_STATS]
        return attempt.done(
            f'{label} "{result.debt.name}" added', debt_id=result.debt.id, flow_id=result.flow_id
        )

    async def _untethered_interest(self, attempt: _Attempt) -> SubmissionResult:
        draft = attempt.draft
        meta = InterestMetadata(payment_period=draft.interest_payment_period, no_linked_account=True)
        if _positive(draft.interest_principal):
            meta.principal = draft.interest_principal
            period_rate, annual_rate = calculations.annualize_interest(
                draft.amount, draft.interest_principal, draft.interest_payment_period
            )
            meta.period_rate = period_rate
            meta.annualized_rate = annual_rate

        record = await self.backend.create_income(IncomeCreate(
            category="interest",
            amount=draft.amount,
            currency=draft.currency,
            date=draft.date,
            description=draft.description or "Interest earned",
            recurring_frequency=_frequency(draft),
            metadata=metadata_to_record(meta),
        ))
        attempt.ledger.record_transaction(record.id)
        return attempt.done("Interest recorded", flow_id=record.id)

    async def _linked_interest(self, attempt: _Attempt) -> SubmissionResult:
        draft = attempt.draft
        deposit = attempt.asset(attempt.from_id)
        balance = deposit.balance if deposit is not None else ZERO
        amount = draft.amount
        period = draft.interest_payment_period

        meta = InterestMetadata(payment_period=period)
        if balance > 0:
            period_rate, annual_rate = calculations.annualize_interest(amount, balance, period)
            meta.asset_balance = balance
            meta.period_rate = period_rate
            meta.annualized_rate = annual_rate
            await self._save_interest_settings(attempt, attempt.from_id, annual_rate, period)

        if draft.deposit_matured is False:
            meta.deposit_matured = False
            record = await self.backend.create_income(IncomeCreate(
                category="interest",
                amount=amount,
                currency=draft.currency,
                date=draft.date,
                description=draft.description or "Interest on deposit",
                from_asset_id=attempt.from_id,
                to_asset_id=attempt.from_id,
                recurring_frequency=_frequency(draft),
                metadata=metadata_to_record(meta),
                adjust_balances=False,
            ))
            attempt.ledger.record_transaction(record.id)
            await self._update_asset(attempt, attempt.from_id, balance=balance + amount)
            return attempt.done("Interest recorded", flow_id=record.id, asset_id=attempt.from_id)

        # Matured: principal + interest leave the deposit for a cash account
        cash = attempt.asset(draft.withdraw_to_cash_asset_id)
        if cash is None:
            cash = await self.backend.get_asset(draft.withdraw_to_cash_asset_id)
        total = balance + amount
        meta.deposit_matured = True
        meta.principal_amount = balance
        meta.interest_amount = amount

        record = await self.backend.create_transfer(TransferCreate(
            category="interest",
            amount=total,
            currency=draft.currency,
            date=draft.date,
            description=draft.description or "Deposit matured - Principal + Interest",
            from_asset_id=attempt.from_id,
            to_asset_id=cash.id,
            metadata=metadata_to_record(meta),
            adjust_balances=False,
        ))
        attempt.ledger.record_transaction(record.id)
        await self._update_asset(attempt, attempt.from_id, balance=ZERO)
        await self._update_asset(attempt, cash.id, balance=cash.balance + total)
        if cash.currency.upper() != draft.currency.upper():
            attempt.warnings.append(
                f"Added {draft.currency} {total:.2f} to {cash.name}. "
                f"Verify the converted amount in {cash.currency}."
            )
        return attempt.done("Deposit withdrawn to cash", flow_id=record.id, asset_id=cash.id)

    async def _pay_debt(self, attempt: _Attempt) -> SubmissionResult:
        draft = attempt.draft
        external = draft.pay_debt_source_type == "external"
        external_name = draft.pay_debt_external_name.strip()
        meta = DebtPaymentMetadata(
            payment_source=draft.pay_debt_source_type,
            external_name=external_name or None if external else None,
        )
        description = draft.description or None
        if description is None and external:
            description = f"Payment from {external_name or 'external source'}"

        record = await self.backend.create_debt_payment(DebtPaymentCreate(
            category="pay_debt",
            amount=draft.amount,
            currency=draft.currency,
            date=draft.date,
            description=description,
            debt_id=draft.debt_id,
            from_asset_id=None if external else attempt.from_id,
            recurring_frequency=_frequency(draft),
            metadata=metadata_to_record(meta),
        ))
        attempt.ledger.record_transaction(record.id)
        attempt.caches.append(CACHE_DEBTS)
        if _has_frequency(draft):
            attempt.caches.append(CACHE_RECURRING)
        return attempt.done("Payment recorded", flow_id=record.id, debt_id=draft.debt_id)

    async def _deposit(self, attempt: _Attempt) -> SubmissionResult:
        draft = attempt.draft
        rate = draft.interest_rate / HUNDRED if _positive(draft.interest_rate) else None

        if draft.edit_asset_id is not None:
            asset_meta = {"payment_period": draft.interest_payment_period}
            if rate is not None:
                asset_meta["interest_rate"] = str(rate)
            await self._update_asset(
                attempt,
                draft.edit_asset_id,
                name=attempt.new_asset.name.strip(),
                currency=draft.currency,
                balance=draft.amount,
                metadata=asset_meta,
            )
            if rate is not None:
                await self._save_interest_settings(
                    attempt, draft.edit_asset_id, rate, draft.interest_payment_period
                )
            attempt.caches = [CACHE_ASSETS] + [c for c in attempt.caches if c == CACHE_INTEREST_SETTINGS]
            return attempt.done("Deposit updated", asset_id=draft.edit_asset_id)

        meta = DepositMetadata()
        if rate is not None:
            meta.interest_rate = rate
            meta.payment_period = draft.interest_payment_period
        self._warn_on_currency(attempt, attempt.to_id)

        common = dict(
            category="deposit",
            amount=draft.amount,
            currency=draft.currency,
            date=draft.date,
            to_asset_id=attempt.to_id,
            metadata=metadata_to_record(meta),
        )
        if attempt.from_id is not None:
            record = await self.backend.create_transfer(TransferCreate(
                from_asset_id=attempt.from_id,
                description=draft.description or "Transfer to deposit",
                **common,
            ))
        else:
            record = await self.backend.create_income(IncomeCreate(
                description=draft.description or "Deposit",
                **common,
            ))
        attempt.ledger.record_transaction(record.id)
        return attempt.done("Deposit recorded", flow_id=record.id, asset_id=attempt.to_id)

    async def _sell(self, attempt: _Attempt) -> SubmissionResult:
        draft = attempt.draft
        sold = attempt.asset(attempt.from_id)
        if sold is None:
            sold = await self.backend.get_asset(attempt.from_id)
        shares = draft.shares or ZERO
        price = draft.price_per_share or ZERO
        cost_basis = draft.sell_cost_basis or ZERO

        meta = SellMetadata()
        if _positive(draft.sell_fees):
            meta.fees = draft.sell_fees
        if draft.sell_mark_as_sold:
            meta.mark_as_sold = True
        if shares > 0:
            meta.shares = shares
        if price > 0:
            meta.price_per_share = price
        if cost_basis > 0:
            meta.cost_basis = cost_basis
        realized = ZERO
        if shares > 0 and price > 0 and cost_basis > 0:
            realized = calculations.realized_pl(price, cost_basis, shares)
            meta.realized_pl = realized

        record = await self.backend.create_investment(InvestmentCreate(
            kind="sell",
            category="sell",
            amount=draft.amount,
            currency=draft.currency,
            date=draft.date,
            description=draft.description or f"Sold {sold.name}",
            ticker=sold.ticker,
            shares=shares,
            from_asset_id=sold.id,
            to_asset_id=attempt.to_id,
            metadata=metadata_to_record(meta),
        ))
        attempt.ledger.record_transaction(record.id)

        total_pl = (sold.total_realized_pl or ZERO) + realized
        if sold.type in SHARE_BASED_ASSET_TYPES:
            remaining = sold.balance - shares
            if remaining <= 0:
                await self._update_asset(attempt, sold.id, balance=ZERO, total_realized_pl=total_pl)
                message = f"Sold all shares of {sold.name}"
            else:
                await self._update_asset(attempt, sold.id, balance=remaining, total_realized_pl=total_pl)
                message = f"Sold {shares} shares of {sold.name}"
        elif sold.type == ASSET_REAL_ESTATE and draft.sell_mark_as_sold:
            await self._update_asset(attempt, sold.id, balance=ZERO, total_realized_pl=total_pl)
            message = f"{sold.name} marked as sold"
        else:
            if realized != 0:
                await self._update_asset(attempt, sold.id, total_realized_pl=total_pl)
            message = "Sale recorded"
        return attempt.done(message, flow_id=record.id, asset_id=sold.id)

    async def _reinvest(self, attempt: _Attempt) -> SubmissionResult:
        """DRIP: a context-only record, then the share bump on the same holding."""
        draft = attempt.draft
        holding = attempt.asset(attempt.from_id)
        if holding is None:
            holding = await self.backend.get_asset(attempt.from_id)
        shares = draft.shares
        label = holding.ticker or holding.name

        meta = ReinvestMetadata(
            shares=shares, price_per_share=draft.amount / shares, ticker=holding.ticker
        )
        # from == to, so this can't be a transfer
        record = await self.backend.create_income(IncomeCreate(
            category="reinvest",
            amount=draft.amount,
            currency=draft.currency,
            date=draft.date,
            description=draft.description or f"DRIP - {label}",
            from_asset_id=holding.id,
            to_asset_id=holding.id,
            metadata=metadata_to_record(meta),
            adjust_balances=False,
        ))
        attempt.ledger.record_transaction(record.id)
        await self._update_asset(attempt, holding.id, balance=holding.balance + shares)
        return attempt.done(f"Reinvested {shares} shares into {label}", flow_id=record.id, asset_id=holding.id)

    async def _other(self, attempt: _Attempt) -> SubmissionResult:
        draft = attempt.draft
        external = draft.from_type == "external"
        source_name = draft.from_external_name.strip()
        passive = draft.is_passive_income and external
        meta = OtherMetadata(source_name=source_name or None if external else None,
                             passive=True if passive else None)
        common = dict(
            category="passive_other" if passive else "other",
            amount=draft.amount,
            currency=draft.currency,
            date=draft.date,
            description=draft.description or (f"From {source_name}" if external else None),
            to_asset_id=attempt.to_id,
            recurring_frequency=_frequency(draft),
            metadata=metadata_to_record(meta),
        )
        self._warn_on_currency(attempt, attempt.to_id)
        if external:
            record = await self.backend.create_income(IncomeCreate(**common))
        else:
            record = await self.backend.create_transfer(TransferCreate(from_asset_id=attempt.from_id, **common))
        attempt.ledger.record_transaction(record.id)
        if _has_frequency(draft):
            attempt.caches.append(CACHE_RECURRING)
        return attempt.done("Flow recorded", flow_id=record.id)

    async def _invest(self, attempt: _Attempt) -> SubmissionResult:
        draft = attempt.draft
        config = investment_type(draft.investment_type)
        ticker = draft.selected_ticker.strip()

        if draft.investment_type in TICKER_STOCK_TYPES:
            holding = await resolve_ticker_holding(
                ticker, draft.selected_ticker_name, config, attempt.assets, self.backend, attempt.ledger
            )
            attempt.remember(holding)
            attempt.to_id = holding.id

        shares = draft.shares or ZERO
        amount = draft.amount
        meta = InvestMetadata(investment_type=draft.investment_type, ticker=ticker or None)
        if shares > 0:
            meta.shares = shares
            meta.price_per_share = amount / shares
        if config.value_based:
            meta.bought_value = amount
            meta.current_value = draft.current_value

        holding = attempt.asset(attempt.to_id)
        label = draft.selected_ticker_name or ticker or (holding.name if holding else "asset")
        record = await self.backend.create_investment(InvestmentCreate(
            kind="invest",
            category="invest",
            amount=amount,
            currency=draft.currency,
            date=draft.date,
            description=draft.description or f"Investment in {label}",
            ticker=ticker or None,
            shares=shares,
            from_asset_id=attempt.from_id,
            to_asset_id=attempt.to_id,
            metadata=metadata_to_record(meta),
        ))
        attempt.ledger.record_transaction(record.id)

        if config.value_based:
            await self._update_asset(attempt, attempt.to_id, balance=draft.current_value)
        return attempt.done(f"Invested in {label}", flow_id=record.id, asset_id=attempt.to_id)

    async def _recurring_only(self, attempt: _Attempt) -> SubmissionResult:
        draft = attempt.draft
        frequency = draft.recurring_frequency

        if draft.date == attempt.today and draft.start_choice is None:
            return SubmissionResult(
                status="needs_start_date",
                message="Start today or at the next occurrence?",
                next_run_date=calculations.next_occurrence(draft.date, frequency),
            )
        if draft.start_choice == "today":
            result = await self._default(attempt)
            attempt.caches.append(CACHE_RECURRING)
            result.message = "Flow created with recurring schedule"
            return result

        next_run = draft.date
        if draft.start_choice == "next_occurrence":
            next_run = calculations.next_occurrence(draft.date, frequency)

        amount, meta = await self._default_amount_and_metadata(attempt)
        template = {
            "type": attempt.preset.flow_direction,
            "amount": str(amount),
            "currency": draft.currency,
            "from_asset_id": attempt.from_id if draft.from_type == "asset" else None,
            "to_asset_id": attempt.to_id if draft.to_type == "asset" else None,
            "debt_id": None,
            "category": attempt.preset.id,
            "description": draft.description or None,
            "expense_category_id": draft.expense_category_id if attempt.preset.id == "expense" else None,
            "metadata": metadata_to_record(meta),
        }
        schedule = await self.backend.create_recurring_schedule(RecurringScheduleCreate(
            frequency=frequency, next_run_date=next_run, template=template,
        ))
        attempt.caches = [CACHE_RECURRING]
        return attempt.done(
            "Recurring schedule created", schedule_id=schedule.id, next_run_date=schedule.next_run_date
        )

    async def _default_amount_and_metadata(self, attempt: _Attempt):
        """Record amount and metadata of the simple income/expense/transfer categories."""
        preset, draft = attempt.preset, attempt.draft

        if preset.id == "dividend":
            source = attempt.asset(attempt.from_id)
            market = source.market if source is not None else None
            us_rate = sg_rate = None
            try:
                tax = await self.backend.get_tax_settings()
                us_rate, sg_rate = tax.us_dividend_withholding_rate, tax.sg_dividend_withholding_rate
            except CallFailure as e:
                logger.warning(str(NonFatalSideEffectError("Loading tax settings", e)))
            split = calculations.dividend_withholding(draft.amount, market, us_rate, sg_rate)
            meta = DividendMetadata(
                gross_amount=split.gross, tax_rate=split.rate, tax_withheld=split.withheld, market=market,
            )
            return split.net, meta

        if preset.flow_direction == FLOW_INCOME and draft.from_type == "external":
            return draft.amount, IncomeMetadata(source_name=draft.from_external_name.strip() or None)
        if preset.id == "expense" and draft.linked_ledgers:
            return draft.amount, ExpenseMetadata(linked_ledgers=draft.linked_ledgers)
        return draft.amount, None

    async def _default(self, attempt: _Attempt) -> SubmissionResult:
        preset, draft = attempt.preset, attempt.draft
        amount, meta = await self._default_amount_and_metadata(attempt)
        from_id = attempt.from_id if draft.from_type == "asset" else None
        to_id = attempt.to_id if draft.to_type == "asset" else None
        common = dict(
            category=preset.id,
            amount=amount,
            currency=draft.currency,
            date=draft.date,
            description=draft.description or None,
            recurring_frequency=_frequency(draft),
            metadata=metadata_to_record(meta),
        )

        if preset.flow_direction == FLOW_INCOME:
            self._warn_on_currency(attempt, to_id)
            record = await self.backend.create_income(IncomeCreate(
                from_asset_id=from_id, to_asset_id=to_id, **common
            ))
        elif preset.flow_direction == FLOW_EXPENSE:
            record = await self.backend.create_expense(ExpenseCreate(
                from_asset_id=from_id, expense_category_id=draft.expense_category_id, **common
            ))
            attempt.caches.append(CACHE_EXPENSE_STATS)
        else:
            self._warn_on_currency(attempt, to_id)
            record = await self.backend.create_transfer(TransferCreate(
                from_asset_id=from_id, to_asset_id=to_id, **common
            ))
        attempt.ledger.record_transaction(record.id)
        if _has_frequency(draft):
            attempt.caches.append(CACHE_RECURRING)
        return attempt.done(DEFAULT_SUCCESS_MESSAGES.get(preset.id, "Flow recorded"), flow_id=record.id)

    def _warn_on_currency(self, attempt: _Attempt, asset_id: Optional[int]):
        asset = attempt.asset(asset_id) if asset_id is not None else None
        if asset is not None and asset.currency.upper() != attempt.draft.currency.upper():
            attempt.warnings.append(
                f"Recorded in {attempt.draft.currency}; {asset.name} is kept in {asset.currency}. "
                f"No conversion was applied."
            )
