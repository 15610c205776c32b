"""
Tests for the category registry and the pure form transitions.
Assets and records are plain read schemas; no database involved.
"""

from datetime import date
from decimal import Decimal

import pytest

from fireflow.schemas.asset import AssetRead
from fireflow.schemas.flow import FlowRead
from fireflow.schemas.settings import InterestSettingRead
from fireflow.services.submission.categories import (
    PRESETS,
    lookup,
    filter_assets,
    single_candidate,
    investment_type,
)
from fireflow.services.submission.form_state import (
    FormContext,
    select_category,
    apply_field_update,
    update_new_asset,
    with_errors,
    field_visibility,
    computed_price_per_share,
)


def asset(id, name, type="cash", balance="0", currency="USD", **fields):
    return AssetRead(id=id, name=name, type=type, balance=Decimal(balance), currency=currency, **fields)


def buy(id, to_asset_id, amount, shares):
    return FlowRead(
        id=id, type="transfer", category="invest", amount=Decimal(amount), currency="USD",
        date=date(2024, 1, id), to_asset_id=to_asset_id, shares=Decimal(shares),
        balance_effect="invest",
    )


# =============================================================================
# CATEGORY REGISTRY
# =============================================================================

class TestCategories:

    def test_every_category_is_registered(self):
        ids = {p.id for p in PRESETS}
        assert ids == {
            "salary", "bonus", "freelance", "rental", "gift", "dividend", "interest",
            "deposit", "invest", "sell", "reinvest", "transfer", "pay_debt",
            "add_mortgage", "add_loan", "expense", "other",
        }

    def test_lookup(self):
        assert lookup("salary").flow_direction == "income"
        assert lookup("pay_debt").destination.kind == "debt"
        assert lookup("nope") is None

    def test_presets_are_frozen(self):
        with pytest.raises(Exception):
            lookup("salary").id = "changed"

    def test_filter_by_side(self):
        assets = [asset(1, "Bank"), asset(2, "FD", type="deposit"), asset(3, "AAPL", type="stock")]
        assert [a.id for a in filter_assets(lookup("interest").source, assets)] == [1, 2]
        assert [a.id for a in filter_assets(lookup("sell").source, assets)] == [3]
        assert filter_assets(lookup("salary").source, assets) == []
        # no type filter: everything is a candidate
        assert len(filter_assets(lookup("transfer").source, assets)) == 3

    def test_single_candidate(self):
        assets = [asset(1, "Bank"), asset(2, "Wallet")]
        assert single_candidate(lookup("salary").destination, assets) is None
        assert single_candidate(lookup("salary").destination, assets[:1]).id == 1

    def test_investment_types(self):
        assert investment_type("sgx_stock").currency == "SGD"
        assert investment_type("sgx_stock").market == "SG"
        assert investment_type("real_estate").value_based
        assert investment_type("gold_bars") is None


# =============================================================================
# CATEGORY SELECTION
# =============================================================================

class TestSelectCategory:

    def test_single_cash_account_is_preselected(self):
        state = select_category(lookup("salary"), [asset(1, "Bank")], "USD")
        assert state.draft.to_asset_id == 1
        assert state.draft.from_type == "external"
        assert state.draft.from_external_name == "Work"

    def test_no_preselection_with_two_candidates(self):
        state = select_category(lookup("salary"), [asset(1, "Bank"), asset(2, "Wallet")], "USD")
        assert state.draft.to_asset_id is None

    def test_user_select_side_is_never_preselected(self):
        state = select_category(lookup("deposit"), [asset(1, "Bank")], "USD")
        assert state.draft.from_asset_id is None
        assert state.new_asset.show == "destination"
        assert state.new_asset.type == "deposit"

    def test_debt_type_for_loans(self):
        assert select_category(lookup("add_mortgage"), [], "SGD").draft.debt_type == "mortgage"
        state = select_category(lookup("add_loan"), [], "sgd")
        assert state.draft.debt_type == "personal_loan"
        assert state.draft.currency == "SGD"


# =============================================================================
# FIELD UPDATES AND SIDE-FILLS
# =============================================================================

class TestFieldUpdates:

    def test_interest_source_prefills_projection(self):
        fd = asset(7, "Fixed Deposit", type="deposit", balance="10000", currency="SGD")
        annual = Decimal("1.004") ** 12 - 1
        context = FormContext(
            assets=[fd],
            interest_settings={7: InterestSettingRead(asset_id=7, interest_rate=annual, payment_period="monthly")},
        )
        state = select_category(lookup("interest"), [], "USD")
        state = apply_field_update(state, "from_asset_id", 7, context)
        assert state.draft.amount == Decimal("40.00")
        assert state.draft.interest_payment_period == "monthly"
        assert state.draft.currency == "SGD"

    def test_side_fill_only_runs_on_its_own_field(self):
        fd = asset(7, "Fixed Deposit", type="deposit", balance="10000", currency="SGD")
        context = FormContext(assets=[fd])
        state = select_category(lookup("interest"), [], "USD")
        state = apply_field_update(state, "from_asset_id", 7, context)
        state = apply_field_update(state, "currency", "usd", context)
        state = apply_field_update(state, "description", "March interest", context)
        assert state.draft.currency == "USD"

    def test_rental_source_sets_currency(self):
        flat = asset(3, "Flat", type="real_estate", currency="SGD")
        state = select_category(lookup("rental"), [], "USD")
        state = apply_field_update(state, "from_asset_id", 3, FormContext(assets=[flat]))
        assert state.draft.currency == "SGD"

    def test_sell_source_prefills_cost_basis(self):
        stock = asset(4, "Vanguard S&P 500", type="etf", balance="20", ticker="VOO")
        context = FormContext(assets=[stock], records=[buy(1, 4, "1000", "10"), buy(2, 4, "1500", "10")])
        state = select_category(lookup("sell"), [], "USD")
        state = apply_field_update(state, "from_asset_id", 4, context)
        assert state.draft.sell_cost_basis == Decimal("125")
        assert state.draft.selected_ticker == "VOO"

    def test_sell_cost_basis_absent_without_buys(self):
        stock = asset(4, "VOO", type="etf", balance="20")
        state = select_category(lookup("sell"), [], "USD")
        state = apply_field_update(state, "from_asset_id", 4, FormContext(assets=[stock]))
        assert state.draft.sell_cost_basis is None

    def test_investment_type_resets_fields(self):
        state = select_category(lookup("invest"), [], "USD")
        state = apply_field_update(state, "selected_ticker", "D05")
        state = apply_field_update(state, "shares", "100")
        state = apply_field_update(state, "amount", "3500")
        state = apply_field_update(state, "investment_type", "sgx_stock")
        assert state.draft.currency == "SGD"
        assert state.draft.selected_ticker == ""
        assert state.draft.shares is None
        assert state.draft.amount is None

    def test_filled_field_clears_its_error(self):
        state = with_errors(select_category(lookup("invest"), [], "USD"), {"ticker": "Please select a stock", "amount": "x"})
        state = apply_field_update(state, "selected_ticker", "AAPL")
        assert "ticker" not in state.errors
        assert "amount" in state.errors

    def test_empty_value_keeps_error(self):
        state = with_errors(select_category(lookup("salary"), [], "USD"), {"amount": "Amount is required"})
        state = apply_field_update(state, "amount", "")
        assert state.draft.amount is None
        assert state.errors == {"amount": "Amount is required"}

    def test_recurring_none_does_not_clear_error(self):
        state = with_errors(select_category(lookup("salary"), [], "USD"), {"recurring_frequency": "pick one"})
        state = apply_field_update(state, "recurring_frequency", "none")
        assert "recurring_frequency" in state.errors
        state = apply_field_update(state, "recurring_frequency", "monthly")
        assert "recurring_frequency" not in state.errors

    def test_unknown_field(self):
        with pytest.raises(ValueError):
            apply_field_update(select_category(lookup("salary"), [], "USD"), "colour", "red")

    def test_transitions_do_not_mutate_input(self):
        before = select_category(lookup("salary"), [], "USD")
        after = apply_field_update(before, "amount", "10")
        assert before.draft.amount is None
        assert after.draft.amount == Decimal("10")

    def test_new_asset_name_clears_error(self):
        state = with_errors(select_category(lookup("deposit"), [], "USD"), {"new_asset_name": "required"})
        state = update_new_asset(state, "name", "Emergency Fund")
        assert state.new_asset.name == "Emergency Fund"
        assert state.errors == {}


# =============================================================================
# DERIVED VIEW VALUES
# =============================================================================

class TestDerivedValues:

    def test_destination_hidden_when_only_one_candidate(self):
        preset = lookup("salary")
        state = select_category(preset, [asset(1, "Bank")], "USD")
        assert field_visibility(state, preset, [asset(1, "Bank")]).show_to_field is False
        two = [asset(1, "Bank"), asset(2, "Wallet")]
        assert field_visibility(state, preset, two).show_to_field is True

    def test_interest_destination_mirrors_source(self):
        preset = lookup("interest")
        vis = field_visibility(select_category(preset, [], "USD"), preset, [])
        assert vis.show_to_field is False

    def test_ticker_investment_hides_destination(self):
        preset = lookup("invest")
        state = select_category(preset, [], "USD")
        assets = [asset(1, "A", type="stock"), asset(2, "B", type="stock")]
        assert field_visibility(state, preset, assets).show_to_field is False
        state = apply_field_update(state, "investment_type", "real_estate")
        assert field_visibility(state, preset, assets).show_to_field is True

    def test_price_per_share(self):
        state = select_category(lookup("invest"), [], "USD")
        state = apply_field_update(state, "amount", "1500")
        state = apply_field_update(state, "shares", "10")
        assert computed_price_per_share(state) == Decimal("150")
