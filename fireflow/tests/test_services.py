"""
Tests for the backend services the submission core calls: record creation
and reversal, asset deletion rules, debts, recurring schedules and settings.
Each service call commits on its own, exactly as the gateway uses them.
"""

from datetime import date
from decimal import Decimal

import pytest
from fastapi import HTTPException

from fireflow.models import Asset, Debt, Flow, RecurringSchedule, TaxSetting
from fireflow.models.flow import EFFECT_NONE, EFFECT_MOVE
from fireflow.schemas.asset import AssetUpdate
from fireflow.schemas.debt import DebtCreate
from fireflow.schemas.flow import (
    IncomeCreate,
    ExpenseCreate,
    TransferCreate,
    InvestmentCreate,
    DebtPaymentCreate,
    RecurringScheduleCreate,
)
from fireflow.schemas.settings import InterestSettingUpsert, TaxSettingUpdate, LinkedLedgerItem
from fireflow.services import asset as asset_service
from fireflow.services import debt as debt_service
from fireflow.services import flow as flow_service
from fireflow.services import interest as interest_service
from fireflow.services import linked_ledger as linked_ledger_service
from fireflow.services import recurring as recurring_service
from fireflow.services import settings as settings_service


def balance(test_db, asset):
    test_db.refresh(asset)
    return asset.balance


# =============================================================================
# FLOW RECORDS
# =============================================================================

class TestFlowRecords:

    def test_income_credits_destination(self, test_db, make_asset):
        bank = make_asset("Bank", balance="100")
        flow = flow_service.create_income(
            IncomeCreate(category="salary", amount=Decimal("3000"), to_asset_id=bank.id), test_db
        )
        assert flow.type == "income"
        assert flow.balance_effect == "credit_destination"
        assert balance(test_db, bank) == Decimal("3100")

    def test_income_without_destination_moves_nothing(self, test_db):
        flow = flow_service.create_income(IncomeCreate(category="interest", amount=Decimal("5")), test_db)
        assert flow.balance_effect == EFFECT_NONE

    def test_context_only_record(self, test_db, make_asset):
        fd = make_asset("FD", type="deposit", balance="1000")
        flow = flow_service.create_income(
            IncomeCreate(amount=Decimal("5"), from_asset_id=fd.id, to_asset_id=fd.id, adjust_balances=False),
            test_db,
        )
        assert flow.balance_effect == EFFECT_NONE
        assert balance(test_db, fd) == Decimal("1000")

    def test_expense_debits_source(self, test_db, make_asset):
        bank = make_asset("Bank", balance="100")
        flow_service.create_expense(
            ExpenseCreate(amount=Decimal("40"), from_asset_id=bank.id, expense_category_id="food"), test_db
        )
        assert balance(test_db, bank) == Decimal("60")

    def test_transfer_moves_between_assets(self, test_db, make_asset):
        bank = make_asset("Bank", balance="100")
        wallet = make_asset("Wallet")
        flow = flow_service.create_transfer(
            TransferCreate(amount=Decimal("30"), from_asset_id=bank.id, to_asset_id=wallet.id), test_db
        )
        assert flow.balance_effect == EFFECT_MOVE
        assert balance(test_db, bank) == Decimal("70")
        assert balance(test_db, wallet) == Decimal("30")

    def test_transfer_to_same_asset_rejected(self, test_db, make_asset):
        bank = make_asset("Bank", balance="100")
        with pytest.raises(HTTPException) as exc:
            flow_service.create_transfer(
                TransferCreate(amount=Decimal("30"), from_asset_id=bank.id, to_asset_id=bank.id), test_db
            )
        assert exc.value.status_code == 400
        assert test_db.query(Flow).count() == 0

    def test_unknown_asset_rejected(self, test_db):
        with pytest.raises(HTTPException) as exc:
            flow_service.create_income(IncomeCreate(amount=Decimal("1"), to_asset_id=999), test_db)
        assert exc.value.status_code == 404

    def test_negative_amount_rejected(self):
        with pytest.raises(ValueError):
            IncomeCreate(amount=Decimal("-1"))

    def test_investment_debits_cash_and_adds_units(self, test_db, make_asset):
        bank = make_asset("Bank", balance="5000")
        stock = make_asset("Apple", type="stock", ticker="AAPL")
        flow_service.create_investment(InvestmentCreate(
            amount=Decimal("1500"), shares=Decimal("10"), from_asset_id=bank.id, to_asset_id=stock.id,
        ), test_db)
        assert balance(test_db, bank) == Decimal("3500")
        assert balance(test_db, stock) == Decimal("10")

    def test_sale_credits_proceeds_only(self, test_db, make_asset):
        stock = make_asset("Apple", type="stock", balance="10")
        bank = make_asset("Bank")
        flow = flow_service.create_investment(InvestmentCreate(
            kind="sell", amount=Decimal("600"), shares=Decimal("4"), from_asset_id=stock.id, to_asset_id=bank.id,
        ), test_db)
        assert flow.category == "sell"
        assert balance(test_db, bank) == Decimal("600")
        assert balance(test_db, stock) == Decimal("10")

    def test_recurring_frequency_creates_schedule(self, test_db, make_asset):
        bank = make_asset("Bank")
        flow = flow_service.create_income(IncomeCreate(
            category="salary", amount=Decimal("3000"), date=date(2024, 1, 31),
            to_asset_id=bank.id, recurring_frequency="monthly",
        ), test_db)
        schedule = test_db.query(RecurringSchedule).one()
        assert schedule.source_flow_id == flow.id
        assert schedule.next_run_date == date(2024, 2, 29)
        assert schedule.template["amount"] == "3000"

    def test_unknown_frequency_rejected(self):
        with pytest.raises(ValueError):
            IncomeCreate(amount=Decimal("1"), recurring_frequency="daily")

    def test_filters(self, test_db, make_asset):
        bank = make_asset("Bank", balance="100")
        wallet = make_asset("Wallet")
        flow_service.create_income(IncomeCreate(category="salary", amount=Decimal("1"), to_asset_id=bank.id), test_db)
        flow_service.create_income(IncomeCreate(category="gift", amount=Decimal("1"), to_asset_id=wallet.id), test_db)
        assert len(flow_service.get_all_flows(test_db)) == 2
        assert [f.category for f in flow_service.get_all_flows(test_db, asset_id=wallet.id)] == ["gift"]
        assert len(flow_service.get_all_flows(test_db, category="salary")) == 1


# =============================================================================
# REVERSAL
# =============================================================================

class TestDeleteFlow:

    def test_delete_reverses_transfer(self, test_db, make_asset):
        bank = make_asset("Bank", balance="100")
        wallet = make_asset("Wallet")
        flow = flow_service.create_transfer(
            TransferCreate(amount=Decimal("30"), from_asset_id=bank.id, to_asset_id=wallet.id), test_db
        )
        assert flow_service.delete_flow(flow.id, test_db) is True
        assert balance(test_db, bank) == Decimal("100")
        assert balance(test_db, wallet) == Decimal("0")

    def test_delete_reverses_investment_units(self, test_db, make_asset):
        bank = make_asset("Bank", balance="5000")
        stock = make_asset("Apple", type="stock", balance="2")
        flow = flow_service.create_investment(InvestmentCreate(
            amount=Decimal("1500"), shares=Decimal("10"), from_asset_id=bank.id, to_asset_id=stock.id,
        ), test_db)
        flow_service.delete_flow(flow.id, test_db)
        assert balance(test_db, bank) == Decimal("5000")
        assert balance(test_db, stock) == Decimal("2")

    def test_delete_context_only_record_leaves_balance(self, test_db, make_asset):
        fd = make_asset("FD", type="deposit", balance="1000")
        flow = flow_service.create_income(
            IncomeCreate(amount=Decimal("5"), to_asset_id=fd.id, adjust_balances=False), test_db
        )
        asset_service.update_asset(fd.id, AssetUpdate(balance=Decimal("1005")), test_db)
        flow_service.delete_flow(flow.id, test_db)
        assert balance(test_db, fd) == Decimal("1005")

    def test_delete_removes_schedule(self, test_db, make_asset):
        bank = make_asset("Bank")
        flow = flow_service.create_income(IncomeCreate(
            amount=Decimal("10"), to_asset_id=bank.id, recurring_frequency="weekly",
        ), test_db)
        flow_service.delete_flow(flow.id, test_db)
        assert test_db.query(RecurringSchedule).count() == 0

    def test_delete_missing(self, test_db):
        assert flow_service.delete_flow(12345, test_db) is False


# =============================================================================
# ASSETS
# =============================================================================

class TestAssets:

    def test_partial_update(self, test_db, make_asset):
        bank = make_asset("Bank", balance="100", currency="SGD")
        updated = asset_service.update_asset(bank.id, AssetUpdate(name="DBS"), test_db)
        assert updated.name == "DBS"
        assert updated.currency == "SGD"
        assert updated.balance == Decimal("100")
        assert updated.balance_updated_at is None

    def test_balance_update_is_stamped(self, test_db, make_asset):
        bank = make_asset("Bank")
        updated = asset_service.update_asset(bank.id, AssetUpdate(balance=Decimal("5")), test_db)
        assert updated.balance_updated_at is not None

    def test_update_missing(self, test_db):
        assert asset_service.update_asset(999, AssetUpdate(name="x"), test_db) is None

    def test_delete_refused_while_referenced(self, test_db, make_asset):
        bank = make_asset("Bank")
        flow = flow_service.create_income(IncomeCreate(amount=Decimal("10"), to_asset_id=bank.id), test_db)

        with pytest.raises(HTTPException) as exc:
            asset_service.delete_asset(bank.id, test_db)
        assert exc.value.status_code == 409

        flow_service.delete_flow(flow.id, test_db)
        assert asset_service.delete_asset(bank.id, test_db) is True
        assert test_db.query(Asset).count() == 0

    def test_delete_takes_interest_settings_along(self, test_db, make_asset):
        fd = make_asset("FD", type="deposit")
        interest_service.upsert_interest_setting(fd.id, InterestSettingUpsert(interest_rate=Decimal("0.03")), test_db)
        asset_service.delete_asset(fd.id, test_db)
        assert interest_service.get_all_interest_settings(test_db) == []


# =============================================================================
# DEBTS
# =============================================================================

class TestDebts:

    def test_debt_with_disbursement(self, test_db, make_asset):
        bank = make_asset("Bank")
        debt, flow = debt_service.create_debt(DebtCreate(
            name="HDB Loan", debt_type="mortgage", principal=Decimal("300000"),
            interest_rate=Decimal("0.026"), term_months=300, disburse_to_asset_id=bank.id,
        ), test_db)

        assert debt.balance == Decimal("300000")
        assert debt.monthly_payment is not None
        assert flow.debt_id == debt.id
        assert flow.category == "debt_disbursement"
        assert balance(test_db, bank) == Decimal("300000")

    def test_missing_disbursement_asset_creates_nothing(self, test_db):
        with pytest.raises(HTTPException) as exc:
            debt_service.create_debt(DebtCreate(
                name="Car", principal=Decimal("1000"), disburse_to_asset_id=42,
            ), test_db)
        assert exc.value.status_code == 404
        assert test_db.query(Debt).count() == 0

    def test_payment_reduces_debt(self, test_db, make_asset):
        bank = make_asset("Bank", balance="5000")
        debt, _ = debt_service.create_debt(DebtCreate(name="Car", principal=Decimal("20000")), test_db)
        flow = flow_service.create_debt_payment(
            DebtPaymentCreate(amount=Decimal("500"), debt_id=debt.id, from_asset_id=bank.id), test_db
        )
        test_db.refresh(debt)
        assert debt.balance == Decimal("19500")
        assert balance(test_db, bank) == Decimal("4500")

        flow_service.delete_flow(flow.id, test_db)
        test_db.refresh(debt)
        assert debt.balance == Decimal("20000")

    def test_payment_to_unknown_debt(self, test_db):
        with pytest.raises(HTTPException) as exc:
            flow_service.create_debt_payment(DebtPaymentCreate(amount=Decimal("1"), debt_id=7), test_db)
        assert exc.value.status_code == 404

    def test_referenced_debt_cannot_be_deleted(self, test_db, make_asset):
        bank = make_asset("Bank")
        debt, _ = debt_service.create_debt(DebtCreate(
            name="Car", principal=Decimal("1000"), disburse_to_asset_id=bank.id,
        ), test_db)
        with pytest.raises(HTTPException) as exc:
            debt_service.delete_debt(debt.id, test_db)
        assert exc.value.status_code == 409

    def test_invalid_debt_type(self):
        with pytest.raises(ValueError):
            DebtCreate(name="x", debt_type="payday", principal=Decimal("1"))


# =============================================================================
# SCHEDULES AND SETTINGS
# =============================================================================

class TestSchedulesAndSettings:

    def test_standalone_schedule(self, test_db):
        schedule = recurring_service.create_schedule(RecurringScheduleCreate(
            frequency="monthly", next_run_date=date(2024, 4, 15), template={"type": "income", "amount": "3000"},
        ), test_db)
        assert schedule.source_flow_id is None
        assert recurring_service.get_all_schedules(test_db, active_only=True) == [schedule]
        assert recurring_service.delete_schedule(schedule.id, test_db) is True

    def test_schedule_template_needs_type_and_amount(self, test_db):
        with pytest.raises(HTTPException):
            recurring_service.create_schedule(RecurringScheduleCreate(
                frequency="monthly", next_run_date=date(2024, 4, 15), template={"amount": "1"},
            ), test_db)

    def test_interest_setting_upsert_replaces(self, test_db, make_asset):
        fd = make_asset("FD", type="deposit")
        interest_service.upsert_interest_setting(fd.id, InterestSettingUpsert(interest_rate=Decimal("0.03")), test_db)
        interest_service.upsert_interest_setting(
            fd.id, InterestSettingUpsert(interest_rate=Decimal("0.04"), payment_period="quarterly"), test_db
        )
        setting = interest_service.get_interest_setting(fd.id, test_db)
        assert setting.interest_rate == Decimal("0.04")
        assert setting.payment_period == "quarterly"
        assert len(interest_service.get_all_interest_settings(test_db)) == 1

    def test_interest_setting_for_unknown_asset(self, test_db):
        with pytest.raises(HTTPException):
            interest_service.upsert_interest_setting(5, InterestSettingUpsert(interest_rate=Decimal("0.03")), test_db)

    def test_tax_settings_seeded_once(self, test_db):
        first = settings_service.get_tax_settings(test_db)
        settings_service.ensure_tax_settings(test_db)
        assert test_db.query(TaxSetting).count() == 1
        assert first.us_dividend_withholding_rate == Decimal("0.30")

    def test_tax_settings_partial_update(self, test_db):
        row = settings_service.update_tax_settings(
            TaxSettingUpdate(sg_dividend_withholding_rate=Decimal("0.1")), test_db
        )
        assert row.sg_dividend_withholding_rate == Decimal("0.1")
        assert row.us_dividend_withholding_rate == Decimal("0.30")

    def test_tax_rate_out_of_range(self):
        with pytest.raises(ValueError):
            TaxSettingUpdate(us_dividend_withholding_rate=Decimal("1.5"))

    def test_linked_ledgers_replace_and_dedupe(self, test_db):
        linked_ledger_service.set_linked_ledgers([LinkedLedgerItem(ledger_id="old")], test_db)
        rows = linked_ledger_service.set_linked_ledgers([
            LinkedLedgerItem(ledger_id="travel", ledger_name="Travel"),
            LinkedLedgerItem(ledger_id="home"),
            LinkedLedgerItem(ledger_id="travel", ledger_name="Duplicate"),
        ], test_db)
        assert [(r.ledger_id, r.ledger_name) for r in rows] == [("travel", "Travel"), ("home", None)]
