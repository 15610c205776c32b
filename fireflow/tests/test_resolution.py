"""
Tests for asset resolution and the compensation ledger, against the real
SQL backend on a temporary database.
"""

import asyncio
from decimal import Decimal

from fireflow.models import Asset, Flow
from fireflow.schemas.asset import AssetCreate, AssetRead, AssetUpdate
from fireflow.schemas.draft import NewAssetRequest
from fireflow.schemas.flow import IncomeCreate
from fireflow.services.submission.categories import investment_type
from fireflow.services.submission.ledger import CompensationLedger, KIND_ASSET, KIND_RECORD, KIND_UPDATE
from fireflow.services.submission.resolution import (
    match_by_name,
    match_by_ticker,
    match_metal,
    quantity_in_asset_unit,
    resolve_or_create,
    resolve_ticker_holding,
)


def read(asset):
    return AssetRead.model_validate(asset)


# =============================================================================
# MATCHING
# =============================================================================

class TestMatching:

    def test_name_match_is_case_insensitive(self, make_asset):
        bank = read(make_asset("DBS Multiplier"))
        assert match_by_name([bank], "  dbs multiplier ").id == bank.id
        assert match_by_name([bank], "DBS") is None
        assert match_by_name([bank], "") is None

    def test_ticker_match(self, make_asset):
        stock = read(make_asset("Apple", type="stock", ticker="AAPL"))
        assert match_by_ticker([stock], "aapl").id == stock.id
        assert match_by_ticker([stock], "MSFT") is None

    def test_metal_match_uses_metal_type_not_name(self, make_asset):
        bars = read(make_asset("My bullion", type="metals", balance="10",
                               meta={"metal_type": "gold", "metal_unit": "ounce"}))
        assert match_metal([bars], "gold").id == bars.id
        assert match_metal([bars], "silver") is None

    def test_quantity_converted_to_asset_unit(self, make_asset):
        bars = read(make_asset("Gold (oz)", type="metals", meta={"metal_type": "gold", "metal_unit": "ounce"}))
        assert quantity_in_asset_unit(bars, Decimal("31.1035"), "gram") == Decimal("1")


# =============================================================================
# RESOLVE OR CREATE
# =============================================================================

class TestResolveOrCreate:

    def test_existing_name_is_reused(self, make_asset, backend, test_db):
        bank = read(make_asset("Emergency Fund", type="deposit", balance="300"))
        ledger = CompensationLedger()
        request = NewAssetRequest(show="destination", name="emergency fund", type="deposit")

        found = asyncio.run(resolve_or_create(request, [bank], "USD", backend, ledger))

        assert found.id == bank.id
        assert len(ledger) == 0
        assert "create_asset" not in backend.calls
        assert test_db.query(Asset).count() == 1

    def test_new_asset_is_created_and_recorded(self, backend, test_db):
        ledger = CompensationLedger()
        request = NewAssetRequest(show="source", name="Emergency Fund", type="cash")

        created = asyncio.run(resolve_or_create(request, [], "sgd", backend, ledger, asset_type="deposit"))

        assert created.type == "deposit"
        assert created.currency == "SGD"
        assert created.balance == 0
        assert [(e.kind, e.id) for e in ledger.entries] == [(KIND_ASSET, created.id)]

    def test_ticker_holding_created_with_market(self, backend):
        ledger = CompensationLedger()
        holding = asyncio.run(resolve_ticker_holding(
            "d05", "DBS Group", investment_type("sgx_stock"), [], backend, ledger
        ))
        assert holding.ticker == "D05"
        assert holding.market == "SG"
        assert holding.currency == "SGD"
        assert len(ledger) == 1

    def test_ticker_holding_reused(self, make_asset, backend):
        stock = read(make_asset("Apple", type="stock", ticker="AAPL", balance="5"))
        ledger = CompensationLedger()
        holding = asyncio.run(resolve_ticker_holding(
            "AAPL", "Apple Inc.", investment_type("us_stock"), [stock], backend, ledger
        ))
        assert holding.id == stock.id
        assert len(ledger) == 0


# =============================================================================
# COMPENSATION LEDGER
# =============================================================================

class TestCompensationLedger:

    def test_rollback_plan_orders_records_before_assets(self):
        ledger = CompensationLedger()
        ledger.record_asset(1)
        ledger.record_transaction(10)
        ledger.record_asset(2)
        ledger.record_transaction(11)
        plan = [(e.kind, e.id) for e in ledger.rollback_plan()]
        assert plan == [(KIND_RECORD, 11), (KIND_RECORD, 10), (KIND_ASSET, 2), (KIND_ASSET, 1)]

    def test_updates_undone_in_order_with_records(self):
        ledger = CompensationLedger()
        ledger.record_asset(1)
        ledger.record_transaction(10)
        ledger.record_update(5, balance=Decimal("100"))
        ledger.record_update(1, balance=Decimal("0"))
        ledger.record_transaction(11)
        plan = [(e.kind, e.id) for e in ledger.rollback_plan()]
        # Asset 1 is deleted anyway, so its update is not restored
        assert plan == [(KIND_RECORD, 11), (KIND_UPDATE, 5), (KIND_RECORD, 10), (KIND_ASSET, 1)]

    def test_compensate_restores_overwritten_balance(self, backend, test_db):
        ledger = CompensationLedger()
        bank = asyncio.run(backend.create_asset(AssetCreate(name="Bank", balance=Decimal("250"))))
        asyncio.run(backend.update_asset(bank.id, AssetUpdate(balance=Decimal("0"))))
        ledger.record_update(bank.id, balance=bank.balance)

        report = asyncio.run(ledger.compensate(backend))

        assert [e.id for e in report.restored] == [bank.id]
        assert report.deleted == []
        test_db.expire_all()
        assert test_db.get(Asset, bank.id).balance == Decimal("250")

    def test_compensate_deletes_everything(self, backend, test_db):
        ledger = CompensationLedger()
        first = asyncio.run(backend.create_asset(AssetCreate(name="Bank")))
        ledger.record_asset(first.id)
        record = asyncio.run(backend.create_income(IncomeCreate(amount=Decimal("50"), to_asset_id=first.id)))
        ledger.record_transaction(record.id)

        report = asyncio.run(ledger.compensate(backend))

        assert [e.kind for e in report.deleted] == [KIND_RECORD, KIND_ASSET]
        assert report.failures == []
        assert report.assets_deleted
        assert len(ledger) == 0
        assert test_db.query(Asset).count() == 0
        assert test_db.query(Flow).count() == 0

    def test_failed_delete_is_reported_and_rest_still_run(self, backend, test_db):
        ledger = CompensationLedger()
        first = asyncio.run(backend.create_asset(AssetCreate(name="First")))
        second = asyncio.run(backend.create_asset(AssetCreate(name="Second")))
        ledger.record_asset(first.id)
        ledger.record_asset(second.id)
        backend.fail("delete_asset", after=1)

        report = asyncio.run(ledger.compensate(backend))

        assert [e.id for e in report.deleted] == [second.id]
        assert len(report.failures) == 1
        assert f"asset {first.id}" in report.failures[0]
        assert len(ledger) == 0
