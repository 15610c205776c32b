"""
fireflow/services/submission/gateway.py

The Backend adapter the orchestrator talks to. Every method is a coroutine
returning a read schema (never an ORM object), and every rejection surfaces
as CallFailure, whatever the underlying service raised.

SqlBackend runs the local service functions, one session and one commit per
call, in FastAPI's threadpool. There is no transaction spanning calls.
"""

import logging
from typing import Callable, List, Optional

from fastapi import HTTPException
from fastapi.concurrency import run_in_threadpool
from sqlalchemy.exc import SQLAlchemyError

from fireflow.exceptions import CallFailure
from fireflow.schemas.asset import AssetCreate, AssetUpdate, AssetRead
from fireflow.schemas.debt import DebtCreate, DebtRead, DebtCreateResult
from fireflow.schemas.flow import (
    FlowRead,
    IncomeCreate,
    ExpenseCreate,
    TransferCreate,
    InvestmentCreate,
    DebtPaymentCreate,
    RecurringScheduleCreate,
    RecurringScheduleRead,
)
from fireflow.schemas.settings import (
    InterestSettingUpsert,
    InterestSettingRead,
    TaxSettingRead,
    LinkedLedgerItem,
)
from fireflow.services import asset as asset_service
from fireflow.services import debt as debt_service
from fireflow.services import flow as flow_service
from fireflow.services import interest as interest_service
from fireflow.services import linked_ledger as linked_ledger_service
from fireflow.services import recurring as recurring_service
from fireflow.services import settings as settings_service

logger = logging.getLogger(__name__)


class SqlBackend:
    def __init__(self, session_factory: Callable):
        self._session_factory = session_factory

    async def _call(self, operation: str, fn):
        return await run_in_threadpool(self._run, operation, fn)

    def _run(self, operation: str, fn):
        db = self._session_factory()
        try:
            return fn(db)
        except HTTPException as e:
            logger.warning(f"{operation} rejected ({e.status_code}): {e.detail}")
            raise CallFailure(operation, str(e.detail), e.status_code) from e
        except SQLAlchemyError as e:
            db.rollback()
            logger.error(f"{operation} failed in the database: {e}")
            raise CallFailure(operation, str(e)) from e
        finally:
            db.close()

    # ---------------------------------------------------------------
    # Assets
    # ---------------------------------------------------------------
    async def list_assets(self) -> List[AssetRead]:
        return await self._call("list_assets", lambda db: [
            AssetRead.model_validate(a) for a in asset_service.get_all_assets(db)
        ])

    async def get_asset(self, asset_id: int) -> AssetRead:
        def fn(db):
            asset = asset_service.get_asset_by_id(asset_id, db)
            if not asset:
                raise HTTPException(status_code=404, detail=f"Asset #{asset_id} not found.")
            return AssetRead.model_validate(asset)
        return await self._call("get_asset", fn)

    async def create_asset(self, data: AssetCreate) -> AssetRead:
        return await self._call(
            "create_asset",
            lambda db: AssetRead.model_validate(asset_service.create_asset(data, db)),
        )

    async def update_asset(self, asset_id: int, data: AssetUpdate) -> AssetRead:
        def fn(db):
            asset = asset_service.update_asset(asset_id, data, db)
            if not asset:
                raise HTTPException(status_code=404, detail=f"Asset #{asset_id} not found.")
            return AssetRead.model_validate(asset)
        return await self._call("update_asset", fn)

    async def delete_asset(self, asset_id: int) -> None:
        def fn(db):
            if not asset_service.delete_asset(asset_id, db):
                raise HTTPException(status_code=404, detail=f"Asset #{asset_id} not found.")
        await self._call("delete_asset", fn)

    # ---------------------------------------------------------------
    # Records
    # ---------------------------------------------------------------
    async def create_income(self, data: IncomeCreate) -> FlowRead:
        return await self._call(
            "create_income",
            lambda db: FlowRead.model_validate(flow_service.create_income(data, db)),
        )

    async def create_expense(self, data: ExpenseCreate) -> FlowRead:
        return await self._call(
            "create_expense",
            lambda db: FlowRead.model_validate(flow_service.create_expense(data, db)),
        )

    async def create_transfer(self, data: TransferCreate) -> FlowRead:
        return await self._call(
            "create_transfer",
            lambda db: FlowRead.model_validate(flow_service.create_transfer(data, db)),
        )

    async def create_investment(self, data: InvestmentCreate) -> FlowRead:
        return await self._call(
            "create_investment",
            lambda db: FlowRead.model_validate(flow_service.create_investment(data, db)),
        )

    async def create_debt_payment(self, data: DebtPaymentCreate) -> FlowRead:
        return await self._call(
            "create_debt_payment",
            lambda db: FlowRead.model_validate(flow_service.create_debt_payment(data, db)),
        )

    async def create_debt(self, data: DebtCreate) -> DebtCreateResult:
        def fn(db):
            debt, flow = debt_service.create_debt(data, db)
            return DebtCreateResult(
                debt=DebtRead.model_validate(debt),
                flow_id=flow.id if flow else None,
            )
        return await self._call("create_debt", fn)

    async def delete_record(self, flow_id: int) -> None:
        def fn(db):
            if not flow_service.delete_flow(flow_id, db):
                raise HTTPException(status_code=404, detail=f"Flow #{flow_id} not found.")
        await self._call("delete_record", fn)

    async def list_records(self, asset_id: Optional[int] = None) -> List[FlowRead]:
        return await self._call("list_records", lambda db: [
            FlowRead.model_validate(f) for f in flow_service.get_all_flows(db, asset_id=asset_id)
        ])

    # ---------------------------------------------------------------
    # Settings, schedules, ledgers
    # ---------------------------------------------------------------
    async def upsert_interest_settings(self, asset_id: int, data: InterestSettingUpsert) -> InterestSettingRead:
        return await self._call(
            "upsert_interest_settings",
            lambda db: InterestSettingRead.model_validate(
                interest_service.upsert_interest_setting(asset_id, data, db)
            ),
        )

    async def get_interest_settings(self, asset_id: int) -> Optional[InterestSettingRead]:
        def fn(db):
            setting = interest_service.get_interest_setting(asset_id, db)
            return InterestSettingRead.model_validate(setting) if setting else None
        return await self._call("get_interest_settings", fn)

    async def get_tax_settings(self) -> TaxSettingRead:
        return await self._call(
            "get_tax_settings",
            lambda db: TaxSettingRead.model_validate(settings_service.get_tax_settings(db)),
        )

    async def create_recurring_schedule(self, data: RecurringScheduleCreate) -> RecurringScheduleRead:
        return await self._call(
            "create_recurring_schedule",
            lambda db: RecurringScheduleRead.model_validate(recurring_service.create_schedule(data, db)),
        )

    async def set_linked_ledgers(self, items: List[LinkedLedgerItem]) -> None:
        def fn(db):
            linked_ledger_service.set_linked_ledgers(items, db)
        await self._call("set_linked_ledgers", fn)
