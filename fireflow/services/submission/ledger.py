"""
fireflow/services/submission/ledger.py

The compensation ledger of one submission attempt: every resource the
attempt created and every asset field it overwrote, in the order it
happened. If a later step fails, compensate() undoes them again:
transaction records and asset updates first (newest first, since deleting
a record reverses its own balance effect), then assets (newest first).
Updates to assets the attempt created are skipped; those assets are
deleted anyway.

A step that fails during compensation is logged at ERROR and reported back
as a CompensationFailure; it never replaces the error that triggered the
rollback.
"""

import logging
from typing import Any, Dict, List, Literal

from pydantic import BaseModel, ConfigDict

from fireflow.exceptions import CallFailure, CompensationFailure
from fireflow.schemas.asset import AssetUpdate

logger = logging.getLogger(__name__)

KIND_ASSET = "asset"
KIND_RECORD = "transaction_record"
KIND_UPDATE = "asset_update"


class CompensationEntry(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["asset", "transaction_record", "asset_update"]
    id: int
    previous: Dict[str, Any] = {}


class CompensationReport(BaseModel):
    deleted: List[CompensationEntry] = []
    restored: List[CompensationEntry] = []
    failures: List[str] = []

    @property
    def assets_deleted(self) -> bool:
        return any(e.kind == KIND_ASSET for e in self.deleted)


class CompensationLedger:
    def __init__(self):
        self.entries: List[CompensationEntry] = []

    def __len__(self):
        return len(self.entries)

    def record_asset(self, asset_id: int):
        self.entries.append(CompensationEntry(kind=KIND_ASSET, id=asset_id))
        logger.debug(f"Ledger: asset {asset_id}")

    def record_transaction(self, flow_id: int):
        self.entries.append(CompensationEntry(kind=KIND_RECORD, id=flow_id))
        logger.debug(f"Ledger: transaction record {flow_id}")

    def record_update(self, asset_id: int, **previous):
        """Remember the field values an asset update overwrote."""
        self.entries.append(CompensationEntry(kind=KIND_UPDATE, id=asset_id, previous=previous))
        logger.debug(f"Ledger: asset {asset_id} update, was {sorted(previous)}")

    def created_asset(self, asset_id: int) -> bool:
        return any(e.kind == KIND_ASSET and e.id == asset_id for e in self.entries)

    def rollback_plan(self) -> List[CompensationEntry]:
        """Records and asset updates newest first, then assets newest first."""
        created = {e.id for e in self.entries if e.kind == KIND_ASSET}
        undo = [
            e for e in reversed(self.entries)
            if e.kind == KIND_RECORD or (e.kind == KIND_UPDATE and e.id not in created)
        ]
        assets = [e for e in reversed(self.entries) if e.kind == KIND_ASSET]
        return undo + assets

    def clear(self):
        self.entries = []

    async def compensate(self, backend) -> CompensationReport:
        """
        Undo every entry, in rollback order. Always attempts every entry,
        whatever a single step raises; the ledger is empty afterwards.
        """
        report = CompensationReport()
        for entry in self.rollback_plan():
            try:
                if entry.kind == KIND_RECORD:
                    await backend.delete_record(entry.id)
                elif entry.kind == KIND_UPDATE:
                    await backend.update_asset(entry.id, AssetUpdate(**entry.previous))
                else:
                    await backend.delete_asset(entry.id)
            except Exception as e:
                failure = CompensationFailure(entry.kind, entry.id, e)
                if isinstance(e, CallFailure):
                    logger.error(str(failure))
                else:
                    logger.exception(str(failure))
                report.failures.append(str(failure))
                continue
            if entry.kind == KIND_UPDATE:
                report.restored.append(entry)
                logger.info(f"Restored asset {entry.id}: {sorted(entry.previous)}")
            else:
                report.deleted.append(entry)
                logger.info(f"Rolled back {entry.kind} {entry.id}")
        self.clear()
        return report
