"""
fireflow/routers/submission.py

The unified entry form over HTTP.

A form session holds one FormState and one SubmissionOrchestrator (so a
double-clicked submit on the same form gets 'busy'). Sessions live in memory
in this process.

    POST   /api/submissions/sessions                      pick a category
    GET    /api/submissions/sessions/{id}
    PATCH  /api/submissions/sessions/{id}/fields          one draft field
    PATCH  /api/submissions/sessions/{id}/new-asset       one new-asset field
    POST   /api/submissions/sessions/{id}/submit
    POST   /api/submissions/sessions/{id}/start-date      answer needs_start_date
    POST   /api/submissions/sessions/{id}/linked-ledgers  expense "link ledger" tab
    DELETE /api/submissions/sessions/{id}
    POST   /api/submissions/                              one-shot submit

Submit outcomes map to HTTP status: committed/needs_start_date 200,
invalid 422, busy 409, failed 502. The body is always the SubmissionResult.
"""

import logging
import uuid
from decimal import Decimal
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse
from pydantic import BaseModel
from sqlalchemy.orm import Session, sessionmaker

from fireflow.constants import DEFAULT_CURRENCY
from fireflow.database import get_db
from fireflow.exceptions import CallFailure
from fireflow.schemas.draft import (
    FlowDraft,
    FormState,
    FieldVisibility,
    NewAssetRequest,
    SubmissionResult,
)
from fireflow.schemas.settings import LinkedLedgerItem
from fireflow.services.submission.categories import CategoryPreset, lookup
from fireflow.services.submission.form_state import (
    FormContext,
    select_category,
    apply_field_update,
    update_new_asset,
    with_errors,
    field_visibility,
    computed_price_per_share,
)
from fireflow.services.submission.gateway import SqlBackend
from fireflow.services.submission.orchestrator import SubmissionOrchestrator

logger = logging.getLogger(__name__)

router = APIRouter(tags=["submissions"])

STATUS_CODES = {
    "committed": 200,
    "needs_start_date": 200,
    "invalid": 422,
    "busy": 409,
    "failed": 502,
}


# ---------------------------------------------------------
# Request / response bodies
# ---------------------------------------------------------
class SessionCreate(BaseModel):
    category: str
    preferred_currency: str = DEFAULT_CURRENCY


class FieldUpdate(BaseModel):
    field: str
    value: Any = None


class StartDateChoice(BaseModel):
    choice: str


class OneShotSubmission(BaseModel):
    draft: FlowDraft
    new_asset: NewAssetRequest = NewAssetRequest()


class SessionView(BaseModel):
    session_id: str
    state: FormState
    visibility: FieldVisibility
    price_per_share: Optional[Decimal] = None


class SubmitResponse(BaseModel):
    session: SessionView
    result: SubmissionResult


# ---------------------------------------------------------
# Session store
# ---------------------------------------------------------
class FormSession:
    def __init__(self, preset: CategoryPreset, state: FormState, orchestrator: SubmissionOrchestrator,
                 preferred_currency: str):
        self.preset = preset
        self.state = state
        self.orchestrator = orchestrator
        self.preferred_currency = preferred_currency
        self.assets: List = []


_sessions: Dict[str, FormSession] = {}


def get_backend(db: Session = Depends(get_db)) -> SqlBackend:
    """
    A backend on the same database as the request session. Each backend call
    opens (and commits) its own session.
    """
    return SqlBackend(sessionmaker(autocommit=False, autoflush=False, bind=db.get_bind()))


def _get_session(session_id: str) -> FormSession:
    form = _sessions.get(session_id)
    if form is None:
        raise HTTPException(status_code=404, detail="Form session not found.")
    return form


def _view(session_id: str, form: FormSession) -> SessionView:
    return SessionView(
        session_id=session_id,
        state=form.state,
        visibility=field_visibility(form.state, form.preset, form.assets),
        price_per_share=computed_price_per_share(form.state),
    )


def _result_response(result: SubmissionResult, body: BaseModel) -> JSONResponse:
    return JSONResponse(status_code=STATUS_CODES[result.status], content=jsonable_encoder(body))


async def _load_assets(backend: SqlBackend) -> List:
    try:
        return await backend.list_assets()
    except CallFailure as e:
        raise HTTPException(status_code=502, detail=str(e))


# ---------------------------------------------------------
# Form sessions
# ---------------------------------------------------------
@router.post("/sessions", response_model=SessionView)
async def create_session(data: SessionCreate, backend: SqlBackend = Depends(get_backend)):
    """
    Start a form on a category: a fresh draft with the obvious asset picked
    when there is only one candidate.
    """
    preset = lookup(data.category)
    if preset is None:
        raise HTTPException(status_code=404, detail=f"Unknown category '{data.category}'.")

    assets = await _load_assets(backend)
    state = select_category(preset, assets, data.preferred_currency.upper())
    orchestrator = SubmissionOrchestrator(backend, preferred_currency=data.preferred_currency.upper())
    form = FormSession(preset, state, orchestrator, data.preferred_currency.upper())
    form.assets = assets

    session_id = uuid.uuid4().hex
    _sessions[session_id] = form
    logger.debug(f"Form session {session_id} opened on '{preset.id}'")
    return _view(session_id, form)


@router.get("/sessions/{session_id}", response_model=SessionView)
def get_session(session_id: str):
    return _view(session_id, _get_session(session_id))


@router.patch("/sessions/{session_id}/fields", response_model=SessionView)
async def update_field(session_id: str, data: FieldUpdate, backend: SqlBackend = Depends(get_backend)):
    """
    Set one draft field. Picking an asset may pre-fill other fields
    (projected interest, cost basis, currency).
    """
    form = _get_session(session_id)
    form.assets = await _load_assets(backend)

    context = FormContext(assets=form.assets)
    if data.field == "from_asset_id" and data.value is not None:
        try:
            asset_id = int(data.value)
            context.records = await backend.list_records(asset_id)
            setting = await backend.get_interest_settings(asset_id)
        except (TypeError, ValueError):
            raise HTTPException(status_code=422, detail="from_asset_id must be an integer.")
        except CallFailure as e:
            raise HTTPException(status_code=502, detail=str(e))
        if setting is not None:
            context.interest_settings[asset_id] = setting

    try:
        form.state = apply_field_update(form.state, data.field, data.value, context)
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e))
    return _view(session_id, form)


@router.patch("/sessions/{session_id}/new-asset", response_model=SessionView)
def update_new_asset_field(session_id: str, data: FieldUpdate):
    form = _get_session(session_id)
    try:
        form.state = update_new_asset(form.state, data.field, data.value)
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e))
    return _view(session_id, form)


async def _submit(session_id: str, form: FormSession, backend: SqlBackend) -> JSONResponse:
    result = await form.orchestrator.submit(form.state.draft, form.state.new_asset)

    if result.status == "invalid":
        form.state = with_errors(form.state, result.errors)
    elif result.status == "committed":
        form.assets = await _load_assets(backend)
        form.state = select_category(form.preset, form.assets, form.preferred_currency)

    return _result_response(result, SubmitResponse(session=_view(session_id, form), result=result))


@router.post("/sessions/{session_id}/submit", response_model=SubmitResponse)
async def submit_session(session_id: str, backend: SqlBackend = Depends(get_backend)):
    return await _submit(session_id, _get_session(session_id), backend)


@router.post("/sessions/{session_id}/start-date", response_model=SubmitResponse)
async def choose_start_date(session_id: str, data: StartDateChoice, backend: SqlBackend = Depends(get_backend)):
    """
    Answer a needs_start_date outcome: 'today' records the first flow now,
    'next_occurrence' only schedules it.
    """
    form = _get_session(session_id)
    try:
        form.state = apply_field_update(form.state, "start_choice", data.choice)
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e))
    return await _submit(session_id, form, backend)


@router.post("/sessions/{session_id}/linked-ledgers", response_model=SubmissionResult)
async def save_linked_ledgers(session_id: str, items: List[LinkedLedgerItem]):
    form = _get_session(session_id)
    result = await form.orchestrator.save_linked_ledgers(items)
    return _result_response(result, result)


@router.delete("/sessions/{session_id}", status_code=204)
def close_session(session_id: str):
    if _sessions.pop(session_id, None) is None:
        raise HTTPException(status_code=404, detail="Form session not found.")
    return


# ---------------------------------------------------------
# One-shot submit
# ---------------------------------------------------------
@router.post("/", response_model=SubmissionResult)
async def submit_draft(data: OneShotSubmission, backend: SqlBackend = Depends(get_backend)):
    """
    Submit a complete draft without a form session (scripts, imports).
    """
    orchestrator = SubmissionOrchestrator(backend)
    result = await orchestrator.submit(data.draft, data.new_asset)
    return _result_response(result, result)
