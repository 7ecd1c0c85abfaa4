import logging
from typing import NoReturn

from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi.responses import JSONResponse

from app.core.auth import CurrentCustomer, require_roles
from app.core.dependencies import get_assistant_service
from app.core.feature_flags import ensure_sales_assistant_enabled
from app.schemas.assistant import (
    CatalogServiceOut,
    ChatTurnOut,
    CollectedFieldsOut,
    CompletenessOut,
    FieldEditIn,
    FinishOut,
    MessageIn,
    MessageOut,
    ProviderOut,
    ServiceMatchResponse,
    ServiceSelectIn,
    SessionOut,
    SessionStateOut,
    SummaryLineOut,
)
from app.services.assistant.service import (
    IncompleteFieldsError,
    SalesAssistantService,
    SessionNotFoundError,
    SessionSnapshot,
)
from app.services.assistant.validation import FieldValidationError
from app.services.marketplace.base import MarketplaceError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/assistant", dependencies=[Depends(ensure_sales_assistant_enabled)])

customer_required = require_roles()


def _raise_marketplace(exc: MarketplaceError) -> NoReturn:
    raise HTTPException(502, exc.message) from exc


def _snapshot_out(snapshot: SessionSnapshot) -> SessionOut:
    return SessionOut(
        session=SessionStateOut.from_state(snapshot.state),
        messages=[ChatTurnOut.from_turn(t) for t in snapshot.messages],
        is_active=snapshot.is_active,
    )


@router.post("/sessions", response_model=SessionOut, status_code=201)
async def start_session(
    current: CurrentCustomer = Depends(customer_required),
    service: SalesAssistantService = Depends(get_assistant_service),
):
    try:
        snapshot = await service.start_session(current.id)
    except MarketplaceError as exc:
        _raise_marketplace(exc)
    return _snapshot_out(snapshot)


@router.get("/sessions/active", response_model=SessionOut)
async def get_active_session(
    current: CurrentCustomer = Depends(customer_required),
    service: SalesAssistantService = Depends(get_assistant_service),
):
    try:
        snapshot = await service.resume_session(current.id)
    except SessionNotFoundError as exc:
        raise HTTPException(404, "No active session") from exc
    except MarketplaceError as exc:
        _raise_marketplace(exc)
    if snapshot is None:
        raise HTTPException(404, "No active session")
    return _snapshot_out(snapshot)


@router.get("/sessions/{session_id}", response_model=SessionOut)
async def get_session(
    session_id: str,
    current: CurrentCustomer = Depends(customer_required),
    service: SalesAssistantService = Depends(get_assistant_service),
):
    try:
        snapshot = await service.resume_session(current.id, session_id)
    except SessionNotFoundError as exc:
        raise HTTPException(404, "Session not found") from exc
    except MarketplaceError as exc:
        _raise_marketplace(exc)
    return _snapshot_out(snapshot)


@router.post("/sessions/{session_id}/messages", response_model=MessageOut)
async def send_message(
    session_id: str,
    payload: MessageIn,
    current: CurrentCustomer = Depends(customer_required),
    service: SalesAssistantService = Depends(get_assistant_service),
):
    try:
        result = await service.send_message(current.id, session_id, payload.message)
    except SessionNotFoundError as exc:
        raise HTTPException(404, "Session not found") from exc
    except FieldValidationError as exc:
        raise HTTPException(422, exc.message) from exc
    except MarketplaceError as exc:
        _raise_marketplace(exc)
    return MessageOut(
        session=SessionStateOut.from_state(result.state),
        user_message=ChatTurnOut.from_turn(result.user_message),
        reply=ChatTurnOut.from_turn(result.reply),
        source=result.source,
    )


@router.put("/sessions/{session_id}/fields/{field_name}", response_model=SessionStateOut)
async def edit_field(
    session_id: str,
    field_name: str,
    payload: FieldEditIn,
    current: CurrentCustomer = Depends(customer_required),
    service: SalesAssistantService = Depends(get_assistant_service),
):
    try:
        state = await service.edit_field(current.id, session_id, field_name, payload.value or "")
    except SessionNotFoundError as exc:
        raise HTTPException(404, "Session not found") from exc
    except FieldValidationError as exc:
        raise HTTPException(422, {"field": exc.field, "message": exc.message}) from exc
    return SessionStateOut.from_state(state)


@router.post("/sessions/{session_id}/service", response_model=SessionStateOut)
async def select_service(
    session_id: str,
    payload: ServiceSelectIn,
    current: CurrentCustomer = Depends(customer_required),
    service: SalesAssistantService = Depends(get_assistant_service),
):
    try:
        state = await service.select_service(current.id, session_id, payload.name)
    except SessionNotFoundError as exc:
        raise HTTPException(404, "Session not found") from exc
    except FieldValidationError as exc:
        raise HTTPException(422, {"field": exc.field, "message": exc.message}) from exc
    return SessionStateOut.from_state(state)


@router.get("/sessions/{session_id}/completeness", response_model=CompletenessOut)
async def get_completeness(
    session_id: str,
    current: CurrentCustomer = Depends(customer_required),
    service: SalesAssistantService = Depends(get_assistant_service),
):
    try:
        result = service.completeness(current.id, session_id)
    except SessionNotFoundError as exc:
        raise HTTPException(404, "Session not found") from exc
    return CompletenessOut(
        complete=result.complete,
        missing=result.missing,
        missing_labels=result.missing_labels,
        fields=CollectedFieldsOut.from_fields(result.fields),
    )


@router.post("/sessions/{session_id}/finish", response_model=FinishOut)
async def finish(
    session_id: str,
    current: CurrentCustomer = Depends(customer_required),
    service: SalesAssistantService = Depends(get_assistant_service),
):
    try:
        result = await service.finish(current.id, session_id)
    except SessionNotFoundError as exc:
        raise HTTPException(404, "Session not found") from exc
    except IncompleteFieldsError as exc:
        return JSONResponse(status_code=409, content={"detail": exc.message, "missing": exc.missing})
    except MarketplaceError as exc:
        _raise_marketplace(exc)
    return FinishOut(
        session=SessionStateOut.from_state(result.state),
        summary=result.summary,
        summary_lines=[SummaryLineOut(label=label, value=value) for label, value in result.summary_lines],
        providers=[ProviderOut.from_provider(p) for p in result.providers],
        message=result.message,
    )


@router.post("/sessions/{session_id}/reset", response_model=SessionOut, status_code=201)
async def reset_session(
    session_id: str,
    current: CurrentCustomer = Depends(customer_required),
    service: SalesAssistantService = Depends(get_assistant_service),
):
    try:
        snapshot = await service.reset(current.id, session_id)
    except SessionNotFoundError as exc:
        raise HTTPException(404, "Session not found") from exc
    except MarketplaceError as exc:
        _raise_marketplace(exc)
    logger.info("Assistant session reset: old=%s new=%s", session_id, snapshot.state.session_id)
    return _snapshot_out(snapshot)


@router.get("/services/match", response_model=ServiceMatchResponse)
async def match_services(
    keyword: str = Query(..., min_length=1, max_length=64),
    current: CurrentCustomer = Depends(customer_required),
    service: SalesAssistantService = Depends(get_assistant_service),
):
    items = await service.find_matching_services(keyword)
    return ServiceMatchResponse(keyword=keyword, items=[CatalogServiceOut.from_service(s) for s in items])
