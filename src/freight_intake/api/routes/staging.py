"""Staging session endpoints: paste or upload, adjudicate, commit."""

from __future__ import annotations

import logging

from fastapi import APIRouter, File, Form, HTTPException, UploadFile, status

from ...config import settings
from ...data.customers_repository import load_customers
from ...models.domain import Customer
from ...persistence.supabase_backend import get_backend
from ...schemas.customers import CustomerModel
from ...schemas.staging import (
    CommitResponse,
    CreateSessionRequest,
    EditRecordRequest,
    RegisterCustomerRequest,
    RegisterCustomerResponse,
    ResolveConflictRequest,
    SelectCandidateRequest,
    StagingRecordModel,
    StagingSessionResponse,
    StagingStatsModel,
)
from ...services.manifest.uploads import upload_to_text
from ...services.staging import (
    BackendNotConfiguredError,
    CommitInProgressError,
    InvalidTransitionError,
    StagingRecordNotFound,
    StagingSession,
    summarize_commit,
    summarize_parse,
    write_commit_report,
)

router = APIRouter(prefix="/staging", tags=["staging"])

_SESSIONS: dict[str, StagingSession] = {}


def _directory() -> tuple[Customer, ...]:
    try:
        return load_customers()
    except FileNotFoundError as exc:
        logging.warning(f"Customer directory unavailable, matching against an empty list: {exc}")
        return ()


def _get_session(session_id: str) -> StagingSession:
    session = _SESSIONS.get(session_id)
    if session is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Staging session '{session_id}' not found.")
    return session


def _http_error(exc: Exception) -> HTTPException:
    if isinstance(exc, StagingRecordNotFound):
        return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc))
    if isinstance(exc, BackendNotConfiguredError):
        return HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc))
    return HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc))


def _session_response(session: StagingSession) -> StagingSessionResponse:
    result = session.parse_result
    return StagingSessionResponse(
        session_id=session.session_id,
        voyage_id=session.voyage_id,
        has_header=bool(result and result.has_header),
        warnings=list(result.warnings) if result else [],
        summary=summarize_parse(result) if result else "",
        stats=StagingStatsModel.from_stats(session.stats()),
        records=[StagingRecordModel.from_record(record) for record in session.records()],
    )


def _store_session(session: StagingSession) -> None:
    while len(_SESSIONS) >= settings.max_open_sessions:
        oldest = next(iter(_SESSIONS))
        del _SESSIONS[oldest]
        logging.info(f"Discarded staging session {oldest}; {settings.max_open_sessions} sessions already open")
    _SESSIONS[session.session_id] = session


async def _open_session(raw_text: str, voyage_id: str | None) -> StagingSessionResponse:
    if not raw_text.strip():
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Manifest text is empty.")
    session = await StagingSession.from_text_async(
        raw_text,
        _directory(),
        backend=get_backend(),
        voyage_id=voyage_id,
    )
    _store_session(session)
    return _session_response(session)


@router.post("/sessions", response_model=StagingSessionResponse, status_code=status.HTTP_201_CREATED)
async def create_session(payload: CreateSessionRequest) -> StagingSessionResponse:
    return await _open_session(payload.raw_text, payload.voyage_id)


@router.post("/sessions/upload", response_model=StagingSessionResponse, status_code=status.HTTP_201_CREATED)
async def upload_session(
    file: UploadFile = File(...),
    voyage_id: str | None = Form(default=None),
) -> StagingSessionResponse:
    if not file.filename:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Filename is required.")
    payload = await file.read()
    try:
        raw_text = upload_to_text(file.filename, payload)
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_415_UNSUPPORTED_MEDIA_TYPE, detail=str(exc)) from exc
    return await _open_session(raw_text, voyage_id)


@router.get("/sessions/{session_id}", response_model=StagingSessionResponse, status_code=status.HTTP_200_OK)
def get_session(session_id: str) -> StagingSessionResponse:
    return _session_response(_get_session(session_id))


@router.delete("/sessions/{session_id}", status_code=status.HTTP_200_OK)
def discard_session(session_id: str) -> dict:
    session = _get_session(session_id)
    del _SESSIONS[session.session_id]
    return {"session_id": session_id, "discarded": True}


@router.patch(
    "/sessions/{session_id}/records/{staging_id}",
    response_model=StagingRecordModel,
    status_code=status.HTTP_200_OK,
)
def edit_record(session_id: str, staging_id: str, payload: EditRecordRequest) -> StagingRecordModel:
    session = _get_session(session_id)
    try:
        record = session.edit(
            staging_id,
            name=payload.name,
            phone=payload.phone,
            region=payload.region,
            address=payload.address,
        )
    except (StagingRecordNotFound, InvalidTransitionError) as exc:
        raise _http_error(exc) from exc
    return StagingRecordModel.from_record(record)


@router.post(
    "/sessions/{session_id}/records/{staging_id}/select",
    response_model=StagingRecordModel,
    status_code=status.HTTP_200_OK,
)
def select_candidate(session_id: str, staging_id: str, payload: SelectCandidateRequest) -> StagingRecordModel:
    session = _get_session(session_id)
    try:
        record = session.select(staging_id, payload.customer_id)
    except (StagingRecordNotFound, InvalidTransitionError) as exc:
        raise _http_error(exc) from exc
    return StagingRecordModel.from_record(record)


@router.post(
    "/sessions/{session_id}/records/{staging_id}/resolve",
    response_model=StagingRecordModel,
    status_code=status.HTTP_200_OK,
)
def resolve_conflict(session_id: str, staging_id: str, payload: ResolveConflictRequest) -> StagingRecordModel:
    session = _get_session(session_id)
    try:
        record = session.resolve(staging_id, payload.resolution)
    except (StagingRecordNotFound, InvalidTransitionError) as exc:
        raise _http_error(exc) from exc
    return StagingRecordModel.from_record(record)


@router.post(
    "/sessions/{session_id}/records/{staging_id}/rematch",
    response_model=StagingRecordModel,
    status_code=status.HTTP_200_OK,
)
def rematch_record(session_id: str, staging_id: str) -> StagingRecordModel:
    session = _get_session(session_id)
    try:
        record = session.rematch(staging_id)
    except StagingRecordNotFound as exc:
        raise _http_error(exc) from exc
    return StagingRecordModel.from_record(record)


@router.delete("/sessions/{session_id}/records/{staging_id}", status_code=status.HTTP_200_OK)
def remove_record(session_id: str, staging_id: str) -> dict:
    session = _get_session(session_id)
    try:
        session.remove(staging_id)
    except StagingRecordNotFound as exc:
        raise _http_error(exc) from exc
    return {"staging_id": staging_id, "removed": True, "remaining": len(session.store)}


@router.post("/sessions/{session_id}/rematch", response_model=StagingSessionResponse, status_code=status.HTTP_200_OK)
def rematch_all(session_id: str) -> StagingSessionResponse:
    session = _get_session(session_id)
    session.rematch_all()
    return _session_response(session)


@router.post(
    "/sessions/{session_id}/customers",
    response_model=RegisterCustomerResponse,
    status_code=status.HTTP_201_CREATED,
)
def register_customer(session_id: str, payload: RegisterCustomerRequest) -> RegisterCustomerResponse:
    session = _get_session(session_id)
    try:
        customer, linked = session.register_customer(
            payload.name,
            phone=payload.phone,
            region=payload.region,
            address=payload.address,
            name_en=payload.name_en,
        )
    except InvalidTransitionError as exc:
        raise _http_error(exc) from exc
    except Exception as exc:
        logging.error(f"Failed to register customer '{payload.name}': {exc}")
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail=f"Failed to register customer: {exc}",
        ) from exc
    load_customers.cache_clear()
    return RegisterCustomerResponse(
        customer=CustomerModel.from_customer(customer),
        linked=[StagingRecordModel.from_record(record) for record in linked],
    )


@router.post("/sessions/{session_id}/commit", response_model=CommitResponse, status_code=status.HTTP_200_OK)
def commit_session(session_id: str) -> CommitResponse:
    session = _get_session(session_id)
    stats = session.stats()
    try:
        result = session.commit()
    except (BackendNotConfiguredError, CommitInProgressError) as exc:
        raise _http_error(exc) from exc

    if settings.write_commit_reports:
        write_commit_report(session.session_id, result, stats)
    load_customers.cache_clear()
    remaining = len(session.store)
    if not remaining:
        _SESSIONS.pop(session.session_id, None)
    return CommitResponse.from_result(result, summarize_commit(result), remaining=remaining)
