"""Call log and live session API endpoints."""
import logging
from typing import List
from fastapi import APIRouter, Depends, Request, HTTPException, Query
from pydantic import BaseModel, ConfigDict
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.dependencies import get_session_registry
from app.core.exceptions import SessionNotFound
from app.db.database import get_db
from app.db.models import CallLog
from app.services.call_session.registry import CallSessionRegistry
from app.services.persistence.calls import CallLogService

router = APIRouter()
logger = logging.getLogger(__name__)


class TurnResponse(BaseModel):
    """Transcript turn response model."""
    role: str
    content: str


class CallLogResponse(BaseModel):
    """Call log response model."""
    model_config = ConfigDict(from_attributes=True)

    id: int
    call_sid: str
    started_at: str
    ended_at: str | None = None
    status: str
    turn_count: int
    transcript: List[TurnResponse] = []


class SessionResponse(BaseModel):
    """Live session response model."""
    call_sid: str
    transcript: List[TurnResponse]


def _to_response(call: CallLog) -> CallLogResponse:
    return CallLogResponse(
        id=call.id,
        call_sid=call.call_sid,
        started_at=call.started_at.isoformat() if call.started_at else "",
        ended_at=call.ended_at.isoformat() if call.ended_at else None,
        status=call.status,
        turn_count=call.turn_count,
        transcript=[TurnResponse(**turn) for turn in call.transcript or []],
    )


@router.get("/api/calls", response_model=List[CallLogResponse])
async def list_calls(
    request: Request,
    limit: int = Query(100, ge=1, le=500),
    db: AsyncSession = Depends(get_db),
):
    """Get exported transcripts of finished calls, newest first."""
    logger.info(
        f"[CALLS] List request received - limit: {limit}, "
        f"Client: {request.client.host if request.client else 'unknown'}"
    )
    calls = await CallLogService(db).list_calls(limit=limit)
    logger.info(f"[CALLS] Found {len(calls)} call logs")
    return [_to_response(call) for call in calls]


@router.get("/api/calls/{call_sid}", response_model=CallLogResponse)
async def get_call(call_sid: str, db: AsyncSession = Depends(get_db)):
    """Get the exported transcript of one finished call."""
    call = await CallLogService(db).get_call_by_sid(call_sid)
    if call is None:
        raise HTTPException(status_code=404, detail=f"Call {call_sid} not found")
    return _to_response(call)


@router.get("/api/sessions/{call_sid}", response_model=SessionResponse)
async def get_session(
    call_sid: str,
    registry: CallSessionRegistry = Depends(get_session_registry),
):
    """Get the live transcript of a call in progress."""
    try:
        transcript = await registry.snapshot(call_sid)
    except SessionNotFound:
        raise HTTPException(status_code=404, detail=f"No active session for {call_sid}")
    return SessionResponse(
        call_sid=call_sid,
        transcript=[TurnResponse(**turn.to_message()) for turn in transcript],
    )
