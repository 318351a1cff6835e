"""Call log persistence service."""
import logging
from abc import ABC, abstractmethod
from datetime import datetime
from typing import List, Optional
from sqlalchemy import desc, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.db.models import CallLog
from app.services.call_session.models import CallSession

logger = logging.getLogger(__name__)


class CallLogService:
    """Service for persisting finished call transcripts."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def record_call(
        self,
        session: CallSession,
        status: str,
        ended_at: Optional[datetime] = None,
    ) -> CallLog:
        """Store a call's transcript, updating the existing record if present."""
        transcript = [turn.to_message() for turn in session.transcript]

        call_log = await self.get_call_by_sid(session.call_sid)
        if call_log is None:
            call_log = CallLog(call_sid=session.call_sid, started_at=session.created_at)
            self.db.add(call_log)

        call_log.status = status
        call_log.ended_at = ended_at or datetime.utcnow()
        call_log.turn_count = len(transcript)
        call_log.transcript = transcript

        await self.db.commit()
        await self.db.refresh(call_log)
        return call_log

    async def get_call_by_sid(self, call_sid: str) -> Optional[CallLog]:
        """Get call log by Twilio call SID."""
        result = await self.db.execute(
            select(CallLog).where(CallLog.call_sid == call_sid)
        )
        return result.scalar_one_or_none()

    async def list_calls(self, limit: int = 100) -> List[CallLog]:
        """Get the most recent call logs."""
        result = await self.db.execute(
            select(CallLog).order_by(desc(CallLog.started_at)).limit(limit)
        )
        return list(result.scalars().all())


class TranscriptExporter(ABC):
    """Receives the full transcript of every call that ends."""

    @abstractmethod
    async def export(self, session: CallSession, status: str) -> None:
        pass


class DatabaseTranscriptExporter(TranscriptExporter):
    """Writes finished calls to the call_logs table."""

    def __init__(self, session_factory: async_sessionmaker):
        self.session_factory = session_factory

    async def export(self, session: CallSession, status: str) -> None:
        async with self.session_factory() as db:
            service = CallLogService(db)
            if await service.get_call_by_sid(session.call_sid) is not None:
                # An archived call is never overwritten by a late re-created session.
                logger.warning(
                    f"[CALL LOG] Call already archived, skipping export - "
                    f"CallSid: {session.call_sid}, Status: {status}"
                )
                return
            call_log = await service.record_call(session, status)
        logger.info(
            f"[CALL LOG] Exported transcript - CallSid: {session.call_sid}, "
            f"Status: {status}, Turns: {call_log.turn_count}"
        )
