"""Unit tests for call log persistence."""
import pytest
from datetime import datetime, timedelta

from app.services.call_session.models import CallSession, Role, Turn
from app.services.persistence.calls import CallLogService, DatabaseTranscriptExporter
from tests.helpers import GREETING, SYSTEM_PROMPT


def make_session(call_sid: str, *utterances: str) -> CallSession:
    session = CallSession(
        call_sid,
        [
            Turn(role=Role.SYSTEM, content=SYSTEM_PROMPT),
            Turn(role=Role.ASSISTANT, content=GREETING),
        ],
    )
    for index, text in enumerate(utterances):
        role = Role.USER if index % 2 == 0 else Role.ASSISTANT
        session.append(Turn(role=role, content=text))
    return session


class TestCallLogService:
    """Test call log service."""

    @pytest.mark.asyncio
    async def test_record_call(self, test_db):
        """Test a finished call is stored with its full transcript."""
        service = CallLogService(test_db)
        session = make_session("CA1", "I want 50 posters", "What size?")

        call = await service.record_call(session, "completed")

        assert call.id is not None
        assert call.call_sid == "CA1"
        assert call.status == "completed"
        assert call.turn_count == 4
        assert call.started_at == session.created_at
        assert call.ended_at is not None
        assert call.transcript[0] == {"role": "system", "content": SYSTEM_PROMPT}
        assert call.transcript[2] == {"role": "user", "content": "I want 50 posters"}

    @pytest.mark.asyncio
    async def test_record_call_twice_updates(self, test_db):
        """Test recording the same call SID again updates the existing row."""
        service = CallLogService(test_db)
        first = await service.record_call(make_session("CA1"), "completed")

        second = await service.record_call(make_session("CA1", "hello", "hi"), "failed")

        assert second.id == first.id
        assert second.status == "failed"
        assert second.turn_count == 4
        assert len(await service.list_calls()) == 1

    @pytest.mark.asyncio
    async def test_get_call_by_sid_missing(self, test_db):
        """Test an unknown call SID returns None."""
        service = CallLogService(test_db)

        assert await service.get_call_by_sid("missing") is None

    @pytest.mark.asyncio
    async def test_list_calls_newest_first(self, test_db):
        """Test calls are listed by start time, newest first, up to the limit."""
        service = CallLogService(test_db)
        now = datetime.utcnow()
        for offset, call_sid in enumerate(["CA1", "CA2", "CA3"]):
            session = make_session(call_sid)
            session.created_at = now + timedelta(minutes=offset)
            await service.record_call(session, "completed")

        calls = await service.list_calls(limit=2)

        assert [call.call_sid for call in calls] == ["CA3", "CA2"]


class TestDatabaseTranscriptExporter:
    """Test the exporter used on call end."""

    @pytest.mark.asyncio
    async def test_export_writes_call_log(self, test_session_factory, test_db):
        exporter = DatabaseTranscriptExporter(test_session_factory)

        await exporter.export(make_session("CA1", "hello", "hi there"), "completed")

        call = await CallLogService(test_db).get_call_by_sid("CA1")
        assert call is not None
        assert call.turn_count == 4
        assert call.transcript[-1] == {"role": "assistant", "content": "hi there"}

    @pytest.mark.asyncio
    async def test_export_keeps_archived_call(self, test_session_factory, test_db):
        """Test a re-created session for an ended call does not overwrite its log."""
        exporter = DatabaseTranscriptExporter(test_session_factory)
        await exporter.export(make_session("CA1", "hello", "hi there"), "completed")

        await exporter.export(make_session("CA1", "late input", "reply"), "failed")

        call = await CallLogService(test_db).get_call_by_sid("CA1")
        assert call.status == "completed"
        assert call.transcript[2] == {"role": "user", "content": "hello"}
