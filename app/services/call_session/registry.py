"""Call session registry."""
import asyncio
import logging
from abc import ABC, abstractmethod
from contextlib import asynccontextmanager
from typing import AsyncIterator, Dict, List, Optional, Tuple

from app.core.exceptions import SessionNotFound
from app.services.call_session.models import CallSession, CallState, Role, Turn

logger = logging.getLogger(__name__)


class CallSessionRegistry(ABC):
    """Owns the mapping from call SID to conversation session."""

    @abstractmethod
    async def get_or_create(
        self, call_sid: str, system_prompt: str, greeting: str
    ) -> CallSession:
        """Return the session for a call, creating a seeded one if absent."""
        pass

    @abstractmethod
    async def exists(self, call_sid: str) -> bool:
        """Check whether a session exists for a call."""
        pass

    @abstractmethod
    async def append_turn(self, call_sid: str, turn: Turn) -> None:
        """Append a turn to an existing session's transcript."""
        pass

    @abstractmethod
    async def set_state(self, call_sid: str, state: CallState) -> None:
        """Record the call flow state of an existing session."""
        pass

    @abstractmethod
    async def destroy(self, call_sid: str) -> Optional[CallSession]:
        """Remove a session. Returns the removed session, if any."""
        pass

    @abstractmethod
    async def snapshot(self, call_sid: str) -> Tuple[Turn, ...]:
        """Get a copy of a session's transcript."""
        pass

    @abstractmethod
    async def active_call_sids(self) -> List[str]:
        """List calls with a live session."""
        pass

    @abstractmethod
    def serialize(self, call_sid: str):
        """Async context manager that serializes event handling per call."""
        pass


class InMemoryCallSessionRegistry(CallSessionRegistry):
    """Registry backed by a process-local dict.

    Sessions do not survive a restart.
    """

    def __init__(self):
        self._sessions: Dict[str, CallSession] = {}
        # call_sid -> (lock, number of tasks holding or waiting on it)
        self._locks: Dict[str, Tuple[asyncio.Lock, int]] = {}

    async def get_or_create(
        self, call_sid: str, system_prompt: str, greeting: str
    ) -> CallSession:
        # No await between the lookup and the insert, so creation is atomic
        # on the event loop.
        session = self._sessions.get(call_sid)
        if session is None:
            session = CallSession(
                call_sid=call_sid,
                transcript=[
                    Turn(role=Role.SYSTEM, content=system_prompt),
                    Turn(role=Role.ASSISTANT, content=greeting),
                ],
            )
            self._sessions[call_sid] = session
            logger.info(f"[SESSION REGISTRY] Created session - CallSid: {call_sid}")
        return session

    async def exists(self, call_sid: str) -> bool:
        return call_sid in self._sessions

    async def append_turn(self, call_sid: str, turn: Turn) -> None:
        self._require(call_sid).append(turn)

    async def set_state(self, call_sid: str, state: CallState) -> None:
        self._require(call_sid).state = state

    async def destroy(self, call_sid: str) -> Optional[CallSession]:
        session = self._sessions.pop(call_sid, None)
        if session is not None:
            logger.info(f"[SESSION REGISTRY] Destroyed session - CallSid: {call_sid}")
        return session

    async def snapshot(self, call_sid: str) -> Tuple[Turn, ...]:
        return self._require(call_sid).transcript

    async def active_call_sids(self) -> List[str]:
        return list(self._sessions)

    @asynccontextmanager
    async def serialize(self, call_sid: str) -> AsyncIterator[None]:
        lock, users = self._locks.get(call_sid, (None, 0))
        if lock is None:
            lock = asyncio.Lock()
        self._locks[call_sid] = (lock, users + 1)
        try:
            async with lock:
                yield
        finally:
            lock, users = self._locks[call_sid]
            if users <= 1:
                del self._locks[call_sid]
            else:
                self._locks[call_sid] = (lock, users - 1)

    def _require(self, call_sid: str) -> CallSession:
        session = self._sessions.get(call_sid)
        if session is None:
            raise SessionNotFound(call_sid)
        return session
