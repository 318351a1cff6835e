"""Call flow controller.

Turns independent Twilio webhooks into one conversation per call:

    NEW -> AWAITING_INPUT -> PROCESSING -> RESPONDING -> AWAITING_INPUT | ENDED

Every handler runs under the registry's per-call lock, and every component
failure inside a turn goes through `_turn_failed`, which always produces
playable TwiML.
"""
import logging
from typing import Optional

from app.core.config import settings
from app.core.exceptions import CallTurnError, MissingInput, SynthesisError
from app.services.call_flow.twiml import TwiMLBuilder, Utterance
from app.services.call_session.models import CallSession, CallState, Role, Turn
from app.services.call_session.registry import CallSessionRegistry
from app.services.conversation.engine import ConversationEngine
from app.services.conversation.prompt import get_greeting, get_system_prompt
from app.services.persistence.calls import TranscriptExporter
from app.services.speech.recordings import RecordingRetrievalService
from app.services.speech.tts import TextToSpeechService

logger = logging.getLogger(__name__)

INCOMING_PATH = "/webhooks/voice/incoming"
INPUT_PATH = "/webhooks/voice/input"

TERMINAL_CALL_STATUSES = {"completed", "failed", "busy", "no-answer", "canceled"}


class CallFlowController:
    """Orchestrates the conversation loop for every active call."""

    def __init__(
        self,
        registry: CallSessionRegistry,
        engine: ConversationEngine,
        tts: TextToSpeechService,
        recordings: RecordingRetrievalService,
        twiml: Optional[TwiMLBuilder] = None,
        exporter: Optional[TranscriptExporter] = None,
        system_prompt: Optional[str] = None,
        greeting: Optional[str] = None,
        apology: Optional[str] = None,
        farewell: Optional[str] = None,
        max_turns: Optional[int] = None,
    ):
        self.registry = registry
        self.engine = engine
        self.tts = tts
        self.recordings = recordings
        self.twiml = twiml or TwiMLBuilder()
        self.exporter = exporter
        self.system_prompt = system_prompt or get_system_prompt()
        self.greeting = greeting or get_greeting()
        self.apology = apology or settings.apology
        self.farewell = farewell or settings.farewell
        self.max_turns = settings.max_conversation_turns if max_turns is None else max_turns

    async def handle_incoming(self, call_sid: str, base_url: str) -> str:
        """
        Handle the call-start webhook.

        New calls get a session and a spoken greeting. Calls that already have
        a session (redirected back here after a failed turn) only capture input
        again, without re-synthesizing the greeting.
        """
        async with self.registry.serialize(call_sid):
            if await self.registry.exists(call_sid):
                logger.info(f"[CALL FLOW] Re-entering capture for existing call - CallSid: {call_sid}")
                await self.registry.set_state(call_sid, CallState.AWAITING_INPUT)
                return self.twiml.speak_and_capture(None, self._url(base_url, INPUT_PATH))

            await self._start_session(call_sid)
            greeting = await self._render(self.greeting, base_url)
            await self.registry.set_state(call_sid, CallState.AWAITING_INPUT)
            return self.twiml.speak_and_capture(greeting, self._url(base_url, INPUT_PATH))

    async def handle_input(
        self,
        call_sid: str,
        base_url: str,
        speech_result: Optional[str] = None,
        recording_url: Optional[str] = None,
    ) -> str:
        """
        Handle a captured-input webhook (Gather speech or Record action).

        The user and assistant turns are appended together once the reply is
        confirmed, so a failed turn leaves the transcript untouched.

        Input for an unknown call starts a fresh session. If the call already
        ended, Twilio sends no further status for it, so that session lives
        until the process restarts; a later terminal status for it is not
        exported over the archived call log.
        """
        async with self.registry.serialize(call_sid):
            if not await self.registry.exists(call_sid):
                # Destroyed or never seen: start over with a fresh session.
                logger.warning(
                    f"[CALL FLOW] Input for unknown call, reinitializing session - CallSid: {call_sid}"
                )
                await self._start_session(call_sid)

            await self.registry.set_state(call_sid, CallState.PROCESSING)

            try:
                user_text = await self._resolve_input(speech_result, recording_url)
                transcript = await self.registry.snapshot(call_sid)
                reply = await self.engine.respond(transcript, user_text)
                await self.registry.append_turn(call_sid, Turn(role=Role.USER, content=user_text))
                await self.registry.append_turn(call_sid, Turn(role=Role.ASSISTANT, content=reply.text))
            except CallTurnError as e:
                return await self._turn_failed(call_sid, base_url, e)

            await self.registry.set_state(call_sid, CallState.RESPONDING)
            utterance = await self._render(reply.text, base_url)

            if self._turn_limit_reached(reply.transcript):
                logger.info(f"[CALL FLOW] Turn limit reached, ending call - CallSid: {call_sid}")
                await self.registry.append_turn(call_sid, Turn(role=Role.ASSISTANT, content=self.farewell))
                farewell = await self._render(self.farewell, base_url)
                await self.registry.set_state(call_sid, CallState.ENDED)
                return self.twiml.speak_and_hangup([utterance, farewell])

            await self.registry.set_state(call_sid, CallState.AWAITING_INPUT)
            return self.twiml.speak_and_capture(utterance, self._url(base_url, INPUT_PATH))

    async def handle_status(self, call_sid: str, status: str) -> Optional[CallSession]:
        """
        Handle a call-status webhook.

        Terminal statuses export the transcript and destroy the session.

        Returns:
            The ended session, or None if nothing was ended
        """
        if status not in TERMINAL_CALL_STATUSES:
            logger.debug(f"[CALL FLOW] Non-terminal status ignored - CallSid: {call_sid}, Status: {status}")
            return None

        async with self.registry.serialize(call_sid):
            if not await self.registry.exists(call_sid):
                logger.info(f"[CALL FLOW] Status for unknown call ignored - CallSid: {call_sid}, Status: {status}")
                return None

            await self.registry.set_state(call_sid, CallState.ENDED)
            ended = await self.registry.destroy(call_sid)

        logger.info(
            f"[CALL FLOW] Call ended - CallSid: {call_sid}, Status: {status}, "
            f"Turns: {len(ended.transcript)}"
        )
        for turn in ended.transcript[1:]:
            logger.info(f"[TRANSCRIPT] {call_sid} {turn.role.value}: {turn.content}")

        if self.exporter is not None:
            try:
                await self.exporter.export(ended, status)
            except Exception as e:
                logger.error(
                    f"[CALL FLOW] Transcript export failed - CallSid: {call_sid}, "
                    f"Error: {type(e).__name__}: {str(e)}",
                    exc_info=True,
                )
        return ended

    def fallback_twiml(self, base_url: str) -> str:
        """TwiML for failures outside the turn error taxonomy."""
        return self.twiml.apology_and_redirect(self.apology, self._url(base_url, INCOMING_PATH))

    async def _turn_failed(self, call_sid: str, base_url: str, error: CallTurnError) -> str:
        logger.warning(
            f"[CALL FLOW] Turn failed, reprompting - CallSid: {call_sid}, "
            f"Error: {type(error).__name__}: {str(error)}"
        )
        if await self.registry.exists(call_sid):
            await self.registry.set_state(call_sid, CallState.AWAITING_INPUT)
        return self.fallback_twiml(base_url)

    async def _start_session(self, call_sid: str) -> CallSession:
        return await self.registry.get_or_create(call_sid, self.system_prompt, self.greeting)

    async def _resolve_input(
        self, speech_result: Optional[str], recording_url: Optional[str]
    ) -> str:
        if speech_result and speech_result.strip():
            return speech_result.strip()
        if recording_url:
            return await self.recordings.resolve_to_text(recording_url)
        raise MissingInput("Input event carried neither speech nor a recording")

    async def _render(self, text: str, base_url: str) -> Utterance:
        try:
            artifact = await self.tts.synthesize(text, base_url)
        except SynthesisError as e:
            logger.warning(
                f"[CALL FLOW] Synthesis failed, falling back to Say - Error: {str(e)}"
            )
            return Utterance(text=text)
        return Utterance(text=text, audio_url=artifact.url)

    def _turn_limit_reached(self, transcript) -> bool:
        if not self.max_turns:
            return False
        user_turns = sum(1 for turn in transcript if turn.role == Role.USER)
        return user_turns >= self.max_turns

    @staticmethod
    def _url(base_url: str, path: str) -> str:
        return f"{base_url.rstrip('/')}{path}"
