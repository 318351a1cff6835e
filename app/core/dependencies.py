"""FastAPI dependencies."""
from functools import lru_cache

from app.core.config import settings
from app.db.database import AsyncSessionLocal
from app.services.call_flow.controller import CallFlowController
from app.services.call_session.registry import CallSessionRegistry, InMemoryCallSessionRegistry
from app.services.conversation.engine import ConversationEngine
from app.services.persistence.calls import DatabaseTranscriptExporter
from app.services.speech.artifacts import AudioArtifactStore, LocalAudioArtifactStore
from app.services.speech.recordings import RecordingPollPolicy, RecordingRetrievalService
from app.services.speech.stt import SpeechToTextService
from app.services.speech.tts import TextToSpeechService


@lru_cache
def get_session_registry() -> CallSessionRegistry:
    """Get the process-wide call session registry."""
    return InMemoryCallSessionRegistry()


@lru_cache
def get_artifact_store() -> AudioArtifactStore:
    """Get the shared audio artifact store."""
    return LocalAudioArtifactStore(settings.audio_dir)


@lru_cache
def get_call_flow_controller() -> CallFlowController:
    """Get the call flow controller wired to the OpenAI and Twilio collaborators."""
    recordings = RecordingRetrievalService(
        transcriber=SpeechToTextService(),
        policy=RecordingPollPolicy.from_settings(settings),
        auth=(settings.twilio_account_sid, settings.twilio_auth_token),
        language=settings.transcription_language,
    )
    return CallFlowController(
        registry=get_session_registry(),
        engine=ConversationEngine(),
        tts=TextToSpeechService(store=get_artifact_store()),
        recordings=recordings,
        exporter=DatabaseTranscriptExporter(AsyncSessionLocal),
    )
