"""Shared test fixtures and configuration."""
import pytest
import os
from typing import Callable
from unittest.mock import Mock, AsyncMock

import httpx
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.pool import StaticPool

# Set test environment variables before importing app
os.environ.setdefault("OPENAI_API_KEY", "test-key")
os.environ.setdefault("TWILIO_ACCOUNT_SID", "test-sid")
os.environ.setdefault("TWILIO_AUTH_TOKEN", "test-token")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("BUSINESS_NAME", "Test Print Shop")

from app.main import app
from app.db.database import Base, get_db
from app.core.dependencies import (
    get_artifact_store,
    get_call_flow_controller,
    get_session_registry,
)
from app.services.call_flow.controller import CallFlowController
from app.services.call_flow.twiml import TwiMLBuilder
from app.services.call_session.registry import InMemoryCallSessionRegistry
from app.services.conversation.engine import ConversationEngine
from app.services.persistence.calls import DatabaseTranscriptExporter
from app.services.speech.artifacts import LocalAudioArtifactStore
from app.services.speech.recordings import RecordingPollPolicy, RecordingRetrievalService
from app.services.speech.stt import SpeechToTextService
from app.services.speech.tts import TextToSpeechService
from tests.helpers import (
    APOLOGY,
    FAREWELL,
    GREETING,
    SYSTEM_PROMPT,
    FakeSleep,
    RecordingStore,
    make_completion,
)


# Test database URL (in-memory SQLite)
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


@pytest.fixture
async def test_db_engine():
    """Create test database engine."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    # Create all tables
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    # Drop all tables
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest.fixture
def test_session_factory(test_db_engine):
    """Session factory bound to the test database."""
    return async_sessionmaker(
        test_db_engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )


@pytest.fixture
async def test_db(test_session_factory):
    """Create test database session."""
    async with test_session_factory() as session:
        yield session


@pytest.fixture
def mock_openai():
    """Mock OpenAI API client covering chat, TTS and transcription."""
    mock_client = Mock()
    mock_client.chat.completions.create = AsyncMock(
        return_value=make_completion("Sure, what size posters would you like?")
    )
    mock_client.audio.speech.create = AsyncMock(return_value=Mock(content=b"ID3fake-mp3"))
    mock_client.audio.transcriptions.create = AsyncMock(
        return_value=Mock(text="I want 50 posters")
    )
    return mock_client


@pytest.fixture
def fake_sleep():
    return FakeSleep()


@pytest.fixture
def recording_store():
    return RecordingStore()


@pytest.fixture
def artifact_store(tmp_path):
    return LocalAudioArtifactStore(str(tmp_path / "audio"))


@pytest.fixture
def registry():
    return InMemoryCallSessionRegistry()


@pytest.fixture
def poll_policy():
    return RecordingPollPolicy(interval=0.1, max_attempts=5)


@pytest.fixture
def build_controller(
    registry, artifact_store, mock_openai, recording_store, fake_sleep, poll_policy
) -> Callable[..., CallFlowController]:
    """Factory for a controller wired to mocked collaborators."""

    def _build(input_mode: str = "speech", exporter=None, max_turns: int = 0) -> CallFlowController:
        recordings = RecordingRetrievalService(
            transcriber=SpeechToTextService(client=mock_openai),
            policy=poll_policy,
            http_client=recording_store.client(),
            sleep=fake_sleep,
        )
        return CallFlowController(
            registry=registry,
            engine=ConversationEngine(client=mock_openai, model="test-model"),
            tts=TextToSpeechService(store=artifact_store, client=mock_openai),
            recordings=recordings,
            twiml=TwiMLBuilder(input_mode=input_mode, say_voice="alice", language="en-US"),
            exporter=exporter,
            system_prompt=SYSTEM_PROMPT,
            greeting=GREETING,
            apology=APOLOGY,
            farewell=FAREWELL,
            max_turns=max_turns,
        )

    return _build


@pytest.fixture
def controller(build_controller):
    return build_controller()


@pytest.fixture
def override_get_db(test_db):
    """Override get_db dependency with test database."""
    async def _override_get_db():
        yield test_db
    return _override_get_db


@pytest.fixture
async def test_client(
    build_controller, registry, artifact_store, override_get_db, test_session_factory
):
    """Create an async client for the FastAPI app with overrides."""
    controller = build_controller(exporter=DatabaseTranscriptExporter(test_session_factory))

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_call_flow_controller] = lambda: controller
    app.dependency_overrides[get_session_registry] = lambda: registry
    app.dependency_overrides[get_artifact_store] = lambda: artifact_store

    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://testserver") as client:
        yield client

    # Clear overrides
    app.dependency_overrides.clear()
