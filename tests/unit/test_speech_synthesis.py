"""Unit tests for speech synthesis and artifact storage."""
import pytest
from unittest.mock import AsyncMock

from app.core.exceptions import SynthesisError
from app.services.speech.tts import TextToSpeechService
from tests.helpers import BASE_URL


@pytest.fixture
def tts(artifact_store, mock_openai):
    return TextToSpeechService(store=artifact_store, client=mock_openai, voice="nova", model="tts-1")


class TestSynthesize:
    """Test text-to-speech synthesis."""

    @pytest.mark.asyncio
    async def test_writes_artifact_and_builds_url(self, tts, artifact_store):
        """Test synthesized audio is stored and addressable from the serving host."""
        artifact = await tts.synthesize("Hello there", BASE_URL)

        assert artifact.path.read_bytes() == b"ID3fake-mp3"
        assert artifact.url == f"{BASE_URL}/audio/{artifact.id}.mp3"
        assert artifact_store.path_for(artifact.filename) == artifact.path

    @pytest.mark.asyncio
    async def test_calls_collaborator_once_with_full_text(self, tts, mock_openai):
        """Test the whole utterance goes to TTS in a single request."""
        text = "First sentence. Second sentence. Third sentence."

        await tts.synthesize(text, BASE_URL)

        mock_openai.audio.speech.create.assert_awaited_once()
        kwargs = mock_openai.audio.speech.create.call_args.kwargs
        assert kwargs["input"] == text
        assert kwargs["voice"] == "nova"
        assert kwargs["model"] == "tts-1"

    @pytest.mark.asyncio
    async def test_identical_text_is_not_deduplicated(self, tts):
        """Test the same text twice yields two distinct artifacts."""
        first = await tts.synthesize("Same words", BASE_URL)
        second = await tts.synthesize("Same words", BASE_URL)

        assert first.id != second.id
        assert first.url != second.url
        assert first.path.exists()
        assert second.path.exists()

    @pytest.mark.asyncio
    async def test_trailing_slash_in_base_url(self, tts):
        """Test the artifact URL has no doubled slash."""
        artifact = await tts.synthesize("Hi", BASE_URL + "/")

        assert artifact.url == f"{BASE_URL}/audio/{artifact.filename}"

    @pytest.mark.asyncio
    async def test_collaborator_failure(self, tts, mock_openai):
        """Test TTS errors surface as SynthesisError."""
        mock_openai.audio.speech.create = AsyncMock(side_effect=RuntimeError("down"))

        with pytest.raises(SynthesisError):
            await tts.synthesize("Hello", BASE_URL)

    @pytest.mark.asyncio
    async def test_empty_audio(self, tts, mock_openai):
        """Test an empty audio payload surfaces as SynthesisError."""
        mock_openai.audio.speech.create.return_value.content = b""

        with pytest.raises(SynthesisError):
            await tts.synthesize("Hello", BASE_URL)


class TestArtifactStore:
    """Test the local artifact store."""

    @pytest.mark.asyncio
    async def test_listeners_notified_on_save(self, artifact_store):
        """Test the creation hook fires for every stored artifact."""
        created = []
        artifact_store.add_listener(created.append)

        artifact = await artifact_store.save(b"audio")

        assert created == [artifact]

    @pytest.mark.asyncio
    async def test_failing_listener_does_not_break_save(self, artifact_store):
        """Test a broken hook is logged, not raised."""
        def broken(artifact):
            raise RuntimeError("hook failed")

        artifact_store.add_listener(broken)

        artifact = await artifact_store.save(b"audio")

        assert artifact.path.exists()

    def test_path_for_rejects_traversal(self, artifact_store):
        """Test only bare filenames resolve."""
        assert artifact_store.path_for("../secrets.mp3") is None
        assert artifact_store.path_for("missing.mp3") is None
