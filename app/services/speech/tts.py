"""Text-to-speech service."""
import logging
from typing import Optional
from openai import AsyncOpenAI

from app.core.config import settings
from app.core.exceptions import SynthesisError
from app.services.speech.artifacts import AudioArtifact, AudioArtifactStore

logger = logging.getLogger(__name__)


class TextToSpeechService:
    """Renders assistant utterances into playable audio artifacts."""

    def __init__(
        self,
        store: AudioArtifactStore,
        client: Optional[AsyncOpenAI] = None,
        voice: Optional[str] = None,
        model: Optional[str] = None,
        audio_format: Optional[str] = None,
    ):
        self.store = store
        self.client = client or AsyncOpenAI(api_key=settings.openai_api_key)
        self.voice = voice or settings.tts_voice
        self.model = model or settings.tts_model
        self.audio_format = audio_format or settings.tts_format

    async def synthesize_speech(self, text: str) -> bytes:
        """
        Synthesize speech from text using OpenAI TTS.

        Args:
            text: Full utterance to convert to speech

        Returns:
            Audio bytes in the configured format
        """
        try:
            response = await self.client.audio.speech.create(
                model=self.model,
                voice=self.voice,
                input=text,
                response_format=self.audio_format,
            )
            return response.content
        except Exception as e:
            raise SynthesisError(f"TTS synthesis failed: {str(e)}") from e

    async def synthesize(self, text: str, base_url: str) -> AudioArtifact:
        """
        Synthesize an utterance and store it as a new artifact.

        Identical text is synthesized again; artifacts are never shared.

        Args:
            text: Text to speak
            base_url: Serving host of the originating request

        Returns:
            Stored artifact with an absolute URL Twilio can fetch
        """
        audio = await self.synthesize_speech(text)
        if not audio:
            raise SynthesisError("TTS synthesis returned no audio")

        try:
            artifact = await self.store.save(audio, extension=self.audio_format)
        except OSError as e:
            raise SynthesisError(f"Storing synthesized audio failed: {str(e)}") from e

        artifact = artifact.with_url(base_url)
        logger.info(
            f"[TTS] Synthesized artifact - Id: {artifact.id}, "
            f"Text length: {len(text)}, Audio bytes: {len(audio)}"
        )
        return artifact
