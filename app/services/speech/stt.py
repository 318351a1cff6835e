"""Speech-to-text service."""
import logging
from typing import Optional
from openai import AsyncOpenAI

from app.core.config import settings
from app.core.exceptions import TranscriptionError

logger = logging.getLogger(__name__)


class SpeechToTextService:
    """Service for converting speech to text."""

    def __init__(
        self,
        client: Optional[AsyncOpenAI] = None,
        model: Optional[str] = None,
        language: Optional[str] = None,
    ):
        self.client = client or AsyncOpenAI(api_key=settings.openai_api_key)
        self.model = model or settings.transcription_model
        self.language = language or settings.transcription_language

    async def transcribe_audio(
        self, audio_data: bytes, format: str = "wav", language: Optional[str] = None
    ) -> str:
        """
        Transcribe audio to text using OpenAI Whisper.

        Args:
            audio_data: Raw audio bytes
            format: Audio format (wav, mp3, etc.)
            language: ISO-639-1 hint, defaults to the configured language

        Returns:
            Transcribed text
        """
        try:
            transcript = await self.client.audio.transcriptions.create(
                model=self.model,
                file=(f"recording.{format}", audio_data, f"audio/{format}"),
                language=language or self.language,
            )
        except Exception as e:
            raise TranscriptionError(f"Transcription failed: {str(e)}") from e

        text = (transcript.text or "").strip()
        if not text:
            raise TranscriptionError("Transcription returned no text")
        return text
