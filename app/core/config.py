"""Application configuration."""
from typing import Literal, Optional
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # OpenAI
    openai_api_key: str
    chat_model: str = "gpt-4o-mini"
    tts_model: str = "tts-1"
    tts_voice: str = "alloy"
    tts_format: str = "mp3"
    transcription_model: str = "whisper-1"
    transcription_language: str = "en"

    # Twilio
    twilio_account_sid: str
    twilio_auth_token: str
    twilio_phone_number: Optional[str] = None
    say_voice: str = "Polly.Joanna-Neural"
    speech_language: str = "en-US"

    # Database
    database_url: str = "sqlite+aiosqlite:///./calls.db"

    # Conversation
    business_name: str = "our print shop"
    system_prompt: Optional[str] = None
    greeting: str = "Hello, thanks for calling! How can I help you today?"
    apology: str = "I'm sorry, I didn't get that. Let's try again."
    farewell: str = "Thank you for calling. Goodbye!"
    max_conversation_turns: int = 20  # 0 disables the limit

    # Input capture
    input_mode: Literal["speech", "recording"] = "speech"
    gather_timeout: int = 5  # seconds of silence before Twilio gives up
    record_timeout: int = 3
    record_max_length: int = 30

    # Recording availability poll
    recording_poll_interval_ms: int = 100
    recording_poll_max_attempts: int = 20
    recording_poll_backoff: float = 1.0  # 1.0 keeps the interval fixed
    recording_poll_max_interval_ms: int = 250  # cap on a single backoff delay

    # Audio artifacts
    audio_dir: str = "generated_audio"

    # Server
    base_url: Optional[str] = None
    host: str = "0.0.0.0"
    port: int = 8000

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )


settings = Settings()
