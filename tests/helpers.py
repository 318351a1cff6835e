"""Test doubles and constants shared across test modules."""
from typing import List, Optional
from unittest.mock import Mock

import httpx

SYSTEM_PROMPT = "You are a helpful assistant for a print shop."
GREETING = "Hello, thanks for calling. How can I help?"
APOLOGY = "Sorry, I missed that."
FAREWELL = "Goodbye!"
BASE_URL = "https://voice.example.com"
RECORDING_URL = "https://api.twilio.com/2010-04-01/Accounts/AC1/Recordings/RE1"


def make_completion(content: Optional[str]) -> Mock:
    """Build a chat completion response like the OpenAI client returns."""
    return Mock(choices=[Mock(message=Mock(content=content))])


class FakeSleep:
    """Records requested delays instead of sleeping."""

    def __init__(self):
        self.delays: List[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


class RecordingStore:
    """In-memory stand-in for Twilio's eventually consistent recording store."""

    def __init__(self, available_after: Optional[int] = 0, content: bytes = b"RIFFfake-wav"):
        # Number of HEAD probes that miss before the recording shows up;
        # None means it never shows up.
        self.available_after = available_after
        self.content = content
        self.download_status = 200
        self.probes = 0
        self.downloads = 0

    def handler(self, request: httpx.Request) -> httpx.Response:
        if request.method == "HEAD":
            self.probes += 1
            if self.available_after is None or self.probes <= self.available_after:
                return httpx.Response(404)
            return httpx.Response(200)
        self.downloads += 1
        return httpx.Response(self.download_status, content=self.content)

    def client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(self.handler))
