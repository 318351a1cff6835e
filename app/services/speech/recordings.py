"""Twilio recording retrieval.

Twilio fires the Record action webhook before the recording is always
fetchable, so retrieval first polls for availability under a bounded
policy, then downloads the audio and hands it to transcription.
"""
import asyncio
import io
import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import AsyncIterator, Awaitable, Callable, Optional, Tuple

import httpx

from app.core.config import Settings
from app.core.exceptions import DownloadError, RecordingUnavailable
from app.services.speech.stt import SpeechToTextService

logger = logging.getLogger(__name__)

Sleep = Callable[[float], Awaitable[None]]


@dataclass(frozen=True)
class RecordingPollPolicy:
    """Bounded retry policy for the availability poll.

    With backoff == 1.0 the interval is fixed. Larger values grow the wait
    geometrically and require max_interval, so the total wait stays bounded
    by max_attempts * max_interval.
    """

    interval: float = 0.1
    max_attempts: int = 20
    backoff: float = 1.0
    max_interval: Optional[float] = None

    def __post_init__(self):
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        if self.interval < 0:
            raise ValueError("interval must not be negative")
        if self.backoff < 1.0:
            raise ValueError("backoff must be >= 1.0")
        if self.backoff > 1.0 and self.max_interval is None:
            raise ValueError("backoff > 1.0 requires max_interval")
        if self.max_interval is not None and self.max_interval < 0:
            raise ValueError("max_interval must not be negative")

    @classmethod
    def from_settings(cls, settings: Settings) -> "RecordingPollPolicy":
        return cls(
            interval=settings.recording_poll_interval_ms / 1000,
            max_attempts=settings.recording_poll_max_attempts,
            backoff=settings.recording_poll_backoff,
            max_interval=settings.recording_poll_max_interval_ms / 1000,
        )

    def delay_after(self, attempt: int) -> float:
        """Seconds to wait after the given (1-based) failed probe."""
        delay = self.interval * (self.backoff ** (attempt - 1))
        if self.max_interval is not None:
            delay = min(delay, self.max_interval)
        return delay

    @property
    def max_total_wait(self) -> float:
        """Upper bound on time spent sleeping during one poll."""
        return sum(self.delay_after(n) for n in range(1, self.max_attempts))

    def is_available(self, status_code: int) -> bool:
        """Whether a probe response means the recording can be fetched."""
        return 200 <= status_code < 300


@dataclass
class RecordingJob:
    """One retrieval attempt for a single recording."""

    source_url: str
    policy: RecordingPollPolicy
    attempts: int = 0

    @property
    def exhausted(self) -> bool:
        return self.attempts >= self.policy.max_attempts


class RecordingRetrievalService:
    """Resolves a Twilio recording URL to transcribed text."""

    def __init__(
        self,
        transcriber: SpeechToTextService,
        policy: Optional[RecordingPollPolicy] = None,
        http_client: Optional[httpx.AsyncClient] = None,
        auth: Optional[Tuple[str, str]] = None,
        language: Optional[str] = None,
        audio_format: str = "wav",
        sleep: Sleep = asyncio.sleep,
    ):
        self.transcriber = transcriber
        self.policy = policy or RecordingPollPolicy()
        self.auth = auth
        self.language = language
        self.audio_format = audio_format
        self._http = http_client
        self._sleep = sleep

    async def resolve_to_text(self, recording_url: str) -> str:
        """
        Wait for a recording to become available, download and transcribe it.

        Args:
            recording_url: RecordingUrl from the Twilio webhook

        Returns:
            Transcribed caller speech

        Raises:
            RecordingUnavailable: Poll attempts exhausted, nothing downloaded
            DownloadError: The recording could not be fetched
            TranscriptionError: The transcription service failed
        """
        job = RecordingJob(source_url=recording_url, policy=self.policy)

        async with self._client() as client:
            await self.wait_until_available(client, job)
            audio = await self.download(client, recording_url)

        logger.info(
            f"[RECORDING] Downloaded recording - Url: {recording_url}, "
            f"Bytes: {len(audio)}, Probes: {job.attempts}"
        )
        text = await self.transcriber.transcribe_audio(
            audio, format=self.audio_format, language=self.language
        )
        logger.info(f"[RECORDING] Transcribed recording: '{text[:200]}'")
        return text

    async def wait_until_available(
        self, client: httpx.AsyncClient, job: RecordingJob
    ) -> None:
        """Probe until the recording is fetchable or the policy is exhausted."""
        while True:
            job.attempts += 1
            if await self._probe(client, job.source_url):
                logger.debug(
                    f"[RECORDING] Available after {job.attempts} probe(s) - Url: {job.source_url}"
                )
                return

            if job.exhausted:
                logger.warning(
                    f"[RECORDING] Gave up after {job.attempts} probes - Url: {job.source_url}"
                )
                raise RecordingUnavailable(job.source_url, job.attempts)

            await self._sleep(job.policy.delay_after(job.attempts))

    async def download(self, client: httpx.AsyncClient, recording_url: str) -> bytes:
        """Stream a recording into memory."""
        buffer = io.BytesIO()
        try:
            async with client.stream(
                "GET", recording_url, auth=self.auth, follow_redirects=True
            ) as response:
                response.raise_for_status()
                async for chunk in response.aiter_bytes():
                    buffer.write(chunk)
        except httpx.HTTPError as e:
            raise DownloadError(f"Recording download failed: {str(e)}") from e

        audio = buffer.getvalue()
        if not audio:
            raise DownloadError(f"Recording {recording_url} downloaded empty")
        return audio

    async def _probe(self, client: httpx.AsyncClient, recording_url: str) -> bool:
        try:
            response = await client.head(
                recording_url, auth=self.auth, follow_redirects=True
            )
        except httpx.HTTPError as e:
            logger.debug(
                f"[RECORDING] Probe failed - Url: {recording_url}, "
                f"Error: {type(e).__name__}: {str(e)}"
            )
            return False
        return self.policy.is_available(response.status_code)

    @asynccontextmanager
    async def _client(self) -> AsyncIterator[httpx.AsyncClient]:
        if self._http is not None:
            yield self._http
            return
        async with httpx.AsyncClient(timeout=30) as client:
            yield client
