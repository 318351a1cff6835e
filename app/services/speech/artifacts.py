"""Synthesized audio artifact storage."""
import logging
import uuid
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Callable, List, Optional
from pydantic import BaseModel
from starlette.concurrency import run_in_threadpool

logger = logging.getLogger(__name__)

AUDIO_PATH_PREFIX = "/audio"


class AudioArtifact(BaseModel):
    """A stored audio file for one assistant utterance."""

    id: str
    filename: str
    path: Path
    url: Optional[str] = None

    def with_url(self, base_url: str) -> "AudioArtifact":
        """Return a copy whose url points at the serving host."""
        return self.model_copy(
            update={"url": f"{base_url.rstrip('/')}{AUDIO_PATH_PREFIX}/{self.filename}"}
        )


ArtifactListener = Callable[[AudioArtifact], None]


class AudioArtifactStore(ABC):
    """Write-once storage for synthesized audio."""

    def __init__(self):
        self._listeners: List[ArtifactListener] = []

    def add_listener(self, listener: ArtifactListener) -> None:
        """Register a callback invoked for every newly stored artifact."""
        self._listeners.append(listener)

    def _notify(self, artifact: AudioArtifact) -> None:
        for listener in self._listeners:
            try:
                listener(artifact)
            except Exception as e:
                logger.error(
                    f"[AUDIO STORE] Artifact listener failed - Artifact: {artifact.id}, "
                    f"Error: {type(e).__name__}: {str(e)}",
                    exc_info=True,
                )

    @abstractmethod
    async def save(self, data: bytes, extension: str = "mp3") -> AudioArtifact:
        """Store audio bytes under a fresh unique id."""
        pass

    @abstractmethod
    def path_for(self, filename: str) -> Optional[Path]:
        """Resolve a stored artifact filename to a local path, if it exists."""
        pass


class LocalAudioArtifactStore(AudioArtifactStore):
    """Stores artifacts as files in a local directory."""

    def __init__(self, directory: str):
        super().__init__()
        self.directory = Path(directory)

    async def save(self, data: bytes, extension: str = "mp3") -> AudioArtifact:
        artifact_id = uuid.uuid4().hex
        filename = f"{artifact_id}.{extension}"
        path = self.directory / filename

        await run_in_threadpool(self._write, path, data)

        artifact = AudioArtifact(id=artifact_id, filename=filename, path=path)
        logger.debug(
            f"[AUDIO STORE] Stored artifact - Id: {artifact_id}, Bytes: {len(data)}"
        )
        self._notify(artifact)
        return artifact

    def path_for(self, filename: str) -> Optional[Path]:
        # Only bare filenames are served; anything with a path component is rejected.
        if Path(filename).name != filename:
            return None
        path = self.directory / filename
        return path if path.is_file() else None

    def _write(self, path: Path, data: bytes) -> None:
        self.directory.mkdir(parents=True, exist_ok=True)
        path.write_bytes(data)
