"""Synthesized audio hosting."""
import logging
from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import FileResponse

from app.core.dependencies import get_artifact_store
from app.services.speech.artifacts import AUDIO_PATH_PREFIX, AudioArtifactStore

router = APIRouter()
logger = logging.getLogger(__name__)

MEDIA_TYPES = {
    "mp3": "audio/mpeg",
    "wav": "audio/wav",
    "opus": "audio/ogg",
    "aac": "audio/aac",
    "flac": "audio/flac",
}


@router.get(AUDIO_PATH_PREFIX + "/{filename}")
async def get_audio(
    filename: str,
    store: AudioArtifactStore = Depends(get_artifact_store),
):
    """Serve a synthesized audio artifact for Twilio to play."""
    path = store.path_for(filename)
    if path is None:
        logger.warning(f"[AUDIO] Artifact not found - Filename: {filename}")
        raise HTTPException(status_code=404, detail="Audio not found")

    media_type = MEDIA_TYPES.get(path.suffix.lstrip("."), "application/octet-stream")
    return FileResponse(path, media_type=media_type)
