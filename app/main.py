"""Main FastAPI application."""
from fastapi import FastAPI
from contextlib import asynccontextmanager

from app.core.logging import setup_logging
from app.db.database import init_db
from app.api import audio, calls, health
from app.api.webhooks import voice as voice_webhooks


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan events."""
    # Startup
    setup_logging()
    await init_db()
    yield


app = FastAPI(
    title="Phone Conversation Agent",
    description="AI voice agent holding multi-turn phone conversations over Twilio",
    version="0.1.0",
    lifespan=lifespan,
)

app.include_router(health.router, tags=["health"])
app.include_router(voice_webhooks.router, prefix="/webhooks", tags=["webhooks"])
app.include_router(audio.router, tags=["audio"])
app.include_router(calls.router, tags=["calls"])


@app.get("/")
async def root():
    """Service information."""
    return {
        "message": "Phone Conversation Agent API",
        "version": "0.1.0",
    }
