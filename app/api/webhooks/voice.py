"""Twilio voice webhook endpoints."""
import logging
from typing import Optional
from fastapi import APIRouter, Request, Form, Depends
from fastapi.responses import Response

from app.core.config import settings
from app.core.dependencies import get_call_flow_controller
from app.services.call_flow.controller import CallFlowController

router = APIRouter()
logger = logging.getLogger(__name__)

TWIML_MEDIA_TYPE = "application/xml"


def get_base_url(request: Request) -> str:
    """
    Get the base URL for constructing absolute URLs.

    Uses BASE_URL environment variable if set (e.g., behind a tunnel or proxy),
    otherwise constructs from request.
    """
    if settings.base_url:
        return settings.base_url.rstrip('/')

    return str(request.base_url).rstrip('/')


def _client_host(request: Request) -> str:
    return request.client.host if request.client else 'unknown'


@router.post("/voice/incoming")
async def handle_incoming_call(
    request: Request,
    CallSid: str = Form(...),
    controller: CallFlowController = Depends(get_call_flow_controller),
):
    """
    Handle incoming call from Twilio.

    This endpoint is called when a call comes in, and again whenever a failed
    turn redirects the caller back to the start of the loop.
    """
    logger.info(
        f"[INCOMING CALL] Received incoming call webhook - CallSid: {CallSid}, "
        f"Client: {_client_host(request)}"
    )
    base_url = get_base_url(request)

    try:
        twiml = await controller.handle_incoming(CallSid, base_url)
    except Exception as e:
        logger.error(
            f"[INCOMING CALL] Error processing incoming call - CallSid: {CallSid}, "
            f"Error: {type(e).__name__}: {str(e)}",
            exc_info=True
        )
        twiml = controller.fallback_twiml(base_url)

    return Response(content=twiml, media_type=TWIML_MEDIA_TYPE)


@router.post("/voice/input")
async def handle_input(
    request: Request,
    CallSid: str = Form(...),
    SpeechResult: Optional[str] = Form(None),
    RecordingUrl: Optional[str] = Form(None),
    controller: CallFlowController = Depends(get_call_flow_controller),
):
    """
    Handle captured caller input from Twilio.

    Called by the Gather action (SpeechResult) or the Record action (RecordingUrl).
    """
    logger.info(
        f"[INPUT] Received input - CallSid: {CallSid}, "
        f"SpeechResult length: {len(SpeechResult) if SpeechResult else 0}, "
        f"RecordingUrl: {RecordingUrl or 'none'}, "
        f"Client: {_client_host(request)}"
    )
    base_url = get_base_url(request)

    try:
        twiml = await controller.handle_input(
            CallSid,
            base_url,
            speech_result=SpeechResult,
            recording_url=RecordingUrl,
        )
    except Exception as e:
        logger.error(
            f"[INPUT] Error processing input - CallSid: {CallSid}, "
            f"Error: {type(e).__name__}: {str(e)}",
            exc_info=True
        )
        twiml = controller.fallback_twiml(base_url)

    return Response(content=twiml, media_type=TWIML_MEDIA_TYPE)


@router.post("/voice/status")
async def handle_call_status(
    request: Request,
    CallSid: str = Form(...),
    CallStatus: str = Form(...),
    controller: CallFlowController = Depends(get_call_flow_controller),
):
    """
    Handle call status updates from Twilio.

    This endpoint is called when call status changes (completed, failed, etc.).
    """
    logger.info(
        f"[CALL STATUS] Received status update - CallSid: {CallSid}, "
        f"CallStatus: {CallStatus}, "
        f"Client: {_client_host(request)}"
    )

    try:
        await controller.handle_status(CallSid, CallStatus)
    except Exception as e:
        logger.error(
            f"[CALL STATUS] Error handling call status update - CallSid: {CallSid}, "
            f"CallStatus: {CallStatus}, Error: {type(e).__name__}: {str(e)}",
            exc_info=True
        )

    # Always OK so Twilio does not retry
    return Response(content="OK", media_type="text/plain")
