"""
Chat API endpoint.

Streams one coach reply as Server-Sent-Event frames.
"""
import logging
import uuid
from typing import AsyncIterator

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import StreamingResponse

from src.config import settings
from src.models.chat import ChatRequest
from src.services.relay import get_orchestrator
from src.services.streaming import FrameChannel, RelayOrchestrator, RelayRequest

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api", tags=["chat"])

SSE_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",
}


async def _relay_frames(
    orchestrator: RelayOrchestrator,
    request: RelayRequest,
) -> AsyncIterator[str]:
    """Run the relay in a task and stream its frames until the channel closes."""
    channel = FrameChannel(maxsize=settings.relay_channel_size)
    orchestrator.start_stream(request, channel)
    try:
        async for chunk in channel.encoded():
            yield chunk
    finally:
        # Client went away while the relay was still running
        if orchestrator.is_active(request.request_id):
            orchestrator.cancel_stream(request.request_id)


@router.post("/chat")
async def chat(
    body: ChatRequest,
    orchestrator: RelayOrchestrator = Depends(get_orchestrator),
) -> StreamingResponse:
    """
    Relay one chat turn.

    Outgoing frames:
    - text   {"token": "..."}                               - one per upstream token
    - action {"type": "start_typing_session", "text": "..."} - terminal, directive found
    - done   {}                                             - terminal, no directive
    - error  {"message": "...", "code": "..."}              - terminal, failure
    """
    try:
        trigger = body.parsed_trigger()
    except ValueError:
        raise HTTPException(status_code=400, detail="Invalid trigger")

    request = RelayRequest(
        request_id=str(uuid.uuid4()),
        message=body.message or None,
        trigger=trigger,
        session_data=body.session_data,
        session_id=body.session_id,
    )
    logger.info(
        "Chat request %s (trigger=%s, has_message=%s)",
        request.request_id,
        trigger.value if trigger else None,
        request.message is not None,
    )

    return StreamingResponse(
        _relay_frames(orchestrator, request),
        media_type="text/event-stream",
        headers=SSE_HEADERS,
    )
