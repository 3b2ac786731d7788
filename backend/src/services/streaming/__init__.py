"""
Streaming Services Module.

Relays incremental LLM output to the client as frames.

Architecture:
- UpstreamClient: Streams tokens from the completion backend via httpx
- StreamNotifier: Turns relay events into frames on a FrameSink
- RelayOrchestrator: Coordinates one chat turn end to end

Usage:
    from src.services.streaming import (
        FrameChannel,
        RelayOrchestrator,
        RelayRequest,
    )

    channel = FrameChannel()
    orchestrator.start_stream(request, channel)
    async for chunk in channel.encoded():
        ...
"""

from .types import (
    AccumulatedResponse,
    ChatMessage,
    ConversationTurn,
    EventType,
    Frame,
    RelayRequest,
    Role,
    UpstreamRequest,
)
from .errors import (
    EmptyResponseError,
    ErrorCode,
    RelayError,
    UpstreamConnectionError,
    UpstreamStatusError,
    UpstreamTimeoutError,
    classify_error,
)
from .frames import encode_frame
from .upstream import HealthStatus, UpstreamClient
from .notifier import FrameChannel, FrameSink, StreamNotifier
from .orchestrator import RelayOrchestrator, RelayStateMachine

__all__ = [
    # Types
    "AccumulatedResponse",
    "ChatMessage",
    "ConversationTurn",
    "EventType",
    "Frame",
    "RelayRequest",
    "Role",
    "UpstreamRequest",
    # Errors
    "EmptyResponseError",
    "ErrorCode",
    "RelayError",
    "UpstreamConnectionError",
    "UpstreamStatusError",
    "UpstreamTimeoutError",
    "classify_error",
    # Services
    "encode_frame",
    "HealthStatus",
    "UpstreamClient",
    "FrameChannel",
    "FrameSink",
    "StreamNotifier",
    "RelayOrchestrator",
    "RelayStateMachine",
]
