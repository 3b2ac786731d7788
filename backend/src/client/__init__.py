"""
Relay client.

Consumes the relay's frame stream on the caller side.

Usage:
    from src.client import RelayClient

    outcome = await RelayClient("http://localhost:8000").send_chat(
        {"message": "Hi"}, callbacks
    )
"""

from .decoder import FrameCallbacks, FrameDecoder, parse_frame
from .relay_client import ChatOutcome, RelayClient

__all__ = [
    "FrameCallbacks",
    "FrameDecoder",
    "parse_frame",
    "ChatOutcome",
    "RelayClient",
]
