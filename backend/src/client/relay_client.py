"""
Relay Client.

Posts a chat request to the relay and feeds the streamed response through
a FrameDecoder.
"""
import logging
from dataclasses import dataclass
from typing import Any, Optional, Union

import httpx

from src.models.chat import ChatRequest
from src.services.streaming.errors import ERROR_MESSAGES, ErrorCode

from .decoder import FrameCallbacks, FrameDecoder

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ChatOutcome:
    """
    How a relay exchange ended.

    A synthesized completion means the connection closed before any
    terminal frame; callers that care about truncation can check it
    together with ``text_frames``.
    """

    terminal_event: Optional[str]
    synthesized_completion: bool = False
    text_frames: int = 0

    @property
    def truncated(self) -> bool:
        return self.synthesized_completion and self.text_frames > 0


class RelayClient:
    """Async client for ``POST /api/chat``."""

    def __init__(
        self,
        base_url: str,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        timeout: Optional[float] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self._transport = transport
        self._timeout = timeout

    async def send_chat(
        self,
        body: Union[ChatRequest, dict[str, Any]],
        callbacks: FrameCallbacks,
    ) -> ChatOutcome:
        """
        Stream one chat turn into ``callbacks``.

        Exactly one of on_action/on_done/on_error ends the exchange, either
        from the relay or synthesized by the decoder.
        """
        payload = (
            body.model_dump(by_alias=True, exclude_none=True)
            if isinstance(body, ChatRequest)
            else body
        )
        decoder = FrameDecoder(callbacks)

        async with httpx.AsyncClient(transport=self._transport, timeout=self._timeout) as client:
            try:
                async with client.stream(
                    "POST", f"{self.base_url}/api/chat", json=payload
                ) as response:
                    if response.status_code >= 400:
                        logger.warning("Relay answered %d", response.status_code)
                        callbacks.on_error(
                            {
                                "message": f"{ERROR_MESSAGES[ErrorCode.SERVER_ERROR]} ({response.status_code})",
                                "code": ErrorCode.SERVER_ERROR.value,
                            }
                        )
                        return ChatOutcome(terminal_event="error")

                    try:
                        async for chunk in response.aiter_bytes():
                            decoder.feed(chunk)
                    except httpx.TransportError as e:
                        # Mid-stream drops behave like a premature close
                        logger.warning("Relay stream interrupted: %s", e)

            except httpx.TransportError as e:
                logger.warning("Relay unreachable: %s", e)
                callbacks.on_error(
                    {
                        "message": ERROR_MESSAGES[ErrorCode.NETWORK_ERROR],
                        "code": ErrorCode.NETWORK_ERROR.value,
                    }
                )
                return ChatOutcome(terminal_event="error")

        synthesized = decoder.finish()
        return ChatOutcome(
            terminal_event="done" if synthesized else decoder.terminal_event,
            synthesized_completion=synthesized,
            text_frames=decoder.text_frames,
        )
