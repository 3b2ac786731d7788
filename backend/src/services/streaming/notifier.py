"""
Stream Notifier.

Turns relay events into frames and pushes them to an outbound sink.
Guards the protocol invariant: exactly one terminal frame, always last.
"""
import asyncio
import logging
from typing import AsyncIterator, Optional, Protocol

from src.models.directive import Directive

from .frames import action_frame, done_frame, error_frame, render, text_frame
from .types import Frame

logger = logging.getLogger(__name__)


class FrameSink(Protocol):
    """Protocol for the outbound side of one relay invocation."""

    async def send(self, frame: Frame) -> None: ...
    async def close(self) -> None: ...


_CLOSED = object()


class FrameChannel:
    """
    Bounded channel between the orchestrator task and the HTTP body.

    ``send`` blocks while the channel is full, so a slow client slows the
    upstream read loop down instead of growing memory. ``close`` never
    blocks: a closed channel is drained and then ends, with or without the
    close marker.
    """

    def __init__(self, maxsize: int = 64):
        self._queue: asyncio.Queue = asyncio.Queue(maxsize=maxsize)
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    async def send(self, frame: Frame) -> None:
        if self._closed:
            raise RuntimeError("Frame channel is closed")
        await self._queue.put(frame)

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        try:
            # Wakes a consumer waiting on an empty queue
            self._queue.put_nowait(_CLOSED)
        except asyncio.QueueFull:
            pass

    async def frames(self) -> AsyncIterator[Frame]:
        """Yield frames until the channel is closed and drained."""
        while True:
            if self._closed and self._queue.empty():
                return
            item = await self._queue.get()
            if item is _CLOSED:
                return
            yield item

    async def encoded(self) -> AsyncIterator[str]:
        """Yield frames rendered in wire format."""
        async for frame in self.frames():
            yield render(frame)


class StreamNotifier:
    """
    Sends relay events to the sink.

    Responsibilities:
    - Build frames for each event type
    - Refuse anything after the terminal frame
    - Close the sink right after the terminal frame

    All event names follow the wire protocol: text, action, done, error.
    """

    def __init__(self, sink: FrameSink, request_id: str = ""):
        self._sink = sink
        self._request_id = request_id
        self._terminal: Optional[Frame] = None

    @property
    def terminated(self) -> bool:
        return self._terminal is not None

    @property
    def terminal_frame(self) -> Optional[Frame]:
        return self._terminal

    async def notify_text(self, token: str) -> None:
        """
        Forward one token.

        Event type: text
        """
        if self.terminated:
            logger.warning(
                "Dropping text frame after terminal frame for request %s",
                self._request_id,
            )
            return
        await self._sink.send(text_frame(token))

    async def notify_action(self, directive: Directive) -> None:
        """
        Finish with a directive for the client.

        Event type: action
        """
        await self._terminate(action_frame(directive))

    async def notify_done(self) -> None:
        """
        Finish normally.

        Event type: done
        """
        await self._terminate(done_frame())

    async def notify_error(self, message: str, code: str) -> None:
        """
        Finish with an error.

        Event type: error
        """
        await self._terminate(error_frame(message, code))

    async def _terminate(self, frame: Frame) -> None:
        if self.terminated:
            logger.warning(
                "Ignoring second terminal frame '%s' for request %s",
                frame.event.value,
                self._request_id,
            )
            return
        self._terminal = frame
        await self._sink.send(frame)
        await self._sink.close()
        logger.debug(
            "Sent terminal frame '%s' for request %s",
            frame.event.value,
            self._request_id,
        )
