"""
Frame Decoder.

Reassembles relay frames from a byte stream split at arbitrary boundaries
and dispatches each one to a callback.
"""
import codecs
import json
import logging
from typing import Any, Optional, Protocol

logger = logging.getLogger(__name__)

FRAME_DELIMITER = "\n\n"
TERMINAL_EVENTS = frozenset({"action", "done", "error"})


class FrameCallbacks(Protocol):
    """Receiver of decoded frames, one method per event type."""

    def on_token(self, token: str) -> None: ...
    def on_action(self, action: dict[str, Any]) -> None: ...
    def on_done(self) -> None: ...
    def on_error(self, error: dict[str, Any]) -> None: ...


def parse_frame(block: str) -> Optional[tuple[str, Any]]:
    """
    Split a frame block into (event, payload).

    Returns None when the event or data line is missing or the payload is
    not valid JSON.
    """
    event = ""
    data = ""
    for line in block.split("\n"):
        if line.startswith("event: "):
            event = line[len("event: "):]
        elif line.startswith("data: "):
            data = line[len("data: "):]

    if not event or not data:
        return None

    try:
        return event, json.loads(data)
    except json.JSONDecodeError:
        logger.debug("Skipping frame '%s' with malformed payload", event)
        return None


class FrameDecoder:
    """
    Incremental decoder for one relay response.

    The buffer only ever holds the incomplete trailing frame; complete
    frames are dispatched as soon as their delimiter arrives.
    """

    def __init__(self, callbacks: FrameCallbacks):
        self._callbacks = callbacks
        self._decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        self._buffer = ""
        self._finished = False
        self.terminal_event: Optional[str] = None
        self.text_frames = 0

    @property
    def buffer(self) -> str:
        return self._buffer

    @property
    def got_terminal(self) -> bool:
        return self.terminal_event is not None

    def feed(self, chunk: bytes) -> int:
        """
        Append a chunk and dispatch every completed frame.

        Returns the number of frames dispatched.
        """
        self._buffer += self._decoder.decode(chunk)
        *blocks, self._buffer = self._buffer.split(FRAME_DELIMITER)

        dispatched = 0
        for block in blocks:
            if not block.strip():
                continue
            parsed = parse_frame(block)
            if parsed is None:
                continue
            if self._dispatch(*parsed):
                dispatched += 1
        return dispatched

    def finish(self) -> bool:
        """
        Mark the byte stream as closed.

        Without a terminal frame, a normal completion is synthesized once.
        Returns True if the completion was synthesized.
        """
        if self._finished:
            return False
        self._finished = True
        self._buffer += self._decoder.decode(b"", final=True)

        if self.got_terminal:
            return False

        logger.warning(
            "Stream closed without terminal frame after %d text frames",
            self.text_frames,
        )
        self._callbacks.on_done()
        return True

    def _dispatch(self, event: str, payload: Any) -> bool:
        if event == "text":
            token = payload.get("token") if isinstance(payload, dict) else None
            if not isinstance(token, str):
                return False
            self.text_frames += 1
            self._callbacks.on_token(token)
            return True

        if event not in TERMINAL_EVENTS:
            return False

        self.terminal_event = event
        if event == "action":
            self._callbacks.on_action(payload)
        elif event == "done":
            self._callbacks.on_done()
        else:
            self._callbacks.on_error(payload)
        return True
