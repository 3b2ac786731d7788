"""
Frame encoding.

Renders frames in the Server-Sent-Events layout:

    event: <type>
    data: <json>
    <blank line>
"""
import json
from typing import Any

from src.models.directive import Directive

from .types import EventType, Frame

FRAME_DELIMITER = "\n\n"
EVENT_PREFIX = "event: "
DATA_PREFIX = "data: "


def encode_frame(event: EventType, data: dict[str, Any]) -> str:
    """Render an (event, payload) pair. JSON keeps the data on one line."""
    payload = json.dumps(data, ensure_ascii=False)
    return f"{EVENT_PREFIX}{event.value}\n{DATA_PREFIX}{payload}{FRAME_DELIMITER}"


def render(frame: Frame) -> str:
    return encode_frame(frame.event, frame.data)


def text_frame(token: str) -> Frame:
    return Frame(EventType.TEXT, {"token": token})


def action_frame(directive: Directive) -> Frame:
    return Frame(EventType.ACTION, directive.to_payload())


def done_frame() -> Frame:
    return Frame(EventType.DONE, {})


def error_frame(message: str, code: str) -> Frame:
    return Frame(EventType.ERROR, {"message": message, "code": code})
