"""
Directive Models.

Structured instructions the coach embeds in its reply, e.g.
``[ACTION:typing_session]The quick brown fox.[/ACTION]``.
They are extracted after the full response has been accumulated.
"""
from enum import Enum

from pydantic import BaseModel, Field


class DirectiveKind(str, Enum):
    """Directives the client knows how to act on."""

    START_TYPING_SESSION = "start_typing_session"


class Directive(BaseModel):
    """
    Directive extracted from an assistant response.

    Serialized as the payload of the ``action`` frame.
    """

    type: DirectiveKind = Field(
        default=DirectiveKind.START_TYPING_SESSION,
        description="What the client should do",
    )
    text: str = Field(
        description="Directive body, e.g. the practice text to type",
    )

    def to_payload(self) -> dict[str, str]:
        """Wire payload for the ``action`` frame."""
        return {"type": self.type.value, "text": self.text}
