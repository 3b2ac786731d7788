"""
Chat request models.

Shapes of the ``POST /api/chat`` body and the session metrics the client
sends after a typing session.
"""
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class ChatTrigger(str, Enum):
    """Reasons the client may open a chat turn without a user message."""

    GREETING = "greeting"
    SESSION_COMPLETE = "session_complete"


class SessionData(BaseModel):
    """Metrics of a finished typing session."""

    wpm: float
    accuracy: float = Field(description="Fraction between 0 and 1")
    errors: int
    characters: int
    duration_ms: int
    text: str = ""


class ChatRequest(BaseModel):
    """
    Body of ``POST /api/chat``.

    ``trigger`` is kept as a plain string so an unknown value can be
    rejected with 400 instead of a validation error. Session fields are
    accepted both as ``sessionData``/``sessionId`` and in snake case;
    numeric session ids are read as strings.
    """

    model_config = ConfigDict(populate_by_name=True, coerce_numbers_to_str=True)

    message: Optional[str] = None
    trigger: Optional[str] = None
    session_data: Optional[SessionData] = Field(default=None, alias="sessionData")
    session_id: Optional[str] = Field(default=None, alias="sessionId")

    def parsed_trigger(self) -> Optional[ChatTrigger]:
        """Return the trigger as an enum, raising ValueError if unknown."""
        if self.trigger is None:
            return None
        return ChatTrigger(self.trigger)
