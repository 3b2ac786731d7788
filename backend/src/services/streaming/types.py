"""
Streaming Types.

Data structures for one relay invocation.
Everything except AccumulatedResponse is an immutable dataclass.
"""
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional

from src.models.chat import ChatTrigger, SessionData


class Role(str, Enum):
    """Author of a conversation entry."""

    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"


@dataclass(frozen=True)
class ChatMessage:
    """Single role-tagged entry of a conversation turn."""

    role: Role
    content: str

    def to_dict(self) -> dict[str, str]:
        return {"role": self.role.value, "content": self.content}


# Ordered, immutable sequence sent upstream for one invocation
ConversationTurn = tuple[ChatMessage, ...]


@dataclass(frozen=True)
class UpstreamRequest:
    """
    Request sent to the completion backend.

    Built once per relay invocation and never mutated.
    """

    messages: ConversationTurn
    temperature: float = 0.7
    stream: bool = True

    def to_payload(self) -> dict[str, Any]:
        """JSON body for an OpenAI-compatible ``/chat/completions`` call."""
        return {
            "messages": [m.to_dict() for m in self.messages],
            "stream": self.stream,
            "temperature": self.temperature,
        }


@dataclass(frozen=True)
class RelayRequest:
    """
    Inbound chat request as seen by the orchestrator.

    Contains everything needed to record the user message, assemble
    context and persist the assistant reply.
    """

    request_id: str
    message: Optional[str] = None
    trigger: Optional[ChatTrigger] = None
    session_data: Optional[SessionData] = None
    session_id: Optional[str] = None


class EventType(str, Enum):
    """Event types of the outbound frame protocol."""

    TEXT = "text"
    ACTION = "action"
    DONE = "done"
    ERROR = "error"

    @property
    def is_terminal(self) -> bool:
        return self is not EventType.TEXT


@dataclass(frozen=True)
class Frame:
    """
    One event-type/payload unit of the wire protocol.

    Attributes:
        event: Event type
        data: JSON-serializable payload
    """

    event: EventType
    data: dict[str, Any] = field(default_factory=dict)


@dataclass
class AccumulatedResponse:
    """
    Mutable accumulator of the tokens seen in one invocation.

    Grows monotonically; read once in full when the stream ends.
    """

    request_id: str
    tokens: list[str] = field(default_factory=list)

    def append(self, token: str) -> None:
        self.tokens.append(token)

    @property
    def text(self) -> str:
        return "".join(self.tokens)

    @property
    def token_count(self) -> int:
        return len(self.tokens)
