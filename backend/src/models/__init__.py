"""Models package."""
from .chat import ChatRequest, ChatTrigger, SessionData
from .directive import Directive, DirectiveKind

__all__ = [
    "ChatRequest",
    "ChatTrigger",
    "SessionData",
    "Directive",
    "DirectiveKind",
]
