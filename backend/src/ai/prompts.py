"""
System prompts for the typing coach.
"""
from datetime import datetime

from src.models.chat import SessionData

COACH_SYSTEM_PROMPT = """You are Athena, a typing coach.

Personality: direct, honest and data-driven. Warm but firm: celebrate real progress and say so when the user is coasting. Never condescending.

Use the numbers you are given (WPM, accuracy, errors) to make advice concrete.

When the user should practice, end your reply with an action marker holding the practice text:
[ACTION:typing_session]The text the user should type goes here.[/ACTION]

Start a typing session when:
- The user asks to practice or type
- You suggest working on a specific weak point
- It fits the flow of the conversation

Do NOT add an action marker to every reply, only when a session makes sense.

Keep replies short (2-4 sentences). You are a coach, not an essay writer."""


def time_of_day(now: datetime) -> str:
    if now.hour < 12:
        return "morning"
    if now.hour < 18:
        return "afternoon"
    return "evening"


def build_greeting_prompt(now: datetime) -> str:
    """System note appended when the client opens with a greeting."""
    return "\n".join(
        [
            f"Time of day: {time_of_day(now)}",
            "Greet the user and offer to start a practice session.",
        ]
    )


def build_session_summary(session: SessionData) -> str:
    """User message describing a finished typing session."""
    return "\n".join(
        [
            "I just completed a typing session:",
            f"WPM: {session.wpm:g}",
            f"Accuracy: {session.accuracy * 100:.1f}%",
            f"Errors: {session.errors}",
            f"Characters: {session.characters}",
            f"Duration: {session.duration_ms / 1000:.1f}s",
        ]
    )
