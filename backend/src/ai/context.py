"""
Context assembly for the coach.

Builds the ConversationTurn sent upstream for one relay invocation:
system prompt, trigger-specific notes and recent history.
"""
import logging
from datetime import datetime
from typing import Callable, Optional

from src.ai.prompts import (
    COACH_SYSTEM_PROMPT,
    build_greeting_prompt,
    build_session_summary,
)
from src.models.chat import ChatTrigger, SessionData
from src.services.messages import MessageStore
from src.services.streaming.types import ChatMessage, ConversationTurn, Role

logger = logging.getLogger(__name__)


class ContextAssembler:
    """
    Builds the conversation for the upstream backend.

    Order:
    1. Coach system prompt
    2. Greeting note (trigger=greeting)
    3. Last ``history_limit`` user/assistant messages
    4. Session summary as a user message (trigger=session_complete)
    """

    def __init__(
        self,
        store: MessageStore,
        history_limit: int = 10,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self._store = store
        self._history_limit = history_limit
        self._clock = clock

    async def assemble_context(
        self,
        trigger: Optional[ChatTrigger],
        session_data: Optional[SessionData] = None,
    ) -> ConversationTurn:
        messages = [ChatMessage(Role.SYSTEM, COACH_SYSTEM_PROMPT)]

        if trigger is ChatTrigger.GREETING:
            messages.append(ChatMessage(Role.SYSTEM, build_greeting_prompt(self._clock())))

        history = await self._store.recent_messages(self._history_limit)
        messages.extend(
            ChatMessage(record.role, record.content)
            for record in history
            if record.role in (Role.USER, Role.ASSISTANT)
        )

        if trigger is ChatTrigger.SESSION_COMPLETE and session_data:
            messages.append(ChatMessage(Role.USER, build_session_summary(session_data)))

        logger.debug(
            "Assembled context: %d messages (%d from history)",
            len(messages),
            len(history),
        )
        return tuple(messages)
