"""
Message Store.

Persists chat messages in Pocketbase and reads back recent history.
Writes are serialized so concurrent relays keep their own ordering.
"""
import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from src.services.pocketbase import PocketbaseService, build_filter, pocketbase
from src.services.streaming.types import Role

logger = logging.getLogger(__name__)

MESSAGES_COLLECTION = "messages"
_HISTORY_FILTER = "role = 'user' || role = 'assistant'"


@dataclass
class MessageRecord:
    """Stored chat message."""

    id: str
    role: Role
    content: str
    session_id: Optional[str] = None
    created: Optional[str] = None

    @classmethod
    def from_record(cls, record: dict) -> "MessageRecord":
        return cls(
            id=record.get("id", ""),
            role=Role(record.get("role", Role.USER.value)),
            content=record.get("content", ""),
            session_id=record.get("session_id") or None,
            created=record.get("created"),
        )


class MessageStore:
    """
    Chat message persistence.

    Provides:
    - record_message for the relay (user and assistant turns)
    - recent_messages for context assembly
    - list_messages for paginated history
    """

    def __init__(self, client: Optional[PocketbaseService] = None):
        self._client = client or pocketbase
        self._write_lock = asyncio.Lock()

    async def record_message(
        self,
        role: Role,
        text: str,
        session_id: Optional[str] = None,
    ) -> MessageRecord:
        """Store one message. PocketbaseError propagates to the caller."""
        data = {"role": Role(role).value, "content": text}
        if session_id:
            data["session_id"] = session_id

        async with self._write_lock:
            record = await self._client.create_record(MESSAGES_COLLECTION, data)

        logger.debug("Recorded %s message (%d chars)", data["role"], len(text))
        return MessageRecord.from_record(record or {})

    async def recent_messages(self, limit: int = 10) -> list[MessageRecord]:
        """Last ``limit`` user/assistant messages, oldest first."""
        page = await self._client.list_records(
            MESSAGES_COLLECTION,
            filter=_HISTORY_FILTER,
            sort="-created",
            per_page=limit,
        )
        records = [MessageRecord.from_record(item) for item in page.items]
        records.reverse()
        return records

    async def list_messages(
        self,
        before: Optional[datetime] = None,
        limit: int = 50,
    ) -> tuple[list[MessageRecord], bool]:
        """
        Page backwards through history.

        Args:
            before: Only messages created before this instant
            limit: Page size

        Returns:
            (messages oldest first, whether older messages exist)
        """
        page = await self._client.list_records(
            MESSAGES_COLLECTION,
            filter=build_filter("created < {:before}", before=before) if before else None,
            sort="-created",
            per_page=limit,
        )
        records = [MessageRecord.from_record(item) for item in page.items]
        records.reverse()
        return records, page.has_more


# Singleton instance
message_store = MessageStore()
