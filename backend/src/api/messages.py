"""
Messages API endpoints.
"""
import logging
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError

from src.services.messages import MessageStore, message_store
from src.services.pocketbase import PocketbaseError

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/messages", tags=["messages"])

_timestamp = TypeAdapter(datetime)


class MessageResponse(BaseModel):
    """Message response."""

    id: str
    role: str
    content: str
    session_id: Optional[str] = None
    created: Optional[str] = None


class MessagesResponse(BaseModel):
    """Page of message history."""

    model_config = ConfigDict(populate_by_name=True)

    messages: list[MessageResponse]
    has_more: bool = Field(alias="hasMore")


def get_message_store() -> MessageStore:
    return message_store


def parse_before(before: Optional[str]) -> Optional[datetime]:
    """
    Parse the ``before`` cursor.

    Accepts ISO 8601 timestamps and Unix timestamps (seconds or
    milliseconds). Anything else is a 400.
    """
    if before is None:
        return None
    try:
        return _timestamp.validate_python(before)
    except ValidationError:
        raise HTTPException(
            status_code=400,
            detail="before must be an ISO 8601 or Unix timestamp",
        )


@router.get("", response_model=MessagesResponse)
async def list_messages(
    before: Optional[str] = Query(None, description="Only messages created before this timestamp"),
    limit: int = Query(50, ge=1, le=200),
    store: MessageStore = Depends(get_message_store),
) -> MessagesResponse:
    """Get chat history, newest page first, messages oldest first."""
    cursor = parse_before(before)
    try:
        records, has_more = await store.list_messages(before=cursor, limit=limit)
    except PocketbaseError as e:
        logger.error("Failed to load messages: %s", e.message)
        raise HTTPException(status_code=502, detail="Message store unavailable")

    return MessagesResponse(
        messages=[
            MessageResponse(
                id=record.id,
                role=record.role.value,
                content=record.content,
                session_id=record.session_id,
                created=record.created,
            )
            for record in records
        ],
        has_more=has_more,
    )
