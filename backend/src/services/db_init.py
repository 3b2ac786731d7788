"""
Database initialization for Pocketbase collections.

Creates the collections the relay writes to if they don't exist.
"""
import logging
from typing import Optional

from src.services.messages import MESSAGES_COLLECTION
from src.services.pocketbase import PocketbaseError, PocketbaseService, pocketbase

logger = logging.getLogger(__name__)

# Collections required by the application
SYSTEM_COLLECTIONS = {
    MESSAGES_COLLECTION: {
        "fields": [
            {
                "name": "role",
                "type": "select",
                "required": True,
                "values": ["user", "assistant", "system"],
                "maxSelect": 1,
            },
            {"name": "content", "type": "text", "required": False},
            {"name": "session_id", "type": "text", "required": False},
            {"name": "created", "type": "autodate", "onCreate": True, "onUpdate": False},
        ],
    },
}


async def init_database(client: Optional[PocketbaseService] = None) -> tuple[int, int]:
    """
    Create missing system collections.

    Returns tuple of (created_count, existing_count).
    """
    client = client or pocketbase
    logger.info("Initializing database collections...")

    try:
        existing = await client.list_collection_names()
    except PocketbaseError as e:
        logger.error("Failed to list collections: %s", e.message)
        return 0, 0

    created = 0
    skipped = 0
    for name, config in SYSTEM_COLLECTIONS.items():
        if name in existing:
            logger.debug("Collection '%s' already exists", name)
            skipped += 1
            continue
        try:
            await client.create_collection(name, config["fields"])
            logger.info("Created collection: %s", name)
            created += 1
        except PocketbaseError as e:
            logger.error("Failed to create collection '%s': %s", name, e.message)

    logger.info(
        "Database initialization complete: %d created, %d already existed",
        created,
        skipped,
    )
    return created, skipped
