import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from src.api.chat import router as chat_router
from src.api.health import router as health_router
from src.api.messages import router as messages_router
from src.config import settings
from src.services.db_init import init_database
from src.services.pocketbase import pocketbase, PocketbaseError
from src.services.relay import get_upstream_client

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.log_level.upper()),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown events."""
    # Startup
    logger.info("Relay starting...")

    # Check Pocketbase connection
    try:
        health = await pocketbase.health_check()
        logger.info("Pocketbase connected: %s", (health or {}).get("message", "OK"))
        await init_database()
    except PocketbaseError as e:
        logger.error("Pocketbase connection failed: %s", e.message)

    # Check model backend
    upstream = await get_upstream_client().check_health()
    if upstream.status == "connected":
        logger.info("Model backend: %s", upstream.model)
    else:
        logger.warning("Model backend unavailable: %s (chat will fail until it is up)", upstream.error)

    logger.info("Relay started")

    yield

    # Shutdown
    logger.info("Relay shutting down...")


app = FastAPI(title="Coach Relay", lifespan=lifespan)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=[
        "http://localhost:5173",
        "http://127.0.0.1:5173",
    ],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(health_router)
app.include_router(chat_router)
app.include_router(messages_router)
