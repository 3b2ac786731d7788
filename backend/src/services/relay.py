"""
Relay service wiring.

Builds the upstream client and orchestrator from settings. The API layer
receives them through FastAPI dependencies so tests can override them.
"""
from functools import lru_cache

from src.ai.context import ContextAssembler
from src.config import settings
from src.services.messages import message_store
from src.services.streaming import RelayOrchestrator, UpstreamClient


@lru_cache
def get_upstream_client() -> UpstreamClient:
    return UpstreamClient.from_settings(settings)


@lru_cache
def get_orchestrator() -> RelayOrchestrator:
    return RelayOrchestrator(
        upstream=get_upstream_client(),
        store=message_store,
        context=ContextAssembler(message_store, history_limit=settings.history_limit),
    )
