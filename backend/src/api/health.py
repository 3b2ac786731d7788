"""
Health API endpoint.
"""
from fastapi import APIRouter, Depends

from src.services.relay import get_upstream_client
from src.services.streaming import HealthStatus, UpstreamClient

router = APIRouter(prefix="/api", tags=["health"])


@router.get("/health", response_model=HealthStatus)
async def health(
    upstream: UpstreamClient = Depends(get_upstream_client),
) -> HealthStatus:
    """Report whether the model backend is reachable."""
    return await upstream.check_health()
