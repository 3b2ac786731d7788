"""
Upstream Streaming Client.

Streams chat completions from an OpenAI-compatible backend (LM Studio by
default) and yields text increments as they arrive.
Single Responsibility: only talks to the backend, knows nothing about frames.
"""
import asyncio
import json
import logging
from typing import AsyncIterator, Literal, Optional

import httpx
from pydantic import BaseModel

from src.config import Settings

from .errors import (
    EmptyResponseError,
    UpstreamConnectionError,
    UpstreamStatusError,
    UpstreamTimeoutError,
)
from .types import ConversationTurn, UpstreamRequest

logger = logging.getLogger(__name__)

DONE_SENTINEL = "[DONE]"


class HealthStatus(BaseModel):
    """Reachability of the upstream backend."""

    status: Literal["connected", "error"]
    model: Optional[str] = None
    error: Optional[str] = None


def decode_line(raw: bytes) -> tuple[bool, Optional[str]]:
    """
    Decode one complete protocol line.

    Returns (is_done, token). Blank lines, comments, non-data lines and
    malformed payloads give (False, None).
    """
    line = raw.decode("utf-8", errors="replace").strip()
    if not line or line.startswith(":"):
        return False, None
    if not line.startswith("data:"):
        return False, None

    payload = line[len("data:"):].strip()
    if payload == DONE_SENTINEL:
        return True, None

    try:
        parsed = json.loads(payload)
    except json.JSONDecodeError:
        return False, None
    if not isinstance(parsed, dict):
        return False, None

    choices = parsed.get("choices") or []
    if not isinstance(choices, list) or not choices or not isinstance(choices[0], dict):
        return False, None
    delta = choices[0].get("delta") or {}
    content = delta.get("content") if isinstance(delta, dict) else None
    if isinstance(content, str) and content:
        return False, content
    return False, None


class UpstreamClient:
    """
    Streaming client for the completion backend.

    Policy:
    - The whole attempt (connect + every read) shares one wall-clock budget.
    - An attempt that finishes without a single token is restarted from
      scratch, up to ``max_retries`` times.
    - Any other failure is raised immediately.
    """

    def __init__(
        self,
        base_url: str,
        timeout: float = 30.0,
        max_retries: int = 2,
        temperature: float = 0.7,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.max_retries = max_retries
        self.temperature = temperature
        self._transport = transport

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> "UpstreamClient":
        return cls(
            base_url=settings.upstream_url,
            timeout=settings.upstream_timeout_seconds,
            max_retries=settings.upstream_max_retries,
            temperature=settings.upstream_temperature,
            transport=transport,
        )

    def build_request(self, messages: ConversationTurn) -> UpstreamRequest:
        return UpstreamRequest(messages=messages, temperature=self.temperature)

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=self._transport, timeout=self.timeout)

    async def stream_chat(self, request: UpstreamRequest) -> AsyncIterator[str]:
        """
        Yield text increments for ``request``.

        Raises:
            UpstreamTimeoutError: the attempt exceeded its time budget
            UpstreamConnectionError: backend unreachable or connection dropped
            UpstreamStatusError: backend answered with an error status
            EmptyResponseError: no tokens after exhausting retries
        """
        attempts = self.max_retries + 1

        for attempt in range(1, attempts + 1):
            logger.debug("Upstream attempt %d of %d", attempt, attempts)

            # Each attempt starts with a fresh connection and buffer
            produced = 0
            async for token in self._stream_attempt(request):
                produced += 1
                yield token

            if produced:
                logger.debug("Upstream stream finished, %d tokens", produced)
                return

            logger.warning(
                "Empty response from upstream (attempt %d of %d)",
                attempt,
                attempts,
            )

        raise EmptyResponseError(f"Empty response after {attempts} attempts")

    async def _stream_attempt(self, request: UpstreamRequest) -> AsyncIterator[str]:
        """Run one attempt, stopping at the sentinel or end of body."""
        loop = asyncio.get_running_loop()
        deadline = loop.time() + self.timeout

        def remaining() -> float:
            return max(deadline - loop.time(), 0.0)

        try:
            async with self._client() as client:
                http_request = client.build_request(
                    "POST",
                    f"{self.base_url}/chat/completions",
                    json=request.to_payload(),
                )
                response = await asyncio.wait_for(
                    client.send(http_request, stream=True), remaining()
                )
                try:
                    if response.status_code >= 400:
                        body = await asyncio.wait_for(response.aread(), remaining())
                        raise UpstreamStatusError(
                            response.status_code,
                            body.decode("utf-8", errors="replace"),
                        )

                    chunks = response.aiter_bytes()
                    buffer = b""
                    while True:
                        try:
                            chunk = await asyncio.wait_for(chunks.__anext__(), remaining())
                        except StopAsyncIteration:
                            break

                        buffer += chunk
                        *lines, buffer = buffer.split(b"\n")
                        for raw in lines:
                            is_done, token = decode_line(raw)
                            if is_done:
                                return
                            if token:
                                yield token
                finally:
                    await response.aclose()

        except (asyncio.TimeoutError, httpx.TimeoutException) as e:
            logger.warning("Upstream request timed out after %.1fs", self.timeout)
            raise UpstreamTimeoutError("Upstream request timed out") from e
        except httpx.TransportError as e:
            logger.warning("Upstream connection failed: %s", e)
            raise UpstreamConnectionError(f"Connection error: {e}") from e

    async def check_health(self) -> HealthStatus:
        """Report whether the backend is reachable and has a model loaded."""
        try:
            async with self._client() as client:
                response = await client.get(f"{self.base_url}/models")
                body = response.json()
        except (httpx.HTTPError, ValueError) as e:
            return HealthStatus(status="error", error=str(e) or type(e).__name__)

        models = body.get("data") if isinstance(body, dict) else None
        if models and isinstance(models[0], dict) and models[0].get("id"):
            return HealthStatus(status="connected", model=models[0]["id"])
        return HealthStatus(status="error", error="No models loaded")
