import logging
import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Optional

import httpx

from src.config import settings

logger = logging.getLogger(__name__)

_PLACEHOLDER = re.compile(r"\{:(\w+)\}")


def format_datetime(value: datetime) -> str:
    """Render a datetime the way Pocketbase stores it (UTC, milliseconds)."""
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc)
    return value.strftime("%Y-%m-%d %H:%M:%S.") + f"{value.microsecond // 1000:03d}Z"


def _filter_literal(value: Any) -> str:
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (int, float)):
        return repr(value)
    if isinstance(value, datetime):
        value = format_datetime(value)
    text = str(value).replace("\\", "\\\\").replace("'", "\\'")
    return f"'{text}'"


def build_filter(expression: str, **params: Any) -> str:
    """
    Bind ``{:name}`` placeholders in a filter expression.

    Values are rendered as quoted, escaped literals, so they can never
    change the shape of the expression.

    Raises:
        KeyError: a placeholder has no matching parameter
    """
    return _PLACEHOLDER.sub(lambda m: _filter_literal(params[m.group(1)]), expression)


class PocketbaseError(Exception):
    """Custom exception for Pocketbase errors."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        self.message = message
        self.status_code = status_code
        super().__init__(self.message)


@dataclass
class RecordPage:
    """One page of a Pocketbase record listing."""

    items: list[dict] = field(default_factory=list)
    page: int = 1
    per_page: int = 50
    total_pages: int = 1

    @property
    def has_more(self) -> bool:
        return self.page < self.total_pages


class PocketbaseService:
    """Async client for the Pocketbase records API used by the relay."""

    def __init__(
        self,
        base_url: Optional[str] = None,
        admin_email: Optional[str] = None,
        admin_password: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = (base_url or settings.pocketbase_url).rstrip("/")
        self._admin_email = admin_email or settings.pocketbase_admin_email
        self._admin_password = admin_password or settings.pocketbase_admin_password
        self._transport = transport
        self._admin_token: Optional[str] = None

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self.base_url, transport=self._transport, timeout=30.0
        )

    async def _admin_headers(self) -> dict[str, str]:
        """
        Authorization header for collection management.

        Empty when no superuser credentials are configured.
        """
        if self._admin_token:
            return {"Authorization": self._admin_token}
        if not self._admin_email or not self._admin_password:
            logger.debug("No admin credentials configured")
            return {}

        data = await self._request(
            "POST",
            "/api/collections/_superusers/auth-with-password",
            json={"identity": self._admin_email, "password": self._admin_password},
        )
        self._admin_token = (data or {}).get("token")
        if self._admin_token:
            logger.info("Pocketbase admin authentication successful")
            return {"Authorization": self._admin_token}
        return {}

    async def _request(
        self,
        method: str,
        path: str,
        json: Optional[dict] = None,
        params: Optional[dict] = None,
        headers: Optional[dict] = None,
    ) -> Any:
        """Make an HTTP request to Pocketbase, raising PocketbaseError on failure."""
        try:
            async with self._client() as client:
                response = await client.request(
                    method, path, json=json, params=params, headers=headers
                )
        except httpx.RequestError as e:
            raise PocketbaseError(f"Connection error: {e}") from e

        if response.status_code >= 400:
            try:
                detail = response.json().get("message")
            except ValueError:
                detail = None
            raise PocketbaseError(
                detail or response.text or "Unknown error", response.status_code
            )

        return response.json() if response.content else None

    # ==================== Health ====================

    async def health_check(self) -> dict:
        """Check if Pocketbase is healthy."""
        return await self._request("GET", "/api/health")

    # ==================== Collections ====================

    async def list_collection_names(self) -> set[str]:
        """Names of all collections (requires admin auth)."""
        result = await self._request(
            "GET",
            "/api/collections",
            params={"perPage": 200},
            headers=await self._admin_headers(),
        )
        return {col.get("name") for col in (result or {}).get("items", [])}

    async def create_collection(self, name: str, fields: list[dict]) -> dict:
        """Create a base collection open to the relay (requires admin auth)."""
        data = {
            "name": name,
            "type": "base",
            "fields": fields,
            "listRule": "",
            "viewRule": "",
            "createRule": "",
        }
        return await self._request(
            "POST", "/api/collections", json=data, headers=await self._admin_headers()
        )

    # ==================== Records ====================

    async def list_records(
        self,
        collection: str,
        filter: Optional[str] = None,
        sort: Optional[str] = None,
        page: int = 1,
        per_page: int = 50,
    ) -> RecordPage:
        """Get one page of records from a collection."""
        params: dict[str, Any] = {"page": page, "perPage": per_page}
        if filter:
            params["filter"] = filter
        if sort:
            params["sort"] = sort

        result = await self._request(
            "GET", f"/api/collections/{collection}/records", params=params
        ) or {}
        return RecordPage(
            items=result.get("items", []),
            page=result.get("page", page),
            per_page=result.get("perPage", per_page),
            total_pages=result.get("totalPages", 1),
        )

    async def create_record(self, collection: str, data: dict) -> dict:
        """Create a new record in a collection."""
        return await self._request(
            "POST", f"/api/collections/{collection}/records", json=data
        )


# Singleton instance
pocketbase = PocketbaseService()
