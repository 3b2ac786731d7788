"""
Tests for Pocketbase access, the message store and collection setup.

Pocketbase is simulated with httpx.MockTransport.
"""
import json
import sys
from pathlib import Path

import httpx
import pytest

# Add backend to path for imports (so 'from src.xxx' works)
sys.path.insert(0, str(Path(__file__).parent.parent))

PB_URL = "http://pb.test"


class FakePocketbase:
    """Minimal Pocketbase records/collections API kept in memory."""

    def __init__(self, collections=("users",)):
        self.collections = set(collections)
        self.records = []
        self.requests = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path

        if path == "/api/collections/_superusers/auth-with-password":
            return httpx.Response(200, json={"token": "admin-token"})

        if path == "/api/collections":
            if request.headers.get("Authorization") != "admin-token":
                return httpx.Response(401, json={"message": "Unauthorized."})
            if request.method == "GET":
                return httpx.Response(
                    200, json={"items": [{"name": n} for n in sorted(self.collections)]}
                )
            self.collections.add(json.loads(request.content)["name"])
            return httpx.Response(200, json={"id": "col"})

        if path == "/api/collections/messages/records":
            if request.method == "POST":
                data = json.loads(request.content)
                record = {"id": f"r{len(self.records) + 1}", "created": f"t{len(self.records) + 1}", **data}
                self.records.append(record)
                return httpx.Response(200, json=record)
            per_page = int(request.url.params.get("perPage", 50))
            items = list(reversed(self.records))[:per_page]
            total_pages = max(1, -(-len(self.records) // per_page))
            return httpx.Response(
                200,
                json={"page": 1, "perPage": per_page, "totalPages": total_pages, "items": items},
            )

        return httpx.Response(404, json={"message": "The requested resource wasn't found."})


def make_service(handler, **kwargs):
    from src.services.pocketbase import PocketbaseService

    return PocketbaseService(PB_URL, transport=httpx.MockTransport(handler), **kwargs)


class TestPocketbaseService:
    """Tests for PocketbaseService."""

    @pytest.mark.asyncio
    async def test_error_status_carries_message(self):
        """Test Pocketbase error bodies become PocketbaseError."""
        from src.services.pocketbase import PocketbaseError

        service = make_service(FakePocketbase())

        with pytest.raises(PocketbaseError) as exc_info:
            await service.create_record("missing", {})

        assert exc_info.value.status_code == 404
        assert exc_info.value.message == "The requested resource wasn't found."

    @pytest.mark.asyncio
    async def test_connection_error(self):
        """Test transport failures become PocketbaseError without status."""
        from src.services.pocketbase import PocketbaseError

        def handler(request):
            raise httpx.ConnectError("Connection refused")

        with pytest.raises(PocketbaseError) as exc_info:
            await make_service(handler).health_check()

        assert exc_info.value.status_code is None
        assert "Connection refused" in exc_info.value.message

    @pytest.mark.asyncio
    async def test_list_records_page(self):
        """Test paging fields are read from the response."""
        def handler(request):
            return httpx.Response(
                200, json={"page": 2, "perPage": 10, "totalPages": 2, "items": [{"id": "x"}]}
            )

        page = await make_service(handler).list_records("messages", page=2, per_page=10)

        assert page.items == [{"id": "x"}]
        assert page.page == 2
        assert page.has_more is False

    @pytest.mark.asyncio
    async def test_admin_token_is_reused(self):
        """Test superuser auth happens once per service."""
        backend = FakePocketbase()
        service = make_service(backend, admin_email="a@b.c", admin_password="secret")

        await service.list_collection_names()
        await service.list_collection_names()

        auth_calls = [r for r in backend.requests if r.url.path.endswith("auth-with-password")]
        assert len(auth_calls) == 1


class TestMessageStore:
    """Tests for MessageStore."""

    @pytest.mark.asyncio
    async def test_record_and_read_back(self):
        """Test records are written and history returns oldest first."""
        from src.services.messages import MessageStore
        from src.services.streaming.types import Role

        backend = FakePocketbase()
        store = MessageStore(make_service(backend))

        await store.record_message(Role.USER, "hi")
        saved = await store.record_message(Role.ASSISTANT, "hello", session_id="s-1")
        history = await store.recent_messages(limit=10)

        assert saved.role is Role.ASSISTANT
        assert saved.session_id == "s-1"
        assert [(m.role.value, m.content) for m in history] == [("user", "hi"), ("assistant", "hello")]
        assert "session_id" not in backend.records[0]

    @pytest.mark.asyncio
    async def test_recent_messages_query(self):
        """Test history asks for user/assistant entries, newest first, bounded."""
        from src.services.messages import MessageStore

        backend = FakePocketbase()

        await MessageStore(make_service(backend)).recent_messages(limit=4)

        params = backend.requests[-1].url.params
        assert params["perPage"] == "4"
        assert params["sort"] == "-created"
        assert params["filter"] == "role = 'user' || role = 'assistant'"

    @pytest.mark.asyncio
    async def test_list_messages_has_more(self):
        """Test the paging flag follows totalPages."""
        from src.services.messages import MessageStore
        from src.services.streaming.types import Role

        backend = FakePocketbase()
        store = MessageStore(make_service(backend))
        for text in ("one", "two", "three"):
            await store.record_message(Role.USER, text)

        messages, has_more = await store.list_messages(limit=2)

        assert [m.content for m in messages] == ["two", "three"]
        assert has_more is True
        assert "filter" not in backend.requests[-1].url.params

    @pytest.mark.asyncio
    async def test_write_failure_propagates(self):
        """Test store errors reach the caller."""
        from src.services.messages import MessageStore
        from src.services.pocketbase import PocketbaseError
        from src.services.streaming.types import Role

        def handler(request):
            return httpx.Response(400, json={"message": "Failed to create record."})

        with pytest.raises(PocketbaseError):
            await MessageStore(make_service(handler)).record_message(Role.USER, "hi")

    @pytest.mark.asyncio
    async def test_cursor_is_bound_not_pasted(self):
        """Test the cursor is sent as a quoted literal the filter cannot escape."""
        from datetime import datetime, timezone

        from src.services.messages import MessageStore

        backend = FakePocketbase()
        store = MessageStore(make_service(backend))

        await store.list_messages(before=datetime(2024, 5, 1, 12, 0, 0, 250000, tzinfo=timezone.utc))
        await store.list_messages(before='2020" || role != "x')

        filters = [r.url.params["filter"] for r in backend.requests]
        assert filters[0] == "created < '2024-05-01 12:00:00.250Z'"
        assert filters[1] == "created < '2020\" || role != \"x'"


class TestBuildFilter:
    """Tests for filter placeholder binding."""

    def test_literals(self):
        """Test each value type renders as a single literal."""
        from src.services.pocketbase import build_filter

        assert build_filter("n = {:n} && ok = {:ok} && x = {:x}", n=3, ok=True, x=None) == (
            "n = 3 && ok = true && x = null"
        )

    def test_quotes_are_escaped(self):
        """Test a single quote in a value cannot close the literal."""
        from src.services.pocketbase import build_filter

        assert build_filter("content = {:c}", c="it's") == "content = 'it\\'s'"

    def test_naive_datetime_is_taken_as_utc(self):
        """Test datetimes use the stored Pocketbase format."""
        from datetime import datetime

        from src.services.pocketbase import build_filter

        assert build_filter("created < {:t}", t=datetime(2024, 1, 2, 3, 4, 5)) == (
            "created < '2024-01-02 03:04:05.000Z'"
        )

    def test_missing_parameter(self):
        """Test an unbound placeholder is an error."""
        from src.services.pocketbase import build_filter

        with pytest.raises(KeyError):
            build_filter("created < {:before}")


class TestInitDatabase:
    """Tests for collection setup."""

    @pytest.mark.asyncio
    async def test_creates_missing_collection(self):
        """Test the messages collection is created once."""
        from src.services.db_init import init_database

        backend = FakePocketbase()
        service = make_service(backend, admin_email="a@b.c", admin_password="secret")

        assert await init_database(service) == (1, 0)
        assert "messages" in backend.collections
        assert await init_database(service) == (0, 1)

    @pytest.mark.asyncio
    async def test_listing_failure_is_logged_not_raised(self):
        """Test init reports nothing done when collections cannot be listed."""
        from src.services.db_init import init_database

        def handler(request):
            raise httpx.ConnectError("Connection refused")

        assert await init_database(make_service(handler)) == (0, 0)
