"""Tests for blocsync.store.http, driven through httpx.MockTransport."""

from __future__ import annotations

import json

import httpx
import pytest

from blocsync.config import BlocSyncConfig
from blocsync.errors import BlocSyncAuthError
from blocsync.models import Bloc, WriteStatus
from blocsync.store.http import HttpBlocStore
from blocsync.store.transport import AsyncBlocTransport

BLOC = Bloc("b1", "a0", '{"type": "paragraph"}', "p1", "paragraph", 10, 10)


def make_config(**overrides) -> BlocSyncConfig:
    defaults = dict(
        token="test-token-1234",
        base_url="https://blocs.test/api",
        retry_max_attempts=3,
        retry_base_delay=0.0,
        retry_max_delay=0.0,
        retry_jitter=False,
        rate_limit_rps=10_000.0,
    )
    defaults.update(overrides)
    return BlocSyncConfig(**defaults)


class FakeServer:
    """Route table for httpx.MockTransport keyed by ``(method, path)``."""

    def __init__(self):
        self.routes: dict[tuple[str, str], object] = {}
        self.requests: list[httpx.Request] = []

    def route(self, method, path, response):
        self.routes[(method, path)] = response

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        response = self.routes.get((request.method, request.url.path))
        if response is None:
            return httpx.Response(404, json={"message": "no route"})
        if callable(response):
            return response(request)
        return response

    def body(self, index=-1):
        return json.loads(self.requests[index].content)


@pytest.fixture
def server():
    return FakeServer()


@pytest.fixture
async def store(server):
    transport = AsyncBlocTransport(make_config(), transport=httpx.MockTransport(server))
    async with HttpBlocStore(transport=transport) as http_store:
        yield http_store


class TestWrites:
    async def test_create(self, server, store):
        server.route("POST", "/api/blocs", httpx.Response(201, json={"id": "b1"}))
        assert await store.create_bloc(BLOC) == "b1"
        assert server.body() == BLOC.to_dict()
        assert server.requests[-1].headers["authorization"] == "Bearer test-token-1234"

    async def test_create_without_id_is_failure(self, server, store):
        server.route("POST", "/api/blocs", httpx.Response(200, json={}))
        assert await store.create_bloc(BLOC) == ""

    @pytest.mark.parametrize(
        ("payload", "expected"),
        [
            ({"status": 1}, WriteStatus.SUCCESS),
            ({"status": 0}, WriteStatus.NO_CHANGE),
            ({"status": -1}, WriteStatus.ERROR),
            ({"status": 7}, WriteStatus.ERROR),
            ({"status": "weird"}, WriteStatus.ERROR),
            ({}, WriteStatus.ERROR),
        ],
    )
    async def test_update_content_status(self, server, store, payload, expected):
        server.route("PATCH", "/api/blocs/b1/content", httpx.Response(200, json=payload))
        assert await store.update_bloc_content("b1", "{}", 42) is expected
        assert server.body() == {"content": "{}", "updated_at": 42}

    async def test_update_position(self, server, store):
        server.route("PATCH", "/api/blocs/b1/position", httpx.Response(200, json={"status": 1}))
        assert await store.update_bloc_position("b1", "a1V", 42) is WriteStatus.SUCCESS
        assert server.body() == {"position": "a1V", "updated_at": 42}

    async def test_update_page_id(self, server, store):
        server.route("PATCH", "/api/blocs/b1/page", httpx.Response(200, json={"ok": True}))
        assert await store.update_bloc_page_id("b1", "p2") is True
        assert server.body() == {"page_id": "p2"}

    async def test_deletes(self, server, store):
        server.route("DELETE", "/api/blocs/b1", httpx.Response(200, json={"ok": True}))
        server.route("DELETE", "/api/pages/p1/blocs", httpx.Response(200, json={"ok": False}))
        assert await store.delete_bloc("b1") is True
        assert await store.delete_bloc_by_page_id("p1") is False

    async def test_auth_error_propagates(self, server, store):
        server.route("DELETE", "/api/blocs/b1", httpx.Response(401, json={"message": "bad"}))
        with pytest.raises(BlocSyncAuthError):
            await store.delete_bloc("b1")


class TestReads:
    async def test_get_by_id(self, server, store):
        server.route("GET", "/api/blocs/b1", httpx.Response(200, json=BLOC.to_dict()))
        assert await store.get_bloc_by_id("b1") == BLOC

    async def test_get_missing_returns_none(self, server, store):
        assert await store.get_bloc_by_id("nope") is None

    async def test_get_by_page_follows_cursor_and_sorts(self, server, store):
        second = Bloc("b2", "a1", "{}", "p1", "paragraph")
        third = Bloc("b3", "a0V", "{}", "p1", "paragraph")

        def pages(request):
            if request.url.params.get("cursor") == "c2":
                return httpx.Response(
                    200, json={"results": [third.to_dict()], "has_more": False,
                               "next_cursor": None}
                )
            return httpx.Response(
                200, json={"results": [second.to_dict(), BLOC.to_dict()], "has_more": True,
                           "next_cursor": "c2"}
            )

        server.route("GET", "/api/pages/p1/blocs", pages)
        blocs = await store.get_blocs_by_page_id("p1")
        assert [b.id for b in blocs] == ["b1", "b3", "b2"]
        assert len(server.requests) == 2
        assert server.requests[0].url.params["page_size"] == "100"


async def test_no_authorization_header_without_token(server):
    transport = AsyncBlocTransport(
        make_config(token=""), transport=httpx.MockTransport(server)
    )
    server.route("DELETE", "/api/blocs/b1", httpx.Response(200, json={"ok": True}))
    async with HttpBlocStore(transport=transport) as store:
        await store.delete_bloc("b1")
    assert "authorization" not in server.requests[-1].headers
