import json

import httpx
import pytest

from floatchat.client import FloatChatClient
from floatchat.schemas import QueryContext
from floatchat.store import SessionContextStore


class FakeBackend:
    def __init__(self):
        self.requests = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content) if request.content else None
        self.requests.append((request.method, request.url.path, body))
        if request.url.path == "/api/session":
            return httpx.Response(200, json={"session_id": "abc"})
        if request.url.path == "/api/chat":
            return httpx.Response(200, json={
                "response": "Hi!",
                "session_id": body["session_id"],
                "message_id": "m1",
                "status": "success",
                "turn": {"id": "m1", "role": "assistant", "text": "Hi!",
                         "created_at": "2024-01-01T00:00:00Z", "confidence_score": 0.9},
            })
        if request.url.path.endswith("/context"):
            return httpx.Response(200, json={"status": "success"})
        if request.url.path == "/api/health":
            return httpx.Response(200, json={"status": "healthy", "metrics": {}, "services": {}})
        return httpx.Response(404, json={"detail": "Not Found"})


@pytest.fixture
def backend():
    return FakeBackend()


@pytest.fixture
def api(backend):
    with FloatChatClient("http://test", transport=httpx.MockTransport(backend)) as c:
        yield c


class TestFloatChatClient:
    def test_create_session(self, api):
        assert api.create_session() == "abc"

    def test_send_message_returns_assistant_turn(self, api, backend):
        ctx = QueryContext(preferred_parameters=["temperature"])
        turn = api.send_message("hello", "abc", ctx)
        assert turn.role == "assistant" and turn.text == "Hi!"
        assert turn.confidence_score == 0.9
        _, _, body = backend.requests[-1]
        assert body["context"]["preferred_parameters"] == ["temperature"]

    def test_update_context(self, api, backend):
        api.update_context("abc", QueryContext(active_filters={"location": "equator"}))
        method, path, body = backend.requests[-1]
        assert (method, path) == ("PUT", "/api/session/abc/context")
        assert body["active_filters"] == {"location": "equator"}

    def test_get_health(self, api):
        assert api.get_health()["status"] == "healthy"

    def test_http_errors_raise(self):
        transport = httpx.MockTransport(lambda r: httpx.Response(500, json={}))
        with FloatChatClient("http://test", transport=transport) as c:
            with pytest.raises(httpx.HTTPStatusError):
                c.create_session()

    def test_store_pushes_through_client(self, api, backend, turns):
        store = SessionContextStore("abc", publisher=api.update_context)
        store.refresh(turns("salinity in the arabian sea"))
        method, path, body = backend.requests[-1]
        assert path == "/api/session/abc/context"
        assert body["preferred_parameters"] == ["salinity"]
        assert body["active_filters"] == {"location": "arabian sea"}
