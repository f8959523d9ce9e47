"""
API tests for the FloatChat service using FastAPI's TestClient.
"""

import pytest
from fastapi.testclient import TestClient

from floatchat import server
from floatchat.schemas import MeasurementRow


@pytest.fixture
def client():
    server.registry.clear_all()
    with TestClient(server.app) as c:
        yield c
    server.registry.clear_all()


@pytest.fixture
def fake_llm(monkeypatch):
    calls = []

    async def fake_reply(messages):
        calls.append(messages)
        return "Here is what I found.", "fake-llm"

    monkeypatch.setattr(server, "generate_reply", fake_reply)
    return calls


def _new_session(client) -> str:
    resp = client.post("/api/session")
    assert resp.status_code == 200
    return resp.json()["session_id"]


class TestSessions:
    def test_create_session(self, client):
        sid = _new_session(client)
        assert sid
        resp = client.get(f"/api/session/{sid}/context")
        assert resp.status_code == 200
        assert resp.json()["preferred_parameters"] == []

    def test_update_context(self, client):
        sid = _new_session(client)
        ctx = {"preferred_parameters": ["oxygen"], "active_filters": {"location": "pacific"}}
        assert client.put(f"/api/session/{sid}/context", json=ctx).status_code == 200
        got = client.get(f"/api/session/{sid}/context").json()
        assert got["preferred_parameters"] == ["oxygen"]
        assert got["active_filters"] == {"location": "pacific"}

    def test_unknown_session(self, client):
        assert client.get("/api/session/nope/context").status_code == 404
        assert client.put("/api/session/nope/context", json={}).status_code == 404
        assert client.get("/api/chat/history/nope").status_code == 404
        assert client.delete("/api/chat/session/nope").status_code == 404

    def test_clear_context(self, client, fake_llm):
        sid = _new_session(client)
        client.post("/api/chat", json={"message": "temperature please", "session_id": sid})
        resp = client.post(f"/api/session/{sid}/context/clear")
        assert resp.status_code == 200
        assert resp.json()["preferred_parameters"] == []


class TestChat:
    def test_chat_updates_context_and_history(self, client, fake_llm):
        sid = _new_session(client)
        client.post("/api/chat", json={"message": "Show me temperature near the equator", "session_id": sid})
        resp = client.post("/api/chat", json={"message": "and salinity too", "session_id": sid})
        body = resp.json()
        assert body["status"] == "success"
        assert body["provider"] == "fake-llm"
        assert body["turn"]["role"] == "assistant"
        assert body["query_context"]["preferred_parameters"] == ["temperature", "salinity"]
        assert body["query_context"]["active_filters"]["location"] == "equator"

        # context summary is handed to the model
        system_text = " ".join(m["content"] for m in fake_llm[-1] if m["role"] == "system")
        assert "temperature, salinity" in system_text

        history = client.get(f"/api/chat/history/{sid}").json()["messages"]
        assert [m["role"] for m in history] == ["user", "assistant", "user", "assistant"]

    def test_client_context_overrides(self, client, fake_llm):
        sid = _new_session(client)
        ctx = {"spatial_focus": {"latitude": 12.0, "longitude": 70.0}}
        body = client.post("/api/chat", json={"message": "what is here?", "session_id": sid, "context": ctx}).json()
        assert body["query_context"]["spatial_focus"] == {"latitude": 12.0, "longitude": 70.0}

    def test_direct_answer_from_rows(self, client, fake_llm):
        sid = _new_session(client)
        server.registry.attach_rows(sid, [
            MeasurementRow(depth=10, temperature=20.0),
            MeasurementRow(depth=11, temperature=22.0),
            MeasurementRow(depth=500, temperature=5.0),
        ])
        body = client.post("/api/chat", json={"message": "average temperature at 10 m", "session_id": sid}).json()
        assert body["provider"] == "data"
        assert "21.000" in body["response"]
        assert fake_llm == []

    def test_llm_failure_degrades(self, client, monkeypatch):
        async def broken(messages):
            raise RuntimeError("AZURE_OPENAI_DEPLOYMENT is missing.")

        monkeypatch.setattr(server, "generate_reply", broken)
        body = client.post("/api/chat", json={"message": "temperature in the pacific"}).json()
        assert body["status"] == "error"
        assert body["turn"]["confidence_score"] == 0.0
        assert body["query_context"]["preferred_parameters"] == ["temperature"]
        assert body["query_context"]["active_filters"]["location"] == "pacific"

    def test_llm_failure_reply_is_logged(self, client, monkeypatch):
        async def broken(messages):
            raise RuntimeError("AZURE_OPENAI_DEPLOYMENT is missing.")

        monkeypatch.setattr(server, "generate_reply", broken)
        sid = _new_session(client)
        body = client.post("/api/chat", json={"message": "hello", "session_id": sid}).json()
        history = client.get(f"/api/chat/history/{sid}").json()["messages"]
        assert [m["role"] for m in history] == ["user", "assistant"]
        assert history[-1]["id"] == body["message_id"]

    def test_clear_all(self, client, fake_llm):
        _new_session(client)
        _new_session(client)
        assert client.delete("/api/chat/all").json()["status"] == "success"
        assert len(server.registry) == 0


class TestVisualize:
    def test_profile_from_rows(self, client, profile_rows):
        resp = client.post("/api/visualize", json={"kind": "profile", "rows": profile_rows})
        assert resp.status_code == 200
        body = resp.json()
        assert body["kind"] == "profile"
        assert body["series"]["temperature_B"] == [{"depth": 0.0, "value": 29.0}]

    def test_heatmap_from_session_rows(self, client, ocean_rows):
        sid = _new_session(client)
        server.registry.attach_rows(sid, [MeasurementRow.model_validate(r) for r in ocean_rows])
        resp = client.post("/api/visualize", json={
            "kind": "heatmap", "session_id": sid, "options": {"parameter": "salinity"},
        })
        body = resp.json()
        assert body["grid"]["row_keys"] == [15.0, 10.0]
        assert body["coverage"] == 1.0

    def test_bad_requests(self, client):
        assert client.post("/api/visualize", json={"kind": "profile"}).status_code == 400
        assert client.post("/api/visualize", json={"kind": "pie", "rows": []}).status_code == 422
        assert client.post("/api/visualize", json={
            "kind": "heatmap", "rows": [], "options": {"palette": "rainbow"},
        }).status_code == 400

    def test_plot_figure(self, client, ocean_rows):
        resp = client.post("/api/plot", json={"kind": "scatter", "rows": ocean_rows})
        fig = resp.json()
        assert fig["data"][0]["type"] == "scatter"
        assert len(fig["data"][0]["x"]) == 4

    def test_plot_placeholder_when_empty(self, client):
        fig = client.post("/api/plot", json={"kind": "heatmap", "rows": []}).json()
        assert fig["layout"]["title"] == "No Heatmap Data"


class TestUploadAndHealth:
    def test_rejects_non_netcdf(self, client):
        resp = client.post("/api/data/upload", files={"file": ("data.csv", b"a,b", "text/csv")})
        assert resp.status_code == 400

    def test_unreadable_netcdf(self, client):
        resp = client.post("/api/data/upload", files={"file": ("broken.nc", b"not netcdf", "application/x-netcdf")})
        assert resp.status_code == 422

    def test_health(self, client):
        _new_session(client)
        body = client.get("/api/health").json()
        assert body["status"] == "healthy"
        assert body["metrics"]["sessions"] == 1
        assert set(body["services"]) == {"sessions", "ai_service"}
