# floatchat/client.py
"""Synchronous HTTP client for the FloatChat session/chat service."""
from __future__ import annotations

import logging
from typing import Any, Dict, Optional

import httpx

from .schemas import ConversationTurn, QueryContext

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "http://localhost:8001"


class FloatChatClient:
    def __init__(
        self,
        base_url: str = DEFAULT_BASE_URL,
        timeout: float = 30.0,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        self._http = httpx.Client(base_url=base_url.rstrip("/"), timeout=timeout, transport=transport)

    def close(self) -> None:
        self._http.close()

    def __enter__(self) -> "FloatChatClient":
        return self

    def __exit__(self, *exc) -> None:
        self.close()

    def _json(self, method: str, path: str, **kwargs) -> Any:
        resp = self._http.request(method, path, **kwargs)
        resp.raise_for_status()
        return resp.json()

    def create_session(self) -> str:
        return self._json("POST", "/api/session")["session_id"]

    def send_message(
        self,
        text: str,
        session_id: str,
        context: Optional[QueryContext] = None,
    ) -> ConversationTurn:
        """Send a user message; returns the assistant turn."""
        payload: Dict[str, Any] = {"message": text, "session_id": session_id}
        if context is not None:
            payload["context"] = context.model_dump(mode="json")
        data = self._json("POST", "/api/chat", json=payload)
        if data.get("turn"):
            return ConversationTurn.model_validate(data["turn"])
        return ConversationTurn(id=data["message_id"], role="assistant", text=data["response"])

    def update_context(self, session_id: str, context: QueryContext) -> None:
        self._json("PUT", f"/api/session/{session_id}/context", json=context.model_dump(mode="json"))

    def get_health(self) -> Dict[str, Any]:
        return self._json("GET", "/api/health")
