# floatchat/sessions.py
from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from .context import DEFAULT_WINDOW_SIZE
from .schemas import ConversationTurn, MeasurementRow, QueryContext, Role
from .store import SessionContextStore

logger = logging.getLogger(__name__)


class SessionNotFound(KeyError):
    pass


def _now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class ChatSession:
    """Process-local state of one conversation."""

    id: str
    store: SessionContextStore
    created_at: datetime = field(default_factory=_now)
    last_updated: datetime = field(default_factory=_now)
    turns: List[ConversationTurn] = field(default_factory=list)
    context: QueryContext = field(default_factory=QueryContext)
    rows: List[MeasurementRow] = field(default_factory=list)
    files: List[Dict[str, Any]] = field(default_factory=list)

    def touch(self) -> None:
        self.last_updated = _now()


class SessionRegistry:
    """
    In-memory chat sessions: turn logs, pushed query contexts and the
    measurement rows uploaded into each session. Nothing is persisted.
    """

    def __init__(self, window_size: int = DEFAULT_WINDOW_SIZE):
        self.window_size = window_size
        self._sessions: Dict[str, ChatSession] = {}

    # ------------------ sessions ------------------

    def create_session(self, session_id: Optional[str] = None) -> ChatSession:
        session_id = session_id or str(uuid.uuid4())
        if session_id in self._sessions:
            return self._sessions[session_id]
        store = SessionContextStore(session_id, publisher=self.update_context, window_size=self.window_size)
        session = ChatSession(id=session_id, store=store)
        self._sessions[session_id] = session
        logger.info(f"Created session {session_id}")
        return session

    def get(self, session_id: str) -> ChatSession:
        try:
            return self._sessions[session_id]
        except KeyError:
            raise SessionNotFound(session_id)

    def clear_session(self, session_id: str) -> None:
        if self._sessions.pop(session_id, None) is None:
            raise SessionNotFound(session_id)

    def clear_all(self) -> int:
        n = len(self._sessions)
        self._sessions.clear()
        return n

    def __len__(self) -> int:
        return len(self._sessions)

    def __iter__(self):
        return iter(list(self._sessions.values()))

    # ------------------ chat I/O ------------------

    def save_chat_message(
        self,
        session_id: str,
        role: Role,
        content: str,
        confidence_score: Optional[float] = None,
    ) -> ConversationTurn:
        """
        Append a turn, creating the session if needed. User turns refresh the
        session's query context.
        """
        session = self.create_session(session_id)
        turn = ConversationTurn(role=role, text=content, confidence_score=confidence_score)
        session.turns.append(turn)
        session.touch()
        if role == "user":
            session.store.refresh(session.turns)
        return turn

    def get_chat_history(self, session_id: str, limit: int = 50) -> List[ConversationTurn]:
        """Return up to `limit` most recent turns in chronological order."""
        return list(self.get(session_id).turns[-limit:])

    # ------------------ context & data ------------------

    def update_context(self, session_id: str, context: QueryContext) -> None:
        session = self.get(session_id)
        session.context = context.snapshot()
        session.touch()

    def attach_rows(self, session_id: str, rows: List[MeasurementRow], file_info: Optional[Dict[str, Any]] = None) -> int:
        session = self.create_session(session_id)
        session.rows.extend(rows)
        if file_info:
            session.files.append(file_info)
        session.touch()
        return len(session.rows)

    def metrics(self) -> Dict[str, int]:
        sessions = list(self._sessions.values())
        return {
            "sessions": len(sessions),
            "turns": sum(len(s.turns) for s in sessions),
            "rows": sum(len(s.rows) for s in sessions),
        }
