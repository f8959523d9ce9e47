# floatchat/store.py
from __future__ import annotations

import logging
from typing import Callable, Optional, Sequence

from .context import DEFAULT_WINDOW_SIZE, extract_context
from .schemas import ConversationTurn, QueryContext

logger = logging.getLogger(__name__)

ContextPublisher = Callable[[str, QueryContext], None]


class SessionContextStore:
    """
    The single mutable cell holding a session's live QueryContext.

    `refresh()` recomputes the context from the turn log and publishes it
    only when it changed; `clear()` always publishes the empty context.
    Callers only ever see deep-copied snapshots.
    """

    def __init__(
        self,
        session_id: str,
        publisher: Optional[ContextPublisher] = None,
        window_size: int = DEFAULT_WINDOW_SIZE,
    ):
        if window_size < 1:
            raise ValueError(f"window_size must be >= 1, got {window_size}")
        self.session_id = session_id
        self.window_size = window_size
        self._publisher = publisher
        self._context = QueryContext()

    @property
    def current_context(self) -> QueryContext:
        return self._context.snapshot()

    def refresh(self, turns: Sequence[ConversationTurn]) -> bool:
        """Recompute from `turns`; returns True when the context changed."""
        updated = extract_context(turns, self.window_size)
        if updated == self._context:
            return False
        self._context = updated
        self._publish()
        return True

    def clear(self) -> None:
        self._context = QueryContext()
        self._publish()

    def _publish(self) -> None:
        if self._publisher is None:
            return
        try:
            self._publisher(self.session_id, self._context.snapshot())
        except Exception as e:
            logger.error(f"Context push failed for session {self.session_id}: {e}")
