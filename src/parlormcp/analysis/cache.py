"""Per-room ConversationState cache invalidated by new activity."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from parlormcp.analysis.state import ConversationState


@dataclass(frozen=True)
class _Entry:
    state: ConversationState
    cached_at: datetime


class ConversationStateCache:
    """Keep the latest snapshot per room for at most ``ttl_seconds``."""

    def __init__(self, *, ttl_seconds: float = 30.0) -> None:
        self._ttl_seconds = ttl_seconds
        self._entries: dict[str, _Entry] = {}

    def get(self, room_id: str, *, now: datetime) -> ConversationState | None:
        entry = self._entries.get(room_id)
        if entry is None:
            return None
        if (now - entry.cached_at).total_seconds() > self._ttl_seconds:
            del self._entries[room_id]
            return None
        return entry.state

    def put(self, room_id: str, state: ConversationState, *, now: datetime) -> None:
        self._entries[room_id] = _Entry(state=state, cached_at=now)

    def invalidate(self, room_id: str) -> None:
        self._entries.pop(room_id, None)

    def __len__(self) -> int:
        return len(self._entries)
