"""Broadcasters carrying orchestration events to observers."""

from __future__ import annotations

import json
import logging
from typing import Any

from redis.asyncio import Redis  # type: ignore[import-untyped]

logger = logging.getLogger(__name__)

_CHANNEL_PREFIX = "parlormcp:events"


def channel_for(room_id: str) -> str:
    return f"{_CHANNEL_PREFIX}:{room_id}"


class RedisBroadcaster:
    """Publish ``{"event", "room_id", "payload"}`` JSON on a per-room channel."""

    def __init__(self, redis: Redis) -> None:
        self._redis = redis

    async def emit(self, room_id: str, event: str, payload: dict[str, Any]) -> None:
        body = json.dumps(
            {"event": event, "room_id": room_id, "payload": payload},
            ensure_ascii=False,
            default=str,
        )
        receivers = await self._redis.publish(channel_for(room_id), body)
        logger.debug("Published %s to %s (%d receivers)", event, room_id, receivers)
