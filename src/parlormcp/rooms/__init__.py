"""Rooms domain: Redis persistence and event broadcasting."""

from __future__ import annotations

from parlormcp.rooms.broadcast import RedisBroadcaster
from parlormcp.rooms.broadcast import channel_for
from parlormcp.rooms.redis_store import RedisRoomStore

__all__ = [
    "RedisBroadcaster",
    "RedisRoomStore",
    "channel_for",
]
