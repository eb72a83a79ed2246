"""Redis-backed room, persona and message store.

Rooms and personas are JSON strings keyed by ``parlormcp:room:{id}`` and
``parlormcp:persona:{id}``.  Messages are JSON strings keyed by
``parlormcp:message:{id}``; a sorted set ``parlormcp:room:{id}:messages``
tracks each room's history (score = timestamp).
"""

from __future__ import annotations

from redis.asyncio import Redis  # type: ignore[import-untyped]

from parlormcp.models import Message
from parlormcp.models import Persona
from parlormcp.models import Room
from parlormcp.models import SenderKind

# ---------------------------------------------------------------------------
# Key prefixes
# ---------------------------------------------------------------------------

_PREFIX = "parlormcp"
_ROOM_KEY = f"{_PREFIX}:room"
_PERSONA_KEY = f"{_PREFIX}:persona"
_MESSAGE_KEY = f"{_PREFIX}:message"


def _history_key(room_id: str) -> str:
    return f"{_ROOM_KEY}:{room_id}:messages"


def _decode(raw: bytes | str) -> str:
    return raw.decode() if isinstance(raw, bytes) else raw


class RedisRoomStore:
    """Room/persona/message persistence with bounded per-room history."""

    def __init__(self, redis: Redis, *, max_history: int = 1000) -> None:
        self._redis = redis
        self._max_history = max_history

    # -- rooms and personas --

    async def save_room(self, room: Room) -> None:
        await self._redis.set(f"{_ROOM_KEY}:{room.id}", room.model_dump_json())

    async def get_room(self, room_id: str) -> Room | None:
        data = await self._redis.get(f"{_ROOM_KEY}:{room_id}")
        if data is None:
            return None
        return Room.model_validate_json(data)

    async def delete_room(self, room_id: str) -> None:
        """Delete a room together with its message history."""
        ids = await self._redis.zrange(_history_key(room_id), 0, -1)
        pipe = self._redis.pipeline()
        for raw_id in ids:
            pipe.delete(f"{_MESSAGE_KEY}:{_decode(raw_id)}")
        pipe.delete(_history_key(room_id))
        pipe.delete(f"{_ROOM_KEY}:{room_id}")
        await pipe.execute()

    async def save_persona(self, persona: Persona) -> None:
        await self._redis.set(
            f"{_PERSONA_KEY}:{persona.id}", persona.model_dump_json()
        )

    async def get_persona(self, persona_id: str) -> Persona | None:
        data = await self._redis.get(f"{_PERSONA_KEY}:{persona_id}")
        if data is None:
            return None
        return Persona.model_validate_json(data)

    async def delete_persona(self, persona_id: str) -> None:
        await self._redis.delete(f"{_PERSONA_KEY}:{persona_id}")

    async def get_room_personas(self, room_id: str) -> list[Persona]:
        """Return the room's roster in roster order, skipping deleted personas."""
        room = await self.get_room(room_id)
        if room is None:
            return []
        personas: list[Persona] = []
        for persona_id in room.persona_ids:
            persona = await self.get_persona(persona_id)
            if persona is not None:
                personas.append(persona)
        return personas

    # -- messages --

    async def create_message(
        self,
        *,
        room_id: str,
        sender_kind: SenderKind,
        sender_name: str,
        content: str,
        sender_ref: str | None = None,
        reply_to: str | None = None,
    ) -> Message:
        message = Message(
            room_id=room_id,
            sender_kind=sender_kind,
            sender_name=sender_name,
            sender_ref=sender_ref,
            content=content,
            reply_to=reply_to,
        )
        pipe = self._redis.pipeline()
        pipe.set(f"{_MESSAGE_KEY}:{message.id}", message.model_dump_json())
        pipe.zadd(_history_key(room_id), {message.id: message.timestamp.timestamp()})
        await pipe.execute()
        await self._trim_history(room_id)
        return message

    async def get_message(self, message_id: str) -> Message | None:
        data = await self._redis.get(f"{_MESSAGE_KEY}:{message_id}")
        if data is None:
            return None
        return Message.model_validate_json(data)

    async def recent_messages(self, room_id: str, limit: int) -> list[Message]:
        """Return up to *limit* latest messages of the room, oldest first."""
        if limit <= 0:
            return []
        ids = await self._redis.zrevrange(_history_key(room_id), 0, limit - 1)
        results: list[Message] = []
        for raw_id in reversed(ids):
            message = await self.get_message(_decode(raw_id))
            if message is not None:
                results.append(message)
        return results

    async def count_messages(self, room_id: str) -> int:
        return await self._redis.zcard(_history_key(room_id))

    async def clear(self) -> None:
        """Remove every parlormcp key."""
        keys: list = []
        async for key in self._redis.scan_iter(match=f"{_PREFIX}:*"):
            keys.append(key)
        if keys:
            await self._redis.delete(*keys)

    async def close(self) -> None:
        await self._redis.aclose()

    # -- internal --

    async def _trim_history(self, room_id: str) -> None:
        """Drop the oldest messages once the room exceeds ``max_history``."""
        key = _history_key(room_id)
        excess = await self._redis.zcard(key) - self._max_history
        if excess <= 0:
            return
        oldest = await self._redis.zrange(key, 0, excess - 1)
        pipe = self._redis.pipeline()
        for raw_id in oldest:
            message_id = _decode(raw_id)
            pipe.delete(f"{_MESSAGE_KEY}:{message_id}")
            pipe.zrem(key, message_id)
        await pipe.execute()
