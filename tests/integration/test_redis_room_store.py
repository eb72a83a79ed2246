"""Integration tests for the Redis-backed room store and broadcaster."""

from __future__ import annotations

import asyncio
import json
import time

import pytest

from parlormcp.models import Room
from parlormcp.models import SenderKind
from parlormcp.rooms import RedisBroadcaster
from parlormcp.rooms import RedisRoomStore
from parlormcp.rooms import channel_for
from tests.helpers.fakes import make_persona


@pytest.fixture()
def room_store(redis_client) -> RedisRoomStore:
    return RedisRoomStore(redis_client, max_history=5)


async def _write(room_store: RedisRoomStore, room_id: str, content: str):
    return await room_store.create_message(
        room_id=room_id,
        sender_kind=SenderKind.user,
        sender_name="Mio",
        content=content,
    )


class TestRoomsAndPersonas:
    async def test_roundtrip_and_roster_order(self, room_store):
        await room_store.save_persona(make_persona("p_b", "Ben"))
        await room_store.save_persona(make_persona("p_a", "Aki", language="ja"))
        await room_store.save_room(
            Room(id="r1", name="Lounge", topic="tea", persona_ids=["p_b", "p_x", "p_a"])
        )

        room = await room_store.get_room("r1")
        assert room.topic == "tea"
        roster = await room_store.get_room_personas("r1")
        assert [p.id for p in roster] == ["p_b", "p_a"]
        assert roster[1].language == "ja"

    async def test_missing_entities(self, room_store):
        assert await room_store.get_room("nope") is None
        assert await room_store.get_persona("nope") is None
        assert await room_store.get_room_personas("nope") == []

    async def test_delete_persona(self, room_store):
        await room_store.save_persona(make_persona("p_a", "Aki"))
        await room_store.delete_persona("p_a")
        assert await room_store.get_persona("p_a") is None


class TestMessages:
    async def test_recent_messages_oldest_first(self, room_store):
        await room_store.save_room(Room(id="r1", name="Lounge"))
        written = []
        for index in range(4):
            written.append(await _write(room_store, "r1", f"line {index}"))
            await asyncio.sleep(0.002)

        recent = await room_store.recent_messages("r1", 3)
        assert [m.content for m in recent] == ["line 1", "line 2", "line 3"]
        assert await room_store.get_message(written[0].id) == written[0]
        assert await room_store.recent_messages("r1", 0) == []

    async def test_history_is_trimmed_to_max(self, room_store):
        first = await _write(room_store, "r1", "line 0")
        for index in range(1, 8):
            await asyncio.sleep(0.002)
            await _write(room_store, "r1", f"line {index}")

        assert await room_store.count_messages("r1") == 5
        assert await room_store.get_message(first.id) is None
        recent = await room_store.recent_messages("r1", 10)
        assert recent[0].content == "line 3"

    async def test_delete_room_removes_history(self, room_store):
        await room_store.save_room(Room(id="r1", name="Lounge"))
        message = await _write(room_store, "r1", "hello")
        await room_store.delete_room("r1")
        assert await room_store.get_room("r1") is None
        assert await room_store.get_message(message.id) is None
        assert await room_store.count_messages("r1") == 0

    async def test_clear_removes_all_keys(self, room_store, redis_client):
        await room_store.save_room(Room(id="r1", name="Lounge"))
        await _write(room_store, "r1", "hello")
        await redis_client.set("unrelated", "1")
        await room_store.clear()
        assert await room_store.get_room("r1") is None
        assert await redis_client.get("unrelated") == b"1"


class TestRedisBroadcaster:
    async def test_publishes_json_event_on_room_channel(self, redis_client):
        pubsub = redis_client.pubsub()
        await pubsub.subscribe(channel_for("r1"))
        try:
            await RedisBroadcaster(redis_client).emit(
                "r1", "typing", {"persona_id": "p_a", "is_typing": True}
            )
            received = None
            deadline = time.monotonic() + 2.0
            while received is None and time.monotonic() < deadline:
                received = await pubsub.get_message(
                    ignore_subscribe_messages=True, timeout=0.1
                )
        finally:
            await pubsub.unsubscribe()
            await pubsub.aclose()

        assert received is not None
        body = json.loads(received["data"])
        assert body == {
            "event": "typing",
            "room_id": "r1",
            "payload": {"persona_id": "p_a", "is_typing": True},
        }
