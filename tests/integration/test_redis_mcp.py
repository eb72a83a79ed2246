"""MCP integration tests against a real Redis store.

Verify that the tools, the orchestrator and the Redis-backed store work
together through the full MCP protocol (``fastmcp.Client``).
"""

from __future__ import annotations

import json

import pytest
from fastmcp import Client

from parlormcp.config import SchedulerConfig
from parlormcp.server import _wait_for_responses
from parlormcp.server import configure
from parlormcp.server import mcp
from parlormcp.server import shutdown
from tests.helpers.fakes import FAST_COMPLETION
from tests.helpers.fakes import FAST_ORCHESTRATION


def _parse(result) -> dict:
    return json.loads(result.content[0].text)


@pytest.fixture(autouse=True)
async def _setup_server(redis_container, redis_client):
    """Configure the server with the test Redis before each test."""
    await configure(
        redis_url=redis_container,
        completion_config=FAST_COMPLETION,
        orchestrator_config=FAST_ORCHESTRATION,
        scheduler_config=SchedulerConfig(enabled=False),
    )
    yield
    await shutdown()


async def _seed_room(client) -> None:
    for persona_id, name, traits in (
        ("p_aki", "Aki", {"extraversion": 5}),
        ("p_ben", "Ben", {"agreeableness": 5}),
    ):
        await client.call_tool(
            "save_persona",
            {"persona_id": persona_id, "name": name, "traits": traits, "language": "en"},
        )
    await client.call_tool(
        "save_room",
        {
            "room_id": "room_tea",
            "name": "Tea",
            "topic": "green tea",
            "persona_ids": ["p_aki", "p_ben"],
        },
    )


class TestRedisMCP:
    """MCP roundtrip tests with the Redis store."""

    async def test_user_message_gets_persisted_replies(self, redis_client):
        async with Client(mcp) as client:
            await _seed_room(client)
            result = await client.call_tool(
                "send_user_message",
                {"room_id": "room_tea", "sender_name": "Mio", "content": "Hello!"},
            )
            data = _parse(result)
            assert data["status"] == "accepted"
            await _wait_for_responses("room_tea")

        count = await redis_client.zcard("parlormcp:room:room_tea:messages")
        assert count == 3

    async def test_state_reflects_stored_history(self):
        async with Client(mcp) as client:
            await _seed_room(client)
            await client.call_tool(
                "send_user_message",
                {"room_id": "room_tea", "sender_name": "Mio", "content": "@Ben hi"},
            )
            await _wait_for_responses("room_tea")
            state = _parse(
                await client.call_tool(
                    "get_conversation_state", {"room_id": "room_tea"}
                )
            )["state"]

        counts = {p["name"]: p["message_count"] for p in state["participants"]}
        assert counts == {"Aki": 0, "Ben": 1}
        assert state["idle_seconds"] is not None

    async def test_deleted_room_is_gone(self):
        async with Client(mcp) as client:
            await _seed_room(client)
            deleted = _parse(
                await client.call_tool("delete_room", {"room_id": "room_tea"})
            )
            assert deleted["status"] == "deleted"
            result = _parse(
                await client.call_tool(
                    "send_user_message",
                    {"room_id": "room_tea", "sender_name": "Mio", "content": "hi"},
                )
            )
            assert result["error_code"] == "room_not_found"
