"""MCP interface contract tests.

All tests use ``fastmcp.Client`` to exercise the full MCP protocol
(serialization, validation).  The server is configured with in-memory
store and broadcaster fakes and the noop completion provider.
"""

from __future__ import annotations

import json

from parlormcp.models import SenderKind


def _parse(result) -> dict:
    """Extract the JSON payload from a CallToolResult."""
    return json.loads(result.content[0].text)


async def _settle() -> None:
    from parlormcp.server import _wait_for_responses

    await _wait_for_responses()


# -----------------------------------------------------------------------
# save_persona / save_room
# -----------------------------------------------------------------------


class TestSavePersona:
    """Contract tests for the save_persona tool."""

    async def test_accepts_valid_payload(self, mcp_client, store):
        result = await mcp_client.call_tool(
            "save_persona",
            {
                "persona_id": "p_mio",
                "name": "Mio",
                "traits": {"openness": 5},
                "language": "en",
            },
        )
        data = _parse(result)
        assert data["status"] == "accepted"
        assert data["persona_id"] == "p_mio"
        assert store.personas["p_mio"].traits.openness == 5
        assert store.personas["p_mio"].traits.extraversion == 3

    async def test_rejects_unknown_trait(self, mcp_client, store):
        result = await mcp_client.call_tool(
            "save_persona",
            {"persona_id": "p_mio", "name": "Mio", "traits": {"charm": 4}},
        )
        data = _parse(result)
        assert data["status"] == "rejected"
        assert data["error_code"] == "validation_error"
        assert "p_mio" not in store.personas

    async def test_rejects_out_of_range_trait(self, mcp_client):
        result = await mcp_client.call_tool(
            "save_persona",
            {"persona_id": "p_mio", "name": "Mio", "traits": {"openness": 9}},
        )
        assert _parse(result)["error_code"] == "validation_error"


class TestSaveRoom:
    """Contract tests for the save_room tool."""

    async def test_accepts_known_roster(self, mcp_client, store, lounge):
        result = await mcp_client.call_tool(
            "save_room",
            {"room_id": "room_den", "name": "Den", "persona_ids": ["p_aki"]},
        )
        data = _parse(result)
        assert data["status"] == "accepted"
        assert store.rooms["room_den"].persona_ids == ["p_aki"]

    async def test_rejects_unknown_persona(self, mcp_client, store, lounge):
        result = await mcp_client.call_tool(
            "save_room",
            {"room_id": "room_den", "name": "Den", "persona_ids": ["p_aki", "p_zed"]},
        )
        data = _parse(result)
        assert data["status"] == "rejected"
        assert data["error_code"] == "persona_not_found"
        assert "room_den" not in store.rooms

    async def test_rejects_empty_name(self, mcp_client):
        result = await mcp_client.call_tool(
            "save_room", {"room_id": "room_den", "name": ""}
        )
        assert _parse(result)["error_code"] == "validation_error"


# -----------------------------------------------------------------------
# send_user_message
# -----------------------------------------------------------------------


class TestSendUserMessage:
    """Contract tests for the send_user_message tool."""

    async def test_every_persona_answers_an_unaddressed_message(
        self, mcp_client, store, broadcaster, lounge
    ):
        result = await mcp_client.call_tool(
            "send_user_message",
            {"room_id": lounge.id, "sender_name": "Mio", "content": "Any plans?"},
        )
        data = _parse(result)
        assert data["status"] == "accepted"
        assert data["message_id"].startswith("msg_")
        assert sorted(data["responders"]) == ["p_aki", "p_ben", "p_cho"]

        await _settle()
        replies = store.persona_messages(lounge.id)
        assert sorted(m.sender_ref for m in replies) == ["p_aki", "p_ben", "p_cho"]
        assert all(m.reply_to is not None for m in replies)
        assert len(broadcaster.named("message")) == 4

    async def test_mention_limits_responders(self, mcp_client, store, lounge):
        result = await mcp_client.call_tool(
            "send_user_message",
            {"room_id": lounge.id, "sender_name": "Mio", "content": "@ben hi!"},
        )
        assert _parse(result)["responders"] == ["p_ben"]
        await _settle()
        assert [m.sender_ref for m in store.persona_messages(lounge.id)] == ["p_ben"]

    async def test_mention_of_someone_outside_the_room_gets_no_replies(
        self, mcp_client, store, lounge
    ):
        result = await mcp_client.call_tool(
            "send_user_message",
            {"room_id": lounge.id, "sender_name": "Mio", "content": "@Zed hello?"},
        )
        data = _parse(result)
        assert data["status"] == "accepted"
        assert data["responders"] == []
        await _settle()
        assert [m.content for m in store.messages[lounge.id]] == ["@Zed hello?"]

    async def test_email_address_does_not_address_anyone(
        self, mcp_client, store, lounge
    ):
        result = await mcp_client.call_tool(
            "send_user_message",
            {
                "room_id": lounge.id,
                "sender_name": "Mio",
                "content": "Send the slides to bob@example.com please",
            },
        )
        data = _parse(result)
        assert data["status"] == "accepted"
        assert sorted(data["responders"]) == ["p_aki", "p_ben", "p_cho"]
        await _settle()
        assert len(store.persona_messages(lounge.id)) == 3

    async def test_malformed_mention_is_rejected_before_persisting(
        self, mcp_client, store, lounge
    ):
        result = await mcp_client.call_tool(
            "send_user_message",
            {"room_id": lounge.id, "sender_name": "Mio", "content": "@@Aki hello?"},
        )
        data = _parse(result)
        assert data["status"] == "rejected"
        assert data["error_code"] == "invalid_mention"
        assert store.messages.get(lounge.id, []) == []

    async def test_unknown_room(self, mcp_client):
        result = await mcp_client.call_tool(
            "send_user_message",
            {"room_id": "room_nowhere", "sender_name": "Mio", "content": "hi"},
        )
        assert _parse(result)["error_code"] == "room_not_found"

    async def test_blank_content_is_invalid(self, mcp_client, lounge):
        result = await mcp_client.call_tool(
            "send_user_message",
            {"room_id": lounge.id, "sender_name": "Mio", "content": "   "},
        )
        assert _parse(result)["error_code"] == "invalid_message"

    async def test_empty_content_fails_validation(self, mcp_client, lounge):
        result = await mcp_client.call_tool(
            "send_user_message",
            {"room_id": lounge.id, "sender_name": "Mio", "content": ""},
        )
        assert _parse(result)["error_code"] == "validation_error"

    async def test_user_message_is_stored_as_user(self, mcp_client, store, lounge):
        await mcp_client.call_tool(
            "send_user_message",
            {"room_id": lounge.id, "sender_name": "Mio", "content": "@Aki hey"},
        )
        await _settle()
        first = store.messages[lounge.id][0]
        assert first.sender_kind is SenderKind.user
        assert first.sender_name == "Mio"


# -----------------------------------------------------------------------
# request_auto_chat / tick_idle_room / interrupt_room
# -----------------------------------------------------------------------


class TestAutoChat:
    """Contract tests for request_auto_chat and tick_idle_room."""

    async def test_request_auto_chat_starts_a_reply(self, mcp_client, store, lounge):
        result = await mcp_client.call_tool(
            "request_auto_chat", {"room_id": lounge.id, "persona_id": "p_cho"}
        )
        assert _parse(result)["status"] == "started"
        await _settle()
        assert [m.sender_ref for m in store.persona_messages(lounge.id)] == ["p_cho"]

    async def test_request_auto_chat_rejects_outsider(self, mcp_client, lounge):
        result = await mcp_client.call_tool(
            "request_auto_chat", {"room_id": lounge.id, "persona_id": "p_zed"}
        )
        data = _parse(result)
        assert data["status"] == "rejected"
        assert data["error_code"] == "persona_not_found"

    async def test_idle_tick_in_empty_room_picks_the_extravert(
        self, mcp_client, lounge
    ):
        result = await mcp_client.call_tool("tick_idle_room", {"room_id": lounge.id})
        data = _parse(result)
        assert data["status"] == "triggered"
        assert data["persona_id"] == "p_aki"
        assert data["phase"] == "dormant"
        assert 5000 <= data["suggested_delay_ms"] <= 120000
        await _settle()

    async def test_idle_tick_unknown_room(self, mcp_client):
        result = await mcp_client.call_tool("tick_idle_room", {"room_id": "room_x"})
        assert _parse(result)["error_code"] == "room_not_found"

    async def test_interrupt_idle_room_cancels_nothing(self, mcp_client, lounge):
        result = await mcp_client.call_tool("interrupt_room", {"room_id": lounge.id})
        data = _parse(result)
        assert data["status"] == "accepted"
        assert data["cancelled"] == 0

    async def test_interrupt_unknown_room_is_rejected(self, mcp_client):
        result = await mcp_client.call_tool(
            "interrupt_room", {"room_id": "room_nowhere"}
        )
        data = _parse(result)
        assert data["status"] == "rejected"
        assert data["error_code"] == "room_not_found"
        assert data["cancelled"] == 0


class TestSetAutoConversation:
    async def test_toggle_reports_watched_rooms(self, mcp_client, lounge):
        await mcp_client.call_tool(
            "save_room",
            {"room_id": lounge.id, "name": lounge.name, "persona_ids": ["p_aki"]},
        )
        data = _parse(
            await mcp_client.call_tool("set_auto_conversation", {"enabled": True})
        )
        assert data["enabled"] is True
        assert data["watched_rooms"] == [lounge.id]
        data = _parse(
            await mcp_client.call_tool("set_auto_conversation", {"enabled": False})
        )
        assert data["enabled"] is False


# -----------------------------------------------------------------------
# Insights and deletion
# -----------------------------------------------------------------------


class TestInsights:
    async def test_conversation_state_of_empty_room(self, mcp_client, lounge):
        result = await mcp_client.call_tool(
            "get_conversation_state", {"room_id": lounge.id}
        )
        data = _parse(result)
        assert data["status"] == "ok"
        assert data["state"]["phase"] == "dormant"
        assert data["state"]["intervention_need"]["reason"] == "cooling_conversation"
        assert data["active_personas"] == []

    async def test_persona_insights_after_a_reply(self, mcp_client, lounge):
        await mcp_client.call_tool(
            "send_user_message",
            {"room_id": lounge.id, "sender_name": "Mio", "content": "@Cho thoughts?"},
        )
        await _settle()
        data = _parse(
            await mcp_client.call_tool("get_persona_insights", {"persona_id": "p_cho"})
        )
        assert data["status"] == "ok"
        assert data["memory"]["total"] == 2
        assert data["learning"]["total_interactions"] == 1
        assert len(data["recent_outputs"]) == 1

    async def test_unknown_persona_insights(self, mcp_client):
        data = _parse(
            await mcp_client.call_tool("get_persona_insights", {"persona_id": "p_x"})
        )
        assert data["error_code"] == "persona_not_found"


class TestDelete:
    async def test_delete_room(self, mcp_client, store, lounge):
        data = _parse(await mcp_client.call_tool("delete_room", {"room_id": lounge.id}))
        assert data["status"] == "deleted"
        assert lounge.id not in store.rooms
        again = _parse(
            await mcp_client.call_tool("delete_room", {"room_id": lounge.id})
        )
        assert again["error_code"] == "room_not_found"

    async def test_delete_persona(self, mcp_client, store, lounge):
        data = _parse(
            await mcp_client.call_tool("delete_persona", {"persona_id": "p_ben"})
        )
        assert data["status"] == "deleted"
        assert "p_ben" not in store.personas
