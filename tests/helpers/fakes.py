"""Builders and in-memory fakes for the orchestration collaborators."""

from __future__ import annotations

import asyncio
from datetime import datetime
from datetime import timedelta
from datetime import timezone

from parlormcp.config import CompletionConfig
from parlormcp.config import OrchestratorConfig
from parlormcp.engine import CompletionError
from parlormcp.engine import CompletionErrorKind
from parlormcp.models import BigFive
from parlormcp.models import Message
from parlormcp.models import Persona
from parlormcp.models import Room
from parlormcp.models import SenderKind

NOW = datetime(2026, 3, 14, 15, 0, tzinfo=timezone.utc)

FAST_COMPLETION = CompletionConfig(
    provider="noop", timeout_seconds=0.05, max_retries=2, retry_backoff_seconds=0.0
)
FAST_ORCHESTRATION = OrchestratorConfig(
    pacing_delay_seconds=(0.0, 0.0), thinking_delay_seconds=(0.0, 0.0)
)

# ---------------------------------------------------------------------------
# Builders
# ---------------------------------------------------------------------------


def make_persona(persona_id: str, name: str, language: str = "en", **traits) -> Persona:
    return Persona(
        id=persona_id,
        name=name,
        language=language,
        traits=BigFive(**traits),
    )


def make_message(
    room_id: str,
    sender_name: str,
    content: str,
    at: datetime,
    *,
    sender_kind: SenderKind = SenderKind.persona,
    sender_ref: str | None = None,
) -> Message:
    return Message(
        room_id=room_id,
        sender_kind=sender_kind,
        sender_name=sender_name,
        sender_ref=sender_ref,
        content=content,
        timestamp=at,
    )


def conversation(
    room_id: str,
    turns: list[tuple[str, str]],
    *,
    end: datetime,
    spacing_seconds: float,
) -> list[Message]:
    """Messages for *turns* spaced evenly, the last one sent at *end*."""
    count = len(turns)
    return [
        make_message(
            room_id,
            sender,
            content,
            end - timedelta(seconds=spacing_seconds * (count - 1 - index)),
        )
        for index, (sender, content) in enumerate(turns)
    ]


# ---------------------------------------------------------------------------
# Fakes
# ---------------------------------------------------------------------------


class InMemoryStore:
    """Dict-backed RoomCatalog.

    ``persona_write_gate`` (when set) holds persona message writes until
    the event is set, counting them in ``blocked_writes``.  ``fail_writes``
    makes every write raise.
    """

    def __init__(self) -> None:
        self.rooms: dict[str, Room] = {}
        self.personas: dict[str, Persona] = {}
        self.messages: dict[str, list[Message]] = {}
        self.persona_write_gate: asyncio.Event | None = None
        self.blocked_writes = 0
        self.fail_writes = False

    async def save_room(self, room: Room) -> None:
        self.rooms[room.id] = room

    async def delete_room(self, room_id: str) -> None:
        self.rooms.pop(room_id, None)
        self.messages.pop(room_id, None)

    async def save_persona(self, persona: Persona) -> None:
        self.personas[persona.id] = persona

    async def get_persona(self, persona_id: str) -> Persona | None:
        return self.personas.get(persona_id)

    async def delete_persona(self, persona_id: str) -> None:
        self.personas.pop(persona_id, None)

    async def get_room(self, room_id: str) -> Room | None:
        return self.rooms.get(room_id)

    async def get_room_personas(self, room_id: str) -> list[Persona]:
        room = self.rooms.get(room_id)
        if room is None:
            return []
        return [self.personas[pid] for pid in room.persona_ids if pid in self.personas]

    async def recent_messages(self, room_id: str, limit: int) -> list[Message]:
        ordered = sorted(self.messages.get(room_id, []), key=lambda m: m.timestamp)
        return ordered[-limit:] if limit > 0 else []

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
        if sender_kind is SenderKind.persona and self.persona_write_gate is not None:
            self.blocked_writes += 1
            await self.persona_write_gate.wait()
        if self.fail_writes:
            raise RuntimeError("write failed")
        message = Message(
            room_id=room_id,
            sender_kind=sender_kind,
            sender_name=sender_name,
            sender_ref=sender_ref,
            content=content,
            reply_to=reply_to,
        )
        self.messages.setdefault(room_id, []).append(message)
        return message

    def seed(self, messages: list[Message]) -> None:
        for message in messages:
            self.messages.setdefault(message.room_id, []).append(message)

    def persona_messages(self, room_id: str) -> list[Message]:
        return [
            m
            for m in self.messages.get(room_id, [])
            if m.sender_kind is SenderKind.persona
        ]


class RecordingBroadcaster:
    """Collects emitted events; ``fail`` makes every emit raise."""

    def __init__(self) -> None:
        self.events: list[tuple[str, str, dict]] = []
        self.fail = False

    async def emit(self, room_id: str, event: str, payload: dict) -> None:
        if self.fail:
            raise ConnectionError("broadcast channel down")
        self.events.append((room_id, event, payload))

    def named(self, event: str) -> list[dict]:
        return [payload for _, name, payload in self.events if name == event]


class ScriptedCompletion:
    """Replies from a script; an exception in the script is raised instead."""

    def __init__(self, *script: str | Exception, default: str = "") -> None:
        self._script = list(script)
        self._default = default
        self.calls: list[dict] = []

    async def complete(
        self,
        prompt: str,
        *,
        system_prompt: str = "",
        temperature: float = 0.8,
        max_tokens: int = 300,
        timeout_seconds: float = 15.0,
    ) -> str:
        self.calls.append(
            {"prompt": prompt, "system_prompt": system_prompt, "timeout": timeout_seconds}
        )
        item = self._script.pop(0) if self._script else self._default
        if isinstance(item, Exception):
            raise item
        return item


class HangingCompletion:
    """Never answers; every call runs into the caller's timeout."""

    def __init__(self) -> None:
        self.calls = 0

    async def complete(self, prompt: str, **kwargs) -> str:
        self.calls += 1
        await asyncio.sleep(3600)
        return ""


def transient(kind: CompletionErrorKind = CompletionErrorKind.network) -> CompletionError:
    return CompletionError(kind, "simulated")
