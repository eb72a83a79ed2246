"""Collaborator contracts and orchestration errors.

The orchestrator consumes a ``Store`` (rooms, personas, messages) and a
``Broadcaster`` (observer notifications).  Both are injected; nothing in
the core assumes a particular database or wire protocol.
"""

from __future__ import annotations

from typing import Any
from typing import Protocol

from parlormcp.models import Message
from parlormcp.models import Persona
from parlormcp.models import Room
from parlormcp.models import SenderKind

EVENT_TYPING = "typing"
EVENT_MESSAGE = "message"
EVENT_TYPING_CLEARED = "typing_cleared"


class Store(Protocol):
    """Room, persona and message persistence.

    Assumed read-your-writes consistent within one process.
    """

    async def get_room(self, room_id: str) -> Room | None: ...

    async def get_room_personas(self, room_id: str) -> list[Persona]: ...

    async def recent_messages(self, room_id: str, limit: int) -> list[Message]:
        """Return up to *limit* latest messages, oldest first."""
        ...

    async def create_message(
        self,
        *,
        room_id: str,
        sender_kind: SenderKind,
        sender_name: str,
        content: str,
        sender_ref: str | None = None,
        reply_to: str | None = None,
    ) -> Message: ...


class RoomCatalog(Store, Protocol):
    """A Store that can also register and remove rooms and personas."""

    async def save_room(self, room: Room) -> None: ...

    async def delete_room(self, room_id: str) -> None: ...

    async def save_persona(self, persona: Persona) -> None: ...

    async def get_persona(self, persona_id: str) -> Persona | None: ...

    async def delete_persona(self, persona_id: str) -> None: ...


class Broadcaster(Protocol):
    """At-least-once, unordered, fire-and-forget observer notification."""

    async def emit(self, room_id: str, event: str, payload: dict[str, Any]) -> None: ...


# ---------------------------------------------------------------------------
# Errors
# ---------------------------------------------------------------------------


class OrchestrationError(Exception):
    """Base class for inputs rejected at the orchestration boundary."""

    error_code = "orchestration_error"


class RoomNotFoundError(OrchestrationError):
    error_code = "room_not_found"


class PersonaNotFoundError(OrchestrationError):
    error_code = "persona_not_found"


class InvalidMessageError(OrchestrationError):
    error_code = "invalid_message"


class InvalidMentionError(OrchestrationError):
    error_code = "invalid_mention"


class ResponseCancelled(Exception):
    """Internal signal: a response task observed its own cancellation."""
