"""Pydantic models for MCP tool inputs and outputs."""

from __future__ import annotations

from pydantic import BaseModel
from pydantic import Field
from pydantic import field_validator

from parlormcp.analysis.state import ConversationState
from parlormcp.learning.schemas import LearningStatistics
from parlormcp.memory.schemas import MemoryStatistics
from parlormcp.models.chat import TRAIT_NAMES

_LANGUAGES = ("ja", "en")

# ---------------------------------------------------------------------------
# Input models
# ---------------------------------------------------------------------------


class SaveRoomInput(BaseModel):
    """Input for save_room tool."""

    room_id: str = Field(min_length=1, description="Stable room identifier.")
    name: str = Field(min_length=1, description="Display name of the room.")
    topic: str = Field(default="", description="Optional conversation topic.")
    persona_ids: list[str] = Field(
        default_factory=list,
        description="Roster of persona ids taking part in the room.",
    )


class SavePersonaInput(BaseModel):
    """Input for save_persona tool."""

    persona_id: str = Field(min_length=1, description="Stable persona identifier.")
    name: str = Field(min_length=1, description="Display name used for @mentions.")
    traits: dict[str, int] = Field(
        default_factory=dict,
        description="Big-Five scores 1-5; missing traits default to 3.",
    )
    language: str = Field(default="ja", description="Reply language, ja or en.")
    custom_instructions: str = Field(default="")

    @field_validator("traits")
    @classmethod
    def _known_traits(cls, value: dict[str, int]) -> dict[str, int]:
        unknown = sorted(set(value) - set(TRAIT_NAMES))
        if unknown:
            raise ValueError(f"Unknown traits: {', '.join(unknown)}")
        return value

    @field_validator("language")
    @classmethod
    def _known_language(cls, value: str) -> str:
        if value not in _LANGUAGES:
            raise ValueError("language must be ja or en")
        return value


class SendUserMessageInput(BaseModel):
    """Input for send_user_message tool."""

    room_id: str = Field(min_length=1)
    sender_name: str = Field(min_length=1, description="Display name of the human.")
    content: str = Field(min_length=1, description="Message text, may @mention personas.")
    reply_to: str | None = Field(default=None, description="Replied-to message id.")


# ---------------------------------------------------------------------------
# Output models
# ---------------------------------------------------------------------------


class _ToolResult(BaseModel):
    status: str = Field(default="accepted")
    error_code: str | None = Field(
        default=None, description="Machine-readable reason when rejected."
    )
    message: str | None = Field(default=None, description="Human-readable detail.")


class SaveRoomResult(_ToolResult):
    room_id: str


class SavePersonaResult(_ToolResult):
    persona_id: str


class DeleteResult(_ToolResult):
    id: str


class SendUserMessageResult(_ToolResult):
    """Response from send_user_message."""

    message_id: str = Field(default="", description="ID of the stored message.")
    responders: list[str] = Field(
        default_factory=list,
        description="Persona ids whose response tasks were launched.",
    )
    interrupted: int = Field(
        default=0, description="In-flight responses cancelled by this message."
    )


class AutoChatResult(_ToolResult):
    """Response from request_auto_chat (status started, busy or rejected)."""

    room_id: str
    persona_id: str


class IdleTickResult(_ToolResult):
    """Response from tick_idle_room (status triggered, skipped or rejected)."""

    room_id: str
    reason: str = ""
    persona_id: str | None = None
    phase: str | None = None
    suggested_delay_ms: int | None = None


class InterruptResult(_ToolResult):
    room_id: str
    cancelled: int = 0


class AutoConversationResult(_ToolResult):
    enabled: bool
    watched_rooms: list[str] = Field(default_factory=list)


class ConversationStateResult(_ToolResult):
    room_id: str
    state: ConversationState | None = None
    active_personas: list[str] = Field(default_factory=list)


class PersonaInsightsResult(_ToolResult):
    """Memory and learning statistics of one persona."""

    persona_id: str
    memory: MemoryStatistics | None = None
    learning: LearningStatistics | None = None
    confidence: float | None = None
    recent_outputs: list[str] = Field(default_factory=list)
