"""Pydantic models for rooms, personas and chat messages.

Messages and persona identities are immutable once created.  The Store
collaborator owns their persistence; the orchestration core only reads
them and asks the Store to create new messages.
"""

from __future__ import annotations

import uuid
from datetime import datetime
from datetime import timezone
from enum import Enum

from pydantic import BaseModel
from pydantic import Field

TRAIT_NAMES: tuple[str, ...] = (
    "extraversion",
    "agreeableness",
    "conscientiousness",
    "neuroticism",
    "openness",
)

# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------


class SenderKind(str, Enum):
    """Who authored a message."""

    user = "user"
    persona = "persona"
    system = "system"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def clamp_trait(value: float) -> float:
    """Clamp a trait score into the valid [1, 5] range."""
    return min(5.0, max(1.0, value))


# ---------------------------------------------------------------------------
# Personality
# ---------------------------------------------------------------------------


class BigFive(BaseModel):
    """Big-Five trait vector, each trait scored 1-5."""

    model_config = {"frozen": True}

    extraversion: int = Field(default=3, ge=1, le=5)
    agreeableness: int = Field(default=3, ge=1, le=5)
    conscientiousness: int = Field(default=3, ge=1, le=5)
    neuroticism: int = Field(default=3, ge=1, le=5)
    openness: int = Field(default=3, ge=1, le=5)

    def as_vector(self) -> dict[str, float]:
        return {name: float(getattr(self, name)) for name in TRAIT_NAMES}


# ---------------------------------------------------------------------------
# Entities
# ---------------------------------------------------------------------------


class Persona(BaseModel):
    """A configured synthetic participant."""

    model_config = {"frozen": True}

    id: str
    name: str
    avatar: str | None = None
    traits: BigFive = Field(default_factory=BigFive)
    custom_instructions: str = ""
    language: str = Field(default="ja", description="Reply language, ja or en.")
    provider: str | None = Field(
        default=None,
        description="Preferred completion provider; None uses the default.",
    )


class Room(BaseModel):
    """A chat room with a persona roster and an optional topic."""

    model_config = {"frozen": True}

    id: str
    name: str
    topic: str = ""
    persona_ids: list[str] = Field(default_factory=list)


class Message(BaseModel):
    """A single chat message."""

    model_config = {"frozen": True}

    id: str = Field(default_factory=lambda: f"msg_{uuid.uuid4().hex}")
    room_id: str
    sender_kind: SenderKind
    sender_name: str
    sender_ref: str | None = Field(
        default=None,
        description="Persona id when sender_kind is persona.",
    )
    content: str
    reply_to: str | None = None
    timestamp: datetime = Field(default_factory=_utcnow)
