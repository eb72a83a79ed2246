"""Pydantic models for persona memory records and side-state."""

from __future__ import annotations

import uuid
from datetime import datetime
from enum import Enum

from pydantic import BaseModel
from pydantic import Field


class MemoryTier(str, Enum):
    """Retention bucket of a memory record."""

    short = "short"
    medium = "medium"
    long = "long"


class MemoryRecord(BaseModel):
    """A single remembered message for one persona."""

    id: str = Field(default_factory=lambda: f"mem_{uuid.uuid4().hex}")
    persona_id: str
    content: str
    room_id: str | None = None
    message_id: str | None = None
    topic: str = ""
    participants: list[str] = Field(default_factory=list)
    associated_people: list[str] = Field(default_factory=list)
    topics: list[str] = Field(default_factory=list)
    keywords: list[str] = Field(default_factory=list)
    emotions: list[str] = Field(default_factory=list)
    emotional_weight: float = Field(default=0.0, ge=0.0, le=1.0)
    importance: float = Field(default=0.5, ge=0.0, le=1.0)
    tier: MemoryTier = MemoryTier.short
    created_at: datetime
    last_accessed: datetime
    access_count: int = 0


class MemoryContext(BaseModel):
    """What the persona is currently talking about, used for ranking."""

    room_id: str | None = None
    topic: str = ""
    participants: list[str] = Field(default_factory=list)
    keywords: list[str] = Field(default_factory=list)
    is_new_topic: bool | None = Field(
        default=None,
        description="Force the new-topic bonus; None derives it from history.",
    )


class EmotionalSnapshot(BaseModel):
    at: datetime
    mood: float
    trigger: str


class EmotionalState(BaseModel):
    """Slow-moving mood of a persona, mood in [-1, 1]."""

    mood: float = Field(default=0.5, ge=-1.0, le=1.0)
    energy: float = 0.5
    curiosity: float = Field(default=0.5, ge=0.0, le=1.0)
    history: list[EmotionalSnapshot] = Field(default_factory=list)


class Relationship(BaseModel):
    """What a persona remembers about someone it was addressed with."""

    interactions: int = 0
    positive_sentiment: int = 0
    topics_discussed: set[str] = Field(default_factory=set)
    emotional_connection: float = Field(default=0.5, ge=0.0, le=1.0)
    trust_level: float = Field(default=0.5, ge=0.0, le=1.0)
    last_interaction: datetime | None = None

    @property
    def positive_ratio(self) -> float:
        if self.interactions == 0:
            return 0.0
        return self.positive_sentiment / self.interactions


class LearningProgress(BaseModel):
    topics_learned: set[str] = Field(default_factory=set)
    total_interactions: int = 0
    successful_interactions: int = 0
    conversation_skills: float = 0.5
    knowledge_retention: float = 0.5

    @property
    def success_rate(self) -> float:
        return self.successful_interactions / max(self.total_interactions, 1)


class ConsolidationResult(BaseModel):
    promoted_to_medium: int = 0
    promoted_to_long: int = 0
    purged: int = 0
    evicted: int = 0


class MemoryStatistics(BaseModel):
    """Read-only summary exposed through persona insights."""

    short: int
    medium: int
    long: int
    total: int
    mood: float
    curiosity: float
    relationships: int
    topics_learned: int
    conversation_skills: float
    success_rate: float
