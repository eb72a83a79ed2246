"""ConversationState snapshot models.

A ConversationState is derived on demand from a room's recent message
window.  It is never persisted; ``ConversationStateCache`` keeps the last
snapshot per room until new activity invalidates it.
"""

from __future__ import annotations

import math
from datetime import datetime
from enum import Enum

from pydantic import BaseModel
from pydantic import Field

# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------


class Phase(str, Enum):
    active = "active"
    flowing = "flowing"
    cooling = "cooling"
    dormant = "dormant"


class Engagement(str, Enum):
    low = "low"
    medium = "medium"
    high = "high"


class FrequencyPattern(str, Enum):
    rapid = "rapid"
    steady = "steady"
    slow = "slow"
    accelerating = "accelerating"
    slowing = "slowing"


class InterventionReason(str, Enum):
    cooling_conversation = "cooling_conversation"
    unbalanced_participation = "unbalanced_participation"
    surface_conversation = "surface_conversation"


class Urgency(str, Enum):
    none = "none"
    low = "low"
    medium = "medium"
    high = "high"


# ---------------------------------------------------------------------------
# Metric blocks
# ---------------------------------------------------------------------------


class MessageFrequency(BaseModel):
    model_config = {"frozen": True}

    rate: float = Field(default=0.0, description="Messages per minute.")
    pattern: FrequencyPattern = FrequencyPattern.slow
    avg_interval_seconds: float | None = None


class ParticipantActivity(BaseModel):
    model_config = {"frozen": True}

    name: str
    message_count: int = 0
    engagement: float = 0.0
    last_message_at: datetime | None = None
    recent: bool = False


class EmotionalTone(BaseModel):
    model_config = {"frozen": True}

    dominant: str = "neutral"
    intensity: float = Field(default=0.0, ge=0.0, le=1.0)
    counts: dict[str, int] = Field(default_factory=dict)


class TopicContinuity(BaseModel):
    model_config = {"frozen": True}

    coherence: float = Field(default=1.0, ge=0.0, le=1.0)
    topic_shifts: int = 0
    level: str = "high"


class ConversationDepth(BaseModel):
    model_config = {"frozen": True}

    average: float = 0.0
    trend: str = "stable"
    level: str = "surface"


class InterventionNeed(BaseModel):
    model_config = {"frozen": True}

    needed: bool = False
    reason: InterventionReason | None = None
    urgency: Urgency = Urgency.none


# ---------------------------------------------------------------------------
# Snapshot
# ---------------------------------------------------------------------------


class ConversationState(BaseModel):
    """Derived snapshot of a room's conversational health."""

    model_config = {"frozen": True}

    phase: Phase
    engagement: Engagement
    momentum: float = Field(ge=0.0, le=1.0)
    intervention_need: InterventionNeed = Field(default_factory=InterventionNeed)
    suggested_delay_ms: int = Field(ge=5000, le=120000)
    emotional_tone: EmotionalTone = Field(default_factory=EmotionalTone)
    topic_continuity: TopicContinuity = Field(default_factory=TopicContinuity)
    participation_balance: float = Field(default=1.0, ge=0.0, le=1.0)
    social: str = Field(
        default="balanced",
        description="balanced when participation_balance > 0.6.",
    )
    frequency: MessageFrequency = Field(default_factory=MessageFrequency)
    depth: ConversationDepth = Field(default_factory=ConversationDepth)
    participants: list[ParticipantActivity] = Field(default_factory=list)
    idle_seconds: float | None = Field(
        default=None,
        description="Seconds since the last message; None for an empty room.",
    )
    analyzed_at: datetime

    @property
    def idle_minutes(self) -> float:
        if self.idle_seconds is None:
            return math.inf
        return self.idle_seconds / 60.0
