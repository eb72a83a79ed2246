"""Learning profile models for persona adaptation."""

from __future__ import annotations

from dataclasses import dataclass
from dataclasses import field
from datetime import datetime

from pydantic import BaseModel
from pydantic import Field

from parlormcp.analysis.state import Phase

SKILLS: tuple[str, ...] = (
    "conversation_flow",
    "emotional_intelligence",
    "topic_knowledge",
    "questioning",
    "empathy",
    "humor",
    "detailed_communication",
    "active_listening",
    "conflict_resolution",
    "creativity",
)

# ---------------------------------------------------------------------------
# Inputs and results
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class InteractionSignals:
    """What a persona took part in during one interaction."""

    content: str
    topic: str = ""
    participants: tuple[str, ...] = ()
    engagement: float = 0.5


@dataclass(frozen=True)
class AdaptationContext:
    """Conversation situation a persona is about to speak in."""

    topic: str = ""
    participants: tuple[str, ...] = ()
    phase: Phase | None = None


@dataclass(frozen=True)
class AdaptedPersonality:
    traits: dict[str, float]
    contextual_reasons: list[str] = field(default_factory=list)
    learned_reasons: list[str] = field(default_factory=list)
    confidence: float = 0.5


# ---------------------------------------------------------------------------
# Profile state
# ---------------------------------------------------------------------------


class SkillImprovement(BaseModel):
    at: datetime
    improvement: float
    reason: str
    new_level: float


class DriftEntry(BaseModel):
    at: datetime
    change: float
    reason: str


class TopicEngagement(BaseModel):
    average: float = 0.0
    count: int = 0


class ParticipantRelation(BaseModel):
    total_interactions: int = 0
    positive_interactions: int = 0


class InteractionAnalytics(BaseModel):
    total_interactions: int = 0
    successful_interactions: int = 0
    topic_engagement: dict[str, TopicEngagement] = Field(default_factory=dict)
    participant_relations: dict[str, ParticipantRelation] = Field(
        default_factory=dict
    )
    knowledge_areas: dict[str, int] = Field(
        default_factory=dict, description="Interactions that touched each topic word."
    )
    milestones: list[str] = Field(default_factory=list)

    @property
    def success_rate(self) -> float:
        return self.successful_interactions / max(self.total_interactions, 1)


class LearningProfile(BaseModel):
    """Drifted personality and skills of one persona.

    ``current_personality`` values always stay within [1, 5].
    """

    persona_id: str
    base_personality: dict[str, float]
    current_personality: dict[str, float]
    learning_speed: float = Field(ge=0.0, le=1.0)
    skills: dict[str, float] = Field(
        default_factory=lambda: {skill: 0.5 for skill in SKILLS}
    )
    skill_history: dict[str, list[SkillImprovement]] = Field(default_factory=dict)
    specializations: set[str] = Field(default_factory=set)
    weaknesses: set[str] = Field(default_factory=set)
    drift: dict[str, list[DriftEntry]] = Field(default_factory=dict)
    analytics: InteractionAnalytics = Field(default_factory=InteractionAnalytics)

    @property
    def overall_skill_level(self) -> float:
        return sum(self.skills.values()) / max(len(self.skills), 1)


class LearningStatistics(BaseModel):
    learning_speed: float
    personality_drift: float
    specializations: list[str]
    weaknesses: list[str]
    overall_skill_level: float
    top_skills: list[tuple[str, float]]
    total_interactions: int
    success_rate: float
    current_personality: dict[str, float]
