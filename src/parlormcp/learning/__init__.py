"""Learning domain: persona personality drift and skill progression."""

from __future__ import annotations

from parlormcp.learning.adapter import EMOTION_TRAITS
from parlormcp.learning.adapter import PersonalityAdapter
from parlormcp.learning.adapter import initial_learning_speed
from parlormcp.learning.schemas import AdaptationContext
from parlormcp.learning.schemas import AdaptedPersonality
from parlormcp.learning.schemas import InteractionSignals
from parlormcp.learning.schemas import LearningProfile
from parlormcp.learning.schemas import LearningStatistics
from parlormcp.learning.schemas import SKILLS

__all__ = [
    "AdaptationContext",
    "AdaptedPersonality",
    "EMOTION_TRAITS",
    "InteractionSignals",
    "LearningProfile",
    "LearningStatistics",
    "PersonalityAdapter",
    "SKILLS",
    "initial_learning_speed",
]
