"""Memory domain: per-persona tiered memory and its side-state."""

from __future__ import annotations

from parlormcp.memory.schemas import ConsolidationResult
from parlormcp.memory.schemas import EmotionalState
from parlormcp.memory.schemas import LearningProgress
from parlormcp.memory.schemas import MemoryContext
from parlormcp.memory.schemas import MemoryRecord
from parlormcp.memory.schemas import MemoryStatistics
from parlormcp.memory.schemas import MemoryTier
from parlormcp.memory.schemas import Relationship
from parlormcp.memory.store import MemoryStore

__all__ = [
    "ConsolidationResult",
    "EmotionalState",
    "LearningProgress",
    "MemoryContext",
    "MemoryRecord",
    "MemoryStatistics",
    "MemoryStore",
    "MemoryTier",
    "Relationship",
]
