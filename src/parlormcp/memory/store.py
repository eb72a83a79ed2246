"""In-process, per-persona associative memory.

Each persona owns three tiers (short, medium, long).  ``record`` files a
message into a tier by importance, ``retrieve`` ranks memories by
relevance and recency, and ``consolidate`` promotes frequently used or
important memories while purging stale short-term ones.  Tier sizes never
exceed the configured caps after any public call returns.

State is best-effort and non-durable; it is lost on restart.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from dataclasses import field
from datetime import datetime
from datetime import timezone

from parlormcp.analysis.scoring import is_question
from parlormcp.analysis.scoring import jaccard
from parlormcp.config import MemoryConfig
from parlormcp.memory import extraction
from parlormcp.memory.schemas import ConsolidationResult
from parlormcp.memory.schemas import EmotionalSnapshot
from parlormcp.memory.schemas import EmotionalState
from parlormcp.memory.schemas import LearningProgress
from parlormcp.memory.schemas import MemoryContext
from parlormcp.memory.schemas import MemoryRecord
from parlormcp.memory.schemas import MemoryStatistics
from parlormcp.memory.schemas import MemoryTier
from parlormcp.memory.schemas import Relationship
from parlormcp.models import Message

logger = logging.getLogger(__name__)

_EMOTIONAL_HISTORY_LIMIT = 100
_PREFERENCE_MARKERS = ("prefer", "like", "好き")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _retention_key(record: MemoryRecord) -> tuple[float, datetime]:
    return (record.importance, record.created_at)


@dataclass
class _PersonaMemory:
    tiers: dict[MemoryTier, list[MemoryRecord]] = field(
        default_factory=lambda: {tier: [] for tier in MemoryTier}
    )
    emotional_state: EmotionalState = field(default_factory=EmotionalState)
    relationships: dict[str, Relationship] = field(default_factory=dict)
    learning: LearningProgress = field(default_factory=LearningProgress)


class MemoryStore:
    """Tiered memory banks keyed by persona id, created on first reference."""

    def __init__(
        self,
        config: MemoryConfig | None = None,
        *,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._config = config or MemoryConfig()
        self._clock = clock or _utcnow
        self._banks: dict[str, _PersonaMemory] = {}

    def _bank(self, persona_id: str) -> _PersonaMemory:
        bank = self._banks.get(persona_id)
        if bank is None:
            bank = _PersonaMemory()
            self._banks[persona_id] = bank
            logger.debug("Initialized memory bank for persona %s", persona_id)
        return bank

    def _caps(self) -> dict[MemoryTier, int]:
        return {
            MemoryTier.short: self._config.short_cap,
            MemoryTier.medium: self._config.medium_cap,
            MemoryTier.long: self._config.long_cap,
        }

    # -- write --

    def record(
        self,
        persona_id: str,
        message: Message,
        context: MemoryContext | None = None,
    ) -> MemoryRecord:
        """Remember *message* on behalf of *persona_id* and return the record."""
        context = context or MemoryContext()
        bank = self._bank(persona_id)
        now = self._clock()

        content = message.content
        topics = extraction.topics(content)
        people = extraction.person_mentions(content)
        weight = extraction.emotional_weight(content)
        is_new_topic = context.is_new_topic
        if is_new_topic is None:
            is_new_topic = bool(topics) and not (
                set(topics) & bank.learning.topics_learned
            )

        importance = 0.5 + 0.3 * weight
        if people:
            importance += 0.2
        if is_question(content):
            importance += 0.15
        if len(content) > 100:
            importance += 0.1
        if is_new_topic:
            importance += 0.2
        importance = min(importance, 1.0)

        if importance > 0.8:
            tier = MemoryTier.long
        elif importance > 0.5:
            tier = MemoryTier.medium
        else:
            tier = MemoryTier.short

        record = MemoryRecord(
            persona_id=persona_id,
            content=content,
            room_id=context.room_id or message.room_id,
            message_id=message.id,
            topic=context.topic,
            participants=list(context.participants),
            associated_people=people,
            topics=topics,
            keywords=extraction.keywords(content),
            emotions=extraction.emotions(content),
            emotional_weight=weight,
            importance=importance,
            tier=tier,
            created_at=now,
            last_accessed=now,
        )
        bank.tiers[tier].append(record)

        self._update_emotional_state(bank, record, now)
        self._update_relationships(bank, record, now)
        self._update_learning(bank, record)

        if len(bank.tiers[MemoryTier.short]) > self._config.consolidation_trigger:
            self.consolidate(persona_id)
        else:
            self._enforce_caps(bank)

        logger.debug(
            "Stored %s memory for persona %s importance=%.2f",
            tier.value,
            persona_id,
            importance,
        )
        return record

    def consolidate(self, persona_id: str) -> ConsolidationResult:
        """Promote, purge and re-cap the tiers of one persona."""
        bank = self._bank(persona_id)
        cfg = self._config
        now = self._clock()
        short = bank.tiers[MemoryTier.short]
        medium = bank.tiers[MemoryTier.medium]

        to_medium = [
            r
            for r in short
            if r.importance > cfg.promote_short_importance
            or r.access_count > cfg.promote_short_access
        ]
        promoted = {r.id for r in to_medium}
        short = [r for r in short if r.id not in promoted]
        for record in to_medium:
            record.tier = MemoryTier.medium
        medium = medium + to_medium

        to_long = [
            r
            for r in medium
            if r.importance > cfg.promote_medium_importance
            or r.access_count > cfg.promote_medium_access
        ]
        promoted = {r.id for r in to_long}
        medium = [r for r in medium if r.id not in promoted]
        for record in to_long:
            record.tier = MemoryTier.long

        kept_short = [
            r
            for r in short
            if (now - r.created_at).total_seconds() <= cfg.short_retention_seconds
            or r.importance > cfg.retain_importance
        ]
        purged = len(short) - len(kept_short)

        bank.tiers[MemoryTier.short] = kept_short
        bank.tiers[MemoryTier.medium] = medium
        bank.tiers[MemoryTier.long] = bank.tiers[MemoryTier.long] + to_long
        evicted = self._enforce_caps(bank)

        result = ConsolidationResult(
            promoted_to_medium=len(to_medium),
            promoted_to_long=len(to_long),
            purged=purged,
            evicted=evicted,
        )
        logger.info(
            "Consolidated memories for persona %s promoted=%d purged=%d evicted=%d",
            persona_id,
            result.promoted_to_medium + result.promoted_to_long,
            result.purged,
            result.evicted,
        )
        return result

    def _enforce_caps(self, bank: _PersonaMemory) -> int:
        evicted = 0
        for tier, cap in self._caps().items():
            records = bank.tiers[tier]
            if len(records) <= cap:
                continue
            records.sort(key=_retention_key, reverse=True)
            evicted += len(records) - cap
            bank.tiers[tier] = records[:cap]
        return evicted

    # -- read --

    def retrieve(
        self,
        persona_id: str,
        context: MemoryContext,
        limit: int = 10,
    ) -> list[MemoryRecord]:
        """Return the most relevant memories, updating their access stats."""
        bank = self._banks.get(persona_id)
        if bank is None or limit <= 0:
            return []
        now = self._clock()

        scored: list[tuple[float, MemoryRecord]] = []
        for tier in (MemoryTier.long, MemoryTier.medium, MemoryTier.short):
            for record in bank.tiers[tier]:
                relevance = self._relevance(record, context)
                if relevance <= self._config.min_relevance:
                    continue
                rank = 0.7 * relevance + 0.3 * self._recency(record, now)
                scored.append((rank, record))

        scored.sort(key=lambda item: item[0], reverse=True)
        top = [record for _, record in scored[:limit]]
        for record in top:
            record.access_count += 1
            record.last_accessed = now
        return top

    def _relevance(self, record: MemoryRecord, context: MemoryContext) -> float:
        relevance = 0.0
        if context.topic and record.topic:
            relevance += 0.4 * jaccard(
                set(context.topic.lower().split()), set(record.topic.lower().split())
            )
        if context.participants and record.participants:
            relevance += 0.3 * jaccard(
                set(context.participants), set(record.participants)
            )
        if context.keywords and record.keywords:
            wanted = {k.lower() for k in context.keywords}
            relevance += 0.2 * len(wanted & set(record.keywords)) / len(wanted)
        relevance += 0.1 * record.importance
        return min(relevance, 1.0)

    def _recency(self, record: MemoryRecord, now: datetime) -> float:
        age = max((now - record.created_at).total_seconds(), 0.0)
        return 0.5 ** (age / self._config.recency_half_life_seconds)

    def generate_memory_context(
        self,
        persona_id: str,
        topic: str,
        participants: list[str] | None = None,
        *,
        language: str = "ja",
    ) -> str | None:
        """Summarize relevant memories as a prompt block, or ``None``."""
        memories = self.retrieve(
            persona_id,
            MemoryContext(topic=topic, participants=participants or []),
            limit=15,
        )
        if not memories:
            return None

        groups: dict[str, list[str]] = {
            "preferences": [],
            "relationships": [],
            "knowledge": [],
            "emotional": [],
            "experiences": [],
        }
        for memory in memories:
            lowered = memory.content.lower()
            if any(marker in lowered for marker in _PREFERENCE_MARKERS):
                groups["preferences"].append(memory.content)
            elif memory.associated_people:
                groups["relationships"].append(memory.content)
            elif memory.emotional_weight > 0.6:
                groups["emotional"].append(memory.content)
            elif memory.tier is MemoryTier.long:
                groups["knowledge"].append(memory.content)
            else:
                groups["experiences"].append(memory.content)

        if language == "en":
            header = "[Background from memory]"
            labels = {
                "preferences": "Personal preferences",
                "relationships": "About people",
                "knowledge": "Related knowledge",
                "emotional": "Emotional memories",
                "experiences": "Experiences",
            }
        else:
            header = "【記憶からの背景情報】"
            labels = {
                "preferences": "個人的な好み",
                "relationships": "人間関係の記憶",
                "knowledge": "関連知識",
                "emotional": "感情的な記憶",
                "experiences": "経験",
            }
        limits = {"emotional": 1}
        lines = [
            f"{labels[name]}: {', '.join(items[: limits.get(name, 2)])}"
            for name, items in groups.items()
            if items
        ]
        return header + "\n" + "\n".join(lines) + "\n"

    def tier_sizes(self, persona_id: str) -> dict[MemoryTier, int]:
        bank = self._banks.get(persona_id)
        if bank is None:
            return {tier: 0 for tier in MemoryTier}
        return {tier: len(records) for tier, records in bank.tiers.items()}

    def emotional_state(self, persona_id: str) -> EmotionalState:
        return self._bank(persona_id).emotional_state

    def relationships(self, persona_id: str) -> dict[str, Relationship]:
        return dict(self._bank(persona_id).relationships)

    def learning_progress(self, persona_id: str) -> LearningProgress:
        return self._bank(persona_id).learning

    def statistics(self, persona_id: str) -> MemoryStatistics | None:
        bank = self._banks.get(persona_id)
        if bank is None:
            return None
        sizes = {tier: len(records) for tier, records in bank.tiers.items()}
        return MemoryStatistics(
            short=sizes[MemoryTier.short],
            medium=sizes[MemoryTier.medium],
            long=sizes[MemoryTier.long],
            total=sum(sizes.values()),
            mood=bank.emotional_state.mood,
            curiosity=bank.emotional_state.curiosity,
            relationships=len(bank.relationships),
            topics_learned=len(bank.learning.topics_learned),
            conversation_skills=bank.learning.conversation_skills,
            success_rate=bank.learning.success_rate,
        )

    def forget(self, persona_id: str) -> None:
        """Drop every memory and side-state of a deleted persona."""
        self._banks.pop(persona_id, None)

    # -- side-state --

    def _update_emotional_state(
        self, bank: _PersonaMemory, record: MemoryRecord, now: datetime
    ) -> None:
        state = bank.emotional_state
        emotions = set(record.emotions)
        if emotions & {"happy", "excited"}:
            state.mood = min(state.mood + record.emotional_weight * 0.1, 1.0)
        elif emotions & {"sad", "frustrated"}:
            state.mood = max(state.mood - record.emotional_weight * 0.1, -1.0)
        if is_question(record.content) or "curious" in record.content.lower():
            state.curiosity = min(state.curiosity + 0.05, 1.0)
        state.history.append(
            EmotionalSnapshot(at=now, mood=state.mood, trigger=record.content[:50])
        )
        del state.history[:-_EMOTIONAL_HISTORY_LIMIT]

    def _update_relationships(
        self, bank: _PersonaMemory, record: MemoryRecord, now: datetime
    ) -> None:
        for person in record.associated_people:
            relation = bank.relationships.setdefault(person, Relationship())
            relation.interactions += 1
            if record.emotional_weight > 0:
                relation.positive_sentiment += 1
            if record.topic:
                relation.topics_discussed.add(record.topic)
            relation.emotional_connection = min(
                relation.emotional_connection + record.emotional_weight * 0.05, 1.0
            )
            relation.trust_level = min(relation.trust_level + 0.01, 1.0)
            relation.last_interaction = now

    def _update_learning(self, bank: _PersonaMemory, record: MemoryRecord) -> None:
        learning = bank.learning
        learning.total_interactions += 1
        if record.emotional_weight > 0.3 or record.topics:
            learning.successful_interactions += 1
        learning.topics_learned.update(record.topics)
        learning.conversation_skills = min(
            max(learning.conversation_skills + (learning.success_rate - 0.5) * 0.01, 0.0),
            1.0,
        )
        learning.knowledge_retention = min(
            learning.knowledge_retention + len(learning.topics_learned) * 0.001, 1.0
        )
