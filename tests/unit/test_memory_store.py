"""Unit tests for the per-persona tiered MemoryStore."""

from __future__ import annotations

from datetime import timedelta

import pytest

from parlormcp.config import MemoryConfig
from parlormcp.memory import MemoryContext
from parlormcp.memory import MemoryStore
from parlormcp.memory import MemoryTier
from parlormcp.memory.extraction import emotional_weight
from parlormcp.memory.extraction import topics
from tests.helpers.fakes import NOW
from tests.helpers.fakes import make_message


class _Clock:
    def __init__(self) -> None:
        self.now = NOW

    def __call__(self):
        return self.now


@pytest.fixture()
def clock() -> _Clock:
    return _Clock()


@pytest.fixture()
def memory(clock) -> MemoryStore:
    return MemoryStore(clock=clock)


def _msg(content: str):
    return make_message("room_1", "Aki", content, NOW)


# ---------------------------------------------------------------------------
# Extraction
# ---------------------------------------------------------------------------


class TestExtraction:
    def test_emotional_weight_counts_words_and_markers(self):
        assert emotional_weight("plain words") == 0.0
        assert emotional_weight("I am happy!") == pytest.approx(0.3)
        assert emotional_weight("love hate sad angry happy amazing!!...?!") == 1.0

    def test_topics_skip_short_words_and_stopwords(self):
        assert topics("This is the garden, with roses!") == ["garden", "roses"]


# ---------------------------------------------------------------------------
# record
# ---------------------------------------------------------------------------


class TestRecord:
    def test_plain_short_message_goes_to_short_tier(self, memory):
        record = memory.record("p_aki", _msg("ok"))
        assert record.importance == pytest.approx(0.5)
        assert record.tier is MemoryTier.short

    def test_new_topic_raises_importance_once(self, memory):
        first = memory.record("p_aki", _msg("the garden party"))
        again = memory.record("p_aki", _msg("the garden party"))
        assert first.importance == pytest.approx(0.7)
        assert first.tier is MemoryTier.medium
        assert again.importance == pytest.approx(0.5)
        assert again.tier is MemoryTier.short

    def test_mention_question_and_emotion_reach_long_tier(self, memory):
        record = memory.record(
            "p_aki", _msg("@Ben what do you think about this amazing garden?")
        )
        assert record.tier is MemoryTier.long
        assert record.associated_people == ["Ben"]
        assert record.importance <= 1.0

    def test_forced_new_topic_flag(self, memory):
        record = memory.record("p_aki", _msg("ok"), MemoryContext(is_new_topic=True))
        assert record.importance == pytest.approx(0.7)

    def test_side_state_follows_content(self, memory):
        memory.record("p_aki", _msg("I am so happy today!"))
        memory.record("p_aki", _msg("@Ben are you curious?"))
        assert memory.emotional_state("p_aki").mood > 0.5
        assert memory.emotional_state("p_aki").curiosity > 0.5
        relation = memory.relationships("p_aki")["Ben"]
        assert relation.interactions == 1
        assert memory.learning_progress("p_aki").total_interactions == 2

    def test_tier_caps_are_never_exceeded(self, clock):
        memory = MemoryStore(
            MemoryConfig(short_cap=3, medium_cap=2, long_cap=2), clock=clock
        )
        for index in range(12):
            clock.now = NOW + timedelta(seconds=index)
            memory.record("p_aki", _msg("ok"))
            memory.record("p_aki", _msg("ok"), MemoryContext(is_new_topic=True))
            sizes = memory.tier_sizes("p_aki")
            assert sizes[MemoryTier.short] <= 3
            assert sizes[MemoryTier.medium] <= 2
            assert sizes[MemoryTier.long] <= 2


# ---------------------------------------------------------------------------
# consolidate
# ---------------------------------------------------------------------------


class TestConsolidate:
    def test_frequently_accessed_short_memory_is_promoted(self, memory):
        record = memory.record("p_aki", _msg("ok"))
        record.access_count = 6
        result = memory.consolidate("p_aki")
        assert result.promoted_to_medium == 1
        assert record.tier is MemoryTier.medium
        assert memory.tier_sizes("p_aki")[MemoryTier.short] == 0

    def test_stale_unimportant_short_memories_are_purged(self, memory, clock):
        memory.record("p_aki", _msg("ok"))
        clock.now = NOW + timedelta(days=8)
        result = memory.consolidate("p_aki")
        assert result.purged == 1
        assert memory.tier_sizes("p_aki")[MemoryTier.short] == 0

    def test_overflowing_short_tier_triggers_consolidation(self, clock):
        memory = MemoryStore(MemoryConfig(consolidation_trigger=3), clock=clock)
        first = memory.record("p_aki", _msg("ok"))
        first.access_count = 10
        for _ in range(3):
            memory.record("p_aki", _msg("ok"))
        assert first.tier is MemoryTier.medium


# ---------------------------------------------------------------------------
# retrieve / generate_memory_context
# ---------------------------------------------------------------------------


class TestRetrieve:
    def test_relevant_memories_rank_first_and_are_touched(self, memory):
        garden = memory.record(
            "p_aki", _msg("the roses are out"), MemoryContext(topic="garden party")
        )
        memory.record(
            "p_aki", _msg("markets fell"), MemoryContext(topic="stock market")
        )
        found = memory.retrieve("p_aki", MemoryContext(topic="garden party"))
        assert [r.id for r in found] == [garden.id]
        assert garden.access_count == 1

    def test_unknown_persona_has_no_memories(self, memory):
        assert memory.retrieve("nobody", MemoryContext(topic="x")) == []

    def test_memory_context_groups_preferences(self, memory):
        memory.record(
            "p_aki", _msg("I like quiet mornings"), MemoryContext(topic="mornings")
        )
        block = memory.generate_memory_context("p_aki", "mornings", language="en")
        assert block is not None
        assert block.startswith("[Background from memory]")
        assert "Personal preferences: I like quiet mornings" in block

    def test_memory_context_is_none_without_memories(self, memory):
        assert memory.generate_memory_context("p_aki", "anything") is None


class TestStatistics:
    def test_statistics_and_forget(self, memory):
        assert memory.statistics("p_aki") is None
        memory.record("p_aki", _msg("ok"))
        memory.record("p_aki", _msg("the garden party"))
        stats = memory.statistics("p_aki")
        assert stats.total == 2
        assert stats.short == 1
        assert stats.medium == 1
        memory.forget("p_aki")
        assert memory.statistics("p_aki") is None
