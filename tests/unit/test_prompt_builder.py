"""Unit tests for completion prompt construction."""

from __future__ import annotations

from parlormcp.analysis import ConversationState
from parlormcp.analysis import Engagement
from parlormcp.analysis import Phase
from parlormcp.engine import Priority
from parlormcp.engine import ResponseStrategy
from parlormcp.engine import StrategyType
from parlormcp.engine import build_system_prompt
from parlormcp.engine import build_user_prompt
from parlormcp.models import Persona
from tests.helpers.fakes import NOW
from tests.helpers.fakes import conversation
from tests.helpers.fakes import make_persona


class TestBuildSystemPrompt:
    def test_english_prompt_sections(self):
        persona = Persona(
            id="p_aki",
            name="Aki",
            language="en",
            custom_instructions="Speak like a sailor.",
        )
        state = ConversationState(
            phase=Phase.cooling,
            engagement=Engagement.low,
            momentum=0.25,
            suggested_delay_ms=15000,
            analyzed_at=NOW,
        )
        prompt = build_system_prompt(
            persona,
            language="en",
            topic="boats",
            traits={
                "extraversion": 4.6,
                "agreeableness": 3.0,
                "conscientiousness": 1.2,
                "neuroticism": 3.0,
                "openness": 3.0,
            },
            state=state,
            memory_context="[Background from memory]\nExperiences: sailed once\n",
        )
        assert prompt.startswith("You are Aki")
        assert "- Extraversion: Very Social (4.6/5)" in prompt
        assert "- Conscientiousness: Spontaneous (1.2/5)" in prompt
        assert "[Topic]\nboats" in prompt
        assert "Speak like a sailor." in prompt
        assert "phase=cooling engagement=low momentum=0.25" in prompt
        assert "Experiences: sailed once" in prompt
        assert prompt.rstrip().endswith("Keep messages concise (1-3 sentences)")

    def test_japanese_prompt_uses_persona_traits(self):
        persona = make_persona("p_sakura", "さくら", language="ja", openness=5)
        prompt = build_system_prompt(persona, language="ja")
        assert prompt.startswith("あなたはさくらというAIペルソナです。")
        assert "開放性: 非常に開放的 (5.0/5)" in prompt
        assert "【議題】" not in prompt


class TestBuildUserPrompt:
    def test_transcript_and_strategy(self):
        persona = make_persona("p_aki", "Aki")
        messages = conversation(
            "r", [("Ben", "Lunch?"), ("Mio", "Sure")], end=NOW, spacing_seconds=5
        )
        strategy = ResponseStrategy(StrategyType.topic_bridge, Priority.medium)
        prompt = build_user_prompt(persona, messages, strategy, language="en")
        assert "Ben: Lunch?\nMio: Sure" in prompt
        assert "Response strategy: topic_bridge" in prompt
        assert prompt.endswith("Write exactly one next message as Aki.")

    def test_empty_transcript_placeholder(self):
        persona = make_persona("p_aki", "Aki")
        strategy = ResponseStrategy(StrategyType.conversation_revival, Priority.high)
        prompt = build_user_prompt(persona, [], strategy, language="ja")
        assert "（まだ会話はありません）" in prompt
