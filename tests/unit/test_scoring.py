"""Unit tests for the keyword text scorer and shared helpers."""

from __future__ import annotations

import pytest

from parlormcp.analysis import KeywordTextScorer
from parlormcp.analysis import has_emoji
from parlormcp.analysis import is_question
from parlormcp.analysis import jaccard


@pytest.fixture()
def scorer() -> KeywordTextScorer:
    return KeywordTextScorer()


class TestHelpers:
    def test_is_question_accepts_full_width_mark(self):
        assert is_question("元気ですか？")
        assert is_question("ready?")
        assert not is_question("ready.")

    def test_has_emoji(self):
        assert has_emoji("nice 🎉")
        assert not has_emoji("nice")

    def test_jaccard_edges(self):
        assert jaccard(set(), set()) == 1.0
        assert jaccard({"a"}, set()) == 0.0
        assert jaccard({"a", "b"}, {"b", "c"}) == pytest.approx(1 / 3)


class TestToneAndCues:
    def test_positive_and_excitement_counts(self, scorer):
        counts = scorer.tone_counts("Great news 😊 wow!")
        assert counts["positive"] == 2
        assert counts["excitement"] == 2
        assert counts["negative"] == 0

    def test_japanese_keywords_are_counted(self, scorer):
        counts = scorer.tone_counts("残念ですが問題があります")
        assert counts["negative"] == 2

    def test_emotional_cues(self, scorer):
        cues = scorer.emotional_cues("Thank you, I appreciate it 🙏")
        assert cues["appreciation"] == 3
        assert cues["sadness"] == 0


class TestMessageTypes:
    def test_question_with_emoji(self, scorer):
        types = scorer.message_types("Do you agree? 🤔")
        assert {"questions", "agreements", "emotional"} <= types
        assert "statements" not in types

    def test_plain_statement(self, scorer):
        types = scorer.message_types("The build finished")
        assert "statements" in types
        assert "questions" not in types


class TestKeywordsEngagementDepth:
    def test_keywords_drop_stopwords_and_short_words(self, scorer):
        assert scorer.keywords("The garden and the roses") == {"garden", "roses"}

    def test_engagement_scores_questions_emoji_and_mentions(self, scorer):
        assert scorer.engagement("ok") == 1.0
        assert scorer.engagement("@Aki what now? 🎉") == 5.0

    def test_depth_is_capped(self, scorer):
        text = "I think because I feel this way? 😊 " + "x" * 220
        assert scorer.depth(text) == 5
