"""Swappable text scoring used by conversation and response analysis.

Every heuristic that depends on vocabulary or locale lives behind the
``TextScorer`` protocol so a different language pack, or a model-based
scorer, can replace ``KeywordTextScorer`` without touching the analyzer,
the strategy selector or the orchestrator.
"""

from __future__ import annotations

import re
from typing import Protocol

TONES: tuple[str, ...] = ("positive", "negative", "excitement", "concern", "neutral")
CUES: tuple[str, ...] = (
    "excitement",
    "sadness",
    "curiosity",
    "agreement",
    "confusion",
    "appreciation",
)
MESSAGE_TYPES: tuple[str, ...] = (
    "questions",
    "statements",
    "exclamations",
    "agreements",
    "disagreements",
    "personal_shares",
    "technical",
    "emotional",
)


class TextScorer(Protocol):
    """Locale-specific text heuristics."""

    def tone_counts(self, text: str) -> dict[str, int]:
        """Count tone markers per bucket in ``TONES``."""
        ...

    def emotional_cues(self, text: str) -> dict[str, int]:
        """Count emotional cue markers per bucket in ``CUES``."""
        ...

    def message_types(self, text: str) -> set[str]:
        """Classify a message into zero or more ``MESSAGE_TYPES``."""
        ...

    def keywords(self, text: str) -> set[str]:
        """Return the content-bearing keywords of *text*."""
        ...

    def engagement(self, text: str) -> float:
        """Score how engaging a single message is (base 1)."""
        ...

    def depth(self, text: str) -> int:
        """Score the depth of a single message, 0-5."""
        ...


# ---------------------------------------------------------------------------
# Shared patterns
# ---------------------------------------------------------------------------

_QUESTION_RE = re.compile(r"[?？]")
_EMOJI_RE = re.compile("[\U0001f300-\U0001faff\u2600-\u27bf\u2b50]")
_EXCLAMATION_RE = re.compile(r"[!！]")
_SELF_REFERENCE_RE = re.compile(r"\b(?:i|my|me|mine)\b|私|僕|自分", re.IGNORECASE)
_COMPLEX_THOUGHT_RE = re.compile(
    r"because|thinking|\bfeel|なぜなら|考え|感じ", re.IGNORECASE
)
_STOPWORDS_RE = re.compile(
    r"\b(?:a|an|the|and|or|but|in|on|at|to|for|of|with|by)\b|[はがをにでとの]",
    re.IGNORECASE,
)
_NON_WORD_RE = re.compile(r"[^\w\s]")
# A sigil inside a word or after a dot (``bob@example.com``) is not a mention.
MENTION_SIGIL = r"(?<![\w.])@"
_MENTION_RE = re.compile(MENTION_SIGIL + r"([^\W\d_][\w々ー]*)")


def is_question(text: str) -> bool:
    return bool(_QUESTION_RE.search(text))


def has_emoji(text: str) -> bool:
    return bool(_EMOJI_RE.search(text))


def parse_mentions(text: str) -> list[str]:
    """Return @mentioned names in order of appearance."""
    return _MENTION_RE.findall(text)


def is_mentioned(text: str, name: str) -> bool:
    """Whether *text* mentions exactly *name*, ignoring case."""
    target = name.casefold()
    return any(token.casefold() == target for token in parse_mentions(text))


def jaccard(left: set[str], right: set[str]) -> float:
    """Jaccard overlap; two empty sets are identical."""
    if not left and not right:
        return 1.0
    if not left or not right:
        return 0.0
    return len(left & right) / len(left | right)


def _alternation(*terms: str) -> re.Pattern[str]:
    return re.compile("|".join(re.escape(term) for term in terms), re.IGNORECASE)


# ---------------------------------------------------------------------------
# Keyword scorer (ja/en)
# ---------------------------------------------------------------------------

_TONE_PATTERNS: dict[str, re.Pattern[str]] = {
    "positive": _alternation(
        "😊", "😄", "😆", "🥰", "😍", "✨", "🎉", "👍",
        "良い", "嬉しい", "楽しい", "素晴らしい", "最高",
        "good", "great", "awesome", "happy", "excited",
    ),
    "negative": _alternation(
        "😢", "😞", "😰", "😟", "💔",
        "困る", "悲しい", "残念", "大変", "問題",
        "bad", "sad", "worried", "terrible", "problem",
    ),
    "excitement": _alternation(
        "⚡", "🔥", "💫", "!", "！",
        "わー", "すごい", "やった",
        "amazing", "wow", "incredible",
    ),
    "concern": _alternation(
        "🤔", "💭",
        "心配", "気になる",
        "wonder", "concerned", "curious",
    ),
    "neutral": _alternation(
        "🤖", "📝",
        "なるほど", "そうです", "わかり",
        "understand", "noted",
    ),
}

_CUE_PATTERNS: dict[str, re.Pattern[str]] = {
    "excitement": _alternation(
        "⚡", "🔥", "🎉", "😄", "excited", "わくわく", "すごい", "amazing"
    ),
    "sadness": _alternation("😢", "😞", "💔", "sad", "悲しい", "残念", "disappointed"),
    "curiosity": _alternation(
        "🤔", "curious", "気になる", "wonder", "どう思う", "interesting"
    ),
    "agreement": _alternation(
        "👍", "✅", "agree", "そうです", "確か", "exactly", "definitely"
    ),
    "confusion": _alternation(
        "🤨", "confused", "わからない", "どういう", "what do you mean"
    ),
    "appreciation": _alternation(
        "🙏", "💖", "thank", "ありがとう", "感謝", "appreciate", "grateful"
    ),
}

_AGREEMENT_RE = re.compile(r"\b(?:yes|agree|agreed)\b|はい|そう|同意|確か", re.IGNORECASE)
_DISAGREEMENT_RE = re.compile(
    r"\b(?:no|but|however|disagree)\b|いいえ|違う|でも", re.IGNORECASE
)
_TECHNICAL_RE = re.compile(r"\b(?:code|tech|system)|プログラム|技術", re.IGNORECASE)


class KeywordTextScorer:
    """Keyword and emoji bucket matching for Japanese and English chat."""

    def tone_counts(self, text: str) -> dict[str, int]:
        return {
            tone: len(pattern.findall(text)) for tone, pattern in _TONE_PATTERNS.items()
        }

    def emotional_cues(self, text: str) -> dict[str, int]:
        return {cue: len(pattern.findall(text)) for cue, pattern in _CUE_PATTERNS.items()}

    def message_types(self, text: str) -> set[str]:
        types: set[str] = set()
        if is_question(text):
            types.add("questions")
        if _EXCLAMATION_RE.search(text):
            types.add("exclamations")
        if _AGREEMENT_RE.search(text):
            types.add("agreements")
        if _DISAGREEMENT_RE.search(text):
            types.add("disagreements")
        if _SELF_REFERENCE_RE.search(text):
            types.add("personal_shares")
        if _TECHNICAL_RE.search(text):
            types.add("technical")
        if has_emoji(text):
            types.add("emotional")
        else:
            types.add("statements")
        return types

    def keywords(self, text: str) -> set[str]:
        cleaned = _NON_WORD_RE.sub("", _STOPWORDS_RE.sub(" ", text.lower()))
        return {word for word in cleaned.split() if len(word) > 2}

    def engagement(self, text: str) -> float:
        score = 1.0
        if is_question(text):
            score += 2
        if has_emoji(text):
            score += 1
        if parse_mentions(text):
            score += 1
        if len(text) > 50:
            score += 1
        if len(text) > 100:
            score += 1
        return score

    def depth(self, text: str) -> int:
        depth = 0
        if is_question(text):
            depth += 1
        if _COMPLEX_THOUGHT_RE.search(text):
            depth += 2
        if _SELF_REFERENCE_RE.search(text):
            depth += 1
        if has_emoji(text):
            depth += 1
        if len(text) > 100:
            depth += 1
        if len(text) > 200:
            depth += 1
        return min(depth, 5)
