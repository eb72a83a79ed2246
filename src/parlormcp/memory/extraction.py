"""Feature extraction for memory records."""

from __future__ import annotations

import re

from parlormcp.analysis.scoring import parse_mentions

_EMOTIONAL_WORDS = (
    "love",
    "hate",
    "excited",
    "sad",
    "angry",
    "happy",
    "frustrated",
    "amazing",
    "terrible",
    "wonderful",
)
_EMOTIONAL_MARKERS = ("!", "!!", "...", "?!")
_EMOTION_RE = re.compile(
    r"happy|sad|angry|excited|frustrated|curious|confused|proud|worried"
    r"|grateful|disappointed|amazed",
    re.IGNORECASE,
)
_TOPIC_STOPWORDS = frozenset(
    {"this", "that", "with", "from", "they", "them", "were", "been", "have"}
)
_PUNCT_RE = re.compile(r"[^\w\s]")


def emotional_weight(content: str) -> float:
    """0.2 per emotional word plus 0.1 per emotional marker, capped at 1."""
    lowered = content.lower()
    weight = 0.2 * sum(1 for word in _EMOTIONAL_WORDS if word in lowered)
    weight += 0.1 * sum(1 for marker in _EMOTIONAL_MARKERS if marker in content)
    return min(weight, 1.0)


def person_mentions(content: str) -> list[str]:
    return parse_mentions(content)


def topics(content: str) -> list[str]:
    words = [
        word
        for word in _PUNCT_RE.sub("", content.lower()).split()
        if len(word) > 3 and word not in _TOPIC_STOPWORDS
    ]
    return words[:5]


def keywords(content: str) -> list[str]:
    words = [w for w in _PUNCT_RE.sub("", content.lower()).split() if len(w) > 3]
    return words[:10]


def emotions(content: str) -> list[str]:
    return [match.lower() for match in _EMOTION_RE.findall(content)]
