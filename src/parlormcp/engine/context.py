"""Local response context for one persona about to speak."""

from __future__ import annotations

import math
from collections.abc import Sequence
from dataclasses import dataclass
from datetime import datetime

from parlormcp.analysis.scoring import CUES
from parlormcp.analysis.scoring import MESSAGE_TYPES
from parlormcp.analysis.scoring import TextScorer
from parlormcp.analysis.scoring import is_mentioned
from parlormcp.analysis.scoring import is_question
from parlormcp.analysis.scoring import jaccard
from parlormcp.models import Message
from parlormcp.models import Persona

_CONTEXT_WINDOW = 5


@dataclass(frozen=True)
class ConversationPatterns:
    monologue: bool = False
    debate: bool = False
    storytelling: bool = False
    questioning: bool = False
    needs_persona_input: bool = False
    topic_shift: bool = False


@dataclass(frozen=True)
class ResponseContext:
    """What the last few messages look like from one persona's seat."""

    was_mentioned: bool
    message_types: dict[str, int]
    patterns: ConversationPatterns
    emotional_cues: dict[str, int]
    last_message: Message | None
    recent_messages: tuple[Message, ...]
    seconds_since_persona_spoke: float

    @property
    def dominant_cue(self) -> str | None:
        """Highest-count emotional cue, or ``None`` when no cue was seen."""
        if not self.emotional_cues:
            return None
        cue = max(self.emotional_cues, key=lambda name: self.emotional_cues[name])
        return cue if self.emotional_cues[cue] > 0 else None


def analyze_response_context(
    messages: Sequence[Message],
    persona: Persona,
    scorer: TextScorer,
    *,
    now: datetime,
) -> ResponseContext:
    ordered = sorted(messages, key=lambda m: m.timestamp)
    recent = tuple(ordered[-_CONTEXT_WINDOW:])
    last = recent[-1] if recent else None
    was_mentioned = last is not None and is_mentioned(last.content, persona.name)

    types = {name: 0 for name in MESSAGE_TYPES}
    cues = {name: 0 for name in CUES}
    for message in recent:
        for name in scorer.message_types(message.content):
            types[name] = types.get(name, 0) + 1
        for name, hits in scorer.emotional_cues(message.content).items():
            cues[name] = cues.get(name, 0) + hits

    own = [m for m in ordered if m.sender_name == persona.name]
    since = math.inf
    if own:
        since = max(0.0, (now - own[-1].timestamp).total_seconds())

    return ResponseContext(
        was_mentioned=was_mentioned,
        message_types=types,
        patterns=_detect_patterns(recent, persona, scorer),
        emotional_cues=cues,
        last_message=last,
        recent_messages=recent,
        seconds_since_persona_spoke=since,
    )


def _detect_patterns(
    recent: Sequence[Message], persona: Persona, scorer: TextScorer
) -> ConversationPatterns:
    speakers = [m.sender_name for m in recent]
    disagreements = sum(
        1 for m in recent if "disagreements" in scorer.message_types(m.content)
    )
    long_messages = sum(1 for m in recent if len(m.content) > 100)
    questions = sum(1 for m in recent if is_question(m.content))

    topic_shift = False
    if len(recent) >= 3:
        half = math.ceil(len(recent) / 2)
        first = scorer.keywords(" ".join(m.content for m in recent[:half]))
        second = scorer.keywords(" ".join(m.content for m in recent[half:]))
        topic_shift = jaccard(first, second) < 0.3

    return ConversationPatterns(
        monologue=len(set(speakers)) == 1 and len(speakers) > 2,
        debate=disagreements >= 2,
        storytelling=long_messages >= 2,
        questioning=questions >= 2,
        needs_persona_input=persona.name not in speakers and len(recent) >= 3,
        topic_shift=topic_shift,
    )
