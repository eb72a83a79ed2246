"""Conversation state analysis over a room's recent message window."""

from __future__ import annotations

import hashlib
import logging
import math
import random
import statistics
from collections.abc import Callable
from collections.abc import Sequence
from datetime import datetime
from datetime import timedelta
from datetime import timezone

from parlormcp.analysis.scoring import KeywordTextScorer
from parlormcp.analysis.scoring import TextScorer
from parlormcp.analysis.scoring import TONES
from parlormcp.analysis.scoring import jaccard
from parlormcp.analysis.state import ConversationDepth
from parlormcp.analysis.state import ConversationState
from parlormcp.analysis.state import EmotionalTone
from parlormcp.analysis.state import Engagement
from parlormcp.analysis.state import FrequencyPattern
from parlormcp.analysis.state import InterventionNeed
from parlormcp.analysis.state import InterventionReason
from parlormcp.analysis.state import MessageFrequency
from parlormcp.analysis.state import ParticipantActivity
from parlormcp.analysis.state import Phase
from parlormcp.analysis.state import TopicContinuity
from parlormcp.analysis.state import Urgency
from parlormcp.config import AnalyzerConfig
from parlormcp.models import Message
from parlormcp.models import Persona

logger = logging.getLogger(__name__)

_MIN_DELAY_MS = 5000
_MAX_DELAY_MS = 120000

_PHASE_DELAY_WINDOWS: dict[Phase, tuple[float, float]] = {
    Phase.flowing: (10_000, 25_000),
    Phase.active: (20_000, 40_000),
    Phase.cooling: (15_000, 30_000),
    Phase.dormant: (5_000, 15_000),
}


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def linear_trend(values: Sequence[float]) -> str:
    """Classify the least-squares slope of *values* over their index."""
    n = len(values)
    if n < 2:
        return "stable"
    sum_x = n * (n + 1) / 2
    sum_y = sum(values)
    sum_xy = sum((i + 1) * y for i, y in enumerate(values))
    sum_x2 = n * (n + 1) * (2 * n + 1) / 6
    slope = (n * sum_xy - sum_x * sum_y) / (n * sum_x2 - sum_x * sum_x)
    if slope > 0.1:
        return "increasing"
    if slope < -0.1:
        return "decreasing"
    return "stable"


def participation_balance(counts: Sequence[int]) -> float:
    """1 minus the coefficient of variation of per-participant counts.

    An even split scores 1.0; one participant holding every message
    among many scores 0.0.
    """
    if not counts:
        return 1.0
    total = sum(counts)
    if total == 0:
        return 1.0
    expected = total / len(counts)
    spread = statistics.pstdev(counts)
    return min(1.0, max(0.0, 1.0 - spread / expected))


class ConversationStateAnalyzer:
    """Derive a ``ConversationState`` from recent messages and a roster.

    ``analyze`` is pure apart from "now": the same window and the same
    ``now`` always produce the same state, including the jittered
    suggested delay.
    """

    def __init__(
        self,
        config: AnalyzerConfig | None = None,
        *,
        scorer: TextScorer | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._config = config or AnalyzerConfig()
        self._scorer = scorer or KeywordTextScorer()
        self._clock = clock or _utcnow

    @property
    def scorer(self) -> TextScorer:
        return self._scorer

    def analyze(
        self,
        messages: Sequence[Message],
        roster: Sequence[Persona],
        *,
        now: datetime | None = None,
    ) -> ConversationState:
        now = now or self._clock()
        window = sorted(messages, key=lambda m: m.timestamp)[-self._config.window :]

        frequency = self._frequency(window)
        participants, balance = self._participants(window, roster, now)
        tone = self._emotional_tone(window)
        continuity = self._topic_continuity(window)
        depth = self._depth(window)

        idle_seconds: float | None = None
        if window:
            idle_seconds = max(0.0, (now - window[-1].timestamp).total_seconds())
        idle_minutes = math.inf if idle_seconds is None else idle_seconds / 60.0

        engagement = Engagement.low
        if frequency.rate > 2 or tone.intensity > 0.3:
            engagement = Engagement.high
        elif frequency.rate > 0.5 or tone.intensity > 0.1:
            engagement = Engagement.medium

        if idle_minutes > self._config.dormant_minutes:
            phase = Phase.dormant
        elif idle_minutes > self._config.cooling_minutes:
            phase = Phase.cooling
        elif (
            engagement is Engagement.high
            and continuity.coherence > self._config.flowing_coherence
        ):
            phase = Phase.flowing
        else:
            phase = Phase.active

        momentum = (
            min(frequency.rate / 5, 1.0) * 0.4
            + tone.intensity * 0.3
            + (depth.average / 5) * 0.3
        )
        intervention = self._intervention(frequency, balance, depth, idle_seconds)
        delay_ms = self._suggested_delay(window, now, phase, frequency, tone)

        state = ConversationState(
            phase=phase,
            engagement=engagement,
            momentum=min(1.0, max(0.0, momentum)),
            intervention_need=intervention,
            suggested_delay_ms=delay_ms,
            emotional_tone=tone,
            topic_continuity=continuity,
            participation_balance=balance,
            social="balanced" if balance > 0.6 else "unbalanced",
            frequency=frequency,
            depth=depth,
            participants=participants,
            idle_seconds=idle_seconds,
            analyzed_at=now,
        )
        logger.debug(
            "conversation state phase=%s engagement=%s momentum=%.2f intervention=%s",
            state.phase.value,
            state.engagement.value,
            state.momentum,
            intervention.reason.value if intervention.reason else None,
        )
        return state

    # -- metrics --

    def _frequency(self, window: Sequence[Message]) -> MessageFrequency:
        if len(window) < 2:
            return MessageFrequency(rate=0.0, pattern=FrequencyPattern.slow)

        intervals = [
            max((b.timestamp - a.timestamp).total_seconds(), 0.0)
            for a, b in zip(window, window[1:])
        ]
        avg_interval = sum(intervals) / len(intervals)
        # Simultaneous messages count as maximally rapid.
        rate = 60.0 / avg_interval if avg_interval > 0 else 60.0

        last = intervals[-3:]
        if rate > 3:
            pattern = FrequencyPattern.rapid
        elif rate < 0.5:
            pattern = FrequencyPattern.slow
        elif all(i < avg_interval * 0.7 for i in last):
            pattern = FrequencyPattern.accelerating
        elif all(i > avg_interval * 1.3 for i in last):
            pattern = FrequencyPattern.slowing
        else:
            pattern = FrequencyPattern.steady
        return MessageFrequency(
            rate=rate, pattern=pattern, avg_interval_seconds=avg_interval
        )

    def _participants(
        self,
        window: Sequence[Message],
        roster: Sequence[Persona],
        now: datetime,
    ) -> tuple[list[ParticipantActivity], float]:
        recent_cutoff = now - timedelta(minutes=self._config.recent_activity_minutes)
        counts: dict[str, int] = {p.name: 0 for p in roster}
        engagement: dict[str, float] = {p.name: 0.0 for p in roster}
        last_at: dict[str, datetime] = {}
        for message in window:
            name = message.sender_name
            if name not in counts:
                continue
            counts[name] += 1
            engagement[name] += self._scorer.engagement(message.content)
            last_at[name] = message.timestamp

        activity = [
            ParticipantActivity(
                name=name,
                message_count=counts[name],
                engagement=engagement[name],
                last_message_at=last_at.get(name),
                recent=name in last_at and last_at[name] > recent_cutoff,
            )
            for name in counts
        ]
        return activity, participation_balance(list(counts.values()))

    def _emotional_tone(self, window: Sequence[Message]) -> EmotionalTone:
        counts = {tone: 0 for tone in TONES}
        for message in window:
            for tone, hits in self._scorer.tone_counts(message.content).items():
                counts[tone] = counts.get(tone, 0) + hits

        total = sum(counts.values())
        if total == 0:
            return EmotionalTone(dominant="neutral", intensity=0.0, counts=counts)
        # Ties resolve to the first bucket in declaration order.
        dominant = max(counts, key=lambda tone: counts[tone])
        return EmotionalTone(
            dominant=dominant, intensity=counts[dominant] / total, counts=counts
        )

    def _topic_continuity(self, window: Sequence[Message]) -> TopicContinuity:
        if len(window) < 2:
            return TopicContinuity(coherence=1.0, topic_shifts=0, level="high")

        shifts = 0
        coherent = 0
        keywords = [self._scorer.keywords(m.content) for m in window]
        for previous, current in zip(keywords, keywords[1:]):
            if jaccard(previous, current) < 0.2:
                shifts += 1
            else:
                coherent += 1
        coherence = coherent / max(1, len(window) - 1)
        if coherence > 0.6:
            level = "high"
        elif coherence > 0.3:
            level = "medium"
        else:
            level = "low"
        return TopicContinuity(coherence=coherence, topic_shifts=shifts, level=level)

    def _depth(self, window: Sequence[Message]) -> ConversationDepth:
        if not window:
            return ConversationDepth()
        depths = [self._scorer.depth(m.content) for m in window]
        average = sum(depths) / len(depths)
        if average > 3:
            level = "deep"
        elif average > 2:
            level = "medium"
        else:
            level = "surface"
        return ConversationDepth(
            average=average, trend=linear_trend(depths[-5:]), level=level
        )

    # -- policy --

    def _intervention(
        self,
        frequency: MessageFrequency,
        balance: float,
        depth: ConversationDepth,
        idle_seconds: float | None,
    ) -> InterventionNeed:
        if idle_seconds is None:
            return InterventionNeed(
                needed=True,
                reason=InterventionReason.cooling_conversation,
                urgency=Urgency.medium,
            )
        idle_minutes = idle_seconds / 60.0
        # A long silence caps the rate: the window's rate says nothing about now.
        current_rate = frequency.rate
        if idle_seconds > 0:
            current_rate = min(current_rate, 60.0 / idle_seconds)

        if idle_minutes > 2 and current_rate < 0.5:
            return InterventionNeed(
                needed=True,
                reason=InterventionReason.cooling_conversation,
                urgency=Urgency.medium,
            )
        if balance < 0.3:
            return InterventionNeed(
                needed=True,
                reason=InterventionReason.unbalanced_participation,
                urgency=Urgency.low,
            )
        if depth.average < 1.5 and idle_minutes > 1:
            return InterventionNeed(
                needed=True,
                reason=InterventionReason.surface_conversation,
                urgency=Urgency.low,
            )
        return InterventionNeed()

    def _suggested_delay(
        self,
        window: Sequence[Message],
        now: datetime,
        phase: Phase,
        frequency: MessageFrequency,
        tone: EmotionalTone,
    ) -> int:
        low, high = _PHASE_DELAY_WINDOWS[phase]
        delay = _seeded_rng(window, now).uniform(low, high)
        if tone.intensity > 0.5:
            delay *= 0.7
        if frequency.pattern is FrequencyPattern.rapid:
            delay *= 0.8
        elif frequency.pattern is FrequencyPattern.slow:
            delay *= 1.3
        return int(round(max(_MIN_DELAY_MS, min(delay, _MAX_DELAY_MS))))


def _seeded_rng(window: Sequence[Message], now: datetime) -> random.Random:
    digest = hashlib.sha256()
    for message in window:
        digest.update(message.id.encode("utf-8"))
        digest.update(message.timestamp.isoformat().encode("utf-8"))
    digest.update(now.isoformat().encode("utf-8"))
    return random.Random(int.from_bytes(digest.digest()[:8], "big"))
