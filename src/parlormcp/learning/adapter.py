"""Bounded, additive personality adaptation per persona."""

from __future__ import annotations

import logging
import re
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime
from datetime import timezone

from parlormcp.analysis.state import Phase
from parlormcp.config import LearningConfig
from parlormcp.learning.schemas import AdaptationContext
from parlormcp.learning.schemas import AdaptedPersonality
from parlormcp.learning.schemas import DriftEntry
from parlormcp.learning.schemas import InteractionSignals
from parlormcp.learning.schemas import LearningProfile
from parlormcp.learning.schemas import LearningStatistics
from parlormcp.learning.schemas import ParticipantRelation
from parlormcp.learning.schemas import SkillImprovement
from parlormcp.learning.schemas import TopicEngagement
from parlormcp.memory import MemoryContext
from parlormcp.memory import MemoryStore
from parlormcp.models import Persona
from parlormcp.models import TRAIT_NAMES
from parlormcp.models import clamp_trait

logger = logging.getLogger(__name__)

EMOTION_TRAITS: dict[str, str] = {
    "happy": "extraversion",
    "excited": "extraversion",
    "sad": "neuroticism",
    "angry": "neuroticism",
    "frustrated": "neuroticism",
    "worried": "neuroticism",
    "disappointed": "neuroticism",
    "curious": "openness",
    "confused": "openness",
    "amazed": "openness",
    "proud": "conscientiousness",
    "grateful": "agreeableness",
}
_EMOTION_RE = re.compile(
    r"\b(?:" + "|".join(EMOTION_TRAITS) + r")\b", re.IGNORECASE
)
_SENTENCE_END_RE = re.compile(r"[.!?。！？]")
_NON_WORD_RE = re.compile(r"[^\w\s]")
_NEGATIVE_TRAIT = "neuroticism"
_MILESTONES = (10, 50, 100, 500, 1000)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class _Opportunities:
    skills: list[tuple[str, float, str]]
    influences: list[tuple[str, float, str]]
    topics: list[str]
    quality: float


def initial_learning_speed(persona: Persona) -> float:
    traits = persona.traits
    return (
        traits.openness / 5 * 0.4
        + traits.conscientiousness / 5 * 0.4
        + traits.agreeableness / 5 * 0.2
    ) * 0.8 + 0.2


def response_quality(signals: InteractionSignals) -> float:
    score = 0.5
    if len(signals.content) > 20:
        score += 0.1
    if "?" in signals.content or "？" in signals.content:
        score += 0.1
    if signals.engagement > 0.6:
        score += 0.2
    if len(_SENTENCE_END_RE.findall(signals.content)) > 1:
        score += 0.1
    return min(score, 1.0)


class PersonalityAdapter:
    """Maintain a ``LearningProfile`` per persona.

    ``adapt`` applies small permanent drifts after each interaction;
    ``adapted_personality_for`` layers temporary, lower-weight contextual
    and memory-learned nudges on top of the current personality.
    """

    def __init__(
        self,
        config: LearningConfig | None = None,
        *,
        memory: MemoryStore | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._config = config or LearningConfig()
        self._memory = memory
        self._clock = clock or _utcnow
        self._profiles: dict[str, LearningProfile] = {}

    def initialize(self, persona: Persona) -> LearningProfile:
        """Create the persona's profile if it does not exist yet."""
        profile = self._profiles.get(persona.id)
        if profile is None:
            base = persona.traits.as_vector()
            profile = LearningProfile(
                persona_id=persona.id,
                base_personality=dict(base),
                current_personality=dict(base),
                learning_speed=initial_learning_speed(persona),
            )
            self._profiles[persona.id] = profile
            logger.debug("Initialized learning profile for persona %s", persona.id)
        return profile

    def profile(self, persona_id: str) -> LearningProfile | None:
        return self._profiles.get(persona_id)

    def forget(self, persona_id: str) -> None:
        self._profiles.pop(persona_id, None)

    # -- permanent adaptation --

    def adapt(self, persona_id: str, signals: InteractionSignals) -> LearningProfile:
        profile = self._profiles.get(persona_id)
        if profile is None:
            raise KeyError(f"No learning profile for persona {persona_id}")

        opportunities = self._analyze(signals)
        now = self._clock()
        self._update_skills(profile, opportunities, now)
        self._apply_influences(profile, opportunities, now)
        self._update_analytics(profile, signals, opportunities)
        self._evaluate_skill_sets(profile)
        self._update_learning_speed(profile, opportunities)

        logger.debug(
            "Adapted persona %s skills=%d influences=%d topics=%d drift=%.4f",
            persona_id,
            len(opportunities.skills),
            len(opportunities.influences),
            len(opportunities.topics),
            self.personality_drift(persona_id),
        )
        return profile

    def _analyze(self, signals: InteractionSignals) -> _Opportunities:
        content = signals.content
        cfg = self._config
        skills: list[tuple[str, float, str]] = []
        if "?" in content or "？" in content:
            skills.append(("questioning", 0.02, "asked a question"))
        if len(content) > 100:
            skills.append(("detailed_communication", 0.01, "gave a detailed reply"))

        influences = [
            (EMOTION_TRAITS[emotion], cfg.emotion_influence, f"expressed {emotion}")
            for emotion in (word.lower() for word in _EMOTION_RE.findall(content))
        ]
        quality = response_quality(signals)
        skills.append(
            ("conversation_effectiveness", quality * 0.01, "successful interaction")
        )
        words = _NON_WORD_RE.sub("", content.lower()).split()
        topics = [word for word in words if len(word) > 4]
        return _Opportunities(
            skills=skills, influences=influences, topics=topics[:3], quality=quality
        )

    def _update_skills(
        self, profile: LearningProfile, opportunities: _Opportunities, now: datetime
    ) -> None:
        for skill, improvement, reason in opportunities.skills:
            level = min(profile.skills.get(skill, 0.5) + improvement, 1.0)
            profile.skills[skill] = level
            profile.skill_history.setdefault(skill, []).append(
                SkillImprovement(
                    at=now, improvement=improvement, reason=reason, new_level=level
                )
            )

    def _apply_influences(
        self, profile: LearningProfile, opportunities: _Opportunities, now: datetime
    ) -> None:
        cfg = self._config
        rate = cfg.max_adaptation_rate * profile.learning_speed
        for trait, influence, reason in opportunities.influences:
            change = influence * rate * cfg.personality_stability_factor
            current = profile.current_personality[trait]
            updated = clamp_trait(current + change)
            profile.current_personality[trait] = updated
            history = profile.drift.setdefault(trait, [])
            history.append(DriftEntry(at=now, change=updated - current, reason=reason))
            del history[: -cfg.drift_history]

    def _update_analytics(
        self,
        profile: LearningProfile,
        signals: InteractionSignals,
        opportunities: _Opportunities,
    ) -> None:
        analytics = profile.analytics
        analytics.total_interactions += 1
        success = opportunities.quality >= 0.7
        if success:
            analytics.successful_interactions += 1

        if signals.topic:
            entry = analytics.topic_engagement.setdefault(
                signals.topic, TopicEngagement()
            )
            entry.average = (entry.average * entry.count + signals.engagement) / (
                entry.count + 1
            )
            entry.count += 1
        areas = analytics.knowledge_areas
        for area in opportunities.topics:
            areas[area] = areas.get(area, 0) + 1

        negative = any(
            trait == _NEGATIVE_TRAIT for trait, _, _ in opportunities.influences
        )
        for participant in signals.participants:
            relation = analytics.participant_relations.setdefault(
                participant, ParticipantRelation()
            )
            relation.total_interactions += 1
            if success and not negative:
                relation.positive_interactions += 1

        if analytics.total_interactions in _MILESTONES:
            analytics.milestones.append(
                f"{analytics.total_interactions} interactions"
            )

    def _evaluate_skill_sets(self, profile: LearningProfile) -> None:
        for skill, level in profile.skills.items():
            if level > 0.8 and skill not in profile.specializations:
                profile.specializations.add(skill)
                profile.analytics.milestones.append(f"specialized in {skill}")
            if level < 0.3:
                profile.weaknesses.add(skill)
            else:
                profile.weaknesses.discard(skill)

    def _update_learning_speed(
        self, profile: LearningProfile, opportunities: _Opportunities
    ) -> None:
        learned = bool(opportunities.skills)
        adapted = bool(opportunities.influences)
        if learned and adapted:
            profile.learning_speed = min(profile.learning_speed * 1.02, 1.0)
        elif not learned and not adapted:
            profile.learning_speed = max(profile.learning_speed * 0.98, 0.1)

    # -- contextual adaptation --

    def adapted_personality_for(
        self, persona_id: str, context: AdaptationContext
    ) -> AdaptedPersonality | None:
        """Current personality plus temporary contextual and learned nudges."""
        profile = self._profiles.get(persona_id)
        if profile is None:
            return None

        contextual, contextual_reasons = self._contextual_adaptations(profile, context)
        learned, learned_reasons = self._learned_adaptations(persona_id, context)

        blended = dict(profile.current_personality)
        for trait, change in contextual.items():
            blended[trait] = clamp_trait(
                blended[trait] + change * self._config.contextual_weight
            )
        for trait, change in learned.items():
            blended[trait] = clamp_trait(
                blended[trait] + change * self._config.learned_weight
            )
        return AdaptedPersonality(
            traits=blended,
            contextual_reasons=contextual_reasons,
            learned_reasons=learned_reasons,
            confidence=self.confidence(persona_id),
        )

    def _contextual_adaptations(
        self, profile: LearningProfile, context: AdaptationContext
    ) -> tuple[dict[str, float], list[str]]:
        adaptations: dict[str, float] = {}
        reasons: list[str] = []
        analytics = profile.analytics
        engagement = analytics.topic_engagement.get(context.topic)
        if context.topic and engagement is not None and engagement.average > 0.7:
            adaptations["openness"] = 0.1
            reasons.append(f"high engagement with topic: {context.topic}")
        for participant in context.participants:
            relation = analytics.participant_relations.get(participant)
            if (
                relation is not None
                and relation.positive_interactions > relation.total_interactions * 0.8
            ):
                adaptations["agreeableness"] = 0.05
                reasons.append(f"positive relationship with {participant}")
        if context.phase is Phase.cooling:
            adaptations["extraversion"] = 0.1
            reasons.append("helping a cooling conversation")
        return adaptations, reasons

    def _learned_adaptations(
        self, persona_id: str, context: AdaptationContext
    ) -> tuple[dict[str, float], list[str]]:
        adaptations: dict[str, float] = {}
        reasons: list[str] = []
        if self._memory is None:
            return adaptations, reasons
        memories = self._memory.retrieve(
            persona_id,
            MemoryContext(topic=context.topic, participants=list(context.participants)),
            limit=5,
        )
        for memory in memories:
            if memory.importance <= 0.7 or memory.emotional_weight <= 0.6:
                continue
            lowered = memory.content.lower()
            if "agree" in lowered or "support" in lowered:
                adaptations["agreeableness"] = min(
                    adaptations.get("agreeableness", 0.0) + 0.02, 0.1
                )
                reasons.append("agreement led to positive outcomes")
            if "curious" in lowered or "question" in lowered:
                adaptations["openness"] = min(adaptations.get("openness", 0.0) + 0.02, 0.1)
                reasons.append("curiosity enriched conversations")
        return adaptations, reasons

    # -- read --

    def confidence(self, persona_id: str) -> float:
        profile = self._profiles.get(persona_id)
        if profile is None:
            return 0.5
        analytics = profile.analytics
        bonus = min(analytics.total_interactions / 100, 0.3)
        return min(analytics.success_rate + bonus, 1.0)

    def personality_drift(self, persona_id: str) -> float:
        """Mean absolute distance of current traits from the baseline."""
        profile = self._profiles.get(persona_id)
        if profile is None:
            return 0.0
        total = sum(
            abs(profile.current_personality[t] - profile.base_personality[t])
            for t in TRAIT_NAMES
        )
        return total / len(TRAIT_NAMES)

    def statistics(self, persona_id: str) -> LearningStatistics | None:
        profile = self._profiles.get(persona_id)
        if profile is None:
            return None
        top = sorted(profile.skills.items(), key=lambda item: item[1], reverse=True)
        return LearningStatistics(
            learning_speed=profile.learning_speed,
            personality_drift=self.personality_drift(persona_id),
            specializations=sorted(profile.specializations),
            weaknesses=sorted(profile.weaknesses),
            overall_skill_level=profile.overall_skill_level,
            top_skills=top[:5],
            total_interactions=profile.analytics.total_interactions,
            success_rate=profile.analytics.success_rate,
            current_personality=dict(profile.current_personality),
        )
