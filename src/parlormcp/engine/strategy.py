"""Response strategy selection.

Priority order: direct mention, then the active intervention reason,
then detected conversation patterns, then the dominant emotional cue,
and finally a phase default.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from parlormcp.analysis.state import ConversationState
from parlormcp.analysis.state import InterventionReason
from parlormcp.analysis.state import Phase
from parlormcp.engine.context import ResponseContext


class StrategyType(str, Enum):
    direct_response = "direct_response"
    conversation_starter = "conversation_starter"
    inclusive_question = "inclusive_question"
    depth_probe = "depth_probe"
    general_engagement = "general_engagement"
    answer_and_reflect = "answer_and_reflect"
    perspective_sharing = "perspective_sharing"
    story_reaction = "story_reaction"
    natural_contribution = "natural_contribution"
    topic_bridge = "topic_bridge"
    emotional_response = "emotional_response"
    flow_continuation = "flow_continuation"
    gentle_engagement = "gentle_engagement"
    conversation_revival = "conversation_revival"


class Priority(str, Enum):
    high = "high"
    medium = "medium"
    low = "low"


@dataclass(frozen=True)
class ResponseStrategy:
    type: StrategyType
    priority: Priority
    emotion: str | None = None


_INTERVENTION_STRATEGIES: dict[InterventionReason, ResponseStrategy] = {
    InterventionReason.cooling_conversation: ResponseStrategy(
        StrategyType.conversation_starter, Priority.high
    ),
    InterventionReason.unbalanced_participation: ResponseStrategy(
        StrategyType.inclusive_question, Priority.medium
    ),
    InterventionReason.surface_conversation: ResponseStrategy(
        StrategyType.depth_probe, Priority.medium
    ),
}

_PHASE_STRATEGIES: dict[Phase, ResponseStrategy] = {
    Phase.flowing: ResponseStrategy(StrategyType.flow_continuation, Priority.low),
    Phase.cooling: ResponseStrategy(StrategyType.gentle_engagement, Priority.medium),
    Phase.dormant: ResponseStrategy(StrategyType.conversation_revival, Priority.high),
    Phase.active: ResponseStrategy(StrategyType.natural_contribution, Priority.low),
}


class ResponseStrategySelector:
    """Map a response context and conversation state to a strategy."""

    def select(
        self, context: ResponseContext, state: ConversationState
    ) -> ResponseStrategy:
        if context.was_mentioned:
            return ResponseStrategy(StrategyType.direct_response, Priority.high)

        need = state.intervention_need
        if need.needed:
            if need.reason is None:
                return ResponseStrategy(StrategyType.general_engagement, Priority.medium)
            return _INTERVENTION_STRATEGIES[need.reason]

        patterns = context.patterns
        if patterns.questioning and context.message_types.get("questions", 0) > 0:
            return ResponseStrategy(StrategyType.answer_and_reflect, Priority.high)
        if patterns.debate:
            return ResponseStrategy(StrategyType.perspective_sharing, Priority.medium)
        if patterns.storytelling:
            return ResponseStrategy(StrategyType.story_reaction, Priority.medium)
        if patterns.needs_persona_input:
            return ResponseStrategy(StrategyType.natural_contribution, Priority.high)
        if patterns.topic_shift:
            return ResponseStrategy(StrategyType.topic_bridge, Priority.medium)

        cue = context.dominant_cue
        if cue is not None:
            return ResponseStrategy(
                StrategyType.emotional_response, Priority.medium, emotion=cue
            )

        return _PHASE_STRATEGIES[state.phase]
