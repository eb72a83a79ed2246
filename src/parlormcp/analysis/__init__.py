"""Analysis domain: conversation state snapshots and text scoring."""

from __future__ import annotations

from parlormcp.analysis.analyzer import ConversationStateAnalyzer
from parlormcp.analysis.analyzer import linear_trend
from parlormcp.analysis.analyzer import participation_balance
from parlormcp.analysis.cache import ConversationStateCache
from parlormcp.analysis.scoring import KeywordTextScorer
from parlormcp.analysis.scoring import TextScorer
from parlormcp.analysis.scoring import has_emoji
from parlormcp.analysis.scoring import is_mentioned
from parlormcp.analysis.scoring import is_question
from parlormcp.analysis.scoring import jaccard
from parlormcp.analysis.scoring import parse_mentions
from parlormcp.analysis.state import ConversationState
from parlormcp.analysis.state import Engagement
from parlormcp.analysis.state import FrequencyPattern
from parlormcp.analysis.state import InterventionNeed
from parlormcp.analysis.state import InterventionReason
from parlormcp.analysis.state import Phase
from parlormcp.analysis.state import Urgency

__all__ = [
    "ConversationState",
    "ConversationStateAnalyzer",
    "ConversationStateCache",
    "Engagement",
    "FrequencyPattern",
    "InterventionNeed",
    "InterventionReason",
    "KeywordTextScorer",
    "Phase",
    "TextScorer",
    "Urgency",
    "has_emoji",
    "is_mentioned",
    "is_question",
    "jaccard",
    "linear_trend",
    "parse_mentions",
    "participation_balance",
]
