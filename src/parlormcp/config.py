"""Application configuration dataclasses.

Frozen dataclasses with sensible defaults for each subsystem.
No env-var loading or YAML parsing, just plain defaults that can
be overridden at construction time.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class CompletionConfig:
    """Completion provider settings used as the generator's second stage."""

    provider: str = "openai"
    model: str = "gpt-4o-mini"
    api_key: str | None = None
    base_url: str = "https://api.openai.com/v1"
    temperature: float = 0.8
    max_tokens: int = 300
    timeout_seconds: float = 15.0
    max_retries: int = 2
    retry_backoff_seconds: float = 1.0


@dataclass(frozen=True)
class AnalyzerConfig:
    """Thresholds for conversation state analysis."""

    window: int = 10
    dormant_minutes: float = 10.0
    cooling_minutes: float = 3.0
    flowing_coherence: float = 0.6
    recent_activity_minutes: float = 5.0
    cache_ttl_seconds: float = 30.0


@dataclass(frozen=True)
class GeneratorConfig:
    """Reply generation and post-processing settings."""

    min_reply_chars: int = 8
    completion_min_chars: int = 10
    history_size: int = 10
    similarity_threshold: float = 0.7
    creativity_probability: float = 0.3
    warmth_probability: float = 0.4
    structure_probability: float = 0.2
    default_language: str = "ja"


@dataclass(frozen=True)
class MemoryConfig:
    """Tier caps and consolidation rules for persona memory."""

    short_cap: int = 500
    medium_cap: int = 2000
    long_cap: int = 1000
    consolidation_trigger: int = 100
    short_retention_seconds: float = 7 * 24 * 3600.0
    min_relevance: float = 0.3
    recency_half_life_seconds: float = 24 * 3600.0
    promote_short_importance: float = 0.7
    promote_short_access: int = 5
    promote_medium_importance: float = 0.9
    promote_medium_access: int = 20
    retain_importance: float = 0.6


@dataclass(frozen=True)
class LearningConfig:
    """Personality adaptation rates."""

    max_adaptation_rate: float = 0.05
    personality_stability_factor: float = 0.8
    emotion_influence: float = 0.005
    contextual_weight: float = 0.3
    learned_weight: float = 0.1
    drift_history: int = 100


@dataclass(frozen=True)
class OrchestratorConfig:
    """Response task pacing and idle-trigger policy."""

    recent_limit: int = 10
    pacing_delay_seconds: tuple[float, float] = (1.0, 3.0)
    thinking_delay_seconds: tuple[float, float] = (2.0, 5.0)
    idle_flowing_skip_minutes: float = 2.0
    idle_high_engagement_skip_minutes: float = 3.0
    trait_match_threshold: int = 4


@dataclass(frozen=True)
class SchedulerConfig:
    """Idle-room auto-conversation timer settings."""

    enabled: bool = True
    min_interval_seconds: float = 15.0
    max_interval_seconds: float = 60.0
    retry_delay_seconds: float = 60.0
