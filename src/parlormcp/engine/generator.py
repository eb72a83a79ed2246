"""Reply generation through a strict four-stage fallback chain.

1. template-based contextual generation,
2. the external completion service with bounded retries,
3. keyword-triggered canned text,
4. a static line chosen deterministically per persona.

Each stage runs only when the previous one produced no usable text, so
the chain always yields a non-empty reply.
"""

from __future__ import annotations

import asyncio
import logging
import random
import re
import string
import zlib
from collections import deque
from collections.abc import Callable
from collections.abc import Mapping
from dataclasses import dataclass
from datetime import datetime
from datetime import timezone
from enum import Enum
from time import perf_counter

from parlormcp.analysis.scoring import is_question
from parlormcp.analysis.state import ConversationState
from parlormcp.config import CompletionConfig
from parlormcp.config import GeneratorConfig
from parlormcp.engine.completion import CompletionError
from parlormcp.engine.completion import CompletionErrorKind
from parlormcp.engine.completion import CompletionService
from parlormcp.engine.context import ResponseContext
from parlormcp.engine.prompt_builder import build_system_prompt
from parlormcp.engine.prompt_builder import build_user_prompt
from parlormcp.engine.strategy import ResponseStrategy
from parlormcp.engine.templates import CANNED_REPLIES
from parlormcp.engine.templates import CREATIVITY_MARKERS
from parlormcp.engine.templates import EMOTION_LABELS
from parlormcp.engine.templates import EMOTION_LEVELS
from parlormcp.engine.templates import ENTHUSIASM_MARKERS
from parlormcp.engine.templates import STATIC_FALLBACKS
from parlormcp.engine.templates import STRUCTURE_MARKERS
from parlormcp.engine.templates import TEMPLATES
from parlormcp.engine.templates import TRAIT_LABELS
from parlormcp.engine.templates import Template
from parlormcp.engine.templates import VARIATION_PHRASES
from parlormcp.engine.templates import WARMTH_MARKERS
from parlormcp.engine.templates import language_or_default
from parlormcp.models import Persona
from parlormcp.observability import increment_counter
from parlormcp.observability import record_latency

logger = logging.getLogger(__name__)

_GREETING_RE = re.compile(
    r"こんにちは|こんばんは|おはよう|はじめまして|\b(?:hello|hi|hey)\b", re.IGNORECASE
)
_SNIPPET_CHARS = 30
_STRUCTURE_PREFIX_RE = re.compile(
    r"^(?:まず|つまり|要するに|First|In other words|Essentially)"
)


class GenerationStage(str, Enum):
    template = "template"
    completion = "completion"
    canned = "canned"
    static = "static"


@dataclass(frozen=True)
class GeneratedReply:
    text: str
    stage: GenerationStage


@dataclass(frozen=True)
class PersonaStyle:
    """Trait-threshold style, one trait per axis (> 3 flips the axis)."""

    verbose: bool
    formal: bool
    emotional: bool
    creative: bool
    agreeable: bool

    @classmethod
    def from_traits(cls, traits: Mapping[str, float]) -> PersonaStyle:
        return cls(
            verbose=traits["extraversion"] > 3,
            formal=traits["conscientiousness"] > 3,
            emotional=traits["neuroticism"] > 3,
            creative=traits["openness"] > 3,
            agreeable=traits["agreeableness"] > 3,
        )

    def accepts(self, template: Template) -> bool:
        if not self.verbose and len(template.text) > 100:
            return False
        if self.verbose and len(template.text) < 30:
            return False
        if self.formal and "casual" in template.style:
            return False
        if not self.formal and "formal" in template.style:
            return False
        return True


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def time_context(now: datetime) -> str:
    if now.hour < 6:
        return "late_night"
    if now.hour < 12:
        return "morning"
    if now.hour < 18:
        return "afternoon"
    return "evening"


def snippet(content: str) -> str:
    if len(content) > _SNIPPET_CHARS:
        return content[:_SNIPPET_CHARS] + "..."
    return content


def word_similarity(left: str, right: str) -> float:
    left_words = set(left.lower().split())
    right_words = set(right.lower().split())
    union = left_words | right_words
    if not union:
        return 1.0
    return len(left_words & right_words) / len(union)


def _placeholders(text: str) -> set[str]:
    return {name for _, name, _, _ in string.Formatter().parse(text) if name}


class ResponseGenerator:
    """Produce reply text for one persona and strategy."""

    def __init__(
        self,
        completion: CompletionService | None = None,
        *,
        config: GeneratorConfig | None = None,
        completion_config: CompletionConfig | None = None,
        rng: random.Random | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._completion = completion
        self._config = config or GeneratorConfig()
        self._completion_config = completion_config or CompletionConfig()
        self._rng = rng or random.Random()
        self._clock = clock or _utcnow
        self._history: dict[str, deque[str]] = {}

    async def generate(
        self,
        strategy: ResponseStrategy,
        persona: Persona,
        context: ResponseContext,
        state: ConversationState,
        *,
        topic: str = "",
        language: str | None = None,
        traits: Mapping[str, float] | None = None,
        memory_context: str | None = None,
    ) -> GeneratedReply:
        lang = language_or_default(
            language or persona.language, self._config.default_language
        )
        vector = dict(traits) if traits is not None else persona.traits.as_vector()
        start = perf_counter()

        reply: GeneratedReply | None = None
        text = self._from_template(
            strategy, persona, context, state, topic, lang, vector
        )
        if text is not None:
            reply = GeneratedReply(text, GenerationStage.template)

        if reply is None:
            text = await self._from_completion(
                strategy, persona, context, state, topic, lang, vector, memory_context
            )
            if text is not None:
                reply = GeneratedReply(text, GenerationStage.completion)

        if reply is None:
            text = self._canned(context, topic, lang)
            if text is not None:
                reply = GeneratedReply(text, GenerationStage.canned)

        if reply is None:
            reply = GeneratedReply(self._static(persona, lang), GenerationStage.static)

        self._track(persona.id, reply.text)
        increment_counter(f"generator.stage.{reply.stage.value}")
        record_latency(
            operation="generator.generate",
            duration_ms=(perf_counter() - start) * 1000,
            ok=reply.stage
            in (GenerationStage.template, GenerationStage.completion),
        )
        if reply.stage in (GenerationStage.canned, GenerationStage.static):
            logger.warning(
                "Persona %s fell back to %s reply for strategy %s",
                persona.id,
                reply.stage.value,
                strategy.type.value,
            )
        return reply

    def recent_outputs(self, persona_id: str) -> list[str]:
        return list(self._history.get(persona_id, ()))

    def forget(self, persona_id: str) -> None:
        self._history.pop(persona_id, None)

    def _usable(self, text: str | None, minimum: int) -> bool:
        return text is not None and len(text.strip()) >= minimum

    # -- stage 1: templates --

    def _from_template(
        self,
        strategy: ResponseStrategy,
        persona: Persona,
        context: ResponseContext,
        state: ConversationState,
        topic: str,
        lang: str,
        traits: Mapping[str, float],
    ) -> str | None:
        candidates = TEMPLATES[lang].get(strategy.type)
        if not candidates:
            return None

        variables = self._variables(
            persona, context, state, strategy, topic, lang, traits
        )
        usable = [
            t
            for t in candidates
            if all(variables.get(name) for name in _placeholders(t.text))
        ]
        if not usable:
            return None
        style = PersonaStyle.from_traits(traits)
        compatible = [t for t in usable if style.accepts(t)] or usable
        template = self._rng.choice(compatible)

        text = template.text.format(**variables)
        text = self._stylize(text, traits, lang)
        text = self._ensure_unique(text, persona.id, lang)
        if not self._usable(text, self._config.min_reply_chars):
            return None
        return text

    def _variables(
        self,
        persona: Persona,
        context: ResponseContext,
        state: ConversationState,
        strategy: ResponseStrategy,
        topic: str,
        lang: str,
        traits: Mapping[str, float],
    ) -> dict[str, str]:
        last = context.last_message
        if state.momentum > 0.7:
            level = "high"
        elif state.momentum > 0.3:
            level = "medium"
        else:
            level = "low"
        emotion = strategy.emotion or context.dominant_cue
        dominant_trait = max(traits, key=lambda name: traits[name])
        other_name = ""
        if last is not None and last.sender_name != persona.name:
            other_name = last.sender_name

        quiet = [
            p.name
            for p in sorted(state.participants, key=lambda p: p.message_count)
            if p.name != persona.name
        ]
        return {
            "persona_name": persona.name,
            "other_name": other_name,
            "quiet_name": quiet[0] if quiet else "",
            "topic": topic,
            "emotion_level": EMOTION_LEVELS[lang][level],
            "conversation_phase": state.phase.value,
            "dominant_emotion": EMOTION_LABELS[lang].get(emotion or "", ""),
            "time_context": time_context(self._clock()),
            "last_message_snippet": snippet(last.content) if last is not None else "",
            "personality_trait": TRAIT_LABELS[lang][dominant_trait],
        }

    def _stylize(self, text: str, traits: Mapping[str, float], lang: str) -> str:
        cfg = self._config
        if traits["extraversion"] >= 4 and "!" not in text and "！" not in text:
            text += self._rng.choice(ENTHUSIASM_MARKERS[lang])
        if traits["openness"] >= 4 and self._rng.random() < cfg.creativity_probability:
            text += " " + self._rng.choice(CREATIVITY_MARKERS)
        if traits["agreeableness"] >= 4 and self._rng.random() < cfg.warmth_probability:
            text += self._rng.choice(WARMTH_MARKERS[lang])
        if (
            traits["conscientiousness"] >= 4
            and self._rng.random() < cfg.structure_probability
            and not text.startswith("@")
            and not _STRUCTURE_PREFIX_RE.match(text)
        ):
            text = self._rng.choice(STRUCTURE_MARKERS[lang]) + " " + text
        return text

    def _ensure_unique(self, text: str, persona_id: str, lang: str) -> str:
        recent = self._history.get(persona_id, ())
        threshold = self._config.similarity_threshold
        if any(word_similarity(text, previous) > threshold for previous in recent):
            text = self._rng.choice(VARIATION_PHRASES[lang]) + text
        return text

    def _track(self, persona_id: str, text: str) -> None:
        history = self._history.setdefault(
            persona_id, deque(maxlen=self._config.history_size)
        )
        history.append(text)

    # -- stage 2: completion service --

    async def _from_completion(
        self,
        strategy: ResponseStrategy,
        persona: Persona,
        context: ResponseContext,
        state: ConversationState,
        topic: str,
        lang: str,
        traits: Mapping[str, float],
        memory_context: str | None,
    ) -> str | None:
        if self._completion is None:
            return None
        cfg = self._completion_config
        system_prompt = build_system_prompt(
            persona,
            language=lang,
            topic=topic,
            traits=traits,
            state=state,
            memory_context=memory_context,
        )
        prompt = build_user_prompt(
            persona, context.recent_messages, strategy, language=lang
        )

        for attempt in range(cfg.max_retries + 1):
            try:
                raw = await asyncio.wait_for(
                    self._completion.complete(
                        prompt,
                        system_prompt=system_prompt,
                        temperature=cfg.temperature,
                        max_tokens=cfg.max_tokens,
                        timeout_seconds=cfg.timeout_seconds,
                    ),
                    timeout=cfg.timeout_seconds,
                )
            except asyncio.TimeoutError:
                error = CompletionError(
                    CompletionErrorKind.timeout,
                    f"no reply within {cfg.timeout_seconds}s",
                )
            except CompletionError as exc:
                error = exc
            else:
                text = raw.strip().strip('"「」')
                if self._usable(text, self._config.completion_min_chars):
                    return text
                logger.info(
                    "Completion reply for persona %s too short (%d chars)",
                    persona.id,
                    len(text),
                )
                return None

            increment_counter(f"completion.error.{error.kind.value}")
            if not error.transient or attempt == cfg.max_retries:
                logger.warning(
                    "Completion failed for persona %s after %d attempt(s): %s",
                    persona.id,
                    attempt + 1,
                    error,
                )
                return None
            delay = cfg.retry_backoff_seconds * (attempt + 1)
            logger.debug(
                "Retrying completion for persona %s in %.1fs (%s)",
                persona.id,
                delay,
                error.kind.value,
            )
            await asyncio.sleep(delay)
        return None

    # -- stages 3 and 4: deterministic fallbacks --

    def _canned(self, context: ResponseContext, topic: str, lang: str) -> str | None:
        last = context.last_message
        if last is None:
            return None
        replies = CANNED_REPLIES[lang]
        content = last.content
        if _GREETING_RE.search(content):
            return replies["greeting"]
        if is_question(content):
            return replies["question"]
        if topic and topic.lower() in content.lower():
            return replies["topic"].format(topic=topic)
        return None

    def _static(self, persona: Persona, lang: str) -> str:
        lines = STATIC_FALLBACKS[lang]
        return lines[zlib.crc32(persona.id.encode("utf-8")) % len(lines)]
