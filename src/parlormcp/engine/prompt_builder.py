"""Prompt construction for the completion stage.

Builds the persona system prompt (Big-Five descriptors, topic, custom
instructions, conversation state, remembered background, conversation
rules) and the user prompt carrying the recent transcript.  Separate
module because prompts evolve independently of the fallback chain.
"""

from __future__ import annotations

from collections.abc import Mapping
from collections.abc import Sequence

from parlormcp.analysis.state import ConversationState
from parlormcp.engine.strategy import ResponseStrategy
from parlormcp.models import Message
from parlormcp.models import Persona
from parlormcp.models import TRAIT_NAMES

TRAIT_DESCRIPTORS: dict[str, dict[str, tuple[str, ...]]] = {
    "ja": {
        "extraversion": ("内向的", "やや控えめ", "普通", "外向的", "非常に社交的"),
        "agreeableness": ("分析的", "やや懐疑的", "普通", "協調的", "非常に協力的"),
        "conscientiousness": ("自発的", "やや柔軟", "普通", "几帳面", "非常に組織的"),
        "neuroticism": ("安定", "やや冷静", "普通", "敏感", "非常に感情的"),
        "openness": ("実用的", "やや保守的", "普通", "創造的", "非常に開放的"),
    },
    "en": {
        "extraversion": (
            "Introverted", "Reserved", "Moderate", "Extraverted", "Very Social"
        ),
        "agreeableness": (
            "Analytical", "Skeptical", "Moderate", "Cooperative", "Very Agreeable"
        ),
        "conscientiousness": (
            "Spontaneous", "Flexible", "Moderate", "Organized", "Very Conscientious"
        ),
        "neuroticism": ("Stable", "Calm", "Moderate", "Sensitive", "Very Emotional"),
        "openness": ("Practical", "Traditional", "Moderate", "Creative", "Very Open"),
    },
}

_TRAIT_TITLES: dict[str, dict[str, str]] = {
    "ja": {
        "extraversion": "外向性",
        "agreeableness": "協調性",
        "conscientiousness": "誠実性",
        "neuroticism": "神経症的傾向",
        "openness": "開放性",
    },
    "en": {name: name.capitalize() for name in TRAIT_NAMES},
}

_SECTION_TITLES: dict[str, dict[str, str]] = {
    "ja": {
        "traits": "【あなたの性格特性（Big Five）】",
        "topic": "【議題】",
        "custom": "【カスタム指示】",
        "state": "【会話の状況】",
        "rules": "【会話ルール】",
    },
    "en": {
        "traits": "[Your Personality Traits (Big Five)]",
        "topic": "[Topic]",
        "custom": "[Custom Instructions]",
        "state": "[Conversation State]",
        "rules": "[Conversation Rules]",
    },
}

_RULES: dict[str, tuple[str, ...]] = {
    "ja": (
        "他の参加者に返信する時は @名前 で始めてください",
        "自然で人間らしい会話を心がけてください",
        "あなたの性格特性に基づいて一貫した行動を取ってください",
        "適度に絵文字や感情表現を使ってください",
        "長すぎるメッセージは避け、簡潔に表現してください（1-3文程度）",
    ),
    "en": (
        "When replying to other participants, start with @name",
        "Aim for natural, human-like conversation",
        "Act consistently based on your personality traits",
        "Use emojis and emotional expressions appropriately",
        "Keep messages concise (1-3 sentences)",
    ),
}


def _descriptor(language: str, trait: str, value: float) -> str:
    index = min(4, max(0, int(round(value)) - 1))
    return TRAIT_DESCRIPTORS[language][trait][index]


def build_system_prompt(
    persona: Persona,
    *,
    language: str,
    topic: str = "",
    traits: Mapping[str, float] | None = None,
    state: ConversationState | None = None,
    memory_context: str | None = None,
) -> str:
    """Build the persona system prompt in ``language`` (ja or en)."""
    vector = dict(traits) if traits is not None else persona.traits.as_vector()
    titles = _SECTION_TITLES[language]

    if language == "ja":
        intro = (
            f"あなたは{persona.name}というAIペルソナです。"
            "チャットルームで他のペルソナや人間のユーザーと会話しています。"
        )
    else:
        intro = (
            f"You are {persona.name}, an AI persona chatting with other personas "
            "and human users in a chat room."
        )
    sections = [intro, titles["traits"]]
    for trait in TRAIT_NAMES:
        value = vector[trait]
        sections.append(
            f"- {_TRAIT_TITLES[language][trait]}: "
            f"{_descriptor(language, trait, value)} ({value:.1f}/5)"
        )

    if topic:
        sections += ["", titles["topic"], topic]
    if persona.custom_instructions:
        sections += ["", titles["custom"], persona.custom_instructions]
    if state is not None:
        sections += [
            "",
            titles["state"],
            f"phase={state.phase.value} engagement={state.engagement.value} "
            f"momentum={state.momentum:.2f} tone={state.emotional_tone.dominant} "
            f"social={state.social}",
        ]
    if memory_context:
        sections += ["", memory_context.rstrip()]
    sections += ["", titles["rules"]]
    sections += [f"- {rule}" for rule in _RULES[language]]
    return "\n".join(sections)


def build_user_prompt(
    persona: Persona,
    recent_messages: Sequence[Message],
    strategy: ResponseStrategy,
    *,
    language: str,
) -> str:
    """Build the per-turn prompt: transcript plus the chosen strategy."""
    transcript = "\n".join(f"{m.sender_name}: {m.content}" for m in recent_messages)
    if language == "ja":
        return (
            f"最近の会話:\n{transcript or '（まだ会話はありません）'}\n\n"
            f"応答方針: {strategy.type.value}\n"
            f"{persona.name}として、次の発言を1つだけ書いてください。"
        )
    return (
        f"Recent conversation:\n{transcript or '(no messages yet)'}\n\n"
        f"Response strategy: {strategy.type.value}\n"
        f"Write exactly one next message as {persona.name}."
    )
