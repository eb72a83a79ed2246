"""Reply templates, stylistic markers and deterministic fallback lines.

Templates exist only for the strategies listed in ``TEMPLATES``; any
other strategy skips straight to the completion stage.  Placeholders use
``str.format`` names and a template is unusable when one of its
placeholders resolves to an empty value.
"""

from __future__ import annotations

from dataclasses import dataclass

from parlormcp.engine.strategy import StrategyType

LANGUAGES: tuple[str, ...] = ("ja", "en")


@dataclass(frozen=True)
class Template:
    text: str
    style: tuple[str, ...] = ()


# ---------------------------------------------------------------------------
# Templates
# ---------------------------------------------------------------------------

TEMPLATES: dict[str, dict[StrategyType, tuple[Template, ...]]] = {
    "ja": {
        StrategyType.direct_response: (
            Template(
                "@{other_name} そうですね、{last_message_snippet}について私も考えていました",
                ("thoughtful",),
            ),
            Template("@{other_name} それは{emotion_level}話ですね！", ("enthusiastic", "casual")),
            Template("@{other_name} 興味深いポイントですね", ("analytical", "formal")),
        ),
        StrategyType.conversation_starter: (
            Template("ところで、皆さんは{topic}についてどう思いますか？", ("inclusive",)),
            Template("最近{topic}に関して気になることがあるんです", ("personal", "casual")),
            Template("{topic}の話で思い出したことがあります", ("connective",)),
        ),
        StrategyType.natural_contribution: (
            Template(
                "なるほど、私は{personality_trait}な性格なので、少し違う見方をしています",
                ("personal",),
            ),
            Template(
                "その話を聞いて、{dominant_emotion}な気持ちになりました", ("emotional",)
            ),
            Template("確かに{last_message_snippet}ですね", ("agreeable", "casual")),
        ),
        StrategyType.emotional_response: (
            Template(
                "それは{dominant_emotion}ですね！私も同じように感じます", ("empathetic",)
            ),
            Template(
                "{other_name}さんの{dominant_emotion}な気持ち、よく分かります",
                ("supportive", "formal"),
            ),
        ),
        StrategyType.inclusive_question: (
            Template(
                "{quiet_name}さんは{topic}についてどう思いますか？ぜひ聞いてみたいです",
                ("inclusive", "formal"),
            ),
            Template("{quiet_name}さんはどう？", ("inclusive", "casual")),
        ),
        StrategyType.depth_probe: (
            Template(
                "{other_name}さん、{last_message_snippet}と感じたのはどうしてですか？",
                ("curious",),
            ),
            Template("それって、実際どういうことなんでしょう？もう少し詳しく聞きたいです", ("curious",)),
        ),
    },
    "en": {
        StrategyType.direct_response: (
            Template(
                "@{other_name} Yes, I've been thinking about {last_message_snippet} too",
                ("thoughtful",),
            ),
            Template(
                "@{other_name} That's a {emotion_level} interesting point!",
                ("enthusiastic", "casual"),
            ),
            Template("@{other_name} I find that fascinating", ("analytical", "formal")),
        ),
        StrategyType.conversation_starter: (
            Template("By the way, what do you think about {topic}?", ("inclusive",)),
            Template("I've been curious about {topic} lately", ("personal", "casual")),
            Template("That reminds me of something related to {topic}", ("connective",)),
        ),
        StrategyType.natural_contribution: (
            Template(
                "Interesting, as someone who's {personality_trait}, I see it differently",
                ("personal",),
            ),
            Template("That makes me feel {dominant_emotion}", ("emotional",)),
            Template("I agree that {last_message_snippet}", ("agreeable", "casual")),
        ),
        StrategyType.emotional_response: (
            Template(
                "That sounds like {dominant_emotion}! I can relate to that",
                ("empathetic",),
            ),
            Template(
                "I understand your {dominant_emotion}, {other_name}",
                ("supportive", "formal"),
            ),
        ),
        StrategyType.inclusive_question: (
            Template(
                "{quiet_name}, I'd really like to hear what you think about {topic}",
                ("inclusive", "formal"),
            ),
            Template("What about you, {quiet_name}?", ("inclusive", "casual")),
        ),
        StrategyType.depth_probe: (
            Template(
                "{other_name}, what made you feel that way about {last_message_snippet}?",
                ("curious",),
            ),
            Template(
                "What does that actually look like in practice? I'd love more detail",
                ("curious",),
            ),
        ),
    },
}

# ---------------------------------------------------------------------------
# Variable vocabularies
# ---------------------------------------------------------------------------

EMOTION_LEVELS: dict[str, dict[str, str]] = {
    "ja": {"high": "とても熱い", "medium": "面白い", "low": "穏やかな"},
    "en": {"high": "really", "medium": "quite", "low": "fairly"},
}

EMOTION_LABELS: dict[str, dict[str, str]] = {
    "ja": {
        "excitement": "ワクワク",
        "sadness": "切ない",
        "curiosity": "興味深い",
        "agreement": "共感",
        "confusion": "もどかしい",
        "appreciation": "ありがたい",
    },
    "en": {
        "excitement": "excitement",
        "sadness": "sadness",
        "curiosity": "curiosity",
        "agreement": "agreement",
        "confusion": "confusion",
        "appreciation": "appreciation",
    },
}

TRAIT_LABELS: dict[str, dict[str, str]] = {
    "ja": {
        "extraversion": "社交的",
        "agreeableness": "協調的",
        "conscientiousness": "几帳面",
        "neuroticism": "繊細",
        "openness": "好奇心旺盛",
    },
    "en": {
        "extraversion": "outgoing",
        "agreeableness": "easygoing",
        "conscientiousness": "meticulous",
        "neuroticism": "sensitive",
        "openness": "curious",
    },
}

# ---------------------------------------------------------------------------
# Post-processing markers
# ---------------------------------------------------------------------------

ENTHUSIASM_MARKERS: dict[str, tuple[str, ...]] = {
    "ja": ("！", "ね！", "よ！", "✨"),
    "en": ("!", " That's exciting!", " ✨"),
}
CREATIVITY_MARKERS: tuple[str, ...] = ("🎨", "💭", "✨")
WARMTH_MARKERS: dict[str, tuple[str, ...]] = {
    "ja": (" 😊", " 🤗"),
    "en": (" 😊", " 🤗", " I appreciate that", " That's thoughtful"),
}
STRUCTURE_MARKERS: dict[str, tuple[str, ...]] = {
    "ja": ("まず、", "つまり、", "要するに、"),
    "en": ("First,", "In other words,", "Essentially,"),
}
VARIATION_PHRASES: dict[str, tuple[str, ...]] = {
    "ja": ("ところで、", "そういえば、"),
    "en": ("Actually, ", "By the way, "),
}

# ---------------------------------------------------------------------------
# Deterministic fallbacks
# ---------------------------------------------------------------------------

CANNED_REPLIES: dict[str, dict[str, str]] = {
    "ja": {
        "greeting": "こんにちは！お話しできて嬉しいです。何について話したいですか？",
        "question": "いい質問ですね。少し考えてから、私の考えをお話ししますね。",
        "topic": "{topic}の話、もっと聞かせてください。とても気になります。",
    },
    "en": {
        "greeting": "Hello! It's nice to talk with you. What would you like to chat about?",
        "question": "That's a good question. Let me think about it for a moment.",
        "topic": "I'd love to hear more about {topic}. It sounds really interesting.",
    },
}

STATIC_FALLBACKS: dict[str, tuple[str, ...]] = {
    "ja": (
        "そうですね、興味深い話ですね",
        "なるほど、そういう考えもありますね",
        "それについてもう少し聞かせてください",
        "面白い視点ですね、続きが気になります",
    ),
    "en": (
        "That's an interesting point",
        "I see what you mean",
        "Could you tell me more about that?",
        "That's a fascinating perspective",
    ),
}


def language_or_default(language: str | None, default: str = "ja") -> str:
    if language in LANGUAGES:
        return language
    return default if default in LANGUAGES else "ja"
