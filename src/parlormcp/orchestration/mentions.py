"""Resolution of ``@name`` mentions against a room roster."""

from __future__ import annotations

import re
from collections.abc import Sequence

from parlormcp.analysis.scoring import MENTION_SIGIL
from parlormcp.analysis.scoring import parse_mentions
from parlormcp.models import Persona
from parlormcp.orchestration.contracts import InvalidMentionError

# A sigil glued to ASCII punctuation, e.g. ``@@Aki`` or ``@-``.
_MALFORMED_RE = re.compile(MENTION_SIGIL + r"(?=[!-/:-@\[-`{-~])")

__all__ = ["parse_mentions", "resolve_mentions"]


def resolve_mentions(content: str, roster: Sequence[Persona]) -> set[str] | None:
    """Map mentions in *content* to roster persona ids.

    Returns ``None`` when the message mentions nobody, and an empty set
    when it mentions only names outside the roster, so nobody answers.
    Raises ``InvalidMentionError`` for a malformed mention token.
    """
    malformed = _MALFORMED_RE.search(content)
    if malformed is not None:
        raise InvalidMentionError(f"Malformed mention at position {malformed.start()}")
    mentions = {name.casefold() for name in parse_mentions(content)}
    if not mentions:
        return None
    return {p.id for p in roster if p.name.casefold() in mentions}
