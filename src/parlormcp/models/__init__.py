"""Models domain: rooms, personas, messages and trait vectors."""

from __future__ import annotations

from parlormcp.models.chat import BigFive
from parlormcp.models.chat import Message
from parlormcp.models.chat import Persona
from parlormcp.models.chat import Room
from parlormcp.models.chat import SenderKind
from parlormcp.models.chat import TRAIT_NAMES
from parlormcp.models.chat import clamp_trait

__all__ = [
    "BigFive",
    "Message",
    "Persona",
    "Room",
    "SenderKind",
    "TRAIT_NAMES",
    "clamp_trait",
]
