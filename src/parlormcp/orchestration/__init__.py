"""Orchestration domain: response tasks, interrupts and idle scheduling."""

from __future__ import annotations

from parlormcp.orchestration.contracts import EVENT_MESSAGE
from parlormcp.orchestration.contracts import EVENT_TYPING
from parlormcp.orchestration.contracts import EVENT_TYPING_CLEARED
from parlormcp.orchestration.contracts import Broadcaster
from parlormcp.orchestration.contracts import InvalidMentionError
from parlormcp.orchestration.contracts import InvalidMessageError
from parlormcp.orchestration.contracts import OrchestrationError
from parlormcp.orchestration.contracts import PersonaNotFoundError
from parlormcp.orchestration.contracts import ResponseCancelled
from parlormcp.orchestration.contracts import RoomCatalog
from parlormcp.orchestration.contracts import RoomNotFoundError
from parlormcp.orchestration.contracts import Store
from parlormcp.orchestration.mentions import parse_mentions
from parlormcp.orchestration.mentions import resolve_mentions
from parlormcp.orchestration.orchestrator import HandleResult
from parlormcp.orchestration.orchestrator import IdleDecision
from parlormcp.orchestration.orchestrator import ResponseOrchestrator
from parlormcp.orchestration.registry import ActiveResponseRegistry
from parlormcp.orchestration.registry import ResponseTicket
from parlormcp.orchestration.registry import RoomTimers
from parlormcp.orchestration.scheduler import IdleScheduler

__all__ = [
    "ActiveResponseRegistry",
    "Broadcaster",
    "EVENT_MESSAGE",
    "EVENT_TYPING",
    "EVENT_TYPING_CLEARED",
    "HandleResult",
    "IdleDecision",
    "IdleScheduler",
    "InvalidMentionError",
    "InvalidMessageError",
    "OrchestrationError",
    "PersonaNotFoundError",
    "ResponseCancelled",
    "ResponseOrchestrator",
    "ResponseTicket",
    "RoomCatalog",
    "RoomNotFoundError",
    "RoomTimers",
    "Store",
    "parse_mentions",
    "resolve_mentions",
]
