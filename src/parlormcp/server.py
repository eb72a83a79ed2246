"""ParlorMCP: FastMCP v2 server for multi-persona chat rooms.

Tools delegate to a ``ResponseOrchestrator`` (who answers, when, and how
in-flight replies abort) and an ``IdleScheduler`` (auto-conversation in
quiet rooms).  Rooms, personas and messages live in a Redis-backed
store by default.  Call ``configure(redis_url=...)`` before using the
server.
"""

from __future__ import annotations

import logging
from time import perf_counter

from fastmcp import FastMCP
from pydantic import ValidationError
from redis.asyncio import Redis  # type: ignore[import-untyped]

from parlormcp.analysis import ConversationStateAnalyzer
from parlormcp.analysis import ConversationStateCache
from parlormcp.analysis import TextScorer
from parlormcp.config import AnalyzerConfig
from parlormcp.config import CompletionConfig
from parlormcp.config import GeneratorConfig
from parlormcp.config import LearningConfig
from parlormcp.config import MemoryConfig
from parlormcp.config import OrchestratorConfig
from parlormcp.config import SchedulerConfig
from parlormcp.engine import CompletionService
from parlormcp.engine import ResponseGenerator
from parlormcp.engine import build_completion_service
from parlormcp.learning import PersonalityAdapter
from parlormcp.memory import MemoryStore
from parlormcp.models import BigFive
from parlormcp.models import Persona
from parlormcp.models import Room
from parlormcp.models.schemas import AutoChatResult
from parlormcp.models.schemas import AutoConversationResult
from parlormcp.models.schemas import ConversationStateResult
from parlormcp.models.schemas import DeleteResult
from parlormcp.models.schemas import IdleTickResult
from parlormcp.models.schemas import InterruptResult
from parlormcp.models.schemas import PersonaInsightsResult
from parlormcp.models.schemas import SavePersonaInput
from parlormcp.models.schemas import SavePersonaResult
from parlormcp.models.schemas import SaveRoomInput
from parlormcp.models.schemas import SaveRoomResult
from parlormcp.models.schemas import SendUserMessageInput
from parlormcp.models.schemas import SendUserMessageResult
from parlormcp.observability import record_latency
from parlormcp.orchestration import Broadcaster
from parlormcp.orchestration import IdleScheduler
from parlormcp.orchestration import OrchestrationError
from parlormcp.orchestration import ResponseOrchestrator
from parlormcp.orchestration import RoomCatalog
from parlormcp.rooms import RedisBroadcaster
from parlormcp.rooms import RedisRoomStore

logger = logging.getLogger(__name__)

mcp = FastMCP("ParlorMCP")

# ---------------------------------------------------------------------------
# Backend instances (set via configure())
# ---------------------------------------------------------------------------

_redis: Redis | None = None
_store: RoomCatalog | None = None
_orchestrator: ResponseOrchestrator | None = None
_scheduler: IdleScheduler | None = None


async def configure(
    redis_url: str = "redis://localhost:6379",
    *,
    store: RoomCatalog | None = None,
    broadcaster: Broadcaster | None = None,
    completion_service: CompletionService | None = None,
    scorer: TextScorer | None = None,
    max_history: int = 1000,
    completion_config: CompletionConfig | None = None,
    analyzer_config: AnalyzerConfig | None = None,
    generator_config: GeneratorConfig | None = None,
    memory_config: MemoryConfig | None = None,
    learning_config: LearningConfig | None = None,
    orchestrator_config: OrchestratorConfig | None = None,
    scheduler_config: SchedulerConfig | None = None,
) -> None:
    """Initialize the orchestration backend.

    Must be called before the MCP tools can function.  ``store`` and
    ``broadcaster`` default to Redis-backed implementations on
    ``redis_url``; passing both skips the Redis connection entirely.
    """
    global _redis, _store, _orchestrator, _scheduler
    await shutdown()

    if store is None or broadcaster is None:
        _redis = Redis.from_url(redis_url)
    if store is None:
        store = RedisRoomStore(_redis, max_history=max_history)
    if broadcaster is None:
        broadcaster = RedisBroadcaster(_redis)

    completion_cfg = completion_config or CompletionConfig()
    analyzer_cfg = analyzer_config or AnalyzerConfig()
    memory = MemoryStore(memory_config)
    adapter = PersonalityAdapter(learning_config, memory=memory)
    generator = ResponseGenerator(
        completion_service or build_completion_service(completion_cfg),
        config=generator_config,
        completion_config=completion_cfg,
    )
    _store = store
    _orchestrator = ResponseOrchestrator(
        store,
        broadcaster,
        generator,
        analyzer=ConversationStateAnalyzer(analyzer_cfg, scorer=scorer),
        memory=memory,
        adapter=adapter,
        config=orchestrator_config,
        state_cache=ConversationStateCache(ttl_seconds=analyzer_cfg.cache_ttl_seconds),
    )
    _scheduler = IdleScheduler(_orchestrator, config=scheduler_config)
    logger.info(
        "ParlorMCP configured (completion=%s, auto_conversation=%s)",
        completion_cfg.provider,
        _scheduler.enabled,
    )


async def shutdown() -> None:
    """Stop timers, cancel response tasks and close backend clients."""
    global _redis, _store, _orchestrator, _scheduler
    if _scheduler is not None:
        _scheduler.close()
        _scheduler = None
    if _orchestrator is not None:
        await _orchestrator.close()
        _orchestrator = None
    if _redis is not None:
        await _redis.aclose()
        _redis = None
    _store = None


def _get_store() -> RoomCatalog:
    """Return the room store or raise."""
    if _store is None:
        raise RuntimeError("Room store not configured. Call configure() first.")
    return _store


def _get_orchestrator() -> ResponseOrchestrator:
    """Return the orchestrator or raise."""
    if _orchestrator is None:
        raise RuntimeError("Orchestrator not configured. Call configure() first.")
    return _orchestrator


def _get_scheduler() -> IdleScheduler:
    """Return the idle scheduler or raise."""
    if _scheduler is None:
        raise RuntimeError("Scheduler not configured. Call configure() first.")
    return _scheduler


async def _wait_for_responses(room_id: str | None = None) -> None:
    """Wait for in-flight response tasks (test helper)."""
    if _orchestrator is not None:
        await _orchestrator.wait_idle(room_id)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _validation_message(exc: ValidationError) -> str:
    err = exc.errors()[0] if exc.errors() else {}
    return str(err.get("msg", "Invalid input"))


def _record(operation: str, start: float, ok: bool) -> None:
    record_latency(
        operation=f"mcp.{operation}",
        duration_ms=(perf_counter() - start) * 1000,
        ok=ok,
    )


# ---------------------------------------------------------------------------
# Tools: rooms and personas
# ---------------------------------------------------------------------------


@mcp.tool
async def save_room(
    room_id: str,
    name: str,
    topic: str = "",
    persona_ids: list[str] | None = None,
) -> SaveRoomResult:
    """Create or replace a chat room and start watching it for idleness.

    Args:
        room_id: Stable room identifier.
        name: Display name.
        topic: Optional conversation topic.
        persona_ids: Roster of persona ids taking part in the room.
    """
    start = perf_counter()
    ok = False
    try:
        store = _get_store()
        try:
            validated = SaveRoomInput.model_validate(
                {
                    "room_id": room_id,
                    "name": name,
                    "topic": topic,
                    "persona_ids": persona_ids or [],
                }
            )
        except ValidationError as exc:
            return SaveRoomResult(
                room_id=room_id,
                status="rejected",
                error_code="validation_error",
                message=_validation_message(exc),
            )

        for persona_id in validated.persona_ids:
            if await store.get_persona(persona_id) is None:
                return SaveRoomResult(
                    room_id=room_id,
                    status="rejected",
                    error_code="persona_not_found",
                    message=f"Persona {persona_id} not found",
                )

        await store.save_room(
            Room(
                id=validated.room_id,
                name=validated.name,
                topic=validated.topic,
                persona_ids=validated.persona_ids,
            )
        )
        _get_scheduler().watch(validated.room_id)
        ok = True
        return SaveRoomResult(room_id=validated.room_id)
    finally:
        _record("save_room", start, ok)


@mcp.tool
async def save_persona(
    persona_id: str,
    name: str,
    traits: dict[str, int] | None = None,
    language: str = "ja",
    custom_instructions: str = "",
) -> SavePersonaResult:
    """Create or replace a persona.

    Args:
        persona_id: Stable persona identifier.
        name: Display name, used for @mentions.
        traits: Big-Five scores 1-5 keyed by trait name.
        language: Reply language, ja or en.
        custom_instructions: Extra instructions for the completion prompt.
    """
    start = perf_counter()
    ok = False
    try:
        store = _get_store()
        try:
            validated = SavePersonaInput.model_validate(
                {
                    "persona_id": persona_id,
                    "name": name,
                    "traits": traits or {},
                    "language": language,
                    "custom_instructions": custom_instructions,
                }
            )
            big_five = BigFive.model_validate(validated.traits)
        except ValidationError as exc:
            return SavePersonaResult(
                persona_id=persona_id,
                status="rejected",
                error_code="validation_error",
                message=_validation_message(exc),
            )

        await store.save_persona(
            Persona(
                id=validated.persona_id,
                name=validated.name,
                traits=big_five,
                language=validated.language,
                custom_instructions=validated.custom_instructions,
            )
        )
        ok = True
        return SavePersonaResult(persona_id=validated.persona_id)
    finally:
        _record("save_persona", start, ok)


@mcp.tool
async def delete_room(room_id: str) -> DeleteResult:
    """Delete a room, cancelling its responses and stopping its timer.

    Args:
        room_id: Room to delete.
    """
    start = perf_counter()
    ok = False
    try:
        store = _get_store()
        if await store.get_room(room_id) is None:
            return DeleteResult(
                id=room_id,
                status="rejected",
                error_code="room_not_found",
                message=f"Room {room_id} not found",
            )
        _get_scheduler().unwatch(room_id)
        await _get_orchestrator().forget_room(room_id)
        await store.delete_room(room_id)
        ok = True
        return DeleteResult(id=room_id, status="deleted")
    finally:
        _record("delete_room", start, ok)


@mcp.tool
async def delete_persona(persona_id: str) -> DeleteResult:
    """Delete a persona and drop its memory and learning state.

    Args:
        persona_id: Persona to delete.
    """
    start = perf_counter()
    ok = False
    try:
        store = _get_store()
        if await store.get_persona(persona_id) is None:
            return DeleteResult(
                id=persona_id,
                status="rejected",
                error_code="persona_not_found",
                message=f"Persona {persona_id} not found",
            )
        _get_orchestrator().forget_persona(persona_id)
        await store.delete_persona(persona_id)
        ok = True
        return DeleteResult(id=persona_id, status="deleted")
    finally:
        _record("delete_persona", start, ok)


# ---------------------------------------------------------------------------
# Tools: conversation
# ---------------------------------------------------------------------------


@mcp.tool
async def send_user_message(
    room_id: str,
    sender_name: str,
    content: str,
    reply_to: str | None = None,
) -> SendUserMessageResult:
    """Post a human message; interrupts in-flight replies and launches new ones.

    Args:
        room_id: Target room.
        sender_name: Display name of the human sender.
        content: Message text; ``@Name`` limits the responders to those personas.
        reply_to: Optional id of the message being replied to.
    """
    start = perf_counter()
    ok = False
    try:
        orchestrator = _get_orchestrator()
        try:
            validated = SendUserMessageInput.model_validate(
                {
                    "room_id": room_id,
                    "sender_name": sender_name,
                    "content": content,
                    "reply_to": reply_to,
                }
            )
        except ValidationError as exc:
            return SendUserMessageResult(
                status="rejected",
                error_code="validation_error",
                message=_validation_message(exc),
            )

        try:
            outcome = await orchestrator.handle_message(
                validated.room_id,
                validated.sender_name,
                validated.content,
                reply_to=validated.reply_to,
            )
        except OrchestrationError as exc:
            return SendUserMessageResult(
                status="rejected", error_code=exc.error_code, message=str(exc)
            )

        if _scheduler is not None:
            _scheduler.reset(validated.room_id)
        ok = True
        return SendUserMessageResult(
            message_id=outcome.message.id,
            responders=outcome.responders,
            interrupted=outcome.interrupted,
        )
    finally:
        _record("send_user_message", start, ok)


@mcp.tool
async def request_auto_chat(room_id: str, persona_id: str) -> AutoChatResult:
    """Ask one persona to speak up in a room.

    Args:
        room_id: Target room.
        persona_id: Persona that should speak; must be on the room's roster.
    """
    start = perf_counter()
    ok = False
    try:
        orchestrator = _get_orchestrator()
        try:
            launched = await orchestrator.request_auto_chat(room_id, persona_id)
        except OrchestrationError as exc:
            return AutoChatResult(
                room_id=room_id,
                persona_id=persona_id,
                status="rejected",
                error_code=exc.error_code,
                message=str(exc),
            )
        ok = True
        return AutoChatResult(
            room_id=room_id,
            persona_id=persona_id,
            status="started" if launched else "busy",
        )
    finally:
        _record("request_auto_chat", start, ok)


@mcp.tool
async def tick_idle_room(room_id: str) -> IdleTickResult:
    """Re-evaluate a room and nudge it with one persona if it has gone quiet.

    Args:
        room_id: Room to evaluate.
    """
    start = perf_counter()
    ok = False
    try:
        orchestrator = _get_orchestrator()
        try:
            decision = await orchestrator.trigger_idle(room_id)
        except OrchestrationError as exc:
            return IdleTickResult(
                room_id=room_id,
                status="rejected",
                error_code=exc.error_code,
                message=str(exc),
            )
        ok = True
        state = decision.state
        return IdleTickResult(
            room_id=room_id,
            status="triggered" if decision.triggered else "skipped",
            reason=decision.reason,
            persona_id=decision.persona_id,
            phase=state.phase.value if state is not None else None,
            suggested_delay_ms=state.suggested_delay_ms if state is not None else None,
        )
    finally:
        _record("tick_idle_room", start, ok)


@mcp.tool
async def interrupt_room(room_id: str) -> InterruptResult:
    """Cancel every in-flight persona response in a room.

    Args:
        room_id: Room to interrupt.
    """
    start = perf_counter()
    ok = False
    try:
        try:
            cancelled = await _get_orchestrator().interrupt(room_id)
        except OrchestrationError as exc:
            return InterruptResult(
                room_id=room_id,
                status="rejected",
                error_code=exc.error_code,
                message=str(exc),
            )
        ok = True
        return InterruptResult(room_id=room_id, cancelled=cancelled)
    finally:
        _record("interrupt_room", start, ok)


@mcp.tool
async def set_auto_conversation(enabled: bool) -> AutoConversationResult:
    """Turn idle-room auto-conversation on or off.

    Args:
        enabled: ``False`` stops every pending room timer.
    """
    scheduler = _get_scheduler()
    scheduler.set_enabled(enabled)
    return AutoConversationResult(
        enabled=scheduler.enabled, watched_rooms=scheduler.watched_rooms()
    )


# ---------------------------------------------------------------------------
# Tools: insights
# ---------------------------------------------------------------------------


@mcp.tool
async def get_conversation_state(room_id: str) -> ConversationStateResult:
    """Return the room's current conversation state snapshot.

    Args:
        room_id: Room to analyze.
    """
    orchestrator = _get_orchestrator()
    try:
        state = await orchestrator.conversation_state(room_id)
    except OrchestrationError as exc:
        return ConversationStateResult(
            room_id=room_id,
            status="rejected",
            error_code=exc.error_code,
            message=str(exc),
        )
    return ConversationStateResult(
        room_id=room_id,
        status="ok",
        state=state,
        active_personas=sorted(orchestrator.active_personas(room_id)),
    )


@mcp.tool
async def get_persona_insights(persona_id: str) -> PersonaInsightsResult:
    """Return memory and learning statistics for a persona.

    Args:
        persona_id: Persona to inspect.
    """
    store = _get_store()
    orchestrator = _get_orchestrator()
    if await store.get_persona(persona_id) is None:
        return PersonaInsightsResult(
            persona_id=persona_id,
            status="rejected",
            error_code="persona_not_found",
            message=f"Persona {persona_id} not found",
        )
    learning = orchestrator.adapter.statistics(persona_id)
    return PersonaInsightsResult(
        persona_id=persona_id,
        status="ok",
        memory=orchestrator.memory.statistics(persona_id),
        learning=learning,
        confidence=(
            orchestrator.adapter.confidence(persona_id) if learning is not None else None
        ),
        recent_outputs=orchestrator.recent_outputs(persona_id),
    )
