"""Response orchestration: who answers, when, and how in-flight replies abort.

Every inbound event (user message, idle tick, explicit auto-chat request)
ends in zero or more response tasks.  A response task is one persona's
independent, cancellable unit of work; it checks its ticket in the room's
``ActiveResponseRegistry`` before and after every suspension point and
exits silently once the ticket is gone.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import random
from collections import Counter
from collections.abc import Awaitable
from collections.abc import Callable
from collections.abc import Sequence
from dataclasses import dataclass
from dataclasses import field
from datetime import datetime
from datetime import timezone
from time import perf_counter
from typing import Any
from typing import TypeVar

from parlormcp.analysis import ConversationState
from parlormcp.analysis import ConversationStateAnalyzer
from parlormcp.analysis import ConversationStateCache
from parlormcp.analysis import Engagement
from parlormcp.analysis import InterventionReason
from parlormcp.analysis import Phase
from parlormcp.config import OrchestratorConfig
from parlormcp.engine import ResponseGenerator
from parlormcp.engine import ResponseStrategySelector
from parlormcp.engine import analyze_response_context
from parlormcp.learning import AdaptationContext
from parlormcp.learning import InteractionSignals
from parlormcp.learning import PersonalityAdapter
from parlormcp.memory import MemoryContext
from parlormcp.memory import MemoryStore
from parlormcp.models import Message
from parlormcp.models import Persona
from parlormcp.models import Room
from parlormcp.models import SenderKind
from parlormcp.observability import increment_counter
from parlormcp.observability import record_latency
from parlormcp.orchestration.contracts import EVENT_MESSAGE
from parlormcp.orchestration.contracts import EVENT_TYPING
from parlormcp.orchestration.contracts import EVENT_TYPING_CLEARED
from parlormcp.orchestration.contracts import Broadcaster
from parlormcp.orchestration.contracts import InvalidMessageError
from parlormcp.orchestration.contracts import PersonaNotFoundError
from parlormcp.orchestration.contracts import ResponseCancelled
from parlormcp.orchestration.contracts import RoomNotFoundError
from parlormcp.orchestration.contracts import Store
from parlormcp.orchestration.mentions import resolve_mentions
from parlormcp.orchestration.registry import ActiveResponseRegistry
from parlormcp.orchestration.registry import ResponseTicket

logger = logging.getLogger(__name__)

T = TypeVar("T")

_INTERVENTION_TRAITS: dict[InterventionReason, str] = {
    InterventionReason.cooling_conversation: "extraversion",
    InterventionReason.unbalanced_participation: "agreeableness",
    InterventionReason.surface_conversation: "openness",
}


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class _RoomGone(Exception):
    """Room or persona disappeared while a response task was running."""


@dataclass(frozen=True)
class HandleResult:
    """Outcome of a handled inbound message."""

    message: Message
    responders: list[str] = field(default_factory=list)
    interrupted: int = 0


@dataclass(frozen=True)
class IdleDecision:
    """Outcome of an idle trigger."""

    triggered: bool
    reason: str
    state: ConversationState | None = None
    persona_id: str | None = None


class ResponseOrchestrator:
    """Decide which personas answer and run their response tasks."""

    def __init__(
        self,
        store: Store,
        broadcaster: Broadcaster,
        generator: ResponseGenerator,
        *,
        analyzer: ConversationStateAnalyzer | None = None,
        selector: ResponseStrategySelector | None = None,
        memory: MemoryStore | None = None,
        adapter: PersonalityAdapter | None = None,
        config: OrchestratorConfig | None = None,
        state_cache: ConversationStateCache | None = None,
        rng: random.Random | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._store = store
        self._broadcaster = broadcaster
        self._generator = generator
        self._analyzer = analyzer or ConversationStateAnalyzer()
        self._selector = selector or ResponseStrategySelector()
        self._memory = memory or MemoryStore()
        self._adapter = adapter or PersonalityAdapter(memory=self._memory)
        self._config = config or OrchestratorConfig()
        self._state_cache = state_cache or ConversationStateCache()
        self._rng = rng or random.Random()
        self._clock = clock or _utcnow
        self._registry = ActiveResponseRegistry()
        self._locks: dict[str, asyncio.Lock] = {}
        self._tasks: dict[str, set[asyncio.Task[None]]] = {}

    @property
    def registry(self) -> ActiveResponseRegistry:
        return self._registry

    @property
    def memory(self) -> MemoryStore:
        return self._memory

    @property
    def adapter(self) -> PersonalityAdapter:
        return self._adapter

    def _lock(self, room_id: str) -> asyncio.Lock:
        lock = self._locks.get(room_id)
        if lock is None:
            lock = self._locks[room_id] = asyncio.Lock()
        return lock

    # ------------------------------------------------------------------
    # Inbound events
    # ------------------------------------------------------------------

    async def handle_message(
        self,
        room_id: str,
        sender_name: str,
        content: str,
        *,
        sender_kind: SenderKind = SenderKind.user,
        sender_ref: str | None = None,
        reply_to: str | None = None,
    ) -> HandleResult:
        """Persist an inbound message and launch the eligible personas' replies.

        A user message first interrupts every in-flight reply in the room.
        Raises ``InvalidMessageError``, ``RoomNotFoundError`` or
        ``InvalidMentionError`` before anything is persisted.
        """
        content = content.strip()
        if not content:
            raise InvalidMessageError("Message content must not be empty")
        if not sender_name.strip():
            raise InvalidMessageError("Sender name must not be empty")

        async with self._lock(room_id):
            room, roster = await self._room_and_roster(room_id)
            targets = resolve_mentions(content, roster)

            interrupted = 0
            if sender_kind is SenderKind.user:
                interrupted = await self._interrupt(room_id)

            message = await self._store.create_message(
                room_id=room_id,
                sender_kind=sender_kind,
                sender_name=sender_name,
                content=content,
                sender_ref=sender_ref,
                reply_to=reply_to,
            )
            self._state_cache.invalidate(room_id)
            await self._emit(room_id, EVENT_MESSAGE, message.model_dump(mode="json"))

            eligible = [
                persona
                for persona in roster
                if persona.id != sender_ref
                and persona.name != sender_name
                and (targets is None or persona.id in targets)
            ]
            memory_context = MemoryContext(
                room_id=room_id,
                topic=room.topic,
                participants=[p.name for p in roster],
            )
            responders: list[str] = []
            for persona in eligible:
                self._ensure_profile(persona)
                self._memory.record(persona.id, message, memory_context)
                if self._launch(room, persona):
                    responders.append(persona.id)

        increment_counter("orchestrator.messages")
        logger.info(
            "Message %s in room %s launched %d response(s)",
            message.id,
            room_id,
            len(responders),
        )
        return HandleResult(
            message=message, responders=responders, interrupted=interrupted
        )

    async def trigger_idle(self, room_id: str) -> IdleDecision:
        """Re-evaluate an idle room and nudge it with one persona if warranted."""
        async with self._lock(room_id):
            room, roster = await self._room_and_roster(room_id)
            if not roster:
                return IdleDecision(triggered=False, reason="no_personas")

            messages = await self._store.recent_messages(
                room_id, self._config.recent_limit
            )
            now = self._clock()
            state = self._analyzer.analyze(messages, roster, now=now)
            self._state_cache.put(room_id, state, now=now)

            idle_minutes = state.idle_minutes
            if (
                state.phase is Phase.flowing
                and idle_minutes < self._config.idle_flowing_skip_minutes
            ):
                return IdleDecision(triggered=False, reason="flowing", state=state)
            if (
                state.engagement is Engagement.high
                and idle_minutes < self._config.idle_high_engagement_skip_minutes
            ):
                return IdleDecision(
                    triggered=False, reason="high_engagement", state=state
                )

            busy = self._registry.active(room_id)
            candidates = [p for p in roster if p.id not in busy]
            if not candidates:
                return IdleDecision(triggered=False, reason="all_busy", state=state)

            persona = self.select_idle_persona(candidates, messages, state)
            self._ensure_profile(persona)
            launched = self._launch(room, persona)

        increment_counter("orchestrator.idle_triggers")
        logger.info(
            "Idle trigger in room %s selected %s (phase=%s intervention=%s)",
            room_id,
            persona.id,
            state.phase.value,
            state.intervention_need.reason.value
            if state.intervention_need.reason
            else None,
        )
        return IdleDecision(
            triggered=launched,
            reason="triggered" if launched else "all_busy",
            state=state,
            persona_id=persona.id if launched else None,
        )

    def select_idle_persona(
        self,
        candidates: Sequence[Persona],
        messages: Sequence[Message],
        state: ConversationState,
    ) -> Persona:
        """Least-active candidate, preferring a trait match when intervening."""
        counts = Counter(m.sender_name for m in messages)
        pool: Sequence[Persona] = candidates
        need = state.intervention_need
        if need.needed and need.reason is not None:
            trait = _INTERVENTION_TRAITS[need.reason]
            matched = [
                p
                for p in candidates
                if getattr(p.traits, trait) >= self._config.trait_match_threshold
            ]
            if matched:
                pool = matched
        return min(pool, key=lambda p: counts.get(p.name, 0))

    async def request_auto_chat(self, room_id: str, persona_id: str) -> bool:
        """Run one response task for *persona_id*; ``False`` if it is busy."""
        async with self._lock(room_id):
            room, roster = await self._room_and_roster(room_id)
            persona = next((p for p in roster if p.id == persona_id), None)
            if persona is None:
                raise PersonaNotFoundError(
                    f"Persona {persona_id} is not in room {room_id}"
                )
            self._ensure_profile(persona)
            launched = self._launch(room, persona)
        increment_counter("orchestrator.auto_chat_requests")
        return launched

    async def interrupt(self, room_id: str) -> int:
        """Cancel every in-flight response in *room_id*; return how many.

        Raises ``RoomNotFoundError`` for an unknown room.
        """
        async with self._lock(room_id):
            await self._room_and_roster(room_id)
            return await self._interrupt(room_id)

    async def _interrupt(self, room_id: str) -> int:
        tickets = self._registry.cancel_room(room_id)
        if tickets:
            increment_counter("orchestrator.interrupted", len(tickets))
            logger.info(
                "Interrupted %d response(s) in room %s", len(tickets), room_id
            )
            await self._emit(room_id, EVENT_TYPING_CLEARED, {"room_id": room_id})
        return len(tickets)

    async def conversation_state(self, room_id: str) -> ConversationState:
        """Current ConversationState, served from cache while fresh."""
        now = self._clock()
        cached = self._state_cache.get(room_id, now=now)
        if cached is not None:
            return cached
        _, roster = await self._room_and_roster(room_id)
        messages = await self._store.recent_messages(
            room_id, self._config.recent_limit
        )
        state = self._analyzer.analyze(messages, roster, now=now)
        self._state_cache.put(room_id, state, now=now)
        return state

    def active_personas(self, room_id: str) -> set[str]:
        return self._registry.active(room_id)

    def recent_outputs(self, persona_id: str) -> list[str]:
        return self._generator.recent_outputs(persona_id)

    # ------------------------------------------------------------------
    # Task management
    # ------------------------------------------------------------------

    def _ensure_profile(self, persona: Persona) -> None:
        if self._adapter.profile(persona.id) is None:
            self._adapter.initialize(persona)

    def _launch(self, room: Room, persona: Persona) -> bool:
        ticket = self._registry.register(room.id, persona.id)
        if ticket is None:
            logger.debug("Persona %s already responding in %s", persona.id, room.id)
            return False
        task = asyncio.get_running_loop().create_task(
            self._respond(ticket, room, persona),
            name=f"response:{room.id}:{persona.id}",
        )
        tasks = self._tasks.setdefault(room.id, set())
        tasks.add(task)
        task.add_done_callback(tasks.discard)
        return True

    async def wait_idle(self, room_id: str | None = None) -> None:
        """Wait until the room's (or every room's) response tasks finish."""
        while True:
            if room_id is None:
                pending = {t for tasks in self._tasks.values() for t in tasks}
            else:
                pending = set(self._tasks.get(room_id, ()))
            if not pending:
                return
            await asyncio.gather(*pending, return_exceptions=True)

    async def close(self) -> None:
        """Cancel every response task and drop in-flight tickets."""
        for room_id in self._registry.rooms():
            self._registry.cancel_room(room_id)
        tasks = [t for room_tasks in self._tasks.values() for t in room_tasks]
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        self._tasks.clear()

    async def forget_room(self, room_id: str) -> None:
        """Tear down all keyed state of a deleted room."""
        async with self._lock(room_id):
            self._registry.cancel_room(room_id)
        tasks = list(self._tasks.pop(room_id, ()))
        await asyncio.gather(*tasks, return_exceptions=True)
        self._state_cache.invalidate(room_id)
        self._locks.pop(room_id, None)

    def forget_persona(self, persona_id: str) -> None:
        """Drop memory, learning profile and output history of a deleted persona."""
        self._memory.forget(persona_id)
        self._adapter.forget(persona_id)
        self._generator.forget(persona_id)

    # ------------------------------------------------------------------
    # Response task
    # ------------------------------------------------------------------

    async def _respond(
        self, ticket: ResponseTicket, room: Room, persona: Persona
    ) -> None:
        start = perf_counter()
        silent = False
        ok = False
        try:
            await self._pause(ticket, self._config.pacing_delay_seconds)
            await self._emit_typing(room.id, persona, True)
            await self._pause(ticket, self._config.thinking_delay_seconds)

            room, roster = await self._fresh_room(room.id, persona.id)
            messages = await self._store.recent_messages(
                room.id, self._config.recent_limit
            )
            self._check(ticket)

            now = self._clock()
            state = self._analyzer.analyze(messages, roster, now=now)
            self._state_cache.put(room.id, state, now=now)
            context = analyze_response_context(
                messages, persona, self._analyzer.scorer, now=now
            )
            strategy = self._selector.select(context, state)
            participants = tuple(p.name for p in roster if p.id != persona.id)
            adapted = self._adapter.adapted_personality_for(
                persona.id,
                AdaptationContext(
                    topic=room.topic, participants=participants, phase=state.phase
                ),
            )
            memory_context = self._memory.generate_memory_context(
                persona.id,
                room.topic,
                list(participants),
                language=persona.language,
            )

            reply = await self._race(
                ticket,
                self._generator.generate(
                    strategy,
                    persona,
                    context,
                    state,
                    topic=room.topic,
                    traits=adapted.traits if adapted is not None else None,
                    memory_context=memory_context,
                ),
            )
            self._check(ticket)

            message = await self._store.create_message(
                room_id=room.id,
                sender_kind=SenderKind.persona,
                sender_name=persona.name,
                content=reply.text,
                sender_ref=persona.id,
                reply_to=context.last_message.id if context.last_message else None,
            )
            # Persisted but interrupted during the write: never broadcast it.
            self._check(ticket)
            self._state_cache.invalidate(room.id)
            await self._emit(room.id, EVENT_MESSAGE, message.model_dump(mode="json"))

            self._learn(room, persona, message, participants, state)
            ok = True
            increment_counter("orchestrator.replies")
            logger.info(
                "Persona %s replied in room %s via %s/%s",
                persona.id,
                room.id,
                strategy.type.value,
                reply.stage.value,
            )
        except ResponseCancelled:
            silent = True
            increment_counter("orchestrator.cancelled")
            logger.debug("Response of %s in %s cancelled", persona.id, room.id)
        except _RoomGone as exc:
            silent = True
            logger.warning("Aborting response of %s: %s", persona.id, exc)
        except asyncio.CancelledError:
            silent = True
            raise
        except Exception:
            logger.exception(
                "Response task of %s in room %s failed", persona.id, room.id
            )
        finally:
            self._registry.release(ticket)
            record_latency(
                operation="orchestrator.response",
                duration_ms=(perf_counter() - start) * 1000,
                ok=ok,
            )
            if not silent:
                await self._emit_typing(room.id, persona, False)

    def _check(self, ticket: ResponseTicket) -> None:
        if not self._registry.is_active(ticket):
            raise ResponseCancelled

    async def _pause(self, ticket: ResponseTicket, bounds: tuple[float, float]) -> None:
        self._check(ticket)
        low, high = bounds
        delay = self._rng.uniform(low, high) if high > 0 else 0.0
        if delay > 0:
            try:
                await asyncio.wait_for(ticket.cancelled.wait(), timeout=delay)
            except asyncio.TimeoutError:
                pass
        else:
            await asyncio.sleep(0)
        self._check(ticket)

    async def _race(self, ticket: ResponseTicket, work: Awaitable[T]) -> T:
        """Await *work* unless the ticket is cancelled first."""
        job = asyncio.ensure_future(work)
        waiter = asyncio.ensure_future(ticket.cancelled.wait())
        try:
            done, _ = await asyncio.wait(
                {job, waiter}, return_when=asyncio.FIRST_COMPLETED
            )
        finally:
            waiter.cancel()
            if not job.done():
                job.cancel()
                with contextlib.suppress(asyncio.CancelledError):
                    await job
        if job not in done or job.cancelled():
            raise ResponseCancelled
        return job.result()

    async def _room_and_roster(self, room_id: str) -> tuple[Room, list[Persona]]:
        room = await self._store.get_room(room_id)
        if room is None:
            raise RoomNotFoundError(f"Room {room_id} not found")
        roster = await self._store.get_room_personas(room_id)
        return room, roster

    async def _fresh_room(
        self, room_id: str, persona_id: str
    ) -> tuple[Room, list[Persona]]:
        room = await self._store.get_room(room_id)
        if room is None:
            raise _RoomGone(f"room {room_id} no longer exists")
        roster = await self._store.get_room_personas(room_id)
        if not any(p.id == persona_id for p in roster):
            raise _RoomGone(f"persona {persona_id} left room {room_id}")
        return room, roster

    def _learn(
        self,
        room: Room,
        persona: Persona,
        message: Message,
        participants: tuple[str, ...],
        state: ConversationState,
    ) -> None:
        self._memory.record(
            persona.id,
            message,
            MemoryContext(
                room_id=room.id, topic=room.topic, participants=list(participants)
            ),
        )
        self._adapter.adapt(
            persona.id,
            InteractionSignals(
                content=message.content,
                topic=room.topic,
                participants=participants,
                engagement=state.momentum,
            ),
        )

    # ------------------------------------------------------------------
    # Broadcasting
    # ------------------------------------------------------------------

    async def _emit_typing(self, room_id: str, persona: Persona, typing: bool) -> None:
        await self._emit(
            room_id,
            EVENT_TYPING,
            {
                "persona_id": persona.id,
                "persona_name": persona.name,
                "is_typing": typing,
            },
        )

    async def _emit(self, room_id: str, event: str, payload: dict[str, Any]) -> None:
        try:
            await self._broadcaster.emit(room_id, event, payload)
        except Exception:
            increment_counter("orchestrator.broadcast_failures")
            logger.warning(
                "Broadcast of %s to room %s failed", event, room_id, exc_info=True
            )
