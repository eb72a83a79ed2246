"""Idle-room auto-conversation scheduler.

Each watched room owns exactly one pending wake-up.  When it fires, the
scheduler asks the orchestrator to re-evaluate the room, then schedules
the next wake-up from the state's suggested delay (clamped to the
configured interval).  User activity resets the room's timer.
"""

from __future__ import annotations

import logging
import random

from parlormcp.config import SchedulerConfig
from parlormcp.observability import increment_counter
from parlormcp.orchestration.contracts import RoomNotFoundError
from parlormcp.orchestration.orchestrator import ResponseOrchestrator
from parlormcp.orchestration.registry import RoomTimers

logger = logging.getLogger(__name__)


class IdleScheduler:
    """Periodically nudge watched rooms through ``trigger_idle``."""

    def __init__(
        self,
        orchestrator: ResponseOrchestrator,
        *,
        config: SchedulerConfig | None = None,
        timers: RoomTimers | None = None,
        rng: random.Random | None = None,
    ) -> None:
        self._orchestrator = orchestrator
        self._config = config or SchedulerConfig()
        self._timers = timers or RoomTimers()
        self._rng = rng or random.Random()
        self._enabled = self._config.enabled
        self._rooms: set[str] = set()

    @property
    def enabled(self) -> bool:
        return self._enabled

    def set_enabled(self, enabled: bool) -> None:
        """Toggle auto-conversation; disabling stops every pending timer."""
        self._enabled = enabled
        if enabled:
            for room_id in sorted(self._rooms):
                self._schedule(room_id, self._initial_delay())
        else:
            self._timers.cancel_all()
        logger.info("Auto-conversation %s", "enabled" if enabled else "disabled")

    def watch(self, room_id: str) -> None:
        if room_id in self._rooms:
            return
        self._rooms.add(room_id)
        if self._enabled:
            self._schedule(room_id, self._initial_delay())

    def unwatch(self, room_id: str) -> None:
        self._rooms.discard(room_id)
        self._timers.cancel(room_id)

    def reset(self, room_id: str) -> None:
        """Restart the room's countdown after user activity."""
        if self._enabled and room_id in self._rooms:
            self._schedule(room_id, self._initial_delay())

    def watched_rooms(self) -> list[str]:
        return sorted(self._rooms)

    def status(self) -> dict[str, object]:
        return {
            "enabled": self._enabled,
            "watched_rooms": self.watched_rooms(),
            "scheduled_rooms": self._timers.scheduled_rooms(),
            "min_interval_seconds": self._config.min_interval_seconds,
            "max_interval_seconds": self._config.max_interval_seconds,
        }

    def close(self) -> None:
        self._timers.cancel_all()
        self._rooms.clear()

    def _initial_delay(self) -> float:
        return self._rng.uniform(
            self._config.min_interval_seconds, self._config.max_interval_seconds
        )

    def _clamp(self, seconds: float) -> float:
        return min(
            self._config.max_interval_seconds,
            max(self._config.min_interval_seconds, seconds),
        )

    def _schedule(self, room_id: str, delay_seconds: float) -> None:
        async def fire() -> None:
            await self.tick(room_id)

        self._timers.schedule(room_id, delay_seconds, fire)

    async def tick(self, room_id: str) -> None:
        """Run one idle evaluation for *room_id* and schedule the next."""
        if not self._enabled or room_id not in self._rooms:
            return
        try:
            decision = await self._orchestrator.trigger_idle(room_id)
        except RoomNotFoundError:
            logger.info("Room %s is gone; no longer watching it", room_id)
            self.unwatch(room_id)
            return
        except Exception:
            increment_counter("scheduler.failures")
            logger.exception("Idle evaluation of room %s failed", room_id)
            if self._enabled and room_id in self._rooms:
                self._schedule(room_id, self._config.retry_delay_seconds)
            return

        increment_counter("scheduler.ticks")
        if decision.state is not None:
            delay = self._clamp(decision.state.suggested_delay_ms / 1000)
        else:
            delay = self._initial_delay()
        logger.debug(
            "Room %s idle tick: %s; next in %.1fs", room_id, decision.reason, delay
        )
        if self._enabled and room_id in self._rooms:
            self._schedule(room_id, delay)
