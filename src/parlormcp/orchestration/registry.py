"""Per-room keyed state: in-flight response tickets and wake-up timers."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable
from collections.abc import Callable
from dataclasses import dataclass
from dataclasses import field

logger = logging.getLogger(__name__)


@dataclass(eq=False)
class ResponseTicket:
    """Membership of one persona in a room's active response set."""

    room_id: str
    persona_id: str
    cancelled: asyncio.Event = field(default_factory=asyncio.Event)


class ActiveResponseRegistry:
    """ActiveResponseSet per room.

    A persona holds at most one ticket per room.  Cancelling a room sets
    every ticket's event and empties the set in one step.
    """

    def __init__(self) -> None:
        self._rooms: dict[str, dict[str, ResponseTicket]] = {}

    def register(self, room_id: str, persona_id: str) -> ResponseTicket | None:
        """Claim a slot for *persona_id*, or ``None`` if it is already busy."""
        active = self._rooms.setdefault(room_id, {})
        if persona_id in active:
            return None
        ticket = ResponseTicket(room_id=room_id, persona_id=persona_id)
        active[persona_id] = ticket
        return ticket

    def is_active(self, ticket: ResponseTicket) -> bool:
        if ticket.cancelled.is_set():
            return False
        return self._rooms.get(ticket.room_id, {}).get(ticket.persona_id) is ticket

    def release(self, ticket: ResponseTicket) -> None:
        active = self._rooms.get(ticket.room_id)
        if active is not None and active.get(ticket.persona_id) is ticket:
            del active[ticket.persona_id]
            if not active:
                del self._rooms[ticket.room_id]

    def cancel_room(self, room_id: str) -> list[ResponseTicket]:
        tickets = list(self._rooms.pop(room_id, {}).values())
        for ticket in tickets:
            ticket.cancelled.set()
        return tickets

    def active(self, room_id: str) -> set[str]:
        return set(self._rooms.get(room_id, {}))

    def rooms(self) -> list[str]:
        return sorted(self._rooms)


class RoomTimers:
    """At most one scheduled wake-up per room; a new one supersedes the old."""

    def __init__(self) -> None:
        self._tasks: dict[str, asyncio.Task[None]] = {}

    def schedule(
        self,
        room_id: str,
        delay_seconds: float,
        callback: Callable[[], Awaitable[None]],
    ) -> None:
        self.cancel(room_id)
        task = asyncio.get_running_loop().create_task(
            self._fire(room_id, delay_seconds, callback),
            name=f"room-timer:{room_id}",
        )
        self._tasks[room_id] = task

    async def _fire(
        self,
        room_id: str,
        delay_seconds: float,
        callback: Callable[[], Awaitable[None]],
    ) -> None:
        await asyncio.sleep(delay_seconds)
        # A fired timer is no longer pending; the callback may reschedule.
        if self._tasks.get(room_id) is asyncio.current_task():
            del self._tasks[room_id]
        await callback()

    def cancel(self, room_id: str) -> bool:
        task = self._tasks.pop(room_id, None)
        if task is None:
            return False
        task.cancel()
        return True

    def cancel_all(self) -> None:
        for room_id in list(self._tasks):
            self.cancel(room_id)

    def is_scheduled(self, room_id: str) -> bool:
        return room_id in self._tasks

    def scheduled_rooms(self) -> list[str]:
        return sorted(self._tasks)
