"""
Assignment change events — per-program notification channel.

After every committed write to a program's assignments the Assignment Store
publishes one ``AssignmentChangeEvent`` on that program's channel. Consumers
either subscribe a callback for a specific program or poll the bounded
history of recent events by sequence number. There is no global broadcast:
a subscriber only ever hears about the programs it asked for.
"""

from __future__ import annotations

import logging
import threading
from collections import defaultdict, deque
from typing import Callable
from uuid import UUID

from panitia_engine.registry.schema import AssignmentChangeEvent, ChangeKind

logger = logging.getLogger(__name__)

Subscriber = Callable[[AssignmentChangeEvent], None]


class AssignmentEventBus:
    """
    Per-program publish/subscribe channel for assignment changes.

    Usage:
        bus = AssignmentEventBus()
        unsubscribe = bus.subscribe(program_id, lambda event: refresh(event))
        ...
        events = bus.poll(program_id, after=last_seen_sequence)
    """

    def __init__(self, history_size: int = 100) -> None:
        self.history_size = history_size
        self._lock = threading.Lock()
        self._subscribers: dict[UUID, list[Subscriber]] = defaultdict(list)
        self._history: dict[UUID, deque[AssignmentChangeEvent]] = {}
        self._sequences: dict[UUID, int] = defaultdict(int)

    def subscribe(self, program_id: UUID, callback: Subscriber) -> Callable[[], None]:
        """Register ``callback`` for one program. Returns a function that unsubscribes it."""
        with self._lock:
            self._subscribers[program_id].append(callback)

        def unsubscribe() -> None:
            with self._lock:
                callbacks = self._subscribers.get(program_id, [])
                if callback in callbacks:
                    callbacks.remove(callback)
                if not callbacks:
                    self._subscribers.pop(program_id, None)

        return unsubscribe

    def publish(
        self,
        program_id: UUID,
        kind: ChangeKind,
        assignment_ids: list[UUID] | None = None,
    ) -> AssignmentChangeEvent:
        """Record and deliver a change event. Call only after the write has committed."""
        with self._lock:
            self._sequences[program_id] += 1
            event = AssignmentChangeEvent(
                program_id=program_id,
                sequence=self._sequences[program_id],
                kind=kind,
                assignment_ids=list(assignment_ids or []),
            )
            history = self._history.setdefault(program_id, deque(maxlen=self.history_size))
            history.append(event)
            callbacks = list(self._subscribers.get(program_id, []))

        for callback in callbacks:
            try:
                callback(event)
            except Exception as exc:
                # The write is already committed; a failing subscriber must not undo it
                logger.warning(
                    "Change subscriber failed: program=%s seq=%d error=%s",
                    str(program_id)[:8], event.sequence, exc,
                )

        logger.debug(
            "Change event published: program=%s seq=%d kind=%s subscribers=%d",
            str(program_id)[:8], event.sequence, kind.value, len(callbacks),
        )
        return event

    def poll(self, program_id: UUID, after: int = 0) -> list[AssignmentChangeEvent]:
        """Return retained events of a program with sequence greater than ``after``."""
        with self._lock:
            history = list(self._history.get(program_id, ()))
        return [event for event in history if event.sequence > after]

    def subscriber_count(self, program_id: UUID) -> int:
        with self._lock:
            return len(self._subscribers.get(program_id, ()))

    def channel_count(self) -> int:
        """Programs with at least one live subscriber."""
        with self._lock:
            return len(self._subscribers)

    def latest_sequence(self, program_id: UUID) -> int:
        with self._lock:
            return self._sequences.get(program_id, 0)
