"""Monitors that receive AT notifications matching a filter."""

from __future__ import annotations

import logging
import threading
from collections import deque
from dataclasses import dataclass, field
from typing import Callable, Deque, List, Optional

log = logging.getLogger(__name__)

__all__ = [
    "MON_ANY",
    "MON_PAUSED",
    "MON_ACTIVE",
    "MonitorHandler",
    "MonitorEntry",
    "MonitorRegistry",
]

MON_ANY: Optional[str] = None
"""Wildcard filter: match any notification."""
MON_PAUSED = True
"""Initial state of a paused monitor."""
MON_ACTIVE = False
"""Initial state of an active monitor, the default."""

DEFAULT_QUEUE_CAPACITY = 1024

MonitorHandler = Callable[[str], None]


@dataclass(eq=False)
class MonitorEntry:
    """A notification filter and the handler it feeds."""

    filter: Optional[str]
    handler: MonitorHandler
    paused: bool = MON_ACTIVE

    def pause(self) -> None:
        """Stop receiving notifications."""
        self.paused = MON_PAUSED

    def resume(self) -> None:
        """Receive notifications again."""
        self.paused = MON_ACTIVE

    def matches(self, notif: str) -> bool:
        """Whether ``notif`` passes this monitor's filter."""
        return self.filter is MON_ANY or self.filter in notif

    def _find(self, notif: str) -> int:
        if self.filter is MON_ANY:
            return 0
        return notif.find(self.filter)


@dataclass
class _Pending:
    text: str
    cost: int


@dataclass
class MonitorRegistry:
    """Holds monitors and queues matching notifications for them.

    :meth:`dispatch` copies a matching notification into a bounded queue;
    :meth:`run_pending` hands queued notifications to every active
    monitor whose filter matches.
    """

    capacity: int = DEFAULT_QUEUE_CAPACITY
    entries: List[MonitorEntry] = field(default_factory=list)
    _queue: Deque[_Pending] = field(default_factory=deque, init=False, repr=False)
    _used: int = field(default=0, init=False, repr=False)
    _lock: threading.Lock = field(default_factory=threading.Lock, init=False, repr=False)

    def register(
        self,
        filter: Optional[str],
        handler: MonitorHandler,
        paused: bool = MON_ACTIVE,
    ) -> MonitorEntry:
        """Add a monitor and return its entry."""
        entry = MonitorEntry(filter, handler, paused)
        self.entries.append(entry)
        return entry

    def monitor(
        self, filter: Optional[str], paused: bool = MON_ACTIVE
    ) -> Callable[[MonitorHandler], MonitorEntry]:
        """Decorator form of :meth:`register`; the name is bound to the entry."""

        def decorate(handler: MonitorHandler) -> MonitorEntry:
            return self.register(filter, handler, paused)

        return decorate

    @property
    def pending(self) -> int:
        """Number of queued notifications."""
        with self._lock:
            return len(self._queue)

    def dispatch(self, notif: str) -> bool:
        """Queue ``notif`` from the first point an active monitor matches.

        Returns False when nothing matched or the queue had no room.
        """
        start = -1
        for entry in self.entries:
            if entry.paused:
                continue
            start = entry._find(notif)
            if start >= 0:
                break
        if start < 0:
            return False

        text = notif[start:]
        cost = len(text.encode("utf-8")) + 1
        with self._lock:
            if self._used + cost > self.capacity:
                log.warning("No queue space for incoming notification: %s", notif)
                return False
            self._used += cost
            self._queue.append(_Pending(text, cost))
        return True

    def run_pending(self) -> int:
        """Deliver queued notifications; return how many were processed."""
        processed = 0
        while True:
            with self._lock:
                if not self._queue:
                    break
                item = self._queue.popleft()
            try:
                for entry in list(self.entries):
                    if not entry.paused and entry.matches(item.text):
                        entry.handler(item.text)
            finally:
                with self._lock:
                    self._used -= item.cost
            processed += 1
        return processed