# SPDX-FileCopyrightText: 2025 Theori Inc.
# SPDX-License-Identifier: AGPL-3.0-or-later

"""Timer scheduling for monitors.

Callbacks only ever post a message to a monitor mailbox, so they may run on any
thread.
"""

from __future__ import annotations

import heapq
import itertools
import threading
from collections.abc import Callable
from typing import Protocol


class TimerHandle(Protocol):
    def cancel(self) -> None: ...


class Scheduler(Protocol):
    def call_later(self, delay: float, callback: Callable[[], None]) -> TimerHandle: ...


class ThreadingScheduler:
    """Wall-clock scheduler backed by daemon ``threading.Timer`` objects."""

    def call_later(self, delay: float, callback: Callable[[], None]) -> TimerHandle:
        timer = threading.Timer(max(0.0, delay), callback)
        timer.daemon = True
        timer.start()
        return timer


class _ManualHandle:
    def __init__(self) -> None:
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True


class ManualScheduler:
    """Virtual-clock scheduler; nothing fires until ``advance()`` is called."""

    def __init__(self) -> None:
        self.now = 0.0
        self._seq = itertools.count()
        self._queue: list[tuple[float, int, _ManualHandle, Callable[[], None]]] = []
        self.scheduled: list[float] = []

    def call_later(self, delay: float, callback: Callable[[], None]) -> TimerHandle:
        handle = _ManualHandle()
        due = self.now + max(0.0, delay)
        heapq.heappush(self._queue, (due, next(self._seq), handle, callback))
        self.scheduled.append(delay)
        return handle

    def pending(self) -> list[float]:
        """Due times of timers that are neither fired nor cancelled."""
        return sorted(due for due, _, handle, _ in self._queue if not handle.cancelled)

    def advance(self, seconds: float) -> int:
        """Move the clock forward, firing due callbacks in order; return how many fired."""
        target = self.now + seconds
        fired = 0
        while self._queue and self._queue[0][0] <= target:
            due, _, handle, callback = heapq.heappop(self._queue)
            self.now = due
            if handle.cancelled:
                continue
            callback()
            fired += 1
        self.now = target
        return fired

    def advance_to_next(self) -> float | None:
        """Fire the next live timer (and any due at the same instant); return its delay."""
        upcoming = self.pending()
        if not upcoming:
            return None
        delay = upcoming[0] - self.now
        self.advance(delay)
        return delay


__all__ = ["ManualScheduler", "Scheduler", "ThreadingScheduler", "TimerHandle"]
