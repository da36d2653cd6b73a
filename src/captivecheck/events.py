# SPDX-FileCopyrightText: 2025 Theori Inc.
# SPDX-License-Identifier: AGPL-3.0-or-later

"""Event sinks for validation telemetry.

Recording is fire-and-forget: a sink that raises is logged and ignored so
telemetry can never stall or break validation.
"""

from __future__ import annotations

import logging
import threading
from typing import Any, Protocol

logger = logging.getLogger(__name__)


class EventSink(Protocol):
    def record(self, event: Any) -> None: ...


class LoggingEventSink:
    """Default sink: writes events to the debug log."""

    def record(self, event: Any) -> None:
        logger.debug("event %r", event)


class MemoryEventSink:
    """Keeps recorded events in memory; thread-safe."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._events: list[Any] = []

    def record(self, event: Any) -> None:
        with self._lock:
            self._events.append(event)

    @property
    def events(self) -> list[Any]:
        with self._lock:
            return list(self._events)

    def of_type(self, event_type: type) -> list[Any]:
        return [e for e in self.events if isinstance(e, event_type)]

    def clear(self) -> None:
        with self._lock:
            self._events.clear()


def safe_record(sink: EventSink | None, event: Any) -> None:
    """Record ``event`` on ``sink`` without letting sink errors escape."""
    if sink is None:
        return
    try:
        sink.record(event)
    except Exception:  # noqa: BLE001
        logger.exception("Event sink %r failed to record %r", sink, event)


__all__ = ["EventSink", "LoggingEventSink", "MemoryEventSink", "safe_record"]
