# SPDX-FileCopyrightText: 2025 Theori Inc.
# SPDX-License-Identifier: AGPL-3.0-or-later

"""Bounded in-memory log of probe diagnostics."""

from __future__ import annotations

import logging
import threading
import time
from collections import deque

logger = logging.getLogger(__name__)

DEFAULT_CAPACITY = 20


class ValidationLog:
    """Keeps the most recent diagnostic lines and mirrors them to ``logging``.

    Probe workers write concurrently, so appends are locked.
    """

    def __init__(self, name: str = "", capacity: int = DEFAULT_CAPACITY):
        self.name = name
        self._lines: deque[str] = deque(maxlen=max(1, capacity))
        self._lock = threading.Lock()

    def log(self, message: str) -> None:
        stamp = time.strftime("%Y-%m-%dT%H:%M:%S")
        with self._lock:
            self._lines.append(f"{stamp} {message}")
        if self.name:
            logger.debug("%s: %s", self.name, message)
        else:
            logger.debug("%s", message)

    def lines(self) -> list[str]:
        with self._lock:
            return list(self._lines)


__all__ = ["DEFAULT_CAPACITY", "ValidationLog"]
