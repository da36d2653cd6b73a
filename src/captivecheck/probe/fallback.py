# SPDX-FileCopyrightText: 2025 Theori Inc.
# SPDX-License-Identifier: AGPL-3.0-or-later

"""Fallback probe URL rotation."""

from __future__ import annotations

import random
from collections.abc import Sequence


class FallbackUrlRotator:
    """Hands out fallback URLs from a counter advanced by one plus random jitter.

    Repeated portal checks therefore spread across the fallback hosts instead
    of always hitting the first one.
    """

    def __init__(self, urls: Sequence[str], rng: random.Random | None = None):
        self._urls = tuple(urls)
        self._rng = rng or random.Random()
        self._counter = 0

    def __len__(self) -> int:
        return len(self._urls)

    @property
    def index(self) -> int:
        if not self._urls:
            return 0
        return self._counter % len(self._urls)

    def next_url(self) -> str | None:
        if not self._urls:
            return None
        url = self._urls[self.index]
        self._counter += 1 + self._rng.randrange(len(self._urls))
        return url


__all__ = ["FallbackUrlRotator"]
