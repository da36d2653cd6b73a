# SPDX-FileCopyrightText: 2025 Theori Inc.
# SPDX-License-Identifier: AGPL-3.0-or-later

"""Programmable HttpClient implementations for tests and offline runs."""

from __future__ import annotations

import threading
import time
from collections.abc import Callable

from ..errors import ErrorCategory
from .client import HttpClient
from .models import HttpRequest, HttpResponse

ResponseFactory = Callable[[HttpRequest], HttpResponse]


class StubHttpClient(HttpClient):
    """Deterministic, programmable HttpClient for tests.

    Responses are keyed by URL. A value may be an ``HttpResponse`` or a callable
    building one from the request; ``delays`` holds per-URL sleeps used to model
    slow probes in race tests. Safe to call from several worker threads.
    """

    def __init__(
        self,
        responses: dict[str, HttpResponse | ResponseFactory] | None = None,
        delays: dict[str, float] | None = None,
    ):
        self._responses = dict(responses or {})
        self._delays = dict(delays or {})
        self._lock = threading.Lock()
        self.requests: list[HttpRequest] = []

    def add(self, url: str, response: HttpResponse | ResponseFactory, *, delay: float = 0.0) -> None:
        self._responses[url] = response
        if delay:
            self._delays[url] = delay

    def requested_urls(self) -> list[str]:
        with self._lock:
            return [r.url for r in self.requests]

    def request(self, request: HttpRequest) -> HttpResponse:
        with self._lock:
            self.requests.append(request)
        delay = self._delays.get(request.url, 0.0)
        if delay:
            time.sleep(delay)
        response = self._responses.get(request.url)
        if response is None:
            return HttpResponse(
                ok=False,
                error_message="No stubbed response configured",
                error_type="ConnectError",
                error_category=ErrorCategory.CONNECTION_ERROR,
            )
        if callable(response):
            return response(request)
        return response

    def close(self) -> None:
        return None


__all__ = ["StubHttpClient"]
