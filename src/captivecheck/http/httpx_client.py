# SPDX-FileCopyrightText: 2025 Theori Inc.
# SPDX-License-Identifier: AGPL-3.0-or-later

"""httpx-backed HttpClient implementation."""

from __future__ import annotations

import logging

import httpx

from ..config import ValidationSettings, load_validation_settings
from ..errors import categorize_exception
from .client import HttpClient
from .headers import normalize_headers
from .models import HttpRequest, HttpResponse

logger = logging.getLogger(__name__)


class HttpxClient(HttpClient):
    """Synchronous httpx client wrapper that reads at most ``max_body_bytes`` of a body."""

    def __init__(self, settings: ValidationSettings | None = None, client: httpx.Client | None = None):
        self.settings = settings or load_validation_settings()
        self._client = client or httpx.Client(
            follow_redirects=False,
            timeout=self.settings.socket_timeout,
            verify=self.settings.verify_ssl,
        )

    def request(self, request: HttpRequest) -> HttpResponse:
        headers = dict(request.headers or {})
        if self.settings.user_agent:
            headers.setdefault("User-Agent", self.settings.user_agent)

        try:
            timeout = request.timeout if request.timeout is not None else self.settings.socket_timeout
            limit = max(0, request.max_body_bytes)

            with self._client.stream(
                request.method,
                request.url,
                headers=headers,
                timeout=timeout,
                follow_redirects=request.allow_redirects,
            ) as resp:
                content = bytearray()
                truncated = False
                if limit:
                    for chunk in resp.iter_bytes():
                        if not chunk:
                            continue
                        remaining = limit - len(content)
                        if len(chunk) >= remaining:
                            content.extend(chunk[:remaining])
                            truncated = True
                            break
                        content.extend(chunk)

            return HttpResponse(
                ok=True,
                status_code=resp.status_code,
                headers=normalize_headers(resp.headers),
                content=bytes(content),
                url=str(resp.url),
                meta={
                    "body_truncated": truncated,
                    "body_bytes_read": len(content),
                    "attribution_uid": request.attribution_uid,
                },
            )
        except Exception as exc:  # noqa: BLE001
            logger.debug("Request to %s failed: %r", request.url, exc)
            return HttpResponse(
                ok=False,
                error_message=str(exc),
                error_type=type(exc).__name__,
                error_category=categorize_exception(exc),
            )

    def close(self) -> None:
        self._client.close()


__all__ = ["HttpxClient"]
