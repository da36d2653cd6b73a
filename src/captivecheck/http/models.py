# SPDX-FileCopyrightText: 2025 Theori Inc.
# SPDX-License-Identifier: AGPL-3.0-or-later

"""HTTP request/response data models used by the probe engine."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from ..errors import ErrorCategory
from .headers import header_value

Headers = dict[str, str]

# Probes only ever need to know whether the body is empty.
PROBE_BODY_BYTES = 1


@dataclass
class HttpRequest:
    """Normalized request representation consumed by HttpClient implementations."""

    url: str
    method: str = "GET"
    headers: Headers | None = None
    timeout: float | None = None
    allow_redirects: bool = False
    max_body_bytes: int = PROBE_BODY_BYTES
    # Data usage is charged to this uid; carried explicitly instead of ambient state.
    attribution_uid: int | None = None


@dataclass
class HttpResponse:
    """Normalized HTTP response with the metadata a reachability probe needs."""

    ok: bool
    status_code: int | None = None
    headers: Headers = field(default_factory=dict)
    content: bytes = b""
    url: str | None = None
    error_message: str | None = None
    error_type: str | None = None
    error_category: ErrorCategory = ErrorCategory.NONE
    meta: dict[str, Any] = field(default_factory=dict)

    @property
    def location(self) -> str | None:
        """Value of the ``Location`` header, if any."""
        return header_value(self.headers, "location") or None

    @property
    def content_length(self) -> int:
        """Declared ``Content-Length``; -1 when absent or unparseable."""
        raw = header_value(self.headers, "content-length")
        if not raw:
            return -1
        try:
            value = int(raw)
        except ValueError:
            return -1
        return value if value >= 0 else -1

    @property
    def body_empty(self) -> bool:
        """True when the body read hit end-of-stream before any byte."""
        return not self.content


__all__ = ["Headers", "HttpRequest", "HttpResponse", "PROBE_BODY_BYTES"]
