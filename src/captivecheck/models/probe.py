# SPDX-FileCopyrightText: 2025 Theori Inc.
# SPDX-License-Identifier: AGPL-3.0-or-later

"""Probe result models."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

SUCCESS_CODE = 204
FAILED_CODE = 599


class ProbeType(str, Enum):
    DNS = "DNS"
    HTTP = "HTTP"
    HTTPS = "HTTPS"
    PAC = "PAC"
    FALLBACK = "FALLBACK"


class ProbeVerdict(str, Enum):
    SUCCESSFUL = "SUCCESSFUL"
    PORTAL = "PORTAL"
    FAILED = "FAILED"


def classify_status(status: int) -> ProbeVerdict:
    """Map a raw HTTP status code to a probe verdict."""
    if status == SUCCESS_CODE:
        return ProbeVerdict.SUCCESSFUL
    if 200 <= status <= 399:
        return ProbeVerdict.PORTAL
    return ProbeVerdict.FAILED


@dataclass(frozen=True)
class ProbeResult:
    """Outcome of one reachability check.

    ``detect_url`` is the URL where a 204 means the portal has been appeased;
    the sign-in flow is pointed at it.
    """

    http_status: int
    redirect_url: str | None = None
    detect_url: str | None = None
    probe_type: ProbeType | None = None

    @classmethod
    def failed(cls, detect_url: str | None = None, probe_type: ProbeType | None = None) -> ProbeResult:
        return cls(FAILED_CODE, None, detect_url, probe_type)

    @classmethod
    def success(cls, detect_url: str | None = None, probe_type: ProbeType | None = None) -> ProbeResult:
        return cls(SUCCESS_CODE, None, detect_url, probe_type)

    @property
    def verdict(self) -> ProbeVerdict:
        return classify_status(self.http_status)

    @property
    def is_successful(self) -> bool:
        return self.verdict is ProbeVerdict.SUCCESSFUL

    @property
    def is_portal(self) -> bool:
        return self.verdict is ProbeVerdict.PORTAL

    @property
    def is_failed(self) -> bool:
        return self.verdict is ProbeVerdict.FAILED

    def to_dict(self) -> dict[str, object]:
        return {
            "http_status": self.http_status,
            "verdict": self.verdict.value,
            "redirect_url": self.redirect_url,
            "detect_url": self.detect_url,
            "probe_type": self.probe_type.value if self.probe_type else None,
        }


__all__ = [
    "FAILED_CODE",
    "ProbeResult",
    "ProbeType",
    "ProbeVerdict",
    "SUCCESS_CODE",
    "classify_status",
]
