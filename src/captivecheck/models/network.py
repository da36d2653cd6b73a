# SPDX-FileCopyrightText: 2025 Theori Inc.
# SPDX-License-Identifier: AGPL-3.0-or-later

"""Description of a connected network as reported by the host."""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass
class Network:
    """Host-owned view of a network; the monitor re-reads it on every evaluation.

    ``satisfies_default_request`` is False for networks that are not candidates
    for general internet use (app-specific, VPN, untrusted); those skip probing.
    """

    net_id: int
    name: str = ""
    pac_url: str | None = None
    proxy_host: str | None = None
    satisfies_default_request: bool = True
    transports: tuple[str, ...] = field(default_factory=tuple)

    @property
    def label(self) -> str:
        return self.name or f"net{self.net_id}"


__all__ = ["Network"]
