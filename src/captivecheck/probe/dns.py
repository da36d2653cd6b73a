# SPDX-FileCopyrightText: 2025 Theori Inc.
# SPDX-License-Identifier: AGPL-3.0-or-later

"""DNS pre-resolution used to attribute probe failures.

The lookup is diagnostic only: the HTTP client resolves again on its own, and a
DNS failure here never changes the probe verdict.
"""

from __future__ import annotations

import socket
from typing import Protocol


class Resolver(Protocol):
    def resolve(self, host: str) -> list[str]:
        """Return addresses for ``host``; raise ``OSError`` on failure."""
        ...


def one_address_per_family(addresses: list[tuple[int, str]]) -> list[str]:
    """Keep at most one address per family, the first-returned family first."""
    chosen: dict[int, str] = {}
    for family, address in addresses:
        chosen.setdefault(family, address)
    return list(chosen.values())


class SocketResolver:
    """Resolver backed by ``socket.getaddrinfo``."""

    def resolve(self, host: str) -> list[str]:
        infos = socket.getaddrinfo(host, None, proto=socket.IPPROTO_TCP)
        if not infos:
            raise socket.gaierror(f"no addresses for {host}")
        return one_address_per_family([(info[0], str(info[4][0])) for info in infos])


class StaticResolver:
    """Resolver with a fixed host table; unknown hosts fail like NXDOMAIN."""

    def __init__(self, table: dict[str, list[str]] | None = None):
        self.table = dict(table or {})
        self.lookups: list[str] = []

    def resolve(self, host: str) -> list[str]:
        self.lookups.append(host)
        if host not in self.table:
            raise socket.gaierror(f"[Errno -2] Name or service not known: {host}")
        return list(self.table[host])


__all__ = ["Resolver", "SocketResolver", "StaticResolver", "one_address_per_family"]
