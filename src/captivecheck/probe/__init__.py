# SPDX-FileCopyrightText: 2025 Theori Inc.
# SPDX-License-Identifier: AGPL-3.0-or-later

"""Probe engine exports."""

from .dns import Resolver, SocketResolver, StaticResolver
from .engine import ProbeEngine
from .fallback import FallbackUrlRotator
from .validation_log import ValidationLog

__all__ = [
    "FallbackUrlRotator",
    "ProbeEngine",
    "Resolver",
    "SocketResolver",
    "StaticResolver",
    "ValidationLog",
]
