# SPDX-FileCopyrightText: 2025 Theori Inc.
# SPDX-License-Identifier: AGPL-3.0-or-later

"""Mailbox messages accepted by a network monitor.

Every payload is a primitive or an opaque token so messages can be posted from
any thread.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Union

from .probe import ProbeResult


class Verdict(str, Enum):
    """How the user left the sign-in flow."""

    DISMISSED = "DISMISSED"
    WANTED_AS_IS = "WANTED_AS_IS"
    UNWANTED = "UNWANTED"


@dataclass(frozen=True)
class NetworkConnected:
    pass


@dataclass(frozen=True)
class NetworkDisconnected:
    pass


@dataclass(frozen=True)
class ForceReevaluate:
    requester_uid: int | None = None


@dataclass(frozen=True)
class UserVerdict:
    token: int
    verdict: Verdict


@dataclass(frozen=True)
class PeriodicRecheck:
    token: int


@dataclass(frozen=True)
class Reevaluate:
    token: int
    # Filled in by the runner from the live network at dispatch time.
    eligible: bool = True


@dataclass(frozen=True)
class ProbeCompleted:
    token: int
    result: ProbeResult


@dataclass(frozen=True)
class LaunchSignIn:
    token: int


Message = Union[
    NetworkConnected,
    NetworkDisconnected,
    ForceReevaluate,
    UserVerdict,
    PeriodicRecheck,
    Reevaluate,
    ProbeCompleted,
    LaunchSignIn,
]

__all__ = [
    "ForceReevaluate",
    "LaunchSignIn",
    "Message",
    "NetworkConnected",
    "NetworkDisconnected",
    "PeriodicRecheck",
    "ProbeCompleted",
    "Reevaluate",
    "UserVerdict",
    "Verdict",
]
