# SPDX-FileCopyrightText: 2025 Theori Inc.
# SPDX-License-Identifier: AGPL-3.0-or-later

"""Validation state machine and the per-network monitor that runs it."""

from ..models.session import MonitorState, SignInSession, ValidationSession
from .backoff import DEFAULT_POLICY, BackoffPolicy
from .machine import Listener, NetworkMonitor
from .scheduler import ManualScheduler, Scheduler, ThreadingScheduler
from .signin import (
    BrowserSignInLauncher,
    LaunchHandle,
    LoggingSignInLauncher,
    SignInIntent,
    SignInLauncher,
    SignInResponder,
)
from .states import Transition, random_token, transition

__all__ = [
    "BackoffPolicy",
    "BrowserSignInLauncher",
    "DEFAULT_POLICY",
    "LaunchHandle",
    "Listener",
    "LoggingSignInLauncher",
    "ManualScheduler",
    "MonitorState",
    "NetworkMonitor",
    "Scheduler",
    "SignInIntent",
    "SignInLauncher",
    "SignInResponder",
    "SignInSession",
    "ThreadingScheduler",
    "Transition",
    "ValidationSession",
    "random_token",
    "transition",
]
