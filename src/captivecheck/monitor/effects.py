# SPDX-FileCopyrightText: 2025 Theori Inc.
# SPDX-License-Identifier: AGPL-3.0-or-later

"""Instructions produced by transitions and carried out by the monitor runner."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Union


@dataclass(frozen=True)
class ScheduleReevaluate:
    token: int
    delay_ms: int = 0


@dataclass(frozen=True)
class ScheduleRecheck:
    token: int
    delay_ms: int


@dataclass(frozen=True)
class RunProbe:
    token: int
    use_https: bool
    attribution_uid: int | None
    first_validation: bool


@dataclass(frozen=True)
class EmitEvent:
    """Deliver a caller-facing event (ValidationResult / ShowSignInPrompt)."""

    event: Any


@dataclass(frozen=True)
class RecordEvent:
    """Send a metrics event to the sink; ``timed`` events get the evaluation duration."""

    event: Any
    timed: bool = False


@dataclass(frozen=True)
class StartEvaluationTimer:
    pass


@dataclass(frozen=True)
class ShowPrompt:
    """Show (with a launch handle for ``token``) or hide the sign-in prompt."""

    visible: bool
    token: int | None = None


@dataclass(frozen=True)
class LaunchSignInApp:
    token: int


@dataclass(frozen=True)
class CancelTimers:
    pass


@dataclass(frozen=True)
class Stop:
    pass


Effect = Union[
    ScheduleReevaluate,
    ScheduleRecheck,
    RunProbe,
    EmitEvent,
    RecordEvent,
    StartEvaluationTimer,
    ShowPrompt,
    LaunchSignInApp,
    CancelTimers,
    Stop,
]

__all__ = [
    "CancelTimers",
    "Effect",
    "EmitEvent",
    "LaunchSignInApp",
    "RecordEvent",
    "RunProbe",
    "ScheduleRecheck",
    "ScheduleReevaluate",
    "ShowPrompt",
    "StartEvaluationTimer",
    "Stop",
]
