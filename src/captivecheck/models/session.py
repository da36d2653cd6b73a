# SPDX-FileCopyrightText: 2025 Theori Inc.
# SPDX-License-Identifier: AGPL-3.0-or-later

"""Per-network validation session state."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from .events import ValidationStage
from .probe import ProbeResult


class MonitorState(str, Enum):
    DISCONNECTED = "DISCONNECTED"
    EVALUATING = "EVALUATING"
    VALIDATED = "VALIDATED"
    CAPTIVE_PORTAL = "CAPTIVE_PORTAL"

    @property
    def may_notify(self) -> bool:
        """States in which a sign-in prompt may be on screen."""
        return self in (MonitorState.EVALUATING, MonitorState.CAPTIVE_PORTAL)


@dataclass(frozen=True)
class SignInSession:
    """One "ask the user" interaction, correlated by a random token."""

    token: int
    pending: bool = False


@dataclass(frozen=True)
class ValidationSession:
    """Snapshot of everything the state machine knows about one network.

    Transitions never mutate a session; they return an updated copy.
    """

    state: MonitorState = MonitorState.DISCONNECTED
    attempt_count: int = 0
    reevaluate_token: int = 0
    reevaluate_delay_ms: int = 1000
    blamed_uid: int | None = None
    use_https: bool = True
    last_probe_result: ProbeResult | None = None
    validation_count: int = 0
    user_declined: bool = False
    suppress_sign_in_prompt: bool = False
    prompt_visible: bool = False
    sign_in: SignInSession | None = None
    recheck_token: int = 0
    halted: bool = False

    @property
    def validation_stage(self) -> ValidationStage:
        if self.validation_count == 0:
            return ValidationStage.FIRST_VALIDATION
        return ValidationStage.REVALIDATION


__all__ = ["MonitorState", "SignInSession", "ValidationSession"]
