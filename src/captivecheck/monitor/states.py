# SPDX-FileCopyrightText: 2025 Theori Inc.
# SPDX-License-Identifier: AGPL-3.0-or-later

"""Validation state machine as a pure transition function.

``transition(session, message)`` returns the next session snapshot plus the
effects (timers, events, probes, UI calls) the runner must carry out. Nothing
here touches the clock, the network or other threads.

States:

- DISCONNECTED: initial; ``NetworkConnected`` starts evaluation.
- EVALUATING: probing with exponential backoff between failed attempts.
- VALIDATED: network reaches the internet (or the user accepted it as is, or it
  is not eligible for validation).
- CAPTIVE_PORTAL: a portal was detected; the user is asked to sign in and the
  network is rechecked on a fixed interval.

``NetworkDisconnected`` halts the session from any state.
"""

from __future__ import annotations

import secrets
from collections.abc import Callable
from dataclasses import dataclass, replace

from ..models.events import NetworkEvent, NetworkEventKind, Outcome, ValidationResult
from ..models.messages import (
    ForceReevaluate,
    LaunchSignIn,
    Message,
    NetworkConnected,
    NetworkDisconnected,
    PeriodicRecheck,
    ProbeCompleted,
    Reevaluate,
    UserVerdict,
    Verdict,
)
from ..models.session import MonitorState, SignInSession, ValidationSession
from .backoff import DEFAULT_POLICY, BackoffPolicy
from .effects import (
    CancelTimers,
    Effect,
    EmitEvent,
    LaunchSignInApp,
    RecordEvent,
    RunProbe,
    ScheduleRecheck,
    ScheduleReevaluate,
    ShowPrompt,
    StartEvaluationTimer,
    Stop,
)

TokenFactory = Callable[[], int]


def random_token() -> int:
    return secrets.randbits(31)


@dataclass(frozen=True)
class Transition:
    session: ValidationSession
    effects: tuple[Effect, ...] = ()


class _Step:
    """Accumulates the session and effects of one transition."""

    def __init__(self, session: ValidationSession, network_id: int, policy: BackoffPolicy, token_factory: TokenFactory):
        self.session = session
        self.network_id = network_id
        self.policy = policy
        self.token_factory = token_factory
        self.effects: list[Effect] = []

    def update(self, **changes: object) -> None:
        self.session = replace(self.session, **changes)

    def emit(self, event: object) -> None:
        self.effects.append(EmitEvent(event))

    def record(self, kind: NetworkEventKind, *, timed: bool = False) -> None:
        self.effects.append(RecordEvent(NetworkEvent(self.network_id, kind), timed=timed))

    def hide_prompt(self) -> None:
        if self.session.prompt_visible:
            self.effects.append(ShowPrompt(False))
            self.update(prompt_visible=False)

    def leave(self, target: MonitorState) -> None:
        current = self.session.state
        if current.may_notify and not target.may_notify:
            self.hide_prompt()
        if current is MonitorState.EVALUATING:
            # Attribution only lasts for the evaluation it was requested for.
            self.update(blamed_uid=None)

    def enter_evaluating(self) -> None:
        token = self.session.reevaluate_token + 1
        self.update(
            state=MonitorState.EVALUATING,
            reevaluate_token=token,
            attempt_count=0,
            reevaluate_delay_ms=self.policy.initial_delay_ms,
        )
        self.effects.append(StartEvaluationTimer())
        self.effects.append(ScheduleReevaluate(token, 0))

    def enter_validated(self) -> None:
        stage = self.session.validation_stage
        self.update(state=MonitorState.VALIDATED, validation_count=self.session.validation_count + 1)
        self.record(NetworkEventKind.evaluation_result(stage, True), timed=True)
        self.emit(ValidationResult(self.network_id, Outcome.VALID))

    def enter_captive_portal(self) -> None:
        stage = self.session.validation_stage
        recheck = self.session.recheck_token + 1
        self.update(
            state=MonitorState.CAPTIVE_PORTAL,
            validation_count=self.session.validation_count + 1,
            recheck_token=recheck,
        )
        self.record(NetworkEventKind.evaluation_result(stage, False), timed=True)
        self.effects.append(ScheduleRecheck(recheck, self.policy.recheck_delay()))
        if self.session.suppress_sign_in_prompt:
            return
        sign_in = self.session.sign_in or SignInSession(token=self.token_factory())
        self.update(sign_in=replace(sign_in, pending=True), prompt_visible=True)
        self.effects.append(ShowPrompt(True, sign_in.token))

    def go(self, target: MonitorState) -> None:
        self.leave(target)
        if target is MonitorState.EVALUATING:
            self.enter_evaluating()
        elif target is MonitorState.VALIDATED:
            self.enter_validated()
        elif target is MonitorState.CAPTIVE_PORTAL:
            self.enter_captive_portal()
        else:
            self.update(state=target)

    def done(self) -> Transition:
        return Transition(self.session, tuple(self.effects))


def transition(
    session: ValidationSession,
    message: Message,
    *,
    network_id: int = 0,
    policy: BackoffPolicy = DEFAULT_POLICY,
    token_factory: TokenFactory = random_token,
) -> Transition:
    """Apply ``message`` to ``session``."""
    if session.halted:
        return Transition(session)

    step = _Step(session, network_id, policy, token_factory)
    state = session.state

    if isinstance(message, NetworkDisconnected):
        step.record(NetworkEventKind.NETWORK_DISCONNECTED)
        step.hide_prompt()
        step.effects.append(CancelTimers())
        step.update(state=MonitorState.DISCONNECTED, halted=True, sign_in=None, blamed_uid=None)
        step.effects.append(Stop())
        return step.done()

    if isinstance(message, NetworkConnected):
        if state is MonitorState.VALIDATED:
            # Duplicate connect on a validated network: nothing changed.
            return step.done()
        step.record(NetworkEventKind.NETWORK_CONNECTED)
        step.go(MonitorState.EVALUATING)
        return step.done()

    if state is MonitorState.DISCONNECTED:
        return step.done()

    if isinstance(message, ForceReevaluate):
        if state is MonitorState.EVALUATING and not policy.accepts_forced_reevaluation(session.attempt_count):
            return step.done()
        step.leave(MonitorState.EVALUATING)
        step.update(blamed_uid=message.requester_uid)
        step.enter_evaluating()
        return step.done()

    if isinstance(message, PeriodicRecheck):
        if state is not MonitorState.CAPTIVE_PORTAL or message.token != session.recheck_token:
            return step.done()
        step.leave(MonitorState.EVALUATING)
        step.update(blamed_uid=None)
        step.enter_evaluating()
        return step.done()

    if isinstance(message, Reevaluate):
        return _reevaluate(step, message)

    if isinstance(message, ProbeCompleted):
        return _probe_completed(step, message)

    if isinstance(message, LaunchSignIn):
        sign_in = session.sign_in
        if state.may_notify and sign_in is not None and sign_in.token == message.token:
            step.effects.append(LaunchSignInApp(message.token))
        return step.done()

    if isinstance(message, UserVerdict):
        return _user_verdict(step, message)

    return step.done()


def _reevaluate(step: _Step, message: Reevaluate) -> Transition:
    session = step.session
    if session.state is not MonitorState.EVALUATING:
        return step.done()
    if message.token != session.reevaluate_token or session.user_declined:
        return step.done()
    if not message.eligible:
        # Networks that would not satisfy the default request are not validated.
        step.go(MonitorState.VALIDATED)
        return step.done()
    step.update(attempt_count=session.attempt_count + 1)
    step.effects.append(
        RunProbe(
            token=message.token,
            use_https=session.use_https,
            attribution_uid=session.blamed_uid,
            first_validation=session.validation_stage.is_first_validation,
        )
    )
    return step.done()


def _probe_completed(step: _Step, message: ProbeCompleted) -> Transition:
    session = step.session
    if session.state is not MonitorState.EVALUATING or message.token != session.reevaluate_token:
        return step.done()

    result = message.result
    if result.is_successful:
        step.go(MonitorState.VALIDATED)
    elif result.is_portal:
        step.emit(ValidationResult(step.network_id, Outcome.INVALID, result.redirect_url))
        step.update(last_probe_result=result)
        step.go(MonitorState.CAPTIVE_PORTAL)
    else:
        token = session.reevaluate_token + 1
        step.update(reevaluate_token=token)
        step.effects.append(ScheduleReevaluate(token, session.reevaluate_delay_ms))
        step.record(NetworkEventKind.VALIDATION_FAILED)
        step.emit(ValidationResult(step.network_id, Outcome.INVALID, result.redirect_url))
        if step.policy.should_clear_blame(session.attempt_count):
            step.update(blamed_uid=None)
        step.update(reevaluate_delay_ms=step.policy.next_delay(session.reevaluate_delay_ms))
    return step.done()


def _user_verdict(step: _Step, message: UserVerdict) -> Transition:
    session = step.session
    sign_in = session.sign_in
    # Only the first verdict for a prompt counts; later ones are stale.
    if sign_in is None or sign_in.token != message.token or not sign_in.pending:
        return step.done()

    # Once the user has been through the sign-in flow, HTTPS is no longer
    # required: HTTP may work after login while HTTPS stays blocked, and the
    # user would then have no way left to accept the network.
    step.update(sign_in=replace(sign_in, pending=False), use_https=False)
    step.hide_prompt()

    if message.verdict is Verdict.DISMISSED:
        step.leave(MonitorState.EVALUATING)
        step.update(blamed_uid=None)
        step.enter_evaluating()
    elif message.verdict is Verdict.WANTED_AS_IS:
        step.update(suppress_sign_in_prompt=True)
        if session.state is not MonitorState.VALIDATED:
            step.go(MonitorState.VALIDATED)
    elif message.verdict is Verdict.UNWANTED:
        step.update(suppress_sign_in_prompt=True, user_declined=True)
        step.emit(ValidationResult(step.network_id, Outcome.INVALID))
        step.leave(MonitorState.EVALUATING)
        step.update(blamed_uid=None)
        step.enter_evaluating()
    return step.done()


__all__ = ["TokenFactory", "Transition", "random_token", "transition"]
