# SPDX-FileCopyrightText: 2025 Theori Inc.
# SPDX-License-Identifier: AGPL-3.0-or-later

"""Per-network monitor: a single-threaded actor around ``transition()``.

Messages from any thread are queued on a mailbox and applied one at a time,
either by the monitor's own thread (``start()``) or synchronously through
``run_pending()``. Effects returned by each transition are carried out here:
probes, timers, caller events and metrics.
"""

from __future__ import annotations

import logging
import queue
import threading
import time
from collections.abc import Callable
from dataclasses import replace
from typing import Any

from ..config import ValidationSettings, load_validation_settings
from ..errors import CaptiveCheckError
from ..events import EventSink, LoggingEventSink, safe_record
from ..http.client import HttpClient
from ..models.events import ShowSignInPrompt
from ..models.messages import (
    ForceReevaluate,
    Message,
    NetworkConnected,
    NetworkDisconnected,
    PeriodicRecheck,
    ProbeCompleted,
    Reevaluate,
)
from ..models.network import Network
from ..models.probe import ProbeResult
from ..models.session import MonitorState, ValidationSession
from ..probe.engine import ProbeEngine
from ..probe.validation_log import ValidationLog
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
from .scheduler import Scheduler, ThreadingScheduler, TimerHandle
from .signin import LaunchHandle, LoggingSignInLauncher, SignInIntent, SignInLauncher, SignInResponder
from .states import TokenFactory, random_token, transition

logger = logging.getLogger(__name__)

Listener = Callable[[Any], None]

_STOP = object()


class NetworkMonitor:
    """Validates one network and keeps re-validating it until disconnect.

    ``listener`` receives ``ValidationResult`` and ``ShowSignInPrompt`` events
    on the monitor thread. A listener that raises is logged and ignored.
    """

    def __init__(
        self,
        network: Network,
        *,
        engine: ProbeEngine | None = None,
        settings: ValidationSettings | None = None,
        http_client: HttpClient | None = None,
        listener: Listener | None = None,
        event_sink: EventSink | None = None,
        launcher: SignInLauncher | None = None,
        scheduler: Scheduler | None = None,
        policy: BackoffPolicy = DEFAULT_POLICY,
        token_factory: TokenFactory = random_token,
    ):
        self.network = network
        self.event_sink = event_sink if event_sink is not None else LoggingEventSink()
        if engine is None:
            settings = settings or load_validation_settings()
            engine = ProbeEngine(
                settings,
                http_client,
                event_sink=self.event_sink,
                validation_log=ValidationLog(network.label),
                network_id=network.net_id,
            )
        self.engine = engine
        self.settings = settings or engine.settings
        self.listener = listener
        self.launcher = launcher or LoggingSignInLauncher()
        self.scheduler = scheduler or ThreadingScheduler()
        self.policy = policy
        self._token_factory = token_factory

        self._session = ValidationSession(
            use_https=self.settings.use_https,
            reevaluate_delay_ms=policy.initial_delay_ms,
        )
        self._mailbox: queue.Queue[Any] = queue.Queue()
        self._changed = threading.Condition()
        self._timers: dict[str, TimerHandle] = {}
        self._thread: threading.Thread | None = None
        self._disconnecting = threading.Event()
        self._stopped = threading.Event()
        self._evaluation_started: float | None = None

    # -- public API -----------------------------------------------------

    @property
    def session(self) -> ValidationSession:
        return self._session

    @property
    def state(self) -> MonitorState:
        return self._session.state

    @property
    def stopped(self) -> bool:
        return self._stopped.is_set()

    def validation_logs(self) -> list[str]:
        return self.engine.validation_log.lines()

    def post(self, message: Message) -> None:
        """Queue ``message``; safe from any thread. Ignored once stopped."""
        if self._stopped.is_set():
            logger.debug("%s: dropping %r, monitor stopped", self.network.label, message)
            return
        self._mailbox.put(message)

    def notify_network_connected(self) -> None:
        self.post(NetworkConnected())

    def notify_network_disconnected(self) -> None:
        # Results of a probe already in flight are discarded.
        self._disconnecting.set()
        self.post(NetworkDisconnected())

    def force_reevaluation(self, requester_uid: int | None = None) -> None:
        self.post(ForceReevaluate(requester_uid))

    def start(self) -> NetworkMonitor:
        if self._thread is not None:
            raise CaptiveCheckError(f"monitor for {self.network.label} already started")
        if self._stopped.is_set():
            raise CaptiveCheckError(f"monitor for {self.network.label} is stopped")
        self._thread = threading.Thread(target=self._run, name=f"captivecheck-{self.network.label}", daemon=True)
        self._thread.start()
        return self

    def stop(self, timeout: float | None = None) -> None:
        """Disconnect and wait for the monitor thread to finish."""
        if not self._stopped.is_set():
            self.notify_network_disconnected()
        thread = self._thread
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout)

    def run_pending(self) -> int:
        """Apply queued messages on the calling thread; return how many were handled."""
        handled = 0
        while True:
            try:
                message = self._mailbox.get_nowait()
            except queue.Empty:
                return handled
            if message is _STOP:
                return handled
            self.dispatch(message)
            handled += 1

    def wait_for(self, *states: MonitorState, timeout: float | None = None) -> bool:
        """Block until the monitor is in one of ``states`` (or stopped)."""
        with self._changed:
            return self._changed.wait_for(
                lambda: self._session.state in states or self._stopped.is_set(),
                timeout=timeout,
            )

    # -- actor ----------------------------------------------------------

    def _run(self) -> None:
        while True:
            message = self._mailbox.get()
            if message is _STOP:
                break
            try:
                self.dispatch(message)
            except Exception:  # noqa: BLE001
                logger.exception("%s: failed to handle %r", self.network.label, message)
            if self._stopped.is_set():
                break

    def dispatch(self, message: Message) -> None:
        """Apply one message. Must only be called from the actor's thread."""
        if isinstance(message, Reevaluate):
            # Eligibility is read from the live network at dispatch time.
            message = replace(message, eligible=self.network.satisfies_default_request)

        result = transition(
            self._session,
            message,
            network_id=self.network.net_id,
            policy=self.policy,
            token_factory=self._token_factory,
        )
        if result.session.state is not self._session.state:
            logger.info("%s: %s -> %s", self.network.label, self._session.state.value, result.session.state.value)
        self._session = result.session
        for effect in result.effects:
            self._execute(effect)
        with self._changed:
            self._changed.notify_all()

    def _execute(self, effect: Effect) -> None:
        if isinstance(effect, RunProbe):
            self._run_probe(effect)
        elif isinstance(effect, ScheduleReevaluate):
            self._schedule("reevaluate", effect.delay_ms, Reevaluate(effect.token))
        elif isinstance(effect, ScheduleRecheck):
            self._schedule("recheck", effect.delay_ms, PeriodicRecheck(effect.token))
        elif isinstance(effect, EmitEvent):
            self._notify(effect.event)
        elif isinstance(effect, RecordEvent):
            self._record(effect)
        elif isinstance(effect, StartEvaluationTimer):
            if self._evaluation_started is None:
                self._evaluation_started = time.monotonic()
        elif isinstance(effect, ShowPrompt):
            handle = LaunchHandle(self.post, effect.token) if effect.visible and effect.token is not None else None
            self._notify(ShowSignInPrompt(self.network.net_id, effect.visible, handle))
        elif isinstance(effect, LaunchSignInApp):
            self._launch_sign_in(effect.token)
        elif isinstance(effect, CancelTimers):
            self._cancel_timers()
        elif isinstance(effect, Stop):
            self._stopped.set()
            self._mailbox.put(_STOP)

    def _run_probe(self, effect: RunProbe) -> None:
        try:
            result = self.engine.validate(
                self.network,
                use_https=effect.use_https,
                attribution_uid=effect.attribution_uid,
                first_validation=effect.first_validation,
                cancel=self._disconnecting,
            )
        except Exception:  # noqa: BLE001
            # A crashed evaluation still has to schedule its retry.
            logger.exception("%s: validation raised, treating it as failed", self.network.label)
            result = ProbeResult.failed()
        if self._disconnecting.is_set():
            logger.debug("%s: discarding probe result after disconnect", self.network.label)
            return
        self.dispatch(ProbeCompleted(effect.token, result))

    def _schedule(self, kind: str, delay_ms: int, message: Message) -> None:
        previous = self._timers.pop(kind, None)
        if previous is not None:
            previous.cancel()
        if delay_ms <= 0:
            self.post(message)
            return
        self._timers[kind] = self.scheduler.call_later(delay_ms / 1000.0, lambda: self.post(message))

    def _cancel_timers(self) -> None:
        for handle in self._timers.values():
            handle.cancel()
        self._timers.clear()

    def _record(self, effect: RecordEvent) -> None:
        event = effect.event
        if effect.timed:
            if self._evaluation_started is None:
                return
            elapsed = int((time.monotonic() - self._evaluation_started) * 1000)
            self._evaluation_started = None
            event = replace(event, duration_ms=elapsed)
        safe_record(self.event_sink, event)

    def _notify(self, event: Any) -> None:
        if self.listener is None:
            return
        try:
            self.listener(event)
        except Exception:  # noqa: BLE001
            logger.exception("%s: listener failed on %r", self.network.label, event)

    def _launch_sign_in(self, token: int) -> None:
        last = self._session.last_probe_result
        intent = SignInIntent(
            network_id=self.network.net_id,
            detect_url=last.detect_url if last is not None else None,
            user_agent=self.settings.user_agent,
            responder=SignInResponder(self.post, token),
        )
        try:
            self.launcher.launch(intent)
        except Exception:  # noqa: BLE001
            logger.exception("%s: sign-in launcher failed", self.network.label)


__all__ = ["Listener", "NetworkMonitor"]
