# SPDX-FileCopyrightText: 2025 Theori Inc.
# SPDX-License-Identifier: AGPL-3.0-or-later

from types import SimpleNamespace

import pytest

from captivecheck.config import ValidationSettings
from captivecheck.errors import CaptiveCheckError
from captivecheck.events import MemoryEventSink
from captivecheck.http import HttpResponse, StubHttpClient
from captivecheck.models import (
    NetworkEvent,
    NetworkEventKind,
    Outcome,
    ProbeResult,
    ShowSignInPrompt,
    ValidationResult,
)
from captivecheck.models.network import Network
from captivecheck.models.session import MonitorState
from captivecheck.monitor import ManualScheduler, NetworkMonitor
from captivecheck.monitor.signin import SignInResponder
from captivecheck.probe import ProbeEngine, StaticResolver, ValidationLog

HTTPS_URL = "https://secure.test/generate_204"
HTTP_URL = "http://probe.test/generate_204"
FALLBACK_URL = "http://fallback.test/gen_204"
PORTAL_LOGIN = "http://portal.test/login"
HOSTS = {"secure.test": ["192.0.2.1"], "probe.test": ["192.0.2.2"], "fallback.test": ["192.0.2.3"]}


class RecordingLauncher:
    def __init__(self):
        self.intents = []

    def launch(self, intent):
        self.intents.append(intent)


def ok(status, headers=None):
    return HttpResponse(ok=True, status_code=status, headers=headers or {})


def portal_response():
    return ok(302, {"Location": PORTAL_LOGIN})


def make_monitor(responses=None, network=None, listener=None):
    settings = ValidationSettings(
        https_url=HTTPS_URL,
        http_url=HTTP_URL,
        fallback_urls=(FALLBACK_URL,),
        probe_race_timeout=1.0,
    )
    client = StubHttpClient(responses)
    sink = MemoryEventSink()
    network = network or Network(9, name="wlan0")
    engine = ProbeEngine(
        settings,
        client,
        resolver=StaticResolver(HOSTS),
        event_sink=sink,
        validation_log=ValidationLog(network.label),
        network_id=network.net_id,
    )
    events = []
    launcher = RecordingLauncher()
    scheduler = ManualScheduler()
    monitor = NetworkMonitor(
        network,
        engine=engine,
        listener=listener or events.append,
        event_sink=sink,
        launcher=launcher,
        scheduler=scheduler,
        token_factory=lambda: 77,
    )
    return SimpleNamespace(
        monitor=monitor, client=client, sink=sink, events=events, launcher=launcher, scheduler=scheduler
    )


def prompts(events):
    return [e for e in events if isinstance(e, ShowSignInPrompt)]


def results(events):
    return [e for e in events if isinstance(e, ValidationResult)]


def test_clean_network_validates_once():
    env = make_monitor({HTTPS_URL: ok(204), HTTP_URL: ok(204)})
    env.monitor.notify_network_connected()
    env.monitor.run_pending()

    assert env.monitor.state is MonitorState.VALIDATED
    assert env.events == [ValidationResult(9, Outcome.VALID)]
    success = [e for e in env.sink.of_type(NetworkEvent) if e.kind is NetworkEventKind.FIRST_VALIDATION_SUCCESS]
    assert len(success) == 1
    assert success[0].duration_ms is not None and success[0].duration_ms >= 0
    assert env.monitor.validation_logs()

    # A second connect notification is a no-op for a validated network.
    before = len(env.client.requests)
    env.monitor.notify_network_connected()
    env.monitor.run_pending()
    assert len(env.client.requests) == before
    assert env.events == [ValidationResult(9, Outcome.VALID)]


def test_portal_prompt_launch_and_wanted_as_is():
    env = make_monitor({HTTP_URL: portal_response()})
    env.monitor.notify_network_connected()
    env.monitor.run_pending()

    assert env.monitor.state is MonitorState.CAPTIVE_PORTAL
    assert results(env.events) == [ValidationResult(9, Outcome.INVALID, PORTAL_LOGIN)]
    shown = prompts(env.events)
    assert len(shown) == 1 and shown[0].visible is True
    assert env.scheduler.pending() == [600.0]

    shown[0].launch_handle.launch()
    env.monitor.run_pending()
    assert len(env.launcher.intents) == 1
    intent = env.launcher.intents[0]
    assert intent.network_id == 9
    assert intent.detect_url == HTTP_URL
    assert intent.user_agent == env.monitor.settings.user_agent

    intent.responder.wanted_as_is()
    env.monitor.run_pending()
    assert env.monitor.state is MonitorState.VALIDATED
    assert prompts(env.events)[-1].visible is False
    assert results(env.events)[-1] == ValidationResult(9, Outcome.VALID)

    # HTTPS is no longer probed after the user has been through sign-in.
    before = len(env.client.requests)
    env.monitor.force_reevaluation(1000)
    env.monitor.run_pending()
    later = [r.url for r in env.client.requests[before:]]
    assert HTTP_URL in later
    assert HTTPS_URL not in later
    assert all(r.attribution_uid == 1000 for r in env.client.requests[before:])
    assert env.monitor.state is MonitorState.CAPTIVE_PORTAL
    assert len(prompts(env.events)) == 2


def test_stale_responder_is_ignored():
    env = make_monitor({HTTP_URL: portal_response()})
    env.monitor.notify_network_connected()
    env.monitor.run_pending()
    prompts(env.events)[0].launch_handle.launch()
    env.monitor.run_pending()
    responder = env.launcher.intents[0].responder

    SignInResponder(env.monitor.post, responder.token + 1).unwanted()
    env.monitor.run_pending()
    assert env.monitor.state is MonitorState.CAPTIVE_PORTAL
    assert env.monitor.session.user_declined is False


def test_portal_recheck_validates_after_login():
    env = make_monitor({HTTP_URL: portal_response()})
    env.monitor.notify_network_connected()
    env.monitor.run_pending()
    assert env.monitor.state is MonitorState.CAPTIVE_PORTAL

    env.client.add(HTTP_URL, ok(204))
    env.scheduler.advance(600)
    env.monitor.run_pending()

    assert env.monitor.state is MonitorState.VALIDATED
    assert prompts(env.events)[-1].visible is False
    kinds = [e.kind for e in env.sink.of_type(NetworkEvent)]
    assert NetworkEventKind.FIRST_VALIDATION_PORTAL_FOUND in kinds
    assert NetworkEventKind.REVALIDATION_SUCCESS in kinds


def test_unreachable_network_backs_off_exponentially():
    env = make_monitor()
    env.monitor.notify_network_connected()
    env.monitor.run_pending()

    delays = []
    for _ in range(5):
        delays.append(env.scheduler.advance_to_next())
        env.monitor.run_pending()

    assert delays == [1.0, 2.0, 4.0, 8.0, 16.0]
    assert env.monitor.state is MonitorState.EVALUATING
    assert env.monitor.session.attempt_count == 6
    assert results(env.events) == [ValidationResult(9, Outcome.INVALID)] * 6
    assert env.scheduler.pending() == [31.0 + 32.0]


def test_forced_reevaluation_waits_for_five_attempts():
    env = make_monitor()
    env.monitor.notify_network_connected()
    env.monitor.run_pending()
    token = env.monitor.session.reevaluate_token

    env.monitor.force_reevaluation(1000)
    env.monitor.run_pending()
    assert env.monitor.session.reevaluate_token == token
    assert env.monitor.session.blamed_uid is None

    for _ in range(4):
        env.scheduler.advance_to_next()
        env.monitor.run_pending()
    assert env.monitor.session.attempt_count == 5

    env.monitor.force_reevaluation(1000)
    env.monitor.run_pending()
    assert env.monitor.session.attempt_count == 1
    assert env.monitor.session.blamed_uid == 1000


def test_ineligible_network_is_not_probed():
    env = make_monitor(network=Network(9, name="vpn", satisfies_default_request=False))
    env.monitor.notify_network_connected()
    env.monitor.run_pending()
    assert env.monitor.state is MonitorState.VALIDATED
    assert env.client.requests == []


def test_disconnect_hides_prompt_and_cancels_timers():
    env = make_monitor({HTTP_URL: portal_response()})
    env.monitor.notify_network_connected()
    env.monitor.run_pending()
    env.monitor.notify_network_disconnected()
    env.monitor.run_pending()

    assert env.monitor.state is MonitorState.DISCONNECTED
    assert env.monitor.stopped is True
    assert prompts(env.events)[-1].visible is False
    assert env.scheduler.pending() == []

    env.monitor.notify_network_connected()
    assert env.monitor.run_pending() == 0


def test_probe_result_after_disconnect_is_discarded():
    env = make_monitor()

    class DisconnectingEngine:
        settings = env.monitor.settings
        validation_log = ValidationLog()

        def validate(self, network, **_):  # noqa: ARG002
            env.monitor.notify_network_disconnected()
            return ProbeResult.success()

    env.monitor.engine = DisconnectingEngine()
    env.monitor.notify_network_connected()
    env.monitor.run_pending()

    assert env.monitor.state is MonitorState.DISCONNECTED
    assert results(env.events) == []


def test_crashing_validation_counts_as_failed_and_retries():
    env = make_monitor()

    class CrashingEngine:
        settings = env.monitor.settings
        validation_log = ValidationLog()

        def validate(self, network, **_):  # noqa: ARG002
            raise UnicodeError("label empty or too long")

    env.monitor.engine = CrashingEngine()
    env.monitor.notify_network_connected()
    env.monitor.run_pending()

    assert env.monitor.state is MonitorState.EVALUATING
    assert results(env.events) == [ValidationResult(9, Outcome.INVALID)]
    assert env.scheduler.pending() == [1.0]


def test_disconnect_event_is_handed_to_the_engine_as_cancel():
    env = make_monitor()
    seen = []

    class RecordingEngine:
        settings = env.monitor.settings
        validation_log = ValidationLog()

        def validate(self, network, *, cancel=None, **_):  # noqa: ARG002
            seen.append(cancel.is_set())
            env.monitor.notify_network_disconnected()
            seen.append(cancel.is_set())
            return ProbeResult.failed()

    env.monitor.engine = RecordingEngine()
    env.monitor.notify_network_connected()
    env.monitor.run_pending()

    assert seen == [False, True]
    assert env.monitor.state is MonitorState.DISCONNECTED


def test_listener_errors_do_not_stop_the_monitor():
    def broken_listener(event):
        raise RuntimeError(f"cannot handle {event}")

    env = make_monitor({HTTPS_URL: ok(204)}, listener=broken_listener)
    env.monitor.notify_network_connected()
    env.monitor.run_pending()
    assert env.monitor.state is MonitorState.VALIDATED


def test_threaded_monitor_runs_until_stopped():
    client = StubHttpClient({HTTPS_URL: ok(204), HTTP_URL: ok(204)})
    settings = ValidationSettings(https_url=HTTPS_URL, http_url=HTTP_URL, fallback_urls=())
    engine = ProbeEngine(settings, client, resolver=StaticResolver(HOSTS), event_sink=MemoryEventSink())
    monitor = NetworkMonitor(Network(3), engine=engine, event_sink=MemoryEventSink())
    monitor.start()
    with pytest.raises(CaptiveCheckError):
        monitor.start()

    monitor.notify_network_connected()
    assert monitor.wait_for(MonitorState.VALIDATED, timeout=5)
    monitor.stop(timeout=5)
    assert monitor.stopped
    assert monitor.state is MonitorState.DISCONNECTED
