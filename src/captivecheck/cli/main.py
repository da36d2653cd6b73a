# SPDX-FileCopyrightText: 2025 Theori Inc.
# SPDX-License-Identifier: AGPL-3.0-or-later

"""captivecheck CLI."""

from __future__ import annotations

import argparse
import json
import sys
from dataclasses import replace
from typing import Any

from ..config import ValidationSettings, load_validation_settings
from ..errors import ErrorCategory, error_category_to_reason
from ..events import MemoryEventSink
from ..http import create_default_http_client
from ..log import setup_logging
from ..models import Network, ProbeResult, ValidationProbeEvent, event_to_dict
from ..models.session import MonitorState
from ..runtime import CaptiveCheck

EXIT_VALIDATED = 0
EXIT_PORTAL = 1
EXIT_FAILED = 2

CLI_NETWORK_ID = 100


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="captivecheck network validation / captive portal detector")
    parser.add_argument(
        "--json",
        action="store_true",
        help="Output JSON instead of human-friendly summary",
    )
    parser.add_argument("--https-url", help="HTTPS probe URL (expects 204)")
    parser.add_argument("--http-url", help="HTTP probe URL (expects 204)")
    parser.add_argument(
        "--fallback-url",
        action="append",
        dest="fallback_urls",
        metavar="URL",
        help="Fallback HTTP probe URL; may be repeated",
    )
    parser.add_argument("--pac-url", help="Proxy auto-config URL; fetched instead of the 204 probes")
    parser.add_argument("--no-https", action="store_true", help="Probe over HTTP only")
    parser.add_argument("--timeout", type=float, help="Per-request socket timeout in seconds")
    parser.add_argument("--race-timeout", type=float, help="Deadline for the HTTP/HTTPS race in seconds")
    parser.add_argument(
        "--ignore-ssl-errors",
        action="store_true",
        help="Skip TLS verification of the HTTPS probe",
    )
    parser.add_argument("--log-level", help="Logging level (default: CAPTIVECHECK_LOG_LEVEL or WARNING)")
    parser.add_argument(
        "--watch",
        action="store_true",
        help="Run a monitor with retries until the network validates or a portal is found",
    )
    parser.add_argument(
        "--max-wait",
        type=float,
        default=60.0,
        help="Seconds to wait in --watch mode before giving up (default: 60)",
    )
    return parser


def settings_from_args(args: argparse.Namespace, base: ValidationSettings | None = None) -> ValidationSettings:
    settings = base or load_validation_settings()
    changes: dict[str, Any] = {}
    if args.https_url:
        changes["https_url"] = args.https_url
    if args.http_url:
        changes["http_url"] = args.http_url
    if args.fallback_urls:
        changes["fallback_urls"] = tuple(args.fallback_urls)
    if args.no_https:
        changes["use_https"] = False
    if args.timeout and args.timeout > 0:
        changes["socket_timeout"] = args.timeout
    if args.race_timeout and args.race_timeout > 0:
        changes["probe_race_timeout"] = args.race_timeout
    if args.ignore_ssl_errors:
        changes["verify_ssl"] = False
    return replace(settings, **changes) if changes else settings


def exit_code_for_result(result: ProbeResult) -> int:
    if result.is_successful:
        return EXIT_VALIDATED
    if result.is_portal:
        return EXIT_PORTAL
    return EXIT_FAILED


def exit_code_for_state(state: MonitorState) -> int:
    if state is MonitorState.VALIDATED:
        return EXIT_VALIDATED
    if state is MonitorState.CAPTIVE_PORTAL:
        return EXIT_PORTAL
    return EXIT_FAILED


def _failure_reason(sink: MemoryEventSink) -> str:
    for event in reversed(sink.of_type(ValidationProbeEvent)):
        if event.error_category is not ErrorCategory.NONE:
            return error_category_to_reason(event.error_category)
    return ""


def _print_json(data: dict[str, Any]) -> None:
    json.dump(data, sys.stdout, indent=2, sort_keys=True, default=str)
    sys.stdout.write("\n")


def _pretty_print(report: dict[str, Any]) -> None:
    verdict = report.get("verdict") or "-"
    print(f"[captivecheck] Verdict: {verdict}")
    result = report.get("result") or {}
    if result.get("http_status") is not None:
        print(f"Status: {result['http_status']} via {result.get('probe_type') or '-'}")
    if result.get("redirect_url"):
        print(f"Portal: {result['redirect_url']}")
    if report.get("state"):
        print(f"Monitor state: {report['state']}")
    if report.get("reason"):
        print(f"Reason: {report['reason']}")
    lines = report.get("validation_log") or []
    if lines:
        print("Validation log:")
        for line in lines:
            print(f"  {line}")


def _run_check(guard: CaptiveCheck, network: Network, sink: MemoryEventSink) -> tuple[int, dict[str, Any]]:
    engine = guard.engine(network)
    result = engine.validate(network)
    report = {
        "verdict": result.verdict.value,
        "result": result.to_dict(),
        "reason": _failure_reason(sink) if result.is_failed else "",
        "validation_log": engine.validation_log.lines(),
        "events": [event_to_dict(e) for e in sink.events],
    }
    return exit_code_for_result(result), report


def _run_watch(
    guard: CaptiveCheck, network: Network, sink: MemoryEventSink, max_wait: float
) -> tuple[int, dict[str, Any]]:
    notifications: list[Any] = []
    monitor = guard.network_connected(network, notifications.append)
    monitor.wait_for(MonitorState.VALIDATED, MonitorState.CAPTIVE_PORTAL, timeout=max_wait)
    state = monitor.state
    session = monitor.session
    result = session.last_probe_result
    report = {
        "verdict": state.value,
        "state": state.value,
        "attempts": session.attempt_count,
        "result": result.to_dict() if result is not None else {},
        "reason": _failure_reason(sink) if state is MonitorState.EVALUATING else "",
        "validation_log": monitor.validation_logs(),
        "notifications": [event_to_dict(e) for e in notifications],
        "events": [event_to_dict(e) for e in sink.events],
    }
    return exit_code_for_state(state), report


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    setup_logging(args.log_level)

    settings = settings_from_args(args)
    http_client = create_default_http_client(settings)
    sink = MemoryEventSink()
    network = Network(net_id=CLI_NETWORK_ID, name="cli", pac_url=args.pac_url)

    with CaptiveCheck(settings, http_client, event_sink=sink) as guard:
        if args.watch:
            code, report = _run_watch(guard, network, sink, args.max_wait)
        else:
            code, report = _run_check(guard, network, sink)

    if args.json:
        _print_json(report)
    else:
        _pretty_print(report)

    return code


if __name__ == "__main__":
    raise SystemExit(main())
