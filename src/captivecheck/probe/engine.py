# SPDX-FileCopyrightText: 2025 Theori Inc.
# SPDX-License-Identifier: AGPL-3.0-or-later

"""Reachability probes: single DNS/HTTP probes and the combined validation check.

Probe I/O always runs on short-lived worker threads. Workers only gather raw
outcomes; logging, event recording and the verdict happen on the calling
thread, so a worker abandoned at a deadline can never report after the fact.
"""

from __future__ import annotations

import logging
import random
import threading
import time
from concurrent.futures import FIRST_COMPLETED, Future, ThreadPoolExecutor, wait
from dataclasses import dataclass
from urllib.parse import urlsplit

from ..config import ValidationSettings, is_valid_probe_url, load_validation_settings
from ..errors import ErrorCategory, categorize_exception
from ..events import EventSink, LoggingEventSink, safe_record
from ..http.client import HttpClient, create_default_http_client
from ..http.models import PROBE_BODY_BYTES, HttpRequest, HttpResponse
from ..models.events import NetworkConditionsMeasured, ValidationProbeEvent
from ..models.network import Network
from ..models.probe import FAILED_CODE, SUCCESS_CODE, ProbeResult, ProbeType
from .dns import Resolver, SocketResolver
from .fallback import FallbackUrlRotator
from .validation_log import ValidationLog

logger = logging.getLogger(__name__)

# Two workers: the HTTPS and HTTP probes of one race.
RACE_WORKERS = 2

# Slack on top of the socket timeout for the DNS lookup of a single probe.
SINGLE_PROBE_GRACE = 0.5

# Upper bound on how long a caller's cancel event goes unnoticed.
CANCEL_POLL_INTERVAL = 0.1

_NO_CACHE_HEADERS = {"Cache-Control": "no-cache", "Pragma": "no-cache"}


def _elapsed_ms(started: float) -> int:
    return int((time.monotonic() - started) * 1000)


def _is_set(event: threading.Event | None) -> bool:
    return event is not None and event.is_set()


def _probe_host(url: str, proxy_host: str | None) -> str | None:
    try:
        return proxy_host or urlsplit(url).hostname
    except ValueError:
        return None


@dataclass(frozen=True)
class _Lookup:
    host: str
    addresses: list[str] | None
    error_category: ErrorCategory
    latency_ms: int


@dataclass(frozen=True)
class _Fetch:
    response: HttpResponse | None
    error_category: ErrorCategory
    error_text: str
    duration_ms: int


@dataclass(frozen=True)
class _Outcome:
    """What a worker gathered; ``fetch`` is None when it stopped before fetching."""

    lookup: _Lookup | None
    fetch: _Fetch | None


class ProbeEngine:
    """Runs captive-portal probes for one network.

    Never raises for network conditions: every I/O problem becomes a failed
    ``ProbeResult``. Holds per-network state (fallback rotation, validation log),
    so each monitor gets its own engine while the HTTP client may be shared.
    """

    def __init__(
        self,
        settings: ValidationSettings | None = None,
        http_client: HttpClient | None = None,
        *,
        resolver: Resolver | None = None,
        event_sink: EventSink | None = None,
        validation_log: ValidationLog | None = None,
        network_id: int | None = None,
        rng: random.Random | None = None,
    ):
        self.settings = settings or load_validation_settings()
        self.http_client = http_client or create_default_http_client(self.settings)
        self.resolver = resolver or SocketResolver()
        self.event_sink = event_sink if event_sink is not None else LoggingEventSink()
        self.validation_log = validation_log or ValidationLog()
        self.network_id = network_id
        self.fallbacks = FallbackUrlRotator(self.settings.fallback_urls, rng)

    def _record_probe(
        self,
        probe_type: ProbeType,
        return_code: int,
        duration_ms: int,
        *,
        first_validation: bool,
        attribution_uid: int | None,
        error_category: ErrorCategory = ErrorCategory.NONE,
    ) -> None:
        safe_record(
            self.event_sink,
            ValidationProbeEvent(
                network_id=self.network_id,
                probe_type=probe_type,
                return_code=return_code,
                duration_ms=duration_ms,
                first_validation=first_validation,
                attribution_uid=attribution_uid,
                error_category=error_category,
            ),
        )

    # -- worker side: gather only, never log or record --------------------

    def _resolve(self, host: str | None) -> _Lookup | None:
        if not host:
            return None
        started = time.monotonic()
        addresses: list[str] | None
        try:
            addresses = self.resolver.resolve(host)
            category = ErrorCategory.NONE
        except Exception as exc:  # noqa: BLE001
            # Malformed names surface as UnicodeError from the IDNA codec.
            logger.debug("Resolver raised for %s: %r", host, exc)
            addresses = None
            category = categorize_exception(exc)
        return _Lookup(host, addresses, category, _elapsed_ms(started))

    def _fetch(self, url: str, probe_type: ProbeType, attribution_uid: int | None) -> _Fetch:
        started = time.monotonic()
        headers = dict(_NO_CACHE_HEADERS)
        if self.settings.user_agent:
            headers["User-Agent"] = self.settings.user_agent
        request = HttpRequest(
            url=url,
            headers=headers,
            timeout=self.settings.socket_timeout,
            allow_redirects=probe_type is ProbeType.PAC,
            max_body_bytes=PROBE_BODY_BYTES,
            attribution_uid=attribution_uid,
        )

        try:
            response = self.http_client.request(request)
        except Exception as exc:  # noqa: BLE001
            logger.debug("HttpClient raised for %s: %r", url, exc)
            return _Fetch(None, categorize_exception(exc), repr(exc), _elapsed_ms(started))
        return _Fetch(
            response,
            response.error_category,
            f"{response.error_type}: {response.error_message}",
            _elapsed_ms(started),
        )

    def _gather(
        self,
        url: str,
        probe_type: ProbeType,
        *,
        proxy_host: str | None,
        resolve: bool,
        attribution_uid: int | None,
        stop: threading.Event,
    ) -> _Outcome:
        lookup = self._resolve(_probe_host(url, proxy_host)) if resolve else None
        if stop.is_set():
            return _Outcome(lookup, None)
        return _Outcome(lookup, self._fetch(url, probe_type, attribution_uid))

    # -- caller side: log, record, interpret ------------------------------

    def _report_lookup(self, lookup: _Lookup, *, first_validation: bool, attribution_uid: int | None) -> None:
        info = "OK " + ",".join(lookup.addresses) if lookup.addresses is not None else "FAIL"
        self.validation_log.log(f"{ProbeType.DNS.value} {lookup.host} {lookup.latency_ms}ms {info}")
        self._record_probe(
            ProbeType.DNS,
            0 if lookup.addresses is not None else 1,
            lookup.latency_ms,
            first_validation=first_validation,
            attribution_uid=attribution_uid,
            error_category=lookup.error_category,
        )

    def _interpret(
        self,
        url: str,
        probe_type: ProbeType,
        fetch: _Fetch,
        *,
        first_validation: bool,
        attribution_uid: int | None,
    ) -> ProbeResult:
        response = fetch.response
        if response is None or not response.ok or response.status_code is None:
            failure = fetch.error_category
            if failure is ErrorCategory.NONE:
                failure = ErrorCategory.UNKNOWN_ERROR
            self.validation_log.log(f"{probe_type.value} {url} Probe failed with exception {fetch.error_text}")
            self._record_probe(
                probe_type,
                FAILED_CODE,
                fetch.duration_ms,
                first_validation=first_validation,
                attribution_uid=attribution_uid,
                error_category=failure,
            )
            return ProbeResult.failed(url, probe_type)

        status = response.status_code
        redirect_url = response.location
        self.validation_log.log(
            f"{probe_type.value} {url} time={fetch.duration_ms}ms ret={status} headers={response.headers}"
        )

        # An HTTP/1.0 204 from a proxy is still taken at face value.
        if status == 200:
            if probe_type is ProbeType.PAC:
                self.validation_log.log(f"{probe_type.value} {url} PAC fetch 200 response interpreted as 204 response.")
                status = SUCCESS_CODE
            elif response.content_length == 0:
                # Nobody can sign in to an empty page; usually a broken transparent proxy.
                self.validation_log.log(
                    f"{probe_type.value} {url} 200 response with Content-length=0 interpreted as 204 response."
                )
                status = SUCCESS_CODE
            elif response.content_length == -1 and response.body_empty:
                self.validation_log.log(f"{probe_type.value} {url} Empty 200 response interpreted as 204 response.")
                status = SUCCESS_CODE

        self._record_probe(
            probe_type,
            status,
            fetch.duration_ms,
            first_validation=first_validation,
            attribution_uid=attribution_uid,
        )
        return ProbeResult(status, redirect_url, url, probe_type)

    def _settle(
        self,
        future: Future[_Outcome],
        url: str,
        probe_type: ProbeType,
        *,
        first_validation: bool,
        attribution_uid: int | None,
        elapsed_ms: int,
        reason: str,
    ) -> ProbeResult:
        """Turn a finished worker into a result. Call once per future."""
        exc = future.exception()
        if exc is not None:
            logger.error("%s probe for %s raised: %r", probe_type.value, url, exc)
            return ProbeResult.failed(url, probe_type)
        outcome = future.result()
        if outcome.lookup is not None:
            self._report_lookup(outcome.lookup, first_validation=first_validation, attribution_uid=attribution_uid)
        if outcome.fetch is None:
            return self._abandon(
                url,
                probe_type,
                first_validation=first_validation,
                attribution_uid=attribution_uid,
                elapsed_ms=elapsed_ms,
                reason=reason,
            )
        return self._interpret(
            url, probe_type, outcome.fetch, first_validation=first_validation, attribution_uid=attribution_uid
        )

    def _abandon(
        self,
        url: str,
        probe_type: ProbeType,
        *,
        first_validation: bool,
        attribution_uid: int | None,
        elapsed_ms: int,
        reason: str,
    ) -> ProbeResult:
        self.validation_log.log(f"{probe_type.value} {url} abandoned {reason}")
        self._record_probe(
            probe_type,
            FAILED_CODE,
            elapsed_ms,
            first_validation=first_validation,
            attribution_uid=attribution_uid,
            error_category=ErrorCategory.CANCELLED,
        )
        return ProbeResult.failed(url, probe_type)

    # -- public probes ----------------------------------------------------

    def dns_probe(
        self,
        host: str | None,
        *,
        first_validation: bool = True,
        attribution_uid: int | None = None,
    ) -> list[str] | None:
        """Resolve ``host`` and log the latency; return None on failure."""
        lookup = self._resolve(host)
        if lookup is None:
            return None
        self._report_lookup(lookup, first_validation=first_validation, attribution_uid=attribution_uid)
        return lookup.addresses

    def probe(
        self,
        url: str,
        probe_type: ProbeType,
        *,
        proxy_host: str | None = None,
        resolve: bool = True,
        attribution_uid: int | None = None,
        first_validation: bool = True,
        cancel: threading.Event | None = None,
    ) -> ProbeResult:
        """Pre-resolve the host for diagnostics, then fetch ``url`` on a worker.

        The wait is bounded by the socket timeout; a probe still running after
        that, or when ``cancel`` is set, is abandoned and counts as failed.
        """
        if _is_set(cancel):
            return ProbeResult.failed(url, probe_type)

        stop = threading.Event()
        executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="captivecheck-probe")
        started = time.monotonic()
        try:
            future = executor.submit(
                self._gather,
                url,
                probe_type,
                proxy_host=proxy_host,
                resolve=resolve,
                attribution_uid=attribution_uid,
                stop=stop,
            )
            deadline = started + self.settings.socket_timeout + SINGLE_PROBE_GRACE
            reason = "after the socket timeout"
            while not future.done():
                if _is_set(cancel):
                    reason = "on cancellation"
                    break
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    break
                wait([future], timeout=min(remaining, CANCEL_POLL_INTERVAL))
        finally:
            stop.set()
            executor.shutdown(wait=False, cancel_futures=True)

        report = {
            "first_validation": first_validation,
            "attribution_uid": attribution_uid,
            "elapsed_ms": _elapsed_ms(started),
            "reason": reason,
        }
        if not future.done() or future.cancelled():
            return self._abandon(url, probe_type, **report)
        return self._settle(future, url, probe_type, **report)

    def validate(
        self,
        network: Network | None = None,
        *,
        use_https: bool | None = None,
        attribution_uid: int | None = None,
        first_validation: bool = True,
        cancel: threading.Event | None = None,
    ) -> ProbeResult:
        """Decide whether the network reaches the internet, is captive, or failed.

        Setting ``cancel`` abandons the probes in flight; the result is then failed.
        """
        if not self.settings.enable_captive_check:
            self.validation_log.log("Validation disabled.")
            return ProbeResult.success()
        if _is_set(cancel):
            self.validation_log.log("Validation cancelled.")
            return ProbeResult.failed()

        use_https = self.settings.use_https if use_https is None else use_https
        pac_url = network.pac_url if network is not None else None
        proxy_host = network.proxy_host if network is not None else None
        https_url = self.settings.https_url
        http_url = self.settings.http_url

        if pac_url and not is_valid_probe_url(pac_url):
            self.validation_log.log(f"Bad URL: {pac_url}")
            return ProbeResult.failed(pac_url, ProbeType.PAC)
        if not pac_url:
            if not is_valid_probe_url(http_url) or (use_https and not is_valid_probe_url(https_url)):
                self.validation_log.log(f"Bad URL: http={http_url} https={https_url}")
                return ProbeResult.failed()

        request_ts = time.time()
        if pac_url:
            # Fetching the PAC file stands in for generate_204: proxied 204
            # fetches are unreliable before the PAC has been resolved.
            result = self.probe(
                pac_url,
                ProbeType.PAC,
                attribution_uid=attribution_uid,
                first_validation=first_validation,
                cancel=cancel,
            )
        elif use_https:
            result = self.race(
                str(https_url),
                str(http_url),
                proxy_host=proxy_host,
                attribution_uid=attribution_uid,
                first_validation=first_validation,
                cancel=cancel,
            )
        else:
            result = self.probe(
                str(http_url),
                ProbeType.HTTP,
                proxy_host=proxy_host,
                attribution_uid=attribution_uid,
                first_validation=first_validation,
                cancel=cancel,
            )
        response_ts = time.time()

        safe_record(
            self.event_sink,
            NetworkConditionsMeasured(
                network_id=self.network_id,
                response_received=True,
                is_captive_portal=result.is_portal,
                request_timestamp=request_ts,
                response_timestamp=response_ts,
            ),
        )
        return result

    def race(
        self,
        https_url: str,
        http_url: str,
        *,
        proxy_host: str | None = None,
        attribution_uid: int | None = None,
        first_validation: bool = True,
        cancel: threading.Event | None = None,
    ) -> ProbeResult:
        """Probe HTTPS and HTTP concurrently under a wall-clock deadline.

        HTTPS success or an HTTP portal ends the race early. Probes still
        running at the deadline, or when ``cancel`` is set, are abandoned and
        count as failed.
        """
        stop = threading.Event()
        executor = ThreadPoolExecutor(max_workers=RACE_WORKERS, thread_name_prefix="captivecheck-probe")
        probes: dict[Future[_Outcome], tuple[str, ProbeType]] = {}
        results: dict[ProbeType, ProbeResult] = {}
        started = time.monotonic()
        reason = "at race deadline"
        try:
            for url, probe_type in ((https_url, ProbeType.HTTPS), (http_url, ProbeType.HTTP)):
                future = executor.submit(
                    self._gather,
                    url,
                    probe_type,
                    proxy_host=proxy_host,
                    resolve=True,
                    attribution_uid=attribution_uid,
                    stop=stop,
                )
                probes[future] = (url, probe_type)

            deadline = started + self.settings.probe_race_timeout
            pending = set(probes)
            while pending:
                if _is_set(cancel):
                    reason = "on cancellation"
                    break
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    break
                done, pending = wait(pending, timeout=min(remaining, CANCEL_POLL_INTERVAL), return_when=FIRST_COMPLETED)
                for future in done:
                    url, probe_type = probes[future]
                    results[probe_type] = self._settle(
                        future,
                        url,
                        probe_type,
                        first_validation=first_validation,
                        attribution_uid=attribution_uid,
                        elapsed_ms=_elapsed_ms(started),
                        reason=reason,
                    )
                if pending and (
                    results.get(ProbeType.HTTPS, ProbeResult.failed()).is_successful
                    or results.get(ProbeType.HTTP, ProbeResult.failed()).is_portal
                ):
                    reason = "after a conclusive result"
                    break
        finally:
            stop.set()
            executor.shutdown(wait=False, cancel_futures=True)

        # Whatever was still running when the loop ended is reported as
        # abandoned, even if it finishes while being reported.
        for url, probe_type in probes.values():
            if probe_type not in results:
                results[probe_type] = self._abandon(
                    url,
                    probe_type,
                    first_validation=first_validation,
                    attribution_uid=attribution_uid,
                    elapsed_ms=_elapsed_ms(started),
                    reason=reason,
                )
        https_result = results[ProbeType.HTTPS]
        http_result = results[ProbeType.HTTP]

        if http_result.is_portal:
            return http_result
        # An HTTPS portal is not expected, but it is conclusive all the same.
        if https_result.is_portal or https_result.is_successful:
            return https_result

        fallback_url = self.fallbacks.next_url()
        if fallback_url is not None and not _is_set(cancel):
            fallback_result = self.probe(
                fallback_url,
                ProbeType.FALLBACK,
                resolve=False,
                attribution_uid=attribution_uid,
                first_validation=first_validation,
                cancel=cancel,
            )
            if fallback_result.is_portal:
                return fallback_result

        if not http_result.is_failed:
            return http_result
        return https_result


__all__ = ["CANCEL_POLL_INTERVAL", "ProbeEngine", "RACE_WORKERS", "SINGLE_PROBE_GRACE"]
