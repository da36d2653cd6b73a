# SPDX-FileCopyrightText: 2025 Theori Inc.
# SPDX-License-Identifier: AGPL-3.0-or-later

"""High-level captivecheck facade for one-shot checks and per-network monitors."""

from __future__ import annotations

import logging
import threading
from contextlib import suppress

from .config import ValidationSettings, load_validation_settings
from .events import EventSink, LoggingEventSink
from .http.client import HttpClient, create_default_http_client
from .models.network import Network
from .models.probe import ProbeResult
from .monitor.machine import Listener, NetworkMonitor
from .monitor.scheduler import Scheduler, ThreadingScheduler
from .monitor.signin import LoggingSignInLauncher, SignInLauncher
from .probe.dns import Resolver
from .probe.engine import ProbeEngine
from .probe.validation_log import ValidationLog

logger = logging.getLogger(__name__)


class CaptiveCheck:
    """
    Convenience wrapper that shares one HTTP client, settings and sinks across networks.

    Each connected network gets its own ``NetworkMonitor`` (and probe engine, so
    fallback rotation and validation logs stay per network).
    """

    def __init__(
        self,
        settings: ValidationSettings | None = None,
        http_client: HttpClient | None = None,
        *,
        event_sink: EventSink | None = None,
        launcher: SignInLauncher | None = None,
        scheduler: Scheduler | None = None,
        resolver: Resolver | None = None,
    ):
        self.settings = settings or load_validation_settings()
        self.http_client = http_client or create_default_http_client(self.settings)
        self.event_sink = event_sink if event_sink is not None else LoggingEventSink()
        self.launcher = launcher or LoggingSignInLauncher()
        self.scheduler = scheduler or ThreadingScheduler()
        self.resolver = resolver
        self._monitors: dict[int, NetworkMonitor] = {}
        self._lock = threading.Lock()

    def engine(self, network: Network | None = None) -> ProbeEngine:
        label = network.label if network is not None else ""
        return ProbeEngine(
            self.settings,
            self.http_client,
            resolver=self.resolver,
            event_sink=self.event_sink,
            validation_log=ValidationLog(label),
            network_id=network.net_id if network is not None else None,
        )

    def check(self, network: Network | None = None, *, use_https: bool | None = None) -> ProbeResult:
        """Run a single validation probe and return its result."""
        return self.engine(network).validate(network, use_https=use_https)

    def monitor(self, network: Network, listener: Listener | None = None, *, start: bool = True) -> NetworkMonitor:
        """Create and register a monitor for ``network``; the caller reports connectivity."""
        monitor = NetworkMonitor(
            network,
            engine=self.engine(network),
            listener=listener,
            event_sink=self.event_sink,
            launcher=self.launcher,
            scheduler=self.scheduler,
        )
        with self._lock:
            previous = self._monitors.get(network.net_id)
            self._monitors[network.net_id] = monitor
        if previous is not None and not previous.stopped:
            logger.warning("Replacing live monitor for %s", network.label)
            previous.notify_network_disconnected()
        if start:
            monitor.start()
        return monitor

    def network_connected(self, network: Network, listener: Listener | None = None) -> NetworkMonitor:
        """Start (or re-affirm) validation of ``network``."""
        with self._lock:
            existing = self._monitors.get(network.net_id)
        if existing is not None and not existing.stopped:
            existing.notify_network_connected()
            return existing
        monitor = self.monitor(network, listener)
        monitor.notify_network_connected()
        return monitor

    def network_disconnected(self, net_id: int) -> None:
        with self._lock:
            monitor = self._monitors.pop(net_id, None)
        if monitor is not None:
            monitor.notify_network_disconnected()

    def get_monitor(self, net_id: int) -> NetworkMonitor | None:
        with self._lock:
            return self._monitors.get(net_id)

    def close(self, timeout: float | None = 1.0) -> None:
        with self._lock:
            monitors = list(self._monitors.values())
            self._monitors.clear()
        for monitor in monitors:
            monitor.stop(timeout)
        with suppress(Exception):
            if hasattr(self.http_client, "close"):
                self.http_client.close()

    def __enter__(self) -> CaptiveCheck:
        return self

    def __exit__(self, _exc_type, _exc, _tb) -> None:  # noqa: ANN001
        self.close()


__all__ = ["CaptiveCheck"]
