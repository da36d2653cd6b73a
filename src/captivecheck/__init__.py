# SPDX-FileCopyrightText: 2025 Theori Inc.
# SPDX-License-Identifier: AGPL-3.0-or-later

"""
captivecheck package entrypoint.

Decides whether a freshly connected network reaches the internet, sits behind a
captive portal, or is unusable, and keeps re-validating it. Probing is done with
an injectable HTTP client; each network is driven by a small state machine run
as a single-threaded actor.
"""

from .config import ValidationSettings, load_validation_settings
from .errors import CaptiveCheckError, ErrorCategory
from .events import EventSink, LoggingEventSink, MemoryEventSink
from .http import (
    HttpClient,
    HttpRequest,
    HttpResponse,
    HttpxClient,
    StubHttpClient,
    create_default_http_client,
)
from .log import setup_logging
from .models import (
    MonitorState,
    Network,
    Outcome,
    ProbeResult,
    ProbeType,
    ShowSignInPrompt,
    ValidationResult,
    Verdict,
)
from .monitor import (
    BackoffPolicy,
    BrowserSignInLauncher,
    LoggingSignInLauncher,
    ManualScheduler,
    NetworkMonitor,
    SignInIntent,
    ThreadingScheduler,
)
from .probe import ProbeEngine
from .runtime import CaptiveCheck
from .version import __version__

__all__ = [
    "BackoffPolicy",
    "BrowserSignInLauncher",
    "CaptiveCheck",
    "CaptiveCheckError",
    "ErrorCategory",
    "EventSink",
    "HttpClient",
    "HttpRequest",
    "HttpResponse",
    "HttpxClient",
    "LoggingEventSink",
    "LoggingSignInLauncher",
    "ManualScheduler",
    "MemoryEventSink",
    "MonitorState",
    "Network",
    "NetworkMonitor",
    "Outcome",
    "ProbeEngine",
    "ProbeResult",
    "ProbeType",
    "ShowSignInPrompt",
    "SignInIntent",
    "StubHttpClient",
    "ThreadingScheduler",
    "ValidationResult",
    "ValidationSettings",
    "Verdict",
    "create_default_http_client",
    "load_validation_settings",
    "setup_logging",
    "__version__",
]
