# SPDX-FileCopyrightText: 2025 Theori Inc.
# SPDX-License-Identifier: AGPL-3.0-or-later

"""Configuration helpers for captivecheck.

Settings are read once, when a validation session is created, from a read-only
key/value store. The default store is the process environment, evaluated at
call time so tests and long-running hosts can change it between sessions.
"""

from __future__ import annotations

import logging
import os
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Protocol
from urllib.parse import urlsplit

logger = logging.getLogger(__name__)

ENV_PREFIX = "CAPTIVECHECK_"

DEFAULT_HTTPS_URL = "https://www.google.com/generate_204"
DEFAULT_HTTP_URL = "http://connectivitycheck.gstatic.com/generate_204"
DEFAULT_FALLBACK_URL = "http://www.google.com/gen_204"
DEFAULT_OTHER_FALLBACK_URLS = "http://play.googleapis.com/generate_204"

DEFAULT_HTTPS_URL_CN = "https://captive.v2ex.co/generate_204"
DEFAULT_HTTP_URL_CN = "http://captive.v2ex.co/generate_204"
DEFAULT_FALLBACK_URL_CN = "http://g.cn/generate_204"

DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (X11; Linux x86_64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/60.0.3112.32 Safari/537.36"
)

SOCKET_TIMEOUT = 10.0
PROBE_RACE_TIMEOUT = 3.0

CAPTIVE_PORTAL_MODE_PROMPT = "prompt"
CAPTIVE_PORTAL_MODE_IGNORE = "ignore"


class SettingsStore(Protocol):
    """Read-only key/value lookup for validation settings."""

    def get(self, key: str) -> str | None: ...


class EnvironmentSettingsStore:
    """Reads ``CAPTIVECHECK_<KEY>`` environment variables at lookup time."""

    def __init__(self, prefix: str = ENV_PREFIX):
        self.prefix = prefix

    def get(self, key: str) -> str | None:
        return os.getenv(f"{self.prefix}{key.upper()}")


class MappingSettingsStore:
    """Settings store backed by a plain mapping (tests, embedding hosts)."""

    def __init__(self, values: Mapping[str, str] | None = None):
        self._values = {str(k).upper(): v for k, v in (values or {}).items()}

    def get(self, key: str) -> str | None:
        return self._values.get(key.upper())


def _float_setting(store: SettingsStore, name: str, default: float) -> float:
    try:
        value = store.get(name)
        return float(value) if value is not None else default
    except ValueError:
        return default


def _bool_setting(store: SettingsStore, name: str, default: bool) -> bool:
    value = store.get(name)
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def is_valid_probe_url(url: str | None) -> bool:
    """Return True for absolute http(s) URLs with a host."""
    if not url:
        return False
    try:
        parts = urlsplit(str(url).strip())
    except ValueError:
        return False
    return parts.scheme in {"http", "https"} and bool(parts.hostname)


def parse_url_list(raw: str | None) -> tuple[str, ...]:
    """Split a comma-separated URL list, dropping blanks and malformed entries."""
    urls: list[str] = []
    for item in str(raw or "").split(","):
        candidate = item.strip()
        if not candidate:
            continue
        if not is_valid_probe_url(candidate):
            logger.warning("Bad URL: %s", candidate)
            continue
        urls.append(candidate)
    return tuple(urls)


@dataclass(frozen=True)
class ValidationSettings:
    """Immutable probe configuration, captured once per validation session."""

    https_url: str | None = DEFAULT_HTTPS_URL
    http_url: str | None = DEFAULT_HTTP_URL
    fallback_urls: tuple[str, ...] = field(default=(DEFAULT_FALLBACK_URL, DEFAULT_OTHER_FALLBACK_URLS))
    user_agent: str | None = DEFAULT_USER_AGENT
    enable_captive_check: bool = True
    use_https: bool = True
    socket_timeout: float = SOCKET_TIMEOUT
    probe_race_timeout: float = PROBE_RACE_TIMEOUT
    verify_ssl: bool = True

    @classmethod
    def from_store(cls, store: SettingsStore) -> ValidationSettings:
        """Create settings from a key/value store, falling back to defaults on bad values."""
        china = (store.get("REGION") or "").strip().lower() == "cn"
        https_default = DEFAULT_HTTPS_URL_CN if china else DEFAULT_HTTPS_URL
        http_default = DEFAULT_HTTP_URL_CN if china else DEFAULT_HTTP_URL
        fallback_default = DEFAULT_FALLBACK_URL_CN if china else DEFAULT_FALLBACK_URL

        first_fallback = store.get("FALLBACK_URL")
        other_fallbacks = store.get("OTHER_FALLBACK_URLS")
        joined = ",".join(
            [
                first_fallback if first_fallback is not None else fallback_default,
                other_fallbacks if other_fallbacks is not None else DEFAULT_OTHER_FALLBACK_URLS,
            ]
        )
        fallback_urls = parse_url_list(joined)
        if not fallback_urls:
            logger.error("could not create any url from %s", joined)

        mode = (store.get("CAPTIVE_PORTAL_MODE") or CAPTIVE_PORTAL_MODE_PROMPT).strip().lower()
        socket_timeout = _float_setting(store, "SOCKET_TIMEOUT", SOCKET_TIMEOUT)
        race_timeout = _float_setting(store, "PROBE_RACE_TIMEOUT", PROBE_RACE_TIMEOUT)

        return cls(
            https_url=store.get("HTTPS_URL") or https_default,
            http_url=store.get("HTTP_URL") or http_default,
            fallback_urls=fallback_urls,
            user_agent=store.get("USER_AGENT") or DEFAULT_USER_AGENT,
            enable_captive_check=mode != CAPTIVE_PORTAL_MODE_IGNORE,
            use_https=_bool_setting(store, "USE_HTTPS", True),
            socket_timeout=socket_timeout if socket_timeout > 0 else SOCKET_TIMEOUT,
            probe_race_timeout=race_timeout if race_timeout > 0 else PROBE_RACE_TIMEOUT,
            verify_ssl=_bool_setting(store, "VERIFY_SSL", True),
        )

    @classmethod
    def from_env(cls) -> ValidationSettings:
        """Create settings from environment variables (evaluated at call time)."""
        return cls.from_store(EnvironmentSettingsStore())


def load_validation_settings(store: SettingsStore | None = None) -> ValidationSettings:
    """Load validation settings from ``store`` (environment by default)."""
    if store is None:
        return ValidationSettings.from_env()
    return ValidationSettings.from_store(store)


__all__ = [
    "DEFAULT_HTTPS_URL",
    "DEFAULT_HTTP_URL",
    "DEFAULT_USER_AGENT",
    "EnvironmentSettingsStore",
    "MappingSettingsStore",
    "SettingsStore",
    "ValidationSettings",
    "is_valid_probe_url",
    "load_validation_settings",
    "parse_url_list",
]
