# SPDX-FileCopyrightText: 2025 Theori Inc.
# SPDX-License-Identifier: AGPL-3.0-or-later

import socket
import ssl

import httpx

from captivecheck import config
from captivecheck.config import (
    DEFAULT_HTTP_URL,
    DEFAULT_HTTPS_URL,
    DEFAULT_USER_AGENT,
    MappingSettingsStore,
    ValidationSettings,
    is_valid_probe_url,
    load_validation_settings,
    parse_url_list,
)
from captivecheck.errors import ErrorCategory, categorize_exception, error_category_to_reason


def test_defaults_without_overrides():
    settings = load_validation_settings(MappingSettingsStore())
    assert settings.https_url == DEFAULT_HTTPS_URL
    assert settings.http_url == DEFAULT_HTTP_URL
    assert settings.fallback_urls == (config.DEFAULT_FALLBACK_URL, config.DEFAULT_OTHER_FALLBACK_URLS)
    assert settings.user_agent == DEFAULT_USER_AGENT
    assert settings.enable_captive_check is True
    assert settings.use_https is True
    assert settings.socket_timeout == 10.0
    assert settings.probe_race_timeout == 3.0


def test_env_overrides(monkeypatch):
    monkeypatch.setenv("CAPTIVECHECK_HTTPS_URL", "https://example.test/204")
    monkeypatch.setenv("CAPTIVECHECK_HTTP_URL", "http://example.test/204")
    monkeypatch.setenv("CAPTIVECHECK_FALLBACK_URL", "http://fb1.test/204")
    monkeypatch.setenv("CAPTIVECHECK_OTHER_FALLBACK_URLS", "http://fb2.test/204, ,not-a-url,http://fb3.test/204")
    monkeypatch.setenv("CAPTIVECHECK_USER_AGENT", "CustomAgent/1.0")
    monkeypatch.setenv("CAPTIVECHECK_USE_HTTPS", "0")
    monkeypatch.setenv("CAPTIVECHECK_SOCKET_TIMEOUT", "2.5")
    monkeypatch.setenv("CAPTIVECHECK_VERIFY_SSL", "false")

    settings = ValidationSettings.from_env()

    assert settings.https_url == "https://example.test/204"
    assert settings.http_url == "http://example.test/204"
    assert settings.fallback_urls == ("http://fb1.test/204", "http://fb2.test/204", "http://fb3.test/204")
    assert settings.user_agent == "CustomAgent/1.0"
    assert settings.use_https is False
    assert settings.socket_timeout == 2.5
    assert settings.verify_ssl is False


def test_invalid_numbers_fall_back_to_defaults():
    store = MappingSettingsStore({"SOCKET_TIMEOUT": "soon", "PROBE_RACE_TIMEOUT": "-1"})
    settings = load_validation_settings(store)
    assert settings.socket_timeout == config.SOCKET_TIMEOUT
    assert settings.probe_race_timeout == config.PROBE_RACE_TIMEOUT


def test_region_cn_switches_default_urls():
    settings = load_validation_settings(MappingSettingsStore({"region": "CN"}))
    assert settings.https_url == config.DEFAULT_HTTPS_URL_CN
    assert settings.http_url == config.DEFAULT_HTTP_URL_CN
    assert settings.fallback_urls[0] == config.DEFAULT_FALLBACK_URL_CN


def test_captive_portal_mode_ignore_disables_check():
    settings = load_validation_settings(MappingSettingsStore({"CAPTIVE_PORTAL_MODE": "ignore"}))
    assert settings.enable_captive_check is False
    settings = load_validation_settings(MappingSettingsStore({"CAPTIVE_PORTAL_MODE": "avoid"}))
    assert settings.enable_captive_check is True


def test_unparseable_fallback_list_is_empty():
    store = MappingSettingsStore({"FALLBACK_URL": "junk", "OTHER_FALLBACK_URLS": ""})
    assert load_validation_settings(store).fallback_urls == ()


def test_url_validation_helpers():
    assert is_valid_probe_url("http://a.test/x")
    assert is_valid_probe_url("https://a.test")
    assert not is_valid_probe_url("ftp://a.test")
    assert not is_valid_probe_url("http://")
    assert not is_valid_probe_url(None)
    assert parse_url_list("http://a.test, https://b.test ,") == ("http://a.test", "https://b.test")


def test_categorize_exception_variants():
    assert categorize_exception(httpx.ReadTimeout("slow")) is ErrorCategory.TIMEOUT
    assert categorize_exception(httpx.UnsupportedProtocol("gopher")) is ErrorCategory.INVALID_URL
    assert categorize_exception(httpx.ConnectError("refused")) is ErrorCategory.CONNECTION_ERROR
    assert categorize_exception(ssl.SSLError("bad cert")) is ErrorCategory.SSL_ERROR
    assert categorize_exception(socket.gaierror("nxdomain")) is ErrorCategory.DNS_ERROR
    assert categorize_exception(ConnectionResetError()) is ErrorCategory.CONNECTION_ERROR
    assert categorize_exception(UnicodeError("label empty or too long")) is ErrorCategory.INVALID_URL
    assert categorize_exception(ValueError("other")) is ErrorCategory.UNKNOWN_ERROR


def test_connect_error_caused_by_resolver_is_dns():
    try:
        try:
            raise socket.gaierror("nxdomain")
        except socket.gaierror as inner:
            raise httpx.ConnectError("cannot connect") from inner
    except httpx.ConnectError as exc:
        assert categorize_exception(exc) is ErrorCategory.DNS_ERROR


def test_error_reasons():
    assert "timeout" in error_category_to_reason(ErrorCategory.TIMEOUT).lower()
    assert error_category_to_reason(ErrorCategory.NONE) == ""
    assert error_category_to_reason(None) == ""
