# SPDX-FileCopyrightText: 2025 Theori Inc.
# SPDX-License-Identifier: AGPL-3.0-or-later

import httpx

from captivecheck.config import ValidationSettings
from captivecheck.errors import ErrorCategory
from captivecheck.http import StubHttpClient, header_value, normalize_headers
from captivecheck.http.httpx_client import HttpxClient
from captivecheck.http.models import HttpRequest, HttpResponse


def _fake_httpx(requests, *, status=204, headers=None, chunks=(b"",)):
    class FakeHttpxClient:
        def __init__(self, follow_redirects, timeout, verify):  # noqa: ARG002
            self.follow_redirects = follow_redirects
            self.timeout = timeout
            self.verify = verify
            requests.append({"init": {"follow_redirects": follow_redirects, "timeout": timeout, "verify": verify}})

        def stream(self, method, url, headers=None, timeout=None, follow_redirects=None):
            requests.append(
                {"method": method, "url": url, "headers": headers, "timeout": timeout, "follow_redirects": follow_redirects}
            )

            class Resp:
                status_code = status
                encoding = "utf-8"

                def __init__(self, response_url: str):
                    self.url = httpx.URL(response_url)
                    self.headers = httpx.Headers(response_headers)

                def iter_bytes(self):  # pragma: no cover - exercised via HttpxClient
                    yield from chunks

            class _Ctx:
                def __enter__(self):  # pragma: no cover - exercised via HttpxClient
                    return Resp(url)

                def __exit__(self, exc_type, exc, tb):  # noqa: ARG002  # pragma: no cover
                    return None

            return _Ctx()

        def close(self):  # pragma: no cover - sanity check
            requests.append({"closed": True})

    response_headers = headers or {}
    return FakeHttpxClient


def test_httpx_client_builds_non_redirecting_client(monkeypatch):
    requests = []
    monkeypatch.setattr(httpx, "Client", _fake_httpx(requests))
    HttpxClient(ValidationSettings(socket_timeout=4.0, verify_ssl=False))
    assert requests[0]["init"] == {"follow_redirects": False, "timeout": 4.0, "verify": False}


def test_httpx_client_success_reads_at_most_one_byte(monkeypatch):
    requests = []
    fake = _fake_httpx(requests, status=200, headers={"Content-Type": "text/html"}, chunks=(b"<html>", b"more"))
    monkeypatch.setattr(httpx, "Client", fake)
    client = HttpxClient(ValidationSettings(user_agent="UA/1.0"))
    resp = client.request(HttpRequest(url="http://example/generate_204", timeout=1.5, attribution_uid=1000))

    assert resp.ok is True
    assert resp.status_code == 200
    assert resp.content == b"<"
    assert resp.meta["body_truncated"] is True
    assert resp.meta["attribution_uid"] == 1000
    assert resp.body_empty is False
    call = requests[1]
    assert call["headers"]["User-Agent"] == "UA/1.0"
    assert call["timeout"] == 1.5
    assert call["follow_redirects"] is False

    client.close()
    assert requests[-1] == {"closed": True}


def test_httpx_client_keeps_location_and_empty_body(monkeypatch):
    requests = []
    fake = _fake_httpx(requests, status=302, headers={"Location": "http://portal/login"})
    monkeypatch.setattr(httpx, "Client", fake)
    resp = HttpxClient(ValidationSettings()).request(HttpRequest(url="http://example/"))
    assert resp.status_code == 302
    assert resp.location == "http://portal/login"
    assert resp.body_empty is True
    assert resp.meta["body_bytes_read"] == 0


def test_httpx_client_error_is_folded_into_response(monkeypatch):
    requests = []

    class ErrorClient(_fake_httpx(requests)):
        def stream(self, *_, **__):
            raise httpx.ConnectTimeout("boom")

    monkeypatch.setattr(httpx, "Client", ErrorClient)
    resp = HttpxClient(ValidationSettings()).request(HttpRequest(url="https://example"))
    assert resp.ok is False
    assert resp.status_code is None
    assert resp.error_message == "boom"
    assert resp.error_type == "ConnectTimeout"
    assert resp.error_category is ErrorCategory.TIMEOUT


def test_response_content_length_parsing():
    assert HttpResponse(ok=True, headers={"Content-Length": "0"}).content_length == 0
    assert HttpResponse(ok=True, headers={"content-length": "12"}).content_length == 12
    assert HttpResponse(ok=True, headers={"Content-Length": "junk"}).content_length == -1
    assert HttpResponse(ok=True, headers={}).content_length == -1


def test_header_helpers_are_case_insensitive():
    headers = {"Content-Type": "text/plain", "X-Empty": None}
    assert normalize_headers(headers) == {"content-type": "text/plain", "x-empty": ""}
    assert header_value(headers, "content-type") == "text/plain"
    assert header_value(headers, "missing", "dflt") == "dflt"
    assert header_value([("Location", " http://a ")], "location") == "http://a"


def test_stub_client_missing_url_fails_and_records_requests():
    stub = StubHttpClient({"http://ok": HttpResponse(ok=True, status_code=204)})
    assert stub.request(HttpRequest(url="http://ok")).status_code == 204
    missing = stub.request(HttpRequest(url="http://nope"))
    assert missing.ok is False
    assert missing.error_category is ErrorCategory.CONNECTION_ERROR
    assert stub.requested_urls() == ["http://ok", "http://nope"]


def test_stub_client_accepts_factories():
    stub = StubHttpClient()
    stub.add("http://echo", lambda req: HttpResponse(ok=True, status_code=302, headers={"Location": req.url}))
    assert stub.request(HttpRequest(url="http://echo")).location == "http://echo"
