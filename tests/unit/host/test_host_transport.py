"""Tests for host/transport.py and host/retries.py.

Requests are answered by :class:`httpx.MockTransport`; ``time.sleep`` is
patched so retries run instantly and the chosen delays can be asserted.
"""

from __future__ import annotations

import httpx
import pytest

from pagepress.config import PagepressConfig
from pagepress.errors import PagepressHostError, PagepressPageNotFoundError
from pagepress.host import HostTransport
from pagepress.host.retries import compute_backoff, is_idempotent, should_retry

BASE = "https://site.test/wp-json"


class Responder:
    """Replays a fixed sequence of responses and records the requests."""

    def __init__(self, *responses) -> None:
        self.responses = list(responses)
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        item = self.responses.pop(0) if len(self.responses) > 1 else self.responses[0]
        if isinstance(item, Exception):
            raise item
        return item


@pytest.fixture
def sleeps(monkeypatch) -> list[float]:
    recorded: list[float] = []
    monkeypatch.setattr("pagepress.host.transport.time.sleep", recorded.append)
    return recorded


def _transport(responder, metrics=None, **overrides) -> HostTransport:
    config = PagepressConfig(
        host_base_url=BASE,
        retry_base_delay=0.5,
        retry_jitter=False,
        metrics=metrics,
        **overrides,
    )
    client = httpx.Client(base_url=BASE, transport=httpx.MockTransport(responder))
    return HostTransport(config, client=client)


class TestSuccess:
    def test_json_body(self, sleeps):
        responder = Responder(httpx.Response(200, json={"id": 7}))
        assert _transport(responder).request("GET", "/wp/v2/pages/7") == {"id": 7}
        assert responder.requests[0].url.path == "/wp-json/wp/v2/pages/7"

    @pytest.mark.parametrize("response", [httpx.Response(204), httpx.Response(200, content=b"")])
    def test_empty_body(self, sleeps, response):
        assert _transport(Responder(response)).request("POST", "/wp/v2/pages") == {}

    def test_metrics(self, sleeps, metrics):
        _transport(Responder(httpx.Response(200, json={})), metrics).request("GET", "/x")
        assert metrics.increments[0] == (
            "pagepress.host_requests_total", 1, {"method": "GET", "status": "200"}
        )
        assert metrics.timings[0][0] == "pagepress.host_request_duration_ms"


class TestErrors:
    def test_404_is_page_not_found(self, sleeps):
        response = httpx.Response(404, json={"code": "rest_post_invalid_id", "message": "Invalid post ID."})
        with pytest.raises(PagepressPageNotFoundError) as exc_info:
            _transport(Responder(response)).request("GET", "/wp/v2/pages/9")
        assert exc_info.value.context["host_code"] == "rest_post_invalid_id"
        assert "Invalid post ID." in str(exc_info.value)

    def test_client_error_not_retried(self, sleeps):
        responder = Responder(httpx.Response(400, json={"code": "rest_invalid_param", "message": "bad"}))
        with pytest.raises(PagepressHostError) as exc_info:
            _transport(responder).request("GET", "/wp/v2/pages")
        assert len(responder.requests) == 1
        assert exc_info.value.context["status_code"] == 400
        assert exc_info.value.status == 502

    def test_non_json_error_body(self, sleeps):
        with pytest.raises(PagepressHostError) as exc_info:
            _transport(Responder(httpx.Response(403, text="<html>Forbidden</html>"))).request("GET", "/x")
        assert "Forbidden" in str(exc_info.value)


class TestRetries:
    def test_server_error_then_success(self, sleeps, metrics):
        responder = Responder(httpx.Response(503), httpx.Response(200, json={"ok": True}))
        assert _transport(responder, metrics).request("GET", "/x") == {"ok": True}
        assert len(responder.requests) == 2
        assert sleeps == [0.5]
        assert metrics.count("pagepress.host_retries_total") == 1

    def test_backoff_doubles(self, sleeps):
        responder = Responder(httpx.Response(500), httpx.Response(500), httpx.Response(200, json={}))
        _transport(responder).request("GET", "/x")
        assert sleeps == [0.5, 1.0]

    def test_retry_after_honoured(self, sleeps):
        responder = Responder(
            httpx.Response(429, headers={"Retry-After": "4"}),
            httpx.Response(200, json={}),
        )
        _transport(responder).request("GET", "/x")
        assert sleeps == [4.0]

    def test_exhausted(self, sleeps):
        responder = Responder(httpx.Response(502))
        with pytest.raises(PagepressHostError) as exc_info:
            _transport(responder, retry_max_attempts=3).request("GET", "/x")
        assert len(responder.requests) == 3
        assert exc_info.value.context["status_code"] == 502

    def test_writes_never_retried(self, sleeps):
        responder = Responder(httpx.Response(503))
        with pytest.raises(PagepressHostError):
            _transport(responder).request("POST", "/wp/v2/pages", json={})
        assert len(responder.requests) == 1
        assert sleeps == []

    def test_network_error_retried_for_reads(self, sleeps):
        responder = Responder(httpx.ConnectError("refused"), httpx.Response(200, json={"id": 1}))
        assert _transport(responder).request("GET", "/x") == {"id": 1}

    def test_network_error_on_write(self, sleeps):
        responder = Responder(httpx.ReadTimeout("slow"))
        with pytest.raises(PagepressHostError) as exc_info:
            _transport(responder).request("POST", "/x")
        assert isinstance(exc_info.value.cause, httpx.ReadTimeout)
        assert exc_info.value.context["attempts"] == 1


class TestDebugDump:
    def test_password_redacted(self, sleeps, capsys):
        responder = Responder(httpx.Response(200, json={"echo": "app-pass-123"}))
        transport = _transport(responder, debug_dump_payload=True, host_app_password="app-pass-123")
        transport.request("POST", "/x", json={"title": "T"})
        err = capsys.readouterr().err
        assert '"response_status": 200' in err
        assert "app-pass-123" not in err


def test_builds_basic_auth_client():
    config = PagepressConfig(host_base_url=BASE, host_username="editor", host_app_password="pw")
    with HostTransport(config) as transport:
        assert isinstance(transport._client.auth, httpx.BasicAuth)


class TestRetryPolicy:
    @pytest.mark.parametrize("method,expected", [("GET", True), ("head", True), ("POST", False), ("PUT", False)])
    def test_is_idempotent(self, method, expected):
        assert is_idempotent(method) is expected

    @pytest.mark.parametrize(
        "method,status,exc,attempt,expected",
        [
            ("GET", 503, None, 0, True),
            ("GET", 429, None, 0, True),
            ("GET", 400, None, 0, False),
            ("GET", 503, None, 2, False),
            ("GET", None, httpx.ConnectError("x"), 0, True),
            ("GET", None, ValueError("x"), 0, False),
            ("POST", 503, None, 0, False),
            ("GET", None, None, 0, False),
        ],
    )
    def test_should_retry(self, method, status, exc, attempt, expected):
        assert should_retry(method, status, exc, attempt, 3) is expected

    def test_backoff_capped(self):
        assert compute_backoff(10, base=1.0, maximum=30.0, jitter=False) == 30.0
        assert compute_backoff(0, retry_after=120.0, maximum=30.0, jitter=False) == 30.0

    def test_jitter_range(self):
        for _ in range(50):
            assert 1.0 <= compute_backoff(1, base=1.0, jitter=True) <= 2.0
