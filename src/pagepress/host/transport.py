"""Synchronous HTTP transport for the host REST API.

Request lifecycle:

1. Send the request with basic auth (application password).
2. On ``2xx`` -- return the parsed JSON body.
3. On ``404`` -- raise :class:`PagepressPageNotFoundError`.
4. On ``429`` / ``5xx`` / network error for an idempotent method -- back
   off and retry up to ``retry_max_attempts``.
5. Anything else, and every failure of a write -- raise
   :class:`PagepressHostError` immediately.
"""

from __future__ import annotations

import json as _json
import sys
import time
from typing import Any

import httpx

from pagepress.config import PagepressConfig
from pagepress.errors import PagepressHostError, PagepressPageNotFoundError
from pagepress.observability import get_logger, resolve_metrics

from .retries import RETRYABLE_STATUSES, compute_backoff, should_retry

log = get_logger("pagepress.host")


def _parse_retry_after(response: httpx.Response) -> float | None:
    raw = response.headers.get("retry-after")
    if raw is None:
        return None
    try:
        return float(raw)
    except (ValueError, TypeError):
        return None


def _error_message(response: httpx.Response) -> tuple[str, str]:
    """Return ``(message, code)`` from a WordPress-style error body."""
    try:
        body = response.json()
    except ValueError:
        body = {}
    if not isinstance(body, dict):
        body = {}
    return str(body.get("message", response.text[:500])), str(body.get("code", ""))


def _raise_for_status(response: httpx.Response, method: str, path: str) -> None:
    status = response.status_code
    message, host_code = _error_message(response)
    if status == 404:
        raise PagepressPageNotFoundError(
            message=f"Not found on {method} {path}: {message}",
            context={"status_code": status, "host_code": host_code, "path": path},
        )
    raise PagepressHostError(
        message=f"Host error {status} on {method} {path}: {message}",
        context={
            "status_code": status,
            "host_code": host_code,
            "operation": f"{method} {path}",
        },
    )


def _dump_payload(
    config: PagepressConfig,
    method: str,
    url: str,
    payload: Any | None,
    response: httpx.Response,
) -> None:
    """Write a redacted debug dump of the request/response to stderr."""
    from pagepress.utils.redact import redact

    try:
        body: Any = response.json()
    except ValueError:
        body = response.text[:1000]
    dump = redact(
        {
            "method": method,
            "url": url,
            "request_body": payload,
            "response_status": response.status_code,
            "response_body": body,
        },
        config.host_app_password or None,
    )
    print(_json.dumps(dump, indent=2, default=str), file=sys.stderr)


class HostTransport:
    """HTTP transport with auth, read retries and typed errors.

    Parameters
    ----------
    config:
        Supplies the base URL, credentials, timeout and retry policy.
    client:
        Pre-built :class:`httpx.Client`; used by tests to inject a
        :class:`httpx.MockTransport`.
    """

    def __init__(self, config: PagepressConfig, client: httpx.Client | None = None) -> None:
        self._config = config
        self._metrics = resolve_metrics(config.metrics)
        if client is None:
            auth = None
            if config.host_username:
                auth = httpx.BasicAuth(config.host_username, config.host_app_password)
            client = httpx.Client(
                base_url=config.host_base_url,
                auth=auth,
                headers={"Accept": "application/json"},
                timeout=httpx.Timeout(config.timeout_seconds),
                proxy=config.http_proxy,
            )
        self._client = client

    def close(self) -> None:
        self._client.close()

    def __enter__(self) -> HostTransport:
        return self

    def __exit__(self, *exc: object) -> None:
        self.close()

    def request(self, method: str, path: str, **kwargs: Any) -> Any:
        """Execute a request and return its decoded JSON body.

        Parameters
        ----------
        method:
            HTTP method.  Only ``GET``/``HEAD``/``OPTIONS`` are retried.
        path:
            Path relative to ``host_base_url``.
        **kwargs:
            Forwarded to :meth:`httpx.Client.request`.

        Raises
        ------
        PagepressPageNotFoundError
            On 404 responses.
        PagepressHostError
            On any other failure.
        """
        config = self._config
        max_attempts = config.retry_max_attempts
        last_status: int | None = None
        last_exception: Exception | None = None

        for attempt in range(max_attempts):
            t0 = time.monotonic()
            try:
                response = self._client.request(method, path, **kwargs)
            except (httpx.TimeoutException, httpx.NetworkError) as exc:
                last_exception, last_status = exc, None
                self._metrics.increment(
                    "pagepress.host_requests_total",
                    tags={"method": method, "status": "error"},
                )
                log.warning(
                    "Host request network error",
                    extra={
                        "extra_fields": {
                            "op": "host_request",
                            "method": method,
                            "path": path,
                            "attempt": attempt + 1,
                            "error": str(exc),
                        }
                    },
                )
                if not should_retry(method, None, exc, attempt, max_attempts):
                    raise PagepressHostError(
                        message=f"Network error on {method} {path}: {exc}",
                        context={"operation": f"{method} {path}", "attempts": attempt + 1},
                        cause=exc,
                    ) from exc
                self._sleep_before_retry(method, attempt, None, "network_error")
                continue

            elapsed_ms = (time.monotonic() - t0) * 1000
            last_status, last_exception = response.status_code, None
            tags = {"method": method, "status": str(response.status_code)}
            self._metrics.increment("pagepress.host_requests_total", tags=tags)
            self._metrics.timing("pagepress.host_request_duration_ms", elapsed_ms, tags=tags)

            if config.debug_dump_payload:
                _dump_payload(config, method, str(response.url), kwargs.get("json"), response)

            if 200 <= response.status_code < 300:
                if response.status_code == 204 or not response.content:
                    return {}
                return response.json()

            if response.status_code not in RETRYABLE_STATUSES:
                _raise_for_status(response, method, path)

            if not should_retry(method, response.status_code, None, attempt, max_attempts):
                _raise_for_status(response, method, path)

            self._sleep_before_retry(
                method,
                attempt,
                _parse_retry_after(response) if response.status_code == 429 else None,
                "rate_limited" if response.status_code == 429 else "server_error",
            )

        raise PagepressHostError(
            message=f"All {max_attempts} attempts exhausted for {method} {path}",
            context={
                "operation": f"{method} {path}",
                "attempts": max_attempts,
                "status_code": last_status,
            },
            cause=last_exception,
        )

    def _sleep_before_retry(
        self,
        method: str,
        attempt: int,
        retry_after: float | None,
        reason: str,
    ) -> None:
        delay = compute_backoff(
            attempt,
            base=self._config.retry_base_delay,
            maximum=self._config.retry_max_delay,
            jitter=self._config.retry_jitter,
            retry_after=retry_after,
        )
        self._metrics.increment(
            "pagepress.host_retries_total",
            tags={"method": method, "reason": reason},
        )
        time.sleep(delay)
