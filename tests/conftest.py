"""Shared test fixtures for the pagepress test suite."""

from __future__ import annotations

import json
import time

import pytest

from pagepress.config import PagepressConfig
from pagepress.converter import HtmlToBlockConverter
from pagepress.host import InMemoryMediaLibrary, InMemoryMetaStore, InMemoryPageHost, MetaStoreSeoMeta
from pagepress.models import InboundRequest
from pagepress.publisher import PublishOrchestrator
from pagepress.security import sign_request

API_KEY = "test-api-key-1234"


class RecordingMetrics:
    """Metrics hook that records every call for later assertions."""

    def __init__(self) -> None:
        self.increments: list[tuple[str, int, dict | None]] = []
        self.timings: list[tuple[str, float, dict | None]] = []

    def increment(self, name: str, value: int = 1, tags: dict | None = None) -> None:
        self.increments.append((name, value, tags))

    def timing(self, name: str, ms: float, tags: dict | None = None) -> None:
        self.timings.append((name, ms, tags))

    def count(self, name: str) -> int:
        return sum(value for n, value, _ in self.increments if n == name)


class FakeClock:
    """Settable wall clock."""

    def __init__(self, now: float = 1_750_000_000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def make_request(
    payload: dict | None = None,
    *,
    method: str = "POST",
    path: str = "/publish-page",
    api_key: str | None = API_KEY,
    sign: bool = False,
    headers: dict | None = None,
    remote_addr: str = "203.0.113.10",
    body: bytes | None = None,
) -> InboundRequest:
    """Build an :class:`InboundRequest` carrying *payload* as JSON."""
    raw = body if body is not None else (json.dumps(payload).encode() if payload is not None else b"")
    all_headers: dict[str, str] = {"Content-Type": "application/json"}
    if api_key is not None:
        all_headers["X-Api-Key"] = api_key
    if sign:
        all_headers.update(sign_request(API_KEY, raw, int(time.time())))
    all_headers.update(headers or {})
    return InboundRequest(
        method=method,
        path=path,
        headers=all_headers,
        body=raw,
        remote_addr=remote_addr,
    )


def publish_payload(
    slug: str = "pricing",
    html: str = "<h1>Pricing plans</h1><p>Simple pricing for every team.</p>",
    **overrides,
) -> dict:
    """Return a minimal valid publish body."""
    payload: dict = {
        "page": {"title": "Pricing plans for teams", "slug": slug},
        "content": {"html": html},
    }
    for key, value in overrides.items():
        payload[key] = value
    return payload


@pytest.fixture
def metrics() -> RecordingMetrics:
    return RecordingMetrics()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def config(metrics: RecordingMetrics) -> PagepressConfig:
    """Default test configuration with a known API key."""
    return PagepressConfig(api_key=API_KEY, metrics=metrics)


@pytest.fixture
def host() -> InMemoryPageHost:
    return InMemoryPageHost()


@pytest.fixture
def meta() -> InMemoryMetaStore:
    return InMemoryMetaStore()


@pytest.fixture
def media() -> InMemoryMediaLibrary:
    return InMemoryMediaLibrary()


@pytest.fixture
def seo(meta: InMemoryMetaStore) -> MetaStoreSeoMeta:
    return MetaStoreSeoMeta(meta)


@pytest.fixture
def converter(config: PagepressConfig) -> HtmlToBlockConverter:
    """Converter targeting the core widget family."""
    return HtmlToBlockConverter(config)


@pytest.fixture
def orchestrator(
    config: PagepressConfig,
    host: InMemoryPageHost,
    meta: InMemoryMetaStore,
    seo: MetaStoreSeoMeta,
    media: InMemoryMediaLibrary,
) -> PublishOrchestrator:
    return PublishOrchestrator(config, host, meta, seo, media)


@pytest.fixture
def inbound():
    """Factory for :class:`InboundRequest` objects (see :func:`make_request`)."""
    return make_request


@pytest.fixture
def payload():
    """Factory for valid publish bodies (see :func:`publish_payload`)."""
    return publish_payload
