"""Metrics hook protocol and no-op default implementation.

pagepress emits counters and timings at the points an operator cares about
(publishes, auth rejections, idempotency hits, version pruning, host
requests).  A :class:`NoopMetricsHook` is used unless the deployment passes
its own backend through ``PagepressConfig.metrics``.

Emitted metric names:

* ``pagepress.publish_total``             -- counter, tag ``action``
* ``pagepress.publish_failures_total``    -- counter, tag ``code``
* ``pagepress.publish_duration_ms``       -- timing
* ``pagepress.auth_failures_total``       -- counter, tag ``reason``
* ``pagepress.rate_limited_total``        -- counter
* ``pagepress.idempotency_hits_total``    -- counter
* ``pagepress.versions_pruned_total``     -- counter
* ``pagepress.conversion_warnings_total`` -- counter, tag ``code``
* ``pagepress.host_requests_total``       -- counter
* ``pagepress.host_request_duration_ms``  -- timing
* ``pagepress.host_retries_total``        -- counter
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable


@runtime_checkable
class MetricsHook(Protocol):
    """Protocol that any metrics backend must satisfy.

    Tags are string key-value pairs; backends translate them into their own
    labelling mechanism.
    """

    def increment(
        self,
        name: str,
        value: int = 1,
        tags: dict[str, str] | None = None,
    ) -> None:
        """Increment a counter metric."""
        ...

    def timing(
        self,
        name: str,
        ms: float,
        tags: dict[str, str] | None = None,
    ) -> None:
        """Record a duration in milliseconds."""
        ...


class NoopMetricsHook:
    """Metrics backend that discards every data point.

    Lets call-sites emit unconditionally instead of guarding on ``None``.
    """

    __slots__ = ()

    def increment(
        self,
        name: str,
        value: int = 1,
        tags: dict[str, str] | None = None,
    ) -> None:
        pass

    def timing(
        self,
        name: str,
        ms: float,
        tags: dict[str, str] | None = None,
    ) -> None:
        pass


def resolve_metrics(metrics: object | None) -> MetricsHook:
    """Return *metrics* when given, else a shared no-op hook."""
    if metrics is None:
        return _NOOP
    return metrics  # type: ignore[return-value]


_NOOP = NoopMetricsHook()
