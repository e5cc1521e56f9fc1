"""Retry decision logic and exponential backoff for host requests.

Only idempotent reads are ever retried.  A page write that times out may
still have been applied by the host, so writes fail fast and leave the
decision to the caller.
"""

from __future__ import annotations

import random

import httpx

RETRYABLE_STATUSES: frozenset[int] = frozenset({429, 500, 502, 503, 504})

_RETRYABLE_EXCEPTIONS: tuple[type[Exception], ...] = (
    httpx.TimeoutException,
    httpx.NetworkError,
)

_IDEMPOTENT_METHODS: frozenset[str] = frozenset({"GET", "HEAD", "OPTIONS"})


def is_idempotent(method: str) -> bool:
    return method.upper() in _IDEMPOTENT_METHODS


def should_retry(
    method: str,
    status_code: int | None,
    exception: Exception | None,
    attempt: int,
    max_attempts: int,
) -> bool:
    """Decide whether a request should be retried.

    Parameters
    ----------
    method:
        HTTP method of the request; non-idempotent methods never retry.
    status_code:
        HTTP status of the response, or ``None`` if no response arrived.
    exception:
        The transport exception, or ``None`` if a response arrived.
    attempt:
        The current attempt number (0-indexed).
    max_attempts:
        Maximum total attempts allowed (including the initial request).
    """
    if not is_idempotent(method):
        return False
    if attempt + 1 >= max_attempts:
        return False
    if exception is not None:
        return isinstance(exception, _RETRYABLE_EXCEPTIONS)
    if status_code is not None:
        return status_code in RETRYABLE_STATUSES
    return False


def compute_backoff(
    attempt: int,
    base: float = 1.0,
    maximum: float = 30.0,
    jitter: bool = True,
    retry_after: float | None = None,
) -> float:
    """Return the delay in seconds before the next attempt.

    Uses ``Retry-After`` when the host sent one, otherwise
    ``base * 2**attempt`` capped at *maximum*.  Jitter scales the delay to
    between 50 % and 100 % of its value.
    """
    if retry_after is not None:
        delay = min(retry_after, maximum)
    else:
        delay = min(base * (2 ** attempt), maximum)

    if jitter:
        delay *= 0.5 + random.random() * 0.5

    return delay
