"""HMAC request signing.

A signed request carries two headers:

* ``X-Timestamp`` -- Unix seconds at signing time.
* ``X-Signature`` -- lowercase hex ``HMAC-SHA256(secret, timestamp || body)``
  where ``timestamp`` is the header value exactly as sent and ``body`` is
  the raw request body.

:func:`sign_request` is what a client runs; :func:`verify_signature` is
what the auth gate runs.
"""

from __future__ import annotations

import hmac
import time

from pagepress.errors import PagepressInvalidSignatureError, PagepressRequestExpiredError
from pagepress.utils.hashing import hmac_sha256

SIGNATURE_HEADER = "X-Signature"
TIMESTAMP_HEADER = "X-Timestamp"


def sign_request(secret: str, body: bytes, timestamp: int | None = None) -> dict[str, str]:
    """Return the signature headers for *body*.

    Parameters
    ----------
    secret:
        Shared signing secret.
    body:
        Raw request body that will be sent.
    timestamp:
        Unix seconds; defaults to now.
    """
    ts = str(int(time.time()) if timestamp is None else timestamp)
    return {
        TIMESTAMP_HEADER: ts,
        SIGNATURE_HEADER: hmac_sha256(secret, ts.encode("utf-8") + body),
    }


def verify_signature(
    secret: str,
    body: bytes,
    timestamp: str,
    signature: str,
    *,
    window_seconds: int,
    now: float | None = None,
    client_ip: str = "",
) -> None:
    """Raise unless *signature* is a fresh, valid HMAC of *body*.

    Raises
    ------
    PagepressRequestExpiredError
        The timestamp is more than *window_seconds* away from *now*.
    PagepressInvalidSignatureError
        The timestamp is not an integer or the digest does not match.
    """
    try:
        ts = int(timestamp.strip())
    except ValueError as exc:
        raise PagepressInvalidSignatureError(
            message="Signature timestamp is not a Unix time",
            context={"client_ip": client_ip, "reason": "malformed_timestamp"},
            cause=exc,
        ) from exc

    current = time.time() if now is None else now
    skew = abs(current - ts)
    if skew > window_seconds:
        raise PagepressRequestExpiredError(
            message="Signed request has expired",
            context={
                "client_ip": client_ip,
                "skew_seconds": int(skew),
                "window_seconds": window_seconds,
            },
        )

    expected = hmac_sha256(secret, timestamp.strip().encode("utf-8") + body)
    if not hmac.compare_digest(expected, signature.strip().lower()):
        raise PagepressInvalidSignatureError(
            message="Request signature does not match",
            context={"client_ip": client_ip, "reason": "mismatch"},
        )
