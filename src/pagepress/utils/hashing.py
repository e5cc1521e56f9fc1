"""Digest helpers for storage keys and signatures.

Idempotency keys and client addresses are never stored verbatim; they are
reduced to a SHA-256 hex digest first.  :func:`hmac_sha256` is the single
place request signatures are computed, for both signing and verifying.
"""

from __future__ import annotations

import hashlib
import hmac
import json


def sha256_hex(data: str) -> str:
    """Return the hex-encoded SHA-256 digest of *data*.

    The string is encoded as UTF-8 before hashing.

    Examples
    --------
    >>> sha256_hex("hello")[:16]
    '2cf24dba5fb0a30e'
    """
    return hashlib.sha256(data.encode("utf-8")).hexdigest()


def hash_dict(d: dict) -> str:
    """Return the SHA-256 of a JSON-serialized dict.

    Keys are sorted and non-ASCII text is preserved, so two dicts with the
    same content always hash identically.

    Examples
    --------
    >>> hash_dict({"b": 2, "a": 1}) == hash_dict({"a": 1, "b": 2})
    True
    """
    return sha256_hex(json.dumps(d, sort_keys=True, ensure_ascii=False))


def hmac_sha256(secret: str, message: bytes) -> str:
    """Return the lowercase hex HMAC-SHA256 of *message* under *secret*."""
    return hmac.new(secret.encode("utf-8"), message, hashlib.sha256).hexdigest()
