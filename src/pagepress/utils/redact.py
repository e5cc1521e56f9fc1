"""Payload redaction for safe logging.

Inbound publish payloads, header maps and host API bodies pass through
:func:`redact` before they reach a log line or a debug dump:

* values under **sensitive keys** (``api_key``, ``password``, ``secret``,
  ``token``, ``authorization``, ``signature`` ...) become ``[REDACTED]``;
* **Bearer credentials** embedded in free text are masked;
* **Base64 data URIs** are replaced with ``<data_uri:N_bytes>``;
* very long HTML/text values are truncated to keep log lines bounded.
"""

from __future__ import annotations

import base64
import binascii
import copy
import re
from typing import Any

REDACTED = "[REDACTED]"

_DATA_URI_RE = re.compile(
    r"data:[a-zA-Z0-9_.+-]+/[a-zA-Z0-9_.+-]+;base64,[A-Za-z0-9+/=]+"
)

_BEARER_RE = re.compile(r"(Bearer\s+)\S+", re.IGNORECASE)

# Substrings: a key containing any of these (case-insensitive) is redacted.
_SENSITIVE_KEY_PATTERNS: frozenset[str] = frozenset({
    "api_key",
    "api-key",
    "apikey",
    "password",
    "secret",
    "token",
    "authorization",
    "signature",
    "cookie",
    "credential",
})

_MAX_VALUE_LENGTH = 2000


def _estimate_data_uri_bytes(uri: str) -> int:
    """Return the approximate decoded byte length of a data URI."""
    b64_part = uri.split(";base64,", 1)[-1]
    try:
        return len(base64.b64decode(b64_part, validate=True))
    except (binascii.Error, ValueError):
        return len(b64_part) * 3 // 4


def _is_sensitive(key: Any) -> bool:
    if not isinstance(key, str):
        return False
    lowered = key.lower()
    return any(pat in lowered for pat in _SENSITIVE_KEY_PATTERNS)


def _redact_value(value: Any, secret: str | None) -> Any:
    if isinstance(value, dict):
        return _redact_dict(value, secret)
    if isinstance(value, (list, tuple)):
        return [_redact_value(item, secret) for item in value]
    if isinstance(value, str):
        if _DATA_URI_RE.search(value):
            value = _DATA_URI_RE.sub(
                lambda m: f"<data_uri:{_estimate_data_uri_bytes(m.group(0))}_bytes>",
                value,
            )
        value = _BEARER_RE.sub(lambda m: f"{m.group(1)}{REDACTED}", value)
        if secret and secret in value:
            value = value.replace(secret, REDACTED)
        if len(value) > _MAX_VALUE_LENGTH:
            value = f"{value[:_MAX_VALUE_LENGTH]}...<truncated:{len(value)}_chars>"
        return value
    if isinstance(value, (bytes, bytearray)):
        return f"<binary:{len(value)}_bytes>"
    return value


def _redact_dict(d: dict, secret: str | None) -> dict:
    result: dict = {}
    for key, value in d.items():
        if _is_sensitive(key):
            result[key] = REDACTED
        else:
            result[key] = _redact_value(value, secret)
    return result


def redact(payload: dict, secret: str | None = None) -> dict:
    """Return a deep copy of *payload* with sensitive data redacted.

    Parameters
    ----------
    payload:
        The dictionary to sanitize (a request body, header map, or host
        API payload).
    secret:
        A credential known to the caller.  Any verbatim occurrence of it
        inside string values is replaced as well.

    Returns
    -------
    dict
        A new dictionary; *payload* is never mutated.

    Examples
    --------
    >>> redact({"api_key": "k-123", "page": {"title": "Home"}})
    {'api_key': '[REDACTED]', 'page': {'title': 'Home'}}
    """
    return _redact_dict(copy.deepcopy(payload), secret)
