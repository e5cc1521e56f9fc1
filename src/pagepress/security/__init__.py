"""Authentication, rate limiting, allow-listing and request signing."""

from __future__ import annotations

from .auth import AuthGate, extract_api_key
from .network import IpAllowList, resolve_client_ip
from .rate_limit import AttemptCounter, FixedWindowRateLimiter
from .signing import SIGNATURE_HEADER, TIMESTAMP_HEADER, sign_request, verify_signature

__all__ = [
    "SIGNATURE_HEADER",
    "TIMESTAMP_HEADER",
    "AttemptCounter",
    "AuthGate",
    "FixedWindowRateLimiter",
    "IpAllowList",
    "extract_api_key",
    "resolve_client_ip",
    "sign_request",
    "verify_signature",
]
