"""Runtime configuration for pagepress.

:class:`PagepressConfig` is a frozen-friendly dataclass that captures every
tuneable knob of the publish pipeline.  A single instance is injected into
the auth gate, the converter, the merger, the version store and the host
transport; none of them read global settings.

Two module-level constants hold defaults that are also useful on their own:

* :data:`DEFAULT_TRUSTED_IP_HEADERS` — headers consulted, in order, when
  resolving the client address behind a proxy or CDN.
* :data:`DEFAULT_HINT_ATTRIBUTES` — element attributes that carry an
  explicit widget hint for the HTML converter.
"""

from __future__ import annotations

import dataclasses
import ipaddress
from dataclasses import dataclass, field
from typing import Any, Literal

# ---------------------------------------------------------------------------
# Defaults
# ---------------------------------------------------------------------------

DEFAULT_TRUSTED_IP_HEADERS: list[str] = [
    "CF-Connecting-IP",
    "X-Real-IP",
    "X-Forwarded-For",
    "Client-IP",
]
"""Proxy headers consulted before the socket address, first match wins."""

DEFAULT_HINT_ATTRIBUTES: list[str] = [
    "data-widget",
    "data-elementor",
]
"""Attributes read for explicit widget hints, first present wins."""

_SECRET_FIELDS = frozenset({"api_key", "signing_secret", "host_app_password"})


# ---------------------------------------------------------------------------
# Configuration dataclass
# ---------------------------------------------------------------------------

@dataclass
class PagepressConfig:
    """Complete configuration for a pagepress deployment.

    Every parameter has a sensible default so that the only *required*
    value is ``api_key``; without it every request is rejected.

    Parameters
    ----------
    api_key:
        Shared secret callers present as a bearer token, an ``X-Api-Key``
        header or an ``api_key`` query parameter.  Never logged.
    signing_secret:
        HMAC secret for signed requests.  Falls back to ``api_key`` when
        empty.
    require_signature:
        Reject mutating requests that carry no signature headers at all.
        By default signing is opportunistic.
    request_expiry_seconds:
        Maximum accepted skew between the signed timestamp and now.
    rate_limit_enabled:
        Enforce the per-client fixed-window quota.
    rate_limit_max_requests:
        Requests allowed per client per window.
    rate_limit_window_seconds:
        Length of the fixed window.
    failed_attempt_ttl_seconds:
        How long the informational failed-auth counter per client lives.
    ip_allowlist_enabled:
        Restrict callers to :attr:`ip_allowlist`.  An empty list admits
        every address even when enabled.
    ip_allowlist:
        Exact addresses or CIDR ranges (IPv4 and IPv6).
    trusted_ip_headers:
        Proxy headers used to resolve the client address.
    idempotency_ttl_seconds:
        Lifetime of a completed idempotency entry.
    idempotency_reservation_ttl_seconds:
        Lifetime of a pending reservation.  Bounds how long a crashed
        request can block retries with the same key.
    version_retention:
        Snapshots kept per page; older ones are evicted first.
    publish_log_retention:
        Audit entries kept across all pages; the oldest are evicted first.
    default_update_mode:
        Update mode used when a request does not name one.
    no_marker_policy:
        Safe-mode behaviour when the new HTML carries no marker regions.

        * ``"replace"`` — fall back to full replacement with a warning.
        * ``"reject"`` — fail the request with a validation error.
    hint_attributes:
        Attributes that carry an explicit widget hint.
    wrap_content:
        Wrap published HTML in the styling container.
    wrapper_class:
        CSS class of the styling container.  The converter treats a
        top-level ``div`` with this class as transparent.
    stylesheet_url:
        Optional stylesheet or script URL injected ahead of the container.
    host_base_url:
        Root URL of the host REST API (e.g. ``https://example.com/wp-json``).
    host_username:
        Account used for host REST calls.
    host_app_password:
        Application password for :attr:`host_username`.  Never logged.
    host_post_types:
        REST collections searched, in order, when locating a page by slug.
    retry_max_attempts:
        Maximum number of attempts for idempotent host reads.  Writes are
        never retried.
    retry_base_delay:
        Base delay (seconds) for exponential backoff.
    retry_max_delay:
        Upper cap (seconds) on computed backoff delay.
    retry_jitter:
        Add random jitter to backoff intervals.
    timeout_seconds:
        HTTP request timeout in seconds.
    http_proxy:
        Optional HTTP/HTTPS proxy URL.
    debug_dump_document:
        Write every converted block tree to *stderr*.
    debug_dump_payload:
        Write the (redacted) host API payloads to *stderr*.
    """

    # ── Auth ────────────────────────────────────────────────────────────
    api_key: str = ""

    signing_secret: str = ""

    require_signature: bool = False

    request_expiry_seconds: int = 300

    # ── Rate limit ──────────────────────────────────────────────────────
    rate_limit_enabled: bool = True

    rate_limit_max_requests: int = 60

    rate_limit_window_seconds: int = 60

    failed_attempt_ttl_seconds: int = 3600

    # ── Network allow-list ──────────────────────────────────────────────
    ip_allowlist_enabled: bool = False

    ip_allowlist: list[str] = field(default_factory=list)

    trusted_ip_headers: list[str] = field(
        default_factory=lambda: list(DEFAULT_TRUSTED_IP_HEADERS),
    )

    # ── Idempotency ─────────────────────────────────────────────────────
    idempotency_ttl_seconds: int = 3600

    idempotency_reservation_ttl_seconds: int = 120

    # ── Versions ────────────────────────────────────────────────────────
    version_retention: int = 10

    # ── Audit log ───────────────────────────────────────────────────────
    publish_log_retention: int = 500

    # ── Merge ───────────────────────────────────────────────────────────
    default_update_mode: Literal["safe", "full"] = "safe"

    no_marker_policy: Literal["replace", "reject"] = "replace"

    # ── Conversion ──────────────────────────────────────────────────────
    hint_attributes: list[str] = field(
        default_factory=lambda: list(DEFAULT_HINT_ATTRIBUTES),
    )

    wrap_content: bool = True

    wrapper_class: str = "pagepress-content"

    stylesheet_url: str | None = None

    # ── Host ────────────────────────────────────────────────────────────
    host_base_url: str = "http://localhost/wp-json"

    host_username: str = ""

    host_app_password: str = ""

    host_post_types: list[str] = field(default_factory=lambda: ["pages", "posts"])

    # ── Retry & HTTP ────────────────────────────────────────────────────
    retry_max_attempts: int = 3

    retry_base_delay: float = 1.0

    retry_max_delay: float = 30.0

    retry_jitter: bool = True

    timeout_seconds: float = 30.0

    http_proxy: str | None = None

    # ── Observability ──────────────────────────────────────────────────
    metrics: Any | None = None

    # ── Debug ───────────────────────────────────────────────────────────
    debug_dump_document: bool = False

    debug_dump_payload: bool = False

    def __post_init__(self) -> None:
        """Validate configuration after initialization."""
        from urllib.parse import urlparse

        parsed = urlparse(self.host_base_url)
        if parsed.scheme == "http" and parsed.hostname not in (
            "localhost",
            "127.0.0.1",
            "::1",
        ):
            raise ValueError(
                f"host_base_url uses insecure HTTP for non-local host '{parsed.hostname}'. "
                "Use HTTPS to protect the application password, or target localhost for testing."
            )

        if self.request_expiry_seconds <= 0:
            raise ValueError(
                f"request_expiry_seconds must be > 0, got {self.request_expiry_seconds}"
            )
        if self.rate_limit_max_requests < 1:
            raise ValueError(
                f"rate_limit_max_requests must be >= 1, got {self.rate_limit_max_requests}"
            )
        if self.rate_limit_window_seconds <= 0:
            raise ValueError(
                f"rate_limit_window_seconds must be > 0, got {self.rate_limit_window_seconds}"
            )
        if self.idempotency_ttl_seconds <= 0:
            raise ValueError(
                f"idempotency_ttl_seconds must be > 0, got {self.idempotency_ttl_seconds}"
            )
        if self.idempotency_reservation_ttl_seconds <= 0:
            raise ValueError(
                "idempotency_reservation_ttl_seconds must be > 0, "
                f"got {self.idempotency_reservation_ttl_seconds}"
            )
        if self.version_retention < 1:
            raise ValueError(f"version_retention must be >= 1, got {self.version_retention}")
        if self.publish_log_retention < 1:
            raise ValueError(
                f"publish_log_retention must be >= 1, got {self.publish_log_retention}"
            )
        if self.retry_max_attempts < 1:
            raise ValueError(f"retry_max_attempts must be >= 1, got {self.retry_max_attempts}")
        if self.retry_base_delay < 0:
            raise ValueError(f"retry_base_delay must be >= 0, got {self.retry_base_delay}")
        if self.retry_max_delay < 0:
            raise ValueError(f"retry_max_delay must be >= 0, got {self.retry_max_delay}")
        if self.timeout_seconds <= 0:
            raise ValueError(f"timeout_seconds must be > 0, got {self.timeout_seconds}")
        if self.default_update_mode not in ("safe", "full"):
            raise ValueError(
                f"default_update_mode must be 'safe' or 'full', got {self.default_update_mode!r}"
            )
        if self.no_marker_policy not in ("replace", "reject"):
            raise ValueError(
                f"no_marker_policy must be 'replace' or 'reject', got {self.no_marker_policy!r}"
            )
        if not self.wrapper_class.strip():
            raise ValueError("wrapper_class must not be empty")

        for entry in self.ip_allowlist:
            try:
                ipaddress.ip_network(entry.strip(), strict=False)
            except ValueError as exc:
                raise ValueError(f"ip_allowlist entry {entry!r} is not an address or CIDR range") from exc

    @property
    def effective_signing_secret(self) -> str:
        """The HMAC secret, defaulting to the API key."""
        return self.signing_secret or self.api_key

    def __repr__(self) -> str:
        """Mask secrets to prevent accidental credential leakage."""
        parts: list[str] = []
        for f in dataclasses.fields(self):
            val = getattr(self, f.name)
            if f.name in _SECRET_FIELDS:
                masked = f"...{val[-4:]}" if len(val) >= 8 else "****"
                parts.append(f"{f.name}='{masked}'")
            else:
                parts.append(f"{f.name}={val!r}")
        return f"PagepressConfig({', '.join(parts)})"
