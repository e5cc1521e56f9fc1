"""Request authentication for the publish API.

:class:`AuthGate` decides whether a request may proceed.  Checks run in a
fixed order and the first failure wins:

1. API key -- resolved from ``Authorization: Bearer``, then ``X-Api-Key``,
   then the ``api_key`` query parameter, and compared in constant time.
2. Rate limit -- fixed window per client address.
3. Allow-list -- exact address or CIDR match, when enabled.
4. Signature -- for mutating requests, an HMAC over timestamp and body.

Configuration and the limiter are injected, never read from globals, so a
gate can be rebuilt or :meth:`AuthGate.reload`-ed when settings change.
"""

from __future__ import annotations

import hmac
import time
from collections.abc import Callable

from pagepress.config import PagepressConfig
from pagepress.errors import (
    PagepressAuthError,
    PagepressInvalidSignatureError,
    PagepressIpNotAllowedError,
    PagepressRateLimitError,
    PagepressUnauthorizedError,
)
from pagepress.models import AuthContext, InboundRequest
from pagepress.observability import get_logger, resolve_metrics
from pagepress.utils.hashing import sha256_hex

from .network import IpAllowList, resolve_client_ip
from .rate_limit import AttemptCounter, FixedWindowRateLimiter
from .signing import SIGNATURE_HEADER, TIMESTAMP_HEADER, verify_signature

log = get_logger("pagepress.auth")


def extract_api_key(request: InboundRequest) -> tuple[str | None, str]:
    """Return ``(key, source)`` for the first credential present.

    ``source`` is one of ``"bearer"``, ``"header"``, ``"query"``, or
    ``"none"`` when no key was supplied.
    """
    auth = request.header("Authorization")
    if auth and auth[:7].lower() == "bearer ":
        key = auth[7:].strip()
        if key:
            return key, "bearer"
    key = request.header("X-Api-Key")
    if key:
        return key.strip(), "header"
    key = request.query.get("api_key")
    if key:
        return key.strip(), "query"
    return None, "none"


class AuthGate:
    """Authenticate inbound requests.

    Parameters
    ----------
    config:
        Source of the stored key, limits, allow-list and signing window.
    rate_limiter:
        Shared per-client limiter.  Built from *config* when omitted.
    clock:
        Wall-clock source for signature freshness checks.
    """

    def __init__(
        self,
        config: PagepressConfig,
        rate_limiter: FixedWindowRateLimiter | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._clock = clock
        self._rate_limiter = rate_limiter or FixedWindowRateLimiter(
            config.rate_limit_max_requests,
            config.rate_limit_window_seconds,
        )
        self._failed_attempts = AttemptCounter(config.failed_attempt_ttl_seconds)
        self._apply(config)

    def _apply(self, config: PagepressConfig) -> None:
        self._config = config
        self._allow_list = IpAllowList(config.ip_allowlist)
        self._metrics = resolve_metrics(config.metrics)

    def reload(self, config: PagepressConfig) -> None:
        """Swap in new settings.  Rate-limit counters survive the reload."""
        self._apply(config)
        self._rate_limiter.reconfigure(
            config.rate_limit_max_requests,
            config.rate_limit_window_seconds,
        )
        self._failed_attempts.ttl_seconds = config.failed_attempt_ttl_seconds

    @property
    def rate_limiter(self) -> FixedWindowRateLimiter:
        return self._rate_limiter

    def failed_attempts(self, client_ip: str) -> int:
        """Return the current failed-authentication count for *client_ip*."""
        return self._failed_attempts.get(sha256_hex(client_ip))

    # -- public API --------------------------------------------------------

    def authenticate(self, request: InboundRequest, *, mutating: bool | None = None) -> AuthContext:
        """Authenticate *request* or raise.

        Parameters
        ----------
        request:
            The inbound request, with its raw body.
        mutating:
            Whether the endpoint changes state and therefore goes through
            signature verification.  Defaults to the request method.

        Returns
        -------
        AuthContext

        Raises
        ------
        PagepressUnauthorizedError
            No key configured, none supplied, or a mismatch.
        PagepressRateLimitError
            The client is over its quota for the current window.
        PagepressIpNotAllowedError
            The allow-list is enabled and does not cover the client.
        PagepressRequestExpiredError
            The signed timestamp is outside the accepted window.
        PagepressInvalidSignatureError
            The signature is wrong, malformed, or half-present.
        """
        config = self._config
        if mutating is None:
            mutating = request.is_mutating
        client_ip = resolve_client_ip(request, config.trusted_ip_headers)

        supplied, source = extract_api_key(request)
        if not config.api_key:
            self._reject("no_key_configured", client_ip)
            raise PagepressUnauthorizedError(
                message="API key not configured",
                context={"client_ip": client_ip, "reason": "no_key_configured"},
            )
        if not supplied:
            self._reject("missing_key", client_ip)
            raise PagepressUnauthorizedError(
                message="API key required",
                context={"client_ip": client_ip, "reason": "missing_key"},
            )
        if not hmac.compare_digest(supplied.encode("utf-8"), config.api_key.encode("utf-8")):
            attempts = self._failed_attempts.increment(sha256_hex(client_ip))
            self._reject("invalid_key", client_ip, failed_attempts=attempts)
            raise PagepressUnauthorizedError(
                message="Invalid API key",
                context={"client_ip": client_ip, "reason": "invalid_key"},
            )

        if config.rate_limit_enabled and not self._rate_limiter.hit(client_ip):
            self._metrics.increment("pagepress.rate_limited_total")
            self._reject("rate_limited", client_ip)
            raise PagepressRateLimitError(
                message="Rate limit exceeded. Please try again later.",
                context={
                    "client_ip": client_ip,
                    "limit": self._rate_limiter.max_requests,
                    "window_seconds": self._rate_limiter.window_seconds,
                    "retry_after_seconds": round(self._rate_limiter.retry_after(client_ip), 1),
                },
            )

        if config.ip_allowlist_enabled and not self._allow_list.allows(client_ip):
            self._reject("ip_not_allowed", client_ip)
            raise PagepressIpNotAllowedError(
                message="Client address is not allowed",
                context={"client_ip": client_ip},
            )

        verified = False
        if mutating:
            verified = self._check_signature(request, client_ip)

        return AuthContext(
            identity=f"api-key:...{config.api_key[-4:]}",
            key_source=source,
            client_ip=client_ip,
            hmac_verified=verified,
        )

    # -- internals ---------------------------------------------------------

    def _check_signature(self, request: InboundRequest, client_ip: str) -> bool:
        signature = request.header(SIGNATURE_HEADER)
        timestamp = request.header(TIMESTAMP_HEADER)

        if signature is None and timestamp is None:
            if self._config.require_signature:
                self._reject("signature_required", client_ip)
                raise PagepressInvalidSignatureError(
                    message="Signed request required",
                    context={"client_ip": client_ip, "reason": "missing_signature"},
                )
            return False

        if signature is None or timestamp is None:
            self._reject("partial_signature", client_ip)
            raise PagepressInvalidSignatureError(
                message="Both X-Signature and X-Timestamp are required for signed requests",
                context={"client_ip": client_ip, "reason": "partial_signature"},
            )

        try:
            verify_signature(
                self._config.effective_signing_secret,
                request.body,
                timestamp,
                signature,
                window_seconds=self._config.request_expiry_seconds,
                now=self._clock(),
                client_ip=client_ip,
            )
        except PagepressAuthError as exc:
            self._reject(exc.context.get("reason", "request_expired"), client_ip)
            raise
        return True

    def _reject(self, reason: str, client_ip: str, **fields: object) -> None:
        self._metrics.increment("pagepress.auth_failures_total", tags={"reason": str(reason)})
        log.warning(
            "Request rejected",
            extra={
                "extra_fields": {
                    "op": "authenticate",
                    "reason": str(reason),
                    "client_ip": client_ip,
                    **fields,
                }
            },
        )
