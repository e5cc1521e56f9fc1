"""Full error hierarchy for pagepress.

Every public error class inherits from PagepressError. Each carries a
machine-readable ``code`` (from :class:`ErrorCode`), a human-readable
``message``, an optional structured ``context`` dict, and an optional
``cause`` (chained exception).

Each class also carries the HTTP ``status`` the API layer answers with,
so that the mapping from failure to response lives next to the failure.
Error codes are defined as a :class:`str` enum so that they serialise
naturally to JSON and can be matched with simple ``==`` comparisons.
"""

from __future__ import annotations

from enum import Enum
from typing import Any

# ---------------------------------------------------------------------------
# Error code enum
# ---------------------------------------------------------------------------

class ErrorCode(str, Enum):
    """Machine-readable error codes for every error pagepress can raise."""

    AUTH_ERROR = "AUTH_ERROR"
    UNAUTHORIZED = "UNAUTHORIZED"
    INVALID_SIGNATURE = "INVALID_SIGNATURE"
    REQUEST_EXPIRED = "REQUEST_EXPIRED"
    RATE_LIMITED = "RATE_LIMITED"
    IP_NOT_ALLOWED = "IP_NOT_ALLOWED"
    VALIDATION_FAILED = "VALIDATION_FAILED"
    IDEMPOTENCY_CONFLICT = "IDEMPOTENCY_CONFLICT"
    PAGE_NOT_FOUND = "PAGE_NOT_FOUND"
    VERSION_NOT_FOUND = "VERSION_NOT_FOUND"
    HOST_ERROR = "HOST_ERROR"
    HOST_WRITE_FAILED = "HOST_WRITE_FAILED"
    MEDIA_ERROR = "MEDIA_ERROR"


# ---------------------------------------------------------------------------
# Base error
# ---------------------------------------------------------------------------

class PagepressError(Exception):
    """Base exception for all pagepress errors.

    Parameters
    ----------
    code:
        A value from :class:`ErrorCode` (or any string) identifying the
        error category.
    message:
        A developer-friendly description of what went wrong.
    context:
        Arbitrary structured data providing extra diagnostic detail.
        Keys and expected types are documented per subclass.
    cause:
        The underlying exception, if this error wraps another.
    """

    status: int = 500

    def __init__(
        self,
        code: str,
        message: str,
        context: dict[str, Any] | None = None,
        cause: Exception | None = None,
    ) -> None:
        self.code: str = code
        self.message: str = message
        self.context: dict[str, Any] = context or {}
        self.cause: Exception | None = cause
        super().__init__(message)
        if cause is not None:
            self.__cause__ = cause

    def __repr__(self) -> str:
        ctx = f", context={self.context!r}" if self.context else ""
        return f"{type(self).__name__}(code={self.code!r}, message={self.message!r}{ctx})"

    def to_dict(self) -> dict[str, Any]:
        """Return the structured error body sent to API callers."""
        return {
            "success": False,
            "code": self.code.value if isinstance(self.code, ErrorCode) else str(self.code),
            "message": self.message,
            "context": self.context,
        }


# ---------------------------------------------------------------------------
# Authentication errors
# ---------------------------------------------------------------------------

class PagepressAuthError(PagepressError):
    """Base class for every rejection raised by the auth gate.

    Context varies by subclass; ``client_ip`` is always present.
    """

    status = 401

    def __init__(
        self,
        code: str = ErrorCode.AUTH_ERROR,
        message: str = "Authentication error",
        context: dict[str, Any] | None = None,
        cause: Exception | None = None,
    ) -> None:
        super().__init__(
            code=code,
            message=message,
            context=context,
            cause=cause,
        )


class PagepressUnauthorizedError(PagepressAuthError):
    """No API key is configured, none was supplied, or it does not match.

    Context keys: ``client_ip``, ``reason``.
    """

    status = 401

    def __init__(
        self,
        message: str,
        context: dict[str, Any] | None = None,
        cause: Exception | None = None,
    ) -> None:
        super().__init__(
            code=ErrorCode.UNAUTHORIZED,
            message=message,
            context=context,
            cause=cause,
        )


class PagepressInvalidSignatureError(PagepressAuthError):
    """The request HMAC does not match the body, or a signature header is
    missing while the other one is present.

    Context keys: ``client_ip``, ``reason``.
    """

    status = 401

    def __init__(
        self,
        message: str,
        context: dict[str, Any] | None = None,
        cause: Exception | None = None,
    ) -> None:
        super().__init__(
            code=ErrorCode.INVALID_SIGNATURE,
            message=message,
            context=context,
            cause=cause,
        )


class PagepressRequestExpiredError(PagepressAuthError):
    """The signed timestamp is outside the accepted window.

    Context keys: ``client_ip``, ``skew_seconds``, ``window_seconds``.
    """

    status = 401

    def __init__(
        self,
        message: str,
        context: dict[str, Any] | None = None,
        cause: Exception | None = None,
    ) -> None:
        super().__init__(
            code=ErrorCode.REQUEST_EXPIRED,
            message=message,
            context=context,
            cause=cause,
        )


class PagepressRateLimitError(PagepressAuthError):
    """The client exceeded its request quota for the current window.

    Context keys: ``client_ip``, ``limit``, ``window_seconds``,
    ``retry_after_seconds``.
    """

    status = 429

    def __init__(
        self,
        message: str,
        context: dict[str, Any] | None = None,
        cause: Exception | None = None,
    ) -> None:
        super().__init__(
            code=ErrorCode.RATE_LIMITED,
            message=message,
            context=context,
            cause=cause,
        )


class PagepressIpNotAllowedError(PagepressAuthError):
    """The client address is not covered by the configured allow-list.

    Context keys: ``client_ip``.
    """

    status = 403

    def __init__(
        self,
        message: str,
        context: dict[str, Any] | None = None,
        cause: Exception | None = None,
    ) -> None:
        super().__init__(
            code=ErrorCode.IP_NOT_ALLOWED,
            message=message,
            context=context,
            cause=cause,
        )


# ---------------------------------------------------------------------------
# Request errors
# ---------------------------------------------------------------------------

class PagepressValidationError(PagepressError):
    """The request body is malformed or violates a publishing rule.

    Context keys: ``issues`` (list of ``{"field", "message"}`` dicts).
    """

    status = 400

    def __init__(
        self,
        message: str,
        context: dict[str, Any] | None = None,
        cause: Exception | None = None,
    ) -> None:
        super().__init__(
            code=ErrorCode.VALIDATION_FAILED,
            message=message,
            context=context,
            cause=cause,
        )

    @property
    def issues(self) -> list[dict[str, str]]:
        return list(self.context.get("issues", []))


class PagepressIdempotencyConflictError(PagepressError):
    """Another request holding the same idempotency key is still running.

    Context keys: ``key_hash``.
    """

    status = 409

    def __init__(
        self,
        message: str,
        context: dict[str, Any] | None = None,
        cause: Exception | None = None,
    ) -> None:
        super().__init__(
            code=ErrorCode.IDEMPOTENCY_CONFLICT,
            message=message,
            context=context,
            cause=cause,
        )


class PagepressPageNotFoundError(PagepressError):
    """The page addressed by id or slug does not exist on the host.

    Context keys: ``page_id`` or ``slug``.
    """

    status = 404

    def __init__(
        self,
        message: str,
        context: dict[str, Any] | None = None,
        cause: Exception | None = None,
    ) -> None:
        super().__init__(
            code=ErrorCode.PAGE_NOT_FOUND,
            message=message,
            context=context,
            cause=cause,
        )


class PagepressVersionNotFoundError(PagepressError):
    """The requested snapshot is not in the page's version history.

    Context keys: ``page_id``, ``version_id``.
    """

    status = 404

    def __init__(
        self,
        message: str,
        context: dict[str, Any] | None = None,
        cause: Exception | None = None,
    ) -> None:
        super().__init__(
            code=ErrorCode.VERSION_NOT_FOUND,
            message=message,
            context=context,
            cause=cause,
        )


# ---------------------------------------------------------------------------
# Host errors
# ---------------------------------------------------------------------------

class PagepressHostError(PagepressError):
    """A host collaborator (page store, REST API) failed to answer.

    Context keys: ``operation``, ``status_code``, ``attempts``.
    """

    status = 502

    def __init__(
        self,
        message: str,
        context: dict[str, Any] | None = None,
        cause: Exception | None = None,
    ) -> None:
        super().__init__(
            code=ErrorCode.HOST_ERROR,
            message=message,
            context=context,
            cause=cause,
        )


class PagepressHostWriteError(PagepressError):
    """The host rejected or failed the page insert/update.

    Context keys: ``slug``, ``page_id``, ``stage``.
    """

    status = 500

    def __init__(
        self,
        message: str,
        context: dict[str, Any] | None = None,
        cause: Exception | None = None,
    ) -> None:
        super().__init__(
            code=ErrorCode.HOST_WRITE_FAILED,
            message=message,
            context=context,
            cause=cause,
        )


class PagepressMediaError(PagepressError):
    """An image could not be sideloaded into the host media library.

    Context keys: ``url``, ``reason``.
    """

    status = 502

    def __init__(
        self,
        message: str,
        context: dict[str, Any] | None = None,
        cause: Exception | None = None,
    ) -> None:
        super().__init__(
            code=ErrorCode.MEDIA_ERROR,
            message=message,
            context=context,
            cause=cause,
        )
