"""Public data models for pagepress.

This module contains the request, result, warning and storage types that
flow between the pipeline components.  All types are plain dataclasses with
no behaviour beyond serialisation helpers; requests are frozen so that a
parsed request can be shared across stages without defensive copies.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------

class UpdateMode(str, Enum):
    """How new HTML is combined with an existing page."""

    SAFE = "safe"
    """Replace only named marker regions; everything else is kept."""

    FULL = "full"
    """Discard the existing content entirely."""


class PageStatus(str, Enum):
    """Publication status of a host page."""

    DRAFT = "draft"
    PUBLISH = "publish"
    PENDING = "pending"
    PRIVATE = "private"


class PublishAction(str, Enum):
    """What a successful publish did to the host."""

    CREATED = "created"
    UPDATED = "updated"


class PublishStage(str, Enum):
    """Stages a publish request moves through, in order."""

    AUTHENTICATING = "authenticating"
    IDEMPOTENCY_CHECK = "idempotency_check"
    LOCATING = "locating"
    MERGING = "merging"
    CONVERTING = "converting"
    SNAPSHOTTING = "snapshotting"
    WRITING = "writing"
    RESPONDING = "responding"


class WarningCode(str, Enum):
    """Codes for non-fatal issues reported alongside a successful result."""

    CONVERSION_FALLBACK = "CONVERSION_FALLBACK"
    WIDGET_DOWNGRADED = "WIDGET_DOWNGRADED"
    WIDGET_FAMILY_MISSING = "WIDGET_FAMILY_MISSING"
    MERGE_NO_MARKERS = "MERGE_NO_MARKERS"
    MEDIA_UPLOAD_FAILED = "MEDIA_UPLOAD_FAILED"
    PARENT_NOT_FOUND = "PARENT_NOT_FOUND"
    PRIMARY_IMAGE_FAILED = "PRIMARY_IMAGE_FAILED"
    CONTENT_LINT = "CONTENT_LINT"


# ---------------------------------------------------------------------------
# Warnings
# ---------------------------------------------------------------------------

@dataclass
class PublishWarning:
    """A non-fatal issue encountered while publishing.

    Warnings are accumulated in lists handed through the pipeline and
    returned in the response envelope; they never abort a request.

    Attributes
    ----------
    code:
        A :class:`WarningCode` value.
    message:
        A human-readable description of the issue.
    context:
        Arbitrary structured data for diagnostics.
    """

    code: str
    message: str
    context: dict = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        code = self.code.value if isinstance(self.code, Enum) else self.code
        return {"code": code, "message": self.message}


# ---------------------------------------------------------------------------
# Inbound request
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class InboundRequest:
    """Framework-neutral view of an HTTP request.

    Attributes
    ----------
    method:
        Upper-case HTTP method.
    path:
        Request path, used only for logging.
    headers:
        Header map.  Lookups through :meth:`header` are case-insensitive.
    query:
        Query-string parameters.
    body:
        Raw request body, exactly as received (signatures cover it).
    remote_addr:
        Socket peer address, if known.
    """

    method: str = "GET"
    path: str = "/"
    headers: dict[str, str] = field(default_factory=dict)
    query: dict[str, str] = field(default_factory=dict)
    body: bytes = b""
    remote_addr: str | None = None

    def header(self, name: str) -> str | None:
        """Return the value of header *name*, ignoring case."""
        wanted = name.lower()
        for key, value in self.headers.items():
            if key.lower() == wanted:
                return value
        return None

    @property
    def is_mutating(self) -> bool:
        return self.method.upper() not in ("GET", "HEAD", "OPTIONS")


@dataclass(frozen=True)
class AuthContext:
    """Outcome of a successful authentication.  Never persisted."""

    identity: str
    key_source: str
    client_ip: str
    hmac_verified: bool = False


# ---------------------------------------------------------------------------
# Publish request
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class PageSpec:
    title: str
    slug: str
    status: PageStatus = PageStatus.DRAFT
    parent_slug: str | None = None
    template: str | None = None
    update_mode: UpdateMode = UpdateMode.SAFE
    hide_title: bool = False


@dataclass(frozen=True)
class ContentSpec:
    """Page body: HTML plus optional extras.

    ``raw_block_tree`` is a builder document supplied by the caller; when
    present it is stored as-is instead of converting :attr:`html`.
    """

    html: str
    custom_css: str | None = None
    raw_block_tree: list[dict] | None = None


@dataclass(frozen=True)
class GalleryImage:
    url: str
    alt: str = ""
    caption: str = ""


@dataclass(frozen=True)
class ImagesSpec:
    featured_url: str | None = None
    featured_alt: str = ""
    gallery: tuple[GalleryImage, ...] = ()


@dataclass(frozen=True)
class PublishOptions:
    idempotency_key: str | None = None
    skip_validation: bool = False


@dataclass(frozen=True)
class PublishRequest:
    """A parsed, validated publish request.

    Built by :func:`pagepress.validation.parse_publish_request`; never
    constructed from untrusted input directly.
    """

    page: PageSpec
    content: ContentSpec
    seo: dict[str, Any] = field(default_factory=dict)
    images: ImagesSpec = field(default_factory=ImagesSpec)
    schema: dict[str, dict] = field(default_factory=dict)
    options: PublishOptions = field(default_factory=PublishOptions)


# ---------------------------------------------------------------------------
# Host records
# ---------------------------------------------------------------------------

@dataclass
class PageRecord:
    """A page as the host stores it.

    ``id`` is ``None`` for a page that has not been inserted yet.
    ``block_tree_meta`` holds the serialised builder document.
    """

    slug: str
    title: str
    content_html: str = ""
    block_tree_meta: list[dict] | None = None
    status: str = PageStatus.DRAFT.value
    parent_id: int = 0
    template: str | None = None
    id: int | None = None
    modified: str | None = None


@dataclass(frozen=True)
class MediaItem:
    """An image stored in the host media library."""

    id: int
    url: str
    alt: str = ""
    caption: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {"id": self.id, "url": self.url, "alt": self.alt, "caption": self.caption}


# ---------------------------------------------------------------------------
# Versions & idempotency
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class VersionSnapshot:
    """A restorable copy of a page's content, title and SEO metadata.

    Attributes
    ----------
    version_id:
        Strictly increasing per page (microseconds since the epoch, bumped
        when two snapshots land in the same microsecond).
    created_at:
        ISO-8601 UTC timestamp of the snapshot.
    """

    version_id: int
    content_html: str
    title: str
    seo_meta: dict[str, Any]
    created_at: str

    @property
    def content_length(self) -> int:
        return len(self.content_html)

    def summary(self) -> dict[str, Any]:
        """Metadata-only view used by version listings."""
        return {
            "version": self.version_id,
            "timestamp": self.created_at,
            "title": self.title,
            "content_length": self.content_length,
        }


@dataclass(frozen=True)
class IdempotencyEntry:
    """A cached publish outcome, or a reservation for one in progress."""

    key_hash: str
    state: str
    response: dict[str, Any] | None
    expires_at: float

    @property
    def pending(self) -> bool:
        return self.state == "pending"


@dataclass(frozen=True)
class PublishLogEntry:
    """One audit record of a publish attempt.

    Attributes
    ----------
    entry_id:
        Strictly increasing microsecond id; orders entries chronologically.
    action:
        ``publish_start``, ``publish_success`` or ``publish_failed``.
    status:
        ``info``, ``success`` or ``error``.
    """

    entry_id: int
    action: str
    status: str
    correlation_id: str | None
    slug: str | None = None
    page_id: int | None = None
    message: str = ""
    context: dict[str, Any] = field(default_factory=dict)
    response_time_ms: int | None = None
    created_at: float = 0.0

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.entry_id,
            "action": self.action,
            "status": self.status,
            "correlation_id": self.correlation_id,
            "slug": self.slug,
            "page_id": self.page_id,
            "message": self.message,
            "context": self.context,
            "response_time_ms": self.response_time_ms,
            "created_at": self.created_at,
        }


# ---------------------------------------------------------------------------
# Results
# ---------------------------------------------------------------------------

@dataclass
class PublishResult:
    """Response envelope of a successful publish."""

    page_id: int
    page_url: str
    action: PublishAction
    uploaded_media: list[MediaItem] = field(default_factory=list)
    warnings: list[PublishWarning] = field(default_factory=list)
    response_time_ms: int = 0
    timestamp: str = ""
    cached: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "success": True,
            "page_id": self.page_id,
            "page_url": self.page_url,
            "action": self.action.value,
            "uploaded_media": [m.to_dict() for m in self.uploaded_media],
            "warnings": [w.to_dict() for w in self.warnings],
            "response_time_ms": self.response_time_ms,
            "timestamp": self.timestamp,
            "cached": self.cached,
        }


@dataclass
class RollbackResult:
    page_id: int
    rolled_back_to_version: int
    seo_meta_restored: bool
    page_url: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "success": True,
            "page_id": self.page_id,
            "rolled_back_to_version": self.rolled_back_to_version,
            "seo_meta_restored": self.seo_meta_restored,
            "page_url": self.page_url,
        }


@dataclass
class ValidationReport:
    """Outcome of a dry-run validation.  ``valid`` is false iff ``issues``."""

    issues: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    would_create: bool = True
    existing_page_id: int | None = None
    seo_score: int = 100
    content_stats: dict[str, int] = field(default_factory=dict)

    @property
    def valid(self) -> bool:
        return not self.issues

    def to_dict(self) -> dict[str, Any]:
        return {
            "success": True,
            "valid": self.valid,
            "would_create": self.would_create,
            "would_update": not self.would_create,
            "existing_page_id": self.existing_page_id,
            "issues": list(self.issues),
            "warnings": list(self.warnings),
            "seo_score": self.seo_score,
            "content_stats": dict(self.content_stats),
        }
