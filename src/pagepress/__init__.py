"""pagepress — publish pipeline for page-builder CMS hosts.

Public re-exports
-----------------

* **Pipeline:** :class:`PublishOrchestrator`, :class:`PublishAPI`
* **Components:** :class:`AuthGate`, :class:`IdempotencyCache`,
  :class:`HtmlToBlockConverter`, :class:`ContentMerger`, :class:`VersionStore`,
  :class:`PublishLog`
* **Configuration:** :class:`PagepressConfig`
* **Errors:** Every :class:`PagepressError` subclass and :class:`ErrorCode`
* **Models:** Request, result and warning types

Usage::

    from pagepress import (
        InMemoryMetaStore, InMemoryPageHost, PagepressConfig, PublishOrchestrator,
    )

    config = PagepressConfig(api_key="k3y")
    orchestrator = PublishOrchestrator(config, InMemoryPageHost(), InMemoryMetaStore())
    orchestrator.handle_publish(inbound_request)

The FastAPI app lives in :mod:`pagepress.server` and is not imported here.
"""

from __future__ import annotations

__version__ = "0.1.0"

# ── Pipeline ────────────────────────────────────────────────────────────
from pagepress.api import ApiResponse, PublishAPI

# ── Configuration ───────────────────────────────────────────────────────
from pagepress.config import PagepressConfig
from pagepress.converter import CapabilitySet, ContentDocument, HtmlToBlockConverter

# ── Errors ──────────────────────────────────────────────────────────────
from pagepress.errors import (
    ErrorCode,
    PagepressAuthError,
    PagepressError,
    PagepressHostError,
    PagepressHostWriteError,
    PagepressIdempotencyConflictError,
    PagepressInvalidSignatureError,
    PagepressIpNotAllowedError,
    PagepressMediaError,
    PagepressPageNotFoundError,
    PagepressRateLimitError,
    PagepressRequestExpiredError,
    PagepressUnauthorizedError,
    PagepressValidationError,
    PagepressVersionNotFoundError,
)

# ── Host collaborators ──────────────────────────────────────────────────
from pagepress.host import (
    InMemoryMediaLibrary,
    InMemoryMetaStore,
    InMemoryPageHost,
    MetaStoreSeoMeta,
    RestMediaUploader,
    RestPageHost,
)
from pagepress.idempotency import IdempotencyCache
from pagepress.merge import ContentMerger

# ── Models ──────────────────────────────────────────────────────────────
from pagepress.models import (
    AuthContext,
    InboundRequest,
    PageStatus,
    PublishAction,
    PublishLogEntry,
    PublishRequest,
    PublishResult,
    PublishStage,
    PublishWarning,
    RollbackResult,
    UpdateMode,
    ValidationReport,
    VersionSnapshot,
    WarningCode,
)
from pagepress.publish_log import PublishLog
from pagepress.publisher import PublishOrchestrator
from pagepress.security import AuthGate, sign_request
from pagepress.versions import VersionStore

__all__ = [
    "ApiResponse",
    "AuthContext",
    "AuthGate",
    "CapabilitySet",
    "ContentDocument",
    "ContentMerger",
    "ErrorCode",
    "HtmlToBlockConverter",
    "IdempotencyCache",
    "InMemoryMediaLibrary",
    "InMemoryMetaStore",
    "InMemoryPageHost",
    "InboundRequest",
    "MetaStoreSeoMeta",
    "PageStatus",
    "PagepressAuthError",
    "PagepressConfig",
    "PagepressError",
    "PagepressHostError",
    "PagepressHostWriteError",
    "PagepressIdempotencyConflictError",
    "PagepressInvalidSignatureError",
    "PagepressIpNotAllowedError",
    "PagepressMediaError",
    "PagepressPageNotFoundError",
    "PagepressRateLimitError",
    "PagepressRequestExpiredError",
    "PagepressUnauthorizedError",
    "PagepressValidationError",
    "PagepressVersionNotFoundError",
    "PublishAPI",
    "PublishAction",
    "PublishLog",
    "PublishLogEntry",
    "PublishOrchestrator",
    "PublishRequest",
    "PublishResult",
    "PublishStage",
    "PublishWarning",
    "RestMediaUploader",
    "RestPageHost",
    "RollbackResult",
    "UpdateMode",
    "ValidationReport",
    "VersionSnapshot",
    "VersionStore",
    "WarningCode",
    "__version__",
]
