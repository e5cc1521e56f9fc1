"""Host collaborators: protocols plus in-memory and REST implementations."""

from __future__ import annotations

from .base import MediaUploader, MetaStore, PageHost, SeoMetaStore, page_scope
from .memory import (
    SEO_FIELDS,
    InMemoryMediaLibrary,
    InMemoryMetaStore,
    InMemoryPageHost,
    MetaStoreSeoMeta,
)
from .rest import RestMediaUploader, RestPageHost
from .transport import HostTransport

__all__ = [
    "SEO_FIELDS",
    "HostTransport",
    "InMemoryMediaLibrary",
    "InMemoryMetaStore",
    "InMemoryPageHost",
    "MediaUploader",
    "MetaStore",
    "MetaStoreSeoMeta",
    "PageHost",
    "RestMediaUploader",
    "RestPageHost",
    "SeoMetaStore",
    "page_scope",
]
