"""Collaborator protocols the pipeline talks to.

The publish pipeline never touches a CMS directly.  Everything it needs
from the host is expressed as one of the protocols below, so that the
in-memory implementations (tests, local runs) and the REST implementation
are interchangeable.
"""

from __future__ import annotations

from typing import Any, Protocol, runtime_checkable

from pagepress.models import MediaItem, PageRecord


@runtime_checkable
class PageHost(Protocol):
    """Page storage of the content-management host."""

    def find_page_by_slug(self, slug: str) -> PageRecord | None:
        """Return the page with *slug* in any status, or ``None``."""
        ...

    def get_page(self, page_id: int) -> PageRecord | None:
        ...

    def write_page(self, record: PageRecord) -> int:
        """Insert (``record.id is None``) or update a page; return its id.

        Raises
        ------
        PagepressHostError
            The host rejected or failed the write.
        """
        ...

    def set_primary_image(self, page_id: int, media_id: int) -> None:
        ...

    def page_url(self, page_id: int) -> str:
        ...


@runtime_checkable
class MetaStore(Protocol):
    """Key-value metadata, partitioned into scopes.

    Scopes are ``"page:<id>"`` for per-page data and a few fixed names for
    site-wide entries.  Values are strings; callers serialise.  ``ttl`` is
    in seconds; expired entries behave as absent.

    ``atomic`` tells callers whether :meth:`add` is a true insert-if-absent
    under concurrency or only a best-effort check-then-set.
    """

    atomic: bool

    def get(self, scope: str, key: str) -> str | None:
        ...

    def set(self, scope: str, key: str, value: str, ttl: float | None = None) -> None:
        ...

    def add(self, scope: str, key: str, value: str, ttl: float | None = None) -> bool:
        """Store *value* only if *key* is absent; return whether it was stored."""
        ...

    def delete(self, scope: str, key: str) -> None:
        ...

    def keys(self, scope: str, prefix: str = "") -> list[str]:
        """Return live keys in *scope* starting with *prefix*, sorted."""
        ...


@runtime_checkable
class MediaUploader(Protocol):
    """Sideloads remote images into the host media library."""

    def upload_image(self, url: str, alt: str = "", caption: str = "") -> MediaItem:
        """Raises :class:`PagepressMediaError` when the image cannot be stored."""
        ...


@runtime_checkable
class SeoMetaStore(Protocol):
    """Reads and writes the curated SEO field set of a page."""

    def save(self, page_id: int, seo: dict[str, Any]) -> list[str]:
        """Persist *seo*; return the names of the fields written."""
        ...

    def snapshot(self, page_id: int) -> dict[str, Any]:
        ...

    def restore(self, page_id: int, meta: dict[str, Any]) -> None:
        """Write *meta* back; empty values delete the field."""
        ...


def page_scope(page_id: int) -> str:
    """Metadata scope for *page_id*."""
    return f"page:{page_id}"
