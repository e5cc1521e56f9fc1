"""Thread-safe in-process implementations of the host protocols.

Used by the test-suite and for local runs.  Every class guards its state
with one lock; ``InMemoryMetaStore.add`` is atomic.
"""

from __future__ import annotations

import copy
import threading
import time
from collections.abc import Callable
from datetime import datetime, timezone
from typing import Any
from urllib.parse import urlparse

from pagepress.errors import PagepressMediaError
from pagepress.models import MediaItem, PageRecord

from .base import MetaStore, page_scope


class InMemoryPageHost:
    """Page storage backed by a dict.

    Parameters
    ----------
    base_url:
        Site root used to build page URLs.
    """

    def __init__(self, base_url: str = "https://example.test") -> None:
        self._base_url = base_url.rstrip("/")
        self._pages: dict[int, PageRecord] = {}
        self._primary_images: dict[int, int] = {}
        self._next_id = 1
        self._lock = threading.Lock()

    def find_page_by_slug(self, slug: str) -> PageRecord | None:
        with self._lock:
            for record in self._pages.values():
                if record.slug == slug:
                    return copy.deepcopy(record)
        return None

    def get_page(self, page_id: int) -> PageRecord | None:
        with self._lock:
            record = self._pages.get(page_id)
            return copy.deepcopy(record) if record is not None else None

    def write_page(self, record: PageRecord) -> int:
        with self._lock:
            stored = copy.deepcopy(record)
            if stored.id is None:
                stored.id = self._next_id
                self._next_id += 1
            stored.modified = datetime.now(timezone.utc).isoformat()
            self._pages[stored.id] = stored
            return stored.id

    def set_primary_image(self, page_id: int, media_id: int) -> None:
        with self._lock:
            self._primary_images[page_id] = media_id

    def primary_image(self, page_id: int) -> int | None:
        with self._lock:
            return self._primary_images.get(page_id)

    def page_url(self, page_id: int) -> str:
        with self._lock:
            record = self._pages.get(page_id)
        if record is None:
            return f"{self._base_url}/?page_id={page_id}"
        return f"{self._base_url}/{record.slug}/"


class InMemoryMetaStore:
    """Scoped key-value store with TTLs and an atomic :meth:`add`.

    Parameters
    ----------
    clock:
        Wall-clock source used for expiry, injectable for tests.
    """

    atomic = True

    def __init__(self, clock: Callable[[], float] = time.time) -> None:
        self._clock = clock
        self._data: dict[str, dict[str, tuple[str, float | None]]] = {}
        self._lock = threading.Lock()

    def _live(self, scope: str, key: str) -> str | None:
        entry = self._data.get(scope, {}).get(key)
        if entry is None:
            return None
        value, expires_at = entry
        if expires_at is not None and self._clock() >= expires_at:
            del self._data[scope][key]
            return None
        return value

    def _expiry(self, ttl: float | None) -> float | None:
        return None if ttl is None else self._clock() + ttl

    def get(self, scope: str, key: str) -> str | None:
        with self._lock:
            return self._live(scope, key)

    def set(self, scope: str, key: str, value: str, ttl: float | None = None) -> None:
        with self._lock:
            self._data.setdefault(scope, {})[key] = (value, self._expiry(ttl))

    def add(self, scope: str, key: str, value: str, ttl: float | None = None) -> bool:
        with self._lock:
            if self._live(scope, key) is not None:
                return False
            self._data.setdefault(scope, {})[key] = (value, self._expiry(ttl))
            return True

    def delete(self, scope: str, key: str) -> None:
        with self._lock:
            self._data.get(scope, {}).pop(key, None)

    def keys(self, scope: str, prefix: str = "") -> list[str]:
        with self._lock:
            names = [k for k in list(self._data.get(scope, {})) if k.startswith(prefix)]
            return sorted(k for k in names if self._live(scope, k) is not None)


class InMemoryMediaLibrary:
    """Media "uploader" that records remote image URLs.

    Only absolute ``http``/``https`` URLs are accepted; anything else fails
    the way a real sideload of an unreachable file would.
    """

    def __init__(self) -> None:
        self._items: dict[int, MediaItem] = {}
        self._next_id = 1000
        self._lock = threading.Lock()

    def upload_image(self, url: str, alt: str = "", caption: str = "") -> MediaItem:
        parsed = urlparse(url)
        if parsed.scheme not in ("http", "https") or not parsed.netloc:
            raise PagepressMediaError(
                message=f"Cannot sideload image from {url!r}",
                context={"url": url, "reason": "unsupported_url"},
            )
        with self._lock:
            item = MediaItem(id=self._next_id, url=url, alt=alt, caption=caption)
            self._items[item.id] = item
            self._next_id += 1
            return item

    def __len__(self) -> int:
        with self._lock:
            return len(self._items)


# ---------------------------------------------------------------------------
# SEO metadata over a MetaStore
# ---------------------------------------------------------------------------

SEO_FIELDS: tuple[str, ...] = (
    "meta_title",
    "meta_description",
    "focus_keyword",
    "canonical_url",
    "robots",
    "og_title",
    "og_description",
    "og_image",
    "twitter_title",
    "twitter_description",
)
"""The curated SEO field set snapshotted with every version."""

_SEO_PREFIX = "_pagepress_seo_"


class MetaStoreSeoMeta:
    """:class:`SeoMetaStore` that keeps each SEO field as page metadata.

    Unknown fields in a publish request are ignored; only
    :data:`SEO_FIELDS` are stored and snapshotted.
    """

    def __init__(self, meta: MetaStore) -> None:
        self._meta = meta

    def save(self, page_id: int, seo: dict[str, Any]) -> list[str]:
        written: list[str] = []
        scope = page_scope(page_id)
        for name in SEO_FIELDS:
            if name not in seo or seo[name] in (None, ""):
                continue
            self._meta.set(scope, _SEO_PREFIX + name, str(seo[name]))
            written.append(name)
        return written

    def snapshot(self, page_id: int) -> dict[str, Any]:
        scope = page_scope(page_id)
        result: dict[str, Any] = {}
        for name in SEO_FIELDS:
            value = self._meta.get(scope, _SEO_PREFIX + name)
            if value is not None:
                result[name] = value
        return result

    def restore(self, page_id: int, meta: dict[str, Any]) -> None:
        scope = page_scope(page_id)
        for name in SEO_FIELDS:
            value = meta.get(name)
            if value in (None, ""):
                self._meta.delete(scope, _SEO_PREFIX + name)
            else:
                self._meta.set(scope, _SEO_PREFIX + name, str(value))
