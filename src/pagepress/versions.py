"""Bounded, restorable version history per page.

Snapshots live in the host metadata store under the page's scope, one key
per version::

    _pagepress_version_00001751371200123456 -> {"content": ..., "title": ...,
                                                "seo_meta": {...}, ...}

Version ids are microseconds since the epoch, bumped past the newest
existing id when the clock has not advanced, so ids are strictly
increasing per page and zero-padded keys sort chronologically.

Taking a snapshot and pruning the history to ``version_retention`` entries
happen under one per-page lock, as does restore, so concurrent writers can
neither interleave ids nor over-prune.
"""

from __future__ import annotations

import json
import threading
import time
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Any

from pagepress.config import PagepressConfig
from pagepress.errors import PagepressVersionNotFoundError
from pagepress.host.base import MetaStore, page_scope
from pagepress.models import VersionSnapshot
from pagepress.observability import get_logger, resolve_metrics

log = get_logger("pagepress.versions")

VERSION_PREFIX = "_pagepress_version_"
_ID_WIDTH = 20


def _version_key(version_id: int) -> str:
    return f"{VERSION_PREFIX}{version_id:0{_ID_WIDTH}d}"


def _version_id(key: str) -> int | None:
    try:
        return int(key[len(VERSION_PREFIX):])
    except ValueError:
        return None


class VersionStore:
    """Snapshot, list, prune and restore page versions.

    Parameters
    ----------
    meta:
        Backing metadata store.
    config:
        Supplies ``version_retention`` and the metrics hook.
    clock:
        Wall-clock source (seconds, float), injectable for tests.
    """

    def __init__(
        self,
        meta: MetaStore,
        config: PagepressConfig,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._meta = meta
        self._retention = config.version_retention
        self._metrics = resolve_metrics(config.metrics)
        self._clock = clock
        # page id -> [lock, holders]; an entry is dropped when its last holder leaves
        self._locks: dict[int, list] = {}
        self._locks_guard = threading.Lock()

    @contextmanager
    def _lock_for(self, page_id: int) -> Iterator[None]:
        with self._locks_guard:
            entry = self._locks.get(page_id)
            if entry is None:
                entry = self._locks[page_id] = [threading.Lock(), 0]
            entry[1] += 1
        try:
            with entry[0]:
                yield
        finally:
            with self._locks_guard:
                entry[1] -= 1
                if entry[1] == 0:
                    del self._locks[page_id]

    def _ids(self, page_id: int) -> list[int]:
        ids = (_version_id(key) for key in self._meta.keys(page_scope(page_id), VERSION_PREFIX))
        return sorted(i for i in ids if i is not None)

    def _load(self, page_id: int, version_id: int) -> VersionSnapshot | None:
        raw = self._meta.get(page_scope(page_id), _version_key(version_id))
        if raw is None:
            return None
        try:
            data = json.loads(raw)
        except ValueError:
            log.warning(
                "Skipping unreadable version snapshot",
                extra={"extra_fields": {"op": "version_load", "page_id": page_id, "version": version_id}},
            )
            return None
        return VersionSnapshot(
            version_id=version_id,
            content_html=data.get("content", ""),
            title=data.get("title", ""),
            seo_meta=data.get("seo_meta") or {},
            created_at=data.get("created_at", ""),
        )

    # -- public API --------------------------------------------------------

    def snapshot(
        self,
        page_id: int,
        content_html: str,
        title: str,
        seo_meta: dict[str, Any] | None = None,
    ) -> VersionSnapshot:
        """Record the given page state and prune the oldest overflow."""
        with self._lock_for(page_id):
            return self._snapshot_locked(page_id, content_html, title, seo_meta or {})

    def _snapshot_locked(
        self,
        page_id: int,
        content_html: str,
        title: str,
        seo_meta: dict[str, Any],
    ) -> VersionSnapshot:
        scope = page_scope(page_id)
        existing = self._ids(page_id)

        now = self._clock()
        version_id = int(now * 1_000_000)
        if existing and version_id <= existing[-1]:
            version_id = existing[-1] + 1

        snapshot = VersionSnapshot(
            version_id=version_id,
            content_html=content_html,
            title=title,
            seo_meta=dict(seo_meta),
            created_at=datetime.fromtimestamp(now, tz=timezone.utc).isoformat(),
        )
        self._meta.set(scope, _version_key(version_id), json.dumps({
            "content": snapshot.content_html,
            "title": snapshot.title,
            "seo_meta": snapshot.seo_meta,
            "created_at": snapshot.created_at,
        }, ensure_ascii=False))

        ids = [*existing, version_id]
        overflow = ids[: max(0, len(ids) - self._retention)]
        for old in overflow:
            self._meta.delete(scope, _version_key(old))
        if overflow:
            self._metrics.increment("pagepress.versions_pruned_total", value=len(overflow))

        log.info(
            "Version snapshot stored",
            extra={
                "extra_fields": {
                    "op": "version_snapshot",
                    "page_id": page_id,
                    "version": version_id,
                    "pruned": len(overflow),
                }
            },
        )
        return snapshot

    def list(self, page_id: int) -> list[VersionSnapshot]:
        """Return the page's snapshots, newest first."""
        snapshots = (self._load(page_id, vid) for vid in reversed(self._ids(page_id)))
        return [snap for snap in snapshots if snap is not None]

    def count(self, page_id: int) -> int:
        return len(self._ids(page_id))

    def get(self, page_id: int, version_id: int) -> VersionSnapshot | None:
        return self._load(page_id, version_id)

    def restore(
        self,
        page_id: int,
        version_id: int,
        current_html: str,
        current_title: str,
        current_seo: dict[str, Any] | None = None,
    ) -> VersionSnapshot:
        """Snapshot the current state, then return version *version_id*.

        The caller writes the returned snapshot back to the host.  An
        unknown *version_id* changes nothing.

        Raises
        ------
        PagepressVersionNotFoundError
        """
        with self._lock_for(page_id):
            target = self._load(page_id, version_id)
            if target is None:
                raise PagepressVersionNotFoundError(
                    message=f"Version {version_id} not found for page {page_id}",
                    context={"page_id": page_id, "version_id": version_id},
                )
            self._snapshot_locked(page_id, current_html, current_title, current_seo or {})
            return target
