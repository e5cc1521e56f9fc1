"""Audit trail of publish attempts.

Entries live in the host metadata store under one shared scope, one key
per entry::

    _pagepress_log_00001751371200123456 -> {"action": "publish_success", ...}

Ids follow the version-store scheme: microseconds since the epoch, bumped
past the newest id when the clock has not advanced.  The trail is capped at
``publish_log_retention`` entries; the oldest are evicted first.
"""

from __future__ import annotations

import json
import threading
import time
from collections.abc import Callable
from typing import Any

from pagepress.config import PagepressConfig
from pagepress.host.base import MetaStore
from pagepress.models import PublishLogEntry
from pagepress.observability import current_correlation_id, get_logger, resolve_metrics
from pagepress.utils.redact import redact

log = get_logger("pagepress.publish_log")

LOG_SCOPE = "publish_log"
LOG_PREFIX = "_pagepress_log_"
_ID_WIDTH = 20

PERIODS = {"day": 86_400, "week": 7 * 86_400, "month": 30 * 86_400}


def _entry_key(entry_id: int) -> str:
    return f"{LOG_PREFIX}{entry_id:0{_ID_WIDTH}d}"


def _entry_id(key: str) -> int | None:
    try:
        return int(key[len(LOG_PREFIX):])
    except ValueError:
        return None


class PublishLog:
    """Record publish starts, successes and failures and query them back.

    Parameters
    ----------
    meta:
        Backing metadata store.
    config:
        Supplies ``publish_log_retention`` and the metrics hook.
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
        self._retention = config.publish_log_retention
        self._metrics = resolve_metrics(config.metrics)
        self._clock = clock
        self._lock = threading.Lock()

    def _ids(self) -> list[int]:
        ids = (_entry_id(key) for key in self._meta.keys(LOG_SCOPE, LOG_PREFIX))
        return sorted(i for i in ids if i is not None)

    def _load(self, entry_id: int) -> PublishLogEntry | None:
        raw = self._meta.get(LOG_SCOPE, _entry_key(entry_id))
        if raw is None:
            return None
        try:
            data = json.loads(raw)
        except ValueError:
            log.warning(
                "Skipping unreadable audit entry",
                extra={"extra_fields": {"op": "publish_log_load", "entry": entry_id}},
            )
            return None
        return PublishLogEntry(
            entry_id=entry_id,
            action=data.get("action", ""),
            status=data.get("status", "info"),
            correlation_id=data.get("correlation_id"),
            slug=data.get("slug"),
            page_id=data.get("page_id"),
            message=data.get("message", ""),
            context=data.get("context") or {},
            response_time_ms=data.get("response_time_ms"),
            created_at=data.get("created_at", 0.0),
        )

    def _entries(self) -> list[PublishLogEntry]:
        """All readable entries, newest first."""
        entries = (self._load(i) for i in reversed(self._ids()))
        return [entry for entry in entries if entry is not None]

    # -- recording ---------------------------------------------------------

    def record(
        self,
        action: str,
        status: str = "info",
        *,
        slug: str | None = None,
        page_id: int | None = None,
        message: str = "",
        context: dict[str, Any] | None = None,
        response_time_ms: int | None = None,
    ) -> PublishLogEntry:
        """Append one entry and evict the oldest overflow."""
        with self._lock:
            existing = self._ids()
            now = self._clock()
            entry_id = int(now * 1_000_000)
            if existing and entry_id <= existing[-1]:
                entry_id = existing[-1] + 1

            entry = PublishLogEntry(
                entry_id=entry_id,
                action=action,
                status=status,
                correlation_id=current_correlation_id(),
                slug=slug,
                page_id=page_id,
                message=message,
                context=redact(context or {}),
                response_time_ms=response_time_ms,
                created_at=now,
            )
            data = entry.to_dict()
            del data["id"]
            self._meta.set(LOG_SCOPE, _entry_key(entry_id), json.dumps(data, ensure_ascii=False, default=str))

            ids = [*existing, entry_id]
            overflow = ids[: max(0, len(ids) - self._retention)]
            for old in overflow:
                self._meta.delete(LOG_SCOPE, _entry_key(old))
        if overflow:
            self._metrics.increment("pagepress.publish_log_pruned_total", value=len(overflow))
        return entry

    def log_start(self, slug: str, request: dict[str, Any] | None = None) -> PublishLogEntry:
        return self.record("publish_start", "info", slug=slug, context={"request": request or {}})

    def log_success(
        self,
        page_id: int,
        slug: str,
        action: str,
        response_time_ms: int,
    ) -> PublishLogEntry:
        return self.record(
            "publish_success",
            "success",
            slug=slug,
            page_id=page_id,
            context={"action": action},
            response_time_ms=response_time_ms,
        )

    def log_error(self, slug: str, error: str, context: dict[str, Any] | None = None) -> PublishLogEntry:
        return self.record("publish_failed", "error", slug=slug, message=error, context=context)

    # -- queries -----------------------------------------------------------

    def logs_for_page(self, page_id: int, limit: int = 50) -> list[PublishLogEntry]:
        """Entries naming *page_id*, newest first."""
        return [entry for entry in self._entries() if entry.page_id == page_id][:limit]

    def logs_by_correlation(self, correlation_id: str) -> list[PublishLogEntry]:
        """Every entry of one request, oldest first."""
        return [entry for entry in reversed(self._entries()) if entry.correlation_id == correlation_id]

    def recent(self, limit: int = 100, status: str | None = None) -> list[PublishLogEntry]:
        entries = self._entries()
        if status is not None:
            entries = [entry for entry in entries if entry.status == status]
        return entries[:limit]

    def statistics(self, period: str = "day") -> dict[str, Any]:
        """Counts, success rate and timings for the trailing *period*.

        Raises
        ------
        ValueError
            *period* is not ``day``, ``week`` or ``month``.
        """
        if period not in PERIODS:
            raise ValueError(f"period must be one of {sorted(PERIODS)}, got {period!r}")
        since = self._clock() - PERIODS[period]
        entries = [entry for entry in self._entries() if entry.created_at >= since]

        successes = [entry for entry in entries if entry.action == "publish_success"]
        failures = [entry for entry in entries if entry.action == "publish_failed"]
        attempts = len(successes) + len(failures)
        timings = [entry.response_time_ms for entry in entries if entry.response_time_ms is not None]
        return {
            "period": period,
            "total_publishes": len(successes),
            "success_count": len(successes),
            "error_count": len(failures),
            "success_rate": round(len(successes) / attempts * 100, 1) if attempts else 100.0,
            "avg_response_time_ms": round(sum(timings) / len(timings)) if timings else 0,
            "pages_created": sum(1 for entry in successes if entry.context.get("action") == "created"),
            "pages_updated": sum(1 for entry in successes if entry.context.get("action") == "updated"),
            "recent_errors": [
                {"slug": entry.slug, "error": entry.message, "created_at": entry.created_at}
                for entry in [e for e in entries if e.status == "error"][:5]
            ],
        }

    def cleanup(self, older_than_seconds: float) -> int:
        """Delete entries older than *older_than_seconds*; return how many."""
        cutoff_id = int((self._clock() - older_than_seconds) * 1_000_000)
        with self._lock:
            stale = [i for i in self._ids() if i < cutoff_id]
            for entry_id in stale:
                self._meta.delete(LOG_SCOPE, _entry_key(entry_id))
        if stale:
            log.info(
                "Audit entries removed",
                extra={"extra_fields": {"op": "publish_log_cleanup", "removed": len(stale)}},
            )
        return len(stale)
