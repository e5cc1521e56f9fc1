"""Publish orchestration.

:class:`PublishOrchestrator` wires the pipeline components together::

    request -> AuthGate -> IdempotencyCache -> locate page -> ContentMerger
            -> wrap -> SCHEMA / GALLERY regions -> HtmlToBlockConverter
            -> VersionStore.snapshot(existing) -> host write
            -> post-write metadata -> IdempotencyCache.store(response)

Nothing before the host write mutates the page, so a request that fails
validation, conversion or snapshotting leaves the site untouched.  Host
write failures are reported as :class:`PagepressHostWriteError` and never
retried automatically.

The orchestrator also serves the companion operations of the publishing
API: dry-run validation, page lookup, version listing, rollback, title
maintenance, scheduling and the capability report, and it keeps
the audit trail of publish attempts.
"""

from __future__ import annotations

import json
import logging
import time
from collections.abc import Callable
from dataclasses import replace
from datetime import datetime, timezone
from typing import Any

from pagepress.config import PagepressConfig
from pagepress.converter import ContentDocument, HtmlToBlockConverter, set_page_heading
from pagepress.errors import (
    PagepressError,
    PagepressHostError,
    PagepressHostWriteError,
    PagepressIdempotencyConflictError,
    PagepressMediaError,
    PagepressPageNotFoundError,
    PagepressValidationError,
)
from pagepress.host.base import MediaUploader, MetaStore, PageHost, SeoMetaStore, page_scope
from pagepress.host.memory import MetaStoreSeoMeta
from pagepress.idempotency import IdempotencyCache
from pagepress.merge import ContentMerger, inject_gallery, inject_schema, wrap_content
from pagepress.models import (
    AuthContext,
    InboundRequest,
    MediaItem,
    PageRecord,
    PublishAction,
    PublishRequest,
    PublishResult,
    PublishStage,
    PublishWarning,
    RollbackResult,
    ValidationReport,
    WarningCode,
)
from pagepress.observability import correlation_scope, current_correlation_id, get_logger, resolve_metrics
from pagepress.publish_log import PublishLog
from pagepress.security import AuthGate
from pagepress.utils.hashing import hash_dict
from pagepress.utils.redact import redact
from pagepress.validation import (
    content_stats,
    lint_content,
    parse_json_body,
    parse_publish_request,
    seo_score,
)
from pagepress.versions import VersionStore

log = get_logger("pagepress.publisher")

IDEMPOTENCY_HEADER = "Idempotency-Key"
SCHEDULE_SCOPE = "schedule"

# Page metadata written after every successful publish.
MANAGED_KEY = "_pagepress_managed"
LAST_SYNC_KEY = "_pagepress_last_sync"
UPDATE_MODE_KEY = "_pagepress_update_mode"
CUSTOM_CSS_KEY = "_pagepress_custom_css"
HIDE_TITLE_KEY = "_pagepress_hide_title"
STRUCTURED_DATA_KEY = "_pagepress_structured_data"

_WRITE_ERRORS = (PagepressHostError, PagepressPageNotFoundError)


class PublishOrchestrator:
    """Run publish requests through the full pipeline.

    Parameters
    ----------
    config:
        Shared configuration.
    host:
        Page storage of the content-management host.
    meta:
        Metadata store holding versions, idempotency entries, schedules,
        audit entries and per-page flags.
    seo:
        SEO field store.  Defaults to :class:`MetaStoreSeoMeta` over *meta*.
    media:
        Image uploader.  Without one, requested images are reported as
        ``MEDIA_UPLOAD_FAILED`` warnings.
    auth_gate:
        Authentication gate used by :meth:`handle_publish`.
    converter:
        HTML converter; defaults to one targeting the core widget family.
    clock:
        Wall-clock source (seconds), injectable for tests.
    """

    def __init__(
        self,
        config: PagepressConfig,
        host: PageHost,
        meta: MetaStore,
        seo: SeoMetaStore | None = None,
        media: MediaUploader | None = None,
        *,
        auth_gate: AuthGate | None = None,
        converter: HtmlToBlockConverter | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._config = config
        self._host = host
        self._meta = meta
        self._seo = seo if seo is not None else MetaStoreSeoMeta(meta)
        self._media = media
        self._auth = auth_gate if auth_gate is not None else AuthGate(config)
        self._converter = converter if converter is not None else HtmlToBlockConverter(config)
        self._merger = ContentMerger(config)
        self._idempotency = IdempotencyCache(meta, config, clock)
        self._versions = VersionStore(meta, config, clock)
        self._audit = PublishLog(meta, config, clock)
        self._metrics = resolve_metrics(config.metrics)
        self._clock = clock

    @property
    def auth_gate(self) -> AuthGate:
        return self._auth

    @property
    def idempotency(self) -> IdempotencyCache:
        return self._idempotency

    @property
    def version_store(self) -> VersionStore:
        return self._versions

    @property
    def publish_log(self) -> PublishLog:
        return self._audit

    @property
    def converter(self) -> HtmlToBlockConverter:
        return self._converter

    # ------------------------------------------------------------------
    # Publishing
    # ------------------------------------------------------------------

    def handle_publish(self, request: InboundRequest) -> dict[str, Any]:
        """Authenticate, parse and publish one inbound request.

        The idempotency key may come from ``options.idempotency_key`` or,
        failing that, the ``Idempotency-Key`` header.

        Returns
        -------
        dict
            The response envelope (see :meth:`PublishResult.to_dict`).

        Raises
        ------
        PagepressError
            Any subclass; the caller maps it to an HTTP status.
        """
        with correlation_scope(current_correlation_id()):
            self._enter(PublishStage.AUTHENTICATING, path=request.path)
            auth = self._auth.authenticate(request, mutating=True)

            payload = parse_json_body(request.body)
            if log.isEnabledFor(logging.DEBUG):
                log.debug(
                    "Publish payload received",
                    extra={"extra_fields": {"op": "publish", "payload": redact(payload)}},
                )
            parsed = parse_publish_request(payload, default_update_mode=self._config.default_update_mode)

            header_key = request.header(IDEMPOTENCY_HEADER)
            if parsed.options.idempotency_key is None and header_key and header_key.strip():
                parsed = replace(
                    parsed,
                    options=replace(parsed.options, idempotency_key=header_key.strip()),
                )
            return self.publish(parsed, auth=auth)

    def publish(self, request: PublishRequest, auth: AuthContext | None = None) -> dict[str, Any]:
        """Publish an already-parsed request.

        A repeated idempotency key returns the first response with
        ``cached`` set to ``True`` and performs no host writes.

        Raises
        ------
        PagepressIdempotencyConflictError
            Another request holding the same key is still in flight.
        PagepressHostWriteError
            The host rejected the page write.
        """
        started = time.perf_counter()
        key = request.options.idempotency_key
        with correlation_scope(current_correlation_id()) as correlation_id:
            # 1. Idempotency short-circuit and reservation
            if key:
                self._enter(PublishStage.IDEMPOTENCY_CHECK)
                cached = self._replay(key, request)
                if cached is not None:
                    return cached
                if not self._idempotency.reserve(key):
                    cached = self._replay(key, request)
                    if cached is not None:
                        return cached
                    raise PagepressIdempotencyConflictError(
                        message="A request with this idempotency key is already in progress",
                        context={"slug": request.page.slug},
                    )

            self._audit.log_start(request.page.slug, {
                "title": request.page.title,
                "update_mode": request.page.update_mode.value,
                "html_length": len(request.content.html),
                "idempotency_key": key,
            })
            try:
                result = self._execute(request, started)
            except Exception as exc:
                if key:
                    self._idempotency.release(key)
                code = exc.code if isinstance(exc, PagepressError) else "INTERNAL"
                code = code.value if hasattr(code, "value") else str(code)
                self._audit.log_error(request.page.slug, str(exc), {"code": code})
                self._metrics.increment("pagepress.publish_failures_total", tags={"code": code})
                log.warning(
                    "Publish failed",
                    extra={
                        "extra_fields": {
                            "op": "publish",
                            "slug": request.page.slug,
                            "code": code,
                            "error": str(exc),
                        }
                    },
                )
                raise

            # 2. Respond and remember the response
            self._enter(PublishStage.RESPONDING, page_id=result.page_id)
            body = result.to_dict()
            if key:
                self._idempotency.store(key, body)
            self._audit.log_success(result.page_id, request.page.slug, result.action.value, result.response_time_ms)

            self._metrics.increment("pagepress.publish_total", tags={"action": result.action.value})
            self._metrics.timing("pagepress.publish_duration_ms", result.response_time_ms)
            log.info(
                "Page published",
                extra={
                    "extra_fields": {
                        "op": "publish",
                        "page_id": result.page_id,
                        "slug": request.page.slug,
                        "action": result.action.value,
                        "warnings": len(result.warnings),
                        "response_time_ms": result.response_time_ms,
                        "client": auth.identity if auth is not None else None,
                        "correlation_id": correlation_id,
                    }
                },
            )
            return body

    def _replay(self, key: str, request: PublishRequest) -> dict[str, Any] | None:
        cached = self._idempotency.lookup(key)
        if cached is None:
            return None
        cached["cached"] = True
        self._metrics.increment("pagepress.idempotency_hits_total")
        log.info(
            "Returning cached publish response",
            extra={"extra_fields": {"op": "publish", "slug": request.page.slug, "page_id": cached.get("page_id")}},
        )
        return cached

    def _execute(self, request: PublishRequest, started: float) -> PublishResult:
        page = request.page
        warnings: list[PublishWarning] = []

        if not request.options.skip_validation:
            issues, lint_warnings = lint_content(request)
            for message in (*issues, *lint_warnings):
                warnings.append(PublishWarning(code=WarningCode.CONTENT_LINT, message=message))

        # 1. Locate the existing page
        self._enter(PublishStage.LOCATING, slug=page.slug)
        existing = self._host.find_page_by_slug(page.slug)

        # 2. Merge, wrap and inject generated regions
        self._enter(PublishStage.MERGING, mode=page.update_mode.value, update=existing is not None)
        html = self._compose_html(request, existing, warnings)
        html = inject_schema(html, request.schema)
        featured, gallery = self._upload_images(request, warnings)
        html = inject_gallery(html, gallery)
        uploaded = ([featured] if featured is not None else []) + gallery

        parent_id = self._resolve_parent(page.parent_slug, warnings)

        # 3. Build the block tree
        self._enter(PublishStage.CONVERTING, html_length=len(html))
        if request.content.raw_block_tree is not None:
            document = self._converter.adopt(request.content.raw_block_tree, warnings)
        else:
            document = self._converter.convert(html, warnings)

        # 4. Snapshot what is about to be overwritten
        if existing is not None and existing.id is not None:
            self._enter(PublishStage.SNAPSHOTTING, page_id=existing.id)
            self._versions.snapshot(
                existing.id,
                existing.content_html,
                existing.title,
                self._seo.snapshot(existing.id),
            )

        # 5. Write
        self._enter(PublishStage.WRITING)
        record = PageRecord(
            slug=page.slug,
            title=page.title,
            content_html=html,
            block_tree_meta=document.to_builder(),
            status=page.status.value,
            parent_id=parent_id,
            template=page.template or (existing.template if existing is not None else None),
            id=existing.id if existing is not None else None,
        )
        page_id = self._write(record)

        # 6. Post-write metadata
        if featured is not None:
            try:
                self._host.set_primary_image(page_id, featured.id)
            except _WRITE_ERRORS as exc:
                warnings.append(PublishWarning(
                    code=WarningCode.PRIMARY_IMAGE_FAILED,
                    message=f"Could not set the featured image: {exc}",
                    context={"media_id": featured.id},
                ))
        if request.seo:
            self._seo.save(page_id, request.seo)
        self._write_page_meta(page_id, request)

        return PublishResult(
            page_id=page_id,
            page_url=self._host.page_url(page_id),
            action=PublishAction.CREATED if existing is None else PublishAction.UPDATED,
            uploaded_media=uploaded,
            warnings=warnings,
            response_time_ms=int((time.perf_counter() - started) * 1000),
            timestamp=self._now_iso(),
        )

    def _compose_html(
        self,
        request: PublishRequest,
        existing: PageRecord | None,
        warnings: list[PublishWarning],
    ) -> str:
        new_html = request.content.html
        mode = request.page.update_mode
        if existing is not None:
            new_html = self._merger.merge(existing.content_html, new_html, mode, warnings)
        if not new_html.strip():
            return new_html
        return wrap_content(new_html, self._config)

    def _upload_images(
        self,
        request: PublishRequest,
        warnings: list[PublishWarning],
    ) -> tuple[MediaItem | None, list[MediaItem]]:
        images = request.images
        featured: MediaItem | None = None
        if images.featured_url:
            featured = self._upload(images.featured_url, images.featured_alt, "", warnings)
        gallery: list[MediaItem] = []
        for image in images.gallery:
            item = self._upload(image.url, image.alt, image.caption, warnings)
            if item is not None:
                gallery.append(item)
        return featured, gallery

    def _upload(self, url: str, alt: str, caption: str, warnings: list[PublishWarning]) -> MediaItem | None:
        if self._media is None:
            warnings.append(PublishWarning(
                code=WarningCode.MEDIA_UPLOAD_FAILED,
                message=f"No media uploader is configured; skipped {url}",
                context={"url": url},
            ))
            return None
        try:
            return self._media.upload_image(url, alt=alt, caption=caption)
        except PagepressMediaError as exc:
            log.warning(
                "Image upload failed",
                extra={"extra_fields": {"op": "media_upload", "url": url, "error": exc.message}},
            )
            warnings.append(PublishWarning(
                code=WarningCode.MEDIA_UPLOAD_FAILED,
                message=f"Image upload failed for {url}: {exc.message}",
                context={"url": url},
            ))
            return None

    def _resolve_parent(self, parent_slug: str | None, warnings: list[PublishWarning]) -> int:
        if not parent_slug:
            return 0
        parent = self._host.find_page_by_slug(parent_slug)
        if parent is None or parent.id is None:
            warnings.append(PublishWarning(
                code=WarningCode.PARENT_NOT_FOUND,
                message=f"Parent page '{parent_slug}' not found; the page was placed at the top level",
                context={"parent_slug": parent_slug},
            ))
            return 0
        return parent.id

    def _write(self, record: PageRecord) -> int:
        try:
            return self._host.write_page(record)
        except _WRITE_ERRORS as exc:
            raise PagepressHostWriteError(
                message=f"Host rejected the write for page '{record.slug}'",
                context={"slug": record.slug, "page_id": record.id},
                cause=exc,
            ) from exc

    def _write_page_meta(self, page_id: int, request: PublishRequest) -> None:
        scope = page_scope(page_id)
        self._meta.set(scope, MANAGED_KEY, "1")
        self._meta.set(scope, LAST_SYNC_KEY, self._now_iso())
        self._meta.set(scope, UPDATE_MODE_KEY, request.page.update_mode.value)
        self._meta.set(scope, HIDE_TITLE_KEY, "1" if request.page.hide_title else "0")
        if request.content.custom_css:
            self._meta.set(scope, CUSTOM_CSS_KEY, request.content.custom_css)
        if request.schema:
            self._meta.set(scope, STRUCTURED_DATA_KEY, json.dumps(request.schema, ensure_ascii=False))

    # ------------------------------------------------------------------
    # Companion operations
    # ------------------------------------------------------------------

    def validate(self, payload: Any) -> ValidationReport:
        """Dry-run a publish payload.  Never mutates anything.

        Raises
        ------
        PagepressValidationError
            The payload is structurally malformed.
        """
        request = parse_publish_request(payload, default_update_mode=self._config.default_update_mode)
        issues, warnings = lint_content(request)
        existing = self._host.find_page_by_slug(request.page.slug)
        stats = content_stats(request.content.html)
        return ValidationReport(
            issues=issues,
            warnings=warnings,
            would_create=existing is None,
            existing_page_id=existing.id if existing is not None else None,
            seo_score=seo_score(request, stats),
            content_stats=stats,
        )

    def page_by_slug(self, slug: str) -> dict[str, Any]:
        """Summarise the page with *slug*.

        Raises
        ------
        PagepressPageNotFoundError
        """
        record = self._host.find_page_by_slug(slug)
        if record is None or record.id is None:
            raise PagepressPageNotFoundError(
                message=f"No page with slug '{slug}'",
                context={"slug": slug},
            )
        scope = page_scope(record.id)
        return {
            "success": True,
            "id": record.id,
            "title": record.title,
            "slug": record.slug,
            "url": self._host.page_url(record.id),
            "status": record.status,
            "modified": record.modified,
            "managed": self._meta.get(scope, MANAGED_KEY) == "1",
            "last_sync": self._meta.get(scope, LAST_SYNC_KEY),
            "version_count": self._versions.count(record.id),
        }

    def versions(self, page_id: int) -> dict[str, Any]:
        """List version metadata for *page_id*, newest first."""
        self._require_page(page_id)
        snapshots = self._versions.list(page_id)
        return {
            "success": True,
            "page_id": page_id,
            "versions": [snap.summary() for snap in snapshots],
            "total": len(snapshots),
        }

    def logs_for_page(self, page_id: int, limit: int = 50) -> dict[str, Any]:
        """Audit entries naming *page_id*, newest first."""
        entries = self._audit.logs_for_page(page_id, limit)
        return {
            "success": True,
            "page_id": page_id,
            "logs": [entry.to_dict() for entry in entries],
            "total": len(entries),
        }

    def logs_by_correlation(self, correlation_id: str) -> dict[str, Any]:
        """Every audit entry of one request, oldest first."""
        entries = self._audit.logs_by_correlation(correlation_id)
        return {
            "success": True,
            "correlation_id": correlation_id,
            "logs": [entry.to_dict() for entry in entries],
            "total": len(entries),
        }

    def rollback(self, page_id: int, version_id: int) -> dict[str, Any]:
        """Restore content, title and SEO metadata from a snapshot.

        The current state is snapshotted first, so a rollback can itself
        be rolled back.  The block tree is regenerated from the restored
        HTML.

        Raises
        ------
        PagepressPageNotFoundError
        PagepressVersionNotFoundError
            Nothing is written in this case.
        PagepressHostWriteError
        """
        with correlation_scope(current_correlation_id()):
            record = self._require_page(page_id)
            target = self._versions.restore(
                page_id,
                version_id,
                record.content_html,
                record.title,
                self._seo.snapshot(page_id),
            )

            document = self._converter.convert(target.content_html)
            record.content_html = target.content_html
            record.title = target.title
            record.block_tree_meta = document.to_builder()
            self._write(record)

            seo_restored = bool(target.seo_meta)
            if seo_restored:
                self._seo.restore(page_id, target.seo_meta)
            self._meta.set(page_scope(page_id), LAST_SYNC_KEY, self._now_iso())

            log.info(
                "Page rolled back",
                extra={"extra_fields": {"op": "rollback", "page_id": page_id, "version": version_id}},
            )
            return RollbackResult(
                page_id=page_id,
                rolled_back_to_version=version_id,
                seo_meta_restored=seo_restored,
                page_url=self._host.page_url(page_id),
            ).to_dict()

    def retitle(self, page_id: int, title: str) -> dict[str, Any]:
        """Set the page title and make it the block tree's H1.

        An existing H1 widget is retitled, else the first H2/H3 is
        promoted, else an H1 section is prepended.
        """
        title = title.strip() if isinstance(title, str) else ""
        if not title:
            raise PagepressValidationError(
                message="Title must not be empty",
                context={"issues": [{"field": "title", "message": "is required"}]},
            )
        with correlation_scope(current_correlation_id()):
            record = self._require_page(page_id)
            warnings: list[PublishWarning] = []
            document = self._stored_document(record, warnings)
            document, heading_action = set_page_heading(document, title)

            self._versions.snapshot(page_id, record.content_html, record.title, self._seo.snapshot(page_id))
            record.title = title
            record.block_tree_meta = document.to_builder()
            self._write(record)

            log.info(
                "Page retitled",
                extra={"extra_fields": {"op": "retitle", "page_id": page_id, "heading": heading_action}},
            )
            return {
                "success": True,
                "page_id": page_id,
                "title": title,
                "heading_action": heading_action,
                "page_url": self._host.page_url(page_id),
                "warnings": [w.to_dict() for w in warnings],
            }

    def _stored_document(self, record: PageRecord, warnings: list[PublishWarning]) -> ContentDocument:
        if record.block_tree_meta:
            try:
                return ContentDocument.from_builder(record.block_tree_meta)
            except PagepressValidationError as exc:
                log.warning(
                    "Stored block tree is unreadable; rebuilding from HTML",
                    extra={"extra_fields": {"op": "retitle", "page_id": record.id, "issues": exc.issues}},
                )
        return self._converter.convert(record.content_html, warnings)

    def schedule(self, payload: Any, publish_at: str | datetime) -> dict[str, Any]:
        """Validate *payload* now and store it for publishing at *publish_at*.

        The stored request is replayed by :meth:`run_scheduled`; whatever
        triggers that at the right time lives outside this package.

        Raises
        ------
        PagepressValidationError
            The payload is malformed or *publish_at* is not in the future.
        """
        request = parse_publish_request(payload, default_update_mode=self._config.default_update_mode)
        when = _parse_time(publish_at)
        if when.timestamp() <= self._clock():
            raise PagepressValidationError(
                message="Scheduled time must be in the future",
                context={"issues": [{"field": "publish_at", "message": "must be in the future"}]},
            )
        publish_iso = when.isoformat()
        schedule_id = hash_dict({"payload": payload, "publish_at": publish_iso})
        self._meta.set(
            SCHEDULE_SCOPE,
            schedule_id,
            json.dumps({"payload": payload, "publish_at": publish_iso}, ensure_ascii=False),
        )
        log.info(
            "Publish scheduled",
            extra={"extra_fields": {"op": "schedule", "slug": request.page.slug, "publish_at": publish_iso}},
        )
        return {
            "success": True,
            "schedule_id": schedule_id,
            "slug": request.page.slug,
            "publish_at": publish_iso,
        }

    def due_schedules(self, now: float | None = None) -> list[str]:
        """Return ids of scheduled publishes whose time has come."""
        now = self._clock() if now is None else now
        due: list[str] = []
        for schedule_id in self._meta.keys(SCHEDULE_SCOPE):
            raw = self._meta.get(SCHEDULE_SCOPE, schedule_id)
            if raw is None:
                continue
            entry = json.loads(raw)
            if _parse_time(entry["publish_at"]).timestamp() <= now:
                due.append(schedule_id)
        return due

    def run_scheduled(self, schedule_id: str) -> dict[str, Any]:
        """Publish a stored request through the normal pipeline.

        The entry is removed before publishing, so each schedule runs once.
        """
        raw = self._meta.get(SCHEDULE_SCOPE, schedule_id)
        if raw is None:
            raise PagepressValidationError(
                message=f"Unknown schedule id '{schedule_id}'",
                context={"issues": [{"field": "schedule_id", "message": "not found"}]},
            )
        self._meta.delete(SCHEDULE_SCOPE, schedule_id)
        entry = json.loads(raw)
        request = parse_publish_request(entry["payload"], default_update_mode=self._config.default_update_mode)
        return self.publish(request)

    def capabilities(self) -> dict[str, Any]:
        return {"success": True, **self._converter.capabilities.to_report()}

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _require_page(self, page_id: int) -> PageRecord:
        record = self._host.get_page(page_id)
        if record is None:
            raise PagepressPageNotFoundError(
                message=f"Page {page_id} not found",
                context={"page_id": page_id},
            )
        return record

    def _enter(self, stage: PublishStage, **fields: Any) -> None:
        log.debug(
            "Publish stage",
            extra={"extra_fields": {"op": "publish", "stage": stage.value, **fields}},
        )

    def _now_iso(self) -> str:
        return datetime.fromtimestamp(self._clock(), tz=timezone.utc).isoformat()


def _parse_time(value: str | datetime) -> datetime:
    """Parse an ISO-8601 time; naive values are taken as UTC."""
    if isinstance(value, datetime):
        when = value
    else:
        try:
            when = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
        except ValueError as exc:
            raise PagepressValidationError(
                message=f"Invalid scheduled time {value!r}",
                context={"issues": [{"field": "publish_at", "message": "must be an ISO-8601 timestamp"}]},
                cause=exc,
            ) from exc
    if when.tzinfo is None:
        when = when.replace(tzinfo=timezone.utc)
    return when
