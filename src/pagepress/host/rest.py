"""WordPress REST API implementations of :class:`PageHost` and
:class:`MediaUploader`.

Pages are read with ``context=edit`` so that raw (unrendered) title and
content come back.  The builder document travels as the ``_elementor_data``
post meta, which the site must register for REST access
(``register_post_meta(..., show_in_rest=True)``).
"""

from __future__ import annotations

import json
import posixpath
import threading
from typing import Any
from urllib.parse import urlparse

import httpx

from pagepress.config import PagepressConfig
from pagepress.errors import (
    PagepressHostError,
    PagepressMediaError,
    PagepressPageNotFoundError,
)
from pagepress.models import MediaItem, PageRecord

from .transport import HostTransport

BLOCK_TREE_META_KEY = "_elementor_data"
EDIT_MODE_META_KEY = "_elementor_edit_mode"

_ANY_STATUS = "publish,future,draft,pending,private"


def _raw(field: Any) -> str:
    """Return the raw text of a REST ``{raw, rendered}`` field."""
    if isinstance(field, dict):
        return str(field.get("raw", field.get("rendered", "")))
    return "" if field is None else str(field)


def _record_from_json(data: dict[str, Any]) -> PageRecord:
    meta = data.get("meta") or {}
    tree: list[dict] | None = None
    raw_tree = meta.get(BLOCK_TREE_META_KEY) if isinstance(meta, dict) else None
    if isinstance(raw_tree, str) and raw_tree:
        try:
            decoded = json.loads(raw_tree)
        except ValueError:
            decoded = None
        if isinstance(decoded, list):
            tree = decoded
    elif isinstance(raw_tree, list):
        tree = raw_tree
    return PageRecord(
        id=int(data["id"]),
        slug=str(data.get("slug", "")),
        title=_raw(data.get("title")),
        content_html=_raw(data.get("content")),
        block_tree_meta=tree,
        status=str(data.get("status", "draft")),
        parent_id=int(data.get("parent") or 0),
        template=data.get("template") or None,
        modified=data.get("modified_gmt") or data.get("modified"),
    )


class RestPageHost:
    """Page storage over the WordPress REST API.

    Parameters
    ----------
    config:
        Supplies ``host_base_url`` and ``host_post_types``.
    transport:
        Shared transport; built from *config* when omitted.
    """

    def __init__(self, config: PagepressConfig, transport: HostTransport | None = None) -> None:
        self._config = config
        self._transport = transport or HostTransport(config)
        self._collections: dict[int, str] = {}
        self._links: dict[int, str] = {}
        self._lock = threading.Lock()
        base = config.host_base_url.rstrip("/")
        self._site_url = base[: -len("/wp-json")] if base.endswith("/wp-json") else base

    def _remember(self, data: dict[str, Any], collection: str) -> None:
        page_id = int(data["id"])
        with self._lock:
            self._collections[page_id] = collection
            if data.get("link"):
                self._links[page_id] = str(data["link"])

    def _collection(self, page_id: int | None) -> str:
        if page_id is not None:
            with self._lock:
                if page_id in self._collections:
                    return self._collections[page_id]
        return self._config.host_post_types[0]

    # -- PageHost ----------------------------------------------------------

    def find_page_by_slug(self, slug: str) -> PageRecord | None:
        for collection in self._config.host_post_types:
            results = self._transport.request(
                "GET",
                f"/wp/v2/{collection}",
                params={"slug": slug, "status": _ANY_STATUS, "context": "edit"},
            )
            if isinstance(results, list) and results:
                self._remember(results[0], collection)
                return _record_from_json(results[0])
        return None

    def get_page(self, page_id: int) -> PageRecord | None:
        for collection in self._config.host_post_types:
            try:
                data = self._transport.request(
                    "GET",
                    f"/wp/v2/{collection}/{page_id}",
                    params={"context": "edit"},
                )
            except PagepressPageNotFoundError:
                continue
            self._remember(data, collection)
            return _record_from_json(data)
        return None

    def write_page(self, record: PageRecord) -> int:
        body: dict[str, Any] = {
            "title": record.title,
            "slug": record.slug,
            "content": record.content_html,
            "status": record.status,
            "parent": record.parent_id,
        }
        if record.template:
            body["template"] = record.template
        if record.block_tree_meta is not None:
            body["meta"] = {
                BLOCK_TREE_META_KEY: json.dumps(record.block_tree_meta, ensure_ascii=False),
                EDIT_MODE_META_KEY: "builder",
            }

        collection = self._collection(record.id)
        path = f"/wp/v2/{collection}" if record.id is None else f"/wp/v2/{collection}/{record.id}"
        try:
            data = self._transport.request("POST", path, json=body)
        except PagepressPageNotFoundError as exc:
            raise PagepressHostError(
                message=f"Page {record.id} vanished during write",
                context={"operation": f"POST {path}", "status_code": 404},
                cause=exc,
            ) from exc
        self._remember(data, collection)
        return int(data["id"])

    def set_primary_image(self, page_id: int, media_id: int) -> None:
        collection = self._collection(page_id)
        self._transport.request(
            "POST",
            f"/wp/v2/{collection}/{page_id}",
            json={"featured_media": media_id},
        )

    def page_url(self, page_id: int) -> str:
        with self._lock:
            link = self._links.get(page_id)
        return link or f"{self._site_url}/?page_id={page_id}"


class RestMediaUploader:
    """Sideload remote images through ``/wp/v2/media``.

    Parameters
    ----------
    transport:
        Authenticated host transport used for the upload.
    fetch_client:
        Client used to download the source image; a plain
        :class:`httpx.Client` that follows redirects by default.
    """

    def __init__(
        self,
        transport: HostTransport,
        fetch_client: httpx.Client | None = None,
        timeout_seconds: float = 30.0,
    ) -> None:
        self._transport = transport
        self._fetch = fetch_client or httpx.Client(
            follow_redirects=True,
            timeout=httpx.Timeout(timeout_seconds),
        )

    def upload_image(self, url: str, alt: str = "", caption: str = "") -> MediaItem:
        try:
            response = self._fetch.get(url)
            response.raise_for_status()
        except httpx.HTTPError as exc:
            raise PagepressMediaError(
                message=f"Could not download image {url}: {exc}",
                context={"url": url, "reason": "download_failed"},
                cause=exc,
            ) from exc

        content_type = response.headers.get("content-type", "").split(";")[0].strip()
        if not content_type.startswith("image/"):
            raise PagepressMediaError(
                message=f"{url} is not an image ({content_type or 'unknown type'})",
                context={"url": url, "reason": "not_an_image", "content_type": content_type},
            )

        filename = posixpath.basename(urlparse(url).path) or "image"
        try:
            data = self._transport.request(
                "POST",
                "/wp/v2/media",
                content=response.content,
                headers={
                    "Content-Type": content_type,
                    "Content-Disposition": f'attachment; filename="{filename}"',
                },
            )
            media_id = int(data["id"])
            if alt or caption:
                self._transport.request(
                    "POST",
                    f"/wp/v2/media/{media_id}",
                    json={"alt_text": alt, "caption": caption},
                )
        except (PagepressHostError, PagepressPageNotFoundError) as exc:
            raise PagepressMediaError(
                message=f"Host rejected image {url}: {exc.message}",
                context={"url": url, "reason": "upload_failed"},
                cause=exc,
            ) from exc

        return MediaItem(
            id=media_id,
            url=str(data.get("source_url", url)),
            alt=alt,
            caption=caption,
        )
