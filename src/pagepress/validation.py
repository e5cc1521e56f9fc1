"""Publish request parsing and content checks.

:func:`parse_publish_request` turns an untrusted JSON body into a frozen
:class:`PublishRequest`, reporting every malformed field in one
:class:`PagepressValidationError`.

:func:`lint_content`, :func:`seo_score` and :func:`content_stats` are the
editorial checks behind the dry-run endpoint.  They judge content quality
and never reject a publish on their own.
"""

from __future__ import annotations

import json
import re
from typing import Any

from bs4 import BeautifulSoup

from pagepress.errors import PagepressValidationError
from pagepress.merge.markers import find_regions
from pagepress.models import (
    ContentSpec,
    GalleryImage,
    ImagesSpec,
    PageSpec,
    PageStatus,
    PublishOptions,
    PublishRequest,
    UpdateMode,
)

_SLUG_RE = re.compile(r"^[\w-]+$", re.UNICODE)
_MAX_KEY_LENGTH = 255

# Editorial thresholds.
TITLE_MIN = 10
TITLE_IDEAL_MIN = 30
TITLE_MAX = 60
META_DESCRIPTION_MIN = 120
META_DESCRIPTION_MAX = 160
HTML_MIN_LENGTH = 500


class _Issues:
    __slots__ = ("items",)

    def __init__(self) -> None:
        self.items: list[dict[str, str]] = []

    def add(self, field: str, message: str) -> None:
        self.items.append({"field": field, "message": message})


def _section(payload: dict, name: str, issues: _Issues, *, required: bool) -> dict:
    value = payload.get(name)
    if value is None:
        if required:
            issues.add(name, "is required")
        return {}
    if not isinstance(value, dict):
        issues.add(name, "must be an object")
        return {}
    return value


def _optional_str(data: dict, key: str, field: str, issues: _Issues) -> str | None:
    value = data.get(key)
    if value is None or value == "":
        return None
    if not isinstance(value, str):
        issues.add(field, "must be a string")
        return None
    return value


def _bool(data: dict, key: str, field: str, issues: _Issues) -> bool:
    value = data.get(key, False)
    if not isinstance(value, bool):
        issues.add(field, "must be true or false")
        return False
    return value


def _parse_page(data: dict, default_mode: str, issues: _Issues) -> PageSpec | None:
    title = data.get("title")
    if not isinstance(title, str) or not title.strip():
        issues.add("page.title", "is required")
    slug = data.get("slug")
    if not isinstance(slug, str) or not slug.strip():
        issues.add("page.slug", "is required")
    elif not _SLUG_RE.match(slug):
        issues.add("page.slug", "may contain only letters, digits, '-' and '_'")

    status = data.get("status", PageStatus.DRAFT.value)
    try:
        status = PageStatus(status)
    except ValueError:
        issues.add("page.status", f"must be one of {', '.join(s.value for s in PageStatus)}")
        status = PageStatus.DRAFT

    mode = data.get("update_mode", default_mode)
    try:
        mode = UpdateMode(mode)
    except ValueError:
        issues.add("page.update_mode", "must be 'safe' or 'full'")
        mode = UpdateMode.SAFE

    parent_slug = _optional_str(data, "parent_slug", "page.parent_slug", issues)
    template = _optional_str(data, "template", "page.template", issues)
    hide_title = _bool(data, "hide_title", "page.hide_title", issues)

    if not isinstance(title, str) or not isinstance(slug, str):
        return None
    return PageSpec(
        title=title.strip(),
        slug=slug.strip(),
        status=status,
        parent_slug=parent_slug,
        template=template,
        update_mode=mode,
        hide_title=hide_title,
    )


def _parse_content(data: dict, issues: _Issues) -> ContentSpec:
    raw_tree: Any = data.get("raw_block_tree", data.get("elementor_data"))
    if isinstance(raw_tree, str) and raw_tree.strip():
        try:
            raw_tree = json.loads(raw_tree)
        except ValueError:
            issues.add("content.raw_block_tree", "is not valid JSON")
            raw_tree = None
    if raw_tree in ("", None):
        raw_tree = None
    elif not isinstance(raw_tree, list):
        issues.add("content.raw_block_tree", "must be a list of sections")
        raw_tree = None

    html = data.get("html")
    if html is None and raw_tree is not None:
        html = ""
    if not isinstance(html, str):
        issues.add("content.html", "is required")
        html = ""

    return ContentSpec(
        html=html,
        custom_css=_optional_str(data, "custom_css", "content.custom_css", issues),
        raw_block_tree=raw_tree,
    )


def _parse_images(data: dict, issues: _Issues) -> ImagesSpec:
    featured_url: str | None = None
    featured_alt = ""
    featured = data.get("featured_url", data.get("featured_image_url", data.get("featured")))
    if isinstance(featured, dict):
        featured_url = featured.get("url") if isinstance(featured.get("url"), str) else None
        featured_alt = str(featured.get("alt", ""))
        if featured_url is None:
            issues.add("images.featured", "needs a url")
    elif isinstance(featured, str) and featured:
        featured_url = featured
        featured_alt = str(data.get("featured_alt", ""))
    elif featured not in (None, ""):
        issues.add("images.featured_url", "must be a string")

    gallery: list[GalleryImage] = []
    entries = data.get("gallery", data.get("gallery_images", []))
    if not isinstance(entries, list):
        issues.add("images.gallery", "must be a list")
        entries = []
    for i, entry in enumerate(entries):
        if isinstance(entry, str) and entry:
            gallery.append(GalleryImage(url=entry))
        elif isinstance(entry, dict) and isinstance(entry.get("url"), str) and entry["url"]:
            gallery.append(GalleryImage(
                url=entry["url"],
                alt=str(entry.get("alt", "")),
                caption=str(entry.get("caption", "")),
            ))
        else:
            issues.add(f"images.gallery[{i}]", "needs a url")
    return ImagesSpec(featured_url=featured_url, featured_alt=featured_alt, gallery=tuple(gallery))


def _parse_schema(payload: dict, issues: _Issues) -> dict[str, dict]:
    schema = payload.get("schema")
    if schema is None:
        return {}
    if not isinstance(schema, dict):
        issues.add("schema", "must be an object keyed by schema type")
        return {}
    result: dict[str, dict] = {}
    for schema_type, body in schema.items():
        if not isinstance(body, dict):
            issues.add(f"schema.{schema_type}", "must be an object")
            continue
        result[str(schema_type)] = body
    return result


def _parse_options(data: dict, issues: _Issues) -> PublishOptions:
    key = data.get("idempotency_key")
    if key is not None and (not isinstance(key, str) or not key.strip()):
        issues.add("options.idempotency_key", "must be a non-empty string")
        key = None
    elif isinstance(key, str) and len(key) > _MAX_KEY_LENGTH:
        issues.add("options.idempotency_key", f"must be at most {_MAX_KEY_LENGTH} characters")
        key = None
    return PublishOptions(
        idempotency_key=key.strip() if isinstance(key, str) else None,
        skip_validation=_bool(data, "skip_validation", "options.skip_validation", issues),
    )


def parse_publish_request(payload: Any, *, default_update_mode: str = "safe") -> PublishRequest:
    """Validate *payload* and build a :class:`PublishRequest`.

    Parameters
    ----------
    payload:
        Decoded JSON body.
    default_update_mode:
        Mode used when ``page.update_mode`` is absent.

    Raises
    ------
    PagepressValidationError
        With one ``{"field", "message"}`` entry per problem in
        ``context["issues"]``.
    """
    issues = _Issues()
    if not isinstance(payload, dict):
        raise PagepressValidationError(
            message="Request body must be a JSON object",
            context={"issues": [{"field": "", "message": "expected an object"}]},
        )

    page = _parse_page(_section(payload, "page", issues, required=True), default_update_mode, issues)
    content = _parse_content(_section(payload, "content", issues, required=True), issues)
    seo = _section(payload, "seo", issues, required=False)
    images = _parse_images(_section(payload, "images", issues, required=False), issues)
    schema = _parse_schema(payload, issues)
    options = _parse_options(_section(payload, "options", issues, required=False), issues)

    if issues.items or page is None:
        raise PagepressValidationError(
            message=f"Invalid publish request: {len(issues.items)} issue(s)",
            context={"issues": issues.items},
        )
    return PublishRequest(
        page=page,
        content=content,
        seo=dict(seo),
        images=images,
        schema=schema,
        options=options,
    )


def parse_json_body(body: bytes) -> Any:
    """Decode a JSON request body or raise a validation error."""
    if not body.strip():
        raise PagepressValidationError(
            message="Request body is empty",
            context={"issues": [{"field": "", "message": "expected a JSON object"}]},
        )
    try:
        return json.loads(body)
    except (ValueError, UnicodeDecodeError) as exc:
        raise PagepressValidationError(
            message="Request body is not valid JSON",
            context={"issues": [{"field": "", "message": str(exc)}]},
            cause=exc,
        ) from exc


# ---------------------------------------------------------------------------
# Editorial checks
# ---------------------------------------------------------------------------

def content_stats(html: str) -> dict[str, int]:
    soup = BeautifulSoup(html, "html.parser")
    for tag in soup(["script", "style"]):
        tag.decompose()
    return {
        "html_length": len(html),
        "word_count": len(soup.get_text(" ").split()),
        "heading_count": len(soup.find_all(["h1", "h2", "h3", "h4", "h5", "h6"])),
    }


def _meta_description(request: PublishRequest) -> str:
    value = request.seo.get("meta_description") or request.seo.get("description") or ""
    return str(value)


def _has_h1(html: str) -> bool:
    return re.search(r"<h1[\s>]", html, re.IGNORECASE) is not None


def lint_content(request: PublishRequest) -> tuple[list[str], list[str]]:
    """Return ``(issues, warnings)`` about the request's content quality."""
    issues: list[str] = []
    warnings: list[str] = []
    title = request.page.title
    html = request.content.html

    if len(title) < TITLE_MIN:
        issues.append(f"Title is too short (minimum {TITLE_MIN} characters)")
    elif len(title) > TITLE_MAX:
        warnings.append(f"Title is longer than {TITLE_MAX} characters and may be truncated in search results")

    description = _meta_description(request)
    if not description:
        warnings.append("Meta description is missing")
    elif not META_DESCRIPTION_MIN <= len(description) <= META_DESCRIPTION_MAX:
        warnings.append(
            f"Meta description should be {META_DESCRIPTION_MIN}-{META_DESCRIPTION_MAX} characters "
            f"(currently {len(description)})"
        )

    if request.content.raw_block_tree is None and len(html) < HTML_MIN_LENGTH:
        issues.append(f"Content is too short (minimum {HTML_MIN_LENGTH} characters of HTML)")
    if not _has_h1(html):
        warnings.append("Content has no H1 heading")

    if request.page.update_mode is UpdateMode.SAFE and not find_regions(html):
        warnings.append("Safe update mode is selected but the content has no marker regions")

    return issues, warnings


def seo_score(request: PublishRequest, stats: dict[str, int] | None = None) -> int:
    """Score the request from 0 to 100 on basic on-page SEO signals."""
    stats = stats or content_stats(request.content.html)
    score = 100
    title_length = len(request.page.title)
    if title_length < TITLE_IDEAL_MIN:
        score -= 10
    elif title_length > TITLE_MAX:
        score -= 5

    description = _meta_description(request)
    if not description:
        score -= 15
    elif not META_DESCRIPTION_MIN <= len(description) <= META_DESCRIPTION_MAX:
        score -= 5

    words = stats["word_count"]
    if words < 300:
        score -= 20
    elif words < 500:
        score -= 10

    if not _has_h1(request.content.html):
        score -= 15
    if not request.seo.get("focus_keyword"):
        score -= 10
    return max(0, score)
