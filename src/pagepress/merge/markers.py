"""Named marker regions inside page HTML.

A marker region is a span delimited by a pair of HTML comments::

    <!-- START HERO -->
    ...
    <!-- END HERO -->

Names are upper-case tokens (``[A-Z0-9_]+``).  Regions do not nest; the
first ``END`` with the matching name closes a region.  Two names are
reserved for content pagepress writes itself: ``SCHEMA`` (structured data)
and ``GALLERY`` (uploaded images).
"""

from __future__ import annotations

import html as _html
import json
import re
from collections.abc import Iterable
from dataclasses import dataclass
from typing import Any

from pagepress.models import MediaItem

SCHEMA_REGION = "SCHEMA"
GALLERY_REGION = "GALLERY"
FAQ_REGION = "FAQ"

MARKER_RE = re.compile(
    r"<!--\s*START\s+([A-Z0-9_]+)\s*-->(.*?)<!--\s*END\s+\1\s*-->",
    re.DOTALL,
)

_BODY_CLOSE_RE = re.compile(r"</body\s*>", re.IGNORECASE)


@dataclass(frozen=True)
class MarkerRegion:
    """One region found in a document.

    ``raw_html`` is the full span including both markers; ``start`` and
    ``end`` are its offsets in the scanned document.
    """

    name: str
    raw_html: str
    inner_html: str
    start: int
    end: int


def find_regions(html: str) -> list[MarkerRegion]:
    """Return every region in *html*, in document order."""
    return [
        MarkerRegion(
            name=match.group(1),
            raw_html=match.group(0),
            inner_html=match.group(2),
            start=match.start(),
            end=match.end(),
        )
        for match in MARKER_RE.finditer(html)
    ]


def find_region(html: str, name: str) -> MarkerRegion | None:
    for region in find_regions(html):
        if region.name == name:
            return region
    return None


def render_region(name: str, inner_html: str) -> str:
    return f"<!-- START {name} -->\n{inner_html}\n<!-- END {name} -->"


def replace_region(html: str, name: str, region_html: str) -> str | None:
    """Swap the first region called *name* for *region_html*.

    Returns ``None`` when *html* has no such region.
    """
    region = find_region(html, name)
    if region is None:
        return None
    return html[:region.start] + region_html + html[region.end:]


def append_region(html: str, region_html: str) -> str:
    """Insert *region_html* before the last ``</body>``, else at the end."""
    closes = list(_BODY_CLOSE_RE.finditer(html))
    if closes:
        at = closes[-1].start()
        return html[:at] + region_html + "\n" + html[at:]
    return html + "\n" + region_html


def upsert_region(html: str, name: str, inner_html: str) -> str:
    region_html = render_region(name, inner_html)
    replaced = replace_region(html, name, region_html)
    return replaced if replaced is not None else append_region(html, region_html)


def _insert_before_region(html: str, name: str, region_html: str) -> str | None:
    anchor = find_region(html, name)
    if anchor is None:
        return None
    return html[:anchor.start] + region_html + "\n" + html[anchor.start:]


# ---------------------------------------------------------------------------
# Structured data
# ---------------------------------------------------------------------------

def render_schema(schema: dict[str, Any]) -> str:
    """Render one JSON-LD ``<script>`` per schema type.

    ``@context`` and ``@type`` are filled in when missing.  ``</`` is
    escaped so that no value can close the script element early.
    """
    blocks: list[str] = []
    for schema_type, body in schema.items():
        document = dict(body) if isinstance(body, dict) else {"value": body}
        document.setdefault("@context", "https://schema.org")
        document.setdefault("@type", schema_type)
        encoded = json.dumps(document, indent=2, ensure_ascii=False).replace("</", "<\\/")
        blocks.append(f'<script type="application/ld+json">\n{encoded}\n</script>')
    return "\n".join(blocks)


def inject_schema(html: str, schema: dict[str, Any]) -> str:
    """Write the ``SCHEMA`` region, replacing an existing one."""
    if not schema:
        return html
    return upsert_region(html, SCHEMA_REGION, render_schema(schema))


# ---------------------------------------------------------------------------
# Gallery
# ---------------------------------------------------------------------------

def render_gallery(items: Iterable[MediaItem]) -> str:
    figures: list[str] = []
    for item in items:
        figure = (
            f'  <figure class="pagepress-gallery-item">\n'
            f'    <img src="{_html.escape(item.url, quote=True)}" '
            f'alt="{_html.escape(item.alt, quote=True)}" loading="lazy">\n'
        )
        if item.caption:
            figure += f"    <figcaption>{_html.escape(item.caption)}</figcaption>\n"
        figure += "  </figure>"
        figures.append(figure)
    return '<div class="pagepress-gallery">\n' + "\n".join(figures) + "\n</div>"


def inject_gallery(html: str, items: list[MediaItem]) -> str:
    """Write the ``GALLERY`` region.

    An existing region is replaced in place.  A new one goes before the
    ``FAQ`` region, else before ``SCHEMA``, else at the end.
    """
    if not items:
        return html
    region_html = render_region(GALLERY_REGION, render_gallery(items))
    replaced = replace_region(html, GALLERY_REGION, region_html)
    if replaced is not None:
        return replaced
    for anchor in (FAQ_REGION, SCHEMA_REGION):
        inserted = _insert_before_region(html, anchor, region_html)
        if inserted is not None:
            return inserted
    return append_region(html, region_html)
