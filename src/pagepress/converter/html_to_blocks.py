"""HTML to block-tree conversion.

:class:`HtmlToBlockConverter` parses arbitrary HTML with BeautifulSoup and
walks the element tree, emitting :class:`Section`/:class:`Column`/
:class:`Widget` nodes.  Each element is classified by the first rule that
matches:

1. an explicit widget hint attribute (``data-widget="counter"``);
2. headings ``h1``-``h6``;
3. images;
4. structural tags (``section``, ``header``, ``footer``, ``article``,
   ``main``) -- a section at top level, a nested full-width column below;
5. opaque leaves kept verbatim: lists and quotes as rich text, tables,
   forms, embeds and scripts as raw HTML;
6. button-styled links;
7. paragraphs and rules;
8. anything else is a container: its children are converted, and if that
   yields nothing the element is kept as a raw-HTML leaf.

Inline content (text, ``span``, ``strong``, plain links ...) is buffered
and flushed into a single rich-text widget at the next block element.

Conversion is total.  Input that yields no nodes, or that the parser chokes
on, produces a one-widget document holding the original HTML, plus a
``CONVERSION_FALLBACK`` warning.
"""

from __future__ import annotations

import json
import sys
from collections.abc import Iterable, Iterator

from bs4 import BeautifulSoup, NavigableString, PageElement, Tag
from bs4.element import PreformattedString

from pagepress.config import PagepressConfig
from pagepress.models import PublishWarning, WarningCode
from pagepress.observability import get_logger, resolve_metrics

from .capabilities import CapabilitySet
from .nodes import Column, ContentDocument, IdAllocator, Section, Widget
from .styling import class_list, section_settings
from .widgets import (
    HINT_BUILDERS,
    build_button,
    build_divider,
    build_heading,
    build_image,
    build_raw_html,
    build_rich_text,
    is_button_link,
    text_of,
)

log = get_logger("pagepress.converter")

STRUCTURAL_TAGS: frozenset[str] = frozenset({"section", "header", "footer", "article", "main"})
HEADING_TAGS: frozenset[str] = frozenset({"h1", "h2", "h3", "h4", "h5", "h6"})
RICH_TEXT_LEAVES: frozenset[str] = frozenset({"ul", "ol", "dl", "blockquote"})
RAW_HTML_LEAVES: frozenset[str] = frozenset({
    "table", "form", "iframe", "video", "audio", "svg", "canvas", "object",
    "embed", "picture", "script", "style", "noscript", "pre", "link",
})
INLINE_TAGS: frozenset[str] = frozenset({
    "a", "abbr", "b", "br", "cite", "code", "del", "em", "font", "i", "ins",
    "kbd", "label", "mark", "q", "s", "small", "span", "strong", "sub", "sup",
    "time", "u", "var",
})
# Document scaffolding with no visible content of its own.
_SKIP_TAGS: frozenset[str] = frozenset({"title", "meta", "base"})
# Walked through at top level as if their children were top-level nodes.
_TRANSPARENT_TAGS: frozenset[str] = frozenset({"html", "head", "body"})

# Deeper elements are kept whole as raw HTML.
MAX_NESTING_DEPTH = 32

_Item = Widget | Column


class _BuildContext:
    """Mutable accumulator for one conversion pass."""

    __slots__ = ("capabilities", "config", "new_id", "warnings")

    def __init__(
        self,
        config: PagepressConfig,
        capabilities: CapabilitySet,
        warnings: list[PublishWarning],
    ) -> None:
        self.config = config
        self.capabilities = capabilities
        self.new_id = IdAllocator()
        self.warnings = warnings

    def add_warning(self, code: str, message: str, **context: object) -> None:
        self.warnings.append(PublishWarning(code=code, message=message, context=dict(context)))


# ---------------------------------------------------------------------------
# Classification helpers
# ---------------------------------------------------------------------------

def _hint(tag: Tag, ctx: _BuildContext) -> str | None:
    """Return the recognised widget hint on *tag*, if any."""
    for attr in ctx.config.hint_attributes:
        value = tag.get(attr)
        if isinstance(value, str):
            value = value.strip().lower()
            if value in HINT_BUILDERS:
                return value
    return None


def _is_markup_only(node: PageElement) -> bool:
    """Comments, doctypes and processing instructions carry no content."""
    return isinstance(node, PreformattedString)


def _is_inline(tag: Tag, ctx: _BuildContext) -> bool:
    if tag.name not in INLINE_TAGS or _hint(tag, ctx) is not None:
        return False
    return not (tag.name == "a" and is_button_link(tag))


def _is_transparent(tag: Tag, ctx: _BuildContext) -> bool:
    if tag.name in _TRANSPARENT_TAGS:
        return True
    return tag.name == "div" and ctx.config.wrapper_class in class_list(tag)


def _has_content(tag: Tag) -> bool:
    return bool(text_of(tag)) or tag.find(True) is not None


def _text_fragment(node: NavigableString) -> str:
    return node.output_ready(formatter="minimal")


# ---------------------------------------------------------------------------
# Walk
# ---------------------------------------------------------------------------

class _InlineBuffer:
    """Collects inline HTML until a block element forces a flush."""

    __slots__ = ("_parts",)

    def __init__(self) -> None:
        self._parts: list[str] = []

    def append(self, html: str) -> None:
        self._parts.append(html)

    def flush(self, into: list[_Item], ctx: _BuildContext) -> None:
        html = "".join(self._parts).strip()
        self._parts.clear()
        if html:
            into.append(build_rich_text(html, ctx.new_id()))


def _convert_children(tag: Tag, ctx: _BuildContext, depth: int) -> list[_Item]:
    items: list[_Item] = []
    buffer = _InlineBuffer()
    for child in tag.children:
        if isinstance(child, NavigableString):
            if not _is_markup_only(child):
                buffer.append(_text_fragment(child))
            continue
        if not isinstance(child, Tag) or child.name in _SKIP_TAGS:
            continue
        if _is_inline(child, ctx):
            buffer.append(str(child))
            continue
        buffer.flush(items, ctx)
        items.extend(_convert_element(child, ctx, depth + 1))
    buffer.flush(items, ctx)
    return items


def _convert_element(tag: Tag, ctx: _BuildContext, depth: int) -> list[_Item]:
    """Convert one block-level element."""
    if depth > MAX_NESTING_DEPTH:
        return [build_raw_html(str(tag), ctx.new_id())]

    name = tag.name
    if name in _SKIP_TAGS:
        return []

    hint = _hint(tag, ctx)
    if hint is not None:
        kind, builder = HINT_BUILDERS[hint]
        if not ctx.capabilities.supports(kind.value):
            ctx.add_warning(
                WarningCode.WIDGET_DOWNGRADED,
                f"'{kind.value}' widget is not available on this site; kept as raw HTML",
                kind=kind.value,
            )
            return [build_raw_html(str(tag), ctx.new_id())]
        return [builder(tag, ctx.new_id())]

    if name in HEADING_TAGS:
        return [build_heading(tag, ctx.new_id())]

    if name == "img":
        return [build_image(tag, ctx.new_id())] if tag.get("src") else []

    if name in STRUCTURAL_TAGS:
        children = _convert_children(tag, ctx, depth)
        if not children:
            return [build_raw_html(str(tag), ctx.new_id())] if _has_content(tag) else []
        return [Column(id=ctx.new_id(), width_pct=100, children=tuple(children))]

    if name in RICH_TEXT_LEAVES:
        return [build_rich_text(str(tag), ctx.new_id())]

    if name in RAW_HTML_LEAVES:
        return [build_raw_html(str(tag), ctx.new_id())]

    if name == "a":
        if is_button_link(tag):
            return [build_button(tag, ctx.new_id())]
        return [build_rich_text(str(tag), ctx.new_id())]

    if name == "p":
        inner = tag.decode_contents().strip()
        return [build_rich_text(inner, ctx.new_id())] if inner else []

    if name == "hr":
        return [build_divider(tag, ctx.new_id())]

    children = _convert_children(tag, ctx, depth)
    if children:
        return children
    return [build_raw_html(str(tag), ctx.new_id())] if _has_content(tag) else []


def _top_level_nodes(nodes: Iterable[PageElement], ctx: _BuildContext, depth: int = 0) -> Iterator[PageElement]:
    for node in nodes:
        if isinstance(node, Tag) and _is_transparent(node, ctx) and depth < MAX_NESTING_DEPTH:
            yield from _top_level_nodes(list(node.children), ctx, depth + 1)
        else:
            yield node


def _section(tag: Tag | None, items: list[_Item], ctx: _BuildContext) -> Section:
    column = Column(id=ctx.new_id(), width_pct=100, children=tuple(items))
    return Section(id=ctx.new_id(), settings=section_settings(tag), children=(column,))


def _build_sections(soup: BeautifulSoup, ctx: _BuildContext) -> list[Section]:
    sections: list[Section] = []
    pending: list[_Item] = []
    buffer = _InlineBuffer()

    def close_run() -> None:
        buffer.flush(pending, ctx)
        if pending:
            sections.append(_section(None, list(pending), ctx))
            pending.clear()

    for node in _top_level_nodes(list(soup.children), ctx):
        if isinstance(node, NavigableString):
            if not _is_markup_only(node):
                buffer.append(_text_fragment(node))
            continue
        if not isinstance(node, Tag) or node.name in _SKIP_TAGS:
            continue
        if _is_inline(node, ctx):
            buffer.append(str(node))
            continue
        if node.name in STRUCTURAL_TAGS and _hint(node, ctx) is None:
            close_run()
            items = _convert_children(node, ctx, 1)
            if not items and _has_content(node):
                items = [build_raw_html(str(node), ctx.new_id())]
            if items:
                sections.append(_section(node, items, ctx))
            continue
        buffer.flush(pending, ctx)
        pending.extend(_convert_element(node, ctx, 1))

    close_run()
    return sections


# ---------------------------------------------------------------------------
# Public converter
# ---------------------------------------------------------------------------

class HtmlToBlockConverter:
    """Convert HTML into a :class:`ContentDocument`.

    Parameters
    ----------
    config:
        Supplies hint attributes, the wrapper class and debug switches.
    capabilities:
        Widget families the target site can render.  Defaults to the core
        family only, so Pro and add-on widgets are downgraded.

    Examples
    --------
    >>> converter = HtmlToBlockConverter(PagepressConfig())
    >>> doc = converter.convert("<h2>Pricing</h2>")
    >>> [w.kind.value for w in doc.widgets()]
    ['heading']
    """

    def __init__(
        self,
        config: PagepressConfig,
        capabilities: CapabilitySet | None = None,
    ) -> None:
        self._config = config
        self._capabilities = capabilities or CapabilitySet()
        self._metrics = resolve_metrics(config.metrics)

    @property
    def capabilities(self) -> CapabilitySet:
        return self._capabilities

    def convert(self, html: str, warnings: list[PublishWarning] | None = None) -> ContentDocument:
        """Convert *html*; never raises.

        Parameters
        ----------
        html:
            Arbitrary, possibly malformed HTML.
        warnings:
            List that receives non-fatal conversion warnings.

        Returns
        -------
        ContentDocument
        """
        sink: list[PublishWarning] = [] if warnings is None else warnings
        start = len(sink)
        ctx = _BuildContext(self._config, self._capabilities, sink)

        try:
            soup = BeautifulSoup(html, "html.parser")
            sections = _build_sections(soup, ctx)
        except Exception as exc:  # any parse failure yields the fallback document
            log.warning(
                "HTML conversion failed; using fallback document",
                extra={"extra_fields": {"op": "convert", "error": repr(exc), "html_length": len(html)}},
            )
            sections = []

        if sections:
            document = ContentDocument(sections=tuple(sections))
        else:
            document = self.fallback(html, ctx.new_id)
            ctx.add_warning(
                WarningCode.CONVERSION_FALLBACK,
                "No convertible structure found; stored the HTML as a single text block",
                html_length=len(html),
            )

        for warning in sink[start:]:
            code = warning.code.value if isinstance(warning.code, WarningCode) else str(warning.code)
            self._metrics.increment("pagepress.conversion_warnings_total", tags={"code": code})

        if self._config.debug_dump_document:
            print(
                "[pagepress] Block tree:",
                json.dumps(document.to_builder(), indent=2, ensure_ascii=False),
                file=sys.stderr,
            )
        return document

    @staticmethod
    def fallback(html: str, new_id: IdAllocator | None = None) -> ContentDocument:
        """The single-section, single-widget document holding *html* verbatim."""
        new_id = new_id or IdAllocator()
        widget = build_rich_text(html, new_id())
        column = Column(id=new_id(), width_pct=100, children=(widget,))
        return ContentDocument(sections=(Section(id=new_id(), settings=section_settings(), children=(column,)),))

    def adopt(self, raw_tree: list[dict], warnings: list[PublishWarning] | None = None) -> ContentDocument:
        """Accept a caller-built block tree after checking it can render.

        Widgets from families the site lacks are reported, not removed.

        Raises
        ------
        PagepressValidationError
            If *raw_tree* is not a well-formed builder document.
        """
        document = ContentDocument.from_builder(raw_tree)
        found = self._capabilities.check(widget.kind for widget in document.widgets())
        if warnings is not None:
            warnings.extend(found)
        return document
