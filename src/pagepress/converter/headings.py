"""Page-title maintenance on an existing block tree.

:func:`set_page_heading` makes the document's main heading read *title*:

* an existing H1 heading widget is retitled (``"updated"``);
* otherwise the first H2 or H3 heading is promoted to H1 (``"converted"``);
* otherwise a new section holding an H1 is prepended (``"created"``).

The walk is purely functional: untouched subtrees are shared, touched
nodes are rebuilt with :func:`dataclasses.replace`, and the input document
is never modified.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import replace

from .nodes import Column, ContentDocument, IdAllocator, Section, Widget, WidgetKind
from .styling import section_settings

UPDATED = "updated"
CONVERTED = "converted"
CREATED = "created"

_Match = Callable[[Widget], bool]
_Edit = Callable[[Widget], Widget]


def _is_heading(widget: Widget, levels: tuple[str, ...]) -> bool:
    kind = widget.kind.value if isinstance(widget.kind, WidgetKind) else widget.kind
    return kind == WidgetKind.HEADING.value and widget.settings.get("header_size", "h2") in levels


def _replace_in_items(
    items: tuple[Widget | Column, ...],
    match: _Match,
    edit: _Edit,
) -> tuple[tuple[Widget | Column, ...], bool]:
    for index, item in enumerate(items):
        if isinstance(item, Widget):
            if match(item):
                return items[:index] + (edit(item),) + items[index + 1:], True
            continue
        children, found = _replace_in_items(item.children, match, edit)
        if found:
            return items[:index] + (replace(item, children=children),) + items[index + 1:], True
    return items, False


def replace_first_widget(
    document: ContentDocument,
    match: _Match,
    edit: _Edit,
) -> tuple[ContentDocument, bool]:
    """Return a copy of *document* with the first matching widget edited."""
    for s_index, section in enumerate(document.sections):
        columns, found = _replace_in_items(section.children, match, edit)
        if found:
            new_section = replace(section, children=columns)  # type: ignore[arg-type]
            sections = document.sections[:s_index] + (new_section,) + document.sections[s_index + 1:]
            return ContentDocument(sections=sections), True
    return document, False


def set_page_heading(document: ContentDocument, title: str) -> tuple[ContentDocument, str]:
    """Make *title* the document's H1.

    Returns
    -------
    tuple[ContentDocument, str]
        The new document and one of ``"updated"``, ``"converted"`` or
        ``"created"``.
    """

    def retitle(widget: Widget) -> Widget:
        return replace(widget, settings={**widget.settings, "title": title})

    def promote(widget: Widget) -> Widget:
        return replace(
            widget,
            settings={**widget.settings, "title": title, "header_size": "h1", "size": "xl"},
        )

    updated, found = replace_first_widget(document, lambda w: _is_heading(w, ("h1",)), retitle)
    if found:
        return updated, UPDATED

    updated, found = replace_first_widget(document, lambda w: _is_heading(w, ("h2", "h3")), promote)
    if found:
        return updated, CONVERTED

    new_id = IdAllocator.for_document(document)
    heading = Widget(
        id=new_id(),
        kind=WidgetKind.HEADING,
        settings={"title": title, "header_size": "h1", "size": "xl", "align": "left"},
    )
    column = Column(id=new_id(), width_pct=100, children=(heading,))
    section = Section(id=new_id(), settings=section_settings(), children=(column,))
    return ContentDocument(sections=(section, *document.sections)), CREATED
