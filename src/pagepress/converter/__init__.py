"""HTML to page-builder block-tree conversion."""

from __future__ import annotations

from .capabilities import CORE, PRO, ROYAL, CapabilitySet, family_of
from .headings import set_page_heading
from .html_to_blocks import HtmlToBlockConverter
from .nodes import Column, ContentDocument, IdAllocator, Section, Widget, WidgetKind

__all__ = [
    "CORE",
    "PRO",
    "ROYAL",
    "CapabilitySet",
    "Column",
    "ContentDocument",
    "HtmlToBlockConverter",
    "IdAllocator",
    "Section",
    "Widget",
    "WidgetKind",
    "family_of",
    "set_page_heading",
]
