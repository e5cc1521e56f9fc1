"""Utility-class heuristics for section and widget styling.

Only a handful of Tailwind-style classes are understood: neutral
background shades, vertical padding, and text alignment.  Everything else
is left to the stylesheet that ships with the page.
"""

from __future__ import annotations

import re
from typing import Any

from bs4 import Tag

_BG_RE = re.compile(r"^bg-(?:gray|slate|zinc|neutral|stone)-(\d{2,3})$")
_PY_RE = re.compile(r"^py-(\d{1,2})$")

# Tailwind spacing unit in pixels.
_SPACING_PX = 4

_ALIGN_CLASSES = {
    "text-center": "center",
    "text-right": "right",
    "text-left": "left",
}


def class_list(tag: Tag | None) -> list[str]:
    if tag is None:
        return []
    classes = tag.get("class") or []
    if isinstance(classes, str):
        classes = classes.split()
    return list(classes)


def background_color(classes: list[str]) -> str | None:
    """Map a neutral ``bg-*-N`` shade to one of three palette colours."""
    for cls in classes:
        match = _BG_RE.match(cls)
        if not match:
            continue
        shade = int(match.group(1))
        if shade >= 800:
            return "#1f2937"
        if shade >= 600:
            return "#4b5563"
        if shade >= 100:
            return "#f3f4f6"
    return None


def vertical_padding(classes: list[str]) -> int | None:
    for cls in classes:
        match = _PY_RE.match(cls)
        if match:
            return int(match.group(1)) * _SPACING_PX
    return None


def alignment(classes: list[str]) -> str | None:
    for cls in classes:
        if cls in _ALIGN_CLASSES:
            return _ALIGN_CLASSES[cls]
    return None


def section_settings(tag: Tag | None = None) -> dict[str, Any]:
    """Return builder settings for a section, styled from *tag*'s classes."""
    settings: dict[str, Any] = {
        "structure": "10",
        "content_width": "boxed",
        "gap": "default",
    }
    classes = class_list(tag)
    color = background_color(classes)
    if color is not None:
        settings["background_background"] = "classic"
        settings["background_color"] = color
    padding = vertical_padding(classes)
    if padding is not None:
        settings["padding"] = {
            "unit": "px",
            "top": str(padding),
            "right": "0",
            "bottom": str(padding),
            "left": "0",
            "isLinked": False,
        }
    return settings
