"""Immutable block-tree document model.

A :class:`ContentDocument` is a forest of :class:`Section` nodes.  Each
section holds :class:`Column` nodes; a column holds :class:`Widget` leaves
and, for nested layout, further columns.  Nodes are frozen; edits produce
new trees (see :mod:`pagepress.converter.headings`).

The builder wire format is the Elementor-style JSON list::

    [{"id": "a1b2c3d4", "elType": "section", "settings": {...},
      "elements": [{"id": ..., "elType": "column",
                    "settings": {"_column_size": 100},
                    "elements": [{"id": ..., "elType": "widget",
                                  "widgetType": "heading",
                                  "settings": {...}, "elements": []}]}]}]
"""

from __future__ import annotations

import secrets
from collections.abc import Iterator
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Union

from pagepress.errors import PagepressValidationError


class WidgetKind(str, Enum):
    """Widget types the converter emits."""

    HEADING = "heading"
    RICH_TEXT = "text-editor"
    IMAGE = "image"
    BUTTON = "button"
    DIVIDER = "divider"
    RAW_HTML = "html"
    ICON_BOX = "icon-box"
    ICON_LIST = "icon-list"
    COUNTER = "counter"
    TESTIMONIAL = "testimonial"
    CALL_TO_ACTION = "call-to-action"
    ACCORDION = "accordion"
    STAR_RATING = "star-rating"


# ---------------------------------------------------------------------------
# Nodes
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Widget:
    """A leaf content element.

    ``settings`` must be treated as read-only; use
    :func:`dataclasses.replace` with a new dict to change it.
    """

    id: str
    kind: str
    settings: dict[str, Any] = field(default_factory=dict)

    def to_builder(self) -> dict[str, Any]:
        kind = self.kind.value if isinstance(self.kind, Enum) else self.kind
        return {
            "id": self.id,
            "elType": "widget",
            "widgetType": kind,
            "settings": dict(self.settings),
            "elements": [],
        }


@dataclass(frozen=True)
class Column:
    id: str
    width_pct: int = 100
    children: tuple[Union[Widget, "Column"], ...] = ()

    def to_builder(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "elType": "column",
            "settings": {"_column_size": self.width_pct},
            "elements": [child.to_builder() for child in self.children],
        }


@dataclass(frozen=True)
class Section:
    id: str
    settings: dict[str, Any] = field(default_factory=dict)
    children: tuple[Column, ...] = ()

    def to_builder(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "elType": "section",
            "settings": dict(self.settings),
            "elements": [child.to_builder() for child in self.children],
        }


Node = Union[Section, Column, Widget]


@dataclass(frozen=True)
class ContentDocument:
    """The root of a block tree."""

    sections: tuple[Section, ...] = ()

    def to_builder(self) -> list[dict[str, Any]]:
        """Serialise to the builder's JSON structure."""
        return [section.to_builder() for section in self.sections]

    def walk(self) -> Iterator[Node]:
        """Yield every node depth-first, parents before children."""
        stack: list[Node] = list(reversed(self.sections))
        while stack:
            node = stack.pop()
            yield node
            if isinstance(node, (Section, Column)):
                stack.extend(reversed(node.children))

    def widgets(self) -> Iterator[Widget]:
        for node in self.walk():
            if isinstance(node, Widget):
                yield node

    def node_ids(self) -> list[str]:
        return [node.id for node in self.walk()]

    @classmethod
    def from_builder(cls, data: Any) -> ContentDocument:
        """Parse builder JSON back into nodes.

        Raises
        ------
        PagepressValidationError
            If *data* is not a list of well-formed section objects.
        """
        if not isinstance(data, list):
            raise PagepressValidationError(
                message="Block tree must be a list of sections",
                context={"issues": [{"field": "content.raw_block_tree", "message": "expected a list"}]},
            )
        return cls(sections=tuple(_section_from_builder(item, f"[{i}]") for i, item in enumerate(data)))


def _invalid(path: str, message: str) -> PagepressValidationError:
    return PagepressValidationError(
        message=f"Malformed block tree at {path}: {message}",
        context={"issues": [{"field": f"content.raw_block_tree{path}", "message": message}]},
    )


def _node_id(data: dict, path: str) -> str:
    node_id = data.get("id")
    if not isinstance(node_id, str) or not node_id:
        raise _invalid(path, "missing id")
    return node_id


def _section_from_builder(data: Any, path: str) -> Section:
    if not isinstance(data, dict) or data.get("elType") != "section":
        raise _invalid(path, "expected a section")
    return Section(
        id=_node_id(data, path),
        settings=dict(data.get("settings") or {}),
        children=tuple(
            _column_from_builder(child, f"{path}.elements[{i}]")
            for i, child in enumerate(data.get("elements") or [])
        ),
    )


def _column_from_builder(data: Any, path: str) -> Column:
    if not isinstance(data, dict) or data.get("elType") != "column":
        raise _invalid(path, "expected a column")
    settings = data.get("settings") or {}
    children: list[Widget | Column] = []
    for i, child in enumerate(data.get("elements") or []):
        child_path = f"{path}.elements[{i}]"
        if isinstance(child, dict) and child.get("elType") == "column":
            children.append(_column_from_builder(child, child_path))
        elif isinstance(child, dict) and child.get("elType") == "section":
            # Inner sections flatten into nested columns.
            inner = _section_from_builder(child, child_path)
            children.extend(inner.children)
        else:
            children.append(_widget_from_builder(child, child_path))
    try:
        width = int(settings.get("_column_size", 100))
    except (TypeError, ValueError):
        width = 100
    return Column(id=_node_id(data, path), width_pct=width, children=tuple(children))


def _widget_from_builder(data: Any, path: str) -> Widget:
    if not isinstance(data, dict) or data.get("elType") != "widget":
        raise _invalid(path, "expected a widget")
    kind = data.get("widgetType")
    if not isinstance(kind, str) or not kind:
        raise _invalid(path, "widget has no widgetType")
    return Widget(id=_node_id(data, path), kind=kind, settings=dict(data.get("settings") or {}))


# ---------------------------------------------------------------------------
# Ids
# ---------------------------------------------------------------------------

class IdAllocator:
    """Hands out random 8-hex-digit node ids, unique within one allocator.

    Seed it with the ids of an existing document before adding nodes to it.
    """

    __slots__ = ("_used",)

    def __init__(self, used: set[str] | None = None) -> None:
        self._used: set[str] = set(used or ())

    def __call__(self) -> str:
        while True:
            candidate = secrets.token_hex(4)
            if candidate not in self._used:
                self._used.add(candidate)
                return candidate

    @classmethod
    def for_document(cls, document: ContentDocument) -> IdAllocator:
        return cls(set(document.node_ids()))
