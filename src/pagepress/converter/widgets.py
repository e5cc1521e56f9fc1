"""Widget builders.

Each builder turns one BeautifulSoup element into a :class:`Widget`.  The
plain builders (heading, image, button ...) are selected by tag name; the
hinted builders (icon box, counter, accordion ...) are selected by an
explicit hint attribute such as ``data-widget="counter"`` and read their
parameters from ``data-*`` attributes and child elements.

Builders never fail on odd markup: missing pieces fall back to defaults.
"""

from __future__ import annotations

import re
from collections.abc import Callable
from typing import Any

from bs4 import Tag

from .nodes import Widget, WidgetKind
from .styling import alignment, class_list

# ---------------------------------------------------------------------------
# Shared helpers
# ---------------------------------------------------------------------------

_HEADING_SIZES = {
    "h1": "xl",
    "h2": "large",
    "h3": "medium",
    "h4": "small",
    "h5": "small",
    "h6": "small",
}

_ICONS = {
    "check": "fas fa-check",
    "check-circle": "fas fa-check-circle",
    "star": "fas fa-star",
    "arrow-right": "fas fa-arrow-right",
    "chevron-right": "fas fa-chevron-right",
    "heart": "fas fa-heart",
    "phone": "fas fa-phone",
    "envelope": "fas fa-envelope",
    "map-marker": "fas fa-map-marker-alt",
    "clock": "fas fa-clock",
    "shield": "fas fa-shield-alt",
    "bolt": "fas fa-bolt",
    "users": "fas fa-users",
    "thumbs-up": "fas fa-thumbs-up",
}

_NUMBER_RE = re.compile(r"-?\d+(?:\.\d+)?")


def text_of(tag: Tag) -> str:
    """Return *tag*'s visible text with whitespace collapsed."""
    return " ".join(tag.get_text().split())


def _icon(name: str | None, default: str) -> dict[str, str]:
    if name and name.startswith(("fas ", "far ", "fab ")):
        value = name
    else:
        value = _ICONS.get((name or "").strip().lower(), default)
    library = "fa-regular" if value.startswith("far ") else "fa-brands" if value.startswith("fab ") else "fa-solid"
    return {"value": value, "library": library}


def _number(raw: str | None, default: float) -> float:
    if raw is None:
        return default
    match = _NUMBER_RE.search(raw.replace(",", ""))
    if not match:
        return default
    return float(match.group(0))


def _int_or_float(value: float) -> int | float:
    return int(value) if value == int(value) else value


def _first(tag: Tag, names: list[str]) -> Tag | None:
    found = tag.find(names)
    return found if isinstance(found, Tag) else None


def is_button_link(tag: Tag) -> bool:
    """``<a>`` elements styled as buttons become button widgets."""
    return any("btn" in cls or "button" in cls for cls in class_list(tag))


# ---------------------------------------------------------------------------
# Plain widgets
# ---------------------------------------------------------------------------

def build_heading(tag: Tag, node_id: str) -> Widget:
    settings: dict[str, Any] = {
        "title": text_of(tag),
        "header_size": tag.name,
        "size": _HEADING_SIZES.get(tag.name, "small"),
    }
    align = alignment(class_list(tag))
    if align in ("center", "right"):
        settings["align"] = align
    return Widget(id=node_id, kind=WidgetKind.HEADING, settings=settings)


def build_rich_text(html: str, node_id: str) -> Widget:
    return Widget(id=node_id, kind=WidgetKind.RICH_TEXT, settings={"editor": html})


def build_raw_html(html: str, node_id: str) -> Widget:
    return Widget(id=node_id, kind=WidgetKind.RAW_HTML, settings={"html": html})


def build_image(tag: Tag, node_id: str) -> Widget:
    settings: dict[str, Any] = {
        "image": {"url": tag.get("src", ""), "id": "", "alt": tag.get("alt", "")},
        "image_size": "full",
    }
    align = alignment(class_list(tag))
    if align is not None:
        settings["align"] = align
    return Widget(id=node_id, kind=WidgetKind.IMAGE, settings=settings)


def build_button(tag: Tag, node_id: str) -> Widget:
    href = str(tag.get("href") or "#")
    return Widget(
        id=node_id,
        kind=WidgetKind.BUTTON,
        settings={
            "text": text_of(tag) or "Click here",
            "link": {
                "url": href,
                "is_external": href.startswith(("http://", "https://")),
                "nofollow": False,
            },
            "align": alignment(class_list(tag)) or "center",
        },
    )


def build_divider(tag: Tag, node_id: str) -> Widget:
    return Widget(
        id=node_id,
        kind=WidgetKind.DIVIDER,
        settings={"style": "solid", "weight": {"unit": "px", "size": 1}},
    )


# ---------------------------------------------------------------------------
# Hinted widgets
# ---------------------------------------------------------------------------

def build_icon_box(tag: Tag, node_id: str) -> Widget:
    title = _first(tag, ["h2", "h3", "h4", "h5"])
    description = _first(tag, ["p"])
    if description is None:
        description = _first(tag, ["div", "span"])
    return Widget(
        id=node_id,
        kind=WidgetKind.ICON_BOX,
        settings={
            "selected_icon": _icon(tag.get("data-icon"), "fas fa-star"),
            "title_text": text_of(title) if title is not None else "",
            "description_text": text_of(description) if description is not None else "",
            "title_size": "h3",
            "position": "top",
        },
    )


def build_icon_list(tag: Tag, node_id: str) -> Widget:
    default_icon = tag.get("data-icon")
    sources = tag.find_all("li") or [c for c in tag.children if isinstance(c, Tag)]
    items = []
    for i, item in enumerate(sources):
        text = text_of(item)
        if not text:
            continue
        items.append({
            "_id": f"{node_id}{i}",
            "text": text,
            "selected_icon": _icon(item.get("data-icon") or default_icon, "fas fa-check"),
        })
    return Widget(id=node_id, kind=WidgetKind.ICON_LIST, settings={"icon_list": items})


def build_counter(tag: Tag, node_id: str) -> Widget:
    end_raw = tag.get("data-number") or tag.get("data-end")
    title = tag.get("data-title")
    if title is None:
        label = _first(tag, ["p", "span", "h3", "h4", "h5", "h6"])
        if label is not None:
            title = text_of(label)
        else:
            # Bare text is the label unless the number has to come from it.
            title = text_of(tag) if end_raw is not None else ""
    if end_raw is None:
        end_raw = text_of(tag)
    return Widget(
        id=node_id,
        kind=WidgetKind.COUNTER,
        settings={
            "starting_number": _int_or_float(_number(tag.get("data-start"), 0)),
            "ending_number": _int_or_float(_number(end_raw, 0)),
            "prefix": tag.get("data-prefix", ""),
            "suffix": tag.get("data-suffix", ""),
            "duration": 2000,
            "title": title,
        },
    )


def build_testimonial(tag: Tag, node_id: str) -> Widget:
    quote = _first(tag, ["blockquote", "p"])
    settings: dict[str, Any] = {
        "testimonial_content": text_of(quote) if quote is not None else text_of(tag),
        "testimonial_name": tag.get("data-name") or "Customer",
        "testimonial_job": tag.get("data-company", ""),
    }
    image = tag.get("data-image")
    if image:
        settings["testimonial_image"] = {"url": image, "id": ""}
    return Widget(id=node_id, kind=WidgetKind.TESTIMONIAL, settings=settings)


def build_call_to_action(tag: Tag, node_id: str) -> Widget:
    title = _first(tag, ["h2", "h3", "h4"])
    description = _first(tag, ["p"])
    link = _first(tag, ["a"])
    href = str(link.get("href") or "#") if link is not None else "#"
    return Widget(
        id=node_id,
        kind=WidgetKind.CALL_TO_ACTION,
        settings={
            "skin": "classic",
            "title": text_of(title) if title is not None else "",
            "description": text_of(description) if description is not None else "",
            "button": (text_of(link) if link is not None else "") or "Learn More",
            "link": {"url": href, "is_external": href.startswith(("http://", "https://"))},
        },
    )


def _accordion_items(tag: Tag) -> list[tuple[str, str]]:
    items: list[tuple[str, str]] = []
    for details in tag.find_all("details"):
        summary = details.find("summary")
        title = text_of(summary) if isinstance(summary, Tag) else ""
        body = "".join(
            str(child) for child in details.children
            if not (isinstance(child, Tag) and child.name == "summary")
        ).strip()
        if title or body:
            items.append((title, body))
    if items:
        return items

    for child in tag.find_all(["div", "li"], recursive=True):
        question = child.find(["h3", "h4", "h5", "strong", "b"])
        answer = child.find(["p", "div", "span"])
        if isinstance(question, Tag) and isinstance(answer, Tag):
            items.append((text_of(question), answer.decode_contents().strip()))
    return items


def build_accordion(tag: Tag, node_id: str) -> Widget:
    items = _accordion_items(tag)
    if not items:
        items = [("Frequently Asked Questions", tag.decode_contents().strip())]
    return Widget(
        id=node_id,
        kind=WidgetKind.ACCORDION,
        settings={
            "tabs": [
                {"_id": f"{node_id}{i}", "tab_title": title, "tab_content": body}
                for i, (title, body) in enumerate(items)
            ],
            "selected_icon": {"value": "fas fa-plus", "library": "fa-solid"},
            "selected_active_icon": {"value": "fas fa-minus", "library": "fa-solid"},
        },
    )


def build_star_rating(tag: Tag, node_id: str) -> Widget:
    return Widget(
        id=node_id,
        kind=WidgetKind.STAR_RATING,
        settings={
            "rating_scale": _int_or_float(_number(tag.get("data-scale"), 5)),
            "rating": _int_or_float(_number(tag.get("data-rating"), 5)),
            "title": text_of(tag),
        },
    )


HintBuilder = Callable[[Tag, str], Widget]

HINT_BUILDERS: dict[str, tuple[WidgetKind, HintBuilder]] = {
    "icon-box": (WidgetKind.ICON_BOX, build_icon_box),
    "icon-list": (WidgetKind.ICON_LIST, build_icon_list),
    "counter": (WidgetKind.COUNTER, build_counter),
    "testimonial": (WidgetKind.TESTIMONIAL, build_testimonial),
    "call-to-action": (WidgetKind.CALL_TO_ACTION, build_call_to_action),
    "cta": (WidgetKind.CALL_TO_ACTION, build_call_to_action),
    "accordion": (WidgetKind.ACCORDION, build_accordion),
    "faq": (WidgetKind.ACCORDION, build_accordion),
    "star-rating": (WidgetKind.STAR_RATING, build_star_rating),
    "button": (WidgetKind.BUTTON, build_button),
}
"""Hint value -> (emitted kind, builder).  Unknown hints are ignored."""
