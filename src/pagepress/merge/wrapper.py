"""Styling container for published HTML."""

from __future__ import annotations

import html as _html
import re

from pagepress.config import PagepressConfig

_BASE_STYLE = """<style>
.{cls} {{ line-height: 1.6; }}
.{cls} img {{ max-width: 100%; height: auto; }}
.{cls} h1, .{cls} h2, .{cls} h3 {{ line-height: 1.25; margin: 1.5em 0 0.5em; }}
.{cls} .pagepress-gallery {{ display: grid; gap: 1rem; grid-template-columns: repeat(auto-fill, minmax(220px, 1fr)); }}
</style>"""


def is_wrapped(html: str, wrapper_class: str) -> bool:
    pattern = r"""class\s*=\s*["'][^"']*(?<![\w-])""" + re.escape(wrapper_class) + r"""(?![\w-])"""
    return re.search(pattern, html) is not None


def wrap_content(html: str, config: PagepressConfig) -> str:
    """Wrap *html* in the styling container unless it already is.

    Idempotent: wrapping wrapped content returns it unchanged.
    """
    if not config.wrap_content or is_wrapped(html, config.wrapper_class):
        return html

    parts: list[str] = []
    if config.stylesheet_url:
        url = _html.escape(config.stylesheet_url, quote=True)
        if config.stylesheet_url.split("?")[0].endswith(".js"):
            parts.append(f'<script src="{url}"></script>')
        else:
            parts.append(f'<link rel="stylesheet" href="{url}">')
    parts.append(_BASE_STYLE.format(cls=config.wrapper_class))
    parts.append(f'<div class="{config.wrapper_class}">\n{html}\n</div>')
    return "\n".join(parts)
