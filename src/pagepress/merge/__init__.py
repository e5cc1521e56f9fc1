"""Marker-region merging, region injection and content wrapping."""

from __future__ import annotations

from .markers import (
    GALLERY_REGION,
    SCHEMA_REGION,
    MarkerRegion,
    find_region,
    find_regions,
    inject_gallery,
    inject_schema,
    render_region,
)
from .merger import ContentMerger
from .wrapper import is_wrapped, wrap_content

__all__ = [
    "GALLERY_REGION",
    "SCHEMA_REGION",
    "ContentMerger",
    "MarkerRegion",
    "find_region",
    "find_regions",
    "inject_gallery",
    "inject_schema",
    "is_wrapped",
    "render_region",
    "wrap_content",
]
