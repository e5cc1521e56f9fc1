"""Safe and full content merges.

In **full** mode the new HTML replaces the page outright.  In **safe**
mode only the marker regions present in the new HTML are touched: each one
replaces the same-named region of the existing page, or is added if the
page lacks it.  Bytes outside those regions are preserved exactly, so
operator edits survive automated updates.
"""

from __future__ import annotations

from pagepress.config import PagepressConfig
from pagepress.errors import PagepressValidationError
from pagepress.models import PublishWarning, UpdateMode, WarningCode
from pagepress.observability import get_logger

from .markers import append_region, find_regions, replace_region

log = get_logger("pagepress.merge")


class ContentMerger:
    """Combine new HTML with a page's existing HTML.

    Parameters
    ----------
    config:
        ``no_marker_policy`` decides what safe mode does with new HTML
        that has no regions.
    """

    def __init__(self, config: PagepressConfig) -> None:
        self._config = config

    def merge(
        self,
        existing_html: str,
        new_html: str,
        mode: UpdateMode | str,
        warnings: list[PublishWarning] | None = None,
    ) -> str:
        """Return the merged document.

        Raises
        ------
        PagepressValidationError
            Safe mode, no regions in *new_html*, and ``no_marker_policy`` is
            ``"reject"``.
        """
        mode = UpdateMode(mode)
        if mode is UpdateMode.FULL or not existing_html.strip():
            return new_html

        regions = find_regions(new_html)
        if not regions:
            if self._config.no_marker_policy == "reject":
                raise PagepressValidationError(
                    message="Safe update requires marker regions in the new content",
                    context={"issues": [{
                        "field": "content.html",
                        "message": "no <!-- START NAME --> ... <!-- END NAME --> regions found",
                    }]},
                )
            if warnings is not None:
                warnings.append(PublishWarning(
                    code=WarningCode.MERGE_NO_MARKERS,
                    message="Safe update found no marker regions; the page content was replaced",
                ))
            log.warning(
                "Safe update without markers fell back to full replacement",
                extra={"extra_fields": {"op": "merge", "new_length": len(new_html)}},
            )
            return new_html

        merged = existing_html
        replaced: list[str] = []
        appended: list[str] = []
        for region in regions:
            if region.name in replaced or region.name in appended:
                continue
            swapped = replace_region(merged, region.name, region.raw_html)
            if swapped is None:
                merged = append_region(merged, region.raw_html)
                appended.append(region.name)
            else:
                merged = swapped
                replaced.append(region.name)

        log.debug(
            "Safe merge complete",
            extra={"extra_fields": {"op": "merge", "replaced": replaced, "appended": appended}},
        )
        return merged
