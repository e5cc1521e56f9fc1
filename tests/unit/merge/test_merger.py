"""Tests for merge/merger.py: safe and full merges."""

from __future__ import annotations

import pytest

from pagepress.config import PagepressConfig
from pagepress.errors import PagepressValidationError
from pagepress.merge import ContentMerger
from pagepress.models import UpdateMode, WarningCode


@pytest.fixture
def merger() -> ContentMerger:
    return ContentMerger(PagepressConfig())


class TestSafeMerge:
    def test_region_replaced_rest_preserved(self, merger):
        existing = "<!-- START HERO --><h1>Old</h1><!-- END HERO --><footer>Keep</footer>"
        new = "<!-- START HERO --><h1>New</h1><!-- END HERO -->"
        assert merger.merge(existing, new, "safe") == (
            "<!-- START HERO --><h1>New</h1><!-- END HERO --><footer>Keep</footer>"
        )

    def test_bytes_outside_regions_untouched(self, merger):
        existing = (
            "  <p>operator   edit</p>\n"
            "<!-- START A -->a<!-- END A -->\r\n"
            "<div>between</div>"
            "<!-- START B -->b<!-- END B -->"
            "\t<em>tail</em>"
        )
        new = "<!-- START B -->B2<!-- END B --><!-- START A -->A2<!-- END A -->"
        merged = merger.merge(existing, new, UpdateMode.SAFE)
        assert merged == (
            "  <p>operator   edit</p>\n"
            "<!-- START A -->A2<!-- END A -->\r\n"
            "<div>between</div>"
            "<!-- START B -->B2<!-- END B -->"
            "\t<em>tail</em>"
        )

    def test_missing_region_appended(self, merger):
        existing = "<p>Intro</p><!-- START HERO -->h<!-- END HERO -->"
        new = "<!-- START FAQ -->q<!-- END FAQ -->"
        assert merger.merge(existing, new, "safe") == existing + "\n<!-- START FAQ -->q<!-- END FAQ -->"

    def test_appended_before_body_close(self, merger):
        existing = "<html><body><p>x</p></body></html>"
        merged = merger.merge(existing, "<!-- START NEW -->n<!-- END NEW -->", "safe")
        assert merged == "<html><body><p>x</p><!-- START NEW -->n<!-- END NEW -->\n</body></html>"

    def test_text_outside_new_regions_ignored(self, merger):
        existing = "<!-- START HERO -->old<!-- END HERO --><p>mine</p>"
        new = "<p>stray</p><!-- START HERO -->new<!-- END HERO --><p>more stray</p>"
        assert merger.merge(existing, new, "safe") == "<!-- START HERO -->new<!-- END HERO --><p>mine</p>"

    def test_repeated_region_in_new_html_applied_once(self, merger):
        existing = "<!-- START X -->0<!-- END X -->"
        new = "<!-- START X -->1<!-- END X --><!-- START X -->2<!-- END X -->"
        assert merger.merge(existing, new, "safe") == "<!-- START X -->1<!-- END X -->"

    def test_empty_existing_takes_new(self, merger):
        assert merger.merge("  \n", "<p>fresh</p>", "safe") == "<p>fresh</p>"

    def test_marker_whitespace_tolerated(self, merger):
        existing = "<!--START HERO-->old<!--   END HERO   --><p>k</p>"
        new = "<!-- START HERO -->new<!-- END HERO -->"
        assert merger.merge(existing, new, "safe") == "<!-- START HERO -->new<!-- END HERO --><p>k</p>"


class TestNoMarkers:
    def test_replace_policy_warns(self, merger):
        warnings = []
        assert merger.merge("<p>old</p>", "<p>new</p>", "safe", warnings) == "<p>new</p>"
        assert [w.code for w in warnings] == [WarningCode.MERGE_NO_MARKERS]

    def test_reject_policy(self):
        merger = ContentMerger(PagepressConfig(no_marker_policy="reject"))
        with pytest.raises(PagepressValidationError) as exc_info:
            merger.merge("<p>old</p>", "<p>new</p>", "safe")
        assert exc_info.value.issues[0]["field"] == "content.html"

    def test_reject_policy_ignores_empty_page(self):
        merger = ContentMerger(PagepressConfig(no_marker_policy="reject"))
        assert merger.merge("", "<p>new</p>", "safe") == "<p>new</p>"


class TestFullMerge:
    def test_full_replaces(self, merger):
        existing = "<!-- START HERO -->old<!-- END HERO --><footer>gone</footer>"
        assert merger.merge(existing, "<p>only</p>", "full") == "<p>only</p>"

    def test_unknown_mode(self, merger):
        with pytest.raises(ValueError):
            merger.merge("a", "b", "partial")
