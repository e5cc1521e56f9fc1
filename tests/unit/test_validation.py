"""Tests for validation.py: request parsing and editorial checks."""

from __future__ import annotations

import pytest

from pagepress.errors import PagepressValidationError
from pagepress.models import PageStatus, UpdateMode
from pagepress.validation import (
    content_stats,
    lint_content,
    parse_json_body,
    parse_publish_request,
    seo_score,
)


def _payload(**sections) -> dict:
    payload = {
        "page": {"title": "Pricing plans for teams", "slug": "pricing"},
        "content": {"html": "<h1>Pricing</h1>"},
    }
    payload.update(sections)
    return payload


def _fields(payload) -> list[str]:
    with pytest.raises(PagepressValidationError) as exc_info:
        parse_publish_request(payload)
    return [issue["field"] for issue in exc_info.value.issues]


class TestParsePublishRequest:
    def test_minimal(self):
        request = parse_publish_request(_payload())
        assert request.page.title == "Pricing plans for teams"
        assert request.page.status is PageStatus.DRAFT
        assert request.page.update_mode is UpdateMode.SAFE
        assert request.content.raw_block_tree is None
        assert request.options.idempotency_key is None
        assert request.images.gallery == ()

    def test_default_mode_from_caller(self):
        request = parse_publish_request(_payload(), default_update_mode="full")
        assert request.page.update_mode is UpdateMode.FULL

    def test_full_payload(self):
        request = parse_publish_request(_payload(
            page={
                "title": "  Docs  ", "slug": "docs_v2", "status": "publish",
                "update_mode": "full", "parent_slug": "help", "template": "wide", "hide_title": True,
            },
            seo={"meta_title": "Docs", "focus_keyword": "docs"},
            images={
                "featured": {"url": "https://img.test/f.jpg", "alt": "F"},
                "gallery": ["https://img.test/1.jpg", {"url": "https://img.test/2.jpg", "caption": "two"}],
            },
            schema={"FAQPage": {"mainEntity": []}},
            options={"idempotency_key": " abc ", "skip_validation": True},
        ))
        assert request.page.title == "Docs"
        assert request.page.parent_slug == "help"
        assert request.page.hide_title is True
        assert request.images.featured_url == "https://img.test/f.jpg"
        assert request.images.featured_alt == "F"
        assert [g.url for g in request.images.gallery] == ["https://img.test/1.jpg", "https://img.test/2.jpg"]
        assert request.images.gallery[1].caption == "two"
        assert request.schema == {"FAQPage": {"mainEntity": []}}
        assert request.options.idempotency_key == "abc"
        assert request.options.skip_validation is True
        assert request.seo["focus_keyword"] == "docs"

    def test_block_tree_alias_as_json_string(self):
        content = {"elementor_data": '[{"id": "s", "elType": "section", "elements": []}]'}
        request = parse_publish_request(_payload(content=content))
        assert request.content.raw_block_tree == [{"id": "s", "elType": "section", "elements": []}]
        assert request.content.html == ""

    def test_image_aliases(self):
        request = parse_publish_request(_payload(images={
            "featured_image_url": "https://img.test/f.jpg",
            "gallery_images": ["https://img.test/g.jpg"],
        }))
        assert request.images.featured_url == "https://img.test/f.jpg"
        assert len(request.images.gallery) == 1

    def test_all_issues_reported_together(self):
        fields = _fields({
            "page": {"slug": "bad slug!", "status": "live", "update_mode": "merge"},
            "content": {},
            "options": {"idempotency_key": "", "skip_validation": "yes"},
        })
        assert fields == [
            "page.title",
            "page.slug",
            "page.status",
            "page.update_mode",
            "content.html",
            "options.idempotency_key",
            "options.skip_validation",
        ]

    def test_message_counts_issues(self):
        with pytest.raises(PagepressValidationError) as exc_info:
            parse_publish_request({"page": {}, "content": {}})
        assert str(exc_info.value).startswith("Invalid publish request: 3 issue(s)")
        assert exc_info.value.status == 400

    @pytest.mark.parametrize(
        "payload,field",
        [
            ({"content": {"html": "x"}}, "page"),
            ({"page": "pricing", "content": {"html": "x"}}, "page"),
            (_payload(content={"html": "x", "raw_block_tree": "{not json"}), "content.raw_block_tree"),
            (_payload(content={"html": "x", "raw_block_tree": {"a": 1}}), "content.raw_block_tree"),
            (_payload(images={"featured": {"alt": "no url"}}), "images.featured"),
            (_payload(images={"featured_url": 42}), "images.featured_url"),
            (_payload(images={"gallery": "one.jpg"}), "images.gallery"),
            (_payload(images={"gallery": [{"alt": "x"}]}), "images.gallery[0]"),
            (_payload(schema=["FAQPage"]), "schema"),
            (_payload(schema={"FAQPage": "nope"}), "schema.FAQPage"),
            (_payload(options={"idempotency_key": "k" * 256}), "options.idempotency_key"),
            (_payload(page={"title": "T", "slug": "s", "template": 3}), "page.template"),
        ],
    )
    def test_single_issue(self, payload, field):
        assert field in _fields(payload)

    def test_non_object_body(self):
        assert _fields([1, 2]) == [""]

    def test_unicode_slug_allowed(self):
        assert parse_publish_request(_payload(page={"title": "Preise", "slug": "preisübersicht"})).page.slug


class TestParseJsonBody:
    def test_valid(self):
        assert parse_json_body(b'{"a": 1}') == {"a": 1}

    @pytest.mark.parametrize("body", [b"", b"  ", b"{broken", b"\xff\xfe"])
    def test_invalid(self, body):
        with pytest.raises(PagepressValidationError):
            parse_json_body(body)


LONG_HTML = "<h1>Guide</h1>" + "<p>" + "word " * 600 + "</p>"
GOOD_DESCRIPTION = "d" * 140


def _request(title="A complete guide to pricing strategy", html=LONG_HTML, seo=None, mode="full"):
    return parse_publish_request({
        "page": {"title": title, "slug": "guide", "update_mode": mode},
        "content": {"html": html},
        "seo": seo if seo is not None else {"meta_description": GOOD_DESCRIPTION, "focus_keyword": "pricing"},
    })


class TestLintContent:
    def test_clean(self):
        assert lint_content(_request()) == ([], [])

    def test_short_title_and_content(self):
        issues, _ = lint_content(_request(title="Short", html="<h1>x</h1>"))
        assert len(issues) == 2

    def test_long_title_warns(self):
        _, warnings = lint_content(_request(title="x" * 61))
        assert any("longer than 60" in w for w in warnings)

    def test_description_checks(self):
        _, missing = lint_content(_request(seo={}))
        assert "Meta description is missing" in missing
        _, short = lint_content(_request(seo={"description": "too short"}))
        assert any("currently 9" in w for w in short)

    def test_block_tree_skips_length_check(self):
        request = parse_publish_request({
            "page": {"title": "A complete guide", "slug": "g", "update_mode": "full"},
            "content": {"raw_block_tree": []},
            "seo": {"meta_description": GOOD_DESCRIPTION},
        })
        issues, warnings = lint_content(request)
        assert issues == []
        assert "Content has no H1 heading" in warnings

    def test_safe_mode_without_markers(self):
        _, warnings = lint_content(_request(mode="safe"))
        assert any("marker regions" in w for w in warnings)
        _, warnings = lint_content(_request(mode="safe", html="<!-- START A -->" + LONG_HTML + "<!-- END A -->"))
        assert not any("marker regions" in w for w in warnings)


class TestSeoScore:
    def test_perfect(self):
        assert seo_score(_request()) == 100

    def test_deductions(self):
        request = _request(title="Short title", html="<h2>no h1</h2><p>few words</p>", seo={})
        assert seo_score(request) == 100 - 10 - 15 - 20 - 15 - 10

    def test_precomputed_stats(self):
        assert seo_score(_request(), {"html_length": 0, "word_count": 400, "heading_count": 0}) == 90

    def test_floor(self):
        request = _request(title="x" * 70, html="", seo={"description": "x"})
        assert seo_score(request) >= 0


class TestContentStats:
    def test_counts(self):
        html = "<h1>Title here</h1><script>var a = 1;</script><style>p{}</style><h2>Sub</h2><p>one two three</p>"
        stats = content_stats(html)
        assert stats == {"html_length": len(html), "word_count": 6, "heading_count": 2}
