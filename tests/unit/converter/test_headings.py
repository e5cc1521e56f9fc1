"""Tests for converter/headings.py."""

from __future__ import annotations

from pagepress.config import PagepressConfig
from pagepress.converter import HtmlToBlockConverter, set_page_heading


def _convert(html: str):
    return HtmlToBlockConverter(PagepressConfig()).convert(html)


def _headings(document) -> list[tuple[str, str]]:
    return [
        (w.settings["header_size"], w.settings["title"])
        for w in document.widgets()
        if w.kind == "heading"
    ]


class TestSetPageHeading:
    def test_existing_h1_retitled(self):
        doc = _convert("<h2>Intro</h2><h1>Old title</h1>")
        updated, action = set_page_heading(doc, "New title")
        assert action == "updated"
        assert _headings(updated) == [("h2", "Intro"), ("h1", "New title")]

    def test_first_h2_promoted(self):
        doc = _convert("<section><p>lead</p><h3>Sub</h3></section><h2>Second</h2>")
        updated, action = set_page_heading(doc, "Main")
        assert action == "converted"
        assert _headings(updated) == [("h1", "Main"), ("h2", "Second")]
        promoted = next(w for w in updated.widgets() if w.settings["title"] == "Main")
        assert promoted.settings["size"] == "xl"

    def test_h4_is_not_promoted(self):
        doc = _convert("<h4>Small</h4>")
        updated, action = set_page_heading(doc, "Main")
        assert action == "created"
        assert _headings(updated) == [("h1", "Main"), ("h4", "Small")]

    def test_created_section_is_first(self):
        doc = _convert("<p>Body only</p>")
        updated, action = set_page_heading(doc, "Brand new")
        assert action == "created"
        assert len(updated.sections) == len(doc.sections) + 1
        assert updated.sections[1] is doc.sections[0]
        ids = updated.node_ids()
        assert len(ids) == len(set(ids))

    def test_input_document_untouched(self):
        doc = _convert("<h1>Keep me</h1><p>x</p>")
        set_page_heading(doc, "Changed")
        assert _headings(doc) == [("h1", "Keep me")]

    def test_ids_preserved_on_edit(self):
        doc = _convert("<h1>Old</h1><p>x</p>")
        updated, _ = set_page_heading(doc, "New")
        assert updated.node_ids() == doc.node_ids()

    def test_nested_column_heading(self):
        doc = _convert("<section><article><h2>Deep</h2></article></section>")
        updated, action = set_page_heading(doc, "Top")
        assert action == "converted"
        assert _headings(updated) == [("h1", "Top")]
