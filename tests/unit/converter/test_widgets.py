"""Tests for converter/widgets.py and converter/styling.py."""

from __future__ import annotations

import pytest
from bs4 import BeautifulSoup

from pagepress.converter import widgets
from pagepress.converter.styling import alignment, background_color, section_settings, vertical_padding


def _tag(html: str):
    return BeautifulSoup(html, "html.parser").find(True)


class TestPlainWidgets:
    @pytest.mark.parametrize("level,size", [("h1", "xl"), ("h2", "large"), ("h6", "small")])
    def test_heading_sizes(self, level, size):
        widget = widgets.build_heading(_tag(f"<{level}>  Big   news </{level}>"), "id1")
        assert widget.settings["title"] == "Big news"
        assert widget.settings["header_size"] == level
        assert widget.settings["size"] == size

    def test_heading_left_alignment_omitted(self):
        assert "align" not in widgets.build_heading(_tag('<h2 class="text-left">x</h2>'), "i").settings
        assert widgets.build_heading(_tag('<h2 class="text-right">x</h2>'), "i").settings["align"] == "right"

    def test_button_defaults(self):
        widget = widgets.build_button(_tag('<a class="btn"></a>'), "b1")
        assert widget.settings["text"] == "Click here"
        assert widget.settings["link"] == {"url": "#", "is_external": False, "nofollow": False}


class TestHintedWidgets:
    def test_icon_box(self):
        tag = _tag('<div data-icon="shield"><h3>Secure</h3><p>Encrypted at rest.</p></div>')
        settings = widgets.build_icon_box(tag, "w").settings
        assert settings["title_text"] == "Secure"
        assert settings["description_text"] == "Encrypted at rest."
        assert settings["selected_icon"] == {"value": "fas fa-shield-alt", "library": "fa-solid"}

    @pytest.mark.parametrize(
        "name,expected",
        [
            (None, {"value": "fas fa-star", "library": "fa-solid"}),
            ("no-such-icon", {"value": "fas fa-star", "library": "fa-solid"}),
            ("far fa-bell", {"value": "far fa-bell", "library": "fa-regular"}),
            ("fab fa-github", {"value": "fab fa-github", "library": "fa-brands"}),
        ],
    )
    def test_icon_resolution(self, name, expected):
        assert widgets._icon(name, "fas fa-star") == expected

    def test_icon_list(self):
        tag = _tag('<ul data-icon="star"><li>Fast</li><li data-icon="bolt">Cheap</li><li> </li></ul>')
        items = widgets.build_icon_list(tag, "w").settings["icon_list"]
        assert [i["text"] for i in items] == ["Fast", "Cheap"]
        assert items[0]["selected_icon"]["value"] == "fas fa-star"
        assert items[1]["selected_icon"]["value"] == "fas fa-bolt"
        assert items[0]["_id"] != items[1]["_id"]

    def test_counter_from_attributes(self):
        tag = _tag('<div data-start="10" data-end="99.5" data-prefix="$"><span>Revenue</span></div>')
        settings = widgets.build_counter(tag, "w").settings
        assert settings["starting_number"] == 10
        assert settings["ending_number"] == 99.5
        assert settings["prefix"] == "$"
        assert settings["title"] == "Revenue"
        assert settings["duration"] == 2000

    def test_counter_number_from_text(self):
        settings = widgets.build_counter(_tag("<div>1,250</div>"), "w").settings
        assert settings["ending_number"] == 1250
        assert settings["title"] == ""

    def test_counter_non_numeric_defaults_to_zero(self):
        assert widgets.build_counter(_tag("<div>lots</div>"), "w").settings["ending_number"] == 0

    def test_testimonial(self):
        tag = _tag('<div data-name="Ana" data-company="Acme" data-image="https://img.test/a.jpg">'
                   "<blockquote>Loved it</blockquote></div>")
        settings = widgets.build_testimonial(tag, "w").settings
        assert settings["testimonial_content"] == "Loved it"
        assert settings["testimonial_name"] == "Ana"
        assert settings["testimonial_job"] == "Acme"
        assert settings["testimonial_image"]["url"] == "https://img.test/a.jpg"

    def test_testimonial_defaults(self):
        settings = widgets.build_testimonial(_tag("<div>Great service</div>"), "w").settings
        assert settings["testimonial_content"] == "Great service"
        assert settings["testimonial_name"] == "Customer"
        assert "testimonial_image" not in settings

    def test_call_to_action_defaults(self):
        settings = widgets.build_call_to_action(_tag("<div><h2>Start now</h2></div>"), "w").settings
        assert settings["title"] == "Start now"
        assert settings["button"] == "Learn More"
        assert settings["link"]["url"] == "#"

    def test_accordion_from_details(self):
        tag = _tag(
            "<div><details><summary>Shipping?</summary><p>Free.</p></details>"
            "<details><summary>Returns?</summary><p>30 days.</p></details></div>"
        )
        tabs = widgets.build_accordion(tag, "acc").settings["tabs"]
        assert [(t["tab_title"], t["tab_content"]) for t in tabs] == [
            ("Shipping?", "<p>Free.</p>"),
            ("Returns?", "<p>30 days.</p>"),
        ]
        assert [t["_id"] for t in tabs] == ["acc0", "acc1"]

    def test_accordion_from_heading_pairs(self):
        tag = _tag("<div><div><h3>Q1</h3><p>A1</p></div><div><h3>Q2</h3><p>A2</p></div></div>")
        tabs = widgets.build_accordion(tag, "acc").settings["tabs"]
        assert [(t["tab_title"], t["tab_content"]) for t in tabs] == [("Q1", "A1"), ("Q2", "A2")]

    def test_accordion_without_pairs_keeps_content(self):
        tabs = widgets.build_accordion(_tag("<div>Just text</div>"), "acc").settings["tabs"]
        assert tabs == [{"_id": "acc0", "tab_title": "Frequently Asked Questions", "tab_content": "Just text"}]

    def test_star_rating(self):
        settings = widgets.build_star_rating(_tag('<div data-rating="4.5">Great</div>'), "w").settings
        assert settings == {"rating_scale": 5, "rating": 4.5, "title": "Great"}

    def test_every_hint_builds_its_kind(self):
        tag = _tag("<div><h3>x</h3><p>y</p></div>")
        for kind, builder in widgets.HINT_BUILDERS.values():
            assert builder(tag, "w").kind == kind


class TestStyling:
    @pytest.mark.parametrize(
        "classes,expected",
        [
            (["bg-gray-50"], None),
            (["bg-slate-100"], "#f3f4f6"),
            (["bg-zinc-600"], "#4b5563"),
            (["bg-neutral-950"], "#1f2937"),
            (["bg-red-900"], None),
        ],
    )
    def test_background(self, classes, expected):
        assert background_color(classes) == expected

    def test_padding_and_alignment(self):
        assert vertical_padding(["px-2", "py-8"]) == 32
        assert vertical_padding(["p-4"]) is None
        assert alignment(["font-bold", "text-center"]) == "center"

    def test_section_settings_defaults(self):
        assert section_settings() == {"structure": "10", "content_width": "boxed", "gap": "default"}

    def test_section_settings_from_tag(self):
        settings = section_settings(_tag('<section class="bg-gray-100 py-4"></section>'))
        assert settings["background_background"] == "classic"
        assert settings["padding"]["bottom"] == "16"
