import math

import pytest
from bs4 import BeautifulSoup

from extraction.resolver import (
    EMPTY,
    NUMBER,
    RATIO,
    css_attr,
    css_text,
    field,
    is_empty,
    json_path,
    lookup,
    parse_count,
    regex_text,
    resolve,
    sibling,
    template,
)


def soup(html: str) -> BeautifulSoup:
    return BeautifulSoup(html, "html.parser")


class TestResolve:
    def test_first_non_empty_strategy_wins(self):
        calls = []

        def strategy(name, value):
            def run(scope):
                calls.append(name)
                return value
            return run

        value = resolve(None, [strategy("a", ""), strategy("b", "B"), strategy("c", "C")])

        assert value == "B"
        assert calls == ["a", "b"]

    def test_all_empty_returns_sentinel(self):
        value = resolve(None, [lambda s: None, lambda s: "   ", lambda s: [], lambda s: float("nan")])

        assert value is EMPTY
        assert not value

    def test_zero_is_a_value(self):
        assert resolve(None, [lambda s: 0, lambda s: 5]) == 0

    @pytest.mark.parametrize("value", [None, "", "  \n", [], (), {}, math.nan, EMPTY])
    def test_is_empty(self, value):
        assert is_empty(value)


class TestParseCount:
    @pytest.mark.parametrize(
        "text,expected",
        [
            ("1.2k", 1200),
            ("3,400", 3400),
            ("", 0),
            ("no digits", 0),
            ("2.5M views", 2500000),
            ("42 points", 42),
            ("1.9k", 1900),
            ("7 comments", 7),
        ],
    )
    def test_examples(self, text, expected):
        assert parse_count(text) == expected

    def test_suffix_must_stand_alone(self):
        # "m" of "min" is not a million
        assert parse_count("5 min ago") == 5

    @pytest.mark.parametrize(
        "text,expected",
        [
            ("12points", 12),
            ("100votes", 100),
            ("1.5kviews", 1500),
            ("12members", 12),
            ("3,400comments", 3400),
        ],
    )
    def test_unit_glued_to_digits(self, text, expected):
        assert parse_count(text) == expected


class TestFieldSpec:
    def test_numeric_text_without_digits_falls_through(self):
        html = soup('<div><span class="votes">Vote</span><span class="score">12 points</span></div>')
        spec = field("score", css_text(".votes"), css_text(".score"), kind=NUMBER)

        assert spec.resolve(html) == 12

    def test_numeric_default_is_zero(self):
        spec = field("score", css_text(".missing"), kind=NUMBER)

        assert spec.resolve(soup("<div></div>")) == 0
        assert spec.resolve_or_empty(soup("<div></div>")) is EMPTY

    def test_text_default_is_empty_string(self):
        assert field("title", css_text("h1")).resolve(soup("<p>x</p>")) == ""

    def test_ratio_percent(self):
        spec = field("ratio", css_text(".ratio"), kind=RATIO)

        assert spec.resolve(soup('<span class="ratio">92%</span>')) == pytest.approx(0.92)
        assert spec.resolve(soup("<p></p>")) is None


class TestHtmlStrategies:
    def test_css_text_min_length_skips_short_matches(self):
        html = soup("<div><p>hi</p><p>a longer paragraph</p></div>")

        assert css_text("p", min_length=5)(html) == "a longer paragraph"

    def test_css_text_not_inside(self):
        html = soup('<div><div class="comment"><span class="score">1</span></div><span class="score">9</span></div>')

        assert css_text(".score", not_inside=(".comment",))(html) == "9"

    def test_css_text_exclude(self):
        html = soup('<div class="c"><span class="author">bob</span>hello there</div>')

        assert css_text(".c", exclude=(".author",))(html) == "hello there"

    def test_css_attr(self):
        html = soup('<a class="x" href="/post/1">t</a>')

        assert css_attr("a.x", "href")(html) == "/post/1"
        assert css_attr("a.y", "href")(html) is EMPTY

    def test_sibling_reads_next_row(self):
        html = soup(
            "<table><tr class='athing' id='7'><td>t</td></tr>"
            "<tr><td><span class='score'>12 points</span></td></tr></table>"
        )
        row = html.select_one("tr.athing")

        assert sibling(css_text("span.score"))(row) == "12 points"

    def test_template_and_regex(self):
        html = soup("<tr id='99'><td>5 comments</td></tr>")
        row = html.select_one("tr")

        assert template(lambda s: s.get("id"), "item?id={}")(row) == "item?id=99"
        assert regex_text(r"(\d+)\s*comments")(row) == "5"


class TestJson:
    def test_lookup_walks_dicts_and_lists(self):
        data = {"a": [{"b": {"c": 3}}]}

        assert lookup(data, "a.0.b.c") == 3
        assert lookup(data, "a.1.b") is EMPTY
        assert lookup(data, "x") is EMPTY

    def test_json_path_ignores_null(self):
        assert json_path("a")({"a": None}) is EMPTY
        assert json_path("a")({"a": "v"}) == "v"
