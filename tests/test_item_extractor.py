import json

from bs4 import BeautifulSoup

from core.sites import HACKERNEWS, HACKERNEWS_SEARCH, INDIEHACKERS, REDDIT, DetailProfile, ListingProfile, SiteProfile
from extraction.documents import JSON, parse_document
from extraction.item_extractor import (
    ItemExtractor,
    containers_having,
    css_containers,
    derive_source_id,
    discover_containers,
)
from extraction.resolver import NUMBER, css_attr, css_text, field, transform
from fakes import make_record
from processing.prefilter import passes_prefilter

HN_LISTING = """
<html><body><table>
<tr class="athing" id="101">
  <td class="title"><span class="titleline"><a href="https://blog.example/post">Show HN: A thing</a></span></td>
</tr>
<tr><td class="subtext"><span class="subline">
  <span class="score">120 points</span> by <a class="hnuser">pg</a>
  <span class="age" title="2024-05-01T10:00:00 1714557600"><a href="item?id=101">2 hours ago</a></span>
  | <a href="item?id=101">45&nbsp;comments</a>
</span></td></tr>
<tr class="athing" id="102">
  <td class="title"><span class="titleline"><a href="item?id=102">Ask HN: Anyone?</a></span></td>
</tr>
<tr><td class="subtext"><span class="subline">
  <span class="score">3 points</span> by <a class="hnuser">dang</a>
  <span class="age" title="2024-05-01T11:00:00 1714561200"><a href="item?id=102">1 hour ago</a></span>
  | <a href="item?id=102">discuss</a>
</span></td></tr>
</table>
<a class="morelink" href="news?p=2">More</a>
</body></html>
"""


def soup(html: str) -> BeautifulSoup:
    return BeautifulSoup(html, "html.parser")


class TestRetention:
    def test_empty_title_is_dropped(self):
        assert not passes_prefilter(make_record(title="", score=10))

    def test_title_without_engagement_is_dropped(self):
        assert not passes_prefilter(make_record(score=0, reply_count=0, preview_text=""))

    def test_title_with_score_is_kept(self):
        assert passes_prefilter(make_record(score=1))

    def test_long_preview_is_enough(self):
        assert passes_prefilter(make_record(score=0, preview_text="x" * 51))
        assert not passes_prefilter(make_record(score=0, preview_text="x" * 50))


class TestContainerDiscovery:
    def test_first_matching_strategy_is_adopted(self):
        html = soup('<div><article class="a">1</article><article class="a">2</article><p class="b">3</p></div>')

        index, containers = discover_containers(html, [css_containers(".missing"), css_containers(".a"), css_containers(".b")])

        assert index == 1
        assert [c.get_text() for c in containers] == ["1", "2"]

    def test_containers_having_keeps_innermost(self):
        html = soup(
            '<div id="feed">'
            '<div class="card"><h2>One</h2><a href="/post/1">x</a></div>'
            '<div class="card"><h2>Two</h2><a href="/post/2">x</a></div>'
            "</div>"
        )

        containers = containers_having("div", ("h2", 'a[href*="/post/"]'))(html)

        assert [c.h2.get_text() for c in containers] == ["One", "Two"]

    def test_no_strategy_matches_records_error(self, session):
        extractor = ItemExtractor(HACKERNEWS, session=session)

        records = extractor.extract_all(soup("<p>nothing here</p>"), "hn")

        assert records == []
        assert session.errors[0].scope == "hn"
        assert session.errors[0].kind == "ContainerDiscoveryExhausted"


def test_hacker_news_listing():
    extractor = ItemExtractor(HACKERNEWS)

    records = extractor.extract_all(soup(HN_LISTING), "hn", "https://news.ycombinator.com/news")

    assert [r.source_id for r in records] == ["101", "102"]
    first, second = records
    assert first.title == "Show HN: A thing"
    assert first.detail_url == "https://news.ycombinator.com/item?id=101"
    assert first.link_url == "https://blog.example/post"
    assert first.author == "pg"
    assert first.score == 120
    assert first.reply_count == 45
    assert first.timestamp_raw == "2024-05-01T10:00:00 1714557600"
    assert second.reply_count == 0
    assert second.score == 3


def test_indiehackers_listing_prefers_post_cards():
    html = soup(
        "<main>"
        '<div class="feed">'
        '<div class="story-item"><h3><a href="/post/growing-to-10k-abc">Growing to $10k MRR</a></h3>'
        '<span class="upvote-count">1.2k</span><a href="/post/growing-to-10k-abc#comments">34 comments</a></div>'
        '<div class="story-item"><h3><a href="/post/ad">Sponsored</a></h3></div>'
        "</div></main>"
    )

    records = ItemExtractor(INDIEHACKERS).extract_all(html, "ih", "https://www.indiehackers.com/group/growth")

    assert len(records) == 1
    assert records[0].source_id == "growing-to-10k-abc"
    assert records[0].score == 1200
    assert records[0].reply_count == 34


def test_reddit_listing_reads_upvote_ratio():
    listing = parse_document(
        '{"data": {"children": ['
        '{"kind": "t3", "data": {"title": "Hello", "permalink": "/r/python/comments/abc123/hello/",'
        ' "author": "u1", "score": 10, "num_comments": 4, "created_utc": 1714561200.0,'
        ' "selftext": "", "upvote_ratio": 0.93, "url": "https://example.com"}},'
        '{"kind": "t1", "data": {"body": "not a post"}}'
        "]}}",
        JSON,
    )

    records = ItemExtractor(REDDIT).extract_all(listing, "r/python")

    assert len(records) == 1
    assert records[0].source_id == "abc123"
    assert records[0].detail_url == "https://www.reddit.com/r/python/comments/abc123/hello/"
    assert records[0].approval_ratio == 0.93
    assert records[0].link_url == "https://example.com"


def test_hacker_news_search_results():
    results = parse_document(
        json.dumps({
            "hits": [
                {"title": "Launching my SaaS", "objectID": "4001", "url": "https://saas.example", "author": "founder",
                 "points": 88, "num_comments": 12, "created_at_i": 1714561200, "story_text": None},
                {"title": "Ask HN: Pricing?", "objectID": "4002", "url": None, "author": "asker",
                 "points": 5, "num_comments": 0, "created_at_i": 1714564800,
                 "story_text": "<p>How do you price</p><p>a B2B tool?</p>"},
            ]
        }),
        JSON,
    )

    records = ItemExtractor(HACKERNEWS_SEARCH).extract_all(results, "hn-search")

    assert [r.source_id for r in records] == ["4001", "4002"]
    first, second = records
    assert first.detail_url == "https://news.ycombinator.com/item?id=4001"
    assert first.link_url == "https://saas.example"
    assert (first.score, first.reply_count) == (88, 12)
    assert first.timestamp_raw == "1714561200"
    assert second.link_url == ""
    assert second.preview_text == "How do you price\na B2B tool?"
    assert HACKERNEWS_SEARCH.detail_fetch_url(first.detail_url) == "https://hn.algolia.com/api/v1/items/4001"


def test_container_without_title_records_exhausted_field(session):
    profile = SiteProfile(
        name="test",
        base_url="https://example.com",
        listing=ListingProfile(
            containers=(css_containers("li"),),
            fields={
                "title": field("title", css_text("h2"), css_text(".headline")),
                "detail_url": field("detail_url", css_attr("a", "href")),
                "score": field("score", css_text(".score"), kind=NUMBER),
            },
        ),
        detail=DetailProfile(body=field("body"), score=field("score"), reply_count=field("reply_count")),
    )
    html = soup(
        "<ul>"
        '<li><h2>Real post</h2><a href="/a">a</a><span class="score">4</span></li>'
        '<li><a href="/promo">promo</a><span class="score">9</span></li>'
        "</ul>"
    )

    records = ItemExtractor(profile, session=session).extract_all(html, "feed")

    assert [r.title for r in records] == ["Real post"]
    assert session.errors[0].scope == "feed:container[1]"
    assert session.errors[0].kind == "FieldResolutionExhausted"


def test_failing_container_is_isolated(session):
    def explode(title):
        if title == "boom":
            raise ValueError("bad markup")
        return title

    profile = SiteProfile(
        name="test",
        base_url="https://example.com",
        listing=ListingProfile(
            containers=(css_containers("li"),),
            fields={
                "title": field("title", transform(css_text("h2"), explode)),
                "detail_url": field("detail_url", css_attr("a", "href")),
                "score": field("score", css_text(".score"), kind=NUMBER),
            },
        ),
        detail=DetailProfile(body=field("body"), score=field("score"), reply_count=field("reply_count")),
    )
    html = soup(
        "<ul>"
        '<li><h2>first</h2><a href="/a">a</a><span class="score">1</span></li>'
        '<li><h2>boom</h2><a href="/b">b</a><span class="score">1</span></li>'
        '<li><h2>third</h2><a href="/c">c</a><span class="score">1</span></li>'
        "</ul>"
    )

    records = ItemExtractor(profile, session=session).extract_all(html, "cat")

    assert [r.title for r in records] == ["first", "third"]
    assert [r.detail_url for r in records] == ["https://example.com/a", "https://example.com/c"]
    assert session.errors[0].scope == "cat:container[1]"
    assert session.errors[0].kind == "ValueError"


def test_derive_source_id():
    assert derive_source_id("https://news.ycombinator.com/item?id=42", r"[?&]id=(\d+)") == "42"
    assert derive_source_id("https://example.com/posts/slug/") == "slug"
    assert derive_source_id("https://example.com/") == ""
    assert derive_source_id("") == ""
