import json

from bs4 import BeautifulSoup

from core.entities import Reply, count_replies
from core.sites import GENERIC, HACKERNEWS, HACKERNEWS_SEARCH, REDDIT
from extraction.detail_extractor import DetailExtractor, build_reply_tree, clean_tags
from extraction.documents import JSON, parse_document


def _hn_comment(comment_id: int, indent: int, author: str, text: str) -> str:
    return (
        f'<tr class="athing comtr" id="{comment_id}"><td><table><tr>'
        f'<td class="ind" indent="{indent}"><img src="s.gif" height="1" width="{indent * 40}"></td>'
        f'<td class="default"><div><span class="comhead"><a class="hnuser">{author}</a> '
        f'<span class="age" title="2024-05-01T11:30:00 1714563000"><a>30 minutes ago</a></span></span></div>'
        f'<div class="comment"><div class="commtext c00">{text}</div></div></td>'
        "</tr></table></td></tr>"
    )


HN_ITEM = (
    '<html><body><table class="fatitem">'
    '<tr class="athing submission" id="101"><td class="title"><span class="titleline">'
    '<a href="https://blog.example/post">Show HN: A thing</a></span></td></tr>'
    '<tr><td class="subtext"><span class="subline"><span class="score">130 points</span> by '
    '<a class="hnuser">pg</a> <span class="age" title="2024-05-01T10:00:00 1714557600">2 hours ago</span>'
    ' | <a href="item?id=101">52&nbsp;comments</a></span></td></tr>'
    '<tr><td><div class="toptext">First paragraph.<p>Second paragraph.</p></div></td></tr>'
    "</table>"
    '<table class="comment-tree">'
    + _hn_comment(1, 0, "alice", "Top level comment here")
    + _hn_comment(2, 1, "bob", "A reply to alice's comment")
    + _hn_comment(3, 2, "carol", "A reply to bob, deeper down")
    + _hn_comment(4, 1, "dave", "Another reply to alice")
    + _hn_comment(5, 0, "erin", "Second top level comment")
    + _hn_comment(6, 0, "frank", "short")
    + "</table></body></html>"
)


def _reddit_comment(author, body, replies=()):
    return {
        "kind": "t1",
        "data": {
            "author": author,
            "body": body,
            "score": 5,
            "created_utc": 1714561200.0,
            "replies": {"kind": "Listing", "data": {"children": list(replies)}} if replies else "",
        },
    }


REDDIT_THREAD = json.dumps([
    {"data": {"children": [{"kind": "t3", "data": {
        "title": "Hello", "selftext": "Body of the post", "score": 250, "num_comments": 3,
        "upvote_ratio": 0.91, "author": "op", "created_utc": 1714557600.0, "link_flair_text": "Discussion",
    }}]}},
    {"data": {"children": [
        _reddit_comment("a", "top comment", [
            _reddit_comment("b", "nested reply", [_reddit_comment("c", "deepest")]),
        ]),
        _reddit_comment("d", "another top"),
        {"kind": "more", "data": {"count": 12}},
    ]}},
])


def test_hacker_news_item_builds_tree_from_indent():
    detail = DetailExtractor(HACKERNEWS).extract(BeautifulSoup(HN_ITEM, "html.parser"))

    assert detail.fetch_succeeded
    assert detail.body_text == "First paragraph.\nSecond paragraph."
    assert detail.score_override == 130
    assert detail.reply_count_override == 52
    assert detail.author == "pg"

    assert [r.author for r in detail.replies] == ["alice", "erin"]
    alice = detail.replies[0]
    assert [r.author for r in alice.children] == ["bob", "dave"]
    assert alice.children[0].children[0].author == "carol"
    assert alice.children[0].children[0].timestamp_raw == "2024-05-01T11:30:00 1714563000"
    # "short" is below the minimum reply length
    assert count_replies(detail.replies) == 5


def test_reddit_thread_keeps_nested_replies():
    scope = parse_document(REDDIT_THREAD, JSON)

    detail = DetailExtractor(REDDIT).extract(scope)

    assert detail.body_text == "Body of the post"
    assert detail.score_override == 250
    assert detail.approval_ratio == 0.91
    assert detail.tags == ("Discussion",)
    assert [r.author for r in detail.replies] == ["a", "d"]
    assert detail.replies[0].children[0].body_text == "nested reply"
    assert detail.replies[0].children[0].children[0].author == "c"
    assert count_replies(detail.replies) == 4


def test_reply_count_falls_back_to_tree_size():
    html = (
        "<article><p>" + "Long enough article body text. " * 5 + "</p></article>"
        '<div class="comment"><span class="author">x</span><p>first comment body</p>'
        '<div class="comment"><span class="author">y</span><p>nested comment body</p></div></div>'
    )

    detail = DetailExtractor(GENERIC).extract(BeautifulSoup(html, "html.parser"))

    assert detail.reply_count_override == 2
    assert detail.replies[0].body_text == "first comment body"
    assert detail.replies[0].children[0].author == "y"


def test_caps_body_and_reply_length():
    html = "<article>" + "word " * 2000 + "</article>" + '<div class="comment"><p>' + "r" * 3000 + "</p></div>"

    detail = DetailExtractor(GENERIC, body_char_cap=500, reply_char_cap=100).extract(BeautifulSoup(html, "html.parser"))

    assert len(detail.body_text) == 500
    assert len(detail.replies[0].body_text) == 100


def test_missing_counters_are_not_overrides():
    detail = DetailExtractor(GENERIC).extract(BeautifulSoup("<article><p>tiny</p></article>", "html.parser"))

    assert detail.score_override is None
    assert detail.reply_count_override is None
    assert detail.replies == ()


def test_clean_tags():
    raw = ["#python", "python", "2024", "x", "a" * 30, " Growth  ", None]

    assert clean_tags(raw) == ("python", "Growth")


def test_build_reply_tree_attaches_to_closest_shallower_reply():
    flat = [(0, Reply("a", "1")), (1, Reply("b", "2")), (3, Reply("c", "3")), (0, Reply("d", "4"))]

    tree = build_reply_tree(flat)

    assert [r.author for r in tree] == ["a", "d"]
    assert tree[0].children[0].children[0].author == "c"


def test_hacker_news_search_thread_from_items_endpoint():
    item = {
        "id": 4002, "type": "story", "author": "asker", "points": 5, "created_at_i": 1714564800,
        "title": "Ask HN: Pricing?", "text": "<p>How do you price a B2B tool?</p>",
        "children": [
            {"id": 1, "type": "comment", "author": "a", "text": "<p>Value based.</p>", "points": None,
             "created_at_i": 1714565000, "children": [
                 {"id": 2, "type": "comment", "author": "b", "text": "Agreed", "children": []},
             ]},
            {"id": 3, "type": "comment", "author": None, "text": None, "children": [
                {"id": 4, "type": "comment", "author": "c", "text": "Orphan reply", "children": []},
            ]},
        ],
    }

    detail = DetailExtractor(HACKERNEWS_SEARCH).extract(parse_document(json.dumps(item), JSON))

    assert detail.body_text == "How do you price a B2B tool?"
    assert detail.score_override == 5
    assert detail.author == "asker"
    assert [r.author for r in detail.replies] == ["a", "c"]
    assert detail.replies[0].body_text == "Value based."
    assert detail.replies[0].children[0].body_text == "Agreed"
    assert detail.reply_count_override == 3


def test_generic_reply_without_paragraphs_uses_own_text():
    html = (
        "<article><p>" + "Long enough article body text. " * 5 + "</p></article>"
        '<div class="comment"><span class="author">x</span> Plain text reply with no markup</div>'
    )

    detail = DetailExtractor(GENERIC).extract(BeautifulSoup(html, "html.parser"))

    assert detail.replies[0].author == "x"
    assert detail.replies[0].body_text == "Plain text reply with no markup"
