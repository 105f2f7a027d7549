"""
Declarative site profiles.

Every selector fallback chain lives here as data; the extractors, loader and
enricher are the same code for every site.
"""
import re
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Tuple
from urllib.parse import urlsplit, urlunsplit

from bs4 import BeautifulSoup

from extraction.documents import HTML, JSON
from extraction.item_extractor import (
    ContainerStrategy,
    containers_having,
    css_containers,
    json_items,
)
from extraction.resolver import (
    FieldSpec,
    LIST,
    NUMBER,
    RATIO,
    css_attr,
    css_joined_text,
    css_longest_text,
    css_text,
    css_texts,
    field as fspec,
    json_path,
    own_attr,
    own_text,
    regex_text,
    sibling,
    template,
    lookup,
    transform,
)

DEFAULT_LOAD_MORE_KEYWORDS = ("load more", "show more", "more", "load")


@dataclass(frozen=True)
class ListingProfile:
    containers: Tuple[ContainerStrategy, ...]
    fields: Dict[str, FieldSpec]
    wait_selector: Optional[str] = None
    load_more_selectors: Tuple[str, ...] = ()
    load_more_keywords: Tuple[str, ...] = DEFAULT_LOAD_MORE_KEYWORDS


@dataclass(frozen=True)
class ReplyProfile:
    containers: Tuple[ContainerStrategy, ...]
    body: FieldSpec
    author: Optional[FieldSpec] = None
    score: Optional[FieldSpec] = None
    timestamp: Optional[FieldSpec] = None
    # Flat layouts: explicit depth per reply (None = infer from DOM nesting)
    depth: Optional[FieldSpec] = None
    # Nested layouts: children of a reply
    children: Optional[Callable[[Any], List[Any]]] = None
    min_length: int = 10


@dataclass(frozen=True)
class DetailProfile:
    body: FieldSpec
    score: FieldSpec
    reply_count: FieldSpec
    tags: Optional[FieldSpec] = None
    author: Optional[FieldSpec] = None
    timestamp: Optional[FieldSpec] = None
    approval_ratio: Optional[FieldSpec] = None
    replies: Optional[ReplyProfile] = None
    wait_selector: Optional[str] = None


@dataclass(frozen=True)
class SiteProfile:
    """
    Everything site-specific about extraction.
    """
    name: str
    base_url: str
    listing: ListingProfile
    detail: DetailProfile
    document_format: str = HTML
    id_pattern: Optional[str] = None
    detail_fetch_url: Callable[[str], str] = field(default=lambda url: url)


# ---------------------------------------------------------------------------
# IndieHackers: client-rendered feed with a "load more" control
# ---------------------------------------------------------------------------

_IH_NOT_CONTENT = (".comment", ".comments", "nav", "header")

INDIEHACKERS = SiteProfile(
    name="indiehackers",
    base_url="https://www.indiehackers.com",
    id_pattern=r"/post/([^/?#]+)",
    listing=ListingProfile(
        containers=(
            containers_having("article, li, div", ("h2, h3", 'a[href*="/post/"]')),
            css_containers('[data-testid="post"]'),
            css_containers(".story-item, .post-item, .feed-item"),
            css_containers("article"),
        ),
        fields={
            "title": fspec("title", css_text("h2 a, h3 a, .title a"), css_text('a[href*="/post/"]'), css_text("h2, h3")),
            "detail_url": fspec(
                "detail_url",
                css_attr('h2 a[href], h3 a[href], .title a[href]', "href"),
                css_attr('a[href*="/post/"]', "href"),
            ),
            "author": fspec("author", css_text(".author-name, .username"), css_text('a[href*="/users/"], a[href*="/u/"]')),
            "score": fspec("score", css_text(".upvote-count, .points, .vote-count"), kind=NUMBER),
            "reply_count": fspec(
                "reply_count",
                css_text(".comment-count, .comments-count"),
                css_text('a[href*="#comments"]'),
                kind=NUMBER,
            ),
            "timestamp": fspec(
                "timestamp",
                css_attr("time[datetime]", "datetime"),
                css_text("time, .time-ago, .timestamp"),
            ),
            "preview": fspec("preview", css_text(".content, .excerpt"), css_text("p")),
        },
        wait_selector='[data-testid="post"], .post-item, .story-item, article',
        load_more_selectors=(
            'button[data-testid="load-more"]',
            ".load-more",
            ".show-more",
            '[aria-label*="Load more"]',
        ),
    ),
    detail=DetailProfile(
        body=fspec(
            "body",
            css_longest_text(
                ".content, .post-body, .post-content, article main, [data-testid='post-content'], .prose, article > div",
                min_length=100,
                exclude=(".comment", ".comments", "nav", "header", ".author-info"),
                not_inside=_IH_NOT_CONTENT,
            ),
            css_joined_text("main p, article p, .content p", min_item_length=20),
        ),
        score=fspec(
            "score",
            css_text(".upvote-count, .upvotes, [data-testid='upvote-count'], .vote-count, .points", not_inside=_IH_NOT_CONTENT),
            css_text("button[class*='upvote'], button[class*='vote']", not_inside=_IH_NOT_CONTENT),
            kind=NUMBER,
        ),
        reply_count=fspec(
            "reply_count",
            css_text(".comment-count, .comments-count, [data-testid='comment-count'], .discussion-count"),
            regex_text(r"(\d[\d,.]*k?)\s*(?:comments?|replies|discussions?)\b"),
            kind=NUMBER,
        ),
        tags=fspec(
            "tags",
            css_texts('a[href*="/tags/"], a[href*="/tag/"], .tag, .post-tag, [data-testid="tag"]', not_inside=(".comment",)),
            kind=LIST,
        ),
        author=fspec(
            "author",
            css_text('a[href*="/user/"], a[href*="/u/"], .author-name, .username, [data-testid="author"], .post-author',
                     not_inside=(".comment", ".comments")),
        ),
        timestamp=fspec(
            "timestamp",
            css_attr("time[datetime]", "datetime", not_inside=(".comment",)),
            css_text("time, .timestamp, .post-time, .published-at, [data-testid='timestamp']", not_inside=(".comment",)),
        ),
        replies=ReplyProfile(
            containers=(
                css_containers(".comment-item"),
                css_containers('[data-testid="comment"]'),
                css_containers("article.comment, div.comment, li.comment"),
            ),
            author=fspec("reply_author", css_text('a[href*="/user/"], a[href*="/u/"], .comment-author, .author, .username')),
            body=fspec(
                "reply_body",
                css_text(".comment-text, .comment-body, .comment-content", min_length=11),
                css_text("p", min_length=11),
                css_text("", exclude=(".author", ".metadata", "time", ".upvotes")),
            ),
            score=fspec("reply_score", css_text(".comment-upvotes, .upvote-count, .votes, [class*='vote']"), kind=NUMBER),
            timestamp=fspec(
                "reply_timestamp",
                css_attr("time[datetime], [datetime]", "datetime"),
                css_text("time, .time-ago, .comment-time"),
            ),
        ),
    ),
)


# ---------------------------------------------------------------------------
# Hacker News: server-rendered tables, "More" link pagination
# ---------------------------------------------------------------------------

_COMMENTS_RE = re.compile(r"(\d+)\s*comments?", re.IGNORECASE)


def _comment_count(subline: str) -> str:
    # The subline also holds the points count; only "N comments" counts here
    match = _COMMENTS_RE.search(subline)
    return match.group(1) if match else ""


HACKERNEWS = SiteProfile(
    name="hackernews",
    base_url="https://news.ycombinator.com",
    id_pattern=r"[?&]id=(\d+)",
    listing=ListingProfile(
        containers=(
            css_containers("tr.athing:not(.comtr)"),
            css_containers("tr.athing"),
        ),
        fields={
            "title": fspec("title", css_text("span.titleline > a"), css_text("a.storylink"), css_text("td.title > a")),
            "detail_url": fspec(
                "detail_url",
                template(own_attr("id"), "item?id={}"),
                sibling(css_attr('a[href^="item?id="]', "href")),
            ),
            "link_url": fspec("link_url", css_attr("span.titleline > a", "href"), css_attr("a.storylink", "href")),
            "author": fspec("author", sibling(css_text("a.hnuser"))),
            "score": fspec("score", sibling(css_text("span.score")), kind=NUMBER),
            "reply_count": fspec("reply_count", sibling(regex_text(r"(\d+)\s*comments?")), kind=NUMBER),
            "timestamp": fspec("timestamp", sibling(css_attr("span.age", "title")), sibling(css_text("span.age"))),
        },
        wait_selector="tr.athing",
        load_more_selectors=("a.morelink",),
        load_more_keywords=("more",),
    ),
    detail=DetailProfile(
        body=fspec("body", css_text("div.toptext", separator="\n"), css_text("table.fatitem div.toptext", separator="\n")),
        score=fspec("score", css_text("table.fatitem span.score"), css_text("span.score"), kind=NUMBER),
        reply_count=fspec(
            "reply_count",
            transform(css_text("table.fatitem .subline, table.fatitem .subtext"), _comment_count),
            kind=NUMBER,
        ),
        author=fspec("author", css_text("table.fatitem a.hnuser")),
        timestamp=fspec("timestamp", css_attr("table.fatitem span.age", "title")),
        replies=ReplyProfile(
            containers=(css_containers("tr.athing.comtr"),),
            author=fspec("reply_author", css_text("a.hnuser")),
            body=fspec(
                "reply_body",
                css_text("div.commtext", separator="\n"),
                css_text("span.commtext", separator="\n"),
            ),
            timestamp=fspec("reply_timestamp", css_attr("span.age", "title")),
            depth=fspec(
                "reply_depth",
                css_attr("td.ind", "indent"),
                transform(css_attr("td.ind img", "width"), lambda w: int(w) // 40),
                kind=NUMBER,
            ),
        ),
    ),
)


# ---------------------------------------------------------------------------
# Reddit: public JSON listing and thread endpoints
# ---------------------------------------------------------------------------

def _reddit_json_url(url: str) -> str:
    parts = urlsplit(url)
    path = parts.path.rstrip("/")
    if not path.endswith(".json"):
        path += ".json"
    return urlunsplit((parts.scheme, parts.netloc, path, parts.query, ""))


def _reddit_children(reply: Any) -> List[Any]:
    children = lookup(reply, "data.replies.data.children")
    if not isinstance(children, list):
        return []
    return [c for c in children if isinstance(c, dict) and c.get("kind") == "t1"]


_POST = "0.data.children.0.data"

REDDIT = SiteProfile(
    name="reddit",
    base_url="https://www.reddit.com",
    document_format=JSON,
    id_pattern=r"/comments/([a-z0-9]+)",
    detail_fetch_url=_reddit_json_url,
    listing=ListingProfile(
        containers=(json_items("data.children", kind="t3"),),
        fields={
            "title": fspec("title", json_path("data.title")),
            "detail_url": fspec("detail_url", template(json_path("data.permalink"), "https://www.reddit.com{}")),
            "link_url": fspec("link_url", json_path("data.url_overridden_by_dest"), json_path("data.url")),
            "author": fspec("author", json_path("data.author")),
            "score": fspec("score", json_path("data.score"), json_path("data.ups"), kind=NUMBER),
            "reply_count": fspec("reply_count", json_path("data.num_comments"), kind=NUMBER),
            "timestamp": fspec("timestamp", json_path("data.created_utc")),
            "preview": fspec("preview", json_path("data.selftext")),
            "approval_ratio": fspec("approval_ratio", json_path("data.upvote_ratio"), kind=RATIO),
        },
    ),
    detail=DetailProfile(
        body=fspec("body", json_path(f"{_POST}.selftext")),
        score=fspec("score", json_path(f"{_POST}.score"), kind=NUMBER),
        reply_count=fspec("reply_count", json_path(f"{_POST}.num_comments"), kind=NUMBER),
        tags=fspec("tags", transform(json_path(f"{_POST}.link_flair_text"), lambda flair: [flair]), kind=LIST),
        author=fspec("author", json_path(f"{_POST}.author")),
        timestamp=fspec("timestamp", json_path(f"{_POST}.created_utc")),
        approval_ratio=fspec("approval_ratio", json_path(f"{_POST}.upvote_ratio"), kind=RATIO),
        replies=ReplyProfile(
            containers=(json_items("1.data.children", kind="t1"),),
            children=_reddit_children,
            author=fspec("reply_author", json_path("data.author")),
            body=fspec("reply_body", json_path("data.body")),
            score=fspec("reply_score", json_path("data.score"), kind=NUMBER),
            timestamp=fspec("reply_timestamp", json_path("data.created_utc")),
            min_length=1,
        ),
    ),
)


# ---------------------------------------------------------------------------
# Hacker News search: Algolia API results, threads from the items endpoint
# ---------------------------------------------------------------------------

def _html_text(value: Any) -> str:
    return BeautifulSoup(str(value), "html.parser").get_text("\n").strip()


def _algolia_item_url(url: str) -> str:
    match = re.search(r"[?&]id=(\d+)", url)
    if not match:
        return url
    return f"https://hn.algolia.com/api/v1/items/{match.group(1)}"


def _algolia_children(reply: Any) -> List[Any]:
    children = lookup(reply, "children")
    if not isinstance(children, list):
        return []
    return [c for c in children if isinstance(c, dict)]


HACKERNEWS_SEARCH = SiteProfile(
    name="hackernews_search",
    base_url="https://news.ycombinator.com",
    document_format=JSON,
    id_pattern=r"[?&]id=(\d+)",
    detail_fetch_url=_algolia_item_url,
    listing=ListingProfile(
        containers=(json_items("hits"),),
        fields={
            "title": fspec("title", json_path("title"), json_path("story_title")),
            "detail_url": fspec(
                "detail_url",
                template(json_path("objectID"), "https://news.ycombinator.com/item?id={}"),
                template(json_path("story_id"), "https://news.ycombinator.com/item?id={}"),
            ),
            "link_url": fspec("link_url", json_path("url"), json_path("story_url")),
            "author": fspec("author", json_path("author")),
            "score": fspec("score", json_path("points"), kind=NUMBER),
            "reply_count": fspec("reply_count", json_path("num_comments"), kind=NUMBER),
            "timestamp": fspec("timestamp", json_path("created_at_i"), json_path("created_at")),
            "preview": fspec("preview", transform(json_path("story_text"), _html_text)),
        },
    ),
    detail=DetailProfile(
        body=fspec("body", transform(json_path("text"), _html_text)),
        score=fspec("score", json_path("points"), kind=NUMBER),
        # The items endpoint has no comment total; the reply tree size is used
        reply_count=fspec("reply_count", json_path("num_comments"), kind=NUMBER),
        author=fspec("author", json_path("author")),
        timestamp=fspec("timestamp", json_path("created_at_i"), json_path("created_at")),
        replies=ReplyProfile(
            containers=(json_items("children"),),
            children=_algolia_children,
            author=fspec("reply_author", json_path("author")),
            body=fspec("reply_body", transform(json_path("text"), _html_text)),
            score=fspec("reply_score", json_path("points"), kind=NUMBER),
            timestamp=fspec("reply_timestamp", json_path("created_at_i")),
            min_length=1,
        ),
    ),
)


# ---------------------------------------------------------------------------
# Generic article feed
# ---------------------------------------------------------------------------

GENERIC = SiteProfile(
    name="generic",
    base_url="",
    listing=ListingProfile(
        containers=(
            containers_having("article, li, div", ("h1, h2, h3", "a[href]")),
            css_containers('[data-testid*="post"], [data-testid*="item"]'),
            css_containers("article"),
        ),
        fields={
            "title": fspec("title", css_text("h1 a, h2 a, h3 a"), css_text("h1, h2, h3")),
            "detail_url": fspec("detail_url", css_attr("h1 a[href], h2 a[href], h3 a[href]", "href"), css_attr("a[href]", "href")),
            "author": fspec("author", css_text(".author, .byline, [rel='author']")),
            "score": fspec("score", css_text(".score, .points, .votes, [class*='vote']"), kind=NUMBER),
            "reply_count": fspec("reply_count", css_text(".comments, [class*='comment']"), kind=NUMBER),
            "timestamp": fspec("timestamp", css_attr("time[datetime]", "datetime"), css_text("time")),
            "preview": fspec("preview", css_text(".summary, .excerpt, p")),
        },
        wait_selector="article, h2, h3",
        load_more_selectors=(".load-more", ".show-more", 'a[rel="next"]'),
    ),
    detail=DetailProfile(
        body=fspec(
            "body",
            css_longest_text("article, main, [role='main'], .content", min_length=100,
                             exclude=("nav", "header", "footer", ".comments", "script", "style")),
            css_joined_text("p", min_item_length=20),
        ),
        score=fspec("score", css_text(".score, .points, .votes"), kind=NUMBER),
        reply_count=fspec("reply_count", regex_text(r"(\d[\d,.]*k?)\s*(?:comments?|replies)\b"), kind=NUMBER),
        tags=fspec("tags", css_texts('a[rel="tag"], .tag, .tags a'), kind=LIST),
        author=fspec("author", css_text(".author, .byline, [rel='author']", not_inside=(".comment",))),
        timestamp=fspec("timestamp", css_attr("time[datetime]", "datetime"), css_text("time")),
        replies=ReplyProfile(
            containers=(css_containers(".comment"),),
            author=fspec("reply_author", css_text(".author, .username")),
            body=fspec(
                "reply_body",
                css_text(".comment-body, .comment-text", min_length=11),
                css_text("p", min_length=11),
                own_text(exclude=(".author", ".username", "time")),
            ),
            timestamp=fspec("reply_timestamp", css_attr("time[datetime]", "datetime")),
        ),
    ),
)


ALL_SITES = {
    INDIEHACKERS.name: INDIEHACKERS,
    HACKERNEWS.name: HACKERNEWS,
    HACKERNEWS_SEARCH.name: HACKERNEWS_SEARCH,
    REDDIT.name: REDDIT,
    GENERIC.name: GENERIC,
}


def get_site(name: str) -> SiteProfile:
    try:
        return ALL_SITES[name.lower()]
    except KeyError:
        raise ValueError(f"Unknown site profile: {name}") from None
