"""
Builds a DetailRecord from an item's own page: full body, tags, counters and
the reply tree.
"""
import copy
import logging
from dataclasses import replace
from typing import Any, Iterable, List, Optional, Sequence, Tuple

from bs4 import Tag

from core.entities import DetailRecord, Reply, count_replies
from core.errors import ContainerDiscoveryExhausted
from extraction.item_extractor import discover_containers
from extraction.resolver import EMPTY, is_empty

logger = logging.getLogger(__name__)

DEFAULT_BODY_CHAR_CAP = 5000
DEFAULT_REPLY_CHAR_CAP = 1000
MAX_TAG_LENGTH = 30


def clean_tags(raw: Iterable[Any]) -> Tuple[str, ...]:
    """Strip '#', drop numeric-only and overlong tags, dedupe in first-seen order."""
    seen = []
    for tag in raw:
        if is_empty(tag):
            continue
        tag = " ".join(str(tag).split()).lstrip("#").strip()
        if len(tag) < 2 or len(tag) >= MAX_TAG_LENGTH or tag.isdigit():
            continue
        if tag not in seen:
            seen.append(tag)
    return tuple(seen)


def build_reply_tree(flat: Sequence[Tuple[int, Reply]]) -> Tuple[Reply, ...]:
    """
    Rebuild a tree from replies listed in document order with their depth.
    A reply attaches to the closest preceding reply with a smaller depth.
    """
    roots: List[list] = []
    stack: List[Tuple[int, list]] = []

    for depth, reply in flat:
        node = [reply, []]
        while stack and stack[-1][0] >= depth:
            stack.pop()
        (stack[-1][1][1] if stack else roots).append(node)
        stack.append((depth, node))

    def freeze(node: list) -> Reply:
        reply, children = node
        return replace(reply, children=tuple(freeze(c) for c in children))

    return tuple(freeze(n) for n in roots)


class DetailExtractor:
    """
    Detail-page extraction for one site profile.
    """

    def __init__(
        self,
        profile,
        *,
        body_char_cap: int = DEFAULT_BODY_CHAR_CAP,
        reply_char_cap: int = DEFAULT_REPLY_CHAR_CAP,
    ):
        self.profile = profile
        self.detail = profile.detail
        self.body_char_cap = body_char_cap
        self.reply_char_cap = reply_char_cap

    def extract(self, scope: Any) -> DetailRecord:
        detail = self.detail

        replies = self.extract_replies(scope)

        score = detail.score.resolve_or_empty(scope)
        reply_count = detail.reply_count.resolve_or_empty(scope)
        if reply_count is EMPTY and replies:
            reply_count = count_replies(replies)

        approval = detail.approval_ratio.resolve(scope) if detail.approval_ratio else None

        return DetailRecord(
            body_text=detail.body.resolve(scope)[: self.body_char_cap],
            tags=clean_tags(detail.tags.resolve(scope)) if detail.tags else (),
            replies=replies,
            score_override=None if score is EMPTY else score,
            reply_count_override=None if reply_count is EMPTY else reply_count,
            fetch_succeeded=True,
            author=detail.author.resolve(scope) if detail.author else "",
            timestamp_raw=detail.timestamp.resolve(scope) if detail.timestamp else "",
            approval_ratio=approval,
        )

    # ------------------------------------------------------------------
    # Replies
    # ------------------------------------------------------------------

    def extract_replies(self, scope: Any) -> Tuple[Reply, ...]:
        spec = self.detail.replies
        if spec is None:
            return ()
        try:
            _, containers = discover_containers(scope, spec.containers)
        except ContainerDiscoveryExhausted:
            logger.debug("No reply containers on detail page")
            return ()

        if spec.children is not None:
            return self._nested_replies(containers, depth=0)
        return self._flat_replies(containers)

    def _nested_replies(self, containers: Sequence[Any], depth: int) -> Tuple[Reply, ...]:
        """Structures where each reply holds its children (JSON APIs)."""
        spec = self.detail.replies
        replies = []
        for container in containers:
            reply = self._reply(container)
            children = self._nested_replies(spec.children(container), depth + 1)
            if reply is None:
                # Keep the subtree of a dropped reply at this level
                replies.extend(children)
                continue
            replies.append(replace(reply, children=children))
        return tuple(replies)

    def _flat_replies(self, containers: Sequence[Any]) -> Tuple[Reply, ...]:
        """Replies listed in document order; depth from markup or from nesting."""
        spec = self.detail.replies
        ids = {id(c) for c in containers}
        flat = []

        for container in containers:
            if spec.depth is not None:
                depth = spec.depth.resolve(container)
            else:
                depth = self._nesting_depth(container, ids)

            scope = self._without_nested(container, ids)
            reply = self._reply(scope)
            if reply is not None:
                flat.append((depth, reply))

        return build_reply_tree(flat)

    @staticmethod
    def _nesting_depth(container: Any, ids: set) -> int:
        if not isinstance(container, Tag):
            return 0
        return sum(1 for parent in container.parents if id(parent) in ids)

    @staticmethod
    def _without_nested(container: Any, ids: set) -> Any:
        if not isinstance(container, Tag):
            return container
        nested = [el for el in container.find_all(True) if id(el) in ids]
        if not nested:
            return container
        clone = copy.copy(container)
        originals = container.find_all(True)
        copies = clone.find_all(True)
        # copy.copy preserves document order, so positions line up
        for original, twin in zip(originals, copies):
            if id(original) in ids and not twin.decomposed:
                twin.decompose()
        return clone

    def _reply(self, scope: Any) -> Optional[Reply]:
        spec = self.detail.replies
        body = spec.body.resolve(scope)
        if len(body) < spec.min_length:
            return None
        return Reply(
            author=(spec.author.resolve(scope) if spec.author else "") or "Anonymous",
            body_text=body[: self.reply_char_cap],
            score=spec.score.resolve(scope) if spec.score else 0,
            timestamp_raw=spec.timestamp.resolve(scope) if spec.timestamp else "",
        )
