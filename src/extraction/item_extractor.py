"""
Turns a listing page snapshot into ListingRecords.

Container discovery tries ordered strategies and adopts the first one that
finds anything; results are never merged across strategies. Each container
is then resolved field by field.
"""
import logging
import re
from typing import Any, Callable, List, Optional, Sequence, Tuple
from urllib.parse import urljoin, urlparse

from bs4 import BeautifulSoup, Tag

from core.entities import ExtractionSession, ListingRecord
from core.errors import ContainerDiscoveryExhausted, FieldResolutionExhausted
from extraction.resolver import is_empty, lookup
from processing.prefilter import passes_prefilter, DEFAULT_PREVIEW_MIN_LENGTH

logger = logging.getLogger(__name__)

ContainerStrategy = Callable[[Any], List[Any]]

PREVIEW_CHAR_CAP = 250


def css_containers(selector: str) -> ContainerStrategy:
    def strategy(scope: Any) -> List[Any]:
        if not isinstance(scope, (Tag, BeautifulSoup)):
            return []
        return scope.select(selector)
    return strategy


def containers_having(selector: str, required: Sequence[str]) -> ContainerStrategy:
    """
    Elements matching selector that contain a match for every required
    selector. Only the innermost qualifying elements are kept, so a wrapper
    around the whole feed never counts as one container.
    """
    def strategy(scope: Any) -> List[Any]:
        if not isinstance(scope, (Tag, BeautifulSoup)):
            return []
        qualifying = [
            el for el in scope.select(selector)
            if all(el.select_one(req) is not None for req in required)
        ]
        ids = {id(el) for el in qualifying}
        return [
            el for el in qualifying
            if not any(id(inner) in ids for inner in el.select(selector))
        ]
    return strategy


def json_items(path: str, kind: Optional[str] = None) -> ContainerStrategy:
    """Items of a JSON array, optionally only those with a matching "kind"."""
    def strategy(scope: Any) -> List[Any]:
        items = lookup(scope, path)
        if not isinstance(items, list):
            return []
        if kind is not None:
            items = [i for i in items if isinstance(i, dict) and i.get("kind") == kind]
        return items
    return strategy


def discover_containers(
    scope: Any,
    strategies: Sequence[ContainerStrategy],
) -> Tuple[int, List[Any]]:
    """
    Returns (strategy_index, containers) for the first strategy that yields
    at least one container. Raises ContainerDiscoveryExhausted otherwise.
    """
    for index, strategy in enumerate(strategies):
        containers = strategy(scope)
        if containers:
            return index, containers
    raise ContainerDiscoveryExhausted(f"None of {len(strategies)} container strategies matched")


def count_containers(scope: Any, strategies: Sequence[ContainerStrategy]) -> int:
    try:
        return len(discover_containers(scope, strategies)[1])
    except ContainerDiscoveryExhausted:
        return 0


def derive_source_id(url: str, pattern: Optional[str] = None) -> str:
    """
    Identity of an item from its URL. With a pattern, its first group;
    otherwise the last non-empty path segment. Empty when unparsable.
    """
    if not url:
        return ""
    if pattern:
        match = re.search(pattern, url)
        return match.group(1) if match else ""
    segments = [s for s in urlparse(url).path.split("/") if s]
    return segments[-1] if segments else ""


class ItemExtractor:
    """
    Extracts listing records for one site profile.
    """

    def __init__(
        self,
        profile,
        *,
        preview_min_length: int = DEFAULT_PREVIEW_MIN_LENGTH,
        session: Optional[ExtractionSession] = None,
    ):
        self.profile = profile
        self.preview_min_length = preview_min_length
        self.session = session

    def extract_all(self, scope: Any, category_key: str, page_url: str = "") -> List[ListingRecord]:
        try:
            strategy_index, containers = discover_containers(scope, self.profile.listing.containers)
        except ContainerDiscoveryExhausted as e:
            logger.warning(f"[{category_key}] {e}")
            if self.session is not None:
                self.session.record_error(category_key, str(e), e.kind)
            return []

        logger.debug(
            f"[{category_key}] Container strategy #{strategy_index} matched {len(containers)} containers"
        )

        records: List[ListingRecord] = []
        for index, container in enumerate(containers):
            scope_name = f"{category_key}:container[{index}]"
            try:
                record = self._extract_one(container, category_key, page_url)
            except FieldResolutionExhausted as e:
                # A container without a title is never an item
                logger.debug(f"Skipping {scope_name}: {e}")
                if self.session is not None:
                    self.session.record_error(scope_name, str(e), e.kind)
                continue
            except Exception as e:
                logger.warning(f"Failed to extract {scope_name}: {e}")
                if self.session is not None:
                    self.session.record_error(scope_name, str(e), type(e).__name__)
                continue

            if passes_prefilter(record, preview_min_length=self.preview_min_length):
                records.append(record)

        logger.info(f"[{category_key}] Extracted {len(records)}/{len(containers)} listing records")
        return records

    def _extract_one(self, container: Any, category_key: str, page_url: str) -> ListingRecord:
        fields = self.profile.listing.fields

        def get(name: str, default: Any = "") -> Any:
            spec = fields.get(name)
            return spec.resolve(container) if spec is not None else default

        raw_url = get("detail_url")
        detail_url = urljoin(page_url or self.profile.base_url, raw_url) if raw_url else ""
        link_url = get("link_url")
        if link_url:
            link_url = urljoin(page_url or self.profile.base_url, link_url)

        approval = get("approval_ratio", None)

        return ListingRecord(
            source_id=derive_source_id(detail_url, self.profile.id_pattern),
            title=fields["title"].require(container),
            author=get("author"),
            detail_url=detail_url,
            timestamp_raw=get("timestamp"),
            score=get("score", 0),
            reply_count=get("reply_count", 0),
            preview_text=get("preview")[:PREVIEW_CHAR_CAP],
            category_key=category_key,
            approval_ratio=None if is_empty(approval) else approval,
            link_url=link_url,
        )
