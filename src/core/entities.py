from __future__ import annotations

from dataclasses import dataclass, field, asdict, replace
from datetime import datetime, timezone
from typing import List, Optional, Tuple, Dict, Any


@dataclass(frozen=True)
class ListingRecord:
    """
    One item discovered on a listing page, before enrichment.
    """
    source_id: str
    title: str
    author: str
    detail_url: str
    timestamp_raw: str
    score: int
    reply_count: int
    preview_text: str
    category_key: str
    approval_ratio: Optional[float] = None
    link_url: str = ""


@dataclass(frozen=True)
class Reply:
    """
    A reply on a detail page. Replies form a tree of arbitrary depth.
    """
    author: str
    body_text: str
    score: int = 0
    timestamp_raw: str = ""
    children: Tuple[Reply, ...] = ()


def count_replies(replies: Tuple[Reply, ...]) -> int:
    """Total number of replies in a reply forest."""
    return sum(1 + count_replies(r.children) for r in replies)


@dataclass(frozen=True)
class DetailRecord:
    """
    Full-fidelity data fetched from an item's own page.
    """
    body_text: str = ""
    tags: Tuple[str, ...] = ()
    replies: Tuple[Reply, ...] = ()
    score_override: Optional[int] = None
    reply_count_override: Optional[int] = None
    fetch_succeeded: bool = False
    author: str = ""
    timestamp_raw: str = ""
    approval_ratio: Optional[float] = None
    error: Optional[str] = None

    @classmethod
    def failed(cls, error: str) -> DetailRecord:
        return cls(fetch_succeeded=False, error=error)


@dataclass(frozen=True)
class EnrichedItem:
    """
    Listing record merged with its detail record, plus ranking data.
    Terminal unit handed to the report layer.
    """
    source_id: str
    title: str
    author: str
    detail_url: str
    timestamp_raw: str
    score: int
    reply_count: int
    preview_text: str
    category_key: str
    approval_ratio: Optional[float] = None
    link_url: str = ""
    body_text: str = ""
    tags: Tuple[str, ...] = ()
    replies: Tuple[Reply, ...] = ()
    fetch_succeeded: bool = False
    published_at: Optional[datetime] = None
    age_hours: float = 0.0
    engagement_score: float = 0.0

    @classmethod
    def from_listing(cls, record: ListingRecord) -> EnrichedItem:
        return cls(**asdict(record))

    def with_updates(self, **changes: Any) -> EnrichedItem:
        return replace(self, **changes)


@dataclass(frozen=True)
class CategoryDescriptor:
    """
    One listing to page through. site names a profile in core.sites.
    """
    key: str
    listing_url: str
    site: str = "generic"


@dataclass(frozen=True)
class SessionError:
    """
    A recorded, non-fatal failure. scope names the unit that failed:
    a container index, an item URL or a category key.
    """
    scope: str
    message: str
    kind: str


@dataclass
class ExtractionSession:
    """
    Process-scoped aggregate for one run, owned by the orchestrator.

    The orchestrator hands the session to the ItemExtractor and DeepEnricher
    it creates for a category. Those write only through record_error and the
    run statistics counters on the orchestrator's event loop, and never
    touch collected or the timestamps.
    """
    target_count: int
    collected: List[EnrichedItem] = field(default_factory=list)
    errors: List[SessionError] = field(default_factory=list)
    started_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    ended_at: Optional[datetime] = None

    # Run statistics
    categories_attempted: int = 0
    categories_failed: int = 0
    listing_records: int = 0
    duplicates_removed: int = 0
    enriched_ok: int = 0
    enriched_failed: int = 0

    def record_error(self, scope: str, message: str, kind: str) -> None:
        self.errors.append(SessionError(scope=scope, message=message, kind=kind))

    @property
    def duration_seconds(self) -> Optional[float]:
        if self.ended_at is None:
            return None
        return (self.ended_at - self.started_at).total_seconds()

    def to_dict(self) -> Dict[str, Any]:
        """Plain, JSON-friendly view for the report layer."""
        def _item(item: EnrichedItem) -> Dict[str, Any]:
            data = asdict(item)
            data["published_at"] = item.published_at.isoformat() if item.published_at else None
            return data

        return {
            "target_count": self.target_count,
            "started_at": self.started_at.isoformat(),
            "ended_at": self.ended_at.isoformat() if self.ended_at else None,
            "duration_seconds": self.duration_seconds,
            "stats": {
                "categories_attempted": self.categories_attempted,
                "categories_failed": self.categories_failed,
                "listing_records": self.listing_records,
                "duplicates_removed": self.duplicates_removed,
                "enriched_ok": self.enriched_ok,
                "enriched_failed": self.enriched_failed,
                "collected": len(self.collected),
                "errors": len(self.errors),
            },
            "errors": [asdict(e) for e in self.errors],
            "items": [_item(i) for i in self.collected],
        }
