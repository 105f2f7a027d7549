"""
Engagement scoring and ranking of enriched items
"""
import math
from datetime import datetime
from typing import List, Optional, Sequence

from core.entities import EnrichedItem

DEFAULT_COMMENT_WEIGHT = 2.0
DEFAULT_APPROVAL_BONUS = 1.5
DEFAULT_APPROVAL_THRESHOLD = 0.8
DEFAULT_AGE_HOURS = 24.0

# Where the approval ratio for the bonus comes from
OBSERVED = "observed"    # only when the source exposes it
ESTIMATED = "estimated"  # observed, else derived from score and replies
OFF = "off"              # never apply the bonus
APPROVAL_POLICIES = (OBSERVED, ESTIMATED, OFF)


def round_half_up(value: float, digits: int = 1) -> float:
    factor = 10 ** digits
    return math.floor(value * factor + 0.5) / factor


def age_hours(published_at: Optional[datetime], now: datetime, default_age_hours: float = DEFAULT_AGE_HOURS) -> float:
    """Hours since publication, never below 1. Unknown dates get default_age_hours."""
    if published_at is None:
        return max(1.0, default_age_hours)
    return max(1.0, (now - published_at).total_seconds() / 3600.0)


def estimate_approval_ratio(score: int, reply_count: int) -> float:
    """Rough approval estimate for sources that do not expose one."""
    if score <= 0:
        return 0.0
    return min(0.95, 0.7 + score / (score + reply_count * 10))


def effective_approval_ratio(item: EnrichedItem, policy: str = OBSERVED) -> Optional[float]:
    if policy == OFF:
        return None
    if item.approval_ratio is not None:
        return item.approval_ratio
    if policy == ESTIMATED:
        return estimate_approval_ratio(item.score, item.reply_count)
    return None


def score(
    item: EnrichedItem,
    now: datetime,
    *,
    comment_weight: float = DEFAULT_COMMENT_WEIGHT,
    approval_bonus: float = DEFAULT_APPROVAL_BONUS,
    approval_threshold: float = DEFAULT_APPROVAL_THRESHOLD,
    approval_policy: str = OBSERVED,
    default_age_hours: float = DEFAULT_AGE_HOURS,
) -> float:
    """
    (score + reply_count * comment_weight) / age_hours, times approval_bonus
    when the approval ratio exceeds approval_threshold, rounded to one decimal.
    """
    hours = age_hours(item.published_at, now, default_age_hours)
    raw = (item.score + item.reply_count * comment_weight) / hours

    ratio = effective_approval_ratio(item, approval_policy)
    if ratio is not None and ratio > approval_threshold:
        raw *= approval_bonus

    return round_half_up(raw)


def rank(items: Sequence[EnrichedItem], now: datetime, config=None) -> List[EnrichedItem]:
    """
    Score every item and sort descending by engagement score.
    Ties keep discovery order.
    """
    weights = {}
    if config is not None:
        weights = dict(
            comment_weight=config.comment_weight,
            approval_bonus=config.approval_bonus,
            approval_threshold=config.approval_threshold,
            approval_policy=config.approval_policy,
            default_age_hours=config.default_age_hours,
        )

    scored = []
    for item in items:
        scored.append(item.with_updates(
            age_hours=age_hours(item.published_at, now, weights.get("default_age_hours", DEFAULT_AGE_HOURS)),
            engagement_score=score(item, now, **weights),
        ))

    # sorted() is stable
    return sorted(scored, key=lambda i: i.engagement_score, reverse=True)
