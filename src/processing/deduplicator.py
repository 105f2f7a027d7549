from typing import Iterable, List, Optional, Set, Tuple
from urllib.parse import parse_qsl, urlencode, urlparse

from core.entities import ListingRecord

TRACKING_PARAMS = {"ref", "ref_src", "fbclid", "gclid"}
TRACKING_PREFIXES = ("utm_",)


def _is_tracking(param: str) -> bool:
    name = param.lower()
    return name in TRACKING_PARAMS or name.startswith(TRACKING_PREFIXES)


def canonical_url(url: str) -> str:
    """
    Identity of a detail URL: path plus non-tracking query parameters.
    Scheme, host, fragment and trailing slashes are ignored.
    """
    if not url:
        return ""
    parsed = urlparse(url.strip())
    path = parsed.path.rstrip("/") or "/"
    query = [
        (k, v) for k, v in parse_qsl(parsed.query, keep_blank_values=True)
        if not _is_tracking(k)
    ]
    if query:
        return f"{path}?{urlencode(sorted(query))}"
    return path


def dedupe_records(
    records: Iterable[ListingRecord],
    seen: Optional[Set[str]] = None,
) -> Tuple[List[ListingRecord], int]:
    """
    Stable de-duplication by canonical detail URL; first seen wins.
    Records without a URL are always kept. Pass the same seen set across
    calls to de-duplicate across categories.

    Returns (kept_records, removed_count)
    """
    seen = set() if seen is None else seen
    kept: List[ListingRecord] = []
    removed = 0

    for record in records:
        key = canonical_url(record.detail_url)
        if not key:
            kept.append(record)
            continue
        if key in seen:
            removed += 1
            continue
        seen.add(key)
        kept.append(record)

    return kept, removed
