"""
Parse the raw timestamps sites render ("5 hours ago", ISO strings, epochs)
into timezone-aware datetimes.
"""
import re
from datetime import datetime, timedelta, timezone
from typing import Optional

_UNIT_SECONDS = {
    "s": 1, "sec": 1, "second": 1,
    "m": 60, "min": 60, "minute": 60,
    "h": 3600, "hr": 3600, "hour": 3600,
    "d": 86400, "day": 86400,
    "w": 604800, "wk": 604800, "week": 604800,
    "mo": 2592000, "month": 2592000,
    "y": 31536000, "yr": 31536000, "year": 31536000,
}

_RELATIVE_RE = re.compile(
    r"\b(\d+|an?|one)\s*(seconds?|secs?|s|minutes?|mins?|m|hours?|hrs?|h|days?|d|weeks?|wks?|w|months?|mo|years?|yrs?|y)\.?\b(\s+ago)?",
    re.IGNORECASE,
)
_EPOCH_RE = re.compile(r"^\d{9,13}(\.\d+)?$")
_ISO_RE = re.compile(r"\d{4}-\d{2}-\d{2}(?:[T ]\d{2}:\d{2}(?::\d{2}(?:\.\d+)?)?)?(?:Z|[+-]\d{2}:?\d{2})?")


def _unit_seconds(unit: str) -> int:
    unit = unit.lower()
    if unit in _UNIT_SECONDS:
        return _UNIT_SECONDS[unit]
    singular = unit.rstrip("s")
    if singular in _UNIT_SECONDS:
        return _UNIT_SECONDS[singular]
    return _UNIT_SECONDS[unit[0]]


def _from_epoch(value: float) -> datetime:
    if value > 1e11:  # milliseconds
        value /= 1000.0
    return datetime.fromtimestamp(value, tz=timezone.utc)


def _from_iso(text: str) -> Optional[datetime]:
    match = _ISO_RE.search(text)
    if not match:
        return None
    raw = match.group(0).replace(" ", "T")
    if raw.endswith("Z"):
        raw = raw[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(raw)
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def parse_timestamp(raw, reference: Optional[datetime] = None) -> Optional[datetime]:
    """
    Best-effort conversion of a rendered timestamp to an aware datetime.

    Relative phrases are resolved against reference (the time the page was
    read), not against the time of scoring. Returns None when nothing
    recognisable is found.
    """
    if raw is None:
        return None
    if isinstance(raw, (int, float)):
        return _from_epoch(float(raw)) if raw > 0 else None

    text = str(raw).strip()
    if not text:
        return None

    reference = reference or datetime.now(timezone.utc)

    if _EPOCH_RE.match(text):
        return _from_epoch(float(text))

    # HN renders title="2024-05-01T12:00:00 1714564800"
    parts = text.split()
    if len(parts) == 2 and _EPOCH_RE.match(parts[1]):
        return _from_epoch(float(parts[1]))

    iso = _from_iso(text)
    if iso is not None:
        return iso

    lowered = text.lower()
    if lowered in ("just now", "now", "moments ago", "a moment ago"):
        return reference
    if lowered == "yesterday":
        return reference - timedelta(days=1)

    match = _RELATIVE_RE.search(lowered)
    if match:
        amount = match.group(1)
        count = 1 if amount in ("a", "an", "one") else int(amount)
        return reference - timedelta(seconds=count * _unit_seconds(match.group(2)))

    return None
