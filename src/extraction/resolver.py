"""
Field resolution over unstable markup.

A logical field (title, score, ...) is declared as an ordered list of
strategies. Each strategy is a pure function of a scope (a BeautifulSoup
element or a decoded JSON value) and returns a value or something empty.
The first non-empty result wins.
"""
import copy
import logging
import math
import re
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Any, Callable, Iterable, List, Optional, Sequence, Tuple

import soupsieve
from bs4 import BeautifulSoup, Tag

from core.errors import FieldResolutionExhausted

logger = logging.getLogger(__name__)

Strategy = Callable[[Any], Any]


class _Empty:
    """Sentinel returned when every strategy for a field came back empty."""

    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __bool__(self) -> bool:
        return False

    def __repr__(self) -> str:
        return "EMPTY"


EMPTY = _Empty()


def is_empty(value: Any) -> bool:
    if value is None or value is EMPTY:
        return True
    if isinstance(value, float) and math.isnan(value):
        return True
    if isinstance(value, str):
        return not value.strip()
    if isinstance(value, (list, tuple, set, frozenset, dict)):
        return len(value) == 0
    return False


def resolve(scope: Any, strategies: Iterable[Strategy]) -> Any:
    """
    Evaluate strategies in order and return the first non-empty value,
    or EMPTY when all of them are exhausted.
    """
    for strategy in strategies:
        value = strategy(scope)
        if not is_empty(value):
            return value
    return EMPTY


# ---------------------------------------------------------------------------
# Numeric normalization
# ---------------------------------------------------------------------------

_COUNT_RE = re.compile(r"\d[\d,]*(?:\.\d+)?(?!\d)")
_SUFFIX_RE = re.compile(r"\s*([kKmM])(?![a-zA-Z])|([kKmM])([a-zA-Z]+)")
_MULTIPLIERS = {"k": 1_000, "m": 1_000_000}
# Unit words that may follow a glued suffix ("1.5kviews").
_COUNTER_UNITS = {
    "comments", "followers", "likes", "members", "points", "replies",
    "subscribers", "upvotes", "views", "votes",
}


def _suffix_after(text: str, end: int) -> str:
    match = _SUFFIX_RE.match(text, end)
    if not match:
        return ""
    if match.group(1):
        return match.group(1).lower()
    if match.group(3).lower() in _COUNTER_UNITS:
        return match.group(2).lower()
    return ""


def _parse_count_or_none(text: str) -> Optional[int]:
    text = text or ""
    match = _COUNT_RE.search(text)
    if not match:
        return None
    digits = match.group(0).replace(",", "")
    try:
        value = Decimal(digits)
    except InvalidOperation:
        return None
    suffix = _suffix_after(text, match.end())
    if suffix:
        value *= _MULTIPLIERS[suffix]
    return int(math.floor(value))


def parse_count(text: str) -> int:
    """
    Normalize an engagement counter: "1.2k" -> 1200, "3,400" -> 3400.
    Text without digits is a valid zero, never missing.
    """
    value = _parse_count_or_none(text)
    return 0 if value is None else value


def _as_count(value: Any) -> Any:
    if is_empty(value):
        return EMPTY
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, (int, float)):
        return int(math.floor(value))
    parsed = _parse_count_or_none(str(value))
    return EMPTY if parsed is None else parsed


def _as_ratio(value: Any) -> Any:
    if is_empty(value):
        return EMPTY
    try:
        ratio = float(str(value).strip().rstrip("%"))
    except ValueError:
        return EMPTY
    if math.isnan(ratio):
        return EMPTY
    if isinstance(value, str) and value.strip().endswith("%"):
        ratio /= 100.0
    return ratio


# ---------------------------------------------------------------------------
# Field specs
# ---------------------------------------------------------------------------

TEXT = "text"
NUMBER = "number"
RATIO = "ratio"
LIST = "list"

_DEFAULTS = {TEXT: "", NUMBER: 0, RATIO: None, LIST: ()}


@dataclass(frozen=True)
class FieldSpec:
    """
    Ordered strategies for one logical field.
    """
    name: str
    strategies: Tuple[Strategy, ...]
    kind: str = TEXT

    def resolve_or_empty(self, scope: Any) -> Any:
        """Resolved and normalized value, or EMPTY when exhausted."""
        if self.kind == NUMBER:
            chain = [lambda s, f=f: _as_count(f(s)) for f in self.strategies]
        elif self.kind == RATIO:
            chain = [lambda s, f=f: _as_ratio(f(s)) for f in self.strategies]
        else:
            chain = list(self.strategies)

        value = resolve(scope, chain)
        if value is EMPTY:
            logger.debug(f"Field '{self.name}' exhausted {len(self.strategies)} strategies")
            return EMPTY

        if self.kind == TEXT:
            return str(value).strip()
        if self.kind == LIST:
            return tuple(value)
        return value

    def resolve(self, scope: Any) -> Any:
        """Like resolve_or_empty, but exhaustion yields the kind's default ("" / 0 / None / ())."""
        value = self.resolve_or_empty(scope)
        return _DEFAULTS[self.kind] if value is EMPTY else value

    def require(self, scope: Any) -> Any:
        """For mandatory fields: raises FieldResolutionExhausted instead of defaulting."""
        value = self.resolve_or_empty(scope)
        if value is EMPTY:
            raise FieldResolutionExhausted(f"No strategy resolved field '{self.name}'")
        return value


def field(name: str, *strategies: Strategy, kind: str = TEXT) -> FieldSpec:
    return FieldSpec(name=name, strategies=tuple(strategies), kind=kind)


# ---------------------------------------------------------------------------
# Strategy constructors (HTML scopes)
# ---------------------------------------------------------------------------

def clean_text(text: str) -> str:
    return " ".join((text or "").split())


def _is_element(scope: Any) -> bool:
    return isinstance(scope, (Tag, BeautifulSoup))


def _inside(element: Tag, selectors: Sequence[str]) -> bool:
    parent = element.parent
    if not isinstance(parent, Tag) or isinstance(parent, BeautifulSoup):
        return False
    return soupsieve.closest(", ".join(selectors), parent) is not None


def _candidates(scope: Any, selector: str, not_inside: Sequence[str] = ()) -> List[Tag]:
    if not _is_element(scope):
        return []
    found = scope.select(selector) if selector else [scope]
    if not_inside:
        found = [el for el in found if not _inside(el, not_inside)]
    return found


def element_text(element: Tag, *, separator: str = " ", exclude: Sequence[str] = ()) -> str:
    if exclude:
        element = copy.copy(element)
        for selector in exclude:
            for node in element.select(selector):
                node.decompose()
    if separator == "\n":
        lines = [clean_text(line) for line in element.get_text("\n").split("\n")]
        return "\n".join(line for line in lines if line)
    return clean_text(element.get_text(separator))


def css_text(
    selector: str,
    *,
    min_length: int = 0,
    separator: str = " ",
    exclude: Sequence[str] = (),
    not_inside: Sequence[str] = (),
) -> Strategy:
    """Text of the first element matching selector with at least min_length chars."""
    def strategy(scope: Any) -> Any:
        for element in _candidates(scope, selector, not_inside):
            text = element_text(element, separator=separator, exclude=exclude)
            if text and len(text) >= min_length:
                return text
        return EMPTY
    return strategy


def css_longest_text(
    selector: str,
    *,
    min_length: int = 0,
    separator: str = "\n",
    exclude: Sequence[str] = (),
    not_inside: Sequence[str] = (),
) -> Strategy:
    """Text of the matching element with the most text."""
    def strategy(scope: Any) -> Any:
        best = ""
        for element in _candidates(scope, selector, not_inside):
            text = element_text(element, separator=separator, exclude=exclude)
            if len(text) > len(best):
                best = text
        return best if len(best) >= max(min_length, 1) else EMPTY
    return strategy


def css_joined_text(selector: str, *, min_item_length: int = 0, joiner: str = "\n\n") -> Strategy:
    """All matching elements' texts joined, e.g. every paragraph of an article."""
    def strategy(scope: Any) -> Any:
        parts = [
            element_text(el) for el in _candidates(scope, selector)
        ]
        parts = [p for p in parts if len(p) > min_item_length]
        return joiner.join(parts) if parts else EMPTY
    return strategy


def css_attr(selector: str, attr: str, *, not_inside: Sequence[str] = ()) -> Strategy:
    def strategy(scope: Any) -> Any:
        for element in _candidates(scope, selector, not_inside):
            value = element.get(attr)
            if isinstance(value, list):
                value = " ".join(value)
            if not is_empty(value):
                return value.strip()
        return EMPTY
    return strategy


def own_attr(attr: str) -> Strategy:
    return css_attr("", attr)


def own_text(*, separator: str = " ", exclude: Sequence[str] = ()) -> Strategy:
    """Text of the scope element itself, minus excluded descendants."""
    return css_text("", separator=separator, exclude=exclude)


def css_texts(selector: str, *, not_inside: Sequence[str] = ()) -> Strategy:
    """Texts of every matching element, as a list."""
    def strategy(scope: Any) -> Any:
        return [element_text(el) for el in _candidates(scope, selector, not_inside)]
    return strategy


def sibling(strategy: Strategy, name: str = "") -> Strategy:
    """Apply strategy to the next sibling element (split-row layouts)."""
    def wrapped(scope: Any) -> Any:
        if not _is_element(scope):
            return EMPTY
        nxt = scope.find_next_sibling(name or True)
        return strategy(nxt) if nxt is not None else EMPTY
    return wrapped


def regex_text(pattern: str, *, group: int = 1, flags: int = re.IGNORECASE) -> Strategy:
    """Regex over the scope's full text."""
    compiled = re.compile(pattern, flags)

    def strategy(scope: Any) -> Any:
        if not _is_element(scope):
            return EMPTY
        match = compiled.search(clean_text(scope.get_text(" ")))
        return match.group(group) if match else EMPTY
    return strategy


def template(strategy: Strategy, fmt: str) -> Strategy:
    """Format a resolved value into a string, e.g. "item?id={}"."""
    def wrapped(scope: Any) -> Any:
        value = strategy(scope)
        return EMPTY if is_empty(value) else fmt.format(value)
    return wrapped


def transform(strategy: Strategy, fn: Callable[[Any], Any]) -> Strategy:
    def wrapped(scope: Any) -> Any:
        value = strategy(scope)
        return EMPTY if is_empty(value) else fn(value)
    return wrapped


# ---------------------------------------------------------------------------
# Strategy constructors (JSON scopes)
# ---------------------------------------------------------------------------

def lookup(data: Any, path: str) -> Any:
    """Walk a dotted path through dicts and lists; EMPTY when any step is missing."""
    current = data
    for part in path.split("."):
        if isinstance(current, dict):
            if part not in current:
                return EMPTY
            current = current[part]
        elif isinstance(current, list):
            try:
                current = current[int(part)]
            except (ValueError, IndexError):
                return EMPTY
        else:
            return EMPTY
    return current


def json_path(path: str) -> Strategy:
    def strategy(scope: Any) -> Any:
        value = lookup(scope, path)
        return value if isinstance(value, (str, int, float, list, dict)) else EMPTY
    return strategy
